"""Test helper modules for Fabric workspace sync tests.

This package provides utilities for unit and integration testing:
- fabric_api: Fake API responses and a routing fake endpoint
- repo_builder: Write item directories with .platform markers
"""

from .fabric_api import FakeEndpoint, make_response, ok
from .repo_builder import write_item

__all__ = [
    'FakeEndpoint',
    'make_response',
    'ok',
    'write_item',
]
