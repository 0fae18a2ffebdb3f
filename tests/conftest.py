"""Root pytest configuration for all tests.

This conftest applies to all test types (unit, integration).
"""

import logging

import pytest

from src.workspace.config import FeatureFlags
from src.workspace.fabric_workspace import FabricWorkspace
from tests.helpers.fabric_api import FakeEndpoint

# azure-identity logs credential chain probing at INFO/WARNING level
logging.getLogger("azure").setLevel(logging.ERROR)

WORKSPACE_ID = "8b6e2c7a-4c1f-4e3a-9d3a-0f6f1c2b9a11"


@pytest.fixture
def workspace_id():
    return WORKSPACE_ID


@pytest.fixture
def fake_endpoint():
    return FakeEndpoint()


@pytest.fixture
def make_workspace(tmp_path, fake_endpoint):
    """Factory building a FabricWorkspace over tmp_path and the fake endpoint."""

    def factory(feature_flags=None, item_types=None, environment="PROD", parameter_file_path=None, endpoint=None):
        return FabricWorkspace(
            repository_directory=str(tmp_path),
            endpoint=endpoint or fake_endpoint,
            workspace_id=WORKSPACE_ID,
            item_type_in_scope=item_types,
            environment=environment,
            feature_flags=feature_flags or FeatureFlags(),
            parameter_file_path=parameter_file_path,
        )

    return factory
