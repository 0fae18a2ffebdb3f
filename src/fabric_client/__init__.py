"""Fabric REST API client library.

This package provides the resilient invocation path used by every workspace
operation: token lifecycle, long-running operation polling, rate-limit backoff
and typed error translation.
"""

from .auth import Authenticator, TokenProvider, FABRIC_SCOPE
from .endpoint import FabricEndpoint, FabricResponse
from .errors import (
    SyncError,
    FabricClientError,
    AuthError,
    ApiError,
    LongRunningOperationError,
    RetryBudgetExhaustedError,
    TransportError,
    OperationCancelledError,
)

__all__ = [
    "Authenticator",
    "TokenProvider",
    "FABRIC_SCOPE",
    "FabricEndpoint",
    "FabricResponse",
    "SyncError",
    "FabricClientError",
    "AuthError",
    "ApiError",
    "LongRunningOperationError",
    "RetryBudgetExhaustedError",
    "TransportError",
    "OperationCancelledError",
]
