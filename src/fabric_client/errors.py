"""Typed exception hierarchy for Fabric REST API errors.

This module defines all custom exceptions raised by the Fabric client library.
All exceptions inherit from FabricClientError so callers can catch every
transport-level failure at once, and carry their context as attributes.
"""

from typing import Any, Optional


class SyncError(Exception):
    """Base exception for all fabric-workspace-sync errors.

    Use this to catch any application-level error from the sync tool.
    """
    pass


class FabricClientError(SyncError):
    """Base exception for all Fabric API client errors."""
    pass


class AuthError(FabricClientError):
    """Raised when a bearer token cannot be acquired from the credential."""

    def __init__(self, message: str = "Failed to acquire AAD token"):
        super().__init__(message)


class ApiError(FabricClientError):
    """Raised when the Fabric API returns an unrecoverable status."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: Any = None,
        url: Optional[str] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.body = body
        self.url = url


class LongRunningOperationError(ApiError):
    """Raised when a long-running operation ends in Failed or Undefined state."""

    def __init__(self, message: str, url: Optional[str] = None, body: Any = None):
        super().__init__(message, status_code=None, body=body, url=url)


class RetryBudgetExhaustedError(ApiError):
    """Raised when rate limiting persists beyond the retry budget."""

    def __init__(self, url: str, max_retries: int):
        super().__init__(
            f"Rate limit persisted after {max_retries} retries for {url}",
            status_code=429,
            url=url,
        )
        self.max_retries = max_retries


class TransportError(FabricClientError):
    """Raised when the Fabric API cannot be reached (connection, timeout)."""

    def __init__(self, url: str, reason: Optional[str] = None):
        message = f"API is not available at {url}"
        if reason:
            message += f": {reason}"
        super().__init__(message)
        self.url = url
        self.reason = reason


class OperationCancelledError(FabricClientError):
    """Raised when the caller's cancellation signal is set at a suspension point."""

    def __init__(self, message: str = "Operation cancelled"):
        super().__init__(message)
