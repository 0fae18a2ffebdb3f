"""Backoff and wait helpers for the Fabric endpoint.

This module provides the timing rules used by FabricEndpoint: exponential
backoff for 429 rate limit responses (2s, 4s, 8s, ... capped at 300s), the
fixed poll interval for long-running operations, token-expiry detection, and
cancellable sleeps.
"""

import logging
import threading
import time
from typing import Mapping, Optional

from .errors import OperationCancelledError

logger = logging.getLogger(__name__)

MAX_BACKOFF_SECONDS = 300
LRO_POLL_INTERVAL_SECONDS = 1

TOKEN_EXPIRED_HEADER = "x-ms-public-api-error-code"
TOKEN_EXPIRED_VALUE = "TokenExpired"


def rate_limit_delay(attempt: int, cap: int = MAX_BACKOFF_SECONDS) -> int:
    """Compute the 429 backoff for a given physical call count.

    Args:
        attempt: Number of physical calls issued so far (1-based)
        cap: Upper bound in seconds

    Returns:
        Seconds to wait: min(cap, 2 ** attempt)

    Example:
        >>> [rate_limit_delay(n) for n in (1, 2, 3)]
        [2, 4, 8]
    """
    # Avoid computing huge powers once past the cap
    if attempt >= cap.bit_length():
        return cap
    return min(cap, 2 ** attempt)


def is_token_expired(status_code: int, headers: Mapping[str, str]) -> bool:
    """Check whether a response signals an expired bearer token.

    Args:
        status_code: HTTP status of the response
        headers: Response headers (case-insensitive mapping from requests)

    Returns:
        True for a 401 carrying the TokenExpired error code header
    """
    if status_code != 401:
        return False
    return headers.get(TOKEN_EXPIRED_HEADER) == TOKEN_EXPIRED_VALUE


def check_cancelled(cancel_event: Optional[threading.Event]) -> None:
    """Raise OperationCancelledError if the cancellation signal is set."""
    if cancel_event is not None and cancel_event.is_set():
        raise OperationCancelledError()


def wait(seconds: float, cancel_event: Optional[threading.Event] = None) -> None:
    """Block for the given number of seconds, honoring cancellation.

    Args:
        seconds: Time to wait
        cancel_event: Optional event; when set during the wait the wait ends
            early and OperationCancelledError is raised

    Raises:
        OperationCancelledError: If the cancellation signal is set
    """
    if cancel_event is None:
        time.sleep(seconds)
        return

    check_cancelled(cancel_event)
    if cancel_event.wait(seconds):
        logger.info("Cancellation requested during wait")
        raise OperationCancelledError()
