"""Resilient invoker for the Fabric REST API.

This module wraps a requests Session and turns one logical API request into as
many physical HTTP calls as needed:

1. Attaches the current bearer token and refreshes it on a TokenExpired 401
2. Polls long-running operations (202 / Location) until they settle
3. Backs off exponentially on 429 rate limits within a retry budget
4. Translates every other failure to a typed exception
"""

import json
import logging
import re
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

import requests

from .auth import TokenProvider
from .errors import (
    ApiError,
    AuthError,
    FabricClientError,
    LongRunningOperationError,
    OperationCancelledError,
    RetryBudgetExhaustedError,
    TransportError,
)
from .retry_logic import (
    LRO_POLL_INTERVAL_SECONDS,
    check_cancelled,
    is_token_expired,
    rate_limit_delay,
    wait,
)

logger = logging.getLogger(__name__)

USER_AGENT = "fabric-workspace-sync/0.1.0"
DEFAULT_MAX_RETRIES = 5
DEFAULT_TIMEOUT = 120
MAX_TOKEN_REFRESHES = 3


@dataclass
class FabricResponse:
    """Final response of a logical request.

    Attributes:
        status_code: HTTP status of the last physical call
        headers: Response headers of the last physical call
        body: Parsed JSON body, or None when the response was not JSON
    """
    status_code: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: Any = None


class FabricEndpoint:
    """Issues Fabric API requests with token refresh, LRO polling and 429 backoff.

    Decision table applied to every physical response:

    - 401 + ``x-ms-public-api-error-code: TokenExpired``: refresh token, reissue
      (not counted against max_retries)
    - 202, or 200 while polling: long-running operation envelope; Succeeded
      ends the loop, Failed/Undefined raise, anything else polls Location
    - 429: sleep min(300, 2 ** attempt) and retry, counted against max_retries
    - 400/401/403: raise immediately
    - other 2xx: success
    - anything else: raise as unhandled

    Example:
        >>> endpoint = FabricEndpoint(TokenProvider(credential))
        >>> response = endpoint.invoke("GET", f"{base_url}/items")
        >>> response.body["value"]
    """

    def __init__(
        self,
        token_provider: TokenProvider,
        session: Optional[requests.Session] = None,
        cancel_event: Optional[threading.Event] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        """Initialize the endpoint.

        Args:
            token_provider: Source of bearer tokens
            session: Optional requests Session (a new one is created if omitted)
            cancel_event: Optional cancellation signal checked at every send and sleep
            timeout: Per physical call timeout in seconds
        """
        self._token_provider = token_provider
        self._session = session or requests.Session()
        self._cancel_event = cancel_event
        self._timeout = timeout

    def invoke(
        self,
        method: str,
        url: str,
        body: Any = None,
        files: Optional[Dict[str, Any]] = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
    ) -> FabricResponse:
        """Run one logical request to completion.

        Args:
            method: HTTP method
            url: Absolute request URL
            body: JSON-serializable body, or a string sent verbatim
            files: Optional mapping of part name to content for a multipart upload
            max_retries: Number of 429 retries allowed before giving up

        Returns:
            FabricResponse of the final physical call

        Raises:
            ApiError: If the API returns a non-retryable status
            LongRunningOperationError: If a long-running operation fails
            RetryBudgetExhaustedError: If 429 responses exceed max_retries
            TransportError: If the API cannot be reached
            AuthError: If the token cannot be (re)acquired
            OperationCancelledError: If the cancellation signal is set
        """
        method = method.upper()
        payload = self._encode_body(body)
        iteration_count = 0
        rate_limit_retries = 0
        token_refreshes = 0
        long_running = False
        exit_loop = False
        response: Optional[requests.Response] = None

        while not exit_loop:
            check_cancelled(self._cancel_event)
            response = self._send(method, url, payload, files)
            iteration_count += 1
            logger.debug(self._format_invoke_log(response, method, url, payload))

            try:
                if is_token_expired(response.status_code, response.headers):
                    token_refreshes += 1
                    if token_refreshes > MAX_TOKEN_REFRESHES:
                        raise AuthError(f"Token still expired after {MAX_TOKEN_REFRESHES} refreshes")
                    logger.info("AAD token expired. Refreshing token.")
                    self._token_provider.refresh()
                    continue

                if response.status_code == 429:
                    rate_limit_retries += 1
                    if rate_limit_retries > max_retries:
                        raise RetryBudgetExhaustedError(url, max_retries)

                request_url = url
                exit_loop, method, url, payload, long_running = self._handle_response(
                    response, method, url, payload, long_running, iteration_count
                )
                if url != request_url:
                    files = None
            except OperationCancelledError:
                raise
            except FabricClientError:
                logger.error(self._format_invoke_log(response, method, url, payload))
                raise

        assert response is not None
        return FabricResponse(
            status_code=response.status_code,
            headers=dict(response.headers),
            body=self._parse_json(response),
        )

    def _send(
        self,
        method: str,
        url: str,
        payload: Optional[str],
        files: Optional[Dict[str, Any]],
    ) -> requests.Response:
        headers = {
            "Authorization": f"Bearer {self._token_provider.get_token()}",
            "User-Agent": USER_AGENT,
        }

        try:
            if files is not None:
                multipart = {name: (name, content) for name, content in files.items()}
                return self._session.request(
                    method, url, headers=headers, files=multipart, timeout=self._timeout
                )

            if payload is not None:
                headers["Content-Type"] = "application/json; charset=utf-8"
            return self._session.request(
                method, url, headers=headers, data=payload, timeout=self._timeout
            )
        except (requests.ConnectionError, requests.Timeout) as e:
            logger.error(f"No response received for {method} {url}: {e}")
            raise TransportError(url, str(e)) from e

    def _handle_response(
        self,
        response: requests.Response,
        method: str,
        url: str,
        payload: Optional[str],
        long_running: bool,
        attempt: int,
    ) -> Tuple[bool, str, str, Optional[str], bool]:
        """Classify one physical response.

        Returns:
            Tuple of (exit_loop, method, url, payload, long_running) for the
            next iteration
        """
        status = response.status_code

        if (status == 200 and long_running) or status == 202:
            envelope = self._parse_json(response) or {}
            operation_status = envelope.get("status") if isinstance(envelope, dict) else None
            location = response.headers.get("Location")

            if operation_status == "Succeeded":
                if location:
                    # Operation result is served from the Location URL
                    return False, "GET", location, None, False
                return True, method, url, payload, False

            if operation_status == "Failed":
                error = envelope.get("error") or {}
                message = error.get("message", "Unknown error") if isinstance(error, dict) else str(error)
                raise LongRunningOperationError(f"Operation failed: {message}", url=url, body=envelope)

            if operation_status == "Undefined":
                raise LongRunningOperationError(
                    "Operation is in an undefined state.", url=url, body=envelope
                )

            if not location:
                raise ApiError(
                    "Long-running operation response has no Location header",
                    status_code=status,
                    body=envelope,
                    url=url,
                )

            logger.debug(f"Operation status '{operation_status}', polling {location}")
            wait(LRO_POLL_INTERVAL_SECONDS, self._cancel_event)
            return False, "GET", location, None, True

        if status == 429:
            delay = rate_limit_delay(attempt)
            logger.info(f"Rate limit hit, retrying in {delay}s (attempt {attempt})")
            wait(delay, self._cancel_event)
            return False, method, url, payload, long_running

        if status in (400, 401, 403):
            raise ApiError(
                f"Fabric API returned {status}: {response.text}",
                status_code=status,
                body=self._parse_json(response),
                url=url,
            )

        if 200 <= status < 300:
            return True, method, url, payload, long_running

        raise ApiError(
            f"Unhandled error: {status} {response.text}",
            status_code=status,
            body=self._parse_json(response),
            url=url,
        )

    @staticmethod
    def _encode_body(body: Any) -> Optional[str]:
        if body is None:
            return None
        if isinstance(body, str):
            return body
        return json.dumps(body)

    @staticmethod
    def _parse_json(response: requests.Response) -> Any:
        content_type = response.headers.get("Content-Type", "")
        if "application/json" not in content_type or not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            logger.debug("Response declared JSON but could not be decoded")
            return None

    @staticmethod
    def _redact(text: str) -> str:
        text = re.sub(r"Bearer\s+[^\s\"']+", "Bearer ***REDACTED***", text, flags=re.IGNORECASE)
        return re.sub(
            r"(\"?(?:access_?token|client_secret)\"?\s*[:=]\s*\"?)[^\"\s,&]+",
            r"\1***REDACTED***",
            text,
            flags=re.IGNORECASE,
        )

    @classmethod
    def _format_invoke_log(
        cls,
        response: requests.Response,
        method: str,
        url: str,
        payload: Optional[str],
    ) -> str:
        lines = [
            "",
            f"URL: {url}",
            f"Method: {method}",
            f"Request Body:\n{payload if payload is not None else ''}",
            f"Response Status: {response.status_code}",
            "Response Headers:",
        ]
        lines.extend(f"{key}: {value}" for key, value in response.headers.items())
        if "application/json" in response.headers.get("Content-Type", ""):
            lines.append("Response Body:")
            lines.append(response.text)
        return cls._redact("\n".join(lines))
