"""Authentication for the Fabric REST API.

This module resolves an Azure credential (environment variables are loaded from
a .env file using python-dotenv) and wraps it in a TokenProvider that caches the
bearer token until it expires.
"""

import base64
import binascii
import json
import logging
import threading
import time
from typing import Any, Dict, Optional

from azure.core.credentials import TokenCredential
from azure.identity import DefaultAzureCredential
from dotenv import load_dotenv

from .errors import AuthError

logger = logging.getLogger(__name__)

FABRIC_SCOPE = "https://api.fabric.microsoft.com/.default"


class Authenticator:
    """Builds the Azure credential used to sign Fabric API requests.

    Environment variables are loaded from a .env file using python-dotenv and
    picked up by DefaultAzureCredential (AZURE_TENANT_ID, AZURE_CLIENT_ID,
    AZURE_CLIENT_SECRET for a service principal, or any interactive / managed
    identity source it supports). Secrets are never cached or logged here.

    Example:
        >>> auth = Authenticator()
        >>> provider = TokenProvider(auth.get_credential())
    """

    def __init__(self):
        """Initialize the authenticator by loading environment variables from .env file."""
        load_dotenv()

    def get_credential(self) -> TokenCredential:
        """Get the Azure credential chain.

        Returns:
            TokenCredential: A DefaultAzureCredential instance

        Raises:
            AuthError: If the credential chain cannot be constructed
        """
        try:
            return DefaultAzureCredential()
        except Exception as e:
            raise AuthError(f"Failed to build Azure credential: {e}") from e


def decode_jwt_claims(token: str) -> Dict[str, Any]:
    """Decode the (unverified) claims segment of a JWT.

    Args:
        token: Encoded JWT

    Returns:
        Dict of claims, or an empty dict if the token is not a JWT
    """
    parts = token.split(".")
    if len(parts) != 3:
        return {}

    payload = parts[1]
    payload += "=" * (-len(payload) % 4)
    try:
        claims = json.loads(base64.urlsafe_b64decode(payload.encode("ascii")))
    except (binascii.Error, ValueError, UnicodeDecodeError):
        return {}
    return claims if isinstance(claims, dict) else {}


class TokenProvider:
    """Caches a bearer token and refreshes it lazily when absent or expired.

    The expiry check is a hard ``now >= expiry`` comparison with no safety
    margin; a server-side TokenExpired response is handled by the endpoint
    calling refresh(). Reads and refreshes are serialized by a lock so the
    cached value is safe to share between invocations.

    Attributes:
        scope: OAuth scope requested from the credential
    """

    def __init__(self, credential: TokenCredential, scope: str = FABRIC_SCOPE):
        self._credential = credential
        self.scope = scope
        self._token: Optional[str] = None
        self._expires_at: Optional[float] = None
        self._lock = threading.Lock()

    def get_token(self) -> str:
        """Return the cached token, acquiring a new one if absent or expired.

        Returns:
            str: Bearer token

        Raises:
            AuthError: If the credential fails to produce a token
        """
        with self._lock:
            if self._token is None or self._expires_at is None or time.time() >= self._expires_at:
                self._acquire()
            return self._token  # type: ignore[return-value]

    def refresh(self) -> str:
        """Discard the cached token and acquire a new one."""
        with self._lock:
            self._token = None
            self._expires_at = None
            self._acquire()
            return self._token  # type: ignore[return-value]

    def _acquire(self) -> None:
        try:
            access_token = self._credential.get_token(self.scope)
        except Exception as e:
            raise AuthError(f"Failed to acquire AAD token: {e}") from e

        claims = decode_jwt_claims(access_token.token)
        expiry = claims.get("exp", getattr(access_token, "expires_on", None))
        try:
            expires_at = float(expiry)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            raise AuthError("Failed to acquire AAD token: token has no expiry claim")

        self._token = access_token.token
        self._expires_at = expires_at

        if "upn" in claims:
            logger.info(f"Executing as User '{claims['upn']}'")
        elif "appid" in claims:
            logger.info(f"Executing as Application Id '{claims['appid']}'")
        elif "oid" in claims:
            logger.info(f"Executing as Object Id '{claims['oid']}'")
