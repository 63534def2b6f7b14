"""Service-account credentials with domain-wide delegation.

The gateway acts as a single Workspace user: a service account key
(``GOOGLE_SERVICE_ACCOUNT_KEY``) impersonates ``GOOGLE_DELEGATED_USER``.
Derived credentials are cached per scope set for the lifetime of the
process and refreshed only when the access token is about to expire.
"""

import asyncio
import json
import logging
from collections.abc import Iterable
from datetime import datetime, timedelta, timezone
from typing import Any

from google.auth.transport.requests import Request
from google.oauth2 import service_account

from gworkspace_gateway.errors import ConfigurationError

logger = logging.getLogger(__name__)

# Google Workspace OAuth scopes per tool domain
CALENDAR_SCOPES = ("https://www.googleapis.com/auth/calendar",)
GMAIL_SCOPES = (
    "https://www.googleapis.com/auth/gmail.modify",
    "https://www.googleapis.com/auth/gmail.send",
)
DRIVE_SCOPES = ("https://www.googleapis.com/auth/drive.readonly",)
TASKS_SCOPES = ("https://www.googleapis.com/auth/tasks",)

# Refresh tokens this many seconds before they actually expire
EXPIRY_BUFFER_SECONDS = 60


def _is_expiring(credentials: service_account.Credentials, buffer_seconds: int) -> bool:
    """Check whether credentials need a refresh.

    Args:
        credentials: Service account credentials.
        buffer_seconds: Treat tokens expiring within this window as expired.

    Returns:
        True if there is no token yet or it expires within the buffer.
    """
    if not credentials.token or credentials.expiry is None:
        return True

    expiry = credentials.expiry
    # google-auth stores expiry as naive UTC
    if expiry.tzinfo is None:
        expiry = expiry.replace(tzinfo=timezone.utc)
    return datetime.now(timezone.utc) + timedelta(seconds=buffer_seconds) >= expiry


class ServiceAccountAuth:
    """Access-token provider backed by a delegated service account.

    Attributes:
        delegated_user: Workspace user impersonated by every API call.

    Example:
        ```python
        auth = ServiceAccountAuth(key_json=os.environ["GOOGLE_SERVICE_ACCOUNT_KEY"],
                                  delegated_user="someone@example.com")
        token = await auth.get_access_token(CALENDAR_SCOPES)
        ```
    """

    def __init__(self, key_json: str | None, delegated_user: str | None) -> None:
        """Initialize the provider.

        Configuration is validated lazily so that the server can start (and
        answer health checks) without Google credentials.

        Args:
            key_json: Service account key as a JSON string.
            delegated_user: Email address to impersonate.
        """
        self._key_json = key_json
        self._delegated_user = delegated_user
        self._info: dict[str, Any] | None = None
        self._credentials: dict[frozenset[str], service_account.Credentials] = {}
        # Refreshes of one scope set never wait on another
        self._locks: dict[frozenset[str], asyncio.Lock] = {}

    @property
    def delegated_user(self) -> str:
        """Impersonated user email.

        Raises:
            ConfigurationError: If GOOGLE_DELEGATED_USER is not set.
        """
        if not self._delegated_user:
            raise ConfigurationError("GOOGLE_DELEGATED_USER environment variable is not set")
        return self._delegated_user

    def service_account_info(self) -> dict[str, Any]:
        """Parse and return the service account key.

        Raises:
            ConfigurationError: If the key is missing or not valid JSON.
        """
        if self._info is not None:
            return self._info

        if not self._key_json:
            raise ConfigurationError("GOOGLE_SERVICE_ACCOUNT_KEY environment variable is not set")
        try:
            info = json.loads(self._key_json)
        except json.JSONDecodeError as e:
            raise ConfigurationError("GOOGLE_SERVICE_ACCOUNT_KEY is not valid JSON") from e
        if not isinstance(info, dict):
            raise ConfigurationError("GOOGLE_SERVICE_ACCOUNT_KEY must be a JSON object")

        self._info = info
        return info

    def _build_credentials(self, scopes: frozenset[str]) -> service_account.Credentials:
        """Create delegated credentials for a scope set."""
        try:
            return service_account.Credentials.from_service_account_info(
                self.service_account_info(),
                scopes=sorted(scopes),
                subject=self.delegated_user,
            )
        except ValueError as e:
            # Raised by google-auth for keys missing client_email/private_key
            raise ConfigurationError(f"Invalid service account key: {e}") from e

    async def get_access_token(self, scopes: Iterable[str]) -> str:
        """Get a valid access token for the given scopes, refreshing if necessary.

        Args:
            scopes: OAuth scopes the token must carry.

        Returns:
            Access token string.

        Raises:
            ConfigurationError: If the service account is not configured.
            google.auth.exceptions.RefreshError: If Google rejects the refresh.
        """
        key = frozenset(scopes)
        lock = self._locks.setdefault(key, asyncio.Lock())

        async with lock:
            credentials = self._credentials.get(key)
            if credentials is None:
                credentials = self._build_credentials(key)
                self._credentials[key] = credentials

            if _is_expiring(credentials, EXPIRY_BUFFER_SECONDS):
                logger.info("Refreshing service account token for %d scope(s)", len(key))
                # Refresh is a blocking HTTP call
                loop = asyncio.get_running_loop()
                await loop.run_in_executor(None, credentials.refresh, Request())

            token: str = credentials.token
            return token

    def clear(self) -> None:
        """Drop all cached credentials."""
        self._credentials.clear()
