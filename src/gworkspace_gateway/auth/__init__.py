"""Authentication for the Google Workspace gateway.

Two independent concerns live here:

- Inbound: bearer-token checks for callers of the MCP endpoint
  (:class:`Authenticator`).
- Outbound: delegated service-account credentials for Google APIs
  (:class:`ServiceAccountAuth`).

Quick Start:
    ```python
    from gworkspace_gateway.auth import Authenticator, CredentialSet

    authenticator = Authenticator(CredentialSet(tokens=frozenset({"secret"})))
    result = authenticator.check({"authorization": "Bearer secret"})
    assert result.authorized
    ```
"""

from gworkspace_gateway.auth.service_account import (
    CALENDAR_SCOPES,
    DRIVE_SCOPES,
    GMAIL_SCOPES,
    TASKS_SCOPES,
    ServiceAccountAuth,
)
from gworkspace_gateway.auth.token_auth import (
    Authenticator,
    AuthResult,
    AuthStatus,
    CredentialSet,
    extract_token,
)

__all__ = [
    "Authenticator",
    "AuthResult",
    "AuthStatus",
    "CredentialSet",
    "extract_token",
    "ServiceAccountAuth",
    "CALENDAR_SCOPES",
    "GMAIL_SCOPES",
    "DRIVE_SCOPES",
    "TASKS_SCOPES",
]
