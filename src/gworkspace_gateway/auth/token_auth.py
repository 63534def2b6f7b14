"""Bearer-token authentication for inbound gateway requests.

The policy is evaluated in order:

1. Authentication required but no tokens configured: every request is
   rejected as a server misconfiguration (never silently allowed).
2. No tokens configured: open mode, every request is authorized.
3. Otherwise the presented token (``Authorization: Bearer`` first,
   ``x-auth-token`` as fallback) must exactly match a configured token.
"""

from collections.abc import Mapping
from enum import Enum

from pydantic import BaseModel, ConfigDict

BEARER_PREFIX = "bearer "
DIRECT_TOKEN_HEADER = "x-auth-token"


class AuthStatus(str, Enum):
    """Outcome of an authentication check."""

    AUTHORIZED = "authorized"
    UNAUTHORIZED = "unauthorized"
    MISCONFIGURED = "misconfigured"


class CredentialSet(BaseModel):
    """Accepted tokens and the auth requirement flag.

    Attributes:
        tokens: Accepted opaque token strings.
        require_auth: Whether authentication is mandatory.
    """

    model_config = ConfigDict(frozen=True)

    tokens: frozenset[str] = frozenset()
    require_auth: bool = False

    @property
    def is_misconfigured(self) -> bool:
        """True when auth is required but no token is configured."""
        return self.require_auth and not self.tokens

    @property
    def is_open(self) -> bool:
        """True when no token is configured and auth is optional."""
        return not self.tokens and not self.require_auth


class AuthResult(BaseModel):
    """Decision produced by :meth:`Authenticator.check`."""

    model_config = ConfigDict(frozen=True)

    status: AuthStatus
    reason: str = ""

    @property
    def authorized(self) -> bool:
        return self.status == AuthStatus.AUTHORIZED


def extract_token(headers: Mapping[str, str]) -> str | None:
    """Extract the presented token from request headers.

    A bearer ``Authorization`` header takes precedence over ``x-auth-token``.
    The scheme is matched case-insensitively and surrounding whitespace is
    trimmed from both sources.

    Args:
        headers: Request headers. Lookups must be case-insensitive
            (e.g. ``starlette.datastructures.Headers``) or use lowercase keys.

    Returns:
        The token, or None when neither header carries one.
    """
    authorization = (headers.get("authorization") or "").strip()
    if authorization.lower().startswith(BEARER_PREFIX):
        bearer = authorization[len(BEARER_PREFIX) :].strip()
        if bearer:
            return bearer

    direct = (headers.get(DIRECT_TOKEN_HEADER) or "").strip()
    return direct or None


class Authenticator:
    """Validates inbound requests against a :class:`CredentialSet`.

    Pure function of configuration and headers: no I/O, no side effects
    beyond the returned decision.
    """

    def __init__(self, credentials: CredentialSet) -> None:
        self.credentials = credentials

    def check(self, headers: Mapping[str, str]) -> AuthResult:
        """Authorize or reject a request.

        Args:
            headers: Request headers.

        Returns:
            AuthResult with AUTHORIZED, UNAUTHORIZED or MISCONFIGURED status.
        """
        if self.credentials.is_misconfigured:
            return AuthResult(
                status=AuthStatus.MISCONFIGURED,
                reason="Server misconfigured: MCP_AUTH_TOKEN or AUTH_TOKEN is required",
            )

        if not self.credentials.tokens:
            return AuthResult(status=AuthStatus.AUTHORIZED)

        token = extract_token(headers)
        if token is None or token not in self.credentials.tokens:
            return AuthResult(status=AuthStatus.UNAUTHORIZED, reason="Unauthorized")

        return AuthResult(status=AuthStatus.AUTHORIZED)
