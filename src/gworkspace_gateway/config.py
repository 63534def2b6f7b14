"""Process-wide configuration for the gateway.

Settings are read once from the environment at startup and are read-only
afterwards.

Environment Variables:
    MCP_AUTH_TOKEN: Accepted bearer token.
    AUTH_TOKEN: Additional accepted bearer token.
    REQUIRE_AUTH: Boolean-like flag forcing (or disabling) authentication.
        Defaults to required only in a production deployment.
    VERCEL_ENV / DEPLOYMENT_ENV: Deployment environment name.
    GOOGLE_SERVICE_ACCOUNT_KEY: Service account key as a JSON string.
    GOOGLE_DELEGATED_USER: Workspace user impersonated by the service account.
    GOOGLE_CALENDAR_TIMEZONE: Default timezone for new events (default: Asia/Tokyo).
    LOG_LEVEL: Logging level (default: INFO).
    HOST / PORT: Bind address for ``gworkspace-gateway serve``.
"""

import os
from collections.abc import Mapping

from pydantic import BaseModel, ConfigDict, Field

from gworkspace_gateway.auth.token_auth import CredentialSet

PRODUCTION_ENV = "production"
DEFAULT_TIMEZONE = "Asia/Tokyo"

_TRUE_VALUES = {"true", "1", "yes", "on"}
_FALSE_VALUES = {"false", "0", "no", "off"}


def parse_bool(value: str | None) -> bool | None:
    """Parse a boolean-like environment value.

    Returns:
        True/False for recognised values, None when unset or unrecognised.
    """
    if value is None:
        return None
    normalized = value.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    return None


class GatewaySettings(BaseModel):
    """Gateway configuration.

    Attributes:
        auth_tokens: Accepted bearer tokens, in configuration order.
        require_auth: Whether every request must present a valid token.
        service_account_key: Raw service account key JSON.
        delegated_user: Email address impersonated via domain-wide delegation.
        default_timezone: Timezone applied to events created without one.
        log_level: Logging level name.
        host: Bind host for the HTTP server.
        port: Bind port for the HTTP server.
    """

    model_config = ConfigDict(frozen=True)

    auth_tokens: list[str] = Field(default_factory=list)
    require_auth: bool = False
    service_account_key: str | None = None
    delegated_user: str | None = None
    default_timezone: str = DEFAULT_TIMEZONE
    log_level: str = "INFO"
    host: str = "127.0.0.1"
    port: int = 8000

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "GatewaySettings":
        """Build settings from environment variables.

        Args:
            environ: Mapping to read from. Defaults to ``os.environ``.

        Returns:
            Populated settings instance.
        """
        env = os.environ if environ is None else environ

        tokens: list[str] = []
        for name in ("MCP_AUTH_TOKEN", "AUTH_TOKEN"):
            value = env.get(name)
            if value and value not in tokens:
                tokens.append(value)

        require_auth = parse_bool(env.get("REQUIRE_AUTH"))
        if require_auth is None:
            deployment = env.get("VERCEL_ENV") or env.get("DEPLOYMENT_ENV") or ""
            require_auth = deployment.strip().lower() == PRODUCTION_ENV

        return cls(
            auth_tokens=tokens,
            require_auth=require_auth,
            service_account_key=env.get("GOOGLE_SERVICE_ACCOUNT_KEY") or None,
            delegated_user=env.get("GOOGLE_DELEGATED_USER") or None,
            default_timezone=env.get("GOOGLE_CALENDAR_TIMEZONE") or DEFAULT_TIMEZONE,
            log_level=(env.get("LOG_LEVEL") or "INFO").upper(),
            host=env.get("HOST") or "127.0.0.1",
            port=int(env.get("PORT") or 8000),
        )

    def credential_set(self) -> CredentialSet:
        """Return the immutable credential set used by the authenticator."""
        return CredentialSet(tokens=frozenset(self.auth_tokens), require_auth=self.require_auth)
