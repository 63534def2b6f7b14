"""Starlette application factory."""

import logging
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager

from starlette.applications import Starlette
from starlette.routing import Route

from gworkspace_gateway.auth.service_account import ServiceAccountAuth
from gworkspace_gateway.auth.token_auth import Authenticator
from gworkspace_gateway.config import GatewaySettings
from gworkspace_gateway.google_client import GoogleClient
from gworkspace_gateway.server.gateway import MCPGateway
from gworkspace_gateway.server.health import health
from gworkspace_gateway.server.session_manager import SessionManager
from gworkspace_gateway.tools import DomainExecutor, ToolRegistry, ToolRouter, default_executors

logger = logging.getLogger(__name__)

MCP_PATH = "/mcp"
HEALTH_PATH = "/health"


def create_app(
    settings: GatewaySettings | None = None,
    executors: Sequence[DomainExecutor] | None = None,
) -> Starlette:
    """Wire the gateway components into an ASGI application.

    Args:
        settings: Gateway settings. Defaults to ``GatewaySettings.from_env()``.
        executors: Domain executors. Defaults to the Calendar, Gmail, Drive and
            Tasks executors sharing one service-account Google client.

    Returns:
        Starlette app serving ``/mcp`` and ``/health``. Components are exposed
        on ``app.state`` (``settings``, ``registry``, ``router``,
        ``session_manager``, ``gateway``).
    """
    settings = settings or GatewaySettings.from_env()

    google_client: GoogleClient | None = None
    if executors is None:
        auth = ServiceAccountAuth(settings.service_account_key, settings.delegated_user)
        google_client = GoogleClient(auth)
        executors = default_executors(google_client, settings)

    registry = ToolRegistry(executors)
    router = ToolRouter(registry)
    credentials = settings.credential_set()
    session_manager = SessionManager(router)
    gateway = MCPGateway(Authenticator(credentials), session_manager)

    @asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        if credentials.is_misconfigured:
            logger.error("Authentication is required but no MCP_AUTH_TOKEN or AUTH_TOKEN is set")
        elif credentials.is_open:
            logger.warning("No auth tokens configured; MCP endpoint is open")
        logger.info("MCP gateway started with %d tools", len(registry))
        try:
            yield
        finally:
            await session_manager.close_all()
            if google_client is not None:
                await google_client.close()
            logger.info("MCP gateway stopped")

    app = Starlette(
        routes=[
            Route(MCP_PATH, endpoint=gateway),
            Route(HEALTH_PATH, endpoint=health, methods=["GET"]),
        ],
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.registry = registry
    app.state.router = router
    app.state.session_manager = session_manager
    app.state.gateway = gateway
    return app
