"""Shared pytest fixtures for gworkspace-gateway tests.

This module provides settings, a fake Google REST backend served through
``httpx.MockTransport``, and an ASGI client for the gateway app.
"""

from collections.abc import AsyncIterator, Callable
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
import pytest_asyncio
from pydantic import Field
from starlette.applications import Starlette

from gworkspace_gateway.auth.service_account import ServiceAccountAuth
from gworkspace_gateway.config import GatewaySettings
from gworkspace_gateway.google_client import GoogleClient
from gworkspace_gateway.server import create_app
from gworkspace_gateway.tools import ToolRegistry, ToolRouter, default_executors
from gworkspace_gateway.tools.base import (
    DomainExecutor,
    Handler,
    ToolArguments,
    ToolDomain,
    ToolSpec,
)

VALID_TOKEN = "test-token-abc123"
DELEGATED_USER = "user@example.com"

INITIALIZE_PARAMS = {
    "protocolVersion": "2025-03-26",
    "capabilities": {},
    "clientInfo": {"name": "test-client", "version": "1.0.0"},
}


# =============================================================================
# Settings Fixtures
# =============================================================================


@pytest.fixture
def open_settings() -> GatewaySettings:
    """Settings with no tokens and auth not required (open mode)."""
    return GatewaySettings(auth_tokens=[], require_auth=False, default_timezone="UTC")


@pytest.fixture
def token_settings() -> GatewaySettings:
    """Settings requiring a bearer token."""
    return GatewaySettings(auth_tokens=[VALID_TOKEN], require_auth=True, default_timezone="UTC")


# =============================================================================
# Google API Fixtures
# =============================================================================


class FakeGoogleAPI:
    """In-memory stand-in for Google REST endpoints.

    Routes are keyed by ``(method, path)``; unmatched requests get a Google
    style 404 error body. Every request is recorded.
    """

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], httpx.Response | Callable[..., httpx.Response]] = {}
        self.requests: list[httpx.Request] = []

    def add(
        self,
        method: str,
        path: str,
        json: Any = None,
        status_code: int = 200,
        text: str | None = None,
    ) -> None:
        if text is not None:
            self.routes[(method, path)] = httpx.Response(status_code, text=text)
        elif json is None:
            self.routes[(method, path)] = httpx.Response(status_code)
        else:
            self.routes[(method, path)] = httpx.Response(status_code, json=json)

    def add_handler(
        self, method: str, path: str, handler: Callable[[httpx.Request], httpx.Response]
    ) -> None:
        self.routes[(method, path)] = handler

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(
                404, json={"error": {"code": 404, "message": f"Not Found: {request.url.path}"}}
            )
        if callable(route):
            return route(request)
        # Responses are single-use once read; hand out a fresh copy
        return httpx.Response(route.status_code, content=route.content, headers=route.headers)

    def last(self, method: str | None = None) -> httpx.Request:
        matching = [r for r in self.requests if method is None or r.method == method]
        return matching[-1]


@pytest.fixture
def google_api() -> FakeGoogleAPI:
    return FakeGoogleAPI()


@pytest.fixture
def mock_auth() -> MagicMock:
    """Service account provider returning a fixed access token."""
    auth = MagicMock(spec=ServiceAccountAuth)
    auth.get_access_token = AsyncMock(return_value="mock_access_token_12345")
    auth.delegated_user = DELEGATED_USER
    return auth


@pytest.fixture
def google_client(mock_auth: MagicMock, google_api: FakeGoogleAPI) -> GoogleClient:
    """Google client whose HTTP traffic is served by the fake API."""
    client = GoogleClient(mock_auth)
    client._http_client = httpx.AsyncClient(transport=httpx.MockTransport(google_api.handler))
    return client


@pytest.fixture
def registry(google_client: GoogleClient, open_settings: GatewaySettings) -> ToolRegistry:
    return ToolRegistry(default_executors(google_client, open_settings))


@pytest.fixture
def router(registry: ToolRegistry) -> ToolRouter:
    return ToolRouter(registry)


# =============================================================================
# Echo Executor
# =============================================================================


class EchoArgs(ToolArguments):
    label: str = Field(default="echo")


class EchoExecutor(DomainExecutor):
    """Tasks-domain executor whose single tool runs a test-supplied coroutine."""

    domain = ToolDomain.TASKS
    TOOLS = [ToolSpec("google_tasks_echo", "Echoes its label.", EchoArgs)]

    def __init__(self, behaviour: Callable[[EchoArgs], Any] | None = None) -> None:
        super().__init__(MagicMock(spec=GoogleClient))
        self.behaviour = behaviour
        self.calls: list[str] = []

    def _handlers(self) -> dict[str, Handler]:
        return {"google_tasks_echo": self._echo}

    async def _echo(self, args: EchoArgs) -> dict[str, Any]:
        self.calls.append(args.label)
        if self.behaviour is not None:
            await self.behaviour(args)
        return {"label": args.label}


@pytest.fixture
def echo_executor() -> EchoExecutor:
    return EchoExecutor()


@pytest.fixture
def echo_router(echo_executor: EchoExecutor) -> ToolRouter:
    return ToolRouter(ToolRegistry([echo_executor]))


# =============================================================================
# ASGI Fixtures
# =============================================================================


@pytest.fixture
def app(open_settings: GatewaySettings, echo_executor: EchoExecutor) -> Starlette:
    return create_app(open_settings, executors=[echo_executor])


@pytest_asyncio.fixture
async def http_client(app: Starlette) -> AsyncIterator[httpx.AsyncClient]:
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client


class MCPTestClient:
    """JSON-RPC conveniences over an ASGI ``httpx.AsyncClient``."""

    def __init__(self, client: httpx.AsyncClient) -> None:
        self.client = client

    async def post(
        self, message: Any, session_id: str | None = None, **headers: str
    ) -> httpx.Response:
        if session_id is not None:
            headers["mcp-session-id"] = session_id
        return await self.client.post("/mcp", json=message, headers=headers)

    async def initialize(self, **headers: str) -> str:
        """Run the initialize handshake and return the new session id."""
        response = await self.post(
            {"jsonrpc": "2.0", "id": 1, "method": "initialize", "params": INITIALIZE_PARAMS},
            **headers,
        )
        assert response.status_code == 200
        return response.headers["mcp-session-id"]

    async def call_tool(
        self,
        session_id: str,
        name: str,
        arguments: dict[str, Any] | None = None,
        request_id: int = 2,
    ) -> httpx.Response:
        return await self.post(
            {
                "jsonrpc": "2.0",
                "id": request_id,
                "method": "tools/call",
                "params": {"name": name, "arguments": arguments or {}},
            },
            session_id=session_id,
        )


@pytest.fixture
def mcp(http_client: httpx.AsyncClient) -> MCPTestClient:
    return MCPTestClient(http_client)
