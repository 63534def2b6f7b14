"""Single-endpoint MCP gateway.

Request handling order:

1. ``OPTIONS`` answers the CORS preflight.
2. The authenticator accepts or rejects the request.
3. ``POST``/``GET``/``DELETE`` are routed to an existing session, or a new
   session is created for an initialize handshake.

Every response, error responses included, carries the CORS headers.
"""

import json
import logging
from typing import Any

from starlette.datastructures import MutableHeaders
from starlette.requests import Request
from starlette.responses import JSONResponse, PlainTextResponse, Response
from starlette.types import Message, Receive, Scope, Send

from gworkspace_gateway.auth.token_auth import Authenticator, AuthStatus
from gworkspace_gateway.errors import (
    INTERNAL_ERROR,
    METHOD_NOT_FOUND,
    NO_VALID_SESSION,
    PARSE_ERROR,
    SERVER_MISCONFIGURED,
    UNAUTHORIZED,
    jsonrpc_error,
)
from gworkspace_gateway.server.session import MCP_SESSION_ID_HEADER, SessionChannel
from gworkspace_gateway.server.session_manager import SessionManager

logger = logging.getLogger(__name__)

ALLOWED_METHODS = "GET, POST, DELETE, OPTIONS"

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": ALLOWED_METHODS,
    "Access-Control-Allow-Headers": (
        f"Content-Type, Authorization, {MCP_SESSION_ID_HEADER}, x-auth-token"
    ),
    "Access-Control-Expose-Headers": MCP_SESSION_ID_HEADER,
}

INVALID_SESSION_TEXT = "Invalid or missing session ID"


def is_initialize_request(body: Any) -> bool:
    """Whether a decoded POST body is an initialize handshake."""
    return isinstance(body, dict) and body.get("method") == "initialize"


class MCPGateway:
    """ASGI application serving the MCP endpoint.

    Attributes:
        authenticator: Token policy applied to every non-preflight request.
        session_manager: Registry of live sessions.
    """

    def __init__(self, authenticator: Authenticator, session_manager: SessionManager) -> None:
        self.authenticator = authenticator
        self.session_manager = session_manager

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        response_started = False

        async def send_with_cors(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
                headers = MutableHeaders(scope=message)
                for name, value in CORS_HEADERS.items():
                    headers[name] = value
            await send(message)

        request = Request(scope, receive)
        try:
            response = await self.handle(request)
            await response(scope, receive, send_with_cors)
        except Exception as e:
            logger.exception(f"Unhandled error serving {request.method} {request.url.path}")
            if response_started:
                # Part of the response is already on the wire
                return
            error = JSONResponse(
                jsonrpc_error(INTERNAL_ERROR, f"Internal error: {e}"), status_code=500
            )
            await error(scope, receive, send_with_cors)

    async def handle(self, request: Request) -> Response:
        """Build the response for one request."""
        if request.method == "OPTIONS":
            return Response(status_code=200)

        auth = self.authenticator.check(request.headers)
        if auth.status is AuthStatus.MISCONFIGURED:
            logger.error(auth.reason)
            return JSONResponse(
                jsonrpc_error(SERVER_MISCONFIGURED, auth.reason or "Server misconfigured"),
                status_code=500,
            )
        if not auth.authorized:
            client = request.client.host if request.client else "unknown"
            logger.warning("Rejected unauthorized %s request from %s", request.method, client)
            return JSONResponse(jsonrpc_error(UNAUTHORIZED, "Unauthorized"), status_code=401)

        session_id = request.headers.get(MCP_SESSION_ID_HEADER)

        if request.method == "POST":
            return await self._handle_post(request, session_id)

        if request.method in ("GET", "DELETE"):
            channel = self.session_manager.get(session_id)
            if channel is None:
                self._log_rejection(request, session_id)
                return PlainTextResponse(INVALID_SESSION_TEXT, status_code=400)
            return await channel.handle_request(request)

        return JSONResponse(
            jsonrpc_error(METHOD_NOT_FOUND, "Method not allowed"),
            status_code=405,
            headers={"Allow": ALLOWED_METHODS},
        )

    async def _handle_post(self, request: Request, session_id: str | None) -> Response:
        channel: SessionChannel | None = self.session_manager.get(session_id)

        try:
            body = json.loads(await request.body())
        except ValueError:
            if channel is None:
                return self._no_valid_session(request, session_id)
            return JSONResponse(jsonrpc_error(PARSE_ERROR, "Parse error"), status_code=400)

        if channel is not None:
            return await channel.handle_request(request, body)

        if not session_id and is_initialize_request(body):
            channel = self.session_manager.create_channel()
            return await channel.handle_request(request, body)

        return self._no_valid_session(request, session_id)

    def _no_valid_session(self, request: Request, session_id: str | None) -> Response:
        self._log_rejection(request, session_id)
        return JSONResponse(
            jsonrpc_error(NO_VALID_SESSION, "Bad Request: no valid session"), status_code=400
        )

    def _log_rejection(self, request: Request, session_id: str | None) -> None:
        # Clients see one error for both cases
        if not session_id:
            logger.warning("Rejected %s without session ID", request.method)
        else:
            logger.warning("Rejected %s for unknown session %s", request.method, session_id)
