"""Per-session MCP channel.

A :class:`SessionChannel` is the single owner of one session's protocol
state. Every JSON-RPC message for the session runs under the channel's own
``asyncio.Lock``, so two requests carrying the same session id never
interleave, while channels of different sessions share no lock at all.
"""

import asyncio
import json
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from enum import Enum
from typing import Any

from mcp.shared.exceptions import McpError
from mcp.shared.version import SUPPORTED_PROTOCOL_VERSIONS
from mcp.types import (
    LATEST_PROTOCOL_VERSION,
    CallToolRequestParams,
    ErrorData,
    Implementation,
    InitializeRequestParams,
    InitializeResult,
    ListToolsResult,
    LoggingCapability,
    LoggingLevel,
    LoggingMessageNotificationParams,
    ServerCapabilities,
    SetLevelRequestParams,
    ToolsCapability,
)
from pydantic import BaseModel, ValidationError
from sse_starlette.sse import EventSourceResponse
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from gworkspace_gateway import SERVICE_NAME, __version__
from gworkspace_gateway.errors import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    jsonrpc_error,
)
from gworkspace_gateway.tools.router import ToolRouter

logger = logging.getLogger(__name__)

MCP_SESSION_ID_HEADER = "mcp-session-id"
EVENT_STREAM = "text/event-stream"

INSTRUCTIONS = (
    "Google Workspace tools for Calendar, Gmail, Drive and Tasks, acting on behalf "
    "of the configured Workspace user."
)

# Severity order of MCP logging levels
LOG_LEVELS: list[str] = [
    "debug",
    "info",
    "notice",
    "warning",
    "error",
    "critical",
    "alert",
    "emergency",
]


class SessionState(str, Enum):
    """Lifecycle of a session channel."""

    UNINITIALIZED = "uninitialized"
    ACTIVE = "active"
    CLOSED = "closed"


ChannelCallback = Callable[["SessionChannel"], Awaitable[None]]


def _dump(model: BaseModel) -> dict[str, Any]:
    return model.model_dump(mode="json", by_alias=True, exclude_none=True)


def _protocol_error(code: int, message: str) -> McpError:
    return McpError(ErrorData(code=code, message=message))


def _validate(model: type[Any], params: dict[str, Any]) -> Any:
    try:
        return model.model_validate(params)
    except ValidationError as e:
        raise _protocol_error(INVALID_PARAMS, f"Invalid params: {e.error_count()} error(s)") from e


def negotiate_protocol_version(requested: str | int) -> str:
    """Echo the client's protocol version when supported, else offer the latest."""
    if str(requested) in SUPPORTED_PROTOCOL_VERSIONS:
        return str(requested)
    return LATEST_PROTOCOL_VERSION


class SessionChannel:
    """Stateful conversation between one client and the tool router.

    Attributes:
        session_id: Server-assigned session identifier.
        router: Tool router shared by all sessions.
        state: Current lifecycle state.
        protocol_version: Negotiated protocol version, once initialized.
        client_info: Client implementation info sent during initialize.
        log_level: Minimum level of ``notifications/message`` sent to the client.
    """

    def __init__(
        self,
        session_id: str,
        router: ToolRouter,
        on_initialized: ChannelCallback | None = None,
        on_close: ChannelCallback | None = None,
    ) -> None:
        self.session_id = session_id
        self.router = router
        self.state = SessionState.UNINITIALIZED
        self.protocol_version: str | None = None
        self.client_info: Implementation | None = None
        self.log_level: LoggingLevel = "info"
        self._on_initialized = on_initialized
        self._on_close = on_close
        self._lock = asyncio.Lock()
        self._stream: asyncio.Queue[dict[str, Any] | None] | None = None

    @property
    def is_active(self) -> bool:
        return self.state is SessionState.ACTIVE

    @property
    def has_stream(self) -> bool:
        return self._stream is not None

    # JSON-RPC

    async def handle_message(self, message: Any) -> dict[str, Any] | None:
        """Process one JSON-RPC message.

        Args:
            message: Decoded JSON-RPC message.

        Returns:
            The response envelope for requests, or None for notifications and
            client responses.
        """
        if not isinstance(message, dict) or message.get("jsonrpc") != "2.0":
            request_id = message.get("id") if isinstance(message, dict) else None
            return jsonrpc_error(INVALID_REQUEST, "Invalid Request", request_id)

        method = message.get("method")
        if not isinstance(method, str):
            # Response to a server-initiated request; nothing is awaiting it
            return None

        if "id" not in message:
            self._handle_notification(method)
            return None

        request_id = message["id"]
        params = message.get("params") or {}

        async with self._lock:
            try:
                result = await self._dispatch(method, params)
            except McpError as e:
                return jsonrpc_error(e.error.code, e.error.message, request_id)
            except Exception as e:
                logger.exception(f"Error handling {method} in session {self.session_id}")
                return jsonrpc_error(INTERNAL_ERROR, f"Internal error: {e}", request_id)

        return {"jsonrpc": "2.0", "result": result, "id": request_id}

    def _handle_notification(self, method: str) -> None:
        if method == "notifications/initialized":
            logger.debug("Client finished initialization for session %s", self.session_id)
        else:
            logger.debug("Ignoring notification %s in session %s", method, self.session_id)

    async def _dispatch(self, method: str, params: dict[str, Any]) -> dict[str, Any]:
        if method == "initialize":
            return await self._initialize(params)

        if self.state is SessionState.UNINITIALIZED:
            raise _protocol_error(INVALID_REQUEST, "Session not initialized")
        if self.state is SessionState.CLOSED:
            raise _protocol_error(INVALID_REQUEST, "Session closed")

        if method == "ping":
            return {}
        if method == "tools/list":
            return _dump(ListToolsResult(tools=self.router.list_tools()))
        if method == "tools/call":
            return await self._call_tool(params)
        if method == "logging/setLevel":
            self.log_level = _validate(SetLevelRequestParams, params).level
            return {}

        raise _protocol_error(METHOD_NOT_FOUND, f"Method not found: {method}")

    async def _initialize(self, params: dict[str, Any]) -> dict[str, Any]:
        if self.state is not SessionState.UNINITIALIZED:
            raise _protocol_error(INVALID_REQUEST, "Session already initialized")

        request = _validate(InitializeRequestParams, params)
        self.protocol_version = negotiate_protocol_version(request.protocolVersion)
        self.client_info = request.clientInfo

        result = InitializeResult(
            protocolVersion=self.protocol_version,
            capabilities=ServerCapabilities(
                tools=ToolsCapability(listChanged=False),
                logging=LoggingCapability(),
            ),
            serverInfo=Implementation(name=SERVICE_NAME, version=__version__),
            instructions=INSTRUCTIONS,
        )

        self.state = SessionState.ACTIVE
        if self._on_initialized is not None:
            try:
                await self._on_initialized(self)
            except Exception:
                self.state = SessionState.UNINITIALIZED
                raise

        logger.info(
            "Session %s initialized (client=%s, protocol=%s)",
            self.session_id,
            request.clientInfo.name,
            self.protocol_version,
        )
        return _dump(result)

    async def _call_tool(self, params: dict[str, Any]) -> dict[str, Any]:
        request = _validate(CallToolRequestParams, params)
        result = await self.router.dispatch(request.name, request.arguments)

        self.publish_log(
            "error" if result.isError else "info",
            {"tool": request.name, "isError": result.isError},
        )
        return _dump(result)

    # Server-to-client stream

    def publish_log(self, level: LoggingLevel, data: Any) -> bool:
        """Send an MCP logging notification over the open stream.

        Returns:
            True if the notification was queued, False when no stream is open
            or the level is below the client's threshold.
        """
        if self._stream is None:
            return False
        if LOG_LEVELS.index(level) < LOG_LEVELS.index(self.log_level):
            return False

        params = LoggingMessageNotificationParams(level=level, logger=SERVICE_NAME, data=data)
        self._stream.put_nowait(
            {"jsonrpc": "2.0", "method": "notifications/message", "params": _dump(params)}
        )
        return True

    async def _event_stream(
        self, queue: "asyncio.Queue[dict[str, Any] | None]"
    ) -> AsyncIterator[dict[str, str]]:
        try:
            while True:
                message = await queue.get()
                if message is None:
                    break
                yield {"event": "message", "data": json.dumps(message)}
        finally:
            if self._stream is queue:
                self._stream = None

    # HTTP adapter

    def _session_headers(self) -> dict[str, str]:
        if self.state is SessionState.UNINITIALIZED:
            return {}
        return {MCP_SESSION_ID_HEADER: self.session_id}

    async def handle_request(self, request: Request, body: Any = None) -> Response:
        """Serve one HTTP request addressed to this session.

        Args:
            request: Incoming request (POST, GET or DELETE).
            body: Decoded JSON body for POST requests.

        Returns:
            The HTTP response.
        """
        if request.method == "POST":
            return await self._handle_post(body)
        if request.method == "GET":
            return await self._handle_get(request)
        if request.method == "DELETE":
            await self.close()
            return Response(status_code=200, headers={MCP_SESSION_ID_HEADER: self.session_id})
        return JSONResponse(jsonrpc_error(METHOD_NOT_FOUND, "Method not allowed"), status_code=405)

    async def _handle_post(self, body: Any) -> Response:
        if isinstance(body, list):
            if not body:
                return JSONResponse(
                    jsonrpc_error(INVALID_REQUEST, "Invalid Request"), status_code=400
                )
            responses = [await self.handle_message(message) for message in body]
            replies: Any = [r for r in responses if r is not None]
        else:
            replies = await self.handle_message(body)

        headers = self._session_headers()
        if not replies:
            return Response(status_code=202, headers=headers)
        return JSONResponse(replies, headers=headers)

    async def _handle_get(self, request: Request) -> Response:
        headers = self._session_headers()
        if EVENT_STREAM not in request.headers.get("accept", ""):
            return JSONResponse(
                jsonrpc_error(
                    INVALID_REQUEST, "Not Acceptable: Client must accept text/event-stream"
                ),
                status_code=406,
                headers=headers,
            )

        async with self._lock:
            if self._stream is not None:
                return JSONResponse(
                    jsonrpc_error(
                        INVALID_REQUEST, "Conflict: Only one stream is allowed per session"
                    ),
                    status_code=409,
                    headers=headers,
                )
            queue: asyncio.Queue[dict[str, Any] | None] = asyncio.Queue()
            self._stream = queue

        logger.debug("Opened event stream for session %s", self.session_id)
        return EventSourceResponse(self._event_stream(queue), headers=headers)

    async def close(self) -> None:
        """Terminate the session. Closing twice is a no-op."""
        if self.state is SessionState.CLOSED:
            return
        self.state = SessionState.CLOSED

        if self._stream is not None:
            self._stream.put_nowait(None)
            self._stream = None

        logger.info("Session %s closed", self.session_id)
        if self._on_close is not None:
            await self._on_close(self)

