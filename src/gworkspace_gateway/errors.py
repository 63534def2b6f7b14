"""Error codes and exceptions shared across the gateway."""

from typing import Any

from mcp.types import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    PARSE_ERROR,
)

# Gateway-specific JSON-RPC error codes (implementation-defined range)
NO_VALID_SESSION = -32000
UNAUTHORIZED = -32001
SERVER_MISCONFIGURED = -32002

__all__ = [
    "INTERNAL_ERROR",
    "INVALID_PARAMS",
    "INVALID_REQUEST",
    "METHOD_NOT_FOUND",
    "NO_VALID_SESSION",
    "PARSE_ERROR",
    "SERVER_MISCONFIGURED",
    "UNAUTHORIZED",
    "ConfigurationError",
    "jsonrpc_error",
]


class ConfigurationError(RuntimeError):
    """Raised when required environment configuration is missing or invalid."""


def jsonrpc_error(code: int, message: str, request_id: Any = None) -> dict[str, Any]:
    """Build a JSON-RPC 2.0 error envelope.

    Args:
        code: JSON-RPC error code.
        message: Human-readable error message.
        request_id: Id of the request being answered, if known.

    Returns:
        Envelope of the form ``{"jsonrpc", "error": {"code", "message"}, "id"}``.
    """
    return {
        "jsonrpc": "2.0",
        "error": {"code": code, "message": message},
        "id": request_id,
    }
