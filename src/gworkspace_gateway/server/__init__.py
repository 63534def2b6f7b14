"""HTTP surface: MCP gateway, session management and health check."""

from gworkspace_gateway.server.app import create_app
from gworkspace_gateway.server.gateway import MCPGateway
from gworkspace_gateway.server.session import SessionChannel, SessionState
from gworkspace_gateway.server.session_manager import SessionManager

__all__ = ["MCPGateway", "SessionChannel", "SessionManager", "SessionState", "create_app"]
