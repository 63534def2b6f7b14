"""Google Workspace tools behind a session-oriented MCP HTTP gateway.

Exposes Calendar, Gmail, Drive and Tasks operations as MCP tools over a
single streamable HTTP endpoint, authenticated with bearer tokens and
backed by a service account impersonating one delegated user.
"""

from gworkspace_gateway.__version__ import __version__

SERVICE_NAME = "google-workspace-mcp"

__all__ = ["SERVICE_NAME", "__version__"]
