"""Dispatch tool calls to the owning domain executor."""

import logging
from typing import Any

from mcp.types import CallToolResult, Tool

from gworkspace_gateway.tools.base import error_result
from gworkspace_gateway.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)


class ToolRouter:
    """Stateless front door for tool calls.

    Results from executors are passed through unchanged.
    """

    def __init__(self, registry: ToolRegistry) -> None:
        self.registry = registry

    def list_tools(self) -> list[Tool]:
        return self.registry.list_all()

    async def dispatch(self, name: str, arguments: dict[str, Any] | None = None) -> CallToolResult:
        """Route a tool call.

        Args:
            name: Tool name as sent by the client.
            arguments: Raw argument bag.

        Returns:
            The executor's result, or an ``isError`` result naming the tool
            when no executor owns it.
        """
        executor = self.registry.resolve_owner(name)
        if executor is None:
            logger.warning("Unknown tool requested: %s", name)
            return error_result(f"Unknown tool: {name}")

        logger.info("Calling tool %s", name)
        return await executor.invoke(name, arguments)
