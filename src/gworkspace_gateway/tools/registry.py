"""Static catalog of tools and the domain executor owning each one."""

import logging
from collections.abc import Iterable

from mcp.types import Tool

from gworkspace_gateway.tools.base import DomainExecutor, ToolDomain

logger = logging.getLogger(__name__)

__all__ = ["ToolDomain", "ToolRegistry"]


class ToolRegistry:
    """Read-only tool catalog built once at startup.

    Ownership is resolved through an explicit name to domain table, and a name
    must also carry its domain's prefix to resolve. Both are checked when the
    registry is built, so a misnamed tool fails at startup rather than at call
    time.
    """

    def __init__(self, executors: Iterable[DomainExecutor]) -> None:
        self._executors: dict[ToolDomain, DomainExecutor] = {}
        self._owners: dict[str, ToolDomain] = {}
        self._tools: dict[str, Tool] = {}

        for executor in executors:
            domain = executor.domain
            if domain in self._executors:
                raise ValueError(f"Duplicate executor for domain: {domain.value}")
            self._executors[domain] = executor

            for tool in executor.tools():
                if not tool.name.startswith(domain.prefix):
                    raise ValueError(
                        f"Tool {tool.name} does not carry the {domain.prefix} prefix"
                    )
                if tool.name in self._owners:
                    raise ValueError(f"Duplicate tool name: {tool.name}")
                self._owners[tool.name] = domain
                self._tools[tool.name] = tool

        logger.debug(
            "Registered %d tools across %d domains", len(self._tools), len(self._executors)
        )

    @property
    def domains(self) -> list[ToolDomain]:
        """Registered domains in declaration order."""
        return [domain for domain in ToolDomain if domain in self._executors]

    def list_all(self) -> list[Tool]:
        """Return every tool, ordered by domain then definition order."""
        return [
            self._tools[name]
            for domain in self.domains
            for name, owner in self._owners.items()
            if owner is domain
        ]

    def tools_for(self, domain: ToolDomain) -> list[Tool]:
        """Return the tools of one domain in definition order."""
        return [self._tools[name] for name, owner in self._owners.items() if owner is domain]

    def resolve_owner(self, name: str) -> DomainExecutor | None:
        """Find the executor owning a tool name.

        Returns:
            The owning executor, or None when the name has no registered
            prefix or is not in the catalog.
        """
        domain = ToolDomain.from_tool_name(name)
        if domain is None or self._owners.get(name) is not domain:
            return None
        return self._executors.get(domain)

    def __contains__(self, name: object) -> bool:
        return name in self._owners

    def __len__(self) -> int:
        return len(self._owners)
