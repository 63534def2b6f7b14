"""Shared machinery for domain tool executors.

Every executor implements one contract::

    invoke(tool_name, arguments) -> CallToolResult

and never raises past it: argument validation failures, Google API errors
and unexpected exceptions are all converted into ``isError=True`` results
whose single text block is a JSON object with an ``error`` field.
"""

import json
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Any, ClassVar

import httpx
from mcp.types import CallToolResult, TextContent, Tool
from pydantic import BaseModel, ConfigDict, StringConstraints, ValidationError

from gworkspace_gateway.errors import ConfigurationError
from gworkspace_gateway.google_client import GoogleClient, google_error_message

logger = logging.getLogger(__name__)


class ToolDomain(str, Enum):
    """Closed set of tool domains, each owning one name prefix."""

    CALENDAR = "calendar"
    GMAIL = "gmail"
    DRIVE = "drive"
    TASKS = "tasks"

    @property
    def prefix(self) -> str:
        """Tool name prefix owned by this domain (e.g. ``google_calendar_``)."""
        return f"google_{self.value}_"

    @classmethod
    def from_tool_name(cls, name: str) -> "ToolDomain | None":
        """Resolve the domain owning a tool name by prefix.

        Returns:
            The matching domain, or None if no prefix matches.
        """
        for domain in cls:
            if name.startswith(domain.prefix):
                return domain
        return None


# Identifiers, queries and addresses; free text (bodies, notes) is kept verbatim
Stripped = Annotated[str, StringConstraints(strip_whitespace=True)]


class ToolArguments(BaseModel):
    """Base class for per-tool argument records."""

    model_config = ConfigDict(extra="ignore")


@dataclass(frozen=True)
class ToolSpec:
    """Static definition of one tool.

    Attributes:
        name: Globally unique tool name, prefixed by its domain.
        description: Human-readable description.
        arguments: Pydantic model validating the tool's arguments.
    """

    name: str
    description: str
    arguments: type[ToolArguments]

    def to_tool(self) -> Tool:
        """Build the MCP tool descriptor, deriving the input schema from the model."""
        schema = self.arguments.model_json_schema()
        schema.pop("title", None)
        schema.setdefault("properties", {})
        return Tool(name=self.name, description=self.description, inputSchema=schema)


def text_result(payload: dict[str, Any], is_error: bool = False) -> CallToolResult:
    """Wrap a JSON payload in a single-text-block tool result."""
    text = json.dumps(payload, indent=2, ensure_ascii=False, default=str)
    return CallToolResult(content=[TextContent(type="text", text=text)], isError=is_error)


def error_result(message: str, **extra: Any) -> CallToolResult:
    """Build an ``isError`` result carrying ``{"error": message, ...}``."""
    return text_result({"error": message, **extra}, is_error=True)


def _validation_details(error: ValidationError) -> list[dict[str, str]]:
    return [
        {
            "field": ".".join(str(part) for part in item["loc"]) or "arguments",
            "message": item["msg"],
        }
        for item in error.errors(include_url=False)
    ]


Handler = Callable[[Any], Awaitable[dict[str, Any]]]


class DomainExecutor:
    """Base class for the Calendar/Gmail/Drive/Tasks executors.

    Subclasses set ``domain`` and ``TOOLS`` and implement ``_handlers()``
    mapping each tool name to a coroutine that receives the validated
    argument record and returns a JSON-serialisable dictionary.

    Attributes:
        client: Authenticated Google API client.
    """

    domain: ClassVar[ToolDomain]
    TOOLS: ClassVar[list[ToolSpec]]

    def __init__(self, client: GoogleClient) -> None:
        self.client = client
        self._specs = {spec.name: spec for spec in self.TOOLS}

    def tools(self) -> list[Tool]:
        """Return this domain's tool descriptors in definition order."""
        return [spec.to_tool() for spec in self.TOOLS]

    def _handlers(self) -> dict[str, Handler]:
        raise NotImplementedError

    async def invoke(self, name: str, arguments: dict[str, Any] | None) -> CallToolResult:
        """Execute a tool of this domain.

        Args:
            name: Tool name.
            arguments: Raw, unvalidated argument bag (may be None).

        Returns:
            Tool result; ``isError`` is set on any failure.
        """
        spec = self._specs.get(name)
        handler = self._handlers().get(name)
        if spec is None or handler is None:
            return error_result(f"Unknown {self.domain.value} tool: {name}")

        try:
            args = spec.arguments.model_validate(arguments or {})
        except ValidationError as e:
            return error_result(f"Invalid arguments for {name}", details=_validation_details(e))

        try:
            payload = await handler(args)
        except httpx.HTTPStatusError as e:
            message = google_error_message(e)
            logger.warning("Google API error in %s (%s): %s", name, e.response.status_code, message)
            return error_result(message, status=e.response.status_code)
        except (ConfigurationError, ValueError) as e:
            logger.warning("Tool %s failed: %s", name, e)
            return error_result(str(e))
        except Exception as e:
            logger.exception(f"Error calling tool {name}")
            return error_result(str(e))

        return text_result(payload)
