"""Tool catalog and domain executors for Google Workspace."""

from gworkspace_gateway.config import GatewaySettings
from gworkspace_gateway.google_client import GoogleClient
from gworkspace_gateway.tools.base import DomainExecutor, ToolDomain, ToolSpec
from gworkspace_gateway.tools.calendar import CalendarExecutor
from gworkspace_gateway.tools.drive import DriveExecutor
from gworkspace_gateway.tools.gmail import GmailExecutor
from gworkspace_gateway.tools.registry import ToolRegistry
from gworkspace_gateway.tools.router import ToolRouter
from gworkspace_gateway.tools.tasks import TasksExecutor

__all__ = [
    "CalendarExecutor",
    "DomainExecutor",
    "DriveExecutor",
    "GmailExecutor",
    "TasksExecutor",
    "ToolDomain",
    "ToolRegistry",
    "ToolRouter",
    "ToolSpec",
    "default_executors",
]


def default_executors(client: GoogleClient, settings: GatewaySettings) -> list[DomainExecutor]:
    """Build one executor per domain sharing a single Google client."""
    return [
        CalendarExecutor(client, default_timezone=settings.default_timezone),
        GmailExecutor(client),
        DriveExecutor(client),
        TasksExecutor(client),
    ]
