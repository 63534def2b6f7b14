"""Unit tests for ToolDomain and ToolRegistry."""

from unittest.mock import MagicMock

import pytest

from gworkspace_gateway.google_client import GoogleClient
from gworkspace_gateway.tools import (
    CalendarExecutor,
    DriveExecutor,
    GmailExecutor,
    TasksExecutor,
    ToolRegistry,
)
from gworkspace_gateway.tools.base import DomainExecutor, ToolArguments, ToolDomain, ToolSpec


class _EmptyArgs(ToolArguments):
    pass


def _executor(domain: ToolDomain, *names: str) -> DomainExecutor:
    executor_class = type(
        "StubExecutor",
        (DomainExecutor,),
        {"domain": domain, "TOOLS": [ToolSpec(name, name, _EmptyArgs) for name in names]},
    )
    return executor_class(MagicMock(spec=GoogleClient))


@pytest.mark.unit
class TestToolDomain:
    """Tests for the closed domain enumeration."""

    def test_prefixes(self) -> None:
        assert [d.prefix for d in ToolDomain] == [
            "google_calendar_",
            "google_gmail_",
            "google_drive_",
            "google_tasks_",
        ]

    @pytest.mark.parametrize(
        ("name", "domain"),
        [
            ("google_calendar_list_events", ToolDomain.CALENDAR),
            ("google_gmail_send", ToolDomain.GMAIL),
            ("google_drive_search", ToolDomain.DRIVE),
            ("google_tasks_create", ToolDomain.TASKS),
        ],
    )
    def test_should_resolve_domain_by_prefix(self, name: str, domain: ToolDomain) -> None:
        assert ToolDomain.from_tool_name(name) is domain

    @pytest.mark.parametrize("name", ["google_foo_bar", "calendar_list", "", "google_"])
    def test_should_return_none_for_unknown_prefix(self, name: str) -> None:
        assert ToolDomain.from_tool_name(name) is None


@pytest.mark.unit
class TestToolRegistry:
    """Tests for the tool catalog."""

    def test_should_register_all_default_tools(self, registry: ToolRegistry) -> None:
        assert len(registry) == 21
        assert registry.domains == list(ToolDomain)

    def test_list_all_should_order_by_domain_then_definition(
        self, registry: ToolRegistry
    ) -> None:
        names = [tool.name for tool in registry.list_all()]

        expected = [
            spec.name
            for executor_class in (CalendarExecutor, GmailExecutor, DriveExecutor, TasksExecutor)
            for spec in executor_class.TOOLS
        ]
        assert names == expected
        assert names[0] == "google_calendar_list_events"
        assert names[-1] == "google_tasks_delete"

    def test_list_all_should_be_stable(self, registry: ToolRegistry) -> None:
        assert registry.list_all() == registry.list_all()

    def test_order_should_not_depend_on_executor_order(self) -> None:
        registry = ToolRegistry(
            [
                _executor(ToolDomain.TASKS, "google_tasks_a"),
                _executor(ToolDomain.CALENDAR, "google_calendar_b", "google_calendar_a"),
            ]
        )

        assert [t.name for t in registry.list_all()] == [
            "google_calendar_b",
            "google_calendar_a",
            "google_tasks_a",
        ]

    def test_should_derive_input_schema_from_argument_model(self, registry: ToolRegistry) -> None:
        tool = next(t for t in registry.list_all() if t.name == "google_calendar_create_event")

        assert tool.inputSchema["type"] == "object"
        assert {"summary", "start_time", "end_time"} <= set(tool.inputSchema["required"])
        assert tool.inputSchema["properties"]["calendar_id"]["default"] == "primary"

    def test_empty_argument_models_should_have_properties(self, registry: ToolRegistry) -> None:
        tool = next(t for t in registry.list_all() if t.name == "google_calendar_list_calendars")

        assert tool.inputSchema["properties"] == {}

    def test_should_resolve_owner(self, registry: ToolRegistry) -> None:
        executor = registry.resolve_owner("google_gmail_search")

        assert isinstance(executor, GmailExecutor)

    @pytest.mark.parametrize(
        "name",
        [
            "google_foo_bar",
            "google_calendar_nonexistent",
            "google_gmail_",
            "",
            "GOOGLE_GMAIL_SEARCH",
        ],
    )
    def test_should_return_none_for_unknown_tools(self, registry: ToolRegistry, name: str) -> None:
        assert registry.resolve_owner(name) is None

    def test_should_reject_duplicate_tool_names(self) -> None:
        with pytest.raises(ValueError, match="Duplicate"):
            ToolRegistry([_executor(ToolDomain.GMAIL, "google_gmail_x", "google_gmail_x")])

    def test_should_reject_duplicate_domains(self) -> None:
        with pytest.raises(ValueError, match="Duplicate executor"):
            ToolRegistry(
                [
                    _executor(ToolDomain.GMAIL, "google_gmail_x"),
                    _executor(ToolDomain.GMAIL, "google_gmail_y"),
                ]
            )

    def test_should_reject_tool_outside_its_domain_prefix(self) -> None:
        with pytest.raises(ValueError, match="google_drive_"):
            ToolRegistry([_executor(ToolDomain.DRIVE, "google_tasks_sneaky")])
