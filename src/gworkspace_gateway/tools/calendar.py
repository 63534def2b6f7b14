"""Google Calendar tools."""

from datetime import datetime, timezone
from typing import Any
from urllib.parse import quote

from pydantic import Field

from gworkspace_gateway.auth.service_account import CALENDAR_SCOPES
from gworkspace_gateway.google_client import CALENDAR_API_BASE, GoogleClient
from gworkspace_gateway.tools.base import (
    DomainExecutor,
    Handler,
    Stripped,
    ToolArguments,
    ToolDomain,
    ToolSpec,
)

DEFAULT_CALENDAR_ID = "primary"


def _calendar_id() -> Any:
    return Field(default=DEFAULT_CALENDAR_ID, description="Calendar ID (default: primary)")


class ListEventsArgs(ToolArguments):
    calendar_id: Stripped = _calendar_id()
    time_min: Stripped | None = Field(
        default=None,
        description="Start of range, ISO 8601 (e.g. 2026-01-30T00:00:00+09:00). Defaults to now.",
    )
    time_max: Stripped | None = Field(default=None, description="End of range, ISO 8601")
    max_results: int = Field(default=20, ge=1, le=2500, description="Maximum events (default: 20)")
    query: Stripped | None = Field(default=None, description="Free text search")


class GetEventArgs(ToolArguments):
    calendar_id: Stripped = _calendar_id()
    event_id: Stripped = Field(min_length=1, description="Event ID")


class CreateEventArgs(ToolArguments):
    calendar_id: Stripped = _calendar_id()
    summary: str = Field(min_length=1, description="Event title")
    description: str | None = Field(default=None, description="Event description")
    location: str | None = Field(default=None, description="Location")
    start_time: Stripped = Field(min_length=1, description="Start time, ISO 8601")
    end_time: Stripped = Field(min_length=1, description="End time, ISO 8601")
    attendees: list[Stripped] | None = Field(default=None, description="Attendee email addresses")
    timezone: Stripped | None = Field(
        default=None, description="IANA timezone for start/end (default: server setting)"
    )
    send_notifications: bool = Field(
        default=True, description="Send notifications to attendees (default: true)"
    )


class UpdateEventArgs(ToolArguments):
    calendar_id: Stripped = _calendar_id()
    event_id: Stripped = Field(min_length=1, description="Event ID")
    summary: str | None = Field(default=None, description="Event title")
    description: str | None = Field(default=None, description="Event description")
    location: str | None = Field(default=None, description="Location")
    start_time: Stripped | None = Field(default=None, description="Start time, ISO 8601")
    end_time: Stripped | None = Field(default=None, description="End time, ISO 8601")
    attendees: list[Stripped] | None = Field(default=None, description="Attendee email addresses")
    timezone: Stripped | None = Field(default=None, description="IANA timezone for start/end")


class DeleteEventArgs(ToolArguments):
    calendar_id: Stripped = _calendar_id()
    event_id: Stripped = Field(min_length=1, description="Event ID")
    send_notifications: bool = Field(
        default=True, description="Send cancellation notifications (default: true)"
    )


class ListCalendarsArgs(ToolArguments):
    pass


def _event_time(value: dict[str, Any] | None) -> str:
    value = value or {}
    return value.get("dateTime") or value.get("date") or ""


def _send_updates(send_notifications: bool) -> str:
    return "all" if send_notifications else "none"


class CalendarExecutor(DomainExecutor):
    """Executes ``google_calendar_*`` tools against the Calendar v3 API."""

    domain = ToolDomain.CALENDAR
    TOOLS = [
        ToolSpec(
            "google_calendar_list_events",
            "List calendar events. Supports a time range, calendar ID and free text search.",
            ListEventsArgs,
        ),
        ToolSpec("google_calendar_get_event", "Get details of a single event.", GetEventArgs),
        ToolSpec("google_calendar_create_event", "Create a new event.", CreateEventArgs),
        ToolSpec(
            "google_calendar_update_event",
            "Update an existing event. Fields that are not given are kept.",
            UpdateEventArgs,
        ),
        ToolSpec("google_calendar_delete_event", "Delete an event.", DeleteEventArgs),
        ToolSpec(
            "google_calendar_list_calendars",
            "List calendars accessible by the delegated user.",
            ListCalendarsArgs,
        ),
    ]

    def __init__(self, client: GoogleClient, default_timezone: str = "UTC") -> None:
        super().__init__(client)
        self.default_timezone = default_timezone

    def _handlers(self) -> dict[str, Handler]:
        return {
            "google_calendar_list_events": self._list_events,
            "google_calendar_get_event": self._get_event,
            "google_calendar_create_event": self._create_event,
            "google_calendar_update_event": self._update_event,
            "google_calendar_delete_event": self._delete_event,
            "google_calendar_list_calendars": self._list_calendars,
        }

    def _event_url(self, calendar_id: str, event_id: str | None = None) -> str:
        url = f"{CALENDAR_API_BASE}/calendars/{quote(calendar_id, safe='')}/events"
        if event_id:
            url = f"{url}/{quote(event_id, safe='')}"
        return url

    async def _list_events(self, args: ListEventsArgs) -> dict[str, Any]:
        """List events ordered by start time, expanding recurring events."""
        params: dict[str, Any] = {
            "timeMin": args.time_min or datetime.now(timezone.utc).isoformat(),
            "maxResults": args.max_results,
            "singleEvents": "true",
            "orderBy": "startTime",
        }
        if args.time_max:
            params["timeMax"] = args.time_max
        if args.query:
            params["q"] = args.query

        response = await self.client.request(
            "GET", self._event_url(args.calendar_id), CALENDAR_SCOPES, params=params
        )

        events = []
        for item in response.get("items", []):
            events.append(
                {
                    "id": item.get("id"),
                    "summary": item.get("summary") or "(no title)",
                    "start": _event_time(item.get("start")),
                    "end": _event_time(item.get("end")),
                    "location": item.get("location", ""),
                    "description": item.get("description", ""),
                    "attendees": [a.get("email") for a in item.get("attendees", [])],
                    "creator": item.get("creator", {}).get("email", ""),
                    "status": item.get("status", ""),
                }
            )

        return {"events": events, "count": len(events)}

    async def _get_event(self, args: GetEventArgs) -> dict[str, Any]:
        event = await self.client.request(
            "GET", self._event_url(args.calendar_id, args.event_id), CALENDAR_SCOPES
        )

        return {
            "id": event.get("id"),
            "summary": event.get("summary") or "(no title)",
            "start": _event_time(event.get("start")),
            "end": _event_time(event.get("end")),
            "location": event.get("location", ""),
            "description": event.get("description", ""),
            "attendees": [
                {"email": a.get("email"), "response_status": a.get("responseStatus")}
                for a in event.get("attendees", [])
            ],
            "creator": event.get("creator", {}).get("email", ""),
            "organizer": event.get("organizer", {}).get("email", ""),
            "status": event.get("status", ""),
            "html_link": event.get("htmlLink", ""),
            "meet_link": event.get("hangoutLink", ""),
        }

    async def _create_event(self, args: CreateEventArgs) -> dict[str, Any]:
        tz = args.timezone or self.default_timezone
        event_body: dict[str, Any] = {
            "summary": args.summary,
            "start": {"dateTime": args.start_time, "timeZone": tz},
            "end": {"dateTime": args.end_time, "timeZone": tz},
        }
        if args.description:
            event_body["description"] = args.description
        if args.location:
            event_body["location"] = args.location
        if args.attendees:
            event_body["attendees"] = [{"email": email} for email in args.attendees]

        response = await self.client.request(
            "POST",
            self._event_url(args.calendar_id),
            CALENDAR_SCOPES,
            params={"sendUpdates": _send_updates(args.send_notifications)},
            json_data=event_body,
        )

        return {
            "status": "created",
            "id": response.get("id"),
            "summary": response.get("summary"),
            "start": _event_time(response.get("start")),
            "end": _event_time(response.get("end")),
            "html_link": response.get("htmlLink"),
        }

    async def _update_event(self, args: UpdateEventArgs) -> dict[str, Any]:
        """Patch only the fields that were provided.

        Rescheduled times keep the event's existing timezone unless one is given.
        """
        url = self._event_url(args.calendar_id, args.event_id)
        provided = args.model_fields_set
        update_body: dict[str, Any] = {}

        for field in ("summary", "description", "location"):
            if field in provided:
                update_body[field] = getattr(args, field)
        if "attendees" in provided:
            update_body["attendees"] = [{"email": email} for email in args.attendees or []]

        if args.start_time or args.end_time:
            existing = await self.client.request("GET", url, CALENDAR_SCOPES)
            if args.start_time:
                tz = (
                    args.timezone
                    or existing.get("start", {}).get("timeZone")
                    or self.default_timezone
                )
                update_body["start"] = {"dateTime": args.start_time, "timeZone": tz}
            if args.end_time:
                tz = (
                    args.timezone
                    or existing.get("end", {}).get("timeZone")
                    or self.default_timezone
                )
                update_body["end"] = {"dateTime": args.end_time, "timeZone": tz}

        response = await self.client.request("PATCH", url, CALENDAR_SCOPES, json_data=update_body)

        return {
            "status": "updated",
            "id": response.get("id"),
            "summary": response.get("summary"),
            "start": _event_time(response.get("start")),
            "end": _event_time(response.get("end")),
            "html_link": response.get("htmlLink"),
        }

    async def _delete_event(self, args: DeleteEventArgs) -> dict[str, Any]:
        await self.client.delete(
            self._event_url(args.calendar_id, args.event_id),
            CALENDAR_SCOPES,
            params={"sendUpdates": _send_updates(args.send_notifications)},
        )
        return {"status": "deleted", "event_id": args.event_id}

    async def _list_calendars(self, args: ListCalendarsArgs) -> dict[str, Any]:
        url = f"{CALENDAR_API_BASE}/users/me/calendarList"
        response = await self.client.request("GET", url, CALENDAR_SCOPES)

        calendars = []
        for item in response.get("items", []):
            calendars.append(
                {
                    "id": item.get("id"),
                    "summary": item.get("summary", ""),
                    "description": item.get("description", ""),
                    "timezone": item.get("timeZone", ""),
                    "access_role": item.get("accessRole", ""),
                    "primary": item.get("primary", False),
                }
            )

        return {"calendars": calendars, "count": len(calendars)}
