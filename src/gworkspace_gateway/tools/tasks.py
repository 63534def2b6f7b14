"""Google Tasks tools."""

from datetime import date
from typing import Any, Literal
from urllib.parse import quote

from pydantic import Field

from gworkspace_gateway.auth.service_account import TASKS_SCOPES
from gworkspace_gateway.google_client import TASKS_API_BASE
from gworkspace_gateway.tools.base import (
    DomainExecutor,
    Handler,
    Stripped,
    ToolArguments,
    ToolDomain,
    ToolSpec,
)

DEFAULT_TASKLIST_ID = "@default"


def _tasklist_id() -> Any:
    return Field(default=DEFAULT_TASKLIST_ID, description="Task list ID (default: @default)")


class ListTasklistsArgs(ToolArguments):
    pass


class ListTasksArgs(ToolArguments):
    tasklist_id: Stripped = _tasklist_id()
    show_completed: bool = Field(
        default=True, description="Include completed tasks (default: true)"
    )
    show_hidden: bool = Field(default=False, description="Include hidden tasks (default: false)")
    max_results: int = Field(default=50, ge=1, le=100, description="Maximum tasks (default: 50)")


class CreateTaskArgs(ToolArguments):
    tasklist_id: Stripped = _tasklist_id()
    title: str = Field(min_length=1, description="Task title")
    notes: str | None = Field(default=None, description="Notes")
    due: date | None = Field(default=None, description="Due date (YYYY-MM-DD)")


class UpdateTaskArgs(ToolArguments):
    tasklist_id: Stripped = _tasklist_id()
    task_id: Stripped = Field(min_length=1, description="Task ID")
    title: str | None = Field(default=None, description="Task title")
    notes: str | None = Field(default=None, description="Notes")
    due: date | None = Field(default=None, description="Due date (YYYY-MM-DD)")
    status: Literal["needsAction", "completed"] | None = Field(
        default=None, description="needsAction or completed"
    )


class TaskRefArgs(ToolArguments):
    tasklist_id: Stripped = _tasklist_id()
    task_id: Stripped = Field(min_length=1, description="Task ID")


def format_due(due: date) -> str:
    """Tasks API stores due dates as RFC 3339 timestamps at midnight UTC."""
    return f"{due.isoformat()}T00:00:00.000Z"


def format_task(item: dict[str, Any]) -> dict[str, Any]:
    """Format a task item for consistent output.

    Args:
        item: Raw task data from API.

    Returns:
        Formatted task dictionary.
    """
    due = item.get("due")
    return {
        "id": item.get("id"),
        "title": item.get("title"),
        "notes": item.get("notes", ""),
        "status": item.get("status"),
        "due": due.split("T")[0] if due else "",
        "completed": item.get("completed", ""),
        "updated": item.get("updated"),
        "parent": item.get("parent", ""),
        "position": item.get("position"),
    }


class TasksExecutor(DomainExecutor):
    """Executes ``google_tasks_*`` tools against the Tasks v1 API."""

    domain = ToolDomain.TASKS
    TOOLS = [
        ToolSpec("google_tasks_list_tasklists", "List task lists.", ListTasklistsArgs),
        ToolSpec("google_tasks_list", "List tasks in a task list.", ListTasksArgs),
        ToolSpec("google_tasks_create", "Create a new task.", CreateTaskArgs),
        ToolSpec(
            "google_tasks_update",
            "Update a task. Fields that are not given are kept.",
            UpdateTaskArgs,
        ),
        ToolSpec("google_tasks_complete", "Mark a task as completed.", TaskRefArgs),
        ToolSpec("google_tasks_delete", "Delete a task.", TaskRefArgs),
    ]

    def _handlers(self) -> dict[str, Handler]:
        return {
            "google_tasks_list_tasklists": self._list_tasklists,
            "google_tasks_list": self._list_tasks,
            "google_tasks_create": self._create_task,
            "google_tasks_update": self._update_task,
            "google_tasks_complete": self._complete_task,
            "google_tasks_delete": self._delete_task,
        }

    def _task_url(self, tasklist_id: str, task_id: str | None = None) -> str:
        url = f"{TASKS_API_BASE}/lists/{quote(tasklist_id, safe='')}/tasks"
        if task_id:
            url = f"{url}/{quote(task_id, safe='')}"
        return url

    async def _list_tasklists(self, args: ListTasklistsArgs) -> dict[str, Any]:
        url = f"{TASKS_API_BASE}/users/@me/lists"
        response = await self.client.request("GET", url, TASKS_SCOPES, params={"maxResults": 100})

        task_lists = [
            {"id": item.get("id"), "title": item.get("title"), "updated": item.get("updated")}
            for item in response.get("items", [])
        ]
        return {"task_lists": task_lists, "count": len(task_lists)}

    async def _list_tasks(self, args: ListTasksArgs) -> dict[str, Any]:
        params = {
            "maxResults": args.max_results,
            "showCompleted": str(args.show_completed).lower(),
            "showHidden": str(args.show_hidden).lower(),
        }
        response = await self.client.request(
            "GET", self._task_url(args.tasklist_id), TASKS_SCOPES, params=params
        )

        tasks = [format_task(item) for item in response.get("items", [])]
        return {"tasks": tasks, "count": len(tasks)}

    async def _create_task(self, args: CreateTaskArgs) -> dict[str, Any]:
        task_body: dict[str, Any] = {"title": args.title}
        if args.notes:
            task_body["notes"] = args.notes
        if args.due:
            task_body["due"] = format_due(args.due)

        response = await self.client.request(
            "POST", self._task_url(args.tasklist_id), TASKS_SCOPES, json_data=task_body
        )

        return {"result": "created", **format_task(response)}

    async def _update_task(self, args: UpdateTaskArgs) -> dict[str, Any]:
        provided = args.model_fields_set
        update_body: dict[str, Any] = {}

        if args.title:
            update_body["title"] = args.title
        if "notes" in provided:
            update_body["notes"] = args.notes
        if args.due:
            update_body["due"] = format_due(args.due)
        if args.status:
            update_body["status"] = args.status
            if args.status == "needsAction":
                # Reopening a task requires clearing its completion timestamp
                update_body["completed"] = None

        response = await self.client.request(
            "PATCH",
            self._task_url(args.tasklist_id, args.task_id),
            TASKS_SCOPES,
            json_data=update_body,
        )

        return {"result": "updated", **format_task(response)}

    async def _complete_task(self, args: TaskRefArgs) -> dict[str, Any]:
        response = await self.client.request(
            "PATCH",
            self._task_url(args.tasklist_id, args.task_id),
            TASKS_SCOPES,
            json_data={"status": "completed"},
        )

        return {
            "result": "completed",
            "id": response.get("id"),
            "title": response.get("title"),
            "completed": response.get("completed"),
        }

    async def _delete_task(self, args: TaskRefArgs) -> dict[str, Any]:
        await self.client.delete(self._task_url(args.tasklist_id, args.task_id), TASKS_SCOPES)
        return {"result": "deleted", "task_id": args.task_id, "tasklist_id": args.tasklist_id}
