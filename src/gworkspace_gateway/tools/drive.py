"""Google Drive tools (read-only)."""

from typing import Any
from urllib.parse import quote

from pydantic import Field

from gworkspace_gateway.auth.service_account import DRIVE_SCOPES
from gworkspace_gateway.google_client import DRIVE_API_BASE
from gworkspace_gateway.tools.base import (
    DomainExecutor,
    Handler,
    Stripped,
    ToolArguments,
    ToolDomain,
    ToolSpec,
)

FILE_LIST_FIELDS = "files(id,name,mimeType,size,modifiedTime,createdTime,webViewLink,owners)"
FILE_DETAIL_FIELDS = (
    "id,name,mimeType,size,modifiedTime,createdTime,webViewLink,webContentLink,"
    "description,owners,permissions,parents"
)

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"

# Native Google formats and the text format they are exported as
EXPORT_MIME_TYPES = {
    "application/vnd.google-apps.document": "text/plain",
    "application/vnd.google-apps.spreadsheet": "text/csv",
}

MAX_CONTENT_LENGTH = 50_000

# Drive API query operators
QUERY_OPERATORS = ["contains", "=", "!=", "<", ">", " in ", " has ", " not "]


class ListArgs(ToolArguments):
    folder_id: Stripped | None = Field(default=None, description="Folder ID (default: whole drive)")
    max_results: int = Field(default=20, ge=1, le=1000, description="Maximum files (default: 20)")
    order_by: Stripped = Field(
        default="modifiedTime desc",
        description='Sort order (e.g. "modifiedTime desc", "name")',
    )


class SearchArgs(ToolArguments):
    query: Stripped = Field(
        min_length=1,
        description="Drive query (e.g. \"name contains 'report'\") or plain search terms",
    )
    max_results: int = Field(default=20, ge=1, le=1000, description="Maximum files (default: 20)")
    mime_type: Stripped | None = Field(
        default=None, description='Filter by MIME type (e.g. "application/pdf")'
    )


class FileArgs(ToolArguments):
    file_id: Stripped = Field(min_length=1, description="File ID")


def _quote_literal(value: str) -> str:
    """Quote a value for use inside a Drive query string."""
    escaped = value.replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


def normalize_drive_query(query: str) -> str:
    """Normalize a search query for Google Drive API.

    If the query doesn't contain Drive API operators, wrap it in fullText contains.

    Args:
        query: Raw search query from user

    Returns:
        Properly formatted Drive API query
    """
    query_lower = query.lower()
    if any(op in query_lower for op in QUERY_OPERATORS):
        return query
    return f"fullText contains {_quote_literal(query)}"


def format_file_size(size: str | int | None) -> str:
    """Render a byte count as B/KB/MB/GB."""
    if not size:
        return "unknown"
    value = int(size)
    if value < 1024:
        return f"{value} B"
    if value < 1024**2:
        return f"{value / 1024:.1f} KB"
    if value < 1024**3:
        return f"{value / 1024**2:.1f} MB"
    return f"{value / 1024**3:.1f} GB"


def _format_file(item: dict[str, Any]) -> dict[str, Any]:
    mime_type = item.get("mimeType", "")
    return {
        "id": item.get("id"),
        "name": item.get("name"),
        "kind": "folder" if mime_type == FOLDER_MIME_TYPE else "file",
        "mime_type": mime_type,
        "size": format_file_size(item.get("size")),
        "modified_time": item.get("modifiedTime"),
        "created_time": item.get("createdTime"),
        "web_view_link": item.get("webViewLink"),
        "owners": [o.get("emailAddress") for o in item.get("owners", [])],
    }


class DriveExecutor(DomainExecutor):
    """Executes ``google_drive_*`` tools against the Drive v3 API."""

    domain = ToolDomain.DRIVE
    TOOLS = [
        ToolSpec("google_drive_list", "List files and folders.", ListArgs),
        ToolSpec("google_drive_search", "Search files.", SearchArgs),
        ToolSpec("google_drive_get_file", "Get file metadata and permissions.", FileArgs),
        ToolSpec(
            "google_drive_get_content",
            "Get the text content of a file. Google Docs are exported as plain text "
            "and Google Sheets as CSV.",
            FileArgs,
        ),
    ]

    def _handlers(self) -> dict[str, Handler]:
        return {
            "google_drive_list": self._list,
            "google_drive_search": self._search,
            "google_drive_get_file": self._get_file,
            "google_drive_get_content": self._get_content,
        }

    async def _list_files(
        self, query: str, max_results: int, order_by: str
    ) -> list[dict[str, Any]]:
        params = {
            "q": query,
            "pageSize": max_results,
            "orderBy": order_by,
            "fields": FILE_LIST_FIELDS,
        }
        response = await self.client.request(
            "GET", f"{DRIVE_API_BASE}/files", DRIVE_SCOPES, params=params
        )
        return [_format_file(item) for item in response.get("files", [])]

    async def _list(self, args: ListArgs) -> dict[str, Any]:
        query = "trashed = false"
        if args.folder_id:
            query += f" and {_quote_literal(args.folder_id)} in parents"

        files = await self._list_files(query, args.max_results, args.order_by)
        return {"files": files, "count": len(files)}

    async def _search(self, args: SearchArgs) -> dict[str, Any]:
        query = f"trashed = false and ({normalize_drive_query(args.query)})"
        if args.mime_type:
            query += f" and mimeType = {_quote_literal(args.mime_type)}"

        files = await self._list_files(query, args.max_results, "modifiedTime desc")
        return {"query": args.query, "files": files, "count": len(files)}

    async def _get_file(self, args: FileArgs) -> dict[str, Any]:
        file = await self.client.request(
            "GET",
            f"{DRIVE_API_BASE}/files/{quote(args.file_id, safe='')}",
            DRIVE_SCOPES,
            params={"fields": FILE_DETAIL_FIELDS},
        )

        return {
            "id": file.get("id"),
            "name": file.get("name"),
            "mime_type": file.get("mimeType"),
            "size": format_file_size(file.get("size")),
            "description": file.get("description", ""),
            "modified_time": file.get("modifiedTime"),
            "created_time": file.get("createdTime"),
            "web_view_link": file.get("webViewLink"),
            "download_link": file.get("webContentLink"),
            "owners": [o.get("emailAddress") for o in file.get("owners", [])],
            "parents": file.get("parents", []),
            "permissions": [
                {"type": p.get("type"), "role": p.get("role"), "email": p.get("emailAddress")}
                for p in file.get("permissions", [])
            ],
        }

    async def _get_content(self, args: FileArgs) -> dict[str, Any]:
        """Export or download a file as text.

        Raises:
            ValueError: If the file type has no text representation.
        """
        file_url = f"{DRIVE_API_BASE}/files/{quote(args.file_id, safe='')}"
        metadata = await self.client.request(
            "GET", file_url, DRIVE_SCOPES, params={"fields": "id,name,mimeType"}
        )
        mime_type = metadata.get("mimeType", "")

        if mime_type in EXPORT_MIME_TYPES:
            response = await self.client.request_raw(
                "GET",
                f"{file_url}/export",
                DRIVE_SCOPES,
                params={"mimeType": EXPORT_MIME_TYPES[mime_type]},
            )
        elif mime_type.startswith("text/") or mime_type == "application/json":
            response = await self.client.request_raw(
                "GET", file_url, DRIVE_SCOPES, params={"alt": "media"}
            )
        else:
            raise ValueError(f"File type {mime_type or 'unknown'} cannot be read as text")

        content = response.text
        truncated = len(content) > MAX_CONTENT_LENGTH
        if truncated:
            content = content[:MAX_CONTENT_LENGTH] + "\n\n... (truncated)"

        return {
            "id": metadata.get("id"),
            "name": metadata.get("name"),
            "mime_type": mime_type,
            "content": content,
            "truncated": truncated,
        }
