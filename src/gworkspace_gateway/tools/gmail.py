"""Gmail tools."""

import asyncio
import base64
import logging
from email.mime.text import MIMEText
from typing import Any
from urllib.parse import quote

from pydantic import Field, model_validator

from gworkspace_gateway.auth.service_account import GMAIL_SCOPES
from gworkspace_gateway.google_client import GMAIL_API_BASE
from gworkspace_gateway.tools.base import (
    DomainExecutor,
    Handler,
    Stripped,
    ToolArguments,
    ToolDomain,
    ToolSpec,
)

logger = logging.getLogger(__name__)

USER_ID = "me"
METADATA_HEADERS = ["From", "To", "Subject", "Date"]


def _message_url(message_id: str) -> str:
    return f"{GMAIL_API_BASE}/users/{USER_ID}/messages/{quote(message_id, safe='')}"


class SearchArgs(ToolArguments):
    query: Stripped = Field(
        min_length=1,
        description='Gmail search query (e.g. "from:someone@example.com newer_than:7d")',
    )
    max_results: int = Field(default=20, ge=1, le=500, description="Maximum messages (default: 20)")


class GetMessageArgs(ToolArguments):
    message_id: Stripped = Field(min_length=1, description="Message ID")


class SendArgs(ToolArguments):
    to: Stripped = Field(min_length=1, description="Recipient address(es), comma separated")
    subject: str = Field(min_length=1, description="Subject")
    body: str = Field(min_length=1, description="Plain text body")
    cc: Stripped | None = Field(default=None, description="CC recipients, comma separated")
    bcc: Stripped | None = Field(default=None, description="BCC recipients, comma separated")


class ListLabelsArgs(ToolArguments):
    pass


class ModifyLabelsArgs(ToolArguments):
    message_id: Stripped = Field(min_length=1, description="Message ID")
    add_labels: list[Stripped] | None = Field(default=None, description="Label IDs to add")
    remove_labels: list[Stripped] | None = Field(default=None, description="Label IDs to remove")

    @model_validator(mode="after")
    def _require_change(self) -> "ModifyLabelsArgs":
        if not self.add_labels and not self.remove_labels:
            raise ValueError("add_labels or remove_labels is required")
        return self


def _headers(payload: dict[str, Any]) -> dict[str, str]:
    """Map header names (lowercased) to values."""
    return {h["name"].lower(): h["value"] for h in payload.get("headers", [])}


def _decode(data: str) -> str:
    # Gmail omits base64url padding
    padded = data + "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(padded).decode("utf-8", errors="replace")


def _find_part(payload: dict[str, Any], mime_type: str) -> str:
    """Depth-first search for the first non-empty part of the given type."""
    data = payload.get("body", {}).get("data")
    if payload.get("mimeType") == mime_type and data:
        return _decode(data)
    for part in payload.get("parts", []):
        found = _find_part(part, mime_type)
        if found:
            return found
    return ""


def extract_message_body(payload: dict[str, Any]) -> str:
    """Return the readable body of a Gmail message payload.

    Single-part messages carry the body on the payload itself. Multipart
    messages are searched for text/plain first, then text/html.
    """
    if payload.get("body", {}).get("data"):
        return _decode(payload["body"]["data"])
    return _find_part(payload, "text/plain") or _find_part(payload, "text/html")


def build_email_message(
    sender: str,
    to: str,
    subject: str,
    body: str,
    cc: str | None = None,
    bcc: str | None = None,
) -> str:
    """Build an RFC 2822 message and return it base64url encoded.

    Args:
        sender: From address (the delegated user).
        to: Recipient email(s).
        subject: Email subject.
        body: Email body text.
        cc: Optional CC recipients.
        bcc: Optional BCC recipients.

    Returns:
        Base64url encoded email message.
    """
    message = MIMEText(body, "plain", "utf-8")
    message["From"] = sender
    message["To"] = to
    message["Subject"] = subject

    if cc:
        message["Cc"] = cc
    if bcc:
        message["Bcc"] = bcc

    return base64.urlsafe_b64encode(message.as_bytes()).decode()


class GmailExecutor(DomainExecutor):
    """Executes ``google_gmail_*`` tools against the Gmail v1 API."""

    domain = ToolDomain.GMAIL
    TOOLS = [
        ToolSpec(
            "google_gmail_search",
            "Search messages using Gmail search query syntax.",
            SearchArgs,
        ),
        ToolSpec("google_gmail_get_message", "Get the full content of a message.", GetMessageArgs),
        ToolSpec("google_gmail_send", "Send a plain text email.", SendArgs),
        ToolSpec("google_gmail_list_labels", "List all labels.", ListLabelsArgs),
        ToolSpec(
            "google_gmail_modify_labels",
            "Add or remove labels on a message.",
            ModifyLabelsArgs,
        ),
    ]

    def _handlers(self) -> dict[str, Handler]:
        return {
            "google_gmail_search": self._search,
            "google_gmail_get_message": self._get_message,
            "google_gmail_send": self._send,
            "google_gmail_list_labels": self._list_labels,
            "google_gmail_modify_labels": self._modify_labels,
        }

    async def _search(self, args: SearchArgs) -> dict[str, Any]:
        """Search messages.

        Uses parallel fetching with asyncio.gather for message metadata.
        """
        url = f"{GMAIL_API_BASE}/users/{USER_ID}/messages"
        response = await self.client.request(
            "GET", url, GMAIL_SCOPES, params={"q": args.query, "maxResults": args.max_results}
        )

        message_list = response.get("messages", [])
        if not message_list:
            return {"messages": [], "count": 0}

        async def fetch_message_detail(msg_id: str) -> dict[str, Any]:
            return await self.client.request(
                "GET",
                _message_url(msg_id),
                GMAIL_SCOPES,
                params={"format": "metadata", "metadataHeaders": METADATA_HEADERS},
            )

        details = await asyncio.gather(
            *[fetch_message_detail(msg["id"]) for msg in message_list],
            return_exceptions=True,
        )

        messages = []
        for msg, msg_detail in zip(message_list, details, strict=False):
            # Skip messages that failed to fetch
            if isinstance(msg_detail, BaseException):
                logger.warning("Failed to fetch message %s: %s", msg["id"], msg_detail)
                continue

            headers = _headers(msg_detail.get("payload", {}))
            messages.append(
                {
                    "id": msg["id"],
                    "thread_id": msg.get("threadId"),
                    "from": headers.get("from", ""),
                    "to": headers.get("to", ""),
                    "subject": headers.get("subject", ""),
                    "date": headers.get("date", ""),
                    "snippet": msg_detail.get("snippet", ""),
                    "labels": msg_detail.get("labelIds", []),
                }
            )

        return {"messages": messages, "count": len(messages)}

    async def _get_message(self, args: GetMessageArgs) -> dict[str, Any]:
        url = _message_url(args.message_id)
        response = await self.client.request("GET", url, GMAIL_SCOPES, params={"format": "full"})

        payload = response.get("payload", {})
        headers = _headers(payload)

        return {
            "id": response.get("id"),
            "thread_id": response.get("threadId"),
            "from": headers.get("from", ""),
            "to": headers.get("to", ""),
            "cc": headers.get("cc", ""),
            "subject": headers.get("subject", ""),
            "date": headers.get("date", ""),
            "body": extract_message_body(payload),
            "labels": response.get("labelIds", []),
            "snippet": response.get("snippet", ""),
        }

    async def _send(self, args: SendArgs) -> dict[str, Any]:
        raw_message = build_email_message(
            self.client.auth.delegated_user, args.to, args.subject, args.body, args.cc, args.bcc
        )

        url = f"{GMAIL_API_BASE}/users/{USER_ID}/messages/send"
        response = await self.client.request(
            "POST", url, GMAIL_SCOPES, json_data={"raw": raw_message}
        )

        return {
            "status": "sent",
            "id": response.get("id"),
            "thread_id": response.get("threadId"),
            "to": args.to,
            "subject": args.subject,
        }

    async def _list_labels(self, args: ListLabelsArgs) -> dict[str, Any]:
        url = f"{GMAIL_API_BASE}/users/{USER_ID}/labels"
        response = await self.client.request("GET", url, GMAIL_SCOPES)

        labels = []
        for label in response.get("labels", []):
            labels.append(
                {
                    "id": label.get("id"),
                    "name": label.get("name"),
                    "type": label.get("type"),
                    "messages_total": label.get("messagesTotal"),
                    "messages_unread": label.get("messagesUnread"),
                }
            )

        return {"labels": labels, "count": len(labels)}

    async def _modify_labels(self, args: ModifyLabelsArgs) -> dict[str, Any]:
        url = f"{_message_url(args.message_id)}/modify"
        await self.client.request(
            "POST",
            url,
            GMAIL_SCOPES,
            json_data={
                "addLabelIds": args.add_labels or [],
                "removeLabelIds": args.remove_labels or [],
            },
        )

        return {
            "status": "modified",
            "message_id": args.message_id,
            "added_labels": args.add_labels or [],
            "removed_labels": args.remove_labels or [],
        }
