"""Authenticated HTTP access to Google Workspace REST APIs.

One pooled ``httpx.AsyncClient`` is shared by every session and tool call in
the process; access tokens come from :class:`ServiceAccountAuth`.
"""

import logging
from collections.abc import Iterable
from typing import Any

import httpx

from gworkspace_gateway.auth.service_account import ServiceAccountAuth

logger = logging.getLogger(__name__)

# Google API base URLs
CALENDAR_API_BASE = "https://www.googleapis.com/calendar/v3"
GMAIL_API_BASE = "https://gmail.googleapis.com/gmail/v1"
DRIVE_API_BASE = "https://www.googleapis.com/drive/v3"
TASKS_API_BASE = "https://tasks.googleapis.com/tasks/v1"

# Upper bound on any single downstream call
REQUEST_TIMEOUT = httpx.Timeout(30.0, connect=10.0)
CONNECTION_LIMITS = httpx.Limits(max_connections=100, max_keepalive_connections=20)


def google_error_message(error: httpx.HTTPStatusError) -> str:
    """Extract the human-readable message from a Google API error response.

    Google returns ``{"error": {"code", "message", "errors": [...]}}``; falls
    back to the exception text for non-JSON bodies.
    """
    try:
        body = error.response.json()
    except ValueError:
        return str(error)

    if isinstance(body, dict):
        detail = body.get("error")
        if isinstance(detail, dict) and detail.get("message"):
            return str(detail["message"])
        if isinstance(detail, str):
            # OAuth endpoints use {"error": "...", "error_description": "..."}
            return str(body.get("error_description") or detail)
    return str(error)


class GoogleClient:
    """Thin authenticated wrapper over Google REST endpoints.

    Every call names the OAuth scopes it needs; the matching delegated
    access token is fetched (and cached) by ``auth``.

    Attributes:
        auth: Access-token provider.
    """

    def __init__(self, auth: ServiceAccountAuth) -> None:
        self.auth = auth
        self._http_client: httpx.AsyncClient | None = None

    @property
    def http_client(self) -> httpx.AsyncClient:
        """Pooled HTTP/2 client, created on first use."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                http2=True, limits=CONNECTION_LIMITS, timeout=REQUEST_TIMEOUT
            )
        return self._http_client

    async def close(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    async def _send(
        self,
        method: str,
        url: str,
        scopes: Iterable[str],
        params: dict[str, Any] | None = None,
        json_data: dict[str, Any] | None = None,
        accept_json: bool = True,
    ) -> httpx.Response:
        access_token = await self.auth.get_access_token(scopes)
        headers = {"Authorization": f"Bearer {access_token}"}
        if accept_json:
            headers["Accept"] = "application/json"

        response = await self.http_client.request(
            method, url, params=params, json=json_data, headers=headers
        )
        if response.is_error:
            logger.debug("%s %s -> %d", method, url, response.status_code)
        response.raise_for_status()
        return response

    async def request(
        self,
        method: str,
        url: str,
        scopes: Iterable[str],
        params: dict[str, Any] | None = None,
        json_data: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Call a JSON endpoint.

        Args:
            method: HTTP method.
            url: Absolute endpoint URL.
            scopes: OAuth scopes the endpoint requires.
            params: Query parameters.
            json_data: JSON request body.

        Returns:
            Decoded JSON body, or an empty dict when the API sends no content.

        Raises:
            httpx.HTTPStatusError: On a non-2xx response.
        """
        response = await self._send(method, url, scopes, params=params, json_data=json_data)
        if response.status_code == 204 or not response.content:
            return {}
        result: dict[str, Any] = response.json()
        return result

    async def request_raw(
        self,
        method: str,
        url: str,
        scopes: Iterable[str],
        params: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """Call an endpoint whose body is not JSON (media downloads, exports)."""
        return await self._send(method, url, scopes, params=params, accept_json=False)

    async def delete(
        self,
        url: str,
        scopes: Iterable[str],
        params: dict[str, Any] | None = None,
    ) -> None:
        await self._send("DELETE", url, scopes, params=params, accept_json=False)
