"""HTTP client for the NordWiki REST API."""

import logging
from typing import Any, Optional
from urllib.parse import quote

import httpx

from .core.http_retry import request_with_retry
from .services.edit_timers import EditSessionController

logger = logging.getLogger(__name__)


class WikiClient:
    """Async client wrapping the NordWiki backend REST API.

    Identity is sent the way the gateway forwards it (X-User-* headers).
    Connection errors, timeouts and 5xx responses are retried with
    exponential backoff; 4xx responses raise ``httpx.HTTPStatusError``.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        user_id: Optional[str] = None,
        user_name: Optional[str] = None,
        role: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url
        self.timeout = timeout
        self._headers: dict[str, str] = {}
        if user_id:
            self._headers["X-User-Id"] = user_id
            self._headers["X-User-Name"] = user_name or user_id
            self._headers["X-User-Role"] = role or "member"
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=self._headers,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()

    async def __aenter__(self) -> "WikiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        resp = await request_with_retry(self._get_client(), method, path, **kwargs)
        resp.raise_for_status()
        if resp.status_code == 204 or not resp.content:
            return None
        return resp.json()

    @staticmethod
    def _page_url(path: str) -> str:
        return f"/api/pages/{quote(path.strip('/'), safe='/')}"

    # -- structure and pages -------------------------------------------------

    async def get_tree(self, refresh: bool = False) -> list[dict[str, Any]]:
        if refresh:
            return await self._request("POST", "/api/tree/refresh")
        return await self._request("GET", "/api/tree")

    async def search(self, query: str) -> list[dict[str, Any]]:
        return await self._request("GET", "/api/search", params={"q": query})

    async def get_page(self, path: str) -> dict[str, Any]:
        return await self._request("GET", self._page_url(path))

    async def save_page(
        self,
        path: str,
        title: str,
        body: str,
        status: Optional[str] = None,
        comment: Optional[str] = None,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {"title": title, "body": body}
        if status:
            payload["status"] = status
        if comment:
            payload["comment"] = comment
        return await self._request("PUT", self._page_url(path), json=payload)

    async def delete_page(self, path: str) -> None:
        await self._request("DELETE", self._page_url(path))

    async def list_revisions(self, page_id: str) -> list[dict[str, Any]]:
        return await self._request("GET", "/api/revisions", params={"page_id": page_id})

    async def restore_revision(self, revision_id: int) -> dict[str, Any]:
        return await self._request("POST", f"/api/revisions/{revision_id}/restore")

    # -- edit sessions -------------------------------------------------------

    async def start_session(self, page_id: str) -> int:
        data = await self._request("POST", "/api/sessions", json={"page_id": page_id})
        return data["id"]

    async def heartbeat(self, session_id: int) -> dict[str, Any]:
        return await self._request("POST", f"/api/sessions/{session_id}/heartbeat")

    async def end_session(self, session_id: int) -> None:
        await self._request("DELETE", f"/api/sessions/{session_id}")

    async def check_conflicts(self, page_id: str) -> list[dict[str, Any]]:
        return await self._request("GET", "/api/conflicts", params={"page_id": page_id})

    # -- suggestions, comments, notifications --------------------------------

    async def propose(self, page_id: str, title: str, body: str, description: Optional[str] = None) -> dict[str, Any]:
        return await self._request(
            "POST", "/api/suggestions",
            json={"page_id": page_id, "title": title, "body": body, "description": description},
        )

    async def review(self, edit_id: int, decision: str, notes: Optional[str] = None) -> dict[str, Any]:
        return await self._request(
            "POST", f"/api/suggestions/{edit_id}/review", json={"decision": decision, "notes": notes},
        )

    async def merge(self, edit_id: int) -> dict[str, Any]:
        return await self._request("POST", f"/api/suggestions/{edit_id}/merge")

    async def add_comment(self, page_id: str, body: str, parent_id: Optional[int] = None) -> dict[str, Any]:
        return await self._request(
            "POST", "/api/comments", json={"page_id": page_id, "body": body, "parent_id": parent_id},
        )

    async def list_comments(self, page_id: str) -> list[dict[str, Any]]:
        return await self._request("GET", "/api/comments", params={"page_id": page_id})

    async def subscribe(self, page_id: str, types: Optional[list[str]] = None) -> dict[str, Any]:
        return await self._request(
            "POST", "/api/subscriptions", json={"page_id": page_id, "notification_types": types},
        )

    async def unsubscribe(self, page_id: str) -> None:
        await self._request("DELETE", "/api/subscriptions", params={"page_id": page_id})

    async def list_notifications(self, unread_only: bool = False) -> list[dict[str, Any]]:
        return await self._request("GET", "/api/notifications", params={"unread_only": unread_only})

    async def mark_read(self, notification_id: int) -> dict[str, Any]:
        return await self._request("POST", f"/api/notifications/{notification_id}/read")


def open_edit_session(
    client: WikiClient,
    page_id: str,
    title: str,
    initial_body: str = "",
    heartbeat_interval: float = 30.0,
    conflict_interval: float = 10.0,
    autosave_interval: float = 30.0,
    on_conflicts=None,
) -> EditSessionController:
    """Controller for editing *page_id* through *client*; enter it with ``async with``."""

    async def save(body: str) -> None:
        await client.save_page(page_id, title, body, comment="Auto-saved")

    return EditSessionController(
        page_id,
        start_session=client.start_session,
        heartbeat=client.heartbeat,
        check_conflicts=client.check_conflicts,
        save=save,
        end_session=client.end_session,
        heartbeat_interval=heartbeat_interval,
        conflict_interval=conflict_interval,
        autosave_interval=autosave_interval,
        on_conflicts=on_conflicts,
        initial_body=initial_body,
    )
