"""Tests for the async WikiClient and its editor wiring."""

import asyncio
import json

import httpx
import pytest

from nordwiki.client import WikiClient, open_edit_session
from nordwiki.core import http_retry
from nordwiki.services.edit_timers import EditorState


@pytest.fixture(autouse=True)
def _no_backoff(monkeypatch):
    monkeypatch.setattr(http_retry, "RETRY_BASE_DELAY", 0)


def make_client(handler, **kwargs) -> WikiClient:
    return WikiClient(
        base_url="http://wiki.test",
        user_id="editor-1",
        user_name="Alice",
        role="editor",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


class TestWikiClient:

    def test_sends_identity_headers_and_quotes_path(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"id": "Nordics/towns/old town.md"})

        async def run():
            async with make_client(handler) as client:
                return await client.get_page("/Nordics/towns/old town.md")

        assert asyncio.run(run())["id"] == "Nordics/towns/old town.md"
        request = seen[0]
        assert request.url.raw_path == b"/api/pages/Nordics/towns/old%20town.md"
        assert request.headers["X-User-Id"] == "editor-1"
        assert request.headers["X-User-Role"] == "editor"

    def test_no_identity_headers_when_anonymous(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=[])

        async def run():
            client = WikiClient(base_url="http://wiki.test", transport=httpx.MockTransport(handler))
            await client.get_tree()
            await client.aclose()

        asyncio.run(run())
        assert "X-User-Id" not in seen[0].headers

    def test_retries_server_errors(self):
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) < 3:
                return httpx.Response(503)
            return httpx.Response(200, json=[{"id": "a.md"}])

        async def run():
            async with make_client(handler) as client:
                return await client.search("a")

        assert asyncio.run(run()) == [{"id": "a.md"}]
        assert len(calls) == 3

    def test_gives_up_after_max_retries(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(500)

        async def run():
            async with make_client(handler) as client:
                await client.get_tree()

        with pytest.raises(httpx.HTTPStatusError):
            asyncio.run(run())
        assert len(calls) == http_retry.MAX_RETRIES

    def test_client_errors_raise_without_retry(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(403, json={"error": "PERMISSION_DENIED"})

        async def run():
            async with make_client(handler) as client:
                await client.save_page("a.md", "A", "x")

        with pytest.raises(httpx.HTTPStatusError) as exc_info:
            asyncio.run(run())
        assert exc_info.value.response.status_code == 403
        assert len(calls) == 1

    def test_delete_returns_none_on_204(self):
        async def run():
            async with make_client(lambda request: httpx.Response(204)) as client:
                return await client.delete_page("a.md")

        assert asyncio.run(run()) is None

    def test_save_page_payload(self):
        bodies = []

        def handler(request):
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json={"revision_number": 1})

        async def run():
            async with make_client(handler) as client:
                await client.save_page("a.md", "A", "body", comment="Typo")

        asyncio.run(run())
        assert bodies == [{"title": "A", "body": "body", "comment": "Typo"}]


class FakeWiki:
    """Records the editor traffic a controller produces."""

    def __init__(self):
        self.requests = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append((request.method, request.url.path))
        if request.method == "POST" and request.url.path == "/api/sessions":
            return httpx.Response(201, json={"id": 7})
        if request.url.path == "/api/conflicts":
            return httpx.Response(200, json=[{"conflict_user_id": "member-1", "conflict_user_name": "Mira"}])
        if request.method == "PUT":
            return httpx.Response(200, json={"revision_number": 2})
        return httpx.Response(200, json={"id": 7, "is_active": request.method != "DELETE"})


class TestOpenEditSession:

    def test_controller_drives_the_api(self):
        wiki = FakeWiki()
        seen_conflicts = []

        async def run():
            async with make_client(wiki.handler) as client:
                editor = open_edit_session(
                    client, "a.md", "A",
                    heartbeat_interval=0.01, conflict_interval=0.01, autosave_interval=0.01,
                    on_conflicts=seen_conflicts.append,
                )
                async with editor:
                    assert editor.session_id == 7
                    editor.edit("changed")
                    await asyncio.sleep(0.1)
                return editor

        editor = asyncio.run(run())

        assert editor.state is EditorState.ENDED
        assert editor.dirty is False
        assert ("POST", "/api/sessions/7/heartbeat") in wiki.requests
        assert ("PUT", "/api/pages/a.md") in wiki.requests
        assert wiki.requests[-1] == ("DELETE", "/api/sessions/7")
        assert seen_conflicts[0][0]["conflict_user_name"] == "Mira"
