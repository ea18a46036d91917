"""Tests for the live data overlay and its shared registry connection."""

import asyncio
import json

import httpx
import pytest

from nordwiki.exceptions import UpstreamUnavailableError
from nordwiki.services.live_overlay import (
    EntitySnapshot,
    HttpLiveEntityRegistry,
    LiveConnectionManager,
    LiveOverlayResolver,
    StaticLiveEntityRegistry,
    infer_entity,
    render_stats,
)

from tests.conftest import GARVIA_SNAPSHOT

BODY = "# Garvia\n\n<!-- live:stats -->\nold\n<!-- /live:stats -->\n\nHistory stays.\n"


class TestInferEntity:

    @pytest.mark.parametrize("path, expected", [
        ("Nordics/towns/garvia.md", ("town", "garvia")),
        ("Nordics/towns/garvia/README.md", ("town", "garvia")),
        ("Nordics/nations/kingdom_of_albion.md", ("nation", "kingdom of albion")),
        ("Nordics/towns/README.md", (None, None)),
        ("Nordics/lore/garvia.md", (None, None)),
    ])
    def test_paths(self, path, expected):
        assert infer_entity(path) == expected


class TestResolver:

    def test_disabled_without_flag(self):
        registry = StaticLiveEntityRegistry({("town", "garvia"): GARVIA_SNAPSHOT})
        result = asyncio.run(LiveOverlayResolver(registry).resolve("Nordics/towns/garvia.md", {}, BODY))
        assert result.display_body == BODY
        assert result.is_live is False
        assert registry.calls == []

    def test_replaces_stats_section_only(self):
        registry = StaticLiveEntityRegistry({("town", "garvia"): GARVIA_SNAPSHOT})
        result = asyncio.run(LiveOverlayResolver(registry).resolve(
            "Nordics/towns/garvia.md", {"live_sync_enabled": "TRUE"}, BODY
        ))
        assert result.is_live
        assert result.entity_type == "town" and result.entity_name == "garvia"
        assert "- **Population:** 42" in result.display_body
        assert "old" not in result.display_body
        assert result.display_body.startswith("# Garvia\n\n<!-- live:stats -->")
        assert result.display_body.endswith("<!-- /live:stats -->\n\nHistory stays.\n")
        assert result.snapshot is GARVIA_SNAPSHOT

    def test_frontmatter_overrides_entity(self):
        registry = StaticLiveEntityRegistry({("nation", "Albion"): EntitySnapshot(fields={"towns": 3})})
        fm = {"live_sync_enabled": "true", "entity_type": "nation", "entity_name": "Albion"}
        result = asyncio.run(LiveOverlayResolver(registry).resolve("lore/whatever.md", fm, "x"))
        assert result.is_live
        assert registry.calls == [("nation", "Albion")]

    def test_registry_failure_degrades_to_static(self):
        registry = StaticLiveEntityRegistry()
        result = asyncio.run(LiveOverlayResolver(registry).resolve(
            "Nordics/towns/garvia.md", {"live_sync_enabled": "true"}, BODY
        ))
        assert result.display_body == BODY
        assert result.is_live is False
        assert result.entity_name == "garvia"

    def test_no_registry_configured(self):
        result = asyncio.run(LiveOverlayResolver(None).resolve(
            "Nordics/towns/garvia.md", {"live_sync_enabled": "true"}, BODY
        ))
        assert result.display_body == BODY

    def test_render_stats_lists_and_timestamp(self):
        text = render_stats(EntitySnapshot(fields={"residents": ["a", "b"], "nested": {"x": 1}}, last_updated="now"))
        assert "- **Residents:** a, b" in text
        assert "Nested" not in text
        assert "_Last updated: now_" in text


class TestConnectionManager:

    def test_client_closed_when_last_holder_releases(self):
        created = []

        def factory():
            client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200)))
            created.append(client)
            return client

        manager = LiveConnectionManager(factory)

        async def scenario():
            first = await manager.acquire()
            second = await manager.acquire()
            assert first is second
            assert manager.ref_count == 2
            await manager.release()
            assert manager.is_open
            await manager.release()
            assert not manager.is_open
            return first

        client = asyncio.run(scenario())
        assert client.is_closed
        assert len(created) == 1

    def test_release_without_acquire_is_harmless(self):
        manager = LiveConnectionManager(httpx.AsyncClient)
        asyncio.run(manager.release())
        assert manager.ref_count == 0


class TestHttpRegistry:

    def _registry(self, handler):
        manager = LiveConnectionManager(lambda: httpx.AsyncClient(transport=httpx.MockTransport(handler)))
        return HttpLiveEntityRegistry("https://live.test/snapshot", manager), manager

    def test_parses_camel_case_payload(self):
        def handler(request):
            assert json.loads(request.content) == {"entity_type": "town", "entity_name": "garvia"}
            return httpx.Response(200, json={"entityData": {"population": 42}, "lastUpdated": "t1"})

        registry, manager = self._registry(handler)
        snapshot = asyncio.run(registry.get_entity_snapshot("town", "garvia"))
        assert snapshot == EntitySnapshot(fields={"population": 42}, last_updated="t1")
        assert manager.ref_count == 0

    def test_error_status_raises_upstream_unavailable(self):
        registry, _ = self._registry(lambda request: httpx.Response(502))
        with pytest.raises(UpstreamUnavailableError):
            asyncio.run(registry.get_entity_snapshot("town", "garvia"))
