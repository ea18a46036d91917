"""Tests for the lazy content cache."""

import asyncio

import pytest

from nordwiki.exceptions import PageNotFoundError
from nordwiki.storage import ContentCache, FrontmatterCodec, InMemoryBlobStore


class CountingStore(InMemoryBlobStore):
    """In-memory store that counts and slows down reads."""

    def __init__(self, blobs):
        super().__init__(blobs)
        self.gets = 0

    async def get(self, path):
        self.gets += 1
        await asyncio.sleep(0.01)
        return await super().get(path)


class TestContentCache:

    def test_loads_once_and_decodes(self):
        store = CountingStore({"a.md": "---\ntitle: A\n---\nbody"})
        cache = ContentCache(store, FrontmatterCodec())

        async def scenario():
            first = await cache.get("a.md")
            second = await cache.get("/a.md")
            return first, second

        first, second = asyncio.run(scenario())
        assert first.frontmatter == {"title": "A"}
        assert first.body == "body"
        assert second is first
        assert store.gets == 1
        assert "a.md" in cache

    def test_concurrent_loads_share_one_fetch(self):
        store = CountingStore({"a.md": "body"})
        cache = ContentCache(store, FrontmatterCodec())

        async def scenario():
            return await asyncio.gather(*(cache.get_body("a.md") for _ in range(5)))

        assert asyncio.run(scenario()) == ["body"] * 5
        assert store.gets == 1

    def test_invalidate_forces_reload(self):
        store = CountingStore({"a.md": "v1"})
        cache = ContentCache(store, FrontmatterCodec())

        async def scenario():
            await cache.get("a.md")
            await store.put("a.md", b"v2")
            cache.invalidate("a.md")
            return await cache.get_body("a.md")

        assert asyncio.run(scenario()) == "v2"
        assert store.gets == 2

    def test_invalidate_during_load_does_not_store_stale_content(self):
        store = CountingStore({"a.md": "v1"})
        cache = ContentCache(store, FrontmatterCodec())

        async def scenario():
            pending = asyncio.ensure_future(cache.get("a.md"))
            await asyncio.sleep(0)
            cache.invalidate("a.md")
            await pending

        asyncio.run(scenario())
        assert "a.md" not in cache

    def test_missing_page_raises(self):
        cache = ContentCache(InMemoryBlobStore(), FrontmatterCodec())
        with pytest.raises(PageNotFoundError):
            asyncio.run(cache.get("missing.md"))

    def test_clear(self):
        cache = ContentCache(InMemoryBlobStore({"a.md": "x"}), FrontmatterCodec())
        asyncio.run(cache.get("a.md"))
        cache.clear()
        assert len(cache) == 0
