"""Process-wide collaborators shared by every request.

The database session is per request (``get_db``); everything that must
outlive a request lives on one ``WikiRuntime`` stored in ``app.state``:
the blob store, the content cache, the discovery engine with its cached
tree, the live overlay and its shared connection, and the per-page save
locks.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional

from fastapi import Request

from .config import Settings
from ..services.discovery import DiscoveryConfig, StructureDiscoveryEngine
from ..services.live_overlay import (
    HttpLiveEntityRegistry,
    LiveConnectionManager,
    LiveEntityRegistry,
    LiveOverlayResolver,
    connection_manager_from_settings,
)
from ..storage.blob_store import BlobStore, create_blob_store
from ..storage.content_cache import ContentCache
from ..storage.frontmatter import FrontmatterCodec

logger = logging.getLogger(__name__)


class PageLocks:
    """One asyncio.Lock per page id; serializes saves and merges of a page.

    The locks live in this process only. With several workers, two saves of
    one page can still overlap, and the unique ``(page_id, revision_number)``
    constraint on revisions is what stops the second commit (including a
    second merge of the same suggestion).
    """

    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = {}

    def for_page(self, page_id: str) -> asyncio.Lock:
        lock = self._locks.get(page_id)
        if lock is None:
            lock = self._locks[page_id] = asyncio.Lock()
        return lock


@dataclass
class WikiRuntime:
    settings: Settings
    store: BlobStore
    codec: FrontmatterCodec
    cache: ContentCache
    discovery: StructureDiscoveryEngine
    overlay: LiveOverlayResolver
    page_locks: PageLocks = field(default_factory=PageLocks)
    connections: Optional[LiveConnectionManager] = None

    @classmethod
    def build(
        cls,
        config: Settings,
        store: Optional[BlobStore] = None,
        registry: Optional[LiveEntityRegistry] = None,
    ) -> "WikiRuntime":
        """Wire the runtime from settings; *store* and *registry* override the configured ones."""
        store = store if store is not None else create_blob_store(config)
        codec = FrontmatterCodec()

        connections = None
        if registry is None and config.live_registry_url:
            connections = connection_manager_from_settings(config)
            registry = HttpLiveEntityRegistry(config.live_registry_url, connections)

        return cls(
            settings=config,
            store=store,
            codec=codec,
            cache=ContentCache(store, codec),
            discovery=StructureDiscoveryEngine(store, DiscoveryConfig.from_settings(config)),
            overlay=LiveOverlayResolver(registry, index_page_name=config.index_page_name),
            connections=connections,
        )

    async def startup(self) -> None:
        # Hold one reference for the app's lifetime so the registry
        # connection is reused between requests.
        if self.connections is not None:
            await self.connections.acquire()

    async def shutdown(self) -> None:
        if self.connections is not None:
            await self.connections.release()
        aclose = getattr(self.store, "aclose", None)
        if aclose is not None:
            await aclose()
        logger.info("Runtime shut down")


def get_runtime(request: Request) -> WikiRuntime:
    """FastAPI dependency returning the app's runtime."""
    return request.app.state.runtime
