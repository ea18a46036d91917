"""On-demand cache of decoded page blobs.

Discovery only learns that a page exists; its body is fetched the first time
the page is opened. Concurrent requests for the same path share one fetch.

The cache is unbounded: a wiki has few enough pages that every opened body
fits in memory. A large corpus would need an eviction policy here.
"""

import asyncio
import logging
from dataclasses import dataclass, field

from .blob_store import BlobStore, normalize_key
from .frontmatter import FrontmatterCodec
from ..exceptions import BlobNotFoundError, PageNotFoundError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CachedContent:
    frontmatter: dict[str, str] = field(default_factory=dict)
    body: str = ""


class ContentCache:
    """Path -> CachedContent, loaded lazily from the blob store."""

    def __init__(self, store: BlobStore, codec: FrontmatterCodec):
        self.store = store
        self.codec = codec
        self._entries: dict[str, CachedContent] = {}
        self._inflight: dict[str, asyncio.Future] = {}
        # Bumped on invalidate so a load that started earlier is not stored.
        self._generations: dict[str, int] = {}

    def __contains__(self, path: str) -> bool:
        return normalize_key(path) in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    async def get(self, path: str) -> CachedContent:
        """Return the decoded page at *path*, fetching it on first use.

        Raises:
            PageNotFoundError: No blob exists at *path*.
            UpstreamUnavailableError: The blob store failed.
        """
        key = normalize_key(path)
        cached = self._entries.get(key)
        if cached is not None:
            return cached

        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._load(key, self._generations.get(key, 0)))
            self._inflight[key] = task
            task.add_done_callback(lambda done, k=key: self._forget(k, done))
        # One waiter being cancelled must not cancel the shared fetch.
        return await asyncio.shield(task)

    async def get_body(self, path: str) -> str:
        return (await self.get(path)).body

    def invalidate(self, path: str) -> None:
        key = normalize_key(path)
        self._entries.pop(key, None)
        self._inflight.pop(key, None)
        self._generations[key] = self._generations.get(key, 0) + 1
        logger.debug("Content cache invalidated", extra={"page_path": key})

    def clear(self) -> None:
        for key in list(self._entries) + list(self._inflight):
            self._generations[key] = self._generations.get(key, 0) + 1
        self._entries.clear()
        self._inflight.clear()

    def _forget(self, key: str, task: asyncio.Future) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]

    async def _load(self, key: str, generation: int) -> CachedContent:
        try:
            blob = await self.store.get(key)
        except BlobNotFoundError:
            raise PageNotFoundError(key) from None

        frontmatter, body = self.codec.decode(blob)
        content = CachedContent(frontmatter=frontmatter, body=body)
        if self._generations.get(key, 0) == generation:
            self._entries[key] = content
        logger.debug("Content loaded", extra={"page_path": key, "bytes": len(blob)})
        return content
