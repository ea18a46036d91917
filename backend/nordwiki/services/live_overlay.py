"""Live statistics overlay for town and nation pages.

A page opts in with frontmatter ``live_sync_enabled: true``. The entity it
describes is taken from ``entity_type`` / ``entity_name`` when present, or
inferred from the path (``.../towns/garvia.md`` is the town "garvia").

When a snapshot can be fetched, every ``<!-- live:stats --> ...
<!-- /live:stats -->`` section of the body is replaced by the rendered
statistics. Hand-written prose outside those markers is never touched, and
any registry failure falls back to the stored body.
"""

import asyncio
import logging
import re
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Callable, Mapping, Optional, Protocol

import httpx

from ..core.config import Settings
from ..exceptions import UpstreamUnavailableError
from ..storage.frontmatter import parse_bool
from .discovery import format_title

logger = logging.getLogger(__name__)

ENTITY_FOLDERS = {"towns": "town", "nations": "nation"}
ENTITY_TYPES = frozenset(ENTITY_FOLDERS.values())

STATS_SECTION = re.compile(r"<!--\s*live:stats\s*-->.*?<!--\s*/live:stats\s*-->", re.DOTALL)


@dataclass(frozen=True)
class EntitySnapshot:
    fields: dict[str, Any] = field(default_factory=dict)
    last_updated: Optional[str] = None


@dataclass(frozen=True)
class OverlayResult:
    display_body: str
    snapshot: Optional[EntitySnapshot] = None
    entity_type: Optional[str] = None
    entity_name: Optional[str] = None
    is_live: bool = False


class LiveEntityRegistry(Protocol):
    async def get_entity_snapshot(self, entity_type: str, entity_name: str) -> EntitySnapshot: ...


class LiveConnectionManager:
    """Reference-counted owner of the HTTP client shared by live registry calls.

    Every user acquires the client and releases it when done; the client is
    created on first acquire and closed when the last holder releases it.
    """

    def __init__(self, client_factory: Callable[[], httpx.AsyncClient]):
        self._factory = client_factory
        self._client: Optional[httpx.AsyncClient] = None
        self._refs = 0
        self._lock = asyncio.Lock()

    @property
    def ref_count(self) -> int:
        return self._refs

    @property
    def is_open(self) -> bool:
        return self._client is not None

    async def acquire(self) -> httpx.AsyncClient:
        async with self._lock:
            if self._client is None:
                self._client = self._factory()
                logger.debug("Live registry connection opened")
            self._refs += 1
            return self._client

    async def release(self) -> None:
        async with self._lock:
            if self._refs == 0:
                return
            self._refs -= 1
            if self._refs == 0 and self._client is not None:
                client, self._client = self._client, None
                await client.aclose()
                logger.debug("Live registry connection closed")

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[httpx.AsyncClient]:
        client = await self.acquire()
        try:
            yield client
        finally:
            await self.release()


def connection_manager_from_settings(config: Settings) -> LiveConnectionManager:
    def factory() -> httpx.AsyncClient:
        headers = {"Content-Type": "application/json"}
        if config.live_registry_token:
            headers["Authorization"] = f"Bearer {config.live_registry_token}"
        return httpx.AsyncClient(headers=headers, timeout=config.live_registry_timeout)

    return LiveConnectionManager(factory)


class HttpLiveEntityRegistry:
    """Registry endpoint answering ``POST {entity_type, entity_name}``.

    Response shape: ``{"entityData": {...}, "lastUpdated": "..."}``
    (snake_case keys are accepted too).
    """

    def __init__(self, url: str, connections: LiveConnectionManager):
        self.url = url
        self.connections = connections

    async def get_entity_snapshot(self, entity_type: str, entity_name: str) -> EntitySnapshot:
        try:
            async with self.connections.connection() as client:
                resp = await client.post(
                    self.url,
                    json={"entity_type": entity_type, "entity_name": entity_name},
                )
        except httpx.HTTPError as exc:
            raise UpstreamUnavailableError("live_registry", str(exc)) from exc

        if resp.status_code >= 400:
            raise UpstreamUnavailableError(
                "live_registry", f"Registry answered {resp.status_code} for {entity_type} {entity_name!r}"
            )
        try:
            payload = resp.json()
        except ValueError as exc:
            raise UpstreamUnavailableError("live_registry", "Registry returned invalid JSON") from exc

        data = payload.get("entityData") or payload.get("entity_data") or payload.get("fields") or {}
        return EntitySnapshot(
            fields=dict(data) if isinstance(data, Mapping) else {},
            last_updated=payload.get("lastUpdated") or payload.get("last_updated"),
        )


class StaticLiveEntityRegistry:
    """In-process registry with fixed snapshots keyed by (type, lower-cased name)."""

    def __init__(self, snapshots: Optional[Mapping[tuple[str, str], EntitySnapshot]] = None):
        self.snapshots = {(t, n.lower()): s for (t, n), s in (snapshots or {}).items()}
        self.calls: list[tuple[str, str]] = []

    async def get_entity_snapshot(self, entity_type: str, entity_name: str) -> EntitySnapshot:
        self.calls.append((entity_type, entity_name))
        try:
            return self.snapshots[(entity_type, entity_name.lower())]
        except KeyError:
            raise UpstreamUnavailableError(
                "live_registry", f"No snapshot for {entity_type} {entity_name!r}"
            ) from None


def infer_entity(path: str, index_page_name: str = "README") -> tuple[Optional[str], Optional[str]]:
    """Entity type and name from a page path.

    ``Nordics/towns/garvia.md``        -> ("town", "garvia")
    ``Nordics/towns/garvia/README.md`` -> ("town", "garvia")
    ``Nordics/nations/kingdom_of_albion.md`` -> ("nation", "kingdom of albion")
    """
    parts = [p for p in path.strip("/").split("/") if p]
    if not parts:
        return None, None

    entity_type = None
    type_index = -1
    for i, part in enumerate(parts[:-1]):
        if part.lower() in ENTITY_FOLDERS:
            entity_type = ENTITY_FOLDERS[part.lower()]
            type_index = i
    if entity_type is None:
        return None, None

    stem = parts[-1].rsplit(".", 1)[0]
    if stem.lower() == index_page_name.lower():
        # The index page of the towns/ or nations/ folder itself is not an entity.
        if len(parts) - 2 <= type_index:
            return None, None
        stem = parts[-2]
    return entity_type, stem.replace("_", " ")


def render_stats(snapshot: EntitySnapshot) -> str:
    lines = ["<!-- live:stats -->"]
    for key, value in snapshot.fields.items():
        if isinstance(value, Mapping) or value is None:
            continue
        if isinstance(value, (list, tuple)):
            value = ", ".join(str(v) for v in value)
        lines.append(f"- **{format_title(str(key))}:** {value}")
    if snapshot.last_updated:
        lines.append("")
        lines.append(f"_Last updated: {snapshot.last_updated}_")
    lines.append("<!-- /live:stats -->")
    return "\n".join(lines)


class LiveOverlayResolver:
    def __init__(self, registry: Optional[LiveEntityRegistry], index_page_name: str = "README"):
        self.registry = registry
        self.index_page_name = index_page_name

    def entity_for(self, path: str, frontmatter: Mapping[str, str]) -> tuple[Optional[str], Optional[str]]:
        inferred_type, inferred_name = infer_entity(path, self.index_page_name)
        override_type = (frontmatter.get("entity_type") or "").strip().lower()
        override_name = (frontmatter.get("entity_name") or "").strip()
        entity_type = override_type if override_type in ENTITY_TYPES else inferred_type
        entity_name = override_name or inferred_name
        return entity_type, entity_name

    async def resolve(self, path: str, frontmatter: Mapping[str, str], body: str) -> OverlayResult:
        if not parse_bool(frontmatter.get("live_sync_enabled")):
            return OverlayResult(display_body=body)

        entity_type, entity_name = self.entity_for(path, frontmatter)
        static = OverlayResult(display_body=body, entity_type=entity_type, entity_name=entity_name)
        if self.registry is None or not entity_type or not entity_name:
            return static

        try:
            snapshot = await self.registry.get_entity_snapshot(entity_type, entity_name)
        except Exception as exc:
            logger.warning(
                "Live data unavailable, serving static page",
                extra={"page_path": path, "entity_type": entity_type, "entity_name": entity_name, "error": str(exc)},
            )
            return static

        rendered = render_stats(snapshot)
        return OverlayResult(
            display_body=STATS_SECTION.sub(lambda _m: rendered, body),
            snapshot=snapshot,
            entity_type=entity_type,
            entity_name=entity_name,
            is_live=True,
        )
