"""Structure discovery -- rebuild the page tree from a flat blob namespace.

The blob store only lists the immediate children of a prefix, so the tree is
rebuilt by walking prefixes breadth-first. Storage setups have changed over
the wiki's life (missing root listing permissions, a renamed top folder), so
discovery runs an ordered ladder of strategies and stops at the first one
that finds any page:

    1. list_from_root          -- walk everything under the configured root
    2. probe_known_directories -- walk a fixed list of directory prefixes
    3. probe_known_files       -- fetch a fixed list of page paths directly
    4. probe_alternate_roots   -- run 1-3 again under each alternate root

Every strategy is a plain ``async (store, config) -> Discovered`` function so
each can be exercised on its own. Discovery is a read path: failures shrink
the result, they never propagate.
"""

import asyncio
import logging
import re
from collections import deque
from dataclasses import dataclass, field, replace
from typing import Awaitable, Callable, Iterable, Iterator, Optional

from ..core.config import Settings
from ..exceptions import BlobNotFoundError
from ..storage.blob_store import BlobStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DiscoveryConfig:
    root_prefix: str = ""
    page_extension: str = ".md"
    index_page_name: str = "README"
    known_directories: tuple[str, ...] = ()
    known_files: tuple[str, ...] = ()
    alternate_roots: tuple[str, ...] = ()
    max_prefixes: int = 10000

    @classmethod
    def from_settings(cls, config: Settings) -> "DiscoveryConfig":
        return cls(
            root_prefix=config.wiki_root_prefix.strip("/"),
            page_extension=config.page_extension,
            index_page_name=config.index_page_name,
            known_directories=tuple(config.get_known_directories()),
            known_files=tuple(config.get_known_files()),
            alternate_roots=tuple(config.get_alternate_root_prefixes()),
            max_prefixes=config.discovery_max_prefixes,
        )

    @property
    def index_file_name(self) -> str:
        return f"{self.index_page_name}{self.page_extension}".lower()

    def is_page_file(self, name: str) -> bool:
        return name.lower().endswith(self.page_extension.lower())

    def for_alternate_root(self, root: str) -> "DiscoveryConfig":
        """Same ladder with the top-level folder of every known path swapped for *root*."""
        def swap(path: str) -> str:
            head, sep, rest = path.partition("/")
            return f"{root}/{rest}" if sep else root

        return replace(
            self,
            root_prefix=root,
            known_directories=tuple(dict.fromkeys(swap(d) for d in self.known_directories)),
            known_files=tuple(dict.fromkeys(swap(f) if "/" in f else f"{root}/{f}" for f in self.known_files)),
            alternate_roots=(),
        )


@dataclass
class Discovered:
    """Raw discovery result: page file paths and folder paths."""

    files: set[str] = field(default_factory=set)
    folders: set[str] = field(default_factory=set)

    def __bool__(self) -> bool:
        return bool(self.files)

    def __ior__(self, other: "Discovered") -> "Discovered":
        self.files |= other.files
        self.folders |= other.folders
        return self

    def add_file(self, path: str) -> None:
        self.files.add(path)
        self.add_ancestors(path)

    def add_folder(self, path: str) -> None:
        if path:
            self.folders.add(path)
            self.add_ancestors(path)

    def add_ancestors(self, path: str) -> None:
        parts = path.split("/")
        for depth in range(1, len(parts)):
            self.folders.add("/".join(parts[:depth]))


@dataclass
class TreeNode:
    type: str  # "file" | "folder"
    name: str
    path: str
    title: str
    is_page: bool = False
    is_group: bool = False
    children: list["TreeNode"] = field(default_factory=list)

    @property
    def is_folder(self) -> bool:
        return self.type == "folder"


@dataclass
class PageStub:
    """Page metadata known from discovery alone; the body is loaded on open."""

    id: str
    title: str
    slug: str
    category_id: str
    body: str = ""
    status: str = "published"


@dataclass
class Category:
    id: str
    title: str
    slug: str
    children: list["Category"] = field(default_factory=list)
    pages: list[PageStub] = field(default_factory=list)


Strategy = Callable[[BlobStore, DiscoveryConfig], Awaitable[Discovered]]


def format_title(name: str) -> str:
    """``northstar-forest_fire`` -> ``Northstar Forest Fire``."""
    spaced = re.sub(r"[-_]", " ", name)
    return re.sub(r"\b\w", lambda m: m.group(0).upper(), spaced).strip()


def strip_extension(name: str, extension: str) -> str:
    if name.lower().endswith(extension.lower()):
        return name[: -len(extension)]
    return name


def page_slug(path: str, extension: str = ".md") -> str:
    """Unique slug from the full path: ``Nordics/towns/garvia.md`` -> ``Nordics-towns-garvia``."""
    return strip_extension(path, extension).replace("/", "-")


def page_title(path: str, extension: str = ".md") -> str:
    return format_title(strip_extension(path.rsplit("/", 1)[-1], extension))


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------

async def walk_prefixes(
    store: BlobStore,
    starts: Iterable[str],
    config: DiscoveryConfig,
) -> Discovered:
    """Breadth-first walk below every prefix in *starts*.

    A prefix whose listing fails is treated as empty; its siblings are still
    walked. A start prefix only counts as a folder when it lists something.
    """
    found = Discovered()
    queue: deque[str] = deque(p.strip("/") for p in starts)
    seen: set[str] = set()

    while queue:
        prefix = queue.popleft()
        if prefix in seen:
            continue
        if len(seen) >= config.max_prefixes:
            logger.warning(
                "Discovery prefix limit reached",
                extra={"max_prefixes": config.max_prefixes, "pending": len(queue) + 1},
            )
            break
        seen.add(prefix)

        try:
            entries = await store.list(prefix)
        except Exception as exc:
            logger.warning(
                "Listing failed, skipping branch",
                extra={"prefix": prefix, "error": str(exc)},
            )
            continue

        if not entries:
            continue
        found.add_folder(prefix)

        for entry in entries:
            path = f"{prefix}/{entry.name}" if prefix else entry.name
            if entry.is_file:
                if config.is_page_file(entry.name):
                    found.add_file(path)
            else:
                found.add_folder(path)
                queue.append(path)

    return found


async def list_from_root(store: BlobStore, config: DiscoveryConfig) -> Discovered:
    return await walk_prefixes(store, [config.root_prefix], config)


async def probe_known_directories(store: BlobStore, config: DiscoveryConfig) -> Discovered:
    return await walk_prefixes(store, config.known_directories, config)


async def _page_exists(store: BlobStore, path: str) -> bool:
    try:
        await store.get(path)
    except BlobNotFoundError:
        logger.debug("Known file missing", extra={"page_path": path})
        return False
    except Exception as exc:
        logger.warning("Known file probe failed", extra={"page_path": path, "error": str(exc)})
        return False
    return True


async def probe_known_files(store: BlobStore, config: DiscoveryConfig) -> Discovered:
    found = Discovered()
    paths = [p.strip("/") for p in config.known_files if p.strip("/")]
    hits = await asyncio.gather(*(_page_exists(store, p) for p in paths))
    for path, hit in zip(paths, hits):
        if hit:
            found.add_file(path)
    return found


async def probe_alternate_roots(store: BlobStore, config: DiscoveryConfig) -> Discovered:
    for root in config.alternate_roots:
        alt = config.for_alternate_root(root.strip("/"))
        found = await run_ladder(store, alt, PRIMARY_STRATEGIES)
        if found:
            logger.info("Pages found under alternate root", extra={"root": root})
            return found
    return Discovered()


PRIMARY_STRATEGIES: tuple[Strategy, ...] = (
    list_from_root,
    probe_known_directories,
    probe_known_files,
)

DEFAULT_STRATEGIES: tuple[Strategy, ...] = PRIMARY_STRATEGIES + (probe_alternate_roots,)


async def run_ladder(
    store: BlobStore,
    config: DiscoveryConfig,
    strategies: Iterable[Strategy],
) -> Discovered:
    """Run *strategies* in order until one finds a page; union everything found."""
    found = Discovered()
    for strategy in strategies:
        try:
            found |= await strategy(store, config)
        except Exception:
            logger.exception("Discovery strategy failed", extra={"strategy": strategy.__name__})
            continue
        if found:
            logger.debug(
                "Discovery strategy succeeded",
                extra={"strategy": strategy.__name__, "pages": len(found.files)},
            )
            break
    return found


# ---------------------------------------------------------------------------
# Tree assembly
# ---------------------------------------------------------------------------

def _sort_key(node: TreeNode) -> tuple:
    return (not node.is_folder, node.name.lower(), node.name)


def assemble_tree(found: Discovered, config: DiscoveryConfig) -> list[TreeNode]:
    """Turn flat paths into nested nodes.

    Folders are created shallowest-first so a parent exists before its
    children attach. A node whose parent folder is unknown is attached at
    the root rather than dropped.
    """
    roots: list[TreeNode] = []
    folders: dict[str, TreeNode] = {}

    for path in sorted(found.folders, key=lambda p: (p.count("/"), p)):
        name = path.rsplit("/", 1)[-1]
        node = TreeNode(type="folder", name=name, path=path, title=format_title(name))
        folders[path] = node
        parent = folders.get(path.rpartition("/")[0]) if "/" in path else None
        if parent is None:
            if "/" in path:
                logger.debug("Orphan folder attached at root", extra={"folder": path})
            roots.append(node)
        else:
            parent.children.append(node)

    for path in sorted(found.files):
        name = path.rsplit("/", 1)[-1]
        node = TreeNode(
            type="file",
            name=name,
            path=path,
            title=format_title(strip_extension(name, config.page_extension)),
            is_page=True,
        )
        parent = folders.get(path.rpartition("/")[0]) if "/" in path else None
        if parent is None:
            if "/" in path:
                logger.debug("Orphan page attached at root", extra={"page_path": path})
            roots.append(node)
        else:
            parent.children.append(node)

    for node in folders.values():
        node.is_page = any(
            not child.is_folder and child.name.lower() == config.index_file_name
            for child in node.children
        )
        node.is_group = not node.is_page
        node.children.sort(key=_sort_key)

    roots.sort(key=_sort_key)
    return roots


def iter_pages(tree: Iterable[TreeNode]) -> Iterator[TreeNode]:
    """All page (file) nodes, depth-first in display order."""
    stack = list(reversed(list(tree)))
    while stack:
        node = stack.pop()
        if node.is_folder:
            stack.extend(reversed(node.children))
        else:
            yield node


def to_categories(tree: Iterable[TreeNode], extension: str = ".md") -> list[Category]:
    """Categories for the folders of *tree*, each with page stubs for its own pages.

    Pages sitting at the root belong to no folder and are only reachable
    through ``iter_pages``.
    """
    def convert(folder: TreeNode) -> Category:
        category = Category(
            id=folder.path,
            title=folder.title,
            slug=folder.path.lower().replace(" ", "-").replace("/", "-"),
        )
        for child in folder.children:
            if child.is_folder:
                category.children.append(convert(child))
            else:
                category.pages.append(
                    PageStub(
                        id=child.path,
                        title=child.title,
                        slug=page_slug(child.path, extension),
                        category_id=folder.path,
                    )
                )
        return category

    return [convert(node) for node in tree if node.is_folder]


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

class StructureDiscoveryEngine:
    """Discovers the tree once, caches it, and rebuilds it on demand.

    Concurrent callers of ``get_tree`` while a discovery is running share
    that discovery.
    """

    def __init__(
        self,
        store: BlobStore,
        config: DiscoveryConfig,
        strategies: Optional[Iterable[Strategy]] = None,
    ):
        self.store = store
        self.config = config
        self.strategies = tuple(strategies) if strategies is not None else DEFAULT_STRATEGIES
        self._found: Optional[Discovered] = None
        self._tree: Optional[list[TreeNode]] = None
        self._inflight: Optional[asyncio.Future] = None

    async def discover(self) -> list[TreeNode]:
        """Run the strategy ladder and assemble a fresh tree. Never raises."""
        try:
            found = await run_ladder(self.store, self.config, self.strategies)
            tree = assemble_tree(found, self.config)
        except Exception:
            logger.exception("Discovery failed")
            return []
        self._found = found
        self._tree = tree
        logger.info(
            "Discovery complete",
            extra={"pages": len(found.files), "folders": len(found.folders)},
        )
        return tree

    async def get_tree(self, refresh: bool = False) -> list[TreeNode]:
        if self._tree is not None and not refresh:
            return self._tree
        if self._inflight is None:
            self._inflight = asyncio.ensure_future(self.discover())
            self._inflight.add_done_callback(self._clear_inflight)
        return await asyncio.shield(self._inflight)

    async def refresh(self) -> list[TreeNode]:
        return await self.get_tree(refresh=True)

    def _clear_inflight(self, task: asyncio.Future) -> None:
        if self._inflight is task:
            self._inflight = None

    def add_page(self, path: str) -> None:
        """Record a page created after discovery without re-listing the store."""
        if self._found is None:
            return
        self._found.add_file(path.strip("/"))
        self._tree = assemble_tree(self._found, self.config)

    def remove_page(self, path: str) -> None:
        if self._found is None:
            return
        self._found.files.discard(path.strip("/"))
        self._tree = assemble_tree(self._found, self.config)

    def categories(self, tree: list[TreeNode]) -> list[Category]:
        return to_categories(tree, self.config.page_extension)

    async def search(self, query: str) -> list[PageStub]:
        """Pages whose title or slug contains *query*, case-insensitive. Bodies are not loaded."""
        needle = query.strip().lower()
        if not needle:
            return []
        results = []
        for node in iter_pages(await self.get_tree()):
            slug = page_slug(node.path, self.config.page_extension)
            if needle in node.title.lower() or needle in slug.lower():
                results.append(
                    PageStub(
                        id=node.path,
                        title=node.title,
                        slug=slug,
                        category_id=node.path.rpartition("/")[0],
                    )
                )
        return results
