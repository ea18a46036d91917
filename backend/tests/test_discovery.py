"""Tests for structure discovery: strategies, ladder, tree assembly, engine."""

import asyncio

import pytest

from nordwiki.exceptions import UpstreamUnavailableError
from nordwiki.services.discovery import (
    Discovered,
    DiscoveryConfig,
    StructureDiscoveryEngine,
    assemble_tree,
    format_title,
    iter_pages,
    list_from_root,
    page_slug,
    probe_alternate_roots,
    probe_known_directories,
    probe_known_files,
    run_ladder,
    to_categories,
)
from nordwiki.storage import InMemoryBlobStore

CONFIG = DiscoveryConfig(
    known_directories=("Nordics", "Nordics/towns"),
    known_files=("Nordics/README.md", "Nordics/towns/garvia/README.md"),
    alternate_roots=("the-world",),
)


class NoRootListingStore(InMemoryBlobStore):
    """Store whose root prefix (and optionally more) cannot be listed."""

    def __init__(self, blobs, unlistable=("",)):
        super().__init__(blobs)
        self.unlistable = set(unlistable)
        self.listed: list[str] = []

    async def list(self, prefix):
        self.listed.append(prefix)
        if prefix in self.unlistable:
            raise UpstreamUnavailableError("blob_store", "listing denied")
        return await super().list(prefix)


class NoListingStore(NoRootListingStore):
    async def list(self, prefix):
        raise UpstreamUnavailableError("blob_store", "listing denied")


def _all_paths(nodes):
    for node in nodes:
        yield node
        yield from _all_paths(node.children)


def _find(nodes, path):
    return next(n for n in _all_paths(nodes) if n.path == path)


class TestNordicsExample:

    def test_readme_folders_are_pages_and_others_groups(self):
        store = InMemoryBlobStore({
            "Nordics/README.md": "# Nordics",
            "Nordics/towns/garvia/README.md": "# Garvia",
        })
        tree = asyncio.run(StructureDiscoveryEngine(store, DiscoveryConfig()).discover())

        assert [n.name for n in tree] == ["Nordics"]
        nordics = tree[0]
        assert nordics.type == "folder" and nordics.is_page and not nordics.is_group
        towns = _find(tree, "Nordics/towns")
        assert towns.is_group and not towns.is_page
        garvia = _find(tree, "Nordics/towns/garvia")
        assert garvia.is_page

    def test_path_equals_ancestor_names_joined(self):
        store = InMemoryBlobStore({
            "Nordics/README.md": "x",
            "Nordics/towns/garvia/README.md": "x",
            "Nordics/nations/albion.md": "x",
        })
        tree = asyncio.run(StructureDiscoveryEngine(store, DiscoveryConfig()).discover())

        def check(nodes, ancestors):
            for node in nodes:
                assert node.path == "/".join(ancestors + [node.name])
                check(node.children, ancestors + [node.name])

        check(tree, [])

    def test_children_sorted_folders_first_then_name(self):
        store = InMemoryBlobStore({
            "Nordics/zeta.md": "x",
            "Nordics/README.md": "x",
            "Nordics/towns/a.md": "x",
            "Nordics/alpha/b.md": "x",
        })
        tree = asyncio.run(StructureDiscoveryEngine(store, DiscoveryConfig()).discover())
        assert [c.name for c in tree[0].children] == ["alpha", "towns", "README.md", "zeta.md"]

    def test_readme_match_is_case_insensitive(self):
        store = InMemoryBlobStore({"Nordics/readme.md": "x"})
        tree = asyncio.run(StructureDiscoveryEngine(store, DiscoveryConfig()).discover())
        assert tree[0].is_page

    def test_non_page_files_ignored(self):
        store = InMemoryBlobStore({"Nordics/map.png": "x", "Nordics/a.md": "x"})
        tree = asyncio.run(StructureDiscoveryEngine(store, DiscoveryConfig()).discover())
        assert [c.name for c in tree[0].children] == ["a.md"]


class TestStrategies:

    def test_list_from_root_walks_breadth_first(self):
        store = InMemoryBlobStore({"a/b/c/d.md": "x"})
        found = asyncio.run(list_from_root(store, DiscoveryConfig()))
        assert found.files == {"a/b/c/d.md"}
        assert found.folders == {"a", "a/b", "a/b/c"}

    def test_failed_listing_empties_only_that_branch(self):
        store = NoRootListingStore(
            {"Nordics/towns/garvia.md": "x", "Nordics/nations/albion.md": "x"},
            unlistable=("Nordics/towns",),
        )
        found = asyncio.run(list_from_root(store, DiscoveryConfig()))
        assert found.files == {"Nordics/nations/albion.md"}

    def test_known_directories(self):
        store = NoRootListingStore({"Nordics/towns/garvia.md": "x"})
        found = asyncio.run(probe_known_directories(store, CONFIG))
        assert "Nordics/towns/garvia.md" in found.files

    def test_known_files_infer_folders(self):
        store = NoListingStore({"Nordics/towns/garvia/README.md": "x"})
        found = asyncio.run(probe_known_files(store, CONFIG))
        assert found.files == {"Nordics/towns/garvia/README.md"}
        assert found.folders == {"Nordics", "Nordics/towns", "Nordics/towns/garvia"}

    def test_alternate_root_swaps_top_folder(self):
        store = NoListingStore({"the-world/towns/garvia/README.md": "x"})
        found = asyncio.run(probe_alternate_roots(store, CONFIG))
        assert found.files == {"the-world/towns/garvia/README.md"}

    def test_max_prefixes_bounds_the_walk(self):
        store = InMemoryBlobStore({f"d{i}/p.md": "x" for i in range(10)})
        found = asyncio.run(list_from_root(store, DiscoveryConfig(max_prefixes=3)))
        assert len(found.files) == 2


class TestLadder:

    def test_stops_at_first_strategy_with_pages(self):
        calls = []

        async def empty(store, config):
            calls.append("empty")
            return Discovered()

        async def hit(store, config):
            calls.append("hit")
            found = Discovered()
            found.add_file("a/b.md")
            return found

        async def never(store, config):
            calls.append("never")
            return Discovered()

        found = asyncio.run(run_ladder(InMemoryBlobStore(), CONFIG, [empty, hit, never]))
        assert calls == ["empty", "hit"]
        assert found.files == {"a/b.md"}

    def test_failing_strategy_is_skipped(self):
        async def broken(store, config):
            raise RuntimeError("boom")

        async def hit(store, config):
            found = Discovered()
            found.add_file("x.md")
            return found

        found = asyncio.run(run_ladder(InMemoryBlobStore(), CONFIG, [broken, hit]))
        assert found.files == {"x.md"}

    def test_root_listing_denied_falls_back_to_known_files(self):
        store = NoListingStore({"Nordics/README.md": "x"})
        tree = asyncio.run(StructureDiscoveryEngine(store, CONFIG).discover())
        assert tree[0].path == "Nordics" and tree[0].is_page

    def test_total_failure_yields_empty_tree(self):
        tree = asyncio.run(StructureDiscoveryEngine(NoListingStore({}), CONFIG).discover())
        assert tree == []


class TestAssembly:

    def test_orphans_attach_at_root(self):
        found = Discovered(files={"x/y/z.md"}, folders={"x/y"})
        tree = assemble_tree(found, DiscoveryConfig())
        assert [n.path for n in tree] == ["x/y"]
        assert [c.path for c in tree[0].children] == ["x/y/z.md"]

    def test_iter_pages_and_categories(self):
        found = Discovered()
        for path in ("Nordics/README.md", "Nordics/towns/garvia.md", "top.md"):
            found.add_file(path)
        tree = assemble_tree(found, DiscoveryConfig())

        assert [p.path for p in iter_pages(tree)] == [
            "Nordics/towns/garvia.md", "Nordics/README.md", "top.md",
        ]
        categories = to_categories(tree)
        assert [c.id for c in categories] == ["Nordics"]
        towns = categories[0].children[0]
        assert towns.pages[0].slug == "Nordics-towns-garvia"
        assert towns.pages[0].title == "Garvia"
        assert towns.pages[0].body == ""

    def test_title_formatting(self):
        assert format_title("northstar-forest_fire") == "Northstar Forest Fire"
        assert page_slug("Nordics/towns/garvia.md") == "Nordics-towns-garvia"


class TestEngine:

    def test_tree_is_cached_until_refresh(self):
        store = NoRootListingStore({"a/b.md": "x"}, unlistable=())
        engine = StructureDiscoveryEngine(store, DiscoveryConfig())

        async def scenario():
            await engine.get_tree()
            listed_once = len(store.listed)
            await engine.get_tree()
            assert len(store.listed) == listed_once
            await store.put("a/c.md", b"x")
            return await engine.refresh()

        tree = asyncio.run(scenario())
        assert [c.name for c in tree[0].children] == ["b.md", "c.md"]

    def test_concurrent_discoveries_collapse(self):
        store = NoRootListingStore({"a/b.md": "x"}, unlistable=())
        engine = StructureDiscoveryEngine(store, DiscoveryConfig())

        async def scenario():
            return await asyncio.gather(engine.get_tree(), engine.get_tree(), engine.get_tree())

        trees = asyncio.run(scenario())
        assert trees[0] is trees[1] is trees[2]
        assert store.listed.count("") == 1

    def test_add_and_remove_page_without_relisting(self):
        engine = StructureDiscoveryEngine(InMemoryBlobStore({"a/b.md": "x"}), DiscoveryConfig())

        async def scenario():
            await engine.get_tree()
            engine.add_page("a/new.md")
            with_new = [c.name for c in (await engine.get_tree())[0].children]
            engine.remove_page("a/b.md")
            without_old = [c.name for c in (await engine.get_tree())[0].children]
            return with_new, without_old

        with_new, without_old = asyncio.run(scenario())
        assert with_new == ["b.md", "new.md"]
        assert without_old == ["new.md"]

    @pytest.mark.parametrize("query", ["garvia", "GARV", "towns-gar"])
    def test_search_matches_title_or_slug(self, query):
        store = InMemoryBlobStore({"Nordics/towns/garvia.md": "x", "Nordics/README.md": "x"})
        results = asyncio.run(StructureDiscoveryEngine(store, DiscoveryConfig()).search(query))
        assert [r.id for r in results] == ["Nordics/towns/garvia.md"]
