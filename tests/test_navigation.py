"""Tests for navigation module."""

from pathlib import Path

import pytest

from guidebook.core.cache import FileCache
from guidebook.core.navigation import (
    NavigationBuilder,
    NavigationTree,
    NavItem,
    build_navigation,
    build_sidebar_navigation,
)
from guidebook.core.sidebars import (
    AutogeneratedItem,
    CategoryItem,
    DocItem,
    LinkItem,
    SidebarError,
)
from guidebook.core.site import Site, SiteBuilder, SiteLoader

from tests.helpers import write_doc


@pytest.fixture
def site(docs_dir: Path) -> Site:
    write_doc(docs_dir, "index.md", "# Welcome\n")
    write_doc(docs_dir, "01-fundamentals/index.md", "# Fundamentals\n")
    write_doc(docs_dir, "01-fundamentals/solid/_category_.yml", "label: SOLID\ncollapsed: false\n")
    write_doc(docs_dir, "01-fundamentals/solid/01-srp.md", "# Single Responsibility\n")
    write_doc(docs_dir, "01-fundamentals/solid/02-ocp.md", "# Open/Closed\n")
    write_doc(docs_dir, "java/streams.md", "# Streams\n")
    write_doc(docs_dir, "java/records.md", "# Records\n")
    return SiteLoader(docs_dir).load()


class TestNavItem:
    """Tests for NavItem serialization."""

    def test__to_dict__leaf__omits_optional_fields(self) -> None:
        """Leave out children, collapsed and kind for plain docs."""
        item = NavItem(title="Guide", path="/guide")

        assert item.to_dict() == {"title": "Guide", "path": "/guide"}

    def test__to_dict__category__includes_children(self) -> None:
        """Include nested children, collapsed flag and kind."""
        item = NavItem(
            title="SOLID",
            path=None,
            children=[NavItem(title="SRP", path="/solid/srp")],
            collapsed=True,
            kind="category",
        )

        assert item.to_dict() == {
            "title": "SOLID",
            "children": [{"title": "SRP", "path": "/solid/srp"}],
            "collapsed": True,
            "kind": "category",
        }

    def test__from_dict__restores_item(self) -> None:
        """Rebuild items from cached dictionaries."""
        item = NavItem(
            title="SOLID",
            path="/solid",
            children=[NavItem(title="SRP", path="/solid/srp")],
            collapsed=False,
            kind="category",
        )

        assert NavItem.from_dict(dict(item.to_dict())) == item

    def test__tree_find__skips_links(self) -> None:
        """Find items by route, ignoring external links."""
        tree = NavigationTree(
            items=[
                NavItem(title="Elsewhere", path="/guide", kind="link"),
                NavItem(title="Docs", path="/docs", children=[NavItem(title="Guide", path="/guide")]),
            ]
        )

        found = tree.find("guide/")

        assert found is not None
        assert found.title == "Guide"
        assert tree.find("/missing") is None


class TestBuildNavigation:
    """Tests for build_navigation()."""

    def test__empty_site__returns_empty(self, tmp_path: Path) -> None:
        """Return an empty list for an empty site."""
        assert build_navigation(SiteBuilder(tmp_path).build()) == []

    def test__site__mirrors_hierarchy(self, site: Site) -> None:
        """Build the tree in site order with categories marked."""
        nav = build_navigation(site)

        assert [item.to_dict() for item in nav] == [
            {
                "title": "Fundamentals",
                "path": "/fundamentals",
                "children": [
                    {
                        "title": "SOLID",
                        "path": "/fundamentals/solid",
                        "children": [
                            {"title": "Single Responsibility", "path": "/fundamentals/solid/srp"},
                            {"title": "Open/Closed", "path": "/fundamentals/solid/ocp"},
                        ],
                        "collapsed": False,
                        "kind": "category",
                    }
                ],
                "collapsed": True,
                "kind": "category",
            },
            {"title": "Welcome", "path": "/"},
            {"title": "Records", "path": "/java/records"},
            {"title": "Streams", "path": "/java/streams"},
        ]

    def test__root_path__returns_section_children(self, site: Site) -> None:
        """Use the section's children as roots."""
        nav = build_navigation(site, "/fundamentals/solid")

        assert [item.path for item in nav] == ["/fundamentals/solid/srp", "/fundamentals/solid/ocp"]


class TestBuildSidebarNavigation:
    """Tests for build_sidebar_navigation()."""

    def test__doc_items__use_page_titles_and_labels(self, site: Site) -> None:
        """Resolve doc ids, preferring explicit labels."""
        nav = build_sidebar_navigation(
            site,
            [DocItem(id="index"), DocItem(id="fundamentals/solid/ocp", label="OCP")],
        )

        assert [(item.title, item.path) for item in nav] == [("Welcome", "/"), ("OCP", "/fundamentals/solid/ocp")]

    def test__category_and_link__resolved(self, site: Site) -> None:
        """Build categories with optional landing pages and external links."""
        nav = build_sidebar_navigation(
            site,
            [
                CategoryItem(
                    label="Principles",
                    items=[DocItem(id="fundamentals/solid/srp")],
                    collapsed=False,
                    link="fundamentals/index",
                ),
                LinkItem(label="GitHub", href="https://github.com/example/guide"),
            ],
        )

        assert [item.to_dict() for item in nav] == [
            {
                "title": "Principles",
                "path": "/fundamentals",
                "children": [{"title": "Single Responsibility", "path": "/fundamentals/solid/srp"}],
                "collapsed": False,
                "kind": "category",
            },
            {"title": "GitHub", "path": "https://github.com/example/guide", "kind": "link"},
        ]

    def test__autogenerated_category_dir__expands_children(self, site: Site) -> None:
        """Expand a directory that is a category into its children."""
        nav = build_sidebar_navigation(site, [AutogeneratedItem(dir="01-fundamentals/solid")])

        assert [item.title for item in nav] == ["Single Responsibility", "Open/Closed"]

    def test__autogenerated_plain_dir__expands_pages(self, site: Site) -> None:
        """Expand a transparent directory into its top-level pages."""
        nav = build_sidebar_navigation(site, [AutogeneratedItem(dir="java")])

        assert [item.path for item in nav] == ["/java/records", "/java/streams"]

    def test__autogenerated_root__expands_everything(self, site: Site) -> None:
        """Treat an empty dir as the whole site."""
        nav = build_sidebar_navigation(site, [AutogeneratedItem(dir="")])

        assert nav == build_navigation(site)

    def test__unknown_ids__raise_error_listing_all(self, site: Site) -> None:
        """Report every missing doc id at once."""
        items = [
            DocItem(id="missing/one"),
            CategoryItem(label="X", link="missing/two", items=[DocItem(id="missing/three")]),
        ]

        with pytest.raises(SidebarError, match="missing/one, missing/two, missing/three"):
            build_sidebar_navigation(site, items)


class TestNavigationBuilder:
    """Tests for NavigationBuilder."""

    def test__build__autogenerated_without_sidebars(self, site: Site, docs_dir: Path) -> None:
        """Use the directory tree when no sidebars file is configured."""
        tree = NavigationBuilder(SiteLoader(docs_dir)).build()

        assert [item.title for item in tree.items] == ["Fundamentals", "Welcome", "Records", "Streams"]

    def test__build__uses_first_sidebar(self, site: Site, docs_dir: Path, tmp_path: Path) -> None:
        """Use the first sidebar of the sidebars file."""
        sidebars = tmp_path / "sidebars.yml"
        sidebars.write_text("main:\n  - java/streams\n  - index\nother:\n  - java/records\n")

        tree = NavigationBuilder(SiteLoader(docs_dir), sidebars).build()

        assert [item.path for item in tree.items] == ["/java/streams", "/"]

    def test__build__caches_tree(self, site: Site, docs_dir: Path, tmp_path: Path) -> None:
        """Store the tree and reuse it on the next build."""
        cache = FileCache(tmp_path / ".cache")
        builder = NavigationBuilder(SiteLoader(docs_dir), cache=cache)

        first = builder.build()
        write_doc(docs_dir, "new.md", "# New\n")
        second = builder.build()

        assert cache.get_navigation() == [item.to_dict() for item in first.items]
        assert second.to_dict() == first.to_dict()

    def test__invalidate__rebuilds_from_disk(self, site: Site, docs_dir: Path, tmp_path: Path) -> None:
        """Pick up new documents after invalidation."""
        builder = NavigationBuilder(SiteLoader(docs_dir), cache=FileCache(tmp_path / ".cache"))
        builder.build()
        write_doc(docs_dir, "new.md", "# New\n")

        builder.invalidate()
        tree = builder.build()

        assert tree.find("/new") is not None
        assert builder.build_site().get_page("/new") is not None

    def test__build_without_cache__reloads_site(self, site: Site, docs_dir: Path) -> None:
        """Read the site fresh when use_cache is False."""
        builder = NavigationBuilder(SiteLoader(docs_dir))
        builder.build()
        write_doc(docs_dir, "new.md", "# New\n")

        tree = builder.build(use_cache=False)

        assert tree.find("/new") is not None

    def test__get_subtree__returns_children(self, site: Site, docs_dir: Path) -> None:
        """Return the children of a section."""
        subtree = NavigationBuilder(SiteLoader(docs_dir)).get_subtree("/fundamentals/solid")

        assert subtree is not None
        assert [item.path for item in subtree.items] == [
            "/fundamentals/solid/srp",
            "/fundamentals/solid/ocp",
        ]

    def test__get_subtree__unknown_section__returns_none(self, site: Site, docs_dir: Path) -> None:
        """Return None for unknown routes."""
        assert NavigationBuilder(SiteLoader(docs_dir)).get_subtree("/nowhere") is None

    def test__invalid_sidebars__raise_error(self, site: Site, docs_dir: Path, tmp_path: Path) -> None:
        """Propagate sidebar errors."""
        sidebars = tmp_path / "sidebars.yml"
        sidebars.write_text("main:\n  - does/not/exist\n")

        with pytest.raises(SidebarError):
            NavigationBuilder(SiteLoader(docs_dir), sidebars).build()
