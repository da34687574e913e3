"""Navigation tree builder.

Builds navigation trees from Site structures for UI presentation.
Navigation is a view layer over the site document hierarchy: either the
autogenerated tree (directory layout ordered by sidebar position) or an
explicit sidebar from a sidebars file.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Any, TypedDict

from guidebook.core.cache import PageCache
from guidebook.core.document import strip_number_prefix
from guidebook.core.sidebars import (
    AutogeneratedItem,
    CategoryItem,
    DocItem,
    LinkItem,
    SidebarError,
    SidebarItem,
    load_sidebars,
)
from guidebook.core.site import Page, Site, SiteLoader, normalize_route

logger = logging.getLogger(__name__)


class NavItemDict(TypedDict, total=False):
    """Dictionary representation of a navigation item."""

    title: str
    path: str
    children: list["NavItemDict"]
    collapsed: bool
    kind: str


@dataclass
class NavItem:
    """Navigation item with children for UI tree."""

    title: str
    path: str | None
    children: list["NavItem"] = field(default_factory=list)
    collapsed: bool | None = None
    kind: str = "doc"

    def to_dict(self) -> NavItemDict:
        """Convert to dictionary for JSON serialization."""
        result: NavItemDict = {"title": self.title}
        if self.path is not None:
            result["path"] = self.path
        if self.children:
            result["children"] = [child.to_dict() for child in self.children]
        if self.collapsed is not None:
            result["collapsed"] = self.collapsed
        if self.kind != "doc":
            result["kind"] = self.kind
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "NavItem":
        return cls(
            title=data["title"],
            path=data.get("path"),
            children=[cls.from_dict(child) for child in data.get("children", [])],
            collapsed=data.get("collapsed"),
            kind=data.get("kind", "doc"),
        )


@dataclass
class NavigationTree:
    """Root of a navigation tree."""

    items: list[NavItem] = field(default_factory=list)

    def to_dict(self) -> dict[str, list[NavItemDict]]:
        return {"items": [item.to_dict() for item in self.items]}

    def find(self, path: str) -> NavItem | None:
        """Find the first item with the given route, depth-first."""
        target = normalize_route(path)
        stack = list(reversed(self.items))
        while stack:
            item = stack.pop()
            if item.path == target and item.kind != "link":
                return item
            stack.extend(reversed(item.children))
        return None


def build_navigation(site: Site, root_path: str | None = None) -> list[NavItem]:
    """Build the autogenerated navigation tree.

    Args:
        site: Site structure to build navigation from
        root_path: Optional section route; its children become the roots

    Returns:
        List of NavItem trees for navigation UI
    """
    pages = site.get_children(root_path) if root_path else site.get_root_pages()
    return [_build_nav_item(site, page) for page in pages]


def _build_nav_item(site: Site, page: Page) -> NavItem:
    """Recursively build NavItem from page."""
    children = site.get_children(page.path)
    return NavItem(
        title=page.title,
        path=page.path,
        children=[_build_nav_item(site, child) for child in children],
        collapsed=page.collapsed if page.is_category else None,
        kind="category" if page.is_category else "doc",
    )


def build_sidebar_navigation(site: Site, items: list[SidebarItem]) -> list[NavItem]:
    """Resolve an explicit sidebar against the site.

    Raises:
        SidebarError: If any doc id is not present in the site
    """
    missing: list[str] = []
    nav = [_resolve_item(site, item, missing) for item in items]
    if missing:
        raise SidebarError(f"Sidebar references unknown documents: {', '.join(missing)}")
    return [item for entry in nav for item in entry]


def _resolve_item(site: Site, item: SidebarItem, missing: list[str]) -> list[NavItem]:
    if isinstance(item, DocItem):
        page = site.get_page_by_id(item.id)
        if page is None:
            missing.append(item.id)
            return []
        return [NavItem(title=item.label or page.title, path=page.path)]

    if isinstance(item, LinkItem):
        return [NavItem(title=item.label, path=item.href, kind="link")]

    if isinstance(item, AutogeneratedItem):
        return _autogenerated(site, item.dir)

    if isinstance(item, CategoryItem):
        path: str | None = None
        if item.link:
            page = site.get_page_by_id(item.link)
            if page is None:
                missing.append(item.link)
            else:
                path = page.path
        children = [child for sub in item.items for child in _resolve_item(site, sub, missing)]
        return [
            NavItem(
                title=item.label,
                path=path,
                children=children,
                collapsed=item.collapsed,
                kind="category",
            )
        ]

    raise SidebarError(f"Unsupported sidebar item: {item!r}")


def _autogenerated(site: Site, directory: str) -> list[NavItem]:
    """Expand the site subtree rooted at a source directory."""
    if not directory:
        return build_navigation(site)

    route = "/".join(strip_number_prefix(part)[0] for part in PurePosixPath(directory).parts)
    if site.get_page(route) is not None:
        return build_navigation(site, route)

    # Transparent directory: take its top-most pages
    prefix = f"{directory}/"
    items: list[NavItem] = []
    for page in site.pages:
        if page.source_path is None or not page.source_path.as_posix().startswith(prefix):
            continue
        parent = site.get_parent(page.path)
        if parent is not None and parent.source_path is not None and parent.source_path.as_posix().startswith(prefix):
            continue
        items.append(_build_nav_item(site, page))
    return items


class NavigationBuilder:
    """Builds and caches the navigation tree for a source directory."""

    def __init__(
        self,
        site_loader: SiteLoader,
        sidebars_file: Path | None = None,
        cache: PageCache | None = None,
    ) -> None:
        """Initialize builder.

        Args:
            site_loader: Loader for the site structure
            sidebars_file: Optional sidebars file; its first sidebar is used
            cache: Optional cache for the navigation tree
        """
        self._site_loader = site_loader
        self._sidebars_file = sidebars_file
        self._cache = cache
        self._site: Site | None = None

    @property
    def source_dir(self) -> Path:
        return self._site_loader.source_dir

    def build_site(self) -> Site:
        """Return the site structure, loading it on first use."""
        if self._site is None:
            self._site = self._site_loader.load()
        return self._site

    def build(self, *, use_cache: bool = True) -> NavigationTree:
        """Build the navigation tree.

        Raises:
            SidebarError: If the sidebars file is invalid
        """
        if use_cache and self._cache is not None:
            cached = self._cache.get_navigation()
            if cached is not None:
                return NavigationTree(items=[NavItem.from_dict(item) for item in cached])

        site = self.build_site() if use_cache else self._site_loader.load()

        if self._sidebars_file is not None:
            sidebars = load_sidebars(self._sidebars_file)
            first = next(iter(sidebars.values()))
            items = build_sidebar_navigation(site, first)
        else:
            items = build_navigation(site)

        tree = NavigationTree(items=items)
        if self._cache is not None:
            self._cache.set_navigation([item.to_dict() for item in items])
        return tree

    def get_subtree(self, path: str) -> NavigationTree | None:
        """Return the children of the section at path, or None if unknown."""
        item = self.build().find(path)
        if item is None:
            return None
        return NavigationTree(items=item.children)

    def invalidate(self) -> None:
        """Drop the loaded site and cached navigation tree."""
        self._site = None
        if self._cache is not None:
            self._cache.invalidate_navigation()
