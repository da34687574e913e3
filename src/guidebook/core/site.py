"""Site structure for document hierarchy.

Represents the document site structure with efficient path lookups
and traversal operations. Separate from navigation which is built
from the site for UI presentation.

Directories become categories. A directory's ``index.md`` (or
``README.md``) is the category's own page, and ``_category_.yml`` or
``_category_.json`` supplies its label, position and collapsed state.
A directory with neither is transparent: its children are promoted
to the parent level.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath

import yaml

from guidebook.core.document import (
    INDEX_STEMS,
    Document,
    humanize,
    load_document,
    strip_number_prefix,
)
from guidebook.core.frontmatter import FrontMatterError
from guidebook.core.types import DocId, URLPath

logger = logging.getLogger(__name__)

CATEGORY_FILES = ("_category_.yml", "_category_.yaml", "_category_.json")


@dataclass(frozen=True)
class Page:
    """Document or category page data."""

    title: str
    path: URLPath
    source_path: Path | None = None
    doc_id: DocId | None = None
    description: str | None = None
    is_category: bool = False
    collapsed: bool = True


@dataclass(frozen=True)
class BreadcrumbItem:
    """Breadcrumb navigation item."""

    title: str
    path: str

    def to_dict(self) -> dict[str, str]:
        """Convert to dictionary for JSON serialization."""
        return {"title": self.title, "path": self.path}


@dataclass(frozen=True)
class LoadIssue:
    """Problem found while loading the site (reported by lint)."""

    path: str
    rule: str
    message: str
    line: int | None = None


class Site:
    """Document site structure with efficient path lookups.

    Stores pages in a flat list with parent/children relationships
    tracked by indices. Provides O(1) path lookups and O(d) breadcrumb
    building where d is the page depth.
    """

    __slots__ = (
        "_children",
        "_id_index",
        "_pages",
        "_parents",
        "_path_index",
        "_roots",
        "_source_dir",
        "_source_index",
        "issues",
    )

    def __init__(
        self,
        source_dir: Path,
        pages: list[Page],
        children: list[list[int]],
        parents: list[int | None],
        roots: list[int],
        issues: list[LoadIssue] | None = None,
    ) -> None:
        """Initialize site structure.

        Args:
            source_dir: Documentation root directory
            pages: Flat list of all pages
            children: Children indices for each page
            parents: Parent index for each page (None for roots)
            roots: Indices of root pages
            issues: Problems collected while loading
        """
        self._source_dir = source_dir
        self._pages = pages
        self._children = children
        self._parents = parents
        self._roots = roots
        self._path_index = {page.path: i for i, page in enumerate(pages)}
        self._id_index = {page.doc_id: i for i, page in enumerate(pages) if page.doc_id}
        self._source_index = {
            page.source_path.as_posix(): i
            for i, page in enumerate(pages)
            if page.source_path is not None
        }
        self.issues = issues or []

    @property
    def source_dir(self) -> Path:
        return self._source_dir

    @property
    def pages(self) -> list[Page]:
        """All pages in insertion (depth-first, sorted) order."""
        return list(self._pages)

    def get_page(self, path: str) -> Page | None:
        """Get page by route path.

        Args:
            path: Page path (e.g., "domain/page" or "/domain/page")

        Returns:
            Page if found, None otherwise
        """
        idx = self._path_index.get(normalize_route(path))
        if idx is None:
            return None
        return self._pages[idx]

    def get_page_by_id(self, doc_id: str) -> Page | None:
        """Get page by sidebar document id."""
        idx = self._id_index.get(DocId(doc_id))
        if idx is None:
            return None
        return self._pages[idx]

    def get_page_by_source(self, source_path: str | PurePosixPath) -> Page | None:
        """Get page by source path relative to the source directory."""
        idx = self._source_index.get(PurePosixPath(source_path).as_posix())
        if idx is None:
            return None
        return self._pages[idx]

    def get_children(self, path: str) -> list[Page]:
        """Get children of a page.

        Returns:
            List of child Pages, empty if not found or no children
        """
        idx = self._path_index.get(normalize_route(path))
        if idx is None:
            return []
        return [self._pages[i] for i in self._children[idx]]

    def get_parent(self, path: str) -> Page | None:
        idx = self._path_index.get(normalize_route(path))
        if idx is None:
            return None
        parent = self._parents[idx]
        return self._pages[parent] if parent is not None else None

    def get_breadcrumbs(self, path: str) -> list[BreadcrumbItem]:
        """Build breadcrumbs for a given path.

        Returns breadcrumbs starting with "Home" followed by ancestor pages.
        The current page is not included. Unknown paths yield just [Home]
        so the UI still has minimal navigation.
        """
        if not path:
            return []

        idx = self._path_index.get(normalize_route(path))
        if idx is None:
            return [BreadcrumbItem(title="Home", path="/")]

        ancestors: list[Page] = []
        current = self._parents[idx]
        while current is not None:
            ancestors.append(self._pages[current])
            current = self._parents[current]
        ancestors.reverse()

        breadcrumbs = [BreadcrumbItem(title="Home", path="/")]
        for page in ancestors:
            breadcrumbs.append(BreadcrumbItem(title=page.title, path=page.path))
        return breadcrumbs

    def get_root_pages(self) -> list[Page]:
        """Get root-level pages."""
        return [self._pages[i] for i in self._roots]

    def resolve_source(self, path: str) -> Path | None:
        """Resolve a route to its absolute source file, if it has one."""
        page = self.get_page(path)
        if page is None or page.source_path is None:
            return None
        return self._source_dir / page.source_path


def normalize_route(path: str) -> URLPath:
    """Normalize a route to a leading slash and no trailing slash."""
    stripped = path.strip("/")
    return URLPath(f"/{stripped}" if stripped else "/")


def join_route(prefix: str, segment: str) -> URLPath:
    return normalize_route(f"{prefix.rstrip('/')}/{segment.strip('/')}")


class SiteBuilder:
    """Builder for constructing Site instances."""

    def __init__(self, source_dir: Path) -> None:
        self._source_dir = source_dir
        self._pages: list[Page] = []
        self._children: list[list[int]] = []
        self._parents: list[int | None] = []
        self._roots: list[int] = []
        self._issues: list[LoadIssue] = []

    def add_page(
        self,
        title: str,
        path: str,
        source_path: Path | None = None,
        parent_idx: int | None = None,
        *,
        doc_id: str | None = None,
        description: str | None = None,
        is_category: bool = False,
        collapsed: bool = True,
    ) -> int:
        """Add a page to the site.

        Returns:
            Index of the added page
        """
        idx = len(self._pages)
        self._pages.append(
            Page(
                title=title,
                path=normalize_route(path),
                source_path=source_path,
                doc_id=DocId(doc_id) if doc_id else None,
                description=description,
                is_category=is_category,
                collapsed=collapsed,
            )
        )
        self._children.append([])
        self._parents.append(parent_idx)

        if parent_idx is None:
            self._roots.append(idx)
        else:
            self._children[parent_idx].append(idx)

        return idx

    def add_issue(self, issue: LoadIssue) -> None:
        self._issues.append(issue)

    def build(self) -> Site:
        """Build the Site instance."""
        return Site(
            source_dir=self._source_dir,
            pages=self._pages,
            children=self._children,
            parents=self._parents,
            roots=self._roots,
            issues=self._issues,
        )


@dataclass
class CategoryMeta:
    """Contents of a ``_category_`` file."""

    label: str | None = None
    position: int | None = None
    collapsed: bool = True
    description: str | None = None


@dataclass
class _Entry:
    """Sortable item collected while scanning a directory."""

    name: str
    position: int | None
    route: URLPath
    document: Document | None = None
    category: CategoryMeta | None = None
    title: str = ""
    children: list["_Entry"] = field(default_factory=list)

    def sort_key(self) -> tuple[bool, int, str]:
        return (self.position is None, self.position or 0, self.name.lower())


class SiteLoader:
    """Scans a source directory into a Site.

    Hidden (``.``) and private (``_``) files and directories are skipped, as
    are documents marked ``draft: true``. Documents with malformed
    front-matter are skipped and recorded as load issues.
    """

    def __init__(self, source_dir: Path, *, strict: bool = True) -> None:
        """Initialize loader.

        Args:
            source_dir: Documentation root directory
            strict: Raise ValueError on duplicate routes instead of recording them
        """
        self._source_dir = source_dir
        self._strict = strict

    @property
    def source_dir(self) -> Path:
        return self._source_dir

    def load(self) -> Site:
        """Load the site structure from disk.

        Raises:
            ValueError: If two documents map to the same route (strict mode)
        """
        builder = SiteBuilder(self._source_dir)
        if not self._source_dir.is_dir():
            return builder.build()

        entries = self._collect(self._source_dir, URLPath("/"), builder)
        self._check_routes(entries, builder, {})
        self._add_entries(builder, entries, parent_idx=None)
        return builder.build()

    def _collect(self, directory: Path, route_prefix: URLPath, builder: SiteBuilder) -> list[_Entry]:
        entries: list[_Entry] = []

        for child in sorted(directory.iterdir()):
            if child.name.startswith((".", "_")):
                continue

            if child.is_dir():
                entries.extend(self._collect_directory(child, route_prefix, builder))
            elif child.suffix == ".md" and child.stem not in INDEX_STEMS:
                entry = self._document_entry(child, route_prefix, builder)
                if entry is not None:
                    entries.append(entry)
            elif child.suffix == ".md" and directory == self._source_dir:
                # Root index is the home page
                entry = self._document_entry(child, route_prefix, builder, route=URLPath("/"))
                if entry is not None:
                    entries.append(entry)

        return entries

    def _collect_directory(
        self, directory: Path, route_prefix: URLPath, builder: SiteBuilder
    ) -> list[_Entry]:
        name, prefix_position = strip_number_prefix(directory.name)
        route = join_route(route_prefix, name)
        meta = self._read_category(directory, builder)

        index_doc: Document | None = None
        for stem in INDEX_STEMS:
            index_path = directory / f"{stem}.md"
            if index_path.exists():
                index_doc = self._load(index_path, builder)
                if index_doc is not None and index_doc.front_matter.draft:
                    index_doc = None
                break

        children = self._collect(directory, route, builder)

        if meta is None and index_doc is None:
            return children
        if not children and index_doc is None:
            return []

        meta = meta or CategoryMeta()
        if index_doc is not None and index_doc.front_matter.slug:
            route = self._apply_slug(index_doc, route_prefix, builder) or route

        title = meta.label or (index_doc.sidebar_label if index_doc else None) or humanize(name)
        position = meta.position
        if position is None and index_doc is not None:
            position = index_doc.front_matter.sidebar_position
        if position is None:
            position = prefix_position

        return [
            _Entry(
                name=name,
                position=position,
                route=route,
                document=index_doc,
                category=meta,
                title=title,
                children=children,
            )
        ]

    def _document_entry(
        self,
        path: Path,
        route_prefix: URLPath,
        builder: SiteBuilder,
        route: URLPath | None = None,
    ) -> _Entry | None:
        document = self._load(path, builder)
        if document is None or document.front_matter.draft:
            return None

        if document.front_matter.slug:
            route = self._apply_slug(document, route_prefix, builder) or route
        if route is None:
            last_segment = PurePosixPath(document.doc_id).name
            route = join_route(route_prefix, last_segment)

        return _Entry(
            name=strip_number_prefix(path.stem)[0],
            position=document.position,
            route=route,
            document=document,
            title=document.sidebar_label,
        )

    def _apply_slug(self, document: Document, route_prefix: URLPath, builder: SiteBuilder) -> URLPath | None:
        slug = document.front_matter.slug or ""
        route = _slug_route(slug, route_prefix)
        if route is None:
            logger.warning(f"Ignoring slug of {document.path}: {slug!r} points outside the site")
            builder.add_issue(
                LoadIssue(path=document.path, rule="slug", message=f"slug {slug!r} points outside the site root")
            )
        return route

    def _load(self, path: Path, builder: SiteBuilder) -> Document | None:
        try:
            return load_document(self._source_dir, path)
        except UnicodeDecodeError as e:
            relative = path.relative_to(self._source_dir).as_posix()
            logger.warning(f"Skipping {relative}: not valid UTF-8")
            builder.add_issue(
                LoadIssue(path=relative, rule="encoding", message=f"not valid UTF-8 (byte {e.start}: {e.reason})")
            )
            return None
        except FrontMatterError as e:
            relative = path.relative_to(self._source_dir).as_posix()
            logger.warning(f"Skipping {relative}: {e}")
            builder.add_issue(LoadIssue(path=relative, rule="front-matter", message=e.message, line=e.line))
            return None

    def _read_category(self, directory: Path, builder: SiteBuilder) -> CategoryMeta | None:
        for filename in CATEGORY_FILES:
            meta_path = directory / filename
            if not meta_path.exists():
                continue
            relative = meta_path.relative_to(self._source_dir).as_posix()
            try:
                text = meta_path.read_text(encoding="utf-8")
                data = json.loads(text) if meta_path.suffix == ".json" else yaml.safe_load(text)
                return _parse_category(data)
            except (json.JSONDecodeError, yaml.YAMLError, ValueError) as e:
                logger.warning(f"Ignoring invalid category file {relative}: {e}")
                builder.add_issue(LoadIssue(path=relative, rule="category", message=str(e)))
                return None
        return None

    def _check_routes(
        self, entries: list[_Entry], builder: SiteBuilder, seen: dict[str, str]
    ) -> None:
        for entry in entries:
            source = entry.document.path if entry.document else f"{entry.route} (category)"
            existing = seen.get(entry.route)
            if existing is not None:
                message = f"Duplicate route {entry.route}: {existing} and {source}"
                if self._strict:
                    raise ValueError(message)
                builder.add_issue(
                    LoadIssue(
                        path=entry.document.path if entry.document else existing,
                        rule="duplicate-route",
                        message=message,
                    )
                )
                entry.route = URLPath("")
            else:
                seen[entry.route] = source
            self._check_routes(entry.children, builder, seen)

    def _add_entries(
        self, builder: SiteBuilder, entries: list[_Entry], parent_idx: int | None
    ) -> None:
        for entry in sorted(entries, key=_Entry.sort_key):
            if not entry.route:
                # Clashing entry dropped, its children move up a level
                self._add_entries(builder, entry.children, parent_idx)
                continue
            document = entry.document
            idx = builder.add_page(
                entry.title,
                entry.route,
                Path(document.path) if document else None,
                parent_idx,
                doc_id=document.doc_id if document else None,
                description=(
                    document.front_matter.description
                    if document
                    else entry.category.description if entry.category else None
                ),
                is_category=entry.category is not None,
                collapsed=entry.category.collapsed if entry.category else True,
            )
            self._add_entries(builder, entry.children, idx)


def _slug_route(slug: str, route_prefix: URLPath) -> URLPath | None:
    """Resolve a slug against the current route; None if it climbs above the root."""
    joined = slug if slug.startswith("/") else f"{route_prefix}/{slug}"
    segments: list[str] = []
    for segment in joined.split("/"):
        if segment in ("", "."):
            continue
        if segment == "..":
            if not segments:
                return None
            segments.pop()
        else:
            segments.append(segment)
    return normalize_route("/".join(segments))


def _parse_category(data: object) -> CategoryMeta:
    if data is None:
        return CategoryMeta()
    if not isinstance(data, dict):
        raise ValueError("category file must contain a mapping")

    label = data.get("label")
    if label is not None and not isinstance(label, str):
        raise ValueError("label must be a string")

    position = data.get("position")
    if position is not None and (isinstance(position, bool) or not isinstance(position, (int, float))):
        raise ValueError("position must be a number")

    collapsed = data.get("collapsed", True)
    if not isinstance(collapsed, bool):
        raise ValueError("collapsed must be a boolean")

    description = data.get("description")
    if description is not None and not isinstance(description, str):
        raise ValueError("description must be a string")

    return CategoryMeta(
        label=label,
        position=int(position) if position is not None else None,
        collapsed=collapsed,
        description=description,
    )
