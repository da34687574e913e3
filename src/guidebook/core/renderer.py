"""Markdown rendering with caching.

Converts document bodies to HTML with mistune, collecting the title, table
of contents and diagram blocks along the way. PageRenderer adds front-matter
handling, link rewriting and file-based caching keyed on source mtime.
"""

import html
import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import mistune

from guidebook.core.cache import CacheEntry, PageCache
from guidebook.core.diagrams import (
    KROKI_ENDPOINTS,
    DiagramSource,
    render_diagrams_with_cache,
    replace_diagram_placeholders,
)
from guidebook.core.document import parse_document
from guidebook.core.frontmatter import FrontMatter
from guidebook.core.links import classify, resolve_link
from guidebook.core.site import Site

logger = logging.getLogger(__name__)

MARKDOWN_PLUGINS = ["table", "strikethrough", "url", "task_lists"]

TOC_LEVELS = (2, 3)

TAG_RE = re.compile(r"<[^>]+>")
SLUG_STRIP_RE = re.compile(r"[^\w\- ]", re.UNICODE)
CODE_TITLE_RE = re.compile(r"""title=(?:"([^"]*)"|'([^']*)')""")

LinkResolver = Callable[[str], str | None]


@dataclass(frozen=True)
class TocEntry:
    """Table of contents entry."""

    level: int
    title: str
    id: str

    def to_dict(self) -> dict[str, str | int]:
        return {"level": self.level, "title": self.title, "id": self.id}


@dataclass
class ConvertResult:
    """Result of converting a Markdown body to HTML."""

    html: str
    title: str | None
    toc: list[TocEntry]
    diagrams: list[DiagramSource]
    warnings: list[str]
    has_mermaid: bool = False


def slugify(text: str) -> str:
    """GitHub-style heading anchor.

    >>> slugify("Single Responsibility (SRP)")
    'single-responsibility-srp'
    """
    plain = html.unescape(TAG_RE.sub("", text)).strip().lower()
    return SLUG_STRIP_RE.sub("", plain).replace(" ", "-")


class _GuidebookRenderer(mistune.HTMLRenderer):
    """HTML renderer collecting title, ToC, diagrams and link warnings.

    One instance renders a single document.
    """

    def __init__(
        self,
        *,
        extract_title: bool,
        link_resolver: LinkResolver | None,
        collect_diagrams: bool,
    ) -> None:
        super().__init__(escape=False)
        self._extract_title = extract_title
        self._link_resolver = link_resolver
        self._collect_diagrams = collect_diagrams
        self._slug_counts: dict[str, int] = {}
        self.title: str | None = None
        self.toc: list[TocEntry] = []
        self.diagrams: list[DiagramSource] = []
        self.warnings: list[str] = []
        self.has_mermaid = False

    def heading(self, text: str, level: int, **attrs: Any) -> str:
        plain = html.unescape(TAG_RE.sub("", text)).strip()

        if self._extract_title and level == 1 and self.title is None:
            self.title = plain
            return ""

        anchor = self._unique_slug(slugify(text) or "section")
        if level in TOC_LEVELS:
            self.toc.append(TocEntry(level=level, title=plain, id=anchor))

        return f'<h{level} id="{anchor}">{text}</h{level}>\n'

    def block_code(self, code: str, info: str | None = None) -> str:
        info = (info or "").strip()
        language = info.split(None, 1)[0].lower() if info else ""

        if language in KROKI_ENDPOINTS and self._collect_diagrams:
            diagram = DiagramSource(
                index=len(self.diagrams),
                source=code,
                endpoint=KROKI_ENDPOINTS[language],
            )
            self.diagrams.append(diagram)
            return f"{diagram.placeholder}\n"

        if language == "mermaid":
            self.has_mermaid = True
            return f'<pre class="mermaid">{html.escape(code)}</pre>\n'

        rendered = super().block_code(code, info or None)
        title_match = CODE_TITLE_RE.search(info)
        if title_match:
            title = title_match.group(1) or title_match.group(2)
            return f'<div class="code-block"><div class="code-title">{html.escape(title)}</div>{rendered}</div>\n'
        return rendered

    def link(self, text: str, url: str, title: str | None = None) -> str:
        return super().link(text, self._resolve(url), title)

    def image(self, text: str, url: str, title: str | None = None) -> str:
        return super().image(text, self._resolve(url), title)

    def _resolve(self, url: str) -> str:
        if self._link_resolver is None or classify(url) != "internal":
            return url
        resolved = self._link_resolver(url)
        if resolved is None:
            self.warnings.append(f"Unresolved link: {url}")
            return url
        return resolved

    def _unique_slug(self, slug: str) -> str:
        count = self._slug_counts.get(slug, 0)
        self._slug_counts[slug] = count + 1
        return slug if count == 0 else f"{slug}-{count}"


class MarkdownConverter:
    """Markdown to HTML converter."""

    def __init__(
        self,
        *,
        extract_title: bool = True,
        link_resolver: LinkResolver | None = None,
        collect_diagrams: bool = False,
    ) -> None:
        """Initialize converter.

        Args:
            extract_title: Take the first H1 as title and drop it from the HTML
            link_resolver: Maps internal link targets to final URLs; returns
                None for targets that don't exist
            collect_diagrams: Replace diagram blocks with {{DIAGRAM_N}}
                placeholders for Kroki rendering
        """
        self._extract_title = extract_title
        self._link_resolver = link_resolver
        self._collect_diagrams = collect_diagrams

    def convert(self, markdown_text: str) -> ConvertResult:
        """Convert Markdown text to HTML."""
        renderer = _GuidebookRenderer(
            extract_title=self._extract_title,
            link_resolver=self._link_resolver,
            collect_diagrams=self._collect_diagrams,
        )
        markdown = mistune.create_markdown(renderer=renderer, plugins=MARKDOWN_PLUGINS)
        body_html = markdown(markdown_text)
        logger.debug(f"Converted {len(markdown_text)} characters of markdown")

        return ConvertResult(
            html=body_html,
            title=renderer.title,
            toc=renderer.toc,
            diagrams=renderer.diagrams,
            warnings=renderer.warnings,
            has_mermaid=renderer.has_mermaid,
        )


@dataclass
class RenderResult:
    """Result of rendering a markdown document."""

    html: str
    title: str | None
    description: str | None
    toc: list[TocEntry]
    source_path: Path
    from_cache: bool
    warnings: list[str] = field(default_factory=list)
    front_matter: FrontMatter = field(default_factory=FrontMatter)

    @property
    def has_mermaid(self) -> bool:
        return 'class="mermaid"' in self.html


class PageRenderer:
    """Renders markdown documents with caching.

    Cache invalidation is based on source file mtime. When kroki_url is
    provided, diagram code blocks are rendered as images via Kroki.
    Otherwise Mermaid blocks are left for client-side rendering and other
    diagram types appear as code.
    """

    def __init__(
        self,
        cache: PageCache,
        *,
        site: Site | None = None,
        base_url: str = "/",
        extract_title: bool = True,
        kroki_url: str | None = None,
        dpi: int = 192,
    ) -> None:
        """Initialize renderer.

        Args:
            cache: Cache for rendered pages and diagrams
            site: Site used to resolve relative links (no rewriting without it)
            base_url: URL prefix applied to resolved internal links
            extract_title: Whether to extract title from first H1
            kroki_url: Kroki server URL for diagram rendering
            dpi: DPI for diagram rendering
        """
        self._cache = cache
        self._site = site
        self._base_url = base_url
        self._extract_title = extract_title
        self._kroki_url = kroki_url
        self._dpi = dpi

    @property
    def cache(self) -> PageCache:
        return self._cache

    def with_site(self, site: Site) -> "PageRenderer":
        """Return a renderer sharing settings but resolving links against site."""
        return PageRenderer(
            self._cache,
            site=site,
            base_url=self._base_url,
            extract_title=self._extract_title,
            kroki_url=self._kroki_url,
            dpi=self._dpi,
        )

    def render(self, source_path: Path, path: str) -> RenderResult:
        """Render a markdown document.

        Args:
            source_path: Absolute path to the markdown file
            path: Page route used as cache key (e.g., "fundamentals/solid/intro")

        Returns:
            RenderResult with HTML, title and ToC

        Raises:
            FileNotFoundError: If source markdown file doesn't exist
            FrontMatterError: If the front-matter block is malformed
        """
        if not source_path.exists():
            raise FileNotFoundError(f"Source file not found: {source_path}")

        source_mtime = source_path.stat().st_mtime
        text = source_path.read_text(encoding="utf-8")
        document = parse_document(self._relative_source(source_path), text)

        cached = self._cache.get(path, source_mtime)
        if cached is not None:
            return _from_cache(cached, source_path, document.front_matter)

        converter = MarkdownConverter(
            extract_title=self._extract_title,
            link_resolver=self._make_link_resolver(document.path),
            collect_diagrams=bool(self._kroki_url),
        )
        result = converter.convert(document.body)

        page_html = result.html
        if result.diagrams and self._kroki_url:
            rendered = render_diagrams_with_cache(
                result.diagrams, self._kroki_url, self._cache, self._dpi
            )
            page_html = replace_diagram_placeholders(page_html, rendered)

        title = document.front_matter.title or result.title
        description = document.front_matter.description

        self._cache.set(
            path,
            page_html,
            title,
            source_mtime,
            [entry.to_dict() for entry in result.toc],
            description,
        )

        return RenderResult(
            html=page_html,
            title=title,
            description=description,
            toc=result.toc,
            source_path=source_path,
            from_cache=False,
            warnings=result.warnings,
            front_matter=document.front_matter,
        )

    def invalidate(self, path: str) -> None:
        """Invalidate cached content for a path."""
        self._cache.invalidate(path)

    def _relative_source(self, source_path: Path) -> str:
        if self._site is not None:
            try:
                return source_path.relative_to(self._site.source_dir).as_posix()
            except ValueError:
                pass
        return source_path.name

    def _make_link_resolver(self, from_source: str) -> LinkResolver | None:
        site = self._site
        if site is None:
            return None
        prefix = self._base_url.rstrip("/")

        def resolve(url: str) -> str | None:
            resolved = resolve_link(site, from_source, url)
            if resolved is None:
                return None
            return f"{prefix}{resolved}"

        return resolve


def _from_cache(cached: CacheEntry, source_path: Path, front_matter: FrontMatter) -> RenderResult:
    """Create RenderResult from cache entry."""
    toc = [
        TocEntry(level=int(entry["level"]), title=str(entry["title"]), id=str(entry["id"]))
        for entry in cached.meta["toc"]
    ]

    return RenderResult(
        html=cached.html,
        title=cached.meta["title"],
        description=cached.meta.get("description"),
        toc=toc,
        source_path=source_path,
        from_cache=True,
        warnings=[],  # Warnings are not cached
        front_matter=front_matter,
    )
