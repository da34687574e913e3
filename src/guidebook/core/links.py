"""Markdown link extraction and resolution.

Relative links between documents are written as file paths
(``../solid/introduction.md``) or as routes (``introduction``). Both are
resolved against the site so they can be rewritten to final URLs and
checked for existence.
"""

import posixpath
import re
from dataclasses import dataclass
from urllib.parse import unquote

from guidebook.core.document import fenced_line_numbers
from guidebook.core.site import Site, normalize_route

INLINE_LINK_RE = re.compile(
    r"(?P<image>!?)\[(?P<text>(?:[^\[\]]|\[[^\]]*\])*)\]"
    r"\(\s*<?(?P<url>[^)\s>]*)>?(?:\s+(?:\"[^\"]*\"|'[^']*'|\([^)]*\)))?\s*\)"
)
REFERENCE_DEF_RE = re.compile(r"^ {0,3}\[(?P<text>[^\]]+)\]:\s*<?(?P<url>\S+?)>?(?:\s+.*)?$")
INLINE_CODE_RE = re.compile(r"(`+)(?:.+?)\1")
SCHEME_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*:")

MARKDOWN_SUFFIXES = (".md", ".mdx")


@dataclass(frozen=True)
class Link:
    """A link found in a Markdown body."""

    url: str
    text: str
    line: int
    is_image: bool = False

    @property
    def kind(self) -> str:
        return classify(self.url)

    @property
    def is_markdown(self) -> bool:
        return split_url(self.url)[0].lower().endswith(MARKDOWN_SUFFIXES)


def classify(url: str) -> str:
    """Classify a URL as "external", "anchor" or "internal"."""
    if url.startswith("//") or SCHEME_RE.match(url):
        return "external"
    if url.startswith("#"):
        return "anchor"
    return "internal"


def split_url(url: str) -> tuple[str, str]:
    """Split a URL into (target, suffix) where suffix is "?query#fragment"."""
    for separator in ("?", "#"):
        pos = url.find(separator)
        if pos != -1:
            return url[:pos], url[pos:]
    return url, ""


def extract_links(body: str) -> list[Link]:
    """Find inline links, images and reference definitions outside code.

    Args:
        body: Markdown text

    Returns:
        Links in document order with 1-based body line numbers
    """
    fenced = fenced_line_numbers(body)
    links: list[Link] = []

    for lineno, line in enumerate(body.splitlines(), start=1):
        if lineno in fenced or line.startswith(("    ", "\t")):
            continue
        # Blank out code spans, keeping offsets stable
        visible = INLINE_CODE_RE.sub(lambda m: " " * len(m.group(0)), line)

        definition = REFERENCE_DEF_RE.match(visible)
        if definition:
            links.append(Link(url=definition.group("url"), text=definition.group("text"), line=lineno))
            continue

        for match in INLINE_LINK_RE.finditer(visible):
            url = match.group("url")
            if not url:
                continue
            links.append(
                Link(
                    url=url,
                    text=match.group("text"),
                    line=lineno,
                    is_image=bool(match.group("image")),
                )
            )

    return links


def resolve_link(site: Site, from_source: str, url: str) -> str | None:
    """Resolve an internal link to its final route.

    Args:
        site: Loaded site structure
        from_source: Source path of the linking document, relative to the
            source directory (e.g., "solid/open-closed.md")
        url: Link target as written in Markdown

    Returns:
        Route with query/fragment preserved for pages, an absolute path for
        existing non-Markdown files, or None when the target doesn't exist
    """
    if classify(url) != "internal":
        return url

    target, suffix = split_url(url)
    target = unquote(target)
    if not target:
        return url

    from_dir = posixpath.dirname(from_source)

    if target.lower().endswith(MARKDOWN_SUFFIXES):
        if target.startswith("/"):
            candidate = posixpath.normpath(target.lstrip("/"))
        else:
            candidate = posixpath.normpath(posixpath.join(from_dir, target))
        if candidate.startswith(".."):
            return None
        page = site.get_page_by_source(candidate)
        return page.path + suffix if page is not None else None

    if target.startswith("/"):
        page = site.get_page(target)
        if page is not None:
            return page.path + suffix
        if (site.source_dir / target.lstrip("/")).is_file():
            return target + suffix
        return None

    # Plain files next to the document (images, downloads)
    file_candidate = posixpath.normpath(posixpath.join(from_dir, target))
    if not file_candidate.startswith("..") and (site.source_dir / file_candidate).is_file():
        return f"/{file_candidate}{suffix}"

    # Route-relative link, resolved like a browser would from the page URL
    current = site.get_page_by_source(from_source)
    base_route = current.path if current is not None else "/" + from_dir
    route = posixpath.normpath(posixpath.join(posixpath.dirname(base_route.rstrip("/")) or "/", target))
    if route.startswith("//"):
        route = route[1:]
    page = site.get_page(normalize_route(route))
    return page.path + suffix if page is not None else None
