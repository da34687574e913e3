"""Diagram rendering with caching support.

Renders Mermaid, PlantUML, GraphViz and D2 blocks via Kroki, with
content-based caching to avoid redundant requests.
"""

import base64
import logging
import re
import zlib
from dataclasses import dataclass

import httpx

from guidebook.core.cache import PageCache, compute_diagram_hash

logger = logging.getLogger(__name__)

GOOGLE_FONTS_RE = re.compile(r"@import\s+url\([^)]*fonts\.googleapis\.com[^)]*\)\s*;?")

# Code block language -> Kroki endpoint
KROKI_ENDPOINTS = {
    "mermaid": "mermaid",
    "plantuml": "plantuml",
    "graphviz": "graphviz",
    "dot": "graphviz",
    "d2": "d2",
}

KROKI_TIMEOUT = 30.0


@dataclass(frozen=True)
class DiagramSource:
    """A diagram extracted from Markdown, awaiting rendering."""

    index: int
    source: str
    endpoint: str
    format: str = "svg"

    @property
    def placeholder(self) -> str:
        return diagram_placeholder(self.index)


@dataclass
class RenderedDiagram:
    """A rendered diagram ready for HTML insertion."""

    index: int
    content: str
    format: str


def diagram_placeholder(index: int) -> str:
    return f"{{{{DIAGRAM_{index}}}}}"


def render_diagrams_with_cache(
    diagrams: list[DiagramSource],
    kroki_url: str,
    cache: PageCache,
    dpi: int = 192,
    client: httpx.Client | None = None,
) -> list[RenderedDiagram]:
    """Render diagrams via Kroki with caching.

    Args:
        diagrams: Diagrams extracted from a page
        kroki_url: Kroki server URL
        cache: Cache for rendered diagram content
        dpi: DPI used for rendering (part of the cache key)
        client: Optional httpx client (a temporary one is created otherwise)

    Returns:
        Rendered diagrams sorted by index
    """
    results: list[RenderedDiagram] = []
    to_render: list[tuple[DiagramSource, str]] = []

    for diagram in diagrams:
        content_hash = compute_diagram_hash(diagram.source, diagram.endpoint, diagram.format, dpi)
        cached = cache.get_diagram(content_hash, diagram.format)
        if cached is not None:
            results.append(RenderedDiagram(index=diagram.index, content=cached, format=diagram.format))
        else:
            to_render.append((diagram, content_hash))

    if to_render:
        owns_client = client is None
        http = client or httpx.Client(timeout=KROKI_TIMEOUT)
        try:
            for diagram, content_hash in to_render:
                try:
                    content = _render_via_kroki(http, diagram, kroki_url.rstrip("/"))
                except httpx.HTTPError as e:
                    logger.warning(f"Kroki rendering failed for {diagram.endpoint} diagram: {e}")
                    results.append(
                        RenderedDiagram(
                            index=diagram.index,
                            content=f'<pre class="diagram-error">Diagram rendering failed: {e}</pre>',
                            format="error",
                        )
                    )
                    continue
                cache.set_diagram(content_hash, diagram.format, content)
                results.append(RenderedDiagram(index=diagram.index, content=content, format=diagram.format))
        finally:
            if owns_client:
                http.close()

    results.sort(key=lambda r: r.index)
    return results


def _render_via_kroki(client: httpx.Client, diagram: DiagramSource, server_url: str) -> str:
    """Render a single diagram, returning SVG markup or a PNG data URI.

    Raises:
        httpx.HTTPError: If the request fails or Kroki returns an error status
    """
    url = f"{server_url}/{diagram.endpoint}/{diagram.format}/{encode_source(diagram.source)}"
    logger.debug(f"Kroki URL: {url}")

    response = client.get(url)
    response.raise_for_status()

    if diagram.format == "svg":
        return strip_google_fonts(response.text)

    b64 = base64.b64encode(response.content).decode("ascii")
    return f"data:image/png;base64,{b64}"


def encode_source(source: str) -> str:
    """Encode diagram source for a Kroki GET URL (deflate + URL-safe base64)."""
    compressed = zlib.compress(source.encode("utf-8"), level=9)
    return base64.urlsafe_b64encode(compressed).decode("ascii")


def strip_google_fonts(svg: str) -> str:
    """Strip Google Fonts @import rules that PlantUML embeds in SVG output."""
    return GOOGLE_FONTS_RE.sub("", svg)


def replace_diagram_placeholders(html: str, diagrams: list[RenderedDiagram]) -> str:
    """Replace {{DIAGRAM_N}} placeholders with rendered content."""
    for diagram in diagrams:
        if diagram.format == "svg":
            figure = f'<figure class="diagram">{diagram.content}</figure>'
        elif diagram.format == "png":
            figure = f'<figure class="diagram"><img src="{diagram.content}" alt="diagram"></figure>'
        else:
            figure = diagram.content
        html = html.replace(diagram_placeholder(diagram.index), figure)
    return html
