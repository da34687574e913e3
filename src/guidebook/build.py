"""Static site builder.

Renders every page of the site into a directory of plain HTML files that
can be served by any static file server:

    build/
    ├── index.html
    ├── 404.html
    ├── fundamentals/solid/introduction/index.html
    ├── images/diagram.png          # Copied source assets
    ├── assets/guidebook.css
    ├── navigation.json
    └── sitemap.xml                 # Only when site.url is configured
"""

import json
import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from xml.etree import ElementTree

from guidebook.assets import get_static_dir
from guidebook.config import Config
from guidebook.core.cache import NullCache
from guidebook.core.layout import (
    PageContext,
    render_category_index,
    render_not_found,
    render_page,
    url_for,
)
from guidebook.core.lint import Diagnostic, LintOptions, lint_site
from guidebook.core.navigation import NavigationBuilder, NavItem
from guidebook.core.renderer import PageRenderer, TocEntry
from guidebook.core.site import Page, Site, SiteLoader

logger = logging.getLogger(__name__)

SITEMAP_NS = "http://www.sitemaps.org/schemas/sitemap/0.9"


class BuildError(ValueError):
    """Raised when the site cannot be built."""

    def __init__(self, message: str, diagnostics: list[Diagnostic] | None = None) -> None:
        self.diagnostics = diagnostics or []
        if self.diagnostics:
            details = "\n".join(f"  {d.format()}" for d in self.diagnostics)
            message = f"{message}\n{details}"
        super().__init__(message)


@dataclass
class BuildResult:
    """Summary of a completed build."""

    pages: int
    output_dir: Path
    warnings: list[str] = field(default_factory=list)


def build_site(config: Config) -> BuildResult:
    """Lint, render and write the whole site.

    Args:
        config: Application configuration

    Returns:
        BuildResult with the number of pages written

    Raises:
        FileNotFoundError: If the source directory doesn't exist
        BuildError: If lint reports errors or the output directory is unsafe
    """
    source_dir = config.docs.source_dir
    output_dir = config.docs.output_dir
    _check_output_dir(source_dir, output_dir)

    report = lint_site(
        source_dir,
        sidebars_file=config.site.sidebars_file,
        options=LintOptions(
            on_broken_links=config.site.on_broken_links,
            on_broken_markdown_links=config.site.on_broken_markdown_links,
        ),
    )
    if not report.ok:
        raise BuildError(f"Lint found {len(report.errors)} error(s)", report.errors)

    navigation = NavigationBuilder(SiteLoader(source_dir), config.site.sidebars_file)
    site = navigation.build_site()
    nav_items = navigation.build(use_cache=False).items

    if output_dir.exists():
        shutil.rmtree(output_dir)
    output_dir.mkdir(parents=True)

    builder = _PageWriter(config, site, nav_items, output_dir)
    for page in site.pages:
        builder.write(page)
    if site.get_page("/") is None:
        builder.write_home()
    builder.write_not_found()

    _copy_source_assets(source_dir, output_dir)
    shutil.copytree(get_static_dir(), output_dir / "assets", dirs_exist_ok=True)

    (output_dir / "navigation.json").write_text(
        json.dumps({"items": [item.to_dict() for item in nav_items]}, indent=2),
        encoding="utf-8",
    )
    if config.site.url:
        write_sitemap(output_dir / "sitemap.xml", config.site.url, config.site.base_url, site)

    warnings = [d.format() for d in report.warnings] + builder.warnings
    logger.info(f"Built {builder.pages} pages into {output_dir}")
    return BuildResult(pages=builder.pages, output_dir=output_dir, warnings=warnings)


class _PageWriter:
    """Renders pages into the output directory."""

    def __init__(self, config: Config, site: Site, navigation: list[NavItem], output_dir: Path) -> None:
        self._site = site
        self._navigation = navigation
        self._output_dir = output_dir
        self._site_config = config.site
        # Pages are rendered fresh: cached HTML embeds the dev server's link prefix
        self._renderer = PageRenderer(
            NullCache(),
            site=site,
            base_url=config.site.base_url,
            kroki_url=config.diagrams.kroki_url,
            dpi=config.diagrams.dpi,
        )
        self.pages = 0
        self.warnings: list[str] = []

    def write(self, page: Page) -> None:
        source = self._site.resolve_source(page.path)
        if source is None:
            title = page.title
            description = page.description
            content = self._children_index(page.path)
            toc: list[TocEntry] = []
            has_mermaid = False
        else:
            result = self._renderer.render(source, page.path)
            title = result.title or page.title
            description = result.description
            content = result.html
            toc = result.toc
            has_mermaid = result.has_mermaid
            self.warnings.extend(f"{page.source_path}: {warning}" for warning in result.warnings)

        html = render_page(
            PageContext(
                title=title,
                content=content,
                path=page.path,
                site_title=self._site_config.title,
                tagline=self._site_config.tagline,
                description=description,
                base_url=self._site_config.base_url,
                navigation=self._navigation,
                breadcrumbs=self._site.get_breadcrumbs(page.path),
                toc=toc,
                has_mermaid=has_mermaid,
            )
        )
        self._write_html(page.path, html)

    def write_home(self) -> None:
        """Write a generated home page listing the root pages."""
        children = [(p.title, p.path, p.description) for p in self._site.get_root_pages()]
        html = render_page(
            PageContext(
                title=self._site_config.title,
                content=render_category_index(children, self._site_config.base_url),
                path="/",
                site_title=self._site_config.title,
                tagline=self._site_config.tagline,
                base_url=self._site_config.base_url,
                navigation=self._navigation,
            )
        )
        self._write_html("/", html)

    def write_not_found(self) -> None:
        html = render_not_found(
            "",
            site_title=self._site_config.title,
            base_url=self._site_config.base_url,
            navigation=self._navigation,
        )
        (self._output_dir / "404.html").write_text(html, encoding="utf-8")

    def _children_index(self, path: str) -> str:
        children = [(p.title, p.path, p.description) for p in self._site.get_children(path)]
        return render_category_index(children, self._site_config.base_url)

    def _write_html(self, route: str, html: str) -> None:
        target = self._output_dir / route.strip("/") / "index.html"
        if not target.resolve().is_relative_to(self._output_dir.resolve()):
            raise BuildError(f"Route {route} resolves outside the output directory")
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(html, encoding="utf-8")
        self.pages += 1
        logger.debug(f"Wrote {target}")


def _check_output_dir(source_dir: Path, output_dir: Path) -> None:
    if not source_dir.is_dir():
        raise FileNotFoundError(f"Source directory not found: {source_dir}")
    source = source_dir.resolve()
    output = output_dir.resolve()
    if output == source or output in source.parents:
        raise BuildError(f"Output directory {output_dir} would overwrite the source directory")
    if source in output.parents:
        raise BuildError(f"Output directory {output_dir} is inside the source directory")


def _copy_source_assets(source_dir: Path, output_dir: Path) -> None:
    """Copy non-Markdown files (images, downloads) next to the rendered pages."""
    for path in list(source_dir.rglob("*")):
        if not path.is_file() or path.suffix in (".md", ".mdx"):
            continue
        relative = path.relative_to(source_dir)
        if any(part.startswith((".", "_")) for part in relative.parts):
            continue
        target = output_dir / relative
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(path, target)


def write_sitemap(path: Path, site_url: str, base_url: str, site: Site) -> None:
    """Write a sitemap.xml listing every page."""
    ElementTree.register_namespace("", SITEMAP_NS)
    urlset = ElementTree.Element(f"{{{SITEMAP_NS}}}urlset")
    origin = site_url.rstrip("/")
    routes = [page.path for page in site.pages]
    if "/" not in routes:
        routes.insert(0, "/")
    for route in routes:
        url = ElementTree.SubElement(urlset, f"{{{SITEMAP_NS}}}url")
        loc = ElementTree.SubElement(url, f"{{{SITEMAP_NS}}}loc")
        loc.text = origin + url_for(base_url, route)
    tree = ElementTree.ElementTree(urlset)
    tree.write(path, encoding="utf-8", xml_declaration=True)
