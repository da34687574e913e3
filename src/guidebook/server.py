"""aiohttp server for Guidebook.

Application factory and route registration for the development server.
HTML pages are rendered with the same layout as the static build; the
JSON API under ``/api/`` exposes pages and navigation to other clients.
"""

import logging
from pathlib import Path

from aiohttp import web

from guidebook.api.config import create_config_routes
from guidebook.api.navigation import create_navigation_routes
from guidebook.api.pages import create_pages_routes
from guidebook.app_keys import cache_key, config_key, navigation_key, renderer_key, verbose_key
from guidebook.assets import get_static_dir
from guidebook.config import Config
from guidebook.core.cache import create_cache
from guidebook.core.frontmatter import FrontMatterError
from guidebook.core.layout import PageContext, render_category_index, render_not_found, render_page
from guidebook.core.navigation import NavigationBuilder, build_navigation
from guidebook.core.renderer import PageRenderer, TocEntry
from guidebook.core.sidebars import SidebarError
from guidebook.core.site import SiteLoader, normalize_route
from guidebook.live import LiveReloadManager
from guidebook.live.reload import create_live_reload_routes

logger = logging.getLogger(__name__)

live_reload_key = web.AppKey("live_reload_manager", LiveReloadManager)


def create_app(config: Config, *, verbose: bool = False) -> web.Application:
    """Create aiohttp application.

    Args:
        config: Application configuration
        verbose: Enable verbose output (log rendering warnings)

    Returns:
        Configured aiohttp application
    """
    app = web.Application()

    cache = create_cache(config.docs.cache_dir, enabled=config.docs.cache_enabled)

    renderer = PageRenderer(
        cache,
        kroki_url=config.diagrams.kroki_url,
        dpi=config.diagrams.dpi,
    )
    navigation = NavigationBuilder(
        SiteLoader(config.docs.source_dir, strict=False),
        config.site.sidebars_file,
        cache,
    )
    # Drop navigation cached by a previous run
    navigation.invalidate()

    app[renderer_key] = renderer
    app[navigation_key] = navigation
    app[cache_key] = cache
    app[config_key] = config
    app[verbose_key] = verbose

    # API routes (registered first to take precedence over the page catch-all)
    app.router.add_routes(create_pages_routes())
    app.router.add_routes(create_navigation_routes())
    app.router.add_routes(create_config_routes())

    if config.live_reload.enabled:
        manager = LiveReloadManager(
            config.docs.source_dir,
            watch_patterns=config.live_reload.watch_patterns,
            navigation=navigation,
        )
        app[live_reload_key] = manager
        app.router.add_routes(create_live_reload_routes(manager))
        app.on_startup.append(_start_live_reload)
        app.on_cleanup.append(_stop_live_reload)

    app.router.add_static("/assets", get_static_dir())

    # Page catch-all, must be last
    app.router.add_get("/{path:.*}", serve_page)

    return app


async def serve_page(request: web.Request) -> web.StreamResponse:
    """Serve a page as full HTML, or a source asset such as an image."""
    path = request.match_info["path"]
    route = normalize_route(path)
    config = request.app[config_key]
    navigation = request.app[navigation_key]

    site = navigation.build_site()
    try:
        nav_items = navigation.build().items
    except SidebarError as e:
        logger.warning(f"Falling back to autogenerated navigation: {e}")
        nav_items = build_navigation(site)

    page = site.get_page(route)
    if page is None:
        asset = _source_asset(config.docs.source_dir, path)
        if asset is not None:
            return web.FileResponse(asset)
        html = render_not_found(route, site_title=config.site.title, navigation=nav_items)
        return web.Response(text=html, status=404, content_type="text/html")

    source_path = site.resolve_source(route)
    if source_path is None:
        children = [(p.title, p.path, p.description) for p in site.get_children(route)]
        title = page.title
        description = page.description
        content = render_category_index(children, "/")
        toc: list[TocEntry] = []
        has_mermaid = False
    else:
        renderer = request.app[renderer_key].with_site(site)
        try:
            result = renderer.render(source_path, route)
        except FileNotFoundError:
            html = render_not_found(route, site_title=config.site.title, navigation=nav_items)
            return web.Response(text=html, status=404, content_type="text/html")
        except FrontMatterError as e:
            raise web.HTTPInternalServerError(text=f"Invalid front-matter in {page.source_path}: {e}") from e

        if request.app[verbose_key]:
            for warning in result.warnings:
                logger.warning(f"{route}: {warning}")

        title = result.title or page.title
        description = result.description
        content = result.html
        toc = result.toc
        has_mermaid = result.has_mermaid

    html = render_page(
        PageContext(
            title=title,
            content=content,
            path=route,
            site_title=config.site.title,
            tagline=config.site.tagline,
            description=description,
            navigation=nav_items,
            breadcrumbs=site.get_breadcrumbs(route),
            toc=toc,
            has_mermaid=has_mermaid,
            live_reload=config.live_reload.enabled,
        )
    )
    return web.Response(text=html, content_type="text/html")


def _source_asset(source_dir: Path, path: str) -> Path | None:
    """Resolve a non-Markdown file inside the source directory."""
    relative = Path(path.strip("/"))
    if not relative.parts or any(part.startswith((".", "_")) for part in relative.parts):
        return None
    candidate = source_dir / relative
    if not candidate.is_file() or candidate.suffix in (".md", ".mdx"):
        return None
    return candidate


async def _start_live_reload(app: web.Application) -> None:
    """Start live reload on application startup."""
    await app[live_reload_key].start()


async def _stop_live_reload(app: web.Application) -> None:
    """Stop live reload on application cleanup."""
    await app[live_reload_key].stop()


def run_server(config: Config, *, verbose: bool = False) -> None:
    """Run the server.

    Args:
        config: Application configuration
        verbose: Enable verbose output (log rendering warnings)
    """
    app = create_app(config, verbose=verbose)
    web.run_app(app, host=config.server.host, port=config.server.port)
