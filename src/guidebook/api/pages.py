"""Pages API endpoint.

Handles page rendering and returns JSON responses with metadata, ToC, and HTML content.
"""

import logging
from datetime import UTC, datetime
from email.utils import formatdate
from hashlib import md5

from aiohttp import web

from guidebook.app_keys import navigation_key, renderer_key, verbose_key
from guidebook.core.frontmatter import FrontMatterError
from guidebook.core.layout import render_category_index
from guidebook.core.site import normalize_route

logger = logging.getLogger(__name__)


def create_pages_routes() -> list[web.RouteDef]:
    return [
        web.get("/api/pages/{path:.*}", get_page),
    ]


async def get_page(request: web.Request) -> web.Response:
    path = request.match_info["path"]
    route = normalize_route(path)
    navigation = request.app[navigation_key]

    site = navigation.build_site()
    page = site.get_page(route)
    if page is None:
        return _not_found(path)

    source_path = site.resolve_source(route)
    if source_path is None:
        # Category without its own document: list its children
        children = [(p.title, p.path, p.description) for p in site.get_children(route)]
        return _page_response(
            request,
            meta={
                "title": page.title,
                "description": page.description,
                "path": route,
                "source_file": None,
                "last_modified": None,
            },
            breadcrumbs=[b.to_dict() for b in site.get_breadcrumbs(route)],
            toc=[],
            content=render_category_index(children, "/"),
        )

    renderer = request.app[renderer_key].with_site(site)
    try:
        result = renderer.render(source_path, route)
    except FileNotFoundError:
        return _not_found(path)
    except FrontMatterError as e:
        return web.json_response(
            {"error": "Invalid front-matter", "detail": str(e), "path": path},
            status=500,
        )

    if request.app[verbose_key] and result.warnings:
        for warning in result.warnings:
            logger.warning(f"{route}: {warning}")

    source_mtime = result.source_path.stat().st_mtime
    last_modified = datetime.fromtimestamp(source_mtime, tz=UTC)

    return _page_response(
        request,
        meta={
            "title": result.title or page.title,
            "description": result.description,
            "path": route,
            "source_file": str(result.source_path),
            "last_modified": last_modified.isoformat(),
        },
        breadcrumbs=[b.to_dict() for b in site.get_breadcrumbs(route)],
        toc=[entry.to_dict() for entry in result.toc],
        content=result.html,
        source_mtime=source_mtime,
    )


def _page_response(
    request: web.Request,
    *,
    meta: dict[str, str | None],
    breadcrumbs: list[dict[str, str]],
    toc: list[dict[str, str | int]],
    content: str,
    source_mtime: float | None = None,
) -> web.Response:
    etag = _compute_etag(content)

    if_none_match = request.headers.get("If-None-Match")
    if if_none_match == etag:
        return web.Response(status=304, headers={"ETag": etag})

    headers = {
        "ETag": etag,
        "Cache-Control": "private, max-age=60",
    }
    if source_mtime is not None:
        headers["Last-Modified"] = formatdate(source_mtime, usegmt=True)

    return web.json_response(
        {
            "meta": meta,
            "breadcrumbs": breadcrumbs,
            "toc": toc,
            "content": content,
        },
        headers=headers,
    )


def _not_found(path: str) -> web.Response:
    return web.json_response(
        {"error": "Page not found", "path": path},
        status=404,
    )


def _compute_etag(content: str) -> str:
    # First 16 hex chars (64 bits) of the content hash
    content_hash = md5(content.encode("utf-8"), usedforsecurity=False).hexdigest()[:16]
    return f'"{content_hash}"'
