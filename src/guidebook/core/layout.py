"""HTML page layout.

Wraps rendered page content with the site chrome: header, sidebar
navigation, breadcrumbs and table of contents. Used by both the static
builder and the development server so the two produce identical pages.
"""

import html
from dataclasses import dataclass, field

from guidebook.core.navigation import NavItem
from guidebook.core.renderer import TocEntry
from guidebook.core.site import BreadcrumbItem

STYLESHEET = "assets/guidebook.css"

MERMAID_SCRIPT = """<script type="module">
import mermaid from "https://cdn.jsdelivr.net/npm/mermaid@11/dist/mermaid.esm.min.mjs";
mermaid.initialize({ startOnLoad: true });
</script>"""

LIVE_RELOAD_SCRIPT = """<script>
(function () {
  var scheme = location.protocol === "https:" ? "wss://" : "ws://";
  var socket = new WebSocket(scheme + location.host + "/ws/live-reload");
  socket.onmessage = function (event) {
    var message = JSON.parse(event.data);
    if (message.type === "reload") {
      location.reload();
    }
  };
})();
</script>"""


def url_for(base_url: str, route: str) -> str:
    """Prefix a site route with the base URL.

    >>> url_for("/docs/", "/guide/setup")
    '/docs/guide/setup'
    >>> url_for("/docs/", "/")
    '/docs/'
    """
    return f"{base_url.rstrip('/')}{route}"


@dataclass
class PageContext:
    """Everything needed to render one HTML page."""

    title: str
    content: str
    path: str
    site_title: str = "Documentation"
    tagline: str = ""
    description: str | None = None
    base_url: str = "/"
    navigation: list[NavItem] = field(default_factory=list)
    breadcrumbs: list[BreadcrumbItem] = field(default_factory=list)
    toc: list[TocEntry] = field(default_factory=list)
    has_mermaid: bool = False
    live_reload: bool = False


def render_page(context: PageContext) -> str:
    """Render a complete HTML document."""
    e = html.escape
    base = context.base_url

    head = [
        '<meta charset="utf-8">',
        '<meta name="viewport" content="width=device-width, initial-scale=1">',
        f"<title>{e(_document_title(context))}</title>",
    ]
    if context.description:
        head.append(f'<meta name="description" content="{e(context.description)}">')
    head.append(f'<link rel="stylesheet" href="{e(base)}{STYLESHEET}">')

    scripts: list[str] = []
    if context.has_mermaid:
        scripts.append(MERMAID_SCRIPT)
    if context.live_reload:
        scripts.append(LIVE_RELOAD_SCRIPT)

    head_html = "\n".join(head)
    scripts_html = "\n".join(scripts)
    tagline = f'<span class="site-tagline">{e(context.tagline)}</span>' if context.tagline else ""

    return f"""<!doctype html>
<html lang="en">
<head>
{head_html}
</head>
<body>
<header class="site-header">
<a class="site-title" href="{e(base)}">{e(context.site_title)}</a>{tagline}
</header>
<div class="layout">
<nav class="sidebar" aria-label="Documentation">
{render_navigation(context.navigation, context.path, base)}
</nav>
<main class="content">
{render_breadcrumbs(context.breadcrumbs, base)}
<article>
<h1>{e(context.title)}</h1>
{context.content}
</article>
</main>
<aside class="toc">
{render_toc(context.toc)}
</aside>
</div>
{scripts_html}
</body>
</html>
"""


def _document_title(context: PageContext) -> str:
    if context.title == context.site_title:
        return context.title
    return f"{context.title} | {context.site_title}"


def render_navigation(items: list[NavItem], current_path: str, base_url: str) -> str:
    """Render the navigation tree as nested lists.

    Categories containing the current page are expanded.
    """
    if not items:
        return ""
    parts = ["<ul>"]
    for item in items:
        parts.append(f"<li>{_render_nav_item(item, current_path, base_url)}</li>")
    parts.append("</ul>")
    return "".join(parts)


def _render_nav_item(item: NavItem, current_path: str, base_url: str) -> str:
    e = html.escape
    if item.kind == "link":
        label = f'<a href="{e(item.path or "#")}">{e(item.title)}</a>'
    elif item.path is not None:
        active = ' class="active" aria-current="page"' if item.path == current_path else ""
        label = f'<a href="{e(url_for(base_url, item.path))}"{active}>{e(item.title)}</a>'
    else:
        label = f'<span class="nav-category">{e(item.title)}</span>'

    if not item.children:
        return label

    expanded = not item.collapsed or _contains(item, current_path)
    open_attr = " open" if expanded else ""
    children = render_navigation(item.children, current_path, base_url)
    return f"<details{open_attr}><summary>{label}</summary>{children}</details>"


def _contains(item: NavItem, path: str) -> bool:
    if item.path == path:
        return True
    return any(_contains(child, path) for child in item.children)


def render_breadcrumbs(breadcrumbs: list[BreadcrumbItem], base_url: str) -> str:
    if not breadcrumbs:
        return ""
    items = "".join(
        f'<li><a href="{html.escape(url_for(base_url, crumb.path))}">{html.escape(crumb.title)}</a></li>'
        for crumb in breadcrumbs
    )
    return f'<nav class="breadcrumbs" aria-label="Breadcrumbs"><ol>{items}</ol></nav>'


def render_toc(toc: list[TocEntry]) -> str:
    if not toc:
        return ""
    items = "".join(
        f'<li class="toc-level-{entry.level}"><a href="#{html.escape(entry.id)}">{html.escape(entry.title)}</a></li>'
        for entry in toc
    )
    return f'<div class="toc-heading">On this page</div><ul>{items}</ul>'


def render_category_index(children: list[tuple[str, str, str | None]], base_url: str) -> str:
    """Render the generated body of a category without its own document.

    Args:
        children: (title, route, description) for each child page
        base_url: Site base URL
    """
    if not children:
        return ""
    items = []
    for title, route, description in children:
        link = f'<a href="{html.escape(url_for(base_url, route))}">{html.escape(title)}</a>'
        if description:
            link += f' <span class="description">{html.escape(description)}</span>'
        items.append(f"<li>{link}</li>")
    return f'<ul class="category-index">{"".join(items)}</ul>'


def render_not_found(path: str, *, site_title: str, base_url: str = "/", navigation: list[NavItem] | None = None) -> str:
    """Render the 404 page."""
    if path:
        message = f"<p>No page exists at <code>{html.escape(path)}</code>.</p>"
    else:
        message = "<p>The requested page does not exist.</p>"
    content = f'{message}<p><a href="{html.escape(base_url)}">Back to the home page</a></p>'
    return render_page(
        PageContext(
            title="Page not found",
            content=content,
            path=path,
            site_title=site_title,
            base_url=base_url,
            navigation=navigation or [],
        )
    )
