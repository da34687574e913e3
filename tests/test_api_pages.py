"""Tests for pages API endpoint."""

from pathlib import Path
from typing import Any

import pytest
from aiohttp import web

from guidebook.config import Config
from guidebook.server import create_app

from tests.helpers import write_doc


@pytest.fixture
def app(test_config: Config) -> web.Application:
    return create_app(test_config)


class TestGetPage:
    """Tests for GET /api/pages/{path}."""

    async def test__existing_page__returns_rendered_content(
        self, docs_dir: Path, aiohttp_client: Any, app: web.Application
    ) -> None:
        """Return rendered page for an existing document."""
        write_doc(docs_dir, "guide.md", "# Guide\n\nThis is a guide.\n\n## Setup\n")

        client = await aiohttp_client(app)
        response = await client.get("/api/pages/guide")

        assert response.status == 200
        data = await response.json()
        assert data["meta"]["title"] == "Guide"
        assert data["meta"]["path"] == "/guide"
        assert data["meta"]["source_file"] == str(docs_dir / "guide.md")
        assert data["meta"]["last_modified"] is not None
        assert data["toc"] == [{"level": 2, "title": "Setup", "id": "setup"}]
        assert "This is a guide" in data["content"]

    async def test__missing_page__returns_404(self, aiohttp_client: Any, app: web.Application) -> None:
        """Return 404 for a non-existent page."""
        client = await aiohttp_client(app)
        response = await client.get("/api/pages/nonexistent")

        assert response.status == 404
        data = await response.json()
        assert data == {"error": "Page not found", "path": "nonexistent"}

    async def test__nested_path__returns_page(self, docs_dir: Path, aiohttp_client: Any, app: web.Application) -> None:
        """Return page from a nested directory with number prefixes."""
        write_doc(docs_dir, "01-domain/02-subdomain/guide.md", "# Nested Guide\n\nDeep content.\n")

        client = await aiohttp_client(app)
        response = await client.get("/api/pages/domain/subdomain/guide")

        assert response.status == 200
        data = await response.json()
        assert data["meta"]["title"] == "Nested Guide"
        assert data["meta"]["path"] == "/domain/subdomain/guide"

    async def test__index_md__resolves_for_directory_path(
        self, docs_dir: Path, aiohttp_client: Any, app: web.Application
    ) -> None:
        """Serve a directory's index.md at the directory route."""
        write_doc(docs_dir, "solid/index.md", "# SOLID\n\nFive principles.\n")

        client = await aiohttp_client(app)
        response = await client.get("/api/pages/solid/")

        assert response.status == 200
        data = await response.json()
        assert data["meta"]["title"] == "SOLID"
        assert data["meta"]["path"] == "/solid"

    async def test__root_path__returns_home(self, docs_dir: Path, aiohttp_client: Any, app: web.Application) -> None:
        """Serve the root index at an empty path."""
        write_doc(docs_dir, "index.md", "# Home\n")

        client = await aiohttp_client(app)
        response = await client.get("/api/pages/")

        assert response.status == 200
        assert (await response.json())["meta"]["path"] == "/"

    async def test__front_matter__sets_title_and_description(
        self, docs_dir: Path, aiohttp_client: Any, app: web.Application
    ) -> None:
        """Use front-matter title and description in meta."""
        write_doc(docs_dir, "dry.md", "---\ntitle: Don't Repeat Yourself\ndescription: DRY principle\n---\n# DRY\n")

        client = await aiohttp_client(app)
        response = await client.get("/api/pages/dry")

        data = await response.json()
        assert data["meta"]["title"] == "Don't Repeat Yourself"
        assert data["meta"]["description"] == "DRY principle"

    async def test__breadcrumbs__include_ancestors(
        self, docs_dir: Path, aiohttp_client: Any, app: web.Application
    ) -> None:
        """Return breadcrumbs from Home through the parent category."""
        write_doc(docs_dir, "solid/index.md", "# SOLID\n")
        write_doc(docs_dir, "solid/srp.md", "# SRP\n")

        client = await aiohttp_client(app)
        response = await client.get("/api/pages/solid/srp")

        data = await response.json()
        assert data["breadcrumbs"] == [
            {"title": "Home", "path": "/"},
            {"title": "SOLID", "path": "/solid"},
        ]

    async def test__category_without_document__lists_children(
        self, docs_dir: Path, aiohttp_client: Any, app: web.Application
    ) -> None:
        """Generate content for a category defined only by _category_.yml."""
        write_doc(docs_dir, "patterns/_category_.yml", "label: Patterns\n")
        write_doc(docs_dir, "patterns/saga.md", "# Saga\n")

        client = await aiohttp_client(app)
        response = await client.get("/api/pages/patterns")

        assert response.status == 200
        data = await response.json()
        assert data["meta"]["title"] == "Patterns"
        assert data["meta"]["source_file"] is None
        assert '<a href="/patterns/saga">Saga</a>' in data["content"]

    async def test__relative_links__rewritten(self, docs_dir: Path, aiohttp_client: Any, app: web.Application) -> None:
        """Rewrite .md links to routes."""
        write_doc(docs_dir, "a.md", "# A\n\nSee [B](b.md#part).\n")
        write_doc(docs_dir, "b.md", "# B\n")

        client = await aiohttp_client(app)
        response = await client.get("/api/pages/a")

        assert 'href="/b#part"' in (await response.json())["content"]


class TestCaching:
    """Tests for HTTP caching headers."""

    async def test__response__includes_cache_headers(
        self, docs_dir: Path, aiohttp_client: Any, app: web.Application
    ) -> None:
        """Return ETag, Last-Modified and Cache-Control."""
        write_doc(docs_dir, "guide.md", "# Guide\n")

        client = await aiohttp_client(app)
        response = await client.get("/api/pages/guide")

        assert response.headers["ETag"].startswith('"')
        assert len(response.headers["ETag"]) == 18
        assert response.headers["Cache-Control"] == "private, max-age=60"
        assert response.headers["Last-Modified"].endswith("GMT")

    async def test__matching_etag__returns_304(self, docs_dir: Path, aiohttp_client: Any, app: web.Application) -> None:
        """Return 304 Not Modified when If-None-Match matches."""
        write_doc(docs_dir, "guide.md", "# Guide\n")

        client = await aiohttp_client(app)
        first = await client.get("/api/pages/guide")
        etag = first.headers["ETag"]
        second = await client.get("/api/pages/guide", headers={"If-None-Match": etag})

        assert second.status == 304
        assert second.headers["ETag"] == etag

    async def test__stale_etag__returns_200(self, docs_dir: Path, aiohttp_client: Any, app: web.Application) -> None:
        """Return the full page when the ETag doesn't match."""
        write_doc(docs_dir, "guide.md", "# Guide\n")

        client = await aiohttp_client(app)
        response = await client.get("/api/pages/guide", headers={"If-None-Match": '"0000000000000000"'})

        assert response.status == 200


class TestErrors:
    """Tests for error responses."""

    async def test__invalid_front_matter__page_skipped(
        self, docs_dir: Path, aiohttp_client: Any, app: web.Application
    ) -> None:
        """Don't serve documents whose front-matter can't be parsed."""
        write_doc(docs_dir, "broken.md", "---\ntitle: [oops\n---\n")

        client = await aiohttp_client(app)
        response = await client.get("/api/pages/broken")

        assert response.status == 404

    async def test__front_matter_broken_after_load__returns_500(
        self, docs_dir: Path, aiohttp_client: Any, app: web.Application
    ) -> None:
        """Report front-matter broken after the site was loaded."""
        source = write_doc(docs_dir, "guide.md", "# Guide\n")

        client = await aiohttp_client(app)
        await client.get("/api/pages/guide")
        source.write_text("---\ntitle: [oops\n---\n", encoding="utf-8")
        response = await client.get("/api/pages/guide")

        assert response.status == 500
        data = await response.json()
        assert data["error"] == "Invalid front-matter"
        assert data["path"] == "guide"

    async def test__file_deleted_after_load__returns_404(
        self, docs_dir: Path, aiohttp_client: Any, app: web.Application
    ) -> None:
        """Return 404 when the source disappeared."""
        source = write_doc(docs_dir, "guide.md", "# Guide\n")

        client = await aiohttp_client(app)
        await client.get("/api/pages/guide")
        source.unlink()
        response = await client.get("/api/pages/guide")

        assert response.status == 404
