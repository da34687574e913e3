"""Tests for live reload."""

import asyncio
import json
from pathlib import Path
from typing import Any

import pytest
from aiohttp import web
from watchfiles import Change

from guidebook.core.cache import FileCache
from guidebook.core.navigation import NavigationBuilder
from guidebook.core.site import SiteLoader
from guidebook.live import LiveReloadManager
from guidebook.live.reload import create_live_reload_routes

from tests.helpers import write_doc


class TestToRoute:
    """Tests for LiveReloadManager.to_route()."""

    def test__plain_file__strips_extension_and_prefixes(self, docs_dir: Path) -> None:
        """Derive routes from paths without a site."""
        manager = LiveReloadManager(docs_dir)

        assert manager.to_route(docs_dir / "01-solid" / "02-srp.md") == "/solid/srp"

    def test__index_file__maps_to_directory(self, docs_dir: Path) -> None:
        """Map index.md and README.md to their directory."""
        manager = LiveReloadManager(docs_dir)

        assert manager.to_route(docs_dir / "solid" / "index.md") == "/solid"
        assert manager.to_route(docs_dir / "patterns" / "README.md") == "/patterns"
        assert manager.to_route(docs_dir / "index.md") == "/"

    def test__known_page__uses_site_route(self, docs_dir: Path) -> None:
        """Honour slugs for pages in the site."""
        source = write_doc(docs_dir, "solid/single-responsibility.md", "---\nslug: /srp\n---\n# SRP\n")
        manager = LiveReloadManager(docs_dir, navigation=NavigationBuilder(SiteLoader(docs_dir)))

        assert manager.to_route(source) == "/srp"

    def test__relative_source_dir__accepts_absolute_paths(
        self, tmp_path: Path, docs_dir: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Map the absolute paths the watcher reports when configured with a relative dir."""
        monkeypatch.chdir(tmp_path)
        manager = LiveReloadManager(Path("docs"))

        assert manager._matches_patterns(docs_dir / "guide.md")
        assert manager.to_route(docs_dir / "solid" / "srp.md") == "/solid/srp"


class TestMatchesPatterns:
    """Tests for watch pattern matching."""

    def test__default_patterns__match_markdown_at_any_depth(self, docs_dir: Path) -> None:
        """Match Markdown files in the root and nested directories."""
        manager = LiveReloadManager(docs_dir)

        assert manager._matches_patterns(docs_dir / "guide.md")
        assert manager._matches_patterns(docs_dir / "a" / "b" / "guide.md")
        assert not manager._matches_patterns(docs_dir / "img" / "arch.png")

    def test__outside_source_dir__not_matched(self, tmp_path: Path, docs_dir: Path) -> None:
        """Ignore files outside the source directory."""
        manager = LiveReloadManager(docs_dir)

        assert not manager._matches_patterns(tmp_path / "other" / "guide.md")

    def test__custom_patterns__used(self, docs_dir: Path) -> None:
        """Use configured patterns."""
        manager = LiveReloadManager(docs_dir, watch_patterns=["**/*.md", "**/_category_.yml"])

        assert manager._matches_patterns(docs_dir / "solid" / "_category_.yml")


class _Recorder(LiveReloadManager):
    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.broadcasts: list[str] = []

    async def broadcast_reload(self, path: str) -> None:
        self.broadcasts.append(path)


class TestHandleChanges:
    """Tests for LiveReloadManager.handle_changes()."""

    async def test__modified_markdown__broadcasts_route(self, docs_dir: Path) -> None:
        """Broadcast the route of a changed document."""
        source = write_doc(docs_dir, "guide.md", "# Guide\n")
        manager = _Recorder(docs_dir)

        await manager.handle_changes({(Change.modified, str(source))})

        assert manager.broadcasts == ["/guide"]

    async def test__deleted_file__ignored(self, docs_dir: Path) -> None:
        """Skip deletions."""
        manager = _Recorder(docs_dir)

        await manager.handle_changes({(Change.deleted, str(docs_dir / "gone.md"))})

        assert manager.broadcasts == []

    async def test__unwatched_file__ignored(self, docs_dir: Path) -> None:
        """Skip files that don't match the patterns."""
        manager = _Recorder(docs_dir)

        await manager.handle_changes({(Change.added, str(docs_dir / "notes.txt"))})

        assert manager.broadcasts == []

    async def test__change__invalidates_navigation(self, tmp_path: Path, docs_dir: Path) -> None:
        """Drop the cached site and navigation so new pages appear."""
        write_doc(docs_dir, "guide.md", "# Guide\n")
        cache = FileCache(tmp_path / ".cache")
        navigation = NavigationBuilder(SiteLoader(docs_dir), cache=cache)
        navigation.build()
        manager = _Recorder(docs_dir, navigation=navigation)

        added = write_doc(docs_dir, "new.md", "# New\n")
        await manager.handle_changes({(Change.added, str(added))})

        assert cache.get_navigation() is None
        assert manager.broadcasts == ["/new"]
        assert navigation.build().find("/new") is not None


class TestWebSocket:
    """Tests for the live reload WebSocket."""

    async def test__broadcast__reaches_connected_clients(self, docs_dir: Path, aiohttp_client: Any) -> None:
        """Send reload messages to connected clients."""
        manager = LiveReloadManager(docs_dir)
        app = web.Application()
        app.router.add_routes(create_live_reload_routes(manager))
        client = await aiohttp_client(app)

        ws = await client.ws_connect("/ws/live-reload")
        while manager.connections == 0:
            await ws.ping()
        await manager.broadcast_reload("/guide")
        message = await ws.receive(timeout=5)

        assert json.loads(message.data) == {"type": "reload", "path": "/guide"}
        await ws.close()

    async def test__no_clients__broadcast_is_noop(self, docs_dir: Path) -> None:
        """Broadcast without connections does nothing."""
        manager = LiveReloadManager(docs_dir)

        await manager.broadcast_reload("/guide")

        assert manager.connections == 0

    async def test__start_and_stop__manage_watcher(self, docs_dir: Path) -> None:
        """Start the watcher once and stop it cleanly."""
        manager = LiveReloadManager(docs_dir)

        await manager.start()
        task = manager._watch_task
        await manager.start()

        assert manager._watch_task is task
        await manager.stop()
        assert manager._watch_task is None


class TestWatcher:
    """Tests for the file watcher task."""

    async def test__relative_source_dir__broadcasts_changes(
        self, tmp_path: Path, docs_dir: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Broadcast edits picked up by the watcher for a relative source dir."""
        monkeypatch.chdir(tmp_path)
        manager = _Recorder(Path("docs"))

        await manager.start()
        try:
            for attempt in range(50):
                (docs_dir / "page.md").write_text(f"# Page {attempt}\n")
                await asyncio.sleep(0.2)
                if manager.broadcasts:
                    break
        finally:
            await manager.stop()

        assert "/page" in manager.broadcasts
