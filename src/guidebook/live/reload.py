"""Live reload for the dev server.

A watchfiles task observes the source tree. When a watched file changes,
the site and navigation caches are dropped and every connected browser
receives ``{"type": "reload", "path": <route>}`` over a WebSocket.
"""

import asyncio
import contextlib
import json
import logging
import weakref
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING

from aiohttp import WSMsgType, web
from watchfiles import Change, awatch

from guidebook.core.document import INDEX_STEMS, strip_number_prefix

if TYPE_CHECKING:
    from guidebook.core.navigation import NavigationBuilder

logger = logging.getLogger(__name__)

DEFAULT_WATCH_PATTERNS = ["**/*.md"]
LIVE_RELOAD_PATH = "/ws/live-reload"


class LiveReloadManager:
    """Connects the file watcher to the browsers listening for reloads.

    Args:
        source_dir: Directory to watch
        watch_patterns: Globs relative to ``source_dir``, ``**/*.md`` by default
        navigation: Builder to invalidate whenever a watched file changes
    """

    def __init__(
        self,
        source_dir: Path,
        watch_patterns: list[str] | None = None,
        *,
        navigation: "NavigationBuilder | None" = None,
    ) -> None:
        # watchfiles reports absolute paths
        self._source_dir = source_dir.resolve()
        self._watch_patterns = list(watch_patterns or DEFAULT_WATCH_PATTERNS)
        self._navigation = navigation
        self._clients: weakref.WeakSet[web.WebSocketResponse] = weakref.WeakSet()
        self._watch_task: asyncio.Task[None] | None = None

    @property
    def connections(self) -> int:
        return len(self._clients)

    async def start(self) -> None:
        if self._watch_task is None:
            self._watch_task = asyncio.create_task(self._watch())

    async def stop(self) -> None:
        task, self._watch_task = self._watch_task, None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

        for ws in list(self._clients):
            await ws.close()

    async def handle_websocket(self, request: web.Request) -> web.WebSocketResponse:
        ws = web.WebSocketResponse()
        await ws.prepare(request)
        self._clients.add(ws)
        logger.debug(f"Live reload client connected ({len(self._clients)} open)")

        try:
            async for msg in ws:
                if msg.type == WSMsgType.ERROR:
                    logger.debug(f"Live reload connection closed with {ws.exception()!r}")
                    break
        finally:
            self._clients.discard(ws)
        return ws

    async def _watch(self) -> None:
        async for changes in awatch(self._source_dir):
            await self.handle_changes(changes)

    async def handle_changes(self, changes: set[tuple[Change, str]]) -> None:
        """Broadcast a reload for every added or modified watched file."""
        changed = [
            Path(raw_path)
            for change, raw_path in changes
            if change != Change.deleted and self._matches_patterns(Path(raw_path))
        ]
        for path in changed:
            # Pages themselves are checked against their mtime on render.
            if self._navigation is not None:
                self._navigation.invalidate()
            route = self.to_route(path)
            logger.info(f"Source changed: {path.name} -> {route}")
            await self.broadcast_reload(route)

    def _matches_patterns(self, path: Path) -> bool:
        try:
            relative = path.resolve().relative_to(self._source_dir)
        except ValueError:
            return False

        # PurePath.match treats "**/x" as needing at least one directory.
        return any(
            relative.match(pattern) or (pattern.startswith("**/") and relative.match(pattern[3:]))
            for pattern in self._watch_patterns
        )

    def to_route(self, file_path: Path) -> str:
        """Map a source file to the route of its page.

        Known pages use the route from the loaded site, so slugs are
        honoured. Other files get the route their path implies.
        """
        relative = PurePosixPath(file_path.resolve().relative_to(self._source_dir).as_posix())

        if self._navigation is not None:
            page = self._navigation.build_site().get_page_by_source(relative)
            if page is not None:
                return page.path

        parts = [strip_number_prefix(part)[0] for part in relative.with_suffix("").parts]
        if parts and parts[-1] in INDEX_STEMS:
            parts.pop()
        return "/" + "/".join(parts)

    async def broadcast_reload(self, path: str) -> None:
        message = json.dumps({"type": "reload", "path": path})
        for ws in [client for client in self._clients if not client.closed]:
            try:
                await ws.send_str(message)
            except ConnectionResetError:
                logger.debug("Live reload client went away during broadcast")


def create_live_reload_routes(manager: LiveReloadManager) -> list[web.RouteDef]:
    return [web.get(LIVE_RELOAD_PATH, manager.handle_websocket)]
