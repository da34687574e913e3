"""On-disk cache for rendered pages, navigation and diagrams.

Layout under the cache dir:
    pages/<route>.html      rendered body
    meta/<route>.json       title, description, ToC and source mtime
    diagrams/<hash>.<fmt>   Kroki output
    navigation.json         serialized navigation tree

A page entry is only returned when its recorded mtime equals the mtime of
the source file, so editing a document is enough to invalidate it.
"""

import hashlib
import json
import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol, TypedDict

logger = logging.getLogger(__name__)

NAVIGATION_FILENAME = "navigation.json"
GITIGNORE = "# Ignore everything in this directory\n*\n"


class CachedMetadata(TypedDict):
    title: str | None
    description: str | None
    source_mtime: float
    toc: list[dict[str, str | int]]


@dataclass
class CacheEntry:
    """A page served from the cache."""

    html: str
    meta: CachedMetadata


def compute_diagram_hash(source: str, endpoint: str, fmt: str, dpi: int = 192) -> str:
    """Key a rendered diagram by everything that affects Kroki's output."""
    key = f"{endpoint}:{fmt}:{dpi}:{source}"
    return hashlib.sha256(key.encode("utf-8")).hexdigest()


class PageCache(Protocol):
    def get(self, path: str, source_mtime: float) -> CacheEntry | None: ...

    def set(
        self,
        path: str,
        html: str,
        title: str | None,
        source_mtime: float,
        toc: list[dict[str, str | int]],
        description: str | None = None,
    ) -> None: ...

    def invalidate(self, path: str) -> None: ...

    def clear(self) -> None: ...

    def get_navigation(self) -> list[dict[str, Any]] | None: ...

    def set_navigation(self, navigation: list[dict[str, Any]]) -> None: ...

    def invalidate_navigation(self) -> None: ...

    def get_diagram(self, content_hash: str, fmt: str) -> str | None: ...

    def set_diagram(self, content_hash: str, fmt: str, content: str) -> None: ...


def _read_text(path: Path) -> str | None:
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    except OSError as e:
        logger.debug(f"Cannot read cache file {path}: {e}")
        return None


def _read_json(path: Path) -> Any:
    text = _read_text(path)
    if text is None:
        return None
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        logger.debug(f"Ignoring corrupt cache file {path}")
        return None


def _unlink(path: Path) -> None:
    path.unlink(missing_ok=True)


class FileCache:
    """Cache rendered output as plain files under ``cache_dir``."""

    def __init__(self, cache_dir: Path) -> None:
        self._cache_dir = cache_dir

    @property
    def cache_dir(self) -> Path:
        return self._cache_dir

    @property
    def _navigation_path(self) -> Path:
        return self._cache_dir / NAVIGATION_FILENAME

    def _diagram_path(self, content_hash: str, fmt: str) -> Path:
        return self._cache_dir / "diagrams" / f"{content_hash}.{fmt}"

    def _page_paths(self, path: str) -> tuple[Path, Path]:
        key = path.strip("/") or "index"
        return (
            self._cache_dir / "pages" / f"{key}.html",
            self._cache_dir / "meta" / f"{key}.json",
        )

    def _write(self, target: Path, content: str) -> None:
        if not self._cache_dir.exists():
            self._cache_dir.mkdir(parents=True)
            (self._cache_dir / ".gitignore").write_text(GITIGNORE, encoding="utf-8")
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")

    def get(self, path: str, source_mtime: float) -> CacheEntry | None:
        """Return the cached page for ``path`` if it matches ``source_mtime``."""
        html_path, meta_path = self._page_paths(path)
        data = _read_json(meta_path)
        if not isinstance(data, dict) or data.get("source_mtime") != source_mtime or "toc" not in data:
            return None

        html = _read_text(html_path)
        if html is None:
            return None

        meta = CachedMetadata(
            title=data.get("title"),
            description=data.get("description"),
            source_mtime=data["source_mtime"],
            toc=data["toc"],
        )
        return CacheEntry(html=html, meta=meta)

    def set(
        self,
        path: str,
        html: str,
        title: str | None,
        source_mtime: float,
        toc: list[dict[str, str | int]],
        description: str | None = None,
    ) -> None:
        html_path, meta_path = self._page_paths(path)
        meta = CachedMetadata(title=title, description=description, source_mtime=source_mtime, toc=toc)
        self._write(html_path, html)
        self._write(meta_path, json.dumps(meta))

    def invalidate(self, path: str) -> None:
        for entry_path in self._page_paths(path):
            _unlink(entry_path)

    def clear(self) -> None:
        """Drop every entry but keep the directory and its .gitignore."""
        for name in ("pages", "meta", "diagrams"):
            shutil.rmtree(self._cache_dir / name, ignore_errors=True)
        self.invalidate_navigation()

    def get_navigation(self) -> list[dict[str, Any]] | None:
        data = _read_json(self._navigation_path)
        return data if isinstance(data, list) else None

    def set_navigation(self, navigation: list[dict[str, Any]]) -> None:
        self._write(self._navigation_path, json.dumps(navigation))

    def invalidate_navigation(self) -> None:
        _unlink(self._navigation_path)

    def get_diagram(self, content_hash: str, fmt: str) -> str | None:
        return _read_text(self._diagram_path(content_hash, fmt))

    def set_diagram(self, content_hash: str, fmt: str, content: str) -> None:
        self._write(self._diagram_path(content_hash, fmt), content)


class NullCache:
    """Never stores anything. Used when caching is turned off."""

    def get(self, path: str, source_mtime: float) -> CacheEntry | None:
        return None

    def set(
        self,
        path: str,
        html: str,
        title: str | None,
        source_mtime: float,
        toc: list[dict[str, str | int]],
        description: str | None = None,
    ) -> None:
        pass

    def invalidate(self, path: str) -> None:
        pass

    def clear(self) -> None:
        pass

    def get_navigation(self) -> list[dict[str, Any]] | None:
        return None

    def set_navigation(self, navigation: list[dict[str, Any]]) -> None:
        pass

    def invalidate_navigation(self) -> None:
        pass

    def get_diagram(self, content_hash: str, fmt: str) -> str | None:
        return None

    def set_diagram(self, content_hash: str, fmt: str, content: str) -> None:
        pass


def create_cache(cache_dir: Path, *, enabled: bool = True) -> PageCache:
    return FileCache(cache_dir) if enabled else NullCache()
