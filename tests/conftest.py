"""Shared test fixtures."""

from pathlib import Path

import pytest

from guidebook.config import (
    Config,
    DiagramsConfig,
    DocsConfig,
    LiveReloadConfig,
    ServerConfig,
    SiteConfig,
)


@pytest.fixture
def docs_dir(tmp_path: Path) -> Path:
    """Create an empty docs directory."""
    docs = tmp_path / "docs"
    docs.mkdir(exist_ok=True)
    return docs


@pytest.fixture
def test_config(tmp_path: Path, docs_dir: Path) -> Config:
    """Create a test configuration with tmp_path directories.

    Live reload is disabled so apps can be created without a file watcher.
    """
    return Config(
        server=ServerConfig(),
        docs=DocsConfig(
            source_dir=docs_dir,
            cache_dir=tmp_path / ".cache",
            output_dir=tmp_path / "build",
        ),
        site=SiteConfig(title="Test Docs", tagline="Testing all the things"),
        diagrams=DiagramsConfig(),
        live_reload=LiveReloadConfig(enabled=False),
    )
