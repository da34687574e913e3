"""Test helpers for building documentation trees."""

from pathlib import Path


def write_doc(docs_dir: Path, relative: str, text: str) -> Path:
    """Write a document, creating parent directories."""
    path = docs_dir / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path
