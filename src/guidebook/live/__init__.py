"""Live reload support for development mode."""

from guidebook.live.reload import LiveReloadManager

__all__ = ["LiveReloadManager"]
