"""Asset discovery for bundled static files.

Locates the stylesheet and other static assets shipped inside the
guidebook package.
"""

from importlib.resources import files
from pathlib import Path


def get_static_dir() -> Path:
    """Return path to bundled static assets.

    Returns:
        Path to the static directory containing the site stylesheet.

    Raises:
        FileNotFoundError: If static assets are not bundled.
    """
    static = files("guidebook").joinpath("static")
    if not static.is_dir():
        msg = "Bundled static assets not found. Reinstall guidebook with 'pip install -e .'."
        raise FileNotFoundError(msg)
    return Path(str(static))
