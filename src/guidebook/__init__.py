"""Guidebook - Markdown documentation pipeline.

Parses front-matter, assembles sidebars, lints, renders and serves a
directory of Markdown documents.
"""

__version__ = "0.1.0"
