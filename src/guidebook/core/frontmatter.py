"""YAML front-matter parsing.

A front-matter block is only recognised when the very first line of the file
is ``---``; it runs until the next line consisting of exactly ``---``.
"""

import re
from dataclasses import dataclass, field
from typing import Any

import yaml

DELIMITER = "---"

TOP_LEVEL_KEY_RE = re.compile(r"^(?P<key>[^\s#:][^:]*?)\s*:(?:\s|$)")

_STRING_KEYS = ("title", "description", "sidebar_label", "slug", "id")


class FrontMatterError(ValueError):
    """Raised when a front-matter block is malformed."""

    def __init__(self, message: str, line: int | None = None) -> None:
        self.message = message
        self.line = line
        location = f" (line {line})" if line is not None else ""
        super().__init__(f"{message}{location}")


@dataclass(frozen=True)
class FrontMatter:
    """Typed view over a document's front-matter mapping."""

    title: str | None = None
    description: str | None = None
    sidebar_position: int | None = None
    sidebar_label: str | None = None
    slug: str | None = None
    id: str | None = None
    draft: bool = False
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(
        cls,
        data: dict[str, Any],
        line: int | None = None,
        key_lines: dict[str, int] | None = None,
    ) -> "FrontMatter":
        """Validate and convert a raw YAML mapping.

        Args:
            data: Mapping loaded from YAML
            line: File line of the block, used for error reporting
            key_lines: File line of each top-level key, when known

        Raises:
            FrontMatterError: If a known key has the wrong type
        """
        values: dict[str, Any] = {}
        extra: dict[str, Any] = {}

        key_lines = key_lines or {}

        for key, value in data.items():
            if not isinstance(key, str):
                raise FrontMatterError(f"front-matter key {key!r} must be a string", line)
            key_line = key_lines.get(key, line)
            if key in _STRING_KEYS:
                if value is not None and not isinstance(value, str):
                    raise FrontMatterError(f"{key} must be a string", key_line)
                values[key] = value
            elif key == "sidebar_position":
                values[key] = _coerce_position(value, key_line)
            elif key == "draft":
                if not isinstance(value, bool):
                    raise FrontMatterError("draft must be a boolean", key_line)
                values[key] = value
            else:
                extra[key] = value

        return cls(**values, extra=extra)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a plain mapping, omitting unset keys."""
        result: dict[str, Any] = {}
        for key in ("title", "description", "sidebar_position", "sidebar_label", "slug", "id"):
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.draft:
            result["draft"] = True
        result.update(self.extra)
        return result


def _coerce_position(value: object, line: int | None) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool):
        raise FrontMatterError("sidebar_position must be an integer", line)
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    raise FrontMatterError("sidebar_position must be an integer", line)


def parse_front_matter(text: str) -> tuple[FrontMatter, str, int]:
    """Split a document into front-matter and body.

    Args:
        text: Full document text

    Returns:
        Tuple of (front_matter, body, body_line) where body_line is the
        1-based file line on which the body starts

    Raises:
        FrontMatterError: If the block is unterminated, not valid YAML,
            not a mapping, or has wrongly typed keys
    """
    lines = text.splitlines(keepends=True)
    if not lines or lines[0].rstrip("\r\n") != DELIMITER:
        return FrontMatter(), text, 1

    closing: int | None = None
    for i in range(1, len(lines)):
        if lines[i].rstrip("\r\n") == DELIMITER:
            closing = i
            break

    if closing is None:
        raise FrontMatterError("unterminated front-matter block", line=1)

    raw = "".join(lines[1:closing])
    body = "".join(lines[closing + 1 :])
    body_line = closing + 2

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        mark = getattr(e, "problem_mark", None)
        line = mark.line + 2 if mark is not None else 1
        problem = getattr(e, "problem", None) or str(e)
        raise FrontMatterError(f"invalid YAML: {problem}", line) from e

    if data is None:
        return FrontMatter(), body, body_line

    if not isinstance(data, dict):
        raise FrontMatterError("front-matter must be a mapping", line=2)

    return FrontMatter.from_mapping(data, line=1, key_lines=_key_lines(lines[1:closing])), body, body_line


def _key_lines(raw_lines: list[str]) -> dict[str, int]:
    """Map each top-level key to its file line (the block starts on line 2)."""
    found: dict[str, int] = {}
    for offset, raw_line in enumerate(raw_lines):
        match = TOP_LEVEL_KEY_RE.match(raw_line)
        if match:
            found.setdefault(match.group("key").strip("\"'"), offset + 2)
    return found
