"""Markdown document model.

A document is a ``.md`` file: optional YAML front-matter followed by an
immutable Markdown body. Helpers here scan the body for fenced code blocks
and headings without invoking the full renderer.
"""

import re
from dataclasses import dataclass
from pathlib import Path, PurePosixPath

from guidebook.core.frontmatter import FrontMatter, parse_front_matter
from guidebook.core.types import DocId

FENCE_OPEN_RE = re.compile(r"^ {0,3}(?P<marker>`{3,}|~{3,})(?P<info>.*)$")
ATX_H1_RE = re.compile(r"^ {0,3}#[ \t]+(?P<text>.+?)(?:[ \t]+#+)?[ \t]*$")
NUMBER_PREFIX_RE = re.compile(r"^(?P<number>\d+)[-_. ]+(?=\S)")

INDEX_STEMS = ("index", "README")


@dataclass(frozen=True)
class Fence:
    """A fenced code block located in a Markdown body.

    Line numbers are 1-based and relative to the body.
    """

    start_line: int
    end_line: int | None
    marker: str
    info: str

    @property
    def language(self) -> str:
        """First word of the info string (e.g., "java", "mermaid")."""
        return self.info.split()[0] if self.info.strip() else ""

    @property
    def closed(self) -> bool:
        return self.end_line is not None


def scan_fences(body: str) -> list[Fence]:
    """Find fenced code blocks in a Markdown body.

    A fence is closed by a line using the same character repeated at least
    as many times as the opening marker. An unclosed fence runs to the end
    of the document and is reported with ``end_line=None``.

    Args:
        body: Markdown text

    Returns:
        Fences in document order
    """
    fences: list[Fence] = []
    open_fence: tuple[int, str, str] | None = None

    for lineno, line in enumerate(body.splitlines(), start=1):
        if open_fence is None:
            match = FENCE_OPEN_RE.match(line)
            if match is None:
                continue
            marker = match.group("marker")
            info = match.group("info").strip()
            # Backtick fences may not contain backticks in their info string
            if marker[0] == "`" and "`" in info:
                continue
            open_fence = (lineno, marker, info)
            continue

        start, marker, info = open_fence
        stripped = line.strip()
        if (
            len(line) - len(line.lstrip(" ")) <= 3
            and stripped
            and set(stripped) == {marker[0]}
            and len(stripped) >= len(marker)
        ):
            fences.append(Fence(start_line=start, end_line=lineno, marker=marker, info=info))
            open_fence = None

    if open_fence is not None:
        start, marker, info = open_fence
        fences.append(Fence(start_line=start, end_line=None, marker=marker, info=info))

    return fences


def fenced_line_numbers(body: str) -> set[int]:
    """Return body line numbers that belong to fenced code blocks."""
    total = len(body.splitlines())
    inside: set[int] = set()
    for fence in scan_fences(body):
        end = fence.end_line if fence.end_line is not None else total
        inside.update(range(fence.start_line, end + 1))
    return inside


def extract_h1(body: str) -> str | None:
    """Return the text of the first ATX H1 heading outside code fences."""
    fenced = fenced_line_numbers(body)
    for lineno, line in enumerate(body.splitlines(), start=1):
        if lineno in fenced:
            continue
        match = ATX_H1_RE.match(line)
        if match:
            return match.group("text").strip()
    return None


def humanize(name: str) -> str:
    """Turn a file or directory name into a title.

    >>> humanize("setup-guide")
    'Setup Guide'
    """
    words = re.split(r"[-_\s]+", strip_number_prefix(name)[0])
    return " ".join(word[:1].upper() + word[1:] for word in words if word)


def strip_number_prefix(name: str) -> tuple[str, int | None]:
    """Split a leading ordering number from a name.

    ``01-intro`` becomes ``("intro", 1)``; names without a prefix are
    returned unchanged with ``None``.
    """
    match = NUMBER_PREFIX_RE.match(name)
    if match is None:
        return name, None
    return name[match.end() :], int(match.group("number"))


@dataclass(frozen=True)
class Document:
    """A Markdown source document."""

    path: str
    front_matter: FrontMatter
    body: str
    body_line: int = 1

    @property
    def stem(self) -> str:
        return PurePosixPath(self.path).stem

    @property
    def is_index(self) -> bool:
        return strip_number_prefix(self.stem)[0] in INDEX_STEMS

    @property
    def doc_id(self) -> DocId:
        """Sidebar identifier: relative path without extension or number prefixes."""
        parts = [strip_number_prefix(part)[0] for part in PurePosixPath(self.path).with_suffix("").parts]
        if self.front_matter.id:
            parts[-1] = self.front_matter.id
        return DocId("/".join(parts))

    @property
    def h1(self) -> str | None:
        return extract_h1(self.body)

    @property
    def title(self) -> str:
        """Front-matter title, else first H1, else humanized file name."""
        if self.front_matter.title:
            return self.front_matter.title
        heading = self.h1
        if heading:
            return heading
        if self.is_index:
            parent = PurePosixPath(self.path).parent.name
            if parent:
                return humanize(parent)
        return humanize(self.stem)

    @property
    def sidebar_label(self) -> str:
        return self.front_matter.sidebar_label or self.title

    @property
    def position(self) -> int | None:
        if self.front_matter.sidebar_position is not None:
            return self.front_matter.sidebar_position
        return strip_number_prefix(self.stem)[1]

    def fences(self) -> list[Fence]:
        return scan_fences(self.body)


def parse_document(path: str, text: str) -> Document:
    """Parse document text.

    Raises:
        FrontMatterError: If the front-matter block is malformed
    """
    front_matter, body, body_line = parse_front_matter(text)
    return Document(path=path, front_matter=front_matter, body=body, body_line=body_line)


def load_document(source_dir: Path, source_path: Path) -> Document:
    """Read and parse a document from disk.

    Args:
        source_dir: Documentation root
        source_path: Absolute or source_dir-relative path to the ``.md`` file

    Raises:
        FileNotFoundError: If the file doesn't exist
        FrontMatterError: If the front-matter block is malformed
    """
    full_path = source_path if source_path.is_absolute() else source_dir / source_path
    if not full_path.exists():
        raise FileNotFoundError(f"Source file not found: {full_path}")
    relative = full_path.relative_to(source_dir).as_posix()
    return parse_document(relative, full_path.read_text(encoding="utf-8"))
