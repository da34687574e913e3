"""Structural checks for a documentation source tree.

Rules:
    front-matter     front-matter block is valid YAML with correctly typed keys
    unclosed-fence   every fenced code block has a closing delimiter
    broken-link      internal relative links resolve to a page or file
    sidebar          sidebars reference existing documents
    duplicate-route  no two documents share a route
    missing-title    document has a front-matter title or an H1
    category         ``_category_`` files are valid
    slug             front-matter slugs stay inside the site root
    encoding         documents are valid UTF-8
"""

import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

from guidebook.core.document import Document, parse_document
from guidebook.core.frontmatter import FrontMatterError
from guidebook.core.links import extract_links, resolve_link
from guidebook.core.sidebars import SidebarError, Sidebars, iter_doc_ids, load_sidebars
from guidebook.core.site import Site, SiteLoader

logger = logging.getLogger(__name__)

ERROR = "error"
WARNING = "warning"


@dataclass(frozen=True)
class Diagnostic:
    """A single lint finding."""

    path: str
    line: int | None
    rule: str
    severity: str
    message: str

    def format(self) -> str:
        location = f"{self.path}:{self.line}" if self.line is not None else self.path
        return f"{location}: {self.severity} [{self.rule}] {self.message}"


@dataclass
class LintReport:
    """Collected diagnostics for a source tree."""

    diagnostics: list[Diagnostic] = field(default_factory=list)
    documents: int = 0

    @property
    def errors(self) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.severity == ERROR]

    @property
    def warnings(self) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.severity == WARNING]

    @property
    def ok(self) -> bool:
        return not self.errors

    def add(self, diagnostic: Diagnostic) -> None:
        self.diagnostics.append(diagnostic)

    def sorted(self) -> list[Diagnostic]:
        return sorted(self.diagnostics, key=lambda d: (d.path, d.line or 0, d.rule))

    def to_dict(self) -> dict[str, Any]:
        return {
            "documents": self.documents,
            "errors": len(self.errors),
            "warnings": len(self.warnings),
            "diagnostics": [asdict(d) for d in self.sorted()],
        }


@dataclass(frozen=True)
class LintOptions:
    """Severity policy for link checks ("ignore", "warn" or "throw")."""

    on_broken_links: str = "warn"
    on_broken_markdown_links: str = "warn"


def _policy_severity(policy: str) -> str | None:
    if policy == "ignore":
        return None
    return ERROR if policy == "throw" else WARNING


def lint_document(text: str, path: str, site: Site | None, options: LintOptions) -> list[Diagnostic]:
    """Lint a single document's text.

    Args:
        text: Full file contents
        path: Source path relative to the source directory
        site: Site used for link resolution (link checks skipped without it)
        options: Link severity policy

    Returns:
        Diagnostics for this document
    """
    try:
        document = parse_document(path, text)
    except FrontMatterError as e:
        return [Diagnostic(path, e.line, "front-matter", ERROR, e.message)]

    diagnostics: list[Diagnostic] = []
    offset = document.body_line - 1

    for fence in document.fences():
        if not fence.closed:
            diagnostics.append(
                Diagnostic(
                    path,
                    fence.start_line + offset,
                    "unclosed-fence",
                    ERROR,
                    f"code fence {fence.marker}{fence.info} is never closed",
                )
            )

    if not document.front_matter.title and document.h1 is None:
        diagnostics.append(
            Diagnostic(path, None, "missing-title", WARNING, "no front-matter title or H1 heading")
        )

    if site is not None:
        diagnostics.extend(_check_links(document, site, options, offset))

    return diagnostics


def _check_links(document: Document, site: Site, options: LintOptions, offset: int) -> list[Diagnostic]:
    diagnostics: list[Diagnostic] = []
    for link in extract_links(document.body):
        if link.kind != "internal":
            continue
        if resolve_link(site, document.path, link.url) is not None:
            continue
        policy = options.on_broken_markdown_links if link.is_markdown else options.on_broken_links
        severity = _policy_severity(policy)
        if severity is None:
            continue
        kind = "image" if link.is_image else "link"
        diagnostics.append(
            Diagnostic(
                document.path,
                link.line + offset,
                "broken-link",
                severity,
                f"{kind} target not found: {link.url}",
            )
        )
    return diagnostics


def lint_sidebars(sidebars: Sidebars, site: Site, path: str) -> list[Diagnostic]:
    """Report sidebar doc ids that don't exist in the site."""
    diagnostics: list[Diagnostic] = []
    for name, items in sidebars.items():
        for doc_id in iter_doc_ids(items):
            if site.get_page_by_id(doc_id) is None:
                diagnostics.append(
                    Diagnostic(path, None, "sidebar", ERROR, f"sidebar {name!r} references unknown document {doc_id!r}")
                )
    return diagnostics


def lint_site(
    source_dir: Path,
    *,
    sidebars_file: Path | None = None,
    options: LintOptions | None = None,
) -> LintReport:
    """Lint every document under source_dir.

    Args:
        source_dir: Documentation root directory
        sidebars_file: Optional sidebars file to validate
        options: Link severity policy

    Returns:
        LintReport with all diagnostics

    Raises:
        FileNotFoundError: If source_dir doesn't exist
    """
    if not source_dir.is_dir():
        raise FileNotFoundError(f"Source directory not found: {source_dir}")

    options = options or LintOptions()
    report = LintReport()
    site = SiteLoader(source_dir, strict=False).load()

    for issue in site.issues:
        if issue.rule != "front-matter":
            report.add(Diagnostic(issue.path, issue.line, issue.rule, ERROR, issue.message))

    for source_path in sorted(source_dir.rglob("*.md")):
        relative = source_path.relative_to(source_dir)
        if any(part.startswith((".", "_")) for part in relative.parts):
            continue
        report.documents += 1
        try:
            text = source_path.read_text(encoding="utf-8")
        except UnicodeDecodeError:
            # Already reported by the loader
            continue
        for diagnostic in lint_document(text, relative.as_posix(), site, options):
            report.add(diagnostic)

    if sidebars_file is not None:
        sidebars_path = _display_path(sidebars_file, source_dir)
        try:
            sidebars = load_sidebars(sidebars_file)
        except (FileNotFoundError, SidebarError) as e:
            report.add(Diagnostic(sidebars_path, None, "sidebar", ERROR, str(e)))
        else:
            for diagnostic in lint_sidebars(sidebars, site, sidebars_path):
                report.add(diagnostic)

    logger.info(
        f"Linted {report.documents} documents: {len(report.errors)} errors, {len(report.warnings)} warnings"
    )
    return report


def _display_path(path: Path, source_dir: Path) -> str:
    try:
        return path.relative_to(source_dir.parent).as_posix()
    except ValueError:
        return str(path)
