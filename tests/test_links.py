"""Tests for link extraction and resolution."""

from pathlib import Path

import pytest

from guidebook.core.links import classify, extract_links, resolve_link, split_url
from guidebook.core.site import Site, SiteLoader

from tests.helpers import write_doc


class TestExtractLinks:
    """Tests for extract_links()."""

    def test__inline_links_and_images__extracted(self) -> None:
        """Find links and images with their lines."""
        body = 'Intro\n\nSee [Guide](guide.md) and ![Diagram](img/arch.png "Arch").\n'

        links = extract_links(body)

        assert [(link.url, link.text, link.line, link.is_image) for link in links] == [
            ("guide.md", "Guide", 3, False),
            ("img/arch.png", "Diagram", 3, True),
        ]

    def test__fenced_code__skipped(self) -> None:
        """Ignore link syntax inside code fences."""
        body = "```markdown\n[Example](nowhere.md)\n```\n\n[Real](real.md)\n"

        links = extract_links(body)

        assert [link.url for link in links] == ["real.md"]
        assert links[0].line == 5

    def test__code_span__skipped(self) -> None:
        """Ignore link syntax inside inline code."""
        links = extract_links("Write `[text](target.md)` to link, like [this](this.md).\n")

        assert [link.url for link in links] == ["this.md"]

    def test__indented_code__skipped(self) -> None:
        """Ignore indented code blocks."""
        links = extract_links("    [code](code.md)\n")

        assert links == []

    def test__reference_definition__extracted(self) -> None:
        """Treat reference definitions as links."""
        links = extract_links("Read [SOLID][solid].\n\n[solid]: ../solid/index.md\n")

        assert [(link.url, link.line) for link in links] == [("../solid/index.md", 3)]

    def test__angle_bracket_url__unwrapped(self) -> None:
        """Accept URLs written in angle brackets."""
        links = extract_links("[Spaces](<my-file.md>)\n")

        assert links[0].url == "my-file.md"

    def test__link_kind_and_markdown_flag(self) -> None:
        """Classify extracted links."""
        links = extract_links("[a](https://example.com) [b](#top) [c](guide.md#setup)\n")

        assert [link.kind for link in links] == ["external", "anchor", "internal"]
        assert [link.is_markdown for link in links] == [False, False, True]


class TestClassify:
    """Tests for classify() and split_url()."""

    @pytest.mark.parametrize(
        ("url", "expected"),
        [
            ("https://example.com", "external"),
            ("http://example.com/page.md", "external"),
            ("//cdn.example.com/lib.js", "external"),
            ("mailto:team@example.com", "external"),
            ("#section", "anchor"),
            ("guide.md", "internal"),
            ("../solid/", "internal"),
            ("/absolute/route", "internal"),
        ],
    )
    def test__classify(self, url: str, expected: str) -> None:
        """Classify URLs by scheme and prefix."""
        assert classify(url) == expected

    @pytest.mark.parametrize(
        ("url", "expected"),
        [
            ("guide.md", ("guide.md", "")),
            ("guide.md#setup", ("guide.md", "#setup")),
            ("guide.md?v=1#setup", ("guide.md", "?v=1#setup")),
        ],
    )
    def test__split_url(self, url: str, expected: tuple[str, str]) -> None:
        """Separate the target from query and fragment."""
        assert split_url(url) == expected


class TestResolveLink:
    """Tests for resolve_link()."""

    @pytest.fixture
    def site(self, docs_dir: Path) -> Site:
        write_doc(docs_dir, "guide.md", "# Guide\n")
        write_doc(docs_dir, "solid/index.md", "# SOLID\n")
        write_doc(docs_dir, "solid/01-open-closed.md", "# OCP\n")
        write_doc(docs_dir, "solid/02-liskov.md", "# LSP\n")
        (docs_dir / "img").mkdir()
        (docs_dir / "img" / "arch.png").write_bytes(b"\x89PNG")
        return SiteLoader(docs_dir).load()

    def test__relative_markdown_file__resolved_to_route(self, site: Site) -> None:
        """Map a sibling .md file to its route, keeping the fragment."""
        assert resolve_link(site, "solid/01-open-closed.md", "02-liskov.md#rules") == "/solid/liskov#rules"

    def test__parent_markdown_file__resolved(self, site: Site) -> None:
        """Resolve ../ paths against the linking document."""
        assert resolve_link(site, "solid/01-open-closed.md", "../guide.md") == "/guide"

    def test__absolute_markdown_file__resolved_from_root(self, site: Site) -> None:
        """Resolve /-prefixed file paths from the source directory."""
        assert resolve_link(site, "solid/02-liskov.md", "/guide.md") == "/guide"

    def test__index_file__resolved_to_category(self, site: Site) -> None:
        """Map index.md to its category route."""
        assert resolve_link(site, "guide.md", "solid/index.md") == "/solid"

    def test__missing_markdown_file__returns_none(self, site: Site) -> None:
        """Return None for a missing target."""
        assert resolve_link(site, "guide.md", "missing.md") is None

    def test__path_escaping_source_dir__returns_none(self, site: Site) -> None:
        """Reject links that leave the source directory."""
        assert resolve_link(site, "solid/02-liskov.md", "../../outside.md") is None

    def test__asset_file__resolved_to_absolute_path(self, site: Site) -> None:
        """Resolve plain files next to documents."""
        assert resolve_link(site, "solid/02-liskov.md", "../img/arch.png") == "/img/arch.png"

    def test__route_relative_link__resolved(self, site: Site) -> None:
        """Resolve extensionless links like a browser from the page URL."""
        assert resolve_link(site, "solid/01-open-closed.md", "liskov") == "/solid/liskov"

    def test__absolute_route__resolved(self, site: Site) -> None:
        """Accept absolute routes."""
        assert resolve_link(site, "solid/02-liskov.md", "/guide#top") == "/guide#top"

    def test__unknown_route__returns_none(self, site: Site) -> None:
        """Return None for routes with no page."""
        assert resolve_link(site, "guide.md", "/nowhere") is None

    @pytest.mark.parametrize("url", ["https://example.com/x.md", "#section", "mailto:a@b.c"])
    def test__non_internal__returned_unchanged(self, site: Site, url: str) -> None:
        """Leave external and anchor links alone."""
        assert resolve_link(site, "guide.md", url) == url
