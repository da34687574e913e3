"""CLI interface for Guidebook.

Command-line tool for serving, building and linting Markdown documentation.
"""

import json
import logging
import sys
from pathlib import Path
from typing import NoReturn

import click

from guidebook.config import Config
from guidebook.core.lint import LintOptions, LintReport, lint_site
from guidebook.core.navigation import NavigationBuilder, NavItem
from guidebook.core.site import SiteLoader

config_option = click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=True, path_type=Path, dir_okay=False),
    default=None,
    help="Path to configuration file (default: auto-discover guidebook.toml)",
)

source_dir_option = click.option(
    "--source-dir",
    "-s",
    type=click.Path(exists=True, path_type=Path, file_okay=False),
    default=None,
    help="Documentation source directory (overrides config)",
)

kroki_url_option = click.option(
    "--kroki-url",
    default=None,
    help="Kroki server URL for diagram rendering (overrides config)",
)

verbose_option = click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose output (debug logging and rendering warnings)",
)


@click.group()
@click.version_option(package_name="guidebook")
def cli() -> None:
    """Guidebook - Markdown documentation, linted, built and served."""


@cli.command()
@config_option
@source_dir_option
@click.option(
    "--cache-dir",
    type=click.Path(path_type=Path, file_okay=False),
    default=None,
    help="Cache directory (overrides config)",
)
@click.option(
    "--host",
    default=None,
    help="Host to bind to (overrides config)",
)
@click.option(
    "--port",
    "-p",
    type=int,
    default=None,
    help="Port to bind to (overrides config)",
)
@kroki_url_option
@verbose_option
@click.option(
    "--live-reload/--no-live-reload",
    default=None,
    help="Enable/disable live reload (overrides config, default: enabled)",
)
@click.option(
    "--cache/--no-cache",
    default=None,
    help="Enable/disable caching (overrides config, default: enabled)",
)
def serve(
    config_path: Path | None,
    source_dir: Path | None,
    cache_dir: Path | None,
    host: str | None,
    port: int | None,
    kroki_url: str | None,
    verbose: bool,
    live_reload: bool | None,
    cache: bool | None,
) -> None:
    """Start the documentation server."""
    from guidebook.server import run_server

    _configure_logging(verbose, default=logging.INFO)
    config = _load_config(
        config_path,
        host=host,
        port=port,
        source_dir=source_dir,
        cache_dir=cache_dir,
        cache_enabled=cache,
        kroki_url=kroki_url,
        live_reload_enabled=live_reload,
    )

    click.echo(f"Serving {config.docs.source_dir} on http://{config.server.host}:{config.server.port}")
    settings = {
        "cache": str(config.docs.cache_dir) if config.docs.cache_enabled else "off",
        "diagrams": config.diagrams.kroki_url or "off (no kroki_url configured)",
        "live reload": "on" if config.live_reload.enabled else "off",
    }
    for name, value in settings.items():
        click.echo(f"  {name}: {value}")

    run_server(config, verbose=verbose)


@cli.command()
@config_option
@source_dir_option
@click.option(
    "--output-dir",
    "-o",
    type=click.Path(path_type=Path, file_okay=False),
    default=None,
    help="Output directory (overrides config)",
)
@kroki_url_option
@verbose_option
def build(
    config_path: Path | None,
    source_dir: Path | None,
    output_dir: Path | None,
    kroki_url: str | None,
    verbose: bool,
) -> None:
    """Build the static site."""
    from guidebook.build import BuildError, build_site

    _configure_logging(verbose)
    config = _load_config(
        config_path,
        source_dir=source_dir,
        output_dir=output_dir,
        kroki_url=kroki_url,
    )

    click.echo(f"Building {config.docs.source_dir} -> {config.docs.output_dir}")
    try:
        result = build_site(config)
    except (BuildError, FileNotFoundError, ValueError) as e:
        _fail(str(e))

    for warning in result.warnings:
        click.echo(click.style(f"Warning: {warning}", fg="yellow"), err=True)

    click.echo(
        click.style(f"\nBuilt {result.pages} pages into {result.output_dir}", fg="green", bold=True),
    )


@cli.command()
@config_option
@source_dir_option
@click.option(
    "--strict",
    is_flag=True,
    help="Treat warnings as errors",
)
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["text", "json"]),
    default="text",
    help="Output format (default: text)",
)
def lint(
    config_path: Path | None,
    source_dir: Path | None,
    strict: bool,
    output_format: str,
) -> None:
    """Check documents for structural problems."""
    _configure_logging(False)
    config = _load_config(config_path, source_dir=source_dir)

    try:
        report = lint_site(
            config.docs.source_dir,
            sidebars_file=config.site.sidebars_file,
            options=LintOptions(
                on_broken_links=config.site.on_broken_links,
                on_broken_markdown_links=config.site.on_broken_markdown_links,
            ),
        )
    except FileNotFoundError as e:
        _fail(str(e))

    if output_format == "json":
        click.echo(json.dumps(report.to_dict(), indent=2))
    else:
        _print_lint_report(report)

    if not report.ok or (strict and report.warnings):
        sys.exit(1)


def _print_lint_report(report: LintReport) -> None:
    for diagnostic in report.sorted():
        color = "red" if diagnostic.severity == "error" else "yellow"
        click.echo(click.style(diagnostic.format(), fg=color))

    summary = (
        f"{report.documents} documents checked: "
        f"{len(report.errors)} errors, {len(report.warnings)} warnings"
    )
    click.echo(click.style(summary, fg="green" if report.ok else "red", bold=True))


@cli.command()
@config_option
@source_dir_option
def nav(config_path: Path | None, source_dir: Path | None) -> None:
    """Print the navigation tree."""
    _configure_logging(False)
    config = _load_config(config_path, source_dir=source_dir)

    navigation = NavigationBuilder(SiteLoader(config.docs.source_dir), config.site.sidebars_file)
    try:
        tree = navigation.build(use_cache=False)
    except (FileNotFoundError, ValueError) as e:
        _fail(str(e))

    for item in tree.items:
        _print_nav_item(item, depth=0)


def _print_nav_item(item: NavItem, depth: int) -> None:
    indent = "  " * depth
    path = f" ({item.path})" if item.path else ""
    click.echo(f"{indent}- {item.title}{path}")
    for child in item.children:
        _print_nav_item(child, depth + 1)


@cli.command()
@config_option
def clean(config_path: Path | None) -> None:
    """Remove cached pages, diagrams and navigation."""
    from guidebook.core.cache import FileCache

    config = _load_config(config_path)
    cache = FileCache(config.docs.cache_dir)
    cache.clear()
    click.echo(f"Cleared cache at {cache.cache_dir}")


def _load_config(config_path: Path | None, **overrides: object) -> Config:
    """Load configuration and apply CLI overrides, exiting on error."""
    try:
        config = Config.load(config_path)
    except (FileNotFoundError, ValueError) as e:
        _fail(str(e))
    return config.with_overrides(**overrides)  # type: ignore[arg-type]


def _configure_logging(verbose: bool, default: int = logging.WARNING) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else default,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _fail(message: str) -> NoReturn:
    click.echo(click.style(f"Error: {message}", fg="red"), err=True)
    sys.exit(1)


if __name__ == "__main__":
    cli()
