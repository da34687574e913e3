"""Configuration management for Guidebook.

Supports TOML configuration format with auto-discovery.
"""

import tomllib
from dataclasses import dataclass, field, replace
from pathlib import Path

CONFIG_FILENAME = "guidebook.toml"

BROKEN_LINK_POLICIES = ("ignore", "warn", "throw")


@dataclass
class ServerConfig:
    """Server configuration."""

    host: str = "127.0.0.1"
    port: int = 8080


@dataclass
class DocsConfig:
    """Documentation source and output configuration."""

    source_dir: Path = field(default_factory=lambda: Path("docs"))
    cache_dir: Path = field(default_factory=lambda: Path(".cache"))
    cache_enabled: bool = True
    output_dir: Path = field(default_factory=lambda: Path("build"))


@dataclass
class SiteConfig:
    """Site metadata and link checking policy."""

    title: str = "Documentation"
    tagline: str = ""
    url: str | None = None
    base_url: str = "/"
    sidebars_file: Path | None = None
    on_broken_links: str = "warn"
    on_broken_markdown_links: str = "warn"


@dataclass
class DiagramsConfig:
    """Diagram rendering configuration."""

    kroki_url: str | None = None
    dpi: int = 192


@dataclass
class LiveReloadConfig:
    """Live reload configuration."""

    enabled: bool = True
    watch_patterns: list[str] | None = None


@dataclass
class Config:
    """Application configuration."""

    server: ServerConfig
    docs: DocsConfig
    site: SiteConfig
    diagrams: DiagramsConfig
    live_reload: LiveReloadConfig
    config_path: Path | None = None

    @classmethod
    def load(cls, config_path: Path | None = None) -> "Config":
        """Load configuration from file.

        If config_path is provided, loads from that file.
        Otherwise, searches for guidebook.toml in current directory and parents.

        Args:
            config_path: Optional explicit path to config file

        Returns:
            Config instance with defaults for missing sections

        Raises:
            FileNotFoundError: If explicit config_path doesn't exist
            ValueError: If configuration is invalid
        """
        if config_path is not None:
            if not config_path.exists():
                raise FileNotFoundError(f"Configuration file not found: {config_path}")
            return cls._load_from_file(config_path)

        discovered_path = cls._discover_config()
        if discovered_path is None:
            return cls.default()

        return cls._load_from_file(discovered_path)

    @classmethod
    def _discover_config(cls) -> Path | None:
        """Search for config file in current directory and parents."""
        current = Path.cwd()
        while True:
            candidate = current / CONFIG_FILENAME
            if candidate.exists():
                return candidate
            parent = current.parent
            if parent == current:
                return None
            current = parent

    @classmethod
    def default(cls) -> "Config":
        """Create config with all defaults."""
        return cls(
            server=ServerConfig(),
            docs=DocsConfig(),
            site=SiteConfig(),
            diagrams=DiagramsConfig(),
            live_reload=LiveReloadConfig(),
        )

    @classmethod
    def _load_from_file(cls, path: Path) -> "Config":
        """Load configuration from a specific file.

        Raises:
            ValueError: If the file is not valid TOML or a value has the wrong type
        """
        with path.open("rb") as f:
            try:
                data = tomllib.load(f)
            except tomllib.TOMLDecodeError as e:
                raise ValueError(f"Invalid TOML in {path}: {e}") from e

        base = path.parent
        server = _Section(data, "server")
        docs = _Section(data, "docs")
        site = _Section(data, "site")
        diagrams = _Section(data, "diagrams")
        live_reload = _Section(data, "live_reload")

        sidebars_file = site.optional_str("sidebars_file")

        return cls(
            server=ServerConfig(
                host=server.get_str("host", "127.0.0.1"),
                port=server.get_int("port", 8080),
            ),
            docs=DocsConfig(
                source_dir=base / docs.get_str("source_dir", "docs"),
                cache_dir=base / docs.get_str("cache_dir", ".cache"),
                cache_enabled=docs.get_bool("cache_enabled", True),
                output_dir=base / docs.get_str("output_dir", "build"),
            ),
            site=SiteConfig(
                title=site.get_str("title", "Documentation"),
                tagline=site.get_str("tagline", ""),
                url=site.optional_str("url"),
                base_url=normalize_base_url(site.get_str("base_url", "/")),
                sidebars_file=base / sidebars_file if sidebars_file is not None else None,
                on_broken_links=site.choice("on_broken_links", BROKEN_LINK_POLICIES, "warn"),
                on_broken_markdown_links=site.choice("on_broken_markdown_links", BROKEN_LINK_POLICIES, "warn"),
            ),
            diagrams=DiagramsConfig(
                kroki_url=diagrams.optional_str("kroki_url"),
                dpi=diagrams.get_int("dpi", 192),
            ),
            live_reload=LiveReloadConfig(
                enabled=live_reload.get_bool("enabled", True),
                watch_patterns=live_reload.optional_str_list("watch_patterns"),
            ),
            config_path=path,
        )

    def with_overrides(
        self,
        *,
        host: str | None = None,
        port: int | None = None,
        source_dir: Path | None = None,
        cache_dir: Path | None = None,
        cache_enabled: bool | None = None,
        output_dir: Path | None = None,
        kroki_url: str | None = None,
        live_reload_enabled: bool | None = None,
    ) -> "Config":
        """Return a copy with command line overrides applied.

        Arguments left as None keep the configured value.
        """

        def changes(**values: object) -> dict[str, object]:
            return {key: value for key, value in values.items() if value is not None}

        return replace(
            self,
            server=replace(self.server, **changes(host=host, port=port)),
            docs=replace(
                self.docs,
                **changes(
                    source_dir=source_dir,
                    cache_dir=cache_dir,
                    cache_enabled=cache_enabled,
                    output_dir=output_dir,
                ),
            ),
            diagrams=replace(self.diagrams, **changes(kroki_url=kroki_url)),
            live_reload=replace(self.live_reload, **changes(enabled=live_reload_enabled)),
        )


def normalize_base_url(base_url: str) -> str:
    """Ensure base URL starts and ends with a slash."""
    stripped = base_url.strip("/")
    return f"/{stripped}/" if stripped else "/"


class _Section:
    """Typed accessors for one top-level TOML table."""

    def __init__(self, data: dict, name: str) -> None:
        table = data.get(name, {})
        if not isinstance(table, dict):
            raise ValueError(f"{name} section must be a dictionary")
        self._table = table
        self._name = name

    def _invalid(self, key: str, expected: str) -> ValueError:
        return ValueError(f"{self._name}.{key} must be {expected}")

    def get_str(self, key: str, default: str) -> str:
        value = self._table.get(key, default)
        if not isinstance(value, str):
            raise self._invalid(key, "a string")
        return value

    def optional_str(self, key: str) -> str | None:
        if self._table.get(key) is None:
            return None
        return self.get_str(key, "")

    def get_int(self, key: str, default: int) -> int:
        value = self._table.get(key, default)
        # bool is a subclass of int
        if not isinstance(value, int) or isinstance(value, bool):
            raise self._invalid(key, "an integer")
        return value

    def get_bool(self, key: str, default: bool) -> bool:
        value = self._table.get(key, default)
        if not isinstance(value, bool):
            raise self._invalid(key, "a boolean")
        return value

    def choice(self, key: str, choices: tuple[str, ...], default: str) -> str:
        value = self._table.get(key, default)
        if value not in choices:
            raise self._invalid(key, f"one of: {', '.join(choices)}")
        return value

    def optional_str_list(self, key: str) -> list[str] | None:
        value = self._table.get(key)
        if value is None:
            return None
        if not isinstance(value, list):
            raise self._invalid(key, "a list")
        if not all(isinstance(item, str) for item in value):
            raise ValueError(f"{self._name}.{key} items must be strings")
        return list(value)
