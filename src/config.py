"""Unified site configuration loaded from quire.toml, env vars, and CLI flags.

Loading order: defaults → TOML file → env vars → CLI flags.
"""

from __future__ import annotations

import logging
import os
import tomllib
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "quire.toml"
CONFIG_SEARCH_NAMES = [CONFIG_FILENAME, "config.toml"]


class SiteSection(BaseModel):
    """[site] section."""

    title: str = "My Site"
    base_url: str = "/"
    language: str = "en"
    description: str = ""
    author: str = ""

    @field_validator("base_url")
    @classmethod
    def _trailing_slash(cls, value: str) -> str:
        return value if value.endswith("/") else value + "/"


class BuildSection(BaseModel):
    """[build] section."""

    content_dir: str = "content"
    layouts_dir: str = "layouts"
    static_dir: str = "static"
    assets_dir: str = "assets"
    output_dir: str = "public"
    include_drafts: bool = False
    include_future: bool = True
    on_content_error: Literal["abort", "skip"] = "abort"
    paginate: int = 10
    rss_limit: int = 20
    main_sections: list[str] = Field(default_factory=lambda: ["posts"])
    taxonomies: list[str] = Field(default_factory=lambda: ["tags"])


class OverrideEntry(BaseModel):
    """One ``token = value`` override, kept in declaration order."""

    token: str
    value: str


class ThemeSection(BaseModel):
    """[theme] section.

    ``overrides`` accepts either a TOML table (order of keys preserved) or an
    array of ``{token, value}`` tables::

        [theme.overrides]
        primary-color = "#88C0D0"

        [[theme.overrides]]
        token = "primary-color"
        value = "#88C0D0"
    """

    directory: str = ""
    entry: str = ""
    base_modules: list[str] = Field(default_factory=lambda: ["tokens", "base"])
    dependent_modules: list[str] = Field(
        default_factory=lambda: ["typography", "components", "dark"]
    )
    overrides: list[OverrideEntry] = Field(default_factory=list)
    literal_css: str = ""
    load_paths: list[str] = Field(default_factory=list)
    output_style: Literal["expanded", "compressed"] = "expanded"
    output_name: str = "css/main.css"
    fingerprint: bool = False

    @field_validator("overrides", mode="before")
    @classmethod
    def _table_to_list(cls, value: Any) -> Any:
        if isinstance(value, dict):
            return [{"token": k, "value": str(v)} for k, v in value.items()]
        return value


class MenuItem(BaseModel):
    """A [[menu]] entry for site navigation."""

    name: str
    url: str
    weight: int = 0


class QuireConfig(BaseModel):
    """Top-level configuration model for a site build."""

    site: SiteSection = Field(default_factory=SiteSection)
    build: BuildSection = Field(default_factory=BuildSection)
    theme: ThemeSection = Field(default_factory=ThemeSection)
    menu: list[MenuItem] = Field(default_factory=list)
    params: dict[str, Any] = Field(default_factory=dict)

    @property
    def sorted_menu(self) -> list[MenuItem]:
        return sorted(self.menu, key=lambda m: (m.weight, m.name))

    def resolve(self, site_dir: Path, relative: str) -> Path:
        """Resolve a configured directory against the site root."""
        path = Path(relative).expanduser()
        return path if path.is_absolute() else site_dir / path


def find_config(site_dir: Path) -> Path | None:
    """Return the first config file present in ``site_dir``."""
    for name in CONFIG_SEARCH_NAMES:
        candidate = site_dir / name
        if candidate.exists():
            return candidate
    return None


def load_config(
    path: str | Path | None = None, *, site_dir: Path | None = None
) -> QuireConfig:
    """Load configuration from a TOML file.

    Search order:
    1. Explicit path (if provided)
    2. quire.toml in ``site_dir`` (CWD when omitted)
    3. config.toml in ``site_dir``

    Then overlay environment variables.

    Args:
        path: Explicit path to a TOML file.
        site_dir: Site root to search when no explicit path is given.

    Returns:
        Merged QuireConfig.
    """
    data: dict[str, object] = {}

    if path is not None:
        toml_path = Path(path)
        if toml_path.exists():
            data = _load_toml(toml_path)
        else:
            logger.warning("Config file not found: %s", toml_path)
    else:
        candidate = find_config(site_dir or Path("."))
        if candidate is not None:
            data = _load_toml(candidate)
            logger.info("Loaded config from %s", candidate)

    config = QuireConfig.model_validate(data) if data else QuireConfig()

    return _apply_env_vars(config)


def merge_cli_overrides(config: QuireConfig, **cli_kwargs: object) -> QuireConfig:
    """Overlay explicitly-set CLI flags onto the config.

    Only overrides values where the CLI flag was explicitly provided
    (i.e., not None).

    Args:
        config: Base config.
        **cli_kwargs: CLI flag values (``output_dir``, ``base_url``,
            ``include_drafts``, ``include_future``, ``on_content_error``).

    Returns:
        Updated config with CLI overrides applied.
    """
    data = config.model_dump()

    mapping: dict[str, tuple[str, str]] = {
        "output_dir": ("build", "output_dir"),
        "base_url": ("site", "base_url"),
        "include_drafts": ("build", "include_drafts"),
        "include_future": ("build", "include_future"),
        "on_content_error": ("build", "on_content_error"),
        "output_style": ("theme", "output_style"),
    }

    for key, value in cli_kwargs.items():
        if value is None:
            continue
        if key in mapping:
            section, field = mapping[key]
            data[section][field] = value
        else:
            logger.debug("Ignoring unknown CLI override %s", key)

    return QuireConfig.model_validate(data)


def _load_toml(path: Path) -> dict[str, object]:
    """Load a TOML file and return the data dict."""
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except (tomllib.TOMLDecodeError, OSError) as exc:
        logger.warning("Failed to parse %s: %s", path, exc)
        return {}


def _apply_env_vars(config: QuireConfig) -> QuireConfig:
    """Apply environment variable overrides to config."""
    data = config.model_dump()

    env_mapping: dict[str, tuple[str, str]] = {
        "QUIRE_BASE_URL": ("site", "base_url"),
        "QUIRE_OUTPUT_DIR": ("build", "output_dir"),
    }

    for env_var, (section, field) in env_mapping.items():
        value = os.environ.get(env_var)
        if value is not None:
            data[section][field] = value

    for env_var, field in [
        ("QUIRE_INCLUDE_DRAFTS", "include_drafts"),
        ("QUIRE_INCLUDE_FUTURE", "include_future"),
    ]:
        raw = os.environ.get(env_var)
        if raw is not None:
            data["build"][field] = raw.lower() in ("true", "1", "yes")

    return QuireConfig.model_validate(data)
