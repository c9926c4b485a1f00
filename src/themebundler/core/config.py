"""
Theme configuration model and layered resolution.

A theme's effective configuration is resolved from three layers, lowest
precedence first:

1. ``DEFAULT_THEME_CONFIG`` (built-in defaults)
2. The on-disk theme config file ``<path>/<name>.config.json``
   (``.config.yaml`` / ``.config.yml`` are accepted too)
3. Caller-supplied overrides (constructor arguments, collection defaults)

Resolution always produces a new frozen ``ThemeConfig``; none of the
input mappings are mutated.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Mapping
from enum import StrEnum
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, model_validator

logger = logging.getLogger(__name__)

CONFIG_FILE_SUFFIXES = (".config.json", ".config.yaml", ".config.yml")

# Keys a theme config file may set. ``name`` and ``path`` are always
# derived from the theme directory itself.
FILE_CONFIG_KEYS = frozenset(
    {
        "extension",
        "includes",
        "patterns",
        "base_theme",
        "common_theme_file",
        "target",
        "minified_target",
        "export_path",
        "verbose",
        "mode",
        "minify",
    }
)

# Path-valued keys; relative values in a config file are anchored at the theme directory.
_PATH_KEYS = ("base_theme", "common_theme_file", "target", "minified_target", "export_path")

_CAMEL_RE = re.compile(r"(?<!^)(?=[A-Z])")


class BuildMode(StrEnum):
    """Output mode for a bundle pass."""

    DEVELOPMENT = "development"
    PRODUCTION = "production"


def to_snake_case(key: str) -> str:
    """Convert ``baseTheme`` style keys to ``base_theme``."""
    return _CAMEL_RE.sub("_", key).lower()


def normalize_config_keys(data: Mapping[str, Any]) -> dict[str, Any]:
    """Return a copy of *data* with camelCase keys converted to snake_case."""
    return {to_snake_case(str(key)): value for key, value in data.items()}


class ThemeConfig(BaseModel):
    """Resolved, immutable configuration of a single theme."""

    model_config = ConfigDict(frozen=True)

    name: str
    path: Path
    extension: str = "css"
    includes: tuple[str, ...] = ()
    patterns: tuple[str, ...] = ()
    base_theme: Path | None = None
    common_theme_file: Path | None = None
    target: Path | None = None
    minified_target: Path | None = None
    export_path: Path | None = None
    verbose: bool = False
    mode: BuildMode = BuildMode.DEVELOPMENT
    minify: bool = False
    settle_delay: float = Field(default=0.1, ge=0)

    @model_validator(mode="before")
    @classmethod
    def _normalize_keys(cls, data: Any) -> Any:
        if isinstance(data, Mapping):
            data = normalize_config_keys(data)
            if isinstance(data.get("extension"), str):
                data["extension"] = data["extension"].lstrip(".").lower() or "css"
        return data

    @property
    def target_file(self) -> Path:
        """File receiving the unminified merged styles."""
        if self.target is not None:
            return self.target
        return self.path / f"{self.name}.bundled.{self.extension}"

    @property
    def minified_target_file(self) -> Path:
        """File receiving the minified CSS."""
        if self.minified_target is not None:
            return self.minified_target
        return self.path / f"{self.name}.min.css"

    @property
    def requires_preprocessing(self) -> bool:
        return self.extension == "scss"

    @property
    def is_production(self) -> bool:
        return self.mode == BuildMode.PRODUCTION


DEFAULT_THEME_CONFIG: Mapping[str, Any] = {
    "extension": "css",
    "includes": (),
    "patterns": (),
    "verbose": False,
    "mode": BuildMode.DEVELOPMENT,
    "minify": False,
}


class CollectionConfig(BaseModel):
    """Configuration of a theme collection.

    Either ``themes`` (explicit, ordered) or ``themes_dir`` (directory scan)
    supplies the member themes. The remaining fields are collection-wide
    defaults propagated into every member at construction time.
    """

    model_config = ConfigDict(frozen=True)

    themes: tuple[dict[str, Any], ...] = ()
    themes_dir: Path | None = None
    common_theme_path: Path | None = None
    common_theme_file: Path | None = None
    patterns: tuple[str, ...] = ()
    minify: bool = False
    export_path: Path | None = None
    watch_paths: tuple[Path, ...] = ()
    mode: BuildMode = BuildMode.DEVELOPMENT
    verbose: bool = False
    settle_delay: float = Field(default=0.1, ge=0)

    @model_validator(mode="before")
    @classmethod
    def _normalize_keys(cls, data: Any) -> Any:
        if isinstance(data, Mapping):
            data = normalize_config_keys(data)
            themes = data.get("themes")
            if themes:
                data["themes"] = tuple(
                    normalize_config_keys(theme) if isinstance(theme, Mapping) else {"path": theme}
                    for theme in themes
                )
        return data


def resolve_theme_config(
    overrides: Mapping[str, Any],
    file_config: Mapping[str, Any] | None = None,
    defaults: Mapping[str, Any] = DEFAULT_THEME_CONFIG,
) -> ThemeConfig:
    """Merge the three configuration layers into a ``ThemeConfig``.

    Later layers win. A ``None`` value never overrides a lower layer.
    The theme name defaults to the last segment of ``path``.
    """
    merged: dict[str, Any] = {}
    for layer in (defaults, file_config or {}, overrides):
        for key, value in normalize_config_keys(layer).items():
            if value is not None:
                merged[key] = value

    path = Path(merged.get("path") or Path.cwd())
    merged["path"] = path
    if not merged.get("name"):
        merged["name"] = path.name
    return ThemeConfig.model_validate(merged)


def get_config_file_candidates(path: Path, name: str) -> list[Path]:
    """Candidate config files for a theme, in lookup order."""
    return [path / f"{name}{suffix}" for suffix in CONFIG_FILE_SUFFIXES]


def find_config_file(path: Path, name: str) -> Path | None:
    """Return the first existing config file for a theme, if any."""
    for candidate in get_config_file_candidates(path, name):
        if candidate.is_file():
            return candidate
    return None


def _parse_config_file(config_file: Path) -> Any:
    content = config_file.read_text(encoding="utf-8")
    if config_file.suffix == ".json":
        return json.loads(content)
    return yaml.safe_load(content)


def load_theme_file_config(path: Path, name: str) -> dict[str, Any]:
    """Load the on-disk config of a theme.

    A missing or unreadable config file is reported and yields an empty
    mapping; the theme still works from patterns and overrides alone.
    Relative paths inside the file are anchored at the theme directory.
    """
    config_file = find_config_file(path, name)
    if config_file is None:
        logger.error(
            "[theme:%s] Config file not found for theme '%s': %s",
            name,
            name,
            get_config_file_candidates(path, name)[0],
        )
        return {}

    try:
        data = _parse_config_file(config_file)
    except (OSError, ValueError, yaml.YAMLError) as e:
        logger.error("[theme:%s] Failed to load config file for theme '%s': %s", name, name, e)
        return {}

    if data is None:
        return {}
    if not isinstance(data, Mapping):
        logger.error(
            "[theme:%s] Failed to load config file for theme '%s': expected an object in %s",
            name,
            name,
            config_file,
        )
        return {}

    result: dict[str, Any] = {}
    for key, value in normalize_config_keys(data).items():
        if key not in FILE_CONFIG_KEYS:
            logger.debug(
                "[theme:%s] Ignoring unknown config key '%s' in %s", name, key, config_file
            )
            continue
        if key in _PATH_KEYS and isinstance(value, str) and value:
            candidate = Path(value)
            value = candidate if candidate.is_absolute() else path / candidate
        result[key] = value
    return result
