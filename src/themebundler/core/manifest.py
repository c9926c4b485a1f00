"""
Project manifest (``themebundler.toml``) loading.

Example::

    [project]
    name = "storefront"

    [bundle]
    themes_dir = "themes"
    common_theme_path = "themes/common"
    patterns = ["components", "pages"]
    export_path = "dist/themes"
    minify = false

Themes can also be listed explicitly, in bundle order::

    [[bundle.themes]]
    path = "themes/default"

    [[bundle.themes]]
    path = "themes/dark"
    baseTheme = "themes/default"

Relative paths and patterns are resolved against the manifest directory.
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .config import BuildMode, CollectionConfig, normalize_config_keys
from .errors import make_configuration_error
from .patterns import CWD_TOKEN

MANIFEST_FILE = "themebundler.toml"

_THEME_PATH_KEYS = (
    "path",
    "base_theme",
    "common_theme_file",
    "target",
    "minified_target",
    "export_path",
)


@dataclass
class BundleSection:
    """The ``[bundle]`` table."""

    themes: list[dict[str, Any]] = field(default_factory=list)
    themes_dir: Path | None = None
    common_theme_path: Path | None = None
    common_theme_file: Path | None = None
    patterns: list[str] = field(default_factory=list)
    export_path: Path | None = None
    watch_paths: list[Path] = field(default_factory=list)
    minify: bool = False


@dataclass
class ProjectManifest:
    name: str
    root: Path
    bundle: BundleSection = field(default_factory=BundleSection)

    def to_collection_config(
        self,
        mode: BuildMode = BuildMode.DEVELOPMENT,
        verbose: bool = False,
        minify: bool | None = None,
    ) -> CollectionConfig:
        """Build the collection config, applying command-line flags."""
        bundle = self.bundle
        return CollectionConfig(
            themes=tuple(bundle.themes),
            themes_dir=bundle.themes_dir,
            common_theme_path=bundle.common_theme_path,
            common_theme_file=bundle.common_theme_file,
            patterns=tuple(bundle.patterns),
            minify=bundle.minify if minify is None else minify,
            export_path=bundle.export_path,
            watch_paths=tuple(bundle.watch_paths),
            mode=mode,
            verbose=verbose,
        )


def _resolve(root: Path, value: str | None) -> Path | None:
    if not value:
        return None
    path = Path(value)
    return path if path.is_absolute() else root / path


def _resolve_pattern(root: Path, pattern: str) -> str:
    if pattern.startswith(CWD_TOKEN) or Path(pattern).is_absolute():
        return pattern
    return str(root / pattern)


def _parse_theme_entry(root: Path, entry: Any) -> dict[str, Any]:
    if isinstance(entry, str):
        return {"path": _resolve(root, entry)}
    theme = normalize_config_keys(entry)
    for key in _THEME_PATH_KEYS:
        if isinstance(theme.get(key), str):
            theme[key] = _resolve(root, theme[key])
    if "patterns" in theme:
        theme["patterns"] = [_resolve_pattern(root, p) for p in theme["patterns"]]
    return theme


def load_manifest(path: Path) -> ProjectManifest:
    """Load ``themebundler.toml``.

    Raises:
        ConfigurationError: If the file is missing or is not valid TOML.
    """
    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except FileNotFoundError as e:
        raise make_configuration_error(f"Manifest not found: {path}") from e
    except tomllib.TOMLDecodeError as e:
        raise make_configuration_error(f"Invalid TOML in {path}: {e}") from e

    root = path.resolve().parent
    project = data.get("project", {})
    bundle_data = normalize_config_keys(data.get("bundle", {}))

    bundle = BundleSection(
        themes=[_parse_theme_entry(root, entry) for entry in bundle_data.get("themes", [])],
        themes_dir=_resolve(root, bundle_data.get("themes_dir")),
        common_theme_path=_resolve(root, bundle_data.get("common_theme_path")),
        common_theme_file=_resolve(root, bundle_data.get("common_theme_file")),
        patterns=[_resolve_pattern(root, p) for p in bundle_data.get("patterns", [])],
        export_path=_resolve(root, bundle_data.get("export_path")),
        watch_paths=[
            p for p in (_resolve(root, w) for w in bundle_data.get("watch_paths", [])) if p
        ],
        minify=bundle_data.get("minify", False),
    )

    return ProjectManifest(
        name=project.get("name", root.name),
        root=root,
        bundle=bundle,
    )
