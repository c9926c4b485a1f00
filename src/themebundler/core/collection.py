"""
Theme collection: a set of themes sharing one ``common`` theme.

The common theme's first source file is injected into every member as
``common_theme_file``. Members read that raw file, not the common
theme's compiled output; the common theme is still bundled on its own so
it can be minified and exported.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from .config import DEFAULT_THEME_CONFIG, CollectionConfig, normalize_config_keys
from .errors import ConfigurationError
from .theme import COMMON_THEME_NAME, BundleResult, StyleUpdateCallback, ThemeBundler
from .watcher import WatchHandle, watch_tree

logger = logging.getLogger(__name__)


class ThemesBundler:
    """
    Bundles and watches a collection of themes.

    Args:
        config: A ``CollectionConfig`` or a mapping accepted by it.
    """

    def __init__(self, config: CollectionConfig | Mapping[str, Any] | None = None):
        if isinstance(config, CollectionConfig):
            self.config = config
        else:
            self.config = CollectionConfig.model_validate(config or {})

        self.themes: list[ThemeBundler] = []
        self.common_theme: ThemeBundler | None = None
        self.common_theme_file: Path | None = self.config.common_theme_file
        self.watchers: list[WatchHandle] = []

        self._init_common_theme()
        self._init_themes()

    # =========================================================================
    # Discovery
    # =========================================================================

    def _member_defaults(self) -> dict[str, Any]:
        """Collection-wide defaults; a member's own config file wins over these."""
        defaults = dict(DEFAULT_THEME_CONFIG)
        defaults.update(
            minify=self.config.minify,
            verbose=self.config.verbose,
            settle_delay=self.config.settle_delay,
        )
        if self.config.patterns:
            defaults["patterns"] = self.config.patterns
        if self.config.export_path is not None:
            defaults["export_path"] = self.config.export_path
        return defaults

    def _init_common_theme(self) -> None:
        path = self.config.common_theme_path
        if path is None:
            return
        if not path.is_dir():
            logger.error("[themes] Common theme path does not exist: %s", path)
            return

        self.common_theme = ThemeBundler(
            {"path": path, "name": COMMON_THEME_NAME, "mode": self.config.mode},
            defaults=self._member_defaults(),
        )
        if self.common_theme_file is None:
            files = self.common_theme.get_files()
            if len(files) > 1:
                logger.warning(
                    "[themes] Common theme has %d source files; members only include the first: %s",
                    len(files),
                    files[0],
                )
            if files:
                self.common_theme_file = files[0]
            else:
                logger.warning("[themes] Common theme has no source files: %s", path)

    def _init_themes(self) -> None:
        if self.config.themes:
            entries: list[dict[str, Any]] = [dict(theme) for theme in self.config.themes]
        elif self.config.themes_dir is not None:
            entries = self.discover_themes(self.config.themes_dir)
        else:
            entries = []

        for entry in entries:
            theme = self._create_theme(entry)
            if theme is not None:
                self.themes.append(theme)

    def _create_theme(self, entry: Mapping[str, Any]) -> ThemeBundler | None:
        overrides = normalize_config_keys(entry)
        path = overrides.get("path")
        if path is None or not Path(path).is_dir():
            logger.error("[themes] Theme path %s does not exist, skipping", path)
            return None

        overrides.setdefault("mode", self.config.mode)
        if self.common_theme_file is not None:
            overrides.setdefault("common_theme_file", self.common_theme_file)

        try:
            theme = ThemeBundler(overrides, defaults=self._member_defaults())
        except ConfigurationError as e:
            logger.error("[themes] Skipping theme %s: %s", path, e)
            return None

        if self.get_theme(theme.name) is not None:
            logger.error("[themes] Duplicate theme name '%s' at %s, skipping", theme.name, path)
            return None
        return theme

    def discover_themes(self, themes_dir: Path) -> list[dict[str, Any]]:
        """Find subdirectories of *themes_dir* holding a ``<dirname>.config.*`` file.

        The common theme directory is never returned as a member.
        """
        if not themes_dir.is_dir():
            logger.error("[themes] Themes directory does not exist: %s", themes_dir)
            return []

        common_path = self.config.common_theme_path
        common_key = common_path.resolve() if common_path is not None else None
        entries: list[dict[str, Any]] = []
        for child in sorted(themes_dir.iterdir()):
            if not child.is_dir() or child.resolve() == common_key:
                continue
            if any(child.glob(f"{child.name}.config.*")):
                entries.append({"path": child})
            else:
                logger.debug("[themes] No config file in %s, not a theme", child)
        return entries

    def get_theme(self, name: str) -> ThemeBundler | None:
        for theme in self.themes:
            if theme.name == name:
                return theme
        return None

    # =========================================================================
    # Bundling
    # =========================================================================

    async def bundle(self, minify: bool | None = None) -> list[BundleResult]:
        """Bundle the common theme, then every member.

        Returns:
            One result per member theme, in collection order.
        """
        if minify is None:
            minify = self.config.minify
        if self.common_theme is not None:
            await self._bundle_theme(self.common_theme, minify)
        return await self.bundle_themes(minify)

    async def bundle_themes(self, minify: bool | None = None) -> list[BundleResult]:
        """Bundle every member theme; one failure does not stop the others."""
        if minify is None:
            minify = self.config.minify
        return [await self._bundle_theme(theme, minify) for theme in self.themes]

    async def _bundle_theme(self, theme: ThemeBundler, minify: bool) -> BundleResult:
        try:
            return await theme.bundle(minify)
        except Exception as e:
            logger.error("[themes] Failed to bundle theme '%s': %s", theme.name, e, exc_info=e)
            return BundleResult(theme.name, success=False, message=str(e))

    async def initialize(self, with_watch: bool = False) -> list[BundleResult]:
        """Clean previous outputs, bundle once, and optionally start watching."""
        self.cleanup()
        results = await self.bundle()
        if with_watch:
            await self.watch()
        return results

    # =========================================================================
    # Watch & cleanup
    # =========================================================================

    async def watch(self, callback: StyleUpdateCallback | None = None) -> None:
        """Watch every member, the common theme and the extra watch paths."""
        self.clear_watchers()
        minify = self.config.minify
        for theme in self.themes:
            await theme.watch(callback, True, minify)

        if self.common_theme is not None:

            async def rebundle_members(file_name: str, event: str) -> None:
                await self._rebundle_members(file_name, event, callback)

            await self.common_theme.watch(rebundle_members, True, minify)

        for path in self.config.watch_paths:
            if not path.exists():
                logger.warning("[themes] Watch path does not exist: %s", path)
                continue

            async def on_change(file_path: Path) -> None:
                if self.accepts_watch_path_change(file_path):
                    await self._rebundle_members(file_path.name, "change", callback)

            self.watchers.append(watch_tree(path, on_change, self.config.settle_delay))

    async def _rebundle_members(
        self, file_name: str, event: str, callback: StyleUpdateCallback | None
    ) -> None:
        logger.info("[themes] %s changed, rebundling %d theme(s)", file_name, len(self.themes))
        await self.bundle_themes()
        if callback is not None:
            result = callback(file_name, event)
            if inspect.isawaitable(result):
                await result

    def accepts_watch_path_change(self, file_path: Path) -> bool:
        """True for files any member could include, excluding generated outputs."""
        name = file_path.name
        if name.endswith(".min.css") or ".bundled." in name:
            return False
        return any(file_path.suffix == f".{theme.extension}" for theme in self.themes)

    def clear_watchers(self) -> None:
        """Stop all watching without touching outputs."""
        for watcher in self.watchers:
            watcher.close()
        self.watchers = []
        for theme in self.themes:
            theme.clear_watchers()
        if self.common_theme is not None:
            self.common_theme.clear_watchers()

    def cleanup(self) -> None:
        """Delete outputs of every theme and stop watching. Safe to repeat."""
        for theme in self.themes:
            theme.cleanup()
        if self.common_theme is not None:
            self.common_theme.cleanup()
        self.clear_watchers()
