"""
Theme unit: resolves, merges, compiles, exports and watches one theme.

A theme's merged output is built in this order:

1. The compiled output of its base theme, if any (bundled first)
2. The shared common theme file, unless the theme itself is ``common``
3. Explicit ``includes`` from the theme config file, in the order given
4. Pattern-matched ``<basename>.<theme>.<extension>`` files, in pattern order

Bundle passes are coalesced: while a pass is outstanding, further calls
to ``bundle()`` await that same pass instead of starting another.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import os
import shutil
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from typing import Any

from . import transform
from .config import (
    DEFAULT_THEME_CONFIG,
    ThemeConfig,
    get_config_file_candidates,
    load_theme_file_config,
    normalize_config_keys,
    resolve_theme_config,
)
from .errors import CompilationError, MinificationError, make_configuration_error
from .patterns import expand_pattern, is_theme_file, normalize_pattern, pattern_root
from .watcher import WatchHandle, watch_tree

logger = logging.getLogger(__name__)

COMMON_THEME_NAME = "common"
NO_CONTENT_MESSAGE = "No CSS found in theme file"
SOURCE_HEADER = "\n/*\n File: {file}\n*/\n"
EXPORTED_DIRS = ("fonts", "images")

StyleUpdateCallback = Callable[[str, str], Awaitable[object] | object]


class BundleState(StrEnum):
    """Per-unit bundle state."""

    IDLE = "idle"
    BUNDLING = "bundling"


@dataclass
class WriteResult:
    """Outcome of writing the merged styles."""

    styles: str
    target_file: Path | None = None
    written: bool = False
    message: str | None = None


@dataclass
class BundleResult:
    """Outcome of one bundle pass."""

    theme: str
    success: bool
    written: bool = False
    target_file: Path | None = None
    css_file: Path | None = None
    minified_file: Path | None = None
    exported: bool = False
    message: str | None = None


class ThemeBundler:
    """
    Bundles and watches a single theme.

    Args:
        config: Caller overrides (``path``, ``patterns``, ``exportPath``, ...).
            camelCase and snake_case keys are both accepted.
        defaults: Lowest-precedence configuration layer. Defaults to
            ``DEFAULT_THEME_CONFIG``.

    Raises:
        ConfigurationError: If the base theme chain loops back onto itself.
    """

    def __init__(
        self,
        config: Mapping[str, Any] | None = None,
        *,
        defaults: Mapping[str, Any] | None = None,
        _chain: tuple[Path, ...] = (),
    ):
        overrides = normalize_config_keys(config or {})
        path = Path(os.path.abspath(overrides.get("path") or Path.cwd()))
        name = str(overrides.get("name") or path.name)
        overrides.update(path=path, name=name)

        self._validate_path(path, name)
        self.file_config: dict[str, Any] = load_theme_file_config(path, name)
        self.config: ThemeConfig = resolve_theme_config(
            overrides, self.file_config, defaults or DEFAULT_THEME_CONFIG
        )

        self.watchers: list[WatchHandle] = []
        self._bundle_task: asyncio.Task[BundleResult] | None = None

        self.base_theme: ThemeBundler | None = None
        if self.config.base_theme is not None:
            self.base_theme = self._create_base_theme(self.config.base_theme, _chain)

    def __repr__(self) -> str:
        return f"ThemeBundler(name={self.name!r}, path={str(self.path)!r})"

    # =========================================================================
    # Initialization
    # =========================================================================

    @staticmethod
    def _validate_path(path: Path, name: str) -> None:
        if not path.is_dir():
            logger.error('[theme:%s] Invalid path in theme config %s: "%s"', name, name, path)

    def _create_base_theme(self, base_path: Path, chain: tuple[Path, ...]) -> ThemeBundler:
        own_key = self.path.resolve()
        base_key = base_path.resolve()
        visited = (*chain, own_key)
        if base_key in visited:
            loop = " -> ".join(str(p) for p in (*visited, base_key))
            raise make_configuration_error(
                f"Base theme chain loops back onto itself: {loop}", self.name, base_path
            )

        if not base_path.exists():
            logger.error("[theme:%s] Base theme does not exist: %s", self.name, base_path)

        return ThemeBundler(
            {
                "path": base_path,
                "mode": self.config.mode,
                "verbose": self.config.verbose or None,
                "settle_delay": self.config.settle_delay,
            },
            defaults={**DEFAULT_THEME_CONFIG, "extension": self.extension},
            _chain=visited,
        )

    # =========================================================================
    # Accessors
    # =========================================================================

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def path(self) -> Path:
        return self.config.path

    @property
    def extension(self) -> str:
        return self.config.extension

    @property
    def state(self) -> BundleState:
        if self._bundle_task is not None and not self._bundle_task.done():
            return BundleState.BUNDLING
        return BundleState.IDLE

    def get_config_file(self) -> Path:
        """Primary config file location (``<path>/<name>.config.json``)."""
        return get_config_file_candidates(self.path, self.name)[0]

    def get_target_file(self) -> Path:
        return self.config.target_file

    def get_css_target_file(self) -> Path:
        """The unminified target with a ``.css`` extension (the SCSS compile output)."""
        target = self.get_target_file()
        return target.with_suffix(".css")

    def get_minified_target_file(self) -> Path:
        return self.config.minified_target_file

    def get_common_theme_file(self) -> Path | None:
        if self.name == COMMON_THEME_NAME:
            return None
        common_file = self.config.common_theme_file
        if common_file is not None and not common_file.exists():
            logger.error("[theme:%s] common theme file does not exist: %s", self.name, common_file)
            return None
        return common_file

    def get_includes(self) -> list[Path]:
        """Include stems from the config resolved to ``<path>/<include>.<extension>``."""
        return [self.path / f"{include}.{self.extension}" for include in self.config.includes]

    def normalize_pattern(self, pattern: str, add_extension: bool = True) -> str:
        return normalize_pattern(pattern, self.path, self.name, self.extension, add_extension)

    def get_patterns(self, add_extension: bool = True) -> list[str]:
        return [self.normalize_pattern(p, add_extension) for p in self.config.patterns]

    def get_pattern_files(self) -> list[Path]:
        files: list[Path] = []
        for pattern in self.get_patterns():
            files.extend(expand_pattern(pattern))
        return files

    def get_files(self) -> list[Path]:
        """All source files of the theme, in merge order.

        Missing or unreadable files are dropped.
        """
        candidates = [self.get_common_theme_file(), *self.get_includes(), *self.get_pattern_files()]
        return [
            file
            for file in candidates
            if file is not None and file.is_file() and os.access(file, os.R_OK)
        ]

    def get_generated_files(self) -> set[Path]:
        """Output artifacts this theme writes next to its sources."""
        return {
            self.get_target_file(),
            self.get_css_target_file(),
            self.get_minified_target_file(),
        }

    def get_css(self, file: Path) -> str | None:
        """Return a file's contribution to the merged output.

        The theme's own outputs always contribute an empty string. Empty
        files are skipped with a warning and return ``None``.
        """
        if file != self.config.common_theme_file and file in self.get_generated_files():
            return ""

        content = self._read_source(file)
        if not content.strip():
            logger.warning("[theme:%s] No CSS found in file: %s", self.name, file)
            return None

        if self.config.is_production:
            return content
        return SOURCE_HEADER.format(file=file) + content

    def _read_source(self, file: Path) -> str:
        raw = file.read_bytes()
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as e:
            logger.warning(
                "[theme:%s] File is not valid UTF-8, replacing undecodable bytes: %s (%s)",
                self.name,
                file,
                e.reason,
            )
            return raw.decode("utf-8", errors="replace")

    def has_sass_support(self, package: str = transform.SASS_PACKAGE) -> bool:
        return transform.has_sass_support(package)

    def _log_progress(self, message: str, *args: Any) -> None:
        level = logging.INFO if self.config.verbose else logging.DEBUG
        logger.log(level, f"[theme:%s] {message}", self.name, *args)

    # =========================================================================
    # Bundling
    # =========================================================================

    async def bundle(self, minify: bool | None = None) -> BundleResult:
        """Run a bundle pass, or join the one already in flight.

        Args:
            minify: Write the minified target too. ``None`` uses the
                configured default. Production mode always minifies.
        """
        task = self._bundle_task
        if task is None or task.done():
            task = asyncio.ensure_future(self._bundle(minify))
            task.add_done_callback(self._bundle_finished)
            self._bundle_task = task
        return await asyncio.shield(task)

    def _bundle_finished(self, task: asyncio.Task[BundleResult]) -> None:
        if self._bundle_task is task:
            self._bundle_task = None

    async def _bundle(self, minify: bool | None) -> BundleResult:
        if minify is None:
            minify = self.config.minify

        self._log_progress("Compiling theme")
        written = await self.write_styles()
        if not written.written:
            exported = await asyncio.to_thread(self.export_bundle)
            return BundleResult(self.name, success=True, exported=exported, message=written.message)

        target_file = self.get_target_file()
        css = written.styles
        css_file = target_file
        if self.config.requires_preprocessing:
            if not self.has_sass_support():
                logger.warning(
                    "[theme:%s] SCSS files detected but 'sass' is not installed. "
                    "Run: pip install libsass",
                    self.name,
                )
            else:
                css_file = self.get_css_target_file()
                try:
                    css = await asyncio.to_thread(
                        transform.compile_scss, target_file, css_file, self.name
                    )
                except CompilationError as e:
                    logger.error("[theme:%s] %s", self.name, e.message)
                    return BundleResult(
                        self.name,
                        success=False,
                        written=True,
                        target_file=target_file,
                        message=e.message,
                    )

        minified_file: Path | None = None
        if minify or self.config.is_production:
            minified_file = self.get_minified_target_file()
            try:
                minified = await asyncio.to_thread(transform.minify_css, css, css_file, self.name)
            except MinificationError as e:
                logger.error("[theme:%s] %s", self.name, e.message)
                return BundleResult(
                    self.name,
                    success=False,
                    written=True,
                    target_file=target_file,
                    css_file=css_file,
                    message=e.message,
                )
            minified_file.parent.mkdir(parents=True, exist_ok=True)
            minified_file.write_text(minified, encoding="utf-8")

        exported = await asyncio.to_thread(self.export_bundle)
        self._log_progress("Wrote %s", target_file)
        return BundleResult(
            self.name,
            success=True,
            written=True,
            target_file=target_file,
            css_file=css_file,
            minified_file=minified_file,
            exported=exported,
        )

    async def write_styles(self, styles: str | None = None) -> WriteResult:
        """Write the merged styles to the unminified target.

        Empty content is reported and never written, so a previous output
        is left untouched.
        """
        if styles is None:
            styles = await self.merge_files()
        if not styles.strip():
            logger.warning("[theme:%s] %s", self.name, NO_CONTENT_MESSAGE)
            return WriteResult(styles=styles, message=NO_CONTENT_MESSAGE)

        target_file = self.get_target_file()
        target_file.parent.mkdir(parents=True, exist_ok=True)
        target_file.write_text(styles, encoding="utf-8")
        return WriteResult(styles=styles, target_file=target_file, written=True)

    async def merge_files(self) -> str:
        """Concatenate the base theme output and every theme file, in order."""
        css = ""
        if self.base_theme is not None:
            css += await self.bundle_base_theme()

        return css + await asyncio.to_thread(self._read_sources)

    def _read_sources(self) -> str:
        return "".join(fragment for fragment in map(self.get_css, self.get_files()) if fragment)

    async def bundle_base_theme(self) -> str:
        """Bundle the base theme and return its compiled CSS."""
        if self.base_theme is None:
            return ""
        await self.base_theme.bundle()
        target_file = self.base_theme.get_css_target_file()
        if not target_file.is_file():
            logger.error(
                "[theme:%s] No target file found for base theme '%s': %s",
                self.name,
                self.base_theme.name,
                target_file,
            )
            return ""
        return target_file.read_text(encoding="utf-8")

    # =========================================================================
    # Export & cleanup
    # =========================================================================

    def get_export_dir(self) -> Path | None:
        if self.config.export_path is None:
            return None
        return self.config.export_path / self.name

    def export_bundle(self) -> bool:
        """Copy outputs plus ``fonts/`` and ``images/`` to ``<exportPath>/<name>/``."""
        export_dir = self.get_export_dir()
        if export_dir is None:
            return False
        export_dir.mkdir(parents=True, exist_ok=True)

        css_file = self.get_css_target_file()
        source = css_file if css_file.is_file() else self.get_target_file()
        if source.is_file():
            shutil.copyfile(source, export_dir / f"{self.name}.bundled.css")

        minified_file = self.get_minified_target_file()
        if minified_file.is_file():
            shutil.copyfile(minified_file, export_dir / f"{self.name}.min.css")

        for dirname in EXPORTED_DIRS:
            self.export_dir(self.path / dirname, export_dir / dirname)
        return True

    def export_dir(self, origin: Path, destination: Path) -> bool:
        """Copy the contents of *origin* into *destination*."""
        if not origin.is_dir():
            return True
        destination.mkdir(parents=True, exist_ok=True)
        for entry in origin.iterdir():
            if entry.is_dir():
                shutil.copytree(entry, destination / entry.name, dirs_exist_ok=True)
            else:
                shutil.copyfile(entry, destination / entry.name)
        return True

    def cleanup(self) -> None:
        """Delete generated outputs (local and exported) and close all watchers."""
        css_file = self.get_css_target_file()
        local_files = {
            self.get_target_file(),
            self.get_minified_target_file(),
            css_file.with_name(f"{css_file.name}.map"),
        }
        if self.config.requires_preprocessing:
            local_files.add(css_file)

        export_files: set[Path] = set()
        export_dir = self.get_export_dir()
        if export_dir is not None:
            names = {
                f"{self.name}.bundled.{self.extension}",
                f"{self.name}.bundled.css",
                f"{self.name}.min.css",
                f"{self.name}.bundled.css.map",
            }
            export_files = {export_dir / name for name in names}

        for file in local_files | export_files:
            if file.is_file():
                file.unlink()

        self.clear_watchers()
        if self.base_theme is not None:
            self.base_theme.cleanup()

    def clear_watchers(self) -> None:
        """Close every watcher of this theme and of its base theme chain."""
        for watcher in self.watchers:
            watcher.close()
        self.watchers = []
        if self.base_theme is not None:
            self.base_theme.clear_watchers()

    # =========================================================================
    # Watch
    # =========================================================================

    async def watch(
        self,
        callback: StyleUpdateCallback | None = None,
        bundle: bool = True,
        minify: bool | None = None,
    ) -> None:
        """Watch the theme's sources and rebuild on accepted changes.

        Args:
            callback: Invoked as ``callback(file_name, "change")`` once per
                accepted change, after the rebuild.
            bundle: Rebuild this theme on change.
            minify: Passed to ``bundle()``.
        """
        self.clear_watchers()
        if self.base_theme is not None:

            async def rebundle_child(file_name: str, event: str) -> None:
                await self.bundle(minify)

            await self.base_theme.watch(rebundle_child, bundle=False)

        self.watch_patterns(bundle, minify, callback)
        self.watch_path(self.path, bundle, minify, callback)

    def watch_path(
        self,
        path: Path,
        bundle: bool = True,
        minify: bool | None = None,
        callback: StyleUpdateCallback | None = None,
    ) -> WatchHandle | None:
        """Watch the theme directory tree."""
        if not path.is_dir():
            return None

        async def on_change(file_path: Path) -> None:
            if self.accepts_theme_change(file_path):
                await self._handle_change(file_path.name, bundle, minify, callback)

        handle = watch_tree(path, on_change, self.config.settle_delay)
        self.watchers.append(handle)
        self._log_progress("Watching %s", path)
        return handle

    def watch_patterns(
        self,
        bundle: bool = True,
        minify: bool | None = None,
        callback: StyleUpdateCallback | None = None,
    ) -> list[WatchHandle]:
        handles = []
        for pattern in self.get_patterns(add_extension=False):
            handle = self.watch_pattern(pattern, callback, bundle, minify)
            if handle is not None:
                handles.append(handle)
        return handles

    def watch_pattern(
        self,
        pattern: str,
        callback: StyleUpdateCallback | None = None,
        bundle: bool = True,
        minify: bool | None = None,
    ) -> WatchHandle | None:
        """Watch the root directory of a normalized pattern.

        Roots inside the theme directory are covered by ``watch_path``.
        """
        if not pattern:
            return None
        root = pattern_root(pattern)
        if not root.exists():
            return None
        if root == self.path or self.path in root.parents:
            return None

        async def on_change(file_path: Path) -> None:
            if is_theme_file(file_path, self.name, self.extension):
                await self._handle_change(
                    os.path.relpath(file_path, root), bundle, minify, callback
                )

        handle = watch_tree(root, on_change, self.config.settle_delay)
        self.watchers.append(handle)
        self._log_progress("Watching %s", root)
        return handle

    def accepts_theme_change(self, file_path: Path) -> bool:
        """True for source files of the configured extension that are not outputs."""
        if file_path.name.endswith(".min.css"):
            return False
        if file_path in self.get_generated_files():
            return False
        if file_path.name == self.get_target_file().name:
            return False
        return file_path.suffix == f".{self.extension}"

    async def _handle_change(
        self,
        file_name: str,
        bundle: bool,
        minify: bool | None,
        callback: StyleUpdateCallback | None,
    ) -> None:
        self._log_progress("Change detected: %s", file_name)
        if bundle:
            await self.bundle(minify)
        if callback is not None:
            result = callback(file_name, "change")
            if inspect.isawaitable(result):
                await result
