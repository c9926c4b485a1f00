"""
themebundler - merge per-theme CSS/SCSS fragments into one stylesheet per theme.

Fragments scattered across a codebase are collected per theme (explicit
includes plus ``<basename>.<theme>.<extension>`` pattern matches), layered
over an optional base theme, compiled, minified, exported, and rebuilt on
change.
"""

from __future__ import annotations

from ._version import get_version
from .core import (
    BuildMode,
    BundleResult,
    BundleState,
    CollectionConfig,
    CompilationError,
    ConfigurationError,
    MinificationError,
    ThemeBundler,
    ThemeBundlerError,
    ThemeConfig,
    ThemesBundler,
)

__version__ = get_version()

__all__ = [
    "__version__",
    "BuildMode",
    "BundleResult",
    "BundleState",
    "CollectionConfig",
    "CompilationError",
    "ConfigurationError",
    "MinificationError",
    "ThemeBundler",
    "ThemeBundlerError",
    "ThemeConfig",
    "ThemesBundler",
]
