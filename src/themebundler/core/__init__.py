"""
Core theme composition and rebuild engine.
"""

from .collection import ThemesBundler
from .config import BuildMode, CollectionConfig, ThemeConfig, resolve_theme_config
from .errors import (
    CompilationError,
    ConfigurationError,
    ErrorContext,
    MinificationError,
    ThemeBundlerError,
)
from .theme import BundleResult, BundleState, ThemeBundler, WriteResult

__all__ = [
    "BuildMode",
    "BundleResult",
    "BundleState",
    "CollectionConfig",
    "CompilationError",
    "ConfigurationError",
    "ErrorContext",
    "MinificationError",
    "ThemeBundler",
    "ThemeBundlerError",
    "ThemeConfig",
    "ThemesBundler",
    "WriteResult",
    "resolve_theme_config",
]
