"""
Error types for theme resolution, compilation, and bundling.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional


class ThemeBundlerError(Exception):
    """Base exception for all themebundler errors."""

    def __init__(self, message: str, context: Optional["ErrorContext"] = None):
        self.message = message
        self.context = context
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format error message with context if available."""
        if self.context:
            return f"{self.context.format()}\n{self.message}"
        return self.message


class ConfigurationError(ThemeBundlerError):
    """
    Raised when a theme cannot be configured.

    Examples:
    - Base theme chain that loops back onto itself
    - Manifest that cannot be parsed
    - Collection without any theme source
    """

    pass


class CompilationError(ThemeBundlerError):
    """
    Raised when the SCSS compiler rejects its input.

    Examples:
    - Undefined variables or mixins
    - Syntax errors
    - Missing source file
    """

    pass


class MinificationError(ThemeBundlerError):
    """Raised when the minifier cannot process the resolved CSS."""

    pass


@dataclass
class ErrorContext:
    """
    Context information for an error.

    Attributes:
        theme: Name of the theme the error belongs to
        path: File or directory involved, if any
    """

    theme: str
    path: Path | None = None

    def format(self) -> str:
        """
        Format error context as a human-readable string.

        Returns:
            Formatted string like: "dark (/srv/themes/dark)"
        """
        if self.path is not None:
            return f"{self.theme} ({self.path})"
        return self.theme


def make_configuration_error(
    message: str,
    theme: str | None = None,
    path: Path | None = None,
) -> ConfigurationError:
    """
    Helper to create a ConfigurationError with optional context.

    Args:
        message: Error description
        theme: Optional theme name
        path: Optional path involved

    Returns:
        ConfigurationError with context if a theme is provided
    """
    if theme:
        return ConfigurationError(message, ErrorContext(theme=theme, path=path))
    return ConfigurationError(message)


def make_compilation_error(message: str, theme: str, path: Path | None = None) -> CompilationError:
    """Helper to create a CompilationError for a theme."""
    return CompilationError(message, ErrorContext(theme=theme, path=path))
