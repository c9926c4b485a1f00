"""
SCSS compilation and CSS minification.

SCSS is compiled with libsass. The compiler is optional at runtime: callers
check ``has_sass_support()`` first and degrade to treating merged SCSS as
plain CSS when it is missing.

Minification uses rcssmin, which only strips comments and whitespace and
never evaluates the CSS, so math functions such as ``max(10px, 2vw)`` and
empty custom properties pass through unchanged.
"""

from __future__ import annotations

import importlib.util
import logging
from pathlib import Path

import rcssmin

from .errors import ErrorContext, MinificationError, make_compilation_error

logger = logging.getLogger(__name__)

SASS_PACKAGE = "sass"


def has_sass_support(package: str = SASS_PACKAGE) -> bool:
    """Check whether the SCSS compiler package can be imported."""
    try:
        return importlib.util.find_spec(package) is not None
    except (ImportError, ValueError):
        return False


def compile_scss(source: str | Path, target: str | Path, theme: str = "") -> str:
    """Compile the SCSS file *source* into the CSS file *target*.

    Returns:
        The compiled CSS.

    Raises:
        CompilationError: If the compiler rejects the input or the source is unreadable.
    """
    import sass

    src_path = Path(source)
    tgt_path = Path(target)
    try:
        css = sass.compile(filename=str(src_path), output_style="expanded")
    except (sass.CompileError, OSError) as e:
        raise make_compilation_error(f"Failed to compile SCSS: {e}", theme, src_path) from e

    tgt_path.parent.mkdir(parents=True, exist_ok=True)
    tgt_path.write_text(css, encoding="utf-8")
    logger.debug("[scss] compiled %s -> %s", src_path.name, tgt_path.name)
    return css


def minify_css(css: str, filename: str | Path | None = None, theme: str = "") -> str:
    """Minify *css*.

    *filename* is the file the CSS was resolved from, used for error context.
    Bang comments (``/*! ... */``) are kept.

    Raises:
        MinificationError: If *css* is not text.
    """
    try:
        return rcssmin.cssmin(css, keep_bang_comments=True)
    except (TypeError, ValueError) as e:
        raise MinificationError(
            f"Failed to minify CSS: {e}",
            ErrorContext(theme=theme, path=Path(filename) if filename else None),
        ) from e
