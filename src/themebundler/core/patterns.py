"""
Pattern normalization and discovery of naming-convention theme files.

Pattern-discovered fragments follow ``<basename>.<theme>.<extension>``,
e.g. ``button.dark.css`` belongs to the ``dark`` theme.
"""

from __future__ import annotations

import os
from pathlib import Path

from wcmatch import glob

CWD_TOKEN = "{cwd}"
GLOB_FLAGS = glob.GLOBSTAR | glob.BRACE
IGNORED_DIRS = frozenset({".git", "node_modules"})
_GLOB_CHARS = frozenset("*?[{")


def normalize_pattern(
    pattern: str,
    theme_path: Path,
    theme_name: str,
    extension: str,
    add_extension: bool = True,
    cwd: Path | None = None,
) -> str:
    """Turn a configured pattern into an absolute glob.

    ``{cwd}`` is replaced with the working directory, relative patterns are
    rooted at the theme directory, a recursive ``**/*`` suffix is appended
    when the pattern has no wildcard, and ``.<theme>.<extension>`` is
    appended when *add_extension* is set.
    """
    if CWD_TOKEN in pattern:
        pattern = pattern.replace(CWD_TOKEN, str(cwd or Path.cwd()))

    if not os.path.isabs(pattern):
        pattern = os.path.normpath(os.path.join(theme_path, pattern))

    if not pattern.endswith("*") and "**" not in pattern:
        pattern = os.path.join(pattern, "**", "*")

    if add_extension:
        pattern += f".{theme_name}.{extension}"
    return pattern


def pattern_root(pattern: str) -> Path:
    """Return the deepest directory of *pattern* that contains no glob characters."""
    parts = Path(pattern).parts
    root: list[str] = []
    for part in parts:
        if any(char in _GLOB_CHARS for char in part):
            break
        root.append(part)
    if not root:
        return Path(pattern)
    return Path(*root)


def _is_ignored(path: str) -> bool:
    return any(part in IGNORED_DIRS for part in Path(path).parts)


def expand_pattern(pattern: str) -> list[Path]:
    """Glob *pattern*, skipping VCS and dependency directories.

    ``**`` matches any depth and ``{a,b}`` alternatives are expanded.
    Order follows the filesystem and is not sorted.
    """
    matches: list[Path] = []
    for match in glob.iglob(pattern, flags=GLOB_FLAGS):
        if _is_ignored(match) or not os.path.isfile(match):
            continue
        matches.append(Path(os.path.abspath(match)))
    return matches


def theme_sub_extension(file_path: Path | str) -> str | None:
    """Return the ``<theme>`` segment of ``<basename>.<theme>.<ext>``, if present."""
    parts = Path(file_path).name.split(".")
    if len(parts) < 3:
        return None
    return parts[-2]


def is_theme_file(file_path: Path | str, theme_name: str, extension: str) -> bool:
    """True when *file_path* follows the naming convention of *theme_name*."""
    path = Path(file_path)
    return path.suffix == f".{extension}" and theme_sub_extension(path) == theme_name
