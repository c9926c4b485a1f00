"""
themebundler CLI package.

- commands.py: bundle / watch / clean / info commands
- utils.py: Shared utilities
"""

from themebundler.cli.commands import app
from themebundler.cli.utils import configure_logging, version_callback


def main() -> None:
    """Console script entry point."""
    app()


__all__ = [
    "app",
    "main",
    "configure_logging",
    "version_callback",
]
