"""
CLI utilities.

Shared helpers for version output, logging setup and manifest resolution.
"""

import logging
import platform
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler

from themebundler._version import get_version
from themebundler.core.manifest import MANIFEST_FILE
from themebundler.core.transform import has_sass_support


def version_callback(value: bool) -> None:
    """Display version and environment information."""
    if value:
        python_version = platform.python_version()
        python_impl = platform.python_implementation()

        typer.echo(f"themebundler version {get_version()}")
        typer.echo("")
        typer.echo("Environment:")
        typer.echo(f"  Python:        {python_impl} {python_version}")
        typer.echo(f"  Platform:      {platform.system()} {platform.release()}")
        typer.echo("")
        typer.echo("Features:")
        if has_sass_support():
            sass_status = "✓ Available"
        else:
            sass_status = "✗ Not available (install with: pip install libsass)"
        typer.echo(f"  SCSS:          {sass_status}")

        raise typer.Exit()


def configure_logging(verbose: bool = False) -> None:
    """Route log records through rich on stderr."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )
    # watchdog is chatty at DEBUG
    logging.getLogger("watchdog").setLevel(logging.WARNING)


def resolve_manifest(manifest: str) -> Path:
    """Resolve the manifest option to an existing file.

    A directory resolves to its ``themebundler.toml``. Exits with code 1
    when no manifest exists.
    """
    manifest_path = Path(manifest).resolve()
    if manifest_path.is_dir():
        manifest_path = manifest_path / MANIFEST_FILE
    if not manifest_path.is_file():
        typer.echo(f"No {MANIFEST_FILE} found at {manifest_path}", err=True)
        raise typer.Exit(code=1)
    return manifest_path
