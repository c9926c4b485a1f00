"""
Bundle, watch, clean and inspect themes from a ``themebundler.toml`` manifest.
"""

from __future__ import annotations

import asyncio
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from themebundler.cli.utils import configure_logging, resolve_manifest, version_callback
from themebundler.core.collection import ThemesBundler
from themebundler.core.config import BuildMode
from themebundler.core.errors import ThemeBundlerError
from themebundler.core.manifest import MANIFEST_FILE, load_manifest
from themebundler.core.theme import BundleResult

app = typer.Typer(
    name="themebundler",
    help="Merge per-theme CSS/SCSS fragments into one optimized stylesheet per theme.",
    no_args_is_help=True,
    add_completion=False,
)

console = Console()

ManifestOption = Annotated[
    str,
    typer.Option("--manifest", "-m", help="Path to themebundler.toml or its directory"),
]
ModeOption = Annotated[
    BuildMode,
    typer.Option("--mode", help="development embeds source comments; production always minifies"),
]
VerboseOption = Annotated[bool, typer.Option("--verbose", "-v", help="Verbose logging")]


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=version_callback,
            is_eager=True,
            help="Show version and environment information",
        ),
    ] = False,
) -> None:
    """Merge per-theme CSS/SCSS fragments into one optimized stylesheet per theme."""


def _load_bundler(
    manifest: str,
    mode: BuildMode,
    verbose: bool,
    minify: bool | None = None,
) -> ThemesBundler:
    manifest_path = resolve_manifest(manifest)
    try:
        project = load_manifest(manifest_path)
        config = project.to_collection_config(mode=mode, verbose=verbose, minify=minify)
        return ThemesBundler(config)
    except ThemeBundlerError as e:
        typer.echo(f"Error loading {manifest_path}: {e}", err=True)
        raise typer.Exit(code=1)


def _print_results(results: list[BundleResult]) -> None:
    table = Table(title="Bundled themes")
    table.add_column("Theme")
    table.add_column("Status")
    table.add_column("Output", style="dim")
    table.add_column("Minified", style="dim")

    for result in results:
        if not result.success:
            status = "[red]failed[/red]"
        elif not result.written:
            status = "[yellow]empty[/yellow]"
        else:
            status = "[green]ok[/green]"
        table.add_row(
            result.theme,
            status,
            str(result.css_file or result.target_file or ""),
            str(result.minified_file or ""),
        )
    console.print(table)


async def _watch_forever(bundler: ThemesBundler) -> list[BundleResult]:
    results = await bundler.initialize(with_watch=True)
    _print_results(results)
    console.print("Watching for changes. Press Ctrl+C to stop.")
    try:
        await asyncio.Event().wait()
    finally:
        bundler.clear_watchers()
    return results


@app.command("bundle")
def bundle_command(
    manifest: ManifestOption = MANIFEST_FILE,
    mode: ModeOption = BuildMode.DEVELOPMENT,
    verbose: VerboseOption = False,
    minify: Annotated[
        bool | None,
        typer.Option("--minify/--no-minify", help="Override the manifest's minify setting"),
    ] = None,
    watch: Annotated[
        bool, typer.Option("--watch", "-w", help="Keep watching after bundling")
    ] = False,
) -> None:
    """
    Clean previous outputs and bundle every theme once.

    Examples:
        themebundler bundle
        themebundler bundle --mode production
        themebundler bundle -m site/themebundler.toml --watch
    """
    configure_logging(verbose)
    bundler = _load_bundler(manifest, mode, verbose, minify)
    if not bundler.themes:
        typer.echo("No themes found.", err=True)
        raise typer.Exit(code=1)

    if watch:
        try:
            asyncio.run(_watch_forever(bundler))
        except KeyboardInterrupt:
            console.print("Stopped watching.")
        return

    results = asyncio.run(bundler.initialize(with_watch=False))
    _print_results(results)
    if any(not result.success for result in results):
        raise typer.Exit(code=1)


@app.command("watch")
def watch_command(
    manifest: ManifestOption = MANIFEST_FILE,
    mode: ModeOption = BuildMode.DEVELOPMENT,
    verbose: VerboseOption = False,
) -> None:
    """Bundle every theme, then rebuild on change until interrupted."""
    bundle_command(manifest=manifest, mode=mode, verbose=verbose, minify=None, watch=True)


@app.command("clean")
def clean_command(
    manifest: ManifestOption = MANIFEST_FILE,
    verbose: VerboseOption = False,
) -> None:
    """Delete bundled, compiled and minified outputs of every theme."""
    configure_logging(verbose)
    bundler = _load_bundler(manifest, BuildMode.DEVELOPMENT, verbose)
    bundler.cleanup()
    typer.echo(f"Cleaned {len(bundler.themes)} theme(s).")


@app.command("info")
def info_command(
    manifest: ManifestOption = MANIFEST_FILE,
    verbose: VerboseOption = False,
) -> None:
    """Show each theme and the source files it merges, in order."""
    configure_logging(verbose)
    bundler = _load_bundler(manifest, BuildMode.DEVELOPMENT, verbose)

    table = Table(title="Themes")
    table.add_column("Theme")
    table.add_column("Ext")
    table.add_column("Base theme", style="dim")
    table.add_column("Files")
    table.add_column("Target", style="dim")

    for theme in bundler.themes:
        files = theme.get_files()
        table.add_row(
            theme.name,
            theme.extension,
            theme.base_theme.name if theme.base_theme else "",
            "\n".join(str(f) for f in files) or "(none)",
            str(theme.get_target_file()),
        )
    console.print(table)
    if bundler.common_theme_file is not None:
        console.print(f"Common theme file: {bundler.common_theme_file}")
