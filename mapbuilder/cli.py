"""Thin CLI wrapper for mapbuilder.

This module provides the command-line interface using Typer.
All business logic is delegated to core modules.
"""

import json
import logging
from pathlib import Path
from typing import Annotated

import typer
import yaml
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from mapbuilder import __version__
from mapbuilder.config import Settings, get_settings, layout_manifest, print_settings_json

app = typer.Typer(
    name="mapbuild",
    help="Map Builder - package maps into scripts, directories, or archives",
    no_args_is_help=True,
)
console = Console()

# Build flags are passed through to the request resolver untouched
PASSTHROUGH = {"allow_extra_args": True, "ignore_unknown_options": True}

ProjectOption = Annotated[
    Path | None,
    typer.Option(
        "--project",
        "-p",
        help="Project file with layout overrides (default: ./mapbuild.yaml)",
    ),
]


def configure_logging(level: str) -> None:
    """Send log records to stderr through Rich."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"mapbuilder version {__version__}")
        raise typer.Exit()


def _load_settings(project: Path | None) -> Settings:
    try:
        settings = get_settings(project_file=project)
    except (OSError, ValueError, yaml.YAMLError) as e:
        console.print(f"[red]Could not load project file: {escape(str(e))}[/red]")
        raise typer.Exit(code=1) from e
    configure_logging(settings.log_level)
    return settings


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """Map Builder - package maps into scripts, directories, or archives."""


@app.command()
def config(
    project: ProjectOption = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show effective configuration."""
    settings = _load_settings(project)
    if json_output:
        console.print(print_settings_json(settings))
    else:
        game_display = str(settings.game_path) if settings.game_path else "(not set)"
        console.print("[bold]Effective Configuration:[/bold]")
        console.print()
        console.print("[bold]Layout:[/bold]")
        console.print(f"  Maps directory:      {settings.maps_dir}")
        console.print(f"  Source directory:    {settings.src_dir}")
        console.print(f"  Library directory:   {settings.lib_dir}")
        console.print(f"  Target directory:    {settings.target_dir}")
        console.print()
        console.print("[bold]Build:[/bold]")
        console.print(f"  Map script path:     {settings.map_script_path}")
        console.print(f"  Log level:           {settings.log_level}")
        console.print()
        console.print("[bold]Run:[/bold]")
        console.print(f"  Game executable:     {game_display}")
        console.print(f"  Game arguments:      {' '.join(settings.game_args)}")


@app.command()
def layout(
    project: ProjectOption = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show the project folder layout."""
    manifest = layout_manifest(_load_settings(project))
    if json_output:
        console.print(json.dumps(manifest, indent=2))
        return
    for key, value in manifest.items():
        console.print(f"  {key + ':':<18} {value}")


def _build(ctx: typer.Context, project: Path | None, run: bool) -> None:
    from mapbuilder.build import run_build
    from mapbuilder.request import resolve_request
    from mapbuilder.runmap import RunMapError, is_runnable, run_map

    settings = _load_settings(project)
    request = resolve_request(ctx.args)
    result = run_build(request, settings=settings)

    if not result.success:
        console.print(f"[red]Build failed: {result.error_message}[/red]")
        raise typer.Exit(code=1)

    console.print(f"[green]Build complete:[/green] {result.artifact_path}")
    for entry in result.skipped:
        console.print(f"[yellow]  Skipped {entry.path}: {entry.reason}[/yellow]")

    if not run:
        return

    if not is_runnable(result) or result.artifact_path is None:
        console.print(
            "[yellow]Run was requested, but the build did not produce "
            "a runnable artifact[/yellow]"
        )
        return

    try:
        run_map(result.artifact_path, settings)
    except RunMapError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=1) from e
    console.print("Running the map...")


@app.command(context_settings=PASSTHROUGH)
def build(ctx: typer.Context, project: ProjectOption = None) -> None:
    """Build a map.

    Accepts --map NAME, --output script|mpq|dir (default mpq) and
    --no-map-script.
    """
    _build(ctx, project, run=False)


@app.command(context_settings=PASSTHROUGH)
def run(ctx: typer.Context, project: ProjectOption = None) -> None:
    """Build a map, then run it in the game.

    Accepts the same flags as build.
    """
    _build(ctx, project, run=True)


if __name__ == "__main__":
    app()
