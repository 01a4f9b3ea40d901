"""Thin CLI wrapper for turnip_builder.

This module provides the command-line interface using Typer.
Invoked without a subcommand it runs the whole pipeline; all business
logic is delegated to core modules.
"""

import json
import logging
from typing import Annotated

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from turnip_builder import __version__
from turnip_builder.config import Settings, get_settings, print_settings_json
from turnip_builder.types import StageError

app = typer.Typer(
    name="turnip-builder",
    help="Turnip Builder - build and package the Mesa Turnip driver for Android",
    invoke_without_command=True,
)
console = Console()


def configure_logging(level: str) -> None:
    """Route log records through rich at the configured level."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _load_settings() -> Settings:
    try:
        return get_settings()
    except ValidationError as e:
        console.print(f"[red]Invalid configuration: {escape(str(e))}[/red]")
        raise typer.Exit(code=1) from None


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"turnip-builder version {__version__}")
        raise typer.Exit()


def _run_pipeline(settings: Settings) -> None:
    from turnip_builder.pipeline import run_all

    configure_logging(settings.log_level)
    try:
        result = run_all(settings)
    except StageError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(code=1) from None

    console.print("[green]All done, you can take your zip from this folder:[/green]")
    console.print(f"  {result.workdir}/")
    for archive in result.archives:
        console.print(f"  - {archive.name}")


@app.callback()
def main(
    ctx: typer.Context,
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
    """Turnip Builder - build and package the Mesa Turnip driver for Android."""
    if ctx.invoked_subcommand is None:
        _run_pipeline(_load_settings())


@app.command()
def run() -> None:
    """Run the full pipeline (same as invoking without a command)."""
    _run_pipeline(_load_settings())


@app.command()
def config(
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show effective configuration."""
    settings = _load_settings()
    if json_output:
        console.print(print_settings_json(settings))
        return

    ndk_display = (
        str(settings.android_ndk_home)
        if settings.android_ndk_home
        else f"{settings.ndk_version} (download)"
    )
    cache_display = (
        f"GitHub Actions ({settings.github_action_path})"
        if settings.github_workspace
        else "disabled (local-only)"
    )
    console.print("[bold]Effective Configuration:[/bold]")
    console.print()
    console.print("[bold]Paths:[/bold]")
    console.print(f"  Work directory:      {settings.workdir}")
    console.print(f"  Patches file:        {settings.patches_file or '(none)'}")
    console.print()
    console.print("[bold]Toolchain:[/bold]")
    console.print(f"  Android NDK:         {ndk_display}")
    console.print(f"  SDK version:         {settings.sdk_version}")
    console.print(f"  Target arch:         {settings.target_arch}")
    console.print(f"  ccache:              {settings.use_ccache}")
    console.print(f"  Cache backend:       {cache_display}")
    console.print()
    console.print("[bold]Source:[/bold]")
    console.print(f"  Mesa repository:     {settings.mesa_repo}")
    console.print(f"  Branch:              {settings.mesa_branch}")
    console.print(f"  Patch base URL:      {settings.patch_base_url}")
    console.print()
    console.print("[bold]Operational:[/bold]")
    console.print(f"  Log level:           {settings.log_level}")
    console.print(f"  Remediate deps:      {settings.remediate_dependencies}")
    console.print(f"  Patch retries:       {settings.patch_download_retries}")


@app.command()
def patches(
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """List the patches applied on the patched pass, in order."""
    from turnip_builder.source.patches import resolve_patch_list

    try:
        patch_list = resolve_patch_list(_load_settings())
    except StageError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(code=1) from None

    if json_output:
        console.print(json.dumps([p.model_dump() for p in patch_list], indent=2))
        return

    if not patch_list:
        console.print("[yellow]No patch[/yellow]")
        return

    console.print(f"[bold]{len(patch_list)} patch(es):[/bold]")
    for p in patch_list:
        console.print(f"  - {p.descriptor}")
