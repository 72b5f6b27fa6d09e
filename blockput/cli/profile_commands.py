"""Profile management commands."""

from __future__ import annotations

import typer

from blockput.config import ProfileManager, parse_bytes
from blockput.exceptions import ProfileAlreadyExist, ProfileNotFound

profile_app = typer.Typer(help="Manage upload profiles.")


@profile_app.command("list")
def list_profiles() -> None:
    """List saved profiles."""
    profiles = ProfileManager().list_profiles()
    if not profiles:
        typer.echo("No profiles found.")
        return

    for name in profiles:
        typer.echo(name)


@profile_app.command("create")
def create_profile(name: str = typer.Argument(..., help="Profile name.")) -> None:
    """Create a profile holding the default configuration."""
    try:
        ProfileManager().create_profile(name)
    except ProfileAlreadyExist as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1)
    typer.echo(f"Created profile {name!r}.")


@profile_app.command("update")
def update_profile(
    name: str = typer.Argument(..., help="Profile name."),
    up_host: str | None = typer.Option(None, "--up-host", help="Upload service URL."),
    block_size_exp: int | None = typer.Option(
        None, "--block-size-exp", help="Block size as a power of two."
    ),
    chunk_size: str | None = typer.Option(
        None, "--chunk-size", help="Bytes per request, e.g. 512kb."
    ),
    retry_times: int | None = typer.Option(
        None, "--retry-times", help="Retries per chunk."
    ),
    workers: int | None = typer.Option(None, "--workers", help="Parallel blocks."),
    progress_dir: str | None = typer.Option(
        None, "--progress-dir", help="Where resumable progress is saved."
    ),
) -> None:
    """Update fields of an existing profile."""
    try:
        parsed_chunk_size = parse_bytes(chunk_size) if chunk_size else None
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc

    updates = {
        "up_host": up_host,
        "block_size_exp": block_size_exp,
        "chunk_size": parsed_chunk_size,
        "retry_times": retry_times,
        "max_workers": workers,
        "progress_dir": progress_dir,
    }
    try:
        ProfileManager().update_profile(name, updates)
    except ProfileNotFound as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1)
    except ValueError as exc:
        typer.echo(f"Invalid configuration: {exc}", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"Updated profile {name!r}.")


@profile_app.command("show")
def show_profile(name: str = typer.Argument(..., help="Profile name.")) -> None:
    """Print a profile as JSON."""
    try:
        config = ProfileManager().get_profile(name)
    except ProfileNotFound as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1)

    typer.echo(config.model_dump_json(indent=2))


@profile_app.command("delete")
def delete_profile(name: str = typer.Argument(..., help="Profile name.")) -> None:
    """Delete a profile."""
    try:
        ProfileManager().delete_profile(name)
    except ProfileNotFound as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1)
    typer.echo(f"Deleted profile {name!r}.")
