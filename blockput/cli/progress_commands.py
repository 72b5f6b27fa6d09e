"""Inspect and clear saved upload progress."""

from __future__ import annotations

import typer
from rich import box
from rich.console import Console
from rich.table import Table
from rich.text import Text

from blockput.cli.common import make_progress_store, resolve_config
from blockput.models import UploadTask, block_count

progress_app = typer.Typer(help="Saved upload progress.")
console = Console()


def _block_state(task: UploadTask, index: int) -> Text:
    if task.is_block_done(index):
        return Text("complete", style="green bold")
    if task.blocks[index].context:
        return Text("partial", style="yellow bold")
    return Text("pending", style="white")


def _print_blocks(task: UploadTask) -> None:
    table = Table(
        title=f"{task.target_id} ({task.total_size} bytes)",
        box=box.MINIMAL,
        show_header=True,
        header_style="bold",
        expand=False,
    )
    table.add_column("Block", justify="right", no_wrap=True)
    table.add_column("State", no_wrap=True)
    table.add_column("Offset", justify="right", no_wrap=True)
    table.add_column("Size", justify="right", no_wrap=True)
    table.add_column("Context", max_width=32, overflow="ellipsis")

    for index, progress in enumerate(task.blocks):
        length = task.block_length(index)
        table.add_row(
            str(index),
            _block_state(task, index),
            str(progress.offset),
            str(length),
            progress.context or "-",
        )
    console.print(table)
    console.print(
        f"{task.bytes_acknowledged}/{task.total_size} bytes acknowledged",
        highlight=False,
    )


@progress_app.command("show")
def show_progress(
    target: str = typer.Argument(..., help="Destination object of the upload."),
    size: int = typer.Argument(..., min=0, help="Total size of the content."),
    profile: str | None = typer.Option(None, "--profile", help="Config profile."),
) -> None:
    """Show saved per-block progress for TARGET."""
    config = resolve_config(profile)
    store = make_progress_store(config)
    key = f"{target}{size}"
    blocks = store.load(key)
    if blocks is None:
        typer.echo(f"No saved progress for {target} ({size} bytes).")
        raise typer.Exit(code=1)
    expected = block_count(size, config.block_size_exp)
    if len(blocks) != expected:
        typer.echo(
            f"Saved progress has {len(blocks)} blocks but {expected} are expected "
            f"with block_size_exp={config.block_size_exp}.",
            err=True,
        )
        raise typer.Exit(code=1)
    task = UploadTask(
        target_id=target,
        total_size=size,
        block_size_exp=config.block_size_exp,
        blocks=blocks,
    )
    _print_blocks(task)


@progress_app.command("clear")
def clear_progress(
    target: str = typer.Argument(..., help="Destination object of the upload."),
    size: int = typer.Argument(..., min=0, help="Total size of the content."),
    profile: str | None = typer.Option(None, "--profile", help="Config profile."),
) -> None:
    """Delete saved progress so the next upload of TARGET starts fresh."""
    config = resolve_config(profile)
    store = make_progress_store(config)
    path = store.path_for(f"{target}{size}")
    if not path.exists():
        typer.echo(f"No saved progress for {target} ({size} bytes).")
        return
    store.delete(f"{target}{size}")
    typer.echo(f"Cleared saved progress for {target}.")
