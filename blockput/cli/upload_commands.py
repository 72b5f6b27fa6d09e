"""Upload and commit commands."""

from __future__ import annotations

import logging
import threading
from pathlib import Path

import typer
from tqdm import tqdm

from blockput.cli.common import (
    EXIT_COMMIT_FAILED,
    EXIT_UPLOAD_INCOMPLETE,
    configure_logging,
    make_progress_store,
    make_transport,
    resolve_config,
)
from blockput.config import parse_bytes
from blockput.exceptions import (
    ContentReadError,
    FinalizeFailedError,
    UploadCancelledError,
    UploadIncompleteError,
)
from blockput.models import BlockProgress, UploadTask
from blockput.upload import FileContentSource, UploadOrchestrator


def _parse_chunk_size(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return parse_bytes(value)
    except ValueError as e:
        raise typer.BadParameter(str(e)) from e


def _progress_reporter(task_ref: list[UploadTask], bar: tqdm):
    """Chunk callback that keeps ``bar`` at the acknowledged byte count."""
    lock = threading.Lock()

    def on_chunk(_block_index: int, _progress: BlockProgress) -> None:
        with lock:
            bar.n = task_ref[0].bytes_acknowledged
            bar.refresh()

    return on_chunk


def upload(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True),
    target: str = typer.Argument(..., help="Destination object, e.g. bucket:key."),
    mime_type: str = typer.Option("", "--mime-type", help="Content type to record."),
    profile: str | None = typer.Option(None, "--profile", help="Config profile."),
    workers: int | None = typer.Option(None, "--workers", help="Parallel blocks."),
    chunk_size: str | None = typer.Option(
        None, "--chunk-size", help="Bytes per request, e.g. 512kb."
    ),
    up_host: str | None = typer.Option(None, "--up-host", help="Upload service URL."),
    token: str | None = typer.Option(
        None, "--token", envvar="BLOCKPUT_UP_TOKEN", help="Upload token."
    ),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Hide progress."),
) -> None:
    """Upload FILE to TARGET, resuming any earlier partial upload."""
    configure_logging(logging.WARNING if quiet else logging.INFO)
    config = resolve_config(
        profile,
        {
            "max_workers": workers,
            "chunk_size": _parse_chunk_size(chunk_size),
            "up_host": up_host,
        },
    )
    transport = make_transport(config, token)
    cancel_event = threading.Event()

    with FileContentSource(file) as source:
        bar = tqdm(
            total=source.size(),
            unit="B",
            unit_scale=True,
            unit_divisor=1024,
            disable=quiet,
        )
        task_ref: list[UploadTask] = []
        orchestrator = UploadOrchestrator(
            transport,
            config=config,
            progress_store=make_progress_store(config),
            chunk_callback=_progress_reporter(task_ref, bar),
        )
        task = orchestrator.new_task(target, source.size(), mime_type=mime_type)
        task_ref.append(task)
        try:
            result = orchestrator.run(task, source, cancel_event=cancel_event)
        except KeyboardInterrupt:
            typer.echo("Interrupted; run the same command to resume.", err=True)
            raise typer.Exit(code=130)
        except UploadCancelledError:
            typer.echo("Upload cancelled; run the same command to resume.", err=True)
            raise typer.Exit(code=EXIT_UPLOAD_INCOMPLETE)
        except UploadIncompleteError as e:
            typer.echo(str(e), err=True)
            if e.resumable:
                typer.echo("Progress saved; run the same command to resume.", err=True)
            raise typer.Exit(code=EXIT_UPLOAD_INCOMPLETE)
        except FinalizeFailedError as e:
            typer.echo(str(e), err=True)
            typer.echo(
                "All data is stored; run `blockput commit` to retry the commit.",
                err=True,
            )
            raise typer.Exit(code=EXIT_COMMIT_FAILED)
        except ContentReadError as e:
            typer.echo(str(e), err=True)
            raise typer.Exit(code=1)
        finally:
            bar.close()
            transport.close()

    typer.echo(result.model_dump_json())


def commit(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True),
    target: str = typer.Argument(..., help="Destination object, e.g. bucket:key."),
    mime_type: str = typer.Option("", "--mime-type", help="Content type to record."),
    profile: str | None = typer.Option(None, "--profile", help="Config profile."),
    up_host: str | None = typer.Option(None, "--up-host", help="Upload service URL."),
    token: str | None = typer.Option(
        None, "--token", envvar="BLOCKPUT_UP_TOKEN", help="Upload token."
    ),
) -> None:
    """Retry only the commit of a FILE whose blocks are already uploaded."""
    configure_logging()
    config = resolve_config(profile, {"up_host": up_host})
    transport = make_transport(config, token)
    orchestrator = UploadOrchestrator(
        transport, config=config, progress_store=make_progress_store(config)
    )
    task = orchestrator.new_task(target, file.stat().st_size, mime_type=mime_type)
    try:
        result = orchestrator.commit(task)
    except UploadIncompleteError as e:
        typer.echo(str(e), err=True)
        typer.echo("Run `blockput upload` to finish the remaining blocks.", err=True)
        raise typer.Exit(code=EXIT_UPLOAD_INCOMPLETE)
    except FinalizeFailedError as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(code=EXIT_COMMIT_FAILED)
    finally:
        transport.close()

    typer.echo(result.model_dump_json())
