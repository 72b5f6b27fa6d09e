"""Shared helpers for blockput CLI commands."""

from __future__ import annotations

import logging
from typing import Any

import typer

from blockput.config import ConfigManager, ProfileManager, UploadConfig
from blockput.exceptions import ProfileNotFound
from blockput.upload import JsonFileProgressStore, RequestsChunkTransport

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

EXIT_UPLOAD_INCOMPLETE = 2
EXIT_COMMIT_FAILED = 3


def configure_logging(level: int = logging.INFO) -> None:
    """Configure root logging with a concise, consistent format."""
    if logging.getLogger().handlers:
        logging.getLogger().setLevel(level)
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logging.basicConfig(level=level, handlers=[handler])


def resolve_config(
    profile: str | None, overrides: dict[str, Any] | None = None
) -> UploadConfig:
    """Resolve the effective configuration or exit with a readable message."""
    manager = ConfigManager(ProfileManager(), profile=profile)
    try:
        return manager.resolve_effective_config(overrides)
    except ProfileNotFound as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(code=1)
    except ValueError as e:
        typer.echo(f"Invalid configuration: {e}", err=True)
        raise typer.Exit(code=1)


def make_transport(config: UploadConfig, token: str | None) -> RequestsChunkTransport:
    """Build the HTTP transport, attaching the upload token when given."""
    header_provider = None
    if token:

        def header_provider() -> dict[str, str]:
            return {"Authorization": f"UpToken {token}"}

    return RequestsChunkTransport(
        header_provider=header_provider, timeout=config.request_timeout
    )


def make_progress_store(config: UploadConfig) -> JsonFileProgressStore:
    """Progress store rooted at the configured progress directory."""
    return JsonFileProgressStore(config.progress_path)
