"""Pydantic model for blockput upload configuration."""

from pathlib import Path

from pydantic import BaseModel, Field, field_validator

from blockput.const import (
    DEFAULT_BLOCK_SIZE_EXP,
    DEFAULT_CHUNK_SIZE,
    DEFAULT_MAX_BACKOFF_SECONDS,
    DEFAULT_MAX_WORKERS,
    DEFAULT_REQUEST_TIMEOUT_SECONDS,
    DEFAULT_RETRY_BACKOFF_SECONDS,
    DEFAULT_RETRY_TIMES,
    INVALID_CONTEXT_STATUS,
    MAX_BLOCK_SIZE_EXP,
    MIN_BLOCK_SIZE_EXP,
    PROGRESS_DIR,
    UP_HOST,
)


class UploadConfig(BaseModel):
    """Configuration options for resumable block uploads.

    Attributes:
        up_host: base URL of the upload service.
        block_size_exp: block size as a power of two (22 gives 4 MiB blocks).
        chunk_size: bytes sent per negotiate or append request.
        retry_times: retries allowed per chunk before its block fails.
        max_workers: maximum number of blocks uploaded at the same time.
        retry_backoff_seconds: base delay of the exponential retry backoff.
        max_backoff_seconds: upper bound of a single backoff delay.
        request_timeout: seconds to wait for each HTTP request.
        stale_context_codes: statuses meaning a block context is no longer valid.
        progress_dir: directory holding resumable progress records.
        checkpoint_blocks: persist progress every time a block completes.
    """

    up_host: str = UP_HOST
    block_size_exp: int = DEFAULT_BLOCK_SIZE_EXP
    chunk_size: int = DEFAULT_CHUNK_SIZE
    retry_times: int = DEFAULT_RETRY_TIMES
    max_workers: int = DEFAULT_MAX_WORKERS
    retry_backoff_seconds: float = DEFAULT_RETRY_BACKOFF_SECONDS
    max_backoff_seconds: float = DEFAULT_MAX_BACKOFF_SECONDS
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT_SECONDS
    stale_context_codes: list[int] = Field(
        default_factory=lambda: [INVALID_CONTEXT_STATUS]
    )
    progress_dir: str = str(PROGRESS_DIR)
    checkpoint_blocks: bool = True

    @field_validator("block_size_exp")
    @classmethod
    def _check_block_size_exp(cls, value: int) -> int:
        if not MIN_BLOCK_SIZE_EXP <= value <= MAX_BLOCK_SIZE_EXP:
            raise ValueError(
                f"block_size_exp must be between {MIN_BLOCK_SIZE_EXP} and "
                f"{MAX_BLOCK_SIZE_EXP}, got {value}"
            )
        return value

    @field_validator("chunk_size", "max_workers")
    @classmethod
    def _check_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError(f"must be a positive integer, got {value}")
        return value

    @field_validator("retry_times")
    @classmethod
    def _check_retry_times(cls, value: int) -> int:
        if value < 0:
            raise ValueError(f"retry_times must not be negative, got {value}")
        return value

    @field_validator("retry_backoff_seconds", "max_backoff_seconds")
    @classmethod
    def _check_backoff(cls, value: float) -> float:
        if value < 0:
            raise ValueError(f"backoff must not be negative, got {value}")
        return value

    @property
    def block_size(self) -> int:
        """Block size in bytes."""
        return 1 << self.block_size_exp

    @property
    def progress_path(self) -> Path:
        """``progress_dir`` with ``~`` expanded."""
        return Path(self.progress_dir).expanduser()
