"""Exception classes for the block upload workflow."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from blockput.models import BlockProgress


class BlockputError(Exception):
    """Base error for the blockput client."""


class ContentReadError(BlockputError):
    """Raised when a content source cannot supply the requested byte range."""


class TransportError(BlockputError):
    """Raised when a request cannot reach the upload service."""


class ChunkRejectedError(BlockputError):
    """Raised when the upload service answers a chunk with an error status."""

    def __init__(self, status_code: int, body: bytes = b""):
        """Initialize ChunkRejectedError.

        Args:
            status_code: HTTP status returned by the service.
            body: Raw response body, kept for diagnostics.
        """
        detail = body[:200].decode("utf-8", errors="replace") if body else ""
        super().__init__(f"Chunk rejected with HTTP {status_code}: {detail}")
        self.status_code = status_code
        self.body = body


class ChecksumMismatchError(BlockputError):
    """Raised when the server-confirmed checksum or offset differs from ours."""

    def __init__(self, block_index: int, offset: int, detail: str):
        """Initialize ChecksumMismatchError.

        Args:
            block_index: Index of the block the chunk belongs to.
            offset: In-block offset of the chunk.
            detail: What disagreed between the server reply and the chunk.
        """
        super().__init__(
            f"Checksum mismatch for block {block_index} at offset {offset}: {detail}"
        )
        self.block_index = block_index
        self.offset = offset


class MalformedReplyError(BlockputError):
    """Raised when a successful chunk reply cannot be parsed."""


class StaleContextError(BlockputError):
    """Raised when the server no longer recognises a block context."""


class RetryExhaustedError(BlockputError):
    """Raised when a block fails after consuming its whole retry budget."""

    def __init__(self, block_index: int, attempts: int):
        """Initialize RetryExhaustedError.

        Args:
            block_index: Index of the failed block.
            attempts: Number of attempts made for the failing chunk.
        """
        super().__init__(
            f"Block {block_index} failed after {attempts} attempts for one chunk"
        )
        self.block_index = block_index
        self.attempts = attempts


class ProgressStoreError(BlockputError):
    """Raised when upload progress cannot be persisted."""


class UploadError(BlockputError):
    """Base error for task-level upload failures."""


class UploadIncompleteError(UploadError):
    """Some blocks did not finish; the upload can be resumed.

    Attributes:
        blocks: Progress of every block at the time of failure.
        block_errors: Terminal error of each failed block, by block index.
        save_error: Error raised while persisting progress, if any.
    """

    def __init__(
        self,
        message: str,
        blocks: list[BlockProgress],
        block_errors: dict[int, BaseException],
        save_error: BaseException | None = None,
    ):
        """Initialize UploadIncompleteError.

        Args:
            message: Human readable summary.
            blocks: Progress of every block.
            block_errors: Terminal error per failed block index.
            save_error: Error raised while persisting progress, if any.
        """
        super().__init__(message)
        self.blocks = blocks
        self.block_errors = block_errors
        self.save_error = save_error

    @property
    def resumable(self) -> bool:
        """Whether the progress needed for a resume was persisted."""
        return self.save_error is None


class UploadCancelledError(UploadIncompleteError):
    """The upload was cancelled by the caller before every block finished."""


class BlockCancelledError(BlockputError):
    """Raised inside a block upload when cancellation has been requested."""


class FinalizeFailedError(UploadError):
    """Every block is stored on the server but the commit call failed.

    Only the commit needs to be retried; no block data has to be resent.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        body: bytes = b"",
    ):
        """Initialize FinalizeFailedError.

        Args:
            message: Human readable summary.
            status_code: HTTP status of the commit call, if one was received.
            body: Raw commit response body.
        """
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class ProfileNotFound(BlockputError):
    """Raised when a requested profile cannot be found on disk."""


class ProfileAlreadyExist(BlockputError):
    """Raised when attempting to create a profile that already exists."""
