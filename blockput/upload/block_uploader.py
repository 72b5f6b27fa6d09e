"""Per-block upload state machine.

A block moves from empty (no context) through negotiation (the first chunk
creates a server-side context) to active (further chunks are appended to
that context) and finally to complete. When the server reports that the
context is stale, the block is reset and negotiated again from scratch.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable

from pydantic import ValidationError

from blockput.config.upload_config import UploadConfig
from blockput.const import OCTET_STREAM
from blockput.exceptions import (
    BlockCancelledError,
    ChecksumMismatchError,
    ChunkRejectedError,
    MalformedReplyError,
    RetryExhaustedError,
    StaleContextError,
    TransportError,
)
from blockput.models import BlockProgress, ChunkReply, UploadTask
from blockput.upload.checksums import Crc32
from blockput.upload.content_source import ContentSource
from blockput.upload.transport import ChunkTransport, TransportResponse, UploadEndpoints

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, BlockProgress], None]
StaleContextPredicate = Callable[[TransportResponse], bool]

RETRYABLE_ERRORS = (
    TransportError,
    ChunkRejectedError,
    ChecksumMismatchError,
    MalformedReplyError,
)


def status_code_predicate(codes: list[int] | set[int]) -> StaleContextPredicate:
    """Build a stale-context predicate that matches on response status."""
    stale_codes = frozenset(codes)

    def is_stale_context(response: TransportResponse) -> bool:
        return response.status_code in stale_codes

    return is_stale_context


class BlockUploader:
    """Uploads the blocks of one task, one ``upload_block`` call per block.

    Each call owns ``task.blocks[index]`` exclusively, so separate blocks may
    be uploaded from separate threads with the same instance. Progress is
    never mutated in place: every state change replaces the list entry with
    a new ``BlockProgress`` in a single assignment.
    """

    def __init__(
        self,
        task: UploadTask,
        source: ContentSource,
        transport: ChunkTransport,
        endpoints: UploadEndpoints,
        config: UploadConfig,
        is_stale_context: StaleContextPredicate | None = None,
        chunk_callback: ProgressCallback | None = None,
        block_callback: ProgressCallback | None = None,
        cancel_event: threading.Event | None = None,
    ):
        """Initialize the uploader.

        Args:
            task: Task whose blocks are uploaded.
            source: Content of the task.
            transport: Executes negotiate and append requests.
            endpoints: Builds request URLs.
            config: Chunk size, retry budget and backoff settings.
            is_stale_context: Decides whether a reply means the block context
                is no longer valid. Defaults to matching
                ``config.stale_context_codes``.
            chunk_callback: Called after every acknowledged chunk.
            block_callback: Called once a block is complete.
            cancel_event: When set, every block stops at the next loop
                boundary or backoff sleep.
        """
        self._task = task
        self._source = source
        self._transport = transport
        self._endpoints = endpoints
        self._config = config
        self._is_stale_context = is_stale_context or status_code_predicate(
            config.stale_context_codes
        )
        self._chunk_callback = chunk_callback
        self._block_callback = block_callback
        self._cancel_event = cancel_event

    def upload_block(self, index: int) -> BlockProgress:
        """Upload every unacknowledged byte of block ``index``.

        Args:
            index: Block index within the task.

        Returns:
            The block's progress, complete and holding its final context.

        Raises:
            RetryExhaustedError: If one chunk failed more often than the
                retry budget allows.
            BlockCancelledError: If cancellation was requested.
            ContentReadError: If the content source cannot supply the chunk.
        """
        progress = self._task.blocks[index]
        block_size = self._task.block_length(index)

        if self._task.is_block_done(index):
            logger.debug(f"Block {index} already complete, skipping")
            return progress

        if not progress.context:
            progress = self._restart(index, block_size)
        elif not progress.is_consistent_with(block_size):
            logger.warning(
                f"Block {index} progress (offset={progress.offset}, "
                f"rest_size={progress.rest_size}) does not match block size "
                f"{block_size}, negotiating again"
            )
            progress = self._restart(index, block_size)

        # Set while appending to a context loaded from an earlier run.
        resumed = bool(progress.context)
        retries_left = self._config.retry_times
        attempts = 0

        while progress.rest_size > 0:
            self._check_cancelled(index)
            chunk_len = min(self._config.chunk_size, progress.rest_size)
            attempts += 1
            try:
                progress = self._put_chunk(index, progress, chunk_len)
            except StaleContextError:
                logger.info(
                    f"Block {index} context is stale at offset {progress.offset}, "
                    "restarting block"
                )
                progress = self._restart(index, block_size)
                resumed = False
                retries_left = self._config.retry_times
                attempts = 0
                continue
            except RETRYABLE_ERRORS as e:
                if resumed and _is_client_error(e):
                    logger.warning(
                        f"Block {index} saved context was refused at offset "
                        f"{progress.offset} ({e}), negotiating again"
                    )
                    progress = self._restart(index, block_size)
                    resumed = False
                    retries_left = self._config.retry_times
                    attempts = 0
                    continue
                if retries_left <= 0:
                    logger.error(
                        f"Block {index} failed at offset {progress.offset} "
                        f"after {attempts} attempts: {e}"
                    )
                    raise RetryExhaustedError(index, attempts) from e
                retries_left -= 1
                logger.warning(
                    f"Chunk at offset {progress.offset} of block {index} failed "
                    f"(attempt {attempts}/{self._config.retry_times + 1}): {e}"
                )
                self._sleep_backoff(index, attempts)
                continue

            self._task.blocks[index] = progress
            resumed = False
            retries_left = self._config.retry_times
            attempts = 0
            if self._chunk_callback is not None:
                self._chunk_callback(index, progress)

        logger.debug(f"Block {index} complete ({block_size} bytes)")
        if self._block_callback is not None:
            self._block_callback(index, progress)
        return progress

    def _restart(self, index: int, block_size: int) -> BlockProgress:
        """Publish empty, not yet negotiated progress for block ``index``."""
        progress = BlockProgress()
        progress.reset(block_size)
        self._task.blocks[index] = progress
        return progress

    def _put_chunk(
        self, index: int, progress: BlockProgress, chunk_len: int
    ) -> BlockProgress:
        """Send the next chunk of the block.

        Returns:
            New progress built from the server's reply. ``progress`` itself
            is left untouched.
        """
        start = self._task.block_offset(index) + progress.offset
        data = self._source.read_range(start, chunk_len)
        crc = Crc32()
        crc.update(data)

        if progress.context:
            url = self._endpoints.append(
                progress.context, progress.offset, host=progress.host
            )
        else:
            url = self._endpoints.negotiate(progress.rest_size)

        response = self._transport.execute("POST", url, OCTET_STREAM, data, chunk_len)

        if self._is_stale_context(response):
            raise StaleContextError(
                f"Block {index} context rejected with HTTP {response.status_code}"
            )
        if not response.ok:
            raise ChunkRejectedError(response.status_code, response.body)

        try:
            reply = ChunkReply.model_validate_json(response.body)
        except ValidationError as e:
            raise MalformedReplyError(
                f"Unparsable reply for block {index} at offset {progress.offset}"
            ) from e

        if reply.crc32 != crc.value:
            raise ChecksumMismatchError(
                index,
                progress.offset,
                f"local crc32={crc.value:#010x} server crc32={reply.crc32:#010x}",
            )
        expected_offset = progress.offset + chunk_len
        if reply.offset is not None and reply.offset != expected_offset:
            raise ChecksumMismatchError(
                index,
                progress.offset,
                f"server offset {reply.offset} != expected {expected_offset}",
            )

        return BlockProgress(
            context=reply.ctx,
            offset=expected_offset,
            rest_size=progress.rest_size - chunk_len,
            checksum=reply.checksum,
            crc32=reply.crc32,
            host=reply.host or progress.host,
        )

    def _check_cancelled(self, index: int) -> None:
        if self._cancel_event is not None and self._cancel_event.is_set():
            raise BlockCancelledError(f"Upload of block {index} cancelled")

    def _sleep_backoff(self, index: int, attempt: int) -> None:
        """Sleep with exponential backoff, capped at max_backoff_seconds."""
        delay = min(
            self._config.retry_backoff_seconds * 2 ** (attempt - 1),
            self._config.max_backoff_seconds,
        )
        if delay <= 0:
            return
        if self._cancel_event is None:
            time.sleep(delay)
        elif self._cancel_event.wait(delay):
            raise BlockCancelledError(f"Upload of block {index} cancelled")


def _is_client_error(error: Exception) -> bool:
    return isinstance(error, ChunkRejectedError) and 400 <= error.status_code < 500
