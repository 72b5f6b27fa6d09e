"""Fan-out/fan-in driver for resumable block uploads.

The orchestrator restores any persisted progress for a task, uploads the
unfinished blocks on a bounded thread pool, and either commits the object
or persists progress so a later run can resume where this one stopped.
"""

from __future__ import annotations

import logging
import mimetypes
import os
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed

from pydantic import ValidationError

from blockput.config.upload_config import UploadConfig
from blockput.const import TEXT_PLAIN
from blockput.exceptions import (
    BlockCancelledError,
    FinalizeFailedError,
    ProgressStoreError,
    TransportError,
    UploadCancelledError,
    UploadIncompleteError,
)
from blockput.models import CommitResult, UploadTask
from blockput.upload.block_uploader import (
    BlockUploader,
    ProgressCallback,
    StaleContextPredicate,
)
from blockput.upload.content_source import ContentSource, FileContentSource
from blockput.upload.progress_store import MemoryProgressStore, ProgressStore
from blockput.upload.transport import ChunkTransport, UploadEndpoints

logger = logging.getLogger(__name__)


class UploadOrchestrator:
    """Runs resumable block uploads against one upload service.

    Blocks are uploaded in parallel with at most ``config.max_workers``
    threads. A failed block never cancels its siblings, so each run makes as
    much progress as it can before reporting failure.
    """

    def __init__(
        self,
        transport: ChunkTransport,
        config: UploadConfig | None = None,
        progress_store: ProgressStore | None = None,
        is_stale_context: StaleContextPredicate | None = None,
        chunk_callback: ProgressCallback | None = None,
        block_callback: ProgressCallback | None = None,
    ):
        """Initialize the orchestrator.

        Args:
            transport: Executes negotiate, append and finalize requests.
            config: Upload settings. Defaults to ``UploadConfig()``.
            progress_store: Where progress is loaded from and saved to.
                Defaults to an in-memory store.
            is_stale_context: Optional override of the stale-context check.
            chunk_callback: Called after every acknowledged chunk.
            block_callback: Called once a block is complete.
        """
        self.config = config or UploadConfig()
        self.transport = transport
        self.progress_store = progress_store or MemoryProgressStore()
        self.endpoints = UploadEndpoints(self.config.up_host)
        self._is_stale_context = is_stale_context
        self._chunk_callback = chunk_callback
        self._block_callback = block_callback
        self._checkpoint_lock = threading.Lock()

    def new_task(
        self,
        target_id: str,
        total_size: int,
        mime_type: str = "",
        meta: str = "",
        customer: str = "",
        callback_params: str = "",
    ) -> UploadTask:
        """Create a fresh task using the configured block size."""
        return UploadTask(
            target_id=target_id,
            total_size=total_size,
            block_size_exp=self.config.block_size_exp,
            mime_type=mime_type,
            meta=meta,
            customer=customer,
            callback_params=callback_params,
        )

    def upload_file(
        self,
        path: str | os.PathLike,
        target_id: str,
        mime_type: str = "",
        cancel_event: threading.Event | None = None,
    ) -> CommitResult:
        """Upload a local file to ``target_id``, resuming earlier progress.

        The MIME type is guessed from the file name when not given.
        """
        if not mime_type:
            mime_type = mimetypes.guess_type(str(path))[0] or ""
        with FileContentSource(path) as source:
            task = self.new_task(target_id, source.size(), mime_type=mime_type)
            return self.run(task, source, cancel_event=cancel_event)

    def run(
        self,
        task: UploadTask,
        source: ContentSource,
        cancel_event: threading.Event | None = None,
    ) -> CommitResult:
        """Upload every block of ``task`` and commit the object.

        Args:
            task: The transfer to perform. Its block progress is updated in
                place.
            source: Content to upload; its size must equal ``task.total_size``.
            cancel_event: Set it to stop every block at its next loop
                boundary.

        Returns:
            The commit reply of the upload service.

        Raises:
            ValueError: If the source size does not match the task.
            UploadIncompleteError: If any block failed. Progress has been
                persisted so the same task can be resumed.
            UploadCancelledError: If ``cancel_event`` stopped the upload.
            FinalizeFailedError: If every block was stored but the commit
                call failed.
        """
        source_size = source.size()
        if source_size != task.total_size:
            raise ValueError(
                f"Content size {source_size} does not match task size "
                f"{task.total_size} for {task.target_id!r}"
            )

        self.restore_progress(task)

        if cancel_event is None:
            cancel_event = threading.Event()
        try:
            block_errors = self._upload_blocks(task, source, cancel_event)
        except KeyboardInterrupt:
            self._save_progress(task)
            raise
        if block_errors:
            self._raise_incomplete(task, block_errors, cancel_event)

        return self._finalize(task)

    def restore_progress(self, task: UploadTask) -> bool:
        """Adopt stored progress for ``task`` when it matches the block layout.

        Returns:
            Whether stored progress was adopted.
        """
        stored = self.progress_store.load(task.progress_key)
        if stored is None:
            return False
        if len(stored) != task.block_count:
            logger.warning(
                f"Stored progress for {task.target_id!r} has {len(stored)} blocks, "
                f"expected {task.block_count}; starting fresh"
            )
            self.progress_store.delete(task.progress_key)
            return False
        task.blocks = stored
        done = sum(1 for index in range(task.block_count) if task.is_block_done(index))
        logger.info(
            f"Resuming {task.target_id!r}: {done}/{task.block_count} blocks complete, "
            f"{task.bytes_acknowledged}/{task.total_size} bytes acknowledged"
        )
        return True

    def commit(self, task: UploadTask) -> CommitResult:
        """Retry only the finalize call for a task whose blocks are stored.

        Progress is restored from the store first if the task is not already
        complete in memory.

        Raises:
            UploadIncompleteError: If some blocks still need uploading.
            FinalizeFailedError: If the commit call failed again.
        """
        if not task.is_complete:
            self.restore_progress(task)
        if not task.is_complete:
            raise UploadIncompleteError(
                f"Cannot commit {task.target_id!r}: not every block is uploaded",
                blocks=task.blocks,
                block_errors={},
            )
        return self._finalize(task)

    def _upload_blocks(
        self,
        task: UploadTask,
        source: ContentSource,
        cancel_event: threading.Event,
    ) -> dict[int, BaseException]:
        """Upload unfinished blocks in parallel and collect terminal errors."""
        pending = [
            index for index in range(task.block_count) if not task.is_block_done(index)
        ]
        if not pending:
            return {}

        uploader = BlockUploader(
            task,
            source,
            self.transport,
            self.endpoints,
            self.config,
            is_stale_context=self._is_stale_context,
            chunk_callback=self._chunk_callback,
            block_callback=self._block_callback,
            cancel_event=cancel_event,
        )
        max_workers = min(self.config.max_workers, len(pending))
        logger.info(
            f"Uploading {len(pending)}/{task.block_count} blocks of "
            f"{task.target_id!r} with {max_workers} workers"
        )

        block_errors: dict[int, BaseException] = {}
        with ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="blockput"
        ) as executor:
            futures = {
                executor.submit(uploader.upload_block, index): index
                for index in pending
            }
            try:
                for future in as_completed(futures):
                    index = futures[future]
                    try:
                        future.result()
                    except Exception as e:
                        block_errors[index] = e
                        if not isinstance(e, BlockCancelledError):
                            logger.error(
                                f"Block {index} of {task.target_id!r} failed: {e}"
                            )
                        continue
                    if self.config.checkpoint_blocks:
                        self._checkpoint(task)
            except KeyboardInterrupt:
                logger.warning("Interrupted, stopping block uploads")
                cancel_event.set()
                raise

        return block_errors

    def _checkpoint(self, task: UploadTask) -> None:
        """Persist progress after a block completes; failures only warn."""
        with self._checkpoint_lock:
            try:
                self.progress_store.save(task.progress_key, task.blocks)
            except ProgressStoreError as e:
                logger.warning(f"Could not checkpoint progress: {e}")

    def _save_progress(self, task: UploadTask) -> ProgressStoreError | None:
        with self._checkpoint_lock:
            try:
                self.progress_store.save(task.progress_key, task.blocks)
            except ProgressStoreError as e:
                logger.error(f"Could not save progress for {task.target_id!r}: {e}")
                return e
        return None

    def _raise_incomplete(
        self,
        task: UploadTask,
        block_errors: dict[int, BaseException],
        cancel_event: threading.Event,
    ) -> None:
        save_error = self._save_progress(task)
        failed = ", ".join(str(index) for index in sorted(block_errors))
        if cancel_event.is_set():
            raise UploadCancelledError(
                f"Upload of {task.target_id!r} cancelled; unfinished blocks: {failed}",
                blocks=task.blocks,
                block_errors=block_errors,
                save_error=save_error,
            )
        raise UploadIncompleteError(
            f"Upload of {task.target_id!r} incomplete: "
            f"{len(block_errors)}/{task.block_count} blocks failed ({failed})",
            blocks=task.blocks,
            block_errors=block_errors,
            save_error=save_error,
        )

    def _finalize(self, task: UploadTask) -> CommitResult:
        """Assemble the uploaded blocks into the target object."""
        body = task.commit_body().encode("utf-8")
        url = self.endpoints.finalize(
            task.target_id,
            task.total_size,
            mime_type=task.mime_type,
            meta=task.meta,
            customer=task.customer,
            callback_params=task.callback_params,
        )
        logger.info(
            f"Committing {task.target_id!r} ({task.total_size} bytes, "
            f"{task.block_count} blocks)"
        )
        try:
            response = self.transport.execute("POST", url, TEXT_PLAIN, body, len(body))
        except TransportError as e:
            self._save_progress(task)
            raise FinalizeFailedError(
                f"Commit of {task.target_id!r} failed: {e}"
            ) from e

        if not response.ok:
            self._save_progress(task)
            raise FinalizeFailedError(
                f"Commit of {task.target_id!r} failed with HTTP {response.status_code}",
                status_code=response.status_code,
                body=response.body,
            )

        self.progress_store.delete(task.progress_key)
        if not response.body:
            return CommitResult()
        try:
            return CommitResult.model_validate_json(response.body)
        except ValidationError:
            logger.warning(f"Commit of {task.target_id!r} returned a non-JSON reply")
            return CommitResult()
