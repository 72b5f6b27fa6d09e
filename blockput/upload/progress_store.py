"""Persistence of per-block upload progress for resumable transfers."""

from __future__ import annotations

import hashlib
import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path

from pydantic import TypeAdapter, ValidationError

from blockput.exceptions import ProgressStoreError
from blockput.models import BlockProgress

logger = logging.getLogger(__name__)

_BLOCKS_ADAPTER = TypeAdapter(list[BlockProgress])


class ProgressStore(ABC):
    """Stores the block progress array of a task under a string key."""

    @abstractmethod
    def load(self, key: str) -> list[BlockProgress] | None:
        """Load the progress stored under ``key``.

        Missing or unreadable records are reported as ``None``.
        """

    @abstractmethod
    def save(self, key: str, blocks: list[BlockProgress]) -> None:
        """Overwrite the record for ``key``.

        Raises:
            ProgressStoreError: If the record could not be written.
        """

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove the record for ``key`` if there is one."""


class MemoryProgressStore(ProgressStore):
    """Keeps progress records in memory."""

    def __init__(self) -> None:
        """Initialize an empty store."""
        self._records: dict[str, list[BlockProgress]] = {}
        self._lock = threading.Lock()

    def load(self, key: str) -> list[BlockProgress] | None:
        with self._lock:
            blocks = self._records.get(key)
            if blocks is None:
                return None
            return [block.model_copy() for block in blocks]

    def save(self, key: str, blocks: list[BlockProgress]) -> None:
        with self._lock:
            self._records[key] = [block.model_copy() for block in blocks]

    def delete(self, key: str) -> None:
        with self._lock:
            self._records.pop(key, None)


class JsonFileProgressStore(ProgressStore):
    """Stores each record as a JSON array in its own file.

    File names are the SHA-1 of the key, so arbitrary target identifiers
    map to safe names. Writes go through a temporary file in the same
    directory and are moved into place atomically.
    """

    def __init__(self, directory: str | os.PathLike):
        """Initialize the store.

        Args:
            directory: Directory holding the progress files. Created on the
                first save.
        """
        self.directory = Path(directory)
        self._lock = threading.Lock()

    def path_for(self, key: str) -> Path:
        """Return the file that holds the record for ``key``."""
        digest = hashlib.sha1(key.encode("utf-8")).hexdigest()
        return self.directory / f"{digest}.json"

    def load(self, key: str) -> list[BlockProgress] | None:
        path = self.path_for(key)
        try:
            raw = path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.warning(f"Could not read progress file {path}: {e}")
            return None

        if not raw:
            return None

        try:
            return _BLOCKS_ADAPTER.validate_json(raw)
        except ValidationError as e:
            logger.warning(
                f"Discarding corrupt progress file {path}: {e.error_count()} errors"
            )
            self._remove(path)
            return None

    def save(self, key: str, blocks: list[BlockProgress]) -> None:
        path = self.path_for(key)
        payload = _BLOCKS_ADAPTER.dump_json(blocks)
        with self._lock:
            try:
                self.directory.mkdir(parents=True, exist_ok=True)
                fd, tmp_name = tempfile.mkstemp(
                    dir=self.directory, prefix=".progress-", suffix=".tmp"
                )
                try:
                    with os.fdopen(fd, "wb") as tmp_file:
                        tmp_file.write(payload)
                    os.replace(tmp_name, path)
                except BaseException:
                    self._remove(Path(tmp_name))
                    raise
            except OSError as e:
                raise ProgressStoreError(
                    f"Failed to save progress for {key!r} to {path}: {e}"
                ) from e
        logger.debug(f"Saved progress for {key!r} ({len(blocks)} blocks) to {path}")

    def delete(self, key: str) -> None:
        with self._lock:
            self._remove(self.path_for(key))

    @staticmethod
    def _remove(path: Path) -> None:
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Could not remove {path}: {e}")
