"""Randomly readable, size-bounded byte sources for block uploads."""

from __future__ import annotations

import io
import os
import threading
from abc import ABC, abstractmethod
from pathlib import Path

from blockput.exceptions import ContentReadError


class ContentSource(ABC):
    """Source of upload content.

    Implementations must allow concurrent ``read_range`` calls at independent
    offsets from several worker threads.
    """

    @abstractmethod
    def size(self) -> int:
        """Total number of bytes in the source."""

    @abstractmethod
    def read_range(self, offset: int, length: int) -> bytes:
        """Read exactly ``length`` bytes starting at ``offset``.

        Raises:
            ContentReadError: If fewer than ``length`` bytes are available.
        """


class BytesContentSource(ContentSource):
    """Content held in memory."""

    def __init__(self, data: bytes):
        """Wrap ``data`` as a content source."""
        self._data = bytes(data)

    def size(self) -> int:
        """Total number of bytes in the source."""
        return len(self._data)

    def read_range(self, offset: int, length: int) -> bytes:
        """Read exactly ``length`` bytes starting at ``offset``."""
        if offset < 0 or length < 0 or offset + length > len(self._data):
            raise ContentReadError(
                f"Range {offset}+{length} is outside content of "
                f"{len(self._data)} bytes"
            )
        return self._data[offset : offset + length]


class FileContentSource(ContentSource):
    """Content read from a local file.

    Reads use ``os.pread`` where the platform has it, so workers never share
    a file position. Elsewhere a lock serialises seek and read.
    """

    def __init__(self, path: str | os.PathLike):
        """Open ``path`` for reading.

        Raises:
            FileNotFoundError: If the file does not exist.
        """
        self.path = Path(path)
        self._file: io.BufferedReader = open(self.path, "rb")
        self._size = os.fstat(self._file.fileno()).st_size
        self._lock = threading.Lock()

    def __enter__(self) -> FileContentSource:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        """Close the underlying file."""
        self._file.close()

    def size(self) -> int:
        """Size of the file when it was opened."""
        return self._size

    def read_range(self, offset: int, length: int) -> bytes:
        """Read exactly ``length`` bytes starting at ``offset``."""
        if offset < 0 or length < 0:
            raise ContentReadError(f"Invalid range {offset}+{length}")
        try:
            if hasattr(os, "pread"):
                data = self._pread(offset, length)
            else:
                with self._lock:
                    self._file.seek(offset)
                    data = self._file.read(length)
        except OSError as e:
            raise ContentReadError(f"Failed to read {self.path}: {e}") from e
        if len(data) != length:
            raise ContentReadError(
                f"Short read from {self.path}: wanted {length} bytes at "
                f"{offset}, got {len(data)}"
            )
        return data

    def _pread(self, offset: int, length: int) -> bytes:
        parts: list[bytes] = []
        remaining = length
        fd = self._file.fileno()
        while remaining > 0:
            part = os.pread(fd, remaining, offset + length - remaining)
            if not part:
                break
            parts.append(part)
            remaining -= len(part)
        return b"".join(parts)
