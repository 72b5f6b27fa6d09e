"""CRC32 helpers matching the checksum the upload service reports."""

import zlib


class Crc32:
    """Streaming CRC32 (IEEE polynomial) accumulator."""

    def __init__(self) -> None:
        """Start a fresh checksum."""
        self._value = 0

    def update(self, data: bytes) -> None:
        """Feed ``data`` into the checksum."""
        self._value = zlib.crc32(data, self._value)

    @property
    def value(self) -> int:
        """Unsigned 32-bit checksum of the data fed so far."""
        return self._value & 0xFFFFFFFF
