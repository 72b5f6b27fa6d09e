import zlib
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import pytest

from blockput.exceptions import ContentReadError
from blockput.upload import BytesContentSource, FileContentSource
from blockput.upload.checksums import Crc32


def test_bytes_source_reads_ranges() -> None:
    source = BytesContentSource(b"0123456789")

    assert source.size() == 10
    assert source.read_range(2, 3) == b"234"
    assert source.read_range(10, 0) == b""


@pytest.mark.parametrize("offset, length", [(8, 3), (-1, 2), (0, -1)])
def test_bytes_source_rejects_out_of_range(offset: int, length: int) -> None:
    with pytest.raises(ContentReadError):
        BytesContentSource(b"0123456789").read_range(offset, length)


def test_file_source_concurrent_reads(tmp_path: Path) -> None:
    data = bytes(range(256)) * 1024
    path = tmp_path / "payload.bin"
    path.write_bytes(data)
    ranges = [(offset, 4096) for offset in range(0, len(data), 4096)]

    with FileContentSource(path) as source:
        assert source.size() == len(data)
        with ThreadPoolExecutor(max_workers=8) as executor:
            parts = list(executor.map(lambda r: source.read_range(*r), ranges))

    assert b"".join(parts) == data


def test_file_source_short_read_raises(tmp_path: Path) -> None:
    path = tmp_path / "payload.bin"
    path.write_bytes(b"abc")

    with FileContentSource(path) as source:
        with pytest.raises(ContentReadError):
            source.read_range(1, 5)


def test_crc32_incremental_matches_whole() -> None:
    data = b"resumable block upload" * 100
    crc = Crc32()
    crc.update(data[:7])
    crc.update(data[7:])

    assert crc.value == zlib.crc32(data) & 0xFFFFFFFF
    assert Crc32().value == 0
