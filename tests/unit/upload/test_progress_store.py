import hashlib
from pathlib import Path

import pytest

from blockput.exceptions import ProgressStoreError
from blockput.models import BlockProgress
from blockput.upload import JsonFileProgressStore, MemoryProgressStore

KEY = "bucket:videos/clip.mp410485760"


def _blocks() -> list[BlockProgress]:
    return [
        BlockProgress(
            context="ctx-9", offset=4194304, rest_size=0, checksum="ab", crc32=7
        ),
        BlockProgress(context="ctx-4", offset=1048576, rest_size=3145728),
        BlockProgress(),
    ]


@pytest.fixture
def store(tmp_path: Path) -> JsonFileProgressStore:
    return JsonFileProgressStore(tmp_path / "progress")


def test_json_store_round_trip(store: JsonFileProgressStore) -> None:
    store.save(KEY, _blocks())

    assert store.load(KEY) == _blocks()


def test_json_store_file_is_named_by_sha1_of_key(
    store: JsonFileProgressStore, tmp_path: Path
) -> None:
    store.save(KEY, _blocks())

    expected = tmp_path / "progress" / f"{hashlib.sha1(KEY.encode()).hexdigest()}.json"
    assert store.path_for(KEY) == expected
    assert expected.is_file()
    assert list((tmp_path / "progress").iterdir()) == [expected]


def test_json_store_missing_record_is_none(store: JsonFileProgressStore) -> None:
    assert store.load(KEY) is None


def test_json_store_empty_file_is_none(store: JsonFileProgressStore) -> None:
    path = store.path_for(KEY)
    path.parent.mkdir(parents=True)
    path.write_bytes(b"")

    assert store.load(KEY) is None


def test_json_store_discards_corrupt_record(store: JsonFileProgressStore) -> None:
    path = store.path_for(KEY)
    path.parent.mkdir(parents=True)
    path.write_text('[{"context": "ctx-1", "offset": "lots"')

    assert store.load(KEY) is None
    assert not path.exists()


def test_json_store_overwrites_and_deletes(store: JsonFileProgressStore) -> None:
    store.save(KEY, _blocks())
    updated = _blocks()
    updated[2] = BlockProgress(context="ctx-11", offset=2097152)
    store.save(KEY, updated)

    assert store.load(KEY) == updated

    store.delete(KEY)
    store.delete(KEY)
    assert store.load(KEY) is None


def test_json_store_save_failure_raises(tmp_path: Path) -> None:
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("")
    store = JsonFileProgressStore(blocker)

    with pytest.raises(ProgressStoreError):
        store.save(KEY, _blocks())


def test_memory_store_returns_copies() -> None:
    store = MemoryProgressStore()
    blocks = _blocks()
    store.save(KEY, blocks)
    blocks[1].offset = 0

    loaded = store.load(KEY)
    assert loaded is not None
    assert loaded[1].offset == 1048576
    loaded[1].offset = 5
    assert store.load(KEY)[1].offset == 1048576
