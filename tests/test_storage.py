import json

import pytest

from pbm_gui.app.storage import JsonFileStorage, MemoryStorage
from pbm_gui.services.errors import StorageUnavailableError


def test_json_file_storage_round_trip(tmp_path):
    storage = JsonFileStorage(tmp_path)
    assert storage.get("tour_u1_c1") is None
    storage.set("tour_u1_c1", '{"tourEnabled": false}')
    storage.set("tour_u2_c1", "{}")
    again = JsonFileStorage(tmp_path)
    assert again.get("tour_u1_c1") == '{"tourEnabled": false}'
    assert json.loads(storage.path.read_text(encoding="utf-8")).keys() == {"tour_u1_c1", "tour_u2_c1"}
    assert not storage.path.with_suffix(".json.tmp").exists()


def test_json_file_storage_creates_directory(tmp_path):
    storage = JsonFileStorage(tmp_path / "nested" / "dir")
    storage.set("k", "v")
    assert storage.path.exists()


def test_json_file_storage_unreadable_file(tmp_path):
    storage = JsonFileStorage(tmp_path)
    storage.path.write_text("[1, 2]", encoding="utf-8")
    with pytest.raises(StorageUnavailableError):
        storage.get("k")
    storage.path.write_text("{broken", encoding="utf-8")
    with pytest.raises(StorageUnavailableError):
        storage.set("k", "v")


def test_memory_storage_failure_switches():
    storage = MemoryStorage({"a": "1"})
    assert storage.get("a") == "1"
    storage.fail_reads = True
    with pytest.raises(StorageUnavailableError):
        storage.get("a")
    storage.fail_writes = True
    with pytest.raises(StorageUnavailableError):
        storage.set("a", "2")
    assert storage.writes == 0
