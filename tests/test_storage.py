import pytest

from core.storage import JsonFileStorage, MemoryStorage


def test_json_file_storage_round_trip(tmp_path):
    storage = JsonFileStorage(tmp_path / "kv")
    assert storage.get("center_goal") is None
    assert storage.keys() == []

    storage.set("center_goal", '{"title": "x"}')
    storage.set("major_nodes", "[]")

    assert storage.get("center_goal") == '{"title": "x"}'
    assert storage.keys() == ["center_goal", "major_nodes"]
    assert not list((tmp_path / "kv").glob("*.tmp"))

    storage.delete("center_goal")
    storage.delete("center_goal")
    assert storage.keys() == ["major_nodes"]


def test_json_file_storage_rejects_path_like_keys(tmp_path):
    storage = JsonFileStorage(tmp_path)
    with pytest.raises(ValueError):
        storage.set("../escape", "{}")


def test_memory_storage_copies_initial_data():
    initial = {"a": "1"}
    storage = MemoryStorage(initial)
    storage.set("b", "2")
    assert initial == {"a": "1"}
    assert storage.keys() == ["a", "b"]
