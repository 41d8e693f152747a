import json
import os
import time

import pytest

from core import snapshot_manager
from core.mandala_engine.reconciliation import reconcile
from core.mandala_engine.repository import MAJOR_NODES_KEY, MandalaRepository
from core.mandala_engine.store import GoalNodeStore
from core.storage import MemoryStorage


@pytest.fixture
def store():
    store = GoalNodeStore()
    reconcile(store)
    store.set_title("major_1", "Health")
    return store


def test_create_and_list(tmp_path, store):
    path = snapshot_manager.create_snapshot(store, tmp_path)

    data = json.loads(path.read_text(encoding="utf-8"))
    assert data["_meta"]["version"] == snapshot_manager.SNAPSHOT_VERSION
    assert data[MAJOR_NODES_KEY][0]["title"] == "Health"

    listed = snapshot_manager.list_snapshots(tmp_path)
    assert [s["filename"] for s in listed] == [path.name]


def test_load_latest_strips_meta(tmp_path, store):
    snapshot_manager.create_snapshot(store, tmp_path)
    store.set_title("major_1", "Wealth")
    snapshot_manager.create_snapshot(store, tmp_path)

    latest = snapshot_manager.load_latest_snapshot(tmp_path)

    assert "_meta" not in latest
    assert latest[MAJOR_NODES_KEY][0]["title"] == "Wealth"


def test_load_latest_without_snapshots(tmp_path):
    assert snapshot_manager.load_latest_snapshot(tmp_path) is None


def test_restore_writes_the_tree_back(tmp_path, store):
    path = snapshot_manager.create_snapshot(store, tmp_path)
    repo = MandalaRepository(MemoryStorage())

    restored = snapshot_manager.restore_from_snapshot(repo, str(path))

    assert restored.majors[0].title == "Health"
    assert repo.load().majors[0].title == "Health"


def test_restore_errors(tmp_path):
    repo = MandalaRepository(MemoryStorage())
    with pytest.raises(FileNotFoundError):
        snapshot_manager.restore_from_snapshot(repo, str(tmp_path / "missing.json"))
    with pytest.raises(FileNotFoundError):
        snapshot_manager.restore_from_snapshot(repo, directory=tmp_path)


def test_cleanup_old_snapshots(tmp_path, store):
    old = snapshot_manager.create_snapshot(store, tmp_path)
    forty_days_ago = time.time() - 40 * 86400
    os.utime(old, (forty_days_ago, forty_days_ago))
    fresh = snapshot_manager.create_snapshot(store, tmp_path)

    assert snapshot_manager.cleanup_old_snapshots(30, tmp_path) == 1
    assert not old.exists()
    assert fresh.exists()
