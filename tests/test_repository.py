import json

import pytest

import core.mandala_engine.repository as repository_module
from core.mandala_engine.models import GoalStatus, PlMetric
from core.mandala_engine.reconciliation import reconcile
from core.mandala_engine.repository import (
    CENTER_GOAL_KEY,
    MAJOR_NODES_KEY,
    MIDDLE_COLLECTIONS_KEY,
    MINOR_COLLECTIONS_KEY,
    MandalaRepository,
)
from core.mandala_engine.store import GoalNodeStore
from core.storage import MemoryStorage


@pytest.fixture
def corruption(monkeypatch):
    logged = []
    monkeypatch.setattr(repository_module, "log_corruption", lambda key, raw, msg: logged.append(key))
    return logged


def _full_store():
    store = GoalNodeStore()
    reconcile(store)
    store.set_title("center", "Live well")
    store.set_title("major_2", "売上1億")
    store.set_metric_binding("major_2", PlMetric.REVENUE)
    store.set_manual_check("major_2_middle_3_minor_4", True)
    store.set_derived("major_2_middle_3", 10, GoalStatus.IN_PROGRESS)
    return store


def test_save_then_load_reproduces_the_tree():
    storage = MemoryStorage()
    repo = MandalaRepository(storage)
    store = _full_store()

    repo.save(store)
    loaded = repo.load()

    assert [n.to_dict() for n in loaded.iter_nodes()] == [n.to_dict() for n in store.iter_nodes()]
    assert sorted(storage.keys()) == sorted(
        [CENTER_GOAL_KEY, MAJOR_NODES_KEY, MIDDLE_COLLECTIONS_KEY, MINOR_COLLECTIONS_KEY]
    )


def test_missing_keys_give_defaults():
    store = MandalaRepository(MemoryStorage()).load()
    assert store.center.title == ""
    assert len(store.majors) == 8
    assert store.middle_collections == {}


def test_legacy_center_string():
    storage = MemoryStorage({CENTER_GOAL_KEY: json.dumps("Be kind")})
    assert MandalaRepository(storage).load().center.title == "Be kind"


def test_malformed_key_only_resets_that_key(corruption):
    repo = MandalaRepository(MemoryStorage())
    repo.save(_full_store())
    repo.storage.set(MAJOR_NODES_KEY, "{not json")

    store = repo.load()

    assert corruption == [MAJOR_NODES_KEY]
    assert store.center.title == "Live well"
    assert all(m.title == "" for m in store.majors)
    assert store.require_node("major_2_middle_3_minor_4").manual_check is True


def test_partial_and_overlong_lists():
    majors = [{"id": "major_1", "title": "one"}, {"id": "major_2", "title": "two"}]
    repo = MandalaRepository(MemoryStorage({MAJOR_NODES_KEY: json.dumps(majors)}))
    store = repo.load()
    assert [m.title for m in store.majors[:3]] == ["one", "two", ""]
    assert len(store.majors) == 8

    many = [{"id": f"major_{i}", "title": str(i)} for i in range(1, 11)]
    repo = MandalaRepository(MemoryStorage({MAJOR_NODES_KEY: json.dumps(many)}))
    assert [m.title for m in repo.load().majors] == [str(i) for i in range(1, 9)]


def test_mismatched_cell_id_is_rekeyed():
    majors = [{"id": "major_5", "title": "first"}]
    store = MandalaRepository(MemoryStorage({MAJOR_NODES_KEY: json.dumps(majors)})).load()
    assert store.majors[0].id == "major_1"
    assert store.majors[0].title == "first"


def test_bad_cell_falls_back_to_blank(corruption):
    majors = [{"id": "major_1", "completion_percent": "lots"}, {"id": "major_2", "title": "ok"}]
    store = MandalaRepository(MemoryStorage({MAJOR_NODES_KEY: json.dumps(majors)})).load()
    assert store.majors[0].completion_percent == 0
    assert store.majors[1].title == "ok"
    assert corruption == [f"{MAJOR_NODES_KEY}[0]"]


def test_one_bad_collection_does_not_poison_the_map(corruption):
    payload = {
        "major_1": "garbage",
        "major_2": {"center_id": "major_2", "center_title": "x", "cells": [{"id": "major_2_middle_1", "title": "kept"}]},
    }
    store = MandalaRepository(MemoryStorage({MIDDLE_COLLECTIONS_KEY: json.dumps(payload)})).load()

    assert "major_1" not in store.middle_collections
    assert store.require_node("major_2_middle_1").title == "kept"
    assert len(store.middle_collections["major_2"].cells) == 8
    assert corruption == [f"{MIDDLE_COLLECTIONS_KEY}[major_1]"]


def test_orphan_collections_survive_a_round_trip():
    orphan = {"center_id": "major_42", "center_title": "old", "cells": []}
    storage = MemoryStorage({MIDDLE_COLLECTIONS_KEY: json.dumps({"major_42": orphan})})
    repo = MandalaRepository(storage)

    store = repo.load()
    assert store.orphan_collections()["middle"] == ["major_42"]
    repo.save(store)

    assert json.loads(storage.get(MIDDLE_COLLECTIONS_KEY))["major_42"] == orphan


def test_collection_under_wrong_tier_is_an_orphan():
    payload = {"major_1": {"center_id": "major_1", "center_title": "", "cells": []}}
    store = MandalaRepository(MemoryStorage({MINOR_COLLECTIONS_KEY: json.dumps(payload)})).load()
    assert store.orphan_collections()["minor"] == ["major_1"]


def test_leaf_checkpoints():
    repo = MandalaRepository(MemoryStorage())
    store = GoalNodeStore()
    leaf = store.require_node("major_1_middle_1_minor_1")
    other = store.require_node("major_1_middle_1_minor_2")

    assert repo.leaf_differs_from_checkpoint(leaf)
    repo.save_leaf_checkpoint(other)
    entry = repo.save_leaf_checkpoint(leaf)
    assert "saved_at" in entry
    assert not repo.leaf_differs_from_checkpoint(leaf)

    store.set_manual_check(leaf.id, True)
    assert repo.leaf_differs_from_checkpoint(leaf)
    assert repo.load_leaf_checkpoint(other.id)["manual_check"] is False


def test_checkpoint_rejects_non_leaves():
    with pytest.raises(ValueError):
        MandalaRepository(MemoryStorage()).save_leaf_checkpoint(GoalNodeStore().majors[0])
