import pytest

from core.exceptions import NodeNotFoundError
from core.mandala_engine.models import GoalStatus, PlMetric, Tier
from core.mandala_engine.reconciliation import reconcile
from core.mandala_engine.store import GoalNodeStore


def test_default_store_has_center_and_eight_majors():
    store = GoalNodeStore()
    assert store.center.id == "center"
    assert [m.id for m in store.majors] == [f"major_{i}" for i in range(1, 9)]
    assert store.middle_collections == {}


def test_addressing_a_child_materializes_its_collection():
    store = GoalNodeStore()
    assert store.existing_children_of("major_2") == []

    node = store.get_node("major_2_middle_4")

    assert node.id == "major_2_middle_4"
    assert "major_2" in store.middle_collections
    assert len(store.existing_children_of("major_2")) == 8


def test_lookup_errors():
    store = GoalNodeStore()
    assert store.get_node("bogus") is None
    with pytest.raises(NodeNotFoundError):
        store.require_node("major_12")


def test_children_and_parents():
    store = GoalNodeStore()
    assert len(store.all_children_of("center")) == 8
    assert len(store.all_children_of("major_1_middle_1")) == 10
    assert store.all_children_of("major_1_middle_1_minor_1") == []
    assert store.parent_of("major_1_middle_1_minor_1").id == "major_1_middle_1"
    assert store.parent_of("major_1").id == "center"
    assert store.parent_of("center") is None


def test_iter_nodes_covers_the_full_chart():
    store = GoalNodeStore()
    reconcile(store)
    nodes = list(store.iter_nodes())
    assert len(nodes) == 1 + 8 + 64 + 640
    assert sum(1 for n in nodes if n.tier == Tier.MINOR) == 640


def test_set_title_strips_newlines_and_truncates():
    store = GoalNodeStore(max_title_chars=22)
    node = store.set_title("major_1", "line one\nline two that keeps going on")
    assert "\n" not in node.title
    assert len(node.title) == 22


def test_set_manual_check_mirrors_percent_and_status():
    store = GoalNodeStore()
    leaf = store.set_manual_check("major_1_middle_1_minor_1", True)
    assert (leaf.completion_percent, leaf.status) == (100, GoalStatus.ACHIEVED)
    leaf = store.set_manual_check("major_1_middle_1_minor_1", False)
    assert (leaf.completion_percent, leaf.status) == (0, GoalStatus.NOT_STARTED)


def test_set_manual_check_rejects_non_leaves():
    store = GoalNodeStore()
    with pytest.raises(NodeNotFoundError):
        store.set_manual_check("major_1_middle_1", True)


def test_set_derived_clamps_and_metric_binding():
    store = GoalNodeStore()
    node = store.set_derived("major_1", 130, GoalStatus.ACHIEVED)
    assert node.completion_percent == 100
    store.set_metric_binding("major_1", PlMetric.REVENUE)
    assert store.require_node("major_1").metric_binding == PlMetric.REVENUE


def test_orphan_collections_lists_raw_keys():
    store = GoalNodeStore(orphans={"middle": {"major_42": {}}, "minor": {}})
    assert store.orphan_collections() == {"middle": ["major_42"], "minor": []}
