"""
Aggregation: derive middle and major completion from the leaves upward.

Rules:
- leaf: 100 when checked, else 0
- middle: round(100 * checked / 10); missing leaves count as unchecked
- major: rounded average of its middle children; empty set gives 0
- status: 0 -> not_started, 1..99 -> in_progress, 100 -> achieved,
  and never leaves achieved once reached (lock-on-achieve)
- metric-bound nodes: untouched once achieved; otherwise their percent is
  refreshed and their status left to the metric feed

"round" is half-up on the exact value, so 2.5 -> 3.
"""
from decimal import ROUND_HALF_UP, Decimal
from typing import List, Optional, Sequence

from core.logger import get_logger
from core.mandala_engine.models import (
    MINOR_PER_MIDDLE,
    GoalNode,
    GoalStatus,
    NodeTransition,
    Tier,
)
from core.mandala_engine.store import GoalNodeStore

logger = get_logger("aggregation")


def round_half_up(numerator: int, denominator: int = 1) -> int:
    if denominator == 0:
        return 0
    value = Decimal(numerator) / Decimal(denominator)
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def status_for_percent(percent: int) -> GoalStatus:
    if percent >= 100:
        return GoalStatus.ACHIEVED
    if percent > 0:
        return GoalStatus.IN_PROGRESS
    return GoalStatus.NOT_STARTED


def locked_status(previous: GoalStatus, percent: int) -> GoalStatus:
    if previous == GoalStatus.ACHIEVED:
        return GoalStatus.ACHIEVED
    return status_for_percent(percent)


def middle_percent(leaves: Sequence[GoalNode], slots: int = MINOR_PER_MIDDLE) -> int:
    checked = sum(1 for leaf in leaves[:slots] if leaf.manual_check)
    return round_half_up(100 * checked, slots)


def average_percent(children: Sequence[GoalNode]) -> int:
    if not children:
        return 0
    return round_half_up(sum(c.completion_percent for c in children), len(children))


def _apply(store: GoalNodeStore, node: GoalNode, percent: int) -> Optional[NodeTransition]:
    """Write percent/status under the metric-binding and lock rules."""
    previous = node.status
    if node.metric_binding is not None:
        if previous == GoalStatus.ACHIEVED:
            return None
        store.set_derived(node.id, percent, previous)
        return None
    store.set_derived(node.id, percent, locked_status(previous, percent))
    if node.status != previous:
        return NodeTransition(node.id, node.tier, node.title, previous, node.status)
    return None


def recompute_middle(store: GoalNodeStore, middle_id: str) -> List[NodeTransition]:
    node = store.require_node(middle_id)
    if node.tier != Tier.MIDDLE:
        raise ValueError(f"{middle_id} is not a middle node")
    # a missing minor collection counts as zero checked
    leaves = store.existing_children_of(middle_id)
    transition = _apply(store, node, middle_percent(leaves))
    return [transition] if transition else []


def recompute_major(store: GoalNodeStore, major_id: str) -> List[NodeTransition]:
    node = store.require_node(major_id)
    if node.tier != Tier.MAJOR:
        raise ValueError(f"{major_id} is not a major node")
    children = store.existing_children_of(major_id)
    transition = _apply(store, node, average_percent(children))
    return [transition] if transition else []


def recompute_from_middle(store: GoalNodeStore, middle_id: str) -> List[NodeTransition]:
    """Recompute a middle node and the major that owns it."""
    transitions = recompute_middle(store, middle_id)
    major = store.parent_of(middle_id)
    transitions.extend(recompute_major(store, major.id))
    return transitions


def recompute_from_leaf(store: GoalNodeStore, leaf_id: str) -> List[NodeTransition]:
    middle = store.parent_of(leaf_id)
    if middle is None or middle.tier != Tier.MIDDLE:
        raise ValueError(f"{leaf_id} is not a leaf")
    return recompute_from_middle(store, middle.id)


def recompute_all(store: GoalNodeStore) -> List[NodeTransition]:
    """
    Full bottom-up pass over every middle and major node.

    Orphan collections are not reachable from a major and are skipped.
    Running it twice on an unchanged tree changes nothing.
    """
    orphans = store.orphan_collections()
    for tier_name, keys in orphans.items():
        for key in keys:
            logger.warning(f"Skipping orphan {tier_name} collection '{key}' during aggregation")

    transitions: List[NodeTransition] = []
    for major in store.majors:
        for middle in store.existing_children_of(major.id):
            transitions.extend(recompute_middle(store, middle.id))
        transitions.extend(recompute_major(store, major.id))
    return transitions
