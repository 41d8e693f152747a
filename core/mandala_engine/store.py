"""
GoalNodeStore: in-memory owner of every node in the chart.

Pure data with mutation primitives. Middle collections are keyed by major id,
minor collections by middle id. Collections are materialized lazily the
first time a position inside them is addressed.
"""
from typing import Any, Dict, Iterator, List, Optional

from core.exceptions import NodeNotFoundError
from core.logger import get_logger
from core.mandala_engine.models import (
    CENTER_ID,
    MAJOR_COUNT,
    GoalNode,
    GoalStatus,
    NodeKey,
    PlMetric,
    SubChart,
    Tier,
)

logger = get_logger("store")


class GoalNodeStore:
    """Owns center, majors and the two layers of child collections."""

    def __init__(
        self,
        center: Optional[GoalNode] = None,
        majors: Optional[List[GoalNode]] = None,
        middle_collections: Optional[Dict[str, SubChart]] = None,
        minor_collections: Optional[Dict[str, SubChart]] = None,
        orphans: Optional[Dict[str, Dict[str, Any]]] = None,
        max_title_chars: Optional[int] = None,
    ):
        self.center = center or GoalNode(id=CENTER_ID)
        self.majors: List[GoalNode] = majors or [
            GoalNode.blank(NodeKey.major(i)) for i in range(MAJOR_COUNT)
        ]
        self.middle_collections: Dict[str, SubChart] = middle_collections or {}
        self.minor_collections: Dict[str, SubChart] = minor_collections or {}
        # raw stored collections whose parent id is not part of the chart
        self.orphans: Dict[str, Dict[str, Any]] = orphans or {"middle": {}, "minor": {}}
        self.max_title_chars = max_title_chars

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------
    def _collections_for(self, tier: Tier) -> Dict[str, SubChart]:
        return self.middle_collections if tier == Tier.MAJOR else self.minor_collections

    def _collection(self, parent: GoalNode) -> SubChart:
        """Return the parent's child collection, creating it if absent."""
        collections = self._collections_for(parent.tier)
        chart = collections.get(parent.id)
        if chart is None:
            chart = SubChart.blank(parent)
            collections[parent.id] = chart
            logger.debug(f"Materialized {parent.tier.child_tier.value} collection for {parent.id}")
        return chart

    def _resolve(self, key: NodeKey) -> GoalNode:
        if key.tier == Tier.CENTER:
            return self.center
        if key.tier == Tier.MAJOR:
            return self.majors[key.index]
        parent = self._resolve(key.parent)
        return self._collection(parent).cells[key.index]

    def get_node(self, node_id: str) -> Optional[GoalNode]:
        key = NodeKey.try_parse(node_id)
        if key is None:
            return None
        return self._resolve(key)

    def require_node(self, node_id: str) -> GoalNode:
        node = self.get_node(node_id)
        if node is None:
            raise NodeNotFoundError(node_id)
        return node

    def all_children_of(self, parent_id: str) -> List[GoalNode]:
        """Children in fixed position order; leaves have none."""
        parent = self.require_node(parent_id)
        if parent.tier == Tier.CENTER:
            return list(self.majors)
        if parent.tier == Tier.MINOR:
            return []
        return list(self._collection(parent).cells)

    def existing_children_of(self, parent_id: str) -> List[GoalNode]:
        """Children without materializing a missing collection."""
        parent = self.require_node(parent_id)
        if parent.tier == Tier.CENTER:
            return list(self.majors)
        if parent.tier == Tier.MINOR:
            return []
        chart = self._collections_for(parent.tier).get(parent.id)
        return list(chart.cells) if chart else []

    def parent_of(self, node_id: str) -> Optional[GoalNode]:
        key = NodeKey.parse(node_id)
        parent_key = key.parent_key
        if parent_key is None:
            return None
        return self._resolve(parent_key)

    def middle_nodes(self) -> Iterator[GoalNode]:
        for major in self.majors:
            yield from self.all_children_of(major.id)

    def leaves(self) -> Iterator[GoalNode]:
        for middle in list(self.middle_nodes()):
            yield from self.all_children_of(middle.id)

    def iter_nodes(self) -> Iterator[GoalNode]:
        """Every node of the chart, center first, depth first."""
        yield self.center
        for major in self.majors:
            yield major
            for middle in self.all_children_of(major.id):
                yield middle
                yield from self.all_children_of(middle.id)

    def orphan_collections(self) -> Dict[str, List[str]]:
        """Collection keys whose generating parent is not in the chart."""
        return {tier_name: sorted(raw) for tier_name, raw in self.orphans.items()}

    # ------------------------------------------------------------------
    # Mutation primitives
    # ------------------------------------------------------------------
    def set_title(self, node_id: str, text: str) -> GoalNode:
        node = self.require_node(node_id)
        text = (text or "").replace("\n", "")
        if self.max_title_chars:
            text = text[: self.max_title_chars]
        node.title = text
        return node

    def set_manual_check(self, leaf_id: str, checked: bool) -> GoalNode:
        node = self.require_node(leaf_id)
        if not node.is_leaf:
            raise NodeNotFoundError(leaf_id)
        node.manual_check = bool(checked)
        node.completion_percent = 100 if checked else 0
        node.status = GoalStatus.ACHIEVED if checked else GoalStatus.NOT_STARTED
        return node

    def set_derived(self, node_id: str, percent: int, status: GoalStatus) -> GoalNode:
        node = self.require_node(node_id)
        node.completion_percent = max(0, min(100, int(percent)))
        node.status = status
        return node

    def set_metric_binding(self, node_id: str, metric: Optional[PlMetric]) -> GoalNode:
        node = self.require_node(node_id)
        node.metric_binding = metric
        return node
