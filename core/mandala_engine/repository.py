"""
MandalaRepository: persist the chart under stable logical keys.

Keys (each one a separate payload):
- center_goal: the center node
- major_nodes: ordered list of 8 major nodes
- middle_node_collections: major id -> collection of 8 middle nodes
- minor_leaf_collections: middle id -> collection of 10 leaves
- leaf_checkpoints: leaf id -> values last confirmed by the user

Loading never fails: missing keys give defaults, malformed payloads are
logged and replaced by defaults for that subtree only, short lists are
padded and long ones truncated.
"""
import json
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from core.logger import get_logger, log_corruption
from core.mandala_engine.models import (
    CENTER_ID,
    MAJOR_COUNT,
    GoalNode,
    NodeKey,
    SubChart,
    Tier,
)
from core.mandala_engine.store import GoalNodeStore
from core.paths import MANDALA_DIR
from core.storage import JsonFileStorage, KeyValueStorage

CENTER_GOAL_KEY = "center_goal"
MAJOR_NODES_KEY = "major_nodes"
MIDDLE_COLLECTIONS_KEY = "middle_node_collections"
MINOR_COLLECTIONS_KEY = "minor_leaf_collections"
LEAF_CHECKPOINTS_KEY = "leaf_checkpoints"

TREE_KEYS = (CENTER_GOAL_KEY, MAJOR_NODES_KEY, MIDDLE_COLLECTIONS_KEY, MINOR_COLLECTIONS_KEY)

_NODE_ERRORS = (KeyError, TypeError, ValueError)

logger = get_logger("repository")


class MandalaRepository:
    """Snapshot/persistence gateway between the store and keyed storage."""

    def __init__(self, storage: Optional[KeyValueStorage] = None, max_title_chars: Optional[int] = None):
        self.storage = storage if storage is not None else JsonFileStorage(MANDALA_DIR)
        self.max_title_chars = max_title_chars

    # ------------------------------------------------------------------
    # Raw payload access
    # ------------------------------------------------------------------
    def _read(self, key: str) -> Any:
        raw = self.storage.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            log_corruption(key, raw, f"invalid JSON: {e}")
            return None

    def _write(self, key: str, payload: Any) -> None:
        self.storage.set(key, json.dumps(payload, ensure_ascii=False, indent=2))

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------
    @staticmethod
    def serialize(store: GoalNodeStore) -> Dict[str, Any]:
        middle = {k: c.to_dict() for k, c in store.middle_collections.items()}
        minor = {k: c.to_dict() for k, c in store.minor_collections.items()}
        # orphans go back out untouched
        middle.update(store.orphans.get("middle", {}))
        minor.update(store.orphans.get("minor", {}))
        return {
            CENTER_GOAL_KEY: store.center.to_dict(),
            MAJOR_NODES_KEY: [m.to_dict() for m in store.majors],
            MIDDLE_COLLECTIONS_KEY: middle,
            MINOR_COLLECTIONS_KEY: minor,
        }

    def deserialize(self, payloads: Dict[str, Any]) -> GoalNodeStore:
        center = self._parse_center(payloads.get(CENTER_GOAL_KEY))
        majors = self._parse_cells(
            MAJOR_NODES_KEY, payloads.get(MAJOR_NODES_KEY), NodeKey.center(), MAJOR_COUNT
        )
        middle, middle_orphans = self._parse_collections(
            MIDDLE_COLLECTIONS_KEY, payloads.get(MIDDLE_COLLECTIONS_KEY), Tier.MAJOR
        )
        minor, minor_orphans = self._parse_collections(
            MINOR_COLLECTIONS_KEY, payloads.get(MINOR_COLLECTIONS_KEY), Tier.MIDDLE
        )
        return GoalNodeStore(
            center=center,
            majors=majors,
            middle_collections=middle,
            minor_collections=minor,
            orphans={"middle": middle_orphans, "minor": minor_orphans},
            max_title_chars=self.max_title_chars,
        )

    def _parse_center(self, payload: Any) -> GoalNode:
        if payload is None:
            return GoalNode(id=CENTER_ID)
        if isinstance(payload, str):
            # legacy layout: bare goal text
            return GoalNode(id=CENTER_ID, title=payload)
        try:
            return GoalNode.from_dict(payload, node_id=CENTER_ID)
        except _NODE_ERRORS as e:
            log_corruption(CENTER_GOAL_KEY, json.dumps(payload, ensure_ascii=False, default=str), str(e))
            return GoalNode(id=CENTER_ID)

    def _parse_cells(self, where: str, payload: Any, parent_key: NodeKey, count: int) -> List[GoalNode]:
        if payload is not None and not isinstance(payload, list):
            log_corruption(where, json.dumps(payload, ensure_ascii=False, default=str), "expected a list of cells")
            payload = None
        raw_cells = payload or []
        if len(raw_cells) > count:
            logger.warning(f"{where}: {len(raw_cells)} cells stored, keeping the first {count}")
        if raw_cells and len(raw_cells) < count:
            logger.warning(f"{where}: only {len(raw_cells)} of {count} cells stored, padding with defaults")

        cells: List[GoalNode] = []
        for index in range(count):
            key = parent_key.child(index)
            if index >= len(raw_cells):
                cells.append(GoalNode.blank(key))
                continue
            raw = raw_cells[index]
            stored_id = raw.get("id") if isinstance(raw, dict) else None
            if stored_id is not None and stored_id != key.id:
                logger.warning(f"{where}: cell {index + 1} stored as '{stored_id}', re-keyed to '{key.id}'")
            try:
                cells.append(GoalNode.from_dict(raw, node_id=key.id))
            except _NODE_ERRORS as e:
                log_corruption(f"{where}[{index}]", json.dumps(raw, ensure_ascii=False, default=str), str(e))
                cells.append(GoalNode.blank(key))
        return cells

    def _parse_collections(
        self, where: str, payload: Any, parent_tier: Tier
    ) -> Tuple[Dict[str, SubChart], Dict[str, Any]]:
        if payload is None:
            return {}, {}
        if not isinstance(payload, dict):
            log_corruption(where, json.dumps(payload, ensure_ascii=False, default=str), "expected a mapping")
            return {}, {}

        collections: Dict[str, SubChart] = {}
        orphans: Dict[str, Any] = {}
        for parent_id, raw_chart in payload.items():
            parent_key = NodeKey.try_parse(parent_id)
            if parent_key is None or parent_key.tier != parent_tier:
                logger.warning(f"{where}: collection '{parent_id}' has no parent in the chart, kept as orphan")
                orphans[parent_id] = raw_chart
                continue
            label = f"{where}[{parent_id}]"
            if not isinstance(raw_chart, dict) or not isinstance(raw_chart.get("cells", []), list):
                log_corruption(label, json.dumps(raw_chart, ensure_ascii=False, default=str), "malformed collection")
                # dropped here; reconciliation recreates it empty
                continue
            center_title = raw_chart.get("center_title", raw_chart.get("centerTitle", ""))
            if not isinstance(center_title, str):
                center_title = ""
            collections[parent_id] = SubChart(
                center_id=parent_id,
                center_title=center_title,
                cells=self._parse_cells(label, raw_chart.get("cells"), parent_key, parent_tier.child_count),
            )
        return collections, orphans

    # ------------------------------------------------------------------
    # Load / save
    # ------------------------------------------------------------------
    def load(self) -> GoalNodeStore:
        payloads = {key: self._read(key) for key in TREE_KEYS}
        store = self.deserialize(payloads)
        logger.info(
            f"Loaded chart: {len(store.middle_collections)} middle and "
            f"{len(store.minor_collections)} minor collections"
        )
        return store

    def save(self, store: GoalNodeStore) -> None:
        for key, payload in self.serialize(store).items():
            self._write(key, payload)

    # ------------------------------------------------------------------
    # Leaf checkpoints
    # ------------------------------------------------------------------
    def _checkpoints(self) -> Dict[str, Any]:
        data = self._read(LEAF_CHECKPOINTS_KEY)
        if data is None:
            return {}
        if not isinstance(data, dict):
            log_corruption(LEAF_CHECKPOINTS_KEY, json.dumps(data, default=str), "expected a mapping")
            return {}
        return data

    @staticmethod
    def _checkpoint_values(leaf: GoalNode) -> Dict[str, Any]:
        return {
            "title": leaf.title,
            "manual_check": bool(leaf.manual_check),
            "completion_percent": leaf.completion_percent,
            "status": leaf.status.value,
        }

    def load_leaf_checkpoint(self, leaf_id: str) -> Optional[Dict[str, Any]]:
        entry = self._checkpoints().get(leaf_id)
        return entry if isinstance(entry, dict) else None

    def leaf_differs_from_checkpoint(self, leaf: GoalNode) -> bool:
        saved = self.load_leaf_checkpoint(leaf.id)
        if saved is None:
            return True
        current = self._checkpoint_values(leaf)
        return any(saved.get(k) != v for k, v in current.items())

    def save_leaf_checkpoint(self, leaf: GoalNode) -> Dict[str, Any]:
        """Store only this leaf's current values; other checkpoints are kept."""
        if not leaf.is_leaf:
            raise ValueError(f"{leaf.id} is not a leaf")
        checkpoints = self._checkpoints()
        entry = self._checkpoint_values(leaf)
        entry["saved_at"] = datetime.now().isoformat()
        checkpoints[leaf.id] = entry
        self._write(LEAF_CHECKPOINTS_KEY, checkpoints)
        return entry
