"""
Mandala Engine models: center / major / middle / minor goal hierarchy.

The chart has a fixed shape: one center goal, 8 major nodes, 8 middle nodes
per major and 10 minor leaves per middle. Node ids are generated from a typed
NodeKey and never assembled by hand.
"""
import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from core.exceptions import MalformedNodeIdError

MAJOR_COUNT = 8
MIDDLE_PER_MAJOR = 8
MINOR_PER_MIDDLE = 10

CENTER_ID = "center"

_NODE_ID_RE = re.compile(r"^major_(\d+)(?:_middle_(\d+)(?:_minor_(\d+))?)?$")


class GoalStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    ACHIEVED = "achieved"


class Tier(str, Enum):
    CENTER = "center"
    MAJOR = "major"
    MIDDLE = "middle"
    MINOR = "minor"

    @property
    def child_tier(self) -> Optional["Tier"]:
        return _CHILD_TIER.get(self)

    @property
    def child_count(self) -> int:
        return _CHILD_COUNT.get(self, 0)


_CHILD_TIER = {Tier.CENTER: Tier.MAJOR, Tier.MAJOR: Tier.MIDDLE, Tier.MIDDLE: Tier.MINOR}
_CHILD_COUNT = {Tier.CENTER: MAJOR_COUNT, Tier.MAJOR: MIDDLE_PER_MAJOR, Tier.MIDDLE: MINOR_PER_MIDDLE}


class PlMetric(str, Enum):
    """Yearly P/L figure a node can be bound to."""
    REVENUE = "revenue"
    GROSS_PROFIT = "grossProfit"
    OPERATING_PROFIT = "operatingProfit"
    NET_WORTH = "netWorth"

    @classmethod
    def from_value(cls, value: Any) -> Optional["PlMetric"]:
        if value is None or value == "":
            return None
        if isinstance(value, PlMetric):
            return value
        try:
            return cls(value)
        except ValueError:
            return None


@dataclass(frozen=True)
class NodeKey:
    """
    Typed composite key (parent, index) for a chart position.

    index is 0-based; the generated id is 1-based, e.g. the third middle
    node under the first major is major_1_middle_3.
    """
    tier: Tier
    index: int = 0
    parent: Optional["NodeKey"] = None

    def __post_init__(self):
        if self.tier == Tier.CENTER:
            if self.parent is not None or self.index != 0:
                raise MalformedNodeIdError(CENTER_ID, "center has no parent or position")
            return
        expected_parent = {
            Tier.MAJOR: Tier.CENTER,
            Tier.MIDDLE: Tier.MAJOR,
            Tier.MINOR: Tier.MIDDLE,
        }[self.tier]
        if expected_parent == Tier.CENTER:
            if self.parent is not None and self.parent.tier != Tier.CENTER:
                raise MalformedNodeIdError(f"{self.tier.value}[{self.index}]", "major nodes hang off the center")
        elif self.parent is None or self.parent.tier != expected_parent:
            raise MalformedNodeIdError(
                f"{self.tier.value}[{self.index}]",
                f"{self.tier.value} nodes need a {expected_parent.value} parent",
            )
        slots = expected_parent.child_count
        if not 0 <= self.index < slots:
            raise MalformedNodeIdError(
                f"{self.tier.value}[{self.index}]", f"position must be within 1..{slots}"
            )

    @classmethod
    def center(cls) -> "NodeKey":
        return cls(Tier.CENTER)

    @classmethod
    def major(cls, index: int) -> "NodeKey":
        return cls(Tier.MAJOR, index)

    def child(self, index: int) -> "NodeKey":
        child_tier = self.tier.child_tier
        if child_tier is None:
            raise MalformedNodeIdError(self.id, "leaves have no children")
        if child_tier == Tier.MAJOR:
            return NodeKey(Tier.MAJOR, index)
        return NodeKey(child_tier, index, self)

    @property
    def parent_key(self) -> Optional["NodeKey"]:
        if self.tier == Tier.MAJOR:
            return NodeKey.center()
        return self.parent

    @property
    def id(self) -> str:
        if self.tier == Tier.CENTER:
            return CENTER_ID
        if self.tier == Tier.MAJOR:
            return f"major_{self.index + 1}"
        return f"{self.parent.id}_{self.tier.value}_{self.index + 1}"

    @classmethod
    def parse(cls, node_id: str) -> "NodeKey":
        if not isinstance(node_id, str):
            raise MalformedNodeIdError(repr(node_id), "not a string")
        if node_id == CENTER_ID:
            return cls.center()
        match = _NODE_ID_RE.match(node_id)
        if not match:
            raise MalformedNodeIdError(node_id)
        major_pos, middle_pos, minor_pos = match.groups()
        key = cls.major(int(major_pos) - 1)
        if middle_pos is not None:
            key = key.child(int(middle_pos) - 1)
        if minor_pos is not None:
            key = key.child(int(minor_pos) - 1)
        return key

    @classmethod
    def try_parse(cls, node_id: Any) -> Optional["NodeKey"]:
        try:
            return cls.parse(node_id)
        except MalformedNodeIdError:
            return None


@dataclass
class GoalNode:
    """
    Single cell of the chart.
    Mutable; the store and the aggregation engine update it in place.
    """
    id: str
    title: str = ""
    completion_percent: int = 0
    status: GoalStatus = GoalStatus.NOT_STARTED
    metric_binding: Optional[PlMetric] = None
    manual_check: Optional[bool] = None  # leaves only
    celebrated: bool = False
    key: NodeKey = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        self.key = NodeKey.parse(self.id)
        if self.key.tier == Tier.MINOR:
            if self.manual_check is None:
                self.manual_check = False
        else:
            self.manual_check = None

    @property
    def tier(self) -> Tier:
        return self.key.tier

    @property
    def is_leaf(self) -> bool:
        return self.key.tier == Tier.MINOR

    @property
    def is_achieved(self) -> bool:
        return self.status == GoalStatus.ACHIEVED

    @classmethod
    def blank(cls, key: NodeKey, metric_binding: Optional[PlMetric] = None) -> "GoalNode":
        return cls(id=key.id, metric_binding=metric_binding)

    def to_dict(self) -> Dict[str, Any]:
        d = {
            "id": self.id,
            "title": self.title,
            "completion_percent": self.completion_percent,
            "status": self.status.value,
            "metric_binding": self.metric_binding.value if self.metric_binding else None,
            "celebrated": self.celebrated,
        }
        if self.is_leaf:
            d["manual_check"] = bool(self.manual_check)
        return d

    @classmethod
    def from_dict(cls, d: Dict[str, Any], node_id: Optional[str] = None) -> "GoalNode":
        """
        Build a node from a stored dict.

        Accepts the legacy camelCase layout (achievement / isChecked / plMetric)
        alongside the canonical one. node_id overrides the stored id.
        """
        if not isinstance(d, dict):
            raise TypeError(f"expected a mapping, got {type(d).__name__}")
        percent = d.get("completion_percent", d.get("achievement", 0))
        if isinstance(percent, bool) or not isinstance(percent, (int, float)):
            raise TypeError(f"completion_percent must be numeric, got {percent!r}")
        title = d.get("title") or ""
        if not isinstance(title, str):
            raise TypeError(f"title must be a string, got {title!r}")
        check = d.get("manual_check", d.get("isChecked"))
        return cls(
            id=node_id or d["id"],
            title=title,
            completion_percent=max(0, min(100, int(percent))),
            status=GoalStatus(d.get("status", GoalStatus.NOT_STARTED.value)),
            metric_binding=PlMetric.from_value(d.get("metric_binding", d.get("plMetric"))),
            manual_check=bool(check) if check is not None else None,
            celebrated=bool(d.get("celebrated", False)),
        )


@dataclass
class SubChart:
    """
    Child collection generated by one parent cell.

    center_title mirrors the generating parent's title; reconciliation keeps
    it current, aggregation never reads it.
    """
    center_id: str
    center_title: str
    cells: List[GoalNode] = field(default_factory=list)

    @classmethod
    def blank(cls, parent: GoalNode) -> "SubChart":
        count = parent.tier.child_count
        # new leaves inherit the middle's binding
        inherited = parent.metric_binding if parent.tier == Tier.MIDDLE else None
        return cls(
            center_id=parent.id,
            center_title=parent.title,
            cells=[GoalNode.blank(parent.key.child(i), inherited) for i in range(count)],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "center_id": self.center_id,
            "center_title": self.center_title,
            "cells": [c.to_dict() for c in self.cells],
        }


@dataclass
class NodeTransition:
    """Status change observed while recomputing one node."""
    node_id: str
    tier: Tier
    title: str
    previous: GoalStatus
    current: GoalStatus

    @property
    def became_achieved(self) -> bool:
        return self.previous != GoalStatus.ACHIEVED and self.current == GoalStatus.ACHIEVED


@dataclass
class CelebrationEvent:
    """One-shot notification for a node reaching Achieved."""
    goal_title: str
    tier: Tier
    node_id: str
    created_at: Optional[str] = None

    def __post_init__(self):
        if self.created_at is None:
            self.created_at = datetime.now().isoformat()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "goal_title": self.goal_title,
            "tier": self.tier.value,
            "node_id": self.node_id,
            "created_at": self.created_at,
        }
