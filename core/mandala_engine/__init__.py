# Mandala Engine: three-tier goal chart (center / major / middle / minor leaves)
# with upward aggregation, collection reconciliation and one-shot celebrations.
# The engine itself lives in core.mandala_engine.engine (it pulls in the ledger and notifiers).

from core.mandala_engine.models import (
    CelebrationEvent,
    GoalNode,
    GoalStatus,
    NodeKey,
    PlMetric,
    Tier,
)
from core.mandala_engine.store import GoalNodeStore

__all__ = [
    "CelebrationEvent",
    "GoalNode",
    "GoalNodeStore",
    "GoalStatus",
    "NodeKey",
    "PlMetric",
    "Tier",
]
