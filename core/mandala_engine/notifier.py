"""
Celebration notifier: turn status transitions into one-shot events.

A node celebrates the first time its status becomes achieved. Middle and
major nodes cannot leave achieved, so the previous/current comparison is
enough for them; leaves can be unchecked, so every node also carries a
`celebrated` flag and never celebrates twice.

Every tier that transitions within one pipeline run emits its own event:
checking the last leaf of a middle node yields a minor event and a middle
event (and a major event if that completes the major too).
"""
from collections import deque
from typing import Callable, Deque, Iterable, List, Optional

from core.logger import get_logger
from core.mandala_engine.models import CelebrationEvent, NodeTransition, Tier
from core.mandala_engine.store import GoalNodeStore
from interface.notifiers.base import BaseNotifier, Notification, NotificationPriority

logger = get_logger("notifier")

Listener = Callable[[CelebrationEvent], None]

_HEADLINE = {
    Tier.MAJOR: "Major goal achieved!",
    Tier.MIDDLE: "Middle goal achieved!",
    Tier.MINOR: "Minor goal achieved!",
}


class CelebrationNotifier:
    """Detects achieved transitions and fans the events out."""

    def __init__(
        self,
        sinks: Optional[List[BaseNotifier]] = None,
        queue_limit: int = 50,
    ):
        self.sinks: List[BaseNotifier] = sinks or []
        self._listeners: List[Listener] = []
        self._pending: Deque[CelebrationEvent] = deque(maxlen=queue_limit)

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def inspect(self, store: GoalNodeStore, transitions: Iterable[NodeTransition]) -> List[CelebrationEvent]:
        """Build events for transitions into achieved; marks nodes celebrated."""
        events: List[CelebrationEvent] = []
        for transition in transitions:
            if not transition.became_achieved:
                continue
            node = store.require_node(transition.node_id)
            if node.celebrated:
                continue
            node.celebrated = True
            events.append(CelebrationEvent(goal_title=node.title, tier=node.tier, node_id=node.id))
        return events

    def publish(self, events: Iterable[CelebrationEvent]) -> None:
        for event in events:
            self._pending.append(event)
            for listener in list(self._listeners):
                try:
                    listener(event)
                except Exception as e:
                    logger.error(f"Celebration listener failed for {event.node_id}: {e}", exc_info=True)
            self._deliver(event)

    def _deliver(self, event: CelebrationEvent) -> None:
        notification = Notification(
            title=_HEADLINE.get(event.tier, "Goal achieved!"),
            message=event.goal_title or event.node_id,
            priority=NotificationPriority.for_tier(event.tier.value),
            node_id=event.node_id,
            tier=event.tier.value,
            created_at=event.created_at,
        )
        for sink in self.sinks:
            sink.deliver(notification)

    def drain(self) -> List[CelebrationEvent]:
        """Hand pending events to the caller and forget them."""
        events = list(self._pending)
        self._pending.clear()
        return events

    @property
    def pending(self) -> List[CelebrationEvent]:
        return list(self._pending)
