"""
Base Notifier for Mandala Planner.

A celebration leaves the engine as a Notification and is handed to every
configured sink (log, webhook).
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from core.logger import get_logger

logger = get_logger("notifiers")


class NotificationPriority(Enum):
    """Notification priority levels."""
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"

    @classmethod
    def for_tier(cls, tier: Optional[str]) -> "NotificationPriority":
        return {"major": cls.HIGH, "middle": cls.NORMAL, "minor": cls.LOW}.get(tier, cls.NORMAL)


@dataclass
class Notification:
    """One celebration on its way to a sink."""
    title: str
    message: str
    priority: NotificationPriority = NotificationPriority.NORMAL
    node_id: Optional[str] = None
    tier: Optional[str] = None
    created_at: Optional[str] = None

    def __post_init__(self):
        if self.created_at is None:
            self.created_at = datetime.now().isoformat()

    def to_payload(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "message": self.message,
            "priority": self.priority.value,
            "node_id": self.node_id,
            "tier": self.tier,
            "timestamp": self.created_at,
        }


class BaseNotifier(ABC):
    """Base class for all notifiers."""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.config = config or {}
        self.enabled = self.config.get("enabled", True)

    @abstractmethod
    def send(self, notification: Notification) -> bool:
        """
        Send a notification.

        Returns:
            True if sent successfully, False otherwise.
        """
        pass

    @abstractmethod
    def get_name(self) -> str:
        pass

    def is_available(self) -> bool:
        return self.enabled

    def deliver(self, notification: Notification) -> bool:
        """send() for the pipeline: never raises, failures are logged."""
        if not self.is_available():
            return False
        try:
            sent = self.send(notification)
        except Exception as e:
            logger.error(f"Notifier '{self.get_name()}' raised for {notification.node_id}: {e}", exc_info=True)
            return False
        if not sent:
            logger.warning(f"Notifier '{self.get_name()}' did not deliver {notification.node_id}")
        return sent
