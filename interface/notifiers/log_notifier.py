"""
Log Notifier for Mandala Planner.

Writes celebrations to the application log; always available.
"""
from core.logger import get_logger
from interface.notifiers.base import BaseNotifier, Notification

logger = get_logger("notifiers.log")


class LogNotifier(BaseNotifier):
    """Record notifications in the system log."""

    def send(self, notification: Notification) -> bool:
        if not self.enabled:
            return False
        logger.info(f"🎉 {notification.title}: {notification.message}")
        return True

    def get_name(self) -> str:
        return "log"
