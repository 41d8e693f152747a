"""
Mandala Planner exception hierarchy.

- MandalaError: base for every known error
- ConfigError: runtime configuration problems
- StateError: stored data that cannot be used
- NodeNotFoundError: an id that does not address a goal node
- MalformedNodeIdError: an id string that is not a valid node key
- LockedNodeError: a write refused because the node is driven elsewhere

Recoverable conditions (malformed subtrees, orphan collections, invalid
metric values) are logged and degraded, never raised past the engine.
"""
from typing import Optional


class MandalaError(Exception):
    """Base class for all known Mandala Planner errors.

    Catching this handles every expected failure.
    """

    def __init__(self, message: str, hint: Optional[str] = None):
        """
        Args:
            message: error description
            hint: suggested action for the user
        """
        super().__init__(message)
        self.message = message
        self.hint = hint

    def get_user_message(self) -> str:
        """Return a user-facing message."""
        if self.hint:
            return f"{self.message}\n💡 Hint: {self.hint}"
        return self.message


class ConfigError(MandalaError):
    """Configuration file missing, malformed or holding illegal values."""

    def __init__(self, message: str, config_path: Optional[str] = None):
        hint = f"Check the config file: {config_path}" if config_path else "Check the config file format"
        super().__init__(message, hint)
        self.config_path = config_path


class StateError(MandalaError):
    """Stored tree data that cannot be parsed or validated."""

    def __init__(self, message: str, corrupted_data: Optional[str] = None):
        hint = "Stored data may be corrupted, see logs/corruption_dump.log"
        super().__init__(message, hint)
        self.corrupted_data = corrupted_data


class MalformedNodeIdError(MandalaError, ValueError):
    """A node id string that does not parse into a node key."""

    def __init__(self, node_id: str, reason: str = ""):
        message = f"Malformed node id: {node_id!r}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message, hint="Ids look like major_1, major_1_middle_3, major_1_middle_3_minor_10")
        self.node_id = node_id


class NodeNotFoundError(MandalaError, KeyError):
    """No goal node exists for this id."""

    def __init__(self, node_id: str):
        super().__init__(f"Goal node not found: {node_id}")
        self.node_id = node_id

    def __str__(self) -> str:
        return self.message


class LockedNodeError(MandalaError):
    """Write refused: the node's state is driven by the metric feed."""

    def __init__(self, node_id: str, metric: Optional[str] = None):
        message = f"Goal node {node_id} cannot be checked manually"
        hint = f"It follows the '{metric}' actuals" if metric else None
        super().__init__(message, hint)
        self.node_id = node_id
        self.metric = metric
