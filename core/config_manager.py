"""
Configuration Manager for Mandala Planner.

Central place for tunable constants. Every empirical value is declared here
and can be overridden from config/runtime.yaml.

Usage:
    from core.config_manager import config
    limit = config.MAX_TITLE_CHARS
"""
from dataclasses import dataclass
from pathlib import Path

import yaml

from core.exceptions import ConfigError
from core.logger import get_logger

CONFIG_DIR = Path(__file__).parent.parent / "config"
RUNTIME_CONFIG_PATH = CONFIG_DIR / "runtime.yaml"

logger = get_logger("config")


@dataclass
class SystemConfig:
    """
    Runtime tunables.

    The chart's branching (8 majors, 8 middles per major, 10 leaves per
    middle) is structural and lives in core.mandala_engine.models, not here.
    """

    # === Titles ===

    # Longest title kept for any cell; the chart cell shows at most this much.
    MAX_TITLE_CHARS: int = 22

    # === Metric feed ===

    # actual / target ratio at which a metric-bound node counts as achieved
    ACHIEVED_THRESHOLD: float = 1.0

    # Planning horizon in years; titles carry "N年目" / "year N" within it.
    PLAN_YEARS: int = 10

    # Year assumed for an amount with no year in its title.
    DEFAULT_ANCHOR_YEAR: int = 10

    # Interpolated yearly targets are rounded to this unit (10,000 yen).
    PLAN_ROUNDING_UNIT: int = 10000

    # === Celebrations ===

    # Pending celebration events kept for the presentation layer to drain.
    CELEBRATION_QUEUE_LIMIT: int = 50

    # Optional webhook sink; empty disables it.
    WEBHOOK_URL: str = ""
    WEBHOOK_TYPE: str = "generic"  # generic | slack | discord

    # === Snapshots ===

    SNAPSHOT_RETENTION_DAYS: int = 30

    def validate(self) -> None:
        if self.MAX_TITLE_CHARS <= 0:
            raise ConfigError("MAX_TITLE_CHARS must be positive", str(RUNTIME_CONFIG_PATH))
        if self.ACHIEVED_THRESHOLD <= 0:
            raise ConfigError("ACHIEVED_THRESHOLD must be positive", str(RUNTIME_CONFIG_PATH))
        if not 1 <= self.DEFAULT_ANCHOR_YEAR <= self.PLAN_YEARS:
            raise ConfigError("DEFAULT_ANCHOR_YEAR must fall inside PLAN_YEARS", str(RUNTIME_CONFIG_PATH))


def _load_runtime_config() -> dict:
    """Load runtime overrides if present."""
    if not RUNTIME_CONFIG_PATH.exists():
        return {}

    try:
        with open(RUNTIME_CONFIG_PATH, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (yaml.YAMLError, OSError) as e:
        logger.warning(f"Ignoring unreadable {RUNTIME_CONFIG_PATH}: {e}")
        return {}
    if not isinstance(data, dict):
        logger.warning(f"Ignoring {RUNTIME_CONFIG_PATH}: top level is not a mapping")
        return {}
    return data


def get_config() -> SystemConfig:
    """
    Build the config instance.

    Priority: runtime.yaml > defaults
    """
    base = SystemConfig()
    overrides = _load_runtime_config()

    for key, value in overrides.items():
        if hasattr(base, key):
            setattr(base, key, value)
        else:
            logger.warning(f"Unknown config key in runtime.yaml: {key}")

    base.validate()
    return base


# module-wide instance
config = get_config()
