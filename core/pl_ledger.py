"""
P/L ledger: yearly planned targets and recorded actuals.

Two keys in the same keyed storage as the chart:
- pl_plan: the current yearly target curve
- pl_actual: actual figures entered per year
"""
import json
import math
import numbers
from typing import Any, Dict, List, Optional, Tuple

from core.logger import get_logger, log_corruption
from core.mandala_engine.metrics import ACTUAL_FIELD, TARGET_FIELD, PlPlan, PlYearActual, PlYearTarget
from core.mandala_engine.models import PlMetric
from core.paths import MANDALA_DIR
from core.storage import JsonFileStorage, KeyValueStorage

PL_PLAN_KEY = "pl_plan"
PL_ACTUAL_KEY = "pl_actual"

logger = get_logger("pl_ledger")

# every spelling a caller may use for an actual figure
_ACTUAL_ALIASES: Dict[str, PlMetric] = {}
for _metric in PlMetric:
    _ACTUAL_ALIASES[_metric.value] = _metric
    _ACTUAL_ALIASES[ACTUAL_FIELD[_metric]] = _metric
    _ACTUAL_ALIASES[f"{_metric.value}Actual"] = _metric


def validate_actuals(actuals: Dict[str, Any]) -> Tuple[Dict[PlMetric, float], Dict[str, str]]:
    """
    Split an actuals update into accepted values and rejected fields.

    None means "not supplied" and is skipped. Negative, non-numeric, boolean
    and non-finite values are rejected; the stored value stays as it was.
    """
    clean: Dict[PlMetric, float] = {}
    rejected: Dict[str, str] = {}
    for name, value in (actuals or {}).items():
        metric = _ACTUAL_ALIASES.get(name)
        if metric is None:
            rejected[name] = "unknown metric"
            continue
        if value is None:
            continue
        if isinstance(value, bool) or not isinstance(value, numbers.Real):
            rejected[name] = "not a number"
            continue
        value = float(value)
        if not math.isfinite(value):
            rejected[name] = "not a finite number"
            continue
        if value < 0:
            rejected[name] = "negative"
            continue
        clean[metric] = value
    return clean, rejected


class PlLedger:
    """Keyed-storage backed planned/actual yearly metrics."""

    def __init__(self, storage: Optional[KeyValueStorage] = None):
        self.storage = storage if storage is not None else JsonFileStorage(MANDALA_DIR)

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

    @staticmethod
    def _rows(key: str, data: Any) -> List[Dict[str, Any]]:
        rows = data.get("yearly") if isinstance(data, dict) else None
        if data is not None and not isinstance(rows, list):
            log_corruption(key, json.dumps(data, default=str), "missing 'yearly' list")
            return []
        return [r for r in (rows or []) if isinstance(r, dict) and isinstance(r.get("year"), int)]

    # ------------------------------------------------------------------
    # Plan
    # ------------------------------------------------------------------
    def load_plan(self) -> Optional[PlPlan]:
        data = self._read(PL_PLAN_KEY)
        if data is None:
            return None
        yearly = []
        for row in self._rows(PL_PLAN_KEY, data):
            target = PlYearTarget(year=row["year"])
            for field_name in TARGET_FIELD.values():
                value = row.get(field_name, 0)
                if isinstance(value, numbers.Real) and not isinstance(value, bool):
                    setattr(target, field_name, value)
            yearly.append(target)
        if not yearly:
            return None
        final = data.get("final_net_worth_target", yearly[-1].net_worth_target)
        return PlPlan(yearly=sorted(yearly, key=lambda y: y.year), final_net_worth_target=final)

    def load_planned_yearly_metrics(self) -> List[PlYearTarget]:
        plan = self.load_plan()
        return plan.yearly if plan else []

    def save_plan(self, plan: Optional[PlPlan]) -> None:
        if plan is None:
            self.storage.delete(PL_PLAN_KEY)
            return
        self._write(PL_PLAN_KEY, plan.to_dict())

    # ------------------------------------------------------------------
    # Actuals
    # ------------------------------------------------------------------
    def load_actual_yearly_metrics(self) -> List[PlYearActual]:
        actuals = []
        for row in self._rows(PL_ACTUAL_KEY, self._read(PL_ACTUAL_KEY)):
            actual = PlYearActual(year=row["year"])
            for field_name in ACTUAL_FIELD.values():
                value = row.get(field_name, 0)
                if isinstance(value, numbers.Real) and not isinstance(value, bool):
                    setattr(actual, field_name, value)
            actuals.append(actual)
        return sorted(actuals, key=lambda a: a.year)

    def actual_for_year(self, year: int) -> Optional[PlYearActual]:
        for actual in self.load_actual_yearly_metrics():
            if actual.year == year:
                return actual
        return None

    def record_actuals(self, year: int, values: Dict[PlMetric, float]) -> PlYearActual:
        """Merge validated values into the year's row; other fields keep their values."""
        actuals = self.load_actual_yearly_metrics()
        row = next((a for a in actuals if a.year == year), None)
        if row is None:
            row = PlYearActual(year=year)
            actuals.append(row)
        for metric, value in values.items():
            setattr(row, ACTUAL_FIELD[metric], value)
        actuals.sort(key=lambda a: a.year)
        self._write(PL_ACTUAL_KEY, {"yearly": [a.to_dict() for a in actuals]})
        logger.info(f"Recorded actuals for year {year}: {sorted(m.value for m in values)}")
        return row
