import math

import core.pl_ledger as pl_ledger
from core.mandala_engine.metrics import PlPlan, PlYearTarget
from core.mandala_engine.models import PlMetric
from core.pl_ledger import PL_ACTUAL_KEY, PlLedger, validate_actuals
from core.storage import MemoryStorage


def test_validate_actuals_accepts_aliases_and_rejects_bad_values():
    clean, rejected = validate_actuals({
        "revenue": 100,
        "revenue_actual": None,
        "gross_profit_actual": -1,
        "operatingProfitActual": "12",
        "netWorthActual": math.nan,
        "ebitda": 5,
    })
    assert clean == {PlMetric.REVENUE: 100.0}
    assert rejected == {
        "gross_profit_actual": "negative",
        "operatingProfitActual": "not a number",
        "netWorthActual": "not a finite number",
        "ebitda": "unknown metric",
    }


def test_validate_actuals_rejects_booleans():
    clean, rejected = validate_actuals({"revenue_actual": True})
    assert clean == {}
    assert "revenue_actual" in rejected


def test_record_actuals_merges_per_year():
    ledger = PlLedger(MemoryStorage())
    ledger.record_actuals(2, {PlMetric.REVENUE: 100.0})
    ledger.record_actuals(2, {PlMetric.GROSS_PROFIT: 40.0})
    ledger.record_actuals(1, {PlMetric.REVENUE: 10.0})

    rows = ledger.load_actual_yearly_metrics()

    assert [r.year for r in rows] == [1, 2]
    assert ledger.actual_for_year(2).revenue_actual == 100.0
    assert ledger.actual_for_year(2).gross_profit_actual == 40.0
    assert ledger.actual_for_year(3) is None


def test_plan_round_trip_and_delete():
    ledger = PlLedger(MemoryStorage())
    plan = PlPlan(yearly=[PlYearTarget(year=1, revenue_target=5), PlYearTarget(year=2, revenue_target=10)])

    ledger.save_plan(plan)
    assert ledger.load_plan() == plan
    assert [y.year for y in ledger.load_planned_yearly_metrics()] == [1, 2]

    ledger.save_plan(None)
    assert ledger.load_plan() is None
    assert ledger.load_planned_yearly_metrics() == []


def test_corrupted_actuals_read_as_empty(monkeypatch):
    logged = []
    monkeypatch.setattr(pl_ledger, "log_corruption", lambda key, raw, msg: logged.append(key))
    ledger = PlLedger(MemoryStorage({PL_ACTUAL_KEY: "[oops"}))

    assert ledger.load_actual_yearly_metrics() == []
    assert logged == [PL_ACTUAL_KEY]
