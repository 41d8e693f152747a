"""
Reconciliation: keep child collections aligned with their parent cells.

For every major there is exactly one middle collection and for every middle
node exactly one minor collection. Existing collections only get their
center_title mirror refreshed; cells are never rewritten or dropped.
Collections whose parent is gone are orphans: kept, logged, skipped.
"""
from dataclasses import dataclass, field
from typing import Dict, List

from core.logger import get_logger
from core.mandala_engine.models import GoalNode, SubChart
from core.mandala_engine.store import GoalNodeStore

logger = get_logger("reconciliation")


@dataclass
class ReconcileReport:
    created: List[str] = field(default_factory=list)
    retitled: List[str] = field(default_factory=list)
    orphans: Dict[str, List[str]] = field(default_factory=dict)

    @property
    def changed(self) -> bool:
        return bool(self.created or self.retitled)


def _sync_collection(
    collections: Dict[str, SubChart], parent: GoalNode, report: ReconcileReport
) -> SubChart:
    chart = collections.get(parent.id)
    if chart is None:
        chart = SubChart.blank(parent)
        collections[parent.id] = chart
        report.created.append(parent.id)
    elif chart.center_title != parent.title:
        chart.center_title = parent.title
        report.retitled.append(parent.id)
    return chart


def reconcile(store: GoalNodeStore) -> ReconcileReport:
    report = ReconcileReport()
    for major in store.majors:
        middle_chart = _sync_collection(store.middle_collections, major, report)
        for middle in middle_chart.cells:
            _sync_collection(store.minor_collections, middle, report)

    report.orphans = {k: v for k, v in store.orphan_collections().items() if v}
    for tier_name, keys in report.orphans.items():
        logger.warning(f"Orphan {tier_name} collections left untouched: {', '.join(keys)}")

    if report.changed:
        logger.info(
            f"Reconciled collections: {len(report.created)} created, {len(report.retitled)} retitled"
        )
    return report
