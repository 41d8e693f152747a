"""
MandalaEngine: single owner of the chart.

Every write runs the same pipeline:
    mutate -> aggregate -> reconcile -> notify -> persist

Reconciliation only runs for structural edits (center, major and middle
titles), on load and on restore; leaf toggles and metric updates skip it.

The engine is synchronous and the only writer; the presentation layers
(HTTP, CLI) call into it and read back snapshots and celebration events.
"""
import math
import numbers
from pathlib import Path
from typing import Any, Dict, List, Optional

from core.config_manager import SystemConfig, config as default_config
from core.exceptions import LockedNodeError, NodeNotFoundError
from core.logger import get_logger
from core.mandala_engine.aggregation import (
    recompute_all,
    recompute_from_leaf,
    recompute_from_middle,
    recompute_major,
    middle_percent,
    status_for_percent,
)
from core.mandala_engine.metrics import (
    PlPlan,
    derive_plan,
    detect_metric_from_title,
    extract_year_index,
    percent_for_rate,
    resolve_metric,
    status_for_rate,
)
from core.mandala_engine.models import (
    CelebrationEvent,
    GoalNode,
    GoalStatus,
    NodeTransition,
    PlMetric,
    Tier,
)
from core.mandala_engine.notifier import CelebrationNotifier
from core.mandala_engine.reconciliation import reconcile
from core.mandala_engine.repository import MandalaRepository
from core.pl_ledger import PlLedger, validate_actuals
from core.snapshot_manager import cleanup_old_snapshots, create_snapshot, restore_from_snapshot
from interface.notifiers.base import BaseNotifier
from interface.notifiers.log_notifier import LogNotifier
from interface.notifiers.webhook_notifier import WebhookNotifier

logger = get_logger("engine")


def build_default_sinks(settings: SystemConfig) -> List[BaseNotifier]:
    sinks: List[BaseNotifier] = [LogNotifier()]
    if settings.WEBHOOK_URL:
        sinks.append(WebhookNotifier({"webhook_url": settings.WEBHOOK_URL, "type": settings.WEBHOOK_TYPE}))
    return sinks


class MandalaEngine:
    """Owns the store and runs every mutation through the pipeline."""

    def __init__(
        self,
        repository: Optional[MandalaRepository] = None,
        ledger: Optional[PlLedger] = None,
        notifier: Optional[CelebrationNotifier] = None,
        settings: Optional[SystemConfig] = None,
        snapshot_dir: Optional[Path] = None,
    ):
        self.config = settings or default_config
        self.snapshot_dir = snapshot_dir
        self.repository = repository or MandalaRepository(max_title_chars=self.config.MAX_TITLE_CHARS)
        self.ledger = ledger or PlLedger(self.repository.storage)
        self.notifier = notifier or CelebrationNotifier(
            sinks=build_default_sinks(self.config),
            queue_limit=self.config.CELEBRATION_QUEUE_LIMIT,
        )
        self.store = self.repository.load()
        self.store.max_title_chars = self.config.MAX_TITLE_CHARS

        # stored data may predate the current rules; bring it in line once
        report = reconcile(self.store)
        transitions = recompute_all(self.store)
        if report.changed or transitions:
            self._finish(transitions)

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------
    def _finish(
        self,
        transitions: List[NodeTransition],
        refresh_plan: bool = False,
        reconcile_tree: bool = False,
    ) -> List[CelebrationEvent]:
        if reconcile_tree:
            reconcile(self.store)
        events = self.notifier.inspect(self.store, transitions)
        self.repository.save(self.store)
        if refresh_plan:
            self.refresh_plan()
        self.notifier.publish(events)
        return events

    def _apply_metric(self, node: GoalNode, percent: int, status: GoalStatus) -> Optional[NodeTransition]:
        previous = node.status
        if previous == GoalStatus.ACHIEVED:
            status = GoalStatus.ACHIEVED
        self.store.set_derived(node.id, percent, status)
        if node.status != previous:
            return NodeTransition(node.id, node.tier, node.title, previous, node.status)
        return None

    def _check_leaf(self, leaf: GoalNode, checked: bool) -> Optional[NodeTransition]:
        previous = leaf.status
        self.store.set_manual_check(leaf.id, checked)
        if leaf.status != previous:
            return NodeTransition(leaf.id, leaf.tier, leaf.title, previous, leaf.status)
        return None

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def snapshot(self) -> Dict[str, Any]:
        """Detached copy of the whole chart, center first."""
        majors = []
        for major in self.store.majors:
            middles = []
            for middle in self.store.existing_children_of(major.id):
                entry = middle.to_dict()
                entry["leaves"] = [leaf.to_dict() for leaf in self.store.existing_children_of(middle.id)]
                middles.append(entry)
            entry = major.to_dict()
            entry["middles"] = middles
            majors.append(entry)
        return {
            "center": self.store.center.to_dict(),
            "majors": majors,
        }

    def get_node(self, node_id: str) -> GoalNode:
        return self.store.require_node(node_id)

    def drain_celebrations(self) -> List[CelebrationEvent]:
        return self.notifier.drain()

    def current_plan(self) -> Optional[PlPlan]:
        return self.ledger.load_plan()

    def refresh_plan(self) -> Optional[PlPlan]:
        """Re-derive the yearly targets from the titles and store them."""
        plan = derive_plan(
            self.store,
            years=self.config.PLAN_YEARS,
            default_year=self.config.DEFAULT_ANCHOR_YEAR,
            rounding_unit=self.config.PLAN_ROUNDING_UNIT,
        )
        self.ledger.save_plan(plan)
        return plan

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    def set_leaf_check(self, minor_id: str, checked: bool) -> List[CelebrationEvent]:
        leaf = self.store.require_node(minor_id)
        if not leaf.is_leaf:
            raise NodeNotFoundError(minor_id)
        if leaf.metric_binding is not None:
            raise LockedNodeError(leaf.id, leaf.metric_binding.value)
        if bool(leaf.manual_check) == bool(checked):
            return []

        transitions: List[NodeTransition] = []
        transition = self._check_leaf(leaf, checked)
        if transition:
            transitions.append(transition)
        transitions.extend(recompute_from_leaf(self.store, minor_id))
        logger.info(f"Leaf {minor_id} {'checked' if checked else 'unchecked'}")
        return self._finish(transitions)

    def set_node_title(
        self,
        node_id: str,
        text: str,
        metric_binding: Optional[Any] = None,
    ) -> List[CelebrationEvent]:
        """
        Rename a node and rebind its metric.

        The binding is the explicit argument when given, otherwise whatever
        the new title names (or none). A title carries no progress, so the
        node is only recomputed when it loses its binding and goes back to
        being derived from its children.
        """
        node = self.store.require_node(node_id)
        was_bound = node.metric_binding is not None
        self.store.set_title(node_id, text)
        binding = PlMetric.from_value(metric_binding) if metric_binding is not None else None
        if binding is None:
            binding = detect_metric_from_title(node.title)
        self.store.set_metric_binding(node.id, binding)

        transitions: List[NodeTransition] = []
        if was_bound and binding is None:
            if node.tier == Tier.MAJOR:
                transitions = recompute_major(self.store, node.id)
            elif node.tier == Tier.MIDDLE:
                transitions = recompute_from_middle(self.store, node.id)
        return self._finish(
            transitions,
            refresh_plan=True,
            reconcile_tree=node.tier != Tier.MINOR,
        )

    def set_metric_percent(self, node_id: str, percent: Any) -> Optional[List[CelebrationEvent]]:
        """
        Write an externally computed percent into a metric-bound node.

        Returns None when the value is rejected and the stored percent is
        kept; otherwise the celebration events of the update.
        """
        node = self.store.require_node(node_id)
        if node.metric_binding is None:
            raise ValueError(f"{node_id} is not bound to a metric")
        if node.tier not in (Tier.MAJOR, Tier.MIDDLE):
            raise ValueError(f"{node_id}: only major and middle nodes take a metric percent")
        if isinstance(percent, bool) or not isinstance(percent, numbers.Real) or not math.isfinite(percent):
            logger.warning(f"Ignoring metric percent {percent!r} for {node_id}")
            return None
        if percent < 0:
            logger.warning(f"Ignoring negative metric percent {percent!r} for {node_id}")
            return None

        value = min(100, int(math.floor(percent + 0.5)))
        transitions: List[NodeTransition] = []
        transition = self._apply_metric(node, value, status_for_percent(value))
        if transition:
            transitions.append(transition)
        if node.tier == Tier.MIDDLE:
            major = self.store.parent_of(node.id)
            transitions.extend(recompute_major(self.store, major.id))
        return self._finish(transitions)

    def confirm_leaf(self, leaf_id: str) -> bool:
        """Checkpoint the leaf if it changed since the last confirmation."""
        leaf = self.store.require_node(leaf_id)
        if not leaf.is_leaf:
            raise NodeNotFoundError(leaf_id)
        if not self.repository.leaf_differs_from_checkpoint(leaf):
            return False
        self.repository.save_leaf_checkpoint(leaf)
        logger.info(f"Confirmed leaf {leaf_id}")
        return True

    def create_backup(self) -> Path:
        path = create_snapshot(self.store, self.snapshot_dir)
        cleanup_old_snapshots(self.config.SNAPSHOT_RETENTION_DAYS, self.snapshot_dir)
        return path

    def restore_backup(self, snapshot_path: Optional[str] = None) -> List[CelebrationEvent]:
        """Swap the live chart for a backup; latest one when no path is given."""
        self.store = restore_from_snapshot(self.repository, snapshot_path, self.snapshot_dir)
        self.store.max_title_chars = self.config.MAX_TITLE_CHARS
        reconcile(self.store)
        return self._finish(recompute_all(self.store), refresh_plan=True)

    def on_yearly_actual_metrics_changed(self, year: Any, actuals: Dict[str, Any]) -> bool:
        """
        Feed one year's actual figures into the metric-bound nodes.

        Returns True when at least one node was updated.
        """
        clean, rejected = validate_actuals(actuals)
        for name, reason in rejected.items():
            logger.warning(f"Rejected actual '{name}' for year {year}: {reason}")

        if isinstance(year, bool) or not isinstance(year, int) or not 1 <= year <= self.config.PLAN_YEARS:
            logger.warning(f"Ignoring actuals for unknown year {year!r}")
            return False
        if not clean:
            return False

        self.ledger.record_actuals(year, clean)

        plan = self.ledger.load_plan()
        target = plan.for_year(year) if plan else None
        if target is None:
            logger.info(f"No planned targets for year {year}; actuals stored only")
            return False

        rates: Dict[PlMetric, float] = {}
        for metric, value in clean.items():
            planned = target.target_for(metric)
            if planned > 0:
                rates[metric] = value / planned
        if not rates:
            return False

        max_year = self.config.PLAN_YEARS
        default_year = self.config.DEFAULT_ANCHOR_YEAR
        threshold = self.config.ACHIEVED_THRESHOLD
        transitions: List[NodeTransition] = []
        updated = False

        for major in self.store.majors:
            major_year = extract_year_index(major.title, max_year)
            major_metric = resolve_metric(major)
            major_fed = False

            if major_metric in rates and (major_year or default_year) == year:
                rate = rates[major_metric]
                transition = self._apply_metric(major, percent_for_rate(rate), status_for_rate(rate, threshold))
                if transition:
                    transitions.append(transition)
                major_fed = updated = True

            middles_fed = False
            for middle in self.store.existing_children_of(major.id):
                metric = resolve_metric(middle)
                if metric not in rates:
                    continue
                rate = rates[metric]
                middle_year = extract_year_index(middle.title, max_year)

                leaves = self.store.existing_children_of(middle.id)
                leaves_fed = False
                for leaf in leaves:
                    if resolve_metric(leaf) != metric:
                        continue
                    leaf_year = extract_year_index(leaf.title, max_year) or middle_year or major_year or default_year
                    if leaf_year != year:
                        continue
                    transition = self._check_leaf(leaf, rate >= threshold)
                    if transition:
                        transitions.append(transition)
                    leaves_fed = True

                # with year-matched metric leaves the percent follows their checks
                percent = middle_percent(leaves) if leaves_fed else percent_for_rate(rate)
                transition = self._apply_metric(middle, percent, status_for_rate(rate, threshold))
                if transition:
                    transitions.append(transition)
                middles_fed = updated = True

            if middles_fed and not major_fed:
                transitions.extend(recompute_major(self.store, major.id))

        if not updated:
            return False

        logger.info(f"Applied year {year} actuals: {', '.join(f'{m.value}={r:.2f}' for m, r in rates.items())}")
        self._finish(transitions)
        return True


_engine: Optional[MandalaEngine] = None


def get_engine() -> MandalaEngine:
    """Process-wide engine over the configured data directory."""
    global _engine
    if _engine is None:
        _engine = MandalaEngine()
    return _engine
