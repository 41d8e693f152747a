"""
P/L metric helpers for the chart.

- detect which yearly figure a title talks about (revenue, gross profit, ...)
- pull an amount ("3000万", "1億5000万", "12,000,000") and a plan year
  ("3年目", "year 3") out of a title
- derive a yearly target curve from every titled anchor in the chart
"""
import math
import re
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from core.mandala_engine.models import GoalNode, GoalStatus, PlMetric
from core.mandala_engine.store import GoalNodeStore

TARGET_FIELD = {
    PlMetric.REVENUE: "revenue_target",
    PlMetric.GROSS_PROFIT: "gross_profit_target",
    PlMetric.OPERATING_PROFIT: "operating_profit_target",
    PlMetric.NET_WORTH: "net_worth_target",
}

ACTUAL_FIELD = {
    PlMetric.REVENUE: "revenue_actual",
    PlMetric.GROSS_PROFIT: "gross_profit_actual",
    PlMetric.OPERATING_PROFIT: "operating_profit_actual",
    PlMetric.NET_WORTH: "net_worth_actual",
}

# checked in order; the first hit wins
_METRIC_PATTERNS = [
    (PlMetric.REVENUE, re.compile(r"売上|売上高|売上目標|revenue|sales", re.IGNORECASE)),
    (PlMetric.GROSS_PROFIT, re.compile(r"粗利|粗利益|grossprofit|grossmargin", re.IGNORECASE)),
    (PlMetric.OPERATING_PROFIT, re.compile(r"営業利益|operatingprofit|operatingincome", re.IGNORECASE)),
    (PlMetric.NET_WORTH, re.compile(r"純資産|資産形成|networth", re.IGNORECASE)),
]

_YEAR_RE = re.compile(r"(\d+)\s*年目|\byear\s*(\d+)\b", re.IGNORECASE)
_AMOUNT_RE = re.compile(r"(\d+(?:\.\d+)?)(億|万|円)?")

UNIT_MULTIPLIER = {"億": 100_000_000, "万": 10_000}

# anchor priorities: center > minor > middle > major
PRIORITY_MAJOR = 1
PRIORITY_MIDDLE = 2
PRIORITY_MINOR = 3
PRIORITY_CENTER = 4


@dataclass
class PlYearTarget:
    year: int
    revenue_target: float = 0
    gross_profit_target: float = 0
    operating_profit_target: float = 0
    net_worth_target: float = 0

    def target_for(self, metric: PlMetric) -> float:
        return getattr(self, TARGET_FIELD[metric])

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class PlYearActual:
    year: int
    revenue_actual: float = 0
    gross_profit_actual: float = 0
    operating_profit_actual: float = 0
    net_worth_actual: float = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class PlPlan:
    yearly: List[PlYearTarget] = field(default_factory=list)
    final_net_worth_target: float = 0

    def for_year(self, year: int) -> Optional[PlYearTarget]:
        for target in self.yearly:
            if target.year == year:
                return target
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "yearly": [y.to_dict() for y in self.yearly],
            "final_net_worth_target": self.final_net_worth_target,
        }


@dataclass
class _Anchor:
    year: int
    amount: int
    priority: int


def _to_half_width(text: str) -> str:
    return text.translate({code: code - 0xFEE0 for code in range(ord("０"), ord("９") + 1)})


def detect_metric_from_title(title: str) -> Optional[PlMetric]:
    if not title:
        return None
    compact = re.sub(r"\s", "", title)
    for metric, pattern in _METRIC_PATTERNS:
        if pattern.search(compact):
            return metric
    return None


def extract_year_index(text: str, max_year: int = 10) -> Optional[int]:
    """Plan year named in the text, only when it falls within 1..max_year."""
    if not text:
        return None
    match = _YEAR_RE.search(_to_half_width(text))
    if not match:
        return None
    year = int(match.group(1) or match.group(2))
    return year if 1 <= year <= max_year else None


def extract_amount_from_text(text: str) -> Optional[int]:
    """
    Last "number + unit" in the text, in yen.

    Commas and whitespace are ignored and a year phrase is not an amount,
    so "売上1億→3年目3000万" yields 30,000,000.
    """
    if not text:
        return None
    normalized = _YEAR_RE.sub("", _to_half_width(text))
    normalized = re.sub(r"[,\s]", "", normalized)

    last = None
    for match in _AMOUNT_RE.finditer(normalized):
        last = match
    if last is None:
        return None

    amount = float(last.group(1)) * UNIT_MULTIPLIER.get(last.group(2), 1)
    return int(math.floor(amount + 0.5))


def parse_amount_from_text(text: str) -> int:
    """
    Total amount of a compound figure like "1億5000万円"; 0 when none.

    Without 億/万 the first plain number is used.
    """
    if not text:
        return 0
    normalized = _YEAR_RE.sub("", _to_half_width(text)).replace(",", "")

    total = 0.0
    oku = re.search(r"(\d+(?:\.\d+)?)億", normalized)
    if oku:
        total += float(oku.group(1)) * UNIT_MULTIPLIER["億"]
    man = re.search(r"(\d+(?:\.\d+)?)万", normalized)
    if man:
        total += float(man.group(1)) * UNIT_MULTIPLIER["万"]
    if not oku and not man:
        plain = re.search(r"(\d+(?:\.\d+)?)", normalized)
        if plain:
            total += float(plain.group(1))
    return int(math.floor(total + 0.5))


def resolve_metric(node: GoalNode, inherited: Optional[PlMetric] = None) -> Optional[PlMetric]:
    """Explicit binding, then the title, then the parent's metric."""
    return node.metric_binding or detect_metric_from_title(node.title) or inherited


def node_year(node: GoalNode, fallback: Optional[int], max_year: int = 10) -> Optional[int]:
    year = extract_year_index(node.title, max_year)
    return year if year is not None else fallback


def percent_for_rate(rate: float) -> int:
    """Completion percent for an actual/target ratio, capped at 100."""
    return int(math.floor(max(0.0, min(rate, 1.0)) * 100 + 0.5))


def status_for_rate(rate: float, threshold: float = 1.0) -> GoalStatus:
    if rate >= threshold:
        return GoalStatus.ACHIEVED
    if rate > 0:
        return GoalStatus.IN_PROGRESS
    return GoalStatus.NOT_STARTED


def _round_to_unit(amount: float, unit: int) -> int:
    if unit <= 0:
        return int(math.floor(amount + 0.5))
    return int(math.floor(amount / unit + 0.5)) * unit


def derive_plan(
    store: GoalNodeStore,
    years: int = 10,
    default_year: int = 10,
    rounding_unit: int = 10000,
) -> Optional[PlPlan]:
    """
    Yearly targets interpolated from every amount written into the chart.

    An amount with no year anchors the default (final) year. When several
    anchors name the same metric and year, the highest priority wins; they
    are never summed. Each metric becomes one curve: linear from 0 at year 0
    through its anchors, flat after the last one. Returns None when the
    chart names no amounts.
    """
    anchors: Dict[PlMetric, List[_Anchor]] = {m: [] for m in PlMetric}

    def add(metric: Optional[PlMetric], year: Optional[int], amount: Optional[int], priority: int) -> None:
        if metric is None or not year or not 1 <= year <= years:
            return
        if not amount or amount <= 0:
            return
        anchors[metric].append(_Anchor(year, amount, priority))

    center = store.center
    if center.title:
        amount = parse_amount_from_text(center.title)
        year = extract_year_index(center.title, years) or default_year
        add(resolve_metric(center), year if amount else None, amount, PRIORITY_CENTER)

    for major in store.majors:
        major_metric = resolve_metric(major)
        amount = extract_amount_from_text(major.title)
        if amount:
            add(major_metric, node_year(major, default_year, years), amount, PRIORITY_MAJOR)

        for middle in store.existing_children_of(major.id):
            metric = resolve_metric(middle, major_metric)
            amount = extract_amount_from_text(middle.title)
            if amount:
                add(metric, node_year(middle, default_year, years), amount, PRIORITY_MIDDLE)

            for leaf in store.existing_children_of(middle.id):
                amount = extract_amount_from_text(leaf.title)
                if amount:
                    add(metric, node_year(leaf, default_year, years), amount, PRIORITY_MINOR)

    if not any(anchors.values()):
        return None

    yearly = [PlYearTarget(year=y) for y in range(1, years + 1)]

    for metric, metric_anchors in anchors.items():
        if not metric_anchors:
            continue
        best: Dict[int, _Anchor] = {}
        for anchor in metric_anchors:
            current = best.get(anchor.year)
            if current is None or anchor.priority > current.priority:
                best[anchor.year] = anchor

        points = [(0, 0.0)] + [(y, float(best[y].amount)) for y in sorted(best)]
        if points[-1][0] < years:
            points.append((years, points[-1][1]))

        for target in yearly:
            for (start_year, start_amount), (end_year, end_amount) in zip(points, points[1:]):
                if start_year <= target.year <= end_year:
                    if end_year == start_year:
                        amount = end_amount
                    else:
                        t = (target.year - start_year) / (end_year - start_year)
                        amount = start_amount + (end_amount - start_amount) * t
                    setattr(target, TARGET_FIELD[metric], _round_to_unit(amount, rounding_unit))
                    break

    if not any(
        y.revenue_target or y.gross_profit_target or y.operating_profit_target or y.net_worth_target
        for y in yearly
    ):
        return None

    return PlPlan(yearly=yearly, final_net_worth_target=yearly[-1].net_worth_target)
