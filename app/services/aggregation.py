"""
Quarterly aggregation engine.

Rules:
1. Items without a broadcast date belong to no quarter. They are counted
   and, when requested, returned as a separate unassigned group.
2. Quarter key = (year, (month - 1) // 3 + 1).
3. Totals use exact decimal sums over every item of the group.
4. Groups are sorted year descending, then quarter descending.
5. Breakdowns (track, territory, source) sum net per key and sort by
   revenue descending before any top-N truncation.

A quarter may be rendered partially (`visible_items`), but its totals
always cover all of its items.
"""
from __future__ import annotations

import calendar
import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from app.services.money import ZERO, percentage, sum_amounts
from app.services.repository import RoyaltyRecord

logger = logging.getLogger(__name__)

UNKNOWN = "Unknown"

MONTH_ABBREVIATIONS = [calendar.month_abbr[m] for m in range(1, 13)]


def quarter_of(d: date) -> Tuple[int, int]:
    """(year, quarter) for a date."""
    return d.year, (d.month - 1) // 3 + 1


def quarter_label(year: int, quarter: int) -> str:
    return f"{year} Quarter {quarter}"


def quarter_short_label(year: int, quarter: int) -> str:
    return f"Q{quarter} {year}"


def quarter_date_range(year: int, quarter: int) -> Tuple[date, date]:
    """First and last day of a quarter (inclusive)."""
    if quarter not in (1, 2, 3, 4):
        raise ValueError(f"Invalid quarter: {quarter}")
    first_month = (quarter - 1) * 3 + 1
    last_month = first_month + 2
    last_day = calendar.monthrange(year, last_month)[1]
    return date(year, first_month, 1), date(year, last_month, last_day)


@dataclass
class QuarterGroup:
    """Line items of one quarter with totals over all of them."""
    year: Optional[int]
    quarter: Optional[int]
    items: List[RoyaltyRecord] = field(default_factory=list)

    @property
    def key(self) -> str:
        if self.year is None:
            return "unassigned"
        return f"{self.year}-Q{self.quarter}"

    @property
    def label(self) -> str:
        if self.year is None:
            return "Unassigned"
        return quarter_label(self.year, self.quarter)

    @property
    def short_label(self) -> str:
        if self.year is None:
            return "Unassigned"
        return quarter_short_label(self.year, self.quarter)

    @property
    def date_range(self) -> Optional[Tuple[date, date]]:
        if self.year is None:
            return None
        return quarter_date_range(self.year, self.quarter)

    @property
    def total_gross(self) -> Decimal:
        return sum_amounts(item.gross_amount for item in self.items)

    @property
    def total_net(self) -> Decimal:
        return sum_amounts(item.net_amount for item in self.items)

    @property
    def total_usage(self) -> int:
        return sum(item.usage_count for item in self.items)

    @property
    def item_count(self) -> int:
        return len(self.items)

    def visible_items(self, limit: Optional[int]) -> List[RoyaltyRecord]:
        """The first `limit` items for display. Totals are unaffected."""
        if limit is None:
            return list(self.items)
        return self.items[:max(limit, 0)]

    def is_truncated(self, limit: Optional[int]) -> bool:
        return limit is not None and len(self.items) > max(limit, 0)


@dataclass
class QuarterReport:
    quarters: List[QuarterGroup] = field(default_factory=list)
    unassigned: Optional[QuarterGroup] = None
    dateless_count: int = 0

    @property
    def total_gross(self) -> Decimal:
        return sum_amounts(q.total_gross for q in self.quarters)

    @property
    def total_net(self) -> Decimal:
        return sum_amounts(q.total_net for q in self.quarters)

    def find(self, year: int, quarter: int) -> Optional[QuarterGroup]:
        for group in self.quarters:
            if group.year == year and group.quarter == quarter:
                return group
        return None


def group_by_quarter(
    items: Iterable[RoyaltyRecord],
    include_unassigned: bool = False,
) -> QuarterReport:
    """Group line items by calendar quarter, most recent first."""
    groups: Dict[Tuple[int, int], QuarterGroup] = {}
    dateless: List[RoyaltyRecord] = []

    for item in items:
        if item.broadcast_date is None:
            dateless.append(item)
            continue
        year, quarter = quarter_of(item.broadcast_date)
        group = groups.get((year, quarter))
        if group is None:
            group = groups[(year, quarter)] = QuarterGroup(year=year, quarter=quarter)
        group.items.append(item)

    if dateless:
        logger.info(f"{len(dateless)} line items have no broadcast date and belong to no quarter")

    ordered = sorted(groups.values(), key=lambda g: (g.year, g.quarter), reverse=True)
    return QuarterReport(
        quarters=ordered,
        unassigned=QuarterGroup(year=None, quarter=None, items=dateless) if include_unassigned and dateless else None,
        dateless_count=len(dateless),
    )


# ============ Breakdowns ============

@dataclass
class BreakdownEntry:
    key: str
    revenue: Decimal = ZERO
    gross: Decimal = ZERO
    usage_count: int = 0
    item_count: int = 0
    percentage: Decimal = ZERO
    label: Optional[str] = None


def _track_key(item: RoyaltyRecord) -> str:
    return item.title or UNKNOWN


def _territory_key(item: RoyaltyRecord) -> str:
    return item.territory or UNKNOWN


def _source_key(item: RoyaltyRecord) -> str:
    return item.source or UNKNOWN


BREAKDOWN_KEYS: Dict[str, Callable[[RoyaltyRecord], str]] = {
    "track": _track_key,
    "territory": _territory_key,
    "source": _source_key,
}


def breakdown_by(items: Sequence[RoyaltyRecord], dimension: str) -> List[BreakdownEntry]:
    """
    Net revenue per track, territory or source, sorted by revenue descending.

    Ties keep a stable order by key. Percentages are shares of the total
    net of `items`.
    """
    key_fn = BREAKDOWN_KEYS.get(dimension)
    if key_fn is None:
        raise ValueError(f"Unknown breakdown dimension: {dimension}")

    buckets: Dict[str, List[RoyaltyRecord]] = {}
    for item in items:
        buckets.setdefault(key_fn(item), []).append(item)

    total_net = sum_amounts(item.net_amount for item in items)
    entries = []
    for key, bucket in buckets.items():
        revenue = sum_amounts(i.net_amount for i in bucket)
        entries.append(BreakdownEntry(
            key=key,
            revenue=revenue,
            gross=sum_amounts(i.gross_amount for i in bucket),
            usage_count=sum(i.usage_count for i in bucket),
            item_count=len(bucket),
            percentage=percentage(revenue, total_net),
        ))

    entries.sort(key=lambda e: e.key)
    entries.sort(key=lambda e: e.revenue, reverse=True)
    return entries


def top_n(entries: List[BreakdownEntry], n: Optional[int]) -> List[BreakdownEntry]:
    """Truncate an already fully sorted breakdown."""
    if n is None:
        return entries
    return entries[:max(n, 0)]


def monthly_breakdown(items: Sequence[RoyaltyRecord]) -> List[BreakdownEntry]:
    """Net revenue per calendar month, chronological. Dateless items are skipped."""
    buckets: Dict[Tuple[int, int], List[RoyaltyRecord]] = {}
    for item in items:
        if item.broadcast_date is None:
            continue
        buckets.setdefault((item.broadcast_date.year, item.broadcast_date.month), []).append(item)

    total_net = sum_amounts(i.net_amount for bucket in buckets.values() for i in bucket)
    entries = []
    for (year, month) in sorted(buckets):
        bucket = buckets[(year, month)]
        revenue = sum_amounts(i.net_amount for i in bucket)
        entries.append(BreakdownEntry(
            key=f"{year}-{month:02d}",
            label=f"{MONTH_ABBREVIATIONS[month - 1]} {year}",
            revenue=revenue,
            gross=sum_amounts(i.gross_amount for i in bucket),
            usage_count=sum(i.usage_count for i in bucket),
            item_count=len(bucket),
            percentage=percentage(revenue, total_net),
        ))
    return entries


@dataclass
class AnalyticsSummary:
    """Totals and breakdowns over a set of line items."""
    total_gross: Decimal
    total_net: Decimal
    total_usage: int
    item_count: int
    dateless_count: int
    tracks: List[BreakdownEntry]
    territories: List[BreakdownEntry]
    sources: List[BreakdownEntry]
    months: List[BreakdownEntry]
    quarters: List[QuarterGroup]


def build_analytics(items: Sequence[RoyaltyRecord], top: Optional[int] = 10) -> AnalyticsSummary:
    report = group_by_quarter(items)
    # Overall totals cover dated quarters only, like the quarter views
    dated = [i for i in items if i.broadcast_date is not None]
    return AnalyticsSummary(
        total_gross=sum_amounts(i.gross_amount for i in dated),
        total_net=sum_amounts(i.net_amount for i in dated),
        total_usage=sum(i.usage_count for i in dated),
        item_count=len(dated),
        dateless_count=report.dateless_count,
        tracks=top_n(breakdown_by(dated, "track"), top),
        territories=top_n(breakdown_by(dated, "territory"), top),
        sources=top_n(breakdown_by(dated, "source"), top),
        months=monthly_breakdown(dated),
        quarters=report.quarters,
    )
