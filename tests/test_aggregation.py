"""
aggregation.py tests
====================
Quarter grouping, display truncation and breakdowns
"""
import uuid
from datetime import date
from decimal import Decimal

import pytest

from app.services.aggregation import (
    breakdown_by,
    build_analytics,
    group_by_quarter,
    monthly_breakdown,
    quarter_date_range,
    quarter_of,
    top_n,
)
from app.services.repository import RoyaltyRecord

ARTIST_ID = uuid.uuid4()


def item(net, when=None, title="Song", territory="", source="", gross=None, usage=0) -> RoyaltyRecord:
    return RoyaltyRecord(
        id=uuid.uuid4(),
        artist_id=ARTIST_ID,
        track_id=None,
        title=title,
        territory=territory,
        source=source,
        usage_count=usage,
        gross_amount=Decimal(gross if gross is not None else net),
        net_amount=Decimal(net),
        broadcast_date=when,
    )


class TestQuarterOf:

    def test_boundaries(self):
        assert quarter_of(date(2024, 1, 1)) == (2024, 1)
        assert quarter_of(date(2024, 3, 31)) == (2024, 1)
        assert quarter_of(date(2024, 4, 1)) == (2024, 2)
        assert quarter_of(date(2024, 12, 31)) == (2024, 4)

    def test_date_range(self):
        assert quarter_date_range(2024, 1) == (date(2024, 1, 1), date(2024, 3, 31))
        assert quarter_date_range(2024, 2) == (date(2024, 4, 1), date(2024, 6, 30))
        assert quarter_date_range(2023, 4) == (date(2023, 10, 1), date(2023, 12, 31))

    def test_invalid_quarter(self):
        with pytest.raises(ValueError):
            quarter_date_range(2024, 5)


class TestGroupByQuarter:

    def test_same_and_different_quarters(self):
        feb = item("1", date(2024, 2, 15))
        mar = item("2", date(2024, 3, 20))
        apr = item("4", date(2024, 4, 1))
        report = group_by_quarter([apr, feb, mar])

        assert [q.key for q in report.quarters] == ["2024-Q2", "2024-Q1"]
        q1 = report.find(2024, 1)
        assert {i.id for i in q1.items} == {feb.id, mar.id}
        assert q1.total_net == Decimal("3")
        assert q1.label == "2024 Quarter 1"
        assert q1.short_label == "Q1 2024"

    def test_sorted_most_recent_first(self):
        items = [
            item("1", date(2023, 11, 1)),
            item("1", date(2024, 1, 5)),
            item("1", date(2022, 6, 1)),
            item("1", date(2024, 8, 9)),
        ]
        report = group_by_quarter(items)
        assert [(q.year, q.quarter) for q in report.quarters] == [(2024, 3), (2024, 1), (2023, 4), (2022, 2)]

    def test_dateless_items_excluded(self):
        report = group_by_quarter([item("5", None), item("1", date(2024, 1, 1))])
        assert report.dateless_count == 1
        assert report.unassigned is None
        assert report.total_net == Decimal("1")

    def test_dateless_items_as_unassigned_group(self):
        report = group_by_quarter([item("5", None), item("1", date(2024, 1, 1))], include_unassigned=True)
        assert report.unassigned.key == "unassigned"
        assert report.unassigned.total_net == Decimal("5")
        # Never mixed into dated totals
        assert report.total_net == Decimal("1")

    def test_exact_cent_sums(self):
        items = [item("0.01", date(2024, 5, 1)) for _ in range(10000)]
        group = group_by_quarter(items).quarters[0]
        assert group.total_net == Decimal("100.00")


class TestTruncation:

    def test_totals_cover_all_items(self):
        items = [item(f"{i}.10", date(2024, 1, 1 + i % 28)) for i in range(50)]
        expected = sum((Decimal(f"{i}.10") for i in range(50)), Decimal("0"))
        group = group_by_quarter(items).quarters[0]

        visible = group.visible_items(10)
        assert len(visible) == 10
        assert group.is_truncated(10)
        assert group.total_net == expected
        assert group.item_count == 50

    def test_no_limit(self):
        group = group_by_quarter([item("1", date(2024, 1, 1))]).quarters[0]
        assert len(group.visible_items(None)) == 1
        assert not group.is_truncated(None)


class TestBreakdowns:

    def setup_method(self):
        self.items = [
            item("5", date(2024, 1, 10), title="A", territory="FR", source="Spotify", usage=10),
            item("1", date(2024, 1, 11), title="B", territory="US", source="YouTube", usage=3),
            item("3", date(2024, 2, 1), title="A", territory="", source="Spotify", usage=5),
            item("2", date(2024, 3, 1), title="C", territory="US", source="", usage=1),
        ]

    def test_track_breakdown_sorted_by_revenue(self):
        entries = breakdown_by(self.items, "track")
        assert [(e.key, e.revenue) for e in entries] == [
            ("A", Decimal("8")),
            ("C", Decimal("2")),
            ("B", Decimal("1")),
        ]
        assert entries[0].usage_count == 15
        assert entries[0].percentage == Decimal("72.73")

    def test_missing_keys_are_unknown(self):
        territories = {e.key: e.revenue for e in breakdown_by(self.items, "territory")}
        assert territories == {"FR": Decimal("5"), "US": Decimal("3"), "Unknown": Decimal("3")}
        sources = {e.key for e in breakdown_by(self.items, "source")}
        assert "Unknown" in sources

    def test_ties_ordered_by_key(self):
        entries = breakdown_by(self.items, "territory")
        assert [e.key for e in entries] == ["FR", "US", "Unknown"]

    def test_top_n_after_full_sort(self):
        many = [item("1", date(2024, 1, 1), title=f"T{i}") for i in range(20)]
        many.append(item("100", date(2024, 1, 1), title="Hit"))
        top = top_n(breakdown_by(many, "track"), 3)
        assert len(top) == 3
        assert top[0].key == "Hit"

    def test_unknown_dimension(self):
        with pytest.raises(ValueError):
            breakdown_by(self.items, "label")

    def test_monthly_chronological(self):
        months = monthly_breakdown(self.items + [item("9", None)])
        assert [m.key for m in months] == ["2024-01", "2024-02", "2024-03"]
        assert months[0].label == "Jan 2024"
        assert months[0].revenue == Decimal("6")

    def test_build_analytics(self):
        summary = build_analytics(self.items + [item("50", None)], top=2)
        assert summary.total_net == Decimal("11")
        assert summary.dateless_count == 1
        assert len(summary.tracks) == 2
        assert [q.key for q in summary.quarters] == ["2024-Q1"]
