"""
Tests for StatisticsAggregator: windows, rates, distributions and trends.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from approval_kernel.domain.approval import Priority
from approval_kernel.domain.changes import ChangeType
from approval_kernel.domain.statistics import (
    StatisticsWindow,
    aggregate_statistics,
    approval_rate,
    window_start,
)

from builders import APPROVER, bulk_discount, price_change, product_removal

NOW = datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)


class TestWindowStart:
    @pytest.mark.parametrize("window, expected", [
        (StatisticsWindow.TODAY, datetime(2024, 1, 15, tzinfo=timezone.utc)),
        (StatisticsWindow.WEEK, datetime(2024, 1, 8, 10, 30, tzinfo=timezone.utc)),
        (StatisticsWindow.MONTH, datetime(2024, 1, 1, tzinfo=timezone.utc)),
        (StatisticsWindow.YEAR, datetime(2024, 1, 1, tzinfo=timezone.utc)),
    ])
    def test_fixed_windows(self, window, expected):
        assert window_start(window, NOW) == expected

    def test_all_without_requests(self):
        assert window_start(StatisticsWindow.ALL, NOW) is None


class TestApprovalRate:
    def test_no_decisions(self):
        assert approval_rate(0, 0) == Decimal("0")

    def test_two_decimal_places(self):
        assert approval_rate(2, 1) == Decimal("66.67")
        assert approval_rate(1, 2) == Decimal("33.33")

    def test_all_approved(self):
        assert approval_rate(4, 0) == Decimal("100.00")


class TestAggregateStatistics:
    @pytest.fixture
    def populated(self, store, deterministic_clock):
        urgent = store.submit(price_change())
        discount = store.submit(bulk_discount())
        store.submit(product_removal())
        deterministic_clock.advance(hours=2)
        store.approve(urgent.request_id, APPROVER)
        deterministic_clock.advance(hours=2)
        store.reject(discount.request_id, APPROVER, "No")
        return store

    def test_overview(self, populated, deterministic_clock):
        stats = aggregate_statistics(
            populated.repository.list_all(), StatisticsWindow.WEEK, deterministic_clock.now(),
        )
        overview = stats.overview
        assert overview.total == 3
        assert overview.pending == 1
        assert overview.approved == 1
        assert overview.rejected == 1
        assert overview.urgent == 1
        assert overview.approval_rate == Decimal("50.00")
        assert overview.avg_processing_hours == Decimal("3.0")
        # |2000| + |-1000| + 0
        assert overview.total_financial_impact == Decimal("3000")

    def test_distributions_list_every_member(self, populated, deterministic_clock):
        stats = aggregate_statistics(
            populated.repository.list_all(), StatisticsWindow.WEEK, deterministic_clock.now(),
        )
        assert set(stats.by_type) == set(ChangeType)
        assert stats.by_type[ChangeType.PRICE_CHANGE] == 1
        assert stats.by_type[ChangeType.INVENTORY_WRITE_OFF] == 0
        assert set(stats.by_priority) == set(Priority)
        assert stats.by_priority[Priority.URGENT] == 1
        assert stats.by_priority[Priority.HIGH] == 2

    def test_trends(self, populated, deterministic_clock):
        now = deterministic_clock.now()
        stats = aggregate_statistics(
            populated.repository.list_all(), StatisticsWindow.WEEK, now,
        )
        assert len(stats.daily_submissions) == 8
        assert stats.daily_submissions[-1].label == "2024-01-15"
        assert stats.daily_submissions[-1].count == 3
        assert sum(b.count for b in stats.daily_submissions) == 3
        assert sum(b.count for b in stats.weekly_completions) == 2
        assert stats.start == now - timedelta(days=7)
        assert stats.end == now

    def test_window_excludes_older_submissions(self, store, deterministic_clock):
        store.submit(price_change())
        deterministic_clock.advance(days=2)
        store.submit(bulk_discount())

        now = deterministic_clock.now()
        today = aggregate_statistics(store.repository.list_all(), StatisticsWindow.TODAY, now)
        everything = aggregate_statistics(store.repository.list_all(), StatisticsWindow.ALL, now)

        assert today.overview.total == 1
        assert everything.overview.total == 2
        assert everything.start == datetime(2024, 1, 15, tzinfo=timezone.utc)
        assert len(everything.daily_submissions) == 3

    def test_empty_snapshot(self):
        stats = aggregate_statistics([], StatisticsWindow.ALL, NOW)
        assert stats.start is None
        assert stats.overview.total == 0
        assert stats.overview.approval_rate == Decimal("0")
        assert stats.overview.avg_processing_hours == Decimal("0")
        assert stats.daily_submissions == ()
        assert stats.weekly_completions == ()
