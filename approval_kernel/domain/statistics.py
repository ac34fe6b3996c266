"""
StatisticsAggregator (``approval_kernel.domain.statistics``).

Responsibility
--------------
Derives counts, rates, distributions and time-bucketed trends over a
snapshot of requests for a reporting window.

Invariants enforced
-------------------
* ``approval_rate`` is 0 when nothing has been decided (no division by
  zero).
* Trend series iterate the window bucket by bucket; a window spanning
  no bucket yields an empty tuple.
* Distributions list every enum member, including zero counts.

Window starts
-------------
today -> midnight UTC; week -> now minus 7 days; month -> first of the
month; year -> 1 January; all -> midnight of the earliest submission.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Iterable

from approval_kernel.domain.approval import (
    ApprovalRequest,
    Priority,
    RequestStatus,
    TERMINAL_REQUEST_STATUSES,
)
from approval_kernel.domain.changes import ChangeType
from approval_kernel.domain.values import HUNDRED, ZERO, round_percent, round_tenth

_DAY = timedelta(days=1)
_WEEK = timedelta(days=7)
_SECONDS_PER_HOUR = Decimal("3600")


class StatisticsWindow(str, Enum):
    TODAY = "today"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"
    ALL = "all"


@dataclass(frozen=True)
class TrendBucket:
    label: str
    start: datetime
    end: datetime
    count: int


@dataclass(frozen=True)
class StatisticsOverview:
    total: int
    pending: int
    approved: int
    rejected: int
    urgent: int
    approval_rate: Decimal
    avg_processing_hours: Decimal
    total_financial_impact: Decimal


@dataclass(frozen=True)
class ApprovalStatistics:
    """Statistics for one window. ``start`` is None when the window is empty."""

    window: StatisticsWindow
    start: datetime | None
    end: datetime
    overview: StatisticsOverview
    by_type: dict[ChangeType, int]
    by_priority: dict[Priority, int]
    daily_submissions: tuple[TrendBucket, ...]
    weekly_completions: tuple[TrendBucket, ...]


def _midnight(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def window_start(
    window: StatisticsWindow,
    now: datetime,
    requests: Iterable[ApprovalRequest] = (),
) -> datetime | None:
    """First instant included in ``window``."""
    if window is StatisticsWindow.TODAY:
        return _midnight(now)
    if window is StatisticsWindow.WEEK:
        return now - _WEEK
    if window is StatisticsWindow.MONTH:
        return _midnight(now).replace(day=1)
    if window is StatisticsWindow.YEAR:
        return _midnight(now).replace(month=1, day=1)
    earliest = min((r.submitted_at for r in requests), default=None)
    return _midnight(earliest) if earliest is not None else None


def approval_rate(approved: int, rejected: int) -> Decimal:
    """Approved share of decided requests, as a percentage."""
    decided = approved + rejected
    if decided == 0:
        return ZERO
    return round_percent(Decimal(approved) / Decimal(decided) * HUNDRED)


def average_processing_hours(requests: Iterable[ApprovalRequest]) -> Decimal:
    """Mean hours from submission to decision over decided requests."""
    durations = [
        Decimal(str((r.decided_at - r.submitted_at).total_seconds()))
        for r in requests
        if r.status in TERMINAL_REQUEST_STATUSES and r.decided_at is not None
    ]
    if not durations:
        return ZERO
    return round_tenth(sum(durations) / len(durations) / _SECONDS_PER_HOUR)


def daily_submission_trend(
    requests: Iterable[ApprovalRequest],
    start: datetime | None,
    now: datetime,
) -> tuple[TrendBucket, ...]:
    if start is None or start > now:
        return ()
    submitted = [r.submitted_at for r in requests]
    buckets = []
    day = _midnight(start)
    while day <= now:
        end = day + _DAY
        buckets.append(TrendBucket(
            label=day.date().isoformat(),
            start=day,
            end=end,
            count=sum(1 for ts in submitted if day <= ts < end),
        ))
        day = end
    return tuple(buckets)


def weekly_completion_trend(
    requests: Iterable[ApprovalRequest],
    start: datetime | None,
    now: datetime,
) -> tuple[TrendBucket, ...]:
    if start is None or start > now:
        return ()
    decided = [r.decided_at for r in requests if r.decided_at is not None]
    buckets = []
    week = start
    while week <= now:
        end = week + _WEEK
        buckets.append(TrendBucket(
            label=f"{week.date().isoformat()}_{end.date().isoformat()}",
            start=week,
            end=end,
            count=sum(1 for ts in decided if week <= ts < end),
        ))
        week = end
    return tuple(buckets)


def aggregate_statistics(
    requests: Iterable[ApprovalRequest],
    window: StatisticsWindow,
    now: datetime,
) -> ApprovalStatistics:
    """Compute statistics over the requests submitted inside ``window``."""
    snapshot = list(requests)
    start = window_start(window, now, snapshot)
    in_window = [
        r for r in snapshot
        if start is not None and r.submitted_at >= start
    ]

    approved = sum(1 for r in in_window if r.status is RequestStatus.APPROVED)
    rejected = sum(1 for r in in_window if r.status is RequestStatus.REJECTED)
    overview = StatisticsOverview(
        total=len(in_window),
        pending=sum(1 for r in in_window if r.status is RequestStatus.PENDING),
        approved=approved,
        rejected=rejected,
        urgent=sum(1 for r in in_window if r.priority is Priority.URGENT),
        approval_rate=approval_rate(approved, rejected),
        avg_processing_hours=average_processing_hours(in_window),
        total_financial_impact=sum(
            (abs(r.business_impact.revenue_impact) for r in in_window), ZERO,
        ),
    )

    by_type = {change_type: 0 for change_type in ChangeType}
    by_priority = {priority: 0 for priority in Priority}
    for r in in_window:
        by_type[r.change_type] += 1
        by_priority[r.priority] += 1

    completed = [r for r in in_window if r.status in TERMINAL_REQUEST_STATUSES]
    return ApprovalStatistics(
        window=window,
        start=start,
        end=now,
        overview=overview,
        by_type=by_type,
        by_priority=by_priority,
        daily_submissions=daily_submission_trend(in_window, start, now),
        weekly_completions=weekly_completion_trend(completed, start, now),
    )
