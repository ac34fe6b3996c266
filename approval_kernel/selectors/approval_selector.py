"""
Module: approval_kernel.selectors.approval_selector
Responsibility: Query surface over approval requests: single request,
    pending queue, per-type/priority listings, a submitter's own requests,
    decision history, statistics, audit trail, wallet hold summary and the
    dry-run approval check.
Architecture position: Kernel > Selectors.  Reads through the repository
    contract and the wallet ledger; pure domain functions derive the views.

Invariants enforced:
    - Pending queue order: priority descending (urgent first), then newest
      submission first.
    - History order: newest decision first.
    - Every view is computed from one ``list_all`` snapshot, so counts and
      rows in a view agree with each other.

Failure modes:
    - NotFoundError from ``get_request`` / ``get_audit_trail`` for unknown ids.
    - ValidationError for a history filter asking for pending requests.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

from approval_kernel.domain.approval import (
    ApprovalRequest,
    Priority,
    RequestStatus,
    TERMINAL_REQUEST_STATUSES,
)
from approval_kernel.domain.audit_trail import AuditTrail, build_audit_trail
from approval_kernel.domain.changes import AffectedEntity, ChangeType
from approval_kernel.domain.clock import Clock
from approval_kernel.domain.policy import GovernancePolicy
from approval_kernel.domain.sensitivity import ApprovalCheck, check_requires_approval
from approval_kernel.domain.statistics import (
    ApprovalStatistics,
    StatisticsWindow,
    aggregate_statistics,
)
from approval_kernel.exceptions import NotFoundError, ValidationError
from approval_kernel.logging_config import get_logger
from approval_kernel.selectors.base import BaseSelector
from approval_kernel.services.repository import ApprovalRepository
from approval_kernel.services.wallet_hold_ledger import WalletHoldLedger, WalletHoldSummary

if TYPE_CHECKING:
    from approval_kernel.services.approval_store import ApprovalRequestStore

logger = get_logger("selectors.approval")


@dataclass(frozen=True)
class PendingFilter:
    change_type: ChangeType | None = None
    priority: Priority | None = None


@dataclass(frozen=True)
class PendingView:
    requests: tuple[ApprovalRequest, ...]
    total: int
    urgent_count: int


@dataclass(frozen=True)
class HistoryFilter:
    """Decision history filter.  ``approver`` matches a case-insensitive
    substring of ``decided_by``; ``start``/``end`` bound ``decided_at``
    inclusively."""

    status: RequestStatus | None = None
    change_type: ChangeType | None = None
    approver: str | None = None
    start: datetime | None = None
    end: datetime | None = None
    limit: int | None = None


@dataclass(frozen=True)
class HistoryView:
    requests: tuple[ApprovalRequest, ...]
    total: int
    approved_count: int
    rejected_count: int


def _pending_sort_key(request: ApprovalRequest) -> tuple:
    return (-request.priority.rank, -request.submitted_at.timestamp(), -request.request_id)


class ApprovalSelector(BaseSelector):
    """Read-side queries for approval requests."""

    def __init__(
        self,
        repository: ApprovalRepository,
        ledger: WalletHoldLedger,
        clock: Clock | None = None,
        policy: GovernancePolicy | None = None,
    ):
        super().__init__(repository, clock)
        self.ledger = ledger
        self.policy = policy or GovernancePolicy.default()

    @classmethod
    def for_store(cls, store: ApprovalRequestStore) -> ApprovalSelector:
        """Selector reading the same repository, ledger, clock and policy as ``store``."""
        return cls(store.repository, store.ledger, store.clock, store.policy)

    # ------------------------------------------------------------------
    # Single request
    # ------------------------------------------------------------------

    def get_request(self, request_id: int) -> ApprovalRequest:
        request = self.repository.get(request_id)
        if request is None:
            raise NotFoundError(request_id)
        return request

    def get_audit_trail(self, request_id: int) -> AuditTrail:
        return build_audit_trail(self.get_request(request_id), self.clock.now())

    # ------------------------------------------------------------------
    # Listings
    # ------------------------------------------------------------------

    def get_pending(self, criteria: PendingFilter | None = None) -> PendingView:
        """Pending queue, most urgent and newest first."""
        criteria = criteria or PendingFilter()
        pending = [
            r for r in self.repository.list_all()
            if r.status is RequestStatus.PENDING
            and (criteria.change_type is None or r.change_type is criteria.change_type)
            and (criteria.priority is None or r.priority is criteria.priority)
        ]
        pending.sort(key=_pending_sort_key)
        return PendingView(
            requests=tuple(pending),
            total=len(pending),
            urgent_count=sum(1 for r in pending if r.priority is Priority.URGENT),
        )

    def get_by_type(self, change_type: ChangeType) -> tuple[ApprovalRequest, ...]:
        matches = [r for r in self.repository.list_all() if r.change_type is change_type]
        matches.sort(key=lambda r: (r.submitted_at, r.request_id), reverse=True)
        return tuple(matches)

    def get_by_priority(self, priority: Priority) -> tuple[ApprovalRequest, ...]:
        matches = [r for r in self.repository.list_all() if r.priority is priority]
        matches.sort(key=lambda r: (r.submitted_at, r.request_id), reverse=True)
        return tuple(matches)

    def get_my_submissions(self, submitter: str) -> tuple[ApprovalRequest, ...]:
        """Requests submitted by ``submitter``, newest first, any status."""
        matches = [r for r in self.repository.list_all() if r.submitted_by == submitter]
        matches.sort(key=lambda r: (r.submitted_at, r.request_id), reverse=True)
        return tuple(matches)

    def get_history(self, criteria: HistoryFilter | None = None) -> HistoryView:
        """Decided requests, newest decision first."""
        criteria = criteria or HistoryFilter()
        if criteria.status is not None and criteria.status not in TERMINAL_REQUEST_STATUSES:
            raise ValidationError(
                "History covers decided requests only", field="status",
            )
        approver = criteria.approver.lower() if criteria.approver else None

        decided = [
            r for r in self.repository.list_all()
            if r.status in TERMINAL_REQUEST_STATUSES
            and (criteria.status is None or r.status is criteria.status)
            and (criteria.change_type is None or r.change_type is criteria.change_type)
            and (approver is None or approver in (r.decided_by or "").lower())
            and (criteria.start is None or r.decided_at >= criteria.start)
            and (criteria.end is None or r.decided_at <= criteria.end)
        ]
        decided.sort(key=lambda r: (r.decided_at, r.request_id), reverse=True)
        rows = decided if criteria.limit is None else decided[: criteria.limit]
        return HistoryView(
            requests=tuple(rows),
            total=len(decided),
            approved_count=sum(1 for r in decided if r.status is RequestStatus.APPROVED),
            rejected_count=sum(1 for r in decided if r.status is RequestStatus.REJECTED),
        )

    # ------------------------------------------------------------------
    # Derived views
    # ------------------------------------------------------------------

    def get_statistics(
        self,
        window: StatisticsWindow | str = StatisticsWindow.WEEK,
    ) -> ApprovalStatistics:
        try:
            window = StatisticsWindow(window)
        except ValueError as exc:
            raise ValidationError(
                f"Unknown statistics window: {window!r}", field="window",
            ) from exc
        stats = aggregate_statistics(self.repository.list_all(), window, self.clock.now())
        logger.debug(
            "approval_statistics_computed",
            extra={"window": window.value, "total": stats.overview.total},
        )
        return stats

    def get_wallet_hold_summary(self, limit: int | None = None) -> WalletHoldSummary:
        return self.ledger.summary(limit)

    def check_requires_approval(
        self,
        change_type: ChangeType,
        entity: AffectedEntity,
    ) -> ApprovalCheck:
        """Dry run: would this change need approval under the active policy?"""
        return check_requires_approval(
            change_type,
            entity,
            self.policy.sensitivity,
            self.policy.impact,
        )
