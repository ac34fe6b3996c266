"""
AuditTrailBuilder (``approval_kernel.domain.audit_trail``).

Responsibility
--------------
Derives a read-only, chronological event list from a request's own
recorded fields.  Nothing is stored; the trail is rebuilt on demand.

Invariants enforced
-------------------
* Events are sorted ascending by timestamp with a stable sort, so
  same-instant events keep their logical order (submitted before
  wallet_hold_created).  Comments added after a decision sort after it.
* ``sequence`` numbers are assigned after sorting and run 1..n.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any

from approval_kernel.domain.approval import ApprovalRequest, RequestStatus

SYSTEM_ACTOR = "system"


class AuditAction(str, Enum):
    SUBMITTED = "submitted"
    WALLET_HOLD_CREATED = "wallet_hold_created"
    COMMENT_ADDED = "comment_added"
    APPROVED = "approved"
    REJECTED = "rejected"


@dataclass(frozen=True)
class AuditTrailEvent:
    """A single entry in an audit trail."""

    sequence: int
    timestamp: datetime
    action: AuditAction
    actor: str
    details: dict[str, Any]


@dataclass(frozen=True)
class AuditTrail:
    """
    Complete audit trail for one request.

    ``duration`` runs from submission to decision, or to ``generated_at``
    while the request is still pending.
    """

    request_id: int
    events: tuple[AuditTrailEvent, ...]
    current_status: RequestStatus
    duration: timedelta
    generated_at: datetime

    @property
    def total_events(self) -> int:
        return len(self.events)

    @property
    def first_action(self) -> AuditAction | None:
        return self.events[0].action if self.events else None

    @property
    def last_action(self) -> AuditAction | None:
        return self.events[-1].action if self.events else None


def _impact_details(request: ApprovalRequest) -> dict[str, Any]:
    impact = request.business_impact
    return {
        "revenue_impact": impact.revenue_impact,
        "margin_impact": impact.margin_impact,
        "customer_impact": impact.customer_impact.value,
    }


def build_audit_trail(request: ApprovalRequest, now: datetime) -> AuditTrail:
    """Reconstruct everything that happened to ``request``."""
    raw: list[tuple[datetime, AuditAction, str, dict[str, Any]]] = [
        (
            request.submitted_at,
            AuditAction.SUBMITTED,
            request.submitted_by,
            {
                "type": request.change_type.value,
                "title": request.title,
                "priority": request.priority.value,
                "business_impact": _impact_details(request),
            },
        )
    ]

    if request.requires_hold:
        raw.append((
            request.submitted_at,
            AuditAction.WALLET_HOLD_CREATED,
            SYSTEM_ACTOR,
            {
                "hold_amount": request.wallet_impact.hold_amount,
                "total_impact": request.wallet_impact.total_impact,
                "reason": "Price change approval requirement",
            },
        ))

    for comment in request.comments:
        raw.append((
            comment.created_at,
            AuditAction.COMMENT_ADDED,
            comment.author,
            {"comment": comment.text},
        ))

    if request.status is RequestStatus.APPROVED:
        adjustment = request.wallet_adjustment
        raw.append((
            request.decided_at,
            AuditAction.APPROVED,
            request.decided_by,
            {
                "comments": request.decision_comments,
                "wallet_adjustment": (
                    {
                        "transaction_id": adjustment.transaction_id,
                        "amount": adjustment.adjustment_amount,
                    }
                    if adjustment is not None
                    else None
                ),
                "bulk_action_id": request.bulk_action_id,
            },
        ))
    elif request.status is RequestStatus.REJECTED:
        raw.append((
            request.decided_at,
            AuditAction.REJECTED,
            request.decided_by,
            {
                "reason": request.decision_comments,
                "bulk_action_id": request.bulk_action_id,
            },
        ))

    ordered = sorted(raw, key=lambda entry: entry[0])
    events = tuple(
        AuditTrailEvent(
            sequence=index,
            timestamp=timestamp,
            action=action,
            actor=actor,
            details=details,
        )
        for index, (timestamp, action, actor, details) in enumerate(ordered, start=1)
    )

    end = request.decided_at if request.decided_at is not None else now
    return AuditTrail(
        request_id=request.request_id,
        events=events,
        current_status=request.status,
        duration=end - request.submitted_at,
        generated_at=now,
    )
