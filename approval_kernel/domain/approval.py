"""
Approval domain types (``approval_kernel.domain.approval``).

Responsibility
--------------
Pure value objects for the approval workflow: lifecycle state machine,
priority and sensitivity tiers, impact snapshots, wallet hold and
adjustment records, comments, and the request snapshot itself.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  May import
only from ``domain/changes``, ``domain/values`` and ``exceptions``.

Invariants enforced
-------------------
* Lifecycle state machine -- ``REQUEST_TRANSITIONS`` defines the only
  valid status transitions: pending -> approved | rejected.  Terminal
  states have no outgoing edges.
* Request snapshots are frozen; the store replaces them wholesale on
  every mutation so readers never observe a half-applied decision.
* ``comments`` only ever grows; ``with_comment`` appends.
* ``WalletAdjustment`` records are append-only and never mutated.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping

from approval_kernel.domain.changes import (
    AffectedEntity,
    ChangeType,
    affected_entity_from_payload,
)
from approval_kernel.domain.values import ZERO
from approval_kernel.exceptions import ValidationError


# =========================================================================
# Request Status Lifecycle
# =========================================================================


class RequestStatus(str, Enum):
    """Approval request lifecycle states."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


REQUEST_TRANSITIONS: dict[RequestStatus, frozenset[RequestStatus]] = {
    RequestStatus.PENDING: frozenset({
        RequestStatus.APPROVED,
        RequestStatus.REJECTED,
    }),
    RequestStatus.APPROVED: frozenset(),
    RequestStatus.REJECTED: frozenset(),
}

TERMINAL_REQUEST_STATUSES: frozenset[RequestStatus] = frozenset({
    RequestStatus.APPROVED,
    RequestStatus.REJECTED,
})


def can_transition(current: RequestStatus, target: RequestStatus) -> bool:
    """True when ``current -> target`` is an edge of the lifecycle."""
    return target in REQUEST_TRANSITIONS.get(current, frozenset())


# =========================================================================
# Tiers
# =========================================================================


class Priority(str, Enum):
    """Queue priority, ordered low < medium < high < urgent."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {
    Priority.LOW: 0,
    Priority.MEDIUM: 1,
    Priority.HIGH: 2,
    Priority.URGENT: 3,
}


class SensitivityLevel(str, Enum):
    """Coarse risk tier driving priority and approver routing."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class CustomerImpact(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class AdjustmentType(str, Enum):
    """Direction of the wallet movement a price change implies."""

    INCREASE = "increase"
    DECREASE = "decrease"
    NONE = "none"


class HoldStatus(str, Enum):
    """Wallet hold lifecycle: holding -> settled | released."""

    HOLDING = "holding"
    SETTLED = "settled"
    RELEASED = "released"


class AdjustmentStatus(str, Enum):
    COMPLETED = "completed"


# =========================================================================
# Derived snapshots
# =========================================================================


@dataclass(frozen=True)
class BusinessImpact:
    """Quantified impact of a proposed change.

    ``revenue_impact`` is signed and rounded to whole currency units;
    ``margin_impact`` is a signed percentage rounded to two places.
    """

    revenue_impact: Decimal = ZERO
    margin_impact: Decimal = ZERO
    customer_impact: CustomerImpact = CustomerImpact.LOW


@dataclass(frozen=True)
class Sensitivity:
    level: SensitivityLevel
    priority: Priority


@dataclass(frozen=True)
class WalletImpact:
    """Financial exposure of a price change and whether it must be escrowed."""

    requires_hold: bool
    hold_amount: Decimal
    adjustment_type: AdjustmentType
    total_impact: Decimal
    price_change: Decimal = ZERO


@dataclass(frozen=True)
class WalletHold:
    """Escrow record keyed by request id. Owned by WalletHoldLedger."""

    request_id: int
    hold_amount: Decimal
    adjustment_type: AdjustmentType
    total_impact: Decimal
    created_at: datetime
    status: HoldStatus = HoldStatus.HOLDING
    resolved_at: datetime | None = None


@dataclass(frozen=True)
class WalletAdjustment:
    """Final wallet movement produced by settling a hold. Immutable."""

    request_id: int
    transaction_id: str
    hold_amount: Decimal
    adjustment_amount: Decimal
    adjustment_type: AdjustmentType
    processed_at: datetime
    status: AdjustmentStatus = AdjustmentStatus.COMPLETED


@dataclass(frozen=True)
class Comment:
    """Audit annotation on a request. Never gates state."""

    comment_id: int
    author: str
    created_at: datetime
    text: str


# =========================================================================
# Submission and Request
# =========================================================================


@dataclass(frozen=True)
class Submission:
    """Caller-supplied data for a new approval request."""

    change_type: ChangeType
    title: str
    description: str
    submitted_by: str
    affected_entity: AffectedEntity
    attachments: tuple[str, ...] = ()

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any], submitted_by: str) -> Submission:
        """Parse a camelCase request body.

        ``submitted_by`` comes from the authenticated caller, never from
        the body.

        Raises:
            ValidationError: missing type/title/description or a bad
                affected entity.
        """
        if not isinstance(payload, Mapping):
            raise ValidationError("request body must be an object")
        change_type = payload.get("type")
        title = payload.get("title")
        description = payload.get("description")
        if not change_type or not title or not description:
            raise ValidationError("Type, title, and description are required")
        entity = affected_entity_from_payload(
            change_type, payload.get("affectedEntity") or {},
        )
        return cls(
            change_type=ChangeType(change_type),
            title=title,
            description=description,
            submitted_by=submitted_by,
            affected_entity=entity,
            attachments=tuple(str(a) for a in payload.get("attachments") or ()),
        )


@dataclass(frozen=True)
class ApprovalRequest:
    """Immutable snapshot of an approval request.

    Fields set at creation (type, title, entity, impact, priority, routing,
    wallet impact) never change.  Decision fields are written exactly once
    on the pending -> terminal transition.
    """

    request_id: int
    change_type: ChangeType
    title: str
    description: str
    submitted_by: str
    submitted_at: datetime
    affected_entity: AffectedEntity
    priority: Priority
    sensitivity_level: SensitivityLevel
    required_roles: tuple[str, ...]
    business_impact: BusinessImpact
    wallet_impact: WalletImpact | None = None
    status: RequestStatus = RequestStatus.PENDING
    decided_by: str | None = None
    decided_at: datetime | None = None
    decision_comments: str | None = None
    wallet_adjustment: WalletAdjustment | None = None
    comments: tuple[Comment, ...] = ()
    bulk_action_id: str | None = None
    attachments: tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_pending(self) -> bool:
        return self.status is RequestStatus.PENDING

    @property
    def requires_hold(self) -> bool:
        return self.wallet_impact is not None and self.wallet_impact.requires_hold

    def with_decision(
        self,
        status: RequestStatus,
        actor: str,
        decided_at: datetime,
        comments: str,
        wallet_adjustment: WalletAdjustment | None = None,
        bulk_action_id: str | None = None,
    ) -> ApprovalRequest:
        """Return the decided snapshot. Caller checks the transition first."""
        return replace(
            self,
            status=status,
            decided_by=actor,
            decided_at=decided_at,
            decision_comments=comments,
            wallet_adjustment=wallet_adjustment,
            bulk_action_id=bulk_action_id,
        )

    def with_comment(self, comment: Comment) -> ApprovalRequest:
        return replace(self, comments=self.comments + (comment,))
