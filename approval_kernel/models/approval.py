"""
Module: approval_kernel.models.approval
Responsibility: ORM persistence for approval requests and their comments.

Architecture position: Kernel > Models.  May import from db/ and domain/.

Invariants enforced:
    - Lifecycle: a request row whose stored status is terminal rejects any
      further change to its decision columns (ORM before_update listener).
    - Comments are append-only: UPDATE and DELETE raise
      ImmutabilityViolationError.
    - Money never passes through float: amounts are stored as decimal
      strings inside the JSON snapshot columns.

Failure modes:
    - ImmutabilityViolationError on comment UPDATE/DELETE, on changes to
      a decided request's decision columns, and on request DELETE.
    - IntegrityError on duplicate request id or duplicate comment id.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from sqlalchemy import JSON, ForeignKey, Index, String, Text, event, inspect
from sqlalchemy.orm import Mapped, mapped_column, relationship

from approval_kernel.db.base import Base
from approval_kernel.exceptions import ImmutabilityViolationError

if TYPE_CHECKING:
    from approval_kernel.domain.approval import (
        ApprovalRequest,
        BusinessImpact,
        Comment,
        WalletAdjustment,
        WalletImpact,
    )

_TERMINAL_STATUSES = frozenset({"approved", "rejected"})

_DECISION_COLUMNS = (
    "status",
    "decided_by",
    "decided_at",
    "decision_comments",
    "wallet_adjustment",
    "bulk_action_id",
)


# =============================================================================
# JSON snapshot codecs
# =============================================================================


def _business_impact_to_json(impact: BusinessImpact) -> dict[str, Any]:
    return {
        "revenueImpact": str(impact.revenue_impact),
        "marginImpact": str(impact.margin_impact),
        "customerImpact": impact.customer_impact.value,
    }


def _business_impact_from_json(data: dict[str, Any]) -> BusinessImpact:
    from approval_kernel.domain.approval import BusinessImpact, CustomerImpact

    return BusinessImpact(
        revenue_impact=Decimal(data["revenueImpact"]),
        margin_impact=Decimal(data["marginImpact"]),
        customer_impact=CustomerImpact(data["customerImpact"]),
    )


def _wallet_impact_to_json(impact: WalletImpact | None) -> dict[str, Any] | None:
    if impact is None:
        return None
    return {
        "requiresHold": impact.requires_hold,
        "holdAmount": str(impact.hold_amount),
        "adjustmentType": impact.adjustment_type.value,
        "totalImpact": str(impact.total_impact),
        "priceChange": str(impact.price_change),
    }


def _wallet_impact_from_json(data: dict[str, Any] | None) -> WalletImpact | None:
    if data is None:
        return None
    from approval_kernel.domain.approval import AdjustmentType, WalletImpact

    return WalletImpact(
        requires_hold=bool(data["requiresHold"]),
        hold_amount=Decimal(data["holdAmount"]),
        adjustment_type=AdjustmentType(data["adjustmentType"]),
        total_impact=Decimal(data["totalImpact"]),
        price_change=Decimal(data["priceChange"]),
    )


def _wallet_adjustment_to_json(adjustment: WalletAdjustment | None) -> dict[str, Any] | None:
    if adjustment is None:
        return None
    return {
        "transactionId": adjustment.transaction_id,
        "holdAmount": str(adjustment.hold_amount),
        "adjustmentAmount": str(adjustment.adjustment_amount),
        "adjustmentType": adjustment.adjustment_type.value,
        "processedAt": adjustment.processed_at.isoformat(),
        "status": adjustment.status.value,
    }


def _wallet_adjustment_from_json(
    request_id: int,
    data: dict[str, Any] | None,
) -> WalletAdjustment | None:
    if data is None:
        return None
    from approval_kernel.domain.approval import (
        AdjustmentStatus,
        AdjustmentType,
        WalletAdjustment,
    )

    return WalletAdjustment(
        request_id=request_id,
        transaction_id=data["transactionId"],
        hold_amount=Decimal(data["holdAmount"]),
        adjustment_amount=Decimal(data["adjustmentAmount"]),
        adjustment_type=AdjustmentType(data["adjustmentType"]),
        processed_at=datetime.fromisoformat(data["processedAt"]),
        status=AdjustmentStatus(data["status"]),
    )


# =============================================================================
# Models
# =============================================================================


class ApprovalRequestModel(Base):
    """Persistent approval request.

    Contract:
        Creation columns are written once.  Decision columns are written
        once, on the pending -> approved | rejected transition.
    """

    __tablename__ = "approval_requests"

    __table_args__ = (
        Index("ix_approval_requests_status", "status"),
        Index("ix_approval_requests_submitted_by", "submitted_by"),
        Index("ix_approval_requests_submitted_at", "submitted_at"),
    )

    request_id: Mapped[int] = mapped_column(primary_key=True, autoincrement=False)
    change_type: Mapped[str] = mapped_column(String(50), nullable=False)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    submitted_by: Mapped[str] = mapped_column(String(200), nullable=False)
    submitted_at: Mapped[datetime] = mapped_column(nullable=False)
    affected_entity: Mapped[dict] = mapped_column(JSON, nullable=False)
    priority: Mapped[str] = mapped_column(String(20), nullable=False)
    sensitivity_level: Mapped[str] = mapped_column(String(20), nullable=False)
    required_roles: Mapped[list] = mapped_column(JSON, nullable=False)
    business_impact: Mapped[dict] = mapped_column(JSON, nullable=False)
    wallet_impact: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    attachments: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    decided_by: Mapped[str | None] = mapped_column(String(200), nullable=True)
    decided_at: Mapped[datetime | None] = mapped_column(nullable=True)
    decision_comments: Mapped[str | None] = mapped_column(Text, nullable=True)
    wallet_adjustment: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    bulk_action_id: Mapped[str | None] = mapped_column(String(50), nullable=True)

    comments: Mapped[list["ApprovalCommentModel"]] = relationship(
        "ApprovalCommentModel",
        back_populates="request",
        order_by="ApprovalCommentModel.comment_id",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return (
            f"<ApprovalRequest {self.request_id} "
            f"{self.change_type} status={self.status}>"
        )

    def to_dto(self) -> ApprovalRequest:
        """Convert ORM model to frozen domain DTO."""
        from approval_kernel.domain.approval import (
            ApprovalRequest as ApprovalRequestDTO,
            Priority,
            RequestStatus,
            SensitivityLevel,
        )
        from approval_kernel.domain.changes import (
            ChangeType,
            affected_entity_from_payload,
        )

        change_type = ChangeType(self.change_type)
        return ApprovalRequestDTO(
            request_id=self.request_id,
            change_type=change_type,
            title=self.title,
            description=self.description,
            submitted_by=self.submitted_by,
            submitted_at=self.submitted_at,
            affected_entity=affected_entity_from_payload(change_type, self.affected_entity),
            priority=Priority(self.priority),
            sensitivity_level=SensitivityLevel(self.sensitivity_level),
            required_roles=tuple(self.required_roles),
            business_impact=_business_impact_from_json(self.business_impact),
            wallet_impact=_wallet_impact_from_json(self.wallet_impact),
            status=RequestStatus(self.status),
            decided_by=self.decided_by,
            decided_at=self.decided_at,
            decision_comments=self.decision_comments,
            wallet_adjustment=_wallet_adjustment_from_json(
                self.request_id, self.wallet_adjustment,
            ),
            comments=tuple(c.to_dto() for c in self.comments),
            bulk_action_id=self.bulk_action_id,
            attachments=tuple(self.attachments or ()),
        )

    @staticmethod
    def columns_from_dto(dto: ApprovalRequest) -> dict[str, Any]:
        """Column values for ``dto`` (comments excluded)."""
        from approval_kernel.domain.changes import affected_entity_to_payload

        return {
            "request_id": dto.request_id,
            "change_type": dto.change_type.value,
            "title": dto.title,
            "description": dto.description,
            "submitted_by": dto.submitted_by,
            "submitted_at": dto.submitted_at,
            "affected_entity": affected_entity_to_payload(dto.affected_entity),
            "priority": dto.priority.value,
            "sensitivity_level": dto.sensitivity_level.value,
            "required_roles": list(dto.required_roles),
            "business_impact": _business_impact_to_json(dto.business_impact),
            "wallet_impact": _wallet_impact_to_json(dto.wallet_impact),
            "attachments": list(dto.attachments),
            "status": dto.status.value,
            "decided_by": dto.decided_by,
            "decided_at": dto.decided_at,
            "decision_comments": dto.decision_comments,
            "wallet_adjustment": _wallet_adjustment_to_json(dto.wallet_adjustment),
            "bulk_action_id": dto.bulk_action_id,
        }

    @classmethod
    def from_dto(cls, dto: ApprovalRequest) -> ApprovalRequestModel:
        """Create ORM model (with its comments) from domain DTO."""
        model = cls(**cls.columns_from_dto(dto))
        model.comments = [
            ApprovalCommentModel.from_dto(dto.request_id, c) for c in dto.comments
        ]
        return model

    def apply_dto(self, dto: ApprovalRequest) -> list[str]:
        """Copy changed columns from ``dto``; append new comments.

        Only assigns attributes whose value differs, so an unchanged row
        produces no UPDATE.  Returns the names of changed columns.
        """
        changed = []
        for name, value in self.columns_from_dto(dto).items():
            if getattr(self, name) != value:
                setattr(self, name, value)
                changed.append(name)
        known = {c.comment_id for c in self.comments}
        for comment in dto.comments:
            if comment.comment_id not in known:
                self.comments.append(
                    ApprovalCommentModel.from_dto(dto.request_id, comment)
                )
        return changed


class ApprovalCommentModel(Base):
    """Persistent comment on a request. Append-only."""

    __tablename__ = "approval_comments"

    request_id: Mapped[int] = mapped_column(
        ForeignKey("approval_requests.request_id"),
        primary_key=True,
    )
    comment_id: Mapped[int] = mapped_column(primary_key=True, autoincrement=False)
    author: Mapped[str] = mapped_column(String(200), nullable=False)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(nullable=False)

    request: Mapped["ApprovalRequestModel"] = relationship(
        "ApprovalRequestModel",
        back_populates="comments",
    )

    def __repr__(self) -> str:
        return f"<ApprovalComment {self.request_id}/{self.comment_id} by {self.author}>"

    def to_dto(self) -> Comment:
        from approval_kernel.domain.approval import Comment as CommentDTO

        return CommentDTO(
            comment_id=self.comment_id,
            author=self.author,
            created_at=self.created_at,
            text=self.text,
        )

    @classmethod
    def from_dto(cls, request_id: int, dto: Comment) -> ApprovalCommentModel:
        return cls(
            request_id=request_id,
            comment_id=dto.comment_id,
            author=dto.author,
            text=dto.text,
            created_at=dto.created_at,
        )


# =============================================================================
# ORM-Level Immutability
# =============================================================================


@event.listens_for(ApprovalRequestModel, "before_update")
def prevent_decided_request_update(mapper, connection, target):
    """Reject changes to the decision of an already decided request."""
    state = inspect(target)
    status_history = state.attrs.status.history
    previous = status_history.deleted[0] if status_history.deleted else target.status
    if previous not in _TERMINAL_STATUSES:
        return
    changed = [
        name for name in _DECISION_COLUMNS
        if state.attrs[name].history.has_changes()
    ]
    if changed:
        raise ImmutabilityViolationError(
            entity_type="ApprovalRequest",
            entity_id=str(target.request_id),
            reason=(
                f"Request already {previous} -- cannot modify "
                f"{', '.join(changed)}"
            ),
        )


@event.listens_for(ApprovalRequestModel, "before_delete")
def prevent_request_delete(mapper, connection, target):
    raise ImmutabilityViolationError(
        entity_type="ApprovalRequest",
        entity_id=str(target.request_id),
        reason="Approval requests are retained for audit -- cannot delete",
    )


@event.listens_for(ApprovalCommentModel, "before_update")
def prevent_comment_update(mapper, connection, target):
    """Prevent updates to comment records."""
    raise ImmutabilityViolationError(
        entity_type="ApprovalComment",
        entity_id=f"{target.request_id}/{target.comment_id}",
        reason="Comments are immutable -- cannot modify",
    )


@event.listens_for(ApprovalCommentModel, "before_delete")
def prevent_comment_delete(mapper, connection, target):
    """Prevent deletion of comment records."""
    raise ImmutabilityViolationError(
        entity_type="ApprovalComment",
        entity_id=f"{target.request_id}/{target.comment_id}",
        reason="Comments are immutable -- cannot delete",
    )
