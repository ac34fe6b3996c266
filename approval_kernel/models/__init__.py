"""ORM models for the approval kernel (durable persistence)."""

from approval_kernel.models.approval import ApprovalCommentModel, ApprovalRequestModel
from approval_kernel.models.sequence import SequenceCounter

__all__ = [
    "ApprovalCommentModel",
    "ApprovalRequestModel",
    "SequenceCounter",
]
