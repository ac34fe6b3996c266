"""
Collaborator interfaces (``approval_kernel.domain.events``).

The kernel pushes workflow events to an ``EventSink`` and asks a
``ChangeExecutor`` to apply approved changes.  Transport (socket push,
polling, queue) and the product/category/inventory services behind the
executor live outside the kernel.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Mapping, Protocol

from approval_kernel.domain.approval import WalletAdjustment
from approval_kernel.domain.changes import AffectedEntity, ChangeType


class EventType(str, Enum):
    """Events emitted in direct response to Submit/Decide/Comment calls."""

    REQUEST_SUBMITTED = "request_submitted"
    REQUEST_DECIDED = "request_decided"
    COMMENT_ADDED = "comment_added"
    BULK_APPROVAL_COMPLETED = "bulk_approval_completed"
    BULK_REJECTION_COMPLETED = "bulk_rejection_completed"
    CHANGE_EXECUTION_FAILED = "change_execution_failed"


class EventSink(Protocol):
    """Push capability for workflow events."""

    def notify(self, event_type: EventType, payload: Mapping[str, Any]) -> None:
        ...


class ChangeExecutor(Protocol):
    """Applies an approved change to the owning domain service.

    Raising signals an execution failure; the approval stands regardless.
    """

    def apply(
        self,
        change_type: ChangeType,
        affected_entity: AffectedEntity,
        wallet_adjustment: WalletAdjustment | None,
    ) -> None:
        ...
