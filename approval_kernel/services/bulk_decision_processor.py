"""
BulkDecisionProcessor -- apply one decision to many requests.

Responsibility:
    Runs approve or reject over a list of request ids through
    ``ApprovalRequestStore``, collecting per-item outcomes instead of
    stopping at the first failure, and emits one bulk-completed event
    carrying a shared bulk action id.

Architecture position:
    Kernel > Services.  Sits above the store; every item goes through
    the store's normal per-request locking, so a bulk run racing single
    decisions still yields exactly one decision per request.

Invariants enforced:
    - Every requested id appears exactly once in ``successful`` or
      ``failed``, in input order.
    - Per-item errors never propagate; the run itself only raises on
      invalid arguments (empty id list, blank rejection reason) before
      any item is touched.
    - Items already decided are reported as failures, never re-decided.
"""

from __future__ import annotations

import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, Iterable, Union

from approval_kernel.domain.approval import ApprovalRequest, RequestStatus
from approval_kernel.domain.clock import Clock
from approval_kernel.domain.events import EventSink, EventType
from approval_kernel.domain.values import ZERO
from approval_kernel.exceptions import (
    ApprovalKernelError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from approval_kernel.logging_config import LogContext, get_logger
from approval_kernel.services.approval_store import ApprovalRequestStore

logger = get_logger("services.bulk_decision_processor")

DEFAULT_BULK_ACTOR = "bulk_admin_action"
DEFAULT_APPROVAL_COMMENT = "Bulk approval action"


def new_bulk_action_id(decision: RequestStatus) -> str:
    prefix = "BULK_REJ" if decision is RequestStatus.REJECTED else "BULK"
    return f"{prefix}_{uuid.uuid4().hex[:12].upper()}"


@dataclass(frozen=True)
class BulkSuccess:
    request_id: int
    title: str
    business_impact: Decimal


@dataclass(frozen=True)
class BulkFailure:
    request_id: Any
    reason: str
    code: str


BulkItemResult = Union[BulkSuccess, BulkFailure]


@dataclass(frozen=True)
class BulkSummary:
    total_requests: int
    success_count: int
    failure_count: int
    total_impact: Decimal


@dataclass(frozen=True)
class BulkDecisionResult:
    bulk_action_id: str
    decision: RequestStatus
    successful: tuple[BulkSuccess, ...]
    failed: tuple[BulkFailure, ...]
    summary: BulkSummary


def failure_reason(exc: ApprovalKernelError) -> str:
    """Caller-facing reason for a failed bulk item."""
    if isinstance(exc, NotFoundError):
        return "Request not found"
    if isinstance(exc, InvalidStateError):
        return f"Request is not pending (status: {exc.current_status})"
    return str(exc)


class BulkDecisionProcessor:
    """
    Bulk approve/reject over ``ApprovalRequestStore``.

    ``max_workers`` > 1 decides items on a thread pool; results keep the
    input order either way.
    """

    def __init__(
        self,
        store: ApprovalRequestStore,
        event_sink: EventSink | None = None,
        clock: Clock | None = None,
        max_workers: int = 1,
        bulk_ids: Callable[[RequestStatus], str] = new_bulk_action_id,
    ) -> None:
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self._store = store
        self._events = event_sink if event_sink is not None else store.event_sink
        self._clock = clock or store.clock
        self._max_workers = max_workers
        self._bulk_ids = bulk_ids

    def bulk_approve(
        self,
        request_ids: Iterable[Any],
        comments: str = "",
        actor: str = DEFAULT_BULK_ACTOR,
    ) -> BulkDecisionResult:
        ids = list(request_ids)
        comments = comments if comments and comments.strip() else DEFAULT_APPROVAL_COMMENT
        bulk_action_id = self._bulk_ids(RequestStatus.APPROVED)

        def decide(request_id: int) -> ApprovalRequest:
            return self._store.approve(
                request_id, actor, comments, bulk_action_id=bulk_action_id,
            )

        result = self._run(ids, RequestStatus.APPROVED, bulk_action_id, actor, decide)
        self._events.notify(EventType.BULK_APPROVAL_COMPLETED, {
            **self._event_payload(result, actor),
            "comments": comments,
        })
        return result

    def bulk_reject(
        self,
        request_ids: Iterable[Any],
        comments: str,
        actor: str = DEFAULT_BULK_ACTOR,
    ) -> BulkDecisionResult:
        if not isinstance(comments, str) or not comments.strip():
            raise ValidationError(
                "Rejection reason is required for bulk rejection", field="comments",
            )
        ids = list(request_ids)
        bulk_action_id = self._bulk_ids(RequestStatus.REJECTED)

        def decide(request_id: int) -> ApprovalRequest:
            return self._store.reject(
                request_id, actor, comments, bulk_action_id=bulk_action_id,
            )

        result = self._run(ids, RequestStatus.REJECTED, bulk_action_id, actor, decide)
        self._events.notify(EventType.BULK_REJECTION_COMPLETED, {
            **self._event_payload(result, actor),
            "rejection_reason": comments,
        })
        return result

    def _run(
        self,
        request_ids: list[Any],
        decision: RequestStatus,
        bulk_action_id: str,
        actor: str,
        decide: Callable[[int], ApprovalRequest],
    ) -> BulkDecisionResult:
        if not request_ids:
            raise ValidationError("Request IDs array is required", field="request_ids")

        with LogContext.bind(bulk_action_id=bulk_action_id, actor_id=actor):
            logger.info(
                "bulk_decision_started",
                extra={"decision": decision.value, "count": len(request_ids)},
            )

            def process(raw_id: Any) -> BulkItemResult:
                with LogContext.bind(bulk_action_id=bulk_action_id, actor_id=actor):
                    return self._process_item(raw_id, decide)

            if self._max_workers > 1 and len(request_ids) > 1:
                with ThreadPoolExecutor(max_workers=self._max_workers) as pool:
                    outcomes = list(pool.map(process, request_ids))
            else:
                outcomes = [process(raw_id) for raw_id in request_ids]

            successful = tuple(o for o in outcomes if isinstance(o, BulkSuccess))
            failed = tuple(o for o in outcomes if isinstance(o, BulkFailure))
            summary = BulkSummary(
                total_requests=len(request_ids),
                success_count=len(successful),
                failure_count=len(failed),
                total_impact=sum((s.business_impact for s in successful), ZERO),
            )
            logger.info(
                "bulk_decision_completed",
                extra={
                    "decision": decision.value,
                    "success_count": summary.success_count,
                    "failure_count": summary.failure_count,
                    "total_impact": summary.total_impact,
                },
            )
        return BulkDecisionResult(
            bulk_action_id=bulk_action_id,
            decision=decision,
            successful=successful,
            failed=failed,
            summary=summary,
        )

    def _process_item(
        self,
        raw_id: Any,
        decide: Callable[[int], ApprovalRequest],
    ) -> BulkItemResult:
        try:
            request_id = int(raw_id)
        except (TypeError, ValueError):
            return BulkFailure(raw_id, "Invalid request id", ValidationError.code)

        try:
            decided = decide(request_id)
        except ApprovalKernelError as exc:
            logger.warning(
                "bulk_item_failed",
                extra={"request_id": request_id, "error_code": exc.code},
            )
            return BulkFailure(request_id, failure_reason(exc), exc.code)
        except Exception as exc:
            logger.error(
                "bulk_item_error",
                extra={"request_id": request_id},
                exc_info=True,
            )
            return BulkFailure(request_id, str(exc), ApprovalKernelError.code)

        return BulkSuccess(
            request_id=decided.request_id,
            title=decided.title,
            business_impact=abs(decided.business_impact.revenue_impact),
        )

    def _event_payload(self, result: BulkDecisionResult, actor: str) -> dict[str, Any]:
        return {
            "bulk_action_id": result.bulk_action_id,
            "request_ids": [s.request_id for s in result.successful],
            "failed_ids": [f.request_id for f in result.failed],
            "total_count": result.summary.success_count,
            "total_impact": str(result.summary.total_impact),
            "actor": actor,
            "processed_at": self._clock.now().isoformat(),
        }
