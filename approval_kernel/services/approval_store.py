"""
approval_kernel.services.approval_store -- Approval request lifecycle.

Responsibility:
    Owns the lifecycle of approval requests: submission (impact,
    sensitivity, routing and wallet hold derived at creation), the single
    pending -> approved | rejected decision, and append-only comments.
    Hands approved changes to the injected ``ChangeExecutor`` and pushes
    every workflow event to the injected ``EventSink``.

Architecture position:
    Kernel > Services.  May import from domain/ and sibling services.
    ``BulkDecisionProcessor`` drives this store; selectors read the same
    repository.

Invariants enforced:
    - Lifecycle state machine checked under the request's lock before a
      decision is persisted, so exactly one of any number of concurrent
      decisions on one request succeeds.
    - A request with an active hold is never observed decided while its
      hold is still held: settle/release happens under the same lock,
      before the decided snapshot replaces the pending one.
    - Submission either stores the request with its hold or leaves no
      trace; a hold created for a request that fails to persist is
      released.
    - A decision that fails to persist leaves the request pending with
      its hold reopened and no wallet adjustment.
    - Execution failures never roll back an approval.
    - Events are emitted after the lock is released, once per state
      change.

Failure modes:
    - ValidationError on missing/mismatched submission fields, blank
      rejection comments, blank comment text, blank actor.
    - NotFoundError if the request id is unknown.
    - InvalidStateError if a decision targets a non-pending request.
    - HoldConflictError if a hold already exists for the new id.
    - ExecutionError recorded (not raised) when the executor fails.

Audit relevance:
    Logs ``approval_request_submitted``, ``approval_request_approved``,
    ``approval_request_rejected``, ``approval_comment_added`` and
    ``change_execution_failed`` with request id and actor bound through
    ``LogContext``.
"""

from __future__ import annotations

import threading
from concurrent.futures import Executor
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from approval_kernel.domain.approval import (
    ApprovalRequest,
    Comment,
    RequestStatus,
    Submission,
    can_transition,
)
from approval_kernel.domain.changes import ChangeType, ensure_target_matches
from approval_kernel.domain.clock import Clock, SystemClock
from approval_kernel.domain.events import ChangeExecutor, EventSink, EventType
from approval_kernel.domain.impact import calculate_business_impact
from approval_kernel.domain.policy import GovernancePolicy
from approval_kernel.domain.routing import required_approvers
from approval_kernel.domain.sensitivity import classify
from approval_kernel.exceptions import (
    ExecutionError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from approval_kernel.logging_config import LogContext, get_logger
from approval_kernel.services.change_executor import LoggingChangeExecutor
from approval_kernel.services.locking import KeyedLockRegistry
from approval_kernel.services.notification_service import NotificationService
from approval_kernel.services.repository import (
    ApprovalRepository,
    InMemoryApprovalRepository,
)
from approval_kernel.services.wallet_hold_ledger import WalletHoldLedger

logger = get_logger("services.approval_store")


@dataclass(frozen=True)
class ExecutionReport:
    """A failed attempt to apply an approved change."""

    request_id: int
    change_type: ChangeType
    error: ExecutionError
    failed_at: datetime


def _require_text(value: Any, field: str, message: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(message, field=field)
    return value


def _wallet_adjustment_payload(request: ApprovalRequest) -> dict[str, Any] | None:
    adjustment = request.wallet_adjustment
    if adjustment is None:
        return None
    return {
        "transaction_id": adjustment.transaction_id,
        "hold_amount": str(adjustment.hold_amount),
        "adjustment_amount": str(adjustment.adjustment_amount),
        "adjustment_type": adjustment.adjustment_type.value,
        "processed_at": adjustment.processed_at.isoformat(),
    }


class ApprovalRequestStore:
    """Manages approval request submission, decision and comments."""

    def __init__(
        self,
        repository: ApprovalRepository | None = None,
        ledger: WalletHoldLedger | None = None,
        event_sink: EventSink | None = None,
        change_executor: ChangeExecutor | None = None,
        clock: Clock | None = None,
        policy: GovernancePolicy | None = None,
        execution_pool: Executor | None = None,
    ) -> None:
        self._clock = clock or SystemClock()
        self._policy = policy or GovernancePolicy.default()
        self._repository = repository if repository is not None else InMemoryApprovalRepository()
        self._ledger = ledger or WalletHoldLedger(clock=self._clock, policy=self._policy.wallet)
        self._events = event_sink if event_sink is not None else NotificationService()
        self._executor = change_executor or LoggingChangeExecutor()
        self._execution_pool = execution_pool
        self._locks = KeyedLockRegistry()
        self._failures_lock = threading.Lock()
        self._execution_failures: list[ExecutionReport] = []

    # ------------------------------------------------------------------
    # Collaborators (read-only)
    # ------------------------------------------------------------------

    @property
    def repository(self) -> ApprovalRepository:
        return self._repository

    @property
    def ledger(self) -> WalletHoldLedger:
        return self._ledger

    @property
    def event_sink(self) -> EventSink:
        return self._events

    @property
    def clock(self) -> Clock:
        return self._clock

    @property
    def policy(self) -> GovernancePolicy:
        return self._policy

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    def submit(self, submission: Submission) -> ApprovalRequest:
        """Create a pending request with derived impact, priority and routing.

        Price changes whose wallet exposure exceeds the materiality
        threshold get a hold before the request is stored.
        """
        self._validate_submission(submission)
        change_type = ChangeType(submission.change_type)
        entity = submission.affected_entity

        business_impact = calculate_business_impact(
            change_type, entity, self._policy.impact,
        )
        sensitivity = classify(change_type, entity, self._policy.sensitivity)
        roles = required_approvers(sensitivity.level, self._policy.routing)
        wallet_impact = self._ledger.compute_impact(change_type, entity)

        request_id = self._repository.next_id()
        with LogContext.bind(request_id=request_id, actor_id=submission.submitted_by):
            with self._locks.hold(request_id):
                request = ApprovalRequest(
                    request_id=request_id,
                    change_type=change_type,
                    title=submission.title,
                    description=submission.description,
                    submitted_by=submission.submitted_by,
                    submitted_at=self._clock.now(),
                    affected_entity=entity,
                    priority=sensitivity.priority,
                    sensitivity_level=sensitivity.level,
                    required_roles=roles,
                    business_impact=business_impact,
                    wallet_impact=wallet_impact,
                    attachments=tuple(submission.attachments),
                )
                if request.requires_hold:
                    self._ledger.create_hold(request_id, wallet_impact)
                try:
                    self._repository.add(request)
                except Exception:
                    if request.requires_hold:
                        self._ledger.release(request_id)
                    logger.error("approval_request_persist_failed", exc_info=True)
                    raise

            logger.info(
                "approval_request_submitted",
                extra={
                    "change_type": change_type.value,
                    "priority": request.priority.value,
                    "sensitivity_level": request.sensitivity_level.value,
                    "required_roles": list(roles),
                    "requires_hold": request.requires_hold,
                },
            )
            self._events.notify(EventType.REQUEST_SUBMITTED, {
                "request_id": request_id,
                "type": change_type.value,
                "title": request.title,
                "priority": request.priority.value,
                "submitted_by": request.submitted_by,
                "required_roles": list(roles),
                "requires_hold": request.requires_hold,
            })
        return request

    def _validate_submission(self, submission: Submission) -> None:
        try:
            change_type = ChangeType(submission.change_type)
        except ValueError as exc:
            raise ValidationError(
                f"Unknown change type: {submission.change_type!r}", field="type",
            ) from exc
        _require_text(submission.title, "title", "Type, title, and description are required")
        _require_text(
            submission.description, "description",
            "Type, title, and description are required",
        )
        _require_text(submission.submitted_by, "submitted_by", "Submitter is required")
        if submission.affected_entity is None:
            raise ValidationError("Affected entity is required", field="affected_entity")
        ensure_target_matches(change_type, submission.affected_entity)

    # ------------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------------

    def approve(
        self,
        request_id: int,
        actor: str,
        comments: str = "",
        *,
        bulk_action_id: str | None = None,
    ) -> ApprovalRequest:
        """Approve a pending request, settling its wallet hold if any."""
        _require_text(actor, "actor", "Approver is required")
        with LogContext.bind(
            request_id=request_id, actor_id=actor, bulk_action_id=bulk_action_id,
        ):
            with self._locks.hold(request_id):
                request = self._load_pending(request_id, RequestStatus.APPROVED)
                adjustment = None
                if request.wallet_impact is not None:
                    adjustment = self._ledger.settle(request_id, request.wallet_impact)
                decided = request.with_decision(
                    RequestStatus.APPROVED,
                    actor,
                    self._clock.now(),
                    comments or "",
                    wallet_adjustment=adjustment,
                    bulk_action_id=bulk_action_id,
                )
                self._persist_decision(decided, hold_resolved=adjustment is not None)

            logger.info(
                "approval_request_approved",
                extra={
                    "change_type": decided.change_type.value,
                    "transaction_id": adjustment.transaction_id if adjustment else None,
                },
            )
            self._emit_decided(decided)
            self._dispatch_execution(decided)
        return decided

    def reject(
        self,
        request_id: int,
        actor: str,
        comments: str,
        *,
        bulk_action_id: str | None = None,
    ) -> ApprovalRequest:
        """Reject a pending request with a reason, releasing its hold if any."""
        _require_text(actor, "actor", "Approver is required")
        with LogContext.bind(
            request_id=request_id, actor_id=actor, bulk_action_id=bulk_action_id,
        ):
            with self._locks.hold(request_id):
                request = self._load_pending(request_id, RequestStatus.REJECTED)
                _require_text(comments, "comments", "Rejection comments are required")
                released = None
                if request.wallet_impact is not None:
                    released = self._ledger.release(request_id)
                decided = request.with_decision(
                    RequestStatus.REJECTED,
                    actor,
                    self._clock.now(),
                    comments,
                    bulk_action_id=bulk_action_id,
                )
                self._persist_decision(decided, hold_resolved=released is not None)

            logger.info(
                "approval_request_rejected",
                extra={"change_type": decided.change_type.value},
            )
            self._emit_decided(decided)
        return decided

    def _load_pending(self, request_id: int, target: RequestStatus) -> ApprovalRequest:
        request = self._repository.get(request_id)
        if request is None:
            raise NotFoundError(request_id)
        if not can_transition(request.status, target):
            attempted = "approve" if target is RequestStatus.APPROVED else "reject"
            raise InvalidStateError(request_id, request.status.value, attempted)
        return request

    def _persist_decision(self, decided: ApprovalRequest, hold_resolved: bool) -> None:
        # On failure the request is still pending, so its hold goes back
        # to active and any adjustment is dropped.
        try:
            self._repository.update(decided)
        except Exception:
            if hold_resolved:
                self._ledger.reopen(decided.request_id)
            logger.error(
                "decision_persist_failed",
                extra={"status": decided.status.value},
                exc_info=True,
            )
            raise

    def _emit_decided(self, decided: ApprovalRequest) -> None:
        self._events.notify(EventType.REQUEST_DECIDED, {
            "request_id": decided.request_id,
            "status": decided.status.value,
            "decided_by": decided.decided_by,
            "comments": decided.decision_comments,
            "wallet_adjustment": _wallet_adjustment_payload(decided),
            "bulk_action_id": decided.bulk_action_id,
        })

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def _dispatch_execution(self, request: ApprovalRequest) -> None:
        if self._execution_pool is None:
            self._apply_change(request)
        else:
            self._execution_pool.submit(self._apply_change, request)

    def _apply_change(self, request: ApprovalRequest) -> None:
        try:
            self._executor.apply(
                request.change_type,
                request.affected_entity,
                request.wallet_adjustment,
            )
        except Exception as exc:
            error = ExecutionError(request.request_id, request.change_type.value, str(exc))
            error.__cause__ = exc
            report = ExecutionReport(
                request_id=request.request_id,
                change_type=request.change_type,
                error=error,
                failed_at=self._clock.now(),
            )
            with self._failures_lock:
                self._execution_failures.append(report)
            logger.error(
                "change_execution_failed",
                extra={
                    "request_id": request.request_id,
                    "change_type": request.change_type.value,
                },
                exc_info=error,
            )
            self._events.notify(EventType.CHANGE_EXECUTION_FAILED, {
                "request_id": request.request_id,
                "type": request.change_type.value,
                "reason": str(exc),
                "code": error.code,
            })
            return

        logger.info(
            "change_executed",
            extra={
                "request_id": request.request_id,
                "change_type": request.change_type.value,
            },
        )

    def execution_failures(self) -> tuple[ExecutionReport, ...]:
        """Approved requests whose change could not be applied."""
        with self._failures_lock:
            return tuple(self._execution_failures)

    # ------------------------------------------------------------------
    # Comments
    # ------------------------------------------------------------------

    def add_comment(self, request_id: int, author: str, text: str) -> Comment:
        """Append a comment in any status. Comments never change status."""
        _require_text(author, "author", "Comment author is required")
        with LogContext.bind(request_id=request_id, actor_id=author):
            with self._locks.hold(request_id):
                request = self._repository.get(request_id)
                if request is None:
                    raise NotFoundError(request_id)
                _require_text(text, "comment", "Comment is required")
                comment = Comment(
                    comment_id=len(request.comments) + 1,
                    author=author,
                    created_at=self._clock.now(),
                    text=text.strip(),
                )
                self._repository.update(request.with_comment(comment))

            logger.info(
                "approval_comment_added",
                extra={"comment_id": comment.comment_id},
            )
            self._events.notify(EventType.COMMENT_ADDED, {
                "request_id": request_id,
                "comment_id": comment.comment_id,
                "author": author,
                "text": comment.text,
                "created_at": comment.created_at.isoformat(),
            })
        return comment

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, request_id: int) -> ApprovalRequest:
        request = self._repository.get(request_id)
        if request is None:
            raise NotFoundError(request_id)
        return request
