"""
Tests for ApprovalRequestStore -- approval request lifecycle.

Covers:
- submit(): derived impact, priority, routing, wallet hold; validation;
  hold released when persistence fails
- decision persistence failure: request stays pending, hold reopened,
  no orphan wallet adjustment; a retry settles normally
- approve(): settles the hold into a wallet adjustment; terminal guard
- reject(): requires a reason, releases the hold; terminal guard
- add_comment(): any status, append-only, never changes status
- change execution: failures recorded and emitted, approval stands
- events and structured logs for every state change
"""

from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal

import pytest

from approval_kernel.domain.approval import (
    AdjustmentType,
    HoldStatus,
    Priority,
    RequestStatus,
    SensitivityLevel,
)
from approval_kernel.domain.changes import ChangeType
from approval_kernel.domain.events import EventType
from approval_kernel.exceptions import (
    ExecutionError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from approval_kernel.services.approval_store import ApprovalRequestStore
from approval_kernel.services.repository import InMemoryApprovalRepository

from builders import (
    APPROVER,
    SUBMITTER,
    bulk_discount,
    other_change,
    price_change,
    product_removal,
    write_off,
)


class RecordingExecutor:
    def __init__(self, fail_with=None):
        self.applied = []
        self.fail_with = fail_with

    def apply(self, change_type, affected_entity, wallet_adjustment):
        if self.fail_with is not None:
            raise self.fail_with
        self.applied.append((change_type, affected_entity, wallet_adjustment))


class FailingAddRepository(InMemoryApprovalRepository):
    def add(self, request):
        raise RuntimeError("disk full")


class FailingUpdateRepository(InMemoryApprovalRepository):
    """Accepts new requests; the next ``failures`` updates raise."""

    def __init__(self, failures=1):
        super().__init__()
        self.failures = failures

    def update(self, request):
        if self.failures > 0:
            self.failures -= 1
            raise RuntimeError("disk full")
        super().update(request)


# ---------------------------------------------------------------------------
# Submission
# ---------------------------------------------------------------------------


class TestSubmit:
    def test_price_change_derives_everything(self, store, deterministic_clock):
        request = store.submit(price_change())

        assert request.request_id == 1
        assert request.status is RequestStatus.PENDING
        assert request.submitted_at == deterministic_clock.now()
        assert request.submitted_by == SUBMITTER
        assert request.priority is Priority.URGENT
        assert request.sensitivity_level is SensitivityLevel.HIGH
        assert request.required_roles == ("manager", "admin", "senior_manager")
        assert request.business_impact.revenue_impact == Decimal("2000")
        assert request.wallet_impact.hold_amount == Decimal("200")
        assert request.requires_hold
        assert request.decided_by is None

    def test_material_price_change_creates_hold(self, store):
        request = store.submit(price_change())
        hold = store.ledger.get_active_hold(request.request_id)
        assert hold is not None
        assert hold.hold_amount == Decimal("200")
        assert hold.status is HoldStatus.HOLDING

    def test_immaterial_price_change_has_no_hold(self, store):
        request = store.submit(price_change(current="100", proposed="110", stock=5))
        assert request.wallet_impact is not None
        assert not request.requires_hold
        assert request.wallet_impact.hold_amount == Decimal("0")
        assert store.ledger.get_active_hold(request.request_id) is None

    @pytest.mark.parametrize("builder", [bulk_discount, product_removal, write_off, other_change])
    def test_non_financial_types_have_no_wallet_impact(self, store, builder):
        request = store.submit(builder())
        assert request.wallet_impact is None
        assert store.ledger.summary().active_hold_count == 0

    def test_ids_increase(self, store):
        ids = [store.submit(other_change()).request_id for _ in range(3)]
        assert ids == [1, 2, 3]

    def test_request_is_stored(self, store):
        request = store.submit(bulk_discount())
        assert store.get(request.request_id) == request

    def test_blank_title_rejected(self, store):
        submission = price_change(title="   ")
        with pytest.raises(ValidationError, match="Type, title, and description are required"):
            store.submit(submission)
        assert store.repository.list_all() == []

    def test_blank_submitter_rejected(self, store):
        with pytest.raises(ValidationError, match="Submitter is required"):
            store.submit(price_change(submitted_by=""))

    def test_unknown_type_rejected(self, store):
        from dataclasses import replace

        with pytest.raises(ValidationError, match="Unknown change type"):
            store.submit(replace(price_change(), change_type="bulk_action"))

    def test_mismatched_entity_rejected(self, store):
        from dataclasses import replace

        submission = replace(price_change(), change_type=ChangeType.BULK_DISCOUNT)
        with pytest.raises(ValidationError):
            store.submit(submission)
        assert store.ledger.summary().active_hold_count == 0

    def test_persist_failure_releases_hold(self, ledger, deterministic_clock, captured_logs):
        store = ApprovalRequestStore(
            repository=FailingAddRepository(),
            ledger=ledger,
            clock=deterministic_clock,
        )
        with pytest.raises(RuntimeError, match="disk full"):
            store.submit(price_change())

        assert ledger.summary().active_hold_count == 0
        assert ledger.closed_holds()[0].status is HoldStatus.RELEASED
        assert any(r["message"] == "approval_request_persist_failed" for r in captured_logs())

    def test_submitted_event(self, store, events):
        request = store.submit(price_change())
        (payload,) = events.of_type(EventType.REQUEST_SUBMITTED)
        assert payload == {
            "request_id": request.request_id,
            "type": "price_change",
            "title": "Reprice widget",
            "priority": "urgent",
            "submitted_by": SUBMITTER,
            "required_roles": ["manager", "admin", "senior_manager"],
            "requires_hold": True,
        }

    def test_submitted_log_carries_context(self, store, captured_logs):
        store.submit(price_change())
        (record,) = [r for r in captured_logs() if r["message"] == "approval_request_submitted"]
        assert record["request_id"] == "1"
        assert record["actor_id"] == SUBMITTER
        assert record["priority"] == "urgent"
        assert record["requires_hold"] is True


# ---------------------------------------------------------------------------
# Decisions
# ---------------------------------------------------------------------------


class TestApprove:
    def test_approve_settles_hold(self, store, deterministic_clock):
        request = store.submit(price_change())
        deterministic_clock.advance(hours=2)

        decided = store.approve(request.request_id, APPROVER, "Looks right")

        assert decided.status is RequestStatus.APPROVED
        assert decided.decided_by == APPROVER
        assert decided.decided_at == deterministic_clock.now()
        assert decided.decision_comments == "Looks right"
        adjustment = decided.wallet_adjustment
        assert adjustment.adjustment_amount == Decimal("2000")
        assert adjustment.hold_amount == Decimal("200")
        assert adjustment.adjustment_type is AdjustmentType.INCREASE
        assert adjustment.transaction_id.startswith("APP_")
        assert store.ledger.get_active_hold(request.request_id) is None
        assert store.get(request.request_id) == decided

    def test_approve_without_hold_has_no_adjustment(self, store):
        request = store.submit(bulk_discount())
        decided = store.approve(request.request_id, APPROVER)
        assert decided.wallet_adjustment is None
        assert decided.decision_comments == ""

    def test_approve_unknown_request(self, store):
        with pytest.raises(NotFoundError) as exc_info:
            store.approve(99, APPROVER)
        assert exc_info.value.code == "REQUEST_NOT_FOUND"

    def test_blank_approver_rejected(self, store):
        request = store.submit(other_change())
        with pytest.raises(ValidationError, match="Approver is required"):
            store.approve(request.request_id, " ")
        assert store.get(request.request_id).is_pending

    def test_second_approval_rejected(self, store):
        request = store.submit(price_change())
        store.approve(request.request_id, APPROVER)

        with pytest.raises(InvalidStateError) as exc_info:
            store.approve(request.request_id, "manager_2")

        assert exc_info.value.current_status == "approved"
        assert exc_info.value.attempted == "approve"
        assert len(store.ledger.adjustments_for(request.request_id)) == 1
        assert store.get(request.request_id).decided_by == APPROVER

    def test_reject_after_approve_rejected(self, store):
        request = store.submit(price_change())
        store.approve(request.request_id, APPROVER)
        with pytest.raises(InvalidStateError):
            store.reject(request.request_id, APPROVER, "Changed my mind")

    def test_decided_event(self, store, events):
        request = store.submit(price_change())
        decided = store.approve(request.request_id, APPROVER, "ok")

        (payload,) = events.of_type(EventType.REQUEST_DECIDED)
        assert payload["request_id"] == request.request_id
        assert payload["status"] == "approved"
        assert payload["decided_by"] == APPROVER
        assert payload["comments"] == "ok"
        assert payload["bulk_action_id"] is None
        assert payload["wallet_adjustment"]["adjustment_amount"] == "2000"
        assert payload["wallet_adjustment"]["transaction_id"] == (
            decided.wallet_adjustment.transaction_id
        )

    def test_bulk_action_id_recorded(self, store):
        request = store.submit(other_change())
        decided = store.approve(request.request_id, APPROVER, bulk_action_id="BULK_X")
        assert decided.bulk_action_id == "BULK_X"


class TestReject:
    def test_reject_releases_hold(self, store):
        request = store.submit(price_change())
        decided = store.reject(request.request_id, APPROVER, "Too aggressive")

        assert decided.status is RequestStatus.REJECTED
        assert decided.decision_comments == "Too aggressive"
        assert decided.wallet_adjustment is None
        assert store.ledger.get_active_hold(request.request_id) is None
        assert store.ledger.adjustments_for(request.request_id) == ()
        assert store.ledger.closed_holds()[0].status is HoldStatus.RELEASED

    @pytest.mark.parametrize("comments", ["", "   ", None])
    def test_reason_required(self, store, comments):
        request = store.submit(price_change())
        with pytest.raises(ValidationError, match="Rejection comments are required"):
            store.reject(request.request_id, APPROVER, comments)
        assert store.get(request.request_id).is_pending
        assert store.ledger.get_active_hold(request.request_id) is not None

    def test_decided_request_reports_state_before_reason(self, store):
        request = store.submit(other_change())
        store.reject(request.request_id, APPROVER, "no")
        with pytest.raises(InvalidStateError):
            store.reject(request.request_id, APPROVER, "")

    def test_unknown_request(self, store):
        with pytest.raises(NotFoundError):
            store.reject(42, APPROVER, "no")


class TestDecisionPersistFailure:
    @pytest.fixture
    def failing_store(self, ledger, deterministic_clock):
        return ApprovalRequestStore(
            repository=FailingUpdateRepository(),
            ledger=ledger,
            clock=deterministic_clock,
        )

    def test_approve_failure_reopens_hold(self, failing_store, captured_logs):
        request = failing_store.submit(price_change())
        hold = failing_store.ledger.get_active_hold(request.request_id)

        with pytest.raises(RuntimeError, match="disk full"):
            failing_store.approve(request.request_id, APPROVER)

        assert failing_store.get(request.request_id).is_pending
        assert failing_store.ledger.get_active_hold(request.request_id) == hold
        assert failing_store.ledger.adjustments_for(request.request_id) == ()
        assert failing_store.ledger.closed_holds() == ()
        messages = [r["message"] for r in captured_logs()]
        assert "wallet_hold_reopened" in messages
        assert "decision_persist_failed" in messages

    def test_approve_retry_settles_once(self, failing_store):
        request = failing_store.submit(price_change())
        with pytest.raises(RuntimeError):
            failing_store.approve(request.request_id, APPROVER)

        decided = failing_store.approve(request.request_id, APPROVER)

        assert decided.wallet_adjustment is not None
        assert failing_store.ledger.adjustments_for(request.request_id) == (
            decided.wallet_adjustment,
        )
        assert failing_store.get(request.request_id) == decided

    def test_reject_failure_reopens_hold(self, failing_store):
        request = failing_store.submit(price_change())

        with pytest.raises(RuntimeError, match="disk full"):
            failing_store.reject(request.request_id, APPROVER, "no")

        assert failing_store.get(request.request_id).is_pending
        assert failing_store.ledger.get_active_hold(request.request_id) is not None
        assert failing_store.ledger.closed_holds() == ()

    def test_failure_without_hold_leaves_ledger_untouched(self, failing_store, captured_logs):
        request = failing_store.submit(bulk_discount())

        with pytest.raises(RuntimeError):
            failing_store.approve(request.request_id, APPROVER)

        assert failing_store.get(request.request_id).is_pending
        assert failing_store.ledger.summary().active_hold_count == 0
        assert "wallet_hold_reopened" not in [r["message"] for r in captured_logs()]


# ---------------------------------------------------------------------------
# Change execution
# ---------------------------------------------------------------------------


class TestChangeExecution:
    def test_executor_receives_approved_change(self, repository, ledger, deterministic_clock):
        executor = RecordingExecutor()
        store = ApprovalRequestStore(
            repository=repository, ledger=ledger, change_executor=executor,
            clock=deterministic_clock,
        )
        request = store.submit(price_change())
        decided = store.approve(request.request_id, APPROVER)

        ((change_type, entity, adjustment),) = executor.applied
        assert change_type is ChangeType.PRICE_CHANGE
        assert entity == request.affected_entity
        assert adjustment == decided.wallet_adjustment

    def test_rejection_is_not_executed(self, repository, ledger, deterministic_clock):
        executor = RecordingExecutor()
        store = ApprovalRequestStore(
            repository=repository, ledger=ledger, change_executor=executor,
            clock=deterministic_clock,
        )
        request = store.submit(price_change())
        store.reject(request.request_id, APPROVER, "no")
        assert executor.applied == []

    def test_failure_keeps_approval(
        self, repository, ledger, notifications, events, deterministic_clock, captured_logs,
    ):
        store = ApprovalRequestStore(
            repository=repository,
            ledger=ledger,
            event_sink=notifications,
            change_executor=RecordingExecutor(fail_with=RuntimeError("catalog offline")),
            clock=deterministic_clock,
        )
        request = store.submit(price_change())
        decided = store.approve(request.request_id, APPROVER)

        assert decided.status is RequestStatus.APPROVED
        assert store.get(request.request_id).status is RequestStatus.APPROVED
        (report,) = store.execution_failures()
        assert report.request_id == request.request_id
        assert isinstance(report.error, ExecutionError)
        assert report.error.reason == "catalog offline"
        assert isinstance(report.error.__cause__, RuntimeError)

        (payload,) = events.of_type(EventType.CHANGE_EXECUTION_FAILED)
        assert payload["reason"] == "catalog offline"
        assert payload["code"] == "CHANGE_EXECUTION_FAILED"

        failures = [r for r in captured_logs() if r["message"] == "change_execution_failed"]
        assert failures and failures[0]["exc_code"] == "CHANGE_EXECUTION_FAILED"

    def test_execution_on_pool(self, repository, ledger, deterministic_clock):
        executor = RecordingExecutor()
        with ThreadPoolExecutor(max_workers=1) as pool:
            store = ApprovalRequestStore(
                repository=repository, ledger=ledger, change_executor=executor,
                clock=deterministic_clock, execution_pool=pool,
            )
            request = store.submit(other_change())
            store.approve(request.request_id, APPROVER)
        assert len(executor.applied) == 1

    def test_default_executor_logs_dispatch(self, store, captured_logs):
        request = store.submit(write_off())
        store.approve(request.request_id, APPROVER)
        (record,) = [r for r in captured_logs() if r["message"] == "approved_change_dispatched"]
        assert record["action"] == "write_off_inventory"
        assert record["entity_id"] == "inv-3"


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------


class TestComments:
    def test_comment_appended(self, store, deterministic_clock):
        request = store.submit(other_change())
        comment = store.add_comment(request.request_id, "analyst", "  Looks fine  ")

        assert comment.comment_id == 1
        assert comment.text == "Looks fine"
        assert comment.created_at == deterministic_clock.now()
        assert store.get(request.request_id).comments == (comment,)

    def test_comment_allowed_after_decision(self, store):
        request = store.submit(other_change())
        store.reject(request.request_id, APPROVER, "no")
        store.add_comment(request.request_id, SUBMITTER, "Why?")
        store.add_comment(request.request_id, APPROVER, "Out of scope")

        stored = store.get(request.request_id)
        assert stored.status is RequestStatus.REJECTED
        assert [c.comment_id for c in stored.comments] == [1, 2]
        assert stored.decision_comments == "no"

    def test_blank_comment_rejected(self, store):
        request = store.submit(other_change())
        with pytest.raises(ValidationError, match="Comment is required"):
            store.add_comment(request.request_id, "analyst", "   ")

    def test_blank_author_rejected(self, store):
        request = store.submit(other_change())
        with pytest.raises(ValidationError, match="Comment author is required"):
            store.add_comment(request.request_id, "", "text")

    def test_unknown_request(self, store):
        with pytest.raises(NotFoundError):
            store.add_comment(5, "analyst", "text")

    def test_comment_event(self, store, events):
        request = store.submit(other_change())
        store.add_comment(request.request_id, "analyst", "hi")
        (payload,) = events.of_type(EventType.COMMENT_ADDED)
        assert payload["request_id"] == request.request_id
        assert payload["author"] == "analyst"
        assert payload["text"] == "hi"


class TestGet:
    def test_unknown_request(self, store):
        with pytest.raises(NotFoundError):
            store.get(1)
