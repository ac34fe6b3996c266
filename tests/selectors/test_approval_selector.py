"""
Tests for ApprovalSelector -- the read side of the approval workflow.
"""

from datetime import timedelta
from decimal import Decimal

import pytest

from approval_kernel.domain.approval import Priority, RequestStatus
from approval_kernel.domain.audit_trail import AuditAction
from approval_kernel.domain.changes import ChangeType
from approval_kernel.domain.statistics import StatisticsWindow
from approval_kernel.exceptions import NotFoundError, ValidationError
from approval_kernel.selectors.approval_selector import (
    ApprovalSelector,
    HistoryFilter,
    PendingFilter,
)

from builders import (
    APPROVER,
    bulk_discount,
    other_change,
    price_change,
    product_removal,
    write_off,
)


class TestGetRequest:
    def test_found(self, store, selector):
        request = store.submit(other_change())
        assert selector.get_request(request.request_id) == request

    def test_missing(self, selector):
        with pytest.raises(NotFoundError):
            selector.get_request(404)

    def test_audit_trail(self, store, selector):
        request = store.submit(price_change())
        trail = selector.get_audit_trail(request.request_id)
        assert trail.first_action is AuditAction.SUBMITTED
        assert trail.total_events == 2

    def test_audit_trail_missing(self, selector):
        with pytest.raises(NotFoundError):
            selector.get_audit_trail(404)


class TestPendingQueue:
    def test_priority_then_newest(self, store, selector, deterministic_clock):
        low = store.submit(other_change())
        deterministic_clock.tick()
        urgent_old = store.submit(price_change())
        deterministic_clock.tick()
        high = store.submit(bulk_discount())
        deterministic_clock.tick()
        urgent_new = store.submit(price_change(entity_id="p-2"))

        view = selector.get_pending()

        assert [r.request_id for r in view.requests] == [
            urgent_new.request_id,
            urgent_old.request_id,
            high.request_id,
            low.request_id,
        ]
        assert view.total == 4
        assert view.urgent_count == 2

    def test_same_instant_falls_back_to_id(self, store, selector):
        first = store.submit(other_change())
        second = store.submit(other_change())
        ids = [r.request_id for r in selector.get_pending().requests]
        assert ids == [second.request_id, first.request_id]

    def test_decided_requests_leave_the_queue(self, store, selector):
        request = store.submit(price_change())
        store.approve(request.request_id, APPROVER)
        assert selector.get_pending().total == 0

    def test_filters(self, store, selector):
        store.submit(price_change())
        store.submit(bulk_discount())
        store.submit(product_removal())

        by_type = selector.get_pending(PendingFilter(change_type=ChangeType.BULK_DISCOUNT))
        by_priority = selector.get_pending(PendingFilter(priority=Priority.HIGH))

        assert [r.change_type for r in by_type.requests] == [ChangeType.BULK_DISCOUNT]
        assert by_priority.total == 2
        assert by_priority.urgent_count == 0


class TestListings:
    def test_by_type_includes_decided(self, store, selector, deterministic_clock):
        first = store.submit(write_off())
        deterministic_clock.tick()
        second = store.submit(write_off(total_value="12000"))
        store.reject(first.request_id, APPROVER, "no")

        result = selector.get_by_type(ChangeType.INVENTORY_WRITE_OFF)

        assert [r.request_id for r in result] == [second.request_id, first.request_id]

    def test_by_priority(self, store, selector):
        store.submit(other_change())
        urgent = store.submit(price_change())
        assert [r.request_id for r in selector.get_by_priority(Priority.URGENT)] == [
            urgent.request_id,
        ]

    def test_my_submissions(self, store, selector):
        mine = store.submit(other_change(submitted_by="vendor_a"))
        store.submit(other_change(submitted_by="vendor_b"))
        store.approve(mine.request_id, APPROVER)

        result = selector.get_my_submissions("vendor_a")

        assert [r.request_id for r in result] == [mine.request_id]
        assert result[0].status is RequestStatus.APPROVED
        assert selector.get_my_submissions("nobody") == ()


class TestHistory:
    @pytest.fixture
    def decided(self, store, deterministic_clock):
        a = store.submit(price_change())
        b = store.submit(bulk_discount())
        c = store.submit(other_change())
        store.submit(write_off())
        deterministic_clock.advance(hours=1)
        store.approve(a.request_id, "Manager_Alice")
        deterministic_clock.advance(hours=1)
        store.reject(b.request_id, "admin_bob", "no")
        deterministic_clock.advance(hours=1)
        store.approve(c.request_id, "manager_carol")
        return a, b, c

    def test_newest_decision_first(self, selector, decided):
        a, b, c = decided
        view = selector.get_history()
        assert [r.request_id for r in view.requests] == [c.request_id, b.request_id, a.request_id]
        assert view.total == 3
        assert view.approved_count == 2
        assert view.rejected_count == 1

    def test_status_filter(self, selector, decided):
        view = selector.get_history(HistoryFilter(status=RequestStatus.REJECTED))
        assert view.total == 1
        assert view.approved_count == 0

    def test_pending_status_rejected(self, selector):
        with pytest.raises(ValidationError):
            selector.get_history(HistoryFilter(status=RequestStatus.PENDING))

    def test_approver_substring_case_insensitive(self, selector, decided):
        a, _, c = decided
        view = selector.get_history(HistoryFilter(approver="MANAGER"))
        assert {r.request_id for r in view.requests} == {a.request_id, c.request_id}

    def test_date_range_inclusive(self, selector, decided, deterministic_clock):
        a, b, _ = decided
        end = deterministic_clock.now() - timedelta(hours=1)
        start = end - timedelta(hours=1)
        view = selector.get_history(HistoryFilter(start=start, end=end))
        assert {r.request_id for r in view.requests} == {a.request_id, b.request_id}

    def test_limit_applies_to_rows_only(self, selector, decided):
        view = selector.get_history(HistoryFilter(limit=1))
        assert len(view.requests) == 1
        assert view.total == 3

    def test_type_filter(self, selector, decided):
        view = selector.get_history(HistoryFilter(change_type=ChangeType.OTHER))
        assert view.total == 1


class TestDerivedViews:
    def test_statistics(self, store, selector):
        request = store.submit(price_change())
        store.approve(request.request_id, APPROVER)
        stats = selector.get_statistics("today")
        assert stats.window is StatisticsWindow.TODAY
        assert stats.overview.approved == 1
        assert stats.overview.approval_rate == Decimal("100.00")

    def test_unknown_window(self, selector):
        with pytest.raises(ValidationError, match="Unknown statistics window"):
            selector.get_statistics("fortnight")

    def test_wallet_hold_summary(self, store, selector):
        held = store.submit(price_change())
        settled = store.submit(price_change(entity_id="p-2"))
        store.approve(settled.request_id, APPROVER)

        summary = selector.get_wallet_hold_summary()

        assert [h.request_id for h in summary.holds] == [held.request_id]
        assert summary.total_held == Decimal("200")
        assert [a.request_id for a in summary.recent_adjustments] == [settled.request_id]

    def test_check_requires_approval(self, selector):
        submission = price_change(current="100", proposed="125")
        check = selector.check_requires_approval(
            submission.change_type, submission.affected_entity,
        )
        assert check.requires_approval
        assert check.reason == "Price change of 25.0% exceeds threshold of 20%"

    def test_for_store_shares_collaborators(self, store):
        selector = ApprovalSelector.for_store(store)
        assert selector.repository is store.repository
        assert selector.ledger is store.ledger
        assert selector.clock is store.clock
        assert selector.policy is store.policy
