"""
Pytest fixtures for the approval kernel test suite.

Provides:
- Deterministic clock, default policy, ledger, store, selector, bulk processor
- Event recorder subscribed to the store's NotificationService
- Submission builders live in tests/builders.py
- In-memory SQLite session factory for the durable repository
- Structured log capture
"""

import json
import logging
from datetime import datetime, timezone
from io import StringIO

import pytest

from approval_kernel.db.engine import (
    create_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from approval_kernel.domain.clock import DeterministicClock
from approval_kernel.domain.policy import GovernancePolicy
from approval_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from approval_kernel.selectors.approval_selector import ApprovalSelector
from approval_kernel.services.approval_store import ApprovalRequestStore
from approval_kernel.services.bulk_decision_processor import BulkDecisionProcessor
from approval_kernel.services.notification_service import NotificationService
from approval_kernel.services.repository import InMemoryApprovalRepository
from approval_kernel.services.wallet_hold_ledger import WalletHoldLedger


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture approval_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, store):
            store.submit(...)
            logs = captured_logs()
            assert any(r["message"] == "approval_request_submitted" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("approval_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Kernel fixtures
# =============================================================================


@pytest.fixture
def deterministic_clock():
    return DeterministicClock(datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc))


@pytest.fixture
def policy():
    return GovernancePolicy.default()


@pytest.fixture
def ledger(deterministic_clock, policy):
    return WalletHoldLedger(clock=deterministic_clock, policy=policy.wallet)


@pytest.fixture
def notifications():
    return NotificationService()


class EventRecorder:
    """Listener collecting (event_type, payload) pairs."""

    def __init__(self):
        self.events = []

    def __call__(self, event_type, payload):
        self.events.append((event_type, dict(payload)))

    def of_type(self, event_type):
        return [payload for et, payload in self.events if et is event_type]


@pytest.fixture
def events(notifications):
    recorder = EventRecorder()
    notifications.subscribe(recorder)
    return recorder


@pytest.fixture
def repository():
    return InMemoryApprovalRepository()


@pytest.fixture
def store(repository, ledger, notifications, deterministic_clock, policy):
    return ApprovalRequestStore(
        repository=repository,
        ledger=ledger,
        event_sink=notifications,
        clock=deterministic_clock,
        policy=policy,
    )


@pytest.fixture
def selector(store):
    return ApprovalSelector.for_store(store)


@pytest.fixture
def bulk_processor(store):
    return BulkDecisionProcessor(store)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def sqlite_session_factory():
    """Fresh in-memory SQLite database with all tables created."""
    engine = init_engine_from_url("sqlite://")
    create_tables(engine)
    yield get_session_factory()
    reset_engine()
