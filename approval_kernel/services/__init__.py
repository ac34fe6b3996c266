"""Services for the approval kernel (write side)."""

from approval_kernel.services.approval_store import ApprovalRequestStore, ExecutionReport
from approval_kernel.services.bulk_decision_processor import (
    BulkDecisionProcessor,
    BulkDecisionResult,
    BulkFailure,
    BulkSuccess,
    BulkSummary,
)
from approval_kernel.services.change_executor import LoggingChangeExecutor
from approval_kernel.services.locking import KeyedLockRegistry
from approval_kernel.services.notification_service import NotificationService
from approval_kernel.services.repository import (
    ApprovalRepository,
    InMemoryApprovalRepository,
)
from approval_kernel.services.sequence_service import SequenceService
from approval_kernel.services.sql_repository import SqlAlchemyApprovalRepository
from approval_kernel.services.wallet_hold_ledger import (
    WalletHoldLedger,
    WalletHoldSummary,
)

__all__ = [
    "ApprovalRepository",
    "ApprovalRequestStore",
    "BulkDecisionProcessor",
    "BulkDecisionResult",
    "BulkFailure",
    "BulkSuccess",
    "BulkSummary",
    "ExecutionReport",
    "InMemoryApprovalRepository",
    "KeyedLockRegistry",
    "LoggingChangeExecutor",
    "NotificationService",
    "SequenceService",
    "SqlAlchemyApprovalRepository",
    "WalletHoldLedger",
    "WalletHoldSummary",
]
