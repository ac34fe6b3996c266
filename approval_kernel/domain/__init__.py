"""Pure domain layer for the approval kernel. ZERO I/O."""

from approval_kernel.domain.approval import (
    REQUEST_TRANSITIONS,
    TERMINAL_REQUEST_STATUSES,
    AdjustmentStatus,
    AdjustmentType,
    ApprovalRequest,
    BusinessImpact,
    Comment,
    CustomerImpact,
    HoldStatus,
    Priority,
    RequestStatus,
    Sensitivity,
    SensitivityLevel,
    Submission,
    WalletAdjustment,
    WalletHold,
    WalletImpact,
    can_transition,
)
from approval_kernel.domain.audit_trail import (
    AuditAction,
    AuditTrail,
    AuditTrailEvent,
    build_audit_trail,
)
from approval_kernel.domain.changes import (
    AffectedEntity,
    BulkDiscountTarget,
    CategorySnapshot,
    ChangeType,
    DiscountTerms,
    GenericTarget,
    InventoryWriteOffTarget,
    PriceChangeTarget,
    ProductPricing,
    ProductRemovalTarget,
    RemovalPlan,
    StockSnapshot,
    WriteOffPlan,
    affected_entity_from_payload,
    affected_entity_to_payload,
)
from approval_kernel.domain.clock import (
    Clock,
    DeterministicClock,
    SequentialClock,
    SystemClock,
)
from approval_kernel.domain.events import ChangeExecutor, EventSink, EventType
from approval_kernel.domain.impact import calculate_business_impact
from approval_kernel.domain.policy import (
    GovernancePolicy,
    ImpactHeuristics,
    SensitivityThresholds,
    TierThresholds,
    WalletHoldPolicy,
)
from approval_kernel.domain.routing import required_approvers
from approval_kernel.domain.sensitivity import (
    ApprovalCheck,
    check_requires_approval,
    classify,
)
from approval_kernel.domain.statistics import (
    ApprovalStatistics,
    StatisticsOverview,
    StatisticsWindow,
    TrendBucket,
    aggregate_statistics,
)

__all__ = [
    "AdjustmentStatus",
    "AdjustmentType",
    "AffectedEntity",
    "ApprovalCheck",
    "ApprovalRequest",
    "ApprovalStatistics",
    "AuditAction",
    "AuditTrail",
    "AuditTrailEvent",
    "BulkDiscountTarget",
    "BusinessImpact",
    "CategorySnapshot",
    "ChangeExecutor",
    "ChangeType",
    "Clock",
    "Comment",
    "CustomerImpact",
    "DeterministicClock",
    "DiscountTerms",
    "EventSink",
    "EventType",
    "GenericTarget",
    "GovernancePolicy",
    "HoldStatus",
    "ImpactHeuristics",
    "InventoryWriteOffTarget",
    "PriceChangeTarget",
    "Priority",
    "ProductPricing",
    "ProductRemovalTarget",
    "REQUEST_TRANSITIONS",
    "RemovalPlan",
    "RequestStatus",
    "Sensitivity",
    "SensitivityLevel",
    "SensitivityThresholds",
    "SequentialClock",
    "StatisticsOverview",
    "StatisticsWindow",
    "StockSnapshot",
    "Submission",
    "SystemClock",
    "TERMINAL_REQUEST_STATUSES",
    "TierThresholds",
    "TrendBucket",
    "WalletAdjustment",
    "WalletHold",
    "WalletHoldPolicy",
    "WalletImpact",
    "WriteOffPlan",
    "aggregate_statistics",
    "affected_entity_from_payload",
    "affected_entity_to_payload",
    "build_audit_trail",
    "calculate_business_impact",
    "can_transition",
    "check_requires_approval",
    "classify",
    "required_approvers",
]
