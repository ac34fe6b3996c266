"""
SensitivityClassifier (``approval_kernel.domain.sensitivity``).

Responsibility
--------------
Maps a change type and its affected entity to a ``Sensitivity`` (level +
priority) using the per-type cut-offs in ``SensitivityThresholds``, and
offers a dry-run ``check_requires_approval`` so clients can warn before
submitting.

Invariants enforced
-------------------
* Both paths read the same ``SensitivityThresholds`` table.
* Cut-offs are strict (``>``): a 20% price change is low/medium, 20.01%
  is medium/high.
* Unknown or unmeasured change types classify as low/medium; nothing is
  escalated silently.
* Monotonic: a larger measure never yields a lower priority.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Callable

from approval_kernel.domain.approval import (
    BusinessImpact,
    Priority,
    Sensitivity,
    SensitivityLevel,
)
from approval_kernel.domain.changes import (
    AffectedEntity,
    BulkDiscountTarget,
    ChangeType,
    InventoryWriteOffTarget,
    PriceChangeTarget,
    ensure_target_matches,
)
from approval_kernel.domain.impact import calculate_business_impact
from approval_kernel.domain.policy import (
    ImpactHeuristics,
    SensitivityThresholds,
    TierThresholds,
)
from approval_kernel.domain.values import percent_change, round_tenth

HIGH_SENSITIVITY = Sensitivity(SensitivityLevel.HIGH, Priority.URGENT)
MEDIUM_SENSITIVITY = Sensitivity(SensitivityLevel.MEDIUM, Priority.HIGH)
LOW_SENSITIVITY = Sensitivity(SensitivityLevel.LOW, Priority.MEDIUM)

# Safe default for types without a measure.
DEFAULT_SENSITIVITY = LOW_SENSITIVITY


def _tier(measure: Decimal, tiers: TierThresholds) -> Sensitivity:
    if measure > tiers.high:
        return HIGH_SENSITIVITY
    if measure > tiers.medium:
        return MEDIUM_SENSITIVITY
    return LOW_SENSITIVITY


def price_change_percent(entity: PriceChangeTarget) -> Decimal:
    """Absolute price change relative to the current price, in percent."""
    return abs(percent_change(entity.current.price, entity.proposed.price))


# Measure extracted per change type, compared against its TierThresholds.
_MEASURES: dict[ChangeType, tuple[Callable[[AffectedEntity], Decimal], str]] = {
    ChangeType.PRICE_CHANGE: (price_change_percent, "price_change_percent"),
    ChangeType.BULK_DISCOUNT: (
        lambda e: e.proposed.discount_percent,
        "bulk_discount_percent",
    ),
    ChangeType.INVENTORY_WRITE_OFF: (
        lambda e: e.current.total_value,
        "inventory_write_off_value",
    ),
}

# Fixed classifications that ignore entity values.
_FIXED: dict[ChangeType, Sensitivity] = {
    ChangeType.PRODUCT_REMOVAL: MEDIUM_SENSITIVITY,
}


def classify(
    change_type: ChangeType,
    entity: AffectedEntity,
    thresholds: SensitivityThresholds | None = None,
) -> Sensitivity:
    """Classify a proposed change into a sensitivity level and priority."""
    ensure_target_matches(change_type, entity)
    thresholds = thresholds or SensitivityThresholds()
    if change_type in _FIXED:
        return _FIXED[change_type]
    measure_entry = _MEASURES.get(change_type)
    if measure_entry is None:
        return DEFAULT_SENSITIVITY
    measure, table_name = measure_entry
    return _tier(measure(entity), getattr(thresholds, table_name))


# =========================================================================
# Dry-run check
# =========================================================================


@dataclass(frozen=True)
class ApprovalCheck:
    """Outcome of ``check_requires_approval``."""

    requires_approval: bool
    reason: str = ""
    suggested_type: ChangeType | None = None
    estimated_impact: BusinessImpact | None = None

    @property
    def can_proceed(self) -> bool:
        return not self.requires_approval


def _format_number(value: Decimal) -> str:
    return format(value.normalize(), "f")


def check_requires_approval(
    change_type: ChangeType,
    entity: AffectedEntity,
    thresholds: SensitivityThresholds | None = None,
    heuristics: ImpactHeuristics | None = None,
) -> ApprovalCheck:
    """Would this change trip approval if submitted?

    A change needs approval when its measure is above the *medium* cut-off
    of its type's tier table: the same cut-off that makes ``classify``
    return anything above low.
    """
    ensure_target_matches(change_type, entity)
    thresholds = thresholds or SensitivityThresholds()
    reason = ""

    if isinstance(entity, PriceChangeTarget):
        percent = price_change_percent(entity)
        limit = thresholds.price_change_percent.medium
        if percent > limit:
            reason = (
                f"Price change of {round_tenth(percent)}% exceeds threshold "
                f"of {_format_number(limit)}%"
            )
    elif isinstance(entity, BulkDiscountTarget):
        discount = entity.proposed.discount_percent
        limit = thresholds.bulk_discount_percent.medium
        if discount > limit:
            reason = (
                f"Bulk discount of {_format_number(discount)}% exceeds threshold "
                f"of {_format_number(limit)}%"
            )
    elif isinstance(entity, InventoryWriteOffTarget):
        value = entity.current.total_value
        limit = thresholds.inventory_write_off_value.medium
        if value > limit:
            reason = (
                f"Write-off value of {_format_number(value)} exceeds threshold "
                f"of {_format_number(limit)}"
            )

    if not reason:
        return ApprovalCheck(requires_approval=False)
    return ApprovalCheck(
        requires_approval=True,
        reason=reason,
        suggested_type=change_type,
        estimated_impact=calculate_business_impact(change_type, entity, heuristics),
    )
