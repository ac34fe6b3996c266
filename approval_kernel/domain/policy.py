"""
Governance policy (``approval_kernel.domain.policy``).

Responsibility
--------------
One frozen home for every threshold and heuristic the workflow uses:
sensitivity tiers per change type, the approver routing table, wallet
hold materiality and ratio, and the bulk-discount sales estimate.  Both
the classifier and the dry-run approval check read the same
``SensitivityThresholds`` instance so they cannot drift apart.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ``approval_config``
builds these from YAML; library callers can use ``GovernancePolicy.default()``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from types import MappingProxyType
from typing import Mapping

from approval_kernel.domain.approval import SensitivityLevel


@dataclass(frozen=True)
class TierThresholds:
    """Two strict cut-offs: above ``high`` is high/urgent, above ``medium``
    is medium/high, anything else low/medium."""

    high: Decimal
    medium: Decimal

    def __post_init__(self) -> None:
        if self.medium > self.high:
            raise ValueError(
                f"medium threshold {self.medium} exceeds high threshold {self.high}"
            )


@dataclass(frozen=True)
class SensitivityThresholds:
    """Per-type tier cut-offs (percent for price/discount, currency for write-offs)."""

    price_change_percent: TierThresholds = TierThresholds(
        high=Decimal("50"), medium=Decimal("20"),
    )
    bulk_discount_percent: TierThresholds = TierThresholds(
        high=Decimal("30"), medium=Decimal("15"),
    )
    inventory_write_off_value: TierThresholds = TierThresholds(
        high=Decimal("10000"), medium=Decimal("5000"),
    )


@dataclass(frozen=True)
class WalletHoldPolicy:
    """Materiality threshold (currency units) and fraction of impact escrowed."""

    materiality_threshold: Decimal = Decimal("1000")
    hold_ratio: Decimal = Decimal("0.10")
    recent_adjustment_limit: int = 10


@dataclass(frozen=True)
class ImpactHeuristics:
    """Estimated units sold per product during a bulk discount."""

    units_per_product: int = 10
    high_customer_impact_margin_percent: Decimal = Decimal("20")
    high_customer_impact_discount_percent: Decimal = Decimal("20")


_DEFAULT_ROUTING: Mapping[SensitivityLevel, tuple[str, ...]] = MappingProxyType({
    SensitivityLevel.LOW: ("manager",),
    SensitivityLevel.MEDIUM: ("manager", "admin"),
    SensitivityLevel.HIGH: ("manager", "admin", "senior_manager"),
})


@dataclass(frozen=True)
class GovernancePolicy:
    sensitivity: SensitivityThresholds = field(default_factory=SensitivityThresholds)
    routing: Mapping[SensitivityLevel, tuple[str, ...]] = field(
        default_factory=lambda: _DEFAULT_ROUTING,
    )
    wallet: WalletHoldPolicy = field(default_factory=WalletHoldPolicy)
    impact: ImpactHeuristics = field(default_factory=ImpactHeuristics)
    checksum: str | None = None

    @classmethod
    def default(cls) -> GovernancePolicy:
        return cls()
