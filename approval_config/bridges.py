"""
Config -> Kernel Bridges.

Converts validated ``GovernanceSettingsDef`` artifacts into the kernel's
frozen ``GovernancePolicy``.  Lives in approval_config (the producer)
because the kernel must NEVER import approval_config.

Usage:
    from approval_config.bridges import build_policy

    policy = build_policy(settings)
    store = ApprovalRequestStore(policy=policy)
"""

from __future__ import annotations

from types import MappingProxyType

from approval_config.schema import GovernanceSettingsDef, TierDef
from approval_kernel.domain.approval import SensitivityLevel
from approval_kernel.domain.policy import (
    GovernancePolicy,
    ImpactHeuristics,
    SensitivityThresholds,
    TierThresholds,
    WalletHoldPolicy,
)


def _tier(tier: TierDef) -> TierThresholds:
    return TierThresholds(high=tier.high, medium=tier.medium)


def build_sensitivity(settings: GovernanceSettingsDef) -> SensitivityThresholds:
    return SensitivityThresholds(
        price_change_percent=_tier(settings.sensitivity.price_change_percent),
        bulk_discount_percent=_tier(settings.sensitivity.bulk_discount_percent),
        inventory_write_off_value=_tier(settings.sensitivity.inventory_write_off_value),
    )


def build_routing(settings: GovernanceSettingsDef):
    """Read-only routing table keyed by ``SensitivityLevel``."""
    return MappingProxyType({
        SensitivityLevel(level): tuple(roles)
        for level, roles in settings.routing.items()
    })


def build_policy(settings: GovernanceSettingsDef) -> GovernancePolicy:
    """Bridge validated settings into the kernel policy, carrying the checksum."""
    return GovernancePolicy(
        sensitivity=build_sensitivity(settings),
        routing=build_routing(settings),
        wallet=WalletHoldPolicy(
            materiality_threshold=settings.wallet.materiality_threshold,
            hold_ratio=settings.wallet.hold_ratio,
            recent_adjustment_limit=settings.wallet.recent_adjustment_limit,
        ),
        impact=ImpactHeuristics(
            units_per_product=settings.impact.units_per_product,
            high_customer_impact_margin_percent=(
                settings.impact.high_customer_impact_margin_percent
            ),
            high_customer_impact_discount_percent=(
                settings.impact.high_customer_impact_discount_percent
            ),
        ),
        checksum=settings.checksum,
    )
