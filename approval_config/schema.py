"""
Governance settings schema.

Human-authored, reviewable source artifact for approval governance.
YAML is parsed into these types by the loader, checked by the validator
and turned into the kernel's ``GovernancePolicy`` by the bridges.

Key distinction:
  GovernanceSettingsDef = source artifact (human-authored, versioned)
  GovernancePolicy      = runtime artifact (kernel value object)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal


@dataclass(frozen=True)
class TierDef:
    """Two cut-offs for one measure."""

    high: Decimal
    medium: Decimal


@dataclass(frozen=True)
class SensitivityDef:
    price_change_percent: TierDef
    bulk_discount_percent: TierDef
    inventory_write_off_value: TierDef


@dataclass(frozen=True)
class WalletDef:
    materiality_threshold: Decimal
    hold_ratio: Decimal
    recent_adjustment_limit: int = 10


@dataclass(frozen=True)
class ImpactDef:
    units_per_product: int
    high_customer_impact_margin_percent: Decimal
    high_customer_impact_discount_percent: Decimal


@dataclass(frozen=True)
class GovernanceSettingsDef:
    """Complete governance settings as authored."""

    config_id: str
    version: int
    sensitivity: SensitivityDef
    routing: dict[str, tuple[str, ...]]
    wallet: WalletDef
    impact: ImpactDef
    checksum: str = field(default="", compare=False)
