"""
Settings Validator (``approval_config.validator``).

Responsibility
--------------
Checks a ``GovernanceSettingsDef`` for structural and numeric sanity
before it is bridged into a kernel policy.

Invariants enforced
-------------------
* Tier cut-offs are non-negative and ``medium <= high``.
* Routing covers exactly the sensitivity levels low/medium/high, each
  with at least one role and no duplicate roles.
* Wallet materiality is non-negative; hold ratio is in (0, 1].
* Heuristic unit counts and adjustment limits are non-negative.

Failure modes
-------------
Validation errors (``SettingsValidationResult.errors``) -> the settings
MUST NOT be bridged; ``get_active_policy`` raises ConfigurationError.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from approval_config.schema import GovernanceSettingsDef, TierDef

ROUTING_LEVELS = ("low", "medium", "high")


@dataclass
class SettingsValidationResult:
    """``is_valid`` is True only when ``errors`` is empty."""

    errors: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)


def validate_settings(settings: GovernanceSettingsDef) -> SettingsValidationResult:
    result = SettingsValidationResult()

    _validate_tier("sensitivity.price_change_percent",
                   settings.sensitivity.price_change_percent, result)
    _validate_tier("sensitivity.bulk_discount_percent",
                   settings.sensitivity.bulk_discount_percent, result)
    _validate_tier("sensitivity.inventory_write_off_value",
                   settings.sensitivity.inventory_write_off_value, result)
    _validate_routing(settings.routing, result)
    _validate_wallet(settings, result)
    _validate_impact(settings, result)

    return result


def _validate_tier(name: str, tier: TierDef, result: SettingsValidationResult) -> None:
    if tier.medium < 0 or tier.high < 0:
        result.add_error(f"{name}: thresholds must not be negative")
    if tier.medium > tier.high:
        result.add_error(
            f"{name}: medium threshold {tier.medium} exceeds high threshold {tier.high}"
        )


def _validate_routing(
    routing: dict[str, tuple[str, ...]],
    result: SettingsValidationResult,
) -> None:
    missing = [level for level in ROUTING_LEVELS if level not in routing]
    if missing:
        result.add_error(f"routing: missing levels {', '.join(missing)}")
    unknown = sorted(set(routing) - set(ROUTING_LEVELS))
    if unknown:
        result.add_error(f"routing: unknown levels {', '.join(unknown)}")
    for level, roles in routing.items():
        if not roles:
            result.add_error(f"routing.{level}: at least one approver role is required")
        elif len(set(roles)) != len(roles):
            result.add_error(f"routing.{level}: duplicate approver roles")


def _validate_wallet(settings: GovernanceSettingsDef, result: SettingsValidationResult) -> None:
    wallet = settings.wallet
    if wallet.materiality_threshold < 0:
        result.add_error("wallet.materiality_threshold must not be negative")
    if not (Decimal("0") < wallet.hold_ratio <= Decimal("1")):
        result.add_error(
            f"wallet.hold_ratio must be in (0, 1], got {wallet.hold_ratio}"
        )
    if wallet.recent_adjustment_limit < 0:
        result.add_error("wallet.recent_adjustment_limit must not be negative")


def _validate_impact(settings: GovernanceSettingsDef, result: SettingsValidationResult) -> None:
    impact = settings.impact
    if impact.units_per_product < 0:
        result.add_error("impact.units_per_product must not be negative")
    if impact.high_customer_impact_margin_percent < 0:
        result.add_error("impact.high_customer_impact_margin_percent must not be negative")
    if impact.high_customer_impact_discount_percent < 0:
        result.add_error("impact.high_customer_impact_discount_percent must not be negative")
