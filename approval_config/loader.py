"""
Settings Loader (``approval_config.loader``).

Responsibility
--------------
Loads a governance YAML file and parses it into the frozen
``approval_config.schema`` dataclasses.  Runtime callers go through
``approval_config.get_active_policy()``; this module is the parsing step
behind it and test tooling.

Invariants enforced
-------------------
* YAML is read with ``yaml.safe_load`` only.
* Numeric settings are parsed to ``Decimal`` through ``str`` so YAML
  floats never introduce binary rounding.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the
  canonical JSON form of the raw document.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Non-numeric thresholds  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from approval_config.schema import (
    GovernanceSettingsDef,
    ImpactDef,
    SensitivityDef,
    TierDef,
    WalletDef,
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a single YAML file and return its contents as a dict."""
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_decimal(value: Any, name: str) -> Decimal:
    if isinstance(value, bool):
        raise ValueError(f"{name}: expected a number, got {value!r}")
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"{name}: expected a number, got {value!r}") from exc


def parse_int(value: Any, name: str) -> int:
    if isinstance(value, bool):
        raise ValueError(f"{name}: expected an integer, got {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{name}: expected an integer, got {value!r}") from exc


def parse_tier(data: dict[str, Any], name: str) -> TierDef:
    return TierDef(
        high=parse_decimal(data["high"], f"{name}.high"),
        medium=parse_decimal(data["medium"], f"{name}.medium"),
    )


def parse_sensitivity(data: dict[str, Any]) -> SensitivityDef:
    return SensitivityDef(
        price_change_percent=parse_tier(
            data["price_change_percent"], "sensitivity.price_change_percent",
        ),
        bulk_discount_percent=parse_tier(
            data["bulk_discount_percent"], "sensitivity.bulk_discount_percent",
        ),
        inventory_write_off_value=parse_tier(
            data["inventory_write_off_value"], "sensitivity.inventory_write_off_value",
        ),
    )


def parse_routing(data: dict[str, Any]) -> dict[str, tuple[str, ...]]:
    if not isinstance(data, dict):
        raise ValueError(f"routing: expected a mapping, got {data!r}")
    return {
        str(level): tuple(str(role) for role in (roles or ()))
        for level, roles in data.items()
    }


def parse_wallet(data: dict[str, Any]) -> WalletDef:
    return WalletDef(
        materiality_threshold=parse_decimal(
            data["materiality_threshold"], "wallet.materiality_threshold",
        ),
        hold_ratio=parse_decimal(data["hold_ratio"], "wallet.hold_ratio"),
        recent_adjustment_limit=parse_int(
            data.get("recent_adjustment_limit", 10), "wallet.recent_adjustment_limit",
        ),
    )


def parse_impact(data: dict[str, Any]) -> ImpactDef:
    return ImpactDef(
        units_per_product=parse_int(data["units_per_product"], "impact.units_per_product"),
        high_customer_impact_margin_percent=parse_decimal(
            data["high_customer_impact_margin_percent"],
            "impact.high_customer_impact_margin_percent",
        ),
        high_customer_impact_discount_percent=parse_decimal(
            data["high_customer_impact_discount_percent"],
            "impact.high_customer_impact_discount_percent",
        ),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def parse_settings(data: dict[str, Any]) -> GovernanceSettingsDef:
    """Parse a raw settings document, stamping its checksum."""
    return GovernanceSettingsDef(
        config_id=str(data["config_id"]),
        version=parse_int(data["version"], "version"),
        sensitivity=parse_sensitivity(data["sensitivity"]),
        routing=parse_routing(data["routing"]),
        wallet=parse_wallet(data["wallet"]),
        impact=parse_impact(data["impact"]),
        checksum=compute_checksum(data),
    )


def load_settings(path: Path) -> GovernanceSettingsDef:
    return parse_settings(load_yaml_file(path))
