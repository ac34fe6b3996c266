"""
Change types and affected-entity variants (``approval_kernel.domain.changes``).

Responsibility
--------------
Defines the closed set of governed change types and, for each, a typed
``AffectedEntity`` variant carrying the entity descriptor plus typed
current/proposed values.  Impact, sensitivity and wallet calculations
dispatch on these variants instead of loosely-typed payload lookups.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* Every variant validates its values on construction (non-negative
  amounts, positive current price, discount within 0-100).
* ``entity_ids`` is always a non-empty tuple of strings.
* ``affected_entity_from_payload`` / ``affected_entity_to_payload`` are
  inverse over the camelCase JSON shape used by storefront clients.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, ClassVar, Mapping, Union

from approval_kernel.domain.values import ZERO, HUNDRED, to_decimal
from approval_kernel.exceptions import ValidationError


class ChangeType(str, Enum):
    """Kinds of business change that are routed through approval."""

    PRICE_CHANGE = "price_change"
    BULK_DISCOUNT = "bulk_discount"
    PRODUCT_REMOVAL = "product_removal"
    INVENTORY_WRITE_OFF = "inventory_write_off"
    OTHER = "other"


# Change types whose approval moves money through the vendor wallet.
FINANCIAL_CHANGE_TYPES: frozenset[ChangeType] = frozenset({
    ChangeType.PRICE_CHANGE,
})


def _require_mapping(payload: Any, name: str) -> Mapping[str, Any]:
    if not isinstance(payload, Mapping):
        raise ValidationError(f"{name} must be an object", field=name)
    return payload


def _require_key(payload: Mapping[str, Any], key: str, name: str) -> Any:
    if payload.get(key) is None:
        raise ValidationError(f"{name}.{key} is required", field=f"{name}.{key}")
    return payload[key]


def _non_negative(value: Decimal, name: str) -> None:
    if value < ZERO:
        raise ValidationError(f"{name} must not be negative", field=name)


# =========================================================================
# Value structs
# =========================================================================


@dataclass(frozen=True)
class ProductPricing:
    """Unit price and on-hand stock of a single product."""

    price: Decimal
    stock: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "price", to_decimal(self.price, "price"))
        _non_negative(self.price, "price")
        if int(self.stock) < 0:
            raise ValidationError("stock must not be negative", field="stock")
        object.__setattr__(self, "stock", int(self.stock))

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any], name: str) -> ProductPricing:
        payload = _require_mapping(payload, name)
        return cls(
            price=_require_key(payload, "price", name),
            stock=payload.get("stock") or 0,
        )

    def to_payload(self) -> dict[str, Any]:
        return {"price": str(self.price), "stock": self.stock}


@dataclass(frozen=True)
class CategorySnapshot:
    """Product count and average price of a category before a discount."""

    product_count: int
    avg_price: Decimal

    def __post_init__(self) -> None:
        object.__setattr__(self, "avg_price", to_decimal(self.avg_price, "avg_price"))
        _non_negative(self.avg_price, "avg_price")
        if int(self.product_count) < 0:
            raise ValidationError(
                "product_count must not be negative", field="product_count",
            )
        object.__setattr__(self, "product_count", int(self.product_count))

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any], name: str) -> CategorySnapshot:
        payload = _require_mapping(payload, name)
        return cls(
            product_count=payload.get("products") or 0,
            avg_price=payload.get("avgPrice") or 0,
        )

    def to_payload(self) -> dict[str, Any]:
        return {"products": self.product_count, "avgPrice": str(self.avg_price)}


@dataclass(frozen=True)
class DiscountTerms:
    """Proposed discount percentage and optional expiry date."""

    discount_percent: Decimal
    valid_until: date | None = None

    def __post_init__(self) -> None:
        percent = to_decimal(self.discount_percent, "discount_percent")
        if percent < ZERO or percent > HUNDRED:
            raise ValidationError(
                "discount_percent must be between 0 and 100",
                field="discount_percent",
            )
        object.__setattr__(self, "discount_percent", percent)
        if isinstance(self.valid_until, str):
            try:
                valid_until = date.fromisoformat(self.valid_until)
            except ValueError as exc:
                raise ValidationError(
                    f"valid_until is not an ISO date: {self.valid_until!r}",
                    field="valid_until",
                ) from exc
            object.__setattr__(self, "valid_until", valid_until)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any], name: str) -> DiscountTerms:
        payload = _require_mapping(payload, name)
        return cls(
            discount_percent=payload.get("discountPercent") or 0,
            valid_until=payload.get("validUntil"),
        )

    def to_payload(self) -> dict[str, Any]:
        return {
            "discountPercent": str(self.discount_percent),
            "validUntil": self.valid_until.isoformat() if self.valid_until else None,
        }


@dataclass(frozen=True)
class StockSnapshot:
    """Book value and quantity of stock affected by a removal or write-off."""

    total_value: Decimal
    stock: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "total_value", to_decimal(self.total_value, "total_value"),
        )
        _non_negative(self.total_value, "total_value")
        if int(self.stock) < 0:
            raise ValidationError("stock must not be negative", field="stock")
        object.__setattr__(self, "stock", int(self.stock))

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any], name: str) -> StockSnapshot:
        payload = _require_mapping(payload, name)
        return cls(
            total_value=payload.get("totalValue") or 0,
            stock=payload.get("stock") or 0,
        )

    def to_payload(self) -> dict[str, Any]:
        return {"totalValue": str(self.total_value), "stock": self.stock}


@dataclass(frozen=True)
class RemovalPlan:
    """Why products are being removed from the catalogue."""

    reason: str = ""
    action: str = "remove"

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any], name: str) -> RemovalPlan:
        payload = _require_mapping(payload, name)
        return cls(
            reason=payload.get("reason") or "",
            action=payload.get("action") or "remove",
        )

    def to_payload(self) -> dict[str, Any]:
        return {"action": self.action, "reason": self.reason}


@dataclass(frozen=True)
class WriteOffPlan:
    """Quantity and reason for an inventory write-off."""

    quantity: int | None = None
    reason: str = ""

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any], name: str) -> WriteOffPlan:
        payload = _require_mapping(payload, name)
        quantity = payload.get("quantity")
        return cls(
            quantity=int(quantity) if quantity is not None else None,
            reason=payload.get("reason") or "",
        )

    def to_payload(self) -> dict[str, Any]:
        return {"quantity": self.quantity, "reason": self.reason}


# =========================================================================
# Affected entity variants
# =========================================================================


@dataclass(frozen=True)
class AffectedEntityBase:
    """Descriptor shared by every variant: which entities, by what name."""

    entity_ids: tuple[str, ...]
    entity_name: str

    change_type: ClassVar[ChangeType]

    def __post_init__(self) -> None:
        ids = self.entity_ids
        if isinstance(ids, (str, int)):
            ids = (ids,)
        ids = tuple(str(i) for i in ids)
        if not ids:
            raise ValidationError("entity_ids must not be empty", field="entity_ids")
        object.__setattr__(self, "entity_ids", ids)

    @property
    def entity_id(self) -> str:
        """Single id, or comma-joined ids for multi-entity changes."""
        return ",".join(self.entity_ids)


@dataclass(frozen=True)
class PriceChangeTarget(AffectedEntityBase):
    current: ProductPricing
    proposed: ProductPricing
    entity_type: str = "product"

    change_type: ClassVar[ChangeType] = ChangeType.PRICE_CHANGE

    def __post_init__(self) -> None:
        super().__post_init__()
        if self.current.price <= ZERO:
            raise ValidationError(
                "current price must be positive", field="current.price",
            )


@dataclass(frozen=True)
class BulkDiscountTarget(AffectedEntityBase):
    current: CategorySnapshot
    proposed: DiscountTerms
    entity_type: str = "category"

    change_type: ClassVar[ChangeType] = ChangeType.BULK_DISCOUNT


@dataclass(frozen=True)
class ProductRemovalTarget(AffectedEntityBase):
    current: StockSnapshot
    proposed: RemovalPlan = field(default_factory=RemovalPlan)
    entity_type: str = "products"

    change_type: ClassVar[ChangeType] = ChangeType.PRODUCT_REMOVAL


@dataclass(frozen=True)
class InventoryWriteOffTarget(AffectedEntityBase):
    current: StockSnapshot
    proposed: WriteOffPlan = field(default_factory=WriteOffPlan)
    entity_type: str = "inventory"

    change_type: ClassVar[ChangeType] = ChangeType.INVENTORY_WRITE_OFF


@dataclass(frozen=True)
class GenericTarget(AffectedEntityBase):
    """Change types without typed values; classified with safe defaults."""

    current: dict[str, Any] = field(default_factory=dict)
    proposed: dict[str, Any] = field(default_factory=dict)
    entity_type: str = "entity"

    change_type: ClassVar[ChangeType] = ChangeType.OTHER


AffectedEntity = Union[
    PriceChangeTarget,
    BulkDiscountTarget,
    ProductRemovalTarget,
    InventoryWriteOffTarget,
    GenericTarget,
]

TARGET_TYPES: dict[ChangeType, type] = {
    ChangeType.PRICE_CHANGE: PriceChangeTarget,
    ChangeType.BULK_DISCOUNT: BulkDiscountTarget,
    ChangeType.PRODUCT_REMOVAL: ProductRemovalTarget,
    ChangeType.INVENTORY_WRITE_OFF: InventoryWriteOffTarget,
    ChangeType.OTHER: GenericTarget,
}

_VALUE_TYPES: dict[ChangeType, tuple[Any, Any]] = {
    ChangeType.PRICE_CHANGE: (ProductPricing, ProductPricing),
    ChangeType.BULK_DISCOUNT: (CategorySnapshot, DiscountTerms),
    ChangeType.PRODUCT_REMOVAL: (StockSnapshot, RemovalPlan),
    ChangeType.INVENTORY_WRITE_OFF: (StockSnapshot, WriteOffPlan),
}


def ensure_target_matches(change_type: ChangeType, entity: AffectedEntity) -> None:
    """Raise ValidationError when ``entity`` is not the variant for ``change_type``."""
    expected = TARGET_TYPES[change_type]
    if not isinstance(entity, expected):
        raise ValidationError(
            f"{change_type.value} requires {expected.__name__}, "
            f"got {type(entity).__name__}",
            field="affected_entity",
        )


def affected_entity_from_payload(
    change_type: ChangeType | str,
    payload: Mapping[str, Any],
) -> AffectedEntity:
    """Build the typed variant for ``change_type`` from a camelCase payload.

    Raises:
        ValidationError: unknown change type, missing keys, bad values.
    """
    try:
        change_type = ChangeType(change_type)
    except ValueError as exc:
        raise ValidationError(
            f"Unknown change type: {change_type!r}", field="type",
        ) from exc

    payload = _require_mapping(payload, "affectedEntity")
    entity_ids = payload.get("entityId")
    if entity_ids is None:
        raise ValidationError("affectedEntity.entityId is required", field="entityId")
    common: dict[str, Any] = {
        "entity_ids": tuple(entity_ids) if isinstance(entity_ids, list) else entity_ids,
        "entity_name": payload.get("entityName") or "",
    }
    if payload.get("entityType"):
        common["entity_type"] = payload["entityType"]

    current = payload.get("currentValues") or {}
    proposed = payload.get("proposedValues") or {}
    target_cls = TARGET_TYPES[change_type]

    if change_type is ChangeType.OTHER:
        return target_cls(current=dict(current), proposed=dict(proposed), **common)

    current_cls, proposed_cls = _VALUE_TYPES[change_type]
    return target_cls(
        current=current_cls.from_payload(current, "currentValues"),
        proposed=proposed_cls.from_payload(proposed, "proposedValues"),
        **common,
    )


def affected_entity_to_payload(entity: AffectedEntity) -> dict[str, Any]:
    """Serialize a variant back to the camelCase payload shape."""
    if isinstance(entity, GenericTarget):
        current, proposed = dict(entity.current), dict(entity.proposed)
    else:
        current, proposed = entity.current.to_payload(), entity.proposed.to_payload()
    return {
        "entityType": entity.entity_type,
        "entityId": list(entity.entity_ids),
        "entityName": entity.entity_name,
        "currentValues": current,
        "proposedValues": proposed,
    }
