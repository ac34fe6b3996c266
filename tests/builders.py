"""Submission builders shared by the test suite."""

from decimal import Decimal

from approval_kernel.domain.approval import Submission
from approval_kernel.domain.changes import (
    BulkDiscountTarget,
    CategorySnapshot,
    ChangeType,
    DiscountTerms,
    GenericTarget,
    InventoryWriteOffTarget,
    PriceChangeTarget,
    ProductPricing,
    ProductRemovalTarget,
    StockSnapshot,
)

SUBMITTER = "vendor_42"
APPROVER = "manager_1"


def price_change(current="100", proposed="200", stock=20, entity_id="p-1",
                 submitted_by=SUBMITTER, title="Reprice widget"):
    return Submission(
        change_type=ChangeType.PRICE_CHANGE,
        title=title,
        description="Adjust price to market",
        submitted_by=submitted_by,
        affected_entity=PriceChangeTarget(
            entity_ids=(entity_id,),
            entity_name="Widget",
            current=ProductPricing(price=Decimal(current), stock=stock),
            proposed=ProductPricing(price=Decimal(proposed), stock=stock),
        ),
    )


def bulk_discount(discount="25", products=8, avg_price="50", submitted_by=SUBMITTER):
    return Submission(
        change_type=ChangeType.BULK_DISCOUNT,
        title="Summer sale",
        description="Category-wide discount",
        submitted_by=submitted_by,
        affected_entity=BulkDiscountTarget(
            entity_ids=("cat-7",),
            entity_name="Garden",
            current=CategorySnapshot(product_count=products, avg_price=Decimal(avg_price)),
            proposed=DiscountTerms(discount_percent=Decimal(discount)),
        ),
    )


def product_removal(submitted_by=SUBMITTER):
    return Submission(
        change_type=ChangeType.PRODUCT_REMOVAL,
        title="Discontinue line",
        description="Remove two products",
        submitted_by=submitted_by,
        affected_entity=ProductRemovalTarget(
            entity_ids=("p-1", "p-2"),
            entity_name="Old line",
            current=StockSnapshot(total_value=Decimal("800"), stock=16),
        ),
    )


def write_off(total_value="7000", submitted_by=SUBMITTER):
    return Submission(
        change_type=ChangeType.INVENTORY_WRITE_OFF,
        title="Damaged stock",
        description="Flood damage",
        submitted_by=submitted_by,
        affected_entity=InventoryWriteOffTarget(
            entity_ids=("inv-3",),
            entity_name="Warehouse B",
            current=StockSnapshot(total_value=Decimal(total_value), stock=70),
        ),
    )


def other_change(submitted_by=SUBMITTER):
    return Submission(
        change_type=ChangeType.OTHER,
        title="Rename vendor",
        description="Legal name change",
        submitted_by=submitted_by,
        affected_entity=GenericTarget(
            entity_ids=("v-9",),
            entity_name="Vendor",
            current={"name": "Acme"},
            proposed={"name": "Acme Ltd"},
        ),
    )

