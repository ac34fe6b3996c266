"""
Default change executor.

Real deployments inject an executor that calls the product, category and
inventory services.  ``LoggingChangeExecutor`` records what would be
applied so a kernel wired without collaborators still has a trace of
approved changes.
"""

from __future__ import annotations

from approval_kernel.domain.approval import WalletAdjustment
from approval_kernel.domain.changes import AffectedEntity, ChangeType
from approval_kernel.logging_config import get_logger

logger = get_logger("services.change_executor")

_ACTIONS = {
    ChangeType.PRICE_CHANGE: "update_product_price",
    ChangeType.BULK_DISCOUNT: "apply_category_discount",
    ChangeType.PRODUCT_REMOVAL: "remove_products",
    ChangeType.INVENTORY_WRITE_OFF: "write_off_inventory",
}


class LoggingChangeExecutor:
    def apply(
        self,
        change_type: ChangeType,
        affected_entity: AffectedEntity,
        wallet_adjustment: WalletAdjustment | None,
    ) -> None:
        logger.info(
            "approved_change_dispatched",
            extra={
                "action": _ACTIONS.get(change_type, "noop"),
                "change_type": change_type.value,
                "entity_type": affected_entity.entity_type,
                "entity_id": affected_entity.entity_id,
                "wallet_transaction_id": (
                    wallet_adjustment.transaction_id if wallet_adjustment else None
                ),
                "wallet_adjustment_amount": (
                    wallet_adjustment.adjustment_amount if wallet_adjustment else None
                ),
            },
        )
