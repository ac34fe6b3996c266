"""
BusinessImpactCalculator (``approval_kernel.domain.impact``).

Pure functions turning a proposed change into a ``BusinessImpact``.
Formulas are registered per change type in ``IMPACT_FORMULAS``; types
without a formula fall back to a zero/low impact.  Deterministic and
side-effect free, so the dry-run approval check can call it for previews.
"""

from __future__ import annotations

from typing import Callable

from approval_kernel.domain.approval import BusinessImpact, CustomerImpact
from approval_kernel.domain.changes import (
    AffectedEntity,
    BulkDiscountTarget,
    ChangeType,
    PriceChangeTarget,
    ensure_target_matches,
)
from approval_kernel.domain.policy import ImpactHeuristics
from approval_kernel.domain.values import HUNDRED, percent_change, round_percent, round_whole

ImpactFormula = Callable[[AffectedEntity, ImpactHeuristics], BusinessImpact]

NO_IMPACT = BusinessImpact()


def price_change_impact(
    entity: PriceChangeTarget,
    heuristics: ImpactHeuristics,
) -> BusinessImpact:
    """Revenue delta over current stock; margin as percent price delta."""
    current = entity.current.price
    delta = entity.proposed.price - current
    margin = percent_change(current, entity.proposed.price)
    customer = (
        CustomerImpact.HIGH
        if abs(margin) > heuristics.high_customer_impact_margin_percent
        else CustomerImpact.MEDIUM
    )
    return BusinessImpact(
        revenue_impact=round_whole(delta * entity.current.stock),
        margin_impact=round_percent(margin),
        customer_impact=customer,
    )


def bulk_discount_impact(
    entity: BulkDiscountTarget,
    heuristics: ImpactHeuristics,
) -> BusinessImpact:
    """Lost revenue on an estimated number of units sold at a discount.

    The sales estimate is ``product_count * units_per_product``, a fixed
    heuristic rather than real sales data.
    """
    discount = entity.proposed.discount_percent
    estimated_sales = entity.current.product_count * heuristics.units_per_product
    revenue = -entity.current.avg_price * estimated_sales * discount / HUNDRED
    customer = (
        CustomerImpact.HIGH
        if discount > heuristics.high_customer_impact_discount_percent
        else CustomerImpact.MEDIUM
    )
    return BusinessImpact(
        revenue_impact=round_whole(revenue),
        margin_impact=-discount,
        customer_impact=customer,
    )


IMPACT_FORMULAS: dict[ChangeType, ImpactFormula] = {
    ChangeType.PRICE_CHANGE: price_change_impact,
    ChangeType.BULK_DISCOUNT: bulk_discount_impact,
}


def calculate_business_impact(
    change_type: ChangeType,
    entity: AffectedEntity,
    heuristics: ImpactHeuristics | None = None,
) -> BusinessImpact:
    """Quantify ``entity``'s change.

    Raises:
        ValidationError: ``entity`` is not the variant for ``change_type``.
    """
    ensure_target_matches(change_type, entity)
    formula = IMPACT_FORMULAS.get(change_type)
    if formula is None:
        return NO_IMPACT
    return formula(entity, heuristics or ImpactHeuristics())
