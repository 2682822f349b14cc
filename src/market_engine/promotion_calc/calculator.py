"""Promotion tier calculator.

Pure and stateless: no I/O, no locking, safe to call from any thread.

Qualifying value by tier dimension:
    sku:    count of unique SKUs with display units > 0
    dollar: Σ unit_list × display units

Savings at a tier:
    Σ unit_list × display units × discount% + Σ unit_list × backup_qty × backup%

Money values are returned unrounded; rounding is a presentation concern.
"""

from __future__ import annotations

import logging
from typing import Iterable

from ...common.models import (
    LinePricing,
    Promotion,
    PromotionCalculation,
    PromotionTier,
    SelectionItem,
    TierDimension,
    TierProjection,
)

logger = logging.getLogger(__name__)


def qualifying_value(promotion: Promotion, items: list[SelectionItem]) -> float:
    """The number the promotion's tier thresholds are compared against."""
    display_items = [item for item in items if item.display_units > 0]
    if promotion.dimension == TierDimension.SKU:
        return len({item.sku for item in display_items})
    return sum(item.unit_list * item.display_units for item in display_items)


def match_tier(tiers: list[PromotionTier], value: float) -> PromotionTier | None:
    """Highest tier whose threshold is <= value; None below the minimum tier."""
    matched = None
    for tier in sorted(tiers, key=lambda t: t.threshold):
        if tier.threshold <= value:
            matched = tier
    return matched


def price_line(
    item: SelectionItem,
    display_percent: float,
    backup_percent: float,
) -> LinePricing:
    """Display/backup split for one line at the given discount percentages."""
    display_subtotal = item.unit_list * item.display_units
    display_discount = display_subtotal * display_percent / 100
    backup_subtotal = item.unit_list * item.backup_qty
    backup_discount = backup_subtotal * backup_percent / 100
    display_total = display_subtotal - display_discount
    backup_total = backup_subtotal - backup_discount
    return LinePricing(
        sku=item.sku,
        name=item.name,
        collection=item.collection,
        year=item.year,
        display_qty=item.display_units,
        backup_qty=item.backup_qty,
        unit_list=item.unit_list,
        display_discount_percent=display_percent,
        backup_discount_percent=backup_percent,
        display_subtotal=display_subtotal,
        display_discount=display_discount,
        display_total=display_total,
        backup_subtotal=backup_subtotal,
        backup_discount=backup_discount,
        backup_total=backup_total,
        line_total=display_total + backup_total,
    )


def savings_at_tier(items: Iterable[SelectionItem], tier: PromotionTier | None) -> float:
    """Total savings if the current quantities qualified at tier."""
    if tier is None:
        return 0.0
    total = 0.0
    for item in items:
        total += item.unit_list * item.display_units * tier.discount_percent / 100
        total += item.unit_list * item.backup_qty * tier.backup_percent / 100
    return total


def no_data(promotion: Promotion) -> PromotionCalculation:
    """Result for a customer who has not started a selection."""
    return PromotionCalculation(
        promotion_id=promotion.id,
        promotion_name=promotion.name,
        dimension=promotion.dimension,
        has_data=False,
        qualifying_value=None,
        current_sku_count=None,
    )


def calculate(
    promotion: Promotion | dict,
    line_items: Iterable[SelectionItem] | None,
) -> PromotionCalculation:
    """Run a promotion against a selection's line items.

    Args:
        promotion: A Promotion, or a raw record with skuTiers/dollarTiers lists.
        line_items: The selection's items; None means no selection exists.

    Returns:
        The calculation. With line_items=None the result has has_data=False
        and current_sku_count=None instead of zero values.

    Raises:
        AmbiguousTierDimensionError: a raw record populates both tier lists.
    """
    if not isinstance(promotion, Promotion):
        promotion = Promotion.from_record(promotion)

    if line_items is None:
        return no_data(promotion)

    items = list(line_items)
    value = qualifying_value(promotion, items)
    tier = match_tier(promotion.tiers, value)
    display_percent = tier.discount_percent if tier else 0.0
    backup_percent = tier.backup_percent if tier else 0.0

    lines = [price_line(item, display_percent, backup_percent) for item in items]
    total_savings = sum(line.display_discount + line.backup_discount for line in lines)
    display_subtotal = sum(line.display_subtotal for line in lines)
    backup_subtotal = sum(line.backup_subtotal for line in lines)

    projections = [
        TierProjection(
            tier_level=higher.tier_level,
            threshold=higher.threshold,
            discount_percent=higher.discount_percent,
            est_savings=savings_at_tier(items, higher),
            additional_savings_from_current=savings_at_tier(items, higher) - total_savings,
            skus_to_reach_tier=max(0.0, higher.threshold - value),
        )
        for higher in promotion.tiers
        if tier is None or higher.threshold > tier.threshold
    ]

    logger.debug(
        "Promotion %s: %s value=%s tier=%s savings=%.2f",
        promotion.id, promotion.dimension.value, value,
        tier.tier_level if tier else None, total_savings,
    )

    return PromotionCalculation(
        promotion_id=promotion.id,
        promotion_name=promotion.name,
        dimension=promotion.dimension,
        has_data=True,
        qualifying_value=value,
        current_sku_count=len({item.sku for item in items if item.display_units > 0}),
        display_subtotal=display_subtotal,
        backup_subtotal=backup_subtotal,
        current_tier_level=tier.tier_level if tier else None,
        display_discount_percent=display_percent,
        backup_discount_percent=backup_percent,
        total_savings=total_savings,
        grand_total=display_subtotal + backup_subtotal - total_savings,
        lines=lines,
        potential_savings_by_tier=projections,
    )
