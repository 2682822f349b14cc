"""Customer-facing copy generated from a promotion calculation.

Partnership-focused wording: lead with the money already secured, then
state the gap to the next tier.
"""

from __future__ import annotations

from ...common.models import PromotionCalculation, TierDimension, TierProjection


def format_currency(amount: float) -> str:
    """US dollars with thousands separators, e.g. $1,234.50 or -$12.00."""
    sign = "-" if amount < 0 else ""
    return f"{sign}${abs(amount):,.2f}"


def _plural_skus(count: float) -> str:
    count = int(count)
    return f"{count} {'SKU' if count == 1 else 'SKUs'}"


def _gap(calc: PromotionCalculation, next_tier: TierProjection) -> str:
    if calc.dimension == TierDimension.SKU:
        return _plural_skus(next_tier.skus_to_reach_tier)
    return format_currency(next_tier.skus_to_reach_tier)


def promotion_message(calc: PromotionCalculation) -> str:
    """One-sentence progress message for the status strip."""
    if not calc.has_data:
        return "Start a selection to see your partnership savings"

    savings = calc.total_savings
    next_tier = calc.next_tier

    if next_tier is None:
        if savings > 0:
            return (
                f"Maximum partnership status achieved! You have secured "
                f"{format_currency(savings)} in margin advantage "
                f"({calc.display_discount_percent:g}% program status)"
            )
        return "You have achieved maximum program status!"

    gap = _gap(calc, next_tier)
    percent = f"{next_tier.discount_percent:g}%"
    if savings > 0:
        return (
            f"You have secured {format_currency(savings)} in margin! Add {gap} to achieve "
            f"{percent} partnership status and secure an additional "
            f"{format_currency(next_tier.additional_savings_from_current)} in margin advantage"
        )
    return (
        f"Add {gap} to achieve {percent} partnership status and secure "
        f"{format_currency(next_tier.est_savings)} in margin advantage on your current selection"
    )


def next_tier_cta(calc: PromotionCalculation) -> str:
    next_tier = calc.next_tier
    if next_tier is None:
        return "Maximize your program benefits"
    if calc.dimension == TierDimension.SKU:
        count = int(next_tier.skus_to_reach_tier)
        gap = f"{count} more {'SKU' if count == 1 else 'SKUs'}"
    else:
        gap = f"{format_currency(next_tier.skus_to_reach_tier)} more"
    return f"Add {gap} to achieve {next_tier.discount_percent:g}% partnership status"


def headline(calc: PromotionCalculation) -> str:
    has_discount = calc.total_savings > 0
    if calc.next_tier is None:
        return "Maximizing your margin advantage" if has_discount else "Build your partnership status"
    return "Achieve enhanced partnership status" if has_discount else "Build your partnership status"


def what_if_message(current_savings: float, projected_savings: float, items_to_add: int) -> str:
    """Comparison line for the planning calculator."""
    additional = projected_savings - current_savings
    if additional <= 0:
        return "You have achieved this partnership status"
    return (
        f"Expanding by {_plural_skus(items_to_add)} would secure "
        f"{format_currency(additional)} in additional margin"
    )
