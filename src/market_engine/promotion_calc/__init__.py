"""Promotion Calculator Module - Tier matching, savings and projections."""

from .calculator import calculate, match_tier, qualifying_value, savings_at_tier
from .messaging import format_currency, headline, next_tier_cta, promotion_message, what_if_message
from .status import PromotionStatusService
from .store import PromotionStore

__all__ = [
    "PromotionStatusService",
    "PromotionStore",
    "calculate",
    "format_currency",
    "headline",
    "match_tier",
    "next_tier_cta",
    "promotion_message",
    "qualifying_value",
    "savings_at_tier",
    "what_if_message",
]
