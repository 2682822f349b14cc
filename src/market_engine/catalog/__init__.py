"""Catalog Module - SKU lookup collaborator and line pricing."""

from .lookup import CatalogLookup, StaticCatalog
from .models import CatalogItem
from .pricing import compute_financials, price_items, refresh_prices, resolve_item

__all__ = [
    "CatalogItem",
    "CatalogLookup",
    "StaticCatalog",
    "compute_financials",
    "price_items",
    "refresh_prices",
    "resolve_item",
]
