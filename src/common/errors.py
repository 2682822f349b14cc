"""Typed failures raised by the selection store and promotion engine.

Callers (web/export layers) map these to transport-level responses.
None of them reveal whether another customer's data exists.
"""

from __future__ import annotations


class MarketEngineError(Exception):
    """Base class for all domain failures."""


class NotFoundError(MarketEngineError, LookupError):
    """Selection or promotion id is unknown or not owned by the caller."""

    def __init__(self, message: str = "Not found") -> None:
        super().__init__(message)


class DuplicateItemError(MarketEngineError):
    """The SKU is already on the working selection; edit its quantity instead."""

    def __init__(self, sku: str) -> None:
        self.sku = sku
        super().__init__(f"SKU {sku} is already in the working selection")


class UnknownSkuError(MarketEngineError):
    """A SKU could not be resolved against the catalog."""

    def __init__(self, sku: str) -> None:
        self.sku = sku
        super().__init__(f"Unknown SKU {sku}")


class WorkingSelectionExistsError(MarketEngineError):
    """A working selection already exists and the import mode was 'auto'."""

    def __init__(self, selection_id: str, version: int, name: str) -> None:
        self.selection_id = selection_id
        self.version = version
        self.name = name
        super().__init__("Working selection already exists")

    def to_dict(self) -> dict:
        return {
            "error": str(self),
            "requiresDecision": True,
            "currentSelection": {
                "id": self.selection_id,
                "version": self.version,
                "name": self.name,
            },
        }


class AmbiguousTierDimensionError(MarketEngineError, ValueError):
    """A promotion was configured with both SKU tiers and dollar tiers."""

    def __init__(self, promotion_id: str | None = None) -> None:
        self.promotion_id = promotion_id
        label = f"Promotion {promotion_id}" if promotion_id else "Promotion"
        super().__init__(
            f"{label} defines both SKU tiers and dollar tiers; configure exactly one"
        )


class InvalidMarketCycleError(MarketEngineError, ValueError):
    """Market cycle input is not a valid year + January/June pair."""
