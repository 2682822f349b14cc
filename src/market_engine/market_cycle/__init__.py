"""Market Cycle Module - Current cycle registry and bulk cycle operations."""

from .bulk import CycleOperations
from .models import BulkVisibilityResult, CycleEntry, CycleStats, MarketPeriod
from .registry import MarketCycleRegistry

__all__ = [
    "BulkVisibilityResult",
    "CycleEntry",
    "CycleOperations",
    "CycleStats",
    "MarketCycleRegistry",
    "MarketPeriod",
]
