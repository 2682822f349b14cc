"""Selection Store Module - Working selections and versioned snapshots."""

from .locks import ScopeLocks
from .models import LineInput, QuantityUpdate
from .repository import SelectionRepository

__all__ = [
    "LineInput",
    "QuantityUpdate",
    "ScopeLocks",
    "SelectionRepository",
]
