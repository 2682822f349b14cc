"""Archival Module - Cycle-staleness detection for working selections."""

from .models import ArchivalResult, BulkArchivalResult, CycleState
from .policy import ArchivalPolicy, evaluate

__all__ = [
    "ArchivalPolicy",
    "ArchivalResult",
    "BulkArchivalResult",
    "CycleState",
    "evaluate",
]
