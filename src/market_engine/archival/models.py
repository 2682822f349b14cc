"""Data models for cycle-staleness archival."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from ...common.models import MarketCycle


class CycleState(str, Enum):
    """Staleness of a working selection against the current cycle."""
    CURRENT = "current"
    STALE = "stale"


@dataclass
class ArchivalResult:
    """Outcome of one staleness check."""

    needs_archive: bool
    archived_selection: dict | None = None  # Selection.summary() of what was archived
    new_market_cycle: MarketCycle | None = None

    def to_dict(self) -> dict:
        data: dict = {"needsArchive": self.needs_archive}
        if self.archived_selection is not None:
            data["archivedSelection"] = self.archived_selection
        if self.new_market_cycle is not None:
            data["newMarketCycle"] = self.new_market_cycle.model_dump(mode="json")
        return data


@dataclass
class BulkArchivalResult:
    """Outcome of archiving every stale working selection."""

    current_cycle: MarketCycle
    checked: int = 0
    archived: int = 0
    failed: int = 0
    archived_ids: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "currentCycle": self.current_cycle.model_dump(mode="json"),
            "checked": self.checked,
            "archived": self.archived,
            "failed": self.failed,
            "archivedIds": self.archived_ids,
        }
