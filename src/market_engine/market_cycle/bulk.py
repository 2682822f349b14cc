"""Rep-facing operations across every customer for one vendor + cycle.

Each customer's update runs as its own serialized repository call; one
failing customer is logged and counted but never aborts the batch.
"""

from __future__ import annotations

import logging
import sqlite3
from collections import defaultdict

from ...common.errors import MarketEngineError
from ...common.models import MarketCycle, MarketMonth, Selection, SelectionStatus
from ..selection_store.repository import SelectionRepository
from .models import BulkVisibilityResult, CycleEntry, CycleStats, MarketPeriod

logger = logging.getLogger(__name__)


def _scope(selection: Selection) -> tuple[str, str]:
    return selection.customer_id, selection.vendor_id


def _latest_versions(snapshots: list[Selection]) -> dict[tuple[str, str], int]:
    latest: dict[tuple[str, str], int] = {}
    for s in snapshots:
        key = _scope(s)
        latest[key] = max(latest.get(key, 0), s.version)
    return latest


def period_of(snapshot: Selection) -> MarketCycle | None:
    """Market period a snapshot belongs to; untagged ones fall back to source year."""
    if snapshot.market_cycle is not None:
        return snapshot.market_cycle
    if snapshot.source_year:
        return MarketCycle.of(snapshot.source_year, MarketMonth.JANUARY)
    return None


class CycleOperations:
    """List, count and bulk-toggle snapshots by market cycle.

    Active means highest snapshot version in the (customer, vendor)
    scope, the same rule SelectionRepository.get_active_snapshot uses.
    Visibility is reported alongside it.
    """

    def __init__(self, repository: SelectionRepository) -> None:
        self.repository = repository

    def _snapshots(self, vendor_id: str | None = None, customer_id: str | None = None) -> list[Selection]:
        return self.repository.query(
            status=SelectionStatus.SNAPSHOT, vendor_id=vendor_id, customer_id=customer_id,
        )

    def list_by_cycle(self, cycle: MarketCycle, vendor_id: str | None = None) -> list[CycleEntry]:
        """Snapshots tagged with cycle, for one vendor or all vendors."""
        snapshots = self._snapshots(vendor_id)
        latest = _latest_versions(snapshots)
        return [
            CycleEntry(selection=s, is_active=s.version == latest[_scope(s)])
            for s in snapshots
            if s.market_cycle == cycle
        ]

    def bulk_set_visibility(
        self, cycle: MarketCycle, visible: bool, vendor_id: str | None = None,
    ) -> BulkVisibilityResult:
        """Show or hide every snapshot in cycle."""
        entries = self.list_by_cycle(cycle, vendor_id)
        result = BulkVisibilityResult(cycle=cycle, visible=visible, total=len(entries))

        for entry in entries:
            try:
                self.repository.set_visibility(entry.selection.id, entry.customer_id, visible)
                result.changed += 1
            except (MarketEngineError, sqlite3.Error):
                logger.warning(
                    "Failed to %s snapshot %s for %s",
                    "show" if visible else "hide", entry.selection.id, entry.customer_id,
                    exc_info=True,
                )
                result.failed += 1
                result.failed_ids.append(entry.selection.id)

        logger.info(
            "%s %d of %d snapshots for %s (vendor=%s, failed=%d)",
            "Activated" if visible else "Deactivated",
            result.changed, result.total, cycle.label, vendor_id or "all", result.failed,
        )
        return result

    def bulk_activate(self, cycle: MarketCycle, vendor_id: str | None = None) -> BulkVisibilityResult:
        return self.bulk_set_visibility(cycle, True, vendor_id)

    def bulk_deactivate(self, cycle: MarketCycle, vendor_id: str | None = None) -> BulkVisibilityResult:
        return self.bulk_set_visibility(cycle, False, vendor_id)

    def stats(self, vendor_id: str | None = None) -> list[CycleStats]:
        """Per-cycle snapshot counts, newest cycle first. Read-only."""
        snapshots = self._snapshots(vendor_id)
        latest = _latest_versions(snapshots)

        by_cycle: dict[MarketCycle | None, CycleStats] = {}
        customers: dict[MarketCycle | None, set[str]] = defaultdict(set)
        for s in snapshots:
            stats = by_cycle.setdefault(s.market_cycle, CycleStats(cycle=s.market_cycle))
            stats.total += 1
            if s.version == latest[_scope(s)]:
                stats.active += 1
            if s.is_visible_to_customer:
                stats.visible += 1
            customers[s.market_cycle].add(s.customer_id)

        for cycle, stats in by_cycle.items():
            stats.customers = len(customers[cycle])

        return sorted(
            by_cycle.values(),
            key=lambda st: st.cycle.sort_key if st.cycle else (0, 0),
            reverse=True,
        )

    def history(self, customer_id: str, vendor_id: str | None = None) -> list[MarketPeriod]:
        """A customer's snapshots grouped into market periods, newest first.

        The newest period holding at least one visible snapshot is marked
        active.
        """
        periods: dict[MarketCycle | None, MarketPeriod] = {}
        for s in self._snapshots(vendor_id, customer_id):
            cycle = period_of(s)
            periods.setdefault(cycle, MarketPeriod(cycle=cycle)).snapshots.append(s)

        ordered = sorted(
            periods.values(),
            key=lambda p: p.cycle.sort_key if p.cycle else (0, 0),
            reverse=True,
        )
        for period in ordered:
            period.snapshots.sort(key=lambda s: s.version, reverse=True)

        active = next(
            (p for p in ordered if any(s.is_visible_to_customer for s in p.snapshots)),
            None,
        )
        if active is not None:
            active.is_active = True
        return ordered
