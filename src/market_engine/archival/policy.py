"""Cycle-staleness detection for working selections.

A working selection is current while its market cycle matches the
current cycle (or it carries no cycle at all) and stale otherwise. A
check on a stale selection re-tags it as archived and leaves the
working slot empty; the next write creates a fresh one.

The current cycle is always passed in by the caller, usually from
MarketCycleRegistry.get_current().
"""

from __future__ import annotations

import logging
import sqlite3

from ...common.errors import MarketEngineError
from ...common.models import MarketCycle, Selection, SelectionStatus
from ..selection_store.repository import SelectionRepository
from .models import ArchivalResult, BulkArchivalResult, CycleState

logger = logging.getLogger(__name__)


def evaluate(selection: Selection, current_cycle: MarketCycle | None) -> CycleState:
    if current_cycle is None or selection.market_cycle is None:
        return CycleState.CURRENT
    if selection.market_cycle == current_cycle:
        return CycleState.CURRENT
    return CycleState.STALE


class ArchivalPolicy:
    """Archive working selections left over from a previous market cycle.

    Usage:
        policy = ArchivalPolicy(repository)
        result = policy.check("cust-1", registry.get_current())
        if result.needs_archive:
            print(result.archived_selection["name"])
    """

    def __init__(self, repository: SelectionRepository) -> None:
        self.repository = repository

    def check(
        self,
        customer_id: str,
        current_cycle: MarketCycle | None,
        vendor_id: str | None = None,
    ) -> ArchivalResult:
        """Run the staleness check for one (customer, vendor) scope.

        Idempotent: once a stale selection is archived the slot is empty,
        so a repeated call reports needs_archive=False. A failed write
        rolls back and leaves the working selection in place.
        """
        if current_cycle is None:
            logger.debug("No current market cycle; skipping check for %s", customer_id)
            return ArchivalResult(needs_archive=False)

        vendor = self.repository.config.vendor(vendor_id)
        with self.repository.scope(customer_id, vendor) as conn:
            working = self.repository.fetch_working(conn, customer_id, vendor)
            if working is None:
                logger.debug("No working selection for %s/%s", customer_id, vendor)
                return ArchivalResult(needs_archive=False)
            if evaluate(working, current_cycle) == CycleState.CURRENT:
                return ArchivalResult(needs_archive=False)

            self._archive(conn, working, current_cycle)

        return ArchivalResult(
            needs_archive=True,
            archived_selection=working.summary(),
            new_market_cycle=current_cycle,
        )

    def _archive(
        self, conn: sqlite3.Connection, working: Selection, current_cycle: MarketCycle,
    ) -> None:
        previous = working.market_cycle.label if working.market_cycle else "untagged"
        self.repository.archive(
            conn, working, f"market cycle changed from {previous} to {current_cycle.label}",
        )

    def archive_stale(
        self, current_cycle: MarketCycle, vendor_id: str | None = None,
    ) -> BulkArchivalResult:
        """Check every working selection (one vendor or all) against current_cycle."""
        result = BulkArchivalResult(current_cycle=current_cycle)
        working = self.repository.query(status=SelectionStatus.WORKING, vendor_id=vendor_id)

        for selection in working:
            result.checked += 1
            try:
                outcome = self.check(selection.customer_id, current_cycle, selection.vendor_id)
            except (MarketEngineError, sqlite3.Error):
                logger.warning(
                    "Archival check failed for %s/%s",
                    selection.customer_id, selection.vendor_id, exc_info=True,
                )
                result.failed += 1
                continue
            if outcome.needs_archive:
                result.archived += 1
                result.archived_ids.append(outcome.archived_selection["id"])

        logger.info(
            "Archived %d of %d working selections for %s (failed=%d)",
            result.archived, result.checked, current_cycle.label, result.failed,
        )
        return result
