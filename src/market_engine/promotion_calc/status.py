"""Current promotion status for a customer's working selection."""

from __future__ import annotations

import logging
from datetime import datetime

from ...common.models import PromotionCalculation
from ..archival import ArchivalPolicy, ArchivalResult
from ..selection_store.repository import SelectionRepository
from .calculator import calculate
from .store import PromotionStore

logger = logging.getLogger(__name__)


class PromotionStatusService:
    """Join the vendor's live promotion with the customer's working selection.

    Usage:
        service = PromotionStatusService(repository, PromotionStore(config))
        calc = service.current_status("cust-1")
        if calc and calc.next_tier:
            print(next_tier_cta(calc))
    """

    def __init__(self, repository: SelectionRepository, store: PromotionStore) -> None:
        self.repository = repository
        self.store = store

    def current_status(
        self,
        customer_id: str,
        vendor_id: str | None = None,
        now: datetime | None = None,
    ) -> PromotionCalculation | None:
        """None when the vendor has no live promotion.

        A customer without a working selection gets a no-data calculation.
        """
        vendor = self.repository.config.vendor(vendor_id)
        promotion = self.store.get_active(vendor, now)
        if promotion is None:
            logger.debug("No live promotion for vendor %s", vendor)
            return None

        working = self.repository.get_working(customer_id, vendor)
        return calculate(promotion, working.items if working is not None else None)

    def check_market_cycle(
        self,
        customer_id: str,
        vendor_id: str | None = None,
        now: datetime | None = None,
    ) -> ArchivalResult:
        """Archive the working selection if it predates the live promotion's cycle.

        No-op (needs_archive=False) when the vendor has no live promotion
        or the promotion has no market cycle configured.
        """
        vendor = self.repository.config.vendor(vendor_id)
        promotion = self.store.get_active(vendor, now)
        if promotion is None or promotion.market_cycle is None:
            logger.debug("No promotion market cycle for vendor %s; nothing to check", vendor)
            return ArchivalResult(needs_archive=False)
        return ArchivalPolicy(self.repository).check(customer_id, promotion.market_cycle, vendor)
