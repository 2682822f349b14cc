"""Promotion persistence (SQLite).

Records come in as Promotion models or raw dicts. Raw dicts may carry
the legacy skuTiers/dollarTiers pair; exactly one of them may be
populated.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime

from ...common.errors import NotFoundError
from ...common.models import Promotion, utcnow
from ..common.config import Config
from ..database.connection import get_connection, transaction
from ..database.models import PROMOTION_COLUMNS, promotion_to_row, row_to_promotion

logger = logging.getLogger(__name__)

_TIER_KEYS = ("skuTiers", "sku_tiers", "dollarTiers", "dollar_tiers")


class PromotionStore:
    """CRUD and active-promotion lookup for vendor promotions.

    Usage:
        store = PromotionStore(config)
        promo = store.create({"vendorId": "lib-and-co", "name": "Market 2026",
                              "skuTiers": [{"threshold": 5, "discountPercent": 30}]})
        active = store.get_active("lib-and-co")
    """

    def __init__(self, config: Config | None = None) -> None:
        self.config = config or Config()

    def _write(self, promotion: Promotion, insert: bool) -> None:
        row = promotion_to_row(promotion)
        with transaction(self.config) as conn:
            if insert:
                placeholders = ", ".join("?" for _ in PROMOTION_COLUMNS)
                conn.execute(
                    f"INSERT INTO promotions ({', '.join(PROMOTION_COLUMNS)}) "
                    f"VALUES ({placeholders})",
                    tuple(row[c] for c in PROMOTION_COLUMNS),
                )
            else:
                columns = [c for c in PROMOTION_COLUMNS if c not in ("id", "created_at")]
                cursor = conn.execute(
                    f"UPDATE promotions SET {', '.join(f'{c} = ?' for c in columns)} WHERE id = ?",
                    tuple(row[c] for c in columns) + (promotion.id,),
                )
                if cursor.rowcount == 0:
                    raise NotFoundError("Promotion not found")

    def create(self, data: Promotion | dict) -> Promotion:
        """Persist a new promotion.

        Raises:
            AmbiguousTierDimensionError: both tier lists are populated.
        """
        if isinstance(data, Promotion):
            promotion = data
        else:
            data = dict(data)
            data.setdefault("id", f"promo_{uuid.uuid4().hex[:12]}")
            vendor = data.pop("vendor", None)
            data.setdefault("vendorId", vendor or self.config.default_vendor_id)
            promotion = Promotion.from_record(data)

        now = utcnow()
        promotion = promotion.model_copy(update={"created_at": now, "updated_at": now})
        self._write(promotion, insert=True)
        logger.info(
            "Created promotion %s (%s, vendor=%s, %d %s tiers)",
            promotion.id, promotion.name, promotion.vendor_id,
            len(promotion.tiers), promotion.dimension.value,
        )
        return promotion

    def get(self, promotion_id: str) -> Promotion | None:
        conn = get_connection(self.config)
        try:
            row = conn.execute(
                "SELECT * FROM promotions WHERE id = ?", (promotion_id,)
            ).fetchone()
            return row_to_promotion(row) if row else None
        finally:
            conn.close()

    def list(self, vendor_id: str | None = None) -> list[Promotion]:
        conn = get_connection(self.config)
        try:
            if vendor_id:
                rows = conn.execute(
                    "SELECT * FROM promotions WHERE vendor_id = ? ORDER BY created_at",
                    (vendor_id,),
                ).fetchall()
            else:
                rows = conn.execute("SELECT * FROM promotions ORDER BY created_at").fetchall()
            return [row_to_promotion(row) for row in rows]
        finally:
            conn.close()

    def update(self, promotion_id: str, changes: dict) -> Promotion:
        """Apply a partial update.

        Supplying skuTiers or dollarTiers replaces the tier rule and may
        switch its dimension.

        Raises:
            NotFoundError: unknown promotion id.
            AmbiguousTierDimensionError: both tier lists are populated.
        """
        existing = self.get(promotion_id)
        if existing is None:
            raise NotFoundError("Promotion not found")

        data = existing.model_dump(by_alias=True)
        if any(key in changes for key in _TIER_KEYS):
            data.pop("tierRule", None)
        data.update(changes)
        data["id"] = existing.id
        data["createdAt"] = existing.created_at
        data["updatedAt"] = utcnow()

        promotion = Promotion.from_record(data)
        self._write(promotion, insert=False)
        logger.info("Updated promotion %s", promotion.id)
        return promotion

    def delete(self, promotion_id: str) -> bool:
        with transaction(self.config) as conn:
            cursor = conn.execute("DELETE FROM promotions WHERE id = ?", (promotion_id,))
            deleted = cursor.rowcount > 0
        if deleted:
            logger.info("Deleted promotion %s", promotion_id)
        return deleted

    def toggle_active(self, promotion_id: str) -> Promotion:
        """Flip the active flag.

        Raises:
            NotFoundError: unknown promotion id.
        """
        existing = self.get(promotion_id)
        if existing is None:
            raise NotFoundError("Promotion not found")
        return self.update(promotion_id, {"active": not existing.active})

    def get_active(
        self, vendor_id: str | None = None, now: datetime | None = None,
    ) -> Promotion | None:
        """First live promotion (active flag and date window) for vendor_id."""
        now = now or utcnow()
        for promotion in self.list(vendor_id):
            if promotion.is_live(now):
                return promotion
        return None
