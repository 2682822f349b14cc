"""Row mappers between SQLite rows and the shared Pydantic models."""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime

from ...common.models import (
    MarketCycle,
    Promotion,
    PromotionCopy,
    Selection,
    SelectionItem,
    SelectionMetadata,
)

SELECTION_COLUMNS = (
    "id", "customer_id", "vendor_id", "status", "version", "name", "items_json",
    "market_cycle_year", "market_cycle_month", "source_event_id", "source_year",
    "is_visible_to_customer", "metadata_json", "created_at", "updated_at",
)

PROMOTION_COLUMNS = (
    "id", "vendor_id", "name", "description", "active", "start_date", "end_date",
    "tier_kind", "tiers_json", "market_cycle_year", "market_cycle_month",
    "copy_json", "created_at", "updated_at",
)


def _cycle_columns(cycle: MarketCycle | None) -> tuple[int | None, str | None]:
    if cycle is None:
        return None, None
    return cycle.year, cycle.month.value


def _cycle_from_columns(year: int | None, month: str | None) -> MarketCycle | None:
    if year is None or month is None:
        return None
    return MarketCycle(year=year, month=month)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def selection_to_row(selection: Selection) -> dict:
    """Flatten a Selection into column values."""
    year, month = _cycle_columns(selection.market_cycle)
    return {
        "id": selection.id,
        "customer_id": selection.customer_id,
        "vendor_id": selection.vendor_id,
        "status": selection.status.value,
        "version": selection.version,
        "name": selection.name,
        "items_json": json.dumps(
            [item.model_dump(by_alias=True, mode="json") for item in selection.items],
            ensure_ascii=False,
        ),
        "market_cycle_year": year,
        "market_cycle_month": month,
        "source_event_id": selection.source_event_id,
        "source_year": selection.source_year,
        "is_visible_to_customer": int(selection.is_visible_to_customer),
        "metadata_json": json.dumps(selection.metadata.to_dict(), ensure_ascii=False),
        "created_at": _iso(selection.created_at),
        "updated_at": _iso(selection.updated_at),
    }


def row_to_selection(row: sqlite3.Row) -> Selection:
    """Rebuild a Selection from a selections row."""
    return Selection(
        id=row["id"],
        customer_id=row["customer_id"],
        vendor_id=row["vendor_id"],
        status=row["status"],
        version=row["version"],
        name=row["name"],
        items=[SelectionItem.model_validate(i) for i in json.loads(row["items_json"])],
        market_cycle=_cycle_from_columns(row["market_cycle_year"], row["market_cycle_month"]),
        source_event_id=row["source_event_id"],
        source_year=row["source_year"],
        is_visible_to_customer=bool(row["is_visible_to_customer"]),
        metadata=SelectionMetadata.model_validate(json.loads(row["metadata_json"] or "{}")),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def insert_selection(conn: sqlite3.Connection, selection: Selection) -> None:
    row = selection_to_row(selection)
    placeholders = ", ".join("?" for _ in SELECTION_COLUMNS)
    conn.execute(
        f"INSERT INTO selections ({', '.join(SELECTION_COLUMNS)}) VALUES ({placeholders})",
        tuple(row[c] for c in SELECTION_COLUMNS),
    )


def update_selection(conn: sqlite3.Connection, selection: Selection) -> None:
    row = selection_to_row(selection)
    columns = [c for c in SELECTION_COLUMNS if c not in ("id", "created_at")]
    assignments = ", ".join(f"{c} = ?" for c in columns)
    conn.execute(
        f"UPDATE selections SET {assignments} WHERE id = ?",
        tuple(row[c] for c in columns) + (selection.id,),
    )


def promotion_to_row(promotion: Promotion) -> dict:
    """Flatten a Promotion into column values."""
    year, month = _cycle_columns(promotion.market_cycle)
    return {
        "id": promotion.id,
        "vendor_id": promotion.vendor_id,
        "name": promotion.name,
        "description": promotion.description,
        "active": int(promotion.active),
        "start_date": _iso(promotion.start_date),
        "end_date": _iso(promotion.end_date),
        "tier_kind": promotion.tier_rule.kind,
        "tiers_json": json.dumps(
            [t.model_dump(by_alias=True, mode="json") for t in promotion.tiers]
        ),
        "market_cycle_year": year,
        "market_cycle_month": month,
        "copy_json": json.dumps(
            promotion.display_copy.model_dump(by_alias=True, mode="json"),
            ensure_ascii=False,
        ),
        "created_at": _iso(promotion.created_at),
        "updated_at": _iso(promotion.updated_at),
    }


def row_to_promotion(row: sqlite3.Row) -> Promotion:
    """Rebuild a Promotion from a promotions row."""
    return Promotion(
        id=row["id"],
        vendor_id=row["vendor_id"],
        name=row["name"],
        description=row["description"],
        active=bool(row["active"]),
        start_date=row["start_date"],
        end_date=row["end_date"],
        tier_rule={"kind": row["tier_kind"], "tiers": json.loads(row["tiers_json"])},
        market_cycle=_cycle_from_columns(row["market_cycle_year"], row["market_cycle_month"]),
        display_copy=PromotionCopy.model_validate(json.loads(row["copy_json"] or "{}")),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def read_current_cycle(conn: sqlite3.Connection) -> MarketCycle | None:
    """Read the process-wide current market cycle, if one has been set."""
    row = conn.execute(
        "SELECT current_market_cycle_year, current_market_cycle_month "
        "FROM market_settings WHERE id = 'global'"
    ).fetchone()
    if row is None:
        return None
    return _cycle_from_columns(row[0], row[1])


def write_current_cycle(conn: sqlite3.Connection, cycle: MarketCycle, updated_at: datetime) -> None:
    year, month = _cycle_columns(cycle)
    conn.execute(
        """INSERT INTO market_settings
           (id, current_market_cycle_year, current_market_cycle_month, updated_at)
           VALUES ('global', ?, ?, ?)
           ON CONFLICT(id) DO UPDATE SET
               current_market_cycle_year = excluded.current_market_cycle_year,
               current_market_cycle_month = excluded.current_market_cycle_month,
               updated_at = excluded.updated_at""",
        (year, month, _iso(updated_at)),
    )
