"""Tests for the SQLite storage layer."""

from __future__ import annotations

import sqlite3

import pytest

from src.common.models import (
    MarketCycle,
    Promotion,
    Selection,
    SelectionItem,
    SelectionMetadata,
)
from src.market_engine.database.connection import get_connection, init_db, transaction
from src.market_engine.database.models import (
    insert_selection,
    read_current_cycle,
    row_to_promotion,
    row_to_selection,
    promotion_to_row,
    write_current_cycle,
)


def _selection(**overrides) -> Selection:
    data = {
        "id": "sel-1",
        "customer_id": "cust-1",
        "vendor_id": "lib-and-co",
        "status": "working",
        "version": 1,
        "name": "Working Selection",
        "items": [SelectionItem(sku="10001-001", unit_list=100, qty=2, net_unit=100, extended_net=200)],
        "market_cycle": MarketCycle(year=2026, month="January"),
    }
    data.update(overrides)
    return Selection(**data)


class TestDatabaseInit:
    """Test database schema initialization."""

    def test_init_creates_tables(self, db_conn):
        tables = {
            row["name"]
            for row in db_conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
        }
        assert {"selections", "snapshot_versions", "market_settings", "promotions"} <= tables

    def test_init_is_idempotent(self, temp_db):
        init_db(temp_db)
        init_db(temp_db)

    def test_wal_mode(self, db_conn):
        row = db_conn.execute("PRAGMA journal_mode").fetchone()
        assert row[0] == "wal"


class TestSelectionRows:
    def test_round_trip(self, db_conn):
        original = _selection(metadata=SelectionMetadata.model_validate({"extraKey": "kept"}))
        insert_selection(db_conn, original)
        db_conn.commit()

        row = db_conn.execute("SELECT * FROM selections WHERE id = 'sel-1'").fetchone()
        loaded = row_to_selection(row)
        assert loaded.items == original.items
        assert loaded.market_cycle == original.market_cycle
        assert loaded.metadata.to_dict() == {"extraKey": "kept"}
        assert loaded.created_at == original.created_at

    def test_second_working_selection_rejected(self, db_conn):
        insert_selection(db_conn, _selection())
        with pytest.raises(sqlite3.IntegrityError):
            insert_selection(db_conn, _selection(id="sel-2"))

    def test_working_selections_in_other_scopes_allowed(self, db_conn):
        insert_selection(db_conn, _selection())
        insert_selection(db_conn, _selection(id="sel-2", vendor_id="savoy-house"))
        insert_selection(db_conn, _selection(id="sel-3", customer_id="cust-2"))
        count = db_conn.execute("SELECT COUNT(*) FROM selections").fetchone()[0]
        assert count == 3

    def test_duplicate_snapshot_version_rejected(self, db_conn):
        insert_selection(db_conn, _selection(id="snap-1", status="snapshot", version=1))
        with pytest.raises(sqlite3.IntegrityError):
            insert_selection(db_conn, _selection(id="snap-2", status="snapshot", version=1))


class TestTransaction:
    def test_commits_on_success(self, temp_db):
        with transaction(temp_db) as conn:
            insert_selection(conn, _selection())
        conn = get_connection(temp_db)
        try:
            assert conn.execute("SELECT COUNT(*) FROM selections").fetchone()[0] == 1
        finally:
            conn.close()

    def test_rolls_back_on_error(self, temp_db):
        with pytest.raises(RuntimeError):
            with transaction(temp_db) as conn:
                insert_selection(conn, _selection())
                raise RuntimeError("boom")
        conn = get_connection(temp_db)
        try:
            assert conn.execute("SELECT COUNT(*) FROM selections").fetchone()[0] == 0
        finally:
            conn.close()


class TestMarketSettings:
    def test_unset_cycle_is_none(self, db_conn):
        assert read_current_cycle(db_conn) is None

    def test_write_then_overwrite(self, db_conn):
        write_current_cycle(db_conn, MarketCycle(year=2026, month="January"), _selection().created_at)
        write_current_cycle(db_conn, MarketCycle(year=2026, month="June"), _selection().created_at)
        assert read_current_cycle(db_conn) == MarketCycle(year=2026, month="June")
        assert db_conn.execute("SELECT COUNT(*) FROM market_settings").fetchone()[0] == 1


class TestPromotionRows:
    def test_round_trip_keeps_dimension(self, db_conn):
        promo = Promotion.from_record({
            "id": "p1", "vendorId": "lib-and-co", "name": "Dollar tiers",
            "dollarTiers": [
                {"threshold": 5000, "discountPercent": 10, "backupDiscountPercent": 5},
                {"threshold": 10000, "discountPercent": 20},
            ],
            "displayCopy": {"title": "Spring Market", "bullets": ["Free freight"]},
        })
        row = promotion_to_row(promo)
        columns = ", ".join(row)
        db_conn.execute(
            f"INSERT INTO promotions ({columns}) VALUES ({', '.join('?' for _ in row)})",
            tuple(row.values()),
        )
        loaded = row_to_promotion(db_conn.execute("SELECT * FROM promotions").fetchone())
        assert loaded.dimension == promo.dimension
        assert loaded.tiers == promo.tiers
        assert loaded.display_copy.bullets == ["Free freight"]
