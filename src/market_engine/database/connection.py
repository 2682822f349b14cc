"""SQLite database connection and schema management."""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager

from ..common.config import Config

logger = logging.getLogger(__name__)

_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS selections (
    id TEXT PRIMARY KEY,
    customer_id TEXT NOT NULL,
    vendor_id TEXT NOT NULL,
    status TEXT NOT NULL CHECK (status IN ('working', 'snapshot', 'archived')),
    version INTEGER NOT NULL DEFAULT 1 CHECK (version >= 1),
    name TEXT NOT NULL,
    items_json TEXT NOT NULL DEFAULT '[]',
    market_cycle_year INTEGER,
    market_cycle_month TEXT CHECK (market_cycle_month IN ('January', 'June')),
    source_event_id TEXT,
    source_year INTEGER,
    is_visible_to_customer INTEGER NOT NULL DEFAULT 0,
    metadata_json TEXT NOT NULL DEFAULT '{}',
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_selections_scope
    ON selections(customer_id, vendor_id, status);

CREATE INDEX IF NOT EXISTS idx_selections_market_cycle
    ON selections(market_cycle_year, market_cycle_month);

CREATE UNIQUE INDEX IF NOT EXISTS idx_selections_one_working
    ON selections(customer_id, vendor_id) WHERE status = 'working';

CREATE UNIQUE INDEX IF NOT EXISTS idx_selections_snapshot_version
    ON selections(customer_id, vendor_id, version) WHERE status = 'snapshot';

CREATE TABLE IF NOT EXISTS snapshot_versions (
    customer_id TEXT NOT NULL,
    vendor_id TEXT NOT NULL,
    last_version INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (customer_id, vendor_id)
);

CREATE TABLE IF NOT EXISTS market_settings (
    id TEXT PRIMARY KEY DEFAULT 'global',
    current_market_cycle_year INTEGER,
    current_market_cycle_month TEXT
        CHECK (current_market_cycle_month IN ('January', 'June')),
    updated_at TEXT
);

CREATE TABLE IF NOT EXISTS promotions (
    id TEXT PRIMARY KEY,
    vendor_id TEXT NOT NULL,
    name TEXT NOT NULL,
    description TEXT,
    active INTEGER NOT NULL DEFAULT 1,
    start_date TEXT,
    end_date TEXT,
    tier_kind TEXT NOT NULL CHECK (tier_kind IN ('sku', 'dollar')),
    tiers_json TEXT NOT NULL DEFAULT '[]',
    market_cycle_year INTEGER,
    market_cycle_month TEXT CHECK (market_cycle_month IN ('January', 'June')),
    copy_json TEXT NOT NULL DEFAULT '{}',
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_promotions_vendor_active
    ON promotions(vendor_id, active);
"""


def get_connection(config: Config | None = None) -> sqlite3.Connection:
    """Get a SQLite connection with row factory enabled.

    Args:
        config: Optional Config. Uses defaults if not provided.

    Returns:
        sqlite3.Connection with Row factory.
    """
    config = config or Config()
    db_path = config.database_abs_path
    db_path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(str(db_path), timeout=30)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    return conn


@contextmanager
def transaction(config: Config | None = None) -> Iterator[sqlite3.Connection]:
    """Open a connection inside a write transaction.

    Commits when the block exits normally, rolls back and re-raises on
    any exception. BEGIN IMMEDIATE takes the database write lock up front
    so read-modify-write sequences cannot interleave across processes.
    """
    conn = get_connection(config)
    try:
        conn.execute("BEGIN IMMEDIATE")
        yield conn
        conn.commit()
    except BaseException:
        conn.rollback()
        raise
    finally:
        conn.close()


def init_db(config: Config | None = None) -> None:
    """Initialize database schema (idempotent).

    Args:
        config: Optional Config. Uses defaults if not provided.
    """
    config = config or Config()
    conn = get_connection(config)
    try:
        conn.executescript(_SCHEMA_SQL)
        conn.commit()
        logger.info("Database schema initialized at %s", config.database_abs_path)
    finally:
        conn.close()
