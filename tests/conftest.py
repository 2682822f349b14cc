"""Shared test fixtures for the market selection engine."""

import sys
from pathlib import Path

import pytest

# Ensure src is importable
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from src.common.models import MarketCycle, SelectionItem
from src.market_engine.catalog import CatalogItem, StaticCatalog
from src.market_engine.common.config import Config
from src.market_engine.database.connection import get_connection, init_db
from src.market_engine.selection_store import ScopeLocks, SelectionRepository


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def temp_db(tmp_path):
    """Provide a Config pointing to a temporary SQLite database."""
    db_file = tmp_path / "test_market.db"
    config = Config(database_path=str(db_file), default_vendor_id="lib-and-co")
    init_db(config)
    return config


@pytest.fixture
def db_conn(temp_db):
    """Provide an initialized SQLite connection from temp_db."""
    conn = get_connection(temp_db)
    yield conn
    conn.close()


@pytest.fixture
def catalog() -> StaticCatalog:
    """Small in-memory catalog: twelve SKUs 10001-001 .. 10001-012 at $100 steps."""
    items = [
        CatalogItem(
            sku=f"10001-{n:03d}",
            name=f"Fixture {n}",
            list_price=100.0 * n,
            collection_name="Aria" if n <= 6 else "Bellamy",
            year=2026,
        )
        for n in range(1, 13)
    ]
    return StaticCatalog(items)


@pytest.fixture
def current_cycle() -> dict:
    """Mutable holder so tests can move the cycle the repository tags with."""
    return {"cycle": MarketCycle(year=2026, month="January")}


@pytest.fixture
def repository(temp_db, catalog, current_cycle) -> SelectionRepository:
    """Repository on the temp database with its own lock registry."""
    return SelectionRepository(
        temp_db,
        catalog=catalog,
        cycle_source=lambda: current_cycle["cycle"],
        locks=ScopeLocks(),
    )


@pytest.fixture
def make_item():
    """Factory for SelectionItem lines with sensible defaults."""

    def _make(sku: str, unit_list: float = 100.0, qty: int = 1, **kwargs) -> SelectionItem:
        return SelectionItem(sku=sku, name=f"Item {sku}", unit_list=unit_list, qty=qty, **kwargs)

    return _make
