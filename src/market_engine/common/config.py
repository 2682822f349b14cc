"""Configuration management for market_engine modules."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

from ...common.config import settings

# Load .env from project root
_PROJECT_ROOT = Path(__file__).resolve().parents[3]
load_dotenv(_PROJECT_ROOT / ".env")


@dataclass
class Config:
    """Central configuration loaded from environment variables."""

    # Database
    database_path: str = field(
        default_factory=lambda: os.getenv(
            "DATABASE_PATH", settings.database.db_path
        )
    )

    # Selections
    default_vendor_id: str = field(
        default_factory=lambda: os.getenv(
            "DEFAULT_VENDOR_ID", settings.selections.default_vendor_id
        )
    )
    default_working_name: str = settings.selections.default_working_name

    # Catalog
    catalog_path: str = field(
        default_factory=lambda: os.getenv(
            "CATALOG_PATH", settings.selections.catalog_path
        )
    )

    # Money values are rounded to this many decimals
    money_precision: int = 2

    def __post_init__(self) -> None:
        """Load overrides from environment."""
        if precision := os.getenv("MONEY_PRECISION"):
            self.money_precision = int(precision)

    @property
    def database_abs_path(self) -> Path:
        """Resolve database path relative to project root."""
        p = Path(self.database_path)
        if p.is_absolute():
            return p
        return _PROJECT_ROOT / p

    @property
    def catalog_abs_path(self) -> Path:
        """Resolve catalog path relative to project root."""
        p = Path(self.catalog_path)
        if p.is_absolute():
            return p
        return _PROJECT_ROOT / p

    def vendor(self, vendor_id: str | None) -> str:
        """Return vendor_id, or the default vendor when omitted."""
        return vendor_id or self.default_vendor_id
