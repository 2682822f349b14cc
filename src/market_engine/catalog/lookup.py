"""Catalog lookup collaborator.

Catalog loading and search live outside this project; the selection
store only needs find_item(sku). StaticCatalog serves tests, CLIs and
small deployments from a dict or a YAML file.

Config source: config/catalog.yaml
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Protocol

import yaml

from .models import CatalogItem

logger = logging.getLogger(__name__)


class CatalogLookup(Protocol):
    """Anything that can resolve a SKU to a priced catalog entry."""

    def find_item(self, sku: str) -> CatalogItem | None: ...


class StaticCatalog:
    """In-memory catalog keyed by SKU (case-insensitive).

    Usage:
        catalog = StaticCatalog.from_yaml("config/catalog.yaml")
        item = catalog.find_item("12180-041")
    """

    def __init__(self, items: Iterable[CatalogItem] = ()) -> None:
        self._items: dict[str, CatalogItem] = {}
        for item in items:
            self.add(item)

    def add(self, item: CatalogItem) -> None:
        self._items[item.sku.upper()] = item

    def find_item(self, sku: str) -> CatalogItem | None:
        return self._items.get(sku.strip().upper())

    def __len__(self) -> int:
        return len(self._items)

    @classmethod
    def from_yaml(cls, path: str | Path) -> StaticCatalog:
        """Load a catalog YAML with a top-level 'items' list."""
        path = Path(path)
        if not path.exists():
            logger.warning("Catalog file not found: %s", path)
            return cls()
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        catalog = cls(CatalogItem.from_dict(entry) for entry in data.get("items", []))
        logger.info("Loaded catalog: %d items from %s", len(catalog), path)
        return catalog
