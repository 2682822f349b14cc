"""Tests for the catalog collaborator and line pricing."""

from __future__ import annotations

import pytest
import yaml

from src.common.errors import UnknownSkuError
from src.common.models import SelectionItem
from src.market_engine.catalog import (
    CatalogItem,
    StaticCatalog,
    compute_financials,
    refresh_prices,
    resolve_item,
)


class TestStaticCatalog:
    def test_case_insensitive_lookup(self, catalog):
        assert catalog.find_item("10001-003").list_price == 300.0
        assert catalog.find_item(" 10001-003 ").name == "Fixture 3"
        assert catalog.find_item("nope") is None

    def test_from_yaml(self, tmp_path):
        path = tmp_path / "catalog.yaml"
        with open(path, "w", encoding="utf-8") as f:
            yaml.dump({"items": [
                {"sku": "12180-041", "name": "Aria Pendant", "list": 489.0,
                 "collectionName": "Aria", "year": 2025},
            ]}, f)
        catalog = StaticCatalog.from_yaml(path)
        assert len(catalog) == 1
        item = catalog.find_item("12180-041")
        assert item.collection_name == "Aria"
        assert item.to_dict()["list"] == 489.0

    def test_missing_file_is_empty(self, tmp_path):
        assert len(StaticCatalog.from_yaml(tmp_path / "missing.yaml")) == 0

    def test_shipped_catalog_loads(self, project_root):
        catalog = StaticCatalog.from_yaml(project_root / "config" / "catalog.yaml")
        assert catalog.find_item("12180-041") is not None


class TestPricing:
    def test_compute_financials(self):
        item = SelectionItem(sku="A", unit_list=89.99, qty=3, program_disc=0.1)
        priced = compute_financials(item)
        assert priced.net_unit == 80.99
        assert priced.extended_net == 242.97

    def test_resolve_item(self, catalog):
        item = resolve_item(catalog, "10001-002", 3, display_qty=2, backup_qty=1)
        assert (item.unit_list, item.extended_net) == (200.0, 600.0)
        assert item.display_qty == 2

    def test_resolve_unknown(self, catalog):
        with pytest.raises(UnknownSkuError):
            resolve_item(catalog, "99999-000")

    def test_refresh_keeps_price_for_dropped_sku(self, catalog):
        items = [
            SelectionItem(sku="10001-001", unit_list=90.0, qty=1),
            SelectionItem(sku="RETIRED-1", unit_list=55.0, qty=2),
        ]
        refreshed = refresh_prices(items, catalog)
        assert refreshed[0].unit_list == 100.0
        assert refreshed[1].unit_list == 55.0
        assert refreshed[1].extended_net == 110.0

    def test_refresh_without_catalog_reprices_only(self):
        refreshed = refresh_prices([SelectionItem(sku="A", unit_list=10, qty=4)], None)
        assert refreshed[0].extended_net == 40.0

    def test_catalog_item_from_dict_fallbacks(self):
        item = CatalogItem.from_dict({"sku": 12345, "list_price": "19.5", "collection": "Corvo"})
        assert item.sku == "12345"
        assert item.list_price == 19.5
        assert item.collection_name == "Corvo"
