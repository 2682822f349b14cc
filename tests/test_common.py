"""Tests for shared common modules — models, errors, config, logging."""

import logging
from datetime import datetime, timedelta, timezone

import pytest
import yaml
from pydantic import ValidationError

from src.common.config import Settings
from src.common.errors import (
    AmbiguousTierDimensionError,
    InvalidMarketCycleError,
    MarketEngineError,
    NotFoundError,
    WorkingSelectionExistsError,
)
from src.common.logging import setup_logging
from src.common.models import (
    DollarTierRule,
    MarketCycle,
    MarketMonth,
    Promotion,
    PromotionTier,
    Selection,
    SelectionItem,
    SelectionMetadata,
    SelectionStatus,
    SkuTierRule,
    TierDimension,
)
from src.market_engine.common.config import Config


class TestMarketCycle:
    def test_create_cycle(self):
        cycle = MarketCycle(year=2026, month="June")
        assert cycle.month == MarketMonth.JUNE
        assert cycle.key == "2026-June"
        assert cycle.label == "June 2026"

    def test_invalid_month_rejected(self):
        with pytest.raises(InvalidMarketCycleError):
            MarketCycle.of(2026, "March")

    def test_invalid_year_rejected(self):
        with pytest.raises(InvalidMarketCycleError):
            MarketCycle.of("twenty", "June")

    def test_parse_key(self):
        assert MarketCycle.parse("2025-January") == MarketCycle(year=2025, month="January")

    def test_parse_malformed_key(self):
        with pytest.raises(InvalidMarketCycleError):
            MarketCycle.parse("June2026")

    def test_next_and_previous(self):
        jan = MarketCycle(year=2026, month="January")
        june = jan.next()
        assert june == MarketCycle(year=2026, month="June")
        assert june.next() == MarketCycle(year=2027, month="January")
        assert jan.previous() == MarketCycle(year=2025, month="June")

    def test_cycles_are_hashable_and_ordered(self):
        a = MarketCycle(year=2026, month="January")
        b = MarketCycle(year=2026, month="June")
        assert len({a, b, MarketCycle(year=2026, month="January")}) == 2
        assert a.sort_key < b.sort_key


class TestSelectionItem:
    def test_display_units_fall_back_to_qty(self):
        legacy = SelectionItem(sku="A", unit_list=10, qty=4)
        assert legacy.display_units == 4
        split = SelectionItem(sku="B", unit_list=10, qty=4, display_qty=1, backup_qty=3)
        assert split.display_units == 1

    def test_negative_quantities_rejected(self):
        with pytest.raises(ValidationError):
            SelectionItem(sku="A", unit_list=10, qty=-1)
        with pytest.raises(ValidationError):
            SelectionItem(sku="A", unit_list=10, qty=1, backup_qty=-2)

    def test_program_discount_is_a_fraction(self):
        with pytest.raises(ValidationError):
            SelectionItem(sku="A", unit_list=10, qty=1, program_disc=15)

    def test_camel_case_aliases(self):
        item = SelectionItem.model_validate(
            {"sku": "A", "unitList": 12.5, "qty": 2, "displayQty": 1, "backupQty": 1}
        )
        assert item.unit_list == 12.5
        dumped = item.model_dump(by_alias=True)
        assert dumped["displayQty"] == 1
        assert "extendedNet" in dumped


class TestSelectionMetadata:
    def test_unknown_keys_round_trip(self):
        meta = SelectionMetadata.model_validate(
            {"restoredFromName": "Dallas v2", "customFlag": {"nested": True}}
        )
        assert meta.restored_from_name == "Dallas v2"
        data = meta.to_dict()
        assert data["restoredFromName"] == "Dallas v2"
        assert data["customFlag"] == {"nested": True}

    def test_merged_overrides_later_values(self):
        meta = SelectionMetadata(was_modified=False, import_mode="auto")
        merged = meta.merged({"wasModified": True}, None)
        assert merged.was_modified is True
        assert merged.import_mode == "auto"
        assert meta.was_modified is False


class TestSelection:
    def test_totals(self):
        selection = Selection(
            id="s1",
            customer_id="c1",
            vendor_id="v1",
            status=SelectionStatus.WORKING,
            version=1,
            name="Working",
            items=[
                SelectionItem(sku="A", unit_list=10, qty=2, extended_net=20),
                SelectionItem(sku="B", unit_list=5, qty=1, extended_net=5),
            ],
        )
        assert selection.item_count == 2
        assert selection.total_net == 25
        assert selection.skus == {"A", "B"}
        assert selection.find_item("B").unit_list == 5
        assert selection.find_item("Z") is None

    def test_version_must_be_positive(self):
        with pytest.raises(ValidationError):
            Selection(
                id="s1", customer_id="c1", vendor_id="v1",
                status="snapshot", version=0, name="Bad",
            )

    def test_to_dict_uses_camel_case(self):
        selection = Selection(
            id="s1", customer_id="c1", vendor_id="v1", status="snapshot",
            version=3, name="Dallas", market_cycle=MarketCycle(year=2026, month="June"),
        )
        data = selection.to_dict()
        assert data["customerId"] == "c1"
        assert data["isVisibleToCustomer"] is False
        assert data["marketCycle"] == {"year": 2026, "month": "June"}


class TestPromotionModel:
    def test_tiers_sorted_and_numbered(self):
        rule = SkuTierRule(tiers=[
            PromotionTier(threshold=10, discount_percent=50),
            PromotionTier(threshold=5, discount_percent=30),
        ])
        assert [t.threshold for t in rule.tiers] == [5, 10]
        assert [t.tier_level for t in rule.tiers] == [1, 2]

    def test_explicit_levels_kept_when_mixed(self):
        rule = SkuTierRule(tiers=[
            PromotionTier(threshold=5, discount_percent=30),
            PromotionTier(threshold=10, discount_percent=50, tier_level=1),
            PromotionTier(threshold=20, discount_percent=60),
        ])
        assert [t.tier_level for t in rule.tiers] == [2, 1, 3]

    def test_duplicate_thresholds_rejected(self):
        with pytest.raises(ValidationError):
            DollarTierRule(tiers=[
                PromotionTier(threshold=1000, discount_percent=10),
                PromotionTier(threshold=1000, discount_percent=20),
            ])

    def test_discriminated_tier_rule(self):
        promo = Promotion(
            id="p1", vendor_id="v1", name="Dollar promo",
            tier_rule={"kind": "dollar", "tiers": [{"threshold": 5000, "discountPercent": 10}]},
        )
        assert isinstance(promo.tier_rule, DollarTierRule)
        assert promo.dimension == TierDimension.DOLLAR

    def test_from_record_with_sku_tiers(self):
        promo = Promotion.from_record({
            "id": "p1", "vendorId": "v1", "name": "SKU promo",
            "skuTiers": [{"threshold": 5, "discountPercent": 30}],
            "dollarTiers": [],
        })
        assert promo.dimension == TierDimension.SKU
        assert promo.tiers[0].discount_percent == 30

    def test_from_record_with_both_dimensions_fails(self):
        with pytest.raises(AmbiguousTierDimensionError) as exc_info:
            Promotion.from_record({
                "id": "p1", "vendorId": "v1", "name": "Broken",
                "skuTiers": [{"threshold": 5, "discountPercent": 30}],
                "dollarTiers": [{"threshold": 5000, "discountPercent": 10}],
            })
        assert exc_info.value.promotion_id == "p1"
        assert isinstance(exc_info.value, ValueError)

    def test_model_validate_with_both_dimensions_fails(self):
        with pytest.raises(AmbiguousTierDimensionError):
            Promotion.model_validate({
                "id": "p1", "vendorId": "v1", "name": "Broken",
                "skuTiers": [{"threshold": 5, "discountPercent": 30}],
                "dollarTiers": [{"threshold": 5000, "discountPercent": 10}],
            })

    def test_constructor_with_both_dimensions_fails(self):
        with pytest.raises(AmbiguousTierDimensionError):
            Promotion(
                id="p1", vendor_id="v1", name="Broken",
                sku_tiers=[{"threshold": 5, "discountPercent": 30}],
                dollar_tiers=[{"threshold": 5000, "discountPercent": 10}],
            )

    def test_model_validate_routes_dollar_tiers(self):
        promo = Promotion.model_validate({
            "id": "p1", "vendorId": "v1", "name": "Dollar promo",
            "dollarTiers": [{"threshold": 5000, "discountPercent": 10}],
        })
        assert promo.dimension == TierDimension.DOLLAR
        assert promo.tiers[0].threshold == 5000

    def test_tier_list_with_explicit_rule_fails(self):
        with pytest.raises(AmbiguousTierDimensionError):
            Promotion.model_validate({
                "id": "p1", "vendorId": "v1", "name": "Broken",
                "tierRule": {"kind": "sku", "tiers": []},
                "dollarTiers": [{"threshold": 5000, "discountPercent": 10}],
            })

    def test_is_live_respects_window(self):
        now = datetime(2026, 3, 1, tzinfo=timezone.utc)
        promo = Promotion(
            id="p1", vendor_id="v1", name="Windowed",
            start_date=now - timedelta(days=1), end_date=now + timedelta(days=1),
        )
        assert promo.is_live(now)
        assert not promo.is_live(now + timedelta(days=2))
        assert not promo.model_copy(update={"active": False}).is_live(now)

    def test_naive_dates_treated_as_utc(self):
        promo = Promotion(id="p1", vendor_id="v1", name="Naive", start_date="2026-01-01T00:00:00")
        assert promo.is_live(datetime(2026, 2, 1, tzinfo=timezone.utc))


class TestErrors:
    def test_hierarchy(self):
        assert issubclass(NotFoundError, MarketEngineError)
        assert issubclass(NotFoundError, LookupError)

    def test_working_selection_exists_payload(self):
        error = WorkingSelectionExistsError("sel-1", 4, "Working Selection")
        data = error.to_dict()
        assert data["requiresDecision"] is True
        assert data["currentSelection"] == {"id": "sel-1", "version": 4, "name": "Working Selection"}


class TestConfig:
    def test_settings_defaults(self, tmp_path):
        settings = Settings.load(tmp_path / "missing.yaml")
        assert settings.selections.default_vendor_id == "lib-and-co"
        assert settings.logging.level == "INFO"

    def test_settings_from_yaml(self, tmp_path):
        path = tmp_path / "settings.yaml"
        with open(path, "w", encoding="utf-8") as f:
            yaml.dump({"selections": {"default_vendor_id": "savoy-house"}}, f)
        settings = Settings.load(path)
        assert settings.selections.default_vendor_id == "savoy-house"
        assert settings.selections.default_working_name == "Working Selection"

    def test_config_vendor_default(self):
        config = Config(database_path="/tmp/x.db", default_vendor_id="hubbardton-forge")
        assert config.vendor(None) == "hubbardton-forge"
        assert config.vendor("lib-and-co") == "lib-and-co"

    def test_relative_database_path_resolves_to_project_root(self, project_root):
        config = Config(database_path="data/test.db")
        assert config.database_abs_path == project_root / "data" / "test.db"

    def test_money_precision_env_override(self, monkeypatch):
        monkeypatch.setenv("MONEY_PRECISION", "4")
        assert Config(database_path="/tmp/x.db").money_precision == 4


class TestLogging:
    def test_setup_logging_accepts_level_names(self):
        logger = setup_logging("DEBUG", module_name="test_common.debug")
        assert logger.level == logging.DEBUG

    def test_setup_logging_is_idempotent(self):
        first = setup_logging(module_name="test_common.once")
        second = setup_logging(module_name="test_common.once")
        assert first is second
        assert len(second.handlers) == 1
