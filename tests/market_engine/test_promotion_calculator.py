"""Tests for the promotion tier calculator."""

from __future__ import annotations

import pytest

from src.common.errors import AmbiguousTierDimensionError
from src.common.models import Promotion, SelectionItem, TierDimension
from src.market_engine.promotion_calc import calculate, match_tier, qualifying_value


def _item(sku: str, unit_list: float = 100.0, display: int = 1, backup: int = 0) -> SelectionItem:
    return SelectionItem(
        sku=sku, unit_list=unit_list, qty=display + backup,
        display_qty=display, backup_qty=backup,
    )


@pytest.fixture
def sku_promo() -> Promotion:
    return Promotion.from_record({
        "id": "promo-sku",
        "vendorId": "lib-and-co",
        "name": "Market SKU Program",
        "skuTiers": [
            {"threshold": 5, "discountPercent": 30},
            {"threshold": 10, "discountPercent": 50},
        ],
    })


@pytest.fixture
def dollar_promo() -> Promotion:
    return Promotion.from_record({
        "id": "promo-dollar",
        "vendorId": "lib-and-co",
        "name": "Market Dollar Program",
        "dollarTiers": [
            {"threshold": 1000, "discountPercent": 10, "backupDiscountPercent": 5},
            {"threshold": 2500, "discountPercent": 20, "backupDiscountPercent": 10},
            {"threshold": 5000, "discountPercent": 30},
        ],
    })


class TestScenario:
    def test_seven_skus_match_tier_one(self, sku_promo):
        items = [_item(f"SKU-{n}") for n in range(7)]
        calc = calculate(sku_promo, items)

        assert calc.current_tier_level == 1
        assert calc.current_sku_count == 7
        assert calc.display_discount_percent == 30
        assert calc.total_savings == pytest.approx(210.0)
        assert calc.grand_total == pytest.approx(490.0)

        assert len(calc.potential_savings_by_tier) == 1
        projection = calc.potential_savings_by_tier[0]
        assert projection.tier_level == 2
        assert projection.skus_to_reach_tier == 3
        assert projection.est_savings == pytest.approx(350.0)
        assert projection.additional_savings_from_current == pytest.approx(140.0)


class TestSkuDimension:
    def test_backup_only_lines_do_not_qualify(self, sku_promo):
        items = [_item(f"SKU-{n}") for n in range(4)] + [_item("BACKUP", display=0, backup=6)]
        calc = calculate(sku_promo, items)
        assert calc.qualifying_value == 4
        assert calc.current_tier_level is None

    def test_duplicate_skus_count_once(self, sku_promo):
        items = [_item("SKU-1"), _item("SKU-1")] + [_item(f"SKU-{n}") for n in range(2, 6)]
        assert qualifying_value(sku_promo, items) == 5

    def test_legacy_lines_without_display_qty_count(self, sku_promo):
        items = [SelectionItem(sku=f"L-{n}", unit_list=50, qty=1) for n in range(5)]
        calc = calculate(sku_promo, items)
        assert calc.current_tier_level == 1

    def test_top_tier_has_no_projections(self, sku_promo):
        calc = calculate(sku_promo, [_item(f"SKU-{n}") for n in range(12)])
        assert calc.current_tier_level == 2
        assert calc.potential_savings_by_tier == []
        assert calc.next_tier is None

    def test_exact_threshold_matches(self, sku_promo):
        calc = calculate(sku_promo, [_item(f"SKU-{n}") for n in range(10)])
        assert calc.current_tier_level == 2


class TestDollarDimension:
    def test_display_value_qualifies(self, dollar_promo):
        items = [_item("A", unit_list=1000, display=2, backup=1), _item("B", unit_list=250, display=2)]
        calc = calculate(dollar_promo, items)

        assert calc.dimension == TierDimension.DOLLAR
        assert calc.qualifying_value == pytest.approx(2500)
        assert calc.current_tier_level == 2
        # display 2500 × 20% + backup 1000 × 10%
        assert calc.total_savings == pytest.approx(600.0)
        assert calc.backup_discount_percent == 10

    def test_backup_percent_defaults_to_zero(self, dollar_promo):
        items = [_item("A", unit_list=5000, display=1, backup=2)]
        calc = calculate(dollar_promo, items)
        assert calc.current_tier_level == 3
        assert calc.backup_discount_percent == 0
        assert calc.total_savings == pytest.approx(1500.0)

    def test_projection_gap_in_dollars(self, dollar_promo):
        calc = calculate(dollar_promo, [_item("A", unit_list=600)])
        assert calc.current_tier_level is None
        gaps = [p.skus_to_reach_tier for p in calc.potential_savings_by_tier]
        assert gaps == pytest.approx([400, 1900, 4400])


class TestLineBreakdown:
    def test_lines_split_display_and_backup(self, dollar_promo):
        calc = calculate(dollar_promo, [_item("A", unit_list=1000, display=1, backup=2)])
        line = calc.lines[0]
        assert line.display_subtotal == pytest.approx(1000)
        assert line.display_discount == pytest.approx(100)
        assert line.backup_subtotal == pytest.approx(2000)
        assert line.backup_discount == pytest.approx(100)
        assert line.line_total == pytest.approx(2800)
        assert calc.grand_total == pytest.approx(sum(l.line_total for l in calc.lines))


class TestConsistency:
    @pytest.mark.parametrize("count", [0, 3, 5, 7, 9, 10, 15])
    def test_savings_recomputed_independently(self, sku_promo, count):
        items = [
            _item(f"SKU-{n}", unit_list=75.0 + 10 * n, display=1 + n % 2, backup=n % 3)
            for n in range(count)
        ]
        calc = calculate(sku_promo, items)
        tier = next((t for t in sku_promo.tiers if t.tier_level == calc.current_tier_level), None)

        expected = 0.0
        if tier is not None:
            for item in items:
                expected += item.unit_list * item.display_qty * tier.discount_percent / 100
                expected += item.unit_list * item.backup_qty * tier.backup_percent / 100
        assert calc.total_savings == pytest.approx(expected)

        if tier is not None:
            assert calc.qualifying_value >= tier.threshold
            higher = [t for t in sku_promo.tiers if t.threshold > tier.threshold]
            if higher:
                assert calc.qualifying_value < higher[0].threshold

    def test_match_tier_unsorted_input(self, sku_promo):
        tiers = list(reversed(sku_promo.tiers))
        assert match_tier(tiers, 7).tier_level == 1
        assert match_tier(tiers, 4) is None


class TestNoData:
    def test_none_items_signals_no_data(self, sku_promo):
        calc = calculate(sku_promo, None)
        assert calc.has_data is False
        assert calc.current_sku_count is None
        assert calc.qualifying_value is None
        assert calc.below_minimum_tier is False

    def test_empty_items_is_zero_not_no_data(self, sku_promo):
        calc = calculate(sku_promo, [])
        assert calc.has_data is True
        assert calc.qualifying_value == 0
        assert calc.current_sku_count == 0
        assert calc.current_tier_level is None
        assert calc.below_minimum_tier is True
        assert len(calc.potential_savings_by_tier) == 2


class TestRecords:
    def test_raw_record_accepted(self):
        calc = calculate(
            {"id": "p", "vendorId": "v", "name": "Raw",
             "skuTiers": [{"threshold": 1, "discountPercent": 10}], "dollarTiers": []},
            [_item("A")],
        )
        assert calc.current_tier_level == 1

    def test_both_dimensions_fail(self):
        with pytest.raises(AmbiguousTierDimensionError):
            calculate(
                {"id": "p", "vendorId": "v", "name": "Broken",
                 "skuTiers": [{"threshold": 1, "discountPercent": 10}],
                 "dollarTiers": [{"threshold": 100, "discountPercent": 10}]},
                [_item("A")],
            )

    def test_promotion_without_tiers(self):
        promo = Promotion(id="p", vendor_id="v", name="Empty")
        calc = calculate(promo, [_item("A")])
        assert calc.current_tier_level is None
        assert calc.total_savings == 0
        assert calc.potential_savings_by_tier == []
