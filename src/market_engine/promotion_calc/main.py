"""CLI entry point for promotion status.

Usage:
    python -m src.market_engine.promotion_calc.main --customer cust-1
    python -m src.market_engine.promotion_calc.main --customer cust-1 --vendor lib-and-co \\
        --output data/exports/promo_cust-1.json
    python -m src.market_engine.promotion_calc.main --load config/promotions.yaml
    python -m src.market_engine.promotion_calc.main --customer cust-1 --check-cycle
"""

from __future__ import annotations

import argparse
import json

import yaml

from src.common.config import settings
from src.common.logging import setup_logging

from ..common.config import Config
from ..database.connection import init_db
from ..selection_store import SelectionRepository
from .messaging import format_currency, headline, promotion_message
from .status import PromotionStatusService
from .store import PromotionStore

# Handler on the package logger so repository and service logs reach the console
logger = setup_logging(settings.logging.level, module_name="src.market_engine").getChild("promotion_calc")


def main() -> None:
    parser = argparse.ArgumentParser(description="Promotion tier status for a customer")
    parser.add_argument("--customer", type=str, help="Customer id")
    parser.add_argument("--vendor", type=str, help="Vendor id (default: configured vendor)")
    parser.add_argument(
        "--load",
        type=str,
        help="YAML file with a top-level 'promotions' list to create first",
    )
    parser.add_argument(
        "--check-cycle",
        action="store_true",
        help="Archive the working selection first if it predates the promotion's market cycle",
    )
    parser.add_argument("--output", type=str, help="Output JSON file path")

    args = parser.parse_args()

    if not args.customer and not args.load:
        parser.error("Either --customer or --load is required")

    config = Config()
    init_db(config)
    store = PromotionStore(config)

    if args.load:
        with open(args.load, "r", encoding="utf-8") as f:
            records = (yaml.safe_load(f) or {}).get("promotions", [])
        for record in records:
            store.create(record)
        logger.info("Loaded %d promotions from %s", len(records), args.load)

    if not args.customer:
        return

    service = PromotionStatusService(SelectionRepository(config), store)
    if args.check_cycle:
        archival = service.check_market_cycle(args.customer, args.vendor)
        if archival.needs_archive:
            logger.info(
                "Archived working selection %s; new cycle %s",
                archival.archived_selection["name"], archival.new_market_cycle.label,
            )
    calc = service.current_status(args.customer, args.vendor)

    if calc is None:
        logger.info("No live promotion for vendor %s", config.vendor(args.vendor))
        return

    logger.info("=== %s: %s ===", calc.promotion_name, headline(calc))
    logger.info(promotion_message(calc))
    if calc.has_data:
        logger.info(
            "  Tier: %s | Qualifying %s: %g | Savings: %s | Grand total: %s",
            calc.current_tier_level or "below minimum",
            calc.dimension.value,
            calc.qualifying_value,
            format_currency(calc.total_savings),
            format_currency(calc.grand_total),
        )
        for projection in calc.potential_savings_by_tier:
            logger.info(
                "    Tier %d (%g%%): gap %g, +%s",
                projection.tier_level,
                projection.discount_percent,
                projection.skus_to_reach_tier,
                format_currency(projection.additional_savings_from_current),
            )

    if args.output:
        with open(args.output, "w", encoding="utf-8") as f:
            json.dump(calc.to_dict(), f, ensure_ascii=False, indent=2)
        logger.info("Output written to %s", args.output)


if __name__ == "__main__":
    main()
