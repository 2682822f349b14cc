"""CLI entry point for market cycle management.

Usage:
    python -m src.market_engine.market_cycle.main show
    python -m src.market_engine.market_cycle.main set --year 2026 --month June
    python -m src.market_engine.market_cycle.main advance --archive
    python -m src.market_engine.market_cycle.main stats --vendor lib-and-co
    python -m src.market_engine.market_cycle.main list --year 2026 --month January
    python -m src.market_engine.market_cycle.main bulk-activate --year 2026 --month January
    python -m src.market_engine.market_cycle.main archive-stale
"""

from __future__ import annotations

import argparse
import json
import sys

from src.common.config import settings
from src.common.errors import MarketEngineError
from src.common.logging import setup_logging
from src.common.models import MarketCycle

from ..archival import ArchivalPolicy
from ..common.config import Config
from ..database.connection import init_db
from ..selection_store import SelectionRepository
from .bulk import CycleOperations
from .registry import MarketCycleRegistry

# Handler on the package logger so repository and service logs reach the console
logger = setup_logging(settings.logging.level, module_name="src.market_engine").getChild("market_cycle")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Market cycle registry and bulk cycle operations")
    parser.add_argument("--vendor", type=str, help="Vendor id (default: all vendors)")
    parser.add_argument("--output", type=str, help="Output JSON file path")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("show", help="Show the current market cycle")
    sub.add_parser("stats", help="Snapshot counts per cycle")

    set_cmd = sub.add_parser("set", help="Set the current market cycle")
    set_cmd.add_argument("--year", type=int, required=True)
    set_cmd.add_argument("--month", choices=["January", "June"], required=True)

    advance = sub.add_parser("advance", help="Advance to the next market cycle")
    advance.add_argument(
        "--archive",
        action="store_true",
        help="Archive working selections from earlier cycles afterwards",
    )

    for name, help_text in (
        ("list", "List snapshots tagged with a cycle"),
        ("bulk-activate", "Make every snapshot in a cycle visible"),
        ("bulk-deactivate", "Hide every snapshot in a cycle"),
    ):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("--year", type=int, required=True)
        cmd.add_argument("--month", choices=["January", "June"], required=True)

    sub.add_parser("archive-stale", help="Archive working selections from earlier cycles")
    return parser


def main() -> None:
    args = _build_parser().parse_args()

    config = Config()
    init_db(config)
    registry = MarketCycleRegistry(config)
    repo = SelectionRepository(config, cycle_source=registry.get_current)
    ops = CycleOperations(repo)
    policy = ArchivalPolicy(repo)

    try:
        if args.command == "show":
            cycle = registry.get_current()
            logger.info("Current market cycle: %s", cycle.label if cycle else "not set")
            result = {"currentCycle": cycle.model_dump(mode="json") if cycle else None}

        elif args.command == "set":
            cycle = registry.set_current(args.year, args.month)
            result = {"currentCycle": cycle.model_dump(mode="json")}

        elif args.command == "advance":
            cycle = registry.advance()
            result = {"currentCycle": cycle.model_dump(mode="json")}
            if args.archive:
                result["archival"] = policy.archive_stale(cycle, args.vendor).to_dict()

        elif args.command == "stats":
            stats = ops.stats(args.vendor)
            for st in stats:
                logger.info(
                    "  %s: %d snapshots, %d active, %d visible, %d customers",
                    st.cycle.label if st.cycle else "Unassigned",
                    st.total, st.active, st.visible, st.customers,
                )
            result = [st.to_dict() for st in stats]

        elif args.command == "list":
            entries = ops.list_by_cycle(MarketCycle.of(args.year, args.month), args.vendor)
            for entry in entries:
                logger.info(
                    "  %s v%d %s%s%s",
                    entry.customer_id,
                    entry.selection.version,
                    entry.selection.name,
                    " [active]" if entry.is_active else "",
                    " (visible)" if entry.is_visible else "",
                )
            result = {
                "total": len(entries),
                "activeCount": sum(1 for e in entries if e.is_active),
                "selections": [e.to_dict() for e in entries],
            }

        elif args.command in ("bulk-activate", "bulk-deactivate"):
            cycle = MarketCycle.of(args.year, args.month)
            outcome = ops.bulk_set_visibility(
                cycle, args.command == "bulk-activate", args.vendor,
            )
            result = outcome.to_dict()

        else:
            cycle = registry.get_current()
            if cycle is None:
                logger.error("No current market cycle set; run 'set' first")
                sys.exit(1)
            result = policy.archive_stale(cycle, args.vendor).to_dict()

    except MarketEngineError as e:
        logger.error("%s failed: %s", args.command, e)
        sys.exit(1)

    if args.output:
        with open(args.output, "w", encoding="utf-8") as f:
            json.dump(result, f, ensure_ascii=False, indent=2)
        logger.info("Output written to %s", args.output)


if __name__ == "__main__":
    main()
