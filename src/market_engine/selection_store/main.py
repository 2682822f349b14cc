"""CLI entry point for the selection store.

Usage:
    python -m src.market_engine.selection_store.main snapshots --customer cust-1
    python -m src.market_engine.selection_store.main working --customer cust-1
    python -m src.market_engine.selection_store.main snapshot --customer cust-1 \\
        --input data/dallas_order.json --event dallas-2026 --year 2026 --month January
    python -m src.market_engine.selection_store.main toggle --customer cust-1 --id <snapshot-id>
    python -m src.market_engine.selection_store.main restore --customer cust-1 --id <snapshot-id>
    python -m src.market_engine.selection_store.main import --customer cust-1 --id <snapshot-id> \\
        --mode replace
"""

from __future__ import annotations

import argparse
import json
import sys

from src.common.config import settings
from src.common.errors import MarketEngineError, WorkingSelectionExistsError
from src.common.logging import setup_logging

from ..catalog import StaticCatalog
from ..common.config import Config
from ..database.connection import init_db
from .repository import SelectionRepository

# Handler on the package logger so repository and service logs reach the console
logger = setup_logging(settings.logging.level, module_name="src.market_engine").getChild("selection_store")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Selection store: snapshots and working selections")
    parser.add_argument("--vendor", type=str, help="Vendor id (default: configured vendor)")
    parser.add_argument("--output", type=str, help="Output JSON file path")
    sub = parser.add_subparsers(dest="command", required=True)

    snapshots = sub.add_parser("snapshots", help="List snapshot versions, newest first")
    snapshots.add_argument("--customer", required=True)

    working = sub.add_parser("working", help="Show the working selection")
    working.add_argument("--customer", required=True)

    snapshot = sub.add_parser("snapshot", help="Create a snapshot from a JSON list of lines")
    snapshot.add_argument("--customer", required=True)
    snapshot.add_argument("--input", required=True, help="JSON file: [{sku, qty, ...}, ...]")
    snapshot.add_argument("--event", required=True, help="Source market event id")
    snapshot.add_argument("--year", type=int, required=True, help="Source year")
    snapshot.add_argument("--month", choices=["January", "June"])
    snapshot.add_argument("--name", type=str)

    for name, help_text in (
        ("toggle", "Flip a snapshot's customer visibility"),
        ("restore", "Restore the working selection from a snapshot"),
        ("delete", "Delete a snapshot"),
    ):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("--customer", required=True)
        cmd.add_argument("--id", required=True, help="Snapshot id")

    imp = sub.add_parser("import", help="Clone a snapshot into a new working selection")
    imp.add_argument("--customer", required=True)
    imp.add_argument("--id", required=True, help="Snapshot id")
    imp.add_argument("--mode", choices=["auto", "createNew", "replace"], default="auto")
    imp.add_argument("--name", type=str)

    return parser


def main() -> None:
    args = _build_parser().parse_args()

    config = Config()
    init_db(config)
    repo = SelectionRepository(config, catalog=StaticCatalog.from_yaml(config.catalog_abs_path))

    try:
        if args.command == "snapshots":
            snapshots = repo.list_snapshots(args.customer, args.vendor)
            logger.info("=== Snapshots for %s (%d) ===", args.customer, len(snapshots))
            for s in snapshots:
                logger.info(
                    "  v%d %s [%s] %d items, $%.2f net%s",
                    s.version,
                    s.name,
                    s.market_cycle.label if s.market_cycle else "no cycle",
                    s.item_count,
                    s.total_net,
                    " (visible)" if s.is_visible_to_customer else "",
                )
            result = [s.to_dict() for s in snapshots]

        elif args.command == "working":
            selection = repo.get_working(args.customer, args.vendor)
            if selection is None:
                logger.info("No working selection for %s", args.customer)
                result = None
            else:
                logger.info(
                    "Working selection %s v%d: %d items, $%.2f net",
                    selection.name, selection.version, selection.item_count, selection.total_net,
                )
                result = selection.to_dict()

        elif args.command == "snapshot":
            with open(args.input, "r", encoding="utf-8") as f:
                lines = json.load(f)
            selection = repo.create_snapshot(
                args.customer, lines, args.year, args.event, args.name,
                vendor_id=args.vendor, market_month=args.month,
            )
            result = selection.to_dict()

        elif args.command == "toggle":
            result = repo.toggle_visibility(args.id, args.customer).to_dict()

        elif args.command == "restore":
            result = repo.restore_working(args.customer, args.id).to_dict()

        elif args.command == "delete":
            result = repo.delete_snapshot(args.id, args.customer)

        else:
            try:
                selection = repo.create_working_from_snapshot(
                    args.customer, args.id, name=args.name, mode=args.mode,
                )
                result = selection.to_dict()
            except WorkingSelectionExistsError as e:
                logger.warning("%s; rerun with --mode createNew or --mode replace", e)
                result = e.to_dict()

    except MarketEngineError as e:
        logger.error("%s failed: %s", args.command, e)
        sys.exit(1)

    if args.output:
        with open(args.output, "w", encoding="utf-8") as f:
            json.dump(result, f, ensure_ascii=False, indent=2)
        logger.info("Output written to %s", args.output)


if __name__ == "__main__":
    main()
