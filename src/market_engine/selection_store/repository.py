"""Selection repository: working selections and versioned snapshots.

One row per Selection in SQLite. For each (customer, vendor) scope there
is at most one working selection; snapshots are append-only and carry a
version that strictly increases within the scope.

Every mutation is a read-modify-write performed under the scope's lock
and inside a single BEGIN IMMEDIATE transaction, so a failure part way
through persists nothing.

Usage:
    repo = SelectionRepository(config, catalog=StaticCatalog.from_yaml(path))
    snapshot = repo.create_snapshot("cust-1", [{"sku": "12180-041", "qty": 2}],
                                    source_year=2026, source_event_id="dallas-2026")
    working = repo.create_working_from_snapshot("cust-1", snapshot.id,
                                                mode=ImportMode.REPLACE)
"""

from __future__ import annotations

import logging
import sqlite3
import uuid
from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager

from ...common.errors import (
    DuplicateItemError,
    NotFoundError,
    UnknownSkuError,
    WorkingSelectionExistsError,
)
from ...common.models import (
    ImportMode,
    MarketCycle,
    MarketMonth,
    MergeStrategy,
    Selection,
    SelectionItem,
    SelectionMetadata,
    SelectionStatus,
    utcnow,
)
from ..catalog.lookup import CatalogLookup
from ..catalog.pricing import (
    compute_financials,
    lookup_sku,
    price_items,
    refresh_prices,
    resolve_item,
)
from ..common.config import Config
from ..database.connection import get_connection, transaction
from ..database.models import (
    insert_selection,
    read_current_cycle,
    row_to_selection,
    update_selection,
)
from .locks import DEFAULT_LOCKS, ScopeLocks
from .models import LineInput, QuantityUpdate

logger = logging.getLogger(__name__)


def _ensure_unique_skus(items: Iterable[SelectionItem]) -> None:
    seen: set[str] = set()
    for item in items:
        if item.sku in seen:
            raise DuplicateItemError(item.sku)
        seen.add(item.sku)


class SelectionRepository:
    """Persisted, queryable collection of Selection records.

    Args:
        config: Database and default-vendor configuration.
        catalog: Catalog collaborator. Required for snapshot creation and
            used to refresh prices when snapshot lines are cloned.
        cycle_source: Returns the market cycle new working selections are
            tagged with. Defaults to the stored current cycle.
        locks: Per-scope lock registry; shared process-wide by default.
    """

    def __init__(
        self,
        config: Config | None = None,
        catalog: CatalogLookup | None = None,
        cycle_source: Callable[[], MarketCycle | None] | None = None,
        locks: ScopeLocks | None = None,
    ) -> None:
        self.config = config or Config()
        self.catalog = catalog
        self._cycle_source = cycle_source
        self._locks = locks or DEFAULT_LOCKS

    # --- plumbing ---------------------------------------------------------

    @contextmanager
    def scope(self, customer_id: str, vendor_id: str) -> Iterator[sqlite3.Connection]:
        """Hold the scope lock and a write transaction for the block."""
        with self._locks.hold(customer_id, vendor_id):
            with transaction(self.config) as conn:
                yield conn

    def _read(self, sql: str, params: tuple = ()) -> list[Selection]:
        conn = get_connection(self.config)
        try:
            rows = conn.execute(sql, params).fetchall()
            return [row_to_selection(row) for row in rows]
        finally:
            conn.close()

    def _current_cycle(self, conn: sqlite3.Connection) -> MarketCycle | None:
        if self._cycle_source is not None:
            return self._cycle_source()
        return read_current_cycle(conn)

    def _price(self, items: Iterable[SelectionItem]) -> list[SelectionItem]:
        return price_items(items, self.config.money_precision)

    @staticmethod
    def fetch_working(
        conn: sqlite3.Connection, customer_id: str, vendor_id: str,
    ) -> Selection | None:
        row = conn.execute(
            """SELECT * FROM selections
               WHERE customer_id = ? AND vendor_id = ? AND status = 'working'""",
            (customer_id, vendor_id),
        ).fetchone()
        return row_to_selection(row) if row else None

    @staticmethod
    def _fetch_by_id(conn: sqlite3.Connection, selection_id: str) -> Selection | None:
        row = conn.execute(
            "SELECT * FROM selections WHERE id = ?", (selection_id,)
        ).fetchone()
        return row_to_selection(row) if row else None

    def _owned(
        self,
        selection_id: str,
        customer_id: str,
        status: SelectionStatus | None = None,
        conn: sqlite3.Connection | None = None,
    ) -> Selection:
        """Load a selection owned by customer_id, or raise NotFoundError."""
        if conn is None:
            found = self._read("SELECT * FROM selections WHERE id = ?", (selection_id,))
            selection = found[0] if found else None
        else:
            selection = self._fetch_by_id(conn, selection_id)

        if (
            selection is None
            or selection.customer_id != customer_id
            or (status is not None and selection.status != status)
        ):
            raise NotFoundError("Selection not found")
        return selection

    def _new_working(
        self,
        conn: sqlite3.Connection,
        customer_id: str,
        vendor_id: str,
        items: list[SelectionItem],
        name: str | None = None,
        metadata: SelectionMetadata | dict | None = None,
        version: int = 1,
        source: Selection | None = None,
    ) -> Selection:
        now = utcnow()
        selection = Selection(
            id=str(uuid.uuid4()),
            customer_id=customer_id,
            vendor_id=vendor_id,
            status=SelectionStatus.WORKING,
            version=version,
            name=name or self.config.default_working_name,
            items=items,
            market_cycle=self._current_cycle(conn),
            source_event_id=source.source_event_id if source else None,
            source_year=source.source_year if source else None,
            metadata=SelectionMetadata.coerce(metadata),
            created_at=now,
            updated_at=now,
        )
        insert_selection(conn, selection)
        return selection

    def _revise(
        self,
        conn: sqlite3.Connection,
        working: Selection,
        metadata: SelectionMetadata | dict | None = None,
        **updates,
    ) -> Selection:
        now = utcnow()
        updates["version"] = working.version + 1
        updates["updated_at"] = now
        updates["metadata"] = working.metadata.merged(metadata)
        revised = working.model_copy(update=updates)
        update_selection(conn, revised)
        return revised

    def archive(
        self, conn: sqlite3.Connection, selection: Selection, reason: str,
    ) -> Selection:
        """Re-tag a working selection as archived inside conn's transaction."""
        now = utcnow()
        archived = selection.model_copy(update={
            "status": SelectionStatus.ARCHIVED,
            "is_visible_to_customer": False,
            "updated_at": now,
            "metadata": selection.metadata.merged(
                {"archivedReason": reason, "archivedAt": now.isoformat()}
            ),
        })
        update_selection(conn, archived)
        logger.info(
            "Archived working selection %s (customer=%s, vendor=%s): %s",
            selection.id, selection.customer_id, selection.vendor_id, reason,
        )
        return archived

    # --- reads --------------------------------------------------------------

    def get_working(self, customer_id: str, vendor_id: str | None = None) -> Selection | None:
        vendor = self.config.vendor(vendor_id)
        conn = get_connection(self.config)
        try:
            return self.fetch_working(conn, customer_id, vendor)
        finally:
            conn.close()

    def get_selection(self, selection_id: str, customer_id: str) -> Selection:
        """Any selection owned by customer_id, regardless of status."""
        return self._owned(selection_id, customer_id)

    def list_snapshots(self, customer_id: str, vendor_id: str | None = None) -> list[Selection]:
        """All snapshot versions for the scope, newest first, any visibility."""
        return self._read(
            """SELECT * FROM selections
               WHERE customer_id = ? AND vendor_id = ? AND status = 'snapshot'
               ORDER BY version DESC""",
            (customer_id, self.config.vendor(vendor_id)),
        )

    def get_active_snapshot(
        self, customer_id: str, vendor_id: str | None = None,
    ) -> Selection | None:
        """The highest-version snapshot for the scope; visibility is ignored."""
        found = self._read(
            """SELECT * FROM selections
               WHERE customer_id = ? AND vendor_id = ? AND status = 'snapshot'
               ORDER BY version DESC LIMIT 1""",
            (customer_id, self.config.vendor(vendor_id)),
        )
        return found[0] if found else None

    def list_working_history(
        self, customer_id: str, vendor_id: str | None = None,
    ) -> list[Selection]:
        """Current and archived working selections, most recent first."""
        return self._read(
            """SELECT * FROM selections
               WHERE customer_id = ? AND vendor_id = ? AND status IN ('working', 'archived')
               ORDER BY updated_at DESC""",
            (customer_id, self.config.vendor(vendor_id)),
        )

    def query(
        self,
        *,
        status: SelectionStatus | None = None,
        customer_id: str | None = None,
        vendor_id: str | None = None,
        cycle: MarketCycle | None = None,
    ) -> list[Selection]:
        """Filtered listing used by bulk operations. Omitted filters match all."""
        clauses: list[str] = []
        params: list = []
        if status is not None:
            clauses.append("status = ?")
            params.append(status.value)
        if customer_id is not None:
            clauses.append("customer_id = ?")
            params.append(customer_id)
        if vendor_id is not None:
            clauses.append("vendor_id = ?")
            params.append(vendor_id)
        if cycle is not None:
            clauses.append("market_cycle_year = ? AND market_cycle_month = ?")
            params.extend([cycle.year, cycle.month.value])

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        return self._read(
            f"SELECT * FROM selections {where} "
            "ORDER BY customer_id, vendor_id, version DESC",
            tuple(params),
        )

    # --- working selection writes ------------------------------------------

    def update_working(
        self,
        customer_id: str,
        *,
        items: list[SelectionItem] | None = None,
        name: str | None = None,
        metadata: SelectionMetadata | dict | None = None,
        vendor_id: str | None = None,
    ) -> Selection:
        """Upsert the working selection.

        items replaces the line list wholesale (an empty list clears it);
        None leaves lines untouched. Line prices come from the caller and
        net/extended values are recomputed for every line.
        """
        vendor = self.config.vendor(vendor_id)
        priced = self._price(items) if items is not None else None
        if priced is not None:
            _ensure_unique_skus(priced)

        with self.scope(customer_id, vendor) as conn:
            working = self.fetch_working(conn, customer_id, vendor)
            if working is None:
                selection = self._new_working(
                    conn, customer_id, vendor, priced or [], name=name, metadata=metadata,
                )
                logger.info(
                    "Created working selection %s for %s/%s (%d items)",
                    selection.id, customer_id, vendor, selection.item_count,
                )
                return selection

            updates: dict = {}
            if priced is not None:
                updates["items"] = priced
            if name:
                updates["name"] = name
            selection = self._revise(
                conn,
                working,
                SelectionMetadata.coerce(metadata).merged(
                    {"revisedAt": utcnow().isoformat(), "wasModified": True}
                ),
                **updates,
            )

        logger.info(
            "Updated working selection %s for %s/%s to v%d (%d items)",
            selection.id, customer_id, vendor, selection.version, selection.item_count,
        )
        return selection

    def add_item(
        self, customer_id: str, item: SelectionItem, vendor_id: str | None = None,
    ) -> Selection:
        """Append one line, creating the working selection if needed.

        Raises:
            DuplicateItemError: the SKU is already on the working selection.
            UnknownSkuError: a catalog is configured and does not carry the SKU.
        """
        vendor = self.config.vendor(vendor_id)
        if self.catalog is not None and self.catalog.find_item(lookup_sku(item)) is None:
            raise UnknownSkuError(item.sku)
        priced = compute_financials(item, self.config.money_precision)

        with self.scope(customer_id, vendor) as conn:
            working = self.fetch_working(conn, customer_id, vendor)
            if working is None:
                selection = self._new_working(conn, customer_id, vendor, [priced])
            else:
                if working.find_item(priced.sku) is not None:
                    raise DuplicateItemError(priced.sku)
                selection = self._revise(
                    conn, working, {"wasModified": True}, items=[*working.items, priced],
                )

        logger.info(
            "Added %s to working selection %s (%s/%s)",
            priced.sku, selection.id, customer_id, vendor,
        )
        return selection

    def add_sku(
        self,
        customer_id: str,
        sku: str,
        qty: int = 1,
        vendor_id: str | None = None,
        **line,
    ) -> Selection:
        """Price sku from the catalog and add it (see add_item)."""
        item = resolve_item(
            self._require_catalog(), sku, qty,
            precision=self.config.money_precision, **line,
        )
        return self.add_item(customer_id, item, vendor_id)

    def update_quantities(
        self,
        customer_id: str,
        updates: Iterable[QuantityUpdate | dict],
        vendor_id: str | None = None,
    ) -> Selection:
        """Change qty/display/backup/notes of existing lines by SKU.

        Raises:
            NotFoundError: there is no working selection.
        """
        vendor = self.config.vendor(vendor_id)
        by_sku = {u.sku: u for u in (QuantityUpdate.from_value(v) for v in updates)}

        with self.scope(customer_id, vendor) as conn:
            working = self.fetch_working(conn, customer_id, vendor)
            if working is None:
                raise NotFoundError("No working selection to update")

            items = [
                by_sku[item.sku].apply(item) if item.sku in by_sku else item
                for item in working.items
            ]
            unmatched = set(by_sku) - working.skus
            if unmatched:
                logger.debug("Ignoring updates for SKUs not on selection: %s", sorted(unmatched))

            selection = self._revise(
                conn,
                working,
                {"revisedAt": utcnow().isoformat(), "wasModified": True},
                items=self._price(items),
            )
        return selection

    # --- snapshots -----------------------------------------------------------

    def _require_catalog(self) -> CatalogLookup:
        if self.catalog is None:
            raise RuntimeError("SelectionRepository needs a catalog for this operation")
        return self.catalog

    def _next_version(self, conn: sqlite3.Connection, customer_id: str, vendor_id: str) -> int:
        """Reserve the next snapshot version; deleted versions are never reused."""
        conn.execute(
            """INSERT OR IGNORE INTO snapshot_versions (customer_id, vendor_id, last_version)
               VALUES (?, ?, 0)""",
            (customer_id, vendor_id),
        )
        counter = conn.execute(
            "SELECT last_version FROM snapshot_versions WHERE customer_id = ? AND vendor_id = ?",
            (customer_id, vendor_id),
        ).fetchone()[0]
        highest = conn.execute(
            """SELECT COALESCE(MAX(version), 0) FROM selections
               WHERE customer_id = ? AND vendor_id = ? AND status = 'snapshot'""",
            (customer_id, vendor_id),
        ).fetchone()[0]
        version = max(counter, highest) + 1
        conn.execute(
            "UPDATE snapshot_versions SET last_version = ? WHERE customer_id = ? AND vendor_id = ?",
            (version, customer_id, vendor_id),
        )
        return version

    def create_snapshot(
        self,
        customer_id: str,
        items: Iterable[LineInput | SelectionItem | dict],
        source_year: int,
        source_event_id: str,
        name: str | None = None,
        *,
        vendor_id: str | None = None,
        market_month: MarketMonth | str | None = None,
        metadata: SelectionMetadata | dict | None = None,
    ) -> Selection:
        """Capture an immutable, versioned snapshot of priced lines.

        Every SKU is resolved against the catalog before anything is
        written; the snapshot starts hidden from the customer.

        Raises:
            UnknownSkuError: a SKU is missing from the catalog (nothing persisted).
            DuplicateItemError: the same SKU appears twice.
        """
        vendor = self.config.vendor(vendor_id)
        catalog = self._require_catalog()

        priced: list[SelectionItem] = []
        for value in items:
            line = LineInput.from_value(value)
            priced.append(resolve_item(
                catalog,
                line.sku,
                line.qty,
                display_qty=line.display_qty,
                backup_qty=line.backup_qty,
                program_disc=line.program_disc,
                notes=line.notes,
                tags=line.tags,
                configuration=line.configuration,
                precision=self.config.money_precision,
            ))
        _ensure_unique_skus(priced)

        with self.scope(customer_id, vendor) as conn:
            if market_month is not None:
                cycle = MarketCycle.of(source_year, market_month)
            else:
                cycle = self._current_cycle(conn)

            now = utcnow()
            snapshot = Selection(
                id=str(uuid.uuid4()),
                customer_id=customer_id,
                vendor_id=vendor,
                status=SelectionStatus.SNAPSHOT,
                version=self._next_version(conn, customer_id, vendor),
                name=name or f"{source_event_id} Snapshot",
                items=priced,
                market_cycle=cycle,
                source_event_id=source_event_id,
                source_year=source_year,
                is_visible_to_customer=False,
                metadata=SelectionMetadata.coerce(metadata),
                created_at=now,
                updated_at=now,
            )
            insert_selection(conn, snapshot)

        logger.info(
            "Created snapshot %s v%d for %s/%s (%d items, event=%s)",
            snapshot.id, snapshot.version, customer_id, vendor,
            snapshot.item_count, source_event_id,
        )
        return snapshot

    def set_visibility(
        self, selection_id: str, customer_id: str, visible: bool | None = None,
    ) -> Selection:
        """Set (or flip, when visible is None) a snapshot's customer visibility.

        Raises:
            NotFoundError: not a snapshot owned by customer_id.
        """
        snapshot = self._owned(selection_id, customer_id, SelectionStatus.SNAPSHOT)

        with self.scope(customer_id, snapshot.vendor_id) as conn:
            current = self._owned(selection_id, customer_id, SelectionStatus.SNAPSHOT, conn)
            target = (not current.is_visible_to_customer) if visible is None else visible
            if target == current.is_visible_to_customer:
                return current
            updated = current.model_copy(update={
                "is_visible_to_customer": target,
                "updated_at": utcnow(),
            })
            update_selection(conn, updated)

        logger.info(
            "Snapshot %s v%d is now %s to customer %s",
            updated.id, updated.version, "visible" if target else "hidden", customer_id,
        )
        return updated

    def toggle_visibility(self, selection_id: str, customer_id: str) -> Selection:
        return self.set_visibility(selection_id, customer_id)

    def update_snapshot_metadata(
        self, selection_id: str, customer_id: str, metadata: SelectionMetadata | dict,
    ) -> Selection:
        """Merge metadata into a snapshot; its items stay untouched."""
        snapshot = self._owned(selection_id, customer_id, SelectionStatus.SNAPSHOT)
        with self.scope(customer_id, snapshot.vendor_id) as conn:
            current = self._owned(selection_id, customer_id, SelectionStatus.SNAPSHOT, conn)
            updated = current.model_copy(update={
                "metadata": current.metadata.merged(metadata),
                "updated_at": utcnow(),
            })
            update_selection(conn, updated)
        return updated

    def delete_snapshot(self, selection_id: str, customer_id: str) -> dict:
        """Remove a snapshot. Its version number is not reused.

        Raises:
            NotFoundError: not a snapshot owned by customer_id.
        """
        snapshot = self._owned(selection_id, customer_id, SelectionStatus.SNAPSHOT)
        with self.scope(customer_id, snapshot.vendor_id) as conn:
            cursor = conn.execute(
                "DELETE FROM selections WHERE id = ? AND customer_id = ? AND status = 'snapshot'",
                (selection_id, customer_id),
            )
            deleted = cursor.rowcount > 0

        if deleted:
            logger.info("Deleted snapshot %s v%d for %s", selection_id, snapshot.version, customer_id)
        return {"deleted": deleted}

    # --- snapshot -> working -------------------------------------------------

    def create_working_from_snapshot(
        self,
        customer_id: str,
        snapshot_id: str,
        name: str | None = None,
        metadata: SelectionMetadata | dict | None = None,
        mode: ImportMode | str = ImportMode.AUTO,
    ) -> Selection:
        """Clone a snapshot's lines into a new working selection.

        In AUTO mode an existing working selection is left alone and
        WorkingSelectionExistsError is raised for the caller to decide;
        CREATE_NEW and REPLACE archive the existing working selection.

        Raises:
            NotFoundError: not a snapshot owned by customer_id.
            WorkingSelectionExistsError: AUTO mode with a working selection present.
        """
        mode = ImportMode(mode)
        snapshot = self._owned(snapshot_id, customer_id, SelectionStatus.SNAPSHOT)
        vendor = snapshot.vendor_id

        with self.scope(customer_id, vendor) as conn:
            existing = self.fetch_working(conn, customer_id, vendor)
            if existing is not None and mode == ImportMode.AUTO:
                raise WorkingSelectionExistsError(existing.id, existing.version, existing.name)
            if existing is not None:
                self.archive(conn, existing, f"replaced by snapshot import ({mode.value})")

            selection = self._new_working(
                conn,
                customer_id,
                vendor,
                refresh_prices(snapshot.items, self.catalog, self.config.money_precision),
                name=name or f"{snapshot.name} Working",
                metadata=snapshot.metadata.merged(metadata, {
                    "importMode": mode.value,
                    "importedFrom": snapshot.source_event_id or snapshot.name,
                    "snapshotId": snapshot.id,
                }),
                version=existing.version + 1 if existing else 1,
                source=snapshot,
            )

        logger.info(
            "Imported snapshot %s v%d into working selection %s (%s, mode=%s)",
            snapshot.id, snapshot.version, selection.id, customer_id, mode.value,
        )
        return selection

    def restore_working(self, customer_id: str, snapshot_id: str) -> Selection:
        """Replace the working selection's lines with the snapshot's lines.

        Creates the working selection when none exists. Prices are
        refreshed from the catalog when one is configured.

        Raises:
            NotFoundError: not a snapshot owned by customer_id.
        """
        snapshot = self._owned(snapshot_id, customer_id, SelectionStatus.SNAPSHOT)
        vendor = snapshot.vendor_id
        provenance = {
            "restoredFromName": snapshot.name,
            "restoredFromId": snapshot.id,
            "restoredAt": utcnow().isoformat(),
            "wasModified": False,
        }

        with self.scope(customer_id, vendor) as conn:
            items = refresh_prices(snapshot.items, self.catalog, self.config.money_precision)
            working = self.fetch_working(conn, customer_id, vendor)
            if working is None:
                selection = self._new_working(
                    conn, customer_id, vendor, items, metadata=provenance, source=snapshot,
                )
            else:
                selection = self._revise(conn, working, provenance, items=items)

        logger.info(
            "Restored working selection %s for %s from snapshot %s (%s)",
            selection.id, customer_id, snapshot.id, snapshot.name,
        )
        return selection

    def merge_into_working(
        self,
        customer_id: str,
        snapshot_id: str,
        strategy: MergeStrategy | str = MergeStrategy.ADD_ONLY_NEW,
    ) -> Selection:
        """Merge a snapshot's lines into the existing working selection.

        Strategies:
            add_only_new: keep existing lines, append SKUs not yet present.
            sum_quantities: add snapshot quantities onto matching lines.
            prefer_snapshot: snapshot lines replace matching lines.

        Raises:
            NotFoundError: unknown snapshot, or no working selection to merge into.
        """
        strategy = MergeStrategy(strategy)
        snapshot = self._owned(snapshot_id, customer_id, SelectionStatus.SNAPSHOT)
        vendor = snapshot.vendor_id

        with self.scope(customer_id, vendor) as conn:
            working = self.fetch_working(conn, customer_id, vendor)
            if working is None:
                raise NotFoundError("No working selection to merge")

            merged = _merge_items(working.items, snapshot.items, strategy)
            selection = self._revise(
                conn,
                working,
                {
                    "mergedFrom": snapshot.id,
                    "mergeStrategy": strategy.value,
                    "mergedAt": utcnow().isoformat(),
                    "wasModified": True,
                },
                items=self._price(merged),
            )

        logger.info(
            "Merged snapshot %s into working selection %s (%s, %d items)",
            snapshot.id, selection.id, strategy.value, selection.item_count,
        )
        return selection


def _merge_items(
    existing: list[SelectionItem],
    incoming: list[SelectionItem],
    strategy: MergeStrategy,
) -> list[SelectionItem]:
    merged: dict[str, SelectionItem] = {item.sku: item for item in existing}

    for item in incoming:
        current = merged.get(item.sku)
        if current is None:
            merged[item.sku] = item
        elif strategy == MergeStrategy.PREFER_SNAPSHOT:
            merged[item.sku] = item
        elif strategy == MergeStrategy.SUM_QUANTITIES:
            merged[item.sku] = current.model_copy(update={
                "qty": current.qty + item.qty,
                "display_qty": (
                    None if current.display_qty is None and item.display_qty is None
                    else current.display_units + item.display_units
                ),
                "backup_qty": current.backup_qty + item.backup_qty,
                "unit_list": item.unit_list,
                "program_disc": item.program_disc,
                "notes": item.notes if item.notes is not None else current.notes,
                "tags": item.tags or current.tags,
            })

    return list(merged.values())
