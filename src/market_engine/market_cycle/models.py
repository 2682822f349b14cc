"""Data models for market cycle bulk operations."""

from __future__ import annotations

from dataclasses import dataclass, field

from ...common.models import MarketCycle, Selection


@dataclass
class CycleEntry:
    """One snapshot in a cycle listing, flagged against its scope."""

    selection: Selection
    is_active: bool  # highest version in its (customer, vendor) scope

    @property
    def customer_id(self) -> str:
        return self.selection.customer_id

    @property
    def vendor_id(self) -> str:
        return self.selection.vendor_id

    @property
    def is_visible(self) -> bool:
        return self.selection.is_visible_to_customer

    def to_dict(self) -> dict:
        return {
            "customerId": self.customer_id,
            "vendorId": self.vendor_id,
            "isActive": self.is_active,
            "isVisible": self.is_visible,
            "itemCount": self.selection.item_count,
            "selection": self.selection.to_dict(),
        }


@dataclass
class BulkVisibilityResult:
    """Outcome of a bulk visibility change across one cycle."""

    cycle: MarketCycle
    visible: bool
    changed: int = 0
    total: int = 0
    failed: int = 0
    failed_ids: list[str] = field(default_factory=list)

    @property
    def activated(self) -> int:
        return self.changed if self.visible else 0

    @property
    def deactivated(self) -> int:
        return 0 if self.visible else self.changed

    def to_dict(self) -> dict:
        key = "activated" if self.visible else "deactivated"
        return {
            "cycle": self.cycle.model_dump(mode="json"),
            key: self.changed,
            "total": self.total,
            "failed": self.failed,
            "failedIds": self.failed_ids,
        }


@dataclass
class CycleStats:
    """Snapshot counts for one market cycle."""

    cycle: MarketCycle | None
    total: int = 0
    active: int = 0
    visible: int = 0
    customers: int = 0

    def to_dict(self) -> dict:
        return {
            "cycle": self.cycle.model_dump(mode="json") if self.cycle else None,
            "label": self.cycle.label if self.cycle else "Unassigned",
            "total": self.total,
            "active": self.active,
            "visible": self.visible,
            "customers": self.customers,
        }


@dataclass
class MarketPeriod:
    """A customer's snapshots grouped under one market period."""

    cycle: MarketCycle | None
    snapshots: list[Selection] = field(default_factory=list)
    is_active: bool = False  # newest period holding a visible snapshot

    @property
    def period_key(self) -> str:
        return self.cycle.key if self.cycle else "unassigned"

    def to_dict(self) -> dict:
        return {
            "periodKey": self.period_key,
            "year": self.cycle.year if self.cycle else None,
            "month": self.cycle.month.value if self.cycle else None,
            "isActive": self.is_active,
            "snapshots": [
                {
                    "id": s.id,
                    "name": s.name,
                    "sourceEventId": s.source_event_id,
                    "sourceYear": s.source_year,
                    "vendorId": s.vendor_id,
                    "version": s.version,
                    "itemCount": s.item_count,
                    "totalNet": round(s.total_net, 2),
                    "isVisibleToCustomer": s.is_visible_to_customer,
                    "createdAt": s.created_at.isoformat(),
                    "updatedAt": s.updated_at.isoformat(),
                }
                for s in self.snapshots
            ],
        }
