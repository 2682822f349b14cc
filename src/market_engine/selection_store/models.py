"""Input models for selection store operations."""

from __future__ import annotations

from dataclasses import dataclass, field

from ...common.models import SelectionItem


def _pick(data: dict, camel: str, snake: str, default=None):
    if camel in data:
        return data[camel]
    return data.get(snake, default)


@dataclass
class LineInput:
    """A SKU + quantities to be priced from the catalog (snapshot imports)."""

    sku: str
    qty: int = 1
    display_qty: int | None = None
    backup_qty: int = 0
    program_disc: float | None = None
    notes: str | None = None
    tags: list[str] = field(default_factory=list)
    configuration: dict | None = None

    @classmethod
    def from_value(cls, value: LineInput | SelectionItem | dict) -> LineInput:
        if isinstance(value, cls):
            return value
        if isinstance(value, SelectionItem):
            return cls(
                sku=value.sku,
                qty=value.qty,
                display_qty=value.display_qty,
                backup_qty=value.backup_qty,
                program_disc=value.program_disc,
                notes=value.notes,
                tags=list(value.tags),
                configuration=(
                    value.configuration.model_dump() if value.configuration else None
                ),
            )
        return cls(
            sku=str(value["sku"]),
            qty=int(value.get("qty", 1)),
            display_qty=_pick(value, "displayQty", "display_qty"),
            backup_qty=int(_pick(value, "backupQty", "backup_qty", 0) or 0),
            program_disc=_pick(value, "programDisc", "program_disc"),
            notes=value.get("notes"),
            tags=list(value.get("tags") or []),
            configuration=value.get("configuration"),
        )


@dataclass
class QuantityUpdate:
    """New quantities/notes for an existing working-selection line."""

    sku: str
    qty: int
    display_qty: int | None = None
    backup_qty: int | None = None
    notes: str | None = None

    @classmethod
    def from_value(cls, value: QuantityUpdate | dict) -> QuantityUpdate:
        if isinstance(value, cls):
            return value
        return cls(
            sku=str(value["sku"]),
            qty=int(value["qty"]),
            display_qty=_pick(value, "displayQty", "display_qty"),
            backup_qty=_pick(value, "backupQty", "backup_qty"),
            notes=value.get("notes"),
        )

    def apply(self, item: SelectionItem) -> SelectionItem:
        updates: dict = {"qty": self.qty, "notes": self.notes}
        if self.display_qty is not None:
            updates["display_qty"] = self.display_qty
        if self.backup_qty is not None:
            updates["backup_qty"] = self.backup_qty
        return SelectionItem.model_validate({**item.model_dump(), **updates})
