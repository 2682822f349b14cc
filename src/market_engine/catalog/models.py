"""Data models for the catalog collaborator."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class CatalogItem:
    """A catalog entry as returned by find_item().

    Maps to the collaborator contract: { name, list, collectionName, year }
    """

    sku: str
    name: str
    list_price: float
    collection_name: str | None = None
    year: int | None = None

    def to_dict(self) -> dict:
        return {
            "sku": self.sku,
            "name": self.name,
            "list": self.list_price,
            "collectionName": self.collection_name,
            "year": self.year,
        }

    @classmethod
    def from_dict(cls, data: dict) -> CatalogItem:
        return cls(
            sku=str(data["sku"]),
            name=data.get("name", ""),
            list_price=float(data.get("list", data.get("list_price", 0))),
            collection_name=data.get("collectionName", data.get("collection")),
            year=data.get("year"),
        )
