"""Line pricing for selection items.

Net Unit = List × (1 − Program Discount)
Extended Net = Net Unit × Qty

Prices always come from the catalog collaborator; nothing here guesses a
price for a SKU the catalog does not know.
"""

from __future__ import annotations

import logging
from typing import Iterable

from ...common.errors import UnknownSkuError
from ...common.models import ItemConfiguration, SelectionItem
from .lookup import CatalogLookup

logger = logging.getLogger(__name__)


def compute_financials(item: SelectionItem, precision: int = 2) -> SelectionItem:
    """Return a copy of item with net_unit and extended_net recomputed."""
    program_disc = item.program_disc or 0.0
    net_unit = round(item.unit_list * (1 - program_disc), precision)
    extended_net = round(net_unit * item.qty, precision)
    return item.model_copy(update={"net_unit": net_unit, "extended_net": extended_net})


def price_items(items: Iterable[SelectionItem], precision: int = 2) -> list[SelectionItem]:
    return [compute_financials(item, precision) for item in items]


def lookup_sku(item: SelectionItem) -> str:
    """Configurable products are catalogued under their base item code."""
    if item.configuration is not None:
        return item.configuration.base_item_code
    return item.sku


def refresh_prices(
    items: Iterable[SelectionItem],
    catalog: CatalogLookup | None,
    precision: int = 2,
) -> list[SelectionItem]:
    """Re-price items from the catalog's current list prices.

    Items the catalog no longer carries keep their stored list price.
    """
    refreshed: list[SelectionItem] = []
    for item in items:
        match = catalog.find_item(lookup_sku(item)) if catalog is not None else None
        if match is not None and match.list_price != item.unit_list:
            logger.debug(
                "Repriced %s: %.2f -> %.2f", item.sku, item.unit_list, match.list_price,
            )
            item = item.model_copy(update={"unit_list": match.list_price})
        refreshed.append(compute_financials(item, precision))
    return refreshed


def resolve_item(
    catalog: CatalogLookup,
    sku: str,
    qty: int = 1,
    *,
    display_qty: int | None = None,
    backup_qty: int = 0,
    program_disc: float | None = None,
    notes: str | None = None,
    tags: list[str] | None = None,
    configuration: ItemConfiguration | dict | None = None,
    precision: int = 2,
) -> SelectionItem:
    """Build a priced SelectionItem for sku from the catalog.

    For configurable products the catalog is searched by the base item
    code while the line keeps the full variant SKU and the configured
    product name.

    Raises:
        UnknownSkuError: the catalog has no entry for the SKU.
    """
    if isinstance(configuration, dict):
        configuration = ItemConfiguration.model_validate(configuration)

    search_sku = configuration.base_item_code if configuration else sku
    match = catalog.find_item(search_sku)
    if match is None:
        raise UnknownSkuError(search_sku)

    item = SelectionItem(
        sku=sku,
        name=configuration.product_name if configuration else match.name,
        collection=match.collection_name,
        year=match.year,
        unit_list=match.list_price,
        qty=qty,
        display_qty=display_qty,
        backup_qty=backup_qty,
        program_disc=program_disc,
        notes=notes,
        tags=tags or [],
        configuration=configuration,
    )
    return compute_financials(item, precision)
