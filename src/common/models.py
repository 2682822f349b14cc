"""Shared Pydantic data models for the market selection engine.

These models define the data contracts between the selection store,
the market cycle registry and the promotion calculator. Persisted and
exported shapes use camelCase aliases; Python code uses snake_case.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, ValidationError, model_validator
from pydantic.alias_generators import to_camel

from .errors import AmbiguousTierDimensionError, InvalidMarketCycleError


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


_CAMEL_CONFIG = {"populate_by_name": True, "alias_generator": to_camel}


# === Enums ===

class MarketMonth(str, Enum):
    """The two trade-market periods of a year."""
    JANUARY = "January"
    JUNE = "June"


class SelectionStatus(str, Enum):
    """Lifecycle state of a selection record."""
    WORKING = "working"
    SNAPSHOT = "snapshot"
    ARCHIVED = "archived"


class ImportMode(str, Enum):
    """How a snapshot import treats an existing working selection."""
    AUTO = "auto"
    CREATE_NEW = "createNew"
    REPLACE = "replace"


class MergeStrategy(str, Enum):
    """How snapshot lines are merged into an existing working selection."""
    ADD_ONLY_NEW = "add_only_new"
    SUM_QUANTITIES = "sum_quantities"
    PREFER_SNAPSHOT = "prefer_snapshot"


class TierDimension(str, Enum):
    """What a promotion's tier thresholds are measured in."""
    SKU = "sku"
    DOLLAR = "dollar"


# === Market cycle ===

class MarketCycle(BaseModel):
    """A trade-market period: year + January/June."""
    year: int = Field(ge=2000, le=2100)
    month: MarketMonth

    model_config = {"frozen": True}

    @classmethod
    def of(cls, year: int | str, month: str | MarketMonth) -> MarketCycle:
        """Build a cycle from loose input, raising InvalidMarketCycleError."""
        try:
            return cls(year=int(year), month=month)
        except (TypeError, ValueError, ValidationError) as e:
            raise InvalidMarketCycleError(
                f"Invalid market cycle {year!r}/{month!r}: month must be January or June"
            ) from e

    @classmethod
    def parse(cls, key: str) -> MarketCycle:
        """Parse a period key such as '2026-June'."""
        year, sep, month = key.partition("-")
        if not sep:
            raise InvalidMarketCycleError(f"Invalid market cycle key {key!r}")
        return cls.of(year, month)

    @property
    def key(self) -> str:
        return f"{self.year}-{self.month.value}"

    @property
    def label(self) -> str:
        return f"{self.month.value} {self.year}"

    @property
    def sort_key(self) -> tuple[int, int]:
        return (self.year, 0 if self.month == MarketMonth.JANUARY else 1)

    def next(self) -> MarketCycle:
        if self.month == MarketMonth.JANUARY:
            return MarketCycle(year=self.year, month=MarketMonth.JUNE)
        return MarketCycle(year=self.year + 1, month=MarketMonth.JANUARY)

    def previous(self) -> MarketCycle:
        if self.month == MarketMonth.JUNE:
            return MarketCycle(year=self.year, month=MarketMonth.JANUARY)
        return MarketCycle(year=self.year - 1, month=MarketMonth.JUNE)


# === Selections ===

class ItemConfiguration(BaseModel):
    """Variant choice for a configurable product."""
    base_item_code: str
    variant_sku: str | None = None
    options: dict[str, str] = Field(default_factory=dict)
    product_name: str

    model_config = _CAMEL_CONFIG


class SelectionItem(BaseModel):
    """One catalog line on a selection."""
    sku: str = Field(min_length=1)
    name: str = ""
    collection: str | None = None
    year: int | None = None
    unit_list: float = Field(ge=0, description="List price per unit")
    qty: int = Field(ge=0, description="Legacy/total quantity")
    display_qty: int | None = Field(default=None, ge=0)
    backup_qty: int = Field(default=0, ge=0)
    program_disc: float | None = Field(default=None, ge=0, le=1)
    net_unit: float = Field(default=0.0, ge=0)
    extended_net: float = Field(default=0.0, ge=0)
    notes: str | None = None
    tags: list[str] = Field(default_factory=list)
    configuration: ItemConfiguration | None = None

    model_config = _CAMEL_CONFIG

    @property
    def display_units(self) -> int:
        """Units on the showroom floor; legacy lines count their whole qty."""
        return self.qty if self.display_qty is None else self.display_qty


class SelectionMetadata(BaseModel):
    """Provenance bag attached to a selection.

    Known keys are typed; unknown keys are kept and round-trip unchanged.
    """
    restored_from_name: str | None = None
    restored_from_id: str | None = None
    restored_at: str | None = None
    import_mode: str | None = None
    imported_from: str | None = None
    snapshot_id: str | None = None
    was_modified: bool | None = None
    merged_from: str | None = None
    merge_strategy: str | None = None
    merged_at: str | None = None
    revised_at: str | None = None
    archived_reason: str | None = None
    archived_at: str | None = None

    model_config = {**_CAMEL_CONFIG, "extra": "allow"}

    @classmethod
    def coerce(cls, value: SelectionMetadata | dict | None) -> SelectionMetadata:
        if value is None:
            return cls()
        if isinstance(value, cls):
            return value
        return cls.model_validate(value)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")

    def merged(self, *others: SelectionMetadata | dict | None) -> SelectionMetadata:
        """Return a copy with later values overriding earlier ones."""
        data = self.to_dict()
        for other in others:
            data.update(SelectionMetadata.coerce(other).to_dict())
        return SelectionMetadata.model_validate(data)


class Selection(BaseModel):
    """Aggregate root: a working, snapshot or archived selection."""
    id: str
    customer_id: str
    vendor_id: str
    status: SelectionStatus
    version: int = Field(ge=1)
    name: str
    items: list[SelectionItem] = Field(default_factory=list)
    market_cycle: MarketCycle | None = None
    source_event_id: str | None = None
    source_year: int | None = None
    is_visible_to_customer: bool = False
    metadata: SelectionMetadata = Field(default_factory=SelectionMetadata)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    model_config = _CAMEL_CONFIG

    @property
    def item_count(self) -> int:
        return len(self.items)

    @property
    def total_net(self) -> float:
        return sum(item.extended_net for item in self.items)

    @property
    def skus(self) -> set[str]:
        return {item.sku for item in self.items}

    def find_item(self, sku: str) -> SelectionItem | None:
        return next((item for item in self.items if item.sku == sku), None)

    def summary(self) -> dict:
        """Short identity used in caller-facing results."""
        return {
            "id": self.id,
            "name": self.name,
            "version": self.version,
            "marketCycle": self.market_cycle.model_dump(mode="json") if self.market_cycle else None,
        }

    def to_dict(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


# === Promotions ===

class PromotionTier(BaseModel):
    """One step of a volume-based promotion."""
    tier_level: int | None = Field(default=None, ge=1)
    threshold: float = Field(ge=0, description="SKU count or dollar amount")
    discount_percent: float = Field(ge=0, le=100)
    backup_discount_percent: float | None = Field(default=None, ge=0, le=100)

    model_config = _CAMEL_CONFIG

    @property
    def backup_percent(self) -> float:
        return self.backup_discount_percent or 0.0


class _TierRuleBase(BaseModel):
    tiers: list[PromotionTier] = Field(default_factory=list)

    model_config = _CAMEL_CONFIG

    @model_validator(mode="after")
    def _order_tiers(self):
        self.tiers = sorted(self.tiers, key=lambda t: t.threshold)
        thresholds = [t.threshold for t in self.tiers]
        if len(set(thresholds)) != len(thresholds):
            raise ValueError("Tier thresholds must be unique")
        # Unnumbered tiers take the lowest free levels in threshold order
        taken = {t.tier_level for t in self.tiers if t.tier_level is not None}
        level = 1
        for tier in self.tiers:
            if tier.tier_level is not None:
                continue
            while level in taken:
                level += 1
            tier.tier_level = level
            taken.add(level)
        return self


class SkuTierRule(_TierRuleBase):
    """Tiers keyed by the count of unique display SKUs."""
    kind: Literal["sku"] = "sku"

    @property
    def dimension(self) -> TierDimension:
        return TierDimension.SKU


class DollarTierRule(_TierRuleBase):
    """Tiers keyed by the list-price value of display units."""
    kind: Literal["dollar"] = "dollar"

    @property
    def dimension(self) -> TierDimension:
        return TierDimension.DOLLAR


TierRule = Annotated[Union[SkuTierRule, DollarTierRule], Field(discriminator="kind")]


class PromotionCopy(BaseModel):
    """Customer-facing copy; opaque to the calculator."""
    title: str | None = None
    body: str | None = None
    headline_benefit: str | None = None
    bullets: list[str] = Field(default_factory=list)
    terms: str | None = None
    pdf_url: str | None = None

    model_config = _CAMEL_CONFIG


def _pop_either(data: dict, *keys: str) -> list:
    found: list = []
    for key in keys:
        value = data.pop(key, None)
        if value:
            found = value
    return found


def _route_tier_lists(data: dict) -> dict:
    """Fold separate skuTiers/dollarTiers lists into a single tierRule.

    Raises:
        AmbiguousTierDimensionError: both lists are populated, or a list
            is given alongside an explicit tier rule.
    """
    tier_keys = ("skuTiers", "sku_tiers", "dollarTiers", "dollar_tiers")
    if not any(key in data for key in tier_keys):
        return data

    data = dict(data)
    sku_tiers = _pop_either(data, "skuTiers", "sku_tiers")
    dollar_tiers = _pop_either(data, "dollarTiers", "dollar_tiers")
    has_rule = data.get("tierRule") is not None or data.get("tier_rule") is not None

    if sku_tiers and dollar_tiers:
        raise AmbiguousTierDimensionError(data.get("id"))
    if has_rule and (sku_tiers or dollar_tiers):
        raise AmbiguousTierDimensionError(data.get("id"))

    if not has_rule:
        if dollar_tiers:
            data["tierRule"] = {"kind": "dollar", "tiers": dollar_tiers}
        else:
            data["tierRule"] = {"kind": "sku", "tiers": sku_tiers}
    return data


class Promotion(BaseModel):
    """Vendor-scoped promotion with exactly one tier dimension.

    Records may carry skuTiers or dollarTiers instead of a tierRule; both
    the constructor and model_validate fold them in and refuse a record
    that sets both.
    """
    id: str
    vendor_id: str
    name: str
    description: str | None = None
    active: bool = True
    start_date: datetime | None = None
    end_date: datetime | None = None
    tier_rule: TierRule = Field(default_factory=SkuTierRule)
    market_cycle: MarketCycle | None = None
    display_copy: PromotionCopy = Field(default_factory=PromotionCopy)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    model_config = _CAMEL_CONFIG

    # Routed outside pydantic validators, which would wrap the error in a ValidationError
    def __init__(self, **data: Any) -> None:
        super().__init__(**_route_tier_lists(data))

    @classmethod
    def model_validate(cls, obj: Any, **kwargs: Any) -> Promotion:
        if isinstance(obj, dict):
            obj = _route_tier_lists(obj)
        return super().model_validate(obj, **kwargs)

    @classmethod
    def from_record(cls, data: dict) -> Promotion:
        """Build from a stored or user-supplied record (see class docstring)."""
        return cls.model_validate(data)

    @property
    def dimension(self) -> TierDimension:
        return self.tier_rule.dimension

    @property
    def tiers(self) -> list[PromotionTier]:
        return self.tier_rule.tiers

    def is_live(self, now: datetime | None = None) -> bool:
        """Active flag plus optional start/end window."""
        if not self.active:
            return False
        now = now or utcnow()
        if self.start_date and _aware(self.start_date) > now:
            return False
        if self.end_date and _aware(self.end_date) < now:
            return False
        return True

    def to_dict(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


# === Promotion calculation ===

class LinePricing(BaseModel):
    """Per-line display/backup split with the matched tier's discounts."""
    sku: str
    name: str = ""
    collection: str | None = None
    year: int | None = None
    display_qty: int
    backup_qty: int
    unit_list: float
    display_discount_percent: float
    backup_discount_percent: float
    display_subtotal: float
    display_discount: float
    display_total: float
    backup_subtotal: float
    backup_discount: float
    backup_total: float
    line_total: float

    model_config = _CAMEL_CONFIG


class TierProjection(BaseModel):
    """What-if view: savings if the current selection qualified at a tier."""
    tier_level: int
    threshold: float
    discount_percent: float
    est_savings: float
    additional_savings_from_current: float
    skus_to_reach_tier: float = Field(
        description="Threshold gap in the promotion's own units (SKUs or dollars)"
    )

    model_config = _CAMEL_CONFIG


class PromotionCalculation(BaseModel):
    """Result of running a promotion against a selection's line items."""
    promotion_id: str
    promotion_name: str
    dimension: TierDimension
    has_data: bool = True
    qualifying_value: float | None = None
    current_sku_count: int | None = None
    display_subtotal: float = 0.0
    backup_subtotal: float = 0.0
    current_tier_level: int | None = None
    display_discount_percent: float = 0.0
    backup_discount_percent: float = 0.0
    total_savings: float = 0.0
    grand_total: float = 0.0
    lines: list[LinePricing] = Field(default_factory=list)
    potential_savings_by_tier: list[TierProjection] = Field(default_factory=list)

    model_config = _CAMEL_CONFIG

    @property
    def below_minimum_tier(self) -> bool:
        return self.has_data and self.current_tier_level is None

    @property
    def next_tier(self) -> TierProjection | None:
        """Closest tier above the current match, if any."""
        return self.potential_savings_by_tier[0] if self.potential_savings_by_tier else None

    def to_dict(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")
