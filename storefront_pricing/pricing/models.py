"""
Data models for catalog pricing and multi-currency display.

Contains typed dataclasses for priceable items, currency configuration,
exchange rate snapshots and conversion results.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable, Mapping

# Values that mean "no value" when they arrive as attribute strings
_EMPTY_ATTRIBUTE_SENTINELS = {"", "null", "undefined", "none"}

BASE_CURRENCY = "USD"


class RoundingStrategy(str, Enum):
    """Psychological pricing strategies applied after conversion."""

    NONE = "NONE"
    NEAREST_1 = "NEAREST_1"
    NEAREST_5 = "NEAREST_5"
    NEAREST_10 = "NEAREST_10"
    ENDING_9 = "ENDING_9"
    CUSTOM = "CUSTOM"

    @classmethod
    def parse(cls, value: Any) -> "RoundingStrategy":
        """Parse a strategy name, falling back to NONE for unknown values."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value or "NONE").strip().upper())
        except ValueError:
            return cls.NONE


class FetchStatus(str, Enum):
    """
    Outcome of an exchange rate fetch.

    Values:
        SUCCESS: Every requested currency was returned.
        PARTIAL: Some requested currencies are missing from the response.
        FAILED: The provider could not be reached after all retries.
    """

    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"


def _to_float(value: Any, default: float = 0.0) -> float:
    try:
        if value is None or value == "":
            return default
        return float(value)
    except (TypeError, ValueError):
        return default


def _to_int(value: Any, default: int = 0) -> int:
    try:
        if value is None or value == "":
            return default
        return int(value)
    except (TypeError, ValueError):
        return default


def _to_aware_datetime(value: Any) -> datetime | None:
    """Parse an ISO timestamp; naive values are taken as UTC."""
    if not value:
        return None
    parsed = value if isinstance(value, datetime) else datetime.fromisoformat(str(value))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _to_optional_float(value: Any) -> float | None:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


class VariantAttributes:
    """
    Normalized, ordered set of (key, value) attribute pairs for a variant.

    Keys and values are trimmed, keys are lower-cased, and values that are
    empty or spell out "null"/"undefined" are dropped. Pairs are kept sorted
    by key so two sets compare equal regardless of input order.
    """

    __slots__ = ("_pairs",)

    def __init__(self, pairs: Iterable[tuple[Any, Any]] = ()) -> None:
        normalized: dict[str, str] = {}
        for key, value in pairs:
            norm_key = normalize_attribute_value(key)
            norm_value = normalize_attribute_value(value)
            if norm_key is None or norm_value is None:
                continue
            normalized[norm_key.lower()] = norm_value
        self._pairs: tuple[tuple[str, str], ...] = tuple(sorted(normalized.items()))

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> "VariantAttributes":
        """Build from a plain dict such as {"size": "M", "color": "red"}."""
        return cls((data or {}).items())

    @property
    def pairs(self) -> tuple[tuple[str, str], ...]:
        return self._pairs

    def get(self, key: str, default: str | None = None) -> str | None:
        key = key.strip().lower()
        for k, v in self._pairs:
            if k == key:
                return v
        return default

    def matches(self, other: "VariantAttributes") -> bool:
        """Case-insensitive comparison of attribute values."""
        if len(self._pairs) != len(other._pairs):
            return False
        return all(
            k1 == k2 and v1.casefold() == v2.casefold()
            for (k1, v1), (k2, v2) in zip(self._pairs, other._pairs)
        )

    def to_dict(self) -> dict[str, str]:
        return dict(self._pairs)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, VariantAttributes):
            return NotImplemented
        return self._pairs == other._pairs

    def __hash__(self) -> int:
        return hash(self._pairs)

    def __len__(self) -> int:
        return len(self._pairs)

    def __bool__(self) -> bool:
        return bool(self._pairs)

    def __repr__(self) -> str:
        return f"VariantAttributes({dict(self._pairs)!r})"


def normalize_attribute_value(value: Any) -> str | None:
    """Trim a raw attribute string, mapping empty sentinels to None."""
    if value is None:
        return None
    text = str(value).strip()
    if text.lower() in _EMPTY_ATTRIBUTE_SENTINELS:
        return None
    return text


@dataclass
class DemandSignals:
    """
    Demand indicators for a product over the last 24 hours.

    Attributes:
        views_24h: Product page views.
        cart_adds_24h: Add-to-cart events.
        sales_24h: Confirmed purchases.
    """

    views_24h: int = 0
    cart_adds_24h: int = 0
    sales_24h: int = 0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "DemandSignals":
        data = data or {}
        return cls(
            views_24h=max(0, _to_int(data.get("views_24h"))),
            cart_adds_24h=max(0, _to_int(data.get("cart_adds_24h"))),
            sales_24h=max(0, _to_int(data.get("sales_24h"))),
        )

    def to_dict(self) -> dict[str, int]:
        return {
            "views_24h": self.views_24h,
            "cart_adds_24h": self.cart_adds_24h,
            "sales_24h": self.sales_24h,
        }


@dataclass
class Variant:
    """
    A purchasable variant of a product (size, color, ...).

    Attributes:
        sku: Variant SKU.
        base_price: Merchant price before markup.
        platform_markup_pct: Platform margin; None inherits the product's.
        dynamic_markup_pct: Demand/scarcity markup, recomputed by the pricing pass.
        manual_override_price: Absolute price override when > 0.
        final_price: Derived sale price in the base currency.
        stock: Units on hand.
        is_active: Whether the variant is visible to buyers.
        price: Legacy price field, kept equal to base_price.
        attributes: Normalized attribute pairs.
    """

    sku: str
    base_price: float = 0.0
    platform_markup_pct: float | None = None
    dynamic_markup_pct: float = 0.0
    manual_override_price: float | None = None
    final_price: float = 0.0
    stock: int = 0
    is_active: bool = True
    price: float | None = None
    attributes: VariantAttributes = field(default_factory=VariantAttributes)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Variant":
        return cls(
            sku=str(data.get("sku", "")),
            base_price=_to_float(data.get("base_price")),
            platform_markup_pct=_to_optional_float(data.get("platform_markup_pct")),
            dynamic_markup_pct=_to_float(data.get("dynamic_markup_pct")),
            manual_override_price=_to_optional_float(data.get("manual_override_price")),
            final_price=_to_float(data.get("final_price")),
            stock=max(0, _to_int(data.get("stock"))),
            is_active=bool(data.get("is_active", True)),
            price=_to_optional_float(data.get("price")),
            attributes=VariantAttributes.from_mapping(data.get("attributes")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "sku": self.sku,
            "base_price": self.base_price,
            "platform_markup_pct": self.platform_markup_pct,
            "dynamic_markup_pct": self.dynamic_markup_pct,
            "manual_override_price": self.manual_override_price,
            "final_price": self.final_price,
            "stock": self.stock,
            "is_active": self.is_active,
            "price": self.price,
            "attributes": self.attributes.to_dict(),
        }


@dataclass
class Product:
    """
    Catalog product. Simple products carry their own price fields; products
    with variants derive final_price and stock from them.
    """

    id: str
    name: str = ""
    base_price: float = 0.0
    platform_markup_pct: float = 10.0
    dynamic_markup_pct: float = 0.0
    manual_override_price: float | None = None
    final_price: float = 0.0
    stock: int = 0
    is_active: bool = True
    price: float | None = None
    variants: list[Variant] = field(default_factory=list)
    tracking: DemandSignals = field(default_factory=DemandSignals)
    priced_at: datetime | None = None

    @property
    def has_variants(self) -> bool:
        return bool(self.variants)

    def find_variant(self, attributes: VariantAttributes | Mapping[str, Any]) -> Variant | None:
        """Find the variant whose attributes match (after normalization)."""
        if not isinstance(attributes, VariantAttributes):
            attributes = VariantAttributes.from_mapping(attributes)
        for variant in self.variants:
            if variant.attributes.matches(attributes):
                return variant
        return None

    def find_variant_by_sku(self, sku: str) -> Variant | None:
        for variant in self.variants:
            if variant.sku == sku:
                return variant
        return None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Product":
        variants: list[Variant] = []
        seen: list[VariantAttributes] = []
        for raw in data.get("variants") or []:
            variant = Variant.from_dict(raw)
            # Duplicate attribute sets collapse to the last one seen
            if variant.attributes:
                dup = next((i for i, a in enumerate(seen) if a.matches(variant.attributes)), None)
                if dup is not None:
                    variants[dup] = variant
                    continue
            seen.append(variant.attributes)
            variants.append(variant)

        priced_at = _to_aware_datetime(data.get("priced_at"))
        return cls(
            id=str(data.get("id", "")),
            name=str(data.get("name", "")),
            base_price=_to_float(data.get("base_price")),
            platform_markup_pct=_to_float(data.get("platform_markup_pct"), 10.0),
            dynamic_markup_pct=_to_float(data.get("dynamic_markup_pct")),
            manual_override_price=_to_optional_float(data.get("manual_override_price")),
            final_price=_to_float(data.get("final_price")),
            stock=max(0, _to_int(data.get("stock"))),
            is_active=bool(data.get("is_active", True)),
            price=_to_optional_float(data.get("price")),
            variants=variants,
            tracking=DemandSignals.from_dict(data.get("tracking")),
            priced_at=priced_at,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "base_price": self.base_price,
            "platform_markup_pct": self.platform_markup_pct,
            "dynamic_markup_pct": self.dynamic_markup_pct,
            "manual_override_price": self.manual_override_price,
            "final_price": self.final_price,
            "stock": self.stock,
            "is_active": self.is_active,
            "price": self.price,
            "variants": [v.to_dict() for v in self.variants],
            "tracking": self.tracking.to_dict(),
            "priced_at": self.priced_at.isoformat() if self.priced_at else None,
        }


@dataclass
class CustomRoundingRule:
    """
    One tier of a CUSTOM rounding table.

    Attributes:
        max_amount: Rule applies to amounts strictly below this (None = no limit).
        round_to: Floor to a multiple of this value, then add offset.
        nearest: Round to the nearest multiple of this value, then add offset.
        offset: Added after rounding (e.g. -0.01 or 0.99).
    """

    max_amount: float | None = None
    round_to: float | None = None
    nearest: float | None = None
    offset: float = 0.0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CustomRoundingRule":
        return cls(
            max_amount=_to_optional_float(data.get("max_amount", data.get("max"))),
            round_to=_to_optional_float(data.get("round_to", data.get("round"))),
            nearest=_to_optional_float(data.get("nearest")),
            offset=_to_float(data.get("offset")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "max_amount": self.max_amount,
            "round_to": self.round_to,
            "nearest": self.nearest,
            "offset": self.offset,
        }


@dataclass
class CurrencyConfig:
    """Display and conversion settings for one currency."""

    code: str
    name: str = ""
    symbol: str = ""
    symbol_position: str = "before"
    decimals: int = 2
    rounding_strategy: RoundingStrategy = RoundingStrategy.NONE
    custom_rounding_rules: list[CustomRoundingRule] = field(default_factory=list)
    market_markup_adjustment_pct: float = 0.0
    allow_manual_rate: bool = False
    manual_rate: float | None = None
    manual_rate_updated_at: datetime | None = None
    is_active: bool = False
    sort_order: int = 0

    def __post_init__(self) -> None:
        self.code = (self.code or "").strip().upper()
        self.symbol = self.symbol or self.code
        self.decimals = min(4, max(0, int(self.decimals)))
        if self.symbol_position not in ("before", "after"):
            self.symbol_position = "before"
        self.rounding_strategy = RoundingStrategy.parse(self.rounding_strategy)

    @classmethod
    def default_for(cls, code: str) -> "CurrencyConfig":
        """Synthesized config for a code with no stored configuration."""
        code = (code or BASE_CURRENCY).strip().upper()
        return cls(
            code=code,
            symbol="$" if code == BASE_CURRENCY else code,
            decimals=2,
            rounding_strategy=RoundingStrategy.NONE,
            symbol_position="before",
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CurrencyConfig":
        updated_at = _to_aware_datetime(data.get("manual_rate_updated_at"))
        return cls(
            code=str(data.get("code", "")),
            name=str(data.get("name", "")),
            symbol=str(data.get("symbol") or ""),
            symbol_position=str(data.get("symbol_position", "before")),
            decimals=_to_int(data.get("decimals"), 2),
            rounding_strategy=RoundingStrategy.parse(data.get("rounding_strategy")),
            custom_rounding_rules=[
                CustomRoundingRule.from_dict(rule)
                for rule in data.get("custom_rounding_rules") or []
            ],
            market_markup_adjustment_pct=_to_float(data.get("market_markup_adjustment_pct")),
            allow_manual_rate=bool(data.get("allow_manual_rate", False)),
            manual_rate=_to_optional_float(data.get("manual_rate")),
            manual_rate_updated_at=updated_at,
            is_active=bool(data.get("is_active", False)),
            sort_order=_to_int(data.get("sort_order")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "name": self.name,
            "symbol": self.symbol,
            "symbol_position": self.symbol_position,
            "decimals": self.decimals,
            "rounding_strategy": self.rounding_strategy.value,
            "custom_rounding_rules": [r.to_dict() for r in self.custom_rounding_rules],
            "market_markup_adjustment_pct": self.market_markup_adjustment_pct,
            "allow_manual_rate": self.allow_manual_rate,
            "manual_rate": self.manual_rate,
            "manual_rate_updated_at": (
                self.manual_rate_updated_at.isoformat() if self.manual_rate_updated_at else None
            ),
            "is_active": self.is_active,
            "sort_order": self.sort_order,
        }


@dataclass
class ExchangeRateSnapshot:
    """
    One dated record of exchange rates relative to the base currency.

    Attributes:
        date: Rate date from the provider (YYYY-MM-DD).
        rates: Currency code -> units per 1 base currency.
        base: Base currency, always USD.
        provider: Provider name for the audit trail.
        fetch_status: success / partial / failed.
        fetch_errors: Errors recorded during the fetch.
        missing_currencies: Requested codes the provider did not return.
        fetched_at: When the fetch happened.
    """

    date: str
    rates: dict[str, float] = field(default_factory=dict)
    base: str = BASE_CURRENCY
    provider: str = "frankfurter"
    fetch_status: FetchStatus = FetchStatus.SUCCESS
    fetch_errors: list[str] = field(default_factory=list)
    missing_currencies: list[str] = field(default_factory=list)
    fetched_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def key(self) -> tuple[str, str]:
        return (self.base, self.date)

    def get_rate(self, code: str) -> float | None:
        code = code.strip().upper()
        if code == self.base:
            return 1.0
        rate = self.rates.get(code)
        return float(rate) if rate else None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ExchangeRateSnapshot":
        fetched_at = _to_aware_datetime(data.get("fetched_at"))
        return cls(
            date=str(data["date"]),
            rates={str(k).upper(): float(v) for k, v in (data.get("rates") or {}).items()},
            base=str(data.get("base", BASE_CURRENCY)).upper(),
            provider=str(data.get("provider", "frankfurter")),
            fetch_status=FetchStatus(data.get("fetch_status", FetchStatus.SUCCESS.value)),
            fetch_errors=list(data.get("fetch_errors") or []),
            missing_currencies=list(data.get("missing_currencies") or []),
            fetched_at=fetched_at or datetime.now(timezone.utc),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "base": self.base,
            "date": self.date,
            "rates": dict(self.rates),
            "provider": self.provider,
            "fetch_status": self.fetch_status.value,
            "fetch_errors": list(self.fetch_errors),
            "missing_currencies": list(self.missing_currencies),
            "fetched_at": self.fetched_at.isoformat(),
        }


@dataclass
class RateInfo:
    """Resolved rate for one currency."""

    rate: float | None
    date: str | None = None
    provider: str = "system"
    rate_unavailable: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "rate": self.rate,
            "date": self.date,
            "provider": self.provider,
            "rate_unavailable": self.rate_unavailable,
        }


@dataclass
class ConvertedPrice:
    """Result of converting and formatting one base-currency amount."""

    price_base: float
    price_converted: float
    price_display: str
    currency_code: str
    symbol: str
    rate: float
    rate_date: str | None
    rate_provider: str
    rate_unavailable: bool
    rounding_strategy: str
    market_markup_adjustment_pct: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "price_base": self.price_base,
            "price_converted": self.price_converted,
            "price_display": self.price_display,
            "currency_code": self.currency_code,
            "symbol": self.symbol,
            "rate": self.rate,
            "rate_date": self.rate_date,
            "rate_provider": self.rate_provider,
            "rate_unavailable": self.rate_unavailable,
            "rounding_strategy": self.rounding_strategy,
            "market_markup_adjustment_pct": self.market_markup_adjustment_pct,
        }
