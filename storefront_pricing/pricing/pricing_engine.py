"""
Pricing engine module.

Computes the authoritative final price of a catalog item.

Formula: P_final = max(P_base, P_base × (1 + (platform + dynamic) / 100))
Where:
- P_base = merchant-set base price
- platform = platform markup percentage (default 10)
- dynamic = demand/scarcity markup percentage (0-50)

A manual override price > 0 replaces the formula entirely.
"""

import logging
import math
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from storefront_pricing.pricing.models import DemandSignals, Product, Variant
from storefront_pricing.pricing.signal_scorer import score_breakdown
from storefront_pricing.utils.config_loader import AppConfig

logger = logging.getLogger(__name__)

DEFAULT_PLATFORM_MARKUP_PCT = 10.0


def _to_decimal(value: Any) -> Decimal | None:
    """Convert a numeric input to a finite Decimal, or None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return Decimal(str(number))


def round_half_up(value: Decimal | float, decimals: int = 0) -> Decimal:
    """
    Round a value half-up to a fixed number of decimals.

    Args:
        value: Value to round.
        decimals: Number of decimal places (0 = whole units).

    Returns:
        Decimal: Rounded value.
    """
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    quantize_str = "0." + "0" * decimals if decimals > 0 else "1"
    return value.quantize(Decimal(quantize_str), rounding=ROUND_HALF_UP)


def compute_final_price(
    base_price: Any,
    platform_markup_pct: Any = DEFAULT_PLATFORM_MARKUP_PCT,
    dynamic_markup_pct: Any = 0,
    manual_override_price: Any = None,
    decimals: int = 0,
) -> float:
    """
    Compute the final sale price for an item.

    Args:
        base_price: Merchant-set base price.
        platform_markup_pct: Platform margin percentage (None -> 10).
        dynamic_markup_pct: Dynamic markup percentage (None -> 0).
        manual_override_price: Absolute override, used when > 0.
        decimals: Rounding precision of the result.

    Returns:
        float: Final price, or 0 for a missing/non-positive base price.
    """
    override = _to_decimal(manual_override_price)
    if override is not None and override > 0:
        return float(manual_override_price)

    base = _to_decimal(base_price)
    if base is None or base <= 0:
        return 0.0

    platform_pct = _to_decimal(platform_markup_pct)
    if platform_pct is None:
        platform_pct = Decimal(str(DEFAULT_PLATFORM_MARKUP_PCT))
    dynamic_pct = _to_decimal(dynamic_markup_pct)
    if dynamic_pct is None:
        dynamic_pct = Decimal("0")

    try:
        platform = base * platform_pct / Decimal("100")
        dynamic = base * dynamic_pct / Decimal("100")
        final = max(base, base + platform + dynamic)
        return float(round_half_up(final, decimals))
    except InvalidOperation:
        logger.warning(f"Could not compute final price for base={base_price}")
        return 0.0


class PricingEngine:
    """
    Config-bound pricing engine for catalog items.

    Applies:
    - Dynamic markup from demand/scarcity signals
    - Final price formula with manual override
    - Legacy price field sync

    Attributes:
        config: Application configuration.
        default_platform_markup_pct: Platform markup for items without one.
        decimals: Final price precision.
    """

    def __init__(self, config: AppConfig | None = None) -> None:
        """
        Initialize the pricing engine.

        Args:
            config: Application configuration with pricing settings.
        """
        self.config = config or AppConfig()
        pricing = self.config.pricing
        self.default_platform_markup_pct = float(pricing.default_platform_markup_pct)
        self.decimals = int(pricing.price_decimals)
        self.max_dynamic_markup_pct = int(pricing.max_dynamic_markup_pct)

    def final_price(
        self,
        base_price: Any,
        platform_markup_pct: Any = None,
        dynamic_markup_pct: Any = 0,
        manual_override_price: Any = None,
    ) -> float:
        """Compute a final price with this engine's defaults and precision."""
        if platform_markup_pct is None:
            platform_markup_pct = self.default_platform_markup_pct
        return compute_final_price(
            base_price,
            platform_markup_pct,
            dynamic_markup_pct,
            manual_override_price,
            decimals=self.decimals,
        )

    def reprice_item(
        self,
        item: Product | Variant,
        signals: DemandSignals,
        parent: Product | None = None,
    ) -> bool:
        """
        Recompute dynamic markup, final price and legacy price of one item.

        The scarcity component uses the item's own stock; demand signals are
        tracked per product and shared by its variants.

        Args:
            item: Product (without variants) or Variant to reprice.
            signals: Demand signals for the owning product.
            parent: Owning product when item is a variant.

        Returns:
            bool: True if any field changed.
        """
        breakdown = score_breakdown(
            stock=item.stock,
            views_24h=signals.views_24h,
            cart_adds_24h=signals.cart_adds_24h,
            sales_24h=signals.sales_24h,
            max_markup_pct=self.max_dynamic_markup_pct,
        )

        platform_pct = item.platform_markup_pct
        if platform_pct is None and parent is not None:
            platform_pct = parent.platform_markup_pct

        new_final = self.final_price(
            item.base_price,
            platform_pct,
            breakdown.total,
            item.manual_override_price,
        )

        changed = False
        if item.dynamic_markup_pct != breakdown.total:
            item.dynamic_markup_pct = float(breakdown.total)
            changed = True
        if item.final_price != new_final:
            logger.debug(
                f"Final price change: {item.final_price} -> {new_final} "
                f"(scarcity={breakdown.scarcity}, demand={breakdown.demand})"
            )
            item.final_price = new_final
            changed = True
        if item.price != item.base_price:
            item.price = item.base_price
            changed = True
        return changed

    def get_pricing_summary(self, item: Product | Variant, dynamic_markup_pct: float = 0) -> str:
        """
        Get a human-readable summary of a price calculation.

        Returns:
            str: Formatted pricing breakdown.
        """
        platform = item.platform_markup_pct
        if platform is None:
            platform = self.default_platform_markup_pct
        final = self.final_price(item.base_price, platform, dynamic_markup_pct, item.manual_override_price)
        if item.manual_override_price and item.manual_override_price > 0:
            return f"override {item.manual_override_price:.2f} = {final:.2f}"
        return (
            f"{item.base_price:.2f} × (1 + ({platform:g} + {dynamic_markup_pct:g}) / 100) = {final:.2f}"
        )
