"""
Currency conversion with psychological pricing.

Converts base-currency (USD) amounts into a target currency, applies the
currency's rounding strategy and market adjustment, and formats the result
for display. All functions are pure.
"""

import logging
import math
from decimal import ROUND_FLOOR, ROUND_HALF_UP, Decimal
from typing import Any, Mapping

from storefront_pricing.pricing.models import (
    BASE_CURRENCY,
    ConvertedPrice,
    CurrencyConfig,
    CustomRoundingRule,
    RateInfo,
    RoundingStrategy,
)

logger = logging.getLogger(__name__)

_NEAREST_STEPS = {
    RoundingStrategy.NEAREST_1: Decimal("1"),
    RoundingStrategy.NEAREST_5: Decimal("5"),
    RoundingStrategy.NEAREST_10: Decimal("10"),
}

_ONE = Decimal("1")
_NINETY_NINE_CENTS = Decimal("0.99")


def _dec(value: Any) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


def _to_amount(value: Any) -> float | None:
    """Parse a numeric input to a finite float, or None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def _round_to_multiple(amount: Decimal, step: Decimal) -> Decimal:
    return (amount / step).quantize(_ONE, rounding=ROUND_HALF_UP) * step


def _floor_to_multiple(amount: Decimal, step: Decimal) -> Decimal:
    return (amount / step).quantize(_ONE, rounding=ROUND_FLOOR) * step


def _ending_9(amount: Decimal) -> Decimal:
    """
    Snap an amount to a price ending in 9.

    - below 10: x.99 one unit down (7.23 -> 6.99)
    - 10 to 100: X9.99, upper ten when more than 5 past it (45.67 -> 49.99)
    - 100 to 1000: X99, upper hundred when more than 50 past it (456 -> 499)
    - 1000 and up: nearest hundred minus one (1234 -> 1199)
    """
    if amount < 10:
        floored = amount.quantize(_ONE, rounding=ROUND_FLOOR)
        if floored < 1:
            return _NINETY_NINE_CENTS
        return floored - 1 + _NINETY_NINE_CENTS

    if amount < 100:
        tens = (amount / 10).quantize(_ONE, rounding=ROUND_FLOOR)
        floor_ten = tens * 10
        if amount - floor_ten > 5:
            return floor_ten + Decimal("9.99")
        return (tens - 1) * 10 + Decimal("9.99")

    if amount < 1000:
        hundreds = (amount / 100).quantize(_ONE, rounding=ROUND_FLOOR)
        floor_hundred = hundreds * 100
        if amount - floor_hundred > 50:
            return floor_hundred + 99
        return (hundreds - 1) * 100 + 99

    return _round_to_multiple(amount, Decimal("100")) - 1


def _custom(amount: Decimal, rules: list[CustomRoundingRule]) -> Decimal:
    """Apply the first matching custom rule; plain rounding when none applies."""
    ordered = sorted(
        rules,
        key=lambda r: r.max_amount if r.max_amount else float("inf"),
    )
    for rule in ordered:
        if rule.max_amount and amount >= _dec(rule.max_amount):
            continue
        offset = _dec(rule.offset or 0)
        if rule.round_to:
            return _floor_to_multiple(amount, _dec(rule.round_to)) + offset
        if rule.nearest:
            return _round_to_multiple(amount, _dec(rule.nearest)) + offset
    return amount.quantize(_ONE, rounding=ROUND_HALF_UP)


def apply_psychological_pricing(amount: Any, config: CurrencyConfig) -> float:
    """
    Apply a currency's rounding strategy to an amount.

    Args:
        amount: Converted amount.
        config: Currency configuration.

    Returns:
        float: Rounded amount; 0 for missing or non-positive input.
    """
    try:
        value = _dec(amount)
    except (TypeError, ValueError, ArithmeticError):
        return 0.0
    if not value.is_finite() or value <= 0:
        return 0.0

    strategy = config.rounding_strategy
    if strategy in _NEAREST_STEPS:
        result = _round_to_multiple(value, _NEAREST_STEPS[strategy])
    elif strategy == RoundingStrategy.ENDING_9:
        result = _ending_9(value)
    elif strategy == RoundingStrategy.CUSTOM:
        result = _custom(value, config.custom_rounding_rules)
    else:
        quantize_str = "0." + "0" * config.decimals if config.decimals > 0 else "1"
        result = value.quantize(Decimal(quantize_str), rounding=ROUND_HALF_UP)
    return float(result)


def format_price(amount: float | None, config: CurrencyConfig) -> str:
    """
    Format an amount with thousands separators and the currency symbol.

    Examples: "$1,234.00" (before), "1,234 SDG" (after).
    """
    if amount is None:
        return ""
    decimals = config.decimals
    symbol = config.symbol or config.code or "$"
    number = f"{float(amount):,.{decimals}f}"
    if config.symbol_position == "after":
        return f"{number} {symbol}"
    return f"{symbol}{number}"


def convert(
    amount_base: float,
    currency_code: str,
    currency_config: CurrencyConfig | None,
    rate_info: RateInfo,
) -> ConvertedPrice:
    """
    Convert a base-currency amount into a display price.

    Never raises on an unavailable rate: the base amount is passed through
    unrounded and flagged with rate_unavailable. A missing or unparseable
    amount converts as 0.

    Args:
        amount_base: Amount in the base currency.
        currency_code: Target currency code.
        currency_config: Target currency config; None synthesizes a default.
        rate_info: Resolved rate for the target currency.

    Returns:
        ConvertedPrice: Converted, rounded and formatted price.
    """
    code = (currency_code or BASE_CURRENCY).strip().upper()
    config = currency_config or CurrencyConfig.default_for(code)

    amount = _to_amount(amount_base)
    if amount is None:
        logger.debug(f"Invalid amount {amount_base!r} for {code}; converting as 0")
        amount = 0.0

    rate = 1.0
    rate_unavailable = False
    converted = amount

    if code != BASE_CURRENCY:
        if rate_info.rate_unavailable or rate_info.rate is None:
            rate_unavailable = True
        else:
            rate = float(rate_info.rate)
            converted = float(_dec(amount) * _dec(rate))

    final_amount = converted
    adjustment = config.market_markup_adjustment_pct or 0.0
    if not rate_unavailable:
        final_amount = apply_psychological_pricing(final_amount, config)
        if adjustment:
            adjusted = _dec(final_amount) + _dec(final_amount) * _dec(adjustment) / 100
            final_amount = apply_psychological_pricing(adjusted, config)
    else:
        logger.debug(f"No rate for {code}; passing {amount} through unconverted")

    return ConvertedPrice(
        price_base=amount,
        price_converted=final_amount,
        price_display=format_price(final_amount, config),
        currency_code=code,
        symbol=config.symbol,
        rate=rate,
        rate_date=rate_info.date,
        rate_provider=rate_info.provider,
        rate_unavailable=rate_unavailable,
        rounding_strategy=config.rounding_strategy.value,
        market_markup_adjustment_pct=adjustment,
    )


def convert_product_prices(
    product: Mapping[str, Any],
    currency_code: str,
    currency_config: CurrencyConfig | None,
    rate_info: RateInfo,
) -> dict[str, Any]:
    """
    Convert every price field of a serialized product.

    Converts final_price, base_price, manual_override_price (when > 0),
    legacy price, and the same fields on each variant. The input is not
    modified.

    Returns:
        dict: Copy of the product with converted prices and display strings.
    """

    def _convert(amount: Any) -> ConvertedPrice:
        return convert(amount, currency_code, currency_config, rate_info)

    result = dict(product)

    if product.get("final_price") is not None:
        converted = _convert(product["final_price"])
        result["final_price"] = converted.price_converted
        result["price_display"] = converted.price_display
        result["currency_code"] = converted.currency_code
        result["rate"] = converted.rate
        result["rate_date"] = converted.rate_date
        result["rate_unavailable"] = converted.rate_unavailable

    if product.get("base_price") is not None:
        result["base_price"] = _convert(product["base_price"]).price_converted

    override = _to_amount(product.get("manual_override_price"))
    if override is not None and override > 0:
        converted = _convert(override)
        result["manual_override_price"] = converted.price_converted
        result["manual_override_display"] = converted.price_display

    if product.get("price") is not None:
        result["price"] = _convert(product["price"]).price_converted

    variants = product.get("variants") or []
    if variants:
        converted_variants = []
        for variant in variants:
            variant_result = dict(variant)
            if variant.get("final_price") is not None:
                converted = _convert(variant["final_price"])
                variant_result["final_price"] = converted.price_converted
                variant_result["price_display"] = converted.price_display
            if variant.get("base_price") is not None:
                variant_result["base_price"] = _convert(variant["base_price"]).price_converted
            v_override = _to_amount(variant.get("manual_override_price"))
            if v_override is not None and v_override > 0:
                variant_result["manual_override_price"] = _convert(v_override).price_converted
            if variant.get("price") is not None:
                variant_result["price"] = _convert(variant["price"]).price_converted
            converted_variants.append(variant_result)
        result["variants"] = converted_variants

    return result
