"""
Signal scorer module.

Maps demand and scarcity inputs to a bounded dynamic markup percentage.

Scarcity (by stock on hand):
- stock <= 5  -> 25
- stock <= 20 -> 15
- stock <= 50 -> 8

Demand (score = views + 3 * cart_adds + 8 * sales):
- score >= 200 -> 20
- score >= 100 -> 12
- score >= 50  -> 6

The result is clamped to [0, MAX_DYNAMIC_MARKUP_PCT].
"""

from typing import Any, NamedTuple

MAX_DYNAMIC_MARKUP_PCT = 50

# (upper stock bound inclusive, markup)
SCARCITY_TIERS = ((5, 25), (20, 15), (50, 8))

# (lower demand bound inclusive, markup)
DEMAND_TIERS = ((200, 20), (100, 12), (50, 6))

CART_ADD_WEIGHT = 3
SALE_WEIGHT = 8


class ScoreBreakdown(NamedTuple):
    """Components of a dynamic markup score."""

    scarcity: int
    demand: int
    total: int


def _non_negative_int(value: Any) -> int:
    """Coerce a raw input to a non-negative int; junk becomes 0."""
    if isinstance(value, bool):
        return int(value)
    try:
        number = int(float(value))
    except (TypeError, ValueError, OverflowError):
        return 0
    return max(0, number)


def scarcity_markup(stock: Any) -> int:
    stock = _non_negative_int(stock)
    for upper_bound, markup in SCARCITY_TIERS:
        if stock <= upper_bound:
            return markup
    return 0


def demand_score(views_24h: Any = 0, cart_adds_24h: Any = 0, sales_24h: Any = 0) -> int:
    return (
        _non_negative_int(views_24h)
        + CART_ADD_WEIGHT * _non_negative_int(cart_adds_24h)
        + SALE_WEIGHT * _non_negative_int(sales_24h)
    )


def demand_markup(views_24h: Any = 0, cart_adds_24h: Any = 0, sales_24h: Any = 0) -> int:
    score = demand_score(views_24h, cart_adds_24h, sales_24h)
    for lower_bound, markup in DEMAND_TIERS:
        if score >= lower_bound:
            return markup
    return 0


def score_breakdown(
    stock: Any = 0,
    views_24h: Any = 0,
    cart_adds_24h: Any = 0,
    sales_24h: Any = 0,
    max_markup_pct: int = MAX_DYNAMIC_MARKUP_PCT,
) -> ScoreBreakdown:
    """
    Compute scarcity and demand components and their clamped total.

    Args:
        stock: Units on hand.
        views_24h: Page views in the last 24 hours.
        cart_adds_24h: Add-to-cart events in the last 24 hours.
        sales_24h: Purchases in the last 24 hours.
        max_markup_pct: Upper clamp for the total.

    Returns:
        ScoreBreakdown: (scarcity, demand, total).
    """
    scarcity = scarcity_markup(stock)
    demand = demand_markup(views_24h, cart_adds_24h, sales_24h)
    total = min(max(scarcity + demand, 0), max_markup_pct)
    return ScoreBreakdown(scarcity, demand, total)


def compute_dynamic_markup(
    stock: Any = 0,
    views_24h: Any = 0,
    cart_adds_24h: Any = 0,
    sales_24h: Any = 0,
    max_markup_pct: int = MAX_DYNAMIC_MARKUP_PCT,
) -> int:
    """
    Compute the dynamic markup percentage for an item.

    Missing, negative or non-numeric inputs count as 0.

    Returns:
        int: Markup percentage in [0, max_markup_pct].
    """
    return score_breakdown(stock, views_24h, cart_adds_24h, sales_24h, max_markup_pct).total
