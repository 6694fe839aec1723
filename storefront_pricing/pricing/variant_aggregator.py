"""
Variant aggregation.

Rolls variant prices and stock up to the owning product:
- stock is the sum of all variant stock
- final_price is the cheapest active, in-stock variant, falling back to the
  cheapest variant overall when none is eligible
"""

import logging
from dataclasses import dataclass
from typing import Sequence

from storefront_pricing.pricing.models import Product, Variant

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VariantAggregate:
    """Product-level values derived from variants."""

    representative_price: float
    total_stock: int
    eligible_count: int


def aggregate_variants(variants: Sequence[Variant]) -> VariantAggregate | None:
    """
    Compute the representative price and total stock of a set of variants.

    Args:
        variants: Variants of one product.

    Returns:
        VariantAggregate, or None when there are no variants.
    """
    if not variants:
        return None

    total_stock = sum(max(0, v.stock) for v in variants)
    eligible = [v for v in variants if v.is_active and v.stock > 0]
    pool = eligible or variants
    representative_price = min(v.final_price for v in pool)

    return VariantAggregate(
        representative_price=representative_price,
        total_stock=total_stock,
        eligible_count=len(eligible),
    )


def apply_aggregate(product: Product) -> bool:
    """
    Write aggregated variant values onto the product.

    Args:
        product: Product whose variants have current final prices.

    Returns:
        bool: True if final_price or stock changed.
    """
    aggregate = aggregate_variants(product.variants)
    if aggregate is None:
        return False

    if (
        product.final_price == aggregate.representative_price
        and product.stock == aggregate.total_stock
    ):
        return False

    if aggregate.eligible_count == 0:
        logger.debug(f"Product {product.id}: no in-stock active variants, using cheapest overall")

    product.final_price = aggregate.representative_price
    product.stock = aggregate.total_stock
    return True
