"""
Pricing module.

Demand and scarcity scoring, final price calculation, variant aggregation,
exchange rate retrieval and display-currency conversion.
"""

from storefront_pricing.pricing.currency_converter import (
    apply_psychological_pricing,
    convert,
    convert_product_prices,
    format_price,
)
from storefront_pricing.pricing.fx_provider import FetchResult, FXProvider, RateProviderError
from storefront_pricing.pricing.pricing_engine import PricingEngine, compute_final_price
from storefront_pricing.pricing.signal_scorer import compute_dynamic_markup
from storefront_pricing.pricing.variant_aggregator import aggregate_variants, apply_aggregate

__all__ = [
    "FXProvider",
    "FetchResult",
    "RateProviderError",
    "PricingEngine",
    "compute_final_price",
    "compute_dynamic_markup",
    "aggregate_variants",
    "apply_aggregate",
    "apply_psychological_pricing",
    "convert",
    "convert_product_prices",
    "format_price",
]
