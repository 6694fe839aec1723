"""
Storefront Pricing.

Dynamic pricing, multi-currency display and exchange rate refresh for a
marketplace catalog.
"""

__version__ = "1.0.0"
