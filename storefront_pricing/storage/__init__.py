"""
Storage modules for data persistence.
"""

from storefront_pricing.storage.catalog_store import CatalogRepository, JsonLinesCatalogStore
from storefront_pricing.storage.currency_store import CurrencyNotConfiguredError, CurrencyStore
from storefront_pricing.storage.rate_store import RateStore
from storefront_pricing.storage.stats_store import JobRun, JobSummary, StatsStore

__all__ = [
    "CatalogRepository",
    "JsonLinesCatalogStore",
    "CurrencyStore",
    "CurrencyNotConfiguredError",
    "RateStore",
    "StatsStore",
    "JobRun",
    "JobSummary",
]
