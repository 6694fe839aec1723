"""
Services layer for Storefront Pricing.

Contains business logic shared by the CLI, the web app and the scheduler.
"""

from storefront_pricing.services.fx_service import FXService
from storefront_pricing.services.pricing_service import PricingService
from storefront_pricing.services.scheduler import RecalculationScheduler, build_scheduler
from storefront_pricing.services.tracking_cache import ActivityTracker

__all__ = [
    "FXService",
    "PricingService",
    "RecalculationScheduler",
    "build_scheduler",
    "ActivityTracker",
]
