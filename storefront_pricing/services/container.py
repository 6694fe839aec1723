"""
Service wiring shared by the CLI and the web app.

Constructs the stores, the activity tracker, the job lock and the services
once, from one AppConfig, and hands them out as a single object.
"""

import logging
from dataclasses import dataclass
from pathlib import Path

import requests

from storefront_pricing.pricing.fx_provider import FXProvider
from storefront_pricing.pricing.pricing_engine import PricingEngine
from storefront_pricing.services.fx_service import FXService
from storefront_pricing.services.health_service import HealthService
from storefront_pricing.services.pricing_service import PricingService
from storefront_pricing.services.scheduler import JobLock, RecalculationScheduler, build_scheduler
from storefront_pricing.services.tracking_cache import ActivityTracker
from storefront_pricing.storage.catalog_store import JsonLinesCatalogStore
from storefront_pricing.storage.currency_store import CurrencyStore
from storefront_pricing.storage.rate_store import RateStore
from storefront_pricing.storage.stats_store import StatsStore
from storefront_pricing.utils.config_loader import AppConfig

logger = logging.getLogger(__name__)


@dataclass
class AppServices:
    """Everything a process needs, built from one config."""

    config: AppConfig
    catalog: JsonLinesCatalogStore
    rate_store: RateStore
    currency_store: CurrencyStore
    stats_store: StatsStore
    tracker: ActivityTracker
    engine: PricingEngine
    pricing_service: PricingService
    fx_service: FXService
    scheduler: RecalculationScheduler
    health_service: HealthService


def build_services(
    config: AppConfig,
    session: requests.Session | None = None,
) -> AppServices:
    """
    Build the stores and services described by config.

    Args:
        config: Application configuration.
        session: Optional requests session for the rate provider.

    Returns:
        AppServices: Wired components. The scheduler is built but not started.
    """
    paths = config.paths
    Path(paths.cache_dir).mkdir(parents=True, exist_ok=True)

    catalog = JsonLinesCatalogStore(paths.catalog_file)
    rate_store = RateStore(paths.rates_file)
    currency_store = CurrencyStore(paths.currencies_file)
    stats_store = StatsStore(paths.job_runs_file)
    tracker = ActivityTracker(window_seconds=config.scheduler.tracking_retention_hours * 3600)

    engine = PricingEngine(config)
    pricing_service = PricingService(catalog, engine=engine, tracker=tracker)
    fx_service = FXService(FXProvider(config, session=session), rate_store, currency_store)

    scheduler = build_scheduler(
        pricing_service,
        fx_service,
        pricing_interval_seconds=config.scheduler.pricing_interval_seconds,
        fx_refresh_interval_seconds=config.scheduler.fx_refresh_interval_seconds,
        lock=JobLock(),
        stats_store=stats_store,
        tracker=tracker,
    )
    health_service = HealthService(
        config, rate_store, currency_store, catalog=catalog, scheduler=scheduler
    )

    logger.debug(f"Services built: catalog={paths.catalog_file}, rates={paths.rates_file}")
    return AppServices(
        config=config,
        catalog=catalog,
        rate_store=rate_store,
        currency_store=currency_store,
        stats_store=stats_store,
        tracker=tracker,
        engine=engine,
        pricing_service=pricing_service,
        fx_service=fx_service,
        scheduler=scheduler,
        health_service=health_service,
    )
