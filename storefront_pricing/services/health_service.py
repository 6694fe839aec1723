"""
Health check service for monitoring application status.

Provides detailed health information about all system components.
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from storefront_pricing import __version__
from storefront_pricing.services.scheduler import RecalculationScheduler
from storefront_pricing.storage.catalog_store import JsonLinesCatalogStore
from storefront_pricing.storage.currency_store import CurrencyStore
from storefront_pricing.storage.rate_store import RateStore
from storefront_pricing.utils.config_loader import AppConfig

logger = logging.getLogger(__name__)


@dataclass
class ComponentHealth:
    """Health status of a single component."""

    name: str
    status: str  # "ok", "degraded", "error"
    message: str | None = None
    latency_ms: float | None = None
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        result = {
            "status": self.status,
        }
        if self.message:
            result["message"] = self.message
        if self.latency_ms is not None:
            result["latency_ms"] = round(self.latency_ms, 2)
        if self.details:
            result.update(self.details)
        return result


@dataclass
class HealthReport:
    """Complete health report for the application."""

    status: str  # "healthy", "degraded", "unhealthy"
    timestamp: str
    version: str
    components: dict[str, ComponentHealth] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "timestamp": self.timestamp,
            "version": self.version,
            "components": {name: comp.to_dict() for name, comp in self.components.items()},
        }


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class HealthService:
    """Service for checking application health."""

    def __init__(
        self,
        config: AppConfig,
        rate_store: RateStore,
        currency_store: CurrencyStore,
        catalog: JsonLinesCatalogStore | None = None,
        scheduler: RecalculationScheduler | None = None,
    ) -> None:
        self.config = config
        self.rate_store = rate_store
        self.currency_store = currency_store
        self.catalog = catalog
        self.scheduler = scheduler

    def get_full_health(self) -> HealthReport:
        """
        Get complete health report for all components.

        Returns:
            HealthReport with status of all components.
        """
        components = {
            "exchange_rates": self._check_exchange_rates(),
            "currencies": self._check_currencies(),
            "catalog": self._check_catalog(),
            "scheduler": self._check_scheduler(),
        }

        statuses = [c.status for c in components.values()]
        if all(s == "ok" for s in statuses):
            overall_status = "healthy"
        elif any(s == "error" for s in statuses):
            overall_status = "unhealthy"
        else:
            overall_status = "degraded"

        return HealthReport(
            status=overall_status,
            timestamp=_now_iso(),
            version=__version__,
            components=components,
        )

    def get_simple_health(self) -> dict:
        """Get simple health check (for load balancers)."""
        return {
            "status": "ok",
            "timestamp": _now_iso(),
        }

    def _check_exchange_rates(self) -> ComponentHealth:
        """Check that a rate snapshot exists and is fresh."""
        try:
            start = time.time()
            latest = self.rate_store.get_latest()
            latency = (time.time() - start) * 1000

            if latest is None:
                return ComponentHealth(
                    name="exchange_rates",
                    status="degraded",
                    message="No exchange rates stored yet",
                )

            age_hours = (datetime.now(timezone.utc) - latest.fetched_at).total_seconds() / 3600
            details = {
                "date": latest.date,
                "provider": latest.provider,
                "rates_count": len(latest.rates),
                "fetch_status": latest.fetch_status.value,
                "age_hours": round(age_hours, 1),
            }
            if age_hours > self.config.fx.stale_after_hours:
                return ComponentHealth(
                    name="exchange_rates",
                    status="degraded",
                    message=f"Rates are {age_hours:.0f}h old",
                    latency_ms=latency,
                    details=details,
                )
            return ComponentHealth(
                name="exchange_rates",
                status="ok",
                message=f"{len(latest.rates)} rates for {latest.date}",
                latency_ms=latency,
                details=details,
            )
        except Exception as e:
            return ComponentHealth(name="exchange_rates", status="error", message=str(e))

    def _check_currencies(self) -> ComponentHealth:
        """Check that every active currency resolves to a rate."""
        try:
            active = self.currency_store.list_active()
            codes = [c.code for c in active]
            resolved = self.rate_store.resolve_many(codes, {c.code: c for c in active})
            unavailable = [code for code, info in resolved.items() if info.rate_unavailable]

            details = {"active": codes, "unavailable": unavailable}
            if unavailable:
                return ComponentHealth(
                    name="currencies",
                    status="degraded",
                    message=f"No rate for: {', '.join(unavailable)}",
                    details=details,
                )
            return ComponentHealth(
                name="currencies",
                status="ok",
                message=f"{len(codes)} active currencies",
                details=details,
            )
        except Exception as e:
            return ComponentHealth(name="currencies", status="error", message=str(e))

    def _check_catalog(self) -> ComponentHealth:
        """Check the catalog file."""
        if self.catalog is None:
            return ComponentHealth(name="catalog", status="ok", message="Catalog not configured")
        try:
            path = self.catalog.catalog_path
            if not path.exists():
                return ComponentHealth(
                    name="catalog",
                    status="degraded",
                    message="Catalog file not found",
                    details={"path": str(path)},
                )
            start = time.time()
            count = self.catalog.count()
            latency = (time.time() - start) * 1000
            return ComponentHealth(
                name="catalog",
                status="ok",
                message=f"{count} products",
                latency_ms=latency,
                details={"product_count": count, "path": str(path)},
            )
        except Exception as e:
            return ComponentHealth(name="catalog", status="error", message=str(e))

    def _check_scheduler(self) -> ComponentHealth:
        """Check scheduler state and last job errors."""
        if self.scheduler is None:
            return ComponentHealth(name="scheduler", status="ok", message="Scheduler not running")

        jobs = self.scheduler.status()
        failing = [name for name, job in jobs.items() if job["last_error"]]
        details = {"started": self.scheduler.is_started, "jobs": jobs}
        if failing:
            return ComponentHealth(
                name="scheduler",
                status="degraded",
                message=f"Last run failed: {', '.join(failing)}",
                details=details,
            )
        return ComponentHealth(
            name="scheduler",
            status="ok",
            message="Running" if self.scheduler.is_started else "Idle",
            details=details,
        )
