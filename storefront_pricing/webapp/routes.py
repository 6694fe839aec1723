"""
FastAPI routes for the Storefront Pricing web API.

Handles:
- Latest exchange rates and admin refresh
- Price conversion for display currencies
- Currency registry and manual rates
- Storefront activity events
- Scheduler status and manual job triggers
"""

import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, Query, Request
from pydantic import ValidationError as PydanticValidationError

from storefront_pricing.services.container import AppServices
from storefront_pricing.services.scheduler import JobNotFoundError
from storefront_pricing.storage.currency_store import CurrencyNotConfiguredError
from storefront_pricing.webapp.exceptions import (
    ConfigurationError,
    CurrencyError,
    ExternalAPIError,
    JobNotFound,
    ValidationError,
)
from storefront_pricing.webapp.schemas import (
    ConvertedPriceResponse,
    ConvertQuery,
    FXRefreshResponse,
    LatestRatesResponse,
    ManualRateRequest,
    RateInfoResponse,
    TrackEventRequest,
    TrackEventResponse,
    TriggerResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# ============================================================================
# Dependency Injection
# ============================================================================

def get_services(request: Request) -> AppServices:
    """
    Get the services built by the application lifespan.

    Use as a FastAPI dependency; tests override it or pre-populate
    app.state.services.
    """
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise ConfigurationError("Services are not initialized")
    return services


# ============================================================================
# Exchange Rates
# ============================================================================

@router.get("/fx/latest", response_model=LatestRatesResponse)
async def get_latest_rates(services: AppServices = Depends(get_services)) -> LatestRatesResponse:
    """Latest stored rate snapshot."""
    return LatestRatesResponse(**services.fx_service.get_latest_rates())


@router.get("/fx/rates/{currency_code}", response_model=RateInfoResponse)
async def get_rate(
    currency_code: str,
    services: AppServices = Depends(get_services),
) -> RateInfoResponse:
    """Resolve the current rate for one currency (manual, stored, or unavailable)."""
    code = currency_code.strip().upper()
    info = services.fx_service.get_rate(code)
    return RateInfoResponse(
        currency=code,
        rate=info.rate,
        date=info.date,
        provider=info.provider,
        rate_unavailable=info.rate_unavailable,
    )


@router.post("/admin/fx/refresh", response_model=FXRefreshResponse)
def refresh_rates(services: AppServices = Depends(get_services)) -> FXRefreshResponse:
    """
    Fetch and store the latest rates for all active currencies.

    Returns 502 with the errors if every attempt failed or the rates could
    not be stored.
    """
    result = services.fx_service.refresh_rates()
    if not result["success"]:
        raise ExternalAPIError(
            "Exchange rate refresh failed",
            api_name=services.fx_service.provider.name,
            errors=result["errors"],
        )
    return FXRefreshResponse(**result)


# ============================================================================
# Price Conversion
# ============================================================================

@router.get("/prices/convert", response_model=ConvertedPriceResponse)
async def convert_price(
    amount: float = Query(..., description="Amount in USD"),
    currency: str = Query("USD", description="Target currency code"),
    services: AppServices = Depends(get_services),
) -> ConvertedPriceResponse:
    """Convert a USD amount into a display price."""
    try:
        query = ConvertQuery(amount=amount, currency=currency)
    except PydanticValidationError as e:
        raise ValidationError(
            "Invalid conversion query",
            details={"errors": [err["msg"] for err in e.errors()]},
        )

    converted = services.fx_service.convert_price(query.amount, query.currency)
    return ConvertedPriceResponse(**converted.to_dict())


# ============================================================================
# Currencies
# ============================================================================

@router.get("/currencies")
def list_currencies(
    active_only: bool = False,
    services: AppServices = Depends(get_services),
) -> List[Dict[str, Any]]:
    """Configured currencies in display order."""
    store = services.currency_store
    currencies = store.list_active() if active_only else store.list_all()
    return [c.to_dict() for c in currencies]


@router.post("/admin/currencies/{currency_code}/manual-rate", response_model=RateInfoResponse)
def set_manual_rate(
    currency_code: str,
    body: ManualRateRequest,
    services: AppServices = Depends(get_services),
) -> RateInfoResponse:
    """Set an administrator manual rate for a configured currency."""
    code = currency_code.strip().upper()
    try:
        info = services.fx_service.set_manual_rate(code, body.rate)
    except CurrencyNotConfiguredError:
        raise CurrencyError(code)

    return RateInfoResponse(
        currency=code,
        rate=info.rate,
        date=info.date,
        provider=info.provider,
        rate_unavailable=info.rate_unavailable,
    )


@router.delete("/admin/currencies/{currency_code}/manual-rate")
def clear_manual_rate(
    currency_code: str,
    services: AppServices = Depends(get_services),
) -> Dict[str, Any]:
    """Remove a manual rate; the currency falls back to stored snapshots."""
    code = currency_code.strip().upper()
    try:
        services.currency_store.clear_manual_rate(code)
    except CurrencyNotConfiguredError:
        raise CurrencyError(code)
    return {"success": True, "message": f"Manual rate cleared for {code}"}


# ============================================================================
# Activity Tracking
# ============================================================================

@router.post("/tracking/events", response_model=TrackEventResponse)
async def track_event(
    body: TrackEventRequest,
    services: AppServices = Depends(get_services),
) -> TrackEventResponse:
    """Record a storefront view, cart-add or purchase."""
    tracked = services.tracker.record(body.event, body.product_id, body.count)
    return TrackEventResponse(tracked=tracked, product_id=body.product_id)


@router.get("/tracking/hot")
async def hot_products(
    limit: int = Query(10, ge=1, le=100),
    services: AppServices = Depends(get_services),
) -> List[Dict[str, Any]]:
    """Products with the most weighted activity in the current window."""
    return services.tracker.get_hot_products(limit)


# ============================================================================
# Scheduler
# ============================================================================

@router.get("/scheduler/status")
async def scheduler_status(services: AppServices = Depends(get_services)) -> Dict[str, Any]:
    """Per-job scheduler state plus recent run history."""
    scheduler = services.scheduler
    stats = services.stats_store
    return {
        "started": scheduler.is_started,
        "jobs": scheduler.status(),
        "summaries": {name: vars(stats.get_job_summary(name)) for name in scheduler.job_names},
        "recent_runs": [vars(run) for run in stats.get_recent_runs(limit=10)],
    }


@router.post("/scheduler/{job_name}/trigger", response_model=TriggerResponse)
def trigger_job(
    job_name: str,
    services: AppServices = Depends(get_services),
) -> TriggerResponse:
    """
    Run a job now.

    A trigger that arrives while the job is already running is skipped;
    the response says so with ran=False.
    """
    scheduler = services.scheduler
    try:
        ran = scheduler.trigger(job_name)
    except JobNotFoundError:
        raise JobNotFound(job_name, available=scheduler.job_names)

    status = scheduler.job_status(job_name).to_dict()
    if ran:
        message = f"Job {job_name} finished" if not status["last_error"] else f"Job {job_name} failed"
    else:
        message = f"Job {job_name} is already running; trigger skipped"
    return TriggerResponse(job=job_name, ran=ran, message=message, status=status)
