"""
Pydantic models for request and response bodies of the web API.

Provides request validation with sensible defaults and constraints.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _normalize_code(value: str) -> str:
    value = (value or "").strip().upper()
    if len(value) != 3 or not value.isalpha():
        raise ValueError(f"Invalid currency code: {value!r}")
    return value


# ============================================================================
# Request Models
# ============================================================================

class ConvertQuery(BaseModel):
    """Query for a single base-currency conversion."""

    amount: float = Field(..., ge=0, description="Amount in USD")
    currency: str = Field("USD", description="Target currency code")

    @field_validator("currency")
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        return _normalize_code(v)


class ManualRateRequest(BaseModel):
    """Request model for setting an administrator manual rate."""

    rate: float = Field(..., gt=0, description="Units of the currency per 1 USD")

    model_config = ConfigDict(extra="ignore")


class TrackEventRequest(BaseModel):
    """Storefront activity event."""

    event: str = Field(..., min_length=1, description="product_view, add_to_cart, purchase, ...")
    product_id: str = Field(..., min_length=1, description="Product the event refers to")
    count: int = Field(1, ge=1, le=1000, description="Number of occurrences")

    @field_validator("event")
    @classmethod
    def normalize_event(cls, v: str) -> str:
        return v.strip().lower()


# ============================================================================
# API Response Models
# ============================================================================

class FXRefreshResponse(BaseModel):
    """Response model for the FX refresh endpoint."""

    success: bool
    date: Optional[str] = None
    rates_count: int = 0
    rates: Dict[str, float] = Field(default_factory=dict)
    missing_currencies: List[str] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)


class LatestRatesResponse(BaseModel):
    """Latest rate snapshot, or has_rates=False with a message."""

    has_rates: bool
    message: Optional[str] = None
    base: Optional[str] = None
    date: Optional[str] = None
    rates: Dict[str, float] = Field(default_factory=dict)
    fetched_at: Optional[str] = None
    provider: Optional[str] = None
    fetch_status: Optional[str] = None
    missing_currencies: List[str] = Field(default_factory=list)


class ConvertedPriceResponse(BaseModel):
    """Response model for a price conversion."""

    price_base: float
    price_converted: float
    price_display: str
    currency_code: str
    symbol: str
    rate: float
    rate_date: Optional[str] = None
    rate_provider: str
    rate_unavailable: bool
    rounding_strategy: str
    market_markup_adjustment_pct: float = 0.0


class RateInfoResponse(BaseModel):
    """Resolved rate for one currency."""

    currency: str
    rate: Optional[float] = None
    date: Optional[str] = None
    provider: str
    rate_unavailable: bool


class TriggerResponse(BaseModel):
    """Response model for a manual job trigger."""

    job: str
    ran: bool
    message: str
    status: Dict[str, Any]


class TrackEventResponse(BaseModel):
    """Response model for an activity event."""

    tracked: bool
    product_id: str
