"""
FX Service for exchange rate acquisition and price conversion.

Orchestrates the rate provider, rate store and currency registry:
- Daily/admin refresh of rates for all active currencies
- Latest rates query
- Per-currency rate resolution and price conversion
- FX snapshot for orders
"""

import logging
import time
from datetime import date as date_type
from typing import Any, Mapping

from storefront_pricing.pricing.currency_converter import convert, convert_product_prices
from storefront_pricing.pricing.fx_provider import FXProvider
from storefront_pricing.pricing.models import (
    BASE_CURRENCY,
    ConvertedPrice,
    ExchangeRateSnapshot,
    FetchStatus,
    RateInfo,
)
from storefront_pricing.storage.currency_store import CurrencyStore
from storefront_pricing.storage.rate_store import RateStore

logger = logging.getLogger(__name__)

NO_RATES_MESSAGE = "No exchange rates available. Run a manual refresh or wait for the daily cron."


class FXService:
    """
    Service for exchange rates and currency conversion.

    Attributes:
        provider: Rate provider client.
        rate_store: Snapshot persistence.
        currency_store: Currency configuration registry.
    """

    def __init__(
        self,
        provider: FXProvider,
        rate_store: RateStore,
        currency_store: CurrencyStore,
    ) -> None:
        self.provider = provider
        self.rate_store = rate_store
        self.currency_store = currency_store

    def refresh_rates(self) -> dict[str, Any]:
        """
        Fetch and persist the latest rates for all active non-base currencies.

        A fetch that fails on every attempt is not persisted, so the previous
        latest snapshot keeps serving conversions.

        Returns:
            Dict with success, date, rates_count, rates, missing_currencies, errors.
        """
        start = time.monotonic()
        symbols = self.currency_store.active_non_base_codes()

        if not symbols:
            logger.info("No active non-base currencies to fetch rates for")
            return {
                "success": True,
                "date": date_type.today().isoformat(),
                "rates_count": 0,
                "rates": {},
                "missing_currencies": [],
                "errors": [],
            }

        logger.info(f"Starting FX rate fetch for: {symbols}")
        fetched = self.provider.fetch_latest(symbols)

        if fetched.failed:
            duration_ms = int((time.monotonic() - start) * 1000)
            logger.error(
                f"FX refresh failed after {fetched.attempts} attempts in {duration_ms}ms: "
                f"{fetched.errors[-1]}"
            )
            return {
                "success": False,
                "date": None,
                "rates_count": 0,
                "rates": {},
                "missing_currencies": [],
                "errors": list(fetched.errors),
            }

        missing = [code for code in symbols if code not in fetched.rates]
        if missing:
            logger.warning(
                f"Some currencies not available from provider: missing={missing}, "
                f"available={sorted(fetched.rates)}"
            )

        effective_date = fetched.date or date_type.today().isoformat()
        if fetched.rates:
            snapshot = ExchangeRateSnapshot(
                base=BASE_CURRENCY,
                date=effective_date,
                rates=dict(fetched.rates),
                provider=self.provider.name,
                fetch_status=FetchStatus.PARTIAL if missing else FetchStatus.SUCCESS,
                fetch_errors=list(fetched.errors),
                missing_currencies=missing,
            )
            try:
                self.rate_store.upsert(snapshot)
            except OSError as e:
                logger.error(f"FX refresh fetched rates but could not store them: {e}")
                return {
                    "success": False,
                    "date": effective_date,
                    "rates_count": 0,
                    "rates": dict(fetched.rates),
                    "missing_currencies": missing,
                    "errors": list(fetched.errors) + [f"Failed to store rates: {e}"],
                }
        else:
            logger.info("Provider returned no rates; keeping the current latest snapshot")

        duration_ms = int((time.monotonic() - start) * 1000)
        logger.info(
            f"FX rates updated: date={effective_date}, rates={len(fetched.rates)}, "
            f"missing={missing}, duration={duration_ms}ms"
        )
        return {
            "success": True,
            "date": effective_date,
            "rates_count": len(fetched.rates),
            "rates": dict(fetched.rates),
            "missing_currencies": missing,
            "errors": list(fetched.errors),
        }

    def get_latest_rates(self) -> dict[str, Any]:
        """Latest snapshot as a dict, or has_rates=False when none exists."""
        latest = self.rate_store.get_latest()
        if latest is None:
            return {"has_rates": False, "message": NO_RATES_MESSAGE}

        return {
            "has_rates": True,
            "base": latest.base,
            "date": latest.date,
            "rates": dict(latest.rates),
            "fetched_at": latest.fetched_at.isoformat(),
            "provider": latest.provider,
            "fetch_status": latest.fetch_status.value,
            "missing_currencies": list(latest.missing_currencies),
        }

    def get_rate(self, currency_code: str) -> RateInfo:
        """Resolve the current rate for one currency."""
        code = (currency_code or BASE_CURRENCY).strip().upper()
        currency = self.currency_store.as_dict().get(code)
        return self.rate_store.resolve(code, currency)

    def get_rates(self, currency_codes: list[str]) -> dict[str, RateInfo]:
        return self.rate_store.resolve_many(currency_codes, self.currency_store.as_dict())

    def convert_price(self, amount_base: float, currency_code: str) -> ConvertedPrice:
        """
        Convert a base-currency amount for display in another currency.

        Args:
            amount_base: Amount in USD.
            currency_code: Target currency code.

        Returns:
            ConvertedPrice: Never raises for a missing rate; check rate_unavailable.
        """
        code = (currency_code or BASE_CURRENCY).strip().upper()
        config = self.currency_store.get_or_default(code)
        return convert(amount_base, code, config, self.get_rate(code))

    def convert_product(self, product: Mapping[str, Any], currency_code: str) -> dict[str, Any]:
        """Convert every price field of a serialized product, resolving the rate once."""
        code = (currency_code or BASE_CURRENCY).strip().upper()
        config = self.currency_store.get_or_default(code)
        return convert_product_prices(product, code, config, self.get_rate(code))

    def get_fx_snapshot_for_order(self, currency_code: str) -> dict[str, Any]:
        """
        FX snapshot to store on an order at checkout time.

        Returns:
            Dict with base, date, rate and provider.
        """
        info = self.get_rate(currency_code)
        return {
            "base": BASE_CURRENCY,
            "date": info.date or date_type.today().isoformat(),
            "rate": info.rate or 1.0,
            "provider": info.provider if not info.rate_unavailable else "system",
        }

    def set_manual_rate(self, currency_code: str, rate: float) -> RateInfo:
        """Set an administrator manual rate and return the new resolution."""
        self.currency_store.set_manual_rate(currency_code, rate)
        return self.get_rate(currency_code)
