"""
FX rate provider module.

Retrieves USD-based exchange rates from a Frankfurter-compatible API
with bounded retry and partial-result tolerance.
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import date as date_type
from typing import Callable, Iterable

import requests

from storefront_pricing.utils.config_loader import AppConfig

logger = logging.getLogger(__name__)


class RateProviderError(Exception):
    """Exception raised when the rate provider cannot serve a request."""

    pass


@dataclass
class FetchResult:
    """
    Result of one fetch, possibly after retries.

    Attributes:
        date: Rate date reported by the provider, or today when nothing was fetched.
        rates: Currency code -> units per 1 base currency.
        requested: Codes that passed the pre-filter and were requested.
        skipped: Codes dropped by the pre-filter (invalid or unsupported).
        errors: One message per failed attempt when every attempt failed.
        attempts: Number of HTTP attempts made.
    """

    date: str | None
    rates: dict[str, float] = field(default_factory=dict)
    requested: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    attempts: int = 0

    @property
    def failed(self) -> bool:
        return bool(self.errors) and not self.rates

    @property
    def missing(self) -> list[str]:
        """Requested or skipped codes the provider did not return."""
        return [code for code in self.requested + self.skipped if code not in self.rates]


class FXProvider:
    """
    Client for a Frankfurter-compatible exchange rate API.

    Attributes:
        base_url: API root, e.g. https://api.frankfurter.dev/v1.
        base_currency: Base currency of all quotes (USD).
        supported_symbols: Codes the provider is known to serve.
        max_retries: Total attempts per fetch.
        retry_delay: Initial backoff in seconds, doubled after each failure.
        session: Requests session used for HTTP calls.
    """

    name = "frankfurter"

    def __init__(
        self,
        config: AppConfig,
        session: requests.Session | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """
        Initialize the FX provider.

        Args:
            config: Application configuration with FX settings.
            session: Optional pre-built requests session.
            sleep: Function used to wait between attempts.
        """
        fx = config.fx
        self.name = fx.provider or self.name
        self.base_url = fx.base_url.rstrip("/")
        self.base_currency = fx.base_currency.upper()
        self.supported_symbols = {s.upper() for s in fx.supported_symbols}
        self.timeout = fx.timeout
        self.max_retries = max(1, int(fx.max_retries))
        self.retry_delay = float(fx.retry_delay)
        self.session = session or requests.Session()
        self._sleep = sleep

    def filter_symbols(self, symbols: Iterable[str]) -> tuple[list[str], list[str]]:
        """
        Split requested codes into valid and skipped.

        Upper-cases and strips each code, drops the base currency silently,
        and skips codes that are not 3 letters or not supported.

        Returns:
            Tuple of (valid codes, skipped codes), both de-duplicated in order.
        """
        valid: list[str] = []
        skipped: list[str] = []
        for raw in symbols:
            code = str(raw or "").strip().upper()
            if not code or code == self.base_currency:
                continue
            if len(code) != 3 or not code.isalpha() or code not in self.supported_symbols:
                if code not in skipped:
                    skipped.append(code)
                continue
            if code not in valid:
                valid.append(code)
        return valid, skipped

    def fetch_latest_once(self, symbols: list[str]) -> tuple[str, dict[str, float]]:
        """
        Make one request for the latest rates.

        Args:
            symbols: Pre-filtered currency codes.

        Returns:
            Tuple of (rate date, rates).

        Raises:
            RateProviderError: On HTTP error, timeout, connection failure or bad JSON.
        """
        url = f"{self.base_url}/latest"
        params = {"base": self.base_currency, "symbols": ",".join(symbols)}

        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
        except requests.exceptions.Timeout as e:
            raise RateProviderError(f"Request timed out after {self.timeout}s") from e
        except requests.exceptions.ConnectionError as e:
            raise RateProviderError(f"Connection error: {str(e)[:200]}") from e
        except requests.exceptions.RequestException as e:
            raise RateProviderError(f"Request failed: {str(e)[:200]}") from e

        if not response.ok:
            raise RateProviderError(
                f"Rate provider error: {response.status_code} {response.reason or ''}".rstrip()
            )

        try:
            data = response.json()
        except ValueError as e:
            raise RateProviderError("Rate provider returned invalid JSON") from e

        if not isinstance(data, dict):
            raise RateProviderError("Rate provider returned an unexpected payload")

        rates: dict[str, float] = {}
        for code, value in (data.get("rates") or {}).items():
            try:
                rate = float(value)
            except (TypeError, ValueError):
                logger.warning(f"Ignoring non-numeric rate for {code}: {value!r}")
                continue
            if rate > 0:
                rates[str(code).upper()] = rate

        rate_date = str(data.get("date") or date_type.today().isoformat())
        return rate_date, rates

    def fetch_latest(self, symbols: Iterable[str]) -> FetchResult:
        """
        Fetch the latest rates with retry and exponential backoff.

        Waits retry_delay * 2^(attempt-1) seconds after each failed attempt.
        Never raises; errors are recorded in the result.

        Args:
            symbols: Requested currency codes (any case, may include USD).

        Returns:
            FetchResult: Rates, missing codes and any errors.
        """
        valid, skipped = self.filter_symbols(symbols)
        if skipped:
            logger.info(f"Skipping unsupported currency codes: {skipped}")

        if not valid:
            logger.info("No provider-supported symbols requested. Skipping API call.")
            return FetchResult(date=date_type.today().isoformat(), requested=[], skipped=skipped)

        errors: list[str] = []
        for attempt in range(1, self.max_retries + 1):
            logger.info(f"Fetching exchange rates from {self.name}: {valid} (attempt {attempt})")
            try:
                rate_date, rates = self.fetch_latest_once(valid)
            except RateProviderError as e:
                errors.append(str(e))
                if attempt < self.max_retries:
                    delay = self.retry_delay * 2 ** (attempt - 1)
                    logger.warning(
                        f"FX fetch attempt {attempt} failed, retrying in {delay:.1f}s: {e}"
                    )
                    self._sleep(delay)
                    continue
                logger.error(f"FX fetch failed after {attempt} attempts: {e}")
                return FetchResult(
                    date=None,
                    requested=valid,
                    skipped=skipped,
                    errors=errors,
                    attempts=attempt,
                )

            logger.info(f"Fetched {len(rates)} rates for {rate_date}")
            return FetchResult(
                date=rate_date,
                rates=rates,
                requested=valid,
                skipped=skipped,
                attempts=attempt,
            )

        # max_retries is at least 1, so the loop always returns
        raise RateProviderError(f"Request failed after {self.max_retries} attempts")
