"""
Currency configuration storage module.

Manages the currency registry kept in a YAML file:
- Display settings (symbol, decimals, rounding strategy)
- Market markup adjustments
- Administrator manual rates
"""

import logging
import threading
from datetime import datetime, timezone
from pathlib import Path

import yaml

from storefront_pricing.pricing.models import (
    BASE_CURRENCY,
    CurrencyConfig,
    RoundingStrategy,
)

logger = logging.getLogger(__name__)

DEFAULT_CURRENCIES_PATH = "config/currencies.yaml"

MIN_MARKET_ADJUSTMENT_PCT = -20.0
MAX_MARKET_ADJUSTMENT_PCT = 30.0


class CurrencyNotConfiguredError(Exception):
    """Exception raised when a currency has no stored configuration."""

    pass


def default_currencies() -> list[CurrencyConfig]:
    """Seed registry used when the currencies file is absent."""
    return [
        CurrencyConfig(
            code="USD",
            name="US Dollar",
            symbol="$",
            symbol_position="before",
            decimals=2,
            rounding_strategy=RoundingStrategy.ENDING_9,
            is_active=True,
            sort_order=1,
        ),
        CurrencyConfig(
            code="EGP",
            name="Egyptian Pound",
            symbol="EGP",
            symbol_position="after",
            decimals=2,
            rounding_strategy=RoundingStrategy.NEAREST_10,
            is_active=True,
            sort_order=2,
        ),
        CurrencyConfig(
            code="SDG",
            name="Sudanese Pound",
            symbol="SDG",
            symbol_position="after",
            decimals=0,
            rounding_strategy=RoundingStrategy.NEAREST_10,
            allow_manual_rate=True,
            manual_rate=600.0,
            manual_rate_updated_at=datetime.now(timezone.utc),
            is_active=True,
            sort_order=3,
        ),
        CurrencyConfig(
            code="SAR",
            name="Saudi Riyal",
            symbol="ر.س",
            symbol_position="after",
            decimals=2,
            rounding_strategy=RoundingStrategy.ENDING_9,
            is_active=False,
            sort_order=4,
        ),
    ]


class CurrencyStore:
    """
    Registry of currency configurations backed by a YAML file.

    The file is seeded with the default registry on first use.
    """

    def __init__(self, currencies_path: str | Path | None = None) -> None:
        """Initialize the currency store."""
        self.currencies_path = Path(currencies_path or DEFAULT_CURRENCIES_PATH)
        self._lock = threading.Lock()
        self._currencies: dict[str, CurrencyConfig] | None = None

    def _ensure_file_exists(self) -> None:
        """Create the currencies file with the seed registry if it doesn't exist."""
        if not self.currencies_path.exists():
            self._save({c.code: c for c in default_currencies()})
            logger.info(f"Seeded default currencies file: {self.currencies_path}")

    def _load(self) -> dict[str, CurrencyConfig]:
        self._ensure_file_exists()

        try:
            with open(self.currencies_path, encoding="utf-8") as f:
                raw = yaml.safe_load(f) or {}
        except (yaml.YAMLError, OSError) as e:
            logger.warning(f"Failed to load currencies, using defaults: {e}")
            return {c.code: c for c in default_currencies()}

        if not isinstance(raw, dict):
            logger.warning(f"Currencies file {self.currencies_path} is not a mapping, using defaults")
            return {c.code: c for c in default_currencies()}

        currencies: dict[str, CurrencyConfig] = {}
        for entry in raw.get("currencies") or []:
            if not isinstance(entry, dict):
                logger.warning(f"Ignoring invalid currency entry: {entry!r}")
                continue
            config = CurrencyConfig.from_dict(entry)
            if len(config.code) != 3:
                logger.warning(f"Ignoring currency with invalid code: {entry.get('code')!r}")
                continue
            config.market_markup_adjustment_pct = _clamp_adjustment(
                config.market_markup_adjustment_pct
            )
            currencies[config.code] = config
        return currencies

    def _save(self, currencies: dict[str, CurrencyConfig]) -> None:
        self.currencies_path.parent.mkdir(parents=True, exist_ok=True)
        ordered = sorted(currencies.values(), key=lambda c: (c.sort_order, c.code))
        payload = {"currencies": [c.to_dict() for c in ordered]}
        with open(self.currencies_path, "w", encoding="utf-8") as f:
            yaml.safe_dump(payload, f, sort_keys=False, allow_unicode=True)
        self._currencies = currencies

    def _registry(self) -> dict[str, CurrencyConfig]:
        if self._currencies is None:
            self._currencies = self._load()
        return self._currencies

    def get(self, code: str) -> CurrencyConfig:
        """
        Get the stored configuration for a currency.

        Raises:
            CurrencyNotConfiguredError: If the code is not in the registry.
        """
        code = (code or "").strip().upper()
        with self._lock:
            config = self._registry().get(code)
        if config is None:
            raise CurrencyNotConfiguredError(f"Currency not configured: {code}")
        return config

    def get_or_default(self, code: str) -> CurrencyConfig:
        """Get the stored configuration, synthesizing a default for unknown codes."""
        try:
            return self.get(code)
        except CurrencyNotConfiguredError:
            logger.warning(f"Currency {code!r} not configured, using default display settings")
            return CurrencyConfig.default_for(code)

    def list_all(self) -> list[CurrencyConfig]:
        with self._lock:
            currencies = list(self._registry().values())
        return sorted(currencies, key=lambda c: (c.sort_order, c.code))

    def list_active(self) -> list[CurrencyConfig]:
        return [c for c in self.list_all() if c.is_active]

    def active_non_base_codes(self) -> list[str]:
        """Codes of active currencies that need a fetched rate."""
        return [c.code for c in self.list_active() if c.code != BASE_CURRENCY]

    def as_dict(self) -> dict[str, CurrencyConfig]:
        with self._lock:
            return dict(self._registry())

    def set_manual_rate(self, code: str, rate: float) -> CurrencyConfig:
        """
        Set an administrator manual rate for a currency.

        Args:
            code: Currency code (must be configured).
            rate: Units of the currency per 1 USD.

        Returns:
            The updated currency config.

        Raises:
            ValueError: If rate is not positive.
            CurrencyNotConfiguredError: If the code is not in the registry.
        """
        if rate is None or rate <= 0:
            raise ValueError(f"Invalid manual rate: {rate}. Must be positive.")

        config = self.get(code)
        with self._lock:
            config.allow_manual_rate = True
            config.manual_rate = float(rate)
            config.manual_rate_updated_at = datetime.now(timezone.utc)
            self._save(self._registry())

        logger.info(f"Manual rate set for {config.code}: {rate}")
        return config

    def clear_manual_rate(self, code: str) -> CurrencyConfig:
        config = self.get(code)
        with self._lock:
            config.manual_rate = None
            config.manual_rate_updated_at = None
            self._save(self._registry())
        logger.info(f"Manual rate cleared for {config.code}")
        return config


def _clamp_adjustment(value: float) -> float:
    clamped = min(max(value, MIN_MARKET_ADJUSTMENT_PCT), MAX_MARKET_ADJUSTMENT_PCT)
    if clamped != value:
        logger.warning(f"Market adjustment {value}% out of range, clamped to {clamped}%")
    return clamped
