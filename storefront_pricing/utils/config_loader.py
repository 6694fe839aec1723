"""
Configuration loader module.

Loads application configuration from YAML files and environment variables.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Currencies the Frankfurter API serves, plus a few regional ones it may add
DEFAULT_SUPPORTED_SYMBOLS = [
    "AUD", "BGN", "BRL", "CAD", "CHF", "CNY", "CZK", "DKK", "EUR", "GBP",
    "HKD", "HUF", "IDR", "ILS", "INR", "ISK", "JPY", "KRW", "MXN", "MYR",
    "NOK", "NZD", "PHP", "PLN", "RON", "SEK", "SGD", "THB", "TRY", "ZAR",
    "AED", "SAR", "EGP",
]


@dataclass
class PathsConfig:
    """File path configuration."""

    data_dir: str = "data"
    cache_dir: str = "data/cache"
    output_dir: str = "data/output"
    logs_dir: str = "logs"
    catalog_file: str = "data/catalog.jsonl"
    rates_file: str = "data/cache/exchange_rates.json"
    job_runs_file: str = "data/cache/job_runs.csv"
    currencies_file: str = "config/currencies.yaml"


@dataclass
class FXConfig:
    """Exchange rate provider configuration."""

    provider: str = "frankfurter"
    base_url: str = "https://api.frankfurter.dev/v1"
    base_currency: str = "USD"
    timeout: int = 10
    max_retries: int = 3
    retry_delay: float = 2.0
    supported_symbols: list[str] = field(default_factory=lambda: list(DEFAULT_SUPPORTED_SYMBOLS))
    # Snapshots older than this are reported as stale by the health check
    stale_after_hours: int = 48


@dataclass
class PricingConfig:
    """Final price formula configuration."""

    default_platform_markup_pct: float = 10.0
    price_decimals: int = 0
    max_dynamic_markup_pct: int = 50
    # Changed products held in memory before a pricing pass writes them out
    flush_batch_size: int = 500


@dataclass
class SchedulerConfig:
    """Background job intervals."""

    pricing_interval_seconds: int = 3600
    fx_refresh_interval_seconds: int = 86400
    run_on_start: bool = False
    tracking_retention_hours: int = 24


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "INFO"
    format: str = "text"
    log_file: str | None = "logs/storefront_pricing.log"


@dataclass
class WebConfig:
    """Web API configuration."""

    host: str = "127.0.0.1"
    port: int = 8000


@dataclass
class AppConfig:
    """
    Main application configuration.

    Aggregates all configuration sections into a single object.
    """

    paths: PathsConfig = field(default_factory=PathsConfig)
    fx: FXConfig = field(default_factory=FXConfig)
    pricing: PricingConfig = field(default_factory=PricingConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    web: WebConfig = field(default_factory=WebConfig)


def load_env(env_file: Path = Path(".env")) -> None:
    """
    Load environment variables from .env file.

    Args:
        env_file: Path to .env file.
    """
    if env_file.exists():
        load_dotenv(env_file)
        logger.debug(f"Loaded environment from: {env_file}")
    else:
        logger.debug(f"No .env file found at: {env_file}")


def load_config(config_file: Path = Path("config/config.yaml")) -> AppConfig:
    """
    Load application configuration from YAML file.

    Environment overrides (FX_PROVIDER_URL, LOG_LEVEL) are applied last.

    Args:
        config_file: Path to configuration YAML file.

    Returns:
        AppConfig: Loaded configuration object.

    Raises:
        yaml.YAMLError: If config file is invalid.
    """
    if not config_file.exists():
        logger.warning(f"Config file not found: {config_file}. Using defaults.")
        return _apply_env_overrides(AppConfig())

    with open(config_file, encoding="utf-8") as f:
        raw_config = yaml.safe_load(f)

    if raw_config is None:
        return _apply_env_overrides(AppConfig())

    config = _parse_config(raw_config)
    logger.info(f"Loaded configuration from: {config_file}")
    return _apply_env_overrides(config)


def _parse_config(raw: dict[str, Any]) -> AppConfig:
    """
    Parse raw YAML dict into AppConfig dataclass.

    Args:
        raw: Raw dictionary from YAML file.

    Returns:
        AppConfig: Parsed configuration object.
    """
    defaults = AppConfig()

    paths_raw = raw.get("paths", {}) or {}
    paths = PathsConfig(
        data_dir=paths_raw.get("data_dir", defaults.paths.data_dir),
        cache_dir=paths_raw.get("cache_dir", defaults.paths.cache_dir),
        output_dir=paths_raw.get("output_dir", defaults.paths.output_dir),
        logs_dir=paths_raw.get("logs_dir", defaults.paths.logs_dir),
        catalog_file=paths_raw.get("catalog_file", defaults.paths.catalog_file),
        rates_file=paths_raw.get("rates_file", defaults.paths.rates_file),
        job_runs_file=paths_raw.get("job_runs_file", defaults.paths.job_runs_file),
        currencies_file=paths_raw.get("currencies_file", defaults.paths.currencies_file),
    )

    fx_raw = raw.get("fx", {}) or {}
    symbols = fx_raw.get("supported_symbols") or DEFAULT_SUPPORTED_SYMBOLS
    fx = FXConfig(
        provider=fx_raw.get("provider", defaults.fx.provider),
        base_url=fx_raw.get("base_url", defaults.fx.base_url),
        base_currency=str(fx_raw.get("base_currency", defaults.fx.base_currency)).upper(),
        timeout=fx_raw.get("timeout", defaults.fx.timeout),
        max_retries=fx_raw.get("max_retries", defaults.fx.max_retries),
        retry_delay=fx_raw.get("retry_delay", defaults.fx.retry_delay),
        supported_symbols=[str(s).strip().upper() for s in symbols],
        stale_after_hours=fx_raw.get("stale_after_hours", defaults.fx.stale_after_hours),
    )

    pricing_raw = raw.get("pricing", {}) or {}
    pricing = PricingConfig(
        default_platform_markup_pct=pricing_raw.get(
            "default_platform_markup_pct", defaults.pricing.default_platform_markup_pct
        ),
        price_decimals=pricing_raw.get("price_decimals", defaults.pricing.price_decimals),
        max_dynamic_markup_pct=pricing_raw.get(
            "max_dynamic_markup_pct", defaults.pricing.max_dynamic_markup_pct
        ),
        flush_batch_size=pricing_raw.get("flush_batch_size", defaults.pricing.flush_batch_size),
    )

    scheduler_raw = raw.get("scheduler", {}) or {}
    scheduler = SchedulerConfig(
        pricing_interval_seconds=scheduler_raw.get(
            "pricing_interval_seconds", defaults.scheduler.pricing_interval_seconds
        ),
        fx_refresh_interval_seconds=scheduler_raw.get(
            "fx_refresh_interval_seconds", defaults.scheduler.fx_refresh_interval_seconds
        ),
        run_on_start=scheduler_raw.get("run_on_start", defaults.scheduler.run_on_start),
        tracking_retention_hours=scheduler_raw.get(
            "tracking_retention_hours", defaults.scheduler.tracking_retention_hours
        ),
    )

    logging_raw = raw.get("logging", {}) or {}
    logging_config = LoggingConfig(
        level=logging_raw.get("level", defaults.logging.level),
        format=logging_raw.get("format", defaults.logging.format),
        log_file=logging_raw.get("log_file", defaults.logging.log_file),
    )

    web_raw = raw.get("web", {}) or {}
    web = WebConfig(
        host=web_raw.get("host", defaults.web.host),
        port=web_raw.get("port", defaults.web.port),
    )

    return AppConfig(
        paths=paths,
        fx=fx,
        pricing=pricing,
        scheduler=scheduler,
        logging=logging_config,
        web=web,
    )


def _apply_env_overrides(config: AppConfig) -> AppConfig:
    provider_url = get_env_var("FX_PROVIDER_URL")
    if provider_url:
        config.fx.base_url = provider_url.rstrip("/")
    log_level = get_env_var("LOG_LEVEL")
    if log_level:
        config.logging.level = log_level.upper()
    return config


def get_env_var(key: str, default: str | None = None) -> str | None:
    """
    Get an environment variable with optional default.

    Args:
        key: Environment variable name.
        default: Default value if not set.

    Returns:
        Environment variable value or default.
    """
    return os.environ.get(key, default)
