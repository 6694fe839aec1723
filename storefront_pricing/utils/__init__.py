"""
Utility modules.

Configuration loading and logging setup.
"""

from storefront_pricing.utils.config_loader import AppConfig, load_config, load_env
from storefront_pricing.utils.logging_config import LogContext, setup_logging

__all__ = [
    "load_config",
    "load_env",
    "AppConfig",
    "setup_logging",
    "LogContext",
]
