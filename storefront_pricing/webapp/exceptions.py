"""
Custom exceptions for the Storefront Pricing web API.

Provides a hierarchy of exceptions for clean error handling in routes.
"""

from typing import Any


class AppException(Exception):
    """Base exception for application errors."""

    status_code: int = 500
    error_code: str = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        status_code: int | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if status_code:
            self.status_code = status_code

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for JSON response."""
        return {
            "error": self.error_code,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(AppException):
    """Raised when input validation fails."""

    status_code = 400
    error_code = "VALIDATION_ERROR"


class ConfigurationError(AppException):
    """Raised when configuration is missing or invalid."""

    status_code = 500
    error_code = "CONFIGURATION_ERROR"


class CurrencyError(AppException):
    """Raised when a currency is not configured."""

    status_code = 404
    error_code = "CURRENCY_NOT_CONFIGURED"

    def __init__(self, currency_code: str):
        super().__init__(
            f"Currency not configured: {currency_code}",
            details={"currency": currency_code},
        )


class SchedulerError(AppException):
    """Base class for scheduler errors."""

    status_code = 409
    error_code = "SCHEDULER_ERROR"


class JobNotFound(SchedulerError):
    """Raised when a job name is not registered."""

    status_code = 404
    error_code = "JOB_NOT_FOUND"

    def __init__(self, job_name: str, available: list[str] | None = None):
        super().__init__(
            f"Unknown job: {job_name}",
            details={"job": job_name, "available": available or []},
        )


class ExternalAPIError(AppException):
    """Raised when the exchange rate provider fails."""

    status_code = 502
    error_code = "EXTERNAL_API_ERROR"

    def __init__(self, message: str, api_name: str = "frankfurter", errors: list[str] | None = None):
        details: dict[str, Any] = {"api": api_name}
        if errors:
            details["errors"] = errors
        super().__init__(message, details=details)
