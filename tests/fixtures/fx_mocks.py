"""
Mock responses for exchange rate API calls.

Use with the `responses` library to mock the Frankfurter `/latest` endpoint.
"""

from typing import Dict, List, Optional

import responses

# Provider base URL (matches FXConfig default)
FX_BASE_URL = "https://api.frankfurter.dev/v1"
FX_LATEST_ENDPOINT = f"{FX_BASE_URL}/latest"

MOCK_RATE_DATE = "2026-10-16"

# Units per 1 USD
SAMPLE_RATES = {
    "EGP": 48.52,
    "EUR": 0.9213,
    "GBP": 0.7841,
    "SAR": 3.75,
}


def mock_latest_payload(
    symbols: Optional[List[str]] = None,
    rate_date: str = MOCK_RATE_DATE,
) -> Dict:
    """Build a Frankfurter `/latest` response body for the given symbols."""
    codes = symbols if symbols is not None else list(SAMPLE_RATES)
    return {
        "amount": 1.0,
        "base": "USD",
        "date": rate_date,
        "rates": {code: SAMPLE_RATES[code] for code in codes if code in SAMPLE_RATES},
    }


def add_latest_mock(
    symbols: Optional[List[str]] = None,
    rate_date: str = MOCK_RATE_DATE,
    rates: Optional[Dict[str, float]] = None,
):
    """
    Add a successful `/latest` mock.

    Call this within a @responses.activate block.
    """
    payload = mock_latest_payload(symbols, rate_date)
    if rates is not None:
        payload["rates"] = rates
    responses.add(responses.GET, FX_LATEST_ENDPOINT, json=payload, status=200)


def add_latest_error_mock(status_code: int = 503, message: str = "Service Unavailable"):
    """Add a mock that returns an HTTP error."""
    responses.add(
        responses.GET,
        FX_LATEST_ENDPOINT,
        json={"message": message},
        status=status_code,
    )


def add_latest_timeout_mock():
    """Add a mock that simulates a timeout."""
    import requests

    responses.add(
        responses.GET,
        FX_LATEST_ENDPOINT,
        body=requests.exceptions.Timeout("Read timed out"),
    )


def add_latest_invalid_json_mock():
    """Add a mock that returns a non-JSON body."""
    responses.add(
        responses.GET,
        FX_LATEST_ENDPOINT,
        body="<html>maintenance</html>",
        status=200,
        content_type="text/html",
    )


class SleepRecorder:
    """
    Stand-in for time.sleep that records requested delays.

    Usage:
        sleeper = SleepRecorder()
        provider = FXProvider(config, sleep=sleeper)
        ...
        assert sleeper.delays == [2.0, 4.0]
    """

    def __init__(self):
        self.delays: List[float] = []

    def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)
