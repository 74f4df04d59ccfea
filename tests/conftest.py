"""
Shared pytest fixtures for the SolarPulse test suite.

Provides deterministic settings and canned provider payloads.
"""
import pytest

from config import Settings
from tests.factories import unix


@pytest.fixture
def settings():
    """Settings independent of the developer's environment."""
    return Settings(
        nasa_api_key="TEST_KEY",
        alpha_vantage_api_key="",
        finnhub_api_key="",
        stock_api_provider="yahoo",
        lookback_days=30,
        forecast_anchor="average",
    )


@pytest.fixture
def flare_events():
    """Raw DONKI FLR events, one malformed."""
    return [
        {"flrID": "1", "classType": "M2.5", "peakTime": "2024-01-01T10:15Z", "activeRegionNum": 13536},
        {"flrID": "2", "classType": "X1.0", "peakTime": "2024-01-02T08:00Z", "activeRegionNum": None},
        {"flrID": "3", "classType": "C5.0", "peakTime": "2024-01-03T23:59Z"},
        {"flrID": "4", "classType": "B1.0", "peakTime": "2024-01-04T01:00Z"},
    ]


@pytest.fixture
def stock_quotes():
    """Normalized OHLCV quotes for three trading days."""
    return [
        {"timestamp": unix("2024-01-01"), "open": 100, "high": 102, "low": 98, "close": 100, "volume": 1000},
        {"timestamp": unix("2024-01-02"), "open": 100, "high": 111, "low": 109, "close": 110, "volume": 1200},
        {"timestamp": unix("2024-01-03"), "open": 110, "high": 111, "low": 109, "close": 110, "volume": 900},
    ]


@pytest.fixture
def yahoo_payload(stock_quotes):
    return {
        "chart": {
            "result": [{
                "timestamp": [q["timestamp"] for q in stock_quotes],
                "indicators": {"quote": [{
                    field: [q[field] for q in stock_quotes]
                    for field in ("open", "high", "low", "close", "volume")
                }]}
            }]
        }
    }
