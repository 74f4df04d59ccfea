"""Record builders shared by the test modules."""
import calendar
import time
from datetime import date

from app.models import ComposedRecord, FlareRecord, MarketRecord

TODAY = date(2024, 3, 15)


def flare(day: str, intensity: float, class_label: str = "M1.0") -> FlareRecord:
    return FlareRecord(date=day, intensity=intensity, class_label=class_label,
                       peak_time=f"{day}T12:00Z")


def market(day: str, volatility: float, volume: float = 1000, close: float = 100.0) -> MarketRecord:
    return MarketRecord(date=day, close=close, volume=volume, volatility=volatility)


def composed(flares, volatilities, start_day: int = 1):
    """Composed records on consecutive January 2024 days."""
    return [
        ComposedRecord(date=f"2024-01-{start_day + i:02d}", flare=f, volatility=v, trades=1000)
        for i, (f, v) in enumerate(zip(flares, volatilities))
    ]


def unix(day: str) -> int:
    return calendar.timegm(time.strptime(day, "%Y-%m-%d"))


class StubFetcher:
    """Stands in for DataFetcher, returning canned raw payloads."""

    def __init__(self, flares=None, quotes=None, symbols=None, error=None):
        self.flares = flares or []
        self.quotes = quotes or []
        self.symbols = symbols or {}
        self.error = error
        self.calls = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return None

    async def fetch_all_data(self, start_date, end_date, symbol):
        self.calls.append((start_date, end_date, symbol))
        if self.error:
            raise self.error
        return {"flares": self.flares, "quotes": self.quotes}

    async def fetch_symbols(self, symbols):
        self.calls.append(tuple(symbols))
        if self.error:
            raise self.error
        return {symbol: self.symbols.get(symbol) for symbol in symbols}
