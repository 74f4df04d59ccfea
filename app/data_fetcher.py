"""
Data fetching module for external APIs.
Implements async HTTP requests for NASA DONKI flare events and daily stock
quotes, with provider fallback and retry on transport failures.
"""
import asyncio
import calendar
import re
import time
from typing import Any, Dict, List, Optional, Tuple
from functools import wraps
import httpx
from loguru import logger
from config import Settings, get_settings

SYMBOL_PATTERN = re.compile(r"^[A-Z0-9^.\-]+$")


class APIError(Exception):
    """Upstream provider failure."""

    def __init__(self, message: str, status_code: Optional[int] = None, provider: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.provider = provider


def retry_on_failure(max_retries: int = 3, delay: float = 1.0, exceptions=(httpx.TransportError,)):
    """Decorator for retrying failed API calls."""
    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            for attempt in range(max_retries):
                try:
                    return await func(*args, **kwargs)
                except exceptions as e:
                    if attempt == max_retries - 1:
                        logger.error(f"Failed after {max_retries} attempts: {e}")
                        raise
                    logger.warning(f"Attempt {attempt + 1} failed: {e}, retrying...")
                    await asyncio.sleep(delay * (2 ** attempt))
            return None
        return wrapper
    return decorator


def validate_stock_symbol(symbol: Any) -> Tuple[bool, Optional[str]]:
    """Check a ticker symbol. Returns (valid, error message)."""
    if not symbol or not isinstance(symbol, str):
        return False, "Symbol must be a non-empty string"

    trimmed = symbol.strip()
    if not 1 <= len(trimmed) <= 10:
        return False, "Symbol must be 1-10 characters long"
    if not SYMBOL_PATTERN.match(trimmed):
        return False, "Symbol must contain only uppercase letters, numbers, ^, -, or ."
    return True, None


class DataFetcher:
    """Unified data fetcher for the flare feed and the stock providers."""

    def __init__(self, settings: Optional[Settings] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings or get_settings()
        self.session = None
        self.api_keys = self.settings.api_keys
        self.api_endpoints = self.settings.api_endpoints
        self._transport = transport

    async def __aenter__(self):
        """Async context manager entry."""
        self.session = httpx.AsyncClient(
            timeout=self.settings.request_timeout,
            transport=self._transport,
            headers={"Accept": "application/json"},
            limits=httpx.Limits(
                max_keepalive_connections=20,
                max_connections=self.settings.max_concurrent_requests * 2
            )
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        if self.session:
            await self.session.aclose()

    async def _get(self, url: str, params: Dict[str, Any], headers: Optional[Dict[str, str]] = None) -> httpx.Response:
        @retry_on_failure(max_retries=self.settings.max_retries, delay=self.settings.retry_delay)
        async def request():
            return await self.session.get(url, params=params, headers=headers)

        return await request()

    async def fetch_flare_events(self, start_date: str, end_date: str) -> List[Dict[str, Any]]:
        """Fetch solar flare events from NASA DONKI. Any failure yields an empty list."""
        url = f"{self.api_endpoints['nasa']}/FLR"
        params = {
            "startDate": start_date,
            "endDate": end_date,
            "api_key": self.api_keys["nasa"]
        }
        logger.info(f"Fetching flare events {start_date} to {end_date}")

        try:
            response = await self._get(url, params)
        except httpx.TimeoutException:
            logger.error(f"NASA API request timed out after {self.settings.request_timeout}s")
            return []
        except httpx.HTTPError as e:
            logger.error(f"Network error while fetching NASA data: {e}")
            return []

        if response.status_code == 429:
            logger.error("NASA API rate limit exceeded")
            return []
        if response.status_code != 200:
            logger.error(f"NASA API returned status {response.status_code}")
            return []

        try:
            data = response.json()
        except ValueError:
            logger.warning("NASA API returned a non-JSON body")
            return []

        if not isinstance(data, list):
            logger.warning("Unexpected response format from NASA API, expected array")
            return []

        logger.info(f"Fetched {len(data)} flare events")
        return data

    async def fetch_stock_quotes(self, symbol: str, range_: Optional[str] = None) -> List[Dict[str, Any]]:
        """
        Fetch daily quotes, trying each provider in priority order.

        Returns an empty list for invalid symbols or when every provider fails.
        """
        valid, error = validate_stock_symbol(symbol)
        if not valid:
            logger.error(f"Invalid stock symbol {symbol!r}: {error}")
            return []

        symbol = symbol.strip()
        range_ = range_ or self.settings.stock_range
        providers = self.settings.provider_priority

        for position, provider in enumerate(providers):
            if position > 0:
                logger.info(f"Trying fallback provider: {provider}")
            try:
                return await self.fetch_from_provider(provider, symbol, range_)
            except APIError as e:
                logger.warning(f"Provider {provider} failed for {symbol}: {e}")
            except httpx.HTTPError as e:
                logger.warning(f"Network error from {provider} for {symbol}: {e}")
            except (ValueError, KeyError) as e:
                logger.warning(f"Malformed response from {provider} for {symbol}: {e}")

        logger.error(f"All stock API providers failed for {symbol}: {', '.join(providers)}")
        return []

    async def fetch_from_provider(self, provider: str, symbol: str, range_: str) -> List[Dict[str, Any]]:
        if provider == "yahoo":
            return await self._fetch_yahoo(symbol, range_)
        if provider == "alphavantage":
            return await self._fetch_alpha_vantage(symbol)
        if provider == "finnhub":
            return await self._fetch_finnhub(symbol)
        raise APIError(f"Unknown provider: {provider}", provider=provider)

    def _check_status(self, response: httpx.Response, provider: str, name: str) -> None:
        if response.status_code == 429:
            raise APIError(f"{name} rate limit exceeded", 429, provider)
        if response.status_code != 200:
            raise APIError(f"{name} API returned status {response.status_code}", response.status_code, provider)

    async def _fetch_yahoo(self, symbol: str, range_: str) -> List[Dict[str, Any]]:
        """Fetch daily quotes from the Yahoo Finance chart API."""
        url = f"{self.api_endpoints['yahoo']}/{symbol}"
        response = await self._get(
            url, {"range": range_, "interval": "1d"}, headers={"User-Agent": "Mozilla/5.0"}
        )
        self._check_status(response, "yahoo", "Yahoo Finance")

        data = response.json()
        results = (data.get("chart") or {}).get("result") or []
        if not results:
            logger.warning(f"No data in Yahoo Finance response for {symbol}")
            return []

        result = results[0]
        timestamps = result.get("timestamp") or []
        quote_lists = (result.get("indicators") or {}).get("quote") or []
        if not quote_lists:
            logger.warning(f"No quote data in Yahoo Finance response for {symbol}")
            return []

        series = quote_lists[0]
        fields = ("open", "high", "low", "close", "volume")
        quotes = []
        for i, timestamp in enumerate(timestamps):
            values = {}
            for field in fields:
                column = series.get(field) or []
                values[field] = column[i] if i < len(column) else None
            # Skip entries with missing data
            if any(v is None for v in values.values()):
                continue
            quotes.append({"timestamp": timestamp, **values})

        logger.info(f"Fetched {len(quotes)} quotes for {symbol} from Yahoo Finance")
        return quotes

    async def _fetch_alpha_vantage(self, symbol: str) -> List[Dict[str, Any]]:
        """Fetch daily quotes from Alpha Vantage."""
        if not self.api_keys.get("alphavantage"):
            raise APIError("Alpha Vantage API key not configured", 401, "alphavantage")

        response = await self._get(self.api_endpoints["alphavantage"], {
            "function": "TIME_SERIES_DAILY",
            "symbol": symbol,
            "apikey": self.api_keys["alphavantage"]
        })
        self._check_status(response, "alphavantage", "Alpha Vantage")

        data = response.json()
        if "Error Message" in data:
            raise APIError(f"Alpha Vantage error: {data['Error Message']}", 400, "alphavantage")
        if "Note" in data:
            raise APIError("Alpha Vantage rate limit exceeded", 429, "alphavantage")

        time_series = data.get("Time Series (Daily)")
        if not time_series:
            logger.warning(f"No time series data in Alpha Vantage response for {symbol}")
            return []

        quotes = [
            {
                "timestamp": calendar.timegm(time.strptime(date_str, "%Y-%m-%d")),
                "open": float(values["1. open"]),
                "high": float(values["2. high"]),
                "low": float(values["3. low"]),
                "close": float(values["4. close"]),
                "volume": int(values["5. volume"])
            }
            for date_str, values in time_series.items()
        ]
        quotes.sort(key=lambda q: q["timestamp"])

        logger.info(f"Fetched {len(quotes)} quotes for {symbol} from Alpha Vantage")
        return quotes

    async def _fetch_finnhub(self, symbol: str) -> List[Dict[str, Any]]:
        """Fetch daily candles for the lookback window from Finnhub."""
        if not self.api_keys.get("finnhub"):
            raise APIError("Finnhub API key not configured", 401, "finnhub")

        end = int(time.time())
        start = end - self.settings.lookback_days * 24 * 60 * 60
        response = await self._get(f"{self.api_endpoints['finnhub']}/stock/candle", {
            "symbol": symbol,
            "resolution": "D",
            "from": start,
            "to": end,
            "token": self.api_keys["finnhub"]
        })
        self._check_status(response, "finnhub", "Finnhub")

        data = response.json()
        if data.get("s") == "no_data":
            logger.warning(f"No data available from Finnhub for {symbol}")
            return []
        if data.get("s") != "ok":
            raise APIError(f"Finnhub returned status: {data.get('s')}", 400, "finnhub")

        quotes = [
            {"timestamp": t, "open": o, "high": h, "low": l, "close": c, "volume": v}
            for t, o, h, l, c, v in zip(data["t"], data["o"], data["h"], data["l"], data["c"], data["v"])
        ]
        logger.info(f"Fetched {len(quotes)} quotes for {symbol} from Finnhub")
        return quotes

    async def fetch_all_data(self, start_date: str, end_date: str, symbol: str) -> Dict[str, List[Dict[str, Any]]]:
        """Fetch flare events and stock quotes concurrently. One failing source never blocks the other."""
        sources = ("flares", "quotes")
        completed = await asyncio.gather(
            self.fetch_flare_events(start_date, end_date),
            self.fetch_stock_quotes(symbol),
            return_exceptions=True
        )

        results = {"flares": [], "quotes": []}
        for name, result in zip(sources, completed):
            if isinstance(result, Exception):
                logger.error(f"Failed to fetch {name} data for {symbol}: {result}")
                continue
            results[name] = result
        return results

    async def fetch_symbols(self, symbols: List[str]) -> Dict[str, Optional[List[Dict[str, Any]]]]:
        """Fetch quotes for several symbols concurrently. Failed symbols map to None."""
        completed = await asyncio.gather(
            *[self.fetch_stock_quotes(symbol) for symbol in symbols],
            return_exceptions=True
        )

        results = {}
        for symbol, result in zip(symbols, completed):
            if isinstance(result, Exception):
                logger.error(f"Failed to fetch data for symbol {symbol}: {result}")
                results[symbol] = None
                continue
            results[symbol] = result
        return results
