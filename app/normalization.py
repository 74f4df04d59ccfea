"""
Normalization of raw provider payloads into flare and market records.
Malformed upstream records are skipped one at a time, never the whole batch.
"""
import re
from typing import Any, Dict, List, Optional

import pandas as pd
from loguru import logger

from app.models import FlareRecord, MarketRecord
from app.numeric import is_valid_number

FLARE_CLASS_PATTERN = re.compile(r"^([CMX])(\d+\.?\d*)$", re.IGNORECASE)

# C-class: 0-1, M-class: 1-10, X-class: 10+
CLASS_MULTIPLIERS = {
    "C": 0.1,
    "M": 1,
    "X": 10,
}


def parse_flare_class(class_type: Any) -> float:
    """Convert a class code such as "M2.5" into a numeric intensity."""
    if not class_type or not isinstance(class_type, str):
        raise ValueError("Invalid classType")

    match = FLARE_CLASS_PATTERN.match(class_type)
    if not match:
        raise ValueError(f"Unable to parse flare class: {class_type}")

    letter, magnitude = match.groups()
    return float(magnitude) * CLASS_MULTIPLIERS[letter.upper()]


def normalize_date(value: Any) -> str:
    """Normalize a timestamp string to a UTC YYYY-MM-DD date."""
    if not value or not isinstance(value, str):
        raise ValueError("Invalid date string")

    try:
        timestamp = pd.to_datetime(value, utc=True)
    except (ValueError, TypeError, OverflowError) as e:
        raise ValueError(f"Failed to normalize date: {value}") from e

    if pd.isna(timestamp):
        raise ValueError(f"Failed to normalize date: {value}")
    return timestamp.strftime("%Y-%m-%d")


def transform_flare_events(events: Optional[List[Dict[str, Any]]]) -> List[FlareRecord]:
    """Transform raw DONKI flare events into flare records."""
    results = []
    for event in events or []:
        try:
            region = event.get("activeRegionNum")
            results.append(FlareRecord(
                date=normalize_date(event.get("peakTime")),
                intensity=parse_flare_class(event.get("classType")),
                class_label=event["classType"],
                peak_time=event["peakTime"],
                source_region=int(region) if region else None
            ))
        except (ValueError, TypeError, KeyError, AttributeError) as e:
            flr_id = event.get("flrID") if isinstance(event, dict) else None
            logger.warning(f"Skipping malformed flare event {flr_id}: {e}")
    return results


def _date_from_timestamp(timestamp: Any) -> str:
    return pd.to_datetime(timestamp, unit="s", utc=True).strftime("%Y-%m-%d")


def calculate_volatility(quotes: Optional[List[Dict[str, Any]]]) -> List[MarketRecord]:
    """
    Derive per-day volatility from chronologically ordered OHLCV quotes.

    Volatility is the larger of the intraday range and the day-over-day
    close change, both as a percentage, floored at zero. Malformed quotes
    are skipped and the day change uses the last usable close.
    """
    if not quotes:
        return []

    records = []
    prev_close = None
    for quote in quotes:
        try:
            close = quote["close"]
            if not is_valid_number(close):
                raise ValueError(f"invalid close {close!r}")
            intraday = abs((quote["high"] - quote["low"]) / close) * 100 if close > 0 else 0

            day_change = 0
            if prev_close is not None and prev_close > 0:
                day_change = abs((close - prev_close) / prev_close) * 100

            record = MarketRecord(
                date=_date_from_timestamp(quote["timestamp"]),
                close=close,
                volume=quote["volume"],
                volatility=max(0, intraday, day_change),
                open=quote.get("open"),
                high=quote.get("high"),
                low=quote.get("low")
            )
        except (ValueError, TypeError, KeyError, AttributeError, OverflowError) as e:
            timestamp = quote.get("timestamp") if isinstance(quote, dict) else None
            logger.warning(f"Skipping malformed quote at {timestamp}: {e}")
            continue

        records.append(record)
        prev_close = close
    return records
