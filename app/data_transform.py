"""
Temporal merge of flare and market records.
Aligns the two sources on calendar date using intersection semantics.
"""
from typing import Dict, Iterable, List, Optional

from app.models import ComposedRecord, FlareRecord, MarketRecord
from app.numeric import is_valid_number


def _has_date(record) -> bool:
    date = getattr(record, "date", None)
    return isinstance(date, str) and bool(date)


def _index_flares(records: Iterable[FlareRecord]) -> Dict[str, FlareRecord]:
    by_date: Dict[str, FlareRecord] = {}
    for record in records:
        if record is None or not _has_date(record):
            continue
        if not is_valid_number(getattr(record, "intensity", None)):
            continue
        # First occurrence wins
        by_date.setdefault(record.date, record)
    return by_date


def _index_market(records: Iterable[MarketRecord]) -> Dict[str, MarketRecord]:
    by_date: Dict[str, MarketRecord] = {}
    for record in records:
        if record is None or not _has_date(record):
            continue
        if not (is_valid_number(getattr(record, "volatility", None))
                and is_valid_number(getattr(record, "volume", None))):
            continue
        by_date.setdefault(record.date, record)
    return by_date


def merge_datasets(
    flare_records: Optional[List[FlareRecord]],
    market_records: Optional[List[MarketRecord]]
) -> List[ComposedRecord]:
    """
    Merge flare and market records by date.

    Only dates present in both inputs with valid numeric fields produce a
    record. Duplicated dates keep their first occurrence. Output is sorted
    by ISO date string.
    """
    if not flare_records or not market_records:
        return []

    flares = _index_flares(flare_records)
    market = _index_market(market_records)

    common_dates = sorted(date for date in flares if date in market)

    composed = []
    for date in common_dates:
        flare = flares[date]
        stock = market[date]
        if (is_valid_number(flare.intensity)
                and is_valid_number(stock.volatility)
                and is_valid_number(stock.volume)):
            composed.append(ComposedRecord(
                date=date,
                flare=flare.intensity,
                volatility=stock.volatility,
                trades=stock.volume
            ))
    return composed
