"""
Derived analytics over composed flare/volatility series.
Distribution, classification, trend, insight and comparison calculations.
"""
from typing import Any, Dict, Iterable, List, Optional, Sequence

import pandas as pd

from app.correlation import pearson
from app.models import (
    ComposedRecord, FlareRecord, Insight, IntensityCategory, MarketRecord,
    StatSummary, SymbolComparison, Trend, VolatilitySplit
)
from app.numeric import average, categorize_intensity, finite_values, is_valid_number, maximum, total

TREND_WINDOW = 10
TREND_THRESHOLD = 0.1


def intensity_distribution(values: Optional[Iterable[Any]]) -> Dict[str, int]:
    """Count values per intensity band. All four bands are always present."""
    counts = {category.value: 0 for category in IntensityCategory}
    for value in values if values is not None else []:
        counts[categorize_intensity(value).value] += 1
    return counts


def distribution_rows(values: Optional[Iterable[Any]]) -> List[Dict[str, Any]]:
    return [
        {"range": band, "count": count}
        for band, count in intensity_distribution(values).items()
    ]


def count_by_class_letter(flare_records: Iterable[FlareRecord]) -> Dict[str, int]:
    """Count flares by the leading letter of their class label."""
    counts: Dict[str, int] = {}
    for record in flare_records if flare_records is not None else []:
        label = record.class_label if isinstance(record.class_label, str) else ""
        letter = label[:1].upper()
        counts[letter] = counts.get(letter, 0) + 1
    return counts


def summarize(records: Sequence[ComposedRecord]) -> StatSummary:
    """Aggregate statistics for a composed sequence."""
    flares = [r.flare for r in records]
    volatilities = [r.volatility for r in records]
    return StatSummary(
        avg_flare=average(flares),
        max_flare=maximum(flares),
        avg_volatility=average(volatilities),
        max_volatility=maximum(volatilities),
        total_trades=total([r.trades for r in records]),
        correlation=pearson(flares, volatilities)
    )


def split_by_volatility(records: Sequence[ComposedRecord]) -> VolatilitySplit:
    """
    Classify days as high or low volatility against the median.

    The median is the element at index n // 2 of the sorted column, so even
    length series use the upper-middle element rather than an average.
    """
    column = sorted(finite_values([r.volatility for r in records]))
    median = column[len(column) // 2] if column else 0

    high_days = sum(1 for r in records if is_valid_number(r.volatility) and r.volatility > median)
    return VolatilitySplit(median=median, high_days=high_days, low_days=len(records) - high_days)


def most_active_day(records: Sequence[ComposedRecord]) -> Optional[Dict[str, Any]]:
    best = None
    for record in records:
        if best is None or record.flare > best["intensity"]:
            best = {"date": record.date, "intensity": record.flare}
    return best


def most_volatile_day(records: Sequence[ComposedRecord]) -> Optional[Dict[str, Any]]:
    best = None
    for record in records:
        if best is None or record.volatility > best["volatility"]:
            best = {"date": record.date, "volatility": record.volatility}
    return best


def average_daily_change(market_records: Sequence[MarketRecord]) -> float:
    """Mean absolute close-to-close change across consecutive trading days."""
    changes = [
        abs(current.close - previous.close)
        for previous, current in zip(market_records, market_records[1:])
        if is_valid_number(previous.close) and is_valid_number(current.close)
    ]
    if not changes:
        return 0
    return sum(changes) / len(changes)


def _direction(recent: float, earlier: float) -> int:
    if recent > earlier * (1 + TREND_THRESHOLD):
        return 1
    if recent < earlier * (1 - TREND_THRESHOLD):
        return -1
    return 0


def classify_trend(flares: Sequence[Any], volatility: Sequence[Any]) -> Trend:
    """
    Compare the second half of the latest points with the first half.

    Flare and volatility each vote +1, -1 or 0 using a 10% band and the
    sign of the total decides the trend.
    """
    if flares is None or volatility is None or len(flares) < 2 or len(volatility) < 2:
        return Trend.STABLE

    recent_flares = list(flares)[-TREND_WINDOW:]
    recent_volatility = list(volatility)[-TREND_WINDOW:]
    midpoint = len(recent_flares) // 2

    flare_vote = _direction(average(recent_flares[midpoint:]), average(recent_flares[:midpoint]))
    volatility_vote = _direction(
        average(recent_volatility[midpoint:]), average(recent_volatility[:midpoint])
    )

    combined = flare_vote + volatility_vote
    if combined > 0:
        return Trend.RISING
    if combined < 0:
        return Trend.DECLINING
    return Trend.STABLE


def generate_insights(records: Sequence[ComposedRecord], symbol: str) -> List[Insight]:
    """Pattern-based observations about a composed series."""
    insights: List[Insight] = []

    def next_id() -> str:
        return f"insight-{len(insights) + 1}"

    flares = [r.flare for r in records]
    volatilities = [r.volatility for r in records]

    correlation = pearson(flares, volatilities)
    if abs(correlation) > 0.3:
        strong = abs(correlation) > 0.6
        positive = correlation > 0
        insights.append(Insight(
            id=next_id(),
            type="correlation",
            severity="high" if strong else "medium",
            title="Positive Correlation Detected" if positive else "Negative Correlation Detected",
            description=(
                f"Solar flare activity shows a {'strong' if strong else 'moderate'} "
                f"{'positive' if positive else 'negative'} correlation ({correlation:.2f}) "
                f"with market volatility for {symbol}. "
                + ("Higher solar activity tends to coincide with increased market volatility."
                   if positive else
                   "Higher solar activity tends to coincide with decreased market volatility.")
            ),
            confidence=min(0.95, abs(correlation) + 0.2)
        ))

    recent_flares = flares[-7:]
    earlier_flares = flares[:7]
    earlier_avg = average(earlier_flares)
    if recent_flares and earlier_flares and earlier_avg != 0:
        change = (average(recent_flares) - earlier_avg) / earlier_avg * 100
        if abs(change) > 20:
            insights.append(Insight(
                id=next_id(),
                type="trend",
                severity="high" if abs(change) > 50 else "medium",
                title=("Increasing Solar Activity Trend" if change > 0
                       else "Decreasing Solar Activity Trend"),
                description=(
                    f"Solar flare intensity has {'increased' if change > 0 else 'decreased'} "
                    f"by {abs(change):.1f}% over the recent period. This "
                    f"{'upward' if change > 0 else 'downward'} trend may impact market conditions."
                ),
                confidence=0.75
            ))

    avg_flare = average(flares)
    high_flare_days = [r for r in records if r.flare > avg_flare * 2]
    if high_flare_days:
        count = len(high_flare_days)
        insights.append(Insight(
            id=next_id(),
            type="anomaly",
            severity="high" if count > 3 else "medium",
            title="Unusual Solar Activity Detected",
            description=(
                f"{count} day{'s' if count > 1 else ''} with exceptionally high solar flare "
                f"activity (more than 2x average) detected. These anomalies may correlate "
                f"with market disruptions."
            ),
            confidence=0.8,
            related_dates=[r.date for r in high_flare_days]
        ))

    avg_volatility = average(volatilities)
    run = longest_run = 0
    for record in records:
        if record.volatility > avg_volatility * 1.5:
            run += 1
            longest_run = max(longest_run, run)
        else:
            run = 0

    if longest_run >= 3:
        insights.append(Insight(
            id=next_id(),
            type="pattern",
            severity="high" if longest_run >= 5 else "medium",
            title="Volatility Clustering Pattern",
            description=(
                f"Market volatility shows clustering behavior with {longest_run} consecutive "
                f"days of elevated volatility. This pattern suggests sustained market "
                f"uncertainty for {symbol}."
            ),
            confidence=0.7
        ))

    extreme_count = intensity_distribution(flares)[IntensityCategory.EXTREME.value]
    if extreme_count > 0:
        insights.append(Insight(
            id=next_id(),
            type="anomaly",
            severity="high" if extreme_count > 2 else "medium",
            title="Extreme Solar Events Recorded",
            description=(
                f"{extreme_count} extreme solar flare event{'s' if extreme_count > 1 else ''} "
                f"recorded during this period. Extreme events (intensity > 6) are rare and "
                f"may have significant impacts."
            ),
            confidence=0.9
        ))

    if flares and avg_flare < 0.5:
        insights.append(Insight(
            id=next_id(),
            type="trend",
            severity="low",
            title="Low Solar Activity Period",
            description=(
                f"Solar activity remains relatively quiet with an average flare intensity of "
                f"{avg_flare:.2f}. Low solar activity periods typically correlate with stable "
                f"market conditions."
            ),
            confidence=0.65
        ))

    return insights


def compare_symbol(symbol: str, market_records: Optional[Sequence[MarketRecord]]) -> SymbolComparison:
    """Volatility and price statistics for one symbol. Missing data gives zeros."""
    if not market_records:
        return SymbolComparison(symbol=symbol)

    volatilities = [r.volatility for r in market_records]
    closes = [r.close for r in market_records]
    return SymbolComparison(
        symbol=symbol,
        avg_volatility=average(volatilities),
        max_volatility=maximum(volatilities),
        avg_close=average(closes),
        max_close=maximum(closes),
        total_volume=total([r.volume for r in market_records]),
        data_points=len(market_records)
    )


def comparison_time_series(
    market_by_symbol: Dict[str, Sequence[MarketRecord]],
    symbols: Sequence[str]
) -> List[Dict[str, Any]]:
    """
    Volatility per symbol on every date seen by any symbol.

    Dates a symbol has no record for are filled with 0.
    """
    rows = [
        {"date": record.date, "symbol": symbol, "volatility": record.volatility}
        for symbol, records in market_by_symbol.items()
        for record in records or []
    ]
    if not rows:
        return []

    frame = pd.DataFrame(rows).drop_duplicates(subset=["date", "symbol"], keep="first")
    table = (
        frame.pivot(index="date", columns="symbol", values="volatility")
        .reindex(columns=list(symbols))
        .fillna(0)
        .sort_index()
    )

    return [
        {"date": date, **{symbol: float(row[symbol]) for symbol in symbols}}
        for date, row in table.iterrows()
    ]


def comparison_summary(comparisons: Sequence[SymbolComparison]) -> Dict[str, str]:
    """Most and least volatile, highest and lowest priced symbols."""
    valid = [c for c in comparisons if c.data_points > 0]
    if not valid:
        return {
            "most_volatile": "N/A",
            "least_volatile": "N/A",
            "highest_price": "N/A",
            "lowest_price": "N/A"
        }

    most_volatile = least_volatile = highest = lowest = valid[0]
    for comp in valid:
        if comp.avg_volatility > most_volatile.avg_volatility:
            most_volatile = comp
        if comp.avg_volatility < least_volatile.avg_volatility:
            least_volatile = comp
        if comp.avg_close > highest.avg_close:
            highest = comp
        if comp.avg_close < lowest.avg_close:
            lowest = comp

    return {
        "most_volatile": most_volatile.symbol,
        "least_volatile": least_volatile.symbol,
        "highest_price": highest.symbol,
        "lowest_price": lowest.symbol
    }
