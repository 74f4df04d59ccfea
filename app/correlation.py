"""
Correlation engine for flare intensity versus market volatility.
Pearson coefficient plus lagged and rolling-window variants over composed records.
"""
from typing import Any, List, Optional, Sequence

import numpy as np

from app.models import ComposedRecord, CorrelationDescription, LagCorrelation, WindowCorrelation
from app.numeric import is_valid_number


def pearson(x: Optional[Sequence[Any]], y: Optional[Sequence[Any]]) -> float:
    """
    Pearson correlation coefficient between two index-paired series.

    Pairs where either side is not a finite number are dropped together.
    Returns 0 for missing or mismatched input, fewer than two valid pairs,
    or a series with zero variance. The result is clamped to [-1, 1].
    """
    if x is None or y is None or len(x) == 0 or len(y) == 0:
        return 0
    if len(x) != len(y) or len(x) == 1:
        return 0

    pairs = [(a, b) for a, b in zip(x, y) if is_valid_number(a) and is_valid_number(b)]
    if len(pairs) < 2:
        return 0

    values = np.array(pairs, dtype=float)
    dx = values[:, 0] - values[:, 0].mean()
    dy = values[:, 1] - values[:, 1].mean()

    sum_xy = float(np.dot(dx, dy))
    sum_x2 = float(np.dot(dx, dx))
    sum_y2 = float(np.dot(dy, dy))

    # All values identical on one side
    if sum_x2 == 0 or sum_y2 == 0:
        return 0

    coefficient = sum_xy / np.sqrt(sum_x2 * sum_y2)
    return float(np.clip(coefficient, -1.0, 1.0))


def lag_correlation(records: Sequence[ComposedRecord], lag: int) -> float:
    """Correlate flare on day t with volatility on day t + lag."""
    n = len(records) if records else 0
    if lag < 0 or n < lag + 2:
        return 0

    flares = [r.flare for r in records[:n - lag]]
    volatilities = [r.volatility for r in records[lag:]]
    return pearson(flares, volatilities)


def rolling_correlation(records: Sequence[ComposedRecord], window: int) -> List[WindowCorrelation]:
    """Pearson correlation inside each run of `window` consecutive records."""
    if not records or window < 1 or len(records) < window:
        return []

    results = []
    for start in range(len(records) - window + 1):
        chunk = records[start:start + window]
        start_date = chunk[0].date
        end_date = chunk[-1].date
        results.append(WindowCorrelation(
            period=f"Period {start + 1} ({start_date} to {end_date})",
            start_date=start_date,
            end_date=end_date,
            correlation=pearson([r.flare for r in chunk], [r.volatility for r in chunk])
        ))
    return results


def _lag_label(lag: int) -> str:
    if lag == 1:
        return "1 day"
    return f"{lag} days"


def lag_profile(records: Sequence[ComposedRecord], max_lag: int) -> List[LagCorrelation]:
    """Absolute lag correlation for every lag from 0 to max_lag."""
    if max_lag < 0:
        return []
    return [
        LagCorrelation(lag=lag, label=_lag_label(lag), correlation=abs(lag_correlation(records, lag)))
        for lag in range(max_lag + 1)
    ]


def best_lag(profile: Sequence[LagCorrelation]) -> int:
    """Lag with the strongest correlation; the earliest one wins ties."""
    best = 0
    for index, entry in enumerate(profile):
        if entry.correlation > profile[best].correlation:
            best = index
    return profile[best].lag if profile else 0


def average_window_correlation(records: Sequence[ComposedRecord], window: int) -> float:
    """Mean absolute rolling correlation, 0 when the series is shorter than the window."""
    windows = rolling_correlation(records, window)
    if not windows:
        return 0
    return sum(abs(w.correlation) for w in windows) / len(windows)


def describe_correlation(coefficient: float) -> CorrelationDescription:
    """Qualitative strength and direction of a coefficient."""
    if not is_valid_number(coefficient):
        coefficient = 0
    magnitude = abs(coefficient)

    if magnitude >= 0.7:
        strength = "strong"
    elif magnitude >= 0.4:
        strength = "moderate"
    elif magnitude >= 0.2:
        strength = "weak"
    else:
        strength = "none"

    if coefficient > 0.1:
        direction = "positive"
    elif coefficient < -0.1:
        direction = "negative"
    else:
        direction = "none"

    return CorrelationDescription(strength=strength, direction=direction, coefficient=coefficient)
