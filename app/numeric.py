"""
Numeric helpers over loosely typed series.
Every reducer filters to finite numbers first and returns 0 when nothing is left.
"""
import math
from numbers import Real
from typing import Any, Iterable, List, Optional

from app.models import IntensityCategory

# Lower bounds of the Medium, High and Extreme bands
MEDIUM_THRESHOLD = 2
HIGH_THRESHOLD = 4
EXTREME_THRESHOLD = 6


def is_valid_number(value: Any) -> bool:
    """True for finite real numbers. Booleans, None and strings are rejected."""
    if isinstance(value, bool) or not isinstance(value, Real):
        return False
    return math.isfinite(value)


def finite_values(values: Optional[Iterable[Any]]) -> List[float]:
    if values is None:
        return []
    return [v for v in values if is_valid_number(v)]


def average(values: Optional[Iterable[Any]]) -> float:
    """Arithmetic mean of the finite values, 0 if there are none."""
    valid = finite_values(values)
    if not valid:
        return 0
    return sum(valid) / len(valid)


def maximum(values: Optional[Iterable[Any]]) -> float:
    """Largest finite value, 0 if there are none. Negative maxima are preserved."""
    valid = finite_values(values)
    if not valid:
        return 0
    return max(valid)


def total(values: Optional[Iterable[Any]]) -> float:
    """Sum of the finite values."""
    valid = finite_values(values)
    if not valid:
        return 0
    return sum(valid)


def categorize_intensity(intensity: Any) -> IntensityCategory:
    """
    Map a flare intensity to its band.

    Low: [0, 2), Medium: [2, 4), High: [4, 6), Extreme: [6, inf).
    Negative and invalid values are Low.
    """
    if not is_valid_number(intensity) or intensity < 0:
        return IntensityCategory.LOW

    if intensity < MEDIUM_THRESHOLD:
        return IntensityCategory.LOW
    elif intensity < HIGH_THRESHOLD:
        return IntensityCategory.MEDIUM
    elif intensity < EXTREME_THRESHOLD:
        return IntensityCategory.HIGH
    return IntensityCategory.EXTREME
