"""
Value records for SolarPulse.
All records are immutable and created per request from upstream data.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple


class IntensityCategory(str, Enum):
    """Flare intensity bands over [0, inf)."""
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    EXTREME = "Extreme"


class Trend(str, Enum):
    RISING = "rising"
    DECLINING = "declining"
    STABLE = "stable"


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    EXTREME = "extreme"


class ScenarioType(str, Enum):
    BASELINE = "baseline"
    HIGH_SOLAR = "high_solar"
    LOW_SOLAR = "low_solar"
    EXTREME_EVENT = "extreme_event"


@dataclass(frozen=True)
class FlareRecord:
    """One solar flare event reduced to a calendar day."""
    date: str
    intensity: float
    class_label: str
    peak_time: str
    source_region: Optional[int] = None


@dataclass(frozen=True)
class MarketRecord:
    """One trading day with derived volatility (percent)."""
    date: str
    close: float
    volume: float
    volatility: float
    open: Optional[float] = None
    high: Optional[float] = None
    low: Optional[float] = None


@dataclass(frozen=True)
class ComposedRecord:
    """Flare and market values fused on a shared date."""
    date: str
    flare: float
    volatility: float
    trades: float


@dataclass(frozen=True)
class StatSummary:
    """Scalar aggregates over a composed sequence."""
    avg_flare: float = 0
    max_flare: float = 0
    avg_volatility: float = 0
    max_volatility: float = 0
    total_trades: float = 0
    correlation: float = 0


@dataclass(frozen=True)
class ForecastPoint:
    date: str
    predicted_flare: float
    predicted_volatility: float
    confidence_interval: Tuple[float, float]


@dataclass(frozen=True)
class Forecast:
    forecast_days: int
    avg_predicted_flare: float
    avg_predicted_volatility: float
    confidence: float
    trend: Trend
    predictions: List[ForecastPoint] = field(default_factory=list)


@dataclass(frozen=True)
class ScenarioParameters:
    """Multipliers applied to historical baselines for a scenario."""
    flare_multiplier: float
    volatility_multiplier: float
    volume_multiplier: float
    description: str
    assumptions: Tuple[str, ...] = ()


@dataclass(frozen=True)
class SimulatedPoint:
    date: str
    flare: float
    volatility: float
    volume: int
    confidence: float


@dataclass(frozen=True)
class Simulation:
    scenario: str
    description: str
    points: List[SimulatedPoint]
    avg_flare: float
    avg_volatility: float
    total_volume: int
    risk_level: RiskLevel
    assumptions: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class WindowCorrelation:
    period: str
    start_date: str
    end_date: str
    correlation: float


@dataclass(frozen=True)
class LagCorrelation:
    lag: int
    label: str
    correlation: float


@dataclass(frozen=True)
class CorrelationDescription:
    strength: str
    direction: str
    coefficient: float


@dataclass(frozen=True)
class VolatilitySplit:
    median: float
    high_days: int
    low_days: int


@dataclass(frozen=True)
class Insight:
    id: str
    type: str
    severity: str
    title: str
    description: str
    confidence: float
    related_dates: Optional[List[str]] = None


@dataclass(frozen=True)
class SymbolComparison:
    symbol: str
    avg_volatility: float = 0
    max_volatility: float = 0
    avg_close: float = 0
    max_close: float = 0
    total_volume: float = 0
    data_points: int = 0


