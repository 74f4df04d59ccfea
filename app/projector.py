"""
Forecast and scenario simulation projector.
Projects flare and volatility series forward from historical baselines.
"""
from datetime import date, timedelta
from typing import Any, Callable, Dict, Optional, Sequence

import numpy as np

from app.models import (
    Forecast, ForecastPoint, RiskLevel, ScenarioParameters, ScenarioType,
    SimulatedPoint, Simulation, Trend
)
from app.numeric import average, is_valid_number

RandomSource = Callable[[], float]

TREND_FACTORS: Dict[Trend, float] = {
    Trend.RISING: 1.05,
    Trend.DECLINING: 0.95,
    Trend.STABLE: 1.0,
}

INTERVAL_STEP = 0.2
FORECAST_CONFIDENCE_DECAY = 0.05
SIMULATION_CONFIDENCE_DECAY = 0.03
MIN_CONFIDENCE = 0.5

DEFAULT_BASELINE_FLARE = 1.0
DEFAULT_BASELINE_VOLATILITY = 2.0
DEFAULT_BASELINE_VOLUME = 1_000_000

SCENARIOS: Dict[ScenarioType, ScenarioParameters] = {
    ScenarioType.BASELINE: ScenarioParameters(
        flare_multiplier=1.0,
        volatility_multiplier=1.0,
        volume_multiplier=1.0,
        description=(
            "Normal solar activity with typical market conditions. This scenario assumes "
            "continuation of recent historical patterns."
        ),
        assumptions=(
            "Solar activity remains at historical average levels",
            "Market volatility follows recent trends",
            "No major external disruptions",
            "Trading volumes remain stable",
        )
    ),
    ScenarioType.HIGH_SOLAR: ScenarioParameters(
        flare_multiplier=2.5,
        volatility_multiplier=1.5,
        volume_multiplier=1.3,
        description=(
            "Elevated solar activity scenario with increased flare frequency and intensity. "
            "Markets may experience heightened volatility."
        ),
        assumptions=(
            "Solar flare intensity increases by 2.5x",
            "Market volatility increases by 50%",
            "Trading volumes increase by 30%",
            "Correlation between solar activity and volatility holds",
        )
    ),
    ScenarioType.LOW_SOLAR: ScenarioParameters(
        flare_multiplier=0.3,
        volatility_multiplier=0.7,
        volume_multiplier=0.9,
        description=(
            "Quiet solar period with minimal flare activity. Markets typically show reduced "
            "volatility during these periods."
        ),
        assumptions=(
            "Solar flare intensity decreases to 30% of baseline",
            "Market volatility decreases by 30%",
            "Trading volumes decrease slightly",
            "Stable market conditions prevail",
        )
    ),
    ScenarioType.EXTREME_EVENT: ScenarioParameters(
        flare_multiplier=5.0,
        volatility_multiplier=3.0,
        volume_multiplier=2.0,
        description=(
            "Extreme solar event scenario (X-class flares or solar storms). Significant "
            "market disruption possible."
        ),
        assumptions=(
            "Solar flare intensity increases by 5x",
            "Market volatility triples",
            "Trading volumes double due to panic/hedging",
            "Potential infrastructure impacts",
            "Increased correlation between solar and market events",
        )
    ),
}

UNKNOWN_SCENARIO = ScenarioParameters(
    flare_multiplier=1.0,
    volatility_multiplier=1.0,
    volume_multiplier=1.0,
    description="Unknown scenario",
)


def default_random_source() -> RandomSource:
    """Fresh uniform [0, 1) generator for a single call."""
    return np.random.default_rng().random


def get_scenario(scenario: Any) -> ScenarioParameters:
    """Look up scenario parameters by enum or name."""
    try:
        return SCENARIOS[ScenarioType(scenario)]
    except ValueError:
        return UNKNOWN_SCENARIO


def _coerce_trend(trend: Any) -> Trend:
    try:
        return Trend(trend)
    except ValueError:
        return Trend.STABLE


def _offset_date(today: date, days: int) -> str:
    return (today + timedelta(days=days)).isoformat()


def determine_risk_level(avg_flare: float, avg_volatility: float) -> RiskLevel:
    """Weighted flare/volatility score against fixed thresholds."""
    score = avg_flare * 0.5 + avg_volatility * 0.5
    if score > 10:
        return RiskLevel.EXTREME
    if score > 5:
        return RiskLevel.HIGH
    if score > 2:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def forecast_confidence(days: int) -> float:
    return max(MIN_CONFIDENCE, 1 - max(days, 0) * FORECAST_CONFIDENCE_DECAY)


def generate_forecast(
    avg_flare: float,
    avg_volatility: float,
    days: int,
    trend: Trend,
    *,
    last_flare: Optional[float] = None,
    last_volatility: Optional[float] = None,
    today: Optional[date] = None,
    jitter: float = 0.0,
    random_source: Optional[RandomSource] = None
) -> Forecast:
    """
    Project flare and volatility `days` ahead.

    Each day i compounds the trend factor i times on the last known value,
    or on the historical average when no finite last value is given. The
    confidence interval widens by 20% of the prediction per day.
    """
    today = today or date.today()
    trend = _coerce_trend(trend)
    factor = TREND_FACTORS[trend]
    flare_base = last_flare if is_valid_number(last_flare) else avg_flare
    volatility_base = last_volatility if is_valid_number(last_volatility) else avg_volatility
    if not is_valid_number(flare_base):
        flare_base = 0
    if not is_valid_number(volatility_base):
        volatility_base = 0

    if jitter > 0 and random_source is None:
        random_source = default_random_source()

    predictions = []
    for i in range(1, max(days, 0) + 1):
        day_factor = factor ** i
        if jitter > 0:
            day_factor *= 1 + jitter * (2 * random_source() - 1)

        predicted_flare = flare_base * day_factor
        predicted_volatility = volatility_base * day_factor

        width = INTERVAL_STEP * i
        lower = max(0, predicted_volatility * (1 - width))
        upper = predicted_volatility * (1 + width)

        predictions.append(ForecastPoint(
            date=_offset_date(today, i),
            predicted_flare=predicted_flare,
            predicted_volatility=predicted_volatility,
            confidence_interval=(lower, upper)
        ))

    return Forecast(
        forecast_days=days,
        avg_predicted_flare=average([p.predicted_flare for p in predictions]),
        avg_predicted_volatility=average([p.predicted_volatility for p in predictions]),
        confidence=forecast_confidence(days),
        trend=trend,
        predictions=predictions
    )


def _has_values(values: Optional[Sequence[Any]]) -> bool:
    return values is not None and len(values) > 0


def _valid_or(value: Any, default: float) -> float:
    return value if is_valid_number(value) else default


def simulation_baselines(
    flare_values: Sequence[Any],
    volatility_values: Sequence[Any],
    volume_values: Sequence[Any]
) -> Dict[str, float]:
    """Historical averages, with fixed defaults for sources that returned nothing."""
    return {
        "flare": average(flare_values) if _has_values(flare_values) else DEFAULT_BASELINE_FLARE,
        "volatility": average(volatility_values) if _has_values(volatility_values) else DEFAULT_BASELINE_VOLATILITY,
        "volume": average(volume_values) if _has_values(volume_values) else DEFAULT_BASELINE_VOLUME,
    }


def _floor_volume(value: float) -> int:
    return int(np.floor(value)) if is_valid_number(value) else 0


def simulate_scenario(
    scenario: Any,
    days: int,
    baseline_flare: float,
    baseline_volatility: float,
    baseline_volume: float,
    *,
    today: Optional[date] = None,
    random_source: Optional[RandomSource] = None
) -> Simulation:
    """
    Simulate `days` of activity under a named scenario.

    One random factor in [0.8, 1.2) per day scales all three baselines
    after the scenario multipliers are applied. Non-finite baselines are
    replaced by the fixed defaults.
    """
    today = today or date.today()
    random_source = random_source or default_random_source()
    params = get_scenario(scenario)
    baseline_flare = _valid_or(baseline_flare, DEFAULT_BASELINE_FLARE)
    baseline_volatility = _valid_or(baseline_volatility, DEFAULT_BASELINE_VOLATILITY)
    baseline_volume = _valid_or(baseline_volume, DEFAULT_BASELINE_VOLUME)

    points = []
    for i in range(1, max(days, 0) + 1):
        random_factor = 0.8 + random_source() * 0.4
        points.append(SimulatedPoint(
            date=_offset_date(today, i),
            flare=baseline_flare * params.flare_multiplier * random_factor,
            volatility=baseline_volatility * params.volatility_multiplier * random_factor,
            volume=_floor_volume(baseline_volume * params.volume_multiplier * random_factor),
            confidence=max(MIN_CONFIDENCE, 1 - i * SIMULATION_CONFIDENCE_DECAY)
        ))

    avg_flare = average([p.flare for p in points])
    avg_volatility = average([p.volatility for p in points])

    return Simulation(
        scenario=scenario.value if isinstance(scenario, ScenarioType) else str(scenario),
        description=params.description,
        points=points,
        avg_flare=avg_flare,
        avg_volatility=avg_volatility,
        total_volume=sum(p.volume for p in points),
        risk_level=determine_risk_level(avg_flare, avg_volatility),
        assumptions=list(params.assumptions)
    )
