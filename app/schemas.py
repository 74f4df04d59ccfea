"""
Pydantic schemas for request/response validation.
Ensures type safety and automatic API documentation.
"""
from datetime import datetime
from typing import Optional, List, Dict, Any, Tuple
from pydantic import BaseModel, Field, ConfigDict

from app.models import RiskLevel, ScenarioType, Trend


class ComposedPoint(BaseModel):
    """One fused day of flare and market data."""
    date: str
    flare: float
    volatility: float
    trades: float

    model_config = ConfigDict(from_attributes=True)


class CorrelationPoint(BaseModel):
    flare: float
    volatility: float


class DistributionRow(BaseModel):
    range: str
    count: int = Field(..., ge=0)


class HeatmapPoint(ComposedPoint):
    intensity: float = Field(..., description="Flare intensity times volatility")


class DashboardStats(BaseModel):
    """Aggregate statistics over the composed series."""
    avg_flare: float = 0
    avg_volatility: float = 0
    total_trades: float = 0
    correlation: float = Field(0, ge=-1, le=1)
    max_flare: float = 0
    max_volatility: float = 0

    model_config = ConfigDict(from_attributes=True)


class DashboardResponse(BaseModel):
    """Dashboard response schema."""
    symbol: str
    start_date: str
    end_date: str
    composed_data: List[ComposedPoint] = []
    correlation_data: List[CorrelationPoint] = []
    distribution_data: List[DistributionRow] = []
    heatmap_data: List[HeatmapPoint] = []
    stats: DashboardStats = DashboardStats()


class AnalysisSummary(BaseModel):
    total_flare_events: int = 0
    total_trading_days: int = 0
    avg_flare_intensity: float = 0
    avg_volatility: float = 0
    max_flare_intensity: float = 0
    max_volatility: float = 0
    total_volume: float = 0
    correlation_coefficient: float = 0


class ActiveDay(BaseModel):
    date: str
    intensity: float


class VolatileDay(BaseModel):
    date: str
    volatility: float


class FlareAnalysis(BaseModel):
    by_class: Dict[str, int] = {}
    by_intensity_range: Dict[str, int] = {"Low": 0, "Medium": 0, "High": 0, "Extreme": 0}
    most_active_day: Optional[ActiveDay] = None


class VolatilityAnalysis(BaseModel):
    high_volatility_days: int = 0
    low_volatility_days: int = 0
    median_volatility: float = 0
    avg_daily_change: float = 0
    most_volatile_day: Optional[VolatileDay] = None


class CorrelationAnalysis(BaseModel):
    strength: str = "none"
    direction: str = "none"
    coefficient: float = 0

    model_config = ConfigDict(from_attributes=True)


class TimeSeriesPoint(BaseModel):
    date: str
    flare: float
    volatility: float
    volume: float


class LagPoint(BaseModel):
    lag: int
    label: str
    correlation: float

    model_config = ConfigDict(from_attributes=True)


class WindowPoint(BaseModel):
    period: str
    start_date: str
    end_date: str
    correlation: float

    model_config = ConfigDict(from_attributes=True)


class AnalysisResponse(BaseModel):
    """Detailed analysis response schema."""
    symbol: str
    summary: AnalysisSummary = AnalysisSummary()
    flare_analysis: FlareAnalysis = FlareAnalysis()
    volatility_analysis: VolatilityAnalysis = VolatilityAnalysis()
    correlation_analysis: CorrelationAnalysis = CorrelationAnalysis()
    time_series_data: List[TimeSeriesPoint] = []
    lag_correlations: List[LagPoint] = []
    best_lag: int = 0
    rolling_correlations: List[WindowPoint] = []
    window_correlations: Dict[str, float] = {}


class ForecastPointResponse(BaseModel):
    date: str
    predicted_flare: float
    predicted_volatility: float
    confidence_interval: Tuple[float, float]

    model_config = ConfigDict(from_attributes=True)


class ForecastResponse(BaseModel):
    """Forecast response schema."""
    symbol: str
    forecast_days: int
    avg_predicted_volatility: float = 0
    avg_predicted_flare: float = 0
    confidence: float = Field(0, ge=0, le=1)
    trend: Trend = Trend.STABLE
    predictions: List[ForecastPointResponse] = []


class SimulatedPointResponse(BaseModel):
    date: str
    flare: float
    volatility: float
    volume: int
    confidence: float = Field(..., ge=0, le=1)

    model_config = ConfigDict(from_attributes=True)


class SimulatorSummary(BaseModel):
    avg_flare: float = 0
    avg_volatility: float = 0
    total_volume: int = 0
    risk_level: RiskLevel = RiskLevel.LOW


class SimulatorResponse(BaseModel):
    """Scenario simulation response schema."""
    scenario: ScenarioType
    symbol: str
    description: str
    simulated_data: List[SimulatedPointResponse] = []
    summary: SimulatorSummary = SimulatorSummary()
    assumptions: List[str] = []


class InsightResponse(BaseModel):
    id: str
    type: str
    severity: str
    title: str
    description: str
    confidence: float = Field(..., ge=0, le=1)
    related_dates: Optional[List[str]] = None

    model_config = ConfigDict(from_attributes=True)


class InsightsSummary(BaseModel):
    total_insights: int = 0
    high_severity_count: int = 0
    avg_confidence: float = 0


class InsightsResponse(BaseModel):
    """Insights response schema."""
    symbol: str
    insights: List[InsightResponse] = []
    summary: InsightsSummary = InsightsSummary()
    generated_at: datetime


class SymbolComparisonResponse(BaseModel):
    symbol: str
    avg_volatility: float = 0
    max_volatility: float = 0
    avg_close: float = 0
    max_close: float = 0
    total_volume: float = 0
    data_points: int = 0

    model_config = ConfigDict(from_attributes=True)


class ComparisonSummary(BaseModel):
    most_volatile: str = "N/A"
    least_volatile: str = "N/A"
    highest_price: str = "N/A"
    lowest_price: str = "N/A"


class ComparisonResponse(BaseModel):
    """Multi-symbol comparison response schema."""
    symbols: List[str]
    comparisons: List[SymbolComparisonResponse] = []
    time_series_data: List[Dict[str, Any]] = []
    summary: ComparisonSummary = ComparisonSummary()


class CacheRefreshResponse(BaseModel):
    message: str
    namespace: Optional[str] = None
    invalidated: int = Field(..., ge=0)


class HealthCheckResponse(BaseModel):
    """Health check response schema."""
    status: str
    timestamp: datetime
    api_keys_configured: Dict[str, bool]
    stock_provider: str
    cache_entries: int
