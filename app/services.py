"""
Orchestration layer between the fetchers and the analytics core.

Fetches both sources concurrently, normalizes and merges them, runs the
analytics and caches the resulting payloads. Unexpected failures are logged
and degrade to an empty payload instead of an error.
"""
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional, Tuple

from loguru import logger

from app.analytics import (
    average_daily_change, classify_trend, compare_symbol, comparison_summary,
    comparison_time_series, count_by_class_letter, distribution_rows, generate_insights,
    intensity_distribution, most_active_day, most_volatile_day, split_by_volatility, summarize
)
from app.cache import ResultCache
from app.correlation import (
    average_window_correlation, best_lag, describe_correlation, lag_profile, rolling_correlation
)
from app.data_fetcher import DataFetcher
from app.data_transform import merge_datasets
from app.models import ComposedRecord, FlareRecord, MarketRecord, ScenarioType
from app.normalization import calculate_volatility, transform_flare_events
from app.numeric import average
from app.projector import (
    RandomSource, generate_forecast, get_scenario, simulate_scenario, simulation_baselines
)
from app.schemas import (
    ActiveDay, AnalysisResponse, AnalysisSummary, ComparisonResponse, ComparisonSummary,
    ComposedPoint, CorrelationAnalysis, CorrelationPoint, DashboardResponse, DashboardStats,
    DistributionRow, FlareAnalysis, ForecastPointResponse, ForecastResponse, HeatmapPoint,
    InsightResponse, InsightsResponse, InsightsSummary, LagPoint, SimulatedPointResponse,
    SimulatorResponse, SimulatorSummary, SymbolComparisonResponse, TimeSeriesPoint,
    VolatileDay, VolatilityAnalysis, WindowPoint
)
from config import Settings, get_settings

SUMMARY_WINDOWS = (5, 7, 10)


class AnalyticsService:
    """Builds every endpoint payload from the two upstream sources."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        cache: Optional[ResultCache] = None,
        fetcher_factory: Optional[Callable[[], DataFetcher]] = None,
        today: Callable[[], date] = date.today,
        random_source: Optional[RandomSource] = None
    ):
        self.settings = settings or get_settings()
        self.cache = cache or ResultCache(self.settings.cache_ttls, max_size=self.settings.cache_max_size)
        self.fetcher_factory = fetcher_factory or (lambda: DataFetcher(self.settings))
        self.today = today
        self.random_source = random_source

    def _date_range(self, start_date: Optional[str], end_date: Optional[str]) -> Tuple[str, str]:
        today = self.today()
        end = end_date or today.isoformat()
        start = start_date or (today - timedelta(days=self.settings.lookback_days)).isoformat()
        return start, end

    async def load_records(
        self, symbol: str, start_date: str, end_date: str
    ) -> Tuple[List[FlareRecord], List[MarketRecord]]:
        """Fetch and normalize both sources. Either side may come back empty."""
        async with self.fetcher_factory() as fetcher:
            raw = await fetcher.fetch_all_data(start_date, end_date, symbol)

        flare_records: List[FlareRecord] = []
        try:
            flare_records = transform_flare_events(raw["flares"])
            logger.info(f"Transformed {len(flare_records)} flare records")
        except Exception as e:
            logger.error(f"Failed to transform NASA data ({len(raw['flares'])} events): {e}")

        market_records: List[MarketRecord] = []
        try:
            market_records = calculate_volatility(raw["quotes"])
            logger.info(f"Transformed {len(market_records)} market records for {symbol}")
        except Exception as e:
            logger.error(f"Failed to transform stock data ({len(raw['quotes'])} quotes): {e}")

        return flare_records, market_records

    # Dashboard

    async def get_dashboard(self, symbol: Optional[str] = None, start_date: Optional[str] = None,
                            end_date: Optional[str] = None) -> DashboardResponse:
        symbol = symbol or self.settings.default_stock_symbol
        start, end = self._date_range(start_date, end_date)
        params = {"symbol": symbol, "start_date": start, "end_date": end}
        return await self.cache.get_or_compute(
            "dashboard", params, lambda: self._build_dashboard(symbol, start, end)
        )

    async def _build_dashboard(self, symbol: str, start: str, end: str) -> DashboardResponse:
        logger.info(f"Building dashboard for {symbol} {start} to {end}")
        try:
            flares, market = await self.load_records(symbol, start, end)
            composed = merge_datasets(flares, market)
            stats = summarize(composed)

            response = DashboardResponse(
                symbol=symbol,
                start_date=start,
                end_date=end,
                composed_data=[ComposedPoint.model_validate(r) for r in composed],
                correlation_data=[CorrelationPoint(flare=r.flare, volatility=r.volatility) for r in composed],
                distribution_data=[DistributionRow(**row) for row in distribution_rows([r.flare for r in composed])],
                heatmap_data=[
                    HeatmapPoint(date=r.date, flare=r.flare, volatility=r.volatility,
                                 trades=r.trades, intensity=r.flare * r.volatility)
                    for r in composed
                ],
                stats=DashboardStats.model_validate(stats)
            )
            logger.info(f"Dashboard ready: {len(composed)} days, correlation={stats.correlation:.4f}")
            return response
        except Exception:
            logger.exception(f"Unexpected error building dashboard for {symbol}")
            return DashboardResponse(
                symbol=symbol, start_date=start, end_date=end,
                distribution_data=[DistributionRow(**row) for row in distribution_rows([])]
            )

    # Analysis

    async def get_analysis(self, symbol: Optional[str] = None, start_date: Optional[str] = None,
                           end_date: Optional[str] = None, window: Optional[int] = None) -> AnalysisResponse:
        symbol = symbol or self.settings.default_stock_symbol
        window = window or self.settings.correlation_window
        start, end = self._date_range(start_date, end_date)
        params = {"symbol": symbol, "start_date": start, "end_date": end, "window": window}
        return await self.cache.get_or_compute(
            "analysis", params, lambda: self._build_analysis(symbol, start, end, window)
        )

    async def _build_analysis(self, symbol: str, start: str, end: str, window: int) -> AnalysisResponse:
        logger.info(f"Building analysis for {symbol} {start} to {end} (window={window})")
        try:
            flares, market = await self.load_records(symbol, start, end)
            composed = merge_datasets(flares, market)
            return self.analyse(symbol, flares, market, composed, window)
        except Exception:
            logger.exception(f"Unexpected error building analysis for {symbol}")
            return AnalysisResponse(symbol=symbol)

    @staticmethod
    def analyse(symbol: str, flares: List[FlareRecord], market: List[MarketRecord],
                composed: List[ComposedRecord], window: int) -> AnalysisResponse:
        stats = summarize(composed)
        split = split_by_volatility(composed)
        active = most_active_day(composed)
        volatile = most_volatile_day(composed)
        profile = lag_profile(composed, window)

        return AnalysisResponse(
            symbol=symbol,
            summary=AnalysisSummary(
                total_flare_events=len(flares),
                total_trading_days=len(market),
                avg_flare_intensity=stats.avg_flare,
                avg_volatility=stats.avg_volatility,
                max_flare_intensity=stats.max_flare,
                max_volatility=stats.max_volatility,
                total_volume=stats.total_trades,
                correlation_coefficient=stats.correlation
            ),
            flare_analysis=FlareAnalysis(
                by_class=count_by_class_letter(flares),
                by_intensity_range=intensity_distribution([r.flare for r in composed]),
                most_active_day=ActiveDay(**active) if active else None
            ),
            volatility_analysis=VolatilityAnalysis(
                high_volatility_days=split.high_days,
                low_volatility_days=split.low_days,
                median_volatility=split.median,
                avg_daily_change=average_daily_change(market),
                most_volatile_day=VolatileDay(**volatile) if volatile else None
            ),
            correlation_analysis=CorrelationAnalysis.model_validate(describe_correlation(stats.correlation)),
            time_series_data=[
                TimeSeriesPoint(date=r.date, flare=r.flare, volatility=r.volatility, volume=r.trades)
                for r in composed
            ],
            lag_correlations=[LagPoint.model_validate(p) for p in profile],
            best_lag=best_lag(profile),
            rolling_correlations=[WindowPoint.model_validate(w) for w in rolling_correlation(composed, window)],
            window_correlations={
                "overall": abs(stats.correlation),
                **{f"{size}d": average_window_correlation(composed, size) for size in SUMMARY_WINDOWS}
            }
        )

    # Forecast

    async def get_forecast(self, days: Optional[int] = None, symbol: Optional[str] = None) -> ForecastResponse:
        days = days or self.settings.forecast_days
        symbol = symbol or self.settings.default_stock_symbol
        params = {"days": days, "symbol": symbol, "today": self.today().isoformat()}
        return await self.cache.get_or_compute(
            "forecast", params, lambda: self._build_forecast(days, symbol)
        )

    async def _build_forecast(self, days: int, symbol: str) -> ForecastResponse:
        logger.info(f"Building {days}-day forecast for {symbol}")
        try:
            start, end = self._date_range(None, None)
            flares, market = await self.load_records(symbol, start, end)

            flare_values = [r.intensity for r in flares]
            volatility_values = [r.volatility for r in market]
            trend = classify_trend(flare_values, volatility_values)

            anchor_last = self.settings.forecast_anchor == "last"
            forecast = generate_forecast(
                average(flare_values),
                average(volatility_values),
                days,
                trend,
                last_flare=flare_values[-1] if anchor_last and flare_values else None,
                last_volatility=volatility_values[-1] if anchor_last and volatility_values else None,
                today=self.today()
            )
            logger.info(f"Forecast ready: trend={forecast.trend.value}, confidence={forecast.confidence:.2f}")

            return ForecastResponse(
                symbol=symbol,
                forecast_days=forecast.forecast_days,
                avg_predicted_volatility=forecast.avg_predicted_volatility,
                avg_predicted_flare=forecast.avg_predicted_flare,
                confidence=forecast.confidence,
                trend=forecast.trend,
                predictions=[ForecastPointResponse.model_validate(p) for p in forecast.predictions]
            )
        except Exception:
            logger.exception(f"Unexpected error building forecast for {symbol}")
            return ForecastResponse(symbol=symbol, forecast_days=days)

    # Simulator

    async def get_simulation(self, scenario: ScenarioType = ScenarioType.BASELINE,
                             symbol: Optional[str] = None, days: Optional[int] = None) -> SimulatorResponse:
        scenario = ScenarioType(scenario)
        symbol = symbol or self.settings.default_stock_symbol
        days = days or self.settings.simulation_days
        params = {"scenario": scenario.value, "symbol": symbol, "days": days,
                  "today": self.today().isoformat()}
        return await self.cache.get_or_compute(
            "simulator", params, lambda: self._build_simulation(scenario, symbol, days)
        )

    async def _build_simulation(self, scenario: ScenarioType, symbol: str, days: int) -> SimulatorResponse:
        logger.info(f"Simulating {scenario.value} for {symbol} over {days} days")
        try:
            start, end = self._date_range(None, None)
            flares, market = await self.load_records(symbol, start, end)

            baselines = simulation_baselines(
                [r.intensity for r in flares],
                [r.volatility for r in market],
                [r.volume for r in market]
            )
            simulation = simulate_scenario(
                scenario, days,
                baselines["flare"], baselines["volatility"], baselines["volume"],
                today=self.today(),
                random_source=self.random_source
            )
            logger.info(f"Simulation ready: risk={simulation.risk_level.value}")

            return SimulatorResponse(
                scenario=scenario,
                symbol=symbol,
                description=simulation.description,
                simulated_data=[SimulatedPointResponse.model_validate(p) for p in simulation.points],
                summary=SimulatorSummary(
                    avg_flare=simulation.avg_flare,
                    avg_volatility=simulation.avg_volatility,
                    total_volume=simulation.total_volume,
                    risk_level=simulation.risk_level
                ),
                assumptions=simulation.assumptions
            )
        except Exception:
            logger.exception(f"Unexpected error simulating {scenario.value} for {symbol}")
            params = get_scenario(scenario)
            return SimulatorResponse(
                scenario=scenario, symbol=symbol,
                description=params.description, assumptions=list(params.assumptions)
            )

    # Insights

    async def get_insights(self, symbol: Optional[str] = None, start_date: Optional[str] = None,
                           end_date: Optional[str] = None) -> InsightsResponse:
        symbol = symbol or self.settings.default_stock_symbol
        start, end = self._date_range(start_date, end_date)
        params = {"symbol": symbol, "start_date": start, "end_date": end}
        return await self.cache.get_or_compute(
            "insights", params, lambda: self._build_insights(symbol, start, end)
        )

    async def _build_insights(self, symbol: str, start: str, end: str) -> InsightsResponse:
        logger.info(f"Generating insights for {symbol} {start} to {end}")
        try:
            flares, market = await self.load_records(symbol, start, end)
            insights = generate_insights(merge_datasets(flares, market), symbol)
            logger.info(f"Generated {len(insights)} insights for {symbol}")

            return InsightsResponse(
                symbol=symbol,
                insights=[InsightResponse.model_validate(i) for i in insights],
                summary=InsightsSummary(
                    total_insights=len(insights),
                    high_severity_count=sum(1 for i in insights if i.severity == "high"),
                    avg_confidence=average([i.confidence for i in insights])
                ),
                generated_at=datetime.now(timezone.utc)
            )
        except Exception:
            logger.exception(f"Unexpected error generating insights for {symbol}")
            return InsightsResponse(symbol=symbol, generated_at=datetime.now(timezone.utc))

    # Comparison

    async def get_comparison(self, symbols: Optional[List[str]] = None) -> ComparisonResponse:
        symbols = list(dict.fromkeys(symbols or self.settings.comparison_symbols))
        params = {"symbols": symbols, "today": self.today().isoformat()}
        return await self.cache.get_or_compute(
            "comparison", params, lambda: self._build_comparison(symbols)
        )

    async def _build_comparison(self, symbols: List[str]) -> ComparisonResponse:
        logger.info(f"Comparing symbols: {', '.join(symbols)}")
        try:
            async with self.fetcher_factory() as fetcher:
                raw = await fetcher.fetch_symbols(symbols)

            market_by_symbol: Dict[str, List[MarketRecord]] = {}
            for symbol in symbols:
                quotes = raw.get(symbol)
                if quotes is None:
                    continue
                try:
                    market_by_symbol[symbol] = calculate_volatility(quotes)
                except Exception as e:
                    logger.error(f"Failed to transform stock data for {symbol}: {e}")

            comparisons = [compare_symbol(symbol, market_by_symbol.get(symbol)) for symbol in symbols]
            logger.info(
                f"Comparison ready: {sum(1 for c in comparisons if c.data_points > 0)}"
                f"/{len(symbols)} symbols with data"
            )

            return ComparisonResponse(
                symbols=symbols,
                comparisons=[SymbolComparisonResponse.model_validate(c) for c in comparisons],
                time_series_data=comparison_time_series(market_by_symbol, symbols),
                summary=ComparisonSummary(**comparison_summary(comparisons))
            )
        except Exception:
            logger.exception("Unexpected error building comparison")
            return ComparisonResponse(
                symbols=symbols,
                comparisons=[SymbolComparisonResponse(symbol=s) for s in symbols]
            )

    def refresh(self, namespace: Optional[str] = None) -> int:
        """Invalidate cached payloads so the next request refetches."""
        return self.cache.invalidate(namespace)
