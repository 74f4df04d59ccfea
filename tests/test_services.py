"""Tests for the orchestration service with the fetch layer stubbed."""
import pytest

from app.cache import ResultCache
from app.models import RiskLevel, ScenarioType, Trend
from app.services import AnalyticsService
from tests.factories import TODAY, StubFetcher


@pytest.fixture
def stub(flare_events, stock_quotes):
    return StubFetcher(flare_events, stock_quotes)


def make_service(settings, fetcher):
    return AnalyticsService(
        settings,
        ResultCache(settings.cache_ttls),
        fetcher_factory=lambda: fetcher,
        today=lambda: TODAY,
        random_source=lambda: 0.5
    )


@pytest.fixture
def service(settings, stub):
    return make_service(settings, stub)


class TestDashboard:
    @pytest.mark.asyncio
    async def test_builds_dashboard(self, service, stub):
        response = await service.get_dashboard()

        assert stub.calls == [("2024-02-14", "2024-03-15", "AAPL")]
        assert response.symbol == "AAPL"
        assert [p.date for p in response.composed_data] == ["2024-01-01", "2024-01-02", "2024-01-03"]
        assert response.stats.max_flare == pytest.approx(10.0)
        assert response.stats.total_trades == 3100
        assert {row.range: row.count for row in response.distribution_data} == {
            "Low": 1, "Medium": 1, "High": 0, "Extreme": 1
        }
        assert response.heatmap_data[0].intensity == pytest.approx(2.5 * 4.0)
        assert len(response.correlation_data) == 3

    @pytest.mark.asyncio
    async def test_cached_until_refresh(self, service, stub):
        await service.get_dashboard("AAPL", "2024-01-01", "2024-01-31")
        await service.get_dashboard("AAPL", "2024-01-01", "2024-01-31")
        assert len(stub.calls) == 1

        assert service.refresh("dashboard") == 1
        await service.get_dashboard("AAPL", "2024-01-01", "2024-01-31")
        assert len(stub.calls) == 2

    @pytest.mark.asyncio
    async def test_failure_degrades_to_empty_payload(self, settings):
        service = make_service(settings, StubFetcher(error=RuntimeError("boom")))

        response = await service.get_dashboard("MSFT")

        assert response.symbol == "MSFT"
        assert response.composed_data == []
        assert [row.count for row in response.distribution_data] == [0, 0, 0, 0]
        assert response.stats.correlation == 0

    @pytest.mark.asyncio
    async def test_one_source_empty(self, settings, stock_quotes):
        service = make_service(settings, StubFetcher([], stock_quotes))

        response = await service.get_dashboard()

        assert response.composed_data == []
        assert response.stats.avg_volatility == 0


class TestAnalysis:
    @pytest.mark.asyncio
    async def test_builds_analysis(self, service):
        response = await service.get_analysis(window=2)

        assert response.summary.total_flare_events == 3
        assert response.summary.total_trading_days == 3
        assert response.flare_analysis.by_class == {"M": 1, "X": 1, "C": 1}
        assert response.flare_analysis.most_active_day.date == "2024-01-02"
        assert response.volatility_analysis.most_volatile_day.volatility == pytest.approx(10.0)
        assert response.volatility_analysis.avg_daily_change == pytest.approx(5.0)
        assert [p.label for p in response.lag_correlations] == ["0 days", "1 day", "2 days"]
        assert len(response.rolling_correlations) == 2
        assert set(response.window_correlations) == {"overall", "5d", "7d", "10d"}
        assert response.window_correlations["5d"] == 0
        assert len(response.time_series_data) == 3

    @pytest.mark.asyncio
    async def test_failure(self, settings):
        service = make_service(settings, StubFetcher(error=RuntimeError("boom")))
        response = await service.get_analysis("AAPL")

        assert response.summary.total_flare_events == 0
        assert response.flare_analysis.most_active_day is None


class TestForecast:
    @pytest.mark.asyncio
    async def test_average_anchor(self, service):
        response = await service.get_forecast()

        assert response.forecast_days == 7
        assert response.trend == Trend.RISING
        assert len(response.predictions) == 7
        assert response.predictions[0].date == "2024-03-16"
        assert response.predictions[0].predicted_flare == pytest.approx(13.0 / 3 * 1.05)
        assert response.confidence == pytest.approx(0.65)

    @pytest.mark.asyncio
    async def test_last_anchor(self, settings, stub):
        settings = settings.model_copy(update={"forecast_anchor": "last"})
        service = make_service(settings, stub)

        response = await service.get_forecast(days=3)

        assert response.predictions[0].predicted_flare == pytest.approx(0.5 * 1.05)

    @pytest.mark.asyncio
    async def test_no_data_is_stable(self, settings):
        response = await make_service(settings, StubFetcher()).get_forecast(days=2)

        assert response.trend == Trend.STABLE
        assert all(p.predicted_flare == 0 for p in response.predictions)


class TestSimulation:
    @pytest.mark.asyncio
    async def test_baseline_from_history(self, service):
        response = await service.get_simulation(ScenarioType.BASELINE)

        assert response.scenario == ScenarioType.BASELINE
        assert len(response.simulated_data) == 14
        assert response.simulated_data[0].flare == pytest.approx(13.0 / 3)
        assert response.simulated_data[0].volume == 1033
        assert response.assumptions

    @pytest.mark.asyncio
    async def test_defaults_without_history(self, settings):
        service = make_service(settings, StubFetcher())

        response = await service.get_simulation("extreme_event", days=3)

        assert response.simulated_data[0].flare == pytest.approx(5.0)
        assert response.simulated_data[0].volatility == pytest.approx(6.0)
        assert response.simulated_data[0].volume == 2_000_000
        assert response.summary.risk_level == RiskLevel.HIGH


class TestInsights:
    @pytest.mark.asyncio
    async def test_summary_matches_insights(self, service):
        response = await service.get_insights()

        assert response.summary.total_insights == len(response.insights)
        assert response.summary.high_severity_count == sum(
            1 for i in response.insights if i.severity == "high"
        )
        assert response.generated_at is not None


class TestComparison:
    @pytest.mark.asyncio
    async def test_deduplicates_and_keeps_failed_symbols(self, settings, stock_quotes):
        fetcher = StubFetcher(symbols={"AAPL": stock_quotes, "MSFT": None})
        service = make_service(settings, fetcher)

        response = await service.get_comparison(["AAPL", "MSFT", "AAPL"])

        assert fetcher.calls == [("AAPL", "MSFT")]
        assert response.symbols == ["AAPL", "MSFT"]
        assert response.comparisons[0].data_points == 3
        assert response.comparisons[1].data_points == 0
        assert response.summary.most_volatile == "AAPL"
        assert [row["MSFT"] for row in response.time_series_data] == [0.0, 0.0, 0.0]

    @pytest.mark.asyncio
    async def test_default_symbols(self, settings):
        fetcher = StubFetcher()
        await make_service(settings, fetcher).get_comparison()

        assert fetcher.calls == [("AAPL", "MSFT", "GOOGL")]
