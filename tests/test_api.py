"""API endpoint tests with the fetch layer stubbed."""
import pytest
from fastapi.testclient import TestClient

from app.cache import ResultCache
from app.main import app
from app.services import AnalyticsService
from tests.factories import TODAY, StubFetcher


@pytest.fixture
def fetcher(flare_events, stock_quotes):
    return StubFetcher(flare_events, stock_quotes, symbols={"AAPL": stock_quotes})


@pytest.fixture
def client(settings, fetcher):
    app.state.service = AnalyticsService(
        settings,
        ResultCache(settings.cache_ttls),
        fetcher_factory=lambda: fetcher,
        today=lambda: TODAY,
        random_source=lambda: 0.5
    )
    return TestClient(app)


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] in ("healthy", "degraded")
        assert set(data["api_keys_configured"]) == {"nasa", "alphavantage", "finnhub"}
        assert data["cache_entries"] == 0


class TestDashboardEndpoint:
    def test_dashboard(self, client):
        response = client.get("/api/v1/dashboard", params={"symbol": "AAPL"})

        assert response.status_code == 200
        data = response.json()
        assert data["symbol"] == "AAPL"
        assert data["start_date"] == "2024-02-14"
        assert len(data["composed_data"]) == 3
        assert data["composed_data"][0] == {
            "date": "2024-01-01", "flare": 2.5, "volatility": 4.0, "trades": 1000.0
        }

    def test_invalid_symbol(self, client, fetcher):
        response = client.get("/api/v1/dashboard", params={"symbol": "aapl"})

        assert response.status_code == 400
        assert fetcher.calls == []

    def test_invalid_date(self, client):
        response = client.get("/api/v1/dashboard", params={"start_date": "01/01/2024"})
        assert response.status_code == 422


class TestAnalysisEndpoint:
    def test_analysis(self, client):
        response = client.get("/api/v1/analysis", params={"window": 2})

        assert response.status_code == 200
        data = response.json()
        assert data["best_lag"] in (0, 1, 2)
        assert len(data["lag_correlations"]) == 3
        assert data["correlation_analysis"]["strength"] in ("strong", "moderate", "weak", "none")

    def test_window_validated(self, client):
        assert client.get("/api/v1/analysis", params={"window": 0}).status_code == 422


class TestForecastEndpoint:
    def test_forecast(self, client):
        response = client.get("/api/v1/forecast", params={"days": 3})

        assert response.status_code == 200
        data = response.json()
        assert data["trend"] == "rising"
        assert [p["date"] for p in data["predictions"]] == ["2024-03-16", "2024-03-17", "2024-03-18"]
        assert len(data["predictions"][0]["confidence_interval"]) == 2

    def test_days_validated(self, client):
        assert client.get("/api/v1/forecast", params={"days": 0}).status_code == 422


class TestSimulatorEndpoint:
    def test_simulation(self, client):
        response = client.get("/api/v1/simulator", params={"scenario": "high_solar", "days": 5})

        assert response.status_code == 200
        data = response.json()
        assert data["scenario"] == "high_solar"
        assert len(data["simulated_data"]) == 5
        assert data["summary"]["risk_level"] in ("low", "medium", "high", "extreme")

    def test_unknown_scenario(self, client):
        response = client.get("/api/v1/simulator", params={"scenario": "solar_storm"})
        assert response.status_code == 422


class TestInsightsEndpoint:
    def test_insights(self, client):
        response = client.get("/api/v1/insights")

        assert response.status_code == 200
        data = response.json()
        assert data["summary"]["total_insights"] == len(data["insights"])


class TestComparisonEndpoint:
    def test_comparison(self, client):
        response = client.get("/api/v1/comparison", params=[("symbols", "AAPL"), ("symbols", "MSFT")])

        assert response.status_code == 200
        data = response.json()
        assert data["symbols"] == ["AAPL", "MSFT"]
        assert data["comparisons"][1]["data_points"] == 0
        assert data["summary"]["highest_price"] == "AAPL"

    def test_invalid_symbol(self, client):
        response = client.get("/api/v1/comparison", params=[("symbols", "AAPL"), ("symbols", "??")])
        assert response.status_code == 400


class TestCacheEndpoints:
    def test_refresh(self, client, fetcher):
        client.get("/api/v1/dashboard")
        client.get("/api/v1/dashboard")
        assert len(fetcher.calls) == 1

        response = client.post("/api/v1/cache/refresh", params={"namespace": "dashboard"})

        assert response.status_code == 200
        assert response.json()["invalidated"] == 1
        client.get("/api/v1/dashboard")
        assert len(fetcher.calls) == 2

    def test_refresh_unknown_namespace(self, client):
        response = client.post("/api/v1/cache/refresh", params={"namespace": "everything"})
        assert response.status_code == 400

    def test_status(self, client):
        client.get("/api/v1/forecast")

        data = client.get("/api/v1/cache/status").json()

        assert data["size"] == 1
        assert data["namespaces"] == {"forecast": 1}
