"""
SolarPulse FastAPI application.
Main application with all endpoints and middleware configuration.
"""
import sys
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import uvicorn
from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from app.cache import ResultCache
from app.data_fetcher import validate_stock_symbol
from app.models import ScenarioType
from app.schemas import (
    AnalysisResponse, CacheRefreshResponse, ComparisonResponse, DashboardResponse,
    ForecastResponse, HealthCheckResponse, InsightsResponse, SimulatorResponse
)
from app.services import AnalyticsService
from config import LOGS_DIR, get_settings

settings = get_settings()

CACHE_NAMESPACES = ("dashboard", "analysis", "forecast", "simulator", "insights", "comparison")


def configure_logging() -> None:
    logger.remove()
    logger.add(sys.stderr, level=settings.log_level)
    logger.add(
        LOGS_DIR / "solarpulse.log",
        level=settings.log_level,
        rotation="10 MB",
        retention="7 days"
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    # Startup
    configure_logging()
    cache = ResultCache(settings.cache_ttls, max_size=settings.cache_max_size)
    app.state.service = AnalyticsService(settings, cache)
    logger.info(f"SolarPulse API started (stock provider: {settings.stock_api_provider})")
    yield
    # Shutdown
    logger.info("SolarPulse API stopped")


app = FastAPI(
    title="SolarPulse API",
    description="Correlates solar flare activity with stock market volatility",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_service(request: Request) -> AnalyticsService:
    return request.app.state.service


def check_symbol(symbol: Optional[str]) -> Optional[str]:
    """Validate an optional ticker; invalid tickers are a client error."""
    if symbol is None:
        return None
    valid, error = validate_stock_symbol(symbol)
    if not valid:
        raise HTTPException(status_code=400, detail=f"Invalid symbol {symbol!r}: {error}")
    return symbol.strip()


# Health Check Endpoints
@app.get("/health", response_model=HealthCheckResponse)
async def health_check(request: Request):
    """Application health check."""
    api_keys_configured = {name: bool(key) for name, key in settings.api_keys.items()}

    return HealthCheckResponse(
        status="healthy" if api_keys_configured["nasa"] else "degraded",
        timestamp=datetime.now(timezone.utc),
        api_keys_configured=api_keys_configured,
        stock_provider=settings.stock_api_provider,
        cache_entries=len(get_service(request).cache)
    )


# Dashboard Endpoints
@app.get("/api/v1/dashboard", response_model=DashboardResponse)
async def get_dashboard(
    request: Request,
    symbol: Optional[str] = None,
    start_date: Optional[str] = Query(None, pattern=r"^\d{4}-\d{2}-\d{2}$"),
    end_date: Optional[str] = Query(None, pattern=r"^\d{4}-\d{2}-\d{2}$")
):
    """Composed flare/volatility series with summary statistics."""
    return await get_service(request).get_dashboard(check_symbol(symbol), start_date, end_date)


@app.get("/api/v1/analysis", response_model=AnalysisResponse)
async def get_analysis(
    request: Request,
    symbol: Optional[str] = None,
    start_date: Optional[str] = Query(None, pattern=r"^\d{4}-\d{2}-\d{2}$"),
    end_date: Optional[str] = Query(None, pattern=r"^\d{4}-\d{2}-\d{2}$"),
    window: Optional[int] = Query(None, ge=1, le=30)
):
    """Detailed correlation, lag and volatility analysis."""
    return await get_service(request).get_analysis(check_symbol(symbol), start_date, end_date, window)


@app.get("/api/v1/forecast", response_model=ForecastResponse)
async def get_forecast(
    request: Request,
    days: Optional[int] = Query(None, ge=1, le=30),
    symbol: Optional[str] = None
):
    """Trend-based flare and volatility forecast."""
    return await get_service(request).get_forecast(days, check_symbol(symbol))


@app.get("/api/v1/simulator", response_model=SimulatorResponse)
async def get_simulation(
    request: Request,
    scenario: ScenarioType = ScenarioType.BASELINE,
    symbol: Optional[str] = None,
    days: Optional[int] = Query(None, ge=1, le=60)
):
    """What-if simulation under a named solar scenario."""
    return await get_service(request).get_simulation(scenario, check_symbol(symbol), days)


@app.get("/api/v1/insights", response_model=InsightsResponse)
async def get_insights(
    request: Request,
    symbol: Optional[str] = None,
    start_date: Optional[str] = Query(None, pattern=r"^\d{4}-\d{2}-\d{2}$"),
    end_date: Optional[str] = Query(None, pattern=r"^\d{4}-\d{2}-\d{2}$")
):
    """Rule-based insights over the composed series."""
    return await get_service(request).get_insights(check_symbol(symbol), start_date, end_date)


@app.get("/api/v1/comparison", response_model=ComparisonResponse)
async def get_comparison(
    request: Request,
    symbols: Optional[List[str]] = Query(None)
):
    """Volatility and price comparison across several symbols."""
    if symbols:
        symbols = [check_symbol(s) for s in symbols]
    return await get_service(request).get_comparison(symbols)


# Cache Endpoints
@app.post("/api/v1/cache/refresh", response_model=CacheRefreshResponse)
async def refresh_cache(request: Request, namespace: Optional[str] = None):
    """Drop cached results so the next request refetches upstream data."""
    if namespace is not None and namespace not in CACHE_NAMESPACES:
        raise HTTPException(status_code=400, detail=f"Unknown cache namespace: {namespace}")

    invalidated = get_service(request).refresh(namespace)
    return CacheRefreshResponse(
        message="Cache refreshed",
        namespace=namespace,
        invalidated=invalidated
    )


@app.get("/api/v1/cache/status")
async def cache_status(request: Request) -> Dict[str, Any]:
    """Cache size, per-namespace counts and hit statistics."""
    return get_service(request).cache.status()


if __name__ == "__main__":
    uvicorn.run(
        "app.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
        log_level=settings.log_level.lower()
    )
