"""
Configuration management for SolarPulse API.
All configuration in one place for better maintainability.
Only sensitive API keys are loaded from environment variables.
"""
from functools import lru_cache
from typing import Dict, List
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

STOCK_PROVIDERS = ("yahoo", "alphavantage", "finnhub")


class Settings(BaseSettings):
    """Application settings with validation and environment variable support."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # API Keys (loaded from environment)
    nasa_api_key: str = "DEMO_KEY"
    alpha_vantage_api_key: str = ""
    finnhub_api_key: str = ""

    # API Endpoints
    nasa_base_url: str = "https://api.nasa.gov/DONKI"
    yahoo_base_url: str = "https://query1.finance.yahoo.com/v8/finance/chart"
    alpha_vantage_base_url: str = "https://www.alphavantage.co/query"
    finnhub_base_url: str = "https://finnhub.io/api/v1"

    # Primary stock provider, the others are tried in order on failure
    stock_api_provider: str = "yahoo"

    # Application Settings
    api_version: str = "v1"
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    log_level: str = "INFO"
    debug: bool = False

    # Data Fetching Configuration
    request_timeout: float = 10.0  # seconds
    max_retries: int = 2
    retry_delay: float = 0.5  # seconds, doubled per attempt
    max_concurrent_requests: int = 10
    lookback_days: int = 30
    stock_range: str = "1mo"

    # Analysis Parameters
    default_stock_symbol: str = "AAPL"
    default_comparison_symbols: str = "AAPL,MSFT,GOOGL"
    correlation_window: int = 5
    forecast_days: int = 7
    simulation_days: int = 14
    forecast_anchor: str = "average"  # "average" or "last"

    # Result cache TTLs (seconds)
    dashboard_cache_ttl: int = 1800
    analysis_cache_ttl: int = 1800
    forecast_cache_ttl: int = 7200
    simulator_cache_ttl: int = 1800
    insights_cache_ttl: int = 1800
    comparison_cache_ttl: int = 1800
    cache_max_size: int = 512

    @field_validator('stock_api_provider')
    @classmethod
    def validate_provider(cls, v):
        v = v.lower()
        if v not in STOCK_PROVIDERS:
            raise ValueError(f'Stock provider must be one of {", ".join(STOCK_PROVIDERS)}')
        return v

    @field_validator('forecast_anchor')
    @classmethod
    def validate_anchor(cls, v):
        if v not in ("average", "last"):
            raise ValueError('Forecast anchor must be "average" or "last"')
        return v

    @field_validator(
        'correlation_window', 'forecast_days', 'simulation_days', 'lookback_days',
        'max_retries', 'cache_max_size'
    )
    @classmethod
    def validate_positive(cls, v):
        if v < 1:
            raise ValueError('Value must be positive')
        return v

    @field_validator(
        'dashboard_cache_ttl', 'analysis_cache_ttl', 'forecast_cache_ttl',
        'simulator_cache_ttl', 'insights_cache_ttl', 'comparison_cache_ttl'
    )
    @classmethod
    def validate_ttl(cls, v):
        if v <= 0:
            raise ValueError('Cache TTL must be positive')
        return v

    @property
    def api_keys(self) -> Dict[str, str]:
        """Get all API keys as dictionary."""
        return {
            "nasa": self.nasa_api_key,
            "alphavantage": self.alpha_vantage_api_key,
            "finnhub": self.finnhub_api_key
        }

    @property
    def api_endpoints(self) -> Dict[str, str]:
        """Get all API endpoints as dictionary."""
        return {
            "nasa": self.nasa_base_url,
            "yahoo": self.yahoo_base_url,
            "alphavantage": self.alpha_vantage_base_url,
            "finnhub": self.finnhub_base_url
        }

    @property
    def provider_priority(self) -> List[str]:
        """Primary stock provider first, then the remaining fallbacks."""
        return [self.stock_api_provider] + [
            p for p in STOCK_PROVIDERS if p != self.stock_api_provider
        ]

    @property
    def comparison_symbols(self) -> List[str]:
        return [s.strip() for s in self.default_comparison_symbols.split(",") if s.strip()]

    @property
    def cache_ttls(self) -> Dict[str, int]:
        """TTL per result namespace."""
        return {
            "dashboard": self.dashboard_cache_ttl,
            "analysis": self.analysis_cache_ttl,
            "forecast": self.forecast_cache_ttl,
            "simulator": self.simulator_cache_ttl,
            "insights": self.insights_cache_ttl,
            "comparison": self.comparison_cache_ttl
        }


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Project paths
BASE_DIR = Path(__file__).parent
LOGS_DIR = BASE_DIR / "logs"

# Ensure directories exist
LOGS_DIR.mkdir(exist_ok=True)
