from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import List

class Settings(BaseSettings):
    PROJECT_NAME: str = "Signal Backtest API"
    VERSION: str = "1.0.0"
    API_V1_STR: str = "/api/v1"

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./signal_backtest.db"

    # App
    API_PORT: int = 8000
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "console" # console, json
    CORS_ORIGINS: List[str] = ["http://localhost", "http://localhost:3000"]

    # Market data
    PRICE_SOURCE: str = "database" # database, yahoo
    YAHOO_TICKER_SUFFIX: str = ""

    # Backtest Defaults
    DEFAULT_HOLDING_PERIOD_DAYS: int = 5
    DEFAULT_RECENT_TAKE: int = 20
    DEFAULT_DASHBOARD_RECENT: int = 10
    EQUITY_CURVE_BASE: float = 100.0

    class Config:
        env_file = ".env"
        case_sensitive = True

@lru_cache()
def get_settings():
    return Settings()
