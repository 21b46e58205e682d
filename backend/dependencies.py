"""
Shared FastAPI dependencies

The engine and its store are built once per process from environment
settings. Tests swap them out through `app.dependency_overrides`.
"""
from functools import lru_cache

from market_data import get_quote
from papertrader.config import Settings
from papertrader.store import create_store
from papertrader.valuation import ValuationEngine


@lru_cache()
def get_settings() -> Settings:
    return Settings.from_env()


@lru_cache()
def get_engine() -> ValuationEngine:
    settings = get_settings()
    return ValuationEngine(
        store=create_store(settings),
        quote_provider=get_quote,
        settings=settings,
    )
