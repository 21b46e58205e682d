# Market Data Module
from .price_fetcher import (
    get_quote,
    get_company_profile,
    search_symbols,
    get_data_source
)
from .finnhub_client import FinnhubClient

__all__ = [
    'get_quote',
    'get_company_profile',
    'search_symbols',
    'get_data_source',
    'FinnhubClient'
]
