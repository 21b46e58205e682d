"""
Quote fetcher with support for multiple data sources

Supports:
1. Crypto reference prices - for exchange-prefixed symbols (BINANCE:BTCUSDT)
2. Finnhub (real-time) - Primary if FINNHUB_API_KEY is set
3. yfinance (free, 15-20 min delay) - Fallback

Every function returns None / empty results on failure instead of raising.
"""
import random
import yfinance as yf
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional
import logging
import os

from papertrader.models import CompanyProfile, Quote
from .crypto import (
    CRYPTO_ASSETS,
    CRYPTO_REFERENCE_PRICES,
    PRICE_VARIATION,
    is_crypto_symbol,
    search_crypto,
)
from .finnhub_client import FinnhubClient

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
MAX_SEARCH_RESULTS = 10
MAX_STOCK_RESULTS = 8


def _money(value) -> Decimal:
    return Decimal(str(value))


def _get_finnhub_client() -> Optional[FinnhubClient]:
    """Get Finnhub client if configured"""
    api_key = os.getenv('FINNHUB_API_KEY')
    if not api_key:
        return None
    return FinnhubClient(api_key)


def _crypto_quote(symbol: str) -> Optional[Quote]:
    base = CRYPTO_REFERENCE_PRICES.get(symbol)
    if base is None:
        return None

    # Small random move around the reference price to simulate a market
    variation = (random.random() - 0.5) * PRICE_VARIATION
    base_price = _money(base)
    current = base_price * (1 + _money(variation))
    change = current - base_price

    return Quote(
        symbol=symbol,
        current_price=current.quantize(CENT),
        change=change.quantize(CENT),
        change_percent=(change / base_price * 100).quantize(CENT),
        high=(current * _money("1.01")).quantize(CENT),
        low=(current * _money("0.99")).quantize(CENT),
        open=base_price,
        previous_close=base_price,
        timestamp=datetime.now(),
    )


def _finnhub_quote(client: FinnhubClient, symbol: str) -> Optional[Quote]:
    data = client.get_stock_quote(symbol)
    if not data:
        return None

    return Quote(
        symbol=symbol,
        current_price=_money(data['c']),
        change=_money(data.get('d') or 0),
        change_percent=_money(data.get('dp') or 0),
        high=_money(data.get('h') or 0),
        low=_money(data.get('l') or 0),
        open=_money(data.get('o') or 0),
        previous_close=_money(data.get('pc') or 0),
        timestamp=datetime.fromtimestamp(data['t']) if data.get('t') else datetime.now(),
    )


def _yfinance_quote(symbol: str) -> Optional[Quote]:
    try:
        data = yf.Ticker(symbol).history(period="5d", interval="1d")
    except Exception as e:
        logger.error(f"Error fetching {symbol} quote from yfinance: {e}")
        return None

    if data.empty:
        logger.warning(f"No price data available for {symbol} from yfinance")
        return None

    last = data.iloc[-1]
    current = _money(float(last['Close']))
    previous_close = _money(float(data['Close'].iloc[-2])) if len(data) > 1 else _money(float(last['Open']))
    change = current - previous_close

    return Quote(
        symbol=symbol,
        current_price=current,
        change=change,
        change_percent=change / previous_close * 100 if previous_close else Decimal("0"),
        high=_money(float(last['High'])),
        low=_money(float(last['Low'])),
        open=_money(float(last['Open'])),
        previous_close=previous_close,
        timestamp=datetime.now(),
    )


def get_quote(symbol: str) -> Optional[Quote]:
    """
    Get current quote for a symbol

    Tries crypto reference prices for exchange-prefixed symbols, then Finnhub
    (if configured), then yfinance.

    Returns:
        Quote or None if the symbol is unknown or every source failed
    """
    symbol = symbol.upper()

    if is_crypto_symbol(symbol):
        return _crypto_quote(symbol)

    client = _get_finnhub_client()
    if client:
        try:
            quote = _finnhub_quote(client, symbol)
            if quote:
                return quote
            logger.warning(f"Finnhub has no quote for {symbol}")
            return None
        except Exception as e:
            logger.warning(f"Finnhub failed for {symbol}, falling back to yfinance: {e}")

    return _yfinance_quote(symbol)


def get_company_profile(symbol: str) -> Optional[CompanyProfile]:
    """
    Get company (or crypto asset) profile

    Returns:
        CompanyProfile or None if not found
    """
    symbol = symbol.upper()

    if symbol in CRYPTO_ASSETS:
        name, weburl, _ = CRYPTO_ASSETS[symbol]
        return CompanyProfile(
            symbol=symbol,
            name=name,
            exchange="Binance",
            industry="Cryptocurrency",
            weburl=weburl,
        )

    client = _get_finnhub_client()
    if not client:
        logger.warning("Company profiles require a Finnhub API key")
        return None

    data = client.get_company_profile(symbol)
    if not data:
        return None

    return CompanyProfile(
        symbol=data.get('ticker') or symbol,
        name=data['name'],
        exchange=data.get('exchange') or "",
        industry=data.get('finnhubIndustry') or "",
        logo=data.get('logo') or "",
        weburl=data.get('weburl') or "",
    )


def search_symbols(query: str) -> List[Dict[str, str]]:
    """
    Search symbols by keyword

    Crypto matches come first, followed by up to 8 Finnhub stock results.

    Returns:
        List of {'symbol', 'description'} dicts, at most 10
    """
    if not query:
        return []

    results = search_crypto(query)

    client = _get_finnhub_client()
    if client:
        for item in client.search(query)[:MAX_STOCK_RESULTS]:
            results.append({
                'symbol': item.get('symbol', ''),
                'description': item.get('description', ''),
            })

    return results[:MAX_SEARCH_RESULTS]


def get_data_source() -> str:
    """
    Get current stock data source being used

    Returns:
        'finnhub' or 'yfinance'
    """
    return 'finnhub' if _get_finnhub_client() else 'yfinance'
