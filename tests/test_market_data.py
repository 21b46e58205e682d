"""
Tests for the quote provider adapter. No network: requests and yfinance are
patched.
"""
import pytest
import pandas as pd
import requests
from decimal import Decimal
from unittest.mock import MagicMock, patch

from market_data import FinnhubClient, get_company_profile, get_data_source, get_quote, search_symbols
from market_data.crypto import CRYPTO_REFERENCE_PRICES, search_crypto


def _response(payload):
    response = MagicMock()
    response.json.return_value = payload
    response.raise_for_status.return_value = None
    return response


@pytest.fixture
def no_finnhub(monkeypatch):
    monkeypatch.delenv("FINNHUB_API_KEY", raising=False)


@pytest.fixture
def finnhub(monkeypatch):
    monkeypatch.setenv("FINNHUB_API_KEY", "test-key")


class TestFinnhubClient:
    @patch("market_data.finnhub_client.requests.get")
    def test_quote(self, mock_get):
        mock_get.return_value = _response({'c': 150.25, 'd': 1.25, 'dp': 0.84, 'pc': 149.0, 't': 1700000000})

        data = FinnhubClient("key").get_stock_quote("AAPL")

        assert data['c'] == 150.25
        _, kwargs = mock_get.call_args
        assert kwargs['params'] == {'symbol': "AAPL", 'token': "key"}

    @patch("market_data.finnhub_client.requests.get")
    def test_unknown_symbol_is_none(self, mock_get):
        mock_get.return_value = _response({'c': 0, 'd': None, 'dp': None})
        assert FinnhubClient("key").get_stock_quote("ZZZZ") is None

    @patch("market_data.finnhub_client.requests.get")
    def test_request_failure_is_empty(self, mock_get):
        mock_get.side_effect = requests.exceptions.ConnectionError("down")
        client = FinnhubClient("key")
        assert client.get_stock_quote("AAPL") is None
        assert client.search("apple") == []


class TestGetQuote:
    def test_crypto_reference_price(self, no_finnhub):
        quote = get_quote("binance:btcusdt")

        base = Decimal(str(CRYPTO_REFERENCE_PRICES["BINANCE:BTCUSDT"]))
        assert quote.symbol == "BINANCE:BTCUSDT"
        assert base * Decimal("0.97") <= quote.current_price <= base * Decimal("1.03")
        assert quote.previous_close == base

    def test_unknown_crypto(self, no_finnhub):
        assert get_quote("BINANCE:NOPEUSDT") is None

    @patch("market_data.finnhub_client.requests.get")
    def test_finnhub_quote(self, mock_get, finnhub):
        mock_get.return_value = _response({
            'c': 150.25, 'd': 1.25, 'dp': 0.84, 'h': 151, 'l': 148.9, 'o': 149, 'pc': 149, 't': 1700000000,
        })

        quote = get_quote("aapl")

        assert quote.symbol == "AAPL"
        assert quote.current_price == Decimal("150.25")
        assert quote.change_percent == Decimal("0.84")

    @patch("market_data.price_fetcher.yf.Ticker")
    def test_yfinance_fallback(self, mock_ticker, no_finnhub):
        mock_ticker.return_value.history.return_value = pd.DataFrame({
            'Open': [98.0, 101.0],
            'High': [101.0, 106.0],
            'Low': [97.0, 100.0],
            'Close': [100.0, 105.0],
        })

        quote = get_quote("AAPL")

        mock_ticker.assert_called_with("AAPL")
        assert quote.current_price == Decimal("105.0")
        assert quote.previous_close == Decimal("100.0")
        assert quote.change == Decimal("5.0")
        assert quote.change_percent == Decimal("5")

    @patch("market_data.price_fetcher.yf.Ticker")
    def test_yfinance_no_data(self, mock_ticker, no_finnhub):
        mock_ticker.return_value.history.return_value = pd.DataFrame()
        assert get_quote("ZZZZ") is None

    @patch("market_data.price_fetcher.yf.Ticker")
    def test_yfinance_error(self, mock_ticker, no_finnhub):
        mock_ticker.return_value.history.side_effect = RuntimeError("rate limited")
        assert get_quote("AAPL") is None


class TestProfilesAndSearch:
    def test_crypto_profile(self, no_finnhub):
        profile = get_company_profile("BINANCE:ETHUSDT")
        assert profile.name == "Ethereum"
        assert profile.industry == "Cryptocurrency"

    def test_stock_profile_needs_finnhub(self, no_finnhub):
        assert get_company_profile("AAPL") is None

    @patch("market_data.finnhub_client.requests.get")
    def test_stock_profile(self, mock_get, finnhub):
        mock_get.return_value = _response({
            'ticker': "AAPL", 'name': "Apple Inc", 'exchange': "NASDAQ", 'finnhubIndustry': "Technology",
        })

        profile = get_company_profile("AAPL")
        assert profile.name == "Apple Inc"
        assert profile.logo == ""

    def test_crypto_search(self):
        results = search_crypto("bitcoin")
        assert results == [{'symbol': "BINANCE:BTCUSDT", 'description': "Bitcoin / US Dollar"}]

    @patch("market_data.finnhub_client.requests.get")
    def test_search_caps_results(self, mock_get, finnhub):
        mock_get.return_value = _response({
            'result': [{'symbol': f"S{i}", 'description': f"Stock {i}"} for i in range(20)],
        })

        results = search_symbols("crypto")

        # every crypto asset matches "crypto", so stock results are cut off
        assert len(results) == 10
        assert results[0]['symbol'].startswith("BINANCE:")

    @patch("market_data.finnhub_client.requests.get")
    def test_search_stock_results_limited(self, mock_get, finnhub):
        mock_get.return_value = _response({
            'result': [{'symbol': f"S{i}", 'description': f"Stock {i}"} for i in range(20)],
        })
        assert len(search_symbols("zzz")) == 8

    def test_empty_query(self):
        assert search_symbols("") == []

    def test_data_source(self, monkeypatch):
        monkeypatch.delenv("FINNHUB_API_KEY", raising=False)
        assert get_data_source() == "yfinance"
        monkeypatch.setenv("FINNHUB_API_KEY", "key")
        assert get_data_source() == "finnhub"
