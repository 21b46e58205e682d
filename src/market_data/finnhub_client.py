"""
Finnhub API Client

Real-time stock quotes, company profiles and symbol search from finnhub.io.
"""
import requests
from typing import Optional, Dict, List
import logging
import os

logger = logging.getLogger(__name__)

# API Configuration
BASE_URL = "https://finnhub.io/api/v1"
REQUEST_TIMEOUT = 10  # seconds


class FinnhubClient:
    """Client for the Finnhub REST API"""

    def __init__(self, api_key: Optional[str] = None):
        """
        Initialize Finnhub client

        Args:
            api_key: API key from the Finnhub dashboard
                     If None, will try to read from FINNHUB_API_KEY env var
        """
        self.api_key = api_key or os.getenv('FINNHUB_API_KEY')
        if not self.api_key:
            logger.warning("No Finnhub API key provided. Set FINNHUB_API_KEY environment variable.")

    def _make_request(self, endpoint: str, params: Optional[Dict] = None) -> Dict:
        """
        Make API request

        Args:
            endpoint: API endpoint (e.g., '/quote')
            params: Query parameters (the token is added here)

        Returns:
            JSON response as dictionary, empty on any request failure
        """
        url = f"{BASE_URL}{endpoint}"
        query = dict(params or {})
        query['token'] = self.api_key or ''

        try:
            response = requests.get(url, params=query, timeout=REQUEST_TIMEOUT)
            response.raise_for_status()
            return response.json() or {}
        except requests.exceptions.RequestException as e:
            logger.error(f"Finnhub API request failed: {e}")
            return {}
        except ValueError as e:
            logger.error(f"Finnhub API returned invalid JSON: {e}")
            return {}

    def get_stock_quote(self, symbol: str) -> Optional[Dict]:
        """
        Get real-time stock quote

        Args:
            symbol: Stock symbol (e.g., 'AAPL')

        Returns:
            Raw Finnhub quote or None when the symbol is unknown:
            {
                'c': 150.25,   # current price
                'd': 1.25,     # change
                'dp': 0.84,    # percent change
                'h': 151.0,    # high of the day
                'l': 148.9,    # low of the day
                'o': 149.0,    # open
                'pc': 149.0,   # previous close
                't': 1700000000
            }
        """
        data = self._make_request("/quote", {'symbol': symbol})

        # Finnhub answers unknown symbols with all-zero fields
        if not data or not data.get('c'):
            return None
        return data

    def get_company_profile(self, symbol: str) -> Optional[Dict]:
        data = self._make_request("/stock/profile2", {'symbol': symbol})
        if not data or not data.get('name'):
            return None
        return data

    def search(self, query: str) -> List[Dict]:
        data = self._make_request("/search", {'q': query})
        return data.get('result') or []
