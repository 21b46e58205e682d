"""
Crypto reference data for paper trading

Crypto symbols carry an exchange prefix (BINANCE:BTCUSDT). They are priced
from fixed reference prices rather than a live feed.
"""

CRYPTO_REFERENCE_PRICES = {
    "BINANCE:BTCUSDT": 105000,
    "BINANCE:ETHUSDT": 3300,
    "BINANCE:SOLUSDT": 250,
    "BINANCE:BNBUSDT": 700,
    "BINANCE:XRPUSDT": 3.2,
    "BINANCE:ADAUSDT": 1.05,
    "BINANCE:DOGEUSDT": 0.38,
    "BINANCE:DOTUSDT": 7.5,
    "BINANCE:MATICUSDT": 0.5,
    "BINANCE:LTCUSDT": 130,
}

# symbol -> (name, website, search keywords)
CRYPTO_ASSETS = {
    "BINANCE:BTCUSDT": ("Bitcoin", "https://bitcoin.org", ["bitcoin", "btc"]),
    "BINANCE:ETHUSDT": ("Ethereum", "https://ethereum.org", ["ethereum", "eth"]),
    "BINANCE:SOLUSDT": ("Solana", "https://solana.com", ["solana", "sol"]),
    "BINANCE:BNBUSDT": ("Binance Coin", "https://www.binance.com", ["binance", "bnb"]),
    "BINANCE:XRPUSDT": ("Ripple", "https://ripple.com", ["ripple", "xrp"]),
    "BINANCE:ADAUSDT": ("Cardano", "https://cardano.org", ["cardano", "ada"]),
    "BINANCE:DOGEUSDT": ("Dogecoin", "https://dogecoin.com", ["dogecoin", "doge"]),
    "BINANCE:DOTUSDT": ("Polkadot", "https://polkadot.network", ["polkadot", "dot"]),
    "BINANCE:MATICUSDT": ("Polygon", "https://polygon.technology", ["polygon", "matic"]),
    "BINANCE:LTCUSDT": ("Litecoin", "https://litecoin.org", ["litecoin", "ltc"]),
}

PRICE_VARIATION = 0.04  # total width of the simulated move, i.e. +/- 2%


def is_crypto_symbol(symbol: str) -> bool:
    return ":" in symbol


def search_crypto(query: str):
    """Crypto symbols whose symbol, description or keywords contain `query`."""
    query = query.lower()
    matches = []
    for symbol, (name, _, keywords) in CRYPTO_ASSETS.items():
        description = f"{name} / US Dollar"
        if (
            any(query in keyword for keyword in keywords + ["crypto"])
            or query in symbol.lower()
            or query in description.lower()
        ):
            matches.append({'symbol': symbol, 'description': description})
    return matches
