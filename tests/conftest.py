"""
Shared fixtures: both ledger store backends, a controllable clock and a
canned quote provider.
"""
import pytest
from datetime import datetime, timedelta
from decimal import Decimal

from papertrader.config import Settings
from papertrader.db import Database
from papertrader.memory_store import InMemoryStore
from papertrader.models import Quote
from papertrader.valuation import ValuationEngine


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start=datetime(2024, 1, 2, 9, 30)):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now = self.now + timedelta(seconds=seconds)


class FakeQuotes:
    """Quote provider backed by a dict; unknown symbols return None."""

    def __init__(self, prices=None):
        self.prices = dict(prices or {})
        self.calls = []

    def __call__(self, symbol):
        self.calls.append(symbol)
        price = self.prices.get(symbol)
        if price is None:
            return None
        return Quote(symbol=symbol, current_price=Decimal(str(price)), timestamp=datetime(2024, 1, 2))


@pytest.fixture(params=["sqlite", "memory"])
def store(request):
    """Each store-level test runs against both backends."""
    if request.param == "sqlite":
        backend = Database(":memory:")
    else:
        backend = InMemoryStore()
    yield backend
    backend.close()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def quotes():
    return FakeQuotes()


@pytest.fixture
def engine(store, quotes, clock):
    return ValuationEngine(store, quote_provider=quotes, settings=Settings(), clock=clock)


@pytest.fixture
def account(engine):
    return engine.create_account("alice", "salt$hash")
