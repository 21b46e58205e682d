# Paper trading ledger and valuation
from .config import Settings
from .errors import (
    TradingError,
    InvalidInput,
    InsufficientFunds,
    InsufficientShares,
    AccountNotFound,
    QuoteUnavailable,
)
from .store import LedgerStore, create_store
from .db import Database
from .memory_store import InMemoryStore
from .valuation import ValuationEngine

__all__ = [
    'Settings',
    'TradingError',
    'InvalidInput',
    'InsufficientFunds',
    'InsufficientShares',
    'AccountNotFound',
    'QuoteUnavailable',
    'LedgerStore',
    'create_store',
    'Database',
    'InMemoryStore',
    'ValuationEngine',
]
