"""
Ledger store interface

Both `Database` (SQLite) and `InMemoryStore` satisfy `LedgerStore`; which
one backs the application is decided once at startup from settings.
"""
from contextlib import AbstractContextManager
from decimal import Decimal
from typing import List, Optional, Protocol
import logging

from .config import STORAGE_MEMORY, Settings
from .db import Database
from .memory_store import InMemoryStore
from .models import (
    Account,
    FeedItem,
    OptionPosition,
    OptionTrade,
    PortfolioHistoryPoint,
    Position,
    Trade,
    WatchlistItem,
)

logger = logging.getLogger(__name__)


class LedgerStore(Protocol):
    def transaction(self) -> AbstractContextManager: ...

    def create_account(self, account: Account) -> Account: ...
    def get_account(self, account_id: int) -> Optional[Account]: ...
    def get_account_by_username(self, username: str) -> Optional[Account]: ...
    def list_accounts(self) -> List[Account]: ...
    def get_cash(self, account_id: int) -> Decimal: ...
    def set_cash(self, account_id: int, cash: Decimal) -> None: ...

    def get_positions(self, account_id: int) -> List[Position]: ...
    def get_position(self, account_id: int, symbol: str) -> Optional[Position]: ...
    def upsert_position(
        self, account_id: int, symbol: str, quantity: int, average_price: Decimal, current_price: Decimal
    ) -> Position: ...
    def update_position_price(self, account_id: int, symbol: str, current_price: Decimal) -> None: ...
    def delete_position(self, account_id: int, symbol: str) -> None: ...

    def get_option_positions(self, account_id: int) -> List[OptionPosition]: ...
    def get_option_position(self, account_id: int, option_id: int) -> Optional[OptionPosition]: ...
    def add_option_position(self, option: OptionPosition) -> OptionPosition: ...
    def update_option_premium(
        self, account_id: int, option_id: int, current_premium: Decimal
    ) -> Optional[OptionPosition]: ...
    def delete_option_position(self, account_id: int, option_id: int) -> None: ...

    def insert_trade(self, trade: Trade) -> Trade: ...
    def list_trades(self, account_id: int) -> List[Trade]: ...
    def count_trades(self, account_id: int) -> int: ...
    def list_recent_trades(self, limit: int = 50) -> List[FeedItem]: ...
    def insert_option_trade(self, trade: OptionTrade) -> OptionTrade: ...
    def list_option_trades(self, account_id: int) -> List[OptionTrade]: ...

    def get_watchlist(self, account_id: int) -> List[WatchlistItem]: ...
    def add_to_watchlist(self, item: WatchlistItem) -> WatchlistItem: ...
    def remove_from_watchlist(self, account_id: int, symbol: str) -> None: ...

    def get_latest_history_point(self, account_id: int) -> Optional[PortfolioHistoryPoint]: ...
    def append_history_point(self, point: PortfolioHistoryPoint) -> PortfolioHistoryPoint: ...
    def overwrite_history_point(self, account_id: int, point_id: int, value: Decimal) -> None: ...
    def trim_history(self, account_id: int, max_points: int) -> None: ...
    def list_history(self, account_id: int) -> List[PortfolioHistoryPoint]: ...

    def get_config(self, key: str, default: str = None) -> str: ...
    def set_config(self, key: str, value: str) -> None: ...
    def close(self) -> None: ...


def create_store(settings: Settings) -> LedgerStore:
    """Build the storage backend selected by `settings.storage`."""
    if settings.storage == STORAGE_MEMORY:
        logger.info("Using in-memory ledger store")
        return InMemoryStore()

    logger.info(f"Using SQLite ledger store at {settings.db_path}")
    return Database(settings.db_path)
