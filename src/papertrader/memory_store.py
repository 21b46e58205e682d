"""
In-memory ledger store

Same interface as the SQLite `Database`; useful for tests and throwaway
demo servers. State lives on the instance, so separate stores never share
accounts.
"""
import itertools
import logging
import threading
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from .errors import AccountNotFound
from .history import trim
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


class InMemoryStore:
    def __init__(self):
        self._lock = threading.RLock()
        self._ids = itertools.count(1)
        self._state = {
            'accounts': {},          # id -> Account
            'positions': {},         # (account_id, symbol) -> Position
            'option_positions': {},  # id -> OptionPosition
            'trades': [],
            'option_trades': [],
            'watchlist': {},         # (account_id, symbol) -> WatchlistItem
            'history': {},           # account_id -> [PortfolioHistoryPoint]
            'config': {},
        }
        self._journal = None

    def _next_id(self) -> int:
        return next(self._ids)

    def _record(self, undo) -> None:
        """Remember how to reverse a mutation made inside a transaction."""
        if self._journal is not None:
            self._journal.append(undo)

    def _restore(self, table: str, key, value) -> None:
        if value is None:
            self._state[table].pop(key, None)
        else:
            self._state[table][key] = value

    @contextmanager
    def transaction(self):
        """Hold the store lock and undo the block's mutations if it raises.

        Nested calls join the outer transaction.
        """
        with self._lock:
            if self._journal is not None:
                yield self
                return

            self._journal = []
            try:
                yield self
            except BaseException as e:
                for undo in reversed(self._journal):
                    undo()
                logger.warning(f"Rolled back {len(self._journal)} in-memory change(s): {e!r}")
                raise
            finally:
                self._journal = None

    # Accounts

    def create_account(self, account: Account) -> Account:
        with self._lock:
            if self.get_account_by_username(account.username) is not None:
                raise ValueError(f"Username {account.username!r} already exists")
            account = account.model_copy()
            account.id = self._next_id()
            self._state['accounts'][account.id] = account
            self._record(lambda: self._state['accounts'].pop(account.id, None))
            return account.model_copy()

    def get_account(self, account_id: int) -> Optional[Account]:
        with self._lock:
            account = self._state['accounts'].get(account_id)
            return account.model_copy() if account else None

    def get_account_by_username(self, username: str) -> Optional[Account]:
        with self._lock:
            for account in self._state['accounts'].values():
                if account.username == username:
                    return account.model_copy()
            return None

    def list_accounts(self) -> List[Account]:
        with self._lock:
            return [a.model_copy() for _, a in sorted(self._state['accounts'].items())]

    def _account(self, account_id: int) -> Account:
        account = self._state['accounts'].get(account_id)
        if account is None:
            raise AccountNotFound(account_id)
        return account

    def get_cash(self, account_id: int) -> Decimal:
        with self._lock:
            return self._account(account_id).cash

    def set_cash(self, account_id: int, cash: Decimal) -> None:
        with self._lock:
            account = self._account(account_id)
            previous = account.cash
            account.cash = cash
            self._record(lambda: setattr(account, 'cash', previous))

    # Stock positions

    def get_positions(self, account_id: int) -> List[Position]:
        with self._lock:
            found = [p for (owner, _), p in self._state['positions'].items() if owner == account_id]
            return [p.model_copy() for p in sorted(found, key=lambda p: p.symbol)]

    def get_position(self, account_id: int, symbol: str) -> Optional[Position]:
        with self._lock:
            position = self._state['positions'].get((account_id, symbol))
            return position.model_copy() if position else None

    def upsert_position(
        self,
        account_id: int,
        symbol: str,
        quantity: int,
        average_price: Decimal,
        current_price: Decimal,
    ) -> Position:
        if quantity <= 0:
            raise ValueError("Position quantity must be positive")
        with self._lock:
            key = (account_id, symbol)
            existing = self._state['positions'].get(key)
            position = Position(
                id=existing.id if existing else self._next_id(),
                account_id=account_id,
                symbol=symbol,
                quantity=quantity,
                average_price=average_price,
                current_price=current_price,
            )
            self._state['positions'][key] = position
            self._record(lambda: self._restore('positions', key, existing))
            return position.model_copy()

    def update_position_price(self, account_id: int, symbol: str, current_price: Decimal) -> None:
        with self._lock:
            position = self._state['positions'].get((account_id, symbol))
            if position is not None:
                previous = position.current_price
                position.current_price = current_price
                self._record(lambda: setattr(position, 'current_price', previous))

    def delete_position(self, account_id: int, symbol: str) -> None:
        with self._lock:
            key = (account_id, symbol)
            removed = self._state['positions'].pop(key, None)
            if removed is not None:
                self._record(lambda: self._restore('positions', key, removed))

    # Option positions

    def get_option_positions(self, account_id: int) -> List[OptionPosition]:
        with self._lock:
            return [
                o.model_copy()
                for _, o in sorted(self._state['option_positions'].items())
                if o.account_id == account_id
            ]

    def get_option_position(self, account_id: int, option_id: int) -> Optional[OptionPosition]:
        with self._lock:
            option = self._state['option_positions'].get(option_id)
            if option is None or option.account_id != account_id:
                return None
            return option.model_copy()

    def add_option_position(self, option: OptionPosition) -> OptionPosition:
        with self._lock:
            option = option.model_copy()
            option.id = self._next_id()
            self._state['option_positions'][option.id] = option
            self._record(lambda: self._state['option_positions'].pop(option.id, None))
            return option.model_copy()

    def update_option_premium(
        self, account_id: int, option_id: int, current_premium: Decimal
    ) -> Optional[OptionPosition]:
        with self._lock:
            option = self._state['option_positions'].get(option_id)
            if option is None or option.account_id != account_id:
                return None
            previous = option.current_premium
            option.current_premium = current_premium
            self._record(lambda: setattr(option, 'current_premium', previous))
            return option.model_copy()

    def delete_option_position(self, account_id: int, option_id: int) -> None:
        with self._lock:
            option = self._state['option_positions'].get(option_id)
            if option is not None and option.account_id == account_id:
                del self._state['option_positions'][option_id]
                self._record(lambda: self._restore('option_positions', option_id, option))

    # Trade ledgers (append-only)

    @staticmethod
    def _newest_first(records):
        return sorted(records, key=lambda r: (r.timestamp, r.id), reverse=True)

    def insert_trade(self, trade: Trade) -> Trade:
        with self._lock:
            trade = trade.model_copy()
            trade.id = self._next_id()
            self._state['trades'].append(trade)
            self._record(lambda: self._state['trades'].remove(trade))
            return trade.model_copy()

    def list_trades(self, account_id: int) -> List[Trade]:
        with self._lock:
            mine = [t for t in self._state['trades'] if t.account_id == account_id]
            return [t.model_copy() for t in self._newest_first(mine)]

    def count_trades(self, account_id: int) -> int:
        with self._lock:
            return sum(1 for t in self._state['trades'] if t.account_id == account_id)

    def list_recent_trades(self, limit: int = 50) -> List[FeedItem]:
        with self._lock:
            recent = self._newest_first(self._state['trades'])[:limit]
            return [
                FeedItem(**t.model_dump(), username=self._state['accounts'][t.account_id].username)
                for t in recent
            ]

    def insert_option_trade(self, trade: OptionTrade) -> OptionTrade:
        with self._lock:
            trade = trade.model_copy()
            trade.id = self._next_id()
            self._state['option_trades'].append(trade)
            self._record(lambda: self._state['option_trades'].remove(trade))
            return trade.model_copy()

    def list_option_trades(self, account_id: int) -> List[OptionTrade]:
        with self._lock:
            mine = [t for t in self._state['option_trades'] if t.account_id == account_id]
            return [t.model_copy() for t in self._newest_first(mine)]

    # Watchlist

    def get_watchlist(self, account_id: int) -> List[WatchlistItem]:
        with self._lock:
            mine = [w for (owner, _), w in self._state['watchlist'].items() if owner == account_id]
            return [w.model_copy() for w in sorted(mine, key=lambda w: w.added_at, reverse=True)]

    def add_to_watchlist(self, item: WatchlistItem) -> WatchlistItem:
        with self._lock:
            key = (item.account_id, item.symbol)
            if key not in self._state['watchlist']:
                self._state['watchlist'][key] = item.model_copy()
                self._record(lambda: self._state['watchlist'].pop(key, None))
            return self._state['watchlist'][key].model_copy()

    def remove_from_watchlist(self, account_id: int, symbol: str) -> None:
        with self._lock:
            key = (account_id, symbol)
            removed = self._state['watchlist'].pop(key, None)
            if removed is not None:
                self._record(lambda: self._restore('watchlist', key, removed))

    # Portfolio history

    def _history(self, account_id: int) -> List[PortfolioHistoryPoint]:
        return self._state['history'].setdefault(account_id, [])

    def get_latest_history_point(self, account_id: int) -> Optional[PortfolioHistoryPoint]:
        with self._lock:
            points = self._history(account_id)
            if not points:
                return None
            return max(points, key=lambda p: (p.timestamp, p.id)).model_copy()

    def append_history_point(self, point: PortfolioHistoryPoint) -> PortfolioHistoryPoint:
        with self._lock:
            point = point.model_copy()
            point.id = self._next_id()
            points = self._history(point.account_id)
            points.append(point)
            self._record(lambda: points.remove(point))
            return point.model_copy()

    def overwrite_history_point(self, account_id: int, point_id: int, value: Decimal) -> None:
        with self._lock:
            for point in self._history(account_id):
                if point.id == point_id:
                    previous = point.value
                    point.value = value
                    self._record(lambda p=point, v=previous: setattr(p, 'value', v))

    def trim_history(self, account_id: int, max_points: int) -> None:
        with self._lock:
            points = self._history(account_id)
            self._state['history'][account_id] = trim(points, max_points)
            self._record(lambda: self._state['history'].__setitem__(account_id, points))

    def list_history(self, account_id: int) -> List[PortfolioHistoryPoint]:
        with self._lock:
            points = sorted(self._history(account_id), key=lambda p: (p.timestamp, p.id))
            return [p.model_copy() for p in points]

    # Config

    def get_config(self, key: str, default: str = None) -> str:
        with self._lock:
            entry = self._state['config'].get(key)
            return entry[0] if entry else default

    def set_config(self, key: str, value: str) -> None:
        with self._lock:
            previous = self._state['config'].get(key)
            self._state['config'][key] = (value, datetime.now())
            self._record(lambda: self._restore('config', key, previous))

    def close(self):
        pass
