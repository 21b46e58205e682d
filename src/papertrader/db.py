import sqlite3
import os
import threading
from contextlib import contextmanager
from decimal import Decimal
from typing import List, Optional
from datetime import datetime

from .errors import AccountNotFound
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


def _dec(value) -> Optional[str]:
    return None if value is None else str(value)


class Database:
    """SQLite ledger store.

    Outside a transaction every statement autocommits. Inside `transaction()`
    all calls made by the same thread share one connection and commit or
    roll back together.
    """

    def __init__(self, db_path: str = None):
        # Support environment variable for database path
        # This allows separate test and production databases
        if db_path is None:
            db_path = os.getenv('PAPERTRADER_DB_PATH', 'papertrader.db')

        self.db_path = db_path
        self._conn = None
        self._lock = threading.RLock()
        self._local = threading.local()
        self._init_db()

    @property
    def is_memory(self) -> bool:
        return self.db_path == ":memory:"

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(
            self.db_path,
            timeout=30,
            isolation_level=None,
            check_same_thread=not self.is_memory,
        )
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def _get_connection(self):
        """Get the shared connection for in-memory databases, creating it if necessary."""
        if self._conn is None:
            self._conn = self._connect()
            self._create_tables(self._conn.cursor())
        return self._conn

    @contextmanager
    def _connection(self):
        conn = getattr(self._local, "conn", None)
        if conn is not None:
            # Joined an open transaction on this thread
            yield conn
            return

        if self.is_memory:
            with self._lock:
                yield self._get_connection()
            return

        conn = self._connect()
        try:
            yield conn
        finally:
            conn.close()

    @contextmanager
    def transaction(self):
        """Run the enclosed store calls as one atomic unit.

        Uses BEGIN IMMEDIATE so concurrent writers on the same database file
        are serialized; nested calls join the outer transaction.
        """
        if getattr(self._local, "conn", None) is not None:
            yield self
            return

        if self.is_memory:
            self._lock.acquire()
            conn = self._get_connection()
        else:
            conn = self._connect()

        try:
            conn.execute("BEGIN IMMEDIATE")
            self._local.conn = conn
            try:
                yield self
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")
        finally:
            self._local.conn = None
            if self.is_memory:
                self._lock.release()
            else:
                conn.close()

    def _create_tables(self, cursor):
        """Create database tables if they don't exist."""
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS accounts (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                username TEXT NOT NULL UNIQUE,
                password_hash TEXT NOT NULL,
                cash TEXT NOT NULL,
                starting_cash TEXT NOT NULL,
                created_at TEXT NOT NULL
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS positions (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                account_id INTEGER NOT NULL REFERENCES accounts(id),
                symbol TEXT NOT NULL,
                quantity INTEGER NOT NULL CHECK (quantity > 0),
                average_price TEXT NOT NULL,
                current_price TEXT NOT NULL,
                UNIQUE (account_id, symbol)
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS option_positions (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                account_id INTEGER NOT NULL REFERENCES accounts(id),
                symbol TEXT NOT NULL,
                option_type TEXT NOT NULL,
                strike_price TEXT NOT NULL,
                expiration_date TEXT NOT NULL,
                contracts INTEGER NOT NULL CHECK (contracts > 0),
                premium TEXT NOT NULL,
                current_premium TEXT NOT NULL
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS trades (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                account_id INTEGER NOT NULL REFERENCES accounts(id),
                symbol TEXT NOT NULL,
                type TEXT NOT NULL,
                quantity INTEGER NOT NULL,
                price TEXT NOT NULL,
                total TEXT NOT NULL,
                timestamp TEXT NOT NULL
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS option_trades (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                account_id INTEGER NOT NULL REFERENCES accounts(id),
                symbol TEXT NOT NULL,
                option_type TEXT NOT NULL,
                strike_price TEXT NOT NULL,
                expiration_date TEXT NOT NULL,
                contracts INTEGER NOT NULL,
                premium TEXT NOT NULL,
                total TEXT NOT NULL,
                action TEXT NOT NULL,
                timestamp TEXT NOT NULL
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS watchlist (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                account_id INTEGER NOT NULL REFERENCES accounts(id),
                symbol TEXT NOT NULL,
                name TEXT NOT NULL,
                added_at TEXT NOT NULL,
                UNIQUE (account_id, symbol)
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS portfolio_history (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                account_id INTEGER NOT NULL REFERENCES accounts(id),
                value TEXT NOT NULL,
                timestamp TEXT NOT NULL
            )
        """)

        # Create config table for application settings
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS config (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)

    def _init_db(self):
        """Initialize database and create tables if they don't exist."""
        if not self.is_memory:
            # For file-based databases, create tables immediately
            conn = self._connect()
            try:
                conn.execute("PRAGMA journal_mode = WAL")
                self._create_tables(conn.cursor())
            finally:
                conn.close()

    # Accounts

    def _row_to_account(self, row) -> Account:
        return Account(
            id=row[0],
            username=row[1],
            password_hash=row[2],
            cash=Decimal(row[3]),
            starting_cash=Decimal(row[4]),
            created_at=datetime.fromisoformat(row[5]),
        )

    def create_account(self, account: Account) -> Account:
        """Insert an account. Raises sqlite3.IntegrityError for a taken username."""
        with self._connection() as conn:
            cursor = conn.execute("""
                INSERT INTO accounts (username, password_hash, cash, starting_cash, created_at)
                VALUES (?, ?, ?, ?, ?)
            """, (
                account.username,
                account.password_hash,
                _dec(account.cash),
                _dec(account.starting_cash),
                account.created_at.isoformat(),
            ))
            account.id = cursor.lastrowid
        return account

    def get_account(self, account_id: int) -> Optional[Account]:
        with self._connection() as conn:
            row = conn.execute("""
                SELECT id, username, password_hash, cash, starting_cash, created_at
                FROM accounts WHERE id = ?
            """, (account_id,)).fetchone()
        return self._row_to_account(row) if row else None

    def get_account_by_username(self, username: str) -> Optional[Account]:
        with self._connection() as conn:
            row = conn.execute("""
                SELECT id, username, password_hash, cash, starting_cash, created_at
                FROM accounts WHERE username = ?
            """, (username,)).fetchone()
        return self._row_to_account(row) if row else None

    def list_accounts(self) -> List[Account]:
        with self._connection() as conn:
            rows = conn.execute("""
                SELECT id, username, password_hash, cash, starting_cash, created_at
                FROM accounts ORDER BY id
            """).fetchall()
        return [self._row_to_account(row) for row in rows]

    def get_cash(self, account_id: int) -> Decimal:
        with self._connection() as conn:
            row = conn.execute("SELECT cash FROM accounts WHERE id = ?", (account_id,)).fetchone()
        if row is None:
            raise AccountNotFound(account_id)
        return Decimal(row[0])

    def set_cash(self, account_id: int, cash: Decimal) -> None:
        with self._connection() as conn:
            cursor = conn.execute("UPDATE accounts SET cash = ? WHERE id = ?", (_dec(cash), account_id))
            if cursor.rowcount == 0:
                raise AccountNotFound(account_id)

    # Stock positions

    def _row_to_position(self, row) -> Position:
        return Position(
            id=row[0],
            account_id=row[1],
            symbol=row[2],
            quantity=row[3],
            average_price=Decimal(row[4]),
            current_price=Decimal(row[5]),
        )

    def get_positions(self, account_id: int) -> List[Position]:
        with self._connection() as conn:
            rows = conn.execute("""
                SELECT id, account_id, symbol, quantity, average_price, current_price
                FROM positions WHERE account_id = ? ORDER BY symbol
            """, (account_id,)).fetchall()
        return [self._row_to_position(row) for row in rows]

    def get_position(self, account_id: int, symbol: str) -> Optional[Position]:
        with self._connection() as conn:
            row = conn.execute("""
                SELECT id, account_id, symbol, quantity, average_price, current_price
                FROM positions WHERE account_id = ? AND symbol = ?
            """, (account_id, symbol)).fetchone()
        return self._row_to_position(row) if row else None

    def upsert_position(
        self,
        account_id: int,
        symbol: str,
        quantity: int,
        average_price: Decimal,
        current_price: Decimal,
    ) -> Position:
        with self._connection() as conn:
            conn.execute("""
                INSERT INTO positions (account_id, symbol, quantity, average_price, current_price)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT (account_id, symbol) DO UPDATE SET
                    quantity = excluded.quantity,
                    average_price = excluded.average_price,
                    current_price = excluded.current_price
            """, (account_id, symbol, quantity, _dec(average_price), _dec(current_price)))
        return self.get_position(account_id, symbol)

    def update_position_price(self, account_id: int, symbol: str, current_price: Decimal) -> None:
        """Touch only the current price so concurrent trades are never overwritten."""
        with self._connection() as conn:
            conn.execute("""
                UPDATE positions SET current_price = ?
                WHERE account_id = ? AND symbol = ?
            """, (_dec(current_price), account_id, symbol))

    def delete_position(self, account_id: int, symbol: str) -> None:
        with self._connection() as conn:
            conn.execute("DELETE FROM positions WHERE account_id = ? AND symbol = ?", (account_id, symbol))

    # Option positions

    def _row_to_option(self, row) -> OptionPosition:
        return OptionPosition(
            id=row[0],
            account_id=row[1],
            symbol=row[2],
            option_type=row[3],
            strike_price=Decimal(row[4]),
            expiration_date=row[5],
            contracts=row[6],
            premium=Decimal(row[7]),
            current_premium=Decimal(row[8]),
        )

    def get_option_positions(self, account_id: int) -> List[OptionPosition]:
        with self._connection() as conn:
            rows = conn.execute("""
                SELECT id, account_id, symbol, option_type, strike_price, expiration_date,
                       contracts, premium, current_premium
                FROM option_positions WHERE account_id = ? ORDER BY id
            """, (account_id,)).fetchall()
        return [self._row_to_option(row) for row in rows]

    def get_option_position(self, account_id: int, option_id: int) -> Optional[OptionPosition]:
        with self._connection() as conn:
            row = conn.execute("""
                SELECT id, account_id, symbol, option_type, strike_price, expiration_date,
                       contracts, premium, current_premium
                FROM option_positions WHERE account_id = ? AND id = ?
            """, (account_id, option_id)).fetchone()
        return self._row_to_option(row) if row else None

    def add_option_position(self, option: OptionPosition) -> OptionPosition:
        with self._connection() as conn:
            cursor = conn.execute("""
                INSERT INTO option_positions (account_id, symbol, option_type, strike_price,
                                              expiration_date, contracts, premium, current_premium)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                option.account_id,
                option.symbol,
                option.option_type,
                _dec(option.strike_price),
                option.expiration_date,
                option.contracts,
                _dec(option.premium),
                _dec(option.current_premium),
            ))
            option.id = cursor.lastrowid
        return option

    def update_option_premium(
        self, account_id: int, option_id: int, current_premium: Decimal
    ) -> Optional[OptionPosition]:
        with self._connection() as conn:
            conn.execute("""
                UPDATE option_positions SET current_premium = ?
                WHERE account_id = ? AND id = ?
            """, (_dec(current_premium), account_id, option_id))
        return self.get_option_position(account_id, option_id)

    def delete_option_position(self, account_id: int, option_id: int) -> None:
        with self._connection() as conn:
            conn.execute("DELETE FROM option_positions WHERE account_id = ? AND id = ?", (account_id, option_id))

    # Trade ledgers (append-only)

    def insert_trade(self, trade: Trade) -> Trade:
        """Append a stock trade to the ledger."""
        with self._connection() as conn:
            cursor = conn.execute("""
                INSERT INTO trades (account_id, symbol, type, quantity, price, total, timestamp)
                VALUES (?, ?, ?, ?, ?, ?, ?)
            """, (
                trade.account_id,
                trade.symbol,
                trade.type,
                trade.quantity,
                _dec(trade.price),
                _dec(trade.total),
                trade.timestamp.isoformat(),
            ))
            trade.id = cursor.lastrowid
        return trade

    def _row_to_trade(self, row) -> Trade:
        return Trade(
            id=row[0],
            account_id=row[1],
            symbol=row[2],
            type=row[3],
            quantity=row[4],
            price=Decimal(row[5]),
            total=Decimal(row[6]),
            timestamp=datetime.fromisoformat(row[7]),
        )

    def list_trades(self, account_id: int) -> List[Trade]:
        """Retrieve an account's trades, most recent first."""
        with self._connection() as conn:
            rows = conn.execute("""
                SELECT id, account_id, symbol, type, quantity, price, total, timestamp
                FROM trades WHERE account_id = ?
                ORDER BY timestamp DESC, id DESC
            """, (account_id,)).fetchall()
        return [self._row_to_trade(row) for row in rows]

    def count_trades(self, account_id: int) -> int:
        with self._connection() as conn:
            row = conn.execute("SELECT COUNT(*) FROM trades WHERE account_id = ?", (account_id,)).fetchone()
        return row[0]

    def list_recent_trades(self, limit: int = 50) -> List[FeedItem]:
        """Latest trades across all accounts, with usernames."""
        with self._connection() as conn:
            rows = conn.execute("""
                SELECT t.id, t.account_id, t.symbol, t.type, t.quantity, t.price, t.total,
                       t.timestamp, a.username
                FROM trades t JOIN accounts a ON a.id = t.account_id
                ORDER BY t.timestamp DESC, t.id DESC
                LIMIT ?
            """, (limit,)).fetchall()
        return [
            FeedItem(**self._row_to_trade(row).model_dump(), username=row[8])
            for row in rows
        ]

    def insert_option_trade(self, trade: OptionTrade) -> OptionTrade:
        with self._connection() as conn:
            cursor = conn.execute("""
                INSERT INTO option_trades (account_id, symbol, option_type, strike_price, expiration_date,
                                           contracts, premium, total, action, timestamp)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                trade.account_id,
                trade.symbol,
                trade.option_type,
                _dec(trade.strike_price),
                trade.expiration_date,
                trade.contracts,
                _dec(trade.premium),
                _dec(trade.total),
                trade.action,
                trade.timestamp.isoformat(),
            ))
            trade.id = cursor.lastrowid
        return trade

    def list_option_trades(self, account_id: int) -> List[OptionTrade]:
        with self._connection() as conn:
            rows = conn.execute("""
                SELECT id, account_id, symbol, option_type, strike_price, expiration_date,
                       contracts, premium, total, action, timestamp
                FROM option_trades WHERE account_id = ?
                ORDER BY timestamp DESC, id DESC
            """, (account_id,)).fetchall()

        return [
            OptionTrade(
                id=row[0],
                account_id=row[1],
                symbol=row[2],
                option_type=row[3],
                strike_price=Decimal(row[4]),
                expiration_date=row[5],
                contracts=row[6],
                premium=Decimal(row[7]),
                total=Decimal(row[8]),
                action=row[9],
                timestamp=datetime.fromisoformat(row[10]),
            )
            for row in rows
        ]

    # Watchlist

    def get_watchlist(self, account_id: int) -> List[WatchlistItem]:
        with self._connection() as conn:
            rows = conn.execute("""
                SELECT account_id, symbol, name, added_at FROM watchlist
                WHERE account_id = ? ORDER BY added_at DESC, id DESC
            """, (account_id,)).fetchall()
        return [
            WatchlistItem(account_id=row[0], symbol=row[1], name=row[2], added_at=datetime.fromisoformat(row[3]))
            for row in rows
        ]

    def add_to_watchlist(self, item: WatchlistItem) -> WatchlistItem:
        """Add a symbol; an existing entry is returned unchanged."""
        with self._connection() as conn:
            conn.execute("""
                INSERT OR IGNORE INTO watchlist (account_id, symbol, name, added_at)
                VALUES (?, ?, ?, ?)
            """, (item.account_id, item.symbol, item.name, item.added_at.isoformat()))
            row = conn.execute("""
                SELECT account_id, symbol, name, added_at FROM watchlist
                WHERE account_id = ? AND symbol = ?
            """, (item.account_id, item.symbol)).fetchone()
        return WatchlistItem(account_id=row[0], symbol=row[1], name=row[2], added_at=datetime.fromisoformat(row[3]))

    def remove_from_watchlist(self, account_id: int, symbol: str) -> None:
        with self._connection() as conn:
            conn.execute("DELETE FROM watchlist WHERE account_id = ? AND symbol = ?", (account_id, symbol))

    # Portfolio history

    def _row_to_point(self, row) -> PortfolioHistoryPoint:
        return PortfolioHistoryPoint(
            id=row[0],
            account_id=row[1],
            value=Decimal(row[2]),
            timestamp=datetime.fromisoformat(row[3]),
        )

    def get_latest_history_point(self, account_id: int) -> Optional[PortfolioHistoryPoint]:
        with self._connection() as conn:
            row = conn.execute("""
                SELECT id, account_id, value, timestamp FROM portfolio_history
                WHERE account_id = ? ORDER BY timestamp DESC, id DESC LIMIT 1
            """, (account_id,)).fetchone()
        return self._row_to_point(row) if row else None

    def append_history_point(self, point: PortfolioHistoryPoint) -> PortfolioHistoryPoint:
        with self._connection() as conn:
            cursor = conn.execute("""
                INSERT INTO portfolio_history (account_id, value, timestamp) VALUES (?, ?, ?)
            """, (point.account_id, _dec(point.value), point.timestamp.isoformat()))
            point.id = cursor.lastrowid
        return point

    def overwrite_history_point(self, account_id: int, point_id: int, value: Decimal) -> None:
        with self._connection() as conn:
            conn.execute("""
                UPDATE portfolio_history SET value = ? WHERE account_id = ? AND id = ?
            """, (_dec(value), account_id, point_id))

    def trim_history(self, account_id: int, max_points: int) -> None:
        """Delete all but the `max_points` most recent points."""
        with self._connection() as conn:
            conn.execute("""
                DELETE FROM portfolio_history
                WHERE account_id = ? AND id NOT IN (
                    SELECT id FROM portfolio_history WHERE account_id = ?
                    ORDER BY timestamp DESC, id DESC LIMIT ?
                )
            """, (account_id, account_id, max_points))

    def list_history(self, account_id: int) -> List[PortfolioHistoryPoint]:
        """Portfolio history, oldest first."""
        with self._connection() as conn:
            rows = conn.execute("""
                SELECT id, account_id, value, timestamp FROM portfolio_history
                WHERE account_id = ? ORDER BY timestamp, id
            """, (account_id,)).fetchall()
        return [self._row_to_point(row) for row in rows]

    # Config

    def get_config(self, key: str, default: str = None) -> str:
        """Get a configuration value."""
        with self._connection() as conn:
            row = conn.execute("SELECT value FROM config WHERE key = ?", (key,)).fetchone()
        return row[0] if row else default

    def set_config(self, key: str, value: str) -> None:
        """Set a configuration value."""
        now = datetime.now().isoformat()
        with self._connection() as conn:
            conn.execute("""
                INSERT OR REPLACE INTO config (key, value, updated_at)
                VALUES (?, ?, ?)
            """, (key, value, now))

    def close(self):
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None
