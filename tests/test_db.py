"""
Ledger store tests. Every test runs against both the SQLite and the
in-memory backend through the parametrized `store` fixture.
"""
import pytest
from datetime import datetime, timedelta
from decimal import Decimal
from papertrader.config import Settings, STORAGE_MEMORY
from papertrader.db import Database
from papertrader.errors import AccountNotFound, InsufficientFunds
from papertrader.memory_store import InMemoryStore
from papertrader.models import (
    Account,
    OptionPosition,
    OptionTrade,
    PortfolioHistoryPoint,
    Trade,
    WatchlistItem,
)
from papertrader.store import create_store

T0 = datetime(2024, 1, 2, 9, 30)


def _account(store, username="alice", cash="1000"):
    return store.create_account(Account(
        username=username,
        password_hash="salt$hash",
        cash=Decimal(cash),
        starting_cash=Decimal(cash),
        created_at=T0,
    ))


def _trade(account_id, symbol="AAPL", side="buy", quantity=10, price="150", minutes=0):
    price = Decimal(price)
    return Trade(
        account_id=account_id,
        symbol=symbol,
        type=side,
        quantity=quantity,
        price=price,
        total=quantity * price,
        timestamp=T0 + timedelta(minutes=minutes),
    )


class TestAccounts:
    def test_create_and_fetch(self, store):
        """Test creating an account and reading it back by id and username."""
        account = _account(store)

        assert account.id is not None
        assert store.get_account(account.id).username == "alice"
        assert store.get_account_by_username("alice").id == account.id
        assert store.get_account_by_username("nobody") is None
        assert store.get_account(9999) is None

    def test_cash_round_trips_exactly(self, store):
        account = _account(store, cash="100000")
        store.set_cash(account.id, Decimal("98499.99"))
        assert store.get_cash(account.id) == Decimal("98499.99")

    def test_unknown_account_cash(self, store):
        with pytest.raises(AccountNotFound):
            store.get_cash(42)
        with pytest.raises(AccountNotFound):
            store.set_cash(42, Decimal("1"))

    def test_list_accounts(self, store):
        _account(store, "alice")
        _account(store, "bob")
        assert [a.username for a in store.list_accounts()] == ["alice", "bob"]

    def test_password_hash_not_serialized(self, store):
        account = _account(store)
        assert store.get_account(account.id).password_hash == "salt$hash"
        assert "password_hash" not in account.model_dump()


class TestPositions:
    def test_upsert_inserts_then_updates(self, store):
        account = _account(store)
        store.upsert_position(account.id, "AAPL", 10, Decimal("150"), Decimal("150"))
        store.upsert_position(account.id, "AAPL", 15, Decimal("153.5"), Decimal("160"))

        positions = store.get_positions(account.id)
        assert len(positions) == 1
        assert positions[0].quantity == 15
        assert positions[0].average_price == Decimal("153.5")
        assert positions[0].current_price == Decimal("160")

    def test_price_update_touches_only_price(self, store):
        account = _account(store)
        store.upsert_position(account.id, "AAPL", 10, Decimal("150"), Decimal("150"))
        store.update_position_price(account.id, "AAPL", Decimal("170"))

        position = store.get_position(account.id, "AAPL")
        assert position.quantity == 10
        assert position.average_price == Decimal("150")
        assert position.current_price == Decimal("170")

    def test_delete(self, store):
        account = _account(store)
        store.upsert_position(account.id, "AAPL", 10, Decimal("150"), Decimal("150"))
        store.delete_position(account.id, "AAPL")
        assert store.get_position(account.id, "AAPL") is None
        assert store.get_positions(account.id) == []

    def test_positions_are_per_account(self, store):
        alice = _account(store, "alice")
        bob = _account(store, "bob")
        store.upsert_position(alice.id, "AAPL", 10, Decimal("150"), Decimal("150"))
        assert store.get_positions(bob.id) == []


class TestOptionPositions:
    def _lot(self, account_id, contracts=1):
        return OptionPosition(
            account_id=account_id,
            symbol="SPY",
            option_type="call",
            strike_price=Decimal("450"),
            expiration_date="2024-03-15",
            contracts=contracts,
            premium=Decimal("3.5"),
            current_premium=Decimal("3.5"),
        )

    def test_lots_are_independent(self, store):
        account = _account(store)
        first = store.add_option_position(self._lot(account.id))
        second = store.add_option_position(self._lot(account.id, 2))

        assert first.id != second.id
        assert len(store.get_option_positions(account.id)) == 2

    def test_update_premium(self, store):
        account = _account(store)
        lot = store.add_option_position(self._lot(account.id, 2))

        updated = store.update_option_premium(account.id, lot.id, Decimal("5"))
        assert updated.current_premium == Decimal("5")
        assert updated.premium == Decimal("3.5")
        assert updated.profit_loss == Decimal("300")

    def test_update_missing_lot(self, store):
        account = _account(store)
        assert store.update_option_premium(account.id, 999, Decimal("5")) is None

    def test_delete_lot(self, store):
        account = _account(store)
        lot = store.add_option_position(self._lot(account.id))
        store.delete_option_position(account.id, lot.id)
        assert store.get_option_positions(account.id) == []


class TestLedgers:
    def test_trades_newest_first(self, store):
        account = _account(store)
        first = store.insert_trade(_trade(account.id, minutes=0))
        second = store.insert_trade(_trade(account.id, side="sell", quantity=5, minutes=5))

        trades = store.list_trades(account.id)
        assert [t.id for t in trades] == [second.id, first.id]
        assert trades[0].total == Decimal("750")
        assert store.count_trades(account.id) == 2

    def test_same_timestamp_falls_back_to_insertion_order(self, store):
        account = _account(store)
        ids = [store.insert_trade(_trade(account.id)).id for _ in range(3)]
        assert [t.id for t in store.list_trades(account.id)] == list(reversed(ids))

    def test_recent_trades_carry_usernames(self, store):
        alice = _account(store, "alice")
        bob = _account(store, "bob")
        store.insert_trade(_trade(alice.id, minutes=0))
        store.insert_trade(_trade(bob.id, symbol="MSFT", minutes=1))
        store.insert_trade(_trade(alice.id, symbol="TSLA", minutes=2))

        feed = store.list_recent_trades(2)
        assert [(f.username, f.symbol) for f in feed] == [("alice", "TSLA"), ("bob", "MSFT")]

    def test_option_trades(self, store):
        account = _account(store)
        store.insert_option_trade(OptionTrade(
            account_id=account.id,
            symbol="SPY",
            option_type="put",
            strike_price=Decimal("440"),
            expiration_date="2024-03-15",
            contracts=1,
            premium=Decimal("2.25"),
            total=Decimal("225"),
            action="sell",
            timestamp=T0,
        ))

        trades = store.list_option_trades(account.id)
        assert len(trades) == 1
        assert trades[0].total == Decimal("225")
        assert trades[0].action == "sell"


class TestWatchlist:
    def test_add_is_idempotent(self, store):
        account = _account(store)
        item = WatchlistItem(account_id=account.id, symbol="AAPL", name="Apple Inc", added_at=T0)

        store.add_to_watchlist(item)
        again = store.add_to_watchlist(item.model_copy(update={'name': "Other", 'added_at': T0 + timedelta(days=1)}))

        assert again.name == "Apple Inc"
        assert len(store.get_watchlist(account.id)) == 1

    def test_newest_first_and_remove(self, store):
        account = _account(store)
        for i, symbol in enumerate(["AAPL", "MSFT", "TSLA"]):
            store.add_to_watchlist(WatchlistItem(
                account_id=account.id, symbol=symbol, name=symbol, added_at=T0 + timedelta(minutes=i)
            ))

        assert [w.symbol for w in store.get_watchlist(account.id)] == ["TSLA", "MSFT", "AAPL"]

        store.remove_from_watchlist(account.id, "MSFT")
        store.remove_from_watchlist(account.id, "NOPE")
        assert [w.symbol for w in store.get_watchlist(account.id)] == ["TSLA", "AAPL"]


class TestHistory:
    def test_append_overwrite_trim(self, store):
        account = _account(store)
        for i in range(5):
            store.append_history_point(PortfolioHistoryPoint(
                account_id=account.id, timestamp=T0 + timedelta(minutes=i), value=Decimal(1000 + i)
            ))

        latest = store.get_latest_history_point(account.id)
        assert latest.value == Decimal("1004")

        store.overwrite_history_point(account.id, latest.id, Decimal("999"))
        store.trim_history(account.id, 3)

        history = store.list_history(account.id)
        assert [p.value for p in history] == [Decimal("1002"), Decimal("1003"), Decimal("999")]
        assert history[-1].timestamp == T0 + timedelta(minutes=4)

    def test_empty_history(self, store):
        account = _account(store)
        assert store.get_latest_history_point(account.id) is None
        assert store.list_history(account.id) == []


class TestTransactions:
    def test_rollback_on_error(self, store):
        """A failed transaction leaves no partial writes."""
        account = _account(store)

        with pytest.raises(InsufficientFunds):
            with store.transaction() as tx:
                tx.set_cash(account.id, Decimal("1"))
                tx.insert_trade(_trade(account.id))
                raise InsufficientFunds(Decimal("2"), Decimal("1"))

        assert store.get_cash(account.id) == Decimal("1000")
        assert store.list_trades(account.id) == []

    def test_nested_transactions_join(self, store):
        account = _account(store)

        with store.transaction() as outer:
            outer.set_cash(account.id, Decimal("900"))
            with store.transaction() as inner:
                inner.set_cash(account.id, Decimal("800"))

        assert store.get_cash(account.id) == Decimal("800")

    def test_rollback_restores_every_table(self, store):
        account = _account(store)
        store.upsert_position(account.id, "AAPL", 10, Decimal("150"), Decimal("150"))
        store.upsert_position(account.id, "MSFT", 2, Decimal("300"), Decimal("300"))
        lot = store.add_option_position(OptionPosition(
            account_id=account.id, symbol="SPY", option_type="call", strike_price=Decimal("450"),
            expiration_date="2024-03-15", contracts=1, premium=Decimal("3.5"), current_premium=Decimal("3.5"),
        ))
        store.add_to_watchlist(WatchlistItem(account_id=account.id, symbol="AAPL", name="Apple", added_at=T0))
        for i in range(3):
            store.append_history_point(PortfolioHistoryPoint(
                account_id=account.id, timestamp=T0 + timedelta(minutes=i), value=Decimal(1000 + i)
            ))
        store.set_config("starting_cash", "1000")
        latest = store.get_latest_history_point(account.id)

        with pytest.raises(RuntimeError):
            with store.transaction() as tx:
                tx.upsert_position(account.id, "AAPL", 20, Decimal("160"), Decimal("170"))
                tx.update_position_price(account.id, "AAPL", Decimal("180"))
                tx.delete_position(account.id, "MSFT")
                tx.upsert_position(account.id, "TSLA", 1, Decimal("200"), Decimal("200"))
                tx.update_option_premium(account.id, lot.id, Decimal("9"))
                tx.delete_option_position(account.id, lot.id)
                tx.add_to_watchlist(WatchlistItem(account_id=account.id, symbol="TSLA", name="Tesla", added_at=T0))
                tx.remove_from_watchlist(account.id, "AAPL")
                tx.overwrite_history_point(account.id, latest.id, Decimal("1"))
                tx.append_history_point(PortfolioHistoryPoint(
                    account_id=account.id, timestamp=T0 + timedelta(minutes=9), value=Decimal("5")
                ))
                tx.trim_history(account.id, 1)
                tx.set_config("starting_cash", "5")
                tx.insert_option_trade(OptionTrade(
                    account_id=account.id, symbol="SPY", option_type="call",
                    strike_price=Decimal("450"), expiration_date="2024-03-15", contracts=1,
                    premium=Decimal("9"), total=Decimal("900"), action="sell", timestamp=T0,
                ))
                raise RuntimeError("boom")

        positions = {p.symbol: (p.quantity, p.average_price, p.current_price) for p in store.get_positions(account.id)}
        assert positions == {
            "AAPL": (10, Decimal("150"), Decimal("150")),
            "MSFT": (2, Decimal("300"), Decimal("300")),
        }
        lots = store.get_option_positions(account.id)
        assert [(o.id, o.current_premium) for o in lots] == [(lot.id, Decimal("3.5"))]
        assert [w.symbol for w in store.get_watchlist(account.id)] == ["AAPL"]
        assert [p.value for p in store.list_history(account.id)] == [Decimal("1000"), Decimal("1001"), Decimal("1002")]
        assert store.get_config("starting_cash") == "1000"
        assert store.list_option_trades(account.id) == []

    def test_failed_nested_block_rolls_back_outer(self, store):
        account = _account(store)

        with pytest.raises(InsufficientFunds):
            with store.transaction() as outer:
                outer.set_cash(account.id, Decimal("900"))
                with store.transaction() as inner:
                    inner.insert_trade(_trade(account.id))
                    raise InsufficientFunds(Decimal("2"), Decimal("1"))

        assert store.get_cash(account.id) == Decimal("1000")
        assert store.list_trades(account.id) == []

        # The store is usable again after the rollback
        with store.transaction() as tx:
            tx.set_cash(account.id, Decimal("700"))
        assert store.get_cash(account.id) == Decimal("700")


class TestInMemoryTransactions:
    """Rollback on the in-memory store only touches what the block changed"""

    def test_other_accounts_ledgers_are_not_copied(self):
        store = InMemoryStore()
        whale = _account(store, "whale")
        minnow = _account(store, "minnow")
        for minute in range(200):
            store.insert_trade(_trade(whale.id, quantity=1, minutes=minute))
        ledger = store._state['trades']
        first = ledger[0]

        with store.transaction() as tx:
            tx.set_cash(minnow.id, Decimal("850"))
            tx.insert_trade(_trade(minnow.id))

        assert store._state['trades'] is ledger
        assert store._state['trades'][0] is first
        assert store.count_trades(whale.id) == 200

    def test_rollback_keeps_other_accounts_intact(self):
        store = InMemoryStore()
        whale = _account(store, "whale")
        minnow = _account(store, "minnow")
        for minute in range(50):
            store.insert_trade(_trade(whale.id, quantity=1, minutes=minute))

        with pytest.raises(InsufficientFunds):
            with store.transaction() as tx:
                tx.insert_trade(_trade(minnow.id))
                raise InsufficientFunds(Decimal("1500"), Decimal("1000"))

        assert store.count_trades(whale.id) == 50
        assert store.list_trades(minnow.id) == []
        assert store._journal is None


class TestConfig:
    def test_get_set(self, store):
        assert store.get_config("starting_cash") is None
        assert store.get_config("starting_cash", "5") == "5"
        store.set_config("starting_cash", "25000")
        store.set_config("starting_cash", "30000")
        assert store.get_config("starting_cash") == "30000"


class TestFileDatabase:
    def test_persists_across_instances(self, tmp_path):
        path = str(tmp_path / "ledger.db")
        db = Database(path)
        account = _account(db)
        db.set_cash(account.id, Decimal("12.34"))

        reopened = Database(path)
        assert reopened.get_cash(account.id) == Decimal("12.34")

    def test_default_path_from_env(self, tmp_path, monkeypatch):
        path = str(tmp_path / "env.db")
        monkeypatch.setenv("PAPERTRADER_DB_PATH", path)
        assert Database().db_path == path


class TestCreateStore:
    def test_memory_backend(self):
        assert isinstance(create_store(Settings(storage=STORAGE_MEMORY)), InMemoryStore)

    def test_sqlite_backend(self, tmp_path):
        store = create_store(Settings(db_path=str(tmp_path / "x.db")))
        assert isinstance(store, Database)
