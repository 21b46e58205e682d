"""
Portfolio valuation and trade settlement

The ValuationEngine is the only code path that mutates cash, positions and
the trade ledgers. Every trade runs inside one store transaction so the cash
change, the position change and the ledger append commit together.
"""
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Callable, List, Mapping, Optional, Union
import logging

from .admission import (
    check_funds,
    check_shares,
    validate_option_order,
    validate_premium,
    validate_starting_cash,
    validate_stock_order,
    validate_watchlist_symbol,
)
from .calculations import (
    ZERO,
    option_trade_total,
    percent_of,
    trade_total,
    weighted_average_price,
)
from .config import Settings
from .errors import AccountNotFound, InvalidInput, QuoteUnavailable
from .history import OVERWRITE, plan_sample
from .models import (
    Account,
    FeedItem,
    LeaderboardEntry,
    OptionPosition,
    OptionTrade,
    PortfolioHistoryPoint,
    PortfolioSummary,
    Position,
    Quote,
    Trade,
    WatchlistItem,
)
from .store import LedgerStore

logger = logging.getLogger(__name__)

QuoteProvider = Callable[[str], Optional[Quote]]
QuoteLookup = Mapping[str, Union[Quote, Decimal, float, int, None]]

STARTING_CASH_KEY = "starting_cash"


class ValuationEngine:
    def __init__(
        self,
        store: LedgerStore,
        quote_provider: Optional[QuoteProvider] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.store = store
        self.quote_provider = quote_provider
        self.settings = settings or Settings()
        self.clock = clock

    # Accounts

    def starting_cash(self) -> Decimal:
        """Cash credited to new accounts; a `starting_cash` config entry overrides settings."""
        override = self.store.get_config(STARTING_CASH_KEY)
        if override is None:
            return self.settings.starting_cash
        try:
            value = Decimal(override)
        except InvalidOperation:
            value = ZERO
        if not value.is_finite() or value <= 0:
            logger.warning(f"Ignoring invalid starting_cash config {override!r}")
            return self.settings.starting_cash
        return value

    def set_starting_cash(self, value) -> Decimal:
        """Persist a starting cash override. Existing accounts keep their snapshot."""
        amount = validate_starting_cash(value)
        self.store.set_config(STARTING_CASH_KEY, str(amount))
        logger.info(f"Starting cash set to {amount}")
        return amount

    def create_account(self, username: str, password_hash: str) -> Account:
        if not isinstance(username, str) or not username.strip():
            raise InvalidInput("Username is required")
        username = username.strip()
        cash = self.starting_cash()

        with self.store.transaction() as store:
            if store.get_account_by_username(username) is not None:
                raise InvalidInput("Username already exists")
            account = store.create_account(Account(
                username=username,
                password_hash=password_hash,
                cash=cash,
                starting_cash=cash,
                created_at=self.clock(),
            ))
            self.record_portfolio_value(account.id, cash)

        logger.info(f"Created account {account.id} ({username}) with {cash} cash")
        return account

    def get_account(self, account_id: int) -> Account:
        account = self.store.get_account(account_id)
        if account is None:
            raise AccountNotFound(account_id)
        return account

    def get_account_by_username(self, username: str) -> Optional[Account]:
        return self.store.get_account_by_username(username)

    # Quotes

    def quote(self, symbol: str) -> Quote:
        """Single-symbol quote for pricing a trade; a miss is fatal to the request."""
        symbol = validate_watchlist_symbol(symbol)
        quote = self._fetch_quote(symbol)
        if quote is None:
            raise QuoteUnavailable(symbol)
        return quote

    def _fetch_quote(self, symbol: str) -> Optional[Quote]:
        if self.quote_provider is None:
            return None
        try:
            return self.quote_provider(symbol)
        except Exception as e:
            logger.warning(f"Quote provider failed for {symbol}: {e}")
            return None

    def _lookup_price(self, symbol: str, quotes: Optional[QuoteLookup]) -> Optional[Decimal]:
        if quotes is not None:
            found = quotes.get(symbol)
        else:
            found = self._fetch_quote(symbol)

        if found is None:
            return None
        price = found.current_price if isinstance(found, Quote) else Decimal(str(found))
        if price <= 0:
            return None
        return price

    # Valuation

    def refresh_positions(self, account_id: int, quotes: Optional[QuoteLookup] = None) -> List[Position]:
        """
        Re-price every stock position from current quotes.

        Args:
            account_id: Account whose positions to refresh
            quotes: Optional symbol -> price/Quote mapping. If None, quotes come
                    from the quote provider.

        Returns:
            The positions with refreshed prices. A symbol without a quote keeps
            its last stored price.
        """
        self.get_account(account_id)

        refreshed = []
        for position in self.store.get_positions(account_id):
            price = self._lookup_price(position.symbol, quotes)
            if price is None:
                logger.warning(f"No quote for {position.symbol}, keeping last price {position.current_price}")
            else:
                self.store.update_position_price(account_id, position.symbol, price)
                position = position.model_copy(update={'current_price': price})
            refreshed.append(position)

        return refreshed

    @staticmethod
    def summarize(
        account: Account,
        cash: Decimal,
        positions: List[Position],
        options: List[OptionPosition],
    ) -> PortfolioSummary:
        stocks_value = sum((p.total_value for p in positions), ZERO)
        options_value = sum((o.market_value for o in options), ZERO)
        total_value = cash + stocks_value + options_value

        total_profit_loss = total_value - account.starting_cash
        # Lifetime unrealized P&L of open stock positions
        day_change = sum((p.profit_loss for p in positions), ZERO)

        return PortfolioSummary(
            cash=cash,
            total_value=total_value,
            stocks_value=stocks_value,
            options_value=options_value,
            day_change=day_change,
            day_change_percent=percent_of(day_change, stocks_value),
            total_profit_loss=total_profit_loss,
            total_profit_loss_percent=percent_of(total_profit_loss, account.starting_cash),
        )

    def get_portfolio_summary(self, account_id: int, quotes: Optional[QuoteLookup] = None) -> PortfolioSummary:
        """Refresh prices, value the whole portfolio and record a history sample.

        Quotes are fetched before the transaction opens; the positions, cash
        and option lots are then read and the sample written as one unit.
        """
        self.get_account(account_id)
        prices = {
            position.symbol: self._lookup_price(position.symbol, quotes)
            for position in self.store.get_positions(account_id)
        }

        with self.store.transaction():
            account = self.get_account(account_id)
            positions = self.refresh_positions(account_id, prices)
            options = self.store.get_option_positions(account_id)
            cash = self.store.get_cash(account_id)

            summary = self.summarize(account, cash, positions, options)
            self.record_portfolio_value(account_id, summary.total_value)
        return summary

    # Trade settlement

    def execute_buy(self, account_id: int, symbol: str, quantity: int, price) -> Trade:
        symbol, quantity, price = validate_stock_order(symbol, quantity, price)
        total = trade_total(quantity, price)

        with self.store.transaction() as store:
            cash = store.get_cash(account_id)
            check_funds(cash, total)

            existing = store.get_position(account_id, symbol)
            if existing:
                average_price = weighted_average_price(existing.quantity, existing.average_price, quantity, price)
                new_quantity = existing.quantity + quantity
            else:
                average_price = price
                new_quantity = quantity

            store.set_cash(account_id, cash - total)
            store.upsert_position(account_id, symbol, new_quantity, average_price, price)
            trade = store.insert_trade(Trade(
                account_id=account_id,
                symbol=symbol,
                type="buy",
                quantity=quantity,
                price=price,
                total=total,
                timestamp=self.clock(),
            ))

        logger.info(f"Account {account_id} bought {quantity} {symbol} @ {price} (total {total})")
        return trade

    def execute_sell(self, account_id: int, symbol: str, quantity: int, price) -> Trade:
        symbol, quantity, price = validate_stock_order(symbol, quantity, price)
        total = trade_total(quantity, price)

        with self.store.transaction() as store:
            cash = store.get_cash(account_id)
            position = check_shares(store.get_position(account_id, symbol), symbol, quantity)

            store.set_cash(account_id, cash + total)
            remaining = position.quantity - quantity
            if remaining == 0:
                store.delete_position(account_id, symbol)
            else:
                # Cost basis is unchanged by a sell
                store.upsert_position(account_id, symbol, remaining, position.average_price, price)

            trade = store.insert_trade(Trade(
                account_id=account_id,
                symbol=symbol,
                type="sell",
                quantity=quantity,
                price=price,
                total=total,
                timestamp=self.clock(),
            ))

        logger.info(f"Account {account_id} sold {quantity} {symbol} @ {price} (total {total})")
        return trade

    def execute_option_trade(
        self,
        account_id: int,
        symbol: str,
        option_type: str,
        strike_price,
        expiration_date: str,
        contracts: int,
        premium,
        action: str,
    ) -> OptionTrade:
        """
        Buy or sell option contracts at a caller-supplied premium.

        A buy debits cash and opens a new lot. A sell credits the premium
        without checking or reducing any held lot.
        """
        (symbol, option_type, strike_price, expiration_date,
         contracts, premium, action) = validate_option_order(
            symbol, option_type, strike_price, expiration_date, contracts, premium, action
        )
        total = option_trade_total(contracts, premium)

        with self.store.transaction() as store:
            cash = store.get_cash(account_id)
            if action == "buy":
                check_funds(cash, total)
                store.set_cash(account_id, cash - total)
                store.add_option_position(OptionPosition(
                    account_id=account_id,
                    symbol=symbol,
                    option_type=option_type,
                    strike_price=strike_price,
                    expiration_date=expiration_date,
                    contracts=contracts,
                    premium=premium,
                    current_premium=premium,
                ))
            else:
                store.set_cash(account_id, cash + total)

            trade = store.insert_option_trade(OptionTrade(
                account_id=account_id,
                symbol=symbol,
                option_type=option_type,
                strike_price=strike_price,
                expiration_date=expiration_date,
                contracts=contracts,
                premium=premium,
                total=total,
                action=action,
                timestamp=self.clock(),
            ))

        logger.info(
            f"Account {account_id} {action} {contracts} {symbol} {strike_price} {option_type} "
            f"{expiration_date} @ {premium} (total {total})"
        )
        return trade

    def update_option_position(self, account_id: int, option_id: int, current_premium) -> Optional[OptionPosition]:
        """Set a lot's current premium. Not exposed to users; premiums are static otherwise."""
        current_premium = validate_premium(current_premium)
        return self.store.update_option_premium(account_id, option_id, current_premium)

    def delete_option_position(self, account_id: int, option_id: int) -> None:
        self.store.delete_option_position(account_id, option_id)

    # Accessors

    def get_cash(self, account_id: int) -> Decimal:
        return self.store.get_cash(account_id)

    def get_positions(self, account_id: int) -> List[Position]:
        return self.store.get_positions(account_id)

    def get_option_positions(self, account_id: int) -> List[OptionPosition]:
        return self.store.get_option_positions(account_id)

    def get_trades(self, account_id: int) -> List[Trade]:
        return self.store.list_trades(account_id)

    def get_option_trades(self, account_id: int) -> List[OptionTrade]:
        return self.store.list_option_trades(account_id)

    def get_watchlist(self, account_id: int) -> List[WatchlistItem]:
        return self.store.get_watchlist(account_id)

    def add_to_watchlist(self, account_id: int, symbol: str, name: Optional[str] = None) -> WatchlistItem:
        symbol = validate_watchlist_symbol(symbol)
        return self.store.add_to_watchlist(WatchlistItem(
            account_id=account_id,
            symbol=symbol,
            name=name or symbol,
            added_at=self.clock(),
        ))

    def remove_from_watchlist(self, account_id: int, symbol: str) -> None:
        self.store.remove_from_watchlist(account_id, validate_watchlist_symbol(symbol))

    # Portfolio history

    def record_portfolio_value(self, account_id: int, value: Decimal) -> None:
        """Sample the portfolio value, coalescing bursts and capping the series length."""
        now = self.clock()
        with self.store.transaction() as store:
            if store.get_account(account_id) is None:
                raise AccountNotFound(account_id)
            latest = store.get_latest_history_point(account_id)
            if plan_sample(latest, now, self.settings.history_interval) == OVERWRITE:
                store.overwrite_history_point(account_id, latest.id, value)
            else:
                store.append_history_point(PortfolioHistoryPoint(
                    account_id=account_id,
                    timestamp=now,
                    value=value,
                ))
            store.trim_history(account_id, self.settings.history_max_points)

    def get_portfolio_history(self, account_id: int) -> List[PortfolioHistoryPoint]:
        return self.store.list_history(account_id)

    # Social

    def get_leaderboard(self) -> List[LeaderboardEntry]:
        """Rank accounts by total value using stored prices (no quote calls, no history writes)."""
        entries = []
        for account in self.store.list_accounts():
            summary = self.summarize(
                account,
                account.cash,
                self.store.get_positions(account.id),
                self.store.get_option_positions(account.id),
            )
            entries.append(LeaderboardEntry(
                id=account.id,
                username=account.username,
                total_value=summary.total_value,
                total_profit_loss=summary.total_profit_loss,
                total_profit_loss_percent=summary.total_profit_loss_percent,
                trades_count=self.store.count_trades(account.id),
            ))

        return sorted(entries, key=lambda e: e.total_value, reverse=True)

    def get_activity_feed(self, limit: int = 50) -> List[FeedItem]:
        return self.store.list_recent_trades(limit)
