from pydantic import BaseModel, Field, PlainSerializer, computed_field
from datetime import datetime
from decimal import Decimal
from typing import Annotated, Optional

from .calculations import (
    ZERO,
    option_market_value,
    option_profit_loss,
    position_metrics,
)

# Decimal internally, plain JSON number on the wire
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


class Account(BaseModel):
    id: Optional[int] = None
    username: str
    password_hash: str = Field(default="", exclude=True)
    cash: Money
    starting_cash: Money
    created_at: datetime


class Position(BaseModel):
    id: Optional[int] = None
    account_id: int
    symbol: str
    quantity: int
    average_price: Money
    current_price: Money

    @computed_field
    @property
    def total_value(self) -> Money:
        return position_metrics(self.quantity, self.average_price, self.current_price)['total_value']

    @computed_field
    @property
    def profit_loss(self) -> Money:
        return position_metrics(self.quantity, self.average_price, self.current_price)['profit_loss']

    @computed_field
    @property
    def profit_loss_percent(self) -> Money:
        return position_metrics(self.quantity, self.average_price, self.current_price)['profit_loss_percent']


class OptionPosition(BaseModel):
    id: Optional[int] = None
    account_id: int
    symbol: str
    option_type: str  # "call" or "put"
    strike_price: Money
    expiration_date: str
    contracts: int
    premium: Money  # entry premium per share
    current_premium: Money

    @computed_field
    @property
    def market_value(self) -> Money:
        return option_market_value(self.current_premium, self.contracts)

    @computed_field
    @property
    def profit_loss(self) -> Money:
        return option_profit_loss(self.premium, self.current_premium, self.contracts)


class Trade(BaseModel):
    id: Optional[int] = None
    account_id: int
    symbol: str
    type: str  # "buy" or "sell"
    quantity: int
    price: Money
    total: Money
    timestamp: datetime


class OptionTrade(BaseModel):
    id: Optional[int] = None
    account_id: int
    symbol: str
    option_type: str  # "call" or "put"
    strike_price: Money
    expiration_date: str
    contracts: int
    premium: Money
    total: Money
    action: str  # "buy" or "sell"
    timestamp: datetime


class WatchlistItem(BaseModel):
    account_id: int
    symbol: str
    name: str
    added_at: datetime


class PortfolioHistoryPoint(BaseModel):
    id: Optional[int] = None
    account_id: int
    timestamp: datetime
    value: Money


class PortfolioSummary(BaseModel):
    cash: Money
    total_value: Money
    stocks_value: Money
    options_value: Money
    # Lifetime unrealized P&L of stock positions, not a prior-close delta
    day_change: Money = ZERO
    day_change_percent: Money = ZERO
    total_profit_loss: Money = ZERO
    total_profit_loss_percent: Money = ZERO


class Quote(BaseModel):
    symbol: str
    current_price: Money
    change: Money = ZERO
    change_percent: Money = ZERO
    high: Money = ZERO
    low: Money = ZERO
    open: Money = ZERO
    previous_close: Money = ZERO
    timestamp: datetime


class CompanyProfile(BaseModel):
    symbol: str
    name: str
    exchange: str = ""
    industry: str = ""
    logo: str = ""
    weburl: str = ""


class LeaderboardEntry(BaseModel):
    id: int
    username: str
    total_value: Money
    total_profit_loss: Money
    total_profit_loss_percent: Money
    trades_count: int


class FeedItem(Trade):
    username: str
