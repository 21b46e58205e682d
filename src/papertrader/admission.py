"""
Trade admission policy

Input validation is pure and runs before any store access. The sufficiency
checks are called by the valuation engine inside its store transaction, so
every trade path goes through them.
"""
from decimal import Decimal, InvalidOperation
from typing import Optional, Tuple

from .errors import InsufficientFunds, InsufficientShares, InvalidInput
from .models import Position

MAX_SYMBOL_LENGTH = 20  # room for exchange-prefixed crypto symbols
MAX_EXPIRATION_LENGTH = 20
OPTION_TYPES = ("call", "put")
ACTIONS = ("buy", "sell")


def normalize_symbol(symbol) -> str:
    if not isinstance(symbol, str):
        raise InvalidInput("Symbol must be a string")
    symbol = symbol.strip().upper()
    if not 1 <= len(symbol) <= MAX_SYMBOL_LENGTH:
        raise InvalidInput(f"Symbol must be 1-{MAX_SYMBOL_LENGTH} characters")
    return symbol


def _positive_int(value, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidInput(f"{field} must be a whole number")
    if value <= 0:
        raise InvalidInput(f"{field} must be positive")
    return value


def _positive_decimal(value, field: str) -> Decimal:
    if isinstance(value, bool) or not isinstance(value, (int, float, str, Decimal)):
        raise InvalidInput(f"{field} must be a number")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except InvalidOperation:
        raise InvalidInput(f"{field} must be a number")
    if not amount.is_finite() or amount <= 0:
        raise InvalidInput(f"{field} must be positive")
    return amount


def validate_stock_order(symbol, quantity, price) -> Tuple[str, int, Decimal]:
    """Validate a buy/sell request. Returns (symbol, quantity, price) normalized."""
    return (
        normalize_symbol(symbol),
        _positive_int(quantity, "Quantity"),
        _positive_decimal(price, "Price"),
    )


def validate_option_order(
    symbol,
    option_type,
    strike_price,
    expiration_date,
    contracts,
    premium,
    action,
) -> Tuple[str, str, Decimal, str, int, Decimal, str]:
    """Validate an option trade request. Returns the normalized fields in order."""
    symbol = normalize_symbol(symbol)

    if option_type not in OPTION_TYPES:
        raise InvalidInput("Option type must be 'call' or 'put'")
    if action not in ACTIONS:
        raise InvalidInput("Action must be 'buy' or 'sell'")

    if not isinstance(expiration_date, str) or not expiration_date.strip():
        raise InvalidInput("Expiration date is required")
    expiration_date = expiration_date.strip()
    if len(expiration_date) > MAX_EXPIRATION_LENGTH:
        raise InvalidInput("Expiration date is too long")

    return (
        symbol,
        option_type,
        _positive_decimal(strike_price, "Strike price"),
        expiration_date,
        _positive_int(contracts, "Contracts"),
        _positive_decimal(premium, "Premium"),
        action,
    )


def validate_watchlist_symbol(symbol) -> str:
    return normalize_symbol(symbol)


def validate_premium(premium) -> Decimal:
    return _positive_decimal(premium, "Premium")


def validate_starting_cash(value) -> Decimal:
    return _positive_decimal(value, "Starting cash")


def check_funds(cash: Decimal, total: Decimal) -> None:
    if total > cash:
        raise InsufficientFunds(required=total, available=cash)


def check_shares(position: Optional[Position], symbol: str, quantity: int) -> Position:
    held = position.quantity if position else 0
    if position is None or held < quantity:
        raise InsufficientShares(symbol, quantity, held)
    return position
