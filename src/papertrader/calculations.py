from decimal import Decimal
from typing import Dict, Iterable

ZERO = Decimal("0")
HUNDRED = Decimal("100")
CONTRACT_MULTIPLIER = 100  # shares per option contract


def trade_total(quantity: int, price: Decimal) -> Decimal:
    return Decimal(quantity) * price


def option_trade_total(contracts: int, premium: Decimal) -> Decimal:
    return Decimal(contracts) * premium * CONTRACT_MULTIPLIER


def percent_of(amount: Decimal, base: Decimal) -> Decimal:
    """amount / base * 100, defined as 0 when base is 0."""
    if base == 0:
        return ZERO
    return amount / base * HUNDRED


def weighted_average_price(
    old_quantity: int,
    old_average: Decimal,
    quantity: int,
    price: Decimal,
) -> Decimal:
    """
    Average cost basis after adding `quantity` shares at `price` to an
    existing holding.

    Returns:
        (old_qty * old_avg + qty * price) / (old_qty + qty)
    """
    total_shares = old_quantity + quantity
    if total_shares <= 0:
        raise ValueError("Resulting share quantity must be positive")
    total_cost = Decimal(old_quantity) * old_average + Decimal(quantity) * price
    return total_cost / Decimal(total_shares)


def position_metrics(quantity: int, average_price: Decimal, current_price: Decimal) -> Dict[str, Decimal]:
    """
    Value and unrealized P&L of a stock position at `current_price`.

    Returns:
        dict with keys:
        - total_value: quantity * current_price
        - cost_basis: quantity * average_price
        - profit_loss: total_value - cost_basis
        - profit_loss_percent: profit_loss / cost_basis * 100 (0 for zero basis)
    """
    total_value = Decimal(quantity) * current_price
    basis = Decimal(quantity) * average_price
    profit_loss = total_value - basis

    return {
        'total_value': total_value,
        'cost_basis': basis,
        'profit_loss': profit_loss,
        'profit_loss_percent': percent_of(profit_loss, basis),
    }


def option_market_value(current_premium: Decimal, contracts: int) -> Decimal:
    return current_premium * Decimal(contracts) * CONTRACT_MULTIPLIER


def option_profit_loss(premium: Decimal, current_premium: Decimal, contracts: int) -> Decimal:
    return (current_premium - premium) * Decimal(contracts) * CONTRACT_MULTIPLIER


def cost_basis(trades: Iterable) -> Dict[str, Decimal]:
    """
    Replay a symbol's stock trade ledger in timestamp order.

    Buys average into the cost basis, sells leave it unchanged and realize
    quantity * (price - average_price).

    Returns:
        dict with keys:
        - shares: shares held after the last trade
        - average_price: cost basis per share of the remaining shares
        - realized_pnl: profit/loss realized by sells
        - bought: total amount spent on buys
        - sold: total proceeds from sells
    """
    shares = 0
    average = ZERO
    realized = ZERO
    bought = ZERO
    sold = ZERO

    for trade in sorted(trades, key=lambda t: (t.timestamp, t.id or 0)):
        if trade.type == "buy":
            average = weighted_average_price(shares, average, trade.quantity, trade.price)
            shares += trade.quantity
            bought += trade.total
        elif trade.type == "sell":
            # Sells never exceed holdings in a ledger produced by the engine
            sold_qty = min(trade.quantity, shares)
            realized += Decimal(sold_qty) * (trade.price - average)
            shares -= sold_qty
            sold += trade.total
            if shares == 0:
                average = ZERO

    return {
        'shares': shares,
        'average_price': average,
        'realized_pnl': realized,
        'bought': bought,
        'sold': sold,
    }
