import pandas as pd
from typing import Dict, List, Optional
from .calculations import cost_basis
from .models import OptionTrade, PortfolioHistoryPoint, Trade


def trades_to_dataframe(trades: List[Trade]) -> pd.DataFrame:
    """Convert list of stock trades to pandas DataFrame."""
    if not trades:
        return pd.DataFrame()

    data = []
    for trade in trades:
        data.append(
            {
                "id": trade.id,
                "symbol": trade.symbol,
                "type": trade.type,
                "quantity": trade.quantity,
                "price": float(trade.price),
                "total": float(trade.total),
                "timestamp": trade.timestamp,
            }
        )

    return pd.DataFrame(data)


def option_trades_to_dataframe(trades: List[OptionTrade]) -> pd.DataFrame:
    """Convert list of option trades to pandas DataFrame."""
    if not trades:
        return pd.DataFrame()

    data = []
    for trade in trades:
        data.append(
            {
                "id": trade.id,
                "symbol": trade.symbol,
                "option_type": trade.option_type,
                "strike_price": float(trade.strike_price),
                "expiration_date": trade.expiration_date,
                "contracts": trade.contracts,
                "premium": float(trade.premium),
                "total": float(trade.total),
                "action": trade.action,
                "timestamp": trade.timestamp,
            }
        )

    return pd.DataFrame(data)


def realized_pnl_by_symbol(trades: List[Trade]) -> pd.DataFrame:
    """
    Realized P&L per symbol, derived by replaying the stock trade ledger.

    Returns:
        DataFrame with columns symbol, shares, average_price, realized_pnl,
        bought, sold; sorted by symbol.
    """
    columns = ["symbol", "shares", "average_price", "realized_pnl", "bought", "sold"]
    if not trades:
        return pd.DataFrame(columns=columns)

    rows = []
    for symbol in sorted(set(t.symbol for t in trades)):
        basis = cost_basis([t for t in trades if t.symbol == symbol])
        rows.append(
            {
                "symbol": symbol,
                "shares": basis["shares"],
                "average_price": float(basis["average_price"]),
                "realized_pnl": float(basis["realized_pnl"]),
                "bought": float(basis["bought"]),
                "sold": float(basis["sold"]),
            }
        )

    return pd.DataFrame(rows, columns=columns)


def monthly_option_cash_flow(df: pd.DataFrame) -> pd.Series:
    """Net option premium by month (sells positive, buys negative)."""
    if df.empty:
        return pd.Series(dtype=float)

    flows = df.copy()
    flows["cash_flow"] = flows["total"].where(flows["action"] == "sell", -flows["total"])
    flows["month"] = pd.to_datetime(flows["timestamp"]).dt.to_period("M")

    return flows.groupby("month")["cash_flow"].sum()


def monthly_stock_cash_flow(df: pd.DataFrame) -> pd.Series:
    """Net cash from stock trades by month (sells positive, buys negative)."""
    if df.empty:
        return pd.Series(dtype=float)

    flows = df.copy()
    flows["cash_flow"] = flows["total"].where(flows["type"] == "sell", -flows["total"])
    flows["month"] = pd.to_datetime(flows["timestamp"]).dt.to_period("M")

    return flows.groupby("month")["cash_flow"].sum()


def history_to_series(points: List[PortfolioHistoryPoint]) -> pd.Series:
    """Portfolio value series indexed by timestamp."""
    if not points:
        return pd.Series(dtype=float)

    series = pd.Series(
        [float(p.value) for p in points],
        index=pd.DatetimeIndex([p.timestamp for p in points]),
        name="value",
    )
    return series.sort_index()


def history_stats(points: List[PortfolioHistoryPoint]) -> Dict[str, Optional[float]]:
    """
    Summary statistics of the sampled portfolio value series.

    Returns:
        dict with start_value, end_value, high, low, change, change_percent
        and max_drawdown (percent, negative or zero). Values are None when
        there is no history.
    """
    series = history_to_series(points)
    if series.empty:
        return {
            "points": 0,
            "start_value": None,
            "end_value": None,
            "high": None,
            "low": None,
            "change": None,
            "change_percent": None,
            "max_drawdown": None,
        }

    start = series.iloc[0]
    end = series.iloc[-1]
    running_max = series.cummax()
    drawdown = (series - running_max) / running_max * 100

    return {
        "points": int(len(series)),
        "start_value": float(start),
        "end_value": float(end),
        "high": float(series.max()),
        "low": float(series.min()),
        "change": float(end - start),
        "change_percent": float((end - start) / start * 100) if start else 0.0,
        "max_drawdown": float(drawdown.min()),
    }
