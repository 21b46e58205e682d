"""
Analytics router
"""
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from typing import List, Optional

from papertrader.analytics import (
    history_stats,
    monthly_option_cash_flow,
    monthly_stock_cash_flow,
    option_trades_to_dataframe,
    realized_pnl_by_symbol,
    trades_to_dataframe,
)
from papertrader.valuation import ValuationEngine
from backend.dependencies import get_engine
from backend.routers.auth import get_current_user

router = APIRouter()


class RealizedPnl(BaseModel):
    symbol: str
    shares: int
    average_price: float
    realized_pnl: float
    bought: float
    sold: float


class HistoryStats(BaseModel):
    points: int
    start_value: Optional[float]
    end_value: Optional[float]
    high: Optional[float]
    low: Optional[float]
    change: Optional[float]
    change_percent: Optional[float]
    max_drawdown: Optional[float]


class MonthlyCashFlow(BaseModel):
    month: str
    cash_flow: float


@router.get("/realized-pnl", response_model=List[RealizedPnl])
async def get_realized_pnl(
    account_id: int = Depends(get_current_user),
    engine: ValuationEngine = Depends(get_engine),
):
    """Realized P&L per symbol from the stock trade ledger"""
    df = realized_pnl_by_symbol(engine.get_trades(account_id))
    return df.to_dict("records")


@router.get("/history-stats", response_model=HistoryStats)
async def get_history_stats(
    account_id: int = Depends(get_current_user),
    engine: ValuationEngine = Depends(get_engine),
):
    """Summary of the sampled portfolio value series"""
    return history_stats(engine.get_portfolio_history(account_id))


@router.get("/option-cash-flow", response_model=List[MonthlyCashFlow])
async def get_option_cash_flow(
    account_id: int = Depends(get_current_user),
    engine: ValuationEngine = Depends(get_engine),
):
    """Net option premium received per month"""
    df = option_trades_to_dataframe(engine.get_option_trades(account_id))
    monthly = monthly_option_cash_flow(df)
    return [
        MonthlyCashFlow(month=str(month), cash_flow=float(value))
        for month, value in monthly.items()
    ]


@router.get("/stock-cash-flow", response_model=List[MonthlyCashFlow])
async def get_stock_cash_flow(
    account_id: int = Depends(get_current_user),
    engine: ValuationEngine = Depends(get_engine),
):
    """Net cash from stock buys and sells per month"""
    df = trades_to_dataframe(engine.get_trades(account_id))
    monthly = monthly_stock_cash_flow(df)
    return [
        MonthlyCashFlow(month=str(month), cash_flow=float(value))
        for month, value in monthly.items()
    ]
