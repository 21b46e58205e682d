"""
Stock trades router
"""
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from typing import List

from papertrader.models import Trade
from papertrader.valuation import ValuationEngine
from backend.dependencies import get_engine
from backend.routers.auth import get_current_user

router = APIRouter()


class TradeRequest(BaseModel):
    symbol: str
    quantity: int
    price: float


@router.get("", response_model=List[Trade])
async def list_trades(
    account_id: int = Depends(get_current_user),
    engine: ValuationEngine = Depends(get_engine),
):
    """List the account's trades, most recent first"""
    return engine.get_trades(account_id)


@router.post("/buy", response_model=Trade)
async def buy(
    order: TradeRequest,
    account_id: int = Depends(get_current_user),
    engine: ValuationEngine = Depends(get_engine),
):
    """Buy shares at the submitted price"""
    return engine.execute_buy(account_id, order.symbol, order.quantity, order.price)


@router.post("/sell", response_model=Trade)
async def sell(
    order: TradeRequest,
    account_id: int = Depends(get_current_user),
    engine: ValuationEngine = Depends(get_engine),
):
    """Sell held shares at the submitted price"""
    return engine.execute_sell(account_id, order.symbol, order.quantity, order.price)
