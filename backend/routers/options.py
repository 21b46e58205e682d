"""
Options router
"""
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from typing import List

from papertrader.models import OptionPosition, OptionTrade
from papertrader.valuation import ValuationEngine
from backend.dependencies import get_engine
from backend.routers.auth import get_current_user

router = APIRouter()


class OptionTradeRequest(BaseModel):
    symbol: str
    option_type: str  # "call" or "put"
    strike_price: float
    expiration_date: str
    contracts: int
    premium: float
    action: str  # "buy" or "sell"


@router.post("/trade", response_model=OptionTrade)
async def trade_option(
    order: OptionTradeRequest,
    account_id: int = Depends(get_current_user),
    engine: ValuationEngine = Depends(get_engine),
):
    """Buy or sell option contracts"""
    return engine.execute_option_trade(
        account_id,
        order.symbol,
        order.option_type,
        order.strike_price,
        order.expiration_date,
        order.contracts,
        order.premium,
        order.action,
    )


@router.get("", response_model=List[OptionPosition])
async def list_option_positions(
    account_id: int = Depends(get_current_user),
    engine: ValuationEngine = Depends(get_engine),
):
    """List open option lots"""
    return engine.get_option_positions(account_id)


@router.get("/trades", response_model=List[OptionTrade])
async def list_option_trades(
    account_id: int = Depends(get_current_user),
    engine: ValuationEngine = Depends(get_engine),
):
    return engine.get_option_trades(account_id)
