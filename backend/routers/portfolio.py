"""
Portfolio router
"""
from fastapi import APIRouter, Depends
from typing import List

from papertrader.models import PortfolioHistoryPoint, PortfolioSummary, Position
from papertrader.valuation import ValuationEngine
from backend.dependencies import get_engine
from backend.routers.auth import get_current_user

router = APIRouter()


@router.get("/portfolio", response_model=PortfolioSummary)
def get_portfolio(
    account_id: int = Depends(get_current_user),
    engine: ValuationEngine = Depends(get_engine),
):
    """Value the portfolio at current quotes and record a chart sample"""
    return engine.get_portfolio_summary(account_id)


@router.get("/portfolio/history", response_model=List[PortfolioHistoryPoint])
async def get_portfolio_history(
    account_id: int = Depends(get_current_user),
    engine: ValuationEngine = Depends(get_engine),
):
    """Portfolio value history for the chart, oldest first"""
    return engine.get_portfolio_history(account_id)


@router.get("/positions", response_model=List[Position])
def get_positions(
    account_id: int = Depends(get_current_user),
    engine: ValuationEngine = Depends(get_engine),
):
    """Stock positions re-priced at current quotes"""
    return engine.refresh_positions(account_id)
