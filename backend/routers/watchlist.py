"""
Watchlist router
"""
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from typing import List, Optional

from market_data import get_company_profile
from papertrader.admission import validate_watchlist_symbol
from papertrader.errors import TradingError
from papertrader.models import Quote, WatchlistItem
from papertrader.valuation import ValuationEngine
from backend.dependencies import get_engine
from backend.routers.auth import get_current_user

router = APIRouter()


class WatchlistRequest(BaseModel):
    symbol: str


class WatchlistEntry(WatchlistItem):
    quote: Optional[Quote] = None


@router.get("", response_model=List[WatchlistEntry])
def get_watchlist(
    account_id: int = Depends(get_current_user),
    engine: ValuationEngine = Depends(get_engine),
):
    """Watchlist with a quote per symbol (null when unavailable)"""
    entries = []
    for item in engine.get_watchlist(account_id):
        try:
            quote = engine.quote(item.symbol)
        except TradingError:
            quote = None
        entries.append(WatchlistEntry(**item.model_dump(), quote=quote))
    return entries


@router.post("", response_model=WatchlistItem)
def add_to_watchlist(
    request: WatchlistRequest,
    account_id: int = Depends(get_current_user),
    engine: ValuationEngine = Depends(get_engine),
):
    """Add a symbol, named after its company profile when one exists"""
    symbol = validate_watchlist_symbol(request.symbol)
    profile = get_company_profile(symbol)
    name = profile.name if profile else symbol
    return engine.add_to_watchlist(account_id, symbol, name)


@router.delete("/{symbol}")
async def remove_from_watchlist(
    symbol: str,
    account_id: int = Depends(get_current_user),
    engine: ValuationEngine = Depends(get_engine),
):
    engine.remove_from_watchlist(account_id, symbol)
    return {"success": True}
