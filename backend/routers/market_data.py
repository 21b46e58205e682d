"""
Market data router
"""
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from typing import List, Optional

from market_data import get_company_profile, search_symbols, get_data_source
from papertrader.admission import normalize_symbol
from papertrader.models import CompanyProfile, Quote
from papertrader.valuation import ValuationEngine
from backend.dependencies import get_engine
from backend.routers.auth import get_current_user

router = APIRouter()


class SymbolMatch(BaseModel):
    symbol: str
    description: str


class DataSourceResponse(BaseModel):
    data_source: str
    delay: str


@router.get("/quote/{symbol}", response_model=Quote)
def get_quote(
    symbol: str,
    current_user: int = Depends(get_current_user),
    engine: ValuationEngine = Depends(get_engine),
):
    """Get current quote; 404 when the symbol is unknown"""
    return engine.quote(symbol)


@router.get("/profile/{symbol}", response_model=CompanyProfile)
def get_profile(symbol: str, current_user: int = Depends(get_current_user)):
    """Get company profile"""
    profile = get_company_profile(normalize_symbol(symbol))
    if not profile:
        raise HTTPException(status_code=404, detail="Company not found")
    return profile


@router.get("/search", response_model=List[SymbolMatch])
def search(q: Optional[str] = None, current_user: int = Depends(get_current_user)):
    """Search stock and crypto symbols"""
    if not q:
        return []
    return search_symbols(q)


@router.get("/data-source", response_model=DataSourceResponse)
async def data_source(current_user: int = Depends(get_current_user)):
    source = get_data_source()
    delay = "real-time" if source == "finnhub" else "15-20 min"
    return DataSourceResponse(data_source=source, delay=delay)
