"""
Configuration router
"""
from fastapi import APIRouter, Depends
from pydantic import BaseModel

from papertrader.models import Money
from papertrader.valuation import ValuationEngine
from backend.dependencies import get_engine, get_settings
from backend.routers.auth import get_current_user

router = APIRouter()


class StartingCash(BaseModel):
    value: Money


class StorageConfig(BaseModel):
    storage: str
    db_path: str


@router.get("/storage", response_model=StorageConfig)
async def get_storage_config(current_user: int = Depends(get_current_user)):
    """Get the active ledger store backend"""
    settings = get_settings()
    return StorageConfig(storage=settings.storage, db_path=settings.db_path)


@router.get("/starting-cash", response_model=StartingCash)
async def get_starting_cash(
    current_user: int = Depends(get_current_user),
    engine: ValuationEngine = Depends(get_engine),
):
    """Cash credited to newly registered accounts"""
    return StartingCash(value=engine.starting_cash())


@router.post("/starting-cash", response_model=StartingCash)
async def set_starting_cash(
    config: StartingCash,
    current_user: int = Depends(get_current_user),
    engine: ValuationEngine = Depends(get_engine),
):
    """Set starting cash for future accounts; 400 unless positive"""
    return StartingCash(value=engine.set_starting_cash(config.value))
