"""
Social router: leaderboard and public activity feed
"""
from fastapi import APIRouter, Depends, Query
from typing import List

from papertrader.models import FeedItem, LeaderboardEntry
from papertrader.valuation import ValuationEngine
from backend.dependencies import get_engine
from backend.routers.auth import get_current_user

router = APIRouter()


@router.get("/leaderboard", response_model=List[LeaderboardEntry])
async def leaderboard(
    current_user: int = Depends(get_current_user),
    engine: ValuationEngine = Depends(get_engine),
):
    """All accounts ranked by total value"""
    return engine.get_leaderboard()


@router.get("/feed", response_model=List[FeedItem])
async def feed(
    limit: int = Query(50, ge=1, le=200),
    current_user: int = Depends(get_current_user),
    engine: ValuationEngine = Depends(get_engine),
):
    """Most recent trades across all accounts"""
    return engine.get_activity_feed(limit)
