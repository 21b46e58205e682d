"""
FastAPI backend for Paper Trader
"""
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging
import traceback

from papertrader.errors import TradingError
from backend.dependencies import get_engine, get_settings
from backend.routers import (
    analytics,
    auth,
    config,
    market_data,
    options,
    portfolio,
    social,
    trades,
    watchlist,
)

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Paper Trader API",
    description="Simulated stock, crypto and options trading with virtual cash",
    version="1.0.0"
)


@app.on_event("startup")
async def startup_event():
    """
    Build the valuation engine and its ledger store on startup.

    The SQLite store creates missing tables with CREATE TABLE IF NOT EXISTS,
    so this is idempotent against an existing database file.
    """
    engine = app.dependency_overrides.get(get_engine, get_engine)()
    logger.info(f"Ledger store ready: {type(engine.store).__name__}")


@app.exception_handler(TradingError)
async def trading_error_handler(request: Request, exc: TradingError):
    """Domain errors carry their own status code"""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.message,
            "type": type(exc).__name__,
        }
    )


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle all unhandled exceptions"""
    logger.error(f"Unhandled exception: {traceback.format_exc()}")

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal server error",
            "type": type(exc).__name__,
        }
    )

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
app.include_router(market_data.router, prefix="/api", tags=["market-data"])
app.include_router(portfolio.router, prefix="/api", tags=["portfolio"])
app.include_router(trades.router, prefix="/api/trades", tags=["trades"])
app.include_router(options.router, prefix="/api/options", tags=["options"])
app.include_router(watchlist.router, prefix="/api/watchlist", tags=["watchlist"])
app.include_router(social.router, prefix="/api/social", tags=["social"])
app.include_router(analytics.router, prefix="/api/analytics", tags=["analytics"])
app.include_router(config.router, prefix="/api/config", tags=["config"])


@app.get("/")
async def root():
    return {"message": "Paper Trader API", "version": "1.0.0"}


@app.get("/api/health")
async def health():
    return {"status": "healthy"}
