"""
Application settings

All settings come from environment variables so the API server, tests and
scripts can point at different databases without code changes.
"""
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import List, Optional
import logging
import os

logger = logging.getLogger(__name__)

DEFAULT_STARTING_CASH = Decimal("100000")
DEFAULT_HISTORY_INTERVAL = 60  # seconds
DEFAULT_HISTORY_MAX_POINTS = 100
DEFAULT_DB_PATH = "papertrader.db"

STORAGE_SQLITE = "sqlite"
STORAGE_MEMORY = "memory"


def _env_decimal(name: str, default: Decimal) -> Decimal:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = Decimal(raw)
    except InvalidOperation:
        logger.warning(f"Ignoring invalid {name}={raw!r}, using {default}")
        return default
    if value <= 0:
        logger.warning(f"Ignoring non-positive {name}={raw!r}, using {default}")
        return default
    return value


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning(f"Ignoring invalid {name}={raw!r}, using {default}")
        return default
    if value <= 0:
        logger.warning(f"Ignoring non-positive {name}={raw!r}, using {default}")
        return default
    return value


def _parse_cors_origins() -> List[str]:
    """Parse comma separated CORS_ORIGINS, defaulting to the local dev servers."""
    origins = os.getenv("PAPERTRADER_CORS_ORIGINS", "")
    if origins:
        return [o.strip() for o in origins.split(",") if o.strip()]
    return ["http://localhost:3000", "http://localhost:5173"]


@dataclass
class Settings:
    storage: str = STORAGE_SQLITE
    db_path: str = DEFAULT_DB_PATH
    starting_cash: Decimal = DEFAULT_STARTING_CASH
    history_interval: int = DEFAULT_HISTORY_INTERVAL
    history_max_points: int = DEFAULT_HISTORY_MAX_POINTS
    log_level: str = "INFO"
    cors_origins: List[str] = field(default_factory=_parse_cors_origins)
    finnhub_api_key: Optional[str] = None

    @classmethod
    def from_env(cls) -> "Settings":
        storage = os.getenv("PAPERTRADER_STORAGE", STORAGE_SQLITE).lower()
        if storage not in (STORAGE_SQLITE, STORAGE_MEMORY):
            logger.warning(f"Unknown PAPERTRADER_STORAGE={storage!r}, using {STORAGE_SQLITE}")
            storage = STORAGE_SQLITE

        return cls(
            storage=storage,
            db_path=os.getenv("PAPERTRADER_DB_PATH", DEFAULT_DB_PATH),
            starting_cash=_env_decimal("PAPERTRADER_STARTING_CASH", DEFAULT_STARTING_CASH),
            history_interval=_env_int("PAPERTRADER_HISTORY_INTERVAL", DEFAULT_HISTORY_INTERVAL),
            history_max_points=_env_int("PAPERTRADER_HISTORY_MAX_POINTS", DEFAULT_HISTORY_MAX_POINTS),
            log_level=os.getenv("PAPERTRADER_LOG_LEVEL", "INFO").upper(),
            cors_origins=_parse_cors_origins(),
            finnhub_api_key=os.getenv("FINNHUB_API_KEY") or None,
        )
