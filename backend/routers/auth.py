"""
Authentication router
"""
from fastapi import APIRouter, HTTPException, Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic import BaseModel
import bcrypt
import secrets

from papertrader.models import Account
from papertrader.valuation import ValuationEngine
from backend.dependencies import get_engine

router = APIRouter()
security = HTTPBearer()

# bcrypt only looks at the first 72 bytes of a password
MAX_PASSWORD_BYTES = 72


def hash_password(password: str) -> str:
    """Hash a password with a fresh bcrypt salt"""
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def verify_password(password: str, stored: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode(), stored.encode())
    except ValueError:
        return False


class Credentials(BaseModel):
    username: str
    password: str


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    username: str
    account_id: int


# Simple token storage (in production, use JWT or similar)
TOKENS = {}


def _issue_token(account: Account) -> LoginResponse:
    token = secrets.token_urlsafe(32)
    TOKENS[token] = account.id
    return LoginResponse(access_token=token, username=account.username, account_id=account.id)


@router.post("/register", response_model=LoginResponse)
async def register(credentials: Credentials, engine: ValuationEngine = Depends(get_engine)):
    """Create an account with the starting cash and log it in"""
    if len(credentials.password) < 6:
        raise HTTPException(status_code=400, detail="Password must be at least 6 characters")
    if len(credentials.password.encode()) > MAX_PASSWORD_BYTES:
        raise HTTPException(status_code=400, detail=f"Password must be at most {MAX_PASSWORD_BYTES} bytes")

    account = engine.create_account(credentials.username, hash_password(credentials.password))
    return _issue_token(account)


@router.post("/login", response_model=LoginResponse)
async def login(credentials: Credentials, engine: ValuationEngine = Depends(get_engine)):
    """Authenticate user and return token"""
    account = engine.get_account_by_username(credentials.username.strip())

    if account and verify_password(credentials.password, account.password_hash):
        return _issue_token(account)

    raise HTTPException(status_code=401, detail="Invalid username or password")


@router.post("/logout")
async def logout(credentials: HTTPAuthorizationCredentials = Depends(security)):
    """Logout user"""
    TOKENS.pop(credentials.credentials, None)
    return {"message": "Logged out successfully"}


def get_current_user(credentials: HTTPAuthorizationCredentials = Depends(security)) -> int:
    """Dependency returning the authenticated account id"""
    token = credentials.credentials
    if token not in TOKENS:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    return TOKENS[token]


@router.get("/me", response_model=Account)
async def me(
    account_id: int = Depends(get_current_user),
    engine: ValuationEngine = Depends(get_engine),
):
    """Current account"""
    return engine.get_account(account_id)
