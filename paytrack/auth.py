"""
Paytrack — auth.py
─────────────────────────────────────────────────────────────────
Login against the WordPress users table + profile lookup.

Routes:
    POST /api/login        → {token, user: {id, username, email}}
    GET  /api/users/{id}   → user record (token required)
─────────────────────────────────────────────────────────────────
"""

import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from paytrack.core.config import Config, get_config
from paytrack.core.database import Database, get_db
from paytrack.core.errors import AuthenticationError, NotFoundError
from paytrack.core.passwords import verify_wordpress_password
from paytrack.core.security import Identity, TokenService, get_current_user, get_tokens
from paytrack.models.user import User

logger = logging.getLogger("paytrack.auth")
router = APIRouter(prefix="/api", tags=["Auth"])


# ==================== SCHEMAS ====================
class LoginRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=60)
    password: str = Field(..., min_length=1)


# ==================== HELPERS ====================
async def authenticate(db: Database, cfg: Config, username: str, password: str) -> User:
    """Returns the user or raises 401. Same answer for unknown user and bad password."""
    row = await db.fetch_one(
        f"SELECT ID, user_login, user_pass, user_email, display_name "
        f"FROM {cfg.table('users')} WHERE user_login = ?",
        (username,)
    )
    if not row or not verify_wordpress_password(password, row["user_pass"]):
        logger.info(f"Login failed for {username!r}")
        raise AuthenticationError("Invalid credentials")
    return User.from_row(row)


# ==================== ROUTES ====================
@router.post("/login")
async def login(
    body:   LoginRequest,
    db:     Database     = Depends(get_db),
    cfg:    Config       = Depends(get_config),
    tokens: TokenService = Depends(get_tokens),
):
    user = await authenticate(db, cfg, body.username, body.password)
    token = tokens.issue(user.id, user.username, user.email)

    logger.info(f"👋 User login: {user.username}")
    return {"token": token, "user": user.public()}


@router.get("/users/{user_id}")
async def get_user(
    user_id: int,
    _user:   Identity = Depends(get_current_user),
    db:      Database = Depends(get_db),
    cfg:     Config   = Depends(get_config),
):
    row = await db.fetch_one(
        f"SELECT ID, user_login, user_email, display_name "
        f"FROM {cfg.table('users')} WHERE ID = ?",
        (user_id,)
    )
    if not row:
        raise NotFoundError("User not found")
    return row
