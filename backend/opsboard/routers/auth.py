"""
Auth Router — First-admin registration, login/logout with a session cookie, whoami.
"""

import logging
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel, EmailStr
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from opsboard.auth import get_current_user
from opsboard.config import get_settings
from opsboard.database import get_db
from opsboard.models import User
from opsboard.utils import utcnow
from opsboard.services.auth_service import (
    MIN_PASSWORD_LENGTH,
    count_users,
    create_access_token,
    hash_password,
    user_to_dict,
    verify_password,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])


# ── Schemas ────────────────────────────────────────────────────────────

class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str
    name: str


class WhoAmIResponse(BaseModel):
    id: str
    email: str
    name: str | None
    role: str
    is_active: bool


def _session_response(user: User) -> JSONResponse:
    """Token in the body for API clients, and as an httpOnly cookie for the browser."""
    settings = get_settings()
    token = create_access_token(str(user.id), user.email, user.name, user.role)
    response = JSONResponse({
        "success": True,
        "access_token": token,
        "token_type": "bearer",
        "user": user_to_dict(user),
    })
    response.set_cookie(
        settings.session_cookie_name,
        token,
        max_age=settings.access_token_expire_minutes * 60,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
        path="/",
    )
    return response


# ── Endpoints ───────────────────────────────────────────────────────────

@router.post("/login")
async def login(payload: LoginRequest, db: AsyncSession = Depends(get_db)):
    """Login with email and password. Sets the session cookie and returns the JWT."""
    result = await db.execute(select(User).where(User.email == payload.email.lower()))
    user = result.scalar_one_or_none()
    if not user or not verify_password(payload.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid email or password")
    if not user.is_active:
        raise HTTPException(status_code=401, detail="Account is disabled")

    user.last_login_at = utcnow()
    await db.flush()
    logger.info(f"User {user.email} logged in")
    return _session_response(user)


@router.post("/register")
async def register(payload: RegisterRequest, db: AsyncSession = Depends(get_db)):
    """First-time setup only: creates the admin user while no users exist."""
    if await count_users(db) > 0:
        raise HTTPException(status_code=403, detail="Registration is closed. An admin user already exists.")
    if len(payload.password) < MIN_PASSWORD_LENGTH:
        raise HTTPException(
            status_code=400,
            detail=f"Password must be at least {MIN_PASSWORD_LENGTH} characters.",
        )
    if not payload.name.strip():
        raise HTTPException(status_code=400, detail="Name is required")

    user = User(
        email=payload.email.lower(),
        password_hash=hash_password(payload.password),
        name=payload.name.strip(),
        role="admin",
        is_active=True,
    )
    db.add(user)
    await db.flush()
    logger.info(f"Registered first admin {user.email}")
    return _session_response(user)


@router.post("/logout")
async def logout():
    response = JSONResponse({"success": True})
    response.delete_cookie(get_settings().session_cookie_name, path="/")
    return response


@router.get("/whoami", response_model=WhoAmIResponse)
async def whoami(user: User = Depends(get_current_user)):
    """Return current user. Requires a session."""
    return WhoAmIResponse(**user_to_dict(user))
