"""
Authentication & Authorization — session JWT (browser login) and API-key
(programmatic) auth.

- Browser: JWT in the session cookie set by /api/auth/login or /register.
- Scripts/other clients: Authorization: Bearer <jwt or API_KEY>

In development with no API_KEY set, auth is skipped for local dev.
"""

import logging
from typing import Optional
from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from opsboard.config import get_settings
from opsboard.database import get_db
from opsboard.models import User
from opsboard.utils import parse_uuid
from opsboard.services.auth_service import decode_access_token

logger = logging.getLogger(__name__)

_bearer_scheme = HTTPBearer(auto_error=False)


def _request_token(request: Request, credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    """Bearer header wins; otherwise the session cookie."""
    if credentials and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(get_settings().session_cookie_name)


async def require_auth(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(_bearer_scheme),
) -> str:
    """
    Accept either a session JWT or API_KEY.
    Returns "jwt" if JWT valid, or the API key string if API_KEY matched.
    """
    settings = get_settings()
    api_key = settings.api_key

    # Dev convenience: skip auth when no key is configured
    if not api_key:
        if settings.is_production:
            raise HTTPException(
                status_code=500,
                detail="Server misconfiguration: API_KEY must be set in production.",
            )
        return "dev-no-auth"

    token = _request_token(request, credentials)
    if not token:
        raise HTTPException(
            status_code=401,
            detail="Missing authorization. Log in or include header: Authorization: Bearer <token>",
        )

    payload = decode_access_token(token)
    if payload and payload.get("sub"):
        return "jwt"

    if token == api_key:
        return token

    raise HTTPException(
        status_code=401,
        detail="Invalid or expired token. Please log in again.",
    )


async def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(_bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Require a session JWT and return the User from DB.
    Use for endpoints that need user context (whoami).
    """
    token = _request_token(request, credentials)
    if not token:
        raise HTTPException(status_code=401, detail="Missing authorization")

    payload = decode_access_token(token)
    if not payload or not payload.get("sub"):
        raise HTTPException(status_code=401, detail="Invalid or expired token. Please log in again.")

    user_id = parse_uuid(payload["sub"], "sub")
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    if not user.is_active:
        raise HTTPException(status_code=401, detail="Account is disabled")

    return user
