"""
Opsboard — FastAPI Backend
Small-business operations dashboard: password vault, ledger, task board,
product pipeline and a multi-account Meta Ads panel.
All data persisted to PostgreSQL.
"""

import logging
from contextlib import asynccontextmanager
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from opsboard.config import get_settings
from opsboard.database import init_db, check_db_connection
from opsboard.auth import require_auth
from opsboard.routers import (
    auth, credentials, finance, tasks, products, dashboard,
    integrations, meta, adlibrary,
)
from opsboard.models import User
from opsboard.services.auth_service import hash_password
from opsboard.utils import safe_error_detail
from sqlalchemy import select, func

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

settings = get_settings()


async def _bootstrap_first_admin():
    """Create first admin if FIRST_ADMIN_EMAIL and FIRST_ADMIN_PASSWORD are set and no users exist."""
    if not settings.first_admin_email or not settings.first_admin_password:
        return
    from opsboard.database import async_session
    async with async_session() as db:
        r = await db.execute(select(func.count()).select_from(User))
        if (r.scalar() or 0) > 0:
            return
        admin = User(
            email=settings.first_admin_email.lower(),
            password_hash=hash_password(settings.first_admin_password),
            name="Admin",
            role="admin",
            is_active=True,
        )
        db.add(admin)
        await db.commit()
        logger.info(f"Bootstrap: created first admin user {admin.email}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting Opsboard...")
    try:
        await init_db()
        await _bootstrap_first_admin()
        logger.info("Database ready.")
    except Exception as e:
        logger.error(f"Startup failed (DB/init): {e}", exc_info=True)
        # /api/health keeps answering (degraded) when the database is down
    yield
    logger.info("Shutting down...")


app = FastAPI(
    title="Opsboard",
    description="Operations dashboard with multi-account Meta Ads reporting",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Error handlers ────────────────────────────────────────────────────

@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Malformed requests are 400 (not FastAPI's default 422)."""
    return JSONResponse(
        status_code=400,
        content={"error": "Malformed request", "detail": jsonable_errors(exc)},
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail, "detail": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    return JSONResponse(status_code=500, content={"error": safe_error_detail(exc)})


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    return [
        {"loc": list(e.get("loc", ())), "msg": e.get("msg", ""), "type": e.get("type", "")}
        for e in exc.errors()
    ]


# ── Auth (login/register public; whoami requires a session) ───────────
app.include_router(auth.router, prefix="/api")

# ── Register Routers (all require auth) ──────────────────────────────
_auth = [Depends(require_auth)]
app.include_router(credentials.router, prefix="/api/credentials", tags=["Vault"], dependencies=_auth)
app.include_router(finance.router, prefix="/api/finance", tags=["Finance"], dependencies=_auth)
app.include_router(tasks.router, prefix="/api/tasks", tags=["Tasks"], dependencies=_auth)
app.include_router(products.router, prefix="/api/products", tags=["Products"], dependencies=_auth)
app.include_router(dashboard.router, prefix="/api/dashboard", tags=["Dashboard"], dependencies=_auth)
app.include_router(integrations.router, prefix="/api/integrations", tags=["Integrations"], dependencies=_auth)
app.include_router(meta.router, prefix="/api/meta", tags=["Meta Ads"], dependencies=_auth)
app.include_router(adlibrary.router, prefix="/api/adlibrary", tags=["Ad Library"], dependencies=_auth)


@app.get("/api/health")
async def health_check():
    db_ok = await check_db_connection()
    return {
        "status": "healthy" if db_ok else "degraded",
        "service": "Opsboard",
        "database": "connected" if db_ok else "disconnected",
    }
