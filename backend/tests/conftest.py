"""
Shared fixtures: in-memory SQLite session, a fake Graph API behind
httpx.MockTransport, and an ASGI client with both wired into the app.
"""

import asyncio
import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["ENVIRONMENT"] = "development"
os.environ["API_KEY"] = ""
os.environ["ENCRYPTION_KEY"] = ""

import httpx
import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from opsboard.config import get_settings
from opsboard.database import Base, get_db
from opsboard.graph_client import get_graph_http
from opsboard.models import AdAccount, Integration, Platform
from opsboard.crypto import encrypt_value

get_settings.cache_clear()


@pytest.fixture
def anyio_backend():
    return "asyncio"


# ── Database ──────────────────────────────────────────────────────────

@pytest.fixture
async def engine():
    import opsboard.models  # noqa: F401

    eng = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
async def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


async def seed_facebook(
    db: AsyncSession,
    accounts: list[str] = (),
    token: str = "test-token",
    legacy_account_id: str | None = None,
    is_active: bool = True,
) -> Integration:
    """Active FACEBOOK integration with the given ad account ids, committed."""
    integration = Integration(
        platform=Platform.FACEBOOK.value,
        api_key=encrypt_value(token) if token else None,
        account_id=legacy_account_id,
        is_active=is_active,
    )
    db.add(integration)
    await db.flush()
    for i, account_id in enumerate(accounts):
        db.add(AdAccount(integration_id=integration.id, name=f"Account {i + 1}", account_id=account_id))
        # created_at ordering needs distinct timestamps
        await db.flush()
        await asyncio.sleep(0.001)
    await db.commit()
    return integration


# ── Fake Graph API ────────────────────────────────────────────────────

class FakeGraph:
    """
    Path-keyed canned responses for graph.facebook.com/<version>/<path>.
    Unknown paths answer like Meta does for a missing node.
    """

    def __init__(self):
        self.routes: dict[tuple[str, str], dict] = {}
        self.requests: list[httpx.Request] = []
        self.in_flight = 0
        self.max_in_flight = 0

    def on(self, path: str, body=None, status: int = 200, method: str = "GET", delay: float = 0.0, exc=None):
        self.routes[(method, path)] = {"body": body, "status": status, "delay": delay, "exc": exc}
        return self

    def error(self, path: str, code: int, message: str = "Upstream failure", method: str = "GET", status: int = 400):
        return self.on(path, {"error": {"message": message, "type": "OAuthException", "code": code}}, status, method)

    def calls(self, path: str, method: str = "GET") -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and self.path_of(r) == path]

    @staticmethod
    def path_of(request: httpx.Request) -> str:
        return request.url.path.split("/", 2)[2]

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, self.path_of(request)))
        if route is None:
            return httpx.Response(400, json={"error": {"message": "Unsupported get request.", "code": 100}})

        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if route["delay"]:
                await asyncio.sleep(route["delay"])
            if route["exc"] is not None:
                raise route["exc"](f"fake {route['exc'].__name__}", request=request)
            if isinstance(route["body"], (bytes, str)):
                return httpx.Response(route["status"], content=route["body"])
            return httpx.Response(route["status"], json=route["body"])
        finally:
            self.in_flight -= 1

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


def insights_body(spend="0", revenue=None, purchases=None, **extra) -> dict:
    row = {"spend": str(spend), **{k: str(v) for k, v in extra.items()}}
    if revenue is not None:
        row["action_values"] = [{"action_type": "purchase", "value": str(revenue)}]
    if purchases is not None:
        row["actions"] = [{"action_type": "purchase", "value": str(purchases)}]
    return {"data": [row]}


@pytest.fixture
def graph():
    return FakeGraph()


@pytest.fixture
async def graph_http(graph):
    async with graph.client() as http:
        yield http


# ── App client ────────────────────────────────────────────────────────

@pytest.fixture
async def client(session_factory, graph):
    from opsboard.main import app

    async def _get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def _get_graph_http():
        async with graph.client() as http:
            yield http

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_graph_http] = _get_graph_http
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
            yield c
    finally:
        app.dependency_overrides.clear()
