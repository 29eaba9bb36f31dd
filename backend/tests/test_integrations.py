"""
Tests for the integration store (upsert, account scope resolution) and the
integrations endpoints.
"""

import pytest
from sqlalchemy import select, func

from opsboard.models import AdAccount, Integration, Platform
from opsboard.services.integration_service import (
    access_token_for,
    add_ad_account,
    normalize_account_id,
    resolve_account_scope,
    save_integration,
)

from conftest import seed_facebook


def test_normalize_account_id():
    assert normalize_account_id("123") == "act_123"
    assert normalize_account_id("act_123") == "act_123"
    assert normalize_account_id(" 123 ") == "act_123"
    assert normalize_account_id("sk-abc", Platform.OPENAI.value) == "sk-abc"


@pytest.mark.anyio
async def test_save_integration_upserts_by_platform(db):
    first = await save_integration(db, "FACEBOOK", "token-1", "111")
    second = await save_integration(db, "FACEBOOK", "token-2", "act_222")
    await db.commit()

    count = await db.execute(select(func.count()).select_from(Integration))
    assert count.scalar() == 1
    assert first.id == second.id
    assert second.account_id == "act_222"
    assert access_token_for(second) == "token-2"


@pytest.mark.anyio
async def test_blank_key_keeps_stored_token_and_reactivates(db):
    integration = await save_integration(db, "FACEBOOK", "token-1", None)
    integration.is_active = False
    await db.flush()

    updated = await save_integration(db, "FACEBOOK", "", "333")

    assert access_token_for(updated) == "token-1"
    assert updated.is_active is True


@pytest.mark.anyio
async def test_add_ad_account_is_idempotent(db):
    integration = await seed_facebook(db)
    a = await add_ad_account(db, integration, "Main", "555")
    b = await add_ad_account(db, integration, "Main again", "act_555")
    assert a.id == b.id
    assert a.account_id == "act_555"


@pytest.mark.anyio
async def test_scope_prefers_requested_then_accounts_then_legacy(db):
    integration = await seed_facebook(db, accounts=["act_1", "act_2"], legacy_account_id="999")

    explicit = await resolve_account_scope(db, integration, "42")
    assert [s.account_id for s in explicit] == ["act_42"]

    everything = await resolve_account_scope(db, integration, "all")
    assert [s.account_id for s in everything] == ["act_1", "act_2"]


@pytest.mark.anyio
async def test_scope_falls_back_to_legacy_account(db):
    integration = await seed_facebook(db, legacy_account_id="999")
    scopes = await resolve_account_scope(db, integration)
    assert [(s.account_id, s.name) for s in scopes] == [("act_999", "Default account")]


@pytest.mark.anyio
async def test_scope_ignores_inactive_accounts(db):
    integration = await seed_facebook(db, accounts=["act_1", "act_2"])
    result = await db.execute(select(AdAccount).where(AdAccount.account_id == "act_1"))
    result.scalar_one().is_active = False
    await db.flush()

    scopes = await resolve_account_scope(db, integration)
    assert [s.account_id for s in scopes] == ["act_2"]


@pytest.mark.anyio
async def test_scope_empty_without_accounts(db):
    integration = await seed_facebook(db)
    assert await resolve_account_scope(db, integration) == []


# ── Endpoints ─────────────────────────────────────────────────────────

@pytest.mark.anyio
async def test_integration_endpoints_never_return_secret(client):
    resp = await client.post("/api/integrations", json={
        "platform": "FACEBOOK", "apiKey": "EAAB-very-long-secret-token", "accountId": "123",
    })
    assert resp.status_code == 200
    row = resp.json()
    assert row["has_api_key"] is True
    assert row["account_id"] == "act_123"
    assert "EAAB-very-long-secret-token" not in resp.text

    listing = await client.get("/api/integrations")
    assert len(listing.json()) == 1
    assert "EAAB-very-long-secret-token" not in listing.text
    assert listing.json()[0]["api_key_masked"].startswith("EAAB-v")


@pytest.mark.anyio
async def test_toggle_and_delete_integration(client):
    row = (await client.post("/api/integrations", json={"platform": "FACEBOOK", "apiKey": "tok"})).json()

    toggled = await client.post(f"/api/integrations/{row['id']}/toggle")
    assert toggled.json()["is_active"] is False

    await client.post("/api/integrations/accounts", json={"name": "Main", "accountId": "1"})
    deleted = await client.delete(f"/api/integrations/{row['id']}")
    assert deleted.json() == {"status": "deleted"}
    assert (await client.get("/api/integrations")).json() == []
    assert (await client.get("/api/integrations/accounts")).json() == []


@pytest.mark.anyio
async def test_add_account_requires_integration(client):
    resp = await client.post("/api/integrations/accounts", json={"name": "Main", "accountId": "1"})
    assert resp.status_code == 400


@pytest.mark.anyio
async def test_account_endpoints(client):
    await client.post("/api/integrations", json={"platform": "FACEBOOK", "apiKey": "tok"})
    created = (await client.post("/api/integrations/accounts", json={"name": "Main", "accountId": "77"})).json()
    assert created["account_id"] == "act_77"

    listing = (await client.get("/api/integrations/accounts")).json()
    assert [a["account_id"] for a in listing] == ["act_77"]

    resp = await client.delete(f"/api/integrations/accounts/{created['id']}")
    assert resp.status_code == 200
    assert (await client.get("/api/integrations/accounts")).json() == []


@pytest.mark.anyio
async def test_unknown_platform_is_malformed(client):
    resp = await client.post("/api/integrations", json={"platform": "TIKTOK", "apiKey": "x"})
    assert resp.status_code == 400
    assert "error" in resp.json()
