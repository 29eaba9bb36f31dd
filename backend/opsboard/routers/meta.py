"""
Meta Router — Campaigns panel: multi-account listings with insights and a
summary row, account-level KPIs, the account picker, and single-entity edits.

Soft failures (not configured, invalid token, upstream errors) are HTTP 200
with an `error` field so the panel can show a banner and keep its rows.
"""

import logging
from decimal import Decimal
from typing import Optional

import httpx
from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from opsboard.database import get_db
from opsboard.graph_client import create_graph_client, get_graph_http
from opsboard.services.aggregation_service import (
    DATE_PRESETS,
    DEFAULT_DATE_PRESET,
    EntityLevel,
    MetaAggregator,
)
from opsboard.services.insights_service import summarize
from opsboard.services.integration_service import (
    access_token_for,
    get_active_integration,
    list_active_ad_accounts,
    normalize_account_id,
    resolve_account_scope,
    LEGACY_ACCOUNT_KEY,
)
from opsboard.services.mutation_service import EntityChange, MutationRejected, apply_change
from opsboard.utils import parse_csv

logger = logging.getLogger(__name__)

router = APIRouter()

NOT_CONFIGURED = "Meta Ads is not configured. Add your access token in Settings."
NO_ACCOUNTS = "No ad accounts configured. Add an ad account in Settings."

RESPONSE_KEYS = {
    EntityLevel.CAMPAIGN: "campaigns",
    EntityLevel.ADSET: "adSets",
    EntityLevel.AD: "ads",
}


def date_preset_param(date_preset: str = Query(DEFAULT_DATE_PRESET)) -> str:
    if date_preset not in DATE_PRESETS:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid date_preset {date_preset!r}. Allowed: {', '.join(DATE_PRESETS)}",
        )
    return date_preset


async def _list_level(
    level: EntityLevel,
    db: AsyncSession,
    http: httpx.AsyncClient,
    date_preset: str,
    account_id: Optional[str],
    parent_id: Optional[str],
    status: Optional[str],
) -> dict:
    key = RESPONSE_KEYS[level]
    integration = await get_active_integration(db)
    token = access_token_for(integration)
    if not token:
        return {"connected": False, "error": NOT_CONFIGURED, key: [], "total": 0}

    if parent_id:
        parents = [parent_id]
    else:
        scopes = await resolve_account_scope(db, integration, account_id)
        if not scopes:
            return {
                "connected": True,
                "message": NO_ACCOUNTS,
                key: [],
                "total": 0,
                "summary": summarize([]).as_dict(),
            }
        parents = [s.account_id for s in scopes]

    async with create_graph_client(token, http=http) as client:
        result = await MetaAggregator(client).list_entities(
            level, parents, date_preset, statuses=parse_csv(status) or None,
        )

    response = {
        "connected": True,
        key: [e.as_dict() for e in result.entities],
        "total": result.total,
        "summary": result.summary.as_dict(),
    }
    if result.error:
        response["error"] = result.error.user_message
    return response


# ── Listings ──────────────────────────────────────────────────────────

@router.get("/campaigns")
async def list_campaigns(
    date_preset: str = Depends(date_preset_param),
    account_id: Optional[str] = None,
    status: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    http: httpx.AsyncClient = Depends(get_graph_http),
):
    return await _list_level(EntityLevel.CAMPAIGN, db, http, date_preset, account_id, None, status)


@router.get("/adsets")
async def list_adsets(
    date_preset: str = Depends(date_preset_param),
    campaign_id: Optional[str] = None,
    account_id: Optional[str] = None,
    status: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    http: httpx.AsyncClient = Depends(get_graph_http),
):
    return await _list_level(EntityLevel.ADSET, db, http, date_preset, account_id, campaign_id, status)


@router.get("/ads")
async def list_ads(
    date_preset: str = Depends(date_preset_param),
    adset_id: Optional[str] = None,
    account_id: Optional[str] = None,
    status: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    http: httpx.AsyncClient = Depends(get_graph_http),
):
    return await _list_level(EntityLevel.AD, db, http, date_preset, account_id, adset_id, status)


@router.get("/insights")
async def get_insights(
    date_preset: str = Depends(date_preset_param),
    account_id: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    http: httpx.AsyncClient = Depends(get_graph_http),
):
    """Account-level KPIs: one account as reported upstream, several summed."""
    integration = await get_active_integration(db)
    token = access_token_for(integration)
    if not token:
        return {"connected": False, "error": NOT_CONFIGURED, "insights": None}

    scopes = await resolve_account_scope(db, integration, account_id)
    if not scopes:
        return {"connected": True, "message": NO_ACCOUNTS, "insights": None}

    async with create_graph_client(token, http=http) as client:
        summary, error = await MetaAggregator(client).account_insights(
            [s.account_id for s in scopes], date_preset,
        )

    if summary is None:
        return {
            "connected": True,
            "insights": None,
            "error": error.user_message if error else "Insights unavailable.",
        }
    return {"connected": True, "insights": summary.as_dict(), "accounts": len(scopes)}


@router.get("/accounts")
async def list_accounts(db: AsyncSession = Depends(get_db)):
    """Account picker: active accounts, or the legacy single account."""
    integration = await get_active_integration(db)
    if not integration:
        return {"accounts": []}

    accounts = await list_active_ad_accounts(db, integration)
    if not accounts and integration.account_id:
        return {"accounts": [{
            "id": LEGACY_ACCOUNT_KEY,
            "name": "Default account",
            "accountId": normalize_account_id(integration.account_id, integration.platform),
        }]}
    return {"accounts": [
        {"id": str(a.id), "name": a.name, "accountId": a.account_id}
        for a in accounts
    ]}


# ── Mutations ─────────────────────────────────────────────────────────

class CampaignUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    campaign_id: str = Field(alias="campaignId")
    status: Optional[str] = None
    daily_budget: Optional[Decimal] = Field(default=None, alias="dailyBudget")
    lifetime_budget: Optional[Decimal] = Field(default=None, alias="lifetimeBudget")
    name: Optional[str] = None


class AdSetUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    adset_id: str = Field(alias="adSetId")
    status: Optional[str] = None
    daily_budget: Optional[Decimal] = Field(default=None, alias="dailyBudget")


class AdUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    ad_id: str = Field(alias="adId")
    status: Optional[str] = None


async def _apply(change: EntityChange, db: AsyncSession, http: httpx.AsyncClient) -> dict:
    try:
        change.to_form()
    except MutationRejected as e:
        raise HTTPException(status_code=400, detail=str(e))

    token = access_token_for(await get_active_integration(db))
    if not token:
        return {"connected": False, "error": NOT_CONFIGURED}

    async with create_graph_client(token, http=http) as client:
        result = await apply_change(client, change)
    if not result.success:
        return {"error": result.message}
    return {"success": True}


@router.post("/campaigns/update")
async def update_campaign(
    payload: CampaignUpdate,
    db: AsyncSession = Depends(get_db),
    http: httpx.AsyncClient = Depends(get_graph_http),
):
    change = EntityChange(
        entity_id=payload.campaign_id,
        status=payload.status,
        daily_budget=payload.daily_budget,
        lifetime_budget=payload.lifetime_budget,
        name=payload.name,
    )
    return await _apply(change, db, http)


@router.post("/adsets/update")
async def update_adset(
    payload: AdSetUpdate,
    db: AsyncSession = Depends(get_db),
    http: httpx.AsyncClient = Depends(get_graph_http),
):
    change = EntityChange(entity_id=payload.adset_id, status=payload.status, daily_budget=payload.daily_budget)
    return await _apply(change, db, http)


@router.post("/ads/update")
async def update_ad(
    payload: AdUpdate,
    db: AsyncSession = Depends(get_db),
    http: httpx.AsyncClient = Depends(get_graph_http),
):
    change = EntityChange(entity_id=payload.ad_id, status=payload.status)
    return await _apply(change, db, http)
