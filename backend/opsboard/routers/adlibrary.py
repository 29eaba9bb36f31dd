"""
Ad Library Router — Competitor ad search, saved ads, and AI copy assistance.
"""

import logging
from typing import Optional

import anthropic
import httpx
import openai
from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from opsboard.config import get_settings
from opsboard.database import get_db
from opsboard.graph_client import create_graph_client, get_graph_http
from opsboard.models import Platform
from opsboard.services.ad_library_service import (
    ACTIVE_STATUSES,
    DEFAULT_LIMIT,
    SAVED_AD_FIELDS,
    AdSearch,
    delete_saved_ad,
    list_saved_ads,
    save_ad,
    saved_ad_to_dict,
    search_ads,
    store_analysis,
)
from opsboard.services.ai_service import ACTIONS, create_ai_service
from opsboard.services.integration_service import access_token_for, get_active_integration
from opsboard.utils import parse_csv

logger = logging.getLogger(__name__)

router = APIRouter()
settings = get_settings()

NOT_CONFIGURED = "Meta Ads is not configured. Add your access token in Settings."


# ── Search ────────────────────────────────────────────────────────────

@router.get("/search")
async def search(
    q: str = "",
    country: str = "BR",
    media_type: Optional[str] = None,
    active_status: str = "ACTIVE",
    platform: Optional[str] = None,
    language: Optional[str] = None,
    after: Optional[str] = None,
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=100),
    min_days_active: int = Query(0, ge=0),
    min_ads_count: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    http: httpx.AsyncClient = Depends(get_graph_http),
):
    token = access_token_for(await get_active_integration(db))
    if not token:
        return {"connected": False, "error": NOT_CONFIGURED}
    if not q.strip():
        return {"connected": True, "error": "Enter a search term."}
    if active_status.upper() not in ACTIVE_STATUSES:
        raise HTTPException(status_code=400, detail=f"active_status must be one of {', '.join(ACTIVE_STATUSES)}")

    query = AdSearch(
        q=q.strip(),
        countries=[c.upper() for c in parse_csv(country)] or ["BR"],
        media_type=media_type or None,
        active_status=active_status.upper(),
        platform=platform or None,
        language=language or None,
        after=after or None,
        limit=limit,
        min_days_active=min_days_active,
        min_ads_count=min_ads_count,
    )
    async with create_graph_client(token, http=http) as client:
        result = await search_ads(client, query)

    if result.error:
        return {"connected": True, "error": result.error.user_message}
    return {"connected": True, "ads": result.ads, "total": result.total, "paging": result.paging}


# ── Saved ads ─────────────────────────────────────────────────────────

class SaveAdRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    ad_id: str = Field(alias="adId")
    page_name: str = Field(alias="pageName")
    page_id: Optional[str] = Field(default=None, alias="pageId")
    ad_text: Optional[str] = Field(default=None, alias="adText")
    image_url: Optional[str] = Field(default=None, alias="imageUrl")
    video_url: Optional[str] = Field(default=None, alias="videoUrl")
    platform: Optional[str] = None
    country: Optional[str] = None
    start_date: Optional[str] = Field(default=None, alias="startDate")
    landing_page_url: Optional[str] = Field(default=None, alias="landingPageUrl")
    category: Optional[str] = None
    notes: Optional[str] = None


@router.get("/saved")
async def get_saved(db: AsyncSession = Depends(get_db)):
    return {"ads": [saved_ad_to_dict(a) for a in await list_saved_ads(db)]}


@router.post("/saved")
async def post_saved(payload: SaveAdRequest, db: AsyncSession = Depends(get_db)):
    if not payload.ad_id.strip() or not payload.page_name.strip():
        raise HTTPException(status_code=400, detail="adId and pageName are required")

    values = {attr: getattr(payload, attr) for attr in SAVED_AD_FIELDS.values()}
    ad, created = await save_ad(db, values)
    if not created:
        return {"success": True, "alreadySaved": True, "ad": saved_ad_to_dict(ad)}
    return {"success": True, "ad": saved_ad_to_dict(ad)}


@router.delete("/saved")
async def delete_saved(ad_id: str = Query(alias="adId"), db: AsyncSession = Depends(get_db)):
    if not await delete_saved_ad(db, ad_id):
        raise HTTPException(status_code=404, detail="Saved ad not found")
    return {"success": True}


# ── AI ────────────────────────────────────────────────────────────────

class AIRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    action: str
    ad_text: str = Field(alias="adText")
    ad_id: Optional[str] = Field(default=None, alias="adId")


async def _openai_key(db: AsyncSession) -> Optional[str]:
    """Env var first, then the active OPENAI integration."""
    if settings.openai_api_key:
        return settings.openai_api_key
    return access_token_for(await get_active_integration(db, Platform.OPENAI.value))


@router.post("/ai")
async def ai_assist(payload: AIRequest, db: AsyncSession = Depends(get_db)):
    if payload.action not in ACTIONS:
        raise HTTPException(status_code=400, detail=f"Invalid action. Use one of: {', '.join(ACTIONS)}")
    if not payload.ad_text.strip():
        raise HTTPException(status_code=400, detail="adText is required")

    try:
        ai = create_ai_service(openai_api_key=await _openai_key(db))
    except ValueError as e:
        return JSONResponse(status_code=400, content={"error": str(e)})

    try:
        result = await ai.run(payload.action, payload.ad_text)
    except (openai.APIError, anthropic.APIError) as e:
        logger.warning(f"AI provider error: {e}")
        return JSONResponse(status_code=502, content={"error": f"AI provider error: {e}"})

    if payload.action == "analyze" and payload.ad_id:
        if not await store_analysis(db, payload.ad_id, result):
            logger.info(f"Analysis for unsaved ad {payload.ad_id} not persisted")

    return {"success": True, "result": result}
