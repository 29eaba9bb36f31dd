"""
Integrations Router — Platform credentials (Meta, Google, OpenAI) and the Meta
ad accounts the campaigns panel fans out over. Secrets are never returned;
listings expose only `has_api_key` and a masked key.
"""

import logging
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from opsboard.database import get_db
from opsboard.models import AdAccount, Integration, Platform
from opsboard.crypto import decrypt_value, mask_secret
from opsboard.services.integration_service import add_ad_account, get_integration, save_integration
from opsboard.utils import parse_uuid, utcnow

logger = logging.getLogger(__name__)

router = APIRouter()


# ── Request/Response Models ───────────────────────────────────────────

class IntegrationSave(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    platform: Platform
    api_key: Optional[str] = Field(default=None, alias="apiKey")
    account_id: Optional[str] = Field(default=None, alias="accountId")


class AdAccountCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = ""
    account_id: str = Field(alias="accountId")
    platform: Platform = Platform.FACEBOOK


def _integration_to_response(i: Integration) -> dict:
    return {
        "id": str(i.id),
        "platform": i.platform,
        "has_api_key": bool(i.api_key),
        "api_key_masked": mask_secret(decrypt_value(i.api_key)),
        "account_id": i.account_id,
        "is_active": i.is_active,
        "created_at": i.created_at,
        "updated_at": i.updated_at,
    }


def _account_to_response(a: AdAccount) -> dict:
    return {
        "id": str(a.id),
        "name": a.name,
        "account_id": a.account_id,
        "is_active": a.is_active,
        "created_at": a.created_at,
    }


async def _get_integration_by_id(db: AsyncSession, integration_id: str) -> Integration:
    result = await db.execute(
        select(Integration).where(Integration.id == parse_uuid(integration_id, "integration_id"))
    )
    integration = result.scalar_one_or_none()
    if not integration:
        raise HTTPException(status_code=404, detail="Integration not found")
    return integration


# ── Ad accounts ───────────────────────────────────────────────────────

@router.get("/accounts")
async def list_accounts(platform: Platform = Platform.FACEBOOK, db: AsyncSession = Depends(get_db)):
    integration = await get_integration(db, platform.value)
    if not integration:
        return []
    result = await db.execute(
        select(AdAccount).where(AdAccount.integration_id == integration.id).order_by(AdAccount.created_at)
    )
    return [_account_to_response(a) for a in result.scalars().all()]


@router.post("/accounts")
async def create_account(payload: AdAccountCreate, db: AsyncSession = Depends(get_db)):
    if not payload.account_id.strip():
        raise HTTPException(status_code=400, detail="accountId is required")
    integration = await get_integration(db, payload.platform.value)
    if not integration:
        raise HTTPException(
            status_code=400,
            detail=f"Save the {payload.platform.value} integration before adding accounts.",
        )
    account = await add_ad_account(db, integration, payload.name, payload.account_id)
    return _account_to_response(account)


@router.delete("/accounts/{account_id}")
async def delete_account(account_id: str, db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(AdAccount).where(AdAccount.id == parse_uuid(account_id, "account_id")))
    account = result.scalar_one_or_none()
    if not account:
        raise HTTPException(status_code=404, detail="Ad account not found")
    await db.delete(account)
    logger.info(f"Removed ad account {account.account_id}")
    return {"status": "deleted"}


# ── Integrations ──────────────────────────────────────────────────────

@router.get("")
async def list_integrations(db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(Integration).order_by(Integration.created_at.desc()))
    return [_integration_to_response(i) for i in result.scalars().all()]


@router.post("")
async def upsert_integration(payload: IntegrationSave, db: AsyncSession = Depends(get_db)):
    """Create or update the single integration for a platform."""
    integration = await save_integration(db, payload.platform.value, payload.api_key, payload.account_id)
    return _integration_to_response(integration)


@router.post("/{integration_id}/toggle")
async def toggle_integration(integration_id: str, db: AsyncSession = Depends(get_db)):
    integration = await _get_integration_by_id(db, integration_id)
    integration.is_active = not integration.is_active
    integration.updated_at = utcnow()
    await db.flush()
    logger.info(f"{integration.platform} integration {'enabled' if integration.is_active else 'disabled'}")
    return _integration_to_response(integration)


@router.delete("/{integration_id}")
async def delete_integration(integration_id: str, db: AsyncSession = Depends(get_db)):
    """Hard delete; the platform's ad accounts go with it."""
    integration = await _get_integration_by_id(db, integration_id)
    await db.delete(integration)
    logger.info(f"Deleted {integration.platform} integration")
    return {"status": "deleted"}
