"""
Credentials Router — Team password vault (service logins).
Passwords are encrypted at rest and decrypted only when returned to an
authenticated client.
"""

import logging
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from pydantic import BaseModel
from typing import Optional
from opsboard.database import get_db
from opsboard.models import Credential
from opsboard.crypto import encrypt_value, decrypt_value
from opsboard.utils import parse_uuid

logger = logging.getLogger(__name__)

router = APIRouter()


# ── Schemas ──────────────────────────────────────────────────────────
class CredentialCreate(BaseModel):
    service: str
    username: Optional[str] = None
    password: Optional[str] = None
    url: Optional[str] = None
    category: Optional[str] = None


# ── Helpers ───────────────────────────────────────────────────────────
def _cred_to_response(cred: Credential) -> dict:
    return {
        "id": str(cred.id),
        "service": cred.service,
        "username": cred.username,
        "password": decrypt_value(cred.password),
        "url": cred.url,
        "category": cred.category,
        "created_at": cred.created_at,
    }


# ── Endpoints ────────────────────────────────────────────────────────
@router.get("")
async def list_credentials(category: Optional[str] = None, db: AsyncSession = Depends(get_db)):
    query = select(Credential).order_by(Credential.created_at.desc())
    if category:
        query = query.where(Credential.category == category)
    result = await db.execute(query)
    return [_cred_to_response(c) for c in result.scalars().all()]


@router.post("")
async def create_credential(payload: CredentialCreate, db: AsyncSession = Depends(get_db)):
    if not payload.service.strip():
        raise HTTPException(status_code=400, detail="Service is required")

    cred = Credential(
        service=payload.service.strip(),
        username=payload.username,
        password=encrypt_value(payload.password),
        url=payload.url,
        category=payload.category,
    )
    db.add(cred)
    await db.flush()
    await db.refresh(cred)
    logger.info(f"Stored credential for {cred.service}")
    return _cred_to_response(cred)


@router.delete("/{cred_id}")
async def delete_credential(cred_id: str, db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(Credential).where(Credential.id == parse_uuid(cred_id, "cred_id")))
    cred = result.scalar_one_or_none()
    if not cred:
        raise HTTPException(status_code=404, detail="Credential not found")

    await db.delete(cred)
    logger.info(f"Deleted credential for {cred.service}")
    return {"status": "deleted"}
