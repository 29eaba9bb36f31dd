"""
Finance Router — Income/expense ledger with paid/pending toggle and cash-flow summary.
"""

import logging
from datetime import date
from decimal import Decimal
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from pydantic import BaseModel, Field
from typing import Optional
from opsboard.database import get_db
from opsboard.models import FinancialRecord, RecordStatus, RecordType
from opsboard.services.insights_service import format_money
from opsboard.services.workspace_service import ledger_summary, toggled_record_status
from opsboard.utils import parse_uuid

logger = logging.getLogger(__name__)

router = APIRouter()


class RecordCreate(BaseModel):
    description: str
    amount: Decimal = Field(gt=0)
    type: RecordType
    category: Optional[str] = None
    due_date: Optional[date] = None
    status: RecordStatus = RecordStatus.PENDING


def _record_to_response(r: FinancialRecord) -> dict:
    return {
        "id": str(r.id),
        "description": r.description,
        "amount": format_money(Decimal(r.amount)),
        "type": r.type,
        "category": r.category,
        "due_date": r.due_date.isoformat() if r.due_date else None,
        "status": r.status,
        "created_at": r.created_at,
    }


async def _get_record(db: AsyncSession, record_id: str) -> FinancialRecord:
    result = await db.execute(
        select(FinancialRecord).where(FinancialRecord.id == parse_uuid(record_id, "record_id"))
    )
    record = result.scalar_one_or_none()
    if not record:
        raise HTTPException(status_code=404, detail="Record not found")
    return record


@router.get("")
async def list_records(type: Optional[RecordType] = None, db: AsyncSession = Depends(get_db)):
    """Records ordered by due date (undated last)."""
    query = select(FinancialRecord).order_by(
        FinancialRecord.due_date.is_(None), FinancialRecord.due_date, FinancialRecord.created_at
    )
    if type:
        query = query.where(FinancialRecord.type == type.value)
    result = await db.execute(query)
    return [_record_to_response(r) for r in result.scalars().all()]


@router.get("/summary")
async def get_summary(db: AsyncSession = Depends(get_db)):
    return await ledger_summary(db)


@router.post("")
async def create_record(payload: RecordCreate, db: AsyncSession = Depends(get_db)):
    if not payload.description.strip():
        raise HTTPException(status_code=400, detail="Description is required")
    record = FinancialRecord(
        description=payload.description.strip(),
        amount=payload.amount,
        type=payload.type.value,
        category=payload.category,
        due_date=payload.due_date,
        status=payload.status.value,
    )
    db.add(record)
    await db.flush()
    await db.refresh(record)
    logger.info(f"Created {record.type} record {record.id}")
    return _record_to_response(record)


@router.post("/{record_id}/toggle")
async def toggle_record(record_id: str, db: AsyncSession = Depends(get_db)):
    """Flip PAID ↔ PENDING."""
    record = await _get_record(db, record_id)
    record.status = toggled_record_status(record.status)
    await db.flush()
    return _record_to_response(record)


@router.delete("/{record_id}")
async def delete_record(record_id: str, db: AsyncSession = Depends(get_db)):
    record = await _get_record(db, record_id)
    await db.delete(record)
    return {"status": "deleted"}
