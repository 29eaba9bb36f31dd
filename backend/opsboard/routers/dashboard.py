"""
Dashboard Router — Home page summary cards.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from opsboard.database import get_db
from opsboard.services.workspace_service import dashboard_summary

router = APIRouter()


@router.get("")
async def get_dashboard(db: AsyncSession = Depends(get_db)):
    return await dashboard_summary(db)
