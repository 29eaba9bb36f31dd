"""
Products Router — Offer pipeline (MINING → VALIDATING → SCALING, or PAUSED).
"""

import logging
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from pydantic import BaseModel
from typing import Optional
from opsboard.database import get_db
from opsboard.models import Product, ProductStatus
from opsboard.services.workspace_service import group_by_status
from opsboard.utils import parse_uuid, utcnow

logger = logging.getLogger(__name__)

router = APIRouter()


class ProductCreate(BaseModel):
    name: str
    platform: Optional[str] = None
    status: ProductStatus = ProductStatus.MINING
    drive_link: Optional[str] = None
    miro_link: Optional[str] = None
    notion_link: Optional[str] = None


class ProductStatusUpdate(BaseModel):
    status: ProductStatus


def _product_to_response(p: Product) -> dict:
    return {
        "id": str(p.id),
        "name": p.name,
        "platform": p.platform,
        "status": p.status,
        "drive_link": p.drive_link,
        "miro_link": p.miro_link,
        "notion_link": p.notion_link,
        "created_at": p.created_at,
        "updated_at": p.updated_at,
    }


async def _get_product(db: AsyncSession, product_id: str) -> Product:
    result = await db.execute(select(Product).where(Product.id == parse_uuid(product_id, "product_id")))
    product = result.scalar_one_or_none()
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


@router.get("")
async def list_products(db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(Product).order_by(Product.updated_at.desc()))
    return [_product_to_response(p) for p in result.scalars().all()]


@router.get("/pipeline")
async def get_pipeline(db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(Product).order_by(Product.updated_at.desc()))
    groups = group_by_status(result.scalars().all(), [s.value for s in ProductStatus])
    return {status: [_product_to_response(p) for p in items] for status, items in groups.items()}


@router.post("")
async def create_product(payload: ProductCreate, db: AsyncSession = Depends(get_db)):
    if not payload.name.strip():
        raise HTTPException(status_code=400, detail="Name is required")
    product = Product(
        name=payload.name.strip(),
        platform=payload.platform,
        status=payload.status.value,
        drive_link=payload.drive_link,
        miro_link=payload.miro_link,
        notion_link=payload.notion_link,
    )
    db.add(product)
    await db.flush()
    await db.refresh(product)
    return _product_to_response(product)


@router.post("/{product_id}/status")
async def update_product_status(product_id: str, payload: ProductStatusUpdate, db: AsyncSession = Depends(get_db)):
    product = await _get_product(db, product_id)
    product.status = payload.status.value
    product.updated_at = utcnow()
    await db.flush()
    logger.info(f"Product {product.name} moved to {product.status}")
    return _product_to_response(product)


@router.delete("/{product_id}")
async def delete_product(product_id: str, db: AsyncSession = Depends(get_db)):
    product = await _get_product(db, product_id)
    await db.delete(product)
    return {"status": "deleted"}
