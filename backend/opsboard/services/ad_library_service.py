"""
Ad Library Service — Competitor research over Meta's `ads_archive` edge and
the saved-ads collection.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from opsboard.graph_client import GraphError, MetaGraphClient
from opsboard.models import SavedAd

logger = logging.getLogger(__name__)

ARCHIVE_FIELDS = [
    "id", "ad_creative_bodies", "ad_creative_link_captions", "ad_creative_link_titles",
    "ad_creative_link_descriptions", "ad_delivery_start_time", "ad_delivery_stop_time",
    "bylines", "publisher_platforms", "page_id", "page_name", "ad_snapshot_url",
    "estimated_audience_size", "languages", "impressions", "spend",
]

ACTIVE_STATUSES = ("ACTIVE", "INACTIVE", "ALL")
DEFAULT_LIMIT = 25
MAX_LIMIT = 100

# Graph timestamps use a basic-format offset, e.g. 2024-06-01T00:00:00+0000
_BASIC_OFFSET = re.compile(r"([+-]\d{2})(\d{2})$")


@dataclass
class AdSearch:
    q: str
    countries: list[str] = field(default_factory=lambda: ["BR"])
    media_type: Optional[str] = None
    active_status: str = "ACTIVE"
    platform: Optional[str] = None
    language: Optional[str] = None
    after: Optional[str] = None
    limit: int = DEFAULT_LIMIT
    min_days_active: int = 0
    min_ads_count: int = 0

    def to_params(self) -> dict:
        return {
            "search_terms": self.q,
            "ad_reached_countries": self.countries or ["BR"],
            "ad_active_status": self.active_status,
            "limit": max(1, min(self.limit, MAX_LIMIT)),
            "media_type": self.media_type,
            "publisher_platforms": [self.platform] if self.platform else None,
            "languages": [self.language] if self.language else None,
            "after": self.after,
        }


@dataclass
class AdSearchResult:
    ads: list[dict] = field(default_factory=list)
    paging: Optional[dict] = None
    error: Optional[GraphError] = None

    @property
    def total(self) -> int:
        return len(self.ads)


def _first(values) -> str:
    if isinstance(values, list) and values:
        return values[0] or ""
    return ""


def _page_key(ad: dict) -> str:
    return ad.get("page_id") or ad.get("page_name") or "unknown"


def days_active(start_time: Optional[str], now: Optional[datetime] = None) -> int:
    """Whole days since delivery started; 0 when unknown or unparsable."""
    if not start_time:
        return 0
    try:
        start = datetime.fromisoformat(_BASIC_OFFSET.sub(r"\1:\2", start_time.replace("Z", "+00:00")))
    except ValueError:
        return 0
    if start.tzinfo is None:
        start = start.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    return max((now - start).days, 0)


def transform_ads(raw_ads: list[dict], now: Optional[datetime] = None) -> list[dict]:
    """Flatten archive rows; pageAdCount is counted across this page only."""
    page_counts: dict[str, int] = {}
    for ad in raw_ads:
        key = _page_key(ad)
        page_counts[key] = page_counts.get(key, 0) + 1

    ads = []
    for ad in raw_ads:
        start = ad.get("ad_delivery_start_time")
        ads.append({
            "id": ad.get("id"),
            "pageId": ad.get("page_id"),
            "pageName": ad.get("page_name") or "Unknown",
            "adText": _first(ad.get("ad_creative_bodies")),
            "linkTitle": _first(ad.get("ad_creative_link_titles")),
            "linkCaption": _first(ad.get("ad_creative_link_captions")),
            "linkDescription": _first(ad.get("ad_creative_link_descriptions")),
            "startDate": start,
            "stopDate": ad.get("ad_delivery_stop_time"),
            "daysActive": days_active(start, now),
            "platforms": ad.get("publisher_platforms") or [],
            "snapshotUrl": ad.get("ad_snapshot_url"),
            "languages": ad.get("languages") or [],
            "impressions": ad.get("impressions"),
            "spend": ad.get("spend"),
            "pageAdCount": page_counts.get(_page_key(ad), 1),
        })
    return ads


async def search_ads(client: MetaGraphClient, search: AdSearch, now: Optional[datetime] = None) -> AdSearchResult:
    response = await client.get("ads_archive", fields=ARCHIVE_FIELDS, params=search.to_params())
    if not response.ok:
        return AdSearchResult(error=response.error)

    ads = transform_ads([a for a in response.items if isinstance(a, dict)], now)
    if search.min_days_active > 0:
        ads = [a for a in ads if a["daysActive"] >= search.min_days_active]
    if search.min_ads_count > 0:
        ads = [a for a in ads if a["pageAdCount"] >= search.min_ads_count]

    logger.info(f"Ad Library search {search.q!r}: {len(response.items)} fetched, {len(ads)} after filters")
    return AdSearchResult(ads=ads, paging=response.paging)


# ── Saved ads ─────────────────────────────────────────────────────────

SAVED_AD_FIELDS = {
    "adId": "ad_id",
    "pageName": "page_name",
    "pageId": "page_id",
    "adText": "ad_text",
    "imageUrl": "image_url",
    "videoUrl": "video_url",
    "platform": "platform",
    "country": "country",
    "startDate": "start_date",
    "landingPageUrl": "landing_page_url",
    "category": "category",
    "notes": "notes",
}


def saved_ad_to_dict(ad: SavedAd) -> dict:
    row = {key: getattr(ad, attr) for key, attr in SAVED_AD_FIELDS.items()}
    row.update({
        "id": str(ad.id),
        "aiAnalysis": ad.ai_analysis,
        "createdAt": ad.created_at.isoformat() if ad.created_at else None,
    })
    return row


async def list_saved_ads(db: AsyncSession) -> list[SavedAd]:
    result = await db.execute(select(SavedAd).order_by(SavedAd.created_at.desc()))
    return list(result.scalars().all())


async def get_saved_ad(db: AsyncSession, ad_id: str) -> Optional[SavedAd]:
    result = await db.execute(select(SavedAd).where(SavedAd.ad_id == ad_id))
    return result.scalar_one_or_none()


async def save_ad(db: AsyncSession, values: dict) -> tuple[SavedAd, bool]:
    """Insert a snapshot keyed by ad_id. Returns (row, created); never duplicates."""
    existing = await get_saved_ad(db, values["ad_id"])
    if existing:
        return existing, False
    ad = SavedAd(**values)
    db.add(ad)
    await db.flush()
    await db.refresh(ad)
    logger.info(f"Saved ad {ad.ad_id} from {ad.page_name}")
    return ad, True


async def delete_saved_ad(db: AsyncSession, ad_id: str) -> bool:
    ad = await get_saved_ad(db, ad_id)
    if not ad:
        return False
    await db.delete(ad)
    return True


async def store_analysis(db: AsyncSession, ad_id: str, analysis: str) -> bool:
    """Attach an AI analysis to a saved ad; False when the ad was never saved."""
    ad = await get_saved_ad(db, ad_id)
    if not ad:
        return False
    ad.ai_analysis = analysis
    return True
