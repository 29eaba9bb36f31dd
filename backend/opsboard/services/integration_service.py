"""
Integration Service — Platform credentials (one Integration row per platform)
and the ad accounts registered under them. Every Meta request reads these rows
fresh through its own session; nothing here is cached between requests.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from opsboard.crypto import decrypt_value, encrypt_value
from opsboard.models import AdAccount, Integration, Platform
from opsboard.utils import utcnow

logger = logging.getLogger(__name__)

ACCOUNT_PREFIX = {
    Platform.FACEBOOK.value: "act_",
}

LEGACY_ACCOUNT_KEY = "legacy"


def normalize_account_id(account_id: str, platform: str = Platform.FACEBOOK.value) -> str:
    """Ensure the platform prefix is present: '123' → 'act_123', 'act_123' unchanged."""
    account_id = (account_id or "").strip()
    prefix = ACCOUNT_PREFIX.get(platform, "")
    if prefix and account_id and not account_id.startswith(prefix):
        return f"{prefix}{account_id}"
    return account_id


async def get_integration(db: AsyncSession, platform: str) -> Optional[Integration]:
    result = await db.execute(
        select(Integration).where(Integration.platform == platform).order_by(Integration.created_at).limit(1)
    )
    return result.scalar_one_or_none()


async def get_active_integration(db: AsyncSession, platform: str = Platform.FACEBOOK.value) -> Optional[Integration]:
    result = await db.execute(
        select(Integration)
        .where(Integration.platform == platform, Integration.is_active == True)  # noqa: E712
        .order_by(Integration.created_at)
        .limit(1)
    )
    return result.scalar_one_or_none()


def access_token_for(integration: Optional[Integration]) -> Optional[str]:
    """Decrypted access token, or None when the integration is missing/incomplete."""
    if integration is None or not integration.api_key:
        return None
    return decrypt_value(integration.api_key) or None


async def save_integration(
    db: AsyncSession,
    platform: str,
    api_key: Optional[str],
    account_id: Optional[str],
) -> Integration:
    """
    Upsert by platform: update the existing row in place, otherwise create it.
    Saving always re-activates the integration. A blank api_key keeps the
    stored one so the settings form can be re-submitted without the secret.
    """
    integration = await get_integration(db, platform)
    normalized = normalize_account_id(account_id, platform) if account_id else None

    if integration:
        if api_key:
            integration.api_key = encrypt_value(api_key)
        integration.account_id = normalized
        integration.is_active = True
        integration.updated_at = utcnow()
        logger.info(f"Updated {platform} integration")
    else:
        integration = Integration(
            platform=platform,
            api_key=encrypt_value(api_key) if api_key else None,
            account_id=normalized,
            is_active=True,
        )
        db.add(integration)
        logger.info(f"Created {platform} integration")

    await db.flush()
    await db.refresh(integration)
    return integration


async def list_active_ad_accounts(db: AsyncSession, integration: Integration) -> list[AdAccount]:
    result = await db.execute(
        select(AdAccount)
        .where(AdAccount.integration_id == integration.id, AdAccount.is_active == True)  # noqa: E712
        .order_by(AdAccount.created_at)
    )
    return list(result.scalars().all())


async def add_ad_account(db: AsyncSession, integration: Integration, name: str, account_id: str) -> AdAccount:
    """Register an ad account; re-adding an existing id returns the stored row."""
    normalized = normalize_account_id(account_id, integration.platform)
    result = await db.execute(
        select(AdAccount).where(
            AdAccount.integration_id == integration.id,
            AdAccount.account_id == normalized,
        )
    )
    existing = result.scalar_one_or_none()
    if existing:
        return existing

    account = AdAccount(
        integration_id=integration.id,
        name=name.strip() or normalized,
        account_id=normalized,
        is_active=True,
    )
    db.add(account)
    await db.flush()
    await db.refresh(account)
    logger.info(f"Added ad account {normalized} to {integration.platform} integration")
    return account


@dataclass
class AccountScope:
    account_id: str
    name: str


async def resolve_account_scope(
    db: AsyncSession,
    integration: Integration,
    requested_account_id: Optional[str] = None,
) -> list[AccountScope]:
    """
    Accounts a Meta request should fan out over, in enumeration order:
    the requested account only; else every active AdAccount; else the legacy
    integration.account_id; else nothing (configured but no scope).
    """
    if requested_account_id and requested_account_id not in ("all", LEGACY_ACCOUNT_KEY):
        account_id = normalize_account_id(requested_account_id, integration.platform)
        return [AccountScope(account_id=account_id, name=account_id)]

    accounts = await list_active_ad_accounts(db, integration)
    if accounts:
        return [AccountScope(account_id=a.account_id, name=a.name) for a in accounts]
    if integration.account_id:
        return [AccountScope(
            account_id=normalize_account_id(integration.account_id, integration.platform),
            name="Default account",
        )]
    return []
