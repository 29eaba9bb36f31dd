"""
Aggregation Service — Fans Meta listing and insights calls out over account
scopes (or one parent campaign / ad set), merges the results in a stable order
and builds the summary row.

Failure policy:
  - a scope whose listing call fails is logged and skipped;
  - an entity whose insights call fails keeps `insights=None`;
  - only when every scope fails is an error reported to the caller.
Nothing here raises for upstream business errors.
"""

import asyncio
import enum
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional, Union

from opsboard.config import get_settings
from opsboard.graph_client import GraphError, GraphErrorKind, MetaGraphClient
from opsboard.services.insights_service import (
    INSIGHT_FIELDS,
    InsightRecord,
    InsightSummary,
    first_row,
    format_money,
    from_minor_units,
    normalize_insights,
    summarize,
)

logger = logging.getLogger(__name__)

DATE_PRESETS = (
    "today", "yesterday", "last_7d", "last_14d", "last_30d", "this_month", "last_month",
)
DEFAULT_DATE_PRESET = "last_30d"


class EntityLevel(str, enum.Enum):
    CAMPAIGN = "campaigns"
    ADSET = "adsets"
    AD = "ads"


LEVEL_FIELDS = {
    EntityLevel.CAMPAIGN: [
        "id", "name", "status", "objective", "daily_budget", "lifetime_budget",
        "created_time", "updated_time",
    ],
    EntityLevel.ADSET: [
        "id", "name", "status", "daily_budget", "lifetime_budget", "campaign_id",
        "targeting", "optimization_goal", "bid_strategy",
    ],
    EntityLevel.AD: [
        "id", "name", "status",
        "creative{id,thumbnail_url,effective_object_story_id}",
        "adset_id", "campaign_id",
    ],
}

BUDGET_FIELDS = ("daily_budget", "lifetime_budget")


# ══════════════════════════════════════════════════════════════════════
#  REMOTE ENTITIES: transient, fetched fresh per request
# ══════════════════════════════════════════════════════════════════════

@dataclass
class RemoteEntity:
    """A campaign, ad set or ad as listed by the Graph API, plus its insights."""
    level: EntityLevel
    raw: dict
    account_id: Optional[str] = None
    insights: Optional[InsightRecord] = None

    @property
    def id(self) -> str:
        return str(self.raw.get("id", ""))

    @property
    def name(self) -> Optional[str]:
        return self.raw.get("name")

    @property
    def status(self) -> Optional[str]:
        return self.raw.get("status")

    def budget(self) -> tuple[Optional[Decimal], Optional[str]]:
        """Displayed budget in major units: daily if set, else lifetime, else none."""
        for key, label in (("daily_budget", "daily"), ("lifetime_budget", "lifetime")):
            amount = from_minor_units(self.raw.get(key))
            if amount is not None:
                return amount, label
        return None, None

    def as_dict(self) -> dict:
        row = dict(self.raw)
        for key in BUDGET_FIELDS:
            if key in row:
                amount = from_minor_units(row[key])
                row[key] = format_money(amount) if amount is not None else None
        budget, budget_type = self.budget()
        row["budget"] = format_money(budget) if budget is not None else None
        row["budget_type"] = budget_type
        if self.account_id:
            row["account_id"] = self.account_id
        row["insights"] = self.insights.as_dict() if self.insights else None
        return row


@dataclass
class ListingResult:
    level: EntityLevel
    entities: list[RemoteEntity] = field(default_factory=list)
    scopes: int = 0
    failed_scopes: list[str] = field(default_factory=list)
    error: Optional[GraphError] = None

    @property
    def summary(self) -> InsightSummary:
        return summarize(e.insights for e in self.entities)

    @property
    def total(self) -> int:
        return len(self.entities)


# ══════════════════════════════════════════════════════════════════════
#  AGGREGATOR
# ══════════════════════════════════════════════════════════════════════

class MetaAggregator:
    """
    Request-scoped: wraps one MetaGraphClient and bounds the number of
    simultaneous outbound calls with a semaphore.
    """

    def __init__(self, client: MetaGraphClient, max_concurrency: Optional[int] = None, listing_limit: Optional[int] = None):
        settings = get_settings()
        self.client = client
        self.listing_limit = listing_limit or settings.meta_listing_limit
        self._semaphore = asyncio.Semaphore(max_concurrency or settings.meta_max_concurrency)

    async def list_entities(
        self,
        level: EntityLevel,
        parents: list[str],
        date_preset: str = DEFAULT_DATE_PRESET,
        statuses: Optional[list[str]] = None,
    ) -> ListingResult:
        """
        List `level` entities under each parent (ad account ids, or a single
        campaign / ad set id) and attach insights for `date_preset`.
        Parents are processed concurrently; output order follows `parents`.
        """
        result = ListingResult(level=level, scopes=len(parents))
        if not parents:
            return result

        outcomes = await asyncio.gather(
            *(self._list_scope(level, parent, date_preset, statuses) for parent in parents),
            return_exceptions=True,
        )

        errors: list[GraphError] = []
        for parent, outcome in zip(parents, outcomes):
            if isinstance(outcome, BaseException):
                logger.error(f"Listing {level.value} for {parent} raised: {outcome!r}", exc_info=outcome)
                result.failed_scopes.append(parent)
                continue
            entities, error = outcome
            if error is not None:
                logger.warning(f"Skipping {parent}: listing {level.value} failed ({error.kind.value}): {error.message}")
                result.failed_scopes.append(parent)
                errors.append(error)
                continue
            result.entities.extend(entities)

        if errors and len(result.failed_scopes) == len(parents):
            result.error = errors[0]

        logger.info(
            f"Listed {result.total} {level.value} across {len(parents)} scope(s), "
            f"{len(result.failed_scopes)} failed, preset={date_preset}"
        )
        return result

    async def _list_scope(
        self,
        level: EntityLevel,
        parent: str,
        date_preset: str,
        statuses: Optional[list[str]],
    ) -> tuple[list[RemoteEntity], Optional[GraphError]]:
        params = {"limit": self.listing_limit}
        if statuses:
            params["effective_status"] = statuses
        async with self._semaphore:
            response = await self.client.get(f"{parent}/{level.value}", fields=LEVEL_FIELDS[level], params=params)
        if not response.ok:
            return [], response.error

        account_id = parent if parent.startswith("act_") else None
        entities = [
            RemoteEntity(level=level, raw=item, account_id=account_id or item.get("account_id"))
            for item in response.items
            if isinstance(item, dict)
        ]
        insights = await asyncio.gather(
            *(self.fetch_insights(e.id, date_preset) for e in entities),
            return_exceptions=True,
        )
        for entity, record in zip(entities, insights):
            if isinstance(record, BaseException):
                logger.warning(f"Insights for {level.value} {entity.id} raised: {record!r}")
                record = None
            entity.insights = record
        return entities, None

    async def fetch_insights(self, node_id: str, date_preset: str) -> Optional[InsightRecord]:
        """Insights for one node; None when the call failed (not the same as zero delivery)."""
        async with self._semaphore:
            response = await self.client.get(
                f"{node_id}/insights",
                fields=INSIGHT_FIELDS,
                params={"date_preset": date_preset},
            )
        if not response.ok:
            logger.info(f"Insights unavailable for {node_id}: {response.error.message}")
            return None
        return normalize_insights(first_row(response.data))

    async def account_insights(
        self,
        account_ids: list[str],
        date_preset: str = DEFAULT_DATE_PRESET,
    ) -> tuple[Optional[Union[InsightRecord, InsightSummary]], Optional[GraphError]]:
        """
        Account-level KPIs. A single account answering yields its own record,
        with cpa as reported upstream; two or more are summed. Returns
        (None, error) only when every account's insights call failed.
        """
        if not account_ids:
            return None, None

        async def _one(account_id: str):
            async with self._semaphore:
                return await self.client.get(
                    f"{account_id}/insights",
                    fields=INSIGHT_FIELDS,
                    params={"date_preset": date_preset},
                )

        responses = await asyncio.gather(*(_one(a) for a in account_ids), return_exceptions=True)
        records: list[InsightRecord] = []
        first_error: Optional[GraphError] = None
        for account_id, response in zip(account_ids, responses):
            if isinstance(response, BaseException):
                logger.error(f"Account insights for {account_id} raised: {response!r}", exc_info=response)
                first_error = first_error or GraphError(GraphErrorKind.UPSTREAM, "Insights unavailable.")
            elif response.ok:
                records.append(normalize_insights(first_row(response.data)))
            else:
                logger.warning(f"Account insights failed for {account_id}: {response.error.message}")
                first_error = first_error or response.error

        if not records:
            return None, first_error
        if len(records) == 1:
            return records[0], None
        return summarize(records), None
