"""
Panel — Client-side state for the Meta Ads tables.

`DashboardAPI` talks to this backend's own /api/meta endpoints; `EntityTable`
owns a local copy of one level's rows and reconciles it with the server:
status toggles patch a single row on confirmed success, budget edits patch and
then refetch, and failures only raise the error banner (rows stay as they were).
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Optional

import httpx

from opsboard.services.aggregation_service import DEFAULT_DATE_PRESET, EntityLevel
from opsboard.services.insights_service import format_money, to_decimal

logger = logging.getLogger(__name__)

EMPTY_METRIC = "—"
PERCENT_METRICS = {"ctr"}
RATIO_METRICS = {"roas"}

LEVEL_ROUTES = {
    EntityLevel.CAMPAIGN: ("campaigns", "campaigns", "campaignId"),
    EntityLevel.ADSET: ("adsets", "adSets", "adSetId"),
    EntityLevel.AD: ("ads", "ads", "adId"),
}


class DashboardAPI:
    """Thin async client for the Meta panel endpoints."""

    def __init__(self, base_url: str = "", token: Optional[str] = None, http: Optional[httpx.AsyncClient] = None):
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._owns_http = http is None
        self.http = http or httpx.AsyncClient(base_url=base_url, headers=headers, timeout=30.0)
        if http is not None and headers:
            self.http.headers.update(headers)

    async def close(self):
        if self._owns_http:
            await self.http.aclose()

    async def _call(self, method: str, url: str, **kwargs) -> dict:
        """JSON body of any response; transport failures become a soft error."""
        try:
            response = await self.http.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.warning(f"{method} {url} failed: {type(e).__name__}")
            return {"error": "Could not reach the server."}
        try:
            body = response.json()
        except ValueError:
            return {"error": f"Unexpected response (HTTP {response.status_code})."}
        if response.is_error and isinstance(body, dict) and "error" not in body:
            body["error"] = body.get("detail") or f"HTTP {response.status_code}"
        return body if isinstance(body, dict) else {"error": "Unexpected response."}

    async def list_entities(
        self,
        level: EntityLevel,
        date_preset: str = DEFAULT_DATE_PRESET,
        account_id: Optional[str] = None,
        parent_id: Optional[str] = None,
        status: Optional[str] = None,
    ) -> dict:
        path, _, _ = LEVEL_ROUTES[level]
        params: dict[str, Any] = {"date_preset": date_preset}
        if account_id:
            params["account_id"] = account_id
        if status:
            params["status"] = status
        if parent_id and level == EntityLevel.ADSET:
            params["campaign_id"] = parent_id
        elif parent_id and level == EntityLevel.AD:
            params["adset_id"] = parent_id
        return await self._call("GET", f"/api/meta/{path}", params=params)

    async def update_entity(self, level: EntityLevel, entity_id: str, **changes) -> dict:
        path, _, id_key = LEVEL_ROUTES[level]
        body = {id_key: entity_id}
        body.update({k: (str(v) if isinstance(v, Decimal) else v) for k, v in changes.items() if v is not None})
        return await self._call("POST", f"/api/meta/{path}/update", json=body)

    async def accounts(self) -> list[dict]:
        body = await self._call("GET", "/api/meta/accounts")
        return body.get("accounts") or []

    async def insights(self, date_preset: str = DEFAULT_DATE_PRESET, account_id: Optional[str] = None) -> dict:
        params = {"date_preset": date_preset}
        if account_id:
            params["account_id"] = account_id
        return await self._call("GET", "/api/meta/insights", params=params)


def render_metric(row: dict, key: str) -> str:
    """Display text for one insight cell: "—" when insights are unavailable."""
    insights = row.get("insights")
    if not insights or insights.get(key) is None:
        return EMPTY_METRIC
    value = insights[key]
    if isinstance(value, int):
        return f"{value:,}"
    if key in PERCENT_METRICS:
        return f"{value}%"
    if key in RATIO_METRICS:
        return f"{value}x"
    return str(value)


@dataclass
class EntityTable:
    api: DashboardAPI
    level: EntityLevel
    date_preset: str = DEFAULT_DATE_PRESET
    account_id: Optional[str] = None
    parent_id: Optional[str] = None
    status_filter: Optional[str] = None
    rows: list[dict] = field(default_factory=list)
    summary: Optional[dict] = None
    total: int = 0
    error: Optional[str] = None
    message: Optional[str] = None
    connected: Optional[bool] = None
    in_flight: set[str] = field(default_factory=set)

    @property
    def rows_key(self) -> str:
        return LEVEL_ROUTES[self.level][1]

    def row(self, row_id: str) -> Optional[dict]:
        return next((r for r in self.rows if r.get("id") == row_id), None)

    def is_disabled(self, row_id: str) -> bool:
        return row_id in self.in_flight

    async def refresh(self) -> bool:
        """Replace the local rows from the server. On error the old rows stay."""
        body = await self.api.list_entities(
            self.level, self.date_preset, self.account_id, self.parent_id, self.status_filter,
        )
        self.connected = body.get("connected", self.connected)
        if body.get("error"):
            self.error = body["error"]
            return False
        self.rows = list(body.get(self.rows_key) or [])
        self.total = body.get("total", len(self.rows))
        self.summary = body.get("summary")
        self.message = body.get("message")
        self.error = None
        return True

    async def toggle_status(self, row_id: str) -> bool:
        """ACTIVE ↔ PAUSED for one row; patches only that row on success."""
        row = self.row(row_id)
        if row is None or row_id in self.in_flight:
            return False

        new_status = "PAUSED" if row.get("status") == "ACTIVE" else "ACTIVE"
        self.in_flight.add(row_id)
        try:
            body = await self.api.update_entity(self.level, row_id, status=new_status)
        finally:
            self.in_flight.discard(row_id)

        if not body.get("success"):
            self.error = body.get("error") or "Update failed."
            return False
        row["status"] = new_status
        self.error = None
        return True

    async def edit_budget(self, row_id: str, value) -> bool:
        """Set the row's budget (major units), then refetch to pick up server state."""
        if self.level == EntityLevel.AD:
            raise ValueError("Ads have no budget")
        row = self.row(row_id)
        if row is None or row_id in self.in_flight:
            return False

        amount = to_decimal(value)
        lifetime = row.get("budget_type") == "lifetime" and self.level == EntityLevel.CAMPAIGN
        change = {"lifetimeBudget": amount} if lifetime else {"dailyBudget": amount}

        self.in_flight.add(row_id)
        try:
            body = await self.api.update_entity(self.level, row_id, **change)
        finally:
            self.in_flight.discard(row_id)

        if not body.get("success"):
            self.error = body.get("error") or "Update failed."
            return False

        formatted = format_money(amount)
        row["budget"] = formatted
        row["budget_type"] = "lifetime" if lifetime else "daily"
        row["lifetime_budget" if lifetime else "daily_budget"] = formatted
        self.error = None
        await self.refresh()
        return True
