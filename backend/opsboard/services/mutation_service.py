"""
Mutation Service — Single-entity writes to Meta campaigns, ad sets and ads.

Budgets arrive in major units and leave as integer cents. One POST per
request; no retries, no read-back. Upstream errors are returned verbatim so
the dashboard can show exactly what Meta said.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from opsboard.graph_client import GraphError, GraphErrorKind, MetaGraphClient
from opsboard.services.insights_service import to_decimal, to_minor_units

logger = logging.getLogger(__name__)

ALLOWED_STATUSES = ("ACTIVE", "PAUSED", "ARCHIVED", "DELETED")


class MutationRejected(ValueError):
    """The change set is malformed and was not sent upstream."""


@dataclass
class EntityChange:
    entity_id: str
    status: Optional[str] = None
    daily_budget: Optional[Decimal] = None
    lifetime_budget: Optional[Decimal] = None
    name: Optional[str] = None

    def to_form(self) -> dict:
        """Validated POST body in wire units. Raises MutationRejected."""
        if not self.entity_id or not str(self.entity_id).strip():
            raise MutationRejected("Entity id is required")

        form: dict = {}
        if self.status is not None:
            status = self.status.strip().upper()
            if status not in ALLOWED_STATUSES:
                raise MutationRejected(
                    f"Invalid status {self.status!r}. Allowed: {', '.join(ALLOWED_STATUSES)}"
                )
            form["status"] = status
        for key, amount in (("daily_budget", self.daily_budget), ("lifetime_budget", self.lifetime_budget)):
            if amount is None:
                continue
            if to_decimal(amount) <= 0:
                raise MutationRejected(f"{key} must be greater than zero")
            form[key] = to_minor_units(amount)
        if self.name is not None:
            if not self.name.strip():
                raise MutationRejected("name cannot be empty")
            form["name"] = self.name.strip()

        if not form:
            raise MutationRejected("No changes provided")
        return form


@dataclass
class MutationResult:
    success: bool
    error: Optional[GraphError] = None

    @property
    def message(self) -> Optional[str]:
        return self.error.message if self.error else None


async def apply_change(client: MetaGraphClient, change: EntityChange) -> MutationResult:
    """Send one change to one entity. MutationRejected propagates for bad input."""
    form = change.to_form()
    response = await client.post(change.entity_id, form)
    if not response.ok:
        logger.warning(f"Update of {change.entity_id} rejected: {response.error.message}")
        return MutationResult(success=False, error=response.error)

    # Meta answers {"success": true}; anything else is treated as a refusal
    if isinstance(response.data, dict) and response.data.get("success") is False:
        err = GraphError(GraphErrorKind.UPSTREAM, "Meta did not accept the update.")
        return MutationResult(success=False, error=err)

    logger.info(f"Updated {change.entity_id}: {sorted(form)}")
    return MutationResult(success=True)
