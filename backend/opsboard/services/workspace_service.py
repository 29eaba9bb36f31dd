"""
Workspace Service — Ledger totals, board/pipeline grouping and the home
dashboard cards. Pure reads over the workspace tables.
"""

import logging
from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from opsboard.models import (
    FinancialRecord, Product, ProductStatus, RecordStatus, RecordType,
    Task, TaskPriority, TaskStatus,
)
from opsboard.services.insights_service import format_money

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


# ── Ledger ────────────────────────────────────────────────────────────

def ledger_totals(records: Iterable[FinancialRecord]) -> dict[str, Decimal]:
    """Cash-flow totals: balance counts PAID records only."""
    income_paid = expense_paid = expense_pending = income_pending = ZERO
    for r in records:
        amount = Decimal(r.amount or 0)
        paid = r.status == RecordStatus.PAID.value
        if r.type == RecordType.INCOME.value:
            if paid:
                income_paid += amount
            else:
                income_pending += amount
        elif r.type == RecordType.EXPENSE.value:
            if paid:
                expense_paid += amount
            else:
                expense_pending += amount
    return {
        "income_paid": income_paid,
        "income_pending": income_pending,
        "expense_paid": expense_paid,
        "expense_pending": expense_pending,
        "balance": income_paid - expense_paid,
    }


async def ledger_summary(db: AsyncSession) -> dict[str, str]:
    result = await db.execute(select(FinancialRecord))
    totals = ledger_totals(result.scalars().all())
    return {k: format_money(v) for k, v in totals.items()}


def toggled_record_status(status: str) -> str:
    return RecordStatus.PENDING.value if status == RecordStatus.PAID.value else RecordStatus.PAID.value


# ── Grouping ──────────────────────────────────────────────────────────

def group_by_status(items: Iterable, statuses: Iterable[str]) -> dict[str, list]:
    """Bucket rows by `status`, one (possibly empty) list per known status."""
    groups: dict[str, list] = {s: [] for s in statuses}
    for item in items:
        groups.setdefault(item.status, []).append(item)
    return groups


# ── Dashboard ─────────────────────────────────────────────────────────

def week_bounds(today: date) -> tuple[date, date]:
    """Monday..Sunday of the week containing `today`."""
    start = today - timedelta(days=today.weekday())
    return start, start + timedelta(days=6)


async def _count(db: AsyncSession, model, *conditions) -> int:
    result = await db.execute(select(func.count()).select_from(model).where(*conditions))
    return result.scalar() or 0


async def dashboard_summary(db: AsyncSession, today: Optional[date] = None) -> dict:
    today = today or date.today()
    start, end = week_bounds(today)

    payables = await db.execute(
        select(func.coalesce(func.sum(FinancialRecord.amount), 0)).where(
            FinancialRecord.type == RecordType.EXPENSE.value,
            FinancialRecord.status == RecordStatus.PENDING.value,
            FinancialRecord.due_date >= start,
            FinancialRecord.due_date <= end,
        )
    )
    ledger = await db.execute(select(FinancialRecord))
    totals = ledger_totals(ledger.scalars().all())

    return {
        "payables_this_week": format_money(Decimal(payables.scalar() or 0)),
        "pending_tasks": await _count(db, Task, Task.status != TaskStatus.DONE.value),
        "high_priority_tasks": await _count(
            db, Task,
            Task.status != TaskStatus.DONE.value,
            Task.priority == TaskPriority.HIGH.value,
        ),
        "scaling_products": await _count(db, Product, Product.status == ProductStatus.SCALING.value),
        "validating_products": await _count(db, Product, Product.status == ProductStatus.VALIDATING.value),
        "balance": format_money(totals["balance"]),
    }
