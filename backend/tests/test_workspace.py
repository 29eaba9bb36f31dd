"""
Tests for the workspace endpoints: vault, ledger, task board, product pipeline
and the home dashboard cards.
"""

from datetime import date
from decimal import Decimal

import pytest

from opsboard.models import FinancialRecord, Product, Task
from opsboard.services.workspace_service import dashboard_summary, ledger_totals, week_bounds


# ── Vault ─────────────────────────────────────────────────────────────

@pytest.mark.anyio
async def test_vault_roundtrip_and_category_filter(client):
    await client.post("/api/credentials", json={"service": "Hotmart", "username": "ops", "password": "s3cret", "category": "sales"})
    await client.post("/api/credentials", json={"service": "Canva", "password": "pw", "category": "design"})

    sales = (await client.get("/api/credentials", params={"category": "sales"})).json()
    assert [c["service"] for c in sales] == ["Hotmart"]
    assert sales[0]["password"] == "s3cret"

    resp = await client.delete(f"/api/credentials/{sales[0]['id']}")
    assert resp.json() == {"status": "deleted"}
    assert len((await client.get("/api/credentials")).json()) == 1


@pytest.mark.anyio
async def test_vault_requires_service(client):
    resp = await client.post("/api/credentials", json={"service": "  "})
    assert resp.status_code == 400
    assert resp.json()["error"] == "Service is required"


@pytest.mark.anyio
async def test_vault_bad_id(client):
    assert (await client.delete("/api/credentials/not-a-uuid")).status_code == 400


# ── Ledger ────────────────────────────────────────────────────────────

def test_ledger_balance_counts_paid_only():
    records = [
        FinancialRecord(description="a", amount=Decimal("1000"), type="INCOME", status="PAID"),
        FinancialRecord(description="b", amount=Decimal("300"), type="INCOME", status="PENDING"),
        FinancialRecord(description="c", amount=Decimal("250.50"), type="EXPENSE", status="PAID"),
        FinancialRecord(description="d", amount=Decimal("99"), type="EXPENSE", status="PENDING"),
    ]
    totals = ledger_totals(records)
    assert totals["balance"] == Decimal("749.50")
    assert totals["income_pending"] == Decimal("300")
    assert totals["expense_pending"] == Decimal("99")


@pytest.mark.anyio
async def test_ledger_toggle_and_summary(client):
    income = (await client.post("/api/finance", json={"description": "Sale", "amount": "500", "type": "INCOME"})).json()
    await client.post("/api/finance", json={"description": "Ads", "amount": "120.25", "type": "EXPENSE", "status": "PAID"})

    assert income["status"] == "PENDING"
    assert income["amount"] == "500.00"
    assert (await client.get("/api/finance/summary")).json()["balance"] == "-120.25"

    toggled = (await client.post(f"/api/finance/{income['id']}/toggle")).json()
    assert toggled["status"] == "PAID"
    summary = (await client.get("/api/finance/summary")).json()
    assert summary["balance"] == "379.75"
    assert summary["income_paid"] == "500.00"


@pytest.mark.anyio
async def test_ledger_rejects_non_positive_amount(client):
    resp = await client.post("/api/finance", json={"description": "x", "amount": "0", "type": "INCOME"})
    assert resp.status_code == 400


@pytest.mark.anyio
async def test_ledger_orders_by_due_date_undated_last(client):
    await client.post("/api/finance", json={"description": "undated", "amount": "1", "type": "EXPENSE"})
    await client.post("/api/finance", json={"description": "late", "amount": "1", "type": "EXPENSE", "due_date": "2024-06-20"})
    await client.post("/api/finance", json={"description": "early", "amount": "1", "type": "EXPENSE", "due_date": "2024-06-01"})

    rows = (await client.get("/api/finance", params={"type": "EXPENSE"})).json()
    assert [r["description"] for r in rows] == ["early", "late", "undated"]


# ── Tasks ─────────────────────────────────────────────────────────────

@pytest.mark.anyio
async def test_task_board(client):
    task = (await client.post("/api/tasks", json={"title": "Write copy", "priority": "HIGH"})).json()
    await client.post("/api/tasks", json={"title": "Review ads"})
    assert task["status"] == "TODO"

    moved = (await client.post(f"/api/tasks/{task['id']}/status", json={"status": "IN_PROGRESS"})).json()
    assert moved["status"] == "IN_PROGRESS"

    board = (await client.get("/api/tasks/board")).json()
    assert set(board) == {"TODO", "IN_PROGRESS", "DONE"}
    assert [t["title"] for t in board["IN_PROGRESS"]] == ["Write copy"]
    assert [t["title"] for t in board["TODO"]] == ["Review ads"]
    assert board["DONE"] == []


@pytest.mark.anyio
async def test_task_invalid_status(client):
    task = (await client.post("/api/tasks", json={"title": "x"})).json()
    resp = await client.post(f"/api/tasks/{task['id']}/status", json={"status": "BLOCKED"})
    assert resp.status_code == 400


# ── Products ──────────────────────────────────────────────────────────

@pytest.mark.anyio
async def test_product_pipeline(client):
    product = (await client.post("/api/products", json={"name": "Course A", "platform": "Hotmart"})).json()
    assert product["status"] == "MINING"

    await client.post(f"/api/products/{product['id']}/status", json={"status": "SCALING"})

    pipeline = (await client.get("/api/products/pipeline")).json()
    assert [p["name"] for p in pipeline["SCALING"]] == ["Course A"]
    assert pipeline["MINING"] == []

    assert (await client.delete(f"/api/products/{product['id']}")).json() == {"status": "deleted"}
    assert (await client.delete(f"/api/products/{product['id']}")).status_code == 404


# ── Dashboard ─────────────────────────────────────────────────────────

def test_week_bounds():
    assert week_bounds(date(2024, 6, 12)) == (date(2024, 6, 10), date(2024, 6, 16))
    assert week_bounds(date(2024, 6, 16)) == (date(2024, 6, 10), date(2024, 6, 16))


@pytest.mark.anyio
async def test_dashboard_summary(db):
    db.add_all([
        FinancialRecord(description="rent", amount=Decimal("100"), type="EXPENSE", status="PENDING", due_date=date(2024, 6, 11)),
        FinancialRecord(description="tools", amount=Decimal("50.50"), type="EXPENSE", status="PENDING", due_date=date(2024, 6, 16)),
        FinancialRecord(description="next week", amount=Decimal("999"), type="EXPENSE", status="PENDING", due_date=date(2024, 6, 17)),
        FinancialRecord(description="paid", amount=Decimal("70"), type="EXPENSE", status="PAID", due_date=date(2024, 6, 12)),
        FinancialRecord(description="sale", amount=Decimal("500"), type="INCOME", status="PAID"),
        Task(title="a", status="TODO", priority="HIGH"),
        Task(title="b", status="IN_PROGRESS", priority="LOW"),
        Task(title="c", status="DONE", priority="HIGH"),
        Product(name="p1", status="SCALING"),
        Product(name="p2", status="VALIDATING"),
        Product(name="p3", status="VALIDATING"),
    ])
    await db.commit()

    summary = await dashboard_summary(db, today=date(2024, 6, 12))

    assert summary == {
        "payables_this_week": "150.50",
        "pending_tasks": 2,
        "high_priority_tasks": 1,
        "scaling_products": 1,
        "validating_products": 2,
        "balance": "430.00",
    }


@pytest.mark.anyio
async def test_dashboard_endpoint(client):
    body = (await client.get("/api/dashboard")).json()
    assert body["pending_tasks"] == 0
    assert body["balance"] == "0.00"
