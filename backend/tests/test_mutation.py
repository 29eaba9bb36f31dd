"""
Tests for single-entity writes: validation, unit conversion, verbatim errors, no retry.
"""

from decimal import Decimal

import httpx
import pytest

from opsboard.graph_client import MetaGraphClient
from opsboard.services.mutation_service import EntityChange, MutationRejected, apply_change


def _form(request: httpx.Request) -> dict:
    return dict(httpx.QueryParams(request.content.decode()))


def test_budget_converted_to_cents_half_up():
    form = EntityChange("c1", daily_budget=Decimal("25.505")).to_form()
    assert form == {"daily_budget": 2551}


def test_status_normalized_and_validated():
    assert EntityChange("c1", status="paused").to_form() == {"status": "PAUSED"}
    with pytest.raises(MutationRejected):
        EntityChange("c1", status="RUNNING").to_form()


def test_empty_change_set_rejected():
    with pytest.raises(MutationRejected, match="No changes"):
        EntityChange("c1").to_form()


def test_non_positive_budget_rejected():
    with pytest.raises(MutationRejected):
        EntityChange("c1", lifetime_budget=Decimal("0")).to_form()


def test_blank_name_rejected():
    with pytest.raises(MutationRejected):
        EntityChange("c1", name="   ").to_form()


@pytest.mark.anyio
async def test_apply_sends_one_post(graph, graph_http):
    graph.on("c1", {"success": True}, method="POST")
    client = MetaGraphClient(access_token="t", http=graph_http)

    result = await apply_change(client, EntityChange("c1", status="ACTIVE", daily_budget=Decimal("10"), name="Spring"))

    assert result.success
    assert len(graph.requests) == 1
    form = _form(graph.requests[0])
    assert form["status"] == "ACTIVE"
    assert form["daily_budget"] == "1000"
    assert form["name"] == "Spring"


@pytest.mark.anyio
async def test_upstream_error_returned_verbatim_without_retry(graph, graph_http):
    graph.error("c1", 100, "Budget too low for this currency", method="POST")
    client = MetaGraphClient(access_token="t", http=graph_http)

    result = await apply_change(client, EntityChange("c1", daily_budget=Decimal("0.5")))

    assert not result.success
    assert result.message == "Budget too low for this currency"
    assert len(graph.calls("c1", method="POST")) == 1


@pytest.mark.anyio
async def test_rejected_change_never_reaches_upstream(graph, graph_http):
    client = MetaGraphClient(access_token="t", http=graph_http)
    with pytest.raises(MutationRejected):
        await apply_change(client, EntityChange("c1"))
    assert graph.requests == []
