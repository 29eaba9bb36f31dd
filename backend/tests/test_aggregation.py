"""
Tests for the multi-account aggregator: fan-out order, partial failures,
null insights, budget conversion and the summary row.
"""

import httpx
import pytest

from opsboard.graph_client import GraphErrorKind, MetaGraphClient
from opsboard.services.aggregation_service import EntityLevel, MetaAggregator

from conftest import insights_body


def _campaign(cid, name=None, status="ACTIVE", **kw):
    return {"id": cid, "name": name or cid, "status": status, **kw}


def _aggregator(graph_http, **kw) -> MetaAggregator:
    return MetaAggregator(MetaGraphClient(access_token="t", http=graph_http), **kw)


@pytest.mark.anyio
async def test_two_accounts_merge_and_sum(graph, graph_http):
    graph.on("act_1/campaigns", {"data": [_campaign("c1"), _campaign("c2")]})
    graph.on("act_2/campaigns", {"data": [_campaign("c3"), _campaign("c4")]})
    for big, small in (("c1", "c2"), ("c3", "c4")):
        graph.on(f"{big}/insights", insights_body(spend="100", revenue="200", purchases=4))
        graph.on(f"{small}/insights", insights_body(spend="50", revenue="50", purchases=1))

    result = await _aggregator(graph_http).list_entities(EntityLevel.CAMPAIGN, ["act_1", "act_2"], "last_7d")

    assert result.error is None
    assert [e.id for e in result.entities] == ["c1", "c2", "c3", "c4"]
    assert [e.account_id for e in result.entities] == ["act_1", "act_1", "act_2", "act_2"]
    summary = result.summary.as_dict()
    assert result.total == 4
    assert summary["spend"] == "300.00"
    assert summary["revenue"] == "500.00"
    assert summary["roas"] == "1.67"
    assert summary["purchases"] == 10
    assert summary["cpa"] == "30.00"
    assert summary["profit"] == "200.00"
    # date preset is forwarded verbatim to every insights call
    assert all(r.url.params["date_preset"] == "last_7d" for r in graph.calls("c1/insights"))


@pytest.mark.anyio
async def test_failed_scope_is_skipped(graph, graph_http):
    graph.on("act_1/campaigns", {"data": [_campaign("c1")]})
    graph.error("act_2/campaigns", 100, "Unsupported get request")
    graph.on("act_3/campaigns", {"data": [_campaign("c3")]})
    graph.on("c1/insights", insights_body(spend="10"))
    graph.on("c3/insights", insights_body(spend="20"))

    result = await _aggregator(graph_http).list_entities(EntityLevel.CAMPAIGN, ["act_1", "act_2", "act_3"])

    assert [e.id for e in result.entities] == ["c1", "c3"]
    assert result.failed_scopes == ["act_2"]
    assert result.error is None
    assert result.summary.as_dict()["spend"] == "30.00"


@pytest.mark.anyio
async def test_all_scopes_failing_reports_first_error(graph, graph_http):
    graph.error("act_1/campaigns", 190, "Error validating access token")
    graph.error("act_2/campaigns", 100)

    result = await _aggregator(graph_http).list_entities(EntityLevel.CAMPAIGN, ["act_1", "act_2"])

    assert result.entities == []
    assert result.error.kind == GraphErrorKind.INVALID_TOKEN


@pytest.mark.anyio
async def test_failed_insights_is_null_and_still_counted(graph, graph_http):
    graph.on("act_1/campaigns", {"data": [_campaign("c1"), _campaign("c2")]})
    graph.on("c1/insights", insights_body(spend="40", revenue="80"))
    graph.on("c2/insights", exc=httpx.ReadTimeout)

    result = await _aggregator(graph_http).list_entities(EntityLevel.CAMPAIGN, ["act_1"])

    rows = [e.as_dict() for e in result.entities]
    assert rows[0]["insights"]["spend"] == "40.00"
    assert rows[1]["insights"] is None
    summary = result.summary.as_dict()
    assert summary["count"] == 2
    assert summary["withInsights"] == 1
    assert summary["spend"] == "40.00"
    assert summary["roas"] == "2.00"


@pytest.mark.anyio
async def test_no_delivery_is_zero_not_null(graph, graph_http):
    graph.on("act_1/campaigns", {"data": [_campaign("c1")]})
    graph.on("c1/insights", {"data": []})

    result = await _aggregator(graph_http).list_entities(EntityLevel.CAMPAIGN, ["act_1"])

    insights = result.entities[0].as_dict()["insights"]
    assert insights is not None
    assert insights["spend"] == "0.00"
    assert insights["roas"] == "0.00"


@pytest.mark.anyio
async def test_budgets_are_exposed_in_major_units(graph, graph_http):
    graph.on("act_1/campaigns", {"data": [
        _campaign("c1", daily_budget="2550"),
        _campaign("c2", lifetime_budget="100000"),
        _campaign("c3"),
    ]})
    for cid in ("c1", "c2", "c3"):
        graph.on(f"{cid}/insights", {"data": []})

    result = await _aggregator(graph_http).list_entities(EntityLevel.CAMPAIGN, ["act_1"])
    rows = {e.id: e.as_dict() for e in result.entities}

    assert rows["c1"]["budget"] == "25.50"
    assert rows["c1"]["budget_type"] == "daily"
    assert rows["c1"]["daily_budget"] == "25.50"
    assert rows["c2"]["budget"] == "1000.00"
    assert rows["c2"]["budget_type"] == "lifetime"
    assert rows["c3"]["budget"] is None
    assert rows["c3"]["budget_type"] is None


@pytest.mark.anyio
async def test_scope_order_kept_when_first_scope_is_slowest(graph, graph_http):
    graph.on("act_1/adsets", {"data": [_campaign("s1")]}, delay=0.05)
    graph.on("act_2/adsets", {"data": [_campaign("s2")]})
    graph.on("s1/insights", {"data": []})
    graph.on("s2/insights", {"data": []})

    result = await _aggregator(graph_http).list_entities(EntityLevel.ADSET, ["act_1", "act_2"])

    assert [e.id for e in result.entities] == ["s1", "s2"]


@pytest.mark.anyio
async def test_concurrency_is_bounded(graph, graph_http):
    graph.on("act_1/ads", {"data": [_campaign(f"a{i}") for i in range(8)]})
    for i in range(8):
        graph.on(f"a{i}/insights", {"data": []}, delay=0.01)

    await _aggregator(graph_http, max_concurrency=2).list_entities(EntityLevel.AD, ["act_1"])

    assert graph.max_in_flight <= 2
    assert len([r for r in graph.requests if r.url.path.endswith("/insights")]) == 8


@pytest.mark.anyio
async def test_status_filter_becomes_effective_status(graph, graph_http):
    graph.on("cmp1/adsets", {"data": []})

    await _aggregator(graph_http).list_entities(EntityLevel.ADSET, ["cmp1"], statuses=["ACTIVE", "PAUSED"])

    params = graph.calls("cmp1/adsets")[0].url.params
    assert params["effective_status"] == '["ACTIVE", "PAUSED"]'
    assert "campaign_id" in params["fields"]


@pytest.mark.anyio
async def test_account_insights_sum_across_accounts(graph, graph_http):
    graph.on("act_1/insights", insights_body(spend="100", revenue="300", purchases=3))
    graph.on("act_2/insights", insights_body(spend="50", revenue="0"))

    summary, error = await _aggregator(graph_http).account_insights(["act_1", "act_2"])

    assert error is None
    d = summary.as_dict()
    assert d["spend"] == "150.00"
    assert d["roas"] == "2.00"
    assert d["cpa"] == "50.00"


@pytest.mark.anyio
async def test_account_insights_null_only_when_all_fail(graph, graph_http):
    graph.error("act_1/insights", 10, "Permission denied")
    summary, error = await _aggregator(graph_http).account_insights(["act_1"])
    assert summary is None
    assert error.kind == GraphErrorKind.PERMISSION

    graph.on("act_2/insights", insights_body(spend="5"))
    summary, error = await _aggregator(graph_http).account_insights(["act_1", "act_2"])
    assert error is None
    assert summary.as_dict()["spend"] == "5.00"


class _TransportBroke(Exception):
    def __init__(self, message, request=None):
        super().__init__(message)


@pytest.mark.anyio
async def test_account_insights_isolates_raising_account(graph, graph_http):
    graph.on("act_1/insights", exc=_TransportBroke)
    graph.on("act_2/insights", insights_body(spend="5"))

    summary, error = await _aggregator(graph_http).account_insights(["act_1", "act_2"])
    assert error is None
    assert summary.as_dict()["spend"] == "5.00"

    summary, error = await _aggregator(graph_http).account_insights(["act_1"])
    assert summary is None
    assert error.kind == GraphErrorKind.UPSTREAM
