from __future__ import annotations

from pathlib import Path
from typing import Dict
from unittest.mock import AsyncMock

import pytest

from marketclaw_ai.costs.tools import (
    CheckBudgetsTool,
    DeleteBudgetTool,
    GetCostSummaryTool,
    GetCostsTool,
    GetCostTrendTool,
    ListBudgetsTool,
    SetBudgetTool,
    build_cost_tools,
)
from marketclaw_ai.costs.tracker import CostTracker
from marketclaw_ai.tools.base import Tool, ToolCost


@pytest.fixture
def tracker(workspace: Path) -> CostTracker:
    return CostTracker(workspace)


def test_build_cost_tools(tracker: CostTracker) -> None:
    tools = build_cost_tools(tracker)
    names = [t.name for t in tools]
    assert names == [
        "get_costs",
        "get_cost_summary",
        "get_cost_trend",
        "set_budget",
        "list_budgets",
        "delete_budget",
        "check_budgets",
    ]
    assert all(isinstance(t, Tool) for t in tools)
    assert all(t.parameters["type"] == "object" for t in tools)


class TestGetCosts:
    @pytest.mark.asyncio
    async def test_empty(self, tracker: CostTracker) -> None:
        res = await GetCostsTool(tracker).execute({})
        assert res.success is True
        assert res.data == []

    @pytest.mark.asyncio
    async def test_records(self, tracker: CostTracker) -> None:
        await tracker.log(tool="send_email", cost=ToolCost(usd=0.001, provider="resend", unit_type="emails"), product_id="p1")
        await tracker.log(tool="gen_image", cost=ToolCost(usd=0.04, provider="openai-image"), product_id="p2")

        res = await GetCostsTool(tracker).execute({"productId": "p1"})

        assert res.success is True
        assert res.message == "Found 1 cost record(s) totaling $0.0010."
        assert res.data["count"] == 1
        assert res.data["records"][0]["unitType"] == "emails"

    @pytest.mark.asyncio
    async def test_bad_date_is_reported(self, tracker: CostTracker) -> None:
        res = await GetCostsTool(tracker).execute({"from": "whenever"})
        assert res.success is False
        assert res.message.startswith("Failed to query costs: ")

    @pytest.mark.asyncio
    async def test_default_limit(self) -> None:
        tracker = AsyncMock()
        tracker.query.return_value = []
        await GetCostsTool(tracker).execute({})
        assert tracker.query.await_args.args[0].limit == 100


class TestSummaryAndTrend:
    @pytest.mark.asyncio
    async def test_summary_message_has_breakdown(self, tracker: CostTracker) -> None:
        await tracker.log(tool="send_email", cost=ToolCost(usd=0.001, provider="resend"), agent="emily")
        await tracker.log(tool="gen_image", cost=ToolCost(usd=0.04, provider="openai-image"))

        res = await GetCostSummaryTool(tracker).execute({"from": "today"})

        assert res.success is True
        lines = res.message.splitlines()
        assert lines[0] == "Total: $0.0410 (2 operations)"
        assert "  By Tool: gen_image: $0.0400, send_email: $0.0010" in lines
        assert "  By Agent: emily: $0.0010" in lines
        assert res.data["totalUsd"] == 0.041

    @pytest.mark.asyncio
    async def test_summary_empty(self, tracker: CostTracker) -> None:
        res = await GetCostSummaryTool(tracker).execute({})
        assert res.message == "No costs recorded for this period."

    @pytest.mark.asyncio
    async def test_trend(self, tracker: CostTracker) -> None:
        await tracker.log(tool="a", cost=ToolCost(usd=0.5, provider="openai"))

        res = await GetCostTrendTool(tracker).execute({"groupBy": "hour"})

        assert res.success is True
        assert len(res.data) == 1
        assert res.message == "Cost trend (1 periods, total: $0.5000)"

    @pytest.mark.asyncio
    async def test_trend_rejects_unknown_grouping(self, tracker: CostTracker) -> None:
        await tracker.log(tool="a", cost=ToolCost(usd=0.5, provider="openai"))
        res = await GetCostTrendTool(tracker).execute({"groupBy": "tool"})
        assert res.success is False
        assert res.message.startswith("Failed to get cost trend: ")


class TestBudgetTools:
    @pytest.mark.asyncio
    async def test_set_budget_created_then_updated(self, tracker: CostTracker) -> None:
        tool = SetBudgetTool(tracker)

        res = await tool.execute({"name": "P1", "scope": "product", "scopeId": "p1", "period": "weekly", "limitUsd": 20})
        assert res.success is True
        assert res.message == 'Budget "P1" created: $20.0/weekly (product: p1)'
        assert res.data["action"] == "warn"

        res = await tool.execute(
            {"id": res.data["id"], "name": "P1", "scope": "product", "scopeId": "p1", "period": "weekly", "limitUsd": 30}
        )
        assert "updated" in res.message
        assert len(await tracker.get_budgets()) == 1

    @pytest.mark.asyncio
    async def test_set_budget_requires_scope_id(self, tracker: CostTracker) -> None:
        res = await SetBudgetTool(tracker).execute({"name": "A", "scope": "agent", "period": "daily", "limitUsd": 1})
        assert res.success is False
        assert res.message == 'scopeId is required when scope is "agent"'

    @pytest.mark.asyncio
    async def test_set_budget_requires_fields(self, tracker: CostTracker) -> None:
        res = await SetBudgetTool(tracker).execute({"name": "A", "scope": "global"})
        assert res.success is False
        assert res.message == "Missing required parameter(s): period, limitUsd"

    @pytest.mark.asyncio
    async def test_set_budget_invalid_limit(self, tracker: CostTracker) -> None:
        res = await SetBudgetTool(tracker).execute({"name": "A", "scope": "global", "period": "daily", "limitUsd": -5})
        assert res.success is False
        assert res.message.startswith("Failed to set budget: ")

    @pytest.mark.asyncio
    async def test_list_budgets_with_status(self, tracker: CostTracker) -> None:
        await tracker.set_budget(name="All", scope="global", period="daily", limit_usd=10)

        res = await ListBudgetsTool(tracker).execute({})
        assert res.message == "Found 1 budget(s)."
        status: Dict = res.data[0]["status"]
        assert status["spent"] == 0.0
        assert status["isExceeded"] is False
        assert "budget" not in status

        res = await ListBudgetsTool(tracker).execute({"includeStatus": False})
        assert "status" not in res.data[0]

    @pytest.mark.asyncio
    async def test_list_budgets_empty(self, tracker: CostTracker) -> None:
        res = await ListBudgetsTool(tracker).execute({})
        assert res.message == "No budgets configured. Use set_budget to create one."

    @pytest.mark.asyncio
    async def test_delete_budget(self, tracker: CostTracker) -> None:
        budget = await tracker.set_budget(name="All", scope="global", period="daily", limit_usd=10)

        assert (await DeleteBudgetTool(tracker).execute({"id": budget.id})).success is True
        res = await DeleteBudgetTool(tracker).execute({"id": budget.id})
        assert res.success is False
        assert res.message == f"Budget not found: {budget.id}"

    @pytest.mark.asyncio
    async def test_check_budgets(self, tracker: CostTracker) -> None:
        await tracker.log(tool="a", cost=ToolCost(usd=1.5, provider="openai"))
        await tracker.set_budget(name="Cap", scope="global", period="daily", limit_usd=1)
        await tracker.set_budget(name="Near", scope="global", period="daily", limit_usd=1.8)

        res = await CheckBudgetsTool(tracker).execute({})

        assert res.success is True
        assert res.message.splitlines() == [
            "[EXCEEDED] Cap: 150.0% used ($1.50 / $1.00)",
            "[WARNING] Near: 83.3% used ($1.50 / $1.80)",
        ]

        res = await CheckBudgetsTool(tracker).execute({"warningThreshold": 200})
        assert res.message == "All budgets are within limits (threshold: 200%)."

    @pytest.mark.asyncio
    async def test_check_budgets_zero_threshold_reports_unspent(self, tracker: CostTracker) -> None:
        await tracker.set_budget(name="Idle", scope="global", period="daily", limit_usd=5)

        assert (await CheckBudgetsTool(tracker).execute({})).data == []

        res = await CheckBudgetsTool(tracker).execute({"warningThreshold": 0})
        assert res.message == "[WARNING] Idle: 0.0% used ($0.00 / $5.00)"
