from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar, Dict, List

from ..tools.base import Tool, ToolResult
from .models import CostQuery
from .tracker import CostTracker

_DATE_FROM = {
    "type": "string",
    "description": "Start date (ISO format, or: today, yesterday, this-week, this-month)",
}
_DATE_TO = {"type": "string", "description": "End date (ISO format)"}


def _format_breakdown(values: Dict[str, float]) -> str:
    ordered = sorted(values.items(), key=lambda kv: kv[1], reverse=True)
    return ", ".join(f"{k}: ${v:.4f}" for k, v in ordered)


@dataclass(frozen=True)
class CostTool:
    """Base for administrative tools bound to a ``CostTracker``."""

    tracker: CostTracker


@dataclass(frozen=True)
class GetCostsTool(CostTool):
    """
    Query raw cost records.

    Returns the matching records (oldest first, at most ``limit``, default 100)
    together with their total.
    """

    name: str = "get_costs"
    description: str = (
        "Query cost records with optional filters. Returns detailed cost data for analysis. "
        "Use for expense reports, debugging, or auditing."
    )
    parameters: ClassVar[Dict[str, Any]] = {
        "type": "object",
        "properties": {
            "from": _DATE_FROM,
            "to": _DATE_TO,
            "tool": {"type": "string", "description": "Filter by tool name"},
            "agent": {"type": "string", "description": "Filter by sub-agent name"},
            "productId": {"type": "string", "description": "Filter by product ID"},
            "userId": {"type": "string", "description": "Filter by user ID"},
            "provider": {"type": "string", "description": "Filter by provider (openai, anthropic, gemini, resend, etc.)"},
            "limit": {"type": "number", "description": "Max records to return (default: 100)"},
        },
    }

    async def execute(self, params: Dict[str, Any]) -> ToolResult:
        try:
            query = CostQuery(
                from_=params.get("from"),
                to=params.get("to"),
                tool=params.get("tool"),
                agent=params.get("agent"),
                product_id=params.get("productId"),
                user_id=params.get("userId"),
                provider=params.get("provider"),
                limit=int(params.get("limit") or 100),
            )
            records = await self.tracker.query(query)
        except Exception as e:
            return ToolResult.fail(f"Failed to query costs: {e}")

        if not records:
            return ToolResult.ok("No cost records found for the specified filters.", data=[])

        total = sum(r.cost.usd for r in records)
        return ToolResult.ok(
            f"Found {len(records)} cost record(s) totaling ${total:.4f}.",
            data={
                "totalUsd": round(total, 4),
                "count": len(records),
                "records": [
                    {
                        "timestamp": r.timestamp,
                        "tool": r.tool,
                        "agent": r.agent,
                        "productId": r.product_id,
                        "usd": r.cost.usd,
                        "provider": r.cost.provider,
                        "units": r.cost.units,
                        "unitType": r.cost.unit_type,
                    }
                    for r in records
                ],
            },
        )


@dataclass(frozen=True)
class GetCostSummaryTool(CostTool):
    """Aggregated spend with per-tool, per-agent, per-provider and per-product breakdowns."""

    name: str = "get_cost_summary"
    description: str = (
        "Get aggregated cost summary with breakdowns by tool, agent, product, provider, and user. "
        "Perfect for dashboards and reports."
    )
    parameters: ClassVar[Dict[str, Any]] = {
        "type": "object",
        "properties": {
            "from": _DATE_FROM,
            "to": _DATE_TO,
            "productId": {"type": "string", "description": "Filter by product ID"},
            "agent": {"type": "string", "description": "Filter by sub-agent"},
        },
    }

    async def execute(self, params: Dict[str, Any]) -> ToolResult:
        try:
            summary = await self.tracker.summarize(
                CostQuery(
                    from_=params.get("from"),
                    to=params.get("to"),
                    product_id=params.get("productId"),
                    agent=params.get("agent"),
                )
            )
        except Exception as e:
            return ToolResult.fail(f"Failed to get cost summary: {e}")

        if summary.count == 0:
            return ToolResult.ok("No costs recorded for this period.", data=summary.to_wire())

        lines = [f"Total: ${summary.total_usd:.4f} ({summary.count} operations)"]
        for label, values in (
            ("By Tool", summary.by_tool),
            ("By Agent", summary.by_agent),
            ("By Provider", summary.by_provider),
            ("By Product", summary.by_product),
        ):
            if values:
                lines.append(f"  {label}: {_format_breakdown(values)}")
        return ToolResult.ok("\n".join(lines), data=summary.to_wire())


@dataclass(frozen=True)
class GetCostTrendTool(CostTool):
    name: str = "get_cost_trend"
    description: str = "Get costs grouped by day or hour to see spending trends over time."
    parameters: ClassVar[Dict[str, Any]] = {
        "type": "object",
        "properties": {
            "from": _DATE_FROM,
            "to": _DATE_TO,
            "groupBy": {"type": "string", "enum": ["day", "hour"], "description": "Group by day or hour (default: day)"},
            "productId": {"type": "string", "description": "Filter by product ID"},
        },
    }

    async def execute(self, params: Dict[str, Any]) -> ToolResult:
        try:
            grouped = await self.tracker.group_by_time(
                CostQuery(from_=params.get("from"), to=params.get("to"), product_id=params.get("productId")),
                group_by=params.get("groupBy") or "day",
            )
        except Exception as e:
            return ToolResult.fail(f"Failed to get cost trend: {e}")

        if not grouped:
            return ToolResult.ok("No cost data for this period.", data={})

        total = sum(grouped.values())
        ordered = {k: grouped[k] for k in sorted(grouped)}
        return ToolResult.ok(f"Cost trend ({len(ordered)} periods, total: ${total:.4f})", data=ordered)


@dataclass(frozen=True)
class SetBudgetTool(CostTool):
    """
    Create or update a spending budget.

    Passing ``id`` of an existing budget updates it in place; otherwise a new
    budget is created. Non-global scopes need ``scopeId``.
    """

    name: str = "set_budget"
    description: str = "Create or update a spending budget. Budgets can warn or block when limits are exceeded."
    parameters: ClassVar[Dict[str, Any]] = {
        "type": "object",
        "properties": {
            "id": {"type": "string", "description": "Budget ID (omit to create new)"},
            "name": {"type": "string", "description": "Human-readable budget name"},
            "scope": {
                "type": "string",
                "enum": ["global", "product", "agent", "user"],
                "description": "What the budget applies to",
            },
            "scopeId": {"type": "string", "description": "ID of product/agent/user if scope is not global"},
            "period": {"type": "string", "enum": ["daily", "weekly", "monthly"], "description": "Budget reset period"},
            "limitUsd": {"type": "number", "description": "Spending limit in USD"},
            "action": {
                "type": "string",
                "enum": ["warn", "block", "warn_then_block"],
                "description": "What to do when exceeded (default: warn)",
            },
            "enabled": {"type": "boolean", "description": "Whether budget is active (default: true)"},
        },
        "required": ["name", "scope", "period", "limitUsd"],
    }

    async def execute(self, params: Dict[str, Any]) -> ToolResult:
        missing = [key for key in self.parameters["required"] if params.get(key) in (None, "")]
        if missing:
            return ToolResult.fail(f"Missing required parameter(s): {', '.join(missing)}")

        scope = params["scope"]
        if scope != "global" and not params.get("scopeId"):
            return ToolResult.fail(f'scopeId is required when scope is "{scope}"')

        try:
            budget = await self.tracker.set_budget(
                id=params.get("id"),
                name=params["name"],
                scope=scope,
                scope_id=params.get("scopeId"),
                period=params["period"],
                limit_usd=float(params["limitUsd"]),
                action=params.get("action") or "warn",
                enabled=params.get("enabled") is not False,
            )
        except Exception as e:
            return ToolResult.fail(f"Failed to set budget: {e}")

        verb = "updated" if params.get("id") else "created"
        target = f"{budget.scope}: {budget.scope_id}" if budget.scope_id else budget.scope
        return ToolResult.ok(
            f'Budget "{budget.name}" {verb}: ${budget.limit_usd}/{budget.period} ({target})',
            data=budget.to_wire(),
        )


@dataclass(frozen=True)
class ListBudgetsTool(CostTool):
    name: str = "list_budgets"
    description: str = "List all configured budgets with their current status."
    parameters: ClassVar[Dict[str, Any]] = {
        "type": "object",
        "properties": {
            "includeStatus": {
                "type": "boolean",
                "description": "Include current spend status for each budget (default: true)",
            },
        },
    }

    async def execute(self, params: Dict[str, Any]) -> ToolResult:
        include_status = params.get("includeStatus") is not False
        try:
            budgets = await self.tracker.get_budgets()
            if not budgets:
                return ToolResult.ok("No budgets configured. Use set_budget to create one.", data=[])

            results: List[Dict[str, Any]] = []
            for budget in budgets:
                entry = budget.to_wire()
                if include_status:
                    status = (await self.tracker.check_budget(budget)).to_wire()
                    status.pop("budget", None)
                    entry["status"] = status
                results.append(entry)
        except Exception as e:
            return ToolResult.fail(f"Failed to list budgets: {e}")

        return ToolResult.ok(f"Found {len(budgets)} budget(s).", data=results)


@dataclass(frozen=True)
class DeleteBudgetTool(CostTool):
    name: str = "delete_budget"
    description: str = "Delete a budget by ID."
    parameters: ClassVar[Dict[str, Any]] = {
        "type": "object",
        "properties": {"id": {"type": "string", "description": "Budget ID to delete"}},
        "required": ["id"],
    }

    async def execute(self, params: Dict[str, Any]) -> ToolResult:
        budget_id = params.get("id")
        if not budget_id:
            return ToolResult.fail("Missing required parameter(s): id")
        try:
            deleted = await self.tracker.delete_budget(budget_id)
        except Exception as e:
            return ToolResult.fail(f"Failed to delete budget: {e}")

        if not deleted:
            return ToolResult.fail(f"Budget not found: {budget_id}")
        return ToolResult.ok(f"Budget deleted: {budget_id}")


@dataclass(frozen=True)
class CheckBudgetsTool(CostTool):
    """Report budgets at or above the warning threshold (default 80%)."""

    name: str = "check_budgets"
    description: str = (
        "Check all budgets for alerts (exceeded or near limit). Returns budgets above the warning threshold."
    )
    parameters: ClassVar[Dict[str, Any]] = {
        "type": "object",
        "properties": {
            "warningThreshold": {"type": "number", "description": "Percent threshold to trigger warning (default: 80)"},
        },
    }
    default_threshold: float = 80.0

    async def execute(self, params: Dict[str, Any]) -> ToolResult:
        raw_threshold = params.get("warningThreshold")
        threshold = float(self.default_threshold if raw_threshold is None else raw_threshold)
        try:
            alerts = await self.tracker.check_all_budgets(threshold)
        except Exception as e:
            return ToolResult.fail(f"Failed to check budgets: {e}")

        if not alerts:
            return ToolResult.ok(f"All budgets are within limits (threshold: {threshold:g}%).", data=[])

        lines = []
        for status in alerts:
            label = "EXCEEDED" if status.is_exceeded else "WARNING"
            lines.append(
                f"[{label}] {status.budget.name}: {status.percent_used:.1f}% used "
                f"(${status.spent:.2f} / ${status.budget.limit_usd:.2f})"
            )
        return ToolResult.ok("\n".join(lines), data=[a.to_wire() for a in alerts])


def build_cost_tools(tracker: CostTracker, *, warning_threshold: float = 80.0) -> List[Tool]:
    """Instantiate every cost administration tool against ``tracker``."""
    return [
        GetCostsTool(tracker),
        GetCostSummaryTool(tracker),
        GetCostTrendTool(tracker),
        SetBudgetTool(tracker),
        ListBudgetsTool(tracker),
        DeleteBudgetTool(tracker),
        CheckBudgetsTool(tracker, default_threshold=warning_threshold),
    ]
