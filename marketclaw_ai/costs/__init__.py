"""Cost ledger, budgets and the budget gate backed by them.

- ``CostTracker``: appends costs reported by tools and enforces budgets. It is
  the production ``BudgetGate`` handed to ``ToolRegistry``.
- ``build_cost_tools``: administrative tools (query costs, manage budgets)
  bound to a tracker.
"""

from .models import (
    PROVIDER_PRICING,
    Budget,
    BudgetAction,
    BudgetPeriod,
    BudgetScope,
    BudgetStatus,
    CostQuery,
    CostRecord,
    CostSummary,
    GroupBy,
    estimate_token_cost,
)
from .tools import build_cost_tools
from .tracker import CostTracker

__all__ = [
    "PROVIDER_PRICING",
    "Budget",
    "BudgetAction",
    "BudgetPeriod",
    "BudgetScope",
    "BudgetStatus",
    "CostQuery",
    "CostRecord",
    "CostSummary",
    "CostTracker",
    "GroupBy",
    "build_cost_tools",
    "estimate_token_cost",
]
