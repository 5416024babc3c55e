"""Tool registry and budget-gated execution pipeline.

A *tool* is a named, independently implemented operation exposed to the AI
planner through a parameter schema.

- Application wiring registers tools on a ``ToolRegistry`` at startup.
- The planner discovers enabled tools through ``ToolRegistry.get_definitions``.
- Every invocation goes through ``ToolRegistry.execute``, which consults the
  ``BudgetGate`` first and records reported costs afterwards.

This package exports:

- ``Tool``: protocol for async tool implementations.
- ``ToolRegistry``: name → tool mapping and the dispatch chokepoint.
- ``ToolResult``/``ToolCost``/``ToolDefinition``: wire models.
- ``ExecutionContext``: per-call agent/product/user attribution.
- ``BudgetGate``/``BudgetCheck``/``NullBudgetGate``: the gate contract.

Wiring helpers live in ``marketclaw_ai.tools.factory``.
"""

from .base import (
    ExecutionContext,
    InlineButton,
    RegisteredTool,
    Tool,
    ToolCategory,
    ToolCost,
    ToolDefinition,
    ToolResult,
    UnitType,
)
from .budget import BudgetCheck, BudgetGate, NullBudgetGate
from .registry import ToolRegistry

__all__ = [
    "BudgetCheck",
    "BudgetGate",
    "ExecutionContext",
    "InlineButton",
    "NullBudgetGate",
    "RegisteredTool",
    "Tool",
    "ToolCategory",
    "ToolCost",
    "ToolDefinition",
    "ToolRegistry",
    "ToolResult",
    "UnitType",
]
