"""Tool registry and dispatch chokepoint.

The registry maps a tool name to a ``RegisteredTool`` entry and is the single
path through which tools are discovered and invoked.

Dispatch pipeline (``ToolRegistry.execute``)
--------------------------------------------

1. Resolve the entry; a missing or disabled tool fails without touching the
   budget gate.
2. Ask the ``BudgetGate`` whether the call may proceed. A block (or a gate
   error) fails the call before the tool runs.
3. Await the tool. Exceptions are folded into a failure ``ToolResult``.
4. Forward a positive reported cost to the gate's ``log``. A logging failure
   is reported to monitoring and never changes the returned result.

Concurrency
-----------

The entry map is a plain dict mutated only by synchronous methods, so it is
consistent under asyncio scheduling. Concurrent ``execute`` calls may
interleave at the three suspension points (gate check, tool, cost log); the
registry does not serialize calls per tool and imposes no timeout.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from pydantic import ValidationError

from ..core import monitoring
from .base import (
    ExecutionContext,
    RegisteredTool,
    Tool,
    ToolCategory,
    ToolCost,
    ToolDefinition,
    ToolResult,
)
from .budget import BudgetGate, NullBudgetGate

logger = logging.getLogger(__name__)


def _error_text(err: BaseException) -> str:
    """Describe an exception for a user-facing message."""
    return str(err) or type(err).__name__


def _read_check(check: Any) -> Tuple[bool, Optional[str]]:
    """Read ``(blocked, reason)`` from a ``BudgetCheck`` or a ``{blocked, reason}`` mapping.

    Anything else raises, which the caller treats as a failed budget check.
    """
    if isinstance(check, Mapping):
        return bool(check["blocked"]), check.get("reason")
    return bool(check.blocked), check.reason


class ToolRegistry:
    """
    In-memory registry of tools with enable/disable control and metered dispatch.

    Notes:
        - ``register`` replaces any existing entry with the same name, including
          its enabled flag and category.
        - ``get`` returns ``None`` for unknown names; nothing here raises for a
          missing tool.
        - ``execute`` never raises for not-found, disabled, budget-blocked or
          failing tools; every outcome is a ``ToolResult``.
    """

    def __init__(self, budget_gate: Optional[BudgetGate] = None) -> None:
        """
        Initialize an empty registry.

        Args:
            budget_gate: Gate consulted before every dispatch. Defaults to a
                fail-open ``NullBudgetGate``.
        """
        self._tools: Dict[str, RegisteredTool] = {}
        self._budget_gate: BudgetGate = budget_gate if budget_gate is not None else NullBudgetGate()

    @property
    def budget_gate(self) -> BudgetGate:
        return self._budget_gate

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(
        self,
        tool: Tool,
        *,
        category: Optional[ToolCategory | str] = None,
        enabled: bool = True,
    ) -> None:
        """
        Register a tool, replacing any entry with the same name.

        Args:
            tool: The tool implementation. Its ``name`` is the lookup key.
            category: Optional classification tag.
            enabled: Initial enabled state.

        Raises:
            ValueError: If the tool name is empty, or the category is not a known tag.
        """
        name = getattr(tool, "name", None)
        if not name:
            raise ValueError("tool name must be a non-empty string")

        cat = ToolCategory(category) if category is not None else None
        if name in self._tools:
            logger.warning(f"Overwriting existing tool: {name}")

        self._tools[name] = RegisteredTool(tool=tool, category=cat, enabled=enabled)
        logger.info(f"Registered tool: {name} (category={cat.value if cat else None}, enabled={enabled})")

    def register_all(
        self,
        tools: Iterable[Tool],
        *,
        category: Optional[ToolCategory | str] = None,
        enabled: bool = True,
    ) -> None:
        """Register each tool in order with the same options."""
        for tool in tools:
            self.register(tool, category=category, enabled=enabled)

    def unregister(self, name: str) -> bool:
        """
        Remove a tool.

        Returns:
            True if an entry was removed, False if none existed.
        """
        if name in self._tools:
            del self._tools[name]
            logger.info(f"Unregistered tool: {name}")
            return True
        return False

    def clear(self) -> None:
        """Remove every entry. Intended for full resets such as test isolation."""
        self._tools.clear()

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get(self, name: str) -> Optional[RegisteredTool]:
        return self._tools.get(name)

    def has(self, name: str) -> bool:
        return name in self._tools

    def list(
        self,
        *,
        category: Optional[ToolCategory | str] = None,
        enabled: Optional[bool] = None,
    ) -> List[RegisteredTool]:
        """
        List entries in insertion order.

        Filters are conjunctive; with no filter every entry is returned,
        disabled ones included.
        """
        tools = list(self._tools.values())
        if category is not None:
            wanted = category.value if isinstance(category, ToolCategory) else str(category)
            tools = [t for t in tools if t.category is not None and t.category.value == wanted]
        if enabled is not None:
            tools = [t for t in tools if t.enabled == enabled]
        return tools

    def get_definitions(self, *, category: Optional[ToolCategory | str] = None) -> List[ToolDefinition]:
        """
        Planner-facing definitions of enabled tools.

        Disabled tools are never included, whatever the category filter.
        """
        return [t.to_definition() for t in self.list(category=category, enabled=True)]

    def get_openai_functions(self, *, category: Optional[ToolCategory | str] = None) -> List[Dict[str, Any]]:
        """Enabled tool definitions in OpenAI function-calling format."""
        return [d.to_openai_function() for d in self.get_definitions(category=category)]

    # ------------------------------------------------------------------
    # Enable / disable
    # ------------------------------------------------------------------

    def enable(self, name: str) -> bool:
        tool = self._tools.get(name)
        if tool is None:
            return False
        tool.enabled = True
        return True

    def disable(self, name: str) -> bool:
        tool = self._tools.get(name)
        if tool is None:
            return False
        tool.enabled = False
        return True

    @property
    def count(self) -> int:
        """Number of registered entries, enabled and disabled."""
        return len(self._tools)

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def execute(
        self,
        name: str,
        params: Optional[Dict[str, Any]] = None,
        context: Optional[ExecutionContext] = None,
    ) -> ToolResult:
        """
        Execute a tool by name through the budget gate.

        Args:
            name: The registered tool name.
            params: Parameters passed to the tool unchanged.
            context: Optional agent/product/user attribution.

        Returns:
            The tool's own result, or a failure result describing why the tool
            was not run or why it failed.
        """
        params = params if params is not None else {}
        ctx = context or ExecutionContext()

        tool = self._tools.get(name)
        if tool is None:
            logger.debug(f"Dispatch to unknown tool: {name}")
            return ToolResult.fail(f"Tool not found: {name}")

        if not tool.enabled:
            logger.debug(f"Dispatch to disabled tool: {name}")
            return ToolResult.fail(f"Tool is disabled: {name}")

        try:
            check = await self._budget_gate.should_block(
                tool=name,
                agent=ctx.agent,
                product_id=ctx.product_id,
                user_id=ctx.user_id,
            )
            blocked, reason = _read_check(check)
        except Exception as e:
            logger.error(f"Budget check failed for tool '{name}': {e}", exc_info=True)
            monitoring.log_error("BudgetCheckError", _error_text(e), {"tool": name})
            return ToolResult.fail(f"Budget check failed: {_error_text(e)}")

        if blocked:
            logger.warning(f"Tool '{name}' blocked by budget: {reason}")
            monitoring.log_budget_blocked(name, reason)
            return ToolResult.fail(f"Blocked by budget: {reason}")

        started = time.perf_counter()
        try:
            raw = await tool.execute(params)
        except Exception as e:
            logger.error(f"Tool '{name}' raised: {e}", exc_info=True)
            monitoring.log_tool_execution(
                name, False, (time.perf_counter() - started) * 1000, agent=ctx.agent, product_id=ctx.product_id
            )
            return ToolResult.fail(f"Tool execution failed: {_error_text(e)}")

        duration_ms = (time.perf_counter() - started) * 1000
        try:
            result = raw if isinstance(raw, ToolResult) else ToolResult.model_validate(raw)
        except ValidationError as e:
            logger.error(f"Tool '{name}' returned an invalid result: {e}")
            monitoring.log_tool_execution(name, False, duration_ms, agent=ctx.agent, product_id=ctx.product_id)
            return ToolResult.fail(f"Tool execution failed: invalid result from {name}")

        logger.debug(f"Tool '{name}' finished: success={result.success} in {duration_ms:.1f}ms")
        monitoring.log_tool_execution(name, result.success, duration_ms, agent=ctx.agent, product_id=ctx.product_id)

        # failed calls can still be billed
        if result.cost is not None and result.cost.usd > 0:
            await self._log_cost(name, result.cost, params, ctx)

        return result

    async def _log_cost(
        self,
        name: str,
        cost: ToolCost,
        params: Dict[str, Any],
        ctx: ExecutionContext,
    ) -> None:
        """Forward a reported cost to the gate; failures never reach the caller."""
        try:
            await self._budget_gate.log(
                tool=name,
                cost=cost,
                agent=ctx.agent,
                product_id=ctx.product_id,
                user_id=ctx.user_id,
                meta={"params": params},
            )
        except Exception as e:
            logger.warning(f"Failed to log cost for tool '{name}': {e}", exc_info=True)
            monitoring.log_error(
                "CostLogError",
                _error_text(e),
                {"tool": name, "cost_usd": cost.usd, "provider": cost.provider},
            )
            return
        monitoring.log_cost_recorded(name, cost.usd, cost.provider)
