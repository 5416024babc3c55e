"""Budget gate contract consumed by the tool registry.

The registry treats the gate as authoritative: it asks ``should_block`` before
every invocation and reports billable successes through ``log``. It never
infers or overrides a blocking decision.

``CostTracker`` (``marketclaw_ai.costs``) is the production implementation.
``NullBudgetGate`` stands in when no tracker is wired; whether that means
"never block" or "block everything" is an explicit constructor choice.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, Optional, Protocol, runtime_checkable

from .base import ToolCost

if TYPE_CHECKING:
    from ..costs.models import Budget

logger = logging.getLogger(__name__)

NOT_CONFIGURED_REASON = "budget tracker not configured"


@dataclass(frozen=True)
class BudgetCheck:
    """
    Result of a budget evaluation for a single dispatch.

    Attributes:
        blocked: Whether the call must not proceed.
        reason: Human-readable reason if blocked.
        budget: The budget responsible for the block, when there is one.
    """

    blocked: bool
    reason: Optional[str] = None
    budget: Optional["Budget"] = None


@runtime_checkable
class BudgetGate(Protocol):
    """Approve/deny oracle plus cost sink, keyed by tool and attribution."""

    async def should_block(
        self,
        *,
        tool: str,
        agent: Optional[str] = None,
        product_id: Optional[str] = None,
        user_id: Optional[str] = None,
        estimated_cost: Optional[float] = None,
    ) -> BudgetCheck: ...

    async def log(
        self,
        *,
        tool: str,
        cost: ToolCost,
        agent: Optional[str] = None,
        product_id: Optional[str] = None,
        user_id: Optional[str] = None,
        campaign_id: Optional[str] = None,
        meta: Optional[Dict[str, Any]] = None,
    ) -> Any: ...


@dataclass(frozen=True)
class NullBudgetGate(BudgetGate):
    """Gate used when no cost tracker has been initialized.

    With ``fail_open=True`` (the default) every call is allowed; with
    ``fail_open=False`` every call is blocked. Costs are discarded either way.
    """

    fail_open: bool = True

    async def should_block(
        self,
        *,
        tool: str,
        agent: Optional[str] = None,
        product_id: Optional[str] = None,
        user_id: Optional[str] = None,
        estimated_cost: Optional[float] = None,
    ) -> BudgetCheck:
        if self.fail_open:
            return BudgetCheck(blocked=False)
        return BudgetCheck(blocked=True, reason=NOT_CONFIGURED_REASON)

    async def log(
        self,
        *,
        tool: str,
        cost: ToolCost,
        agent: Optional[str] = None,
        product_id: Optional[str] = None,
        user_id: Optional[str] = None,
        campaign_id: Optional[str] = None,
        meta: Optional[Dict[str, Any]] = None,
    ) -> None:
        logger.debug(f"No budget tracker configured, dropping cost for '{tool}': ${cost.usd}")
