from __future__ import annotations

"""Convenience factories for wiring the tool gateway.

This module contains small helpers to build the budget gate, the default
tool registry, and a fully initialized ``ToolRuntime`` from ``Settings``.

The intent is to keep application wiring and tests concise, while still
allowing deployments to provide their own gate, tracker or config store and
to plug in integration tool packs per category.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Mapping, Optional

from ..core import monitoring
from ..core.config import Settings
from ..core.logging_config import setup_logging
from ..costs.tools import build_cost_tools
from ..costs.tracker import CostTracker
from .base import Tool, ToolCategory
from .budget import BudgetGate, NullBudgetGate
from .config import ToolConfigStore
from .config_tools import build_config_tools
from .registry import ToolRegistry

logger = logging.getLogger(__name__)


def build_budget_gate(settings: Settings, *, tracker: Optional[CostTracker] = None) -> BudgetGate:
    """Pick the budget gate for ``settings``.

    With cost tracking enabled the gate is a ``CostTracker`` over the
    workspace (``tracker`` when given). Otherwise a ``NullBudgetGate`` whose
    open/closed behaviour follows ``MARKETCLAW_BUDGET_FAIL_OPEN``.
    """
    if settings.cost_tracking_enabled:
        return tracker if tracker is not None else CostTracker(settings.workspace)
    logger.warning(f"Cost tracking disabled; budget gate fails {'open' if settings.budget.fail_open else 'closed'}")
    return NullBudgetGate(fail_open=settings.budget.fail_open)


def build_default_registry(
    *,
    settings: Optional[Settings] = None,
    budget_gate: Optional[BudgetGate] = None,
    tracker: Optional[CostTracker] = None,
    config_store: Optional[ToolConfigStore] = None,
) -> ToolRegistry:
    """Build the default ``ToolRegistry``.

    The default registry includes the administrative tools shipped with the
    repository: cost/budget management (when a ``CostTracker`` is available)
    and per-product tool configuration, all under ``utility``.
    """
    settings = settings or Settings()
    gate = budget_gate if budget_gate is not None else build_budget_gate(settings, tracker=tracker)
    if tracker is None and isinstance(gate, CostTracker):
        tracker = gate

    reg = ToolRegistry(budget_gate=gate)
    if tracker is not None:
        reg.register_all(
            build_cost_tools(tracker, warning_threshold=settings.budget.warning_threshold),
            category=ToolCategory.utility,
        )
    reg.register_all(
        build_config_tools(config_store or ToolConfigStore(settings.workspace)),
        category=ToolCategory.utility,
    )
    return reg


def initialize_tools(
    registry: ToolRegistry,
    tools_by_category: Mapping[ToolCategory | str, Iterable[Tool]],
) -> ToolRegistry:
    """Register integration tool packs, one category at a time.

    Raises:
        ValueError: If a category is unknown or a tool has no name.
    """
    for category, tools in tools_by_category.items():
        registry.register_all(tools, category=category)
    logger.info(f"Tools initialized: {registry.count} registered")
    return registry


@dataclass(frozen=True)
class ToolRuntime:
    """Everything ``bootstrap`` wires together for one process."""

    settings: Settings
    registry: ToolRegistry
    config_store: ToolConfigStore
    tracker: Optional[CostTracker] = None


def bootstrap(settings: Optional[Settings] = None, *, configure_logging: bool = True) -> ToolRuntime:
    """Configure logging and monitoring, then build the tool runtime."""
    settings = settings or Settings()
    if configure_logging:
        setup_logging(
            log_level=settings.log_level,
            log_format=settings.log_format,
            enable_file=settings.enable_file_logging,
            log_dir=settings.log_dir,
        )
    monitoring.initialize_logfire(settings.logfire)

    tracker = CostTracker(settings.workspace) if settings.cost_tracking_enabled else None
    config_store = ToolConfigStore(settings.workspace)
    registry = build_default_registry(settings=settings, tracker=tracker, config_store=config_store)
    logger.info(f"Tool runtime ready: workspace={settings.workspace}, tools={registry.count}")
    return ToolRuntime(settings=settings, registry=registry, config_store=config_store, tracker=tracker)
