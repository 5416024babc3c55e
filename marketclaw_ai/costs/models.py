"""Cost ledger and budget models.

Records are stored one JSON object per line, using the camelCase aliases
below, so ledgers stay readable by other MarketClaw components.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional
from uuid import uuid4

from pydantic import Field, model_validator

from ..schemas.base import BaseSchema
from ..tools.base import ToolCost


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _now_ms() -> int:
    return int(_utc_now().timestamp() * 1000)


class BudgetScope(str, Enum):
    global_ = "global"
    product = "product"
    agent = "agent"
    user = "user"


class BudgetPeriod(str, Enum):
    daily = "daily"
    weekly = "weekly"
    monthly = "monthly"


class BudgetAction(str, Enum):
    warn = "warn"
    block = "block"
    warn_then_block = "warn_then_block"


class GroupBy(str, Enum):
    tool = "tool"
    agent = "agent"
    product = "product"
    provider = "provider"
    user = "user"
    day = "day"
    hour = "hour"


class CostRecord(BaseSchema):
    """One billable tool execution, as appended to the daily ledger."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    timestamp: str = Field(description="ISO-8601 timestamp")
    ts: int = Field(description="Unix timestamp in milliseconds, for range filtering")
    tool: str
    agent: Optional[str] = None
    product_id: Optional[str] = Field(default=None, alias="productId")
    campaign_id: Optional[str] = Field(default=None, alias="campaignId")
    user_id: Optional[str] = Field(default=None, alias="userId")
    cost: ToolCost
    meta: Optional[Dict[str, Any]] = None

    @classmethod
    def create(cls, *, tool: str, cost: ToolCost, **attribution: Any) -> "CostRecord":
        now = _utc_now()
        return cls(
            timestamp=now.isoformat(),
            ts=int(now.timestamp() * 1000),
            tool=tool,
            cost=cost,
            **attribution,
        )


class CostSummary(BaseSchema):
    """Aggregated spend over a date range, broken down per dimension."""

    total_usd: float = Field(default=0.0, alias="totalUsd")
    count: int = 0
    by_tool: Dict[str, float] = Field(default_factory=dict, alias="byTool")
    by_agent: Dict[str, float] = Field(default_factory=dict, alias="byAgent")
    by_product: Dict[str, float] = Field(default_factory=dict, alias="byProduct")
    by_campaign: Dict[str, float] = Field(default_factory=dict, alias="byCampaign")
    by_provider: Dict[str, float] = Field(default_factory=dict, alias="byProvider")
    by_user: Dict[str, float] = Field(default_factory=dict, alias="byUser")
    from_: str = Field(alias="from")
    to: str


class Budget(BaseSchema):
    """
    A spending limit over a recurring period.

    Attributes:
        scope: What the budget applies to. Non-global scopes need ``scope_id``.
        action: ``warn`` only reports; ``block`` and ``warn_then_block`` make
            the budget gate deny calls once the limit is reached.
    """

    id: str = Field(default_factory=lambda: str(uuid4()))
    name: str = Field(min_length=1)
    scope: BudgetScope
    scope_id: Optional[str] = Field(default=None, alias="scopeId")
    period: BudgetPeriod
    limit_usd: float = Field(gt=0.0, alias="limitUsd")
    action: BudgetAction = BudgetAction.warn
    enabled: bool = True
    created_at: int = Field(default_factory=_now_ms, alias="createdAt")

    @model_validator(mode="after")
    def _scope_id_required(self) -> "Budget":
        if self.scope != BudgetScope.global_.value and not self.scope_id:
            raise ValueError(f'scopeId is required when scope is "{self.scope}"')
        return self

    @property
    def blocks(self) -> bool:
        return self.action in (BudgetAction.block.value, BudgetAction.warn_then_block.value)


class BudgetStatus(BaseSchema):
    """Spend against a budget within its current period."""

    budget: Budget
    spent: float
    remaining: float
    percent_used: float = Field(alias="percentUsed")
    is_exceeded: bool = Field(alias="isExceeded")
    period_start: str = Field(alias="periodStart")
    period_end: str = Field(alias="periodEnd")


class CostQuery(BaseSchema):
    """
    Filters for cost retrieval.

    ``from_`` accepts an ISO date/datetime or one of ``today``, ``yesterday``,
    ``this-week`` and ``this-month``. Without it the last 30 days are used.
    """

    from_: Optional[str] = Field(default=None, alias="from")
    to: Optional[str] = None
    tool: Optional[str] = None
    agent: Optional[str] = None
    product_id: Optional[str] = Field(default=None, alias="productId")
    campaign_id: Optional[str] = Field(default=None, alias="campaignId")
    user_id: Optional[str] = Field(default=None, alias="userId")
    provider: Optional[str] = None
    group_by: Optional[GroupBy] = Field(default=None, alias="groupBy")
    limit: Optional[int] = Field(default=None, ge=1)

    def matches(self, record: CostRecord) -> bool:
        """Check the non-date filters against a record."""
        if self.tool and record.tool != self.tool:
            return False
        if self.agent and record.agent != self.agent:
            return False
        if self.product_id and record.product_id != self.product_id:
            return False
        if self.campaign_id and record.campaign_id != self.campaign_id:
            return False
        if self.user_id and record.user_id != self.user_id:
            return False
        if self.provider and record.cost.provider != self.provider:
            return False
        return True


# Approximate pricing used when a tool cannot report an exact cost.
# LLMs are per 1M tokens, images per image, email per email, TTS per 1000 characters.
PROVIDER_PRICING: Dict[str, Dict[str, Any]] = {
    "openai": {
        "gpt-4o": {"input": 2.50, "output": 10.00},
        "gpt-4o-mini": {"input": 0.15, "output": 0.60},
        "gpt-4-turbo": {"input": 10.00, "output": 30.00},
    },
    "anthropic": {
        "claude-3-opus": {"input": 15.00, "output": 75.00},
        "claude-3-sonnet": {"input": 3.00, "output": 15.00},
        "claude-3-haiku": {"input": 0.25, "output": 1.25},
    },
    "gemini": {
        "gemini-pro": {"input": 0.50, "output": 1.50},
        "gemini-2.0-flash": {"input": 0.10, "output": 0.40},
    },
    "openai-image": {
        "dall-e-3-1024": 0.04,
        "dall-e-3-1792": 0.08,
    },
    "gemini-image": {
        "imagen-3": 0.02,
    },
    "resend": {
        "email": 0.001,
    },
    "elevenlabs": {
        "standard": 0.30,
        "turbo": 0.18,
    },
}


def estimate_token_cost(provider: str, model: str, input_tokens: int, output_tokens: int) -> Optional[float]:
    """Estimate an LLM call's USD cost from ``PROVIDER_PRICING``; ``None`` if unknown."""
    rates = PROVIDER_PRICING.get(provider, {}).get(model)
    if not isinstance(rates, dict):
        return None
    return (input_tokens * rates["input"] + output_tokens * rates["output"]) / 1_000_000
