"""Tool protocol and dispatch data models.

A *tool* is an independently implemented operation (post to LinkedIn, send an
email, query costs, ...) exposed to the planner through a JSON-Schema-like
parameter description and an async ``execute`` entry point.

The ``ToolRegistry`` holds tools as ``RegisteredTool`` entries and is the only
place tools are invoked from. Tools should:

- validate their own parameters and report bad input as a failure result,
- report a ``ToolCost`` when their side effect has a known marginal cost,
- time-bound any external call they make; the registry never times out.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from pydantic import Field

from ..schemas.base import BaseSchema


class ToolCategory(str, Enum):
    """Closed set of classification tags assigned at registration time."""

    scheduling = "scheduling"
    knowledge = "knowledge"
    marketing = "marketing"
    memory = "memory"
    social = "social"
    research = "research"
    utility = "utility"
    a2a = "a2a"


class UnitType(str, Enum):
    tokens = "tokens"
    emails = "emails"
    images = "images"
    characters = "characters"
    api_calls = "api_calls"
    minutes = "minutes"


class ToolCost(BaseSchema):
    """
    Cost incurred by a single tool execution.

    Attributes:
        usd: Normalized cost in USD.
        provider: Provider tag (openai, anthropic, gemini, resend, ...).
        units: Number of units consumed.
        unit_type: Kind of unit consumed, serialized as ``unitType``.
        breakdown: Optional split, e.g. ``{"input_tokens": 100, "output_tokens": 50}``.
    """

    usd: float = Field(ge=0.0)
    provider: str
    units: Optional[float] = None
    unit_type: Optional[str] = Field(default=None, alias="unitType")
    breakdown: Optional[Dict[str, float]] = None


class InlineButton(BaseSchema):
    """Interactive button hint for chat frontends (e.g. approve/reject)."""

    text: str
    callback: str


class ToolResult(BaseSchema):
    """
    Uniform outcome of every dispatch.

    Every failure mode of ``ToolRegistry.execute`` (missing tool, disabled tool,
    budget block, tool exception) is reported through this value, so callers
    only ever branch on ``success``.
    """

    success: bool
    message: str = ""
    data: Any = None
    cost: Optional[ToolCost] = None
    buttons: Optional[List[InlineButton]] = None

    @classmethod
    def ok(cls, message: str, data: Any = None, cost: Optional[ToolCost] = None) -> "ToolResult":
        return cls(success=True, message=message, data=data, cost=cost)

    @classmethod
    def fail(cls, message: str, data: Any = None) -> "ToolResult":
        return cls(success=False, message=message, data=data)


class ToolDefinition(BaseSchema):
    """Planner-facing view of a tool: name, description and parameter schema."""

    name: str
    description: str
    parameters: Dict[str, Any] = Field(default_factory=lambda: {"type": "object", "properties": {}})

    def to_openai_function(self) -> Dict[str, Any]:
        """Wrap the definition in the OpenAI function-calling envelope."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


@runtime_checkable
class Tool(Protocol):
    """Protocol every tool implementation satisfies.

    ``parameters`` is a JSON-Schema-like object (``type``, ``properties``,
    ``required``). It is advisory: the registry never validates calls against it.
    """

    name: str
    description: str
    parameters: Dict[str, Any]

    async def execute(self, params: Dict[str, Any]) -> ToolResult: ...


@dataclass
class RegisteredTool:
    """A tool as held by the registry, together with its registry metadata.

    ``category`` is fixed at registration; ``enabled`` is flipped in place by
    ``ToolRegistry.enable``/``disable``.
    """

    tool: Tool
    category: Optional[ToolCategory] = None
    enabled: bool = True

    @property
    def name(self) -> str:
        return self.tool.name

    @property
    def description(self) -> str:
        return self.tool.description

    @property
    def parameters(self) -> Dict[str, Any]:
        return self.tool.parameters

    async def execute(self, params: Dict[str, Any]) -> ToolResult:
        return await self.tool.execute(params)

    def to_definition(self) -> ToolDefinition:
        return ToolDefinition(name=self.name, description=self.description, parameters=self.parameters)


@dataclass(frozen=True)
class ExecutionContext:
    """Per-call attribution used to scope budget checks and cost logs.

    Attributes
    ----------
    agent:
        Sub-agent executing the call, if any.
    product_id:
        Product the call is made on behalf of.
    user_id:
        User who triggered the action.
    """

    agent: Optional[str] = None
    product_id: Optional[str] = None
    user_id: Optional[str] = None
