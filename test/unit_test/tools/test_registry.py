from __future__ import annotations

from typing import Any, Dict
from unittest.mock import AsyncMock, patch

import pytest
from pydantic import BaseModel

from marketclaw_ai.tools.base import ExecutionContext, ToolCategory, ToolCost, ToolResult
from marketclaw_ai.tools.budget import BudgetCheck, NullBudgetGate
from marketclaw_ai.tools.registry import ToolRegistry


class StubTool:
    def __init__(self, name: str, *, result: Any = None, error: BaseException | None = None, description: str = "stub tool") -> None:
        self.name = name
        self.description = description
        self.parameters: Dict[str, Any] = {"type": "object", "properties": {"to": {"type": "string"}}}
        self._result = result if result is not None else ToolResult.ok("done")
        self._error = error
        self.calls: list[Dict[str, Any]] = []

    async def execute(self, params: Dict[str, Any]) -> ToolResult:
        self.calls.append(params)
        if self._error is not None:
            raise self._error
        return self._result


def _gate(blocked: bool = False, reason: str | None = None) -> AsyncMock:
    gate = AsyncMock()
    gate.should_block.return_value = BudgetCheck(blocked=blocked, reason=reason)
    return gate


class TestRegistration:
    def test_has_after_register_and_unregister(self) -> None:
        reg = ToolRegistry()
        reg.register(StubTool("a"))
        assert reg.has("a")
        assert "a" in reg

        assert reg.unregister("a") is True
        assert not reg.has("a")
        assert reg.unregister("a") is False

    def test_reregister_replaces_category_and_resets_enabled(self) -> None:
        reg = ToolRegistry()
        reg.register(StubTool("a"), category="social")
        reg.disable("a")

        replacement = StubTool("a", description="v2")
        reg.register(replacement, category=ToolCategory.utility)

        entry = reg.get("a")
        assert entry is not None
        assert entry.tool is replacement
        assert entry.category == ToolCategory.utility
        assert entry.enabled is True
        assert reg.count == 1

    def test_register_disabled(self) -> None:
        reg = ToolRegistry()
        reg.register(StubTool("a"), enabled=False)
        assert reg.get("a").enabled is False

    def test_register_rejects_empty_name(self) -> None:
        reg = ToolRegistry()
        with pytest.raises(ValueError):
            reg.register(StubTool(""))
        assert reg.count == 0

    def test_register_rejects_unknown_category(self) -> None:
        reg = ToolRegistry()
        with pytest.raises(ValueError):
            reg.register(StubTool("a"), category="nope")

    def test_register_all_applies_options(self) -> None:
        reg = ToolRegistry()
        reg.register_all([StubTool("a"), StubTool("b")], category="marketing", enabled=False)
        assert [t.name for t in reg.list()] == ["a", "b"]
        assert all(t.category == ToolCategory.marketing and not t.enabled for t in reg.list())

    def test_count_follows_mutations(self) -> None:
        reg = ToolRegistry()
        reg.register(StubTool("a"))
        reg.register(StubTool("b"))
        reg.unregister("a")
        assert reg.count == 1
        assert len(reg) == 1
        reg.clear()
        assert reg.count == 0

    def test_get_unknown_returns_none(self) -> None:
        assert ToolRegistry().get("missing") is None


class TestListing:
    @pytest.fixture
    def reg(self) -> ToolRegistry:
        reg = ToolRegistry()
        reg.register(StubTool("post"), category="social")
        reg.register(StubTool("mail"), category="marketing")
        reg.register(StubTool("draft"), category="social", enabled=False)
        reg.register(StubTool("plain"))
        return reg

    def test_list_without_filter_includes_disabled(self, reg: ToolRegistry) -> None:
        assert [t.name for t in reg.list()] == ["post", "mail", "draft", "plain"]

    def test_list_filters_are_conjunctive(self, reg: ToolRegistry) -> None:
        assert [t.name for t in reg.list(category="social")] == ["post", "draft"]
        assert [t.name for t in reg.list(category=ToolCategory.social, enabled=True)] == ["post"]
        assert [t.name for t in reg.list(enabled=False)] == ["draft"]

    def test_list_unknown_category_is_empty(self, reg: ToolRegistry) -> None:
        assert reg.list(category="nope") == []

    def test_definitions_exclude_disabled(self, reg: ToolRegistry) -> None:
        assert [t.name for t in reg.list(enabled=False)] == ["draft"]
        names = [d.name for d in reg.get_definitions()]
        assert names == ["post", "mail", "plain"]
        assert [d.name for d in reg.get_definitions(category="social")] == ["post"]

    def test_definition_shape(self, reg: ToolRegistry) -> None:
        definition = reg.get_definitions(category="marketing")[0]
        assert definition.description == "stub tool"
        assert definition.parameters["properties"]["to"] == {"type": "string"}

    def test_openai_functions(self, reg: ToolRegistry) -> None:
        functions = reg.get_openai_functions(category="marketing")
        assert functions == [
            {
                "type": "function",
                "function": {
                    "name": "mail",
                    "description": "stub tool",
                    "parameters": {"type": "object", "properties": {"to": {"type": "string"}}},
                },
            }
        ]

    def test_enable_disable(self, reg: ToolRegistry) -> None:
        assert reg.enable("draft") is True
        assert "draft" in [d.name for d in reg.get_definitions()]
        assert reg.disable("draft") is True
        assert reg.enable("missing") is False
        assert reg.disable("missing") is False


class TestExecute:
    @pytest.mark.asyncio
    async def test_unknown_tool_never_touches_gate(self) -> None:
        gate = _gate()
        reg = ToolRegistry(budget_gate=gate)

        res = await reg.execute("missing", {})

        assert res.success is False
        assert res.message == "Tool not found: missing"
        gate.should_block.assert_not_awaited()
        gate.log.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_disabled_tool_never_touches_gate_or_tool(self) -> None:
        gate = _gate()
        tool = StubTool("a")
        reg = ToolRegistry(budget_gate=gate)
        reg.register(tool, enabled=False)

        res = await reg.execute("a", {})

        assert res.success is False
        assert res.message == "Tool is disabled: a"
        assert tool.calls == []
        gate.should_block.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_blocked_call_skips_tool(self) -> None:
        gate = _gate(blocked=True, reason="Monthly cap reached")
        tool = StubTool("a")
        reg = ToolRegistry(budget_gate=gate)
        reg.register(tool)

        res = await reg.execute("a", {"x": 1})

        assert res.success is False
        assert res.message == "Blocked by budget: Monthly cap reached"
        assert tool.calls == []
        gate.log.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_gate_receives_context(self) -> None:
        gate = _gate()
        reg = ToolRegistry(budget_gate=gate)
        reg.register(StubTool("a"))

        await reg.execute("a", {}, ExecutionContext(agent="tweety", product_id="p1", user_id="u1"))

        gate.should_block.assert_awaited_once_with(tool="a", agent="tweety", product_id="p1", user_id="u1")

    @pytest.mark.asyncio
    async def test_gate_error_fails_closed(self) -> None:
        gate = _gate()
        gate.should_block.side_effect = RuntimeError("ledger unreadable")
        tool = StubTool("a")
        reg = ToolRegistry(budget_gate=gate)
        reg.register(tool)

        res = await reg.execute("a", {})

        assert res.success is False
        assert res.message == "Budget check failed: ledger unreadable"
        assert tool.calls == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "check,blocked",
        [
            ({"blocked": False}, False),
            ({"blocked": True, "reason": "Daily cap"}, True),
        ],
    )
    async def test_gate_mapping_result_is_read(self, check: Dict[str, Any], blocked: bool) -> None:
        gate = AsyncMock()
        gate.should_block.return_value = check
        tool = StubTool("a")
        reg = ToolRegistry(budget_gate=gate)
        reg.register(tool)

        res = await reg.execute("a", {})

        assert res.success is not blocked
        if blocked:
            assert res.message == "Blocked by budget: Daily cap"
            assert tool.calls == []
        else:
            assert tool.calls == [{}]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("check", [None, {"reason": "no flag"}, "yes"])
    async def test_unreadable_gate_result_fails_closed(self, check: Any) -> None:
        gate = AsyncMock()
        gate.should_block.return_value = check
        tool = StubTool("a")
        reg = ToolRegistry(budget_gate=gate)
        reg.register(tool)

        res = await reg.execute("a", {})

        assert res.success is False
        assert res.message.startswith("Budget check failed: ")
        assert tool.calls == []

    @pytest.mark.asyncio
    async def test_tool_validation_error_keeps_its_message(self) -> None:
        class _Params(BaseModel):
            to: str

        class _Mailer(StubTool):
            async def execute(self, params: Dict[str, Any]) -> ToolResult:
                args = _Params.model_validate(params)
                return ToolResult.ok(f"sent to {args.to}")

        reg = ToolRegistry()
        reg.register(_Mailer("send_email"))

        with patch("marketclaw_ai.tools.registry.monitoring.log_tool_execution") as log_exec:
            res = await reg.execute("send_email", {})

        assert res.success is False
        assert res.message.startswith("Tool execution failed: ")
        assert "invalid result" not in res.message
        assert "to" in res.message
        assert "Field required" in res.message
        log_exec.assert_called_once()
        assert log_exec.call_args.args[1] is False

    @pytest.mark.asyncio
    async def test_tool_exception_is_folded(self) -> None:
        gate = _gate()
        reg = ToolRegistry(budget_gate=gate)
        reg.register(StubTool("a", error=RuntimeError("smtp down")))

        res = await reg.execute("a", {})

        assert res.success is False
        assert "smtp down" in res.message
        assert res.message.startswith("Tool execution failed: ")
        gate.log.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_exception_without_message_uses_type_name(self) -> None:
        reg = ToolRegistry()
        reg.register(StubTool("a", error=TimeoutError()))

        res = await reg.execute("a", {})

        assert res.message == "Tool execution failed: TimeoutError"

    @pytest.mark.asyncio
    async def test_params_passed_unchanged(self) -> None:
        tool = StubTool("a")
        reg = ToolRegistry()
        reg.register(tool)
        params: Dict[str, Any] = {"to": "x@example.com", "nested": {"k": [1, 2]}}

        await reg.execute("a", params)

        assert tool.calls == [params]

    @pytest.mark.asyncio
    async def test_missing_params_default_to_empty_dict(self) -> None:
        tool = StubTool("a")
        reg = ToolRegistry()
        reg.register(tool)

        await reg.execute("a")

        assert tool.calls == [{}]

    @pytest.mark.asyncio
    async def test_positive_cost_logged_once(self, paid_result: ToolResult) -> None:
        gate = _gate()
        reg = ToolRegistry(budget_gate=gate)
        reg.register(StubTool("send", result=paid_result))

        res = await reg.execute("send", {"to": "a"}, ExecutionContext(product_id="p1"))

        assert res is paid_result
        gate.log.assert_awaited_once()
        kwargs = gate.log.await_args.kwargs
        assert kwargs["tool"] == "send"
        assert kwargs["cost"].usd == 0.01
        assert kwargs["product_id"] == "p1"
        assert kwargs["meta"] == {"params": {"to": "a"}}

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "result",
        [
            ToolResult.ok("free"),
            ToolResult.ok("zero", cost=ToolCost(usd=0, provider="x")),
        ],
    )
    async def test_no_log_without_positive_cost(self, result: ToolResult) -> None:
        gate = _gate()
        reg = ToolRegistry(budget_gate=gate)
        reg.register(StubTool("a", result=result))

        await reg.execute("a", {})

        gate.log.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failed_result_with_cost_is_still_logged(self) -> None:
        gate = _gate()
        rejected = ToolResult(success=False, message="rejected by filter", cost=ToolCost(usd=0.04, provider="openai-image"))
        reg = ToolRegistry(budget_gate=gate)
        reg.register(StubTool("gen_image", result=rejected))

        res = await reg.execute("gen_image", {"prompt": "cat"})

        assert res is rejected
        gate.log.assert_awaited_once()
        assert gate.log.await_args.kwargs["cost"].usd == 0.04

    @pytest.mark.asyncio
    async def test_cost_log_failure_keeps_result(self, paid_result: ToolResult) -> None:
        gate = _gate()
        gate.log.side_effect = OSError("disk full")
        reg = ToolRegistry(budget_gate=gate)
        reg.register(StubTool("send", result=paid_result))

        with patch("marketclaw_ai.tools.registry.monitoring.log_error") as log_error:
            res = await reg.execute("send", {})

        assert res is paid_result
        log_error.assert_called_once()
        assert log_error.call_args.args[0] == "CostLogError"

    @pytest.mark.asyncio
    async def test_dict_result_is_coerced(self) -> None:
        reg = ToolRegistry()
        reg.register(StubTool("a", result={"success": True, "message": "ok", "cost": {"usd": 0.2, "provider": "openai"}}))

        res = await reg.execute("a", {})

        assert isinstance(res, ToolResult)
        assert res.success is True
        assert res.cost.usd == 0.2

    @pytest.mark.asyncio
    async def test_invalid_result_fails(self) -> None:
        reg = ToolRegistry()
        reg.register(StubTool("a", result={"message": "no success flag"}))

        res = await reg.execute("a", {})

        assert res.success is False
        assert res.message == "Tool execution failed: invalid result from a"

    @pytest.mark.asyncio
    async def test_default_gate_fails_open(self) -> None:
        reg = ToolRegistry()
        assert isinstance(reg.budget_gate, NullBudgetGate)
        reg.register(StubTool("a"))

        res = await reg.execute("a", {})

        assert res.success is True

    @pytest.mark.asyncio
    async def test_send_x_scenario(self) -> None:
        gate = _gate()
        paid = ToolResult.ok("sent", cost=ToolCost(usd=0.01, provider="resend"))
        tool = StubTool("send_x", result=paid)
        reg = ToolRegistry(budget_gate=gate)
        reg.register(tool, category="social")

        res = await reg.execute("send_x", {"text": "hi"})
        assert res.success is True
        gate.log.assert_awaited_once()
        assert gate.log.await_args.kwargs["cost"].usd == 0.01

        reg.disable("send_x")
        gate.reset_mock()

        res = await reg.execute("send_x", {"text": "hi"})
        assert res.success is False
        assert "disabled" in res.message
        gate.should_block.assert_not_awaited()
        gate.log.assert_not_awaited()
        assert len(tool.calls) == 1
