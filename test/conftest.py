from __future__ import annotations

from pathlib import Path

import pytest

from marketclaw_ai.core.config import Settings
from marketclaw_ai.tools.base import ToolCost, ToolResult


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """Isolated MarketClaw workspace; no test touches the real home directory."""
    ws = tmp_path / "workspace"
    ws.mkdir()
    return ws


@pytest.fixture
def test_settings(workspace: Path) -> Settings:
    """Settings bound to the isolated workspace, independent of any ``.env``."""
    return Settings(
        MARKETCLAW_WORKSPACE=workspace,
        MARKETCLAW_LOG_LEVEL="DEBUG",
        MARKETCLAW_LOG_FORMAT="simple",
        MARKETCLAW_ENABLE_FILE_LOGGING=False,
        MARKETCLAW_COST_TRACKING=True,
        MARKETCLAW_BUDGET_FAIL_OPEN=True,
    )


@pytest.fixture
def paid_result() -> ToolResult:
    return ToolResult.ok(
        "sent",
        data={"id": "m1"},
        cost=ToolCost(usd=0.01, provider="resend", units=1, unit_type="emails"),
    )
