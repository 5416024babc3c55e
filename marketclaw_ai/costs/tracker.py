"""Cost tracker: append-only cost ledger plus budget enforcement.

``CostTracker`` is the production ``BudgetGate``. Layout under the workspace::

    costs/
      costs-YYYY-MM-DD.jsonl   one CostRecord per line, one file per UTC day
      budgets.json             list of Budget objects

Appends never read the ledger; queries stream the day files that overlap the
requested range and skip malformed lines. File access is synchronous and
small enough to run on the event loop.
"""

from __future__ import annotations

import json
import logging
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple

from pydantic import ValidationError

from ..tools.base import ToolCost
from ..tools.budget import BudgetCheck, BudgetGate
from .models import (
    Budget,
    BudgetPeriod,
    BudgetScope,
    BudgetStatus,
    CostQuery,
    CostRecord,
    CostSummary,
    GroupBy,
)

logger = logging.getLogger(__name__)

DEFAULT_QUERY_LIMIT = 1000
DEFAULT_LOOKBACK = timedelta(days=30)
_DAY_MS = 24 * 60 * 60 * 1000
_LOG_PREFIX = "costs-"
_LOG_SUFFIX = ".jsonl"


def _round(value: float, places: int = 4) -> float:
    return round(value, places)


def _local_now() -> datetime:
    return datetime.now().astimezone()


def _to_ms(dt: datetime) -> int:
    return int(dt.timestamp() * 1000)


def _parse_instant(value: str) -> datetime:
    """Parse an ISO date or datetime; naive values are taken as UTC."""
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise ValueError(f"invalid date: {value}") from None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _local_midnight(day: date) -> datetime:
    """Local midnight of ``day``, with the UTC offset in force on that date."""
    return datetime(day.year, day.month, day.day).astimezone()


def _week_start(day: date) -> date:
    return day - timedelta(days=(day.weekday() + 1) % 7)


def _next_month(day: date) -> date:
    if day.month == 12:
        return date(day.year + 1, 1, 1)
    return date(day.year, day.month + 1, 1)


def parse_date_range(from_: Optional[str], to: Optional[str], now: Optional[datetime] = None) -> Tuple[int, int]:
    """
    Resolve a query's date filters to an inclusive millisecond range.

    Keywords are resolved in local time. ``yesterday`` covers exactly the
    previous local day and ignores ``to``.

    Raises:
        ValueError: If a date string cannot be parsed.
    """
    now = now or _local_now()
    today = now.astimezone().date()
    to_ms = _to_ms(_parse_instant(to)) if to else _to_ms(now)

    if not from_:
        from_ms = _to_ms(now - DEFAULT_LOOKBACK)
    elif from_ == "today":
        from_ms = _to_ms(_local_midnight(today))
    elif from_ == "yesterday":
        from_ms = _to_ms(_local_midnight(today - timedelta(days=1)))
        to_ms = _to_ms(_local_midnight(today))
    elif from_ == "this-week":
        from_ms = _to_ms(_local_midnight(_week_start(today)))
    elif from_ == "this-month":
        from_ms = _to_ms(_local_midnight(today.replace(day=1)))
    else:
        from_ms = _to_ms(_parse_instant(from_))

    return from_ms, to_ms


def budget_period(budget: Budget, now: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    """Return the ``[start, end)`` local-time window of the budget's current period."""
    now = now or _local_now()
    today = now.astimezone().date()
    if budget.period == BudgetPeriod.daily.value:
        start, end = today, today + timedelta(days=1)
    elif budget.period == BudgetPeriod.weekly.value:
        start = _week_start(today)
        end = start + timedelta(days=7)
    else:
        start = today.replace(day=1)
        end = _next_month(start)
    return _local_midnight(start), _local_midnight(end)


class CostTracker(BudgetGate):
    """
    Logs, aggregates and budgets tool costs for one workspace.

    Notes:
        - ``log`` appends to today's (UTC) ledger file.
        - ``should_block`` evaluates enabled ``block``/``warn_then_block``
          budgets that apply to the call and blocks on the first exceeded one.
    """

    def __init__(self, workspace: Path | str) -> None:
        self._workspace = Path(workspace).expanduser()
        self._costs_dir = self._workspace / "costs"
        self._budgets_path = self._costs_dir / "budgets.json"

    @property
    def costs_dir(self) -> Path:
        return self._costs_dir

    @property
    def budgets_path(self) -> Path:
        return self._budgets_path

    def _ensure_dirs(self) -> None:
        self._costs_dir.mkdir(parents=True, exist_ok=True)

    def _log_path(self, day: date) -> Path:
        return self._costs_dir / f"{_LOG_PREFIX}{day.isoformat()}{_LOG_SUFFIX}"

    # ========== Logging ==========

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
    ) -> CostRecord:
        """
        Append a cost record for a tool execution.

        Returns:
            The stored record.
        """
        self._ensure_dirs()
        record = CostRecord.create(
            tool=tool,
            cost=cost,
            agent=agent,
            product_id=product_id,
            user_id=user_id,
            campaign_id=campaign_id,
            meta=meta,
        )
        line = json.dumps(record.to_wire(), default=str)
        day = datetime.fromtimestamp(record.ts / 1000, tz=timezone.utc).date()
        with self._log_path(day).open("a", encoding="utf-8") as fh:
            fh.write(line + "\n")
        logger.debug(f"Logged cost for '{tool}': ${cost.usd} ({cost.provider})")
        return record

    # ========== Querying ==========

    def _log_files(self, from_ms: int, to_ms: int) -> List[Path]:
        """Ledger files whose UTC day overlaps the range, oldest first."""
        if not self._costs_dir.exists():
            return []
        files: List[Tuple[int, Path]] = []
        for path in self._costs_dir.glob(f"{_LOG_PREFIX}*{_LOG_SUFFIX}"):
            stamp = path.name[len(_LOG_PREFIX) : -len(_LOG_SUFFIX)]
            try:
                day = date.fromisoformat(stamp)
            except ValueError:
                continue
            day_start = _to_ms(datetime(day.year, day.month, day.day, tzinfo=timezone.utc))
            if day_start + _DAY_MS >= from_ms and day_start <= to_ms:
                files.append((day_start, path))
        return [p for _, p in sorted(files)]

    def _iter_records(self, query: CostQuery) -> Iterator[CostRecord]:
        from_ms, to_ms = parse_date_range(query.from_, query.to)
        for path in self._log_files(from_ms, to_ms):
            with path.open("r", encoding="utf-8") as fh:
                for line in fh:
                    if not line.strip():
                        continue
                    try:
                        record = CostRecord.model_validate(json.loads(line))
                    except (ValueError, ValidationError):
                        logger.debug(f"Skipping malformed cost record in {path.name}")
                        continue
                    if record.ts < from_ms or record.ts > to_ms:
                        continue
                    if not query.matches(record):
                        continue
                    yield record

    async def query(self, query: Optional[CostQuery] = None) -> List[CostRecord]:
        """Return matching records, oldest first, up to ``query.limit`` (default 1000)."""
        query = query or CostQuery()
        limit = query.limit or DEFAULT_QUERY_LIMIT
        records: List[CostRecord] = []
        for record in self._iter_records(query):
            records.append(record)
            if len(records) >= limit:
                break
        return records

    async def summarize(self, query: Optional[CostQuery] = None) -> CostSummary:
        """Aggregate matching records into totals per tool, agent, product, campaign, provider and user."""
        query = query or CostQuery()
        from_ms, to_ms = parse_date_range(query.from_, query.to)
        summary = CostSummary(
            from_=datetime.fromtimestamp(from_ms / 1000, tz=timezone.utc).isoformat(),
            to=datetime.fromtimestamp(to_ms / 1000, tz=timezone.utc).isoformat(),
        )

        def _add(bucket: Dict[str, float], key: Optional[str], usd: float) -> None:
            if key:
                bucket[key] = bucket.get(key, 0.0) + usd

        for record in self._iter_records(query):
            usd = record.cost.usd
            summary.total_usd += usd
            summary.count += 1
            _add(summary.by_tool, record.tool, usd)
            _add(summary.by_provider, record.cost.provider, usd)
            _add(summary.by_agent, record.agent, usd)
            _add(summary.by_product, record.product_id, usd)
            _add(summary.by_campaign, record.campaign_id, usd)
            _add(summary.by_user, record.user_id, usd)

        summary.total_usd = _round(summary.total_usd)
        return summary

    async def group_by_time(self, query: Optional[CostQuery] = None, group_by: str = "day") -> Dict[str, float]:
        """
        Total spend per UTC day (``YYYY-MM-DD``) or hour (``YYYY-MM-DDTHH:00``).

        Raises:
            ValueError: If ``group_by`` is neither ``day`` nor ``hour``.
        """
        if group_by not in (GroupBy.day.value, GroupBy.hour.value):
            raise ValueError(f"group_by must be 'day' or 'hour', got {group_by!r}")
        fmt = "%Y-%m-%dT%H:00" if group_by == GroupBy.hour.value else "%Y-%m-%d"

        grouped: Dict[str, float] = {}
        for record in self._iter_records(query or CostQuery()):
            key = datetime.fromtimestamp(record.ts / 1000, tz=timezone.utc).strftime(fmt)
            grouped[key] = grouped.get(key, 0.0) + record.cost.usd
        return grouped

    # ========== Budgets ==========

    async def get_budgets(self) -> List[Budget]:
        """Load all budgets; an absent file means no budgets."""
        if not self._budgets_path.exists():
            return []
        data = json.loads(self._budgets_path.read_text(encoding="utf-8"))
        return [Budget.model_validate(item) for item in data]

    def _save_budgets(self, budgets: List[Budget]) -> None:
        self._ensure_dirs()
        payload = [b.to_wire() for b in budgets]
        self._budgets_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")

    async def set_budget(
        self,
        *,
        name: str,
        scope: BudgetScope | str,
        period: BudgetPeriod | str,
        limit_usd: float,
        scope_id: Optional[str] = None,
        action: str = "warn",
        enabled: bool = True,
        id: Optional[str] = None,
    ) -> Budget:
        """
        Create a budget, or update the budget with a matching ``id``.

        Raises:
            pydantic.ValidationError: If the resulting budget is invalid.
        """
        budgets = await self.get_budgets()
        fields: Dict[str, Any] = {
            "name": name,
            "scope": scope,
            "scope_id": scope_id,
            "period": period,
            "limit_usd": limit_usd,
            "action": action,
            "enabled": enabled,
        }

        for idx, existing in enumerate(budgets):
            if id is not None and existing.id == id:
                updated = Budget.model_validate({**existing.model_dump(), **fields})
                budgets[idx] = updated
                self._save_budgets(budgets)
                logger.info(f"Updated budget '{updated.name}' ({updated.id})")
                return updated

        if id is not None:
            fields["id"] = id
        budget = Budget.model_validate(fields)
        budgets.append(budget)
        self._save_budgets(budgets)
        logger.info(f"Created budget '{budget.name}' ({budget.id})")
        return budget

    async def delete_budget(self, budget_id: str) -> bool:
        budgets = await self.get_budgets()
        remaining = [b for b in budgets if b.id != budget_id]
        if len(remaining) == len(budgets):
            return False
        self._save_budgets(remaining)
        logger.info(f"Deleted budget {budget_id}")
        return True

    async def check_budget(self, budget: Budget, now: Optional[datetime] = None) -> BudgetStatus:
        """Compute spend against a budget for its current period."""
        start, end = budget_period(budget, now)
        query = CostQuery(from_=start.isoformat(), to=end.isoformat())
        if budget.scope == BudgetScope.product.value and budget.scope_id:
            query.product_id = budget.scope_id
        elif budget.scope == BudgetScope.agent.value and budget.scope_id:
            query.agent = budget.scope_id
        elif budget.scope == BudgetScope.user.value and budget.scope_id:
            query.user_id = budget.scope_id

        summary = await self.summarize(query)
        spent = summary.total_usd
        remaining = max(0.0, budget.limit_usd - spent)
        return BudgetStatus(
            budget=budget,
            spent=_round(spent),
            remaining=_round(remaining),
            percent_used=round(spent / budget.limit_usd * 100, 2),
            is_exceeded=spent >= budget.limit_usd,
            period_start=start.isoformat(),
            period_end=end.isoformat(),
        )

    async def check_all_budgets(self, warning_threshold: float = 80.0) -> List[BudgetStatus]:
        """Statuses of enabled budgets at or above ``warning_threshold`` percent."""
        alerts: List[BudgetStatus] = []
        for budget in await self.get_budgets():
            if not budget.enabled:
                continue
            status = await self.check_budget(budget)
            if status.percent_used >= warning_threshold:
                alerts.append(status)
        return alerts

    @staticmethod
    def _applies(
        budget: Budget, agent: Optional[str], product_id: Optional[str], user_id: Optional[str]
    ) -> bool:
        if budget.scope == BudgetScope.global_.value:
            return True
        if budget.scope == BudgetScope.product.value:
            return product_id is not None and budget.scope_id == product_id
        if budget.scope == BudgetScope.agent.value:
            return agent is not None and budget.scope_id == agent
        if budget.scope == BudgetScope.user.value:
            return user_id is not None and budget.scope_id == user_id
        return False

    async def should_block(
        self,
        *,
        tool: str,
        agent: Optional[str] = None,
        product_id: Optional[str] = None,
        user_id: Optional[str] = None,
        estimated_cost: Optional[float] = None,
    ) -> BudgetCheck:
        """
        Decide whether a call must be blocked by an exceeded budget.

        ``estimated_cost``, when given, also blocks calls that would push an
        applicable budget past its limit.
        """
        for budget in await self.get_budgets():
            if not budget.enabled or not budget.blocks:
                continue
            if not self._applies(budget, agent, product_id, user_id):
                continue

            status = await self.check_budget(budget)
            if status.is_exceeded:
                return BudgetCheck(
                    blocked=True,
                    reason=(
                        f'Budget "{budget.name}" exceeded: '
                        f"${status.spent:.2f} / ${budget.limit_usd:.2f} ({budget.period})"
                    ),
                    budget=budget,
                )
            if estimated_cost and status.spent + estimated_cost > budget.limit_usd:
                return BudgetCheck(
                    blocked=True,
                    reason=(
                        f'Budget "{budget.name}" would be exceeded: '
                        f"${status.spent:.2f} + ${estimated_cost:.2f} > ${budget.limit_usd:.2f} ({budget.period})"
                    ),
                    budget=budget,
                )
        return BudgetCheck(blocked=False)
