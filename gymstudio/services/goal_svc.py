"""
Unit goals (metas) and their progress.

A goal counts one metric (new leads, conversions, revenue, check-ins or
new clients) over a date period. Progress is recomputed from the source
tables on every read; the stored `current_value` is not trusted.
"""

from __future__ import annotations

import calendar
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, Field, model_validator

from gymstudio.db.models import (
    GOAL_TYPE_LABELS,
    Goal,
    GoalPeriod,
    GoalStatus,
    GoalType,
    PipelineStatus,
    SubscriptionStatus,
)
from gymstudio.db.supabase import SupabaseClient, SupabaseError, eq, gte, lt
from gymstudio.services import activity_svc


ON_TRACK_RATIO = 0.9
AT_RISK_RATIO = 0.7


class GoalInput(BaseModel):
    name: str
    type: GoalType
    target_value: Decimal = Field(gt=0)
    period_type: GoalPeriod = GoalPeriod.MONTHLY
    period_start: Optional[date] = None
    period_end: Optional[date] = None

    @model_validator(mode="after")
    def _check_period(self) -> "GoalInput":
        if (self.period_start is None) != (self.period_end is None):
            raise ValueError("Informe início e fim do período")
        if self.period_start and self.period_end and self.period_end < self.period_start:
            raise ValueError("Fim do período antes do início")
        return self


class GoalProgress(BaseModel):
    goal: Goal
    current_value: Decimal
    progress: float
    status: GoalStatus


def default_period(period_type: GoalPeriod, today: date) -> tuple[date, date]:
    """Calendar month, quarter or year containing `today` (both ends inclusive)."""

    period_type = GoalPeriod(period_type)
    if period_type is GoalPeriod.YEARLY:
        return date(today.year, 1, 1), date(today.year, 12, 31)
    if period_type is GoalPeriod.QUARTERLY:
        first_month = 3 * ((today.month - 1) // 3) + 1
        last_month = first_month + 2
        return (
            date(today.year, first_month, 1),
            date(today.year, last_month, calendar.monthrange(today.year, last_month)[1]),
        )
    last_day = calendar.monthrange(today.year, today.month)[1]
    return date(today.year, today.month, 1), date(today.year, today.month, last_day)


def progress_percentage(current: Decimal | float, target: Decimal | float) -> float:
    if target <= 0:
        return 0.0
    return min(float(current) / float(target) * 100, 100.0)


def goal_status(progress: float, period_start: date, period_end: date, today: date) -> GoalStatus:
    """
    Compare progress with the share of the period already elapsed.

    At 90% of the expected pace or better a goal is on track; from 70%
    it is at risk; below that it is behind.
    """

    if progress >= 100:
        return GoalStatus.COMPLETED
    total_days = (period_end - period_start).days
    elapsed_days = max((today - period_start).days, 0)
    expected = elapsed_days / total_days * 100 if total_days > 0 else 0
    if progress >= expected * ON_TRACK_RATIO:
        return GoalStatus.ON_TRACK
    if progress >= expected * AT_RISK_RATIO:
        return GoalStatus.AT_RISK
    return GoalStatus.BEHIND


def _period_filter(column: str, goal: Goal) -> dict[str, list[str]]:
    # The end date is inclusive, so the range stops at the next midnight
    end = goal.period_end + timedelta(days=1)
    return {column: [gte(goal.period_start.isoformat()), lt(end.isoformat())]}


async def current_value(client: SupabaseClient, unit_id: str, goal: Goal) -> Decimal:
    unit = {"unit_id": eq(unit_id)}
    if goal.type is GoalType.LEADS:
        total = await client.count("leads", filters={**unit, **_period_filter("created_at", goal)})
    elif goal.type is GoalType.CONVERSIONS:
        total = await client.count(
            "leads",
            filters={**unit, "status": eq(PipelineStatus.ATIVO.value), **_period_filter("updated_at", goal)},
        )
    elif goal.type is GoalType.REVENUE:
        rows = await client.select(
            "payments",
            filters={**unit, **_period_filter("paid_at", goal)},
            columns="amount",
        )
        return sum((Decimal(str(row["amount"])) for row in rows), Decimal("0"))
    elif goal.type is GoalType.CHECK_INS:
        total = await client.count("check_ins", filters={**unit, **_period_filter("checked_in_at", goal)})
    else:
        total = await client.count(
            "subscriptions",
            filters={
                **unit,
                "status": eq(SubscriptionStatus.ACTIVE.value),
                **_period_filter("created_at", goal),
            },
        )
    return Decimal(total)


async def list_goals(client: SupabaseClient, unit_id: str, *, active: bool = True) -> list[Goal]:
    """Active goals newest first; archived ones by last change."""

    rows = await client.select(
        "goals",
        filters={"unit_id": eq(unit_id), "is_active": eq(active)},
        order="created_at.desc" if active else "updated_at.desc",
    )
    return [Goal.model_validate(row) for row in rows]


async def goals_with_progress(client: SupabaseClient, unit_id: str, today: date) -> list[GoalProgress]:
    result = []
    for goal in await list_goals(client, unit_id):
        value = await current_value(client, unit_id, goal)
        progress = progress_percentage(value, goal.target_value)
        result.append(
            GoalProgress(
                goal=goal,
                current_value=value,
                progress=round(progress, 1),
                status=goal_status(progress, goal.period_start, goal.period_end, today),
            )
        )
    return result


async def create_goal(
    client: SupabaseClient,
    unit_id: str,
    data: GoalInput,
    *,
    today: date,
    user_id: Optional[str] = None,
) -> Goal:
    if data.period_start and data.period_end:
        start, end = data.period_start, data.period_end
    else:
        start, end = default_period(data.period_type, today)

    payload = {
        "unit_id": unit_id,
        "name": data.name.strip(),
        "type": data.type.value,
        "target_value": str(data.target_value),
        "period_type": data.period_type.value,
        "period_start": start.isoformat(),
        "period_end": end.isoformat(),
        "is_active": True,
    }
    goal = Goal.model_validate(await client.insert_one("goals", payload))

    await activity_svc.log_activity(
        client,
        unit_id,
        "goal",
        "create",
        f'Meta "{goal.name}" criada ({GOAL_TYPE_LABELS[goal.type]})',
        entity_id=goal.id,
        metadata={"name": goal.name, "type": goal.type.value, "target_value": str(goal.target_value)},
        user_id=user_id,
    )
    return goal


async def update_goal(
    client: SupabaseClient,
    unit_id: str,
    goal_id: str,
    changes: dict[str, Any],
    *,
    user_id: Optional[str] = None,
) -> Goal:
    goal = Goal.model_validate(await client.update_one("goals", goal_id, changes, filters={"unit_id": eq(unit_id)}))
    await activity_svc.log_activity(
        client,
        unit_id,
        "goal",
        "update",
        f'Meta "{goal.name}" atualizada',
        entity_id=goal.id,
        metadata={"name": goal.name},
        user_id=user_id,
    )
    return goal


async def set_goal_active(
    client: SupabaseClient,
    unit_id: str,
    goal_id: str,
    active: bool,
    *,
    user_id: Optional[str] = None,
) -> Goal:
    """Archive (`active=False`) or restore a goal."""

    goal = Goal.model_validate(
        await client.update_one("goals", goal_id, {"is_active": active}, filters={"unit_id": eq(unit_id)})
    )
    await activity_svc.log_activity(
        client,
        unit_id,
        "goal",
        "restore" if active else "archive",
        f'Meta "{goal.name}" {"restaurada" if active else "arquivada"}',
        entity_id=goal.id,
        metadata={"name": goal.name},
        user_id=user_id,
    )
    return goal


async def delete_goal(
    client: SupabaseClient,
    unit_id: str,
    goal_id: str,
    *,
    user_id: Optional[str] = None,
) -> None:
    deleted = await client.delete("goals", {"unit_id": eq(unit_id), "id": eq(goal_id)})
    if not deleted:
        raise SupabaseError("Meta não encontrada", status_code=404)

    name = deleted[0].get("name", "")
    await activity_svc.log_activity(
        client,
        unit_id,
        "goal",
        "delete",
        f'Meta "{name}" excluída',
        entity_id=goal_id,
        metadata={"name": name},
        user_id=user_id,
    )
