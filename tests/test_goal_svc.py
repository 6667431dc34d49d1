from datetime import date
from decimal import Decimal

import pytest
from pydantic import ValidationError

from gymstudio.db.models import GoalPeriod, GoalStatus
from gymstudio.db.supabase import SupabaseError
from gymstudio.services import goal_svc
from gymstudio.services.goal_svc import GoalInput, default_period, goal_status, progress_percentage

from .factories import UNIT_ID, make_lead

TODAY = date(2024, 6, 15)


def _goal(**overrides):
    row = {
        "id": "goal-1",
        "unit_id": UNIT_ID,
        "name": "Leads de junho",
        "type": "leads",
        "target_value": 4,
        "current_value": 0,
        "period_type": "monthly",
        "period_start": "2024-06-01",
        "period_end": "2024-06-30",
        "is_active": True,
        "created_at": "2024-06-01T08:00:00+00:00",
    }
    row.update(overrides)
    return row


@pytest.mark.parametrize(
    "period, today, expected",
    [
        (GoalPeriod.MONTHLY, date(2024, 2, 10), (date(2024, 2, 1), date(2024, 2, 29))),
        (GoalPeriod.QUARTERLY, date(2024, 5, 15), (date(2024, 4, 1), date(2024, 6, 30))),
        (GoalPeriod.QUARTERLY, date(2024, 12, 31), (date(2024, 10, 1), date(2024, 12, 31))),
        (GoalPeriod.YEARLY, date(2024, 7, 4), (date(2024, 1, 1), date(2024, 12, 31))),
    ],
)
def test_default_period(period, today, expected):
    assert default_period(period, today) == expected


def test_progress_percentage_caps_at_100():
    assert progress_percentage(5, 10) == 50
    assert progress_percentage(15, 10) == 100
    assert progress_percentage(3, 0) == 0


@pytest.mark.parametrize(
    "progress, status",
    [
        # Half of June elapsed: about 48% expected
        (100, GoalStatus.COMPLETED),
        (50, GoalStatus.ON_TRACK),
        (40, GoalStatus.AT_RISK),
        (20, GoalStatus.BEHIND),
    ],
)
def test_goal_status_against_elapsed_share(progress, status):
    assert goal_status(progress, date(2024, 6, 1), date(2024, 6, 30), TODAY) is status


def test_goal_status_before_period_starts():
    assert goal_status(0, date(2024, 7, 1), date(2024, 7, 31), TODAY) is GoalStatus.ON_TRACK


async def test_lead_goal_counts_the_whole_last_day(supabase, fake_db):
    fake_db.seed("goals", _goal())
    fake_db.seed(
        "leads",
        make_lead(created_at="2024-06-01T00:00:00+00:00"),
        make_lead(created_at="2024-06-10T12:00:00+00:00"),
        make_lead(created_at="2024-06-30T18:00:00+00:00"),
        make_lead(created_at="2024-07-01T09:00:00+00:00"),
        make_lead(unit_id="unit-b", created_at="2024-06-10T12:00:00+00:00"),
    )

    [entry] = await goal_svc.goals_with_progress(supabase, UNIT_ID, TODAY)

    assert entry.current_value == 3
    assert entry.progress == 75
    assert entry.status is GoalStatus.ON_TRACK


async def test_revenue_goal_sums_payments(supabase, fake_db):
    fake_db.seed("goals", _goal(type="revenue", target_value="1000"))
    fake_db.seed(
        "payments",
        {"id": "p1", "unit_id": UNIT_ID, "amount": "100.00", "paid_at": "2024-06-03T10:00:00+00:00"},
        {"id": "p2", "unit_id": UNIT_ID, "amount": "49.90", "paid_at": "2024-06-12T10:00:00+00:00"},
        {"id": "p3", "unit_id": UNIT_ID, "amount": "500.00", "paid_at": "2024-05-31T10:00:00+00:00"},
    )

    [entry] = await goal_svc.goals_with_progress(supabase, UNIT_ID, TODAY)

    assert entry.current_value == Decimal("149.90")
    assert entry.status is GoalStatus.BEHIND


async def test_create_goal_uses_default_period(supabase, fake_db):
    goal = await goal_svc.create_goal(
        supabase,
        UNIT_ID,
        GoalInput(name="Check-ins", type="check_ins", target_value=500),
        today=date(2024, 2, 10),
        user_id="user-1",
    )

    assert (goal.period_start, goal.period_end) == (date(2024, 2, 1), date(2024, 2, 29))
    row = fake_db.rows("goals")[0]
    assert row["period_end"] == "2024-02-29"
    assert row["is_active"] is True
    assert fake_db.rows("activity_logs")[0]["entity_type"] == "goal"


def test_goal_input_validation():
    with pytest.raises(ValidationError):
        GoalInput(name="Zero", type="leads", target_value=0)
    with pytest.raises(ValidationError):
        GoalInput(name="Meio período", type="leads", target_value=10, period_start=date(2024, 6, 1))
    with pytest.raises(ValidationError):
        GoalInput(
            name="Invertida",
            type="leads",
            target_value=10,
            period_start=date(2024, 6, 30),
            period_end=date(2024, 6, 1),
        )


async def test_archive_and_restore(supabase, fake_db):
    fake_db.seed("goals", _goal())

    await goal_svc.set_goal_active(supabase, UNIT_ID, "goal-1", False)
    assert await goal_svc.list_goals(supabase, UNIT_ID) == []
    assert [g.id for g in await goal_svc.list_goals(supabase, UNIT_ID, active=False)] == ["goal-1"]

    await goal_svc.set_goal_active(supabase, UNIT_ID, "goal-1", True)
    assert [g.id for g in await goal_svc.list_goals(supabase, UNIT_ID)] == ["goal-1"]
    assert [log["action"] for log in fake_db.rows("activity_logs")] == ["archive", "restore"]


async def test_other_units_goals_are_untouchable(supabase, fake_db):
    fake_db.seed("goals", _goal(unit_id="unit-b"))

    with pytest.raises(SupabaseError):
        await goal_svc.set_goal_active(supabase, UNIT_ID, "goal-1", False)
    with pytest.raises(SupabaseError):
        await goal_svc.delete_goal(supabase, UNIT_ID, "goal-1")

    assert fake_db.rows("goals")[0]["is_active"] is True
