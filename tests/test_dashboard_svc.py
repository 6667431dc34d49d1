from datetime import datetime, timezone
from decimal import Decimal

import pytest

from gymstudio.services import dashboard_svc
from gymstudio.services.dashboard_svc import _growth, _in_range, add_months, date_range_for_period, month_bounds, week_bounds

from .factories import UNIT_ID, make_invoice, make_lead, make_subscription

UTC = timezone.utc
NOW = datetime(2024, 6, 15, 12, 0, tzinfo=UTC)


def test_add_months_clamps_day():
    assert add_months(datetime(2024, 1, 31, tzinfo=UTC), 1) == datetime(2024, 2, 29, tzinfo=UTC)
    assert add_months(datetime(2024, 3, 15, tzinfo=UTC), -3) == datetime(2023, 12, 15, tzinfo=UTC)


def test_month_bounds_are_half_open():
    assert month_bounds(NOW) == (datetime(2024, 6, 1, tzinfo=UTC), datetime(2024, 7, 1, tzinfo=UTC))
    assert month_bounds(datetime(2024, 1, 10, tzinfo=UTC), 1) == (
        datetime(2023, 12, 1, tzinfo=UTC),
        datetime(2024, 1, 1, tzinfo=UTC),
    )


def test_week_bounds_start_on_sunday():
    # 2024-06-15 is a Saturday
    assert week_bounds(NOW) == (datetime(2024, 6, 9, tzinfo=UTC), datetime(2024, 6, 16, tzinfo=UTC))
    assert week_bounds(NOW, 1)[0] == datetime(2024, 6, 2, tzinfo=UTC)


@pytest.mark.parametrize(
    "period, start",
    [
        ("7d", datetime(2024, 6, 8, 12, 0, tzinfo=UTC)),
        ("30d", datetime(2024, 5, 16, 12, 0, tzinfo=UTC)),
        ("month", datetime(2024, 6, 1, tzinfo=UTC)),
        ("year", datetime(2023, 6, 15, 12, 0, tzinfo=UTC)),
    ],
)
def test_date_range_for_period(period, start):
    assert date_range_for_period(period, NOW)[0] == start


def test_growth():
    assert _growth(150, 100) == 50
    assert _growth(5, 0, from_zero=100.0) == 100
    assert _growth(5, 0) == 0
    assert _growth(0, 0, from_zero=100.0) == 0


@pytest.mark.parametrize(
    "value, inside",
    [
        ("2024-06-03T10:00:00.12345+00:00", True),
        ("2024-06-03T10:00:00Z", True),
        ("2024-06-03", True),
        ("2024-05-31T23:59:59.999999+00:00", False),
        (None, False),
    ],
)
def test_in_range_parses_postgres_timestamps(value, inside):
    start, end = month_bounds(NOW)

    assert _in_range(value, start, end) is inside


async def test_dashboard_stats(supabase, fake_db):
    l1 = make_lead(id="l1", status="ativo", created_at="2024-06-02T10:00:00+00:00")
    l2 = make_lead(id="l2", status="lead", created_at="2024-06-05T10:00:00+00:00")
    l3 = make_lead(id="l3", status="ativo", created_at="2024-05-10T10:00:00+00:00")
    l4 = make_lead(id="l4", status="inativo", created_at="2024-05-20T10:00:00+00:00")
    fake_db.seed("leads", l1, l2, l3, l4)
    fake_db.seed(
        "subscriptions",
        make_subscription("l1", "plan-1"),
        make_subscription("l3", "plan-1"),
        make_subscription("l4", "plan-1", status="cancelled", end_date="2024-06-10"),
    )
    fake_db.seed(
        "invoices",
        make_invoice("l1", amount="100.00", status="paid", paid_at="2024-06-03T10:00:00+00:00"),
        make_invoice("l3", amount="50.00", status="paid", paid_at="2024-05-20T10:00:00+00:00"),
        make_invoice("l3", amount="80.00", status="overdue"),
    )
    fake_db.seed(
        "check_ins",
        {"id": "c1", "unit_id": UNIT_ID, "lead_id": "l1", "checked_in_at": "2024-06-03T07:00:00+00:00"},
        {"id": "c2", "unit_id": UNIT_ID, "lead_id": "l1", "checked_in_at": "2024-06-04T07:00:00+00:00"},
        {"id": "c3", "unit_id": UNIT_ID, "lead_id": "l3", "checked_in_at": "2024-05-30T07:00:00+00:00"},
    )

    stats = await dashboard_svc.dashboard_stats(supabase, UNIT_ID, NOW)

    assert stats.current_month_revenue == Decimal("100.00")
    assert stats.last_month_revenue == Decimal("50.00")
    assert stats.revenue_growth == 100
    assert stats.overdue_amount == Decimal("80.00")
    assert stats.overdue_count == 1
    assert stats.delinquency_rate == 50
    assert stats.total_leads == 4
    assert stats.new_leads_this_month == 2
    assert stats.active_clients == 2
    assert stats.conversion_rate == 50
    assert stats.leads_growth == 0
    assert stats.churned_this_month == 1
    assert stats.churn_rate == pytest.approx(33.33, abs=0.01)
    assert stats.total_check_ins_this_month == 2
    assert stats.avg_check_ins_per_client == 1.0
    assert stats.inactive_clients == 1
    assert stats.inactivity_rate == 50


async def test_dashboard_stats_on_empty_unit(supabase):
    stats = await dashboard_svc.dashboard_stats(supabase, UNIT_ID, NOW)

    assert stats.total_leads == 0
    assert stats.conversion_rate == 0
    assert stats.avg_check_ins_per_client == 0


async def test_chart_data_by_month(supabase, fake_db):
    fake_db.seed(
        "leads",
        make_lead(created_at="2024-06-02T10:00:00+00:00", updated_at="2024-06-09T10:00:00+00:00"),
        make_lead(status="lead", created_at="2024-04-02T10:00:00+00:00", updated_at="2024-04-02T10:00:00+00:00"),
    )
    fake_db.seed("invoices", make_invoice("l1", amount="149.90", status="paid", paid_at="2024-06-03T10:00:00+00:00"))

    points = await dashboard_svc.chart_data(supabase, UNIT_ID, "3months", NOW)

    assert [p.name for p in points] == ["abr", "mai", "jun"]
    assert [p.leads for p in points] == [1, 0, 1]
    assert [p.conversions for p in points] == [0, 0, 1]
    assert points[-1].revenue == Decimal("149.90")


async def test_chart_data_by_week(supabase):
    points = await dashboard_svc.chart_data(supabase, UNIT_ID, "4weeks", NOW)

    assert [p.name for p in points] == ["Sem 1", "Sem 2", "Sem 3", "Sem 4"]


async def test_top_sellers_ranked_by_conversions(supabase, fake_db):
    fake_db.seed(
        "leads",
        make_lead(assigned_to="u1", status="lead"),
        make_lead(assigned_to="u1", status="ativo"),
        make_lead(assigned_to="u2", status="ativo"),
        make_lead(assigned_to="u2", status="ativo"),
        make_lead(status="ativo"),
    )
    fake_db.seed("profiles", {"id": "p1", "user_id": "u1", "full_name": "Carla"})

    sellers = await dashboard_svc.top_sellers(supabase, UNIT_ID)

    assert [(s.user_id, s.conversions) for s in sellers] == [("u2", 2), ("u1", 1)]
    assert sellers[0].name == "Usuário"
    assert sellers[1].name == "Carla"
    assert sellers[1].conversion_rate == 50
