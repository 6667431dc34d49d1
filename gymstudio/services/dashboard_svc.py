"""
Dashboard and report figures.

All rates are percentages (0-100) as floats; money is Decimal. Month
boundaries follow the timezone of the `now` passed in.
"""

from __future__ import annotations

import calendar
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Any, Literal, Optional

from pydantic import BaseModel, TypeAdapter

from gymstudio.db.models import InvoiceStatus, PipelineStatus, SubscriptionStatus
from gymstudio.db.supabase import SupabaseClient, eq, gte, lt, not_is

ChartPeriod = Literal["4weeks", "3months", "6months"]
ReportPeriod = Literal["7d", "30d", "90d", "month", "3months", "6months", "year"]

MONTH_ABBR_PT = ("jan", "fev", "mar", "abr", "mai", "jun", "jul", "ago", "set", "out", "nov", "dez")
TOP_SELLERS_LIMIT = 5


class DashboardStats(BaseModel):
    current_month_revenue: Decimal
    last_month_revenue: Decimal
    revenue_growth: float
    total_expected: Decimal

    overdue_amount: Decimal
    overdue_count: int
    delinquency_rate: float

    total_leads: int
    new_leads_this_month: int
    active_clients: int
    conversion_rate: float
    leads_growth: float

    churned_this_month: int
    churn_rate: float

    total_check_ins_this_month: int
    avg_check_ins_per_client: float
    inactive_clients: int
    inactivity_rate: float


class ChartPoint(BaseModel):
    name: str
    leads: int
    conversions: int
    revenue: Decimal


class Seller(BaseModel):
    user_id: str
    name: str
    avatar_url: Optional[str] = None
    leads: int
    conversions: int
    conversion_rate: float


# ----------------------------------------------------------------------
# Date helpers
# ----------------------------------------------------------------------


def start_of_month(now: datetime) -> datetime:
    return datetime.combine(now.date().replace(day=1), time.min, tzinfo=now.tzinfo)


def add_months(moment: datetime, months: int) -> datetime:
    index = moment.month - 1 + months
    year, month = moment.year + index // 12, index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def month_bounds(now: datetime, months_back: int = 0) -> tuple[datetime, datetime]:
    """[start, end) of the month `months_back` months before `now`."""
    start = add_months(start_of_month(now), -months_back)
    return start, add_months(start, 1)


def week_bounds(now: datetime, weeks_back: int = 0) -> tuple[datetime, datetime]:
    """[start, end) of a Sunday-based week."""
    day = now.date() - timedelta(weeks=weeks_back)
    sunday = day - timedelta(days=(day.weekday() + 1) % 7)
    start = datetime.combine(sunday, time.min, tzinfo=now.tzinfo)
    return start, start + timedelta(days=7)


def date_range_for_period(period: ReportPeriod, now: datetime) -> tuple[datetime, datetime]:
    if period == "7d":
        return now - timedelta(days=7), now
    if period == "90d":
        return now - timedelta(days=90), now
    if period == "month":
        return month_bounds(now)
    if period == "3months":
        return add_months(now, -3), now
    if period == "6months":
        return add_months(now, -6), now
    if period == "year":
        return add_months(now, -12), now
    return now - timedelta(days=30), now


def _growth(current: float, previous: float, *, from_zero: float = 0.0) -> float:
    if previous > 0:
        return (current - previous) / previous * 100
    return from_zero if current > 0 else 0.0


def _rate(part: float, whole: float) -> float:
    return part / whole * 100 if whole > 0 else 0.0


def _sum(rows: list[dict[str, Any]]) -> Decimal:
    return sum((Decimal(str(r["amount"])) for r in rows), Decimal("0"))


def _between(column: str, start: datetime, end: datetime) -> dict[str, list[str]]:
    return {column: [gte(start.isoformat()), lt(end.isoformat())]}


_DATETIME = TypeAdapter(datetime)


def _in_range(value: Any, start: datetime, end: datetime) -> bool:
    if not value:
        return False
    if isinstance(value, str):
        if len(value) == 10:
            moment = datetime.combine(date.fromisoformat(value), time.min, tzinfo=start.tzinfo)
        else:
            moment = _DATETIME.validate_python(value)
    else:
        moment = value
    if moment.tzinfo is None and start.tzinfo is not None:
        moment = moment.replace(tzinfo=start.tzinfo)
    return start <= moment < end


async def _paid_between(client: SupabaseClient, unit_id: str, start: datetime, end: datetime) -> Decimal:
    rows = await client.select(
        "invoices",
        filters={"unit_id": eq(unit_id), "status": eq(InvoiceStatus.PAID.value), **_between("paid_at", start, end)},
        columns="amount",
    )
    return _sum(rows)


# ----------------------------------------------------------------------
# Dashboard
# ----------------------------------------------------------------------


async def dashboard_stats(client: SupabaseClient, unit_id: str, now: datetime) -> DashboardStats:
    current_start, current_end = month_bounds(now)
    last_start, last_end = month_bounds(now, 1)
    unit = eq(unit_id)

    leads = await client.select("leads", filters={"unit_id": unit}, columns="id, status, created_at")
    subscriptions = await client.select(
        "subscriptions",
        filters={"unit_id": unit},
        columns="id, status, lead_id, created_at, end_date",
    )
    current_revenue = await _paid_between(client, unit_id, current_start, current_end)
    last_revenue = await _paid_between(client, unit_id, last_start, last_end)
    overdue = await client.select(
        "invoices",
        filters={"unit_id": unit, "status": eq(InvoiceStatus.OVERDUE.value)},
        columns="amount",
    )
    check_ins = await client.select(
        "check_ins",
        filters={"unit_id": unit, **_between("checked_in_at", current_start, current_end)},
        columns="id, lead_id",
    )

    active_subscriptions = [s for s in subscriptions if s["status"] == SubscriptionStatus.ACTIVE.value]
    overdue_count = len(overdue)

    total_leads = len(leads)
    new_leads = sum(1 for lead in leads if _in_range(lead.get("created_at"), current_start, current_end))
    leads_last_month = sum(1 for lead in leads if _in_range(lead.get("created_at"), last_start, last_end))
    active_clients = sum(1 for lead in leads if lead["status"] == PipelineStatus.ATIVO.value)

    churned = sum(
        1
        for s in subscriptions
        if s["status"] in (SubscriptionStatus.CANCELLED.value, SubscriptionStatus.EXPIRED.value)
        and _in_range(s.get("end_date"), current_start, current_end)
    )
    active_last_month = len(active_subscriptions) + churned

    total_check_ins = len(check_ins)
    attending = {c["lead_id"] for c in check_ins}
    # Check-ins from cancelled clients can outnumber the active ones
    inactive = max(active_clients - len(attending), 0)

    return DashboardStats(
        current_month_revenue=current_revenue,
        last_month_revenue=last_revenue,
        revenue_growth=_growth(float(current_revenue), float(last_revenue)),
        total_expected=current_revenue,
        overdue_amount=_sum(overdue),
        overdue_count=overdue_count,
        delinquency_rate=_rate(overdue_count, len(active_subscriptions)),
        total_leads=total_leads,
        new_leads_this_month=new_leads,
        active_clients=active_clients,
        conversion_rate=_rate(active_clients, total_leads),
        leads_growth=_growth(new_leads, leads_last_month, from_zero=100.0),
        churned_this_month=churned,
        churn_rate=_rate(churned, active_last_month),
        total_check_ins_this_month=total_check_ins,
        avg_check_ins_per_client=total_check_ins / active_clients if active_clients else 0.0,
        inactive_clients=inactive,
        inactivity_rate=_rate(inactive, active_clients),
    )


async def _chart_point(client: SupabaseClient, unit_id: str, name: str, start: datetime, end: datetime) -> ChartPoint:
    unit = eq(unit_id)
    leads = await client.count("leads", filters={"unit_id": unit, **_between("created_at", start, end)})
    conversions = await client.count(
        "leads",
        filters={"unit_id": unit, "status": eq(PipelineStatus.ATIVO.value), **_between("updated_at", start, end)},
    )
    revenue = await _paid_between(client, unit_id, start, end)
    return ChartPoint(name=name, leads=leads, conversions=conversions, revenue=revenue)


async def chart_data(client: SupabaseClient, unit_id: str, period: ChartPeriod, now: datetime) -> list[ChartPoint]:
    """Leads, conversions and revenue per week (`4weeks`) or per month, oldest first."""

    points: list[ChartPoint] = []
    if period == "4weeks":
        for weeks_back in range(3, -1, -1):
            start, end = week_bounds(now, weeks_back)
            points.append(await _chart_point(client, unit_id, f"Sem {4 - weeks_back}", start, end))
        return points

    months = 3 if period == "3months" else 6
    for months_back in range(months - 1, -1, -1):
        start, end = month_bounds(now, months_back)
        points.append(await _chart_point(client, unit_id, MONTH_ABBR_PT[start.month - 1], start, end))
    return points


async def top_sellers(client: SupabaseClient, unit_id: str, limit: int = TOP_SELLERS_LIMIT) -> list[Seller]:
    """Staff ranked by converted (`ativo`) leads assigned to them."""

    leads = await client.select(
        "leads",
        filters={"unit_id": eq(unit_id), "assigned_to": not_is(None)},
        columns="assigned_to, status",
    )
    profiles = await client.select("profiles", columns="id, user_id, full_name, avatar_url")
    by_user = {p["user_id"]: p for p in profiles}

    stats: dict[str, list[int]] = {}
    for lead in leads:
        entry = stats.setdefault(lead["assigned_to"], [0, 0])
        entry[0] += 1
        if lead["status"] == PipelineStatus.ATIVO.value:
            entry[1] += 1

    sellers = [
        Seller(
            user_id=user_id,
            name=(by_user.get(user_id) or {}).get("full_name") or "Usuário",
            avatar_url=(by_user.get(user_id) or {}).get("avatar_url"),
            leads=total,
            conversions=converted,
            conversion_rate=_rate(converted, total),
        )
        for user_id, (total, converted) in stats.items()
    ]
    sellers.sort(key=lambda s: s.conversions, reverse=True)
    return sellers[:limit]
