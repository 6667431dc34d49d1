"""Plans, subscriptions, invoices and payments."""

from __future__ import annotations

import calendar
import logging
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Literal, Optional

from pydantic import BaseModel

from gymstudio.db.models import (
    Invoice,
    InvoiceStatus,
    Payment,
    PaymentMethod,
    Plan,
    Subscription,
    SubscriptionStatus,
)
from gymstudio.db.supabase import SupabaseClient, eq, gte, in_, lt
from gymstudio.services import activity_svc

logger = logging.getLogger(__name__)


LEAD_EMBED = "lead:leads(id, full_name, email, phone)"
SUBSCRIPTION_COLUMNS = f"*, {LEAD_EMBED}, plan:plans(id, name, price, duration_days)"
INVOICE_COLUMNS = f"*, {LEAD_EMBED}"
OVERDUE_LIST_LIMIT = 10

LeadSubscriptionState = Literal["active", "expired", "pending", "none"]


class SubscriptionSummary(BaseModel):
    status: LeadSubscriptionState
    end_date: Optional[date] = None

    @property
    def block_reason(self) -> str | None:
        return {
            "none": "Sem assinatura ativa",
            "expired": "Assinatura expirada",
            "pending": "Assinatura pendente",
        }.get(self.status)


class FinancialStats(BaseModel):
    total_expected: Decimal
    total_received: Decimal
    total_overdue: Decimal
    pending_count: int
    overdue_count: int


def _money(value: Decimal | float | int) -> str:
    return f"{Decimal(str(value)):.2f}"


def _sum_amounts(rows: list[dict[str, Any]]) -> Decimal:
    return sum((Decimal(str(row["amount"])) for row in rows), Decimal("0"))


# ----------------------------------------------------------------------
# Plans
# ----------------------------------------------------------------------


async def list_plans(client: SupabaseClient, unit_id: str, *, active_only: bool = False) -> list[Plan]:
    filters: dict[str, Any] = {"unit_id": eq(unit_id)}
    if active_only:
        filters["is_active"] = eq(True)
    rows = await client.select("plans", filters=filters, order="price.asc")
    return [Plan.model_validate(row) for row in rows]


async def get_plan(client: SupabaseClient, plan_id: str) -> Plan | None:
    row = await client.select_one("plans", filters={"id": eq(plan_id)})
    return Plan.model_validate(row) if row else None


async def create_plan(
    client: SupabaseClient,
    unit_id: str,
    *,
    name: str,
    price: Decimal,
    duration_days: int,
    description: Optional[str] = None,
    features: Optional[list[str]] = None,
    user_id: Optional[str] = None,
) -> Plan:
    plan = Plan.model_validate(
        await client.insert_one(
            "plans",
            {
                "unit_id": unit_id,
                "name": name,
                "price": _money(price),
                "duration_days": duration_days,
                "description": description,
                "features": features or [],
                "is_active": True,
            },
        )
    )
    await activity_svc.log_activity(
        client,
        unit_id,
        "plan",
        "create",
        f'Plano "{plan.name}" criado',
        entity_id=plan.id,
        metadata={"plan_name": plan.name, "price": _money(plan.price)},
        user_id=user_id,
    )
    return plan


async def update_plan(client: SupabaseClient, plan_id: str, changes: dict[str, Any]) -> Plan:
    return Plan.model_validate(await client.update_one("plans", plan_id, changes))


# ----------------------------------------------------------------------
# Subscriptions
# ----------------------------------------------------------------------


async def list_subscriptions(
    client: SupabaseClient,
    unit_id: str,
    *,
    lead_id: Optional[str] = None,
) -> list[Subscription]:
    filters: dict[str, Any] = {"unit_id": eq(unit_id)}
    if lead_id:
        filters["lead_id"] = eq(lead_id)
    rows = await client.select(
        "subscriptions",
        filters=filters,
        columns=SUBSCRIPTION_COLUMNS,
        order="created_at.desc",
    )
    return [Subscription.model_validate(row) for row in rows]


async def create_subscription(
    client: SupabaseClient,
    unit_id: str,
    *,
    lead_id: str,
    plan_id: str,
    start_date: date,
    end_date: date,
    status: SubscriptionStatus = SubscriptionStatus.ACTIVE,
    auto_renew: bool = False,
    payment_day: Optional[int] = None,
    user_id: Optional[str] = None,
) -> Subscription:
    subscription = Subscription.model_validate(
        await client.insert_one(
            "subscriptions",
            {
                "unit_id": unit_id,
                "lead_id": lead_id,
                "plan_id": plan_id,
                "status": SubscriptionStatus(status).value,
                "start_date": start_date.isoformat(),
                "end_date": end_date.isoformat(),
                "auto_renew": auto_renew,
                "payment_day": payment_day,
            },
        )
    )
    await activity_svc.log_activity(
        client,
        unit_id,
        "subscription",
        "create",
        "Nova assinatura criada",
        entity_id=subscription.id,
        metadata={"lead_id": lead_id, "plan_id": plan_id},
        user_id=user_id,
    )
    return subscription


async def update_subscription(
    client: SupabaseClient,
    subscription_id: str,
    changes: dict[str, Any],
) -> Subscription:
    return Subscription.model_validate(await client.update_one("subscriptions", subscription_id, changes))


def _day_in_month(year: int, month: int, day: int) -> date:
    return date(year, month, min(day, calendar.monthrange(year, month)[1]))


def first_due_date(start: date, payment_day: int) -> date:
    """Payment day in the start month, or the next month if already past."""

    due = _day_in_month(start.year, start.month, payment_day)
    if due < start:
        year, month = (start.year + 1, 1) if start.month == 12 else (start.year, start.month + 1)
        due = _day_in_month(year, month, payment_day)
    return due


async def subscribe_lead(
    client: SupabaseClient,
    unit_id: str,
    *,
    lead_id: str,
    plan: Plan,
    start_date: date,
    payment_day: int,
    auto_renew: bool = False,
    generate_invoice: bool = True,
    user_id: Optional[str] = None,
) -> tuple[Subscription, Invoice | None]:
    """
    Create an active subscription for the plan's duration and, optionally,
    its first pending invoice.
    """

    subscription = await create_subscription(
        client,
        unit_id,
        lead_id=lead_id,
        plan_id=plan.id,
        start_date=start_date,
        end_date=start_date + timedelta(days=plan.duration_days),
        auto_renew=auto_renew,
        payment_day=payment_day,
        user_id=user_id,
    )
    if not generate_invoice:
        return subscription, None

    invoice = await create_invoice(
        client,
        unit_id,
        subscription_id=subscription.id,
        lead_id=lead_id,
        amount=plan.price,
        due_date=first_due_date(start_date, payment_day),
        description=f"Mensalidade - {plan.name}",
        reference_month=start_date.strftime("%Y-%m"),
        user_id=user_id,
    )
    return subscription, invoice


def summarize_subscriptions(subscriptions: list[Subscription], today: date) -> SubscriptionSummary:
    active = next((s for s in subscriptions if s.status is SubscriptionStatus.ACTIVE), None)
    if active is not None:
        if today > active.end_date:
            return SubscriptionSummary(status="expired", end_date=active.end_date)
        return SubscriptionSummary(status="active", end_date=active.end_date)
    if any(s.status is SubscriptionStatus.PENDING for s in subscriptions):
        return SubscriptionSummary(status="pending")
    return SubscriptionSummary(status="none")


async def subscription_status_for_lead(
    client: SupabaseClient,
    unit_id: str,
    lead_id: str,
    today: date,
) -> SubscriptionSummary:
    subscriptions = await list_subscriptions(client, unit_id, lead_id=lead_id)
    return summarize_subscriptions(subscriptions, today)


# ----------------------------------------------------------------------
# Invoices
# ----------------------------------------------------------------------


async def list_invoices(
    client: SupabaseClient,
    unit_id: str,
    status: Optional[InvoiceStatus] = None,
) -> list[Invoice]:
    filters: dict[str, Any] = {"unit_id": eq(unit_id)}
    if status is not None:
        filters["status"] = eq(InvoiceStatus(status).value)
    rows = await client.select("invoices", filters=filters, columns=INVOICE_COLUMNS, order="due_date.desc")
    return [Invoice.model_validate(row) for row in rows]


async def get_invoice(client: SupabaseClient, invoice_id: str) -> Invoice | None:
    row = await client.select_one("invoices", filters={"id": eq(invoice_id)}, columns=INVOICE_COLUMNS)
    return Invoice.model_validate(row) if row else None


async def create_invoice(
    client: SupabaseClient,
    unit_id: str,
    *,
    subscription_id: str,
    lead_id: str,
    amount: Decimal,
    due_date: date,
    description: Optional[str] = None,
    reference_month: Optional[str] = None,
    user_id: Optional[str] = None,
) -> Invoice:
    invoice = Invoice.model_validate(
        await client.insert_one(
            "invoices",
            {
                "unit_id": unit_id,
                "subscription_id": subscription_id,
                "lead_id": lead_id,
                "amount": _money(amount),
                "due_date": due_date.isoformat(),
                "status": InvoiceStatus.PENDING.value,
                "description": description,
                "reference_month": reference_month,
            },
        )
    )
    await activity_svc.log_activity(
        client,
        unit_id,
        "invoice",
        "create",
        f"Fatura de R$ {_money(invoice.amount)} criada",
        entity_id=invoice.id,
        metadata={"amount": _money(invoice.amount), "due_date": invoice.due_date.isoformat()},
        user_id=user_id,
    )
    return invoice


async def update_invoice(client: SupabaseClient, invoice_id: str, changes: dict[str, Any]) -> Invoice:
    return Invoice.model_validate(await client.update_one("invoices", invoice_id, changes))


async def overdue_invoices(client: SupabaseClient, unit_id: str) -> list[Invoice]:
    """Pending and overdue invoices, oldest due date first."""

    rows = await client.select(
        "invoices",
        filters={
            "unit_id": eq(unit_id),
            "status": in_([InvoiceStatus.OVERDUE.value, InvoiceStatus.PENDING.value]),
        },
        columns=INVOICE_COLUMNS,
        order="due_date.asc",
        limit=OVERDUE_LIST_LIMIT,
    )
    return [Invoice.model_validate(row) for row in rows]


async def mark_overdue_invoices(client: SupabaseClient, today: date, unit_id: Optional[str] = None) -> int:
    """Flip pending invoices whose due date has passed to `overdue`."""

    filters: dict[str, Any] = {
        "status": eq(InvoiceStatus.PENDING.value),
        "due_date": lt(today.isoformat()),
    }
    if unit_id:
        filters["unit_id"] = eq(unit_id)
    rows = await client.update("invoices", filters, {"status": InvoiceStatus.OVERDUE.value})
    if rows:
        logger.info("Marked %s invoice(s) as overdue", len(rows))
    return len(rows)


# ----------------------------------------------------------------------
# Payments
# ----------------------------------------------------------------------


async def list_payments(
    client: SupabaseClient,
    unit_id: str,
    invoice_id: Optional[str] = None,
) -> list[Payment]:
    filters: dict[str, Any] = {"unit_id": eq(unit_id)}
    if invoice_id:
        filters["invoice_id"] = eq(invoice_id)
    rows = await client.select("payments", filters=filters, order="paid_at.desc")
    return [Payment.model_validate(row) for row in rows]


async def register_payment(
    client: SupabaseClient,
    invoice: Invoice,
    method: PaymentMethod,
    *,
    paid_at: datetime,
    amount: Optional[Decimal] = None,
    transaction_id: Optional[str] = None,
    notes: Optional[str] = None,
    user_id: Optional[str] = None,
) -> Payment:
    """Record a payment and mark its invoice as paid."""

    payment = Payment.model_validate(
        await client.insert_one(
            "payments",
            {
                "unit_id": invoice.unit_id,
                "invoice_id": invoice.id,
                "amount": _money(amount if amount is not None else invoice.amount),
                "payment_method": PaymentMethod(method).value,
                "paid_at": paid_at.isoformat(),
                "transaction_id": transaction_id,
                "notes": notes,
                "created_by": user_id,
            },
        )
    )
    await update_invoice(
        client,
        invoice.id,
        {"status": InvoiceStatus.PAID.value, "paid_at": paid_at.isoformat()},
    )
    await activity_svc.log_activity(
        client,
        invoice.unit_id,
        "payment",
        "create",
        f"Pagamento de R$ {_money(payment.amount)} registrado",
        entity_id=payment.id,
        metadata={"amount": _money(payment.amount), "payment_method": payment.payment_method.value},
        user_id=user_id,
    )
    return payment


async def financial_stats(client: SupabaseClient, unit_id: str, now: datetime) -> FinancialStats:
    start_of_month = now.date().replace(day=1).isoformat()
    unit_filter = eq(unit_id)

    month_invoices = await client.select(
        "invoices",
        filters={"unit_id": unit_filter, "due_date": gte(start_of_month)},
        columns="amount, status",
    )
    paid = await client.select(
        "invoices",
        filters={"unit_id": unit_filter, "status": eq(InvoiceStatus.PAID.value), "paid_at": gte(start_of_month)},
        columns="amount",
    )
    overdue = await client.select(
        "invoices",
        filters={"unit_id": unit_filter, "status": eq(InvoiceStatus.OVERDUE.value)},
        columns="amount",
    )

    return FinancialStats(
        total_expected=_sum_amounts(month_invoices),
        total_received=_sum_amounts(paid),
        total_overdue=_sum_amounts(overdue),
        pending_count=sum(1 for row in month_invoices if row["status"] == InvoiceStatus.PENDING.value),
        overdue_count=len(overdue),
    )
