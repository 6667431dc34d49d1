"""Overdue-invoice status per lead and the access decision derived from it."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel

from gymstudio.db.models import Invoice, InvoiceStatus, Unit
from gymstudio.db.supabase import SupabaseClient, eq

DEFAULT_GRACE_DAYS = 5


class DelinquencyStatus(BaseModel):
    is_delinquent: bool = False
    overdue_amount: Decimal = Decimal("0")
    overdue_invoices: int = 0
    oldest_overdue_date: Optional[date] = None
    days_past_due: int = 0


class AccessDecision(BaseModel):
    blocked: bool
    delinquency: DelinquencyStatus
    reason: Optional[str] = None


def summarize_overdue(invoices: list[Invoice], today: date) -> DelinquencyStatus:
    if not invoices:
        return DelinquencyStatus()
    oldest = min(invoice.due_date for invoice in invoices)
    return DelinquencyStatus(
        is_delinquent=True,
        overdue_amount=sum((invoice.amount for invoice in invoices), Decimal("0")),
        overdue_invoices=len(invoices),
        oldest_overdue_date=oldest,
        days_past_due=(today - oldest).days,
    )


async def lead_delinquency(client: SupabaseClient, lead_id: str, today: date) -> DelinquencyStatus:
    rows = await client.select(
        "invoices",
        filters={"lead_id": eq(lead_id), "status": eq(InvoiceStatus.OVERDUE.value)},
    )
    return summarize_overdue([Invoice.model_validate(row) for row in rows], today)


def decide_access(delinquency: DelinquencyStatus, unit: Optional[Unit] = None) -> AccessDecision:
    """Blocked once days past due exceed the unit's grace period."""

    grace_days = DEFAULT_GRACE_DAYS
    allow_overdue = False
    if unit is not None:
        if unit.overdue_grace_days is not None:
            grace_days = unit.overdue_grace_days
        allow_overdue = bool(unit.allow_entry_if_overdue)

    blocked = delinquency.is_delinquent and delinquency.days_past_due > grace_days and not allow_overdue
    reason = None
    if blocked:
        reason = (
            f"Acesso bloqueado: {delinquency.overdue_invoices} fatura(s) em atraso "
            f"há {delinquency.days_past_due} dias (R$ {delinquency.overdue_amount:.2f})"
        )
    return AccessDecision(blocked=blocked, delinquency=delinquency, reason=reason)


async def check_access(
    client: SupabaseClient,
    lead_id: str,
    today: date,
    unit: Optional[Unit] = None,
) -> AccessDecision:
    delinquency = await lead_delinquency(client, lead_id, today)
    return decide_access(delinquency, unit)
