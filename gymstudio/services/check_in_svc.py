"""Check-ins: listing, stats and the access-controlled entry flow."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel

from gymstudio.core.validation import unmask
from gymstudio.db.models import CheckIn, Lead, PipelineStatus, Unit
from gymstudio.db.supabase import SupabaseClient, eq, gte
from gymstudio.documents.qr import parse_access_payload
from gymstudio.services import activity_svc, delinquency_svc, financial_svc, lead_svc

logger = logging.getLogger(__name__)


DEFAULT_METHOD = "qr_code"
TODAY_COLUMNS = "*, lead:leads(id, full_name, phone)"


class CheckInStats(BaseModel):
    this_month: int
    last_check_in: Optional[datetime] = None


class CheckInOutcome(BaseModel):
    allowed: bool
    lead: Optional[Lead] = None
    check_in: Optional[CheckIn] = None
    reason: Optional[str] = None


def _start_of_day(now: datetime) -> datetime:
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


async def list_check_ins(
    client: SupabaseClient,
    unit_id: str,
    lead_id: Optional[str] = None,
    limit: int = 30,
) -> list[CheckIn]:
    filters: dict[str, Any] = {"unit_id": eq(unit_id)}
    if lead_id:
        filters["lead_id"] = eq(lead_id)
    rows = await client.select("check_ins", filters=filters, order="checked_in_at.desc", limit=limit)
    return [CheckIn.model_validate(row) for row in rows]


async def create_check_in(
    client: SupabaseClient,
    unit_id: str,
    lead_id: str,
    method: str = DEFAULT_METHOD,
    *,
    access_status: str = "granted",
    denial_reason: Optional[str] = None,
    user_id: Optional[str] = None,
) -> CheckIn:
    check_in = CheckIn.model_validate(
        await client.insert_one(
            "check_ins",
            {
                "unit_id": unit_id,
                "lead_id": lead_id,
                "method": method or DEFAULT_METHOD,
                "access_status": access_status,
                "denial_reason": denial_reason,
            },
        )
    )
    if access_status == "granted":
        await activity_svc.log_activity(
            client,
            unit_id,
            "check_in",
            "create",
            f"Check-in registrado via {method or DEFAULT_METHOD}",
            entity_id=check_in.id,
            metadata={"lead_id": lead_id, "method": method},
            user_id=user_id,
        )
    return check_in


async def check_in_stats(client: SupabaseClient, lead_id: str, now: datetime) -> CheckInStats:
    start_of_month = _start_of_day(now).replace(day=1)
    rows = await client.select(
        "check_ins",
        filters={"lead_id": eq(lead_id), "checked_in_at": gte(start_of_month.isoformat())},
        columns="id, checked_in_at",
        order="checked_in_at.desc",
    )
    return CheckInStats(
        this_month=len(rows),
        last_check_in=rows[0]["checked_in_at"] if rows else None,
    )


async def today_check_ins(client: SupabaseClient, unit_id: str, now: datetime) -> list[CheckIn]:
    rows = await client.select(
        "check_ins",
        filters={"unit_id": eq(unit_id), "checked_in_at": gte(_start_of_day(now).isoformat())},
        columns=TODAY_COLUMNS,
        order="checked_in_at.desc",
    )
    return [CheckIn.model_validate(row) for row in rows]


async def _resolve_lead(client: SupabaseClient, unit_id: str, code: str) -> Lead | None:
    """Find the lead behind a scanned code: JSON access payload, lead id or CPF."""

    payload = parse_access_payload(code)
    if payload is not None:
        return await lead_svc.get_lead(client, unit_id, payload.lead_id)

    code = code.strip()
    if not code:
        return None
    digits = unmask(code)
    for lead in await lead_svc.list_leads(client, unit_id, PipelineStatus.ATIVO):
        if lead.id == code:
            return lead
        if len(digits) == 11 and lead.cpf and unmask(lead.cpf) == digits:
            return lead
    return None


async def verify_access(
    client: SupabaseClient,
    lead: Lead,
    now: datetime,
    unit: Optional[Unit] = None,
) -> str | None:
    """Return the reason entry is denied, or None when the lead may enter."""

    if lead.status is not PipelineStatus.ATIVO:
        return "Aluno não está ativo"

    today = now.date()
    summary = await financial_svc.subscription_status_for_lead(client, lead.unit_id, lead.id, today)
    if summary.block_reason:
        return summary.block_reason

    decision = await delinquency_svc.check_access(client, lead.id, today, unit)
    if decision.blocked:
        return decision.reason
    return None


async def check_in_lead(
    client: SupabaseClient,
    lead: Lead,
    now: datetime,
    *,
    method: str = "manual",
    unit: Optional[Unit] = None,
    user_id: Optional[str] = None,
) -> CheckInOutcome:
    reason = await verify_access(client, lead, now, unit)
    if reason is not None:
        logger.info("Check-in denied for lead %s: %s", lead.id, reason)
        await create_check_in(
            client,
            lead.unit_id,
            lead.id,
            method,
            access_status="denied",
            denial_reason=reason,
        )
        return CheckInOutcome(allowed=False, lead=lead, reason=reason)

    check_in = await create_check_in(client, lead.unit_id, lead.id, method, user_id=user_id)
    return CheckInOutcome(allowed=True, lead=lead, check_in=check_in)


async def check_in_with_qr(
    client: SupabaseClient,
    unit_id: str,
    code: str,
    now: datetime,
    *,
    unit: Optional[Unit] = None,
    user_id: Optional[str] = None,
) -> CheckInOutcome:
    lead = await _resolve_lead(client, unit_id, code)
    if lead is None or lead.unit_id != unit_id:
        return CheckInOutcome(allowed=False, reason="Aluno não encontrado")
    return await check_in_lead(client, lead, now, method=DEFAULT_METHOD, unit=unit, user_id=user_id)
