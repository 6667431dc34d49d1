"""
Automation rules and the daily processing run.

Processing only queues messages: each match becomes an `automation_logs`
row with status `pending`, to be delivered by an external sender.
"""

from __future__ import annotations

import logging
import re
from datetime import date, datetime, timedelta
from typing import Any, Mapping, Optional

from pydantic import BaseModel, TypeAdapter

from gymstudio.db.models import (
    AutomationLog,
    AutomationRule,
    AutomationStatus,
    AutomationType,
    InvoiceStatus,
    Lead,
    SubscriptionStatus,
)
from gymstudio.db.supabase import SupabaseClient, SupabaseError, eq, gte, lte, not_is

logger = logging.getLogger(__name__)


DEFAULT_TRIGGER_DAYS: dict[AutomationType, int] = {
    AutomationType.RENEWAL_REMINDER: 30,
    AutomationType.OVERDUE: 3,
    AutomationType.INACTIVITY: 7,
}

OVERDUE_RESEND_DAYS = 3
INACTIVITY_RESEND_DAYS = 7

_DATETIME = TypeAdapter(datetime)


class AutomationRunResult(BaseModel):
    welcome: int = 0
    renewal_reminder: int = 0
    birthday: int = 0
    overdue: int = 0
    inactivity: int = 0
    errors: int = 0

    @property
    def total(self) -> int:
        return self.welcome + self.renewal_reminder + self.birthday + self.overdue + self.inactivity


def _as_datetime(value: Any, reference: datetime) -> datetime:
    parsed = _DATETIME.validate_python(value)
    if parsed.tzinfo is None and reference.tzinfo is not None:
        return parsed.replace(tzinfo=reference.tzinfo)
    if parsed.tzinfo is not None and reference.tzinfo is None:
        return parsed.astimezone().replace(tzinfo=None)
    return parsed


def trigger_days(rule: AutomationRule) -> int:
    return rule.trigger_days or DEFAULT_TRIGGER_DAYS.get(rule.type, 0)


def render_template(template: str, lead: Lead, extra: Optional[Mapping[str, Any]] = None) -> str:
    """Fill `{{nome}}`-style placeholders (case-insensitive) from the lead and extras."""

    values: dict[str, str] = {
        "nome": lead.full_name,
        "name": lead.full_name,
        "email": lead.email or "",
        "telefone": lead.phone,
        "phone": lead.phone,
    }
    result = template
    for key, value in values.items():
        result = re.sub(r"\{\{" + key + r"\}\}", lambda _m, v=value: v, result, flags=re.IGNORECASE)
    for key, value in (extra or {}).items():
        result = re.sub(
            r"\{\{" + re.escape(key) + r"\}\}",
            lambda _m, v=str(value): v,
            result,
            flags=re.IGNORECASE,
        )
    return result


# ----------------------------------------------------------------------
# Rules and logs
# ----------------------------------------------------------------------


async def list_rules(client: SupabaseClient, unit_id: str) -> list[AutomationRule]:
    rows = await client.select("automation_rules", filters={"unit_id": eq(unit_id)}, order="type.asc")
    return [AutomationRule.model_validate(row) for row in rows]


async def create_rule(
    client: SupabaseClient,
    unit_id: str,
    *,
    name: str,
    type: AutomationType,
    subject: str,
    message_template: str,
    trigger_days: Optional[int] = None,
    channel: str = "email",
) -> AutomationRule:
    row = await client.insert_one(
        "automation_rules",
        {
            "unit_id": unit_id,
            "name": name,
            "type": AutomationType(type).value,
            "subject": subject,
            "message_template": message_template,
            "trigger_days": trigger_days,
            "channel": channel,
            "is_active": True,
        },
    )
    return AutomationRule.model_validate(row)


async def update_rule(client: SupabaseClient, rule_id: str, changes: dict[str, Any]) -> AutomationRule:
    return AutomationRule.model_validate(await client.update_one("automation_rules", rule_id, changes))


async def delete_rule(client: SupabaseClient, rule_id: str) -> None:
    await client.delete("automation_rules", {"id": eq(rule_id)})


async def list_logs(client: SupabaseClient, unit_id: str, limit: int = 50) -> list[AutomationLog]:
    rows = await client.select(
        "automation_logs",
        filters={"unit_id": eq(unit_id)},
        columns="*, lead:leads(full_name, email)",
        order="created_at.desc",
        limit=limit,
    )
    return [AutomationLog.model_validate(row) for row in rows]


async def simulate_automation(
    client: SupabaseClient,
    rule: AutomationRule,
    lead: Lead,
    now: datetime,
) -> AutomationLog:
    """Record a manual send as already delivered."""

    row = await client.insert_one(
        "automation_logs",
        {
            "unit_id": rule.unit_id,
            "rule_id": rule.id,
            "lead_id": lead.id,
            "type": rule.type.value,
            "channel": rule.channel or "email",
            "recipient": lead.email or lead.phone,
            "subject": render_template(rule.subject, lead),
            "message": render_template(rule.message_template, lead),
            "status": AutomationStatus.SENT.value,
            "sent_at": now.isoformat(),
        },
    )
    return AutomationLog.model_validate(row)


# ----------------------------------------------------------------------
# Processing
# ----------------------------------------------------------------------


async def _has_log(client: SupabaseClient, filters: dict[str, Any]) -> bool:
    return await client.select_one("automation_logs", filters=filters, columns="id") is not None


async def _queue(
    client: SupabaseClient,
    rule: AutomationRule,
    lead: Lead,
    extra: Optional[Mapping[str, Any]] = None,
) -> bool:
    try:
        await client.insert(
            "automation_logs",
            {
                "unit_id": rule.unit_id,
                "rule_id": rule.id,
                "lead_id": lead.id,
                "type": rule.type.value,
                "subject": render_template(rule.subject, lead),
                "message": render_template(rule.message_template, lead, extra),
                "recipient": lead.email or lead.phone,
                "channel": rule.channel,
                "status": AutomationStatus.PENDING.value,
            },
        )
    except SupabaseError as exc:
        logger.warning("Failed to queue %s for lead %s: %s", rule.type.value, lead.id, exc)
        return False
    logger.info("%s queued for lead %s", rule.type.value, lead.full_name)
    return True


async def process_welcome(client: SupabaseClient, rule: AutomationRule, now: datetime) -> int:
    """Leads created in the last 24h that never got a welcome message."""

    rows = await client.select(
        "leads",
        filters={"unit_id": eq(rule.unit_id), "created_at": gte((now - timedelta(days=1)).isoformat())},
    )
    count = 0
    for lead in (Lead.model_validate(row) for row in rows):
        if await _has_log(client, {"lead_id": eq(lead.id), "type": eq(AutomationType.WELCOME.value)}):
            continue
        if await _queue(client, rule, lead):
            count += 1
    return count


async def process_renewal_reminder(client: SupabaseClient, rule: AutomationRule, now: datetime) -> int:
    """Active subscriptions ending exactly `trigger_days` from today."""

    target = now.date() + timedelta(days=trigger_days(rule))
    rows = await client.select(
        "subscriptions",
        filters={
            "unit_id": eq(rule.unit_id),
            "status": eq(SubscriptionStatus.ACTIVE.value),
            "end_date": eq(target.isoformat()),
        },
        columns="*, lead:leads(*)",
    )
    since = (now - timedelta(days=1)).isoformat()
    count = 0
    for row in rows:
        if not row.get("lead"):
            continue
        lead = Lead.model_validate(row["lead"])
        if await _has_log(client, {"lead_id": eq(lead.id), "rule_id": eq(rule.id), "created_at": gte(since)}):
            continue
        if await _queue(client, rule, lead, {"end_date": row["end_date"]}):
            count += 1
    return count


async def process_birthday(client: SupabaseClient, rule: AutomationRule, now: datetime) -> int:
    """Leads whose birth month and day are today; at most one message per day."""

    today = now.date()
    rows = await client.select(
        "leads",
        filters={"unit_id": eq(rule.unit_id), "birth_date": not_is(None)},
    )
    start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0).isoformat()
    count = 0
    for lead in (Lead.model_validate(row) for row in rows):
        birth: date | None = lead.birth_date
        if birth is None or (birth.month, birth.day) != (today.month, today.day):
            continue
        if await _has_log(
            client,
            {"lead_id": eq(lead.id), "type": eq(AutomationType.BIRTHDAY.value), "created_at": gte(start_of_day)},
        ):
            continue
        if await _queue(client, rule, lead):
            count += 1
    return count


async def process_overdue(client: SupabaseClient, rule: AutomationRule, now: datetime) -> int:
    """Overdue invoices at least `trigger_days` past due; resent every 3 days at most."""

    cutoff = now.date() - timedelta(days=trigger_days(rule))
    rows = await client.select(
        "invoices",
        filters={
            "unit_id": eq(rule.unit_id),
            "status": eq(InvoiceStatus.OVERDUE.value),
            "due_date": lte(cutoff.isoformat()),
        },
        columns="*, lead:leads(*)",
    )
    since = (now - timedelta(days=OVERDUE_RESEND_DAYS)).isoformat()
    count = 0
    for row in rows:
        if not row.get("lead"):
            continue
        lead = Lead.model_validate(row["lead"])
        if await _has_log(
            client,
            {
                "lead_id": eq(lead.id),
                "type": eq(AutomationType.OVERDUE.value),
                "rule_id": eq(rule.id),
                "created_at": gte(since),
            },
        ):
            continue
        if await _queue(client, rule, lead, {"amount": row["amount"], "due_date": row["due_date"]}):
            count += 1
    return count


async def process_inactivity(client: SupabaseClient, rule: AutomationRule, now: datetime) -> int:
    """Leads with an active subscription and no check-in within `trigger_days`."""

    inactive_days = trigger_days(rule)
    cutoff = now - timedelta(days=inactive_days)
    rows = await client.select(
        "leads",
        filters={"unit_id": eq(rule.unit_id), "subscriptions.status": eq(SubscriptionStatus.ACTIVE.value)},
        columns="*, subscriptions!inner(status)",
    )
    since = (now - timedelta(days=INACTIVITY_RESEND_DAYS)).isoformat()
    count = 0
    for lead in (Lead.model_validate(row) for row in rows):
        last = await client.select_one(
            "check_ins",
            filters={"lead_id": eq(lead.id)},
            columns="checked_in_at",
            order="checked_in_at.desc",
        )
        if last and _as_datetime(last["checked_in_at"], cutoff) > cutoff:
            continue
        if await _has_log(
            client,
            {"lead_id": eq(lead.id), "type": eq(AutomationType.INACTIVITY.value), "created_at": gte(since)},
        ):
            continue
        if await _queue(client, rule, lead, {"inactive_days": inactive_days}):
            count += 1
    return count


_PROCESSORS = {
    AutomationType.WELCOME: process_welcome,
    AutomationType.RENEWAL_REMINDER: process_renewal_reminder,
    AutomationType.BIRTHDAY: process_birthday,
    AutomationType.OVERDUE: process_overdue,
    AutomationType.INACTIVITY: process_inactivity,
}


async def process_automations(
    client: SupabaseClient,
    now: datetime,
    unit_id: Optional[str] = None,
) -> AutomationRunResult:
    """
    Run every active rule once.

    A failing rule is logged and counted in `errors`; remaining rules
    still run. Failing to load the rules at all propagates.
    """

    filters: dict[str, Any] = {"is_active": eq(True)}
    if unit_id:
        filters["unit_id"] = eq(unit_id)
    rules = [AutomationRule.model_validate(row) for row in await client.select("automation_rules", filters=filters)]
    logger.info("Processing %s active automation rule(s)", len(rules))

    result = AutomationRunResult()
    for rule in rules:
        try:
            queued = await _PROCESSORS[rule.type](client, rule, now)
        except Exception:  # noqa: BLE001
            logger.exception("Error processing automation rule %s (%s)", rule.id, rule.type.value)
            result.errors += 1
            continue
        setattr(result, rule.type.value, getattr(result, rule.type.value) + queued)

    logger.info("Automation processing completed: %s", result.model_dump())
    return result
