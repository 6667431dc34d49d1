from __future__ import annotations

from html import escape

from aiogram import Router
from aiogram.filters import Command
from aiogram.types import Message

from gymstudio.bot.handlers.common import require_manager, require_unit
from gymstudio.bot.keyboards import MessageTemplates
from gymstudio.core import local_now
from gymstudio.core.logging import configure_logging
from gymstudio.db import get_supabase_client
from gymstudio.db.models import (
    AUTOMATION_STATUS_LABELS,
    AUTOMATION_TYPE_ICONS,
    AUTOMATION_TYPE_LABELS,
    StaffProfile,
    Unit,
)
from gymstudio.db.supabase import SupabaseError
from gymstudio.services import automation_svc, financial_svc

router = Router(name="automation")
logger = configure_logging()

RECENT_LOGS = 10


@router.message(Command("automations"))
async def cmd_automations(
    message: Message,
    staff: StaffProfile | None = None,
    unit: Unit | None = None,
) -> None:
    """
    /automations - configured rules and the latest queued messages.
    """

    if not await require_unit(message, staff, unit):
        return

    client = get_supabase_client()
    try:
        rules = await automation_svc.list_rules(client, unit.id)
        logs = await automation_svc.list_logs(client, unit.id, limit=RECENT_LOGS)
    except SupabaseError as exc:
        logger.exception("Error loading automations: %s", exc)
        await message.answer(MessageTemplates.error("Erro ao carregar automações", exc.user_message))
        return

    lines = [MessageTemplates.header("Automações", "🤖"), ""]
    if not rules:
        lines.append("Nenhuma regra configurada.")
    for rule in rules:
        state = "ativa" if rule.is_active else "inativa"
        days = automation_svc.trigger_days(rule)
        suffix = f", {days} dias" if days else ""
        lines.append(
            f"{AUTOMATION_TYPE_ICONS[rule.type]} <b>{escape(rule.name)}</b> "
            f"({AUTOMATION_TYPE_LABELS[rule.type]}{suffix}) - {state}"
        )

    if logs:
        lines += ["", "<b>Últimos envios</b>"]
        for log in logs:
            name = escape(log.lead.full_name) if log.lead else escape(log.recipient)
            when = f"{log.created_at:%d/%m %H:%M} " if log.created_at else ""
            lines.append(
                MessageTemplates.item(
                    f"{when}{AUTOMATION_TYPE_ICONS[log.type]} {name} - {AUTOMATION_STATUS_LABELS[log.status]}"
                )
            )
    await message.answer("\n".join(lines))


@router.message(Command("run_automations"))
async def cmd_run_automations(
    message: Message,
    staff: StaffProfile | None = None,
    unit: Unit | None = None,
) -> None:
    """
    /run_automations - refresh overdue invoices and run the unit's rules now.
    """

    if not await require_manager(message, staff, unit):
        return

    client = get_supabase_client()
    now = local_now()
    try:
        marked = await financial_svc.mark_overdue_invoices(client, now.date(), unit.id)
        result = await automation_svc.process_automations(client, now, unit.id)
    except SupabaseError as exc:
        logger.exception("Error running automations: %s", exc)
        await message.answer(MessageTemplates.error("Erro ao processar automações", exc.user_message))
        return

    lines = [
        MessageTemplates.header("Automações processadas", "🤖"),
        "",
        MessageTemplates.stat("Faturas marcadas como vencidas", marked),
        MessageTemplates.stat("Boas-vindas", result.welcome),
        MessageTemplates.stat("Renovação", result.renewal_reminder),
        MessageTemplates.stat("Aniversário", result.birthday),
        MessageTemplates.stat("Cobrança", result.overdue),
        MessageTemplates.stat("Inatividade", result.inactivity),
        "",
        MessageTemplates.stat("Total na fila", result.total),
    ]
    if result.errors:
        lines.append(MessageTemplates.warning(f"{result.errors} regra(s) com erro, veja os logs."))
    await message.answer("\n".join(lines))
