from __future__ import annotations

from datetime import date, datetime
from html import escape

from aiogram import F, Router
from aiogram.filters import Command, CommandObject
from aiogram.types import CallbackQuery, Message

from gymstudio.bot.handlers.common import require_unit
from gymstudio.bot.keyboards import MessageTemplates
from gymstudio.core import local_now
from gymstudio.core.logging import configure_logging
from gymstudio.db import get_supabase_client
from gymstudio.db.models import (
    APPOINTMENT_STATUS_LABELS,
    APPOINTMENT_TYPE_LABELS,
    DAY_OF_WEEK_LABELS,
    AppRole,
    StaffProfile,
    Unit,
)
from gymstudio.db.supabase import SupabaseError
from gymstudio.services import scheduling_svc, staff_svc

router = Router(name="scheduling")
logger = configure_logging()


def _parse_day(raw: str | None) -> date:
    """dd/mm/yyyy, dd/mm or empty (today)."""

    today = local_now().date()
    if not raw:
        return today
    raw = raw.strip()
    for fmt in ("%d/%m/%Y", "%d/%m"):
        try:
            parsed = datetime.strptime(raw, fmt).date()
        except ValueError:
            continue
        return parsed.replace(year=today.year) if fmt == "%d/%m" else parsed
    raise ValueError(raw)


async def _send_agenda(message: Message, unit: Unit, day: date) -> None:
    client = get_supabase_client()
    try:
        appointments = await scheduling_svc.list_appointments(client, unit.id, day)
        stats = await scheduling_svc.appointment_stats(client, unit.id, local_now().date())
    except SupabaseError as exc:
        logger.exception("Error loading agenda: %s", exc)
        await message.answer(MessageTemplates.error("Erro ao carregar agenda", exc.user_message))
        return

    weekday = DAY_OF_WEEK_LABELS[scheduling_svc.day_of_week(day)]
    lines = [MessageTemplates.header(f"Agenda {day:%d/%m/%Y} ({weekday})", "📅"), ""]
    if not appointments:
        lines.append("Nenhum agendamento.")
    for appt in appointments:
        who = f" - {escape(appt.lead.full_name)}" if appt.lead else ""
        lines.append(
            f"{appt.start_time:%H:%M}-{appt.end_time:%H:%M} {escape(appt.title)}{who} "
            f"[{APPOINTMENT_TYPE_LABELS[appt.type]}, {APPOINTMENT_STATUS_LABELS[appt.status]}]"
        )
    lines += [
        "",
        MessageTemplates.stat("Hoje", stats.today_count),
        MessageTemplates.stat("Pendentes", stats.pending_count),
        MessageTemplates.stat("Concluídos", stats.completed_count),
    ]
    await message.answer("\n".join(lines))


@router.message(Command("agenda"))
async def cmd_agenda(
    message: Message,
    command: CommandObject,
    staff: StaffProfile | None = None,
    unit: Unit | None = None,
) -> None:
    if not await require_unit(message, staff, unit):
        return
    try:
        day = _parse_day(command.args)
    except ValueError:
        await message.answer("Data inválida. Use dd/mm/aaaa.")
        return
    await _send_agenda(message, unit, day)


@router.callback_query(F.data == "menu_agenda")
async def cb_agenda(callback: CallbackQuery, staff: StaffProfile | None = None, unit: Unit | None = None) -> None:
    await callback.answer()
    if await require_unit(callback.message, staff, unit):
        await _send_agenda(callback.message, unit, local_now().date())


@router.message(Command("slots"))
async def cmd_slots(
    message: Message,
    command: CommandObject,
    staff: StaffProfile | None = None,
    unit: Unit | None = None,
) -> None:
    """
    /slots [dd/mm/aaaa] - free slots per professor (a professor sees only their own).
    """

    if not await require_unit(message, staff, unit):
        return
    try:
        day = _parse_day(command.args)
    except ValueError:
        await message.answer("Data inválida. Use dd/mm/aaaa.")
        return

    client = get_supabase_client()
    if staff.role is AppRole.PROFESSOR:
        professors = [staff]
    else:
        professors = await staff_svc.list_by_role(client, unit.id, AppRole.PROFESSOR)
    if not professors:
        await message.answer("Nenhum professor cadastrado.")
        return

    lines = [MessageTemplates.header(f"Horários livres {day:%d/%m/%Y}", "🕒"), ""]
    for professor in professors:
        slots = await scheduling_svc.free_slots(client, unit.id, professor.id, day)
        labels = ", ".join(slot.label() for slot in slots) or "sem horários"
        lines.append(f"<b>{escape(professor.full_name)}</b>: {labels}")
    await message.answer("\n".join(lines))
