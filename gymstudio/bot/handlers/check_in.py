from __future__ import annotations

from html import escape

from aiogram import F, Router
from aiogram.filters import Command, CommandObject
from aiogram.types import CallbackQuery, Message

from gymstudio.bot.handlers.common import pick_lead, require_unit
from gymstudio.bot.keyboards import MessageTemplates
from gymstudio.core import local_now, to_local
from gymstudio.core.logging import configure_logging
from gymstudio.db import get_supabase_client
from gymstudio.db.models import StaffProfile, Unit
from gymstudio.db.supabase import SupabaseError
from gymstudio.documents.qr import ACCESS_TYPE, parse_access_payload
from gymstudio.services import check_in_svc
from gymstudio.services.check_in_svc import CheckInOutcome

router = Router(name="check_in")
logger = configure_logging()


def _outcome_text(outcome: CheckInOutcome) -> str:
    name = escape(outcome.lead.full_name) if outcome.lead else "Aluno"
    if outcome.allowed:
        at = to_local(outcome.check_in.checked_in_at) if outcome.check_in else local_now()
        return f"✅ <b>Acesso liberado</b>\n{name} - {at:%H:%M}"
    return f"⛔ <b>Acesso negado</b>\n{name}\n{escape(outcome.reason or '')}"


@router.message(Command("checkin"))
async def cmd_checkin(
    message: Message,
    command: CommandObject,
    staff: StaffProfile | None = None,
    unit: Unit | None = None,
) -> None:
    """
    /checkin <name, CPF, phone or QR payload> - register an entry.
    """

    if not await require_unit(message, staff, unit):
        return

    args = (command.args or "").strip()
    client = get_supabase_client()
    now = local_now()
    try:
        if parse_access_payload(args) is not None:
            outcome = await check_in_svc.check_in_with_qr(client, unit.id, args, now, unit=unit, user_id=staff.user_id)
        else:
            lead = await pick_lead(message, unit, args, active_only=True)
            if lead is None:
                return
            outcome = await check_in_svc.check_in_lead(
                client, lead, now, method="manual", unit=unit, user_id=staff.user_id
            )
    except SupabaseError as exc:
        logger.exception("Error registering check-in: %s", exc)
        await message.answer(MessageTemplates.error("Erro ao registrar check-in", exc.user_message))
        return

    await message.answer(_outcome_text(outcome))


@router.message(F.text.contains(ACCESS_TYPE))
async def scanned_payload(message: Message, staff: StaffProfile | None = None, unit: Unit | None = None) -> None:
    """Text pasted from a QR scanner."""

    if parse_access_payload(message.text) is None:
        return
    if not await require_unit(message, staff, unit):
        return
    try:
        outcome = await check_in_svc.check_in_with_qr(
            get_supabase_client(), unit.id, message.text, local_now(), unit=unit, user_id=staff.user_id
        )
    except SupabaseError as exc:
        logger.exception("Error registering QR check-in: %s", exc)
        await message.answer(MessageTemplates.error("Erro ao registrar check-in", exc.user_message))
        return
    await message.answer(_outcome_text(outcome))


async def _send_today(message: Message, unit: Unit) -> None:
    try:
        check_ins = await check_in_svc.today_check_ins(get_supabase_client(), unit.id, local_now())
    except SupabaseError as exc:
        logger.exception("Error loading check-ins: %s", exc)
        await message.answer(MessageTemplates.error("Erro ao carregar check-ins", exc.user_message))
        return

    granted = [c for c in check_ins if c.access_status != "denied"]
    denied = len(check_ins) - len(granted)
    lines = [MessageTemplates.header(f"Check-ins de hoje ({len(granted)})", "✅"), ""]
    for check_in in granted:
        name = escape(check_in.lead.full_name) if check_in.lead else check_in.lead_id
        lines.append(f"{to_local(check_in.checked_in_at):%H:%M} - {name}")
    if not granted:
        lines.append("Nenhuma entrada registrada.")
    if denied:
        lines.append(f"\n⛔ {denied} tentativa(s) negada(s)")
    await message.answer("\n".join(lines))


@router.message(Command("checkins_today"))
async def cmd_checkins_today(message: Message, staff: StaffProfile | None = None, unit: Unit | None = None) -> None:
    if await require_unit(message, staff, unit):
        await _send_today(message, unit)


@router.callback_query(F.data == "menu_checkins")
async def cb_checkins(callback: CallbackQuery, staff: StaffProfile | None = None, unit: Unit | None = None) -> None:
    await callback.answer()
    if await require_unit(callback.message, staff, unit):
        await _send_today(callback.message, unit)
