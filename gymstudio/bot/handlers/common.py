"""Helpers shared by the command handlers."""

from __future__ import annotations

from html import escape
from typing import Sequence

from aiogram.types import Message

from gymstudio.bot.keyboards import MessageTemplates
from gymstudio.db import get_supabase_client
from gymstudio.db.models import PIPELINE_STATUS_LABELS, Lead, StaffProfile, Unit
from gymstudio.services import lead_svc


async def require_unit(message: Message, staff: StaffProfile | None, unit: Unit | None) -> bool:
    if staff is None or unit is None:
        await message.answer(MessageTemplates.NOT_LINKED)
        return False
    return True


async def require_manager(message: Message, staff: StaffProfile | None, unit: Unit | None) -> bool:
    if not await require_unit(message, staff, unit):
        return False
    if not staff.is_manager:
        await message.answer("⛔ Apenas gestores podem usar este comando.")
        return False
    return True


def lead_line(lead: Lead, *, with_status: bool = True) -> str:
    line = f"<b>{escape(lead.full_name)}</b> - {escape(lead.phone)}"
    if with_status:
        line += f" ({PIPELINE_STATUS_LABELS[lead.status]})"
    return line


def lead_list(leads: Sequence[Lead], *, with_status: bool = True) -> str:
    return "\n".join(f"{idx}. {lead_line(lead, with_status=with_status)}" for idx, lead in enumerate(leads, start=1))


async def pick_lead(message: Message, unit: Unit, term: str | None, *, active_only: bool = False) -> Lead | None:
    """
    Resolve a single lead from a search term.

    Answers the user and returns None when nothing or more than one
    lead matches.
    """

    term = (term or "").strip()
    if len(term) < lead_svc.SEARCH_MIN_LENGTH:
        await message.answer("Informe ao menos 2 caracteres do nome, CPF ou telefone.")
        return None

    client = get_supabase_client()
    if active_only:
        matches = await lead_svc.search_leads(client, unit.id, term)
    else:
        matches = lead_svc.filter_leads(await lead_svc.list_leads(client, unit.id), term)

    if not matches:
        await message.answer("Nenhum aluno encontrado.")
        return None
    exact = [lead for lead in matches if lead.full_name.lower() == term.lower()]
    if len(matches) > 1 and len(exact) != 1:
        await message.answer(
            "Encontrei mais de um resultado, refine a busca:\n\n" + lead_list(matches)
        )
        return None
    return exact[0] if exact else matches[0]
