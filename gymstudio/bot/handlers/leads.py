from __future__ import annotations

from html import escape
from zipfile import BadZipFile

from aiogram import F, Router
from aiogram.filters import Command, CommandObject
from aiogram.fsm.context import FSMContext
from aiogram.fsm.state import State, StatesGroup
from aiogram.types import CallbackQuery, Message

from gymstudio.bot.handlers.common import lead_line, lead_list, pick_lead, require_manager, require_unit
from gymstudio.bot.keyboards import Keyboards, MessageTemplates
from gymstudio.core import local_now
from gymstudio.core.logging import configure_logging
from gymstudio.core.validation import (
    fetch_address_by_cep,
    format_cpf,
    format_phone,
    normalize_phone,
    validate_cep,
    validate_cpf,
    validate_email,
    validate_phone,
)
from gymstudio.db import get_supabase_client
from gymstudio.db.models import PIPELINE_STATUS_LABELS, PipelineStatus, StaffProfile, Unit
from gymstudio.db.supabase import SupabaseError
from gymstudio.documents.export import read_csv, read_xlsx
from gymstudio.services import lead_svc

router = Router(name="leads")
logger = configure_logging()

LIST_LIMIT = 30
SKIP = "-"


class AddLeadStates(StatesGroup):
    waiting_for_name = State()
    waiting_for_phone = State()
    waiting_for_email = State()
    waiting_for_cpf = State()
    waiting_for_cep = State()


class ImportLeadsStates(StatesGroup):
    waiting_for_file = State()


class DeleteLeadStates(StatesGroup):
    waiting_for_confirm = State()


def _parse_status(raw: str | None) -> PipelineStatus | None:
    if not raw:
        return None
    value = raw.strip().lower()
    for status, label in PIPELINE_STATUS_LABELS.items():
        if value in (status.value, label.lower()):
            return status
    raise ValueError(value)


async def _send_leads(message: Message, unit: Unit, status: PipelineStatus | None) -> None:
    try:
        leads = await lead_svc.list_leads(get_supabase_client(), unit.id, status)
    except SupabaseError as exc:
        logger.exception("Error listing leads: %s", exc)
        await message.answer(MessageTemplates.error("Erro ao carregar leads", exc.user_message))
        return

    if not leads:
        await message.answer("Nenhum lead encontrado.")
        return

    title = "Leads" if status is None else f"Leads - {PIPELINE_STATUS_LABELS[status]}"
    lines = [MessageTemplates.header(f"{title} ({len(leads)})", "👥"), ""]
    lines.append(lead_list(leads[:LIST_LIMIT], with_status=status is None))
    if len(leads) > LIST_LIMIT:
        lines.append(f"\n... e mais {len(leads) - LIST_LIMIT}. Use /search para filtrar.")
    await message.answer("\n".join(lines))


@router.message(Command("leads"))
async def cmd_leads(
    message: Message,
    command: CommandObject,
    staff: StaffProfile | None = None,
    unit: Unit | None = None,
) -> None:
    """
    /leads [status] - list leads, optionally filtered by pipeline status.
    """

    if not await require_unit(message, staff, unit):
        return
    try:
        status = _parse_status(command.args)
    except ValueError:
        options = ", ".join(s.value for s in PipelineStatus)
        await message.answer(f"Status inválido. Use um de: {options}")
        return
    await _send_leads(message, unit, status)


@router.callback_query(F.data == "menu_leads")
async def cb_leads(callback: CallbackQuery, staff: StaffProfile | None = None, unit: Unit | None = None) -> None:
    await callback.answer()
    if await require_unit(callback.message, staff, unit):
        await _send_leads(callback.message, unit, None)


@router.message(Command("search"))
async def cmd_search(
    message: Message,
    command: CommandObject,
    staff: StaffProfile | None = None,
    unit: Unit | None = None,
) -> None:
    if not await require_unit(message, staff, unit):
        return
    term = (command.args or "").strip()
    if len(term) < lead_svc.SEARCH_MIN_LENGTH:
        await message.answer("Uso: /search &lt;nome, CPF ou telefone&gt; (mínimo 2 caracteres)")
        return

    leads = await lead_svc.list_leads(get_supabase_client(), unit.id)
    matches = lead_svc.filter_leads(leads, term)
    if not matches:
        await message.answer("Nenhum resultado.")
        return
    await message.answer(MessageTemplates.header("Resultados", "🔍") + "\n\n" + lead_list(matches))


@router.message(Command("birthdays"))
async def cmd_birthdays(message: Message, staff: StaffProfile | None = None, unit: Unit | None = None) -> None:
    if not await require_unit(message, staff, unit):
        return
    today = local_now().date()
    leads = await lead_svc.birthday_leads(get_supabase_client(), unit.id, today)
    if not leads:
        await message.answer("🎂 Nenhum aniversariante este mês.")
        return

    lines = [MessageTemplates.header("Aniversariantes do mês", "🎂"), ""]
    for lead in leads:
        marker = " 🎉 hoje!" if lead.birth_date.day == today.day else ""
        lines.append(f"{lead.birth_date:%d/%m} - {escape(lead.full_name)}{marker}")
    await message.answer("\n".join(lines))


# ----------------------------------------------------------------------
# Status change
# ----------------------------------------------------------------------


@router.message(Command("lead_status"))
async def cmd_lead_status(
    message: Message,
    command: CommandObject,
    staff: StaffProfile | None = None,
    unit: Unit | None = None,
) -> None:
    if not await require_unit(message, staff, unit):
        return
    lead = await pick_lead(message, unit, command.args)
    if lead is None:
        return
    choices = [(s.value, label) for s, label in PIPELINE_STATUS_LABELS.items() if s is not lead.status]
    await message.answer(
        f"{lead_line(lead)}\n\nEscolha o novo status:",
        reply_markup=Keyboards.lead_status_choices(choices, lead.id),
    )


@router.callback_query(F.data.startswith("lead_status:"))
async def cb_lead_status(
    callback: CallbackQuery,
    staff: StaffProfile | None = None,
    unit: Unit | None = None,
) -> None:
    if not await require_unit(callback.message, staff, unit):
        await callback.answer()
        return

    _, lead_id, raw_status = callback.data.split(":", 2)
    try:
        status = PipelineStatus(raw_status)
    except ValueError:
        await callback.answer("Status inválido", show_alert=True)
        return

    try:
        lead = await lead_svc.update_lead_status(
            get_supabase_client(),
            unit.id,
            lead_id,
            status,
            user_id=staff.user_id,
        )
    except SupabaseError as exc:
        logger.exception("Error updating lead status: %s", exc)
        await callback.message.answer(MessageTemplates.error("Erro ao atualizar status", exc.user_message))
        await callback.answer()
        return

    await callback.message.edit_text(
        MessageTemplates.success(f"{escape(lead.full_name)} agora está em <b>{PIPELINE_STATUS_LABELS[lead.status]}</b>.")
    )
    await callback.answer("Status atualizado")


# ----------------------------------------------------------------------
# Delete lead
# ----------------------------------------------------------------------


@router.message(Command("lead_delete"))
async def cmd_lead_delete(
    message: Message,
    command: CommandObject,
    state: FSMContext,
    staff: StaffProfile | None = None,
    unit: Unit | None = None,
) -> None:
    """/lead_delete <lead> - remove a lead after confirmation (managers only)."""

    if not await require_manager(message, staff, unit):
        return
    lead = await pick_lead(message, unit, command.args)
    if lead is None:
        return

    await state.set_state(DeleteLeadStates.waiting_for_confirm)
    await state.update_data(lead_id=lead.id)
    await message.answer(
        f"{lead_line(lead)}\n\nExcluir este lead? O histórico de atividades é mantido.",
        reply_markup=Keyboards.confirm_button("Excluir"),
    )


@router.callback_query(DeleteLeadStates.waiting_for_confirm, F.data.in_({"confirm_yes", "confirm_no"}))
async def cb_lead_delete(
    callback: CallbackQuery,
    state: FSMContext,
    staff: StaffProfile | None = None,
    unit: Unit | None = None,
) -> None:
    data = await state.get_data()
    await state.clear()
    await callback.answer()
    if callback.data == "confirm_no":
        await callback.message.edit_text("Exclusão cancelada.")
        return
    if not await require_manager(callback.message, staff, unit):
        return

    try:
        await lead_svc.delete_lead(get_supabase_client(), unit.id, data["lead_id"], user_id=staff.user_id)
    except SupabaseError as exc:
        logger.exception("Error deleting lead: %s", exc)
        await callback.message.answer(MessageTemplates.error("Erro ao excluir lead", exc.user_message))
        return

    await callback.message.edit_text(MessageTemplates.success("Lead excluído."))


# ----------------------------------------------------------------------
# Add lead dialog
# ----------------------------------------------------------------------


@router.message(Command("lead_add"))
async def cmd_lead_add(
    message: Message,
    state: FSMContext,
    staff: StaffProfile | None = None,
    unit: Unit | None = None,
) -> None:
    if not await require_unit(message, staff, unit):
        return
    await state.set_state(AddLeadStates.waiting_for_name)
    await message.answer(
        "Vamos cadastrar um lead.\nEnvie o <b>nome completo</b>.\n\nPara cancelar, envie /cancel."
    )


@router.message(AddLeadStates.waiting_for_name, F.text)
async def add_lead_name(message: Message, state: FSMContext) -> None:
    name = message.text.strip()
    if len(name) < 2:
        await message.answer("Nome muito curto. Tente novamente.")
        return
    await state.update_data(full_name=name)
    await state.set_state(AddLeadStates.waiting_for_phone)
    await message.answer("Agora envie o <b>telefone</b> com DDD, ex.: (11) 98765-4321.")


@router.message(AddLeadStates.waiting_for_phone, F.text)
async def add_lead_phone(message: Message, state: FSMContext) -> None:
    raw = message.text.strip()
    if normalize_phone(raw) is None or not validate_phone(raw):
        await message.answer("Telefone inválido. Use DDD + número, ex.: (11) 98765-4321.")
        return
    await state.update_data(phone=format_phone(raw))
    await state.set_state(AddLeadStates.waiting_for_email)
    await message.answer(f"Envie o <b>e-mail</b> ou <code>{SKIP}</code> para pular.")


@router.message(AddLeadStates.waiting_for_email, F.text)
async def add_lead_email(message: Message, state: FSMContext) -> None:
    email = message.text.strip().lower()
    if email != SKIP:
        if not validate_email(email):
            await message.answer("E-mail inválido. Tente novamente ou envie - para pular.")
            return
        await state.update_data(email=email)
    await state.set_state(AddLeadStates.waiting_for_cpf)
    await message.answer(f"Envie o <b>CPF</b> ou <code>{SKIP}</code> para pular.")


@router.message(AddLeadStates.waiting_for_cpf, F.text)
async def add_lead_cpf(message: Message, state: FSMContext) -> None:
    cpf = message.text.strip()
    if cpf != SKIP:
        if not validate_cpf(cpf):
            await message.answer("CPF inválido. Confira os dígitos ou envie - para pular.")
            return
        await state.update_data(cpf=format_cpf(cpf))
    await state.set_state(AddLeadStates.waiting_for_cep)
    await message.answer(f"Envie o <b>CEP</b> para preencher o endereço ou <code>{SKIP}</code> para pular.")


@router.message(AddLeadStates.waiting_for_cep, F.text)
async def add_lead_cep(
    message: Message,
    state: FSMContext,
    staff: StaffProfile | None = None,
    unit: Unit | None = None,
) -> None:
    if staff is None or unit is None:
        await state.clear()
        await message.answer(MessageTemplates.NOT_LINKED)
        return

    cep = message.text.strip()
    if cep != SKIP:
        if not validate_cep(cep):
            await message.answer("CEP inválido. Envie 8 dígitos ou - para pular.")
            return
        address = await fetch_address_by_cep(cep)
        if address is None:
            await message.answer(MessageTemplates.warning("CEP não encontrado, o endereço ficará em branco."))
        else:
            await state.update_data(address=address.one_line())

    data = await state.get_data()
    await state.clear()
    try:
        lead = await lead_svc.create_lead(
            get_supabase_client(),
            unit.id,
            lead_svc.LeadInput(**data),
            user_id=staff.user_id,
        )
    except SupabaseError as exc:
        logger.exception("Error creating lead: %s", exc)
        await message.answer(MessageTemplates.error("Erro ao cadastrar lead", exc.user_message))
        return

    lines = [MessageTemplates.success("Lead cadastrado!"), "", lead_line(lead)]
    if lead.email:
        lines.append(f"E-mail: {escape(lead.email)}")
    if lead.address:
        lines.append(f"Endereço: {escape(lead.address)}")
    await message.answer("\n".join(lines))


# ----------------------------------------------------------------------
# Spreadsheet import
# ----------------------------------------------------------------------


@router.message(Command("import_leads"))
async def cmd_import_leads(
    message: Message,
    state: FSMContext,
    staff: StaffProfile | None = None,
    unit: Unit | None = None,
) -> None:
    if not await require_unit(message, staff, unit):
        return
    await state.set_state(ImportLeadsStates.waiting_for_file)
    await message.answer(
        "Envie a planilha (<b>.csv</b> ou <b>.xlsx</b>) com cabeçalho na primeira linha.\n"
        "Colunas reconhecidas: Nome, Telefone, E-mail, CPF, Nascimento, Gênero, Endereço, Origem, Observações."
    )


@router.message(ImportLeadsStates.waiting_for_file, F.document)
async def import_leads_file(
    message: Message,
    state: FSMContext,
    staff: StaffProfile | None = None,
    unit: Unit | None = None,
) -> None:
    if staff is None or unit is None:
        await state.clear()
        await message.answer(MessageTemplates.NOT_LINKED)
        return

    filename = (message.document.file_name or "").lower()
    if not filename.endswith((".csv", ".xlsx")):
        await message.answer("Formato não suportado. Envie um arquivo .csv ou .xlsx.")
        return

    await state.clear()
    buf = await message.bot.download(message.document)
    content = buf.read()
    try:
        rows = read_xlsx(content) if filename.endswith(".xlsx") else read_csv(content)
    except (ValueError, KeyError, OSError, BadZipFile) as exc:
        logger.warning("Unreadable import file %s: %s", filename, exc)
        await message.answer(MessageTemplates.error("Não foi possível ler a planilha"))
        return

    if not rows:
        await message.answer("A planilha está vazia.")
        return

    result = await lead_svc.import_leads(get_supabase_client(), unit.id, rows)
    lines = [MessageTemplates.success(f"{result.success} lead(s) importado(s).")]
    if result.errors:
        lines.append(f"\n⚠️ {len(result.errors)} linha(s) com erro:")
        lines += [f"  Linha {e.row}: {escape(e.message)}" for e in result.errors[:20]]
    await message.answer("\n".join(lines))
