from __future__ import annotations

from html import escape

from aiogram import F, Router
from aiogram.filters import Command, CommandStart
from aiogram.fsm.context import FSMContext
from aiogram.fsm.state import State, StatesGroup
from aiogram.types import CallbackQuery, Message

from gymstudio.bot.keyboards import Keyboards, MessageTemplates
from gymstudio.core import get_settings
from gymstudio.core.logging import configure_logging
from gymstudio.core.validation import validate_email
from gymstudio.db import get_supabase_client
from gymstudio.db.models import ROLE_LABELS, StaffProfile, Unit
from gymstudio.db.supabase import SupabaseError
from gymstudio.services import staff_svc

router = Router(name="start")
logger = configure_logging()


class LinkAccountStates(StatesGroup):
    waiting_for_email = State()
    waiting_for_password = State()


HELP_TEXT = """
<b>📋 Comandos disponíveis</b>

<b>👥 Leads</b>
/leads [status] - lista de leads
/lead_add - cadastrar lead
/lead_status &lt;busca&gt; - alterar status
/lead_delete &lt;busca&gt; - excluir lead (gestor)
/search &lt;nome, CPF ou telefone&gt; - buscar aluno
/birthdays - aniversariantes do mês

<b>🗂️ Relacionamento</b>
/history &lt;busca&gt; - histórico de contatos
/contact &lt;tipo&gt; &lt;busca&gt; | &lt;descrição&gt; - registrar contato
/tasks - tarefas pendentes
/task_add &lt;título&gt; [| dd/mm/aaaa] - nova tarefa
/goals - metas da unidade
/goal_add &lt;tipo&gt; &lt;alvo&gt; &lt;nome&gt; - nova meta (gestor)

<b>✅ Acesso</b>
/checkin &lt;busca ou QR&gt; - registrar entrada
/checkins_today - entradas de hoje
/qr &lt;busca&gt; - QR code de acesso do aluno

<b>💰 Financeiro</b>
/plans - planos ativos
/invoices [status] - faturas
/overdue - faturas em atraso
/pay - registrar pagamento

<b>📅 Agenda e treinos</b>
/agenda [dd/mm/aaaa] - agendamentos do dia
/slots [dd/mm/aaaa] - horários livres
/workouts &lt;busca&gt; - treinos do aluno
/bodyfat - calculadora de gordura corporal

<b>💬 Chat</b>
/chats - conversas
/reply - responder conversa

<b>⚙️ Gestão</b>
/automations - regras de automação
/run_automations - executar automações agora
/dashboard - indicadores
/activity - atividades recentes
/export_leads - exportar leads
/export_invoices - exportar faturas
/contract &lt;busca&gt; - gerar contrato PDF

/cancel - cancelar a operação atual
""".strip()


def _welcome(staff: StaffProfile, unit: Unit | None, *, first_time: bool) -> str:
    lines = [
        "👋 Conta vinculada com sucesso!" if first_time else "👋 Bem-vindo de volta!",
        "",
        f"Usuário: <b>{escape(staff.full_name)}</b>",
    ]
    if staff.role:
        lines.append(f"Perfil: <b>{ROLE_LABELS[staff.role]}</b>")
    if unit:
        lines.append(f"Unidade: <b>{escape(unit.name)}</b>")
    lines += ["", "Escolha uma opção abaixo ou use /help."]
    return "\n".join(lines)


@router.message(CommandStart())
async def cmd_start(
    message: Message,
    state: FSMContext,
    staff: StaffProfile | None = None,
    unit: Unit | None = None,
) -> None:
    """
    /start for staff.

    Already linked accounts get a summary; otherwise the dialog asks for
    the e-mail and password of the staff account.
    """

    if staff is not None:
        await state.clear()
        text = _welcome(staff, unit, first_time=False)
        if get_settings().is_debug:
            text += f"\n\nModo: <b>DEBUG</b> | profile_id={staff.id} | unit_id={staff.unit_id}"
        await message.answer(text, reply_markup=Keyboards.main_menu())
        return

    await state.set_state(LinkAccountStates.waiting_for_email)
    await message.answer(
        "👋 Olá! Este bot é para a equipe da academia.\n\n"
        "Envie o <b>e-mail</b> da sua conta para vincular este Telegram.\n"
        "Para cancelar, envie /cancel."
    )


@router.message(Command("cancel"))
async def cmd_cancel(message: Message, state: FSMContext) -> None:
    if await state.get_state() is None:
        await message.answer("Nenhuma operação em andamento.")
        return
    await state.clear()
    await message.answer("Operação cancelada.")


@router.message(LinkAccountStates.waiting_for_email, F.text)
async def link_email(message: Message, state: FSMContext) -> None:
    email = message.text.strip().lower()
    if not validate_email(email):
        await message.answer("E-mail inválido. Tente novamente.")
        return
    await state.update_data(email=email)
    await state.set_state(LinkAccountStates.waiting_for_password)
    await message.answer("Agora envie a <b>senha</b>. A mensagem será apagada em seguida.")


@router.message(LinkAccountStates.waiting_for_password, F.text)
async def link_password(message: Message, state: FSMContext) -> None:
    data = await state.get_data()
    password = message.text
    try:
        await message.delete()
    except Exception as exc:  # noqa: BLE001
        logger.debug("Could not delete password message: %s", exc)

    try:
        staff, unit = await staff_svc.authenticate_staff(
            get_supabase_client(),
            data["email"],
            password,
            message.from_user.id,
        )
    except SupabaseError as exc:
        logger.warning("Account link failed for %s: %s", data.get("email"), exc)
        await state.clear()
        await message.answer(MessageTemplates.error("Não foi possível vincular a conta", exc.user_message))
        return

    await state.clear()
    await message.answer(_welcome(staff, unit, first_time=True), reply_markup=Keyboards.main_menu())


@router.message(Command("menu"))
async def cmd_menu(message: Message) -> None:
    await message.answer(
        "🏋️ <b>Menu principal</b>\n\nEscolha o que deseja fazer:",
        reply_markup=Keyboards.main_menu(),
    )


@router.message(Command("help"))
async def cmd_help(message: Message) -> None:
    await message.answer(HELP_TEXT)


@router.callback_query(F.data == "menu_help")
async def cb_help(callback: CallbackQuery) -> None:
    await callback.message.answer(HELP_TEXT)
    await callback.answer()
