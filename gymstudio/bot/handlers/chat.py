from __future__ import annotations

from html import escape

from aiogram import F, Router
from aiogram.filters import Command, CommandObject
from aiogram.fsm.context import FSMContext
from aiogram.fsm.state import State, StatesGroup
from aiogram.types import Message

from gymstudio.bot.handlers.common import require_unit
from gymstudio.bot.keyboards import MessageTemplates
from gymstudio.core import local_now, to_local
from gymstudio.core.logging import configure_logging
from gymstudio.db import get_supabase_client
from gymstudio.db.models import AppRole, ChatRoom, SenderType, StaffProfile, Unit
from gymstudio.db.supabase import SupabaseError
from gymstudio.services import chat_svc

router = Router(name="chat")
logger = configure_logging()

HISTORY_LIMIT = 10


class ReplyStates(StatesGroup):
    waiting_for_text = State()


def _room_title(room: ChatRoom) -> str:
    lead = room.lead.full_name if room.lead else "Aluno"
    if room.professor and room.professor.full_name:
        return f"{lead} / {room.professor.full_name}"
    return lead


async def _rooms_for(staff: StaffProfile, unit: Unit) -> list[ChatRoom]:
    return await chat_svc.list_rooms(
        get_supabase_client(),
        unit.id,
        staff.id,
        professor_only=staff.role is AppRole.PROFESSOR,
    )


@router.message(Command("chats"))
async def cmd_chats(
    message: Message,
    staff: StaffProfile | None = None,
    unit: Unit | None = None,
) -> None:
    """
    /chats - chat rooms ordered by last activity with unread counts.
    """

    if not await require_unit(message, staff, unit):
        return

    try:
        rooms = await _rooms_for(staff, unit)
    except SupabaseError as exc:
        logger.exception("Error loading chat rooms: %s", exc)
        await message.answer(MessageTemplates.error("Erro ao carregar conversas", exc.user_message))
        return

    if not rooms:
        await message.answer("Nenhuma conversa ainda.")
        return

    lines = [MessageTemplates.header("Conversas", "💬"), ""]
    for idx, room in enumerate(rooms, start=1):
        badge = f" 🔵 {room.unread_count}" if room.unread_count else ""
        lines.append(f"{idx}. {escape(_room_title(room))}{badge}")
    lines += ["", "Use /reply &lt;número&gt; para ler e responder."]
    await message.answer("\n".join(lines))


@router.message(Command("reply"))
async def cmd_reply(
    message: Message,
    command: CommandObject,
    state: FSMContext,
    staff: StaffProfile | None = None,
    unit: Unit | None = None,
) -> None:
    """
    /reply <n> - show the room history (marking it read) and wait for an answer.
    """

    if not await require_unit(message, staff, unit):
        return
    arg = (command.args or "").strip()
    if not arg.isdigit():
        await message.answer("Uso: /reply &lt;número da conversa em /chats&gt;")
        return

    client = get_supabase_client()
    try:
        rooms = await _rooms_for(staff, unit)
        index = int(arg) - 1
        if not 0 <= index < len(rooms):
            await message.answer("Conversa não encontrada.")
            return
        room = rooms[index]
        history = await chat_svc.list_messages(client, room.id, staff.id, local_now())
    except SupabaseError as exc:
        logger.exception("Error loading chat messages: %s", exc)
        await message.answer(MessageTemplates.error("Erro ao carregar mensagens", exc.user_message))
        return

    lines = [MessageTemplates.header(_room_title(room), "💬"), ""]
    for item in history[-HISTORY_LIMIT:]:
        who = "Você" if item.sender_id == staff.id else (room.lead.full_name if room.lead else "Aluno")
        lines.append(f"<i>{to_local(item.created_at):%d/%m %H:%M}</i> <b>{escape(who)}:</b> {escape(item.content)}")
    if not history:
        lines.append("Sem mensagens.")
    lines += ["", "Envie a resposta ou /cancel."]

    await state.set_state(ReplyStates.waiting_for_text)
    await state.update_data(room_id=room.id)
    await message.answer("\n".join(lines))


@router.message(ReplyStates.waiting_for_text, F.text)
async def reply_text(
    message: Message,
    state: FSMContext,
    staff: StaffProfile | None = None,
    unit: Unit | None = None,
) -> None:
    if not await require_unit(message, staff, unit):
        await state.clear()
        return

    data = await state.get_data()
    try:
        await chat_svc.send_message(
            get_supabase_client(),
            data["room_id"],
            staff.id,
            SenderType.PROFESSOR,
            message.text,
            local_now(),
        )
    except ValueError:
        await message.answer("A mensagem não pode ser vazia.")
        return
    except SupabaseError as exc:
        logger.exception("Error sending chat message: %s", exc)
        await message.answer(MessageTemplates.error("Erro ao enviar mensagem", exc.user_message))
        return

    await state.clear()
    await message.answer(MessageTemplates.success("Mensagem enviada."))
