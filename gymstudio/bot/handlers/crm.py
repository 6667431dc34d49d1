from __future__ import annotations

from datetime import datetime
from decimal import Decimal, InvalidOperation
from html import escape

from aiogram import F, Router
from aiogram.filters import Command, CommandObject
from aiogram.types import CallbackQuery, Message
from pydantic import ValidationError

from gymstudio.bot.handlers.common import pick_lead, require_manager, require_unit
from gymstudio.bot.keyboards import Keyboards, MessageTemplates
from gymstudio.core import local_now
from gymstudio.core.logging import configure_logging
from gymstudio.db import get_supabase_client
from gymstudio.db.models import (
    GOAL_STATUS_LABELS,
    GOAL_TYPE_LABELS,
    INTERACTION_TYPE_ICONS,
    INTERACTION_TYPE_LABELS,
    TASK_PRIORITY_LABELS,
    GoalType,
    InteractionType,
    StaffProfile,
    Task,
    Unit,
)
from gymstudio.db.supabase import SupabaseError
from gymstudio.services import goal_svc, interaction_svc, task_svc
from gymstudio.services.goal_svc import GoalInput, GoalProgress
from gymstudio.services.interaction_svc import InteractionInput
from gymstudio.services.task_svc import TaskInput

router = Router(name="crm")
logger = configure_logging()

HISTORY_LIMIT = 15
PROGRESS_BAR_WIDTH = 10


def _task_line(task: Task) -> str:
    line = f"• {escape(task.title)} [{TASK_PRIORITY_LABELS[task.priority]}]"
    if task.due_date:
        line += f" - até {task.due_date:%d/%m/%Y}"
    if task.lead:
        line += f" ({escape(task.lead.full_name)})"
    return line


def _progress_bar(progress: float) -> str:
    filled = round(progress / 100 * PROGRESS_BAR_WIDTH)
    return "▓" * filled + "░" * (PROGRESS_BAR_WIDTH - filled)


def _goal_block(entry: GoalProgress) -> str:
    goal = entry.goal
    if goal.type is GoalType.REVENUE:
        values = f"{MessageTemplates.money(entry.current_value)} / {MessageTemplates.money(goal.target_value)}"
    else:
        values = f"{entry.current_value:g} / {goal.target_value:g}"
    return "\n".join(
        [
            f"<b>{escape(goal.name)}</b> ({GOAL_TYPE_LABELS[goal.type]})",
            f"{_progress_bar(entry.progress)} {MessageTemplates.percent(entry.progress)} - {values}",
            f"{goal.period_start:%d/%m} a {goal.period_end:%d/%m/%Y} · {GOAL_STATUS_LABELS[entry.status]}",
        ]
    )


# ----------------------------------------------------------------------
# Interactions
# ----------------------------------------------------------------------


@router.message(Command("history"))
async def cmd_history(
    message: Message,
    command: CommandObject,
    staff: StaffProfile | None = None,
    unit: Unit | None = None,
) -> None:
    """
    /history <lead> - contact history of a lead.
    """

    if not await require_unit(message, staff, unit):
        return
    lead = await pick_lead(message, unit, command.args)
    if lead is None:
        return

    try:
        interactions = await interaction_svc.list_interactions(get_supabase_client(), unit.id, lead.id)
    except SupabaseError as exc:
        logger.exception("Error loading interactions: %s", exc)
        await message.answer(MessageTemplates.error("Erro ao carregar histórico", exc.user_message))
        return

    if not interactions:
        await message.answer(f"Nenhuma interação registrada para {escape(lead.full_name)}.")
        return
    lines = [MessageTemplates.header(f"Histórico de {escape(lead.full_name)}", "🗂️"), ""]
    for interaction in interactions[:HISTORY_LIMIT]:
        when = f"{interaction.created_at:%d/%m %H:%M} " if interaction.created_at else ""
        lines.append(
            f"{INTERACTION_TYPE_ICONS[interaction.type]} {when}"
            f"<b>{INTERACTION_TYPE_LABELS[interaction.type]}</b>: {escape(interaction.description)}"
        )
    await message.answer("\n".join(lines))


@router.message(Command("contact"))
async def cmd_contact(
    message: Message,
    command: CommandObject,
    staff: StaffProfile | None = None,
    unit: Unit | None = None,
) -> None:
    """
    /contact <tipo> <lead> | <descrição> - record a call, message or visit.
    """

    if not await require_unit(message, staff, unit):
        return
    usage = "Uso: /contact &lt;ligacao|whatsapp|email|presencial&gt; &lt;busca&gt; | &lt;descrição&gt;"
    raw_type, _, rest = (command.args or "").strip().partition(" ")
    term, separator, description = rest.partition("|")
    try:
        kind = InteractionType(raw_type.lower())
    except ValueError:
        await message.answer(usage)
        return
    if not separator or not description.strip():
        await message.answer(usage)
        return

    lead = await pick_lead(message, unit, term)
    if lead is None:
        return
    try:
        await interaction_svc.create_interaction(
            get_supabase_client(),
            unit.id,
            InteractionInput(lead_id=lead.id, type=kind, description=description),
            user_id=staff.user_id,
        )
    except SupabaseError as exc:
        logger.exception("Error creating interaction: %s", exc)
        await message.answer(MessageTemplates.error("Erro ao registrar interação", exc.user_message))
        return
    await message.answer(
        MessageTemplates.success(f"{INTERACTION_TYPE_LABELS[kind]} registrada para <b>{escape(lead.full_name)}</b>.")
    )


# ----------------------------------------------------------------------
# Tasks
# ----------------------------------------------------------------------


@router.message(Command("tasks"))
async def cmd_tasks(message: Message, staff: StaffProfile | None = None, unit: Unit | None = None) -> None:
    if not await require_unit(message, staff, unit):
        return
    try:
        tasks = await task_svc.list_tasks(get_supabase_client(), unit.id, include_completed=False)
    except SupabaseError as exc:
        logger.exception("Error loading tasks: %s", exc)
        await message.answer(MessageTemplates.error("Erro ao carregar tarefas", exc.user_message))
        return

    if not tasks:
        await message.answer("🎉 Nenhuma tarefa pendente.")
        return
    today = local_now().date()
    lines = [MessageTemplates.header(f"Tarefas pendentes ({len(tasks)})", "📝"), ""]
    for task in tasks:
        line = _task_line(task)
        if task.due_date and task.due_date < today:
            line += " 🔴"
        lines.append(line)
    await message.answer(
        "\n".join(lines),
        reply_markup=Keyboards.task_done_buttons([(task.id, task.title) for task in tasks]),
    )


@router.message(Command("task_add"))
async def cmd_task_add(
    message: Message,
    command: CommandObject,
    staff: StaffProfile | None = None,
    unit: Unit | None = None,
) -> None:
    """
    /task_add <título> [| dd/mm/aaaa]
    """

    if not await require_unit(message, staff, unit):
        return
    title, separator, raw_due = (command.args or "").partition("|")
    due_date = None
    if separator:
        try:
            due_date = datetime.strptime(raw_due.strip(), "%d/%m/%Y").date()
        except ValueError:
            await message.answer("Data inválida. Use dd/mm/aaaa.")
            return
    try:
        data = TaskInput(title=title, due_date=due_date)
    except ValidationError:
        await message.answer("Uso: /task_add &lt;título&gt; [| dd/mm/aaaa]")
        return

    try:
        task = await task_svc.create_task(get_supabase_client(), unit.id, data, user_id=staff.user_id)
    except SupabaseError as exc:
        logger.exception("Error creating task: %s", exc)
        await message.answer(MessageTemplates.error("Erro ao criar tarefa", exc.user_message))
        return
    await message.answer(MessageTemplates.success(f"Tarefa criada:\n{_task_line(task)}"))


@router.callback_query(F.data.startswith("task_done:"))
async def cb_task_done(callback: CallbackQuery, staff: StaffProfile | None = None, unit: Unit | None = None) -> None:
    if not await require_unit(callback.message, staff, unit):
        await callback.answer()
        return

    task_id = callback.data.split(":", 1)[1]
    try:
        task = await task_svc.set_task_completed(
            get_supabase_client(),
            unit.id,
            task_id,
            True,
            now=local_now(),
            user_id=staff.user_id,
        )
    except SupabaseError as exc:
        logger.exception("Error completing task %s: %s", task_id, exc)
        await callback.answer(exc.user_message, show_alert=True)
        return
    await callback.answer("Tarefa concluída")
    await callback.message.answer(MessageTemplates.success(f"Tarefa <b>{escape(task.title)}</b> concluída."))


# ----------------------------------------------------------------------
# Goals
# ----------------------------------------------------------------------


@router.message(Command("goals"))
async def cmd_goals(message: Message, staff: StaffProfile | None = None, unit: Unit | None = None) -> None:
    if not await require_unit(message, staff, unit):
        return
    try:
        goals = await goal_svc.goals_with_progress(get_supabase_client(), unit.id, local_now().date())
    except SupabaseError as exc:
        logger.exception("Error loading goals: %s", exc)
        await message.answer(MessageTemplates.error("Erro ao carregar metas", exc.user_message))
        return

    if not goals:
        await message.answer("Nenhuma meta ativa. Gestores podem criar com /goal_add.")
        return
    blocks = [MessageTemplates.header("Metas", "🎯")] + [_goal_block(entry) for entry in goals]
    await message.answer("\n\n".join(blocks))


@router.message(Command("goal_add"))
async def cmd_goal_add(
    message: Message,
    command: CommandObject,
    staff: StaffProfile | None = None,
    unit: Unit | None = None,
) -> None:
    """
    /goal_add <tipo> <alvo> <nome> - monthly goal for the current month.
    """

    if not await require_manager(message, staff, unit):
        return
    parts = (command.args or "").split(maxsplit=2)
    types = ", ".join(t.value for t in GoalType)
    if len(parts) < 3:
        await message.answer(f"Uso: /goal_add &lt;tipo&gt; &lt;alvo&gt; &lt;nome&gt;\nTipos: {types}")
        return
    raw_type, raw_target, name = parts
    try:
        data = GoalInput(name=name, type=raw_type.lower(), target_value=Decimal(raw_target.replace(",", ".")))
    except (InvalidOperation, ValidationError):
        await message.answer(f"Tipo ou alvo inválido. Tipos: {types}")
        return

    try:
        goal = await goal_svc.create_goal(
            get_supabase_client(),
            unit.id,
            data,
            today=local_now().date(),
            user_id=staff.user_id,
        )
    except SupabaseError as exc:
        logger.exception("Error creating goal: %s", exc)
        await message.answer(MessageTemplates.error("Erro ao criar meta", exc.user_message))
        return
    await message.answer(
        MessageTemplates.success(
            f"Meta <b>{escape(goal.name)}</b> criada: {goal.target_value:g} "
            f"até {goal.period_end:%d/%m/%Y}."
        )
    )
