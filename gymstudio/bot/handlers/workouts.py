from __future__ import annotations

from html import escape

from aiogram import Router
from aiogram.filters import Command, CommandObject
from aiogram.types import Message

from gymstudio.bot.handlers.common import pick_lead, require_unit
from gymstudio.bot.keyboards import MessageTemplates
from gymstudio.core.logging import configure_logging
from gymstudio.db import get_supabase_client
from gymstudio.db.models import StaffProfile, Unit, WorkoutExercise
from gymstudio.db.supabase import SupabaseError
from gymstudio.services import workout_svc

router = Router(name="workouts")
logger = configure_logging()


def _exercise_line(exercise: WorkoutExercise) -> str:
    line = f"{exercise.order_index + 1}. {escape(exercise.exercise_name)} - {exercise.sets}x{escape(exercise.reps)}"
    if exercise.load_value:
        line += f" @ {exercise.load_value:g}{exercise.load_unit or 'kg'}"
    if exercise.rest_seconds:
        line += f" (desc. {exercise.rest_seconds}s)"
    if exercise.advanced_technique:
        line += f" [{escape(exercise.advanced_technique)}]"
    return line


@router.message(Command("workouts"))
async def cmd_workouts(
    message: Message,
    command: CommandObject,
    staff: StaffProfile | None = None,
    unit: Unit | None = None,
) -> None:
    """
    /workouts <lead> - active workout sheets of a member.
    """

    if not await require_unit(message, staff, unit):
        return
    lead = await pick_lead(message, unit, command.args)
    if lead is None:
        return

    try:
        workouts = await workout_svc.list_workouts(get_supabase_client(), unit.id, lead.id)
    except SupabaseError as exc:
        logger.exception("Error loading workouts: %s", exc)
        await message.answer(MessageTemplates.error("Erro ao carregar treinos", exc.user_message))
        return

    if not workouts:
        await message.answer(f"{escape(lead.full_name)} não possui treinos ativos.")
        return

    parts = []
    for workout in workouts:
        lines = [MessageTemplates.header(workout.name, "🏋️")]
        if workout.description:
            lines.append(f"<i>{escape(workout.description)}</i>")
        if workout.valid_until:
            lines.append(f"Válido até {workout.valid_until:%d/%m/%Y}")
        lines += [_exercise_line(exercise) for exercise in workout.exercises] or ["Sem exercícios."]
        parts.append("\n".join(lines))
    await message.answer(f"Treinos de <b>{escape(lead.full_name)}</b>\n\n" + "\n\n".join(parts))
