"""Workouts and their exercise rows for a lead."""

from __future__ import annotations

from datetime import date
from typing import Any, Optional

from gymstudio.db.models import Workout, WorkoutExercise
from gymstudio.db.supabase import SupabaseClient, eq
from gymstudio.services import activity_svc


WORKOUT_COLUMNS = "*, exercises:workout_exercises(*)"


async def list_workouts(
    client: SupabaseClient,
    unit_id: str,
    lead_id: Optional[str] = None,
) -> list[Workout]:
    """Active workouts, newest first, with exercises in `order_index` order."""

    filters: dict[str, Any] = {"unit_id": eq(unit_id), "is_active": eq(True)}
    if lead_id:
        filters["lead_id"] = eq(lead_id)
    rows = await client.select("workouts", filters=filters, columns=WORKOUT_COLUMNS, order="created_at.desc")

    workouts = [Workout.model_validate(row) for row in rows]
    for workout in workouts:
        workout.exercises.sort(key=lambda exercise: exercise.order_index)
    return workouts


async def create_workout(
    client: SupabaseClient,
    unit_id: str,
    lead_id: str,
    name: str,
    *,
    description: Optional[str] = None,
    valid_from: Optional[date] = None,
    valid_until: Optional[date] = None,
    user_id: Optional[str] = None,
) -> Workout:
    workout = Workout.model_validate(
        await client.insert_one(
            "workouts",
            {
                "unit_id": unit_id,
                "lead_id": lead_id,
                "name": name,
                "description": description,
                "valid_from": valid_from.isoformat() if valid_from else None,
                "valid_until": valid_until.isoformat() if valid_until else None,
                "is_active": True,
                "created_by": user_id,
            },
        )
    )
    await activity_svc.log_activity(
        client,
        unit_id,
        "workout",
        "create",
        f'Treino "{workout.name}" criado',
        entity_id=workout.id,
        metadata={"workout_name": workout.name, "lead_id": lead_id},
        user_id=user_id,
    )
    return workout


async def add_exercise(
    client: SupabaseClient,
    workout_id: str,
    exercise_name: str,
    *,
    sets: int = 3,
    reps: str = "12",
    rest_seconds: Optional[int] = None,
    notes: Optional[str] = None,
    exercise_id: Optional[str] = None,
    load_value: Optional[float] = None,
    load_unit: Optional[str] = None,
    order_index: Optional[int] = None,
) -> WorkoutExercise:
    if order_index is None:
        last = await client.select_one(
            "workout_exercises",
            filters={"workout_id": eq(workout_id)},
            columns="order_index",
            order="order_index.desc",
        )
        order_index = last["order_index"] + 1 if last else 0

    row = await client.insert_one(
        "workout_exercises",
        {
            "workout_id": workout_id,
            "exercise_name": exercise_name,
            "exercise_id": exercise_id,
            "sets": sets,
            "reps": reps,
            "rest_seconds": rest_seconds,
            "notes": notes,
            "load_value": load_value,
            "load_unit": load_unit,
            "order_index": order_index,
        },
    )
    return WorkoutExercise.model_validate(row)


async def delete_workout_exercise(client: SupabaseClient, exercise_id: str) -> None:
    await client.delete("workout_exercises", {"id": eq(exercise_id)})


async def deactivate_workout(client: SupabaseClient, workout_id: str) -> Workout:
    return Workout.model_validate(await client.update_one("workouts", workout_id, {"is_active": False}))
