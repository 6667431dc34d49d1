"""Follow-up tasks for staff, optionally tied to a lead."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Optional

from pydantic import BaseModel, field_validator

from gymstudio.db.models import Task, TaskPriority
from gymstudio.db.supabase import SupabaseClient, SupabaseError, eq, lt
from gymstudio.services import activity_svc, lead_svc


TASK_COLUMNS = "*, lead:leads(id, full_name, phone)"


class TaskInput(BaseModel):
    title: str
    description: Optional[str] = None
    lead_id: Optional[str] = None
    assigned_to: Optional[str] = None
    due_date: Optional[date] = None
    priority: TaskPriority = TaskPriority.MEDIUM

    @field_validator("title")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Título obrigatório")
        return value


def _scoped(unit_id: str, task_id: str) -> dict[str, str]:
    return {"unit_id": eq(unit_id), "id": eq(task_id)}


async def list_tasks(
    client: SupabaseClient,
    unit_id: str,
    *,
    lead_id: Optional[str] = None,
    assigned_to: Optional[str] = None,
    include_completed: bool = True,
) -> list[Task]:
    """Soonest due date first; tasks without one go last."""

    filters: dict[str, Any] = {"unit_id": eq(unit_id)}
    if lead_id is not None:
        filters["lead_id"] = eq(lead_id)
    if assigned_to is not None:
        filters["assigned_to"] = eq(assigned_to)
    if not include_completed:
        filters["is_completed"] = eq(False)
    rows = await client.select(
        "tasks",
        filters=filters,
        columns=TASK_COLUMNS,
        order="due_date.asc.nullslast",
    )
    return [Task.model_validate(row) for row in rows]


async def overdue_tasks(client: SupabaseClient, unit_id: str, today: date) -> list[Task]:
    rows = await client.select(
        "tasks",
        filters={"unit_id": eq(unit_id), "is_completed": eq(False), "due_date": lt(today.isoformat())},
        columns=TASK_COLUMNS,
        order="due_date.asc",
    )
    return [Task.model_validate(row) for row in rows]


async def create_task(
    client: SupabaseClient,
    unit_id: str,
    data: TaskInput,
    *,
    user_id: Optional[str] = None,
) -> Task:
    if data.lead_id and await lead_svc.get_lead(client, unit_id, data.lead_id) is None:
        raise SupabaseError("Lead não encontrado", status_code=404)

    payload = data.model_dump(mode="json", exclude_none=True)
    payload.update({"unit_id": unit_id, "created_by": user_id, "is_completed": False})
    task = Task.model_validate(await client.insert_one("tasks", payload))

    await activity_svc.log_activity(
        client,
        unit_id,
        "task",
        "create",
        f'Tarefa "{task.title}" criada',
        entity_id=task.id,
        metadata={"title": task.title, "lead_id": task.lead_id},
        user_id=user_id,
    )
    return task


async def set_task_completed(
    client: SupabaseClient,
    unit_id: str,
    task_id: str,
    completed: bool,
    *,
    now: datetime,
    user_id: Optional[str] = None,
) -> Task:
    """Complete or reopen a task; `completed_at` is cleared on reopen."""

    changes = {"is_completed": completed, "completed_at": now.isoformat() if completed else None}
    task = Task.model_validate(await client.update_one("tasks", task_id, changes, filters={"unit_id": eq(unit_id)}))

    await activity_svc.log_activity(
        client,
        unit_id,
        "task",
        "status_change",
        f'Tarefa "{task.title}" {"concluída" if completed else "reaberta"}',
        entity_id=task.id,
        metadata={"title": task.title, "is_completed": completed},
        user_id=user_id,
    )
    return task


async def delete_task(
    client: SupabaseClient,
    unit_id: str,
    task_id: str,
    *,
    user_id: Optional[str] = None,
) -> None:
    deleted = await client.delete("tasks", _scoped(unit_id, task_id))
    if not deleted:
        raise SupabaseError("Tarefa não encontrada", status_code=404)

    title = deleted[0].get("title", "")
    await activity_svc.log_activity(
        client,
        unit_id,
        "task",
        "delete",
        f'Tarefa "{title}" excluída',
        entity_id=task_id,
        metadata={"title": title},
        user_id=user_id,
    )
