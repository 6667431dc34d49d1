from datetime import date, datetime, timezone

import pytest
from pydantic import ValidationError

from gymstudio.db.models import TaskPriority
from gymstudio.db.supabase import SupabaseError
from gymstudio.services import task_svc
from gymstudio.services.task_svc import TaskInput

from .factories import UNIT_ID, make_lead

NOW = datetime(2024, 6, 15, 10, 0, tzinfo=timezone.utc)


def _task(**overrides):
    row = {"id": "task-1", "unit_id": UNIT_ID, "title": "Ligar para aluno", "priority": "medium", "is_completed": False}
    row.update(overrides)
    return row


async def test_create_task_defaults_to_medium_priority(supabase, fake_db):
    task = await task_svc.create_task(supabase, UNIT_ID, TaskInput(title=" Enviar contrato "), user_id="user-1")

    assert task.priority is TaskPriority.MEDIUM
    row = fake_db.rows("tasks")[0]
    assert row["title"] == "Enviar contrato"
    assert row["created_by"] == "user-1"
    assert row["unit_id"] == UNIT_ID
    assert fake_db.rows("activity_logs")[0]["entity_type"] == "task"


async def test_create_task_rejects_lead_from_another_unit(supabase, fake_db):
    lead = make_lead(unit_id="unit-b")
    fake_db.seed("leads", lead)

    with pytest.raises(SupabaseError):
        await task_svc.create_task(supabase, UNIT_ID, TaskInput(title="Retorno", lead_id=lead["id"]))

    assert fake_db.rows("tasks") == []


async def test_list_tasks_orders_by_due_date_with_undated_last(supabase, fake_db):
    fake_db.seed(
        "tasks",
        _task(id="undated"),
        _task(id="later", due_date="2024-06-20"),
        _task(id="sooner", due_date="2024-06-12"),
        _task(id="done", due_date="2024-06-01", is_completed=True),
        _task(id="other-unit", unit_id="unit-b", due_date="2024-06-01"),
    )

    everything = await task_svc.list_tasks(supabase, UNIT_ID)
    pending = await task_svc.list_tasks(supabase, UNIT_ID, include_completed=False)

    assert [t.id for t in everything] == ["done", "sooner", "later", "undated"]
    assert [t.id for t in pending] == ["sooner", "later", "undated"]


async def test_overdue_tasks(supabase, fake_db):
    fake_db.seed(
        "tasks",
        _task(id="late", due_date="2024-06-12"),
        _task(id="late-done", due_date="2024-06-12", is_completed=True),
        _task(id="upcoming", due_date="2024-06-20"),
        _task(id="undated"),
    )

    tasks = await task_svc.overdue_tasks(supabase, UNIT_ID, date(2024, 6, 15))

    assert [t.id for t in tasks] == ["late"]


async def test_complete_and_reopen(supabase, fake_db):
    fake_db.seed("tasks", _task())

    done = await task_svc.set_task_completed(supabase, UNIT_ID, "task-1", True, now=NOW)
    assert done.is_completed
    assert fake_db.rows("tasks")[0]["completed_at"] == "2024-06-15T10:00:00+00:00"

    reopened = await task_svc.set_task_completed(supabase, UNIT_ID, "task-1", False, now=NOW)
    assert not reopened.is_completed
    assert fake_db.rows("tasks")[0]["completed_at"] is None
    assert [log["description"] for log in fake_db.rows("activity_logs")] == [
        'Tarefa "Ligar para aluno" concluída',
        'Tarefa "Ligar para aluno" reaberta',
    ]


async def test_other_units_tasks_are_untouchable(supabase, fake_db):
    fake_db.seed("tasks", _task(unit_id="unit-b"))

    with pytest.raises(SupabaseError):
        await task_svc.set_task_completed(supabase, UNIT_ID, "task-1", True, now=NOW)
    with pytest.raises(SupabaseError):
        await task_svc.delete_task(supabase, UNIT_ID, "task-1")

    assert fake_db.rows("tasks")[0]["is_completed"] is False
    assert fake_db.rows("activity_logs") == []


async def test_delete_task_logs_title(supabase, fake_db):
    fake_db.seed("tasks", _task())

    await task_svc.delete_task(supabase, UNIT_ID, "task-1", user_id="user-1")

    assert fake_db.rows("tasks") == []
    assert fake_db.rows("activity_logs")[0]["description"] == 'Tarefa "Ligar para aluno" excluída'


def test_blank_title_is_rejected():
    with pytest.raises(ValidationError):
        TaskInput(title=" ")
