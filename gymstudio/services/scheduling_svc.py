"""Appointments, professor availability and schedule blocks."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import Any, Optional

from pydantic import BaseModel

from gymstudio.db.models import (
    Appointment,
    AppointmentStatus,
    AppointmentType,
    ProfessorAvailability,
    ScheduleBlock,
)
from gymstudio.db.supabase import SupabaseClient, between, eq, in_, neq
from gymstudio.services import activity_svc


APPOINTMENT_COLUMNS = "*, lead:leads(id, full_name, phone)"
APPOINTMENT_ORDER = ["scheduled_date.asc", "start_time.asc"]
OPEN_STATUSES = [AppointmentStatus.SCHEDULED.value, AppointmentStatus.CONFIRMED.value]


class AppointmentStats(BaseModel):
    today_count: int
    pending_count: int
    completed_count: int


class TimeSlot(BaseModel):
    start: time
    end: time

    def label(self) -> str:
        return f"{self.start:%H:%M}-{self.end:%H:%M}"


def day_of_week(day: date) -> int:
    """0 = Sunday ... 6 = Saturday."""
    return (day.weekday() + 1) % 7


# ----------------------------------------------------------------------
# Appointments
# ----------------------------------------------------------------------


async def list_appointments(
    client: SupabaseClient,
    unit_id: str,
    day: Optional[date] = None,
    professor_id: Optional[str] = None,
) -> list[Appointment]:
    filters: dict[str, Any] = {"unit_id": eq(unit_id)}
    if day is not None:
        filters["scheduled_date"] = eq(day.isoformat())
    if professor_id:
        filters["professor_id"] = eq(professor_id)
    rows = await client.select("appointments", filters=filters, columns=APPOINTMENT_COLUMNS, order=APPOINTMENT_ORDER)
    return [Appointment.model_validate(row) for row in rows]


async def appointments_in_range(
    client: SupabaseClient,
    unit_id: str,
    start: date,
    end: date,
) -> list[Appointment]:
    rows = await client.select(
        "appointments",
        filters={"unit_id": eq(unit_id), "scheduled_date": between(start.isoformat(), end.isoformat())},
        columns=APPOINTMENT_COLUMNS,
        order=APPOINTMENT_ORDER,
    )
    return [Appointment.model_validate(row) for row in rows]


async def create_appointment(
    client: SupabaseClient,
    unit_id: str,
    *,
    title: str,
    type: AppointmentType,
    scheduled_date: date,
    start_time: time,
    end_time: time,
    lead_id: Optional[str] = None,
    professor_id: Optional[str] = None,
    description: Optional[str] = None,
    user_id: Optional[str] = None,
) -> Appointment:
    if end_time <= start_time:
        raise ValueError("end_time must be after start_time")

    appointment = Appointment.model_validate(
        await client.insert_one(
            "appointments",
            {
                "unit_id": unit_id,
                "title": title,
                "type": AppointmentType(type).value,
                "status": AppointmentStatus.SCHEDULED.value,
                "scheduled_date": scheduled_date.isoformat(),
                "start_time": start_time.isoformat(),
                "end_time": end_time.isoformat(),
                "lead_id": lead_id,
                "professor_id": professor_id,
                "description": description,
                "created_by": user_id,
            },
        )
    )
    await activity_svc.log_activity(
        client,
        unit_id,
        "appointment",
        "create",
        f'Agendamento "{appointment.title}" criado para {appointment.scheduled_date.isoformat()}',
        entity_id=appointment.id,
        user_id=user_id,
    )
    return appointment


async def update_appointment(
    client: SupabaseClient,
    appointment_id: str,
    changes: dict[str, Any],
    *,
    user_id: Optional[str] = None,
) -> Appointment:
    appointment = Appointment.model_validate(await client.update_one("appointments", appointment_id, changes))
    await activity_svc.log_activity(
        client,
        appointment.unit_id,
        "appointment",
        "update",
        f'Agendamento "{appointment.title}" atualizado',
        entity_id=appointment.id,
        user_id=user_id,
    )
    return appointment


async def cancel_appointment(
    client: SupabaseClient,
    appointment_id: str,
    now: datetime,
    reason: Optional[str] = None,
    *,
    user_id: Optional[str] = None,
) -> Appointment:
    appointment = Appointment.model_validate(
        await client.update_one(
            "appointments",
            appointment_id,
            {
                "status": AppointmentStatus.CANCELLED.value,
                "cancelled_at": now.isoformat(),
                "cancelled_reason": reason or None,
            },
        )
    )
    await activity_svc.log_activity(
        client,
        appointment.unit_id,
        "appointment",
        "status_change",
        f'Agendamento "{appointment.title}" cancelado',
        entity_id=appointment.id,
        user_id=user_id,
    )
    return appointment


async def appointment_stats(client: SupabaseClient, unit_id: str, today: date) -> AppointmentStats:
    unit_filter = eq(unit_id)
    today_count = await client.count(
        "appointments",
        filters={"unit_id": unit_filter, "scheduled_date": eq(today.isoformat()), "status": in_(OPEN_STATUSES)},
    )
    pending_count = await client.count("appointments", filters={"unit_id": unit_filter, "status": in_(OPEN_STATUSES)})
    completed_count = await client.count(
        "appointments",
        filters={"unit_id": unit_filter, "status": eq(AppointmentStatus.COMPLETED.value)},
    )
    return AppointmentStats(today_count=today_count, pending_count=pending_count, completed_count=completed_count)


# ----------------------------------------------------------------------
# Availability and blocks
# ----------------------------------------------------------------------


async def list_availability(
    client: SupabaseClient,
    unit_id: str,
    professor_id: Optional[str] = None,
) -> list[ProfessorAvailability]:
    filters: dict[str, Any] = {"unit_id": eq(unit_id), "is_active": eq(True)}
    if professor_id:
        filters["professor_id"] = eq(professor_id)
    rows = await client.select(
        "professor_availability",
        filters=filters,
        order=["day_of_week.asc", "start_time.asc"],
    )
    return [ProfessorAvailability.model_validate(row) for row in rows]


async def create_availability(
    client: SupabaseClient,
    unit_id: str,
    professor_id: str,
    weekday: int,
    start_time: time,
    end_time: time,
) -> ProfessorAvailability:
    if not 0 <= weekday <= 6:
        raise ValueError("day_of_week must be between 0 (Sunday) and 6 (Saturday)")
    if end_time <= start_time:
        raise ValueError("end_time must be after start_time")
    row = await client.insert_one(
        "professor_availability",
        {
            "unit_id": unit_id,
            "professor_id": professor_id,
            "day_of_week": weekday,
            "start_time": start_time.isoformat(),
            "end_time": end_time.isoformat(),
            "is_active": True,
        },
    )
    return ProfessorAvailability.model_validate(row)


async def delete_availability(client: SupabaseClient, availability_id: str) -> None:
    await client.delete("professor_availability", {"id": eq(availability_id)})


async def list_schedule_blocks(
    client: SupabaseClient,
    unit_id: str,
    day: Optional[date] = None,
) -> list[ScheduleBlock]:
    filters: dict[str, Any] = {"unit_id": eq(unit_id)}
    if day is not None:
        filters["block_date"] = eq(day.isoformat())
    rows = await client.select("schedule_blocks", filters=filters, order="block_date.asc")
    return [ScheduleBlock.model_validate(row) for row in rows]


async def create_schedule_block(
    client: SupabaseClient,
    unit_id: str,
    block_date: date,
    *,
    professor_id: Optional[str] = None,
    start_time: Optional[time] = None,
    end_time: Optional[time] = None,
    reason: Optional[str] = None,
) -> ScheduleBlock:
    all_day = start_time is None or end_time is None
    row = await client.insert_one(
        "schedule_blocks",
        {
            "unit_id": unit_id,
            "block_date": block_date.isoformat(),
            "professor_id": professor_id,
            "start_time": None if all_day else start_time.isoformat(),
            "end_time": None if all_day else end_time.isoformat(),
            "all_day": all_day,
            "reason": reason,
        },
    )
    return ScheduleBlock.model_validate(row)


async def delete_schedule_block(client: SupabaseClient, block_id: str) -> None:
    await client.delete("schedule_blocks", {"id": eq(block_id)})


# ----------------------------------------------------------------------
# Free slots
# ----------------------------------------------------------------------


def _overlaps(start: time, end: time, other_start: time, other_end: time) -> bool:
    return start < other_end and other_start < end


def compute_free_slots(
    availability: list[ProfessorAvailability],
    blocks: list[ScheduleBlock],
    appointments: list[Appointment],
    professor_id: str,
    day: date,
    slot_minutes: int = 60,
) -> list[TimeSlot]:
    """
    Split the professor's availability windows for `day` into fixed-size
    slots, dropping slots that hit a block or a non-cancelled appointment.

    Blocks without a professor apply to the whole unit.
    """

    weekday = day_of_week(day)
    windows = [
        a for a in availability
        if a.professor_id == professor_id and a.day_of_week == weekday and a.is_active is not False
    ]
    relevant_blocks = [
        b for b in blocks
        if b.block_date == day and (b.professor_id is None or b.professor_id == professor_id)
    ]
    if any(b.all_day or b.start_time is None or b.end_time is None for b in relevant_blocks):
        return []
    busy = [(b.start_time, b.end_time) for b in relevant_blocks]
    busy.extend(
        (a.start_time, a.end_time)
        for a in appointments
        if a.professor_id == professor_id
        and a.scheduled_date == day
        and a.status not in (AppointmentStatus.CANCELLED, AppointmentStatus.NO_SHOW)
    )

    step = timedelta(minutes=slot_minutes)
    slots: list[TimeSlot] = []
    for window in sorted(windows, key=lambda w: w.start_time):
        cursor = datetime.combine(day, window.start_time)
        window_end = datetime.combine(day, window.end_time)
        while cursor + step <= window_end:
            start, end = cursor.time(), (cursor + step).time()
            if not any(_overlaps(start, end, b_start, b_end) for b_start, b_end in busy):
                slots.append(TimeSlot(start=start, end=end))
            cursor += step
    return slots


async def free_slots(
    client: SupabaseClient,
    unit_id: str,
    professor_id: str,
    day: date,
    slot_minutes: int = 60,
) -> list[TimeSlot]:
    availability = await list_availability(client, unit_id, professor_id)
    blocks = await list_schedule_blocks(client, unit_id, day)
    rows = await client.select(
        "appointments",
        filters={
            "unit_id": eq(unit_id),
            "professor_id": eq(professor_id),
            "scheduled_date": eq(day.isoformat()),
            "status": neq(AppointmentStatus.CANCELLED.value),
        },
    )
    appointments = [Appointment.model_validate(row) for row in rows]
    return compute_free_slots(availability, blocks, appointments, professor_id, day, slot_minutes)
