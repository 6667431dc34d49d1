"""Row builders for seeding the fake PostgREST tables."""

from __future__ import annotations

import uuid
from typing import Any

UNIT_ID = "unit-1"


def _id() -> str:
    return str(uuid.uuid4())


def make_lead(**overrides: Any) -> dict[str, Any]:
    row = {
        "id": _id(),
        "unit_id": UNIT_ID,
        "full_name": "Maria Silva",
        "phone": "(11) 98765-4321",
        "email": "maria@example.com",
        "cpf": "529.982.247-25",
        "status": "ativo",
        "created_at": "2024-06-01T10:00:00+00:00",
        "updated_at": "2024-06-01T10:00:00+00:00",
    }
    row.update(overrides)
    return row


def make_plan(**overrides: Any) -> dict[str, Any]:
    row = {
        "id": _id(),
        "unit_id": UNIT_ID,
        "name": "Mensal",
        "price": "149.90",
        "duration_days": 30,
        "is_active": True,
    }
    row.update(overrides)
    return row


def make_subscription(lead_id: str, plan_id: str, **overrides: Any) -> dict[str, Any]:
    row = {
        "id": _id(),
        "unit_id": UNIT_ID,
        "lead_id": lead_id,
        "plan_id": plan_id,
        "start_date": "2024-06-01",
        "end_date": "2024-07-01",
        "status": "active",
        "created_at": "2024-06-01T10:00:00+00:00",
    }
    row.update(overrides)
    return row


def make_invoice(lead_id: str, **overrides: Any) -> dict[str, Any]:
    row = {
        "id": _id(),
        "unit_id": UNIT_ID,
        "subscription_id": "sub-1",
        "lead_id": lead_id,
        "amount": "149.90",
        "due_date": "2024-06-10",
        "status": "pending",
    }
    row.update(overrides)
    return row
