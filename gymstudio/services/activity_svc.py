"""Audit trail: who did what to which entity."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional

from gymstudio.db.models import ActivityLog
from gymstudio.db.supabase import SupabaseClient, between, eq, gte, lte

logger = logging.getLogger(__name__)


ENTITY_TYPES: dict[str, str] = {
    "lead": "Leads",
    "invoice": "Faturas",
    "subscription": "Assinaturas",
    "workout": "Treinos",
    "contract": "Contratos",
    "user": "Usuários",
    "appointment": "Agendamentos",
    "auth": "Autenticação",
    "plan": "Planos",
    "payment": "Pagamentos",
    "interaction": "Interações",
    "task": "Tarefas",
    "goal": "Metas",
}

ACTION_TYPES: dict[str, str] = {
    "create": "Criação",
    "update": "Atualização",
    "delete": "Exclusão",
    "status_change": "Mudança de Status",
    "login": "Login",
    "logout": "Logout",
    "export": "Exportação",
    "archive": "Arquivamento",
    "restore": "Restauração",
}

USER_AGENT = "gymstudio-bot"


async def log_activity(
    client: SupabaseClient,
    unit_id: str,
    entity_type: str,
    action: str,
    description: str,
    entity_id: Optional[str] = None,
    metadata: Optional[dict[str, Any]] = None,
    user_id: Optional[str] = None,
) -> None:
    """
    Record an activity entry.

    Never raises: a failed audit write must not fail the mutation that
    triggered it.
    """

    try:
        await client.insert(
            "activity_logs",
            {
                "unit_id": unit_id,
                "entity_type": entity_type,
                "entity_id": entity_id,
                "action": action,
                "description": description,
                "metadata": metadata or {},
                "user_id": user_id,
                "user_agent": USER_AGENT,
            },
        )
    except Exception as exc:  # noqa: BLE001
        logger.error("Failed to log activity (%s/%s): %s", entity_type, action, exc)


async def list_activity_logs(
    client: SupabaseClient,
    unit_id: str,
    *,
    entity_type: Optional[str] = None,
    action: Optional[str] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    limit: int = 100,
) -> list[ActivityLog]:
    filters: dict[str, Any] = {"unit_id": eq(unit_id)}
    if entity_type:
        filters["entity_type"] = eq(entity_type)
    if action:
        filters["action"] = eq(action)
    if date_from and date_to:
        filters["created_at"] = between(date_from.isoformat(), date_to.isoformat())
    elif date_from:
        filters["created_at"] = gte(date_from.isoformat())
    elif date_to:
        filters["created_at"] = lte(date_to.isoformat())

    rows = await client.select(
        "activity_logs",
        filters=filters,
        order="created_at.desc",
        limit=limit,
    )
    return [ActivityLog.model_validate(row) for row in rows]
