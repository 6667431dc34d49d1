"""Contact history (calls, messages, visits) recorded against a lead."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator

from gymstudio.db.models import INTERACTION_TYPE_LABELS, Interaction, InteractionType
from gymstudio.db.supabase import SupabaseClient, SupabaseError, eq
from gymstudio.services import activity_svc, lead_svc


class InteractionInput(BaseModel):
    lead_id: str
    type: InteractionType
    description: str
    scheduled_at: Optional[datetime] = None

    @field_validator("description")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Descrição obrigatória")
        return value


def interaction_label(interaction: Interaction) -> str:
    return INTERACTION_TYPE_LABELS[interaction.type]


async def list_interactions(client: SupabaseClient, unit_id: str, lead_id: str) -> list[Interaction]:
    """Newest first. Empty when the lead is not in the unit."""

    if await lead_svc.get_lead(client, unit_id, lead_id) is None:
        return []
    rows = await client.select("interactions", filters={"lead_id": eq(lead_id)}, order="created_at.desc")
    return [Interaction.model_validate(row) for row in rows]


async def create_interaction(
    client: SupabaseClient,
    unit_id: str,
    data: InteractionInput,
    *,
    user_id: Optional[str] = None,
) -> Interaction:
    # interactions carry no unit_id, so the lead is the scope check
    lead = await lead_svc.get_lead(client, unit_id, data.lead_id)
    if lead is None:
        raise SupabaseError("Lead não encontrado", status_code=404)

    payload = data.model_dump(mode="json", exclude_none=True)
    payload["user_id"] = user_id
    interaction = Interaction.model_validate(await client.insert_one("interactions", payload))

    await activity_svc.log_activity(
        client,
        unit_id,
        "interaction",
        "create",
        f'{interaction_label(interaction)} registrada para "{lead.full_name}"',
        entity_id=interaction.id,
        metadata={"lead_id": lead.id, "lead_name": lead.full_name, "type": interaction.type.value},
        user_id=user_id,
    )
    return interaction
