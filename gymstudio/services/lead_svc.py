"""Lead pipeline (CRM) operations."""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Optional, Sequence

from pydantic import BaseModel, Field

from gymstudio.core.validation import (
    format_cpf,
    format_phone,
    unmask,
    validate_cpf,
    validate_email,
    validate_phone,
)
from gymstudio.db.models import PIPELINE_STATUS_LABELS, Lead, PipelineStatus
from gymstudio.db.supabase import SupabaseClient, SupabaseError, eq, in_, not_is
from gymstudio.services import activity_svc

logger = logging.getLogger(__name__)


BIRTHDAY_STATUSES = (PipelineStatus.ATIVO, PipelineStatus.NEGOCIACAO, PipelineStatus.VISITA_AGENDADA)
SEARCH_MIN_LENGTH = 2
SEARCH_LIMIT = 10

LEAD_FIELDS = ("full_name", "phone", "email", "cpf", "birth_date", "gender", "address", "source", "notes")


class LeadInput(BaseModel):
    full_name: str
    phone: str
    email: Optional[str] = None
    cpf: Optional[str] = None
    birth_date: Optional[date] = None
    gender: Optional[str] = None
    address: Optional[str] = None
    source: Optional[str] = None
    notes: Optional[str] = None
    assigned_to: Optional[str] = None


class ImportRowError(BaseModel):
    row: int
    message: str


class ImportResult(BaseModel):
    success: int = 0
    errors: list[ImportRowError] = Field(default_factory=list)


def status_label(status: PipelineStatus | str) -> str:
    return PIPELINE_STATUS_LABELS[PipelineStatus(status)]


def _scoped(unit_id: str, lead_id: str) -> dict[str, str]:
    return {"unit_id": eq(unit_id), "id": eq(lead_id)}


async def list_leads(
    client: SupabaseClient,
    unit_id: str,
    status: Optional[PipelineStatus] = None,
) -> list[Lead]:
    filters: dict[str, Any] = {"unit_id": eq(unit_id)}
    if status is not None:
        filters["status"] = eq(PipelineStatus(status).value)
    rows = await client.select("leads", filters=filters, order="created_at.desc")
    return [Lead.model_validate(row) for row in rows]


async def get_lead(client: SupabaseClient, unit_id: str, lead_id: str) -> Lead | None:
    row = await client.select_one("leads", filters=_scoped(unit_id, lead_id))
    if row is None:
        return None
    return Lead.model_validate(row)


async def create_lead(
    client: SupabaseClient,
    unit_id: str,
    data: LeadInput,
    *,
    user_id: Optional[str] = None,
) -> Lead:
    payload = data.model_dump(mode="json", exclude_none=True)
    payload.update({"unit_id": unit_id, "status": PipelineStatus.LEAD.value})
    lead = Lead.model_validate(await client.insert_one("leads", payload))

    await activity_svc.log_activity(
        client,
        unit_id,
        "lead",
        "create",
        f'Lead "{lead.full_name}" cadastrado',
        entity_id=lead.id,
        metadata={"lead_name": lead.full_name, "phone": lead.phone},
        user_id=user_id,
    )
    return lead


async def update_lead(
    client: SupabaseClient,
    unit_id: str,
    lead_id: str,
    changes: dict[str, Any],
    *,
    user_id: Optional[str] = None,
) -> Lead:
    lead = Lead.model_validate(
        await client.update_one("leads", lead_id, changes, filters={"unit_id": eq(unit_id)})
    )
    await activity_svc.log_activity(
        client,
        lead.unit_id,
        "lead",
        "update",
        f'Lead "{lead.full_name}" atualizado',
        entity_id=lead.id,
        metadata={"lead_name": lead.full_name},
        user_id=user_id,
    )
    return lead


async def update_lead_status(
    client: SupabaseClient,
    unit_id: str,
    lead_id: str,
    status: PipelineStatus,
    *,
    user_id: Optional[str] = None,
) -> Lead:
    status = PipelineStatus(status)
    lead = Lead.model_validate(
        await client.update_one("leads", lead_id, {"status": status.value}, filters={"unit_id": eq(unit_id)})
    )
    await activity_svc.log_activity(
        client,
        lead.unit_id,
        "lead",
        "status_change",
        f'Lead "{lead.full_name}" movido para "{status_label(lead.status)}"',
        entity_id=lead.id,
        metadata={"lead_name": lead.full_name, "new_status": lead.status.value},
        user_id=user_id,
    )
    return lead


async def delete_lead(
    client: SupabaseClient,
    unit_id: str,
    lead_id: str,
    *,
    user_id: Optional[str] = None,
) -> None:
    # Name is read first so the audit entry survives the row
    existing = await client.select_one("leads", filters=_scoped(unit_id, lead_id), columns="full_name")
    if existing is None:
        raise SupabaseError("Lead não encontrado", status_code=404)

    name = existing["full_name"]
    await client.delete("leads", _scoped(unit_id, lead_id))
    await activity_svc.log_activity(
        client,
        unit_id,
        "lead",
        "delete",
        f'Lead "{name}" excluído',
        entity_id=lead_id,
        metadata={"lead_name": name},
        user_id=user_id,
    )


async def bulk_delete_leads(client: SupabaseClient, unit_id: str, lead_ids: Sequence[str]) -> int:
    if not lead_ids:
        return 0
    deleted = await client.delete("leads", {"unit_id": eq(unit_id), "id": in_(lead_ids)})
    return len(deleted)


async def bulk_update_lead_status(
    client: SupabaseClient,
    unit_id: str,
    lead_ids: Sequence[str],
    status: PipelineStatus,
) -> int:
    if not lead_ids:
        return 0
    updated = await client.update(
        "leads",
        {"unit_id": eq(unit_id), "id": in_(lead_ids)},
        {"status": PipelineStatus(status).value},
    )
    return len(updated)


def filter_leads(leads: Sequence[Lead], term: str, limit: int = SEARCH_LIMIT) -> list[Lead]:
    """
    Match on name (case-insensitive substring) or on the digits of CPF
    or phone. Terms shorter than two characters match nothing.
    """

    term = term.strip()
    if len(term) < SEARCH_MIN_LENGTH:
        return []
    lowered = term.lower()
    digits = unmask(term)

    matches = []
    for lead in leads:
        if lowered in lead.full_name.lower():
            matches.append(lead)
        elif digits and lead.cpf and digits in unmask(lead.cpf):
            matches.append(lead)
        elif digits and digits in unmask(lead.phone):
            matches.append(lead)
        if len(matches) >= limit:
            break
    return matches


async def search_leads(client: SupabaseClient, unit_id: str, term: str) -> list[Lead]:
    """Search active leads for check-in."""

    if len(term.strip()) < SEARCH_MIN_LENGTH:
        return []
    leads = await list_leads(client, unit_id, PipelineStatus.ATIVO)
    return filter_leads(leads, term)


async def birthday_leads(client: SupabaseClient, unit_id: str, today: date) -> list[Lead]:
    rows = await client.select(
        "leads",
        filters={
            "unit_id": eq(unit_id),
            "birth_date": not_is(None),
            "status": in_(status.value for status in BIRTHDAY_STATUSES),
        },
        order="birth_date.asc",
    )
    leads = [Lead.model_validate(row) for row in rows]
    result = [lead for lead in leads if lead.birth_date and lead.birth_date.month == today.month]
    result.sort(key=lambda lead: lead.birth_date.day)
    return result


def map_import_columns(headers: Sequence[str]) -> dict[str, str]:
    """Guess the lead field for each spreadsheet header ("skip" when unknown)."""

    mapping: dict[str, str] = {}
    for header in headers:
        lowered = header.lower().strip()
        if "nome" in lowered:
            field = "full_name"
        elif any(key in lowered for key in ("telefone", "celular", "phone")):
            field = "phone"
        elif "email" in lowered or "e-mail" in lowered:
            field = "email"
        elif "cpf" in lowered:
            field = "cpf"
        elif "nascimento" in lowered or "birth" in lowered:
            field = "birth_date"
        elif any(key in lowered for key in ("gênero", "genero", "sexo")):
            field = "gender"
        elif any(key in lowered for key in ("endereço", "endereco", "address")):
            field = "address"
        elif "origem" in lowered or "source" in lowered:
            field = "source"
        elif "obs" in lowered or "nota" in lowered:
            field = "notes"
        else:
            field = "skip"
        mapping[header] = field
    return mapping


def _normalize_import_row(row: dict[str, Any], mapping: dict[str, str]) -> dict[str, str]:
    data: dict[str, str] = {}
    for column, field in mapping.items():
        raw = row.get(column)
        if field == "skip" or raw is None or raw == "":
            continue
        value = str(raw).strip()
        if field == "phone":
            value = format_phone(value)
        elif field == "cpf":
            value = format_cpf(value)
        elif field == "email":
            value = value.lower()
        data[field] = value
    return data


def _validate_import_row(data: dict[str, str]) -> str | None:
    if len(data.get("full_name", "")) < 2:
        return "Nome inválido ou vazio"
    if not data.get("phone") or not validate_phone(data["phone"]):
        return "Telefone inválido"
    if data.get("email") and not validate_email(data["email"]):
        return "E-mail inválido"
    if data.get("cpf") and not validate_cpf(data["cpf"]):
        return "CPF inválido"
    return None


async def _duplicate_message(client: SupabaseClient, unit_id: str, data: dict[str, str]) -> str | None:
    checks = (("phone", "Telefone já cadastrado"), ("cpf", "CPF já cadastrado"), ("email", "E-mail já cadastrado"))
    for field, message in checks:
        value = data.get(field)
        if not value:
            continue
        existing = await client.select_one(
            "leads",
            filters={"unit_id": eq(unit_id), field: eq(value)},
            columns="id",
        )
        if existing:
            return message
    return None


async def import_leads(
    client: SupabaseClient,
    unit_id: str,
    rows: Sequence[dict[str, Any]],
    mapping: Optional[dict[str, str]] = None,
) -> ImportResult:
    """
    Import spreadsheet rows as new leads.

    Row numbers in the result are 1-based and account for the header
    row (first data row is 2).
    """

    result = ImportResult()
    if not rows:
        return result
    mapping = mapping or map_import_columns(list(rows[0].keys()))

    for index, row in enumerate(rows):
        row_number = index + 2
        data = _normalize_import_row(row, mapping)

        error = _validate_import_row(data)
        if error is None:
            try:
                error = await _duplicate_message(client, unit_id, data)
            except SupabaseError as exc:
                error = exc.user_message
        if error is not None:
            result.errors.append(ImportRowError(row=row_number, message=error))
            continue

        payload: dict[str, Any] = {field: data.get(field) or None for field in LEAD_FIELDS}
        payload.update({"unit_id": unit_id, "status": PipelineStatus.LEAD.value})
        try:
            await client.insert("leads", payload)
        except SupabaseError as exc:
            logger.warning("Lead import row %s failed: %s", row_number, exc)
            result.errors.append(ImportRowError(row=row_number, message=exc.user_message))
            continue
        result.success += 1

    return result
