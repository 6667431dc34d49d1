"""Contracts, contract templates and template rendering."""

from __future__ import annotations

import re
from datetime import date, datetime
from typing import Any, Mapping, Optional

from gymstudio.db.models import Contract, ContractStatus, ContractTemplate
from gymstudio.db.supabase import SupabaseClient, eq
from gymstudio.services import activity_svc


SIGNATURE_USER_AGENT = "gymstudio-bot"

DEFAULT_CONTRACT_TEMPLATE = """
CONTRATO DE PRESTAÇÃO DE SERVIÇOS DE ACADEMIA

CONTRATANTE: {{lead_name}}
CPF: {{lead_cpf}}
Email: {{lead_email}}
Telefone: {{lead_phone}}

CONTRATADA: {{gym_name}}
CNPJ: {{gym_cnpj}}

PLANO: {{plan_name}}
VALOR: R$ {{plan_price}}
VIGÊNCIA: {{valid_from}} a {{valid_until}}

CLÁUSULAS E CONDIÇÕES:

1. O CONTRATANTE declara estar ciente das normas e regulamentos da academia.

2. O presente contrato tem vigência conforme indicado acima, podendo ser renovado.

3. O CONTRATANTE se compromete a efetuar os pagamentos nas datas acordadas.

4. A CONTRATADA se compromete a fornecer os serviços descritos no plano contratado.

5. O cancelamento deve ser solicitado com antecedência mínima de 30 dias.

Data: {{current_date}}
Local: {{gym_city}}
"""

_PLACEHOLDER = re.compile(r"\{\{\s*(\w+)\s*\}\}")


def render_contract_template(template: str, context: Mapping[str, Any]) -> str:
    """Replace `{{key}}` placeholders; unknown keys render as empty strings."""

    def _replace(match: re.Match[str]) -> str:
        value = context.get(match.group(1))
        if value is None:
            return ""
        if isinstance(value, (date, datetime)):
            return value.strftime("%d/%m/%Y")
        return str(value)

    return _PLACEHOLDER.sub(_replace, template)


async def list_contracts(
    client: SupabaseClient,
    unit_id: str,
    status: Optional[ContractStatus] = None,
) -> list[Contract]:
    filters: dict[str, Any] = {"unit_id": eq(unit_id)}
    if status is not None:
        filters["status"] = eq(ContractStatus(status).value)
    rows = await client.select(
        "contracts",
        filters=filters,
        columns="*, lead:leads(full_name, email)",
        order="created_at.desc",
    )
    return [Contract.model_validate(row) for row in rows]


async def get_contract(client: SupabaseClient, contract_id: str) -> Contract | None:
    row = await client.select_one(
        "contracts",
        filters={"id": eq(contract_id)},
        columns="*, lead:leads(full_name, email, phone, cpf)",
    )
    return Contract.model_validate(row) if row else None


async def create_contract(
    client: SupabaseClient,
    unit_id: str,
    lead_id: str,
    content: str,
    *,
    status: ContractStatus = ContractStatus.DRAFT,
    template_id: Optional[str] = None,
    subscription_id: Optional[str] = None,
    valid_from: Optional[date] = None,
    valid_until: Optional[date] = None,
    user_id: Optional[str] = None,
) -> Contract:
    contract = Contract.model_validate(
        await client.insert_one(
            "contracts",
            {
                "unit_id": unit_id,
                "lead_id": lead_id,
                "content": content,
                "status": ContractStatus(status).value,
                "template_id": template_id,
                "subscription_id": subscription_id,
                "valid_from": valid_from.isoformat() if valid_from else None,
                "valid_until": valid_until.isoformat() if valid_until else None,
                "created_by": user_id,
            },
        )
    )
    await activity_svc.log_activity(
        client,
        unit_id,
        "contract",
        "create",
        "Novo contrato criado",
        entity_id=contract.id,
        metadata={"lead_id": lead_id, "status": contract.status.value},
        user_id=user_id,
    )
    return contract


async def sign_contract(
    client: SupabaseClient,
    contract_id: str,
    signature_data: str,
    now: datetime,
    *,
    user_agent: str = SIGNATURE_USER_AGENT,
    user_id: Optional[str] = None,
) -> Contract:
    contract = Contract.model_validate(
        await client.update_one(
            "contracts",
            contract_id,
            {
                "status": ContractStatus.SIGNED.value,
                "signed_at": now.isoformat(),
                "signed_user_agent": user_agent,
                "signature_data": signature_data,
            },
        )
    )
    await activity_svc.log_activity(
        client,
        contract.unit_id,
        "contract",
        "status_change",
        "Contrato assinado",
        entity_id=contract.id,
        metadata={"signed_at": now.isoformat()},
        user_id=user_id,
    )
    return contract


async def list_templates(client: SupabaseClient, unit_id: str) -> list[ContractTemplate]:
    rows = await client.select(
        "contract_templates",
        filters={"unit_id": eq(unit_id), "is_active": eq(True)},
        order="name.asc",
    )
    return [ContractTemplate.model_validate(row) for row in rows]


async def create_template(
    client: SupabaseClient,
    unit_id: str,
    name: str,
    content: str,
    *,
    is_default: bool = False,
) -> ContractTemplate:
    row = await client.insert_one(
        "contract_templates",
        {"unit_id": unit_id, "name": name, "content": content, "is_default": is_default, "is_active": True},
    )
    return ContractTemplate.model_validate(row)


async def update_template(client: SupabaseClient, template_id: str, changes: dict[str, Any]) -> ContractTemplate:
    return ContractTemplate.model_validate(await client.update_one("contract_templates", template_id, changes))


async def delete_template(client: SupabaseClient, template_id: str) -> None:
    """Soft delete: the template is hidden, existing contracts keep their reference."""
    await client.update("contract_templates", {"id": eq(template_id)}, {"is_active": False})
