from __future__ import annotations

from html import escape

from aiogram import Router
from aiogram.filters import Command, CommandObject
from aiogram.types import BufferedInputFile, Message

from gymstudio.bot.handlers.common import pick_lead, require_unit
from gymstudio.bot.keyboards import MessageTemplates
from gymstudio.core import local_now
from gymstudio.core.logging import configure_logging
from gymstudio.db import get_supabase_client
from gymstudio.db.models import CONTRACT_STATUS_LABELS, StaffProfile, SubscriptionStatus, Unit
from gymstudio.db.supabase import SupabaseError
from gymstudio.documents.contracts import contract_filename, render_contract_pdf
from gymstudio.documents.export import format_currency_br
from gymstudio.services import contract_svc, financial_svc

router = Router(name="contracts")
logger = configure_logging()

LIST_LIMIT = 20


@router.message(Command("contract"))
async def cmd_contract(
    message: Message,
    command: CommandObject,
    staff: StaffProfile | None = None,
    unit: Unit | None = None,
) -> None:
    """
    /contract <lead> - generate the service contract PDF.

    The member's active subscription, when there is one, supplies the
    plan section and the validity period. A draft contract record is
    stored alongside.
    """

    if not await require_unit(message, staff, unit):
        return
    lead = await pick_lead(message, unit, command.args)
    if lead is None:
        return

    client = get_supabase_client()
    now = local_now()
    try:
        subscriptions = await financial_svc.list_subscriptions(client, unit.id, lead_id=lead.id)
        active = next((s for s in subscriptions if s.status is SubscriptionStatus.ACTIVE), None)
        plan = await financial_svc.get_plan(client, active.plan_id) if active else None

        content = contract_svc.render_contract_template(
            contract_svc.DEFAULT_CONTRACT_TEMPLATE,
            {
                "lead_name": lead.full_name,
                "lead_cpf": lead.cpf,
                "lead_email": lead.email,
                "lead_phone": lead.phone,
                "gym_name": unit.name,
                "gym_cnpj": unit.cnpj,
                "plan_name": plan.name if plan else None,
                "plan_price": format_currency_br(plan.price) if plan else None,
                "valid_from": active.start_date if active else None,
                "valid_until": active.end_date if active else None,
                "current_date": now.date(),
                "gym_city": unit.address,
            },
        )
        await contract_svc.create_contract(
            client,
            unit.id,
            lead.id,
            content,
            subscription_id=active.id if active else None,
            valid_from=active.start_date if active else None,
            valid_until=active.end_date if active else None,
            user_id=staff.user_id,
        )
    except SupabaseError as exc:
        logger.exception("Error creating contract: %s", exc)
        await message.answer(MessageTemplates.error("Erro ao gerar contrato", exc.user_message))
        return

    pdf = render_contract_pdf(lead, unit, plan, now)
    await message.answer_document(
        document=BufferedInputFile(file=pdf, filename=contract_filename(lead, now)),
        caption=f"Contrato de {escape(lead.full_name)}",
    )


@router.message(Command("contracts"))
async def cmd_contracts(
    message: Message,
    staff: StaffProfile | None = None,
    unit: Unit | None = None,
) -> None:
    if not await require_unit(message, staff, unit):
        return

    try:
        contracts = await contract_svc.list_contracts(get_supabase_client(), unit.id)
    except SupabaseError as exc:
        logger.exception("Error loading contracts: %s", exc)
        await message.answer(MessageTemplates.error("Erro ao carregar contratos", exc.user_message))
        return

    if not contracts:
        await message.answer("Nenhum contrato cadastrado.")
        return

    lines = [MessageTemplates.header("Contratos", "📝"), ""]
    for contract in contracts[:LIST_LIMIT]:
        name = escape(contract.lead.full_name) if contract.lead else "-"
        created = f" ({contract.created_at:%d/%m/%Y})" if contract.created_at else ""
        lines.append(MessageTemplates.item(f"{name}{created} - {CONTRACT_STATUS_LABELS[contract.status]}"))
    await message.answer("\n".join(lines))
