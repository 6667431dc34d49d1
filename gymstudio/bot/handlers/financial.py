from __future__ import annotations

from html import escape

from aiogram import F, Router
from aiogram.filters import Command, CommandObject
from aiogram.fsm.context import FSMContext
from aiogram.fsm.state import State, StatesGroup
from aiogram.types import BufferedInputFile, CallbackQuery, InlineKeyboardButton, InlineKeyboardMarkup, Message

from gymstudio.bot.handlers.common import pick_lead, require_unit
from gymstudio.bot.keyboards import MessageTemplates
from gymstudio.core import local_now
from gymstudio.core.logging import configure_logging
from gymstudio.db import get_supabase_client
from gymstudio.db.models import (
    INVOICE_STATUS_LABELS,
    PAYMENT_METHOD_LABELS,
    Invoice,
    InvoiceStatus,
    PaymentMethod,
    StaffProfile,
    Unit,
)
from gymstudio.db.supabase import SupabaseError
from gymstudio.documents.receipts import receipt_filename, render_receipt_pdf
from gymstudio.services import financial_svc, lead_svc

router = Router(name="financial")
logger = configure_logging()

LIST_LIMIT = 25
STATUS_ICONS = {
    InvoiceStatus.PENDING: "🟡",
    InvoiceStatus.PAID: "🟢",
    InvoiceStatus.OVERDUE: "🔴",
    InvoiceStatus.CANCELLED: "⚪",
}


class PaymentStates(StatesGroup):
    waiting_for_invoice = State()
    waiting_for_method = State()


class SubscribeStates(StatesGroup):
    waiting_for_plan = State()


def _invoice_line(invoice: Invoice) -> str:
    name = escape(invoice.lead.full_name) if invoice.lead else "-"
    return (
        f"{STATUS_ICONS.get(invoice.status, '')} {name} - {MessageTemplates.money(invoice.amount)} "
        f"(venc. {invoice.due_date:%d/%m/%Y}, {INVOICE_STATUS_LABELS[invoice.status]})"
    )


def _methods_keyboard() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(
        inline_keyboard=[
            [InlineKeyboardButton(text=label, callback_data=f"pay_method:{method.value}")]
            for method, label in PAYMENT_METHOD_LABELS.items()
        ]
    )


@router.message(Command("plans"))
async def cmd_plans(message: Message, staff: StaffProfile | None = None, unit: Unit | None = None) -> None:
    if not await require_unit(message, staff, unit):
        return
    plans = await financial_svc.list_plans(get_supabase_client(), unit.id, active_only=True)
    if not plans:
        await message.answer("Nenhum plano ativo cadastrado.")
        return

    lines = [MessageTemplates.header("Planos", "🏷️"), ""]
    for plan in plans:
        lines.append(f"<b>{escape(plan.name)}</b> - {MessageTemplates.money(plan.price)} / {plan.duration_days} dias")
        lines += [MessageTemplates.item(escape(feature), indent=2) for feature in plan.features]
    await message.answer("\n".join(lines))


async def _send_summary(message: Message, unit: Unit) -> None:
    stats = await financial_svc.financial_stats(get_supabase_client(), unit.id, local_now())
    lines = [
        MessageTemplates.header("Financeiro do mês", "💰"),
        "",
        MessageTemplates.stat("Previsto", MessageTemplates.money(stats.total_expected)),
        MessageTemplates.stat("Recebido", MessageTemplates.money(stats.total_received)),
        MessageTemplates.stat("Em atraso", MessageTemplates.money(stats.total_overdue)),
        MessageTemplates.stat("Faturas pendentes", stats.pending_count),
        MessageTemplates.stat("Faturas em atraso", stats.overdue_count),
    ]
    await message.answer("\n".join(lines))


@router.message(Command("finance"))
async def cmd_finance(message: Message, staff: StaffProfile | None = None, unit: Unit | None = None) -> None:
    if await require_unit(message, staff, unit):
        await _send_summary(message, unit)


@router.callback_query(F.data == "menu_financial")
async def cb_financial(callback: CallbackQuery, staff: StaffProfile | None = None, unit: Unit | None = None) -> None:
    await callback.answer()
    if await require_unit(callback.message, staff, unit):
        await _send_summary(callback.message, unit)


@router.message(Command("invoices"))
async def cmd_invoices(
    message: Message,
    command: CommandObject,
    staff: StaffProfile | None = None,
    unit: Unit | None = None,
) -> None:
    """
    /invoices [pending|paid|overdue|cancelled]
    """

    if not await require_unit(message, staff, unit):
        return
    status = None
    if command.args:
        try:
            status = InvoiceStatus(command.args.strip().lower())
        except ValueError:
            await message.answer("Status inválido. Use: " + ", ".join(s.value for s in InvoiceStatus))
            return

    try:
        invoices = await financial_svc.list_invoices(get_supabase_client(), unit.id, status)
    except SupabaseError as exc:
        logger.exception("Error listing invoices: %s", exc)
        await message.answer(MessageTemplates.error("Erro ao carregar faturas", exc.user_message))
        return

    if not invoices:
        await message.answer("Nenhuma fatura encontrada.")
        return
    lines = [MessageTemplates.header(f"Faturas ({len(invoices)})", "🧾"), ""]
    lines += [_invoice_line(invoice) for invoice in invoices[:LIST_LIMIT]]
    await message.answer("\n".join(lines))


@router.message(Command("overdue"))
async def cmd_overdue(message: Message, staff: StaffProfile | None = None, unit: Unit | None = None) -> None:
    if not await require_unit(message, staff, unit):
        return
    invoices = await financial_svc.overdue_invoices(get_supabase_client(), unit.id)
    overdue = [i for i in invoices if i.status is InvoiceStatus.OVERDUE]
    if not overdue:
        await message.answer("🎉 Nenhuma fatura em atraso.")
        return
    lines = [MessageTemplates.header("Faturas em atraso", "🔴"), ""]
    lines += [_invoice_line(invoice) for invoice in overdue]
    await message.answer("\n".join(lines))


# ----------------------------------------------------------------------
# Payment dialog
# ----------------------------------------------------------------------


@router.message(Command("pay"))
async def cmd_pay(
    message: Message,
    state: FSMContext,
    staff: StaffProfile | None = None,
    unit: Unit | None = None,
) -> None:
    if not await require_unit(message, staff, unit):
        return

    invoices = await financial_svc.overdue_invoices(get_supabase_client(), unit.id)
    if not invoices:
        await message.answer("Nenhuma fatura em aberto.")
        return

    await state.update_data(invoice_ids=[i.id for i in invoices])
    await state.set_state(PaymentStates.waiting_for_invoice)

    lines = ["Escolha a fatura (envie o número):", ""]
    lines += [f"{idx}. {_invoice_line(invoice)}" for idx, invoice in enumerate(invoices, start=1)]
    lines.append("\nPara cancelar, envie /cancel.")
    await message.answer("\n".join(lines))


@router.message(PaymentStates.waiting_for_invoice, F.text.regexp(r"^\d+$"))
async def pay_select_invoice(message: Message, state: FSMContext) -> None:
    data = await state.get_data()
    invoice_ids: list[str] = data.get("invoice_ids", [])
    index = int(message.text) - 1
    if not 0 <= index < len(invoice_ids):
        await message.answer("Número inválido. Tente novamente.")
        return

    await state.update_data(invoice_id=invoice_ids[index])
    await state.set_state(PaymentStates.waiting_for_method)
    await message.answer("Forma de pagamento:", reply_markup=_methods_keyboard())


@router.callback_query(PaymentStates.waiting_for_method, F.data.startswith("pay_method:"))
async def pay_select_method(
    callback: CallbackQuery,
    state: FSMContext,
    staff: StaffProfile | None = None,
    unit: Unit | None = None,
) -> None:
    method = PaymentMethod(callback.data.split(":", 1)[1])
    data = await state.get_data()
    await state.clear()
    await callback.answer()
    if not await require_unit(callback.message, staff, unit):
        return

    client = get_supabase_client()
    try:
        invoice = await financial_svc.get_invoice(client, data["invoice_id"])
        if invoice is None:
            await callback.message.answer("Fatura não encontrada.")
            return
        payment = await financial_svc.register_payment(
            client,
            invoice,
            method,
            paid_at=local_now(),
            user_id=staff.user_id if staff else None,
        )
        lead = await lead_svc.get_lead(client, unit.id, invoice.lead_id)
    except SupabaseError as exc:
        logger.exception("Error registering payment: %s", exc)
        await callback.message.answer(MessageTemplates.error("Erro ao registrar pagamento", exc.user_message))
        return

    await callback.message.edit_text(
        MessageTemplates.success(
            f"Pagamento de {MessageTemplates.money(payment.amount)} registrado via {PAYMENT_METHOD_LABELS[method]}."
        )
    )
    if lead is not None:
        pdf = render_receipt_pdf(payment, invoice, lead, unit)
        await callback.message.answer_document(
            BufferedInputFile(pdf, filename=receipt_filename(payment)),
            caption="🧾 Recibo de pagamento",
        )


# ----------------------------------------------------------------------
# New subscription
# ----------------------------------------------------------------------


@router.message(Command("subscribe"))
async def cmd_subscribe(
    message: Message,
    command: CommandObject,
    state: FSMContext,
    staff: StaffProfile | None = None,
    unit: Unit | None = None,
) -> None:
    """
    /subscribe <lead> - start a plan for a lead; the first invoice is due today.
    """

    if not await require_unit(message, staff, unit):
        return
    lead = await pick_lead(message, unit, command.args)
    if lead is None:
        return
    plans = await financial_svc.list_plans(get_supabase_client(), unit.id, active_only=True)
    if not plans:
        await message.answer("Nenhum plano ativo cadastrado.")
        return

    await state.update_data(lead_id=lead.id, plan_ids=[p.id for p in plans])
    await state.set_state(SubscribeStates.waiting_for_plan)
    lines = [f"Plano para <b>{escape(lead.full_name)}</b> (envie o número):", ""]
    lines += [
        f"{idx}. {escape(plan.name)} - {MessageTemplates.money(plan.price)}"
        for idx, plan in enumerate(plans, start=1)
    ]
    await message.answer("\n".join(lines))


@router.message(SubscribeStates.waiting_for_plan, F.text.regexp(r"^\d+$"))
async def subscribe_select_plan(
    message: Message,
    state: FSMContext,
    staff: StaffProfile | None = None,
    unit: Unit | None = None,
) -> None:
    data = await state.get_data()
    plan_ids: list[str] = data.get("plan_ids", [])
    index = int(message.text) - 1
    if not 0 <= index < len(plan_ids):
        await message.answer("Número inválido. Tente novamente.")
        return
    await state.clear()
    if staff is None or unit is None:
        await message.answer(MessageTemplates.NOT_LINKED)
        return

    client = get_supabase_client()
    today = local_now().date()
    try:
        plan = await financial_svc.get_plan(client, plan_ids[index])
        if plan is None:
            await message.answer("Plano não encontrado.")
            return
        subscription, invoice = await financial_svc.subscribe_lead(
            client,
            unit.id,
            lead_id=data["lead_id"],
            plan=plan,
            start_date=today,
            payment_day=today.day,
            user_id=staff.user_id,
        )
    except SupabaseError as exc:
        logger.exception("Error creating subscription: %s", exc)
        await message.answer(MessageTemplates.error("Erro ao criar assinatura", exc.user_message))
        return

    lines = [
        MessageTemplates.success(f"Assinatura do plano <b>{escape(plan.name)}</b> criada."),
        f"Vigência: {subscription.start_date:%d/%m/%Y} a {subscription.end_date:%d/%m/%Y}",
    ]
    if invoice is not None:
        lines.append(f"Primeira fatura: {MessageTemplates.money(invoice.amount)} em {invoice.due_date:%d/%m/%Y}")
    await message.answer("\n".join(lines))
