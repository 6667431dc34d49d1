from __future__ import annotations

from aiogram import F, Router
from aiogram.filters import Command
from aiogram.types import BufferedInputFile, CallbackQuery, Message

from gymstudio.bot.handlers.common import require_unit
from gymstudio.bot.keyboards import Keyboards, MessageTemplates
from gymstudio.core import local_now
from gymstudio.core.logging import configure_logging
from gymstudio.db import get_supabase_client
from gymstudio.db.models import StaffProfile, Unit
from gymstudio.db.supabase import SupabaseError
from gymstudio.documents.export import (
    export_csv,
    export_filename,
    export_xlsx,
    invoices_to_rows,
    leads_to_rows,
)
from gymstudio.services import activity_svc, financial_svc, lead_svc

router = Router(name="export")
logger = configure_logging()


@router.message(Command("export_leads"))
async def cmd_export_leads(
    message: Message,
    staff: StaffProfile | None = None,
    unit: Unit | None = None,
) -> None:
    if not await require_unit(message, staff, unit):
        return
    await message.answer("Formato da exportação de leads:", reply_markup=Keyboards.export_format("export_leads"))


@router.message(Command("export_invoices"))
async def cmd_export_invoices(
    message: Message,
    staff: StaffProfile | None = None,
    unit: Unit | None = None,
) -> None:
    if not await require_unit(message, staff, unit):
        return
    await message.answer("Formato da exportação de faturas:", reply_markup=Keyboards.export_format("export_invoices"))


@router.callback_query(F.data.regexp(r"^export_(leads|invoices):(csv|xlsx)$"))
async def export_callback(
    callback: CallbackQuery,
    staff: StaffProfile | None = None,
    unit: Unit | None = None,
) -> None:
    """
    Build the requested file and send it as a document.
    """

    await callback.answer()
    if not await require_unit(callback.message, staff, unit):
        return

    kind, extension = callback.data.split(":", 1)
    client = get_supabase_client()
    now = local_now()

    try:
        if kind == "export_leads":
            rows = leads_to_rows(await lead_svc.list_leads(client, unit.id))
            prefix, sheet, entity = "leads", "Leads", "lead"
        else:
            rows = invoices_to_rows(await financial_svc.list_invoices(client, unit.id))
            prefix, sheet, entity = "faturas", "Faturas", "invoice"
    except SupabaseError as exc:
        logger.exception("Error exporting %s: %s", kind, exc)
        await callback.message.answer(MessageTemplates.error("Erro ao exportar", exc.user_message))
        return

    if not rows:
        await callback.message.answer("Nada para exportar.")
        return

    content = export_csv(rows) if extension == "csv" else export_xlsx(rows, sheet_name=sheet)
    file = BufferedInputFile(file=content, filename=export_filename(prefix, extension, now))
    await callback.message.answer_document(document=file, caption=f"Exportação: {len(rows)} registro(s)")

    await activity_svc.log_activity(
        client,
        unit.id,
        entity,
        "export",
        f"Exportação de {len(rows)} registro(s) em {extension.upper()}",
        metadata={"format": extension, "count": len(rows)},
        user_id=staff.user_id,
    )
