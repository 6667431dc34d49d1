from __future__ import annotations

from html import escape

from aiogram import Router
from aiogram.filters import Command, CommandObject
from aiogram.types import BufferedInputFile, Message

from gymstudio.bot.handlers.common import pick_lead, require_unit
from gymstudio.core import local_now
from gymstudio.core.logging import configure_logging
from gymstudio.db.models import StaffProfile, Unit
from gymstudio.documents.qr import build_access_payload, render_qr_png

router = Router(name="qr")
logger = configure_logging()


@router.message(Command("qr"))
async def cmd_qr(
    message: Message,
    command: CommandObject,
    staff: StaffProfile | None = None,
    unit: Unit | None = None,
) -> None:
    """
    /qr <lead> - access QR code for an active member.
    """

    if not await require_unit(message, staff, unit):
        return
    lead = await pick_lead(message, unit, command.args, active_only=True)
    if lead is None:
        return

    png = render_qr_png(build_access_payload(lead.id, local_now()))
    logger.info("Access QR generated for lead %s", lead.id)
    await message.answer_photo(
        photo=BufferedInputFile(file=png, filename=f"qr_{lead.id}.png"),
        caption=f"QR de acesso de <b>{escape(lead.full_name)}</b>",
    )
