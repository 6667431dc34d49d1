from __future__ import annotations

from typing import Any, Awaitable, Callable, Dict

from aiogram import BaseMiddleware
from aiogram.types import CallbackQuery, Message, TelegramObject

from gymstudio.core.logging import configure_logging
from gymstudio.db import SupabaseError, get_supabase_client
from gymstudio.db.models import StaffProfile, Unit
from gymstudio.services import staff_svc


logger = configure_logging()


class UnitContextMiddleware(BaseMiddleware):
    """
    Middleware that attaches the current staff member and unit to handler data.

    Resolution is based on the Telegram user id linked to a `profiles` row.
    Works for both Message and CallbackQuery events.
    """

    async def __call__(
        self,
        handler: Callable[[TelegramObject, Dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: Dict[str, Any],
    ) -> Any:
        from_user = None
        if isinstance(event, (Message, CallbackQuery)):
            from_user = event.from_user

        if from_user:
            try:
                resolved = await staff_svc.get_staff_by_telegram(get_supabase_client(), from_user.id)
            except SupabaseError as exc:
                logger.warning("Failed to resolve unit context: %s", exc)
                resolved = None

            staff: StaffProfile | None
            unit: Unit | None
            if resolved is None:
                staff, unit = None, None
            else:
                staff, unit = resolved

            data["staff"] = staff
            data["unit"] = unit

        return await handler(event, data)
