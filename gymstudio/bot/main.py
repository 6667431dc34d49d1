from __future__ import annotations

import asyncio

from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ParseMode
from aiogram.fsm.storage.memory import MemoryStorage

from gymstudio.bot.handlers import setup_routers
from gymstudio.bot.middlewares import UnitContextMiddleware
from gymstudio.bot.scheduler import get_automation_scheduler
from gymstudio.core import get_settings
from gymstudio.core.logging import configure_logging
from gymstudio.db import get_supabase_client


async def _run_bot() -> None:
    settings = get_settings()
    logger = configure_logging()

    bot = Bot(
        token=settings.bot_token,
        default=DefaultBotProperties(parse_mode=ParseMode.HTML),
    )
    dp = Dispatcher(storage=MemoryStorage())
    dp.message.middleware(UnitContextMiddleware())
    dp.callback_query.middleware(UnitContextMiddleware())
    dp.include_router(setup_routers())

    logger.info("Starting bot in %s environment", settings.environment)

    scheduler = get_automation_scheduler(bot)
    await scheduler.start()

    try:
        await dp.start_polling(bot, allowed_updates=dp.resolve_used_update_types())
    finally:
        await scheduler.stop()
        await get_supabase_client().close()
        await bot.session.close()


def main() -> None:
    asyncio.run(_run_bot())


if __name__ == "__main__":
    main()
