from __future__ import annotations

import logging

from aiogram import Bot
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from gymstudio.core import get_settings, local_now
from gymstudio.db import get_supabase_client
from gymstudio.db.supabase import SupabaseError
from gymstudio.services import automation_svc, financial_svc, staff_svc, unit_svc
from gymstudio.services.automation_svc import AutomationRunResult

logger = logging.getLogger(__name__)


class AutomationScheduler:
    """
    APScheduler manager for the daily automation run.

    Marks overdue invoices, queues automation messages and sends a short
    summary to the managers of each unit that have linked Telegram.
    """

    def __init__(self, bot: Bot) -> None:
        self.bot = bot
        self.scheduler: AsyncIOScheduler | None = None

    async def start(self) -> None:
        settings = get_settings()
        self.scheduler = AsyncIOScheduler(timezone=settings.timezone)
        self.scheduler.add_job(
            self.run_daily,
            CronTrigger(hour=settings.automation_hour, minute=0),
            id="daily_automations",
            name="Daily Automations",
        )
        self.scheduler.start()
        logger.info("Automation scheduler started (daily at %02d:00 %s)", settings.automation_hour, settings.timezone)

    async def stop(self) -> None:
        if self.scheduler:
            self.scheduler.shutdown()
            logger.info("Automation scheduler stopped")

    async def run_daily(self) -> AutomationRunResult | None:
        client = get_supabase_client()
        now = local_now()

        try:
            marked = await financial_svc.mark_overdue_invoices(client, now.date())
            result = await automation_svc.process_automations(client, now)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Daily automation run failed: %s", exc)
            return None

        logger.info("Daily automation run: %s overdue invoice(s), %s message(s) queued", marked, result.total)
        try:
            await self.notify_managers(result, marked)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Manager notification failed: %s", exc)
        return result

    async def notify_managers(self, result: AutomationRunResult, marked: int) -> None:
        if not result.total and not marked:
            return

        text = "\n".join(
            [
                "🤖 <b>Automações do dia</b>",
                f"Faturas vencidas: <b>{marked}</b>",
                f"Mensagens na fila: <b>{result.total}</b>",
                f"Erros: <b>{result.errors}</b>",
            ]
        )
        client = get_supabase_client()
        for unit in await unit_svc.list_units(client, active_only=True):
            try:
                managers = await staff_svc.list_managers_with_telegram(client, unit.id)
            except SupabaseError as exc:
                logger.warning("Could not load managers for unit %s: %s", unit.id, exc)
                continue
            for manager in managers:
                try:
                    await self.bot.send_message(chat_id=manager.telegram_user_id, text=text)
                except Exception as exc:  # noqa: BLE001
                    logger.error("Failed to notify manager %s: %s", manager.id, exc)


# Global scheduler instance
_scheduler: AutomationScheduler | None = None


def get_automation_scheduler(bot: Bot | None = None) -> AutomationScheduler:
    global _scheduler
    if _scheduler is None:
        if bot is None:
            raise RuntimeError("Bot instance required to initialize scheduler")
        _scheduler = AutomationScheduler(bot)
    return _scheduler
