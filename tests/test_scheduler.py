from unittest.mock import AsyncMock

from gymstudio.bot import scheduler
from gymstudio.services.automation_svc import AutomationRunResult


def _scheduler(monkeypatch, supabase) -> scheduler.AutomationScheduler:
    monkeypatch.setattr(scheduler, "get_supabase_client", lambda: supabase)
    return scheduler.AutomationScheduler(bot=AsyncMock())


async def test_daily_run_survives_unexpected_errors(monkeypatch, supabase, caplog):
    job = _scheduler(monkeypatch, supabase)
    monkeypatch.setattr(scheduler.financial_svc, "mark_overdue_invoices", AsyncMock(side_effect=RuntimeError("boom")))

    assert await job.run_daily() is None
    assert "Daily automation run failed" in caplog.text


async def test_notification_errors_keep_the_run_result(monkeypatch, supabase, caplog):
    job = _scheduler(monkeypatch, supabase)
    monkeypatch.setattr(scheduler.financial_svc, "mark_overdue_invoices", AsyncMock(return_value=2))
    monkeypatch.setattr(
        scheduler.automation_svc, "process_automations", AsyncMock(return_value=AutomationRunResult(birthday=1))
    )
    monkeypatch.setattr(scheduler.unit_svc, "list_units", AsyncMock(side_effect=ValueError("bad row")))

    result = await job.run_daily()

    assert result is not None and result.total == 1
    assert "Manager notification failed" in caplog.text
    job.bot.send_message.assert_not_awaited()


async def test_quiet_day_sends_nothing(monkeypatch, supabase):
    job = _scheduler(monkeypatch, supabase)

    await job.notify_managers(AutomationRunResult(), 0)

    job.bot.send_message.assert_not_awaited()
