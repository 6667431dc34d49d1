from __future__ import annotations

from html import escape

from aiogram import F, Router
from aiogram.filters import Command, CommandObject
from aiogram.types import CallbackQuery, Message

from gymstudio.bot.handlers.common import require_unit
from gymstudio.bot.keyboards import Keyboards, MessageTemplates
from gymstudio.core import local_now, to_local
from gymstudio.core.logging import configure_logging
from gymstudio.db import get_supabase_client
from gymstudio.db.models import StaffProfile, Unit
from gymstudio.db.supabase import SupabaseError
from gymstudio.services import activity_svc, dashboard_svc

router = Router(name="reports")
logger = configure_logging()

ACTIVITY_LIMIT = 20
CHART_TITLES = {"4weeks": "Últimas 4 semanas", "3months": "Últimos 3 meses", "6months": "Últimos 6 meses"}


def _growth(value: float) -> str:
    arrow = "📈" if value >= 0 else "📉"
    return f"{arrow} {value:+.1f}%"


def _dashboard_text(stats: dashboard_svc.DashboardStats, sellers: list[dashboard_svc.Seller]) -> str:
    money, pct = MessageTemplates.money, MessageTemplates.percent
    lines = [
        MessageTemplates.header("Dashboard do mês", "📊"),
        "",
        "<b>💰 Receita</b>",
        MessageTemplates.stat("Recebido", f"{money(stats.current_month_revenue)} {_growth(stats.revenue_growth)}"),
        MessageTemplates.stat("Mês anterior", money(stats.last_month_revenue)),
        MessageTemplates.stat("Previsto", money(stats.total_expected)),
        MessageTemplates.stat("Em atraso", f"{money(stats.overdue_amount)} ({stats.overdue_count})"),
        MessageTemplates.stat("Inadimplência", pct(stats.delinquency_rate)),
        "",
        "<b>👥 Leads</b>",
        MessageTemplates.stat("Total", stats.total_leads),
        MessageTemplates.stat("Novos no mês", f"{stats.new_leads_this_month} {_growth(stats.leads_growth)}"),
        MessageTemplates.stat("Alunos ativos", stats.active_clients),
        MessageTemplates.stat("Conversão", pct(stats.conversion_rate)),
        MessageTemplates.stat("Cancelamentos", f"{stats.churned_this_month} ({pct(stats.churn_rate)})"),
        "",
        "<b>✅ Frequência</b>",
        MessageTemplates.stat("Check-ins no mês", stats.total_check_ins_this_month),
        MessageTemplates.stat("Média por aluno", f"{stats.avg_check_ins_per_client:.1f}"),
        MessageTemplates.stat("Inativos", f"{stats.inactive_clients} ({pct(stats.inactivity_rate)})"),
    ]
    if sellers:
        lines += ["", "<b>🏆 Top vendedores</b>"]
        for idx, seller in enumerate(sellers, start=1):
            lines.append(
                f"{idx}. {escape(seller.name)} - {seller.conversions}/{seller.leads} ({pct(seller.conversion_rate)})"
            )
    return "\n".join(lines)


async def _send_dashboard(message: Message, unit: Unit) -> None:
    client = get_supabase_client()
    try:
        stats = await dashboard_svc.dashboard_stats(client, unit.id, local_now())
        sellers = await dashboard_svc.top_sellers(client, unit.id)
    except SupabaseError as exc:
        logger.exception("Error loading dashboard: %s", exc)
        await message.answer(MessageTemplates.error("Erro ao carregar dashboard", exc.user_message))
        return
    await message.answer(_dashboard_text(stats, sellers), reply_markup=Keyboards.chart_periods())


@router.message(Command("dashboard"))
async def cmd_dashboard(
    message: Message,
    staff: StaffProfile | None = None,
    unit: Unit | None = None,
) -> None:
    """
    /dashboard - monthly indicators with a period picker for the evolution chart.
    """

    if not await require_unit(message, staff, unit):
        return
    await _send_dashboard(message, unit)


@router.callback_query(F.data == "menu_dashboard")
async def menu_dashboard(
    callback: CallbackQuery,
    staff: StaffProfile | None = None,
    unit: Unit | None = None,
) -> None:
    await callback.answer()
    if not await require_unit(callback.message, staff, unit):
        return
    await _send_dashboard(callback.message, unit)


@router.callback_query(F.data.in_({f"chart:{period}" for period in CHART_TITLES}))
async def chart_callback(
    callback: CallbackQuery,
    staff: StaffProfile | None = None,
    unit: Unit | None = None,
) -> None:
    await callback.answer()
    if not await require_unit(callback.message, staff, unit):
        return

    period = callback.data.split(":", 1)[1]
    try:
        points = await dashboard_svc.chart_data(get_supabase_client(), unit.id, period, local_now())
    except SupabaseError as exc:
        logger.exception("Error loading chart data: %s", exc)
        await callback.message.answer(MessageTemplates.error("Erro ao carregar gráfico", exc.user_message))
        return

    lines = [MessageTemplates.header(CHART_TITLES[period], "📈"), "", "<code>Período  Leads Conv. Receita</code>"]
    for point in points:
        lines.append(
            f"<code>{point.name:<8} {point.leads:>5} {point.conversions:>5}</code> {MessageTemplates.money(point.revenue)}"
        )
    await callback.message.answer("\n".join(lines))


@router.message(Command("activity"))
async def cmd_activity(
    message: Message,
    command: CommandObject,
    staff: StaffProfile | None = None,
    unit: Unit | None = None,
) -> None:
    """
    /activity [entity] - latest audit trail entries, optionally for one entity type.
    """

    if not await require_unit(message, staff, unit):
        return

    entity_type = (command.args or "").strip().lower() or None
    if entity_type and entity_type not in activity_svc.ENTITY_TYPES:
        await message.answer("Tipos disponíveis: " + ", ".join(activity_svc.ENTITY_TYPES))
        return

    try:
        logs = await activity_svc.list_activity_logs(
            get_supabase_client(), unit.id, entity_type=entity_type, limit=ACTIVITY_LIMIT
        )
    except SupabaseError as exc:
        logger.exception("Error loading activity logs: %s", exc)
        await message.answer(MessageTemplates.error("Erro ao carregar atividades", exc.user_message))
        return

    if not logs:
        await message.answer("Nenhuma atividade registrada.")
        return

    lines = [MessageTemplates.header("Atividades recentes", "🗂"), ""]
    for log in logs:
        action = activity_svc.ACTION_TYPES.get(log.action, log.action)
        entity = activity_svc.ENTITY_TYPES.get(log.entity_type, log.entity_type)
        lines.append(
            f"<i>{to_local(log.created_at):%d/%m %H:%M}</i> [{entity} / {action}] {escape(log.description)}"
        )
    await message.answer("\n".join(lines))
