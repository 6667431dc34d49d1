from __future__ import annotations

from html import escape
from typing import Sequence

from aiogram.types import InlineKeyboardButton, InlineKeyboardMarkup

from gymstudio.documents.export import format_currency_br


class Keyboards:
    """
    Centralized keyboard/button builder for consistent UI.
    """

    @staticmethod
    def main_menu() -> InlineKeyboardMarkup:
        buttons = [
            [
                InlineKeyboardButton(text="👥 Leads", callback_data="menu_leads"),
                InlineKeyboardButton(text="✅ Check-ins", callback_data="menu_checkins"),
            ],
            [
                InlineKeyboardButton(text="💰 Financeiro", callback_data="menu_financial"),
                InlineKeyboardButton(text="📅 Agenda", callback_data="menu_agenda"),
            ],
            [
                InlineKeyboardButton(text="📊 Dashboard", callback_data="menu_dashboard"),
                InlineKeyboardButton(text="❓ Ajuda", callback_data="menu_help"),
            ],
        ]
        return InlineKeyboardMarkup(inline_keyboard=buttons)

    @staticmethod
    def lead_status_choices(statuses: Sequence[tuple[str, str]], lead_id: str) -> InlineKeyboardMarkup:
        """One button per pipeline status: callback `lead_status:<lead_id>:<status>`."""
        buttons = [
            [InlineKeyboardButton(text=label, callback_data=f"lead_status:{lead_id}:{value}")]
            for value, label in statuses
        ]
        return InlineKeyboardMarkup(inline_keyboard=buttons)

    @staticmethod
    def export_format(prefix: str) -> InlineKeyboardMarkup:
        buttons = [
            [
                InlineKeyboardButton(text="📄 CSV", callback_data=f"{prefix}:csv"),
                InlineKeyboardButton(text="📗 Excel", callback_data=f"{prefix}:xlsx"),
            ]
        ]
        return InlineKeyboardMarkup(inline_keyboard=buttons)

    @staticmethod
    def chart_periods() -> InlineKeyboardMarkup:
        buttons = [
            [
                InlineKeyboardButton(text="4 semanas", callback_data="chart:4weeks"),
                InlineKeyboardButton(text="3 meses", callback_data="chart:3months"),
                InlineKeyboardButton(text="6 meses", callback_data="chart:6months"),
            ]
        ]
        return InlineKeyboardMarkup(inline_keyboard=buttons)

    @staticmethod
    def task_done_buttons(tasks: Sequence[tuple[str, str]]) -> InlineKeyboardMarkup:
        """One button per (task_id, title): callback `task_done:<task_id>`."""
        buttons = [
            [InlineKeyboardButton(text=f"✅ {title[:40]}", callback_data=f"task_done:{task_id}")]
            for task_id, title in tasks
        ]
        return InlineKeyboardMarkup(inline_keyboard=buttons)

    @staticmethod
    def confirm_button(action_text: str = "Confirmar") -> InlineKeyboardMarkup:
        buttons = [
            [
                InlineKeyboardButton(text=f"✅ {action_text}", callback_data="confirm_yes"),
                InlineKeyboardButton(text="❌ Cancelar", callback_data="confirm_no"),
            ],
        ]
        return InlineKeyboardMarkup(inline_keyboard=buttons)


class MessageTemplates:
    """
    Standardized message templates for consistent formatting.
    """

    NOT_LINKED = "Primeiro envie /start para vincular sua conta da academia."

    @staticmethod
    def header(title: str, emoji: str = "📋") -> str:
        return f"<b>{emoji} {escape(title)}</b>"

    @staticmethod
    def item(text: str, indent: int = 1) -> str:
        return "  " * indent + f"• {text}"

    @staticmethod
    def error(title: str, detail: str | None = None) -> str:
        """`❌ <title>: <detail>`, the detail being the backend message."""
        if detail:
            return f"❌ <b>{escape(title)}:</b> {escape(detail)}"
        return f"❌ <b>{escape(title)}</b>"

    @staticmethod
    def success(message: str) -> str:
        return f"✅ {message}"

    @staticmethod
    def warning(message: str) -> str:
        return f"⚠️ {message}"

    @staticmethod
    def stat(label: str, value: object, unit: str = "") -> str:
        return f"  <b>{label}:</b> {value}{' ' + unit if unit else ''}"

    @staticmethod
    def money(value: object) -> str:
        return f"R$ {format_currency_br(value)}"

    @staticmethod
    def percent(value: float) -> str:
        return f"{value:.1f}%"
