"""
Middlewares for the Telegram bot.

Currently includes:
- UnitContextMiddleware: resolves the staff profile and unit for an update.
"""

from .unit_context import UnitContextMiddleware

__all__ = ["UnitContextMiddleware"]
