"""
Staff Telegram bot: command handlers, unit context middleware and the
daily automation scheduler.
"""
