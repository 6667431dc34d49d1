from aiogram import Router

from . import (
    assessments,
    automation,
    chat,
    check_in,
    contracts,
    crm,
    export,
    financial,
    leads,
    qr,
    reports,
    scheduling,
    start,
    workouts,
)


def setup_routers() -> Router:
    """
    Aggregate and return root router for the bot.
    """

    router = Router(name="root")
    # start first: /cancel must win over any pending FSM state
    router.include_router(start.router)
    router.include_router(leads.router)
    router.include_router(crm.router)
    router.include_router(check_in.router)
    router.include_router(financial.router)
    router.include_router(scheduling.router)
    router.include_router(workouts.router)
    router.include_router(assessments.router)
    router.include_router(chat.router)
    router.include_router(contracts.router)
    router.include_router(qr.router)
    router.include_router(export.router)
    router.include_router(reports.router)
    router.include_router(automation.router)
    return router
