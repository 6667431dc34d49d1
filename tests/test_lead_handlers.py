from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
from aiogram.fsm.context import FSMContext
from aiogram.fsm.storage.base import StorageKey
from aiogram.fsm.storage.memory import MemoryStorage

from gymstudio.bot.handlers import leads as leads_handlers
from gymstudio.bot.keyboards import MessageTemplates
from gymstudio.db.models import AppRole, StaffProfile, Unit

from .factories import UNIT_ID, make_lead

UNIT = Unit(id=UNIT_ID, name="Academia Centro")
MANAGER = StaffProfile(id="p1", user_id="u1", unit_id=UNIT_ID, full_name="Carla", role=AppRole.GESTOR)


def _callback(data: str) -> SimpleNamespace:
    return SimpleNamespace(data=data, message=AsyncMock(), answer=AsyncMock())


@pytest.fixture
def use_fake_client(monkeypatch, supabase):
    monkeypatch.setattr(leads_handlers, "get_supabase_client", lambda: supabase)
    return supabase


@pytest.fixture
async def state():
    storage = MemoryStorage()
    yield FSMContext(storage=storage, key=StorageKey(bot_id=1, chat_id=1, user_id=1))
    await storage.close()


async def test_status_change_requires_linked_account(use_fake_client, fake_db):
    fake_db.seed("leads", make_lead(id="lead-1", status="lead"))
    callback = _callback("lead_status:lead-1:ativo")

    await leads_handlers.cb_lead_status(callback, staff=None, unit=None)

    callback.message.answer.assert_awaited_once_with(MessageTemplates.NOT_LINKED)
    assert fake_db.rows("leads")[0]["status"] == "lead"
    assert fake_db.requests == []


async def test_status_change_rejects_unknown_status(use_fake_client, fake_db):
    callback = _callback("lead_status:lead-1:vip")

    await leads_handlers.cb_lead_status(callback, staff=MANAGER, unit=UNIT)

    callback.answer.assert_awaited_once_with("Status inválido", show_alert=True)
    assert fake_db.requests == []


async def test_status_change_ignores_other_units(use_fake_client, fake_db):
    fake_db.seed("leads", make_lead(id="lead-b", unit_id="unit-b", status="lead"))
    callback = _callback("lead_status:lead-b:ativo")

    await leads_handlers.cb_lead_status(callback, staff=MANAGER, unit=UNIT)

    assert fake_db.rows("leads")[0]["status"] == "lead"
    callback.message.answer.assert_awaited_once()
    callback.message.edit_text.assert_not_awaited()


async def test_status_change_updates_own_lead(use_fake_client, fake_db):
    fake_db.seed("leads", make_lead(id="lead-1", status="lead"))
    callback = _callback("lead_status:lead-1:ativo")

    await leads_handlers.cb_lead_status(callback, staff=MANAGER, unit=UNIT)

    assert fake_db.rows("leads")[0]["status"] == "ativo"
    callback.message.edit_text.assert_awaited_once()
    callback.answer.assert_awaited_once_with("Status atualizado")


async def test_confirmed_delete_removes_lead(use_fake_client, fake_db, state):
    fake_db.seed("leads", make_lead(id="lead-1"))
    await state.set_state(leads_handlers.DeleteLeadStates.waiting_for_confirm)
    await state.update_data(lead_id="lead-1")

    await leads_handlers.cb_lead_delete(_callback("confirm_yes"), state, staff=MANAGER, unit=UNIT)

    assert fake_db.rows("leads") == []
    assert await state.get_state() is None


async def test_cancelled_delete_keeps_lead(use_fake_client, fake_db, state):
    fake_db.seed("leads", make_lead(id="lead-1"))
    await state.set_state(leads_handlers.DeleteLeadStates.waiting_for_confirm)
    await state.update_data(lead_id="lead-1")
    callback = _callback("confirm_no")

    await leads_handlers.cb_lead_delete(callback, state, staff=MANAGER, unit=UNIT)

    assert len(fake_db.rows("leads")) == 1
    callback.message.edit_text.assert_awaited_once_with("Exclusão cancelada.")


async def test_delete_is_manager_only(use_fake_client, fake_db, state):
    fake_db.seed("leads", make_lead(id="lead-1"))
    await state.update_data(lead_id="lead-1")
    receptionist = MANAGER.model_copy(update={"role": AppRole.RECEPCAO})

    await leads_handlers.cb_lead_delete(_callback("confirm_yes"), state, staff=receptionist, unit=UNIT)

    assert len(fake_db.rows("leads")) == 1
