from datetime import datetime, timezone

from gymstudio.db.models import Unit
from gymstudio.documents.qr import build_access_payload
from gymstudio.services import check_in_svc

from .factories import UNIT_ID, make_invoice, make_lead, make_plan, make_subscription

NOW = datetime(2024, 6, 15, 9, 30, tzinfo=timezone.utc)


def _seed_member(fake_db, **lead_overrides):
    lead = make_lead(**lead_overrides)
    plan = make_plan()
    fake_db.seed("leads", lead)
    fake_db.seed("subscriptions", make_subscription(lead["id"], plan["id"], end_date="2024-07-01"))
    return lead


async def test_qr_check_in_grants_access(supabase, fake_db):
    lead = _seed_member(fake_db)

    outcome = await check_in_svc.check_in_with_qr(supabase, UNIT_ID, build_access_payload(lead["id"], NOW), NOW)

    assert outcome.allowed
    assert outcome.lead.id == lead["id"]
    stored = fake_db.rows("check_ins")[0]
    assert stored["access_status"] == "granted"
    assert stored["method"] == "qr_code"
    assert fake_db.rows("activity_logs")[0]["entity_type"] == "check_in"


async def test_cpf_resolves_lead(supabase, fake_db):
    lead = _seed_member(fake_db)

    outcome = await check_in_svc.check_in_with_qr(supabase, UNIT_ID, "52998224725", NOW)

    assert outcome.allowed and outcome.lead.id == lead["id"]


async def test_unknown_code_and_other_unit_are_not_found(supabase, fake_db):
    other = _seed_member(fake_db, unit_id="other-unit")

    missing = await check_in_svc.check_in_with_qr(supabase, UNIT_ID, "garbage", NOW)
    foreign = await check_in_svc.check_in_with_qr(supabase, UNIT_ID, build_access_payload(other["id"], NOW), NOW)

    assert missing.reason == foreign.reason == "Aluno não encontrado"
    assert fake_db.rows("check_ins") == []


async def test_inactive_lead_is_denied_and_recorded(supabase, fake_db):
    lead = _seed_member(fake_db, status="inativo")

    outcome = await check_in_svc.check_in_with_qr(supabase, UNIT_ID, build_access_payload(lead["id"], NOW), NOW)

    assert not outcome.allowed
    assert outcome.reason == "Aluno não está ativo"
    stored = fake_db.rows("check_ins")[0]
    assert stored["access_status"] == "denied"
    assert stored["denial_reason"] == "Aluno não está ativo"
    assert fake_db.rows("activity_logs") == []


async def test_overdue_beyond_grace_blocks_entry(supabase, fake_db):
    lead = _seed_member(fake_db)
    fake_db.seed("invoices", make_invoice(lead["id"], status="overdue", due_date="2024-06-01"))
    unit = Unit(id=UNIT_ID, name="Academia", overdue_grace_days=5)

    outcome = await check_in_svc.check_in_with_qr(
        supabase, UNIT_ID, build_access_payload(lead["id"], NOW), NOW, unit=unit
    )

    assert not outcome.allowed
    assert outcome.reason.startswith("Acesso bloqueado: 1 fatura(s) em atraso há 14 dias")


async def test_expired_subscription_blocks_entry(supabase, fake_db):
    lead = make_lead()
    fake_db.seed("leads", lead)
    fake_db.seed("subscriptions", make_subscription(lead["id"], "plan-1", end_date="2024-06-01"))

    outcome = await check_in_svc.check_in_with_qr(supabase, UNIT_ID, build_access_payload(lead["id"], NOW), NOW)

    assert outcome.reason == "Assinatura expirada"
