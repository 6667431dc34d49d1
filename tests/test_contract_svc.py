from datetime import date, datetime, timezone

from gymstudio.db.models import ContractStatus
from gymstudio.services import contract_svc
from gymstudio.services.contract_svc import DEFAULT_CONTRACT_TEMPLATE, render_contract_template

from .factories import UNIT_ID, make_lead


def test_render_template_fills_placeholders():
    text = render_contract_template(
        "Contratante: {{lead_name}} / CPF: {{ lead_cpf }} / Início: {{valid_from}}",
        {"lead_name": "Maria Silva", "lead_cpf": "529.982.247-25", "valid_from": date(2024, 6, 1)},
    )

    assert text == "Contratante: Maria Silva / CPF: 529.982.247-25 / Início: 01/06/2024"


def test_render_template_blanks_missing_values():
    text = render_contract_template("Email: {{lead_email}}|Local: {{gym_city}}", {"lead_email": None})

    assert text == "Email: |Local: "


def test_default_template_leaves_no_placeholders():
    context = {
        "lead_name": "Maria Silva",
        "plan_price": "149,90",
        "current_date": datetime(2024, 6, 15, 10, 0, tzinfo=timezone.utc),
    }

    text = render_contract_template(DEFAULT_CONTRACT_TEMPLATE, context)

    assert "{{" not in text
    assert "CONTRATANTE: Maria Silva" in text
    assert "VALOR: R$ 149,90" in text
    assert "Data: 15/06/2024" in text


async def test_create_contract_logs_activity(supabase, fake_db):
    lead = make_lead()
    fake_db.seed("leads", lead)

    contract = await contract_svc.create_contract(
        supabase,
        UNIT_ID,
        lead["id"],
        "conteúdo",
        status=ContractStatus.PENDING,
        valid_from=date(2024, 6, 1),
        valid_until=date(2024, 7, 1),
        user_id="user-1",
    )

    assert contract.status is ContractStatus.PENDING
    assert contract.valid_until == date(2024, 7, 1)
    row = fake_db.rows("contracts")[0]
    assert row["valid_from"] == "2024-06-01"
    log = fake_db.rows("activity_logs")[0]
    assert log["entity_type"] == "contract"
    assert log["entity_id"] == contract.id
    assert log["metadata"] == {"lead_id": lead["id"], "status": "pending"}


async def test_sign_contract_records_signature(supabase, fake_db):
    fake_db.seed(
        "contracts",
        {"id": "ctr-1", "unit_id": UNIT_ID, "lead_id": "lead-1", "content": "x", "status": "pending"},
    )
    now = datetime(2024, 6, 15, 14, 30, tzinfo=timezone.utc)

    contract = await contract_svc.sign_contract(supabase, "ctr-1", "data:image/png;base64,AAAA", now)

    assert contract.status is ContractStatus.SIGNED
    assert contract.signed_at == now
    assert contract.signed_user_agent == contract_svc.SIGNATURE_USER_AGENT
    assert contract.signature_data == "data:image/png;base64,AAAA"
    assert fake_db.rows("activity_logs")[0]["description"] == "Contrato assinado"


async def test_list_contracts_by_status(supabase, fake_db):
    fake_db.seed(
        "contracts",
        {"id": "c1", "unit_id": UNIT_ID, "lead_id": "l1", "content": "a", "status": "signed",
         "created_at": "2024-06-01T10:00:00+00:00"},
        {"id": "c2", "unit_id": UNIT_ID, "lead_id": "l2", "content": "b", "status": "draft",
         "created_at": "2024-06-02T10:00:00+00:00"},
        {"id": "c3", "unit_id": "unit-2", "lead_id": "l3", "content": "c", "status": "signed",
         "created_at": "2024-06-03T10:00:00+00:00"},
    )

    everything = await contract_svc.list_contracts(supabase, UNIT_ID)
    signed = await contract_svc.list_contracts(supabase, UNIT_ID, ContractStatus.SIGNED)

    assert [c.id for c in everything] == ["c2", "c1"]
    assert [c.id for c in signed] == ["c1"]


async def test_deleted_template_is_hidden(supabase, fake_db):
    kept = await contract_svc.create_template(supabase, UNIT_ID, "Padrão", DEFAULT_CONTRACT_TEMPLATE, is_default=True)
    dropped = await contract_svc.create_template(supabase, UNIT_ID, "Antigo", "texto")

    await contract_svc.delete_template(supabase, dropped.id)

    templates = await contract_svc.list_templates(supabase, UNIT_ID)
    assert [t.id for t in templates] == [kept.id]
    assert len(fake_db.rows("contract_templates")) == 2


async def test_update_template(supabase, fake_db):
    template = await contract_svc.create_template(supabase, UNIT_ID, "Padrão", "v1")

    updated = await contract_svc.update_template(supabase, template.id, {"content": "v2"})

    assert updated.content == "v2"
    assert updated.name == "Padrão"
