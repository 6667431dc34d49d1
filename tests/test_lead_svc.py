from datetime import date

import pytest

from gymstudio.db.models import Lead, PipelineStatus
from gymstudio.db.supabase import SupabaseError
from gymstudio.services import lead_svc
from gymstudio.services.lead_svc import LeadInput

from .factories import UNIT_ID, make_lead


async def test_create_lead_starts_in_pipeline_and_logs_activity(supabase, fake_db):
    lead = await lead_svc.create_lead(
        supabase, UNIT_ID, LeadInput(full_name="João Souza", phone="(11) 91234-5678"), user_id="user-1"
    )

    assert lead.status is PipelineStatus.LEAD
    assert fake_db.rows("leads")[0]["unit_id"] == UNIT_ID
    log = fake_db.rows("activity_logs")[0]
    assert log["entity_type"] == "lead"
    assert log["action"] == "create"
    assert log["description"] == 'Lead "João Souza" cadastrado'
    assert log["user_id"] == "user-1"


async def test_update_status_records_label(supabase, fake_db):
    row = make_lead(status="lead")
    fake_db.seed("leads", row)

    lead = await lead_svc.update_lead_status(supabase, UNIT_ID, row["id"], PipelineStatus.NEGOCIACAO)

    assert lead.status is PipelineStatus.NEGOCIACAO
    log = fake_db.rows("activity_logs")[0]
    assert log["action"] == "status_change"
    assert log["description"] == 'Lead "Maria Silva" movido para "Negociação"'


async def test_list_leads_scopes_by_unit(supabase, fake_db):
    fake_db.seed("leads", make_lead(), make_lead(unit_id="other-unit", full_name="Outra"))

    leads = await lead_svc.list_leads(supabase, UNIT_ID)

    assert [lead.full_name for lead in leads] == ["Maria Silva"]


async def test_writes_never_reach_another_units_lead(supabase, fake_db):
    foreign = make_lead(id="lead-b", unit_id="unit-b", status="lead")
    fake_db.seed("leads", foreign)

    assert await lead_svc.get_lead(supabase, UNIT_ID, "lead-b") is None
    with pytest.raises(SupabaseError):
        await lead_svc.update_lead_status(supabase, UNIT_ID, "lead-b", PipelineStatus.ATIVO)
    with pytest.raises(SupabaseError):
        await lead_svc.update_lead(supabase, UNIT_ID, "lead-b", {"notes": "x"})
    with pytest.raises(SupabaseError):
        await lead_svc.delete_lead(supabase, UNIT_ID, "lead-b")
    assert await lead_svc.bulk_delete_leads(supabase, UNIT_ID, ["lead-b"]) == 0
    assert await lead_svc.bulk_update_lead_status(supabase, UNIT_ID, ["lead-b"], PipelineStatus.ATIVO) == 0

    assert fake_db.rows("leads") == [foreign]
    assert fake_db.rows("leads")[0]["status"] == "lead"
    assert fake_db.rows("activity_logs") == []


async def test_delete_lead_logs_name(supabase, fake_db):
    row = make_lead()
    fake_db.seed("leads", row)

    await lead_svc.delete_lead(supabase, UNIT_ID, row["id"], user_id="user-1")

    assert fake_db.rows("leads") == []
    assert fake_db.rows("activity_logs")[0]["description"] == 'Lead "Maria Silva" excluído'


def test_filter_leads_by_name_cpf_and_phone():
    leads = [
        Lead.model_validate(make_lead(full_name="Maria Silva")),
        Lead.model_validate(make_lead(full_name="Pedro Lima", cpf="111.444.777-35", phone="(21) 99999-0000")),
    ]

    assert [lead.full_name for lead in lead_svc.filter_leads(leads, "maria")] == ["Maria Silva"]
    assert [lead.full_name for lead in lead_svc.filter_leads(leads, "111444")] == ["Pedro Lima"]
    assert [lead.full_name for lead in lead_svc.filter_leads(leads, "2199999")] == ["Pedro Lima"]
    assert lead_svc.filter_leads(leads, "m") == []


async def test_search_only_returns_active_leads(supabase, fake_db):
    fake_db.seed("leads", make_lead(full_name="Ana Ativa"), make_lead(full_name="Ana Lead", status="lead"))

    found = await lead_svc.search_leads(supabase, UNIT_ID, "ana")

    assert [lead.full_name for lead in found] == ["Ana Ativa"]


async def test_birthday_leads_sorted_by_day(supabase, fake_db):
    fake_db.seed(
        "leads",
        make_lead(full_name="Dia 20", birth_date="1990-06-20"),
        make_lead(full_name="Dia 03", birth_date="1985-06-03"),
        make_lead(full_name="Julho", birth_date="1990-07-01"),
        make_lead(full_name="Cancelado", birth_date="1990-06-10", status="cancelado"),
    )

    leads = await lead_svc.birthday_leads(supabase, UNIT_ID, date(2024, 6, 15))

    assert [lead.full_name for lead in leads] == ["Dia 03", "Dia 20"]


def test_map_import_columns():
    mapping = lead_svc.map_import_columns(["Nome Completo", "Celular", "E-mail", "CPF", "Coluna X"])
    assert mapping == {
        "Nome Completo": "full_name",
        "Celular": "phone",
        "E-mail": "email",
        "CPF": "cpf",
        "Coluna X": "skip",
    }


async def test_import_leads_reports_row_errors_and_duplicates(supabase, fake_db):
    fake_db.seed("leads", make_lead(phone="(11) 98765-4321"))
    rows = [
        {"Nome": "Carla Dias", "Telefone": "21912345678", "Email": "CARLA@EXAMPLE.COM"},
        {"Nome": "X", "Telefone": "21912345678", "Email": ""},
        {"Nome": "Bruno Reis", "Telefone": "123", "Email": ""},
        {"Nome": "Maria Repetida", "Telefone": "11987654321", "Email": ""},
        {"Nome": "Eva Costa", "Telefone": "31988887777", "Email": "eva@"},
    ]

    result = await lead_svc.import_leads(supabase, UNIT_ID, rows)

    assert result.success == 1
    assert [(e.row, e.message) for e in result.errors] == [
        (3, "Nome inválido ou vazio"),
        (4, "Telefone inválido"),
        (5, "Telefone já cadastrado"),
        (6, "E-mail inválido"),
    ]
    imported = fake_db.rows("leads")[-1]
    assert imported["full_name"] == "Carla Dias"
    assert imported["phone"] == "(21) 91234-5678"
    assert imported["email"] == "carla@example.com"
    assert imported["status"] == "lead"
