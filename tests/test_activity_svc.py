from datetime import datetime, timezone

from gymstudio.services import activity_svc

from .factories import UNIT_ID


def _log(**overrides):
    row = {
        "unit_id": UNIT_ID,
        "entity_type": "lead",
        "action": "create",
        "description": "Lead cadastrado",
        "created_at": "2024-06-10T12:00:00+00:00",
    }
    row.update(overrides)
    return row


async def test_log_activity_writes_row(supabase, fake_db):
    await activity_svc.log_activity(
        supabase, UNIT_ID, "invoice", "update", "Fatura paga", entity_id="inv-1", user_id="user-1"
    )

    row = fake_db.rows("activity_logs")[0]
    assert row["entity_id"] == "inv-1"
    assert row["metadata"] == {}
    assert row["user_agent"] == activity_svc.USER_AGENT


async def test_log_activity_swallows_storage_errors(supabase, fake_db, caplog):
    fake_db.fail_tables.add("activity_logs")

    await activity_svc.log_activity(supabase, UNIT_ID, "lead", "create", "Lead cadastrado")

    assert fake_db.rows("activity_logs") == []
    assert "Failed to log activity" in caplog.text


async def test_list_filters_by_entity_and_date(supabase, fake_db):
    fake_db.seed(
        "activity_logs",
        _log(id="a1", created_at="2024-06-01T08:00:00+00:00"),
        _log(id="a2", entity_type="invoice", created_at="2024-06-05T08:00:00+00:00"),
        _log(id="a3", created_at="2024-06-09T08:00:00+00:00"),
        _log(id="a4", unit_id="unit-2"),
    )

    leads = await activity_svc.list_activity_logs(supabase, UNIT_ID, entity_type="lead")
    recent = await activity_svc.list_activity_logs(
        supabase, UNIT_ID, date_from=datetime(2024, 6, 4, tzinfo=timezone.utc)
    )
    window = await activity_svc.list_activity_logs(
        supabase,
        UNIT_ID,
        date_from=datetime(2024, 6, 2, tzinfo=timezone.utc),
        date_to=datetime(2024, 6, 6, tzinfo=timezone.utc),
    )

    assert [log.id for log in leads] == ["a3", "a1"]
    assert [log.id for log in recent] == ["a3", "a2"]
    assert [log.id for log in window] == ["a2"]


async def test_list_respects_limit(supabase, fake_db):
    fake_db.seed("activity_logs", *[_log(id=f"a{i}", created_at=f"2024-06-1{i}T08:00:00+00:00") for i in range(5)])

    logs = await activity_svc.list_activity_logs(supabase, UNIT_ID, limit=2)

    assert [log.id for log in logs] == ["a4", "a3"]
