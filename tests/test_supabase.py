import json

import httpx
import pytest

from gymstudio.db.realtime import RealtimeChannel, build_heartbeat, build_join_message, build_leave_message, parse_change
from gymstudio.db.supabase import SupabaseError, between, eq, in_, is_, not_is


def test_filter_helpers():
    assert eq(True) == "eq.true"
    assert in_(["a", "b"]) == "in.(a,b)"
    assert is_(None) == "is.null"
    assert not_is(None) == "not.is.null"
    assert between("2024-06-01", "2024-06-30") == ["gte.2024-06-01", "lte.2024-06-30"]


@pytest.mark.parametrize(
    "detail, expected",
    [
        ('{"message": "duplicate key value"}', "duplicate key value"),
        ('{"msg": "Invalid API key"}', "Invalid API key"),
        ("upstream timeout\n", "upstream timeout"),
        (None, "Supabase REST GET failed"),
    ],
)
def test_user_message(detail, expected):
    assert SupabaseError("Supabase REST GET failed", detail=detail).user_message == expected


async def test_requests_carry_service_key_and_filters(supabase, fake_db):
    fake_db.seed("leads", {"id": "l1", "unit_id": "unit-1"}, {"id": "l2", "unit_id": "unit-2"})

    rows = await supabase.select("leads", filters={"unit_id": eq("unit-1")}, order="created_at.desc", limit=5)

    assert [r["id"] for r in rows] == ["l1"]
    request = fake_db.requests[0]
    assert request.headers["apikey"] == "service-key"
    assert request.headers["authorization"] == "Bearer service-key"
    assert request.url.params["unit_id"] == "eq.unit-1"
    assert request.url.params["limit"] == "5"


async def test_count_reads_content_range(supabase, fake_db):
    fake_db.seed("leads", *[{"id": f"l{i}", "unit_id": "unit-1"} for i in range(3)])

    assert await supabase.count("leads", filters={"unit_id": eq("unit-1")}) == 3
    assert fake_db.requests[0].headers["prefer"] == "count=exact"


async def test_insert_returns_representation(supabase, fake_db):
    row = await supabase.insert_one("plans", {"name": "Mensal"})

    assert row["name"] == "Mensal"
    assert fake_db.requests[0].headers["prefer"] == "return=representation"


async def test_update_requires_filters(supabase):
    with pytest.raises(ValueError):
        await supabase.update("leads", {}, {"status": "ativo"})
    with pytest.raises(ValueError):
        await supabase.delete("leads", {})


async def test_update_one_missing_row(supabase):
    with pytest.raises(SupabaseError) as exc_info:
        await supabase.update_one("leads", "nope", {"status": "ativo"})

    assert exc_info.value.status_code == 404


async def test_http_errors_raise(supabase, fake_db):
    fake_db.fail_tables.add("leads")

    with pytest.raises(SupabaseError) as exc_info:
        await supabase.select("leads")

    assert exc_info.value.status_code == 500
    assert exc_info.value.user_message == "leads unavailable"


async def test_create_auth_user(supabase, fake_db):
    fake_db.auth_responses["/admin/users"] = httpx.Response(200, json={"id": "user-9"})

    user_id = await supabase.create_auth_user("novo@academia.com", "secret", {"full_name": "Novo"})

    assert user_id == "user-9"
    body = json.loads(fake_db.requests[0].content)
    assert body["email_confirm"] is True
    assert body["user_metadata"] == {"full_name": "Novo"}


def test_realtime_url(supabase):
    assert supabase.realtime_url == (
        "wss://project.supabase.co/realtime/v1/websocket?apikey=service-key&vsn=1.0.0"
    )


# -- realtime -----------------------------------------------------------


def test_join_message_with_filter():
    message = build_join_message("chat-room-1", "chat_messages", filter="room_id=eq.room-1", ref="3")

    assert message == {
        "topic": "realtime:chat-room-1",
        "event": "phx_join",
        "payload": {
            "config": {
                "postgres_changes": [
                    {"event": "INSERT", "schema": "public", "table": "chat_messages", "filter": "room_id=eq.room-1"}
                ]
            }
        },
        "ref": "3",
    }


def test_leave_and_heartbeat():
    assert build_leave_message("chat-room-1", "4")["event"] == "phx_leave"
    assert build_heartbeat("5") == {"topic": "phoenix", "event": "heartbeat", "payload": {}, "ref": "5"}


def test_parse_change():
    record = {"id": "m1", "content": "Oi"}

    assert parse_change({"event": "postgres_changes", "payload": {"data": {"record": record}}}) == record
    assert parse_change({"event": "phx_reply", "payload": {"status": "ok"}}) is None
    assert parse_change({"event": "postgres_changes", "payload": {"data": {}}}) is None


async def test_failing_callback_is_logged_not_raised(caplog):
    seen = []

    async def handler(record):
        seen.append(record)
        raise RuntimeError("boom")

    channel = RealtimeChannel("wss://example", "chat-room-1", "chat_messages", handler)

    await channel._dispatch({"id": "m1"})
    await channel._dispatch({"id": "m2"})

    assert [r["id"] for r in seen] == ["m1", "m2"]
    assert "Realtime callback failed" in caplog.text


async def test_sync_callback_is_supported():
    seen = []
    channel = RealtimeChannel("wss://example", "chat-room-1", "chat_messages", seen.append)

    await channel._dispatch({"id": "m1"})

    assert seen == [{"id": "m1"}]
