import json

import httpx
import pytest

from gymstudio.db.models import AppRole, StaffProfile
from gymstudio.db.supabase import SupabaseError
from gymstudio.services import staff_svc, unit_svc

from .factories import UNIT_ID


def _unit(**overrides):
    row = {"id": UNIT_ID, "name": "Academia Centro", "is_active": True}
    row.update(overrides)
    return row


def _profile(**overrides):
    row = {"id": "p1", "user_id": "u1", "unit_id": UNIT_ID, "full_name": "Carla Gestora"}
    row.update(overrides)
    return row


# -- units --------------------------------------------------------------


async def test_list_units_active_only(supabase, fake_db):
    fake_db.seed("units", _unit(), _unit(id="unit-2", name="Academia Norte", is_active=False))

    assert [u.id for u in await unit_svc.list_units(supabase)] == [UNIT_ID, "unit-2"]
    assert [u.id for u in await unit_svc.list_units(supabase, active_only=True)] == [UNIT_ID]


async def test_update_branding_clears_empty_values(supabase, fake_db):
    fake_db.seed("units", _unit(primary_color="#000000", font_family="Inter"))

    unit = await unit_svc.update_unit_branding(supabase, UNIT_ID, {"primary_color": "#3B82F6", "font_family": ""})

    assert unit.primary_color == "#3B82F6"
    assert unit.font_family is None


@pytest.mark.parametrize(
    "branding",
    [{"name": "Outra"}, {"primary_color": "blue"}, {"dark_accent_color": "#12345G"}],
)
async def test_update_branding_rejects_bad_input(supabase, fake_db, branding):
    fake_db.seed("units", _unit())

    with pytest.raises(ValueError):
        await unit_svc.update_unit_branding(supabase, UNIT_ID, branding)

    assert fake_db.requests_for("/units", "PATCH") == []


async def test_upload_logo_returns_public_url(supabase, fake_db):
    url = await unit_svc.upload_unit_logo(supabase, UNIT_ID, b"png-bytes", ".PNG")

    assert url == f"https://project.supabase.co/storage/v1/object/public/logos/{UNIT_ID}/logo.png"
    request = fake_db.requests_for(f"/object/logos/{UNIT_ID}/logo.png", "POST")[0]
    assert request.headers["content-type"] == "image/png"
    assert request.headers["x-upsert"] == "true"


async def test_upload_logo_rejects_unknown_type(supabase):
    with pytest.raises(ValueError):
        await unit_svc.upload_unit_logo(supabase, UNIT_ID, b"x", "gif")


def test_unit_theme_defaults_without_unit():
    assert unit_svc.unit_theme(None) == unit_svc.UnitTheme()


# -- staff --------------------------------------------------------------


async def test_authenticate_staff_links_telegram(supabase, fake_db):
    fake_db.auth_responses["/token"] = httpx.Response(200, json={"access_token": "t", "user": {"id": "u1"}})
    fake_db.seed("units", _unit())
    fake_db.seed("profiles", _profile(), _profile(id="p2", user_id="u2", telegram_user_id=555))
    fake_db.seed("user_roles", {"user_id": "u1", "role": "gestor"})

    staff, unit = await staff_svc.authenticate_staff(supabase, " Carla@Academia.com ", "secret", 555)

    assert staff.id == "p1"
    assert staff.telegram_user_id == 555
    assert staff.is_manager
    assert unit is not None and unit.name == "Academia Centro"
    assert fake_db.rows("profiles")[1]["telegram_user_id"] is None
    sign_in = fake_db.requests_for("/auth/v1/token", "POST")[0]
    assert sign_in.url.params["grant_type"] == "password"
    assert json.loads(sign_in.content)["email"] == "carla@academia.com"


async def test_authenticate_staff_rejects_bad_credentials(supabase, fake_db):
    fake_db.auth_responses["/token"] = httpx.Response(
        400, json={"error": "invalid_grant", "error_description": "Invalid login credentials"}
    )

    with pytest.raises(SupabaseError) as exc_info:
        await staff_svc.authenticate_staff(supabase, "x@y.com", "wrong", 1)

    assert exc_info.value.status_code == 400
    assert exc_info.value.user_message == "Invalid login credentials"


async def test_authenticate_staff_without_profile(supabase, fake_db):
    fake_db.auth_responses["/token"] = httpx.Response(200, json={"user": {"id": "ghost"}})

    with pytest.raises(SupabaseError) as exc_info:
        await staff_svc.authenticate_staff(supabase, "x@y.com", "secret", 1)

    assert exc_info.value.status_code == 404


async def test_get_staff_by_telegram(supabase, fake_db):
    fake_db.seed("units", _unit())
    fake_db.seed("profiles", _profile(telegram_user_id=777))
    fake_db.seed("user_roles", {"user_id": "u1", "role": "recepcao"})

    found = await staff_svc.get_staff_by_telegram(supabase, 777)
    missing = await staff_svc.get_staff_by_telegram(supabase, 778)

    assert found is not None
    staff, unit = found
    assert staff.role is AppRole.RECEPCAO
    assert unit is not None and unit.id == UNIT_ID
    assert missing is None


async def test_list_managers_with_telegram(supabase, fake_db):
    fake_db.seed(
        "profiles",
        _profile(id="p1", user_id="u1", full_name="Ana", telegram_user_id=10),
        _profile(id="p2", user_id="u2", full_name="Bia"),
        _profile(id="p3", user_id="u3", full_name="Caio", telegram_user_id=30),
        _profile(id="p4", user_id="u4", full_name="Duda", unit_id="unit-2", telegram_user_id=40),
    )
    fake_db.seed(
        "user_roles",
        {"user_id": "u1", "role": "gestor"},
        {"user_id": "u2", "role": "gestor"},
        {"user_id": "u3", "role": "professor"},
        {"user_id": "u4", "role": "gestor"},
    )

    managers = await staff_svc.list_managers_with_telegram(supabase, UNIT_ID)

    assert [m.id for m in managers] == ["p1"]


async def test_upload_avatar_normalizes_jpeg(supabase, fake_db):
    fake_db.seed("profiles", _profile())
    profile = StaffProfile.model_validate(_profile())

    url = await staff_svc.upload_avatar(supabase, profile, b"jpg-bytes", "JPEG")

    assert url.endswith("/storage/v1/object/public/avatars/u1/avatar.jpg")
    assert fake_db.rows("profiles")[0]["avatar_url"] == url
    removal = fake_db.requests_for("/object/avatars", "DELETE")[0]
    assert json.loads(removal.content)["prefixes"] == ["u1/avatar.jpg", "u1/avatar.png", "u1/avatar.webp"]


async def test_upload_avatar_rejects_gif(supabase, fake_db):
    profile = StaffProfile.model_validate(_profile())

    with pytest.raises(ValueError):
        await staff_svc.upload_avatar(supabase, profile, b"x", "gif")

    assert fake_db.requests == []
