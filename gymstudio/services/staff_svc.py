"""Staff profiles: Telegram linking, roles and avatars."""

from __future__ import annotations

import logging
from typing import Any

from gymstudio.db.models import AppRole, StaffProfile, Unit
from gymstudio.db.supabase import SupabaseClient, SupabaseError, eq, in_, neq
from gymstudio.services import unit_svc

logger = logging.getLogger(__name__)


AVATAR_BUCKET = "avatars"
AVATAR_EXTENSIONS = ("jpg", "png", "webp")


async def _role_for(client: SupabaseClient, user_id: str) -> AppRole | None:
    row = await client.select_one("user_roles", filters={"user_id": eq(user_id)}, columns="role")
    return AppRole(row["role"]) if row else None


async def _with_role(client: SupabaseClient, row: dict[str, Any]) -> StaffProfile:
    return StaffProfile.model_validate({**row, "role": await _role_for(client, row["user_id"])})


async def get_staff_by_user_id(client: SupabaseClient, user_id: str) -> StaffProfile | None:
    row = await client.select_one("profiles", filters={"user_id": eq(user_id)})
    return await _with_role(client, row) if row else None


async def get_staff_by_telegram(
    client: SupabaseClient,
    telegram_user_id: int,
) -> tuple[StaffProfile, Unit | None] | None:
    """
    Fetch the staff profile linked to a Telegram user and its unit.

    Returns None when no profile carries this `telegram_user_id`.
    """

    row = await client.select_one("profiles", filters={"telegram_user_id": eq(telegram_user_id)})
    if row is None:
        return None

    staff = await _with_role(client, row)
    unit = await unit_svc.get_unit(client, staff.unit_id) if staff.unit_id else None
    return staff, unit


async def link_telegram(client: SupabaseClient, profile_id: str, telegram_user_id: int) -> StaffProfile:
    # A Telegram account links to one profile at a time
    await client.update(
        "profiles",
        {"telegram_user_id": eq(telegram_user_id), "id": neq(profile_id)},
        {"telegram_user_id": None},
    )
    row = await client.update_one("profiles", profile_id, {"telegram_user_id": telegram_user_id})
    return await _with_role(client, row)


async def authenticate_staff(
    client: SupabaseClient,
    email: str,
    password: str,
    telegram_user_id: int,
) -> tuple[StaffProfile, Unit | None]:
    """
    Sign in with the staff e-mail and password, then link the Telegram user.

    Raises SupabaseError when the credentials are rejected or no profile
    exists for the account.
    """

    session = await client.sign_in_with_password(email.strip().lower(), password)
    user_id = (session.get("user") or {}).get("id")
    if not user_id:
        raise SupabaseError("Sign-in response missing user id", detail=str(session))

    staff = await get_staff_by_user_id(client, user_id)
    if staff is None:
        raise SupabaseError("Perfil não encontrado para este usuário", status_code=404)

    staff = await link_telegram(client, staff.id, telegram_user_id)
    unit = await unit_svc.get_unit(client, staff.unit_id) if staff.unit_id else None
    logger.info("Linked Telegram user %s to profile %s", telegram_user_id, staff.id)
    return staff, unit


async def list_staff(client: SupabaseClient, unit_id: str) -> list[StaffProfile]:
    rows = await client.select("profiles", filters={"unit_id": eq(unit_id)}, order="full_name.asc")
    return [await _with_role(client, row) for row in rows]


async def list_by_role(client: SupabaseClient, unit_id: str, role: AppRole) -> list[StaffProfile]:
    role_rows = await client.select("user_roles", filters={"role": eq(AppRole(role).value)}, columns="user_id")
    user_ids = [r["user_id"] for r in role_rows]
    if not user_ids:
        return []
    rows = await client.select(
        "profiles",
        filters={"unit_id": eq(unit_id), "user_id": in_(user_ids)},
        order="full_name.asc",
    )
    return [StaffProfile.model_validate({**row, "role": AppRole(role).value}) for row in rows]


async def list_managers_with_telegram(client: SupabaseClient, unit_id: str) -> list[StaffProfile]:
    managers = await list_by_role(client, unit_id, AppRole.GESTOR)
    return [m for m in managers if m.telegram_user_id]


async def upload_avatar(
    client: SupabaseClient,
    profile: StaffProfile,
    content: bytes,
    extension: str = "jpg",
) -> str:
    """Replace the avatar under `{user_id}/avatar.<ext>` and store its public URL."""

    extension = extension.lower().lstrip(".")
    if extension == "jpeg":
        extension = "jpg"
    if extension not in AVATAR_EXTENSIONS:
        raise ValueError(f"Unsupported avatar type: {extension}")

    await client.remove(AVATAR_BUCKET, [f"{profile.user_id}/avatar.{ext}" for ext in AVATAR_EXTENSIONS])
    path = f"{profile.user_id}/avatar.{extension}"
    content_type = "image/jpeg" if extension == "jpg" else f"image/{extension}"
    await client.upload(AVATAR_BUCKET, path, content, content_type=content_type, upsert=True)

    url = client.public_url(AVATAR_BUCKET, path)
    await client.update_one("profiles", profile.id, {"avatar_url": url})
    return url
