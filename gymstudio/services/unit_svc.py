"""Units (tenants) and their branding."""

from __future__ import annotations

import logging
from typing import Any, Optional

from gymstudio.core.theme import UnitTheme, hex_to_hsl
from gymstudio.db.models import Unit
from gymstudio.db.supabase import SupabaseClient, eq

logger = logging.getLogger(__name__)


LOGO_BUCKET = "logos"
LOGO_CONTENT_TYPES = {
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "webp": "image/webp",
    "svg": "image/svg+xml",
    "ico": "image/x-icon",
}
BRANDING_FIELDS = (
    "logo_url",
    "favicon_url",
    "primary_color",
    "dark_primary_color",
    "dark_background_color",
    "dark_accent_color",
    "font_family",
)


async def get_unit(client: SupabaseClient, unit_id: str) -> Unit | None:
    row = await client.select_one("units", filters={"id": eq(unit_id)})
    return Unit.model_validate(row) if row else None


async def list_units(client: SupabaseClient, *, active_only: bool = False) -> list[Unit]:
    filters = {"is_active": eq(True)} if active_only else None
    rows = await client.select("units", filters=filters, order="name.asc")
    return [Unit.model_validate(row) for row in rows]


async def create_unit(client: SupabaseClient, name: str, **fields: Any) -> Unit:
    return Unit.model_validate(await client.insert_one("units", {"name": name, **fields}))


async def update_unit(client: SupabaseClient, unit_id: str, changes: dict[str, Any]) -> Unit:
    return Unit.model_validate(await client.update_one("units", unit_id, changes))


async def set_unit_active(client: SupabaseClient, unit_id: str, is_active: bool) -> Unit:
    return await update_unit(client, unit_id, {"is_active": is_active})


async def update_unit_branding(client: SupabaseClient, unit_id: str, branding: dict[str, Any]) -> Unit:
    """
    Update the branding columns only.

    Colors must be `#RRGGBB`; an empty value clears the column.
    """

    changes: dict[str, Any] = {}
    for key, value in branding.items():
        if key not in BRANDING_FIELDS:
            raise ValueError(f"Unknown branding field: {key}")
        if key.endswith("_color") and value and hex_to_hsl(value) is None:
            raise ValueError(f"Invalid color for {key}: {value}")
        changes[key] = value or None
    return await update_unit(client, unit_id, changes)


async def upload_unit_logo(
    client: SupabaseClient,
    unit_id: str,
    content: bytes,
    extension: str,
    *,
    kind: str = "logo",
) -> str:
    """Store a logo (or favicon) in the `logos` bucket and return its public URL."""

    extension = extension.lower().lstrip(".")
    content_type = LOGO_CONTENT_TYPES.get(extension)
    if content_type is None:
        raise ValueError(f"Unsupported image type: {extension}")

    path = f"{unit_id}/{kind}.{extension}"
    await client.upload(LOGO_BUCKET, path, content, content_type=content_type, upsert=True)
    url = client.public_url(LOGO_BUCKET, path)
    logger.info("Uploaded %s for unit %s", kind, unit_id)
    return url


def unit_theme(unit: Optional[Unit]) -> UnitTheme:
    if unit is None:
        return UnitTheme()
    return UnitTheme.from_unit(unit)
