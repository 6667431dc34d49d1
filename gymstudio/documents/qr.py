"""
Member access QR codes.

The payload is plain JSON and carries no signature; the check-in desk
re-validates the member before recording entry.
"""

from __future__ import annotations

import io
import json
from datetime import datetime
from typing import Any

import qrcode
from pydantic import BaseModel, Field

ACCESS_TYPE = "gym_access"


class AccessPayload(BaseModel):
    type: str = ACCESS_TYPE
    lead_id: str = Field(alias="leadId")
    # Milliseconds since the Unix epoch
    timestamp: int

    model_config = {"populate_by_name": True}

    @property
    def issued_at(self) -> datetime:
        return datetime.fromtimestamp(self.timestamp / 1000).astimezone()


def build_access_payload(lead_id: str, now: datetime) -> str:
    return json.dumps(
        {"type": ACCESS_TYPE, "leadId": lead_id, "timestamp": int(now.timestamp() * 1000)},
        separators=(",", ":"),
    )


def parse_access_payload(text: str) -> AccessPayload | None:
    try:
        data: Any = json.loads(text)
    except ValueError:
        return None
    if not isinstance(data, dict) or data.get("type") != ACCESS_TYPE:
        return None
    if not data.get("leadId") or not isinstance(data.get("timestamp"), (int, float)):
        return None
    return AccessPayload(leadId=str(data["leadId"]), timestamp=int(data["timestamp"]))


def render_qr_png(payload: str, box_size: int = 8, border: int = 2) -> bytes:
    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.constants.ERROR_CORRECT_H,
        box_size=box_size,
        border=border,
    )
    qr.add_data(payload)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()
