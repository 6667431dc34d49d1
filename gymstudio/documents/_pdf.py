"""Shared reportlab styles for generated documents."""

from __future__ import annotations

from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER, TA_JUSTIFY
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet

FALLBACK_UNIT_NAME = "Academia Boa Forma"


def build_styles() -> dict[str, ParagraphStyle]:
    base = getSampleStyleSheet()
    normal = ParagraphStyle("GymNormal", parent=base["Normal"], fontName="Helvetica", fontSize=9, leading=13)
    return {
        "unit": ParagraphStyle(
            "GymUnit", parent=normal, fontName="Helvetica-Bold", fontSize=18, leading=22, alignment=TA_CENTER
        ),
        "unit_info": ParagraphStyle("GymUnitInfo", parent=normal, fontSize=10, alignment=TA_CENTER),
        "title": ParagraphStyle(
            "GymTitle",
            parent=normal,
            fontName="Helvetica-Bold",
            fontSize=14,
            leading=18,
            alignment=TA_CENTER,
            spaceBefore=12,
            spaceAfter=12,
            textColor=colors.black,
        ),
        "section": ParagraphStyle(
            "GymSection", parent=normal, fontName="Helvetica-Bold", fontSize=10, spaceBefore=10, spaceAfter=6
        ),
        "body": ParagraphStyle("GymBody", parent=normal, leftIndent=14, alignment=TA_JUSTIFY),
        "bullet": ParagraphStyle("GymBullet", parent=normal, leftIndent=28),
        "small": ParagraphStyle("GymSmall", parent=normal, fontSize=8, alignment=TA_CENTER),
        "normal": normal,
    }


def text(value: object) -> str:
    """Escape a value for use inside a Paragraph."""
    return escape("" if value is None else str(value))
