from __future__ import annotations

from typing import NamedTuple, Optional

from pydantic import BaseModel


DEFAULT_PRIMARY_COLOR = "#3B82F6"
DEFAULT_FONT_FAMILY = "Inter"

DARK_TEXT = "220 20% 10%"
LIGHT_TEXT = "0 0% 100%"

FONT_URLS: dict[str, str] = {
    "Inter": "https://fonts.googleapis.com/css2?family=Inter:wght@300;400;500;600;700&display=swap",
    "Roboto": "https://fonts.googleapis.com/css2?family=Roboto:wght@300;400;500;700&display=swap",
    "Open Sans": "https://fonts.googleapis.com/css2?family=Open+Sans:wght@300;400;500;600;700&display=swap",
    "Montserrat": "https://fonts.googleapis.com/css2?family=Montserrat:wght@300;400;500;600;700&display=swap",
    "Poppins": "https://fonts.googleapis.com/css2?family=Poppins:wght@300;400;500;600;700&display=swap",
    "Lato": "https://fonts.googleapis.com/css2?family=Lato:wght@300;400;700&display=swap",
    "Oswald": "https://fonts.googleapis.com/css2?family=Oswald:wght@300;400;500;600;700&display=swap",
    "Raleway": "https://fonts.googleapis.com/css2?family=Raleway:wght@300;400;500;600;700&display=swap",
}


class HSL(NamedTuple):
    h: int
    s: int
    l: int  # noqa: E741

    def css(self) -> str:
        return f"{self.h} {self.s}% {self.l}%"


class ColorVariations(BaseModel):
    primary: str
    primary_foreground: str
    primary_glow: str
    ring: str
    accent: str
    accent_foreground: str


def _round_half_up(value: float) -> int:
    # .5 rounds up; round() would round half to even
    return int(value + 0.5)


def hex_to_hsl(hex_color: str) -> HSL | None:
    """Convert '#RRGGBB' (leading '#' optional) to rounded HSL."""

    value = hex_color.replace("#", "")
    if len(value) != 6:
        return None
    try:
        r = int(value[0:2], 16) / 255
        g = int(value[2:4], 16) / 255
        b = int(value[4:6], 16) / 255
    except ValueError:
        return None

    high = max(r, g, b)
    low = min(r, g, b)
    h = 0.0
    s = 0.0
    lightness = (high + low) / 2

    if high != low:
        d = high - low
        s = d / (2 - high - low) if lightness > 0.5 else d / (high + low)
        if high == r:
            h = ((g - b) / d + (6 if g < b else 0)) / 6
        elif high == g:
            h = ((b - r) / d + 2) / 6
        else:
            h = ((r - g) / d + 4) / 6

    return HSL(
        h=_round_half_up(h * 360),
        s=_round_half_up(s * 100),
        l=_round_half_up(lightness * 100),
    )


def _foreground_for(hsl: HSL) -> str:
    return DARK_TEXT if hsl.l > 50 else LIGHT_TEXT


def color_variations(hsl: HSL) -> ColorVariations:
    return ColorVariations(
        primary=hsl.css(),
        primary_foreground=_foreground_for(hsl),
        primary_glow=f"{hsl.h} {min(hsl.s + 10, 100)}% {min(hsl.l + 15, 90)}%",
        ring=hsl.css(),
        accent=f"{hsl.h} {max(hsl.s - 20, 20)}% {min(hsl.l + 25, 95)}%",
        accent_foreground=f"{hsl.h} {hsl.s}% {max(hsl.l - 30, 20)}%",
    )


def light_theme_css(primary_color: str) -> str | None:
    hsl = hex_to_hsl(primary_color)
    if hsl is None:
        return None
    colors = color_variations(hsl)
    return (
        ":root {\n"
        f"  --primary: {colors.primary};\n"
        f"  --primary-foreground: {colors.primary_foreground};\n"
        f"  --ring: {colors.ring};\n"
        "}\n"
    )


def dark_theme_css(
    dark_primary_color: str | None,
    dark_background_color: str | None,
    dark_accent_color: str | None,
    fallback_primary_color: str,
) -> str:
    lines = [".dark {"]

    primary = hex_to_hsl(dark_primary_color or fallback_primary_color)
    if primary is not None:
        colors = color_variations(primary)
        lines.append(f"  --primary: {colors.primary};")
        lines.append(f"  --primary-foreground: {colors.primary_foreground};")
        lines.append(f"  --ring: {colors.ring};")

    background = hex_to_hsl(dark_background_color) if dark_background_color else None
    if background is not None:
        foreground_l = 98 if background.l < 20 else 95
        lines.append(f"  --background: {background.css()};")
        lines.append(f"  --foreground: 0 0% {foreground_l}%;")
        lines.append(f"  --card: {background.h} {background.s}% {min(background.l + 5, 20)}%;")
        lines.append(f"  --card-foreground: 0 0% {foreground_l}%;")
        lines.append(f"  --muted: {background.h} {background.s}% {min(background.l + 10, 25)}%;")

    accent = hex_to_hsl(dark_accent_color) if dark_accent_color else None
    if accent is not None:
        lines.append(f"  --accent: {accent.css()};")
        lines.append(f"  --accent-foreground: {_foreground_for(accent)};")

    lines.append("}")
    return "\n".join(lines) + "\n"


class UnitTheme(BaseModel):
    primary_color: str = DEFAULT_PRIMARY_COLOR
    font_family: str = DEFAULT_FONT_FAMILY
    logo_url: Optional[str] = None
    favicon_url: Optional[str] = None
    dark_primary_color: Optional[str] = None
    dark_background_color: Optional[str] = None
    dark_accent_color: Optional[str] = None

    @classmethod
    def from_unit(cls, unit: BaseModel) -> "UnitTheme":
        data = unit.model_dump()
        return cls(
            primary_color=data.get("primary_color") or DEFAULT_PRIMARY_COLOR,
            font_family=data.get("font_family") or DEFAULT_FONT_FAMILY,
            logo_url=data.get("logo_url"),
            favicon_url=data.get("favicon_url"),
            dark_primary_color=data.get("dark_primary_color"),
            dark_background_color=data.get("dark_background_color"),
            dark_accent_color=data.get("dark_accent_color"),
        )

    @property
    def font_url(self) -> str | None:
        return FONT_URLS.get(self.font_family)

    @property
    def font_stack(self) -> str:
        return f'"{self.font_family}", system-ui, sans-serif'

    def css(self) -> str:
        """Full stylesheet: light variables, dark overrides and font."""

        parts = []
        light = light_theme_css(self.primary_color)
        if light:
            parts.append(light)
        parts.append(
            dark_theme_css(
                self.dark_primary_color,
                self.dark_background_color,
                self.dark_accent_color,
                self.primary_color,
            )
        )
        parts.append(f":root {{\n  --font-family: {self.font_stack};\n}}\n")
        return "".join(parts)
