"""
Body fat estimation from skinfold measurements.

Protocols:
- Pollock 3-site (men: chest, abdominal, thigh; women: triceps, suprailiac, thigh)
- Pollock 7-site (chest, axillary, triceps, subscapular, abdominal, suprailiac, thigh)
- Guedes (men: triceps, suprailiac, abdominal; women: triceps, suprailiac, thigh)

Body density is converted to fat percentage with the Siri equation.
"""

from __future__ import annotations

import math
from enum import Enum
from typing import Mapping, Optional

from pydantic import BaseModel


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"


class Protocol(str, Enum):
    POLLOCK3 = "pollock3"
    POLLOCK7 = "pollock7"
    GUEDES = "guedes"


class Skinfolds(BaseModel):
    """Skinfold thickness in millimetres."""

    triceps: Optional[float] = None
    chest: Optional[float] = None
    abdominal: Optional[float] = None
    suprailiac: Optional[float] = None
    thigh: Optional[float] = None
    subscapular: Optional[float] = None
    axillary: Optional[float] = None


class BodyFatResult(BaseModel):
    body_density: float
    body_fat_percentage: float
    lean_mass: float
    fat_mass: float
    protocol: str


SKINFOLD_LABELS: dict[str, str] = {
    "triceps": "Tríceps",
    "chest": "Peitoral",
    "abdominal": "Abdominal",
    "suprailiac": "Suprailíaca",
    "thigh": "Coxa",
    "subscapular": "Subescapular",
    "axillary": "Axilar Média",
}

_POLLOCK7_SITES = ["chest", "axillary", "triceps", "subscapular", "abdominal", "suprailiac", "thigh"]

_REQUIRED_SITES: dict[tuple[Protocol, Gender], list[str]] = {
    (Protocol.POLLOCK3, Gender.MALE): ["chest", "abdominal", "thigh"],
    (Protocol.POLLOCK3, Gender.FEMALE): ["triceps", "suprailiac", "thigh"],
    (Protocol.POLLOCK7, Gender.MALE): _POLLOCK7_SITES,
    (Protocol.POLLOCK7, Gender.FEMALE): _POLLOCK7_SITES,
    (Protocol.GUEDES, Gender.MALE): ["triceps", "suprailiac", "abdominal"],
    (Protocol.GUEDES, Gender.FEMALE): ["triceps", "suprailiac", "thigh"],
}

_PROTOCOL_NAMES: dict[tuple[Protocol, Gender], str] = {
    (Protocol.POLLOCK3, Gender.MALE): "Pollock 3 Dobras (Masculino)",
    (Protocol.POLLOCK3, Gender.FEMALE): "Pollock 3 Dobras (Feminino)",
    (Protocol.POLLOCK7, Gender.MALE): "Pollock 7 Dobras (Masculino)",
    (Protocol.POLLOCK7, Gender.FEMALE): "Pollock 7 Dobras (Feminino)",
    (Protocol.GUEDES, Gender.MALE): "Guedes (Masculino)",
    (Protocol.GUEDES, Gender.FEMALE): "Guedes (Feminino)",
}


def density_to_body_fat(density: float) -> float:
    """Siri equation: %fat = 495 / density - 450."""
    return (495 / density) - 450


def pollock3_male(chest: float, abdominal: float, thigh: float, age: float) -> float:
    total = chest + abdominal + thigh
    return 1.10938 - (0.0008267 * total) + (0.0000016 * total * total) - (0.0002574 * age)


def pollock3_female(triceps: float, suprailiac: float, thigh: float, age: float) -> float:
    total = triceps + suprailiac + thigh
    return 1.0994921 - (0.0009929 * total) + (0.0000023 * total * total) - (0.0001392 * age)


def pollock7_male(total: float, age: float) -> float:
    return 1.112 - (0.00043499 * total) + (0.00000055 * total * total) - (0.00028826 * age)


def pollock7_female(total: float, age: float) -> float:
    return 1.097 - (0.00046971 * total) + (0.00000056 * total * total) - (0.00012828 * age)


def guedes_male(triceps: float, suprailiac: float, abdominal: float) -> float:
    return 1.17136 - (0.06706 * math.log10(triceps + suprailiac + abdominal))


def guedes_female(triceps: float, suprailiac: float, thigh: float) -> float:
    return 1.1665 - (0.07063 * math.log10(triceps + suprailiac + thigh))


def required_skinfolds(protocol: Protocol | str, gender: Gender | str) -> list[str]:
    try:
        key = (Protocol(protocol), Gender(gender))
    except ValueError:
        return []
    return list(_REQUIRED_SITES[key])


def _body_density(protocol: Protocol, gender: Gender, age: float, folds: Mapping[str, float]) -> float:
    if protocol is Protocol.POLLOCK3:
        if gender is Gender.MALE:
            return pollock3_male(folds["chest"], folds["abdominal"], folds["thigh"], age)
        return pollock3_female(folds["triceps"], folds["suprailiac"], folds["thigh"], age)
    if protocol is Protocol.POLLOCK7:
        total = sum(folds[site] for site in _POLLOCK7_SITES)
        if gender is Gender.MALE:
            return pollock7_male(total, age)
        return pollock7_female(total, age)
    if gender is Gender.MALE:
        return guedes_male(folds["triceps"], folds["suprailiac"], folds["abdominal"])
    return guedes_female(folds["triceps"], folds["suprailiac"], folds["thigh"])


def calculate_body_fat(
    protocol: Protocol | str,
    gender: Gender | str,
    age: float,
    weight: float,
    skinfolds: Skinfolds,
) -> BodyFatResult | None:
    """
    Calculate body fat using the given protocol.

    Returns None when the protocol/gender is unknown or any site the
    protocol needs is missing, zero or negative.
    """

    try:
        protocol = Protocol(protocol)
        gender = Gender(gender)
    except ValueError:
        return None

    values = skinfolds.model_dump()
    folds: dict[str, float] = {}
    for site in _REQUIRED_SITES[(protocol, gender)]:
        value = values.get(site)
        if not value or value <= 0:
            return None
        folds[site] = value

    density = _body_density(protocol, gender, age, folds)
    body_fat = density_to_body_fat(density)
    fat_mass = (body_fat / 100) * weight
    lean_mass = weight - fat_mass

    return BodyFatResult(
        body_density=round(density, 5),
        body_fat_percentage=round(body_fat, 1),
        lean_mass=round(lean_mass, 1),
        fat_mass=round(fat_mass, 1),
        protocol=_PROTOCOL_NAMES[(protocol, gender)],
    )


def classify_body_fat(percentage: float, gender: Gender | str) -> str:
    """Return the Portuguese classification band for a fat percentage."""

    if Gender(gender) is Gender.MALE:
        bands = ((6, "Essencial"), (14, "Atleta"), (18, "Fitness"), (25, "Aceitável"))
    else:
        bands = ((14, "Essencial"), (21, "Atleta"), (25, "Fitness"), (32, "Aceitável"))

    for upper, label in bands:
        if percentage < upper:
            return label
    return "Obesidade"


def calculate_bmi(weight_kg: float | None, height_cm: float | None) -> float | None:
    if not weight_kg or not height_cm:
        return None
    height_m = height_cm / 100
    return round(weight_kg / (height_m * height_m), 1)
