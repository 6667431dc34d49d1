"""
Physical assessments.

BMI and skinfold body fat are computed here before insert, so stored rows
always match the measurements they were taken from.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Optional

from pydantic import BaseModel, Field

from gymstudio.core.bodyfat import Gender, Protocol, Skinfolds, calculate_bmi, calculate_body_fat
from gymstudio.db.models import PhysicalAssessment
from gymstudio.db.supabase import SupabaseClient, eq


DEFAULT_AGE = 30


class AssessmentInput(BaseModel):
    assessment_date: date
    weight: Optional[float] = None
    height: Optional[float] = None
    body_fat_percentage: Optional[float] = None
    lean_mass: Optional[float] = None
    muscle_mass: Optional[float] = None
    skinfolds: Skinfolds = Field(default_factory=Skinfolds)
    # circumferences in cm
    chest: Optional[float] = None
    waist: Optional[float] = None
    hips: Optional[float] = None
    neck: Optional[float] = None
    left_arm: Optional[float] = None
    right_arm: Optional[float] = None
    left_thigh: Optional[float] = None
    right_thigh: Optional[float] = None
    left_calf: Optional[float] = None
    right_calf: Optional[float] = None
    notes: Optional[str] = None


def age_on(birth_date: Optional[date], today: date) -> int:
    if birth_date is None:
        return DEFAULT_AGE
    age = today.year - birth_date.year
    if (today.month, today.day) < (birth_date.month, birth_date.day):
        age -= 1
    return age


def gender_from_lead(value: Optional[str]) -> Gender:
    return Gender.MALE if (value or "").lower() in ("m", "masculino", "male") else Gender.FEMALE


async def list_assessments(client: SupabaseClient, lead_id: str) -> list[PhysicalAssessment]:
    rows = await client.select(
        "physical_assessments",
        filters={"lead_id": eq(lead_id)},
        order="assessment_date.asc",
    )
    return [PhysicalAssessment.model_validate(row) for row in rows]


async def latest_assessment(client: SupabaseClient, lead_id: str) -> PhysicalAssessment | None:
    row = await client.select_one(
        "physical_assessments",
        filters={"lead_id": eq(lead_id)},
        order="assessment_date.desc",
    )
    return PhysicalAssessment.model_validate(row) if row else None


def build_assessment_payload(
    data: AssessmentInput,
    *,
    protocol: Optional[Protocol] = None,
    gender: Optional[Gender] = None,
    age: Optional[int] = None,
) -> dict[str, Any]:
    """
    Row for `physical_assessments`.

    BMI is derived whenever weight and height are present. When a
    protocol, gender and age are given and the skinfolds suffice, the
    computed fat percentage and lean mass take precedence over manual
    values.
    """

    payload = data.model_dump(mode="json", exclude={"skinfolds"})
    for site, value in data.skinfolds.model_dump().items():
        payload[f"{site}_skinfold"] = value

    bmi = calculate_bmi(data.weight, data.height)
    if bmi is not None:
        payload["bmi"] = bmi

    if protocol is not None and gender is not None and age is not None and data.weight:
        result = calculate_body_fat(protocol, gender, age, data.weight, data.skinfolds)
        if result is not None:
            payload["body_fat_percentage"] = result.body_fat_percentage
            payload["lean_mass"] = result.lean_mass
            payload["protocol"] = result.protocol
    return payload


async def create_assessment(
    client: SupabaseClient,
    unit_id: str,
    lead_id: str,
    data: AssessmentInput,
    *,
    protocol: Optional[Protocol] = None,
    gender: Optional[Gender] = None,
    age: Optional[int] = None,
    assessed_by: Optional[str] = None,
) -> PhysicalAssessment:
    payload = build_assessment_payload(data, protocol=protocol, gender=gender, age=age)
    payload.update({"unit_id": unit_id, "lead_id": lead_id, "assessed_by": assessed_by})
    return PhysicalAssessment.model_validate(await client.insert_one("physical_assessments", payload))
