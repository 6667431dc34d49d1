from datetime import date

import pytest

from gymstudio.core.bodyfat import Gender, Protocol, Skinfolds
from gymstudio.services import assessment_svc, workout_svc
from gymstudio.services.assessment_svc import AssessmentInput

from .factories import UNIT_ID


def test_age_and_gender_helpers():
    assert assessment_svc.age_on(date(1990, 6, 20), date(2024, 6, 19)) == 33
    assert assessment_svc.age_on(date(1990, 6, 20), date(2024, 6, 20)) == 34
    assert assessment_svc.age_on(None, date(2024, 6, 20)) == assessment_svc.DEFAULT_AGE
    assert assessment_svc.gender_from_lead("Masculino") is Gender.MALE
    assert assessment_svc.gender_from_lead(None) is Gender.FEMALE


def test_payload_derives_bmi_and_body_fat():
    data = AssessmentInput(
        assessment_date=date(2024, 6, 10),
        weight=80,
        height=180,
        body_fat_percentage=99,
        skinfolds=Skinfolds(chest=10, abdominal=20, thigh=15),
    )

    payload = assessment_svc.build_assessment_payload(data, protocol=Protocol.POLLOCK3, gender=Gender.MALE, age=30)

    assert payload["bmi"] == 24.7
    assert payload["body_fat_percentage"] == pytest.approx(13.6, abs=0.1)
    assert payload["chest_skinfold"] == 10
    assert payload["triceps_skinfold"] is None
    assert payload["protocol"] == "Pollock 3 Dobras (Masculino)"
    assert payload["assessment_date"] == "2024-06-10"


def test_payload_keeps_manual_values_without_protocol():
    data = AssessmentInput(assessment_date=date(2024, 6, 10), weight=70, body_fat_percentage=18.5)

    payload = assessment_svc.build_assessment_payload(data)

    assert payload["body_fat_percentage"] == 18.5
    assert "bmi" not in payload


async def test_create_and_read_back_assessments(supabase, fake_db):
    await assessment_svc.create_assessment(
        supabase, UNIT_ID, "lead-1", AssessmentInput(assessment_date=date(2024, 5, 1), weight=82)
    )
    await assessment_svc.create_assessment(
        supabase, UNIT_ID, "lead-1", AssessmentInput(assessment_date=date(2024, 6, 1), weight=80),
        assessed_by="prof-1",
    )

    history = await assessment_svc.list_assessments(supabase, "lead-1")
    latest = await assessment_svc.latest_assessment(supabase, "lead-1")

    assert [item.weight for item in history] == [82, 80]
    assert latest is not None and latest.assessed_by == "prof-1"


async def test_list_workouts_orders_exercises(supabase, fake_db):
    fake_db.seed(
        "workouts",
        {
            "id": "w1",
            "unit_id": UNIT_ID,
            "lead_id": "lead-1",
            "name": "Treino A",
            "is_active": True,
            "created_at": "2024-06-01T10:00:00+00:00",
            "exercises": [
                {"id": "e2", "workout_id": "w1", "exercise_name": "Remada", "sets": 3, "reps": "12", "order_index": 1},
                {"id": "e1", "workout_id": "w1", "exercise_name": "Supino", "sets": 4, "reps": "10", "order_index": 0},
            ],
        },
        {"id": "w2", "unit_id": UNIT_ID, "lead_id": "lead-1", "name": "Antigo", "is_active": False},
    )

    workouts = await workout_svc.list_workouts(supabase, UNIT_ID, "lead-1")

    assert [w.name for w in workouts] == ["Treino A"]
    assert [e.exercise_name for e in workouts[0].exercises] == ["Supino", "Remada"]


async def test_add_exercise_appends_after_last(supabase, fake_db):
    fake_db.seed(
        "workout_exercises",
        {"id": "e1", "workout_id": "w1", "exercise_name": "Supino", "sets": 4, "reps": "10", "order_index": 0},
    )

    exercise = await workout_svc.add_exercise(supabase, "w1", "Crucifixo")

    assert exercise.order_index == 1
    assert exercise.sets == 3
