import pytest

from gymstudio.core.bodyfat import (
    Gender,
    Protocol,
    Skinfolds,
    calculate_bmi,
    calculate_body_fat,
    classify_body_fat,
    required_skinfolds,
)


def test_required_skinfolds_per_protocol_and_gender():
    assert required_skinfolds(Protocol.POLLOCK3, Gender.MALE) == ["chest", "abdominal", "thigh"]
    assert required_skinfolds("pollock3", "female") == ["triceps", "suprailiac", "thigh"]
    assert len(required_skinfolds(Protocol.POLLOCK7, Gender.FEMALE)) == 7
    assert required_skinfolds("unknown", "male") == []


def test_pollock3_male():
    result = calculate_body_fat(
        Protocol.POLLOCK3, Gender.MALE, 30, 80, Skinfolds(chest=10, abdominal=20, thigh=15)
    )

    assert result is not None
    assert result.body_density == pytest.approx(1.0677, abs=1e-4)
    assert result.body_fat_percentage == pytest.approx(13.6, abs=0.1)
    assert result.fat_mass + result.lean_mass == pytest.approx(80, abs=0.1)
    assert result.protocol == "Pollock 3 Dobras (Masculino)"
    assert classify_body_fat(result.body_fat_percentage, Gender.MALE) == "Atleta"


def test_guedes_female():
    result = calculate_body_fat("guedes", "female", 25, 60, Skinfolds(triceps=20, suprailiac=15, thigh=25))

    assert result is not None
    assert result.body_fat_percentage == pytest.approx(25.5, abs=0.1)
    assert classify_body_fat(result.body_fat_percentage, "female") == "Aceitável"


def test_missing_or_zero_site_gives_no_result():
    assert calculate_body_fat("pollock3", "male", 30, 80, Skinfolds(chest=10, abdominal=20)) is None
    assert calculate_body_fat("pollock3", "male", 30, 80, Skinfolds(chest=10, abdominal=20, thigh=0)) is None
    assert calculate_body_fat("bogus", "male", 30, 80, Skinfolds(chest=10, abdominal=20, thigh=15)) is None


@pytest.mark.parametrize(
    "protocol, gender, age, folds, density, fat",
    [
        ("pollock3", "female", 25, dict(triceps=15, suprailiac=12, thigh=20), 1.05443, 19.45),
        (
            "pollock7",
            "male",
            30,
            dict(chest=10, axillary=10, triceps=10, subscapular=10, abdominal=10, suprailiac=10, thigh=10),
            1.07560,
            10.2,
        ),
        (
            "pollock7",
            "female",
            30,
            dict(chest=15, axillary=15, triceps=15, subscapular=15, abdominal=15, suprailiac=15, thigh=15),
            1.05001,
            21.4,
        ),
        ("guedes", "male", 30, dict(triceps=10, suprailiac=15, abdominal=25), 1.05743, 18.1),
    ],
)
def test_remaining_protocols(protocol, gender, age, folds, density, fat):
    result = calculate_body_fat(protocol, gender, age, 70, Skinfolds(**folds))

    assert result is not None
    assert result.body_density == pytest.approx(density, abs=1e-4)
    assert result.body_fat_percentage == pytest.approx(fat, abs=0.1)


def test_negative_site_gives_no_result():
    assert calculate_body_fat("pollock3", "male", 30, 80, Skinfolds(chest=10, abdominal=20, thigh=-5)) is None
    assert calculate_body_fat("guedes", "male", 30, 80, Skinfolds(triceps=-10, suprailiac=15, abdominal=25)) is None


@pytest.mark.parametrize(
    "percentage, gender, label",
    [(5, "male", "Essencial"), (16, "male", "Fitness"), (30, "male", "Obesidade"), (20, "female", "Atleta")],
)
def test_classification_bands(percentage, gender, label):
    assert classify_body_fat(percentage, gender) == label


def test_bmi():
    assert calculate_bmi(80, 180) == 24.7
    assert calculate_bmi(None, 180) is None
