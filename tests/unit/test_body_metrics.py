from datetime import date

from fitnessapp.core.body_metrics import age_from_birth_date, calculate_bmi, estimate_calories


def test_age_defaults_without_birth_date() -> None:
    assert age_from_birth_date(None) == 30


def test_age_from_birth_date() -> None:
    assert age_from_birth_date(date(1990, 1, 1), today=date(2020, 6, 1)) == 30


def test_bmi_one_decimal() -> None:
    assert calculate_bmi(180, 81) == "25.0"
    assert calculate_bmi(None, 70) == "Not available"


def test_calories_mifflin_st_jeor() -> None:
    # Male: 10*80 + 6.25*180 - 5*30 + 5 = 1780; * 1.55 = 2759.
    assert estimate_calories(80, 180, 30, "male") == "2759"
    # Female: 10*60 + 6.25*165 - 5*30 - 161 = 1320.25; * 1.55 = 2046.39.
    assert estimate_calories(60, 165, 30, "female") == "2046"


def test_calories_default_when_measurements_missing() -> None:
    assert estimate_calories(None, 170, 30, "male") == "2000"
