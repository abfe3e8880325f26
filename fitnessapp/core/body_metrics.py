from datetime import date
from typing import Optional

DEFAULT_AGE_YEARS = 30
DEFAULT_CALORIE_TARGET = "2000"
ACTIVITY_FACTOR = 1.55


def age_from_birth_date(birth_date: Optional[date], today: Optional[date] = None) -> int:
    if not birth_date:
        return DEFAULT_AGE_YEARS
    current = today or date.today()
    # 365-day years, matching how ages are shown elsewhere in the product.
    return (current - birth_date).days // 365


def calculate_bmi(height_cm: Optional[float], weight_kg: Optional[float]) -> str:
    if not height_cm or not weight_kg:
        return "Not available"
    height_m = height_cm / 100.0
    return f"{weight_kg / (height_m * height_m):.1f}"


def estimate_calories(
    weight_kg: Optional[float], height_cm: Optional[float], age: int, sex: Optional[str]
) -> str:
    """Mifflin-St Jeor BMR scaled by a moderate activity factor."""
    if not weight_kg or not height_cm:
        return DEFAULT_CALORIE_TARGET
    if (sex or "").lower() == "male":
        bmr = 10 * weight_kg + 6.25 * height_cm - 5 * age + 5
    else:
        bmr = 10 * weight_kg + 6.25 * height_cm - 5 * age - 161
    return str(round(bmr * ACTIVITY_FACTOR))
