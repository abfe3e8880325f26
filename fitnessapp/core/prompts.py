import json
from typing import Any, Optional

WEEKDAYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]
MEALS = ["breakfast", "lunch", "dinner", "snacks"]

CONSTITUTION_DIET_GUIDANCE = {
    "YANG_DEFICIENCY": "warming foods; avoid cold and raw foods",
    "YIN_DEFICIENCY": "cooling, moistening foods",
    "QI_DEFICIENCY": "easily digestible, energy-building foods",
    "PHLEGM_DAMPNESS": "light meals; avoid greasy food and dairy",
    "BLOOD_STASIS": "circulation-promoting foods",
    "BALANCED": "maintain equilibrium with varied whole foods",
}

POSTURE_SECTIONS = [
    "Head Position",
    "Shoulder Position",
    "Spine Alignment",
    "Pelvic Alignment",
    "Lower Extremity Alignment",
    "Foot and Ankle Assessment",
]

NO_POSTURE_ANALYSIS = "No posture analysis available. Focus on general postural health."


def _plan_schema_example() -> dict[str, Any]:
    return {
        "title": "short plan title",
        "diet": {
            day: {meal: ["item (TCM property)"] for meal in MEALS} for day in WEEKDAYS
        }
        | {"tips": ["diet tip", "Target daily caloric intake: <kcal> kcal"]},
        "exercise": {day: ["Type: exercise detail (purpose)"] for day in WEEKDAYS}
        | {"tips": ["exercise tip"]},
        "summary": "2-3 sentence overview",
    }


def build_posture_prompt() -> str:
    sections = "\n".join(
        f"## {name}\nObservation:\n...\nImpact:\n...\nRecommendation:\n...\n" for name in POSTURE_SECTIONS
    )
    return (
        "You are a professional posture analysis expert. Three photos follow: front view, side view, back view. "
        "Write an assessment report for a general adult audience. Explain any technical term briefly. "
        "Cover observation, impact and general recommendations only; do not prescribe specific exercises. "
        "Be honest but encouraging and give realistic improvement timeframes.\n\n"
        "Start directly with '# Posture Analysis Report' and end after the summary section. "
        "No introduction, disclaimer or closing note.\n\n"
        "# Posture Analysis Report\n## Overall Assessment\n...\n"
        f"{sections}"
        "## Summary and Priority Areas\nKey Findings:\n...\nPriority Recommendations:\n...\nExpected Timeline:\n...\n"
    )


def build_plan_prompt(
    *,
    user_name: str,
    age: int,
    sex: Optional[str],
    height_cm: Optional[int],
    weight_kg: Optional[int],
    bmi: str,
    calorie_target: str,
    constitution: str,
    posture_analysis: Optional[str],
) -> str:
    body = {
        "task": "Create a personalized weekly health plan combining Traditional Chinese Medicine and sports science.",
        "user_profile": {
            "name": user_name,
            "age_years": age,
            "sex": sex or "Not specified",
            "height_cm": height_cm or "Not specified",
            "weight_kg": weight_kg or "Not specified",
            "bmi": bmi,
            "calorie_target_kcal": calorie_target,
        },
        "constitution": constitution,
        "posture_analysis": posture_analysis or NO_POSTURE_ANALYSIS,
        "instructions": {
            "diet": [
                "Different meals for every day from monday to sunday.",
                f"Constitution focus: {CONSTITUTION_DIET_GUIDANCE.get(constitution, CONSTITUTION_DIET_GUIDANCE['BALANCED'])}.",
                "Scale portions to the BMI and calorie target.",
                "3-4 breakfast, 3-4 lunch, 3-4 dinner items and 3 snacks per day, each with its TCM property.",
            ],
            "exercise": [
                "Base every exercise on the posture issues above.",
                "Label each as aerobic, anaerobic, stretching or flexibility and give duration, sets and reps.",
                "Address head position, shoulder alignment, spine curvature and pelvic tilt.",
                "Progress difficulty through the week and balance strengthening with stretching.",
            ],
            "format": "Return only valid JSON matching response_schema. No markdown, no code fences.",
        },
        "response_schema": _plan_schema_example(),
    }
    return json.dumps(body, separators=(",", ":"))


def build_plan_chat_prompt(current_plan: dict[str, Any], user_message: str) -> str:
    body = {
        "task": "Chat with the user about their weekly health plan and apply the changes they ask for.",
        "current_plan": current_plan,
        "user_message": user_message,
        "instructions": [
            "The diet has different meals per weekday, each with breakfast, lunch, dinner and snacks lists.",
            "If the user names a day, change only that day; otherwise apply the change to every day.",
            "Keep Traditional Chinese Medicine principles in every modification.",
        ],
        "reply_format": (
            "RESPONSE: <2-3 friendly sentences explaining what changed>\n"
            "PLAN: <complete updated plan as JSON with the same structure>"
        ),
    }
    return json.dumps(body, separators=(",", ":"))


def build_coach_analysis_prompt(student_data: Any) -> str:
    body = {
        "task": (
            "As a professional fitness coach and health expert, analyze this student's constitution, "
            "posture and health status."
        ),
        "student_data": student_data,
        "must_include": {
            "analysis": "detailed professional analysis",
            "riskAnalysis": "health risks and areas of concern",
            "recommendations": "specific, actionable recommendations for the student",
            "knowledgeLinks": [{"title": "resource title", "url": "https://...", "description": "why it helps"}],
        },
        "format": "Return strict JSON with exactly the keys in must_include.",
    }
    return json.dumps(body, separators=(",", ":"))


def build_coach_chat_prompt(
    *,
    title: str,
    student_data: Any,
    analysis: Optional[str],
    risk_analysis: Optional[str],
    recommendations: Optional[str],
    chat_history: list[dict[str, str]],
    message: str,
) -> str:
    body = {
        "role": (
            "You are a fitness coach and health expert assistant. You already analyzed this student's report "
            "and now answer the coach's follow-up questions."
        ),
        "report": {
            "title": title,
            "student_data": student_data,
            "analysis": analysis or "Not available",
            "risk_analysis": risk_analysis or "Not available",
            "recommendations": recommendations or "Not available",
        },
        "chat_history": chat_history,
        "coach_message": message,
        "instructions": (
            "Explain results, add recommendations, discuss risks, suggest exercises or follow-up actions, "
            "and clarify technical terms. Be professional and actionable. Reply in plain text."
        ),
    }
    return json.dumps(body, separators=(",", ":"))
