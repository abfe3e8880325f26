import argparse
import json
import os
from pathlib import Path
from typing import Optional

from sqlalchemy import func

from fitnessapp.core.constitution import choose_constitution, compute_scores
from fitnessapp.core.prompts import MEALS, WEEKDAYS
from fitnessapp.core.rewards import LEDGER_SEED
from fitnessapp.core.security import get_password_hash
from fitnessapp.db import session as db_session
from fitnessapp.db.models import Assessment, Plan, PostureAnalysis, Reward, User

DEMO_PASSWORD = "password123"

DEMO_ACCOUNTS = [
    {"email": "demo@user.com", "name": "Demo User", "role": "USER", "coach_status": None, "points": 5000},
    {"email": "coach@test.com", "name": "Demo Coach", "role": "COACH", "coach_status": "APPROVED", "points": 0},
    {"email": "admin@test.com", "name": "Admin", "role": "ADMIN", "coach_status": None, "points": 0},
]

# Leans towards phlegm-dampness.
SAMPLE_ANSWERS = {
    "yang_coldHands": 1,
    "yang_lowEnergy": 2,
    "yin_dryMouth": 1,
    "yin_nightSweats": 0,
    "qi_shortBreath": 2,
    "qi_fatigue": 1,
    "phlegm_heavyBody": 4,
    "phlegm_oilySkin": 4,
    "stasis_darkCircles": 1,
    "stasis_bruising": 0,
}

SAMPLE_POSTURE_MD = (
    "# Posture Analysis Report\n"
    "## Overall Assessment\nMild forward head posture with slightly rounded shoulders.\n"
    "## Summary and Priority Areas\nKey Findings:\nForward head, rounded shoulders.\n"
    "Priority Recommendations:\nDaily mobility work and desk ergonomics.\n"
    "Expected Timeline:\n6-8 weeks of consistent practice.\n"
)


def resolve_db_path(override: Optional[str]) -> Path:
    if override:
        return Path(override).expanduser().resolve()
    return Path(os.getenv("DB_PATH", "./data/fitnessapp.db")).expanduser().resolve()


def sample_plan_content() -> dict:
    diet = {day: {meal: [f"{meal} option for {day} (warming)"] for meal in MEALS} for day in WEEKDAYS}
    diet["tips"] = ["Favour light, warm meals.", "Target daily caloric intake: 2000 kcal"]
    exercise = {
        day: ["Aerobic: 30 minute brisk walk (circulation)", "Stretching: chin tucks 3x10 (neck alignment)"]
        for day in WEEKDAYS
    }
    exercise["tips"] = ["Warm up for five minutes before each session."]
    return {
        "title": "Phlegm-Dampness Balance Week",
        "diet": diet,
        "exercise": exercise,
        "summary": "Light warming meals with daily walking and posture drills.",
    }


def upsert_user(db, account: dict) -> tuple[User, bool]:
    user = db.query(User).filter(User.email == account["email"]).first()
    created = user is None
    if created:
        user = User(email=account["email"])
        db.add(user)
    user.name = account["name"]
    user.role = account["role"]
    user.coach_status = account["coach_status"]
    user.points = account["points"]
    user.password_hash = get_password_hash(DEMO_PASSWORD)
    db.flush()
    record_opening_balance(db, user)
    return user, created


def record_opening_balance(db, user: User) -> None:
    # Ledger sum must equal the stored balance.
    recorded = db.query(func.coalesce(func.sum(Reward.points), 0)).filter(Reward.user_id == user.id).scalar()
    if user.points != recorded:
        db.add(Reward(user_id=user.id, points=user.points - recorded, kind=LEDGER_SEED, note="opening balance"))
        db.flush()


def seed_demo_data(db, user: User) -> None:
    scores = compute_scores(SAMPLE_ANSWERS)
    assessment = Assessment(
        user_id=user.id,
        answers_json=json.dumps(SAMPLE_ANSWERS),
        scores_json=json.dumps(scores),
        constitution=choose_constitution(scores).value,
    )
    preview = "data:image/jpeg;base64,/9j/4AAQSkZJRgABAQAAAQABAAD"
    posture = PostureAnalysis(
        user_id=user.id,
        front_url=preview,
        side_url=preview,
        back_url=preview,
        analysis_md=SAMPLE_POSTURE_MD,
    )
    db.add_all([assessment, posture])
    db.flush()
    db.add(
        Plan(
            user_id=user.id,
            assessment_id=assessment.id,
            posture_analysis_id=posture.id,
            content_json=json.dumps(sample_plan_content()),
        )
    )


def main() -> int:
    parser = argparse.ArgumentParser(description="Seed FitnessApp SQLite DB with demo accounts and sample data.")
    parser.add_argument(
        "--db-path",
        default=None,
        help="Override SQLite DB path. Defaults to DB_PATH env or app default.",
    )
    parser.add_argument(
        "--skip-sample-data",
        action="store_true",
        help="Create the demo accounts only.",
    )
    args = parser.parse_args()

    db_path = resolve_db_path(args.db_path)
    db_session.configure_database(str(db_path))
    db_session.create_tables()

    db = db_session.SessionLocal()
    try:
        print(f"Target DB: {db_path}")
        for account in DEMO_ACCOUNTS:
            user, created = upsert_user(db, account)
            print(f"  {'created' if created else 'updated'} {user.role.lower()}: {user.email}")
            if created and user.role == "USER" and not args.skip_sample_data:
                seed_demo_data(db, user)
                print("    sample assessment, posture analysis and plan added")
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
    print(f"Demo password for all accounts: {DEMO_PASSWORD}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
