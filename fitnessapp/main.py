from fastapi import FastAPI

from fitnessapp.api.admin import router as admin_router
from fitnessapp.api.assessment import router as assessment_router
from fitnessapp.api.auth import router as auth_router
from fitnessapp.api.coach import router as coach_router
from fitnessapp.api.plan import router as plan_router
from fitnessapp.api.posture import router as posture_router
from fitnessapp.api.profile import router as profile_router
from fitnessapp.api.reports import router as reports_router
from fitnessapp.api.reward import router as reward_router
from fitnessapp.api.todos import router as todos_router
from fitnessapp.db.session import create_tables

app = FastAPI(title="FitnessApp")


@app.on_event("startup")
def on_startup() -> None:
    create_tables()


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/api")
def api_root() -> dict[str, str]:
    return {"service": "FitnessApp API", "status": "ok"}


app.include_router(auth_router)
app.include_router(profile_router)
app.include_router(assessment_router)
app.include_router(posture_router)
app.include_router(plan_router)
app.include_router(todos_router)
app.include_router(reports_router)
app.include_router(reward_router)
app.include_router(coach_router)
app.include_router(admin_router)
