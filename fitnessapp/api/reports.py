from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from fitnessapp.api.auth import get_current_user
from fitnessapp.db.models import User
from fitnessapp.db.session import get_db
from fitnessapp.services.weekly_report import get_weekly_report

router = APIRouter(prefix="/reports", tags=["reports"])


class WeeklyTotals(BaseModel):
    completed_count: int
    todos_touched: int
    scheduled_count: int
    completion_rate: float


class DailyEntry(BaseModel):
    date: str
    completed_count: int


class TopTodo(BaseModel):
    todo_id: int
    title: str
    completed_count: int


class Breakdown(BaseModel):
    diet_scheduled: int
    exercise_scheduled: int
    diet_completed: int
    exercise_completed: int


class PrevWeek(BaseModel):
    completed_count: int
    scheduled_count: int
    completion_rate: float


class WeekOverWeek(BaseModel):
    completed_count_delta: int
    completion_rate_delta: float
    prev_week: PrevWeek


class WeeklyReportResponse(BaseModel):
    week_start: Optional[str] = None
    week_end: Optional[str] = None
    totals: WeeklyTotals
    daily: list[DailyEntry]
    top_todos: list[TopTodo]
    streak_days: int
    breakdown: Breakdown
    wow: WeekOverWeek


@router.get("/weekly", response_model=WeeklyReportResponse)
def weekly_report(
    week_start: Optional[date] = Query(default=None),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> WeeklyReportResponse:
    return WeeklyReportResponse(**get_weekly_report(db, user.id, week_start))
