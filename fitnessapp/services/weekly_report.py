from datetime import date, datetime, time, timedelta
from typing import Any, Optional

from sqlalchemy.orm import Session, selectinload

from fitnessapp.core.prompts import WEEKDAYS
from fitnessapp.db.models import ChecklistItem, Todo
from fitnessapp.services.todo import ITEM_KIND_DIET, ITEM_KIND_EXERCISE

DAYS_PER_WEEK = len(WEEKDAYS)


def _completion_rate(completed: int, scheduled: int) -> float:
    return completed / scheduled if scheduled > 0 else 0.0


def _daily_counts(items: list[ChecklistItem]) -> list[int]:
    counts = [0] * DAYS_PER_WEEK
    for item in items:
        if item.completed and 1 <= item.day_index <= DAYS_PER_WEEK:
            counts[item.day_index - 1] += 1
    return counts


def _streak_days(daily: list[int]) -> int:
    # Consecutive days with a completion, counted back from the last day of the week.
    streak = 0
    for count in reversed(daily):
        if count <= 0:
            break
        streak += 1
    return streak


def _breakdown(items: list[ChecklistItem]) -> dict[str, int]:
    diet = [item for item in items if item.kind == ITEM_KIND_DIET]
    exercise = [item for item in items if item.kind == ITEM_KIND_EXERCISE]
    return {
        "diet_scheduled": len(diet),
        "exercise_scheduled": len(exercise),
        "diet_completed": sum(1 for item in diet if item.completed),
        "exercise_completed": sum(1 for item in exercise if item.completed),
    }


def _totals(todo: Optional[Todo]) -> tuple[int, int, float]:
    if todo is None:
        return 0, 0, 0.0
    scheduled = len(todo.items)
    completed = sum(1 for item in todo.items if item.completed)
    return completed, scheduled, _completion_rate(completed, scheduled)


def _select_todo(db: Session, user_id: int, week_start: Optional[date]) -> Optional[Todo]:
    query = db.query(Todo).options(selectinload(Todo.items)).filter(Todo.user_id == user_id)
    if week_start is not None:
        start = datetime.combine(week_start, time.min)
        query = query.filter(Todo.created_at >= start, Todo.created_at < start + timedelta(days=DAYS_PER_WEEK))
    return query.order_by(Todo.created_at.desc(), Todo.id.desc()).first()


def _previous_todo(db: Session, todo: Todo) -> Optional[Todo]:
    return (
        db.query(Todo)
        .options(selectinload(Todo.items))
        .filter(Todo.user_id == todo.user_id, Todo.id < todo.id)
        .order_by(Todo.id.desc())
        .first()
    )


def _empty_report(week_start: Optional[date]) -> dict[str, Any]:
    return {
        "week_start": week_start.isoformat() if week_start else None,
        "week_end": (week_start + timedelta(days=DAYS_PER_WEEK - 1)).isoformat() if week_start else None,
        "totals": {"completed_count": 0, "todos_touched": 0, "scheduled_count": 0, "completion_rate": 0.0},
        "daily": [{"date": f"day{i + 1}", "completed_count": 0} for i in range(DAYS_PER_WEEK)],
        "top_todos": [],
        "streak_days": 0,
        "breakdown": {"diet_scheduled": 0, "exercise_scheduled": 0, "diet_completed": 0, "exercise_completed": 0},
        "wow": {
            "completed_count_delta": 0,
            "completion_rate_delta": 0.0,
            "prev_week": {"completed_count": 0, "scheduled_count": 0, "completion_rate": 0.0},
        },
    }


def get_weekly_report(db: Session, user_id: int, week_start: Optional[date] = None) -> dict[str, Any]:
    """Summarize checklist progress for one week.

    The week is the caller's most recent todo, or the most recent todo created
    inside the 7-day window starting at ``week_start``. Week-over-week figures
    compare against the todo created just before it.
    """
    todo = _select_todo(db, user_id, week_start)
    if todo is None:
        return _empty_report(week_start)

    completed, scheduled, rate = _totals(todo)
    daily = _daily_counts(todo.items)
    prev_completed, prev_scheduled, prev_rate = _totals(_previous_todo(db, todo))

    start = week_start or todo.created_at.date()
    return {
        "week_start": start.isoformat(),
        "week_end": (start + timedelta(days=DAYS_PER_WEEK - 1)).isoformat(),
        "totals": {
            "completed_count": completed,
            "todos_touched": 1,
            "scheduled_count": scheduled,
            "completion_rate": rate,
        },
        "daily": [{"date": f"day{i + 1}", "completed_count": count} for i, count in enumerate(daily)],
        "top_todos": [{"todo_id": todo.id, "title": todo.title, "completed_count": completed}],
        "streak_days": _streak_days(daily),
        "breakdown": _breakdown(todo.items),
        "wow": {
            "completed_count_delta": completed - prev_completed,
            "completion_rate_delta": rate - prev_rate,
            "prev_week": {
                "completed_count": prev_completed,
                "scheduled_count": prev_scheduled,
                "completion_rate": prev_rate,
            },
        },
    }
