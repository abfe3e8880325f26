"""Weekly checklist generation and checklist point accounting.

A todo holds one diet item per day plus one item per planned exercise. Item
text is never stored; labels are resolved from the owning plan when read, so
plan edits made through chat show up on the open checklist immediately.

Toggling an item is the only place checklist points move. The item update,
the balance change, the ledger row and the todo completion flag are written
in a single transaction.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from fitnessapp.core.prompts import MEALS, WEEKDAYS
from fitnessapp.core.rewards import CHECK_ITEM_POINTS, LEDGER_CHECK_ITEM, LEDGER_CHECK_ITEM_REVOKE
from fitnessapp.db.models import ChecklistItem, Plan, Reward, Todo, User

logger = logging.getLogger("uvicorn.error")

DEFAULT_TODO_TITLE = "Weekly Plan"
ITEM_KIND_DIET = "DIET"
ITEM_KIND_EXERCISE = "EXERCISE"


class TodoNotFoundError(LookupError):
    pass


@dataclass
class ToggleResult:
    changed: bool
    completed: bool
    todo_completed: bool
    points: int


def plan_content(plan: Optional[Plan]) -> dict[str, Any]:
    if plan is None or not plan.content_json:
        return {}
    try:
        loaded = json.loads(plan.content_json)
    except json.JSONDecodeError:
        return {}
    return loaded if isinstance(loaded, dict) else {}


def _is_structured(content: dict[str, Any]) -> bool:
    return bool(content.get("diet")) and bool(content.get("exercise"))


def _day_exercises(content: dict[str, Any], day_key: str) -> list[Any]:
    exercise = content.get("exercise")
    if not isinstance(exercise, dict):
        return []
    entries = exercise.get(day_key)
    return entries if isinstance(entries, list) else []


def item_label(item: ChecklistItem, content: dict[str, Any]) -> Optional[str]:
    if not content or not 1 <= item.day_index <= len(WEEKDAYS):
        return None
    day_key = WEEKDAYS[item.day_index - 1]
    if item.kind == ITEM_KIND_EXERCISE:
        entries = _day_exercises(content, day_key)
        if 0 <= item.slot < len(entries):
            return str(entries[item.slot])
        return None

    diet = content.get("diet")
    day_diet = diet.get(day_key) if isinstance(diet, dict) else None
    if isinstance(day_diet, dict):
        parts = []
        for meal in MEALS:
            foods = day_diet.get(meal)
            if isinstance(foods, list) and foods:
                parts.append(f"{meal.capitalize()}: {', '.join(str(food) for food in foods)}")
        return "; ".join(parts) or None
    if isinstance(day_diet, list):
        return ", ".join(str(food) for food in day_diet) or None
    if isinstance(day_diet, str):
        return day_diet
    return None


def _todo_query(db: Session):
    return db.query(Todo).options(selectinload(Todo.items), selectinload(Todo.plan))


def get_all_todos(db: Session, user_id: int) -> list[Todo]:
    return _todo_query(db).filter(Todo.user_id == user_id).order_by(Todo.created_at.desc(), Todo.id.desc()).all()


def get_latest_todo_with_items(db: Session, user_id: int) -> Optional[Todo]:
    return (
        _todo_query(db)
        .filter(Todo.user_id == user_id, Todo.completed.is_(False))
        .order_by(Todo.created_at.desc(), Todo.id.desc())
        .first()
    )


def get_todo(db: Session, user_id: int, todo_id: int) -> Todo:
    todo = _todo_query(db).filter(Todo.id == todo_id, Todo.user_id == user_id).first()
    if not todo:
        raise TodoNotFoundError("Not found")
    return todo


def latest_plan(db: Session, user_id: int) -> Optional[Plan]:
    return db.query(Plan).filter(Plan.user_id == user_id).order_by(Plan.created_at.desc(), Plan.id.desc()).first()


def _build_items(content: dict[str, Any]) -> list[ChecklistItem]:
    items: list[ChecklistItem] = []
    structured = _is_structured(content)
    for day_index, day_key in enumerate(WEEKDAYS, start=1):
        items.append(ChecklistItem(day_index=day_index, kind=ITEM_KIND_DIET, slot=0, completed=False))
        if not structured:
            continue
        for slot, _ in enumerate(_day_exercises(content, day_key)):
            items.append(ChecklistItem(day_index=day_index, kind=ITEM_KIND_EXERCISE, slot=slot, completed=False))
    return items


def _new_todo(user_id: int, plan: Optional[Plan], title: str = DEFAULT_TODO_TITLE) -> Todo:
    content = plan_content(plan)
    plan_title = content.get("title")
    final_title = str(plan_title).strip() if isinstance(plan_title, str) and plan_title.strip() else title
    todo = Todo(user_id=user_id, plan_id=plan.id if plan else None, title=final_title[:255], completed=False)
    todo.items = _build_items(content)
    return todo


def create_todo(db: Session, user_id: int, plan_id: Optional[int], title: str = DEFAULT_TODO_TITLE) -> Todo:
    plan = None
    if plan_id is not None:
        plan = db.query(Plan).filter(Plan.id == plan_id, Plan.user_id == user_id).first()
    todo = _new_todo(user_id, plan, title)
    db.add(todo)
    db.commit()
    logger.info("todo_created user_id=%s todo_id=%s items=%s", user_id, todo.id, len(todo.items))
    return get_todo(db, user_id, todo.id)


def complete_todo(db: Session, user_id: int, todo_id: int, completed: bool) -> Todo:
    todo = db.query(Todo).filter(Todo.id == todo_id).first()
    if not todo or todo.user_id != user_id:
        raise TodoNotFoundError("Not found")
    if todo.completed == completed:
        return todo
    # Marking a whole todo done awards nothing; points only move on item toggles.
    try:
        todo.completed = completed
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(todo)
    return todo


def rollover_todo(db: Session, user_id: int, todo_id: int) -> tuple[Todo, Optional[Todo]]:
    """Close a todo and open the next one from the newest plan in the same transaction.

    Without a plan the todo is still closed and the second element is ``None``.
    """
    todo = db.query(Todo).filter(Todo.id == todo_id).first()
    if not todo or todo.user_id != user_id:
        raise TodoNotFoundError("Not found")

    plan = latest_plan(db, user_id)
    next_todo = None
    try:
        todo.completed = True
        if plan is not None:
            next_todo = _new_todo(user_id, plan)
            db.add(next_todo)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(
        "todo_rolled_over user_id=%s todo_id=%s next_todo_id=%s",
        user_id,
        todo_id,
        next_todo.id if next_todo else None,
    )
    closed = get_todo(db, user_id, todo_id)
    if next_todo is None:
        return closed, None
    return closed, get_todo(db, user_id, next_todo.id)


def _set_item_state(db: Session, item_id: int, completed: bool) -> bool:
    # Guarded update: only the request that actually flips the row gets rowcount 1.
    updated = (
        db.query(ChecklistItem)
        .filter(ChecklistItem.id == item_id, ChecklistItem.completed == (not completed))
        .update({ChecklistItem.completed: completed, ChecklistItem.completed_at: None}, synchronize_session="fetch")
    )
    return bool(updated)


def toggle_checklist_item(db: Session, user_id: int, todo_id: int, item_id: int, completed: bool) -> ToggleResult:
    item = (
        db.query(ChecklistItem)
        .join(Todo, ChecklistItem.todo_id == Todo.id)
        .filter(ChecklistItem.id == item_id, ChecklistItem.todo_id == todo_id, Todo.user_id == user_id)
        .first()
    )
    if not item:
        raise TodoNotFoundError("Not found")

    try:
        changed = _set_item_state(db, item.id, completed)
        if changed:
            delta = CHECK_ITEM_POINTS if completed else -CHECK_ITEM_POINTS
            db.query(User).filter(User.id == user_id).update(
                {User.points: User.points + delta}, synchronize_session="fetch"
            )
            if completed:
                db.add(Reward(user_id=user_id, points=delta, kind=LEDGER_CHECK_ITEM, note=f"item:{item.id}"))
            else:
                db.add(Reward(user_id=user_id, points=delta, kind=LEDGER_CHECK_ITEM_REVOKE, note=f"item:{item.id}:undo"))
            db.flush()

        remaining = (
            db.query(func.count(ChecklistItem.id))
            .filter(ChecklistItem.todo_id == todo_id, ChecklistItem.completed.is_(False))
            .scalar()
        )
        target_completed = int(remaining or 0) == 0
        todo = db.query(Todo).filter(Todo.id == todo_id).one()
        if todo.completed != target_completed:
            todo.completed = target_completed
        db.commit()
    except Exception:
        db.rollback()
        raise

    points = db.query(User.points).filter(User.id == user_id).scalar() or 0
    if changed:
        logger.info(
            "checklist_toggled user_id=%s todo_id=%s item_id=%s completed=%s points=%s",
            user_id,
            todo_id,
            item_id,
            completed,
            points,
        )
    return ToggleResult(changed=changed, completed=completed, todo_completed=target_completed, points=int(points))
