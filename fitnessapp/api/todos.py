import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session

from fitnessapp.api.auth import get_current_user
from fitnessapp.db.models import Todo, User
from fitnessapp.db.session import get_db
from fitnessapp.services.todo import (
    TodoNotFoundError,
    create_todo,
    get_all_todos,
    get_latest_todo_with_items,
    item_label,
    latest_plan,
    plan_content,
    rollover_todo,
    toggle_checklist_item,
)

router = APIRouter(prefix="/todos", tags=["todos"])
logger = logging.getLogger("uvicorn.error")


class ChecklistItemResponse(BaseModel):
    id: int
    day_index: int
    kind: str
    slot: int
    completed: bool
    completed_at: Optional[datetime] = None
    label: Optional[str] = None


class TodoResponse(BaseModel):
    id: int
    title: str
    completed: bool
    plan_id: Optional[int] = None
    created_at: datetime
    items: list[ChecklistItemResponse]


class TodoListResponse(BaseModel):
    todos: list[TodoResponse]


class ToggleRequest(BaseModel):
    completed: bool


class ToggleResponse(BaseModel):
    item_id: int
    completed: bool
    changed: bool
    todo_completed: bool
    points: int


class RolloverResponse(BaseModel):
    completed: TodoResponse
    next: TodoResponse


def _to_response(todo: Todo) -> TodoResponse:
    content = plan_content(todo.plan)
    return TodoResponse(
        id=todo.id,
        title=todo.title,
        completed=todo.completed,
        plan_id=todo.plan_id,
        created_at=todo.created_at,
        items=[
            ChecklistItemResponse(
                id=item.id,
                day_index=item.day_index,
                kind=item.kind,
                slot=item.slot,
                completed=item.completed,
                completed_at=item.completed_at,
                label=item_label(item, content),
            )
            for item in todo.items
        ],
    )


@router.get("", response_model=TodoListResponse)
def list_todos(user: User = Depends(get_current_user), db: Session = Depends(get_db)) -> TodoListResponse:
    return TodoListResponse(todos=[_to_response(todo) for todo in get_all_todos(db, user.id)])


@router.get("/latest", response_model=TodoResponse)
def latest_todo(user: User = Depends(get_current_user), db: Session = Depends(get_db)) -> TodoResponse:
    todo = get_latest_todo_with_items(db, user.id)
    if todo is None:
        plan = latest_plan(db, user.id)
        todo = create_todo(db, user.id, plan.id if plan else None)
    return _to_response(todo)


@router.post("/create", response_model=TodoResponse, status_code=status.HTTP_201_CREATED)
def create_weekly_todo(user: User = Depends(get_current_user), db: Session = Depends(get_db)) -> TodoResponse:
    plan = latest_plan(db, user.id)
    if plan is None:
        raise HTTPException(status_code=404, detail="No plan found")
    return _to_response(create_todo(db, user.id, plan.id))


@router.patch("/{todo_id}/{item_id}", response_model=ToggleResponse)
def toggle_item(
    todo_id: int,
    item_id: int,
    payload: ToggleRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ToggleResponse:
    try:
        result = toggle_checklist_item(db, user.id, todo_id, item_id, payload.completed)
    except TodoNotFoundError:
        raise HTTPException(status_code=404, detail="Not found")
    return ToggleResponse(
        item_id=item_id,
        completed=result.completed,
        changed=result.changed,
        todo_completed=result.todo_completed,
        points=result.points,
    )


@router.post("/{todo_id}/complete", response_model=RolloverResponse)
def complete_and_rollover(
    todo_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)
):
    try:
        closed, next_todo = rollover_todo(db, user.id, todo_id)
    except TodoNotFoundError:
        raise HTTPException(status_code=404, detail="Not found")
    if next_todo is None:
        return JSONResponse(status_code=404, content={"detail": "No plan found", "completed": True})
    return RolloverResponse(completed=_to_response(closed), next=_to_response(next_todo))
