import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from fitnessapp.api.auth import COACH_APPROVED, COACH_REJECTED, ROLE_ADMIN, ROLE_COACH, require_role
from fitnessapp.db.models import User
from fitnessapp.db.session import get_db

router = APIRouter(prefix="/admin", tags=["admin"])
logger = logging.getLogger("uvicorn.error")

require_admin = require_role(ROLE_ADMIN)


class CoachApplication(BaseModel):
    id: int
    email: str
    name: Optional[str] = None
    coach_status: Optional[str] = None
    created_at: datetime


class ApplicationListResponse(BaseModel):
    applications: list[CoachApplication]


class CoachDecisionRequest(BaseModel):
    user_id: int


class AdminUser(BaseModel):
    id: int
    email: str
    name: Optional[str] = None
    role: str
    coach_status: Optional[str] = None
    points: int
    bronze_badges: int
    silver_badges: int
    gold_badges: int
    created_at: datetime


class AdminUserListResponse(BaseModel):
    users: list[AdminUser]


def _application(user: User) -> CoachApplication:
    return CoachApplication(
        id=user.id,
        email=user.email,
        name=user.name,
        coach_status=user.coach_status,
        created_at=user.created_at,
    )


def _set_coach_status(db: Session, admin: User, user_id: int, coach_status: str) -> CoachApplication:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    if user.role != ROLE_COACH:
        raise HTTPException(status_code=400, detail="User is not a coach")
    user.coach_status = coach_status
    db.commit()
    db.refresh(user)
    logger.info("coach_status_changed admin_id=%s user_id=%s status=%s", admin.id, user.id, coach_status)
    return _application(user)


@router.get("/applications", response_model=ApplicationListResponse)
def list_applications(admin: User = Depends(require_admin), db: Session = Depends(get_db)) -> ApplicationListResponse:
    coaches = (
        db.query(User)
        .filter(User.role == ROLE_COACH)
        .order_by(User.created_at.desc(), User.id.desc())
        .all()
    )
    return ApplicationListResponse(applications=[_application(user) for user in coaches])


@router.post("/approve", response_model=CoachApplication)
def approve_coach(
    payload: CoachDecisionRequest, admin: User = Depends(require_admin), db: Session = Depends(get_db)
) -> CoachApplication:
    return _set_coach_status(db, admin, payload.user_id, COACH_APPROVED)


@router.post("/reject", response_model=CoachApplication)
def reject_coach(
    payload: CoachDecisionRequest, admin: User = Depends(require_admin), db: Session = Depends(get_db)
) -> CoachApplication:
    return _set_coach_status(db, admin, payload.user_id, COACH_REJECTED)


@router.get("/users", response_model=AdminUserListResponse)
def list_users(admin: User = Depends(require_admin), db: Session = Depends(get_db)) -> AdminUserListResponse:
    users = db.query(User).order_by(User.created_at.desc(), User.id.desc()).all()
    return AdminUserListResponse(
        users=[
            AdminUser(
                id=user.id,
                email=user.email,
                name=user.name,
                role=user.role,
                coach_status=user.coach_status,
                points=user.points or 0,
                bronze_badges=user.bronze_badges or 0,
                silver_badges=user.silver_badges or 0,
                gold_badges=user.gold_badges or 0,
                created_at=user.created_at,
            )
            for user in users
        ]
    )
