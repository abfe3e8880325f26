from datetime import date, datetime
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from fitnessapp.api.auth import get_current_user
from fitnessapp.db.models import User
from fitnessapp.db.session import get_db

router = APIRouter(prefix="/profile", tags=["profile"])


class ProfileUpdateRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    height_cm: Optional[int] = Field(default=None, ge=50, le=250)
    weight_kg: Optional[int] = Field(default=None, ge=20, le=400)
    sex: Optional[str] = Field(default=None, min_length=1, max_length=20)
    birth_date: Optional[date] = None


class ProfileResponse(BaseModel):
    id: int
    email: str
    name: Optional[str] = None
    role: str
    height_cm: Optional[int] = None
    weight_kg: Optional[int] = None
    sex: Optional[str] = None
    birth_date: Optional[date] = None
    points: int
    created_at: datetime


def _to_response(user: User) -> ProfileResponse:
    return ProfileResponse(
        id=user.id,
        email=user.email,
        name=user.name,
        role=user.role,
        height_cm=user.height_cm,
        weight_kg=user.weight_kg,
        sex=user.sex,
        birth_date=user.birth_date,
        points=user.points or 0,
        created_at=user.created_at,
    )


@router.get("", response_model=ProfileResponse)
def get_profile(user: User = Depends(get_current_user)) -> ProfileResponse:
    return _to_response(user)


@router.put("", response_model=ProfileResponse)
def update_profile(
    payload: ProfileUpdateRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ProfileResponse:
    for field, value in payload.model_dump(exclude_none=True).items():
        setattr(user, field, value)
    db.commit()
    db.refresh(user)
    return _to_response(user)
