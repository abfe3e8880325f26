from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from fitnessapp.api.auth import get_current_user
from fitnessapp.core.rewards import get_next_tier, get_tier, points_to_next_tier, tier_progress
from fitnessapp.db.models import User
from fitnessapp.db.session import get_db
from fitnessapp.services.rewards import InsufficientPointsError, UnknownRewardError, list_ledger, redeem_badge

router = APIRouter(prefix="/reward", tags=["reward"])


class RewardStatusResponse(BaseModel):
    points: int
    bronze_badges: int
    silver_badges: int
    gold_badges: int
    tier: str
    next_tier: Optional[str] = None
    points_to_next_tier: Optional[int] = None
    tier_progress: int


class RedeemRequest(BaseModel):
    kind: str = Field(min_length=1, max_length=64)


class LedgerEntry(BaseModel):
    id: int
    points: int
    kind: str
    note: Optional[str] = None
    created_at: datetime


class LedgerResponse(BaseModel):
    entries: list[LedgerEntry]


def _status(user: User) -> RewardStatusResponse:
    points = user.points or 0
    nxt = get_next_tier(points)
    return RewardStatusResponse(
        points=points,
        bronze_badges=user.bronze_badges or 0,
        silver_badges=user.silver_badges or 0,
        gold_badges=user.gold_badges or 0,
        tier=get_tier(points).name,
        next_tier=nxt.name if nxt else None,
        points_to_next_tier=points_to_next_tier(points),
        tier_progress=tier_progress(points),
    )


@router.get("", response_model=RewardStatusResponse)
def reward_status(user: User = Depends(get_current_user)) -> RewardStatusResponse:
    return _status(user)


@router.post("", response_model=RewardStatusResponse)
def redeem(
    payload: RedeemRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> RewardStatusResponse:
    try:
        updated = redeem_badge(db, user.id, payload.kind)
    except (UnknownRewardError, InsufficientPointsError) as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return _status(updated)


@router.get("/ledger", response_model=LedgerResponse)
def ledger(user: User = Depends(get_current_user), db: Session = Depends(get_db)) -> LedgerResponse:
    return LedgerResponse(
        entries=[
            LedgerEntry(id=row.id, points=row.points, kind=row.kind, note=row.note, created_at=row.created_at)
            for row in list_ledger(db, user.id)
        ]
    )
