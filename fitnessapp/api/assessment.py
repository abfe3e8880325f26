import json
import logging
from datetime import datetime

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field, model_validator
from sqlalchemy.orm import Session

from fitnessapp.api.auth import get_current_user
from fitnessapp.core.constitution import choose_constitution, compute_scores
from fitnessapp.db.models import Assessment, User
from fitnessapp.db.session import get_db

router = APIRouter(prefix="/assessment", tags=["assessment"])
logger = logging.getLogger("uvicorn.error")


class AssessmentRequest(BaseModel):
    answers: dict[str, int]
    questionnaire_version: int = Field(default=1, ge=1)

    @model_validator(mode="after")
    def validate_answers(self):
        for key, value in self.answers.items():
            if not 0 <= value <= 5:
                raise ValueError(f"answer {key} must be between 0 and 5")
        return self


class AssessmentResponse(BaseModel):
    id: int
    constitution: str
    scores: dict[str, int]
    questionnaire_version: int
    created_at: datetime


class AssessmentListResponse(BaseModel):
    assessments: list[AssessmentResponse]


def _to_response(row: Assessment) -> AssessmentResponse:
    return AssessmentResponse(
        id=row.id,
        constitution=row.constitution or "BALANCED",
        scores=json.loads(row.scores_json or "{}"),
        questionnaire_version=row.questionnaire_version,
        created_at=row.created_at,
    )


@router.post("", response_model=AssessmentResponse, status_code=status.HTTP_201_CREATED)
def submit_assessment(
    payload: AssessmentRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> AssessmentResponse:
    scores = compute_scores(payload.answers)
    constitution = choose_constitution(scores)
    row = Assessment(
        user_id=user.id,
        answers_json=json.dumps(payload.answers),
        scores_json=json.dumps(scores),
        constitution=constitution.value,
        questionnaire_version=payload.questionnaire_version,
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    logger.info("assessment_saved user_id=%s constitution=%s", user.id, constitution.value)
    return _to_response(row)


@router.get("", response_model=AssessmentListResponse)
def list_assessments(user: User = Depends(get_current_user), db: Session = Depends(get_db)) -> AssessmentListResponse:
    rows = (
        db.query(Assessment)
        .filter(Assessment.user_id == user.id)
        .order_by(Assessment.created_at.desc(), Assessment.id.desc())
        .all()
    )
    return AssessmentListResponse(assessments=[_to_response(row) for row in rows])
