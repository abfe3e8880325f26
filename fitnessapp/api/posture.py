import logging
import re
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from fitnessapp.api.auth import get_current_user
from fitnessapp.core.prompts import build_posture_prompt
from fitnessapp.db.models import PostureAnalysis, User
from fitnessapp.db.session import get_db
from fitnessapp.services.llm import ImagePart, LLMClient, LLMRequestError, get_llm_client

router = APIRouter(prefix="/posture", tags=["posture"])
logger = logging.getLogger("uvicorn.error")

BASE64_PATTERN = re.compile(r"^[A-Za-z0-9+/=]+$")
MIN_IMAGE_LENGTH = 100
PREVIEW_LENGTH = 50
ANALYSIS_FALLBACK = "Analysis could not be generated."


class PostureUploadRequest(BaseModel):
    front: str
    side: str
    back: str


class PostureUploadResponse(BaseModel):
    id: int
    message: str


class PostureSummary(BaseModel):
    id: int
    front_url: str
    side_url: str
    back_url: str
    created_at: datetime


class PostureDetail(PostureSummary):
    analysis_md: str


class PostureListResponse(BaseModel):
    analyses: list[PostureSummary]


def _is_valid_image(data: str) -> bool:
    return len(data) > MIN_IMAGE_LENGTH and bool(BASE64_PATTERN.match(data))


def _preview(data: str) -> str:
    return f"data:image/jpeg;base64,{data[:PREVIEW_LENGTH]}"


@router.post("/upload", response_model=PostureUploadResponse, status_code=status.HTTP_201_CREATED)
def upload_posture(
    payload: PostureUploadRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    llm_client: LLMClient = Depends(get_llm_client),
) -> PostureUploadResponse:
    views = {"front": payload.front, "side": payload.side, "back": payload.back}
    for view, data in views.items():
        if not _is_valid_image(data):
            raise HTTPException(status_code=400, detail=f"Invalid {view} image data")

    try:
        analysis = llm_client.generate_text(
            db=db,
            user_id=user.id,
            prompt=build_posture_prompt(),
            task_type="vision",
            images=[ImagePart(data_b64=data) for data in views.values()],
        )
    except LLMRequestError as exc:
        logger.exception("posture_llm_request_error user_id=%s detail=%s", user.id, str(exc))
        raise HTTPException(status_code=502, detail="Posture analysis service unavailable")

    row = PostureAnalysis(
        user_id=user.id,
        front_url=_preview(payload.front),
        side_url=_preview(payload.side),
        back_url=_preview(payload.back),
        analysis_md=(analysis or "").strip() or ANALYSIS_FALLBACK,
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    logger.info("posture_analyzed user_id=%s posture_id=%s", user.id, row.id)
    return PostureUploadResponse(id=row.id, message="Analysis complete")


@router.get("/list", response_model=PostureListResponse)
def list_posture(user: User = Depends(get_current_user), db: Session = Depends(get_db)) -> PostureListResponse:
    rows = (
        db.query(PostureAnalysis)
        .filter(PostureAnalysis.user_id == user.id)
        .order_by(PostureAnalysis.created_at.desc(), PostureAnalysis.id.desc())
        .all()
    )
    return PostureListResponse(
        analyses=[
            PostureSummary(
                id=row.id,
                front_url=row.front_url,
                side_url=row.side_url,
                back_url=row.back_url,
                created_at=row.created_at,
            )
            for row in rows
        ]
    )


@router.get("/{posture_id}", response_model=PostureDetail)
def get_posture(
    posture_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)
) -> PostureDetail:
    row = db.query(PostureAnalysis).filter(PostureAnalysis.id == posture_id).first()
    if not row:
        raise HTTPException(status_code=404, detail="Not found")
    if row.user_id != user.id:
        raise HTTPException(status_code=403, detail="Unauthorized")
    return PostureDetail(
        id=row.id,
        front_url=row.front_url,
        side_url=row.side_url,
        back_url=row.back_url,
        analysis_md=row.analysis_md,
        created_at=row.created_at,
    )
