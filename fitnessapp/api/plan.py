import json
import logging
from datetime import datetime
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from fitnessapp.api.auth import get_current_user
from fitnessapp.core.body_metrics import age_from_birth_date, calculate_bmi, estimate_calories
from fitnessapp.core.constitution import Constitution
from fitnessapp.core.prompts import build_plan_chat_prompt, build_plan_prompt
from fitnessapp.db.models import Assessment, Plan, PostureAnalysis, User
from fitnessapp.db.session import get_db
from fitnessapp.services.llm import LLMClient, LLMRequestError, extract_chat_reply, get_llm_client, parse_llm_json
from fitnessapp.services.todo import plan_content

router = APIRouter(prefix="/plan", tags=["plan"])
logger = logging.getLogger("uvicorn.error")

DEFAULT_CHAT_REPLY = "I've updated your plan based on your request."


class PlanResponse(BaseModel):
    id: int
    content: dict[str, Any]
    constitution: Optional[str] = None
    assessment_id: Optional[int] = None
    posture_analysis_id: Optional[int] = None
    created_at: datetime


class PlanListResponse(BaseModel):
    plans: list[PlanResponse]


class PlanChatRequest(BaseModel):
    plan_id: int
    message: str = Field(min_length=1, max_length=4000)


class PlanChatResponse(BaseModel):
    message: str
    plan: PlanResponse


def _to_response(plan: Plan) -> PlanResponse:
    return PlanResponse(
        id=plan.id,
        content=plan_content(plan),
        constitution=plan.assessment.constitution if plan.assessment else None,
        assessment_id=plan.assessment_id,
        posture_analysis_id=plan.posture_analysis_id,
        created_at=plan.created_at,
    )


def _owned_plan(db: Session, user: User, plan_id: int) -> Plan:
    plan = db.query(Plan).filter(Plan.id == plan_id).first()
    if not plan:
        raise HTTPException(status_code=404, detail="Plan not found")
    if plan.user_id != user.id:
        raise HTTPException(status_code=403, detail="Unauthorized")
    return plan


@router.post("/generate", response_model=PlanResponse, status_code=status.HTTP_201_CREATED)
def generate_plan(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    llm_client: LLMClient = Depends(get_llm_client),
) -> PlanResponse:
    assessment = (
        db.query(Assessment)
        .filter(Assessment.user_id == user.id)
        .order_by(Assessment.created_at.desc(), Assessment.id.desc())
        .first()
    )
    if not assessment:
        raise HTTPException(status_code=400, detail="Please complete the constitution assessment first")
    posture = (
        db.query(PostureAnalysis)
        .filter(PostureAnalysis.user_id == user.id)
        .order_by(PostureAnalysis.created_at.desc(), PostureAnalysis.id.desc())
        .first()
    )
    if not posture:
        raise HTTPException(status_code=400, detail="Please complete the posture analysis first")

    age = age_from_birth_date(user.birth_date)
    prompt = build_plan_prompt(
        user_name=user.name or "User",
        age=age,
        sex=user.sex,
        height_cm=user.height_cm,
        weight_kg=user.weight_kg,
        bmi=calculate_bmi(user.height_cm, user.weight_kg),
        calorie_target=estimate_calories(user.weight_kg, user.height_cm, age, user.sex),
        constitution=assessment.constitution or Constitution.BALANCED.value,
        posture_analysis=posture.analysis_md,
    )
    try:
        raw = llm_client.generate_text(db=db, user_id=user.id, prompt=prompt, task_type="plan", json_mode=True)
        content = parse_llm_json(raw)
    except LLMRequestError as exc:
        logger.exception("plan_llm_request_error user_id=%s detail=%s", user.id, str(exc))
        raise HTTPException(status_code=502, detail="Plan generation service unavailable")
    except ValueError:
        logger.exception("plan_parse_error user_id=%s", user.id)
        raise HTTPException(status_code=502, detail="Failed to parse generated plan")

    plan = Plan(
        user_id=user.id,
        assessment_id=assessment.id,
        posture_analysis_id=posture.id,
        content_json=json.dumps(content),
    )
    db.add(plan)
    db.commit()
    db.refresh(plan)
    logger.info("plan_generated user_id=%s plan_id=%s", user.id, plan.id)
    return _to_response(plan)


@router.get("/userplan", response_model=PlanListResponse)
def list_user_plans(user: User = Depends(get_current_user), db: Session = Depends(get_db)) -> PlanListResponse:
    plans = db.query(Plan).filter(Plan.user_id == user.id).order_by(Plan.created_at.desc(), Plan.id.desc()).all()
    return PlanListResponse(plans=[_to_response(plan) for plan in plans])


@router.post("/chat", response_model=PlanChatResponse)
def chat_about_plan(
    payload: PlanChatRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    llm_client: LLMClient = Depends(get_llm_client),
) -> PlanChatResponse:
    plan = _owned_plan(db, user, payload.plan_id)
    current = plan_content(plan)
    try:
        raw = llm_client.generate_text(
            db=db,
            user_id=user.id,
            prompt=build_plan_chat_prompt(current, payload.message),
            task_type="plan_chat",
        )
    except LLMRequestError as exc:
        logger.exception("plan_chat_llm_request_error user_id=%s detail=%s", user.id, str(exc))
        raise HTTPException(status_code=502, detail="Plan chat service unavailable")

    message, updated = extract_chat_reply(raw)
    if updated is None:
        logger.warning("plan_chat_unparsed_plan user_id=%s plan_id=%s", user.id, plan.id)
        updated = current
    plan.content_json = json.dumps(updated)
    db.commit()
    db.refresh(plan)
    return PlanChatResponse(message=message or DEFAULT_CHAT_REPLY, plan=_to_response(plan))


@router.get("/{plan_id}", response_model=PlanResponse)
def get_plan(plan_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)) -> PlanResponse:
    return _to_response(_owned_plan(db, user, plan_id))
