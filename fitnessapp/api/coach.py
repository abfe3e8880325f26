import json
import logging
from datetime import datetime
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from fitnessapp.api.auth import ROLE_COACH, require_role
from fitnessapp.core.prompts import build_coach_analysis_prompt, build_coach_chat_prompt
from fitnessapp.db.models import CoachReport, User
from fitnessapp.db.session import get_db
from fitnessapp.services.llm import LLMClient, LLMRequestError, get_llm_client, parse_llm_json

router = APIRouter(prefix="/coach", tags=["coach"])
logger = logging.getLogger("uvicorn.error")

STATUS_PENDING = "PENDING"
STATUS_PROCESSING = "PROCESSING"
STATUS_COMPLETED = "COMPLETED"
STATUS_FAILED = "FAILED"

RISK_NOT_AVAILABLE = "Risk analysis not available"
RECOMMENDATIONS_NOT_AVAILABLE = "Recommendations not available"

require_coach = require_role(ROLE_COACH)


class KnowledgeLink(BaseModel):
    title: str
    url: str
    description: Optional[str] = None


class StudentSummary(BaseModel):
    id: int
    name: Optional[str] = None
    email: str


class ReportCreateRequest(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    student_data: Any
    description: Optional[str] = Field(default=None, max_length=4000)
    student_id: Optional[int] = None


class ReportResponse(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    student_data: Any
    status: str
    analysis: Optional[str] = None
    risk_analysis: Optional[str] = None
    recommendations: Optional[str] = None
    knowledge_links: list[KnowledgeLink] = Field(default_factory=list)
    student: Optional[StudentSummary] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class ReportListResponse(BaseModel):
    reports: list[ReportResponse]


class AnalyzeRequest(BaseModel):
    report_id: int


class ChatTurn(BaseModel):
    role: str = Field(min_length=1, max_length=32)
    content: str = Field(max_length=8000)


class CoachChatRequest(BaseModel):
    report_id: int
    message: str = Field(min_length=1, max_length=4000)
    chat_history: list[ChatTurn] = Field(default_factory=list)


class CoachChatResponse(BaseModel):
    reply: str


def _loads(raw: Optional[str], default: Any) -> Any:
    if not raw:
        return default
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return default


def _safe_links(value: Any) -> list[dict[str, Any]]:
    if not isinstance(value, list):
        return []
    links: list[dict[str, Any]] = []
    for entry in value:
        if not isinstance(entry, dict):
            continue
        title = str(entry.get("title") or "").strip()
        url = str(entry.get("url") or "").strip()
        if not title or not url:
            continue
        description = entry.get("description")
        links.append({"title": title, "url": url, "description": str(description) if description else None})
    return links


def _text(value: Any, fallback: str) -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    if isinstance(value, (list, dict)) and value:
        return json.dumps(value)
    return fallback


def _to_response(report: CoachReport) -> ReportResponse:
    student = None
    if report.student is not None:
        student = StudentSummary(id=report.student.id, name=report.student.name, email=report.student.email)
    return ReportResponse(
        id=report.id,
        title=report.title,
        description=report.description,
        student_data=_loads(report.student_data_json, {}),
        status=report.status,
        analysis=report.analysis,
        risk_analysis=report.risk_analysis,
        recommendations=report.recommendations,
        knowledge_links=[KnowledgeLink(**link) for link in _safe_links(_loads(report.knowledge_links_json, []))],
        student=student,
        created_at=report.created_at,
        updated_at=report.updated_at,
    )


def _owned_report(db: Session, coach: User, report_id: int) -> CoachReport:
    report = (
        db.query(CoachReport)
        .filter(CoachReport.id == report_id, CoachReport.coach_id == coach.id)
        .first()
    )
    if not report:
        raise HTTPException(status_code=404, detail="Report not found")
    return report


@router.post("/reports", response_model=ReportResponse, status_code=status.HTTP_201_CREATED)
def create_report(
    payload: ReportCreateRequest,
    coach: User = Depends(require_coach),
    db: Session = Depends(get_db),
) -> ReportResponse:
    if payload.student_id is not None:
        student = db.query(User).filter(User.id == payload.student_id).first()
        if not student:
            raise HTTPException(status_code=404, detail="Student not found")
    report = CoachReport(
        coach_id=coach.id,
        student_id=payload.student_id,
        title=payload.title.strip(),
        description=payload.description,
        student_data_json=json.dumps(payload.student_data),
        status=STATUS_PENDING,
    )
    db.add(report)
    db.commit()
    db.refresh(report)
    logger.info("coach_report_created coach_id=%s report_id=%s", coach.id, report.id)
    return _to_response(report)


@router.get("/reports", response_model=ReportListResponse)
def list_reports(coach: User = Depends(require_coach), db: Session = Depends(get_db)) -> ReportListResponse:
    reports = (
        db.query(CoachReport)
        .filter(CoachReport.coach_id == coach.id)
        .order_by(CoachReport.created_at.desc(), CoachReport.id.desc())
        .all()
    )
    return ReportListResponse(reports=[_to_response(report) for report in reports])


@router.post("/analyze", response_model=ReportResponse)
def analyze_report(
    payload: AnalyzeRequest,
    coach: User = Depends(require_coach),
    db: Session = Depends(get_db),
    llm_client: LLMClient = Depends(get_llm_client),
) -> ReportResponse:
    report = _owned_report(db, coach, payload.report_id)
    report.status = STATUS_PROCESSING
    db.commit()

    prompt = build_coach_analysis_prompt(_loads(report.student_data_json, {}))
    try:
        raw = llm_client.generate_text(db=db, user_id=coach.id, prompt=prompt, task_type="analysis", json_mode=True)
    except LLMRequestError as exc:
        logger.exception("coach_analysis_llm_request_error coach_id=%s report_id=%s detail=%s", coach.id, report.id, str(exc))
        report.status = STATUS_FAILED
        db.commit()
        raise HTTPException(status_code=502, detail="Analysis service unavailable")

    try:
        parsed = parse_llm_json(raw)
    except ValueError:
        logger.warning("coach_analysis_unparsed coach_id=%s report_id=%s", coach.id, report.id)
        parsed = None

    if parsed is None:
        report.analysis = (raw or "").strip() or "Analysis not available"
        report.risk_analysis = RISK_NOT_AVAILABLE
        report.recommendations = RECOMMENDATIONS_NOT_AVAILABLE
        report.knowledge_links_json = json.dumps([])
    else:
        report.analysis = _text(parsed.get("analysis"), (raw or "").strip() or "Analysis not available")
        report.risk_analysis = _text(parsed.get("riskAnalysis"), RISK_NOT_AVAILABLE)
        report.recommendations = _text(parsed.get("recommendations"), RECOMMENDATIONS_NOT_AVAILABLE)
        report.knowledge_links_json = json.dumps(_safe_links(parsed.get("knowledgeLinks")))
    report.status = STATUS_COMPLETED
    db.commit()
    db.refresh(report)
    logger.info("coach_report_analyzed coach_id=%s report_id=%s", coach.id, report.id)
    return _to_response(report)


@router.post("/chat", response_model=CoachChatResponse)
def chat_about_report(
    payload: CoachChatRequest,
    coach: User = Depends(require_coach),
    db: Session = Depends(get_db),
    llm_client: LLMClient = Depends(get_llm_client),
) -> CoachChatResponse:
    report = _owned_report(db, coach, payload.report_id)
    if report.status != STATUS_COMPLETED:
        raise HTTPException(status_code=400, detail="Report analysis is not completed")

    prompt = build_coach_chat_prompt(
        title=report.title,
        student_data=_loads(report.student_data_json, {}),
        analysis=report.analysis,
        risk_analysis=report.risk_analysis,
        recommendations=report.recommendations,
        chat_history=[turn.model_dump() for turn in payload.chat_history],
        message=payload.message,
    )
    try:
        reply = llm_client.generate_text(db=db, user_id=coach.id, prompt=prompt, task_type="chat")
    except LLMRequestError as exc:
        logger.exception("coach_chat_llm_request_error coach_id=%s report_id=%s detail=%s", coach.id, report.id, str(exc))
        raise HTTPException(status_code=502, detail="Chat service unavailable")
    return CoachChatResponse(reply=(reply or "").strip() or "I'm sorry, I couldn't generate a response.")
