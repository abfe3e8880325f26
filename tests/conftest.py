import json
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Optional
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from fitnessapp.core.security import create_access_token, get_password_hash
from fitnessapp.db.models import Assessment, Plan, PostureAnalysis, User
from fitnessapp.db.session import SessionLocal, configure_database, create_tables
from fitnessapp.services.llm import LLMRequestError, get_llm_client

PASSWORD = "StrongPass123"

PLAN_CONTENT: dict[str, Any] = {
    "title": "Balance Week",
    "diet": {
        day: {"breakfast": [f"{day} congee"], "lunch": [f"{day} rice"], "dinner": ["steamed fish"], "snacks": ["pear"]}
        for day in ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]
    },
    "exercise": {
        "monday": ["Aerobic: brisk walk 30 min", "Stretching: chin tucks 3x10"],
        "tuesday": ["Anaerobic: glute bridge 3x12"],
        "wednesday": "Rest day",
        "thursday": ["Flexibility: cat-cow 2x10"],
        "friday": ["Aerobic: cycling 20 min"],
        "saturday": [],
        "sunday": ["Stretching: doorway pec stretch 3x30s"],
        "tips": ["Warm up first."],
    },
    "summary": "Light meals and daily posture work.",
}
# 7 diet items plus 2 + 1 + 0 + 1 + 1 + 0 + 1 exercise items.
PLAN_ITEM_COUNT = 13

POSTURE_MD = "# Posture Analysis Report\n## Overall Assessment\nMild forward head posture."
FAKE_IMAGE = "A" * 120


class FakeScenario(str, Enum):
    OK = "OK"
    MALFORMED_JSON = "MALFORMED_JSON"
    EMPTY = "EMPTY"
    TIMEOUT = "TIMEOUT"


class FakeLLMClient:
    def __init__(self, scenario: FakeScenario) -> None:
        self.scenario = scenario
        self.calls: list[dict[str, Any]] = []

    def _ok_reply(self, prompt: str, task_type: str) -> str:
        if task_type == "vision":
            return POSTURE_MD
        if task_type == "plan":
            return "Here is the plan:\n```json\n" + json.dumps(PLAN_CONTENT) + "\n```"
        if task_type == "plan_chat":
            updated = json.loads(json.dumps(json.loads(prompt)["current_plan"]))
            updated["summary"] = "Updated after chat."
            return "RESPONSE: Swapped in lighter dinners.\nPLAN: " + json.dumps(updated)
        if task_type == "analysis":
            return json.dumps(
                {
                    "analysis": "Student shows phlegm-dampness tendencies.",
                    "riskAnalysis": "Elevated risk of weight gain.",
                    "recommendations": "Daily brisk walks and lighter dinners.",
                    "knowledgeLinks": [
                        {"title": "Walking basics", "url": "https://example.com/walk", "description": "Intro"},
                        {"title": "missing url"},
                    ],
                }
            )
        return "Focus on consistency this week."

    def _malformed_reply(self, task_type: str) -> str:
        if task_type == "plan_chat":
            return "PLAN: {not json}"
        if task_type == "vision":
            return POSTURE_MD
        return "Sorry, here is some prose without any JSON."

    def generate_text(
        self,
        db: Session,
        user_id: int,
        prompt: str,
        task_type: str = "chat",
        images=(),
        json_mode: bool = False,
    ) -> str:
        self.calls.append({"task_type": task_type, "prompt": prompt, "images": list(images), "json_mode": json_mode})
        if self.scenario == FakeScenario.TIMEOUT:
            raise LLMRequestError(provider="fake", model="fake-model", message="simulated timeout")
        if self.scenario == FakeScenario.EMPTY:
            return ""
        if self.scenario == FakeScenario.MALFORMED_JSON:
            return self._malformed_reply(task_type)
        return self._ok_reply(prompt, task_type)


@pytest.fixture(scope="session")
def test_db_path(tmp_path_factory: pytest.TempPathFactory) -> Path:
    db_path = tmp_path_factory.mktemp("db") / "fitnessapp_test.db"
    configure_database(str(db_path))
    create_tables()
    return db_path


@pytest.fixture(scope="session")
def app(test_db_path: Path):
    from fitnessapp.main import app as fastapi_app

    return fastapi_app


@pytest.fixture
def client(app):
    app.dependency_overrides = {}
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides = {}


@pytest.fixture
def db_session(test_db_path: Path):
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def create_user(db_session: Session) -> Callable[..., User]:
    def _create_user(role: str = "USER", coach_status: Optional[str] = None, points: int = 0) -> User:
        email = f"{role.lower()}_{uuid4().hex[:10]}@test.com"
        user = User(
            email=email,
            name=f"{role.title()} Tester",
            password_hash=get_password_hash(PASSWORD),
            role=role,
            coach_status=coach_status,
            points=points,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _create_user


@pytest.fixture
def headers_for() -> Callable[[User], dict[str, str]]:
    def _headers(user: User) -> dict[str, str]:
        token = create_access_token(subject=str(user.id), role=user.role)
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def auth_token(client: TestClient) -> str:
    email = f"auth_{uuid4().hex[:10]}@test.com"
    register = client.post("/auth/register", json={"email": email, "password": PASSWORD, "name": "Auth Tester"})
    assert register.status_code == 201
    login = client.post("/auth/login", data={"username": email, "password": PASSWORD})
    assert login.status_code == 200
    return login.json()["access_token"]


@pytest.fixture
def seed_assessment(db_session: Session) -> Callable[..., Assessment]:
    def _seed(user_id: int, constitution: str = "PHLEGM_DAMPNESS") -> Assessment:
        row = Assessment(user_id=user_id, answers_json="{}", scores_json="{}", constitution=constitution)
        db_session.add(row)
        db_session.commit()
        db_session.refresh(row)
        return row

    return _seed


@pytest.fixture
def seed_posture(db_session: Session) -> Callable[[int], PostureAnalysis]:
    def _seed(user_id: int) -> PostureAnalysis:
        preview = "data:image/jpeg;base64," + FAKE_IMAGE[:50]
        row = PostureAnalysis(
            user_id=user_id, front_url=preview, side_url=preview, back_url=preview, analysis_md=POSTURE_MD
        )
        db_session.add(row)
        db_session.commit()
        db_session.refresh(row)
        return row

    return _seed


@pytest.fixture
def seed_plan(db_session: Session) -> Callable[..., Plan]:
    def _seed(user_id: int, content: Optional[dict[str, Any]] = None) -> Plan:
        row = Plan(user_id=user_id, content_json=json.dumps(PLAN_CONTENT if content is None else content))
        db_session.add(row)
        db_session.commit()
        db_session.refresh(row)
        return row

    return _seed


@pytest.fixture
def override_llm(app) -> Callable[[FakeScenario], FakeLLMClient]:
    def _override(scenario: FakeScenario = FakeScenario.OK) -> FakeLLMClient:
        fake = FakeLLMClient(scenario)
        app.dependency_overrides[get_llm_client] = lambda: fake
        return fake

    return _override
