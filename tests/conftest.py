import os
from datetime import timedelta
from typing import Generator, List, Optional

os.environ.setdefault("JWT_SECRET", "test-secret")

import pytest
from fastapi.testclient import TestClient

from exam_portal.api.v1.endpoints.auth import auth_limiter
from exam_portal.core.config import get_settings
from exam_portal.core.timeutils import utcnow
from exam_portal.db.memory import InMemoryDatabase
from exam_portal.db.session import get_db
from exam_portal.main import app
from exam_portal.schemas.exam import ExamCreate, ExamResponse
from exam_portal.schemas.question import QuestionCreate, QuestionResponse
from exam_portal.schemas.user import RegisterRequest, Role, TokenResponse
from exam_portal.services.auth_service import register_user
from exam_portal.services.exam_service import create_exam
from exam_portal.services.question_service import create_question


@pytest.fixture(autouse=True)
def reset_settings(monkeypatch) -> Generator[None, None, None]:
    """Pin the environment and drop cached settings around each test."""

    monkeypatch.setenv("JWT_SECRET", "test-secret")
    monkeypatch.delenv("EXAM_ENFORCE_WINDOW", raising=False)
    monkeypatch.delenv("ENFORCE_EXAM_WINDOW", raising=False)
    get_settings.cache_clear()  # type: ignore[attr-defined]
    auth_limiter.reset()
    yield
    get_settings.cache_clear()  # type: ignore[attr-defined]
    auth_limiter.reset()


@pytest.fixture
def db() -> InMemoryDatabase:
    return InMemoryDatabase()


@pytest.fixture
def client(db: InMemoryDatabase) -> Generator[TestClient, None, None]:
    app.dependency_overrides[get_db] = lambda: db
    yield TestClient(app)
    app.dependency_overrides.clear()


def make_user(db: InMemoryDatabase, name: str, role: Role = Role.student, email: Optional[str] = None) -> TokenResponse:
    email = email or f"{name.lower().replace(' ', '.')}@example.com"
    return register_user(RegisterRequest(name=name, email=email, password="secret-pass", role=role), db=db)


def auth_headers(token: TokenResponse) -> dict:
    return {"Authorization": f"Bearer {token.token}"}


@pytest.fixture
def admin(db: InMemoryDatabase) -> TokenResponse:
    return make_user(db, "Ada Admin", role=Role.admin)


@pytest.fixture
def student(db: InMemoryDatabase) -> TokenResponse:
    return make_user(db, "Sam Student")


@pytest.fixture
def other_student(db: InMemoryDatabase) -> TokenResponse:
    return make_user(db, "Olu Other")


def make_question(db: InMemoryDatabase, creator_id: Optional[str] = None, **overrides) -> QuestionResponse:
    payload = {
        "text": "What is the capital of France?",
        "type": "multiple_choice",
        "options": ["Paris", "Rome", "Madrid"],
        "correct_answer": "paris",
        "subject": "Geography",
        "topic": "Capitals",
        "difficulty": "easy",
        "marks": 5,
    }
    payload.update(overrides)
    return create_question(QuestionCreate(**payload), creator_id=creator_id, db=db)


def make_exam(
    db: InMemoryDatabase,
    question_ids: List[str],
    student_ids: List[str],
    creator_id: Optional[str] = None,
    **overrides,
) -> ExamResponse:
    now = utcnow()
    payload = {
        "title": "Midterm",
        "description": "General knowledge",
        "question_ids": question_ids,
        "duration": 30,
        "start_time": now - timedelta(hours=1),
        "end_time": now + timedelta(hours=1),
        "is_active": True,
        "assigned_student_ids": student_ids,
    }
    payload.update(overrides)
    return create_exam(ExamCreate(**payload), creator_id=creator_id, db=db)


@pytest.fixture
def sample_exam(db: InMemoryDatabase, admin: TokenResponse, student: TokenResponse) -> ExamResponse:
    """Two questions: 5 marks (paris) and 3 marks (true)."""

    q1 = make_question(db, creator_id=admin.user.user_id)
    q2 = make_question(
        db,
        creator_id=admin.user.user_id,
        text="The earth orbits the sun.",
        type="true_false",
        options=["true", "false"],
        correct_answer="true",
        subject="Science",
        topic="Astronomy",
        marks=3,
    )
    return make_exam(db, [q1.question_id, q2.question_id], [student.user.user_id], creator_id=admin.user.user_id)
