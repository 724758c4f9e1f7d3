from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from exam_portal.core.timeutils import ensure_utc
from exam_portal.schemas.question import QuestionPublicView, QuestionSummary
from exam_portal.schemas.user import UserRef


def _dedupe(values: List[str]) -> List[str]:
    seen = set()
    ordered = []
    for value in values:
        if value not in seen:
            seen.add(value)
            ordered.append(value)
    return ordered


class Availability(str, Enum):
    upcoming = "upcoming"
    open = "open"
    closed = "closed"


class ExamBase(BaseModel):
    """Base fields shared across Exam DTOs."""

    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    question_ids: List[str] = Field(default_factory=list)
    duration: int = Field(..., ge=1, description="Allowed time in minutes")
    start_time: datetime
    end_time: datetime
    is_active: bool = False
    assigned_student_ids: List[str] = Field(default_factory=list)

    @field_validator("start_time", "end_time")
    @classmethod
    def normalize_times(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @field_validator("assigned_student_ids")
    @classmethod
    def unique_students(cls, value: List[str]) -> List[str]:
        return _dedupe(value)


class ExamCreate(ExamBase):
    """Payload to create an exam."""

    pass


class ExamUpdate(BaseModel):
    """Payload to update an exam."""

    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    question_ids: Optional[List[str]] = None
    duration: Optional[int] = Field(default=None, ge=1)
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    is_active: Optional[bool] = None
    assigned_student_ids: Optional[List[str]] = None

    @field_validator("start_time", "end_time")
    @classmethod
    def normalize_times(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value) if value is not None else None

    @field_validator("assigned_student_ids")
    @classmethod
    def unique_students(cls, value: Optional[List[str]]) -> Optional[List[str]]:
        return _dedupe(value) if value is not None else None


class ExamActivation(BaseModel):
    is_active: bool


class ExamResponse(ExamBase):
    """Response model for persisted exams."""

    exam_id: str
    created_by: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class ExamAdminView(BaseModel):
    """Exam with references resolved for the admin dashboard."""

    exam_id: str
    title: str
    description: Optional[str] = None
    duration: int
    start_time: datetime
    end_time: datetime
    is_active: bool
    questions: List[QuestionSummary]
    assigned_students: List[UserRef]
    created_by: Optional[UserRef] = None
    total_marks: int
    created_at: datetime
    updated_at: datetime


class ExamStudentView(BaseModel):
    """Exam as listed on a student's dashboard."""

    exam_id: str
    title: str
    description: Optional[str] = None
    duration: int
    start_time: datetime
    end_time: datetime
    is_active: bool
    questions: List[QuestionSummary]
    total_marks: int
    availability: Availability
    has_submitted: bool = False


class ExamSessionView(BaseModel):
    """Sanitized exam handed to a student starting an attempt."""

    exam_id: str
    title: str
    description: Optional[str] = None
    duration: int
    start_time: datetime
    end_time: datetime
    questions: List[QuestionPublicView]
    total_marks: int
    started_at: datetime
    deadline: datetime


class SubmissionRequest(BaseModel):
    answers: dict[str, str] = Field(default_factory=dict)
