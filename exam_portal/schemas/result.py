from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from exam_portal.schemas.user import UserRef


class ResultStatus(str, Enum):
    in_progress = "in_progress"
    completed = "completed"


class GradedAnswer(BaseModel):
    question_id: str
    submitted_answer: str
    is_correct: bool
    awarded_marks: int


class ExamResultResponse(BaseModel):
    """One attempt of a student at an exam."""

    result_id: str
    exam_id: str
    student_id: str
    answers: List[GradedAnswer] = Field(default_factory=list)
    total_marks: int = 0
    obtained_marks: int = 0
    status: ResultStatus = ResultStatus.in_progress
    started_at: Optional[datetime] = None
    deadline: Optional[datetime] = None
    submitted_at: Optional[datetime] = None
    submitted_late: bool = False


class SubmissionResponse(BaseModel):
    result: ExamResultResponse
    score: str


class ResultRow(BaseModel):
    """Completed result as listed for admins."""

    result_id: str
    exam_id: str
    exam_title: Optional[str] = None
    student: UserRef
    obtained_marks: int
    total_marks: int
    percentage: float
    grade: str
    submitted_at: Optional[datetime] = None
    submitted_late: bool = False


class ResultStatistics(BaseModel):
    count: int = 0
    mean_pct: float = 0.0
    max_pct: float = 0.0
    min_pct: float = 0.0
    pass_rate_pct: float = 0.0
