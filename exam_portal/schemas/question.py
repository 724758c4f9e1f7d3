from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class QuestionType(str, Enum):
    multiple_choice = "multiple_choice"
    true_false = "true_false"
    short_answer = "short_answer"


class Difficulty(str, Enum):
    easy = "easy"
    medium = "medium"
    hard = "hard"


class QuestionBase(BaseModel):
    """Base fields for question payloads."""

    text: str = Field(..., min_length=1)
    type: QuestionType
    options: List[str] = Field(default_factory=list)
    correct_answer: str = Field(..., min_length=1)
    subject: str = Field(..., min_length=1)
    topic: str = Field(..., min_length=1)
    difficulty: Difficulty = Difficulty.medium
    marks: int = Field(default=1, ge=1)


class QuestionCreate(QuestionBase):
    """Payload to create a question."""

    pass


class QuestionUpdate(BaseModel):
    """Payload to update a question."""

    text: Optional[str] = Field(default=None, min_length=1)
    type: Optional[QuestionType] = None
    options: Optional[List[str]] = None
    correct_answer: Optional[str] = Field(default=None, min_length=1)
    subject: Optional[str] = Field(default=None, min_length=1)
    topic: Optional[str] = Field(default=None, min_length=1)
    difficulty: Optional[Difficulty] = None
    marks: Optional[int] = Field(default=None, ge=1)


class QuestionResponse(QuestionBase):
    """Response model for persisted questions, answer key included."""

    question_id: str
    created_by: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class QuestionPublicView(BaseModel):
    """Question as shown to a student taking an exam; no answer key."""

    question_id: str
    text: str
    type: QuestionType
    options: List[str] = Field(default_factory=list)
    subject: str
    topic: str
    marks: int


class QuestionSummary(BaseModel):
    question_id: str
    text: str
    subject: Optional[str] = None
    type: Optional[QuestionType] = None
    marks: int


class PaginatedQuestions(BaseModel):
    items: List[QuestionResponse]
    total: int
    page: int
    limit: int
    pages: int


class QuestionMetadata(BaseModel):
    subjects: List[str]
    topics: List[str]
