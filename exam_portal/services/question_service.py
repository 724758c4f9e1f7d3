import logging
import math
import uuid
from typing import Optional

from exam_portal.core.errors import NotFound, ValidationFailed
from exam_portal.core.timeutils import utcnow
from exam_portal.db.session import Database, get_db
from exam_portal.schemas.question import (
    Difficulty,
    PaginatedQuestions,
    QuestionCreate,
    QuestionMetadata,
    QuestionResponse,
    QuestionType,
    QuestionUpdate,
)

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


def _validate_options(question_type: QuestionType, options: list) -> None:
    if question_type == QuestionType.multiple_choice and not [opt for opt in options if opt.strip()]:
        raise ValidationFailed("options are required for multiple_choice questions")


def create_question(data: QuestionCreate, creator_id: Optional[str] = None, db: Optional[Database] = None) -> QuestionResponse:
    """Create a question owned by ``creator_id``."""

    db = db or get_db()
    _validate_options(data.type, data.options)

    now = utcnow()
    question = QuestionResponse(
        question_id=str(uuid.uuid4()),
        **data.model_dump(),
        created_by=creator_id,
        created_at=now,
        updated_at=now,
    )
    db.insert_question(question)
    logger.info("Created question %s (%s/%s)", question.question_id, question.subject, question.topic)
    return question


def get_question(question_id: str, db: Optional[Database] = None) -> QuestionResponse:
    """Fetch a question by id or raise 404."""

    db = db or get_db()
    question = db.get_question(question_id)
    if not question:
        raise NotFound("Question not found")
    return question


def update_question(question_id: str, payload: QuestionUpdate, db: Optional[Database] = None) -> QuestionResponse:
    """Apply a partial update; the merged record must still be valid."""

    db = db or get_db()
    question = get_question(question_id, db)

    updated = question.model_copy(update=payload.model_dump(exclude_unset=True, exclude_none=True))
    _validate_options(updated.type, updated.options)
    updated.updated_at = utcnow()
    db.update_question(updated)
    logger.info("Updated question %s", question_id)
    return updated


def delete_question(question_id: str, db: Optional[Database] = None) -> None:
    """Delete a question; exams still referencing it keep a dangling id."""

    db = db or get_db()
    references = db.count_exams_referencing(question_id)
    if not db.delete_question(question_id):
        raise NotFound("Question not found")
    if references:
        logger.warning("Deleted question %s still referenced by %d exam(s)", question_id, references)
    else:
        logger.info("Deleted question %s", question_id)


def list_questions(
    subject: Optional[str] = None,
    topic: Optional[str] = None,
    difficulty: Optional[Difficulty] = None,
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
    db: Optional[Database] = None,
) -> PaginatedQuestions:
    """Filtered, newest-first page of questions."""

    db = db or get_db()
    page = max(1, page)
    limit = max(1, min(limit, MAX_PAGE_SIZE))
    items, total = db.list_questions(
        subject=subject,
        topic=topic,
        difficulty=difficulty.value if difficulty else None,
        skip=(page - 1) * limit,
        limit=limit,
    )
    return PaginatedQuestions(items=items, total=total, page=page, limit=limit, pages=math.ceil(total / limit))


def get_question_metadata(db: Optional[Database] = None) -> QuestionMetadata:
    db = db or get_db()
    return QuestionMetadata(
        subjects=db.distinct_question_values("subject"),
        topics=db.distinct_question_values("topic"),
    )
