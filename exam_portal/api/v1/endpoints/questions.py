from typing import Optional

from fastapi import APIRouter, Depends, Query

from exam_portal.db.session import Database, get_db
from exam_portal.schemas.question import (
    Difficulty,
    PaginatedQuestions,
    QuestionCreate,
    QuestionMetadata,
    QuestionResponse,
    QuestionUpdate,
)
from exam_portal.schemas.user import Principal
from exam_portal.security.auth import require_admin
from exam_portal.services.question_service import (
    DEFAULT_PAGE_SIZE,
    create_question,
    delete_question,
    get_question,
    get_question_metadata,
    list_questions,
    update_question,
)

router = APIRouter(prefix="/questions", dependencies=[Depends(require_admin)])


@router.get("", response_model=PaginatedQuestions)
def list_questions_endpoint(
    subject: Optional[str] = None,
    topic: Optional[str] = None,
    difficulty: Optional[Difficulty] = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=DEFAULT_PAGE_SIZE, ge=1),
    db: Database = Depends(get_db),
) -> PaginatedQuestions:
    return list_questions(subject=subject, topic=topic, difficulty=difficulty, page=page, limit=limit, db=db)


@router.post("", response_model=QuestionResponse, status_code=201)
def create_question_endpoint(
    payload: QuestionCreate,
    principal: Principal = Depends(require_admin),
    db: Database = Depends(get_db),
) -> QuestionResponse:
    return create_question(payload, creator_id=principal.user_id, db=db)


@router.get("/metadata", response_model=QuestionMetadata)
def question_metadata_endpoint(db: Database = Depends(get_db)) -> QuestionMetadata:
    return get_question_metadata(db)


@router.get("/{question_id}", response_model=QuestionResponse)
def get_question_endpoint(question_id: str, db: Database = Depends(get_db)) -> QuestionResponse:
    return get_question(question_id, db)


@router.put("/{question_id}", response_model=QuestionResponse)
def update_question_endpoint(
    question_id: str, payload: QuestionUpdate, db: Database = Depends(get_db)
) -> QuestionResponse:
    return update_question(question_id, payload, db)


@router.delete("/{question_id}")
def delete_question_endpoint(question_id: str, db: Database = Depends(get_db)) -> dict:
    delete_question(question_id, db)
    return {"message": "Question deleted successfully", "question_id": question_id}
