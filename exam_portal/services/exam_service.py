import logging
import uuid
from datetime import datetime
from typing import Dict, List, Optional

from exam_portal.core.errors import NotFound, ValidationFailed
from exam_portal.core.timeutils import utcnow
from exam_portal.db.session import Database, get_db
from exam_portal.schemas.exam import (
    Availability,
    ExamAdminView,
    ExamCreate,
    ExamResponse,
    ExamStudentView,
    ExamUpdate,
)
from exam_portal.schemas.question import QuestionResponse, QuestionSummary
from exam_portal.schemas.user import Role, UserRef

logger = logging.getLogger(__name__)

# An explicit null clears these on update; for every other field null means "unchanged".
NULLABLE_EXAM_FIELDS = {"description"}


def _validate_window(start_time: datetime, end_time: datetime) -> None:
    if start_time >= end_time:
        raise ValidationFailed("start_time must be before end_time")


def _validate_references(question_ids: List[str], student_ids: List[str], db: Database) -> None:
    """Referenced questions must exist and assignees must be student accounts."""

    known_questions = {q.question_id for q in db.get_questions_by_ids(question_ids)}
    missing = [qid for qid in dict.fromkeys(question_ids) if qid not in known_questions]
    if missing:
        raise ValidationFailed(f"Questions not found: {', '.join(missing)}")

    students = {u.user_id: u for u in db.get_users_by_ids(student_ids)}
    for student_id in student_ids:
        user = students.get(student_id)
        if not user:
            raise ValidationFailed(f"Student {student_id} does not exist")
        if user.role != Role.student:
            raise ValidationFailed(f"User {student_id} is not a student")


def resolve_questions(exam: ExamResponse, db: Database) -> List[QuestionResponse]:
    """Questions of ``exam`` in authored order, answer keys included; dangling ids are skipped."""

    by_id: Dict[str, QuestionResponse] = {q.question_id: q for q in db.get_questions_by_ids(exam.question_ids)}
    resolved = []
    for question_id in exam.question_ids:
        question = by_id.get(question_id)
        if question is None:
            logger.warning("Exam %s references missing question %s", exam.exam_id, question_id)
            continue
        resolved.append(question)
    return resolved


def total_marks(questions: List[QuestionResponse]) -> int:
    return sum(q.marks for q in questions)


def availability(exam: ExamResponse, now: Optional[datetime] = None) -> Availability:
    now = now or utcnow()
    if now < exam.start_time:
        return Availability.upcoming
    if now > exam.end_time:
        return Availability.closed
    return Availability.open


def create_exam(data: ExamCreate, creator_id: Optional[str] = None, db: Optional[Database] = None) -> ExamResponse:
    """Create an exam after checking its window and references."""

    db = db or get_db()
    _validate_window(data.start_time, data.end_time)
    _validate_references(data.question_ids, data.assigned_student_ids, db)

    now = utcnow()
    exam = ExamResponse(
        exam_id=str(uuid.uuid4()),
        **data.model_dump(),
        created_by=creator_id,
        created_at=now,
        updated_at=now,
    )
    db.insert_exam(exam)
    logger.info("Created exam %s with %d question(s)", exam.exam_id, len(exam.question_ids))
    return exam


def get_exam(exam_id: str, db: Optional[Database] = None) -> ExamResponse:
    """Fetch an exam by id or raise 404."""

    db = db or get_db()
    exam = db.get_exam(exam_id)
    if not exam:
        raise NotFound("Exam not found")
    return exam


def update_exam(exam_id: str, payload: ExamUpdate, db: Optional[Database] = None) -> ExamResponse:
    """Update exam details after validation."""

    db = db or get_db()
    exam = get_exam(exam_id, db)
    changes = {
        key: value
        for key, value in payload.model_dump(exclude_unset=True).items()
        if value is not None or key in NULLABLE_EXAM_FIELDS
    }

    updated = exam.model_copy(update=changes)
    _validate_window(updated.start_time, updated.end_time)
    if "question_ids" in changes or "assigned_student_ids" in changes:
        _validate_references(
            changes.get("question_ids", []),
            changes.get("assigned_student_ids", []),
            db,
        )
    updated.updated_at = utcnow()
    db.update_exam(updated)
    logger.info("Updated exam %s (%s)", exam_id, ", ".join(sorted(changes)) or "no changes")
    return updated


def set_exam_active(exam_id: str, is_active: bool, db: Optional[Database] = None) -> ExamResponse:
    return update_exam(exam_id, ExamUpdate(is_active=is_active), db)


def delete_exam(exam_id: str, db: Optional[Database] = None) -> None:
    """Delete an exam or raise 404 if missing."""

    db = db or get_db()
    if not db.delete_exam(exam_id):
        raise NotFound("Exam not found")
    logger.info("Deleted exam %s", exam_id)


def list_exams_for_admin(db: Optional[Database] = None) -> List[ExamAdminView]:
    """All exams, newest first, with questions, assignees and creator resolved."""

    db = db or get_db()
    exams = db.list_exams()
    user_ids = {uid for e in exams for uid in e.assigned_student_ids} | {e.created_by for e in exams if e.created_by}
    users = {u.user_id: u for u in db.get_users_by_ids(list(user_ids))}

    views = []
    for exam in exams:
        questions = resolve_questions(exam, db)
        creator = users.get(exam.created_by) if exam.created_by else None
        views.append(
            ExamAdminView(
                exam_id=exam.exam_id,
                title=exam.title,
                description=exam.description,
                duration=exam.duration,
                start_time=exam.start_time,
                end_time=exam.end_time,
                is_active=exam.is_active,
                questions=[
                    QuestionSummary(question_id=q.question_id, text=q.text, subject=q.subject, marks=q.marks)
                    for q in questions
                ],
                assigned_students=[
                    UserRef(user_id=users[sid].user_id, name=users[sid].name, email=users[sid].email)
                    for sid in exam.assigned_student_ids
                    if sid in users
                ],
                created_by=UserRef(user_id=creator.user_id, name=creator.name) if creator else None,
                total_marks=total_marks(questions),
                created_at=exam.created_at,
                updated_at=exam.updated_at,
            )
        )
    return views


def list_exams_for_student(
    student_id: str, db: Optional[Database] = None, now: Optional[datetime] = None
) -> List[ExamStudentView]:
    """Active exams assigned to ``student_id``; answer keys never leave this function."""

    db = db or get_db()
    now = now or utcnow()
    submitted = db.completed_exam_ids(student_id)

    views = []
    for exam in db.list_exams(assigned_student_id=student_id, active_only=True):
        questions = resolve_questions(exam, db)
        views.append(
            ExamStudentView(
                exam_id=exam.exam_id,
                title=exam.title,
                description=exam.description,
                duration=exam.duration,
                start_time=exam.start_time,
                end_time=exam.end_time,
                is_active=exam.is_active,
                questions=[
                    QuestionSummary(question_id=q.question_id, text=q.text, type=q.type, marks=q.marks)
                    for q in questions
                ],
                total_marks=total_marks(questions),
                availability=availability(exam, now),
                has_submitted=exam.exam_id in submitted,
            )
        )
    return views
