import logging
import uuid
from datetime import datetime, timedelta
from typing import Dict, Optional

from exam_portal.core.config import get_settings
from exam_portal.core.errors import Forbidden, InvalidState, NotFound
from exam_portal.core.timeutils import utcnow
from exam_portal.db.session import Database, get_db
from exam_portal.schemas.exam import ExamResponse, ExamSessionView
from exam_portal.schemas.question import QuestionPublicView
from exam_portal.schemas.result import ExamResultResponse, ResultStatus, SubmissionResponse
from exam_portal.services.exam_service import resolve_questions, total_marks
from exam_portal.services.grading import grade_submission

logger = logging.getLogger(__name__)

ALREADY_SUBMITTED = "Exam already submitted"


def _load_assigned_exam(exam_id: str, student_id: str, db: Database) -> ExamResponse:
    exam = db.get_exam(exam_id)
    if not exam:
        raise NotFound("Exam not found")
    if student_id not in exam.assigned_student_ids:
        raise Forbidden("Not authorized to take this exam")
    return exam


def start_exam(
    exam_id: str, student_id: str, db: Optional[Database] = None, now: Optional[datetime] = None
) -> ExamSessionView:
    """
    Open (or resume) the attempt of ``student_id`` at ``exam_id``.

    Checks run in a fixed order: exam exists, student assigned, exam active,
    not yet submitted, then the exam window when window enforcement is on. The
    returned view carries no answer keys.
    """

    db = db or get_db()
    settings = get_settings()
    now = now or utcnow()

    exam = _load_assigned_exam(exam_id, student_id, db)
    if not exam.is_active:
        raise InvalidState("Exam is not active")
    existing = db.get_result(exam_id, student_id)
    if existing and existing.status == ResultStatus.completed:
        raise InvalidState(ALREADY_SUBMITTED)
    if settings.enforce_exam_window:
        if now < exam.start_time:
            raise InvalidState("Exam has not started yet")
        if now > exam.end_time:
            raise InvalidState("Exam window has closed")

    questions = resolve_questions(exam, db)
    deadline = now + timedelta(minutes=exam.duration)
    if settings.enforce_exam_window:
        deadline = min(deadline, exam.end_time)

    attempt_id = str(uuid.uuid4())
    attempt = db.open_attempt(
        ExamResultResponse(
            result_id=attempt_id,
            exam_id=exam_id,
            student_id=student_id,
            total_marks=total_marks(questions),
            status=ResultStatus.in_progress,
            started_at=now,
            deadline=deadline,
        )
    )
    if attempt.status == ResultStatus.completed:
        raise InvalidState(ALREADY_SUBMITTED)
    if attempt.result_id != attempt_id:
        logger.info("Student %s resumed exam %s started at %s", student_id, exam_id, attempt.started_at)
    else:
        logger.info("Student %s started exam %s", student_id, exam_id)

    return ExamSessionView(
        exam_id=exam.exam_id,
        title=exam.title,
        description=exam.description,
        duration=exam.duration,
        start_time=exam.start_time,
        end_time=exam.end_time,
        questions=[
            QuestionPublicView(
                question_id=q.question_id,
                text=q.text,
                type=q.type,
                options=q.options,
                subject=q.subject,
                topic=q.topic,
                marks=q.marks,
            )
            for q in questions
        ],
        total_marks=total_marks(questions),
        started_at=attempt.started_at or now,
        deadline=attempt.deadline or deadline,
    )


def submit_exam(
    exam_id: str,
    student_id: str,
    answers: Dict[str, str],
    db: Optional[Database] = None,
    now: Optional[datetime] = None,
) -> SubmissionResponse:
    """
    Grade and persist the one completed result for (exam, student).

    The write is an atomic in-progress -> completed transition; a second or
    concurrent submission fails with InvalidState.
    """

    db = db or get_db()
    settings = get_settings()
    now = now or utcnow()
    grace = timedelta(seconds=settings.submission_grace_seconds)

    exam = _load_assigned_exam(exam_id, student_id, db)
    existing = db.get_result(exam_id, student_id)
    if existing and existing.status == ResultStatus.completed:
        raise InvalidState(ALREADY_SUBMITTED)
    if settings.enforce_exam_window:
        if now < exam.start_time:
            raise InvalidState("Exam has not started yet")
        if now > exam.end_time + grace:
            raise InvalidState("Exam window has closed")

    outcome = grade_submission(resolve_questions(exam, db), answers)
    deadline = existing.deadline if existing else None
    result = ExamResultResponse(
        result_id=existing.result_id if existing else str(uuid.uuid4()),
        exam_id=exam_id,
        student_id=student_id,
        answers=outcome.answers,
        total_marks=outcome.total_marks,
        obtained_marks=outcome.obtained_marks,
        status=ResultStatus.completed,
        started_at=existing.started_at if existing else None,
        deadline=deadline,
        submitted_at=now,
        submitted_late=bool(deadline and now > deadline + grace),
    )
    stored = db.complete_result(result)
    if stored is None:
        logger.warning("Rejected duplicate submission for exam %s by student %s", exam_id, student_id)
        raise InvalidState(ALREADY_SUBMITTED)

    logger.info("Student %s submitted exam %s scoring %s", student_id, exam_id, outcome.score)
    return SubmissionResponse(result=stored, score=outcome.score)
