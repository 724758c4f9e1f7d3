from typing import Iterable, List, Optional

from exam_portal.db.session import Database, get_db
from exam_portal.schemas.result import ExamResultResponse, ResultRow, ResultStatistics
from exam_portal.schemas.user import UserRef
from exam_portal.services.exam_service import get_exam

PASS_THRESHOLD_PCT = 60.0

GRADE_STEPS = (
    (90.0, "A+"),
    (80.0, "A"),
    (70.0, "B"),
    (60.0, "C"),
    (50.0, "D"),
)


def percentage(obtained_marks: int, total_marks: int) -> float:
    if total_marks <= 0:
        return 0.0
    return obtained_marks / total_marks * 100


def grade_for(pct: float) -> str:
    """Map a percentage to a letter grade."""

    for threshold, letter in GRADE_STEPS:
        if pct >= threshold:
            return letter
    return "F"


def compute_statistics(results: Iterable[ExamResultResponse]) -> ResultStatistics:
    """Summary over a result set; an empty set yields all zeros."""

    scores = [percentage(r.obtained_marks, r.total_marks) for r in results]
    if not scores:
        return ResultStatistics()
    passed = [s for s in scores if s >= PASS_THRESHOLD_PCT]
    return ResultStatistics(
        count=len(scores),
        mean_pct=round(sum(scores) / len(scores), 1),
        max_pct=round(max(scores), 1),
        min_pct=round(min(scores), 1),
        pass_rate_pct=round(len(passed) / len(scores) * 100, 1),
    )


def list_results(exam_id: str, db: Optional[Database] = None) -> List[ResultRow]:
    """Completed results of an exam, highest score first, with student details."""

    db = db or get_db()
    exam = get_exam(exam_id, db)
    results = db.list_results(exam_id)
    students = {u.user_id: u for u in db.get_users_by_ids([r.student_id for r in results])}

    rows = []
    for result in results:
        student = students.get(result.student_id)
        pct = percentage(result.obtained_marks, result.total_marks)
        rows.append(
            ResultRow(
                result_id=result.result_id,
                exam_id=exam_id,
                exam_title=exam.title,
                student=UserRef(
                    user_id=result.student_id,
                    name=student.name if student else "Unknown student",
                    email=student.email if student else None,
                ),
                obtained_marks=result.obtained_marks,
                total_marks=result.total_marks,
                percentage=round(pct, 1),
                grade=grade_for(pct),
                submitted_at=result.submitted_at,
                submitted_late=result.submitted_late,
            )
        )
    return rows


def exam_statistics(exam_id: str, db: Optional[Database] = None) -> ResultStatistics:
    db = db or get_db()
    get_exam(exam_id, db)
    return compute_statistics(db.list_results(exam_id))
