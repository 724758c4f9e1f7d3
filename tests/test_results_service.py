from datetime import timedelta

import pytest

from conftest import make_user
from exam_portal.core.errors import NotFound
from exam_portal.core.timeutils import utcnow
from exam_portal.schemas.result import ExamResultResponse, ResultStatistics, ResultStatus
from exam_portal.services.results_service import compute_statistics, exam_statistics, grade_for, list_results
from exam_portal.services.session_service import start_exam, submit_exam


def _result(obtained: int, total: int) -> ExamResultResponse:
    return ExamResultResponse(
        result_id=f"r{obtained}-{total}",
        exam_id="exam",
        student_id="student",
        obtained_marks=obtained,
        total_marks=total,
        status=ResultStatus.completed,
    )


def test_statistics_of_empty_set_are_zero():
    assert compute_statistics([]) == ResultStatistics(count=0, mean_pct=0, max_pct=0, min_pct=0, pass_rate_pct=0)


def test_statistics_summary():
    stats = compute_statistics([_result(9, 10), _result(6, 10), _result(3, 10), _result(5, 8)])
    assert stats.count == 4
    assert stats.max_pct == 90.0
    assert stats.min_pct == 30.0
    assert stats.mean_pct == pytest.approx(60.6, abs=0.05)
    # 90 and 62.5 pass, 60 passes at the threshold, 30 fails
    assert stats.pass_rate_pct == 75.0


def test_zero_total_counts_as_zero_percent():
    stats = compute_statistics([_result(0, 0)])
    assert stats.mean_pct == 0.0
    assert stats.pass_rate_pct == 0.0


@pytest.mark.parametrize(
    "pct, letter",
    [(100, "A+"), (90, "A+"), (89.9, "A"), (80, "A"), (70, "B"), (60, "C"), (59.9, "D"), (50, "D"), (49.9, "F"), (0, "F")],
)
def test_grade_letters(pct, letter):
    assert grade_for(pct) == letter


def test_results_are_sorted_by_score_with_student_details(db, sample_exam, student):
    q1, q2 = sample_exam.question_ids
    strong = make_user(db, "Top Scorer")
    sample_exam.assigned_student_ids.append(strong.user.user_id)
    db.update_exam(sample_exam)

    submit_exam(sample_exam.exam_id, student.user.user_id, {q1: "paris"}, db=db)
    submit_exam(sample_exam.exam_id, strong.user.user_id, {q1: "PARIS", q2: "True"}, db=db)

    rows = list_results(sample_exam.exam_id, db=db)
    assert [r.student.name for r in rows] == ["Top Scorer", "Sam Student"]
    assert rows[0].percentage == 100.0
    assert rows[0].grade == "A+"
    assert rows[1].percentage == 62.5
    assert rows[1].grade == "C"
    assert rows[1].student.email == "sam.student@example.com"
    assert rows[0].exam_title == sample_exam.title

    stats = exam_statistics(sample_exam.exam_id, db=db)
    assert stats.count == 2
    assert stats.pass_rate_pct == 100.0


def test_equal_scores_are_ordered_by_submission_time(db, sample_exam, student):
    q1, _ = sample_exam.question_ids
    early = make_user(db, "Early Bird")
    sample_exam.assigned_student_ids.append(early.user.user_id)
    db.update_exam(sample_exam)
    now = utcnow()

    submit_exam(sample_exam.exam_id, student.user.user_id, {q1: "paris"}, db=db, now=now)
    submit_exam(sample_exam.exam_id, early.user.user_id, {q1: "paris"}, db=db, now=now - timedelta(minutes=5))

    rows = list_results(sample_exam.exam_id, db=db)
    assert [r.student.name for r in rows] == ["Early Bird", "Sam Student"]


def test_in_progress_attempts_are_not_results(db, sample_exam, student):
    start_exam(sample_exam.exam_id, student.user.user_id, db=db)
    assert list_results(sample_exam.exam_id, db=db) == []
    assert exam_statistics(sample_exam.exam_id, db=db).count == 0


def test_results_for_unknown_exam(db):
    with pytest.raises(NotFound):
        list_results("missing", db=db)
