from datetime import timedelta

import pytest

from conftest import make_exam, make_question, make_user
from exam_portal.core.errors import NotFound, ValidationFailed
from exam_portal.core.timeutils import utcnow
from exam_portal.schemas.exam import Availability, ExamUpdate
from exam_portal.schemas.user import Role
from exam_portal.services.exam_service import (
    availability,
    delete_exam,
    list_exams_for_admin,
    list_exams_for_student,
    set_exam_active,
    update_exam,
)
from exam_portal.services.session_service import submit_exam


def test_create_rejects_inverted_window(db, student):
    now = utcnow()
    with pytest.raises(ValidationFailed):
        make_exam(db, [], [student.user.user_id], start_time=now, end_time=now - timedelta(minutes=1))


def test_create_rejects_unknown_references(db, admin, student):
    question = make_question(db)
    with pytest.raises(ValidationFailed):
        make_exam(db, [question.question_id, "ghost"], [student.user.user_id])
    with pytest.raises(ValidationFailed):
        make_exam(db, [question.question_id], ["nobody"])
    with pytest.raises(ValidationFailed):
        make_exam(db, [question.question_id], [admin.user.user_id])


def test_duplicate_question_references_are_kept(db, student):
    question = make_question(db, marks=2)
    exam = make_exam(db, [question.question_id, question.question_id], [student.user.user_id, student.user.user_id])
    assert exam.question_ids == [question.question_id, question.question_id]
    assert exam.assigned_student_ids == [student.user.user_id]


def test_admin_listing_is_newest_first_with_resolved_references(db, admin, student):
    question = make_question(db, marks=4)
    older = make_exam(db, [question.question_id], [student.user.user_id], creator_id=admin.user.user_id, title="Old")
    newer = make_exam(db, [question.question_id], [], creator_id=admin.user.user_id, title="New")
    db.exams[older.exam_id].created_at = newer.created_at - timedelta(hours=1)

    views = list_exams_for_admin(db=db)
    assert [v.title for v in views] == ["New", "Old"]

    old_view = views[1]
    assert old_view.total_marks == 4
    assert old_view.questions[0].text == question.text
    assert old_view.questions[0].subject == "Geography"
    assert old_view.assigned_students[0].name == "Sam Student"
    assert old_view.assigned_students[0].email == "sam.student@example.com"
    assert old_view.created_by.name == "Ada Admin"


def test_student_listing_only_shows_assigned_active_exams(db, student, other_student):
    question = make_question(db)
    mine = make_exam(db, [question.question_id], [student.user.user_id], title="Mine")
    make_exam(db, [question.question_id], [other_student.user.user_id], title="Theirs")
    make_exam(db, [question.question_id], [student.user.user_id], title="Draft", is_active=False)

    views = list_exams_for_student(student.user.user_id, db=db)
    assert [v.exam_id for v in views] == [mine.exam_id]
    assert views[0].availability == Availability.open
    assert views[0].has_submitted is False
    assert "correct_answer" not in views[0].questions[0].model_dump()

    assert [v.title for v in list_exams_for_student(other_student.user.user_id, db=db)] == ["Theirs"]


def test_deactivating_hides_exam_from_students(db, sample_exam, student):
    assert len(list_exams_for_student(student.user.user_id, db=db)) == 1

    update_exam(sample_exam.exam_id, ExamUpdate(is_active=False), db=db)
    assert list_exams_for_student(student.user.user_id, db=db) == []

    set_exam_active(sample_exam.exam_id, True, db=db)
    assert len(list_exams_for_student(student.user.user_id, db=db)) == 1


def test_student_listing_flags_submitted_exams(db, sample_exam, student):
    submit_exam(sample_exam.exam_id, student.user.user_id, {}, db=db)
    views = list_exams_for_student(student.user.user_id, db=db)
    assert views[0].has_submitted is True


def test_update_validates_merged_window(db, sample_exam):
    with pytest.raises(ValidationFailed):
        update_exam(sample_exam.exam_id, ExamUpdate(end_time=sample_exam.start_time - timedelta(minutes=5)), db=db)

    updated = update_exam(sample_exam.exam_id, ExamUpdate(title="Final", duration=45), db=db)
    assert updated.title == "Final"
    assert updated.duration == 45
    assert db.get_exam(sample_exam.exam_id).title == "Final"


def test_update_can_clear_description(db, sample_exam):
    assert sample_exam.description == "General knowledge"

    untouched = update_exam(sample_exam.exam_id, ExamUpdate(title="Renamed"), db=db)
    assert untouched.description == "General knowledge"

    cleared = update_exam(sample_exam.exam_id, ExamUpdate(description=None, title=None), db=db)
    assert cleared.description is None
    assert cleared.title == "Renamed"
    assert db.get_exam(sample_exam.exam_id).description is None


def test_update_assigns_new_students(db, sample_exam):
    newcomer = make_user(db, "Nia New")
    updated = update_exam(sample_exam.exam_id, ExamUpdate(assigned_student_ids=[newcomer.user.user_id]), db=db)
    assert updated.assigned_student_ids == [newcomer.user.user_id]

    admin = make_user(db, "Root", role=Role.admin)
    with pytest.raises(ValidationFailed):
        update_exam(sample_exam.exam_id, ExamUpdate(assigned_student_ids=[admin.user.user_id]), db=db)


def test_update_and_delete_unknown_exam(db):
    with pytest.raises(NotFound):
        update_exam("missing", ExamUpdate(title="x"), db=db)
    with pytest.raises(NotFound):
        delete_exam("missing", db=db)


def test_delete_exam(db, sample_exam):
    delete_exam(sample_exam.exam_id, db=db)
    assert db.get_exam(sample_exam.exam_id) is None


def test_availability_labels(db, sample_exam):
    assert availability(sample_exam, sample_exam.start_time - timedelta(seconds=1)) == Availability.upcoming
    assert availability(sample_exam, sample_exam.start_time) == Availability.open
    assert availability(sample_exam, sample_exam.end_time) == Availability.open
    assert availability(sample_exam, sample_exam.end_time + timedelta(seconds=1)) == Availability.closed
