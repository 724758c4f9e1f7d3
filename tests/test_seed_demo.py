from conftest import make_user
from data_scripts.seed_demo import DEMO_EXAM_TITLE, STUDENTS, seed
from exam_portal.schemas.user import Role


def test_seed_is_idempotent(db):
    exam = seed(db)
    assert exam is not None
    assert len(exam.question_ids) == 5
    assert len(exam.assigned_student_ids) == len(STUDENTS)

    assert seed(db) is None
    assert len(db.list_exams()) == 1
    assert len(db.list_users(role=Role.student)) == len(STUDENTS)


def test_reset_clears_existing_data_before_seeding(db):
    seed(db)
    stray = make_user(db, "Stray Student")

    exam = seed(db, reset=True)
    assert exam is not None
    assert db.get_user(stray.user.user_id) is None
    assert [e.title for e in db.list_exams()] == [DEMO_EXAM_TITLE]
    assert len(db.questions) == 5
    assert db.get_user_by_email("admin@example.com").role == Role.admin
