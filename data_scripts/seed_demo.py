"""
Seed a small demo data set directly into MongoDB (no HTTP/auth required).

What it does
- Creates one admin and three students (password "password123" for all)
- Inserts a handful of questions across subjects and question types
- Creates one active exam, open for the next 7 days, assigned to every student
- Skips users that already exist (by email); questions/exam are only created once
- With --reset, deletes all users, questions, exams and results first

How to run:
1) Ensure MongoDB is reachable per your `.env` (EXAM_MONGO_URI/EXAM_MONGO_DB_NAME) and JWT_SECRET is set
2) python data_scripts/seed_demo.py [--reset]
"""

import argparse
import os
import sys
from datetime import timedelta
from typing import Any, Dict, List, Optional

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from exam_portal.core.timeutils import utcnow  # type: ignore
from exam_portal.db.session import Database  # type: ignore
from exam_portal.schemas.exam import ExamCreate, ExamResponse  # type: ignore
from exam_portal.schemas.question import QuestionCreate  # type: ignore
from exam_portal.schemas.user import RegisterRequest, Role  # type: ignore
from exam_portal.services.auth_service import ensure_admin, register_user  # type: ignore
from exam_portal.services.exam_service import create_exam  # type: ignore
from exam_portal.services.question_service import create_question  # type: ignore

DEMO_PASSWORD = "password123"
DEMO_EXAM_TITLE = "Demo: General Knowledge"

STUDENTS = [
    ("Asha Rao", "asha@example.com"),
    ("Ben Okafor", "ben@example.com"),
    ("Chen Li", "chen@example.com"),
]


def build_questions() -> List[Dict[str, Any]]:
    return [
        {
            "text": "What is the capital of France?",
            "type": "multiple_choice",
            "options": ["Paris", "Lyon", "Marseille", "Nice"],
            "correct_answer": "Paris",
            "subject": "Geography",
            "topic": "Capitals",
            "difficulty": "easy",
            "marks": 2,
        },
        {
            "text": "Water boils at 100 degrees Celsius at sea level.",
            "type": "true_false",
            "options": ["true", "false"],
            "correct_answer": "true",
            "subject": "Science",
            "topic": "Physics",
            "difficulty": "easy",
            "marks": 1,
        },
        {
            "text": "Name the chemical symbol for gold.",
            "type": "short_answer",
            "correct_answer": "Au",
            "subject": "Science",
            "topic": "Chemistry",
            "difficulty": "medium",
            "marks": 3,
        },
        {
            "text": "Which planet is known as the Red Planet?",
            "type": "multiple_choice",
            "options": ["Venus", "Mars", "Jupiter", "Saturn"],
            "correct_answer": "Mars",
            "subject": "Science",
            "topic": "Astronomy",
            "difficulty": "easy",
            "marks": 2,
        },
        {
            "text": "What is 12 multiplied by 12?",
            "type": "short_answer",
            "correct_answer": "144",
            "subject": "Mathematics",
            "topic": "Arithmetic",
            "difficulty": "medium",
            "marks": 2,
        },
    ]


def seed(db: Database, reset: bool = False) -> Optional[ExamResponse]:
    """Seed ``db``; returns the demo exam, or None when it already existed."""

    if reset:
        db.clear_all()
        print("Cleared users, questions, exams and results.")

    admin = ensure_admin("admin@example.com", DEMO_PASSWORD, name="Demo Admin", db=db)
    print(f"Admin: {admin.email}")

    student_ids: List[str] = []
    for name, email in STUDENTS:
        existing = db.get_user_by_email(email)
        if existing:
            student_ids.append(existing.user_id)
            print(f"  ↷ SKIP  student={email}  (already exists)")
            continue
        token = register_user(RegisterRequest(name=name, email=email, password=DEMO_PASSWORD, role=Role.student), db=db)
        student_ids.append(token.user.user_id)
        print(f"  ✅ OK   student={email}")

    if any(exam.title == DEMO_EXAM_TITLE for exam in db.list_exams()):
        print("\nDemo exam already present; nothing else to do.")
        return None

    question_ids = []
    for item in build_questions():
        question = create_question(QuestionCreate(**item), creator_id=admin.user_id, db=db)
        question_ids.append(question.question_id)
        print(f"  ✅ OK   question={question.text[:40]}")

    now = utcnow()
    exam = create_exam(
        ExamCreate(
            title=DEMO_EXAM_TITLE,
            description="A short mixed quiz to try the exam flow.",
            question_ids=question_ids,
            duration=15,
            start_time=now - timedelta(minutes=5),
            end_time=now + timedelta(days=7),
            is_active=True,
            assigned_student_ids=student_ids,
        ),
        creator_id=admin.user_id,
        db=db,
    )

    print("\nDone.")
    print(f"Exam: {exam.exam_id} ({len(question_ids)} questions, {len(student_ids)} students)")
    print(f"Log in with any seeded email and password '{DEMO_PASSWORD}'.")
    return exam


def main():
    parser = argparse.ArgumentParser(description="Seed demo users, questions and an exam into MongoDB.")
    parser.add_argument("--reset", action="store_true", help="Delete all existing data before seeding")
    args = parser.parse_args()

    db = Database()
    db.init_indexes()
    print(f"Seeding demo data directly into MongoDB database '{db.db_name}'\n")
    seed(db, reset=args.reset)


if __name__ == "__main__":
    main()
