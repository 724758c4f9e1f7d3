import threading
from datetime import datetime, timezone
from typing import Dict, List, Optional, Set, Tuple

from exam_portal.db.session import Database
from exam_portal.schemas.exam import ExamResponse
from exam_portal.schemas.question import QuestionResponse
from exam_portal.schemas.result import ExamResultResponse, ResultStatus
from exam_portal.schemas.user import Role, UserRecord

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class InMemoryDatabase(Database):
    """Dictionary-backed repository for unit tests and local demos."""

    def __init__(self) -> None:
        self.db_name = "memory"
        self._lock = threading.Lock()
        self.users: Dict[str, UserRecord] = {}
        self.questions: Dict[str, QuestionResponse] = {}
        self.exams: Dict[str, ExamResponse] = {}
        self.results: Dict[Tuple[str, str], ExamResultResponse] = {}

    def init_indexes(self) -> None:
        return None

    # User methods
    def insert_user(self, user: UserRecord) -> bool:
        with self._lock:
            if any(existing.email == user.email for existing in self.users.values()):
                return False
            self.users[user.user_id] = user.model_copy(deep=True)
        return True

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        user = self.users.get(user_id)
        return user.model_copy(deep=True) if user else None

    def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        for user in self.users.values():
            if user.email == email:
                return user.model_copy(deep=True)
        return None

    def get_users_by_ids(self, user_ids: List[str]) -> List[UserRecord]:
        return [self.users[uid].model_copy(deep=True) for uid in set(user_ids) if uid in self.users]

    def list_users(self, role: Optional[Role] = None) -> List[UserRecord]:
        users = [u for u in self.users.values() if role is None or u.role == role]
        return [u.model_copy(deep=True) for u in sorted(users, key=lambda u: u.name)]

    # Question methods
    def insert_question(self, question: QuestionResponse) -> None:
        self.questions[question.question_id] = question.model_copy(deep=True)

    def update_question(self, question: QuestionResponse) -> None:
        if question.question_id in self.questions:
            self.questions[question.question_id] = question.model_copy(deep=True)

    def delete_question(self, question_id: str) -> bool:
        return self.questions.pop(question_id, None) is not None

    def get_question(self, question_id: str) -> Optional[QuestionResponse]:
        question = self.questions.get(question_id)
        return question.model_copy(deep=True) if question else None

    def get_questions_by_ids(self, question_ids: List[str]) -> List[QuestionResponse]:
        return [self.questions[qid].model_copy(deep=True) for qid in set(question_ids) if qid in self.questions]

    def list_questions(
        self,
        subject: Optional[str] = None,
        topic: Optional[str] = None,
        difficulty: Optional[str] = None,
        skip: int = 0,
        limit: int = 10,
    ) -> Tuple[List[QuestionResponse], int]:
        matches = [
            q
            for q in self.questions.values()
            if (not subject or q.subject == subject)
            and (not topic or q.topic == topic)
            and (not difficulty or q.difficulty.value == difficulty)
        ]
        matches.sort(key=lambda q: q.question_id)
        matches.sort(key=lambda q: q.created_at, reverse=True)
        skip = max(0, skip)
        return [q.model_copy(deep=True) for q in matches[skip : skip + limit]], len(matches)

    def distinct_question_values(self, field: str) -> List[str]:
        return sorted({getattr(q, field) for q in self.questions.values() if getattr(q, field, None)})

    def count_exams_referencing(self, question_id: str) -> int:
        return sum(1 for exam in self.exams.values() if question_id in exam.question_ids)

    # Exam methods
    def insert_exam(self, exam: ExamResponse) -> None:
        self.exams[exam.exam_id] = exam.model_copy(deep=True)

    def update_exam(self, exam: ExamResponse) -> None:
        if exam.exam_id in self.exams:
            self.exams[exam.exam_id] = exam.model_copy(deep=True)

    def delete_exam(self, exam_id: str) -> bool:
        return self.exams.pop(exam_id, None) is not None

    def get_exam(self, exam_id: str) -> Optional[ExamResponse]:
        exam = self.exams.get(exam_id)
        return exam.model_copy(deep=True) if exam else None

    def list_exams(self, assigned_student_id: Optional[str] = None, active_only: bool = False) -> List[ExamResponse]:
        exams = [
            e
            for e in self.exams.values()
            if (not assigned_student_id or assigned_student_id in e.assigned_student_ids)
            and (not active_only or e.is_active)
        ]
        exams.sort(key=lambda e: e.created_at, reverse=True)
        return [e.model_copy(deep=True) for e in exams]

    # Exam result methods
    def open_attempt(self, attempt: ExamResultResponse) -> ExamResultResponse:
        key = (attempt.exam_id, attempt.student_id)
        with self._lock:
            if key not in self.results:
                self.results[key] = attempt.model_copy(deep=True)
            return self.results[key].model_copy(deep=True)

    def get_result(self, exam_id: str, student_id: str) -> Optional[ExamResultResponse]:
        result = self.results.get((exam_id, student_id))
        return result.model_copy(deep=True) if result else None

    def complete_result(self, result: ExamResultResponse) -> Optional[ExamResultResponse]:
        key = (result.exam_id, result.student_id)
        with self._lock:
            existing = self.results.get(key)
            if existing and existing.status == ResultStatus.completed:
                return None
            stored = result.model_copy(deep=True)
            if existing:
                stored.result_id = existing.result_id
            self.results[key] = stored
            return stored.model_copy(deep=True)

    def list_results(self, exam_id: str, status: Optional[ResultStatus] = ResultStatus.completed) -> List[ExamResultResponse]:
        results = [
            r for (eid, _), r in self.results.items() if eid == exam_id and (status is None or r.status == status)
        ]
        results.sort(key=lambda r: r.submitted_at or EPOCH)
        results.sort(key=lambda r: r.obtained_marks, reverse=True)
        return [r.model_copy(deep=True) for r in results]

    def completed_exam_ids(self, student_id: str) -> Set[str]:
        return {
            eid for (eid, sid), r in self.results.items() if sid == student_id and r.status == ResultStatus.completed
        }

    def clear_all(self) -> None:
        self.users.clear()
        self.questions.clear()
        self.exams.clear()
        self.results.clear()
