import logging
from datetime import datetime
from enum import Enum
from functools import lru_cache
from typing import Any, Dict, List, Optional, Set, Tuple

from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, MongoClient, ReturnDocument
from pymongo.errors import DuplicateKeyError

from exam_portal.core.config import get_settings
from exam_portal.core.timeutils import ensure_utc
from exam_portal.schemas.exam import ExamResponse
from exam_portal.schemas.question import QuestionResponse
from exam_portal.schemas.result import ExamResultResponse, GradedAnswer, ResultStatus
from exam_portal.schemas.user import Role, UserRecord

logger = logging.getLogger(__name__)


def _dt(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    return ensure_utc(value if isinstance(value, datetime) else datetime.fromisoformat(str(value)))


def _to_doc(model: BaseModel, exclude: Optional[Set[str]] = None) -> Dict[str, Any]:
    payload = model.model_dump(exclude=exclude)
    return {key: value.value if isinstance(value, Enum) else value for key, value in payload.items()}


class Database:
    """
    Mongo-backed repository layer.

    Services only talk to this class, so tests swap in ``InMemoryDatabase`` while
    preserving the method signatures.
    """

    def __init__(self, uri: Optional[str] = None, db_name: Optional[str] = None) -> None:
        settings = get_settings()
        self.uri = uri or settings.mongo_uri
        self.db_name = db_name or settings.mongo_db_name
        self.client = MongoClient(self.uri, tz_aware=True)
        self.db = self.client[self.db_name]

    def init_indexes(self) -> None:
        self.db.users.create_index([("user_id", ASCENDING)], unique=True)
        self.db.users.create_index([("email", ASCENDING)], unique=True)
        self.db.users.create_index([("role", ASCENDING)])
        self.db.questions.create_index([("question_id", ASCENDING)], unique=True)
        self.db.questions.create_index([("subject", ASCENDING), ("topic", ASCENDING), ("difficulty", ASCENDING)])
        self.db.questions.create_index([("created_at", DESCENDING)])
        self.db.exams.create_index([("exam_id", ASCENDING)], unique=True)
        self.db.exams.create_index([("assigned_student_ids", ASCENDING), ("is_active", ASCENDING)])
        self.db.exams.create_index([("question_ids", ASCENDING)])
        self.db.exams.create_index([("created_at", DESCENDING)])
        self.db.exam_results.create_index([("result_id", ASCENDING)], unique=True)
        # One attempt per (exam, student); the completed transition relies on it.
        self.db.exam_results.create_index([("exam_id", ASCENDING), ("student_id", ASCENDING)], unique=True)
        self.db.exam_results.create_index([("exam_id", ASCENDING), ("obtained_marks", DESCENDING)])
        logger.info("MongoDB indexes ensured on %s", self.db_name)

    # User methods
    def insert_user(self, user: UserRecord) -> bool:
        """Insert a user; returns False when the email is already taken."""

        try:
            self.db.users.insert_one(_to_doc(user))
        except DuplicateKeyError:
            return False
        return True

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        doc = self.db.users.find_one({"user_id": user_id})
        return self._user_from_doc(doc) if doc else None

    def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        doc = self.db.users.find_one({"email": email})
        return self._user_from_doc(doc) if doc else None

    def get_users_by_ids(self, user_ids: List[str]) -> List[UserRecord]:
        if not user_ids:
            return []
        return [self._user_from_doc(doc) for doc in self.db.users.find({"user_id": {"$in": user_ids}})]

    def list_users(self, role: Optional[Role] = None) -> List[UserRecord]:
        query = {"role": role.value} if role else {}
        return [self._user_from_doc(doc) for doc in self.db.users.find(query).sort([("name", ASCENDING)])]

    def _user_from_doc(self, doc: dict) -> UserRecord:
        return UserRecord(
            user_id=doc["user_id"],
            name=doc["name"],
            email=doc["email"],
            role=Role(doc.get("role", Role.student.value)),
            password_hash=doc["password_hash"],
            created_at=_dt(doc["created_at"]),
        )

    # Question methods
    def insert_question(self, question: QuestionResponse) -> None:
        self.db.questions.insert_one(_to_doc(question))

    def update_question(self, question: QuestionResponse) -> None:
        payload = _to_doc(question, exclude={"question_id", "created_at", "created_by"})
        self.db.questions.update_one({"question_id": question.question_id}, {"$set": payload})

    def delete_question(self, question_id: str) -> bool:
        return self.db.questions.delete_one({"question_id": question_id}).deleted_count > 0

    def get_question(self, question_id: str) -> Optional[QuestionResponse]:
        doc = self.db.questions.find_one({"question_id": question_id})
        return self._question_from_doc(doc) if doc else None

    def get_questions_by_ids(self, question_ids: List[str]) -> List[QuestionResponse]:
        if not question_ids:
            return []
        cursor = self.db.questions.find({"question_id": {"$in": list(set(question_ids))}})
        return [self._question_from_doc(doc) for doc in cursor]

    def list_questions(
        self,
        subject: Optional[str] = None,
        topic: Optional[str] = None,
        difficulty: Optional[str] = None,
        skip: int = 0,
        limit: int = 10,
    ) -> Tuple[List[QuestionResponse], int]:
        query: dict = {}
        if subject:
            query["subject"] = subject
        if topic:
            query["topic"] = topic
        if difficulty:
            query["difficulty"] = difficulty

        total = self.db.questions.count_documents(query)
        cursor = (
            self.db.questions.find(query)
            .sort([("created_at", DESCENDING), ("question_id", ASCENDING)])
            .skip(max(0, skip))
            .limit(limit)
        )
        return [self._question_from_doc(doc) for doc in cursor], total

    def distinct_question_values(self, field: str) -> List[str]:
        return sorted(value for value in self.db.questions.distinct(field) if value)

    def count_exams_referencing(self, question_id: str) -> int:
        return self.db.exams.count_documents({"question_ids": question_id})

    def _question_from_doc(self, doc: dict) -> QuestionResponse:
        return QuestionResponse(
            question_id=doc["question_id"],
            text=doc["text"],
            type=doc["type"],
            options=doc.get("options", []),
            correct_answer=doc["correct_answer"],
            subject=doc["subject"],
            topic=doc["topic"],
            difficulty=doc.get("difficulty", "medium"),
            marks=int(doc.get("marks", 1)),
            created_by=doc.get("created_by"),
            created_at=_dt(doc["created_at"]),
            updated_at=_dt(doc["updated_at"]),
        )

    # Exam methods
    def insert_exam(self, exam: ExamResponse) -> None:
        self.db.exams.insert_one(_to_doc(exam))

    def update_exam(self, exam: ExamResponse) -> None:
        payload = _to_doc(exam, exclude={"exam_id", "created_at", "created_by"})
        self.db.exams.update_one({"exam_id": exam.exam_id}, {"$set": payload})

    def delete_exam(self, exam_id: str) -> bool:
        return self.db.exams.delete_one({"exam_id": exam_id}).deleted_count > 0

    def get_exam(self, exam_id: str) -> Optional[ExamResponse]:
        doc = self.db.exams.find_one({"exam_id": exam_id})
        return self._exam_from_doc(doc) if doc else None

    def list_exams(self, assigned_student_id: Optional[str] = None, active_only: bool = False) -> List[ExamResponse]:
        query: dict = {}
        if assigned_student_id:
            query["assigned_student_ids"] = assigned_student_id
        if active_only:
            query["is_active"] = True
        cursor = self.db.exams.find(query).sort([("created_at", DESCENDING)])
        return [self._exam_from_doc(doc) for doc in cursor]

    def _exam_from_doc(self, doc: dict) -> ExamResponse:
        return ExamResponse(
            exam_id=doc["exam_id"],
            title=doc["title"],
            description=doc.get("description"),
            question_ids=doc.get("question_ids", []),
            duration=int(doc["duration"]),
            start_time=_dt(doc["start_time"]),
            end_time=_dt(doc["end_time"]),
            is_active=bool(doc.get("is_active", False)),
            assigned_student_ids=doc.get("assigned_student_ids", []),
            created_by=doc.get("created_by"),
            created_at=_dt(doc["created_at"]),
            updated_at=_dt(doc["updated_at"]),
        )

    # Exam result methods
    def open_attempt(self, attempt: ExamResultResponse) -> ExamResultResponse:
        """Create the in-progress record for (exam, student) unless one exists; return the stored record."""

        key = {"exam_id": attempt.exam_id, "student_id": attempt.student_id}
        try:
            self.db.exam_results.update_one(
                key,
                {"$setOnInsert": _to_doc(attempt, exclude={"exam_id", "student_id"})},
                upsert=True,
            )
        except DuplicateKeyError:
            # A concurrent start inserted first; fall through and read it.
            pass
        return self._result_from_doc(self.db.exam_results.find_one(key))

    def get_result(self, exam_id: str, student_id: str) -> Optional[ExamResultResponse]:
        doc = self.db.exam_results.find_one({"exam_id": exam_id, "student_id": student_id})
        return self._result_from_doc(doc) if doc else None

    def complete_result(self, result: ExamResultResponse) -> Optional[ExamResultResponse]:
        """
        Atomically move (exam, student) to completed.

        Returns None when a completed result already exists; the unique
        (exam_id, student_id) index turns the losing upsert into DuplicateKeyError.
        """

        payload = _to_doc(result, exclude={"exam_id", "student_id", "result_id"})
        payload["answers"] = [answer.model_dump() for answer in result.answers]
        try:
            doc = self.db.exam_results.find_one_and_update(
                {
                    "exam_id": result.exam_id,
                    "student_id": result.student_id,
                    "status": {"$ne": ResultStatus.completed.value},
                },
                {"$set": payload, "$setOnInsert": {"result_id": result.result_id}},
                upsert=True,
                return_document=ReturnDocument.AFTER,
            )
        except DuplicateKeyError:
            return None
        return self._result_from_doc(doc)

    def list_results(self, exam_id: str, status: Optional[ResultStatus] = ResultStatus.completed) -> List[ExamResultResponse]:
        query: dict = {"exam_id": exam_id}
        if status:
            query["status"] = status.value
        cursor = self.db.exam_results.find(query).sort([("obtained_marks", DESCENDING), ("submitted_at", ASCENDING)])
        return [self._result_from_doc(doc) for doc in cursor]

    def completed_exam_ids(self, student_id: str) -> Set[str]:
        cursor = self.db.exam_results.find(
            {"student_id": student_id, "status": ResultStatus.completed.value}, {"exam_id": 1}
        )
        return {doc["exam_id"] for doc in cursor}

    def _result_from_doc(self, doc: dict) -> ExamResultResponse:
        return ExamResultResponse(
            result_id=doc["result_id"],
            exam_id=doc["exam_id"],
            student_id=doc["student_id"],
            answers=[GradedAnswer(**item) for item in doc.get("answers", [])],
            total_marks=int(doc.get("total_marks", 0)),
            obtained_marks=int(doc.get("obtained_marks", 0)),
            status=ResultStatus(doc.get("status", ResultStatus.in_progress.value)),
            started_at=_dt(doc.get("started_at")),
            deadline=_dt(doc.get("deadline")),
            submitted_at=_dt(doc.get("submitted_at")),
            submitted_late=bool(doc.get("submitted_late", False)),
        )

    # Maintenance helpers
    def clear_all(self) -> None:
        self.db.exam_results.delete_many({})
        self.db.exams.delete_many({})
        self.db.questions.delete_many({})
        self.db.users.delete_many({})


@lru_cache()
def get_db() -> Database:
    """Return the shared database repository."""

    return Database()


def init_db(db: Optional[Database] = None) -> None:
    """Ensure indexes and bootstrap an admin account when configured."""

    from exam_portal.services.auth_service import ensure_admin

    db = db or get_db()
    db.init_indexes()
    settings = get_settings()
    if settings.seed_admin_email and settings.seed_admin_password:
        ensure_admin(settings.seed_admin_email, settings.seed_admin_password, db=db)
