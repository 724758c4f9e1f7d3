"""
HTTP client for the exam portal API.

Credentials belong to a client instance and are attached to each outgoing
request explicitly; nothing is stored on shared, process-wide state. Two
clients (an admin and a student, say) can therefore be used side by side.
"""

import logging
import math
import time
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

import httpx

from exam_portal.core.timeutils import ensure_utc, utcnow

logger = logging.getLogger(__name__)


def parse_datetime(value: str) -> datetime:
    """Parse an ISO 8601 timestamp from the API as an aware UTC datetime."""

    return ensure_utc(datetime.fromisoformat(value))


class ApiError(Exception):
    """Non-2xx response from the API, carrying the ``{"error": ...}`` message."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(f"{status_code}: {message}")
        self.status_code = status_code
        self.message = message


class ExamPortalClient:
    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        token: Optional[str] = None,
        http: Optional[httpx.Client] = None,
        api_prefix: str = "/api",
        timeout: float = 10.0,
    ) -> None:
        self.http = http or httpx.Client(base_url=base_url, timeout=timeout)
        self.api_prefix = api_prefix.rstrip("/")
        self.token = token
        self.user: Optional[Dict[str, Any]] = None

    def close(self) -> None:
        self.http.close()

    def __enter__(self) -> "ExamPortalClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"} if self.token else {}

    def _request(self, method: str, path: str, **kwargs) -> Any:
        response = self.http.request(method, f"{self.api_prefix}{path}", headers=self._headers(), **kwargs)
        if response.status_code >= 400:
            try:
                message = response.json().get("error") or response.text
            except ValueError:
                message = response.text
            raise ApiError(response.status_code, message)
        return response.json()

    # Auth
    def register(self, name: str, email: str, password: str, role: str = "student") -> Dict[str, Any]:
        data = self._request("POST", "/auth/register", json={"name": name, "email": email, "password": password, "role": role})
        self.token, self.user = data["token"], data["user"]
        return self.user

    def login(self, email: str, password: str) -> Dict[str, Any]:
        data = self._request("POST", "/auth/login", json={"email": email, "password": password})
        self.token, self.user = data["token"], data["user"]
        return self.user

    def logout(self) -> None:
        self.token = None
        self.user = None

    def me(self) -> Dict[str, Any]:
        return self._request("GET", "/auth/me")

    def list_students(self) -> List[Dict[str, Any]]:
        return self._request("GET", "/auth/students")

    # Questions (admin)
    def list_questions(self, page: int = 1, limit: int = 10, **filters: str) -> Dict[str, Any]:
        params = {"page": page, "limit": limit, **{k: v for k, v in filters.items() if v}}
        return self._request("GET", "/questions", params=params)

    def create_question(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", "/questions", json=payload)

    def update_question(self, question_id: str, patch: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("PUT", f"/questions/{question_id}", json=patch)

    def delete_question(self, question_id: str) -> Dict[str, Any]:
        return self._request("DELETE", f"/questions/{question_id}")

    def question_metadata(self) -> Dict[str, List[str]]:
        return self._request("GET", "/questions/metadata")

    # Exams (admin)
    def create_exam(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", "/exams", json=payload)

    def list_admin_exams(self) -> List[Dict[str, Any]]:
        return self._request("GET", "/exams/admin")

    def update_exam(self, exam_id: str, patch: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("PUT", f"/exams/{exam_id}", json=patch)

    def set_exam_active(self, exam_id: str, is_active: bool) -> Dict[str, Any]:
        return self._request("PATCH", f"/exams/{exam_id}/active", json={"is_active": is_active})

    def delete_exam(self, exam_id: str) -> Dict[str, Any]:
        return self._request("DELETE", f"/exams/{exam_id}")

    def exam_results(self, exam_id: str) -> List[Dict[str, Any]]:
        return self._request("GET", f"/exams/{exam_id}/results")

    def exam_statistics(self, exam_id: str) -> Dict[str, Any]:
        return self._request("GET", f"/exams/{exam_id}/statistics")

    # Exams (student)
    def list_my_exams(self) -> List[Dict[str, Any]]:
        return self._request("GET", "/exams/student")

    def take_exam(
        self,
        exam_id: str,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], datetime] = utcnow,
    ) -> "ExamAttempt":
        exam = self._request("GET", f"/exams/{exam_id}/take")
        return ExamAttempt(self, exam, clock=clock, wall_clock=wall_clock)

    def submit_exam(self, exam_id: str, answers: Dict[str, str]) -> Dict[str, Any]:
        return self._request("POST", f"/exams/{exam_id}/submit", json={"answers": answers})


class ExamAttempt:
    """
    Client-side state of one timed exam.

    The countdown runs to the server's ``deadline`` for the attempt, which may
    be earlier than ``duration`` allows (capped by the exam's end time) or
    already partly used (a resumed attempt). The wall clock is read once on
    load; after that ``clock`` ticks it down. Once it reaches zero,
    ``auto_submit_if_expired`` sends whatever answers were collected. A
    submission happens at most once per attempt.
    """

    def __init__(
        self,
        client: ExamPortalClient,
        exam: Dict[str, Any],
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.client = client
        self.exam = exam
        self.exam_id: str = exam["exam_id"]
        self.questions: List[Dict[str, Any]] = exam.get("questions", [])
        self.answers: Dict[str, str] = {}
        self.result: Optional[Dict[str, Any]] = None
        self._clock = clock

        seconds_left = float(int(exam["duration"]) * 60)
        if exam.get("deadline"):
            self.deadline: Optional[datetime] = parse_datetime(exam["deadline"])
            seconds_left = min(seconds_left, (self.deadline - ensure_utc(wall_clock())).total_seconds())
        else:
            self.deadline = None
        self._deadline = clock() + max(0.0, seconds_left)

    def answer(self, question_id: str, value: str) -> None:
        if self.submitted:
            raise RuntimeError("Exam already submitted")
        if question_id not in {q["question_id"] for q in self.questions}:
            raise KeyError(question_id)
        self.answers[question_id] = value

    def remaining_seconds(self) -> int:
        return max(0, math.ceil(self._deadline - self._clock()))

    def format_remaining(self) -> str:
        seconds = self.remaining_seconds()
        return f"{seconds // 3600:02d}:{(seconds % 3600) // 60:02d}:{seconds % 60:02d}"

    @property
    def expired(self) -> bool:
        return self.remaining_seconds() == 0

    @property
    def submitted(self) -> bool:
        return self.result is not None

    def submit(self) -> Dict[str, Any]:
        if self.result is None:
            self.result = self.client.submit_exam(self.exam_id, dict(self.answers))
            logger.info("Submitted exam %s: %s", self.exam_id, self.result.get("score"))
        return self.result

    def auto_submit_if_expired(self) -> Optional[Dict[str, Any]]:
        if self.expired and not self.submitted:
            logger.info("Time is up for exam %s; submitting %d answer(s)", self.exam_id, len(self.answers))
            return self.submit()
        return None
