from typing import List

from fastapi import APIRouter, Depends

from exam_portal.db.session import Database, get_db
from exam_portal.schemas.exam import (
    ExamActivation,
    ExamAdminView,
    ExamCreate,
    ExamResponse,
    ExamSessionView,
    ExamStudentView,
    ExamUpdate,
    SubmissionRequest,
)
from exam_portal.schemas.result import ResultRow, ResultStatistics, SubmissionResponse
from exam_portal.schemas.user import Principal
from exam_portal.security.auth import require_admin, require_student
from exam_portal.services.exam_service import (
    create_exam,
    delete_exam,
    list_exams_for_admin,
    list_exams_for_student,
    set_exam_active,
    update_exam,
)
from exam_portal.services.results_service import exam_statistics, list_results
from exam_portal.services.session_service import start_exam, submit_exam

router = APIRouter(prefix="/exams")


@router.post("", response_model=ExamResponse, status_code=201)
def create_exam_endpoint(
    payload: ExamCreate,
    principal: Principal = Depends(require_admin),
    db: Database = Depends(get_db),
) -> ExamResponse:
    return create_exam(payload, creator_id=principal.user_id, db=db)


@router.get("/admin", response_model=List[ExamAdminView], dependencies=[Depends(require_admin)])
def list_admin_exams_endpoint(db: Database = Depends(get_db)) -> List[ExamAdminView]:
    return list_exams_for_admin(db)


@router.get("/student", response_model=List[ExamStudentView])
def list_student_exams_endpoint(
    principal: Principal = Depends(require_student), db: Database = Depends(get_db)
) -> List[ExamStudentView]:
    return list_exams_for_student(principal.user_id, db)


@router.get("/{exam_id}/take", response_model=ExamSessionView)
def take_exam_endpoint(
    exam_id: str, principal: Principal = Depends(require_student), db: Database = Depends(get_db)
) -> ExamSessionView:
    return start_exam(exam_id, principal.user_id, db)


@router.post("/{exam_id}/submit", response_model=SubmissionResponse)
def submit_exam_endpoint(
    exam_id: str,
    payload: SubmissionRequest,
    principal: Principal = Depends(require_student),
    db: Database = Depends(get_db),
) -> SubmissionResponse:
    return submit_exam(exam_id, principal.user_id, payload.answers, db)


@router.get("/{exam_id}/results", response_model=List[ResultRow], dependencies=[Depends(require_admin)])
def exam_results_endpoint(exam_id: str, db: Database = Depends(get_db)) -> List[ResultRow]:
    return list_results(exam_id, db)


@router.get("/{exam_id}/statistics", response_model=ResultStatistics, dependencies=[Depends(require_admin)])
def exam_statistics_endpoint(exam_id: str, db: Database = Depends(get_db)) -> ResultStatistics:
    return exam_statistics(exam_id, db)


@router.patch("/{exam_id}/active", response_model=ExamResponse, dependencies=[Depends(require_admin)])
def set_exam_active_endpoint(
    exam_id: str, payload: ExamActivation, db: Database = Depends(get_db)
) -> ExamResponse:
    return set_exam_active(exam_id, payload.is_active, db)


@router.put("/{exam_id}", response_model=ExamResponse, dependencies=[Depends(require_admin)])
def update_exam_endpoint(exam_id: str, payload: ExamUpdate, db: Database = Depends(get_db)) -> ExamResponse:
    return update_exam(exam_id, payload, db)


@router.delete("/{exam_id}", dependencies=[Depends(require_admin)])
def delete_exam_endpoint(exam_id: str, db: Database = Depends(get_db)) -> dict:
    delete_exam(exam_id, db)
    return {"message": "Exam deleted successfully", "exam_id": exam_id}
