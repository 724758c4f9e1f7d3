from fastapi import APIRouter

from exam_portal.api.v1.endpoints import auth, exams, questions

api_router = APIRouter()
# Role checks live on each router/endpoint via require_admin / require_student
api_router.include_router(auth.router, tags=["auth"])
api_router.include_router(questions.router, tags=["questions"])
api_router.include_router(exams.router, tags=["exams"])
