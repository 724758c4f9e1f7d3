from typing import List

from fastapi import APIRouter, Depends

from exam_portal.core.config import get_settings
from exam_portal.db.session import Database, get_db
from exam_portal.schemas.user import LoginRequest, Principal, RegisterRequest, TokenResponse, UserPublic
from exam_portal.security.auth import get_current_principal, require_admin
from exam_portal.security.rate_limit import RateLimiter
from exam_portal.services.auth_service import list_students, login_user, register_user

router = APIRouter(prefix="/auth")

auth_limiter = RateLimiter(limit=get_settings().auth_rate_limit, window_seconds=60)


@router.post("/register", response_model=TokenResponse, status_code=201, dependencies=[Depends(auth_limiter)])
def register_endpoint(payload: RegisterRequest, db: Database = Depends(get_db)) -> TokenResponse:
    return register_user(payload, db)


@router.post("/login", response_model=TokenResponse, dependencies=[Depends(auth_limiter)])
def login_endpoint(payload: LoginRequest, db: Database = Depends(get_db)) -> TokenResponse:
    return login_user(payload, db)


@router.get("/me", response_model=Principal)
def me_endpoint(principal: Principal = Depends(get_current_principal)) -> Principal:
    return principal


@router.get("/students", response_model=List[UserPublic], dependencies=[Depends(require_admin)])
def list_students_endpoint(db: Database = Depends(get_db)) -> List[UserPublic]:
    return list_students(db)
