from datetime import timedelta

import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient

from conftest import auth_headers, make_user
from exam_portal.core.errors import Unauthenticated, register_exception_handlers
from exam_portal.core.timeutils import utcnow
from exam_portal.db.session import get_db
from exam_portal.schemas.user import Principal, Role
from exam_portal.security.auth import (
    create_access_token,
    decode_access_token,
    get_current_principal,
    require_admin,
    require_student,
)
from exam_portal.security.passwords import hash_password, verify_password
from exam_portal.security.rate_limit import RateLimiter


def _guarded_app(db) -> FastAPI:
    app = FastAPI()
    register_exception_handlers(app)
    app.dependency_overrides[get_db] = lambda: db

    @app.get("/whoami")
    def whoami(principal: Principal = Depends(get_current_principal)):
        return {"user_id": principal.user_id, "role": principal.role.value}

    @app.get("/admin-only", dependencies=[Depends(require_admin)])
    def admin_only():
        return {"admin": True}

    @app.get("/student-only", dependencies=[Depends(require_student)])
    def student_only():
        return {"student": True}

    return app


def test_password_hash_roundtrip_and_salting() -> None:
    first = hash_password("hunter22")
    second = hash_password("hunter22")
    assert first != second
    assert verify_password("hunter22", first)
    assert not verify_password("hunter23", first)
    assert not verify_password("hunter22", "not-a-hash")


def test_token_roundtrip_carries_subject_and_role() -> None:
    token = create_access_token("user-1", Role.admin)
    claims = decode_access_token(token)
    assert claims["sub"] == "user-1"
    assert claims["role"] == "admin"


def test_expired_and_tampered_tokens_are_rejected() -> None:
    expired = create_access_token("user-1", Role.student, now=utcnow() - timedelta(days=30))
    with pytest.raises(Unauthenticated):
        decode_access_token(expired)
    with pytest.raises(Unauthenticated):
        decode_access_token(create_access_token("user-1", Role.student) + "x")


def test_principal_resolution_requires_known_user(db) -> None:
    client = TestClient(_guarded_app(db))
    student = make_user(db, "Kim Student")

    resp_ok = client.get("/whoami", headers=auth_headers(student))
    assert resp_ok.status_code == 200
    assert resp_ok.json() == {"user_id": student.user.user_id, "role": "student"}

    resp_missing = client.get("/whoami")
    assert resp_missing.status_code == 401
    assert "error" in resp_missing.json()

    ghost = create_access_token("no-such-user", Role.student)
    resp_ghost = client.get("/whoami", headers={"Authorization": f"Bearer {ghost}"})
    assert resp_ghost.status_code == 401


def test_role_guards(db) -> None:
    client = TestClient(_guarded_app(db))
    admin = make_user(db, "Ada Admin", role=Role.admin)
    student = make_user(db, "Kim Student")

    assert client.get("/admin-only", headers=auth_headers(admin)).status_code == 200
    denied = client.get("/admin-only", headers=auth_headers(student))
    assert denied.status_code == 403
    assert denied.json() == {"error": "Access denied. Admin privileges required."}

    assert client.get("/student-only", headers=auth_headers(student)).status_code == 200
    assert client.get("/student-only", headers=auth_headers(admin)).status_code == 403
    assert client.get("/student-only").status_code == 401


def test_rate_limiter_enforces_limits() -> None:
    app = FastAPI()
    limiter = RateLimiter(limit=2, window_seconds=60)
    app.get("/limited", dependencies=[Depends(limiter)])(lambda: {"ok": True})
    client = TestClient(app)

    assert client.get("/limited").status_code == 200
    assert client.get("/limited").status_code == 200
    assert client.get("/limited").status_code == 429

    limiter.reset()
    assert client.get("/limited").status_code == 200
