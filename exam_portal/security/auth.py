import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from exam_portal.core.config import get_settings
from exam_portal.core.errors import Forbidden, Unauthenticated
from exam_portal.core.timeutils import utcnow
from exam_portal.db.session import Database, get_db
from exam_portal.schemas.user import Principal, Role

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def create_access_token(user_id: str, role: Role, now: Optional[datetime] = None) -> str:
    """Issue a signed JWT naming the user and role."""

    settings = get_settings()
    issued_at = now or utcnow()
    claims = {
        "sub": user_id,
        "role": role.value,
        "iat": issued_at,
        "exp": issued_at + timedelta(minutes=settings.access_token_expire_minutes),
    }
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> dict:
    """Verify signature and expiry; raise Unauthenticated on any failure."""

    settings = get_settings()
    try:
        claims = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["sub", "exp"]},
        )
    except jwt.ExpiredSignatureError as exc:
        raise Unauthenticated("Token has expired") from exc
    except jwt.InvalidTokenError as exc:
        raise Unauthenticated("Invalid token") from exc
    return claims


def get_current_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Database = Depends(get_db),
) -> Principal:
    """Resolve the bearer token to a principal; the user must still exist."""

    if credentials is None or not credentials.credentials:
        raise Unauthenticated("Access denied. No token provided.")

    claims = decode_access_token(credentials.credentials)
    user = db.get_user(str(claims["sub"]))
    if not user:
        raise Unauthenticated("Invalid token")
    return Principal(user_id=user.user_id, role=user.role, name=user.name, email=user.email)


def require_role(role: Role) -> Callable[..., Principal]:
    """Build a dependency admitting only principals holding ``role``."""

    def guard(principal: Principal = Depends(get_current_principal)) -> Principal:
        if principal.role != role:
            logger.info("Denied %s access to user %s (role %s)", role.value, principal.user_id, principal.role.value)
            raise Forbidden(f"Access denied. {role.value.capitalize()} privileges required.")
        return principal

    guard.__name__ = f"require_{role.value}"
    return guard


require_admin = require_role(Role.admin)
require_student = require_role(Role.student)
