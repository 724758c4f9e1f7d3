import logging
import uuid
from typing import List, Optional

from exam_portal.core.errors import Unauthenticated, ValidationFailed
from exam_portal.core.timeutils import utcnow
from exam_portal.db.session import Database, get_db
from exam_portal.schemas.user import LoginRequest, RegisterRequest, Role, TokenResponse, UserPublic, UserRecord
from exam_portal.security.auth import create_access_token
from exam_portal.security.passwords import hash_password, verify_password

logger = logging.getLogger(__name__)


def _public(user: UserRecord) -> UserPublic:
    return UserPublic(user_id=user.user_id, name=user.name, email=user.email, role=user.role)


def _token_for(user: UserRecord) -> TokenResponse:
    return TokenResponse(token=create_access_token(user.user_id, user.role), user=_public(user))


def register_user(data: RegisterRequest, db: Optional[Database] = None) -> TokenResponse:
    """Create an account and return a token for it."""

    db = db or get_db()
    if db.get_user_by_email(data.email):
        raise ValidationFailed("Email already registered")

    user = UserRecord(
        user_id=str(uuid.uuid4()),
        name=data.name,
        email=data.email,
        role=data.role,
        password_hash=hash_password(data.password),
        created_at=utcnow(),
    )
    if not db.insert_user(user):
        raise ValidationFailed("Email already registered")
    logger.info("Registered %s user %s", user.role.value, user.user_id)
    return _token_for(user)


def login_user(data: LoginRequest, db: Optional[Database] = None) -> TokenResponse:
    db = db or get_db()
    user = db.get_user_by_email(data.email)
    if not user or not verify_password(data.password, user.password_hash):
        raise Unauthenticated("Invalid credentials")
    return _token_for(user)


def list_students(db: Optional[Database] = None) -> List[UserPublic]:
    """Students available for exam assignment, sorted by name."""

    db = db or get_db()
    return [_public(user) for user in db.list_users(role=Role.student)]


def ensure_admin(email: str, password: str, name: str = "Administrator", db: Optional[Database] = None) -> UserPublic:
    """Create the bootstrap admin if the email is unused; existing accounts are left untouched."""

    db = db or get_db()
    email = email.strip().lower()
    existing = db.get_user_by_email(email)
    if existing:
        return _public(existing)
    user = UserRecord(
        user_id=str(uuid.uuid4()),
        name=name,
        email=email,
        role=Role.admin,
        password_hash=hash_password(password),
        created_at=utcnow(),
    )
    db.insert_user(user)
    logger.info("Bootstrapped admin account %s", user.user_id)
    return _public(user)
