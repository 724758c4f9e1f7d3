from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, field_validator


class Role(str, Enum):
    admin = "admin"
    student = "student"


class UserBase(BaseModel):
    name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3, pattern=r"^[^@\s]+@[^@\s]+$")
    role: Role = Role.student

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()


class RegisterRequest(UserBase):
    password: str = Field(..., min_length=6)


class LoginRequest(BaseModel):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()


class UserRecord(UserBase):
    """Persisted user, including the password digest. Never returned by the API."""

    user_id: str
    password_hash: str
    created_at: datetime


class UserPublic(UserBase):
    user_id: str


class Principal(BaseModel):
    """Authenticated identity attached to a request."""

    user_id: str
    role: Role
    name: str
    email: str


class TokenResponse(BaseModel):
    token: str
    user: UserPublic


class UserRef(BaseModel):
    """Display fields of a referenced user."""

    user_id: str
    name: str
    email: str | None = None
