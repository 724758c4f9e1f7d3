from functools import lru_cache

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings sourced from environment variables."""

    project_name: str = "Exam Portal"
    api_prefix: str = "/api"
    mongo_uri: str = Field(
        default="mongodb://localhost:27017",
        validation_alias=AliasChoices("EXAM_MONGO_URI", "MONGO_URI"),
    )
    mongo_db_name: str = Field(
        default="exam_portal",
        validation_alias=AliasChoices("EXAM_MONGO_DB_NAME", "MONGO_DB_NAME"),
    )
    cors_origins: list[str] = Field(
        default=["*"],
        description="Comma-separated origins allowed for CORS (use '*' for all)",
        validation_alias=AliasChoices("EXAM_CORS_ORIGINS", "CORS_ORIGINS"),
    )
    jwt_secret: str = Field(..., validation_alias=AliasChoices("JWT_SECRET", "EXAM_JWT_SECRET"))
    jwt_algorithm: str = Field(default="HS256", validation_alias=AliasChoices("JWT_ALGORITHM", "EXAM_JWT_ALGORITHM"))
    access_token_expire_minutes: int = Field(
        default=60 * 24 * 7,
        ge=1,
        validation_alias=AliasChoices("ACCESS_TOKEN_EXPIRE_MINUTES", "EXAM_ACCESS_TOKEN_EXPIRE_MINUTES"),
    )
    enforce_exam_window: bool = Field(
        default=True,
        description="Re-check the exam start/end window server-side on take and submit",
        validation_alias=AliasChoices("EXAM_ENFORCE_WINDOW", "ENFORCE_EXAM_WINDOW"),
    )
    submission_grace_seconds: int = Field(
        default=120,
        ge=0,
        description="Seconds after end_time (or the attempt deadline) during which submissions are still accepted",
        validation_alias=AliasChoices("EXAM_SUBMISSION_GRACE_SECONDS", "SUBMISSION_GRACE_SECONDS"),
    )
    auth_rate_limit: int = Field(
        default=20,
        ge=1,
        description="Login/register attempts allowed per client address per minute",
        validation_alias=AliasChoices("AUTH_RATE_LIMIT", "EXAM_AUTH_RATE_LIMIT"),
    )
    log_level: str = Field(default="INFO", validation_alias=AliasChoices("LOG_LEVEL", "EXAM_LOG_LEVEL"))
    seed_admin_email: str | None = Field(
        default=None, validation_alias=AliasChoices("EXAM_SEED_ADMIN_EMAIL", "SEED_ADMIN_EMAIL")
    )
    seed_admin_password: str | None = Field(
        default=None, validation_alias=AliasChoices("EXAM_SEED_ADMIN_PASSWORD", "SEED_ADMIN_PASSWORD")
    )

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="allow")

    @field_validator("cors_origins", mode="before")
    @classmethod
    def split_origins(cls, value):
        """Allow comma-separated or JSON array strings for CORS origins."""

        if isinstance(value, str):
            if value.strip() == "":
                return []
            # If provided as JSON array, let pydantic parse it
            if value.strip().startswith("["):
                return value
            return [item.strip() for item in value.split(",") if item.strip()]
        return value


@lru_cache()
def get_settings() -> Settings:
    """Return cached settings instance."""

    return Settings()
