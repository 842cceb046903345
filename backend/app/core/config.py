from functools import lru_cache
import json
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


BACKEND_ENV_FILE = Path(__file__).resolve().parents[2] / ".env"


class Settings(BaseSettings):
    # Resolve to backend/.env so `uvicorn --app-dir backend` works from any cwd.
    model_config = SettingsConfigDict(env_file=str(BACKEND_ENV_FILE), env_file_encoding="utf-8")

    project_name: str = "Chyrris KAI API"
    api_prefix: str = "/api"
    environment: str = "development"
    log_level: str = "INFO"

    # Optional: without it every auth operation runs on the in-memory store.
    database_url: str | None = None
    database_connect_timeout_seconds: int = 10

    resend_api_key: str | None = None
    email_api_url: str = "https://api.resend.com/emails"
    email_from: str = "Chyrris KAI <onboarding@resend.dev>"
    email_timeout_seconds: int = 15
    email_retry_attempts: int = 2
    email_retry_backoff_seconds: float = 1.0

    otp_expire_minutes: int = 10
    otp_log_to_terminal: bool = False

    session_expire_days: int = 7
    session_cookie_name: str = "app_session_id"

    cleanup_interval_minutes: int = 60
    cleanup_scheduler_enabled: bool = True

    security_enable_hsts: bool = False
    security_hsts_max_age_seconds: int = 31536000

    cors_origins: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:5000",
        "http://127.0.0.1:5000",
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]

    @field_validator("cors_origins", mode="before")
    @classmethod
    def split_cors_origins(cls, value: str | list[str]) -> list[str]:
        if isinstance(value, str):
            stripped = value.strip()
            if stripped.startswith("["):
                try:
                    parsed = json.loads(stripped)
                    if isinstance(parsed, list):
                        return [str(item).strip() for item in parsed if str(item).strip()]
                except json.JSONDecodeError:
                    pass
            return [item.strip() for item in value.split(",") if item.strip()]
        return value

    @field_validator("database_url", "resend_api_key", mode="before")
    @classmethod
    def blank_as_missing(cls, value: str | None) -> str | None:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def is_production(self) -> bool:
        return self.environment.strip().lower() == "production"

    @property
    def session_max_age_seconds(self) -> int:
        return self.session_expire_days * 24 * 60 * 60


@lru_cache
def get_settings() -> Settings:
    return Settings()
