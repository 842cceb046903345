from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from app.models.admin_user import AdminRole


class SendOtpRequest(BaseModel):
    email: EmailStr

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()


class VerifyOtpRequest(SendOtpRequest):
    code: str = Field(min_length=6, max_length=6)

    @field_validator("code", mode="before")
    @classmethod
    def strip_code(cls, value: str) -> str:
        if isinstance(value, str):
            return value.strip()
        return value


class SendOtpResponse(BaseModel):
    success: bool
    error: str | None = None


class VerifyOtpResponse(BaseModel):
    success: bool
    session_id: str | None = Field(default=None, alias="sessionId")
    error: str | None = None

    model_config = ConfigDict(populate_by_name=True)


class LogoutResponse(BaseModel):
    success: Literal[True] = True


class AdminUserOut(BaseModel):
    id: int
    email: EmailStr
    name: str | None = None
    role: AdminRole
    is_active: bool = Field(alias="isActive")
    last_login_at: datetime | None = Field(default=None, alias="lastLoginAt")
    source: Literal["durable", "synthesized"]

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)
