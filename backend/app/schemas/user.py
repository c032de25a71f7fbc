from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from backend.app.core.security import validate_password_strength


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class SignupRequest(BaseModel):
    username: str = Field(..., min_length=3, max_length=150)
    email: str = Field(..., max_length=255, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    password: str = Field(..., max_length=128)

    @field_validator("username", "email")
    @classmethod
    def strip(cls, v: str) -> str:
        return v.strip()

    @field_validator("password")
    @classmethod
    def check_password_strength(cls, v: str) -> str:
        error = validate_password_strength(v)
        if error:
            raise ValueError(error)
        return v


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    username: str
    email: str | None
    is_admin: bool
    is_active: bool
    is_approved: bool
    approved_at: datetime | None
    default_location_id: int | None
