"""User and authentication schemas."""

import uuid
from datetime import datetime

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

from app.models.user import UserRole
from app.schemas.common import reject_explicit_nulls


class RegisterRequest(BaseModel):
    """Self-service sign-up payload."""

    email: EmailStr
    password: str = Field(min_length=6, max_length=128)
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    role: UserRole = UserRole.BUYER
    company: str | None = Field(default=None, max_length=200)
    phone: str | None = Field(default=None, max_length=30)

    @field_validator("role")
    @classmethod
    def no_self_promotion(cls, v: UserRole) -> UserRole:
        if v == UserRole.ADMIN:
            raise ValueError("Admin accounts cannot be self-registered")
        return v


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class UserResponse(BaseModel):
    """Public user representation (never includes the password hash)."""

    model_config = {"from_attributes": True}

    id: uuid.UUID
    email: str
    role: UserRole
    first_name: str | None = None
    last_name: str | None = None
    company: str | None = None
    phone: str | None = None
    is_active: bool
    email_notifications: bool
    created_at: datetime


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse


class ProfileUpdate(BaseModel):
    first_name: str | None = Field(default=None, min_length=1, max_length=100)
    last_name: str | None = Field(default=None, min_length=1, max_length=100)
    company: str | None = Field(default=None, max_length=200)
    phone: str | None = Field(default=None, max_length=30)
    email_notifications: bool | None = None

    @model_validator(mode="after")
    def non_nullable_fields(self) -> "ProfileUpdate":
        reject_explicit_nulls(self, ("email_notifications",))
        return self


class PasswordChange(BaseModel):
    current_password: str = Field(min_length=1)
    new_password: str = Field(min_length=6, max_length=128)


class AdminUserUpdate(BaseModel):
    role: UserRole | None = None
    is_active: bool | None = None
