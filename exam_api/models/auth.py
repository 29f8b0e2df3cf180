"""Pydantic models for accounts and tokens."""
from datetime import datetime

from pydantic import AliasChoices, BaseModel, EmailStr, Field

from exam_api.models.db.user import UserRole


class UserRegister(BaseModel):
    """Self-registration. The account always gets the student role."""

    username: str = Field(..., min_length=3, max_length=50, pattern=r"^[A-Za-z0-9_.-]+$")
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=100)
    display_name: str | None = Field(None, max_length=100)


class UserLogin(BaseModel):
    """Login by username or email."""

    login: str = Field(
        ..., min_length=1, validation_alias=AliasChoices("login", "username", "email")
    )
    password: str = Field(..., min_length=1)


class UserResponse(BaseModel):
    id: str
    username: str
    email: str
    display_name: str | None = None
    role: UserRole
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True


class AuthResponse(BaseModel):
    """Signed-in account plus its bearer token."""

    user: UserResponse
    access_token: str
    token_type: str = "bearer"
    expires_in: int


class LogoutResponse(BaseModel):
    revoked: bool
