"""Request/response schemas for auth and user endpoints."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.core.security import (
    BCRYPT_MAX_BYTES,
    PASSWORD_MAX_LEN,
    PASSWORD_MIN_LEN,
    USERNAME_MAX_LEN,
    USERNAME_MIN_LEN,
    username_is_valid,
)


def _check_password_bytes(v: str) -> str:
    if len(v.encode("utf-8")) > BCRYPT_MAX_BYTES:
        raise ValueError(f"Password must be at most {BCRYPT_MAX_BYTES} bytes when UTF-8 encoded")
    return v


class LoginRequest(BaseModel):
    """Credentials for login."""

    username: str = Field(
        ..., min_length=USERNAME_MIN_LEN, max_length=USERNAME_MAX_LEN, description="Username"
    )
    password: str = Field(
        ..., min_length=PASSWORD_MIN_LEN, max_length=PASSWORD_MAX_LEN, description="Password"
    )


class RegisterRequest(BaseModel):
    """New account; receives the configured default role."""

    username: str = Field(
        ..., min_length=USERNAME_MIN_LEN, max_length=USERNAME_MAX_LEN, description="Username"
    )
    password: str = Field(
        ..., min_length=PASSWORD_MIN_LEN, max_length=PASSWORD_MAX_LEN, description="Password"
    )
    full_name: str | None = Field(default=None, max_length=255, description="Display name")

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Username must not be blank")
        if not username_is_valid(v):
            raise ValueError(f"Username must be at most {USERNAME_MAX_LEN} characters once normalized")
        return v.strip()

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return _check_password_bytes(v)


class PasswordChangeRequest(BaseModel):
    """Current password plus the replacement."""

    current_password: str = Field(..., min_length=1, max_length=PASSWORD_MAX_LEN)
    new_password: str = Field(..., min_length=PASSWORD_MIN_LEN, max_length=PASSWORD_MAX_LEN)

    @field_validator("new_password")
    @classmethod
    def validate_new_password(cls, v: str) -> str:
        return _check_password_bytes(v)


class TokenResponse(BaseModel):
    """JWT access token returned after successful login."""

    access_token: str = Field(..., description="JWT access token")
    token_type: str = Field(default="bearer", description="Token type")
    expires_in: int = Field(..., description="Seconds until the token expires")


class CurrentUser(BaseModel):
    """Authenticated principal taken from the validated token."""

    id: str
    username: str | None = None
    roles: list[str]


class UserResponse(BaseModel):
    """User entry (no password hash)."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    username: str
    full_name: str | None = None
    roles: list[str]
    is_active: bool
    created_at: datetime | None = None

    @field_validator("roles", mode="before")
    @classmethod
    def sort_roles(cls, v: object) -> object:
        if isinstance(v, (set, frozenset)):
            return sorted(v)
        return v


class UsersListResponse(BaseModel):
    """Response for GET /users (admin only)."""

    users: list[UserResponse]


class UserActiveRequest(BaseModel):
    """Enable or soft-disable an account."""

    is_active: bool
