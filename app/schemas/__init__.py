"""Pydantic request/response schemas."""

from app.schemas.auth import (
    CurrentUser,
    LoginRequest,
    PasswordChangeRequest,
    RegisterRequest,
    TokenResponse,
    UserActiveRequest,
    UserResponse,
    UsersListResponse,
)
from app.schemas.health import HealthResponse

__all__ = [
    "CurrentUser",
    "HealthResponse",
    "LoginRequest",
    "PasswordChangeRequest",
    "RegisterRequest",
    "TokenResponse",
    "UserActiveRequest",
    "UserResponse",
    "UsersListResponse",
]
