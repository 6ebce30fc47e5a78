"""Pydantic request/response schemas."""

from sharejoy.schemas.auth import (
    ChangePasswordRequest,
    CurrentUser,
    DeleteAccountRequest,
    ErrorResponse,
    LoginRequest,
    RegisterRequest,
    SessionResponse,
)
from sharejoy.schemas.health import HealthResponse
from sharejoy.schemas.user import Role, UserRecord

__all__ = [
    "ChangePasswordRequest",
    "CurrentUser",
    "DeleteAccountRequest",
    "ErrorResponse",
    "HealthResponse",
    "LoginRequest",
    "RegisterRequest",
    "Role",
    "SessionResponse",
    "UserRecord",
]
