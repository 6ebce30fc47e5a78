"""Request/response schemas for auth endpoints."""

from pydantic import BaseModel, Field

from sharejoy.schemas.user import Role


class RegisterRequest(BaseModel):
    """New account details."""

    username: str = Field(..., min_length=1, max_length=255, description="Username")
    password: str = Field(..., min_length=1, max_length=128, description="Password")
    role: Role = Field(default=Role.USER, description="user or approver")


class LoginRequest(BaseModel):
    """Credentials for login."""

    username: str = Field(..., min_length=1, max_length=255, description="Username")
    password: str = Field(..., min_length=1, max_length=128, description="Password")


class ChangePasswordRequest(BaseModel):
    """Current password plus the new one, entered twice."""

    current_password: str = Field(..., min_length=1, max_length=128)
    new_password: str = Field(..., min_length=1, max_length=128)
    confirm_password: str = Field(..., min_length=1, max_length=128)


class DeleteAccountRequest(BaseModel):
    """Current password, required to confirm deletion."""

    password: str = Field(..., min_length=1, max_length=128)


class CurrentUser(BaseModel):
    """Logged-in user as shown to the client (no salt or hash)."""

    username: str
    role: Role


class SessionResponse(BaseModel):
    """Who is logged in; username is null when nobody is."""

    username: str | None = None


class ErrorResponse(BaseModel):
    """User-facing error body."""

    code: str
    title: str
    detail: str
