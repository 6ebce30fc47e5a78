"""Pydantic model of a persisted user record."""

from enum import Enum

from pydantic import BaseModel, Field


class Role(str, Enum):
    """Coarse authorization tag; approvers may approve or reject NGO records."""

    USER = "user"
    APPROVER = "approver"


class UserRecord(BaseModel):
    """
    One entry of the persisted users mapping.

    salt: hex-encoded 16 random bytes, regenerated on every password change.
    hash: hex PBKDF2 output for the current salt and password.
    """

    username: str = Field(..., min_length=1, description="Primary key; immutable once created")
    salt: str = Field(
        ..., pattern=r"^[0-9a-f]{32}$", description="Lowercase hex of 16 random bytes"
    )
    hash: str = Field(..., pattern=r"^[0-9a-fA-F]{64}$", description="Hex-encoded 32-byte derived key")
    # Records written before roles existed carry no role field.
    role: Role = Field(default=Role.USER, description="user or approver")
