"""
Pydantic schemas for principal responses and profile/admin updates.

These are the *public* view of a principal. None of them has a password
hash or OTP field, so a secret cannot reach an API response even if a
route forgets to filter — the internal record (storefront.models.user.User)
never leaves the service layer unconverted.
"""

import uuid
from datetime import datetime
from typing import Annotated

from pydantic import BaseModel, ConfigDict, StringConstraints, computed_field, field_validator

from storefront.clock import ensure_utc
from storefront.models.user import Role


# Surrounding whitespace is stripped before the length check, so "   " is missing
DisplayName = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=255)]
PhoneNumber = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=50)]


class UserSummary(BaseModel):
    """Compact principal view returned with login tokens."""
    id: uuid.UUID
    name: str
    email: str
    phone: str
    role: Role

    model_config = ConfigDict(from_attributes=True)


class UserResponse(BaseModel):
    """Full public representation of a principal."""
    id: uuid.UUID
    name: str
    email: str
    phone: str
    role: Role
    active: bool
    is_verified: bool
    account_locked: bool
    last_login: datetime | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_validator("last_login", "created_at")
    @classmethod
    def as_utc(cls, value: datetime | None) -> datetime | None:
        """SQLite hands back naive datetimes; they are UTC."""
        return ensure_utc(value)

    @computed_field
    @property
    def is_banned(self) -> bool:
        """Storefront clients poll this to end sessions of banned users."""
        return not self.active


class UserMessageResponse(BaseModel):
    """A message plus the affected principal (profile and admin updates)."""
    message: str
    user: UserResponse


class ProfileUpdateRequest(BaseModel):
    """
    Request body for PUT /api/users/profile.

    Only display fields can change here. Email, role, and standing are not
    accepted; unknown fields are ignored.
    """
    name: DisplayName | None = None
    phone: PhoneNumber | None = None


class RoleUpdateRequest(BaseModel):
    """Request body for PUT /api/admin/users/{id}/role."""
    role: str
