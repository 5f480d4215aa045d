"""Login credentials and the staff profiles bound to a clinic."""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class StaffRole(str, Enum):
    """Roles a staff member can hold inside a clinic."""

    ADMIN = "admin"
    CONSULTANT = "consultant"
    ASSISTANT = "assistant"
    SUPER_ADMIN = "super_admin"


INVITING_ROLES = frozenset({StaffRole.ADMIN, StaffRole.CONSULTANT})
OPERATOR_ROLES = frozenset({StaffRole.SUPER_ADMIN})


def normalize_email(email: str) -> str:
    return email.strip().lower()


class Credential(BaseModel):
    """Login identity. ``password_hash`` never leaves the service layer."""

    user_id: str
    email: str
    password_hash: str = Field(repr=False)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @field_validator("user_id", mode="before")
    @classmethod
    def _stringify_user_id(cls, value: Any) -> str:
        return str(value)

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, value: str) -> str:
        return normalize_email(value)


class UserProfile(BaseModel):
    """Staff member record scoped to exactly one clinic."""

    user_id: str
    email: str
    name: str
    role: StaffRole
    clinic_id: str
    created_at: Optional[datetime] = None

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @field_validator("user_id", "clinic_id", mode="before")
    @classmethod
    def _stringify_ids(cls, value: Any) -> str:
        return str(value)

    @property
    def can_invite(self) -> bool:
        return self.role in INVITING_ROLES

    @property
    def is_operator(self) -> bool:
        """Platform operators manage every clinic, not just their own."""

        return self.role in OPERATOR_ROLES
