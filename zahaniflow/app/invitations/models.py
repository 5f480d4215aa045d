"""Typed representations of clinic invitations and their redemption."""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..accounts.models import StaffRole, normalize_email


class InvitationRole(str, Enum):
    """Roles that can be granted through an invitation."""

    CONSULTANT = "consultant"
    ASSISTANT = "assistant"

    @property
    def staff_role(self) -> StaffRole:
        return StaffRole(self.value)


class InvitationStatus(str, Enum):
    """Stored lifecycle state. ``expired`` is only ever derived at read time."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    EXPIRED = "expired"


class Invitation(BaseModel):
    """Single-use grant allowing one email address to join a clinic."""

    id: Optional[str] = None
    token: str = Field(repr=False)
    email: str
    role: InvitationRole
    clinic_id: str
    status: InvitationStatus = InvitationStatus.PENDING
    invited_by: Optional[str] = None
    created_at: datetime
    expires_at: datetime
    accepted_at: Optional[datetime] = None

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @field_validator("id", "clinic_id", "invited_by", mode="before")
    @classmethod
    def _stringify_ids(cls, value: Any) -> Optional[str]:
        return None if value is None else str(value)

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, value: str) -> str:
        return normalize_email(value)

    @field_validator("expires_at")
    @classmethod
    def _validate_expiration(cls, expires_at: datetime, info):  # type: ignore[override]
        created_at = info.data.get("created_at")
        if created_at and expires_at <= created_at:
            raise ValueError("expires_at must be after created_at")
        return expires_at

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    def effective_status(self, now: datetime) -> InvitationStatus:
        if self.status == InvitationStatus.PENDING and self.is_expired(now):
            return InvitationStatus.EXPIRED
        return self.status


class InvitationDetails(BaseModel):
    """What the acceptance screen shows before the invitee signs up."""

    clinic_id: str
    clinic_name: str
    email: str
    role: InvitationRole
    expires_at: datetime

    model_config = ConfigDict(frozen=True)


class AcceptanceOutcome(str, Enum):
    CREATED = "created"
    RESUMED = "resumed"
    FAILED = "failed"


class AcceptanceFailure(str, Enum):
    """Step at which an acceptance run stopped."""

    CREDENTIAL_FAILED = "credential_failed"
    PROFILE_FAILED = "profile_failed"
    INVITATION_UPDATE_FAILED = "invitation_update_failed"
    EMAIL_IN_USE = "email_in_use"
    INVALID_CREDENTIALS = "invalid_credentials"


class AcceptanceResult(BaseModel):
    outcome: AcceptanceOutcome
    clinic_id: str
    user_id: Optional[str] = None
    reason: Optional[AcceptanceFailure] = None

    model_config = ConfigDict(frozen=True)

    @property
    def succeeded(self) -> bool:
        return self.outcome != AcceptanceOutcome.FAILED


class InvitationAuditAction(str, Enum):
    INVITED = "invite"
    ACCEPTED = "accept"


class InvitationAuditEvent(BaseModel):
    """Audit record emitted when an invitation is issued or redeemed."""

    clinic_id: str
    actor_id: Optional[str]
    subject: str
    action: InvitationAuditAction
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    metadata: Dict[str, str] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)
