"""API schemas for invitation endpoints."""
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from ..invitations import AcceptanceResult, Invitation, InvitationDetails, InvitationRole


class CreateInvitationRequest(BaseModel):
    email: EmailStr
    role: InvitationRole = InvitationRole.ASSISTANT

    model_config = ConfigDict(populate_by_name=True)


class InvitationResponse(BaseModel):
    id: Optional[str] = None
    email: str
    role: str
    status: str
    created_at: datetime = Field(alias="createdAt")
    expires_at: datetime = Field(alias="expiresAt")
    invite_url: Optional[str] = Field(alias="inviteUrl", default=None)

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_invitation(
        cls,
        invitation: Invitation,
        *,
        now: datetime,
        invite_url: Optional[str] = None,
    ) -> "InvitationResponse":
        return cls(
            id=invitation.id,
            email=invitation.email,
            role=invitation.role.value,
            status=invitation.effective_status(now).value,
            created_at=invitation.created_at,
            expires_at=invitation.expires_at,
            invite_url=invite_url,
        )


class InvitationListResponse(BaseModel):
    invitations: List[InvitationResponse]


class InvitationDetailsResponse(BaseModel):
    clinic_id: str = Field(alias="clinicId")
    clinic_name: str = Field(alias="clinicName")
    email: str
    role: str
    expires_at: datetime = Field(alias="expiresAt")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_details(cls, details: InvitationDetails) -> "InvitationDetailsResponse":
        return cls(
            clinic_id=details.clinic_id,
            clinic_name=details.clinic_name,
            email=details.email,
            role=details.role.value,
            expires_at=details.expires_at,
        )


class AcceptInvitationRequest(BaseModel):
    token: str
    name: str
    password: str = Field(repr=False)


class AcceptInvitationResponse(BaseModel):
    status: bool = True
    outcome: str
    user_id: Optional[str] = Field(alias="userId", default=None)
    clinic_id: str = Field(alias="clinicId")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_result(cls, result: AcceptanceResult) -> "AcceptInvitationResponse":
        return cls(outcome=result.outcome.value, user_id=result.user_id, clinic_id=result.clinic_id)
