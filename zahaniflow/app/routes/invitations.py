"""API routes for issuing and redeeming clinic invitations."""
from __future__ import annotations

from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Query, Response, status
from fastapi.responses import JSONResponse

from ..accounts.models import UserProfile
from ..auth import get_current_user, set_session_cookie
from ..clinics import Clinic
from ..config import AppConfig, get_app_config
from ..invitations import AcceptanceFailure, InvitationService
from ..schemas.invitations import (
    AcceptInvitationRequest,
    AcceptInvitationResponse,
    CreateInvitationRequest,
    InvitationDetailsResponse,
    InvitationListResponse,
    InvitationResponse,
)
from ..services.invitations import get_invitation_service
from .subscription import require_active_clinic

router = APIRouter(tags=["invitations"])

_FAILURE_STATUS = {
    AcceptanceFailure.EMAIL_IN_USE: status.HTTP_409_CONFLICT,
    AcceptanceFailure.INVALID_CREDENTIALS: status.HTTP_401_UNAUTHORIZED,
}

_FAILURE_MESSAGES = {
    AcceptanceFailure.EMAIL_IN_USE: "This email is already registered with another clinic",
    AcceptanceFailure.INVALID_CREDENTIALS: "An account already exists for this email. Enter its password to continue.",
}


def _invite_url(config: AppConfig, token: str) -> str:
    return f"{config.app_base_url}/accept-invitation?{urlencode({'token': token})}"


@router.post(
    "/api/clinics/{clinic_id}/invitations",
    response_model=InvitationResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_invitation(
    clinic_id: str,
    payload: CreateInvitationRequest,
    clinic: Clinic = Depends(require_active_clinic),
    current_user: UserProfile = Depends(get_current_user),
    service: InvitationService = Depends(get_invitation_service),
    config: AppConfig = Depends(get_app_config),
) -> InvitationResponse:
    invitation = service.create_invitation(clinic.id, current_user, payload.email, payload.role.value)
    return InvitationResponse.from_invitation(
        invitation,
        now=service.now(),
        invite_url=_invite_url(config, invitation.token),
    )


@router.get("/api/clinics/{clinic_id}/invitations", response_model=InvitationListResponse)
def list_invitations(
    clinic_id: str,
    clinic: Clinic = Depends(require_active_clinic),
    current_user: UserProfile = Depends(get_current_user),
    service: InvitationService = Depends(get_invitation_service),
) -> InvitationListResponse:
    now = service.now()
    invitations = service.list_invitations(clinic.id, current_user)
    return InvitationListResponse(
        invitations=[InvitationResponse.from_invitation(invitation, now=now) for invitation in invitations]
    )


@router.get("/api/invitations", response_model=InvitationDetailsResponse)
def fetch_invitation(
    token: str = Query(default=""),
    service: InvitationService = Depends(get_invitation_service),
) -> InvitationDetailsResponse:
    return InvitationDetailsResponse.from_details(service.fetch_invitation(token))


@router.post("/api/invitations/accept", response_model=AcceptInvitationResponse)
def accept_invitation(
    payload: AcceptInvitationRequest,
    response: Response,
    service: InvitationService = Depends(get_invitation_service),
    config: AppConfig = Depends(get_app_config),
):
    result = service.accept_invitation(payload.token, payload.name, payload.password)
    if not result.succeeded:
        reason = result.reason or AcceptanceFailure.CREDENTIAL_FAILED
        return JSONResponse(
            status_code=_FAILURE_STATUS.get(reason, status.HTTP_500_INTERNAL_SERVER_ERROR),
            content={
                "status": False,
                "error": reason.value,
                "message": _FAILURE_MESSAGES.get(reason, "We could not finish setting up your account. Please try again."),
            },
        )

    set_session_cookie(response, result.user_id or "", config)
    return AcceptInvitationResponse.from_result(result)
