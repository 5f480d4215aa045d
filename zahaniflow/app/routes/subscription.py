"""API routes for the clinic subscription gate, operator suspension and sign-out."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import RedirectResponse

from ..accounts.models import UserProfile
from ..auth import clear_session_cookie, get_current_user
from ..clinics import Clinic, ClinicRepository, evaluate_access, require_active_subscription
from ..clinics.suspension import set_clinic_suspension
from ..config import AppConfig, get_app_config
from ..errors import ForbiddenError, NotFoundError
from ..schemas.subscription import ClinicSuspensionRequest, SubscriptionStatusResponse
from ..services.accounts import get_clinic_repository

SIGNED_OUT_PATH = "/auth"

router = APIRouter(tags=["subscription"])


def _load_member_clinic(clinic_id: str, current_user: UserProfile, clinics: ClinicRepository) -> Clinic:
    if current_user.clinic_id != clinic_id:
        raise ForbiddenError("You do not have access to this clinic")
    clinic = clinics.get_clinic(clinic_id)
    if clinic is None:
        raise NotFoundError("Clinic not found")
    return clinic


def require_active_clinic(
    clinic_id: str,
    current_user: UserProfile = Depends(get_current_user),
    clinics: ClinicRepository = Depends(get_clinic_repository),
) -> Clinic:
    """Dependency for clinic-scoped routes that a lapsed subscription locks."""

    clinic = _load_member_clinic(clinic_id, current_user, clinics)
    require_active_subscription(clinic.subscription_state)
    return clinic


@router.get("/api/clinics/{clinic_id}/subscription", response_model=SubscriptionStatusResponse)
def get_subscription_status(
    clinic_id: str,
    message: Optional[str] = Query(default=None),
    current_user: UserProfile = Depends(get_current_user),
    clinics: ClinicRepository = Depends(get_clinic_repository),
) -> SubscriptionStatusResponse:
    clinic = _load_member_clinic(clinic_id, current_user, clinics)
    decision = evaluate_access(clinic.subscription_state, message)
    return SubscriptionStatusResponse.from_decision(clinic, decision)


@router.post("/api/admin/clinics/{clinic_id}/suspension", response_model=SubscriptionStatusResponse)
def update_clinic_suspension(
    clinic_id: str,
    payload: ClinicSuspensionRequest,
    current_user: UserProfile = Depends(get_current_user),
    clinics: ClinicRepository = Depends(get_clinic_repository),
) -> SubscriptionStatusResponse:
    clinic = set_clinic_suspension(
        clinics,
        clinic_id,
        actor=current_user,
        suspend=payload.suspend,
        message=payload.message,
    )
    return SubscriptionStatusResponse.from_decision(clinic, evaluate_access(clinic.subscription_state))


@router.post("/api/auth/sign-out")
def sign_out(config: AppConfig = Depends(get_app_config)) -> RedirectResponse:
    response = RedirectResponse(SIGNED_OUT_PATH, status_code=status.HTTP_303_SEE_OTHER)
    clear_session_cookie(response, config)
    return response
