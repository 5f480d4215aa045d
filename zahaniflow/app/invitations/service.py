"""Invitation issuing, lookup and redemption for clinic staff."""
from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Protocol, Tuple

from passlib.hash import bcrypt

from ..accounts.models import Credential, UserProfile, normalize_email
from ..accounts.repository import CredentialRepository, ProfileRepository
from ..clinics.models import Clinic
from ..clinics.repository import ClinicRepository
from ..errors import (
    AlreadyUsedError,
    ClinicError,
    ExpiredError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from .models import (
    AcceptanceFailure,
    AcceptanceOutcome,
    AcceptanceResult,
    Invitation,
    InvitationAuditAction,
    InvitationAuditEvent,
    InvitationDetails,
    InvitationRole,
    InvitationStatus,
)
from .repository import InvitationRepository

logger = logging.getLogger("invitations")

UNKNOWN_CLINIC_NAME = "Unknown Clinic"
MIN_PASSWORD_LENGTH = 6


class InvitationAuditLogger(Protocol):
    def log(self, event: InvitationAuditEvent) -> None:
        ...


def _generate_token() -> str:
    return secrets.token_urlsafe(32)


def _current_time(clock: Optional[Callable[[], datetime]]) -> datetime:
    if clock is None:
        return datetime.now(timezone.utc)
    value = clock()
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@dataclass
class InvitationService:
    """Coordinates the invitation lifecycle from issue to redemption."""

    invitations: InvitationRepository
    clinics: ClinicRepository
    credentials: CredentialRepository
    profiles: ProfileRepository
    audit_logger: InvitationAuditLogger
    password_hasher: Callable[[str], str] = bcrypt.hash
    password_verifier: Callable[[str, str], bool] = bcrypt.verify
    token_factory: Callable[[], str] = _generate_token
    clock: Optional[Callable[[], datetime]] = None
    invitation_ttl: timedelta = timedelta(days=7)

    def create_invitation(
        self,
        clinic_id: str,
        inviter: UserProfile,
        email: str,
        role: str,
    ) -> Invitation:
        if inviter.clinic_id != clinic_id or not inviter.can_invite:
            raise ForbiddenError("You do not have permission to invite members to this clinic")

        normalized = normalize_email(email or "")
        if "@" not in normalized:
            raise ValidationError("A valid email address is required", detail={"fields": ["email"]})
        try:
            invitation_role = InvitationRole(role)
        except ValueError as exc:
            raise ValidationError(f"Unsupported role: {role}", detail={"fields": ["role"]}) from exc

        clinic = self.clinics.get_clinic(clinic_id)
        if clinic is None:
            raise NotFoundError("Clinic not found")

        now = _current_time(self.clock)
        existing = self.invitations.find_pending_invitation(clinic.id, normalized)
        if existing is not None and not existing.is_expired(now):
            raise ValidationError("An invitation has already been sent to this email")

        invitation = self.invitations.create_invitation(
            Invitation(
                token=self.token_factory(),
                email=normalized,
                role=invitation_role,
                clinic_id=clinic.id,
                invited_by=inviter.user_id,
                created_at=now,
                expires_at=now + self.invitation_ttl,
            )
        )
        self.audit_logger.log(
            InvitationAuditEvent(
                clinic_id=clinic.id,
                actor_id=inviter.user_id,
                subject=normalized,
                action=InvitationAuditAction.INVITED,
                timestamp=now,
                metadata={"role": invitation_role.value},
            )
        )
        return invitation

    def fetch_invitation(self, token: str) -> InvitationDetails:
        invitation, clinic = self._load_redeemable(token)
        return InvitationDetails(
            clinic_id=invitation.clinic_id,
            clinic_name=clinic.name if clinic else UNKNOWN_CLINIC_NAME,
            email=invitation.email,
            role=invitation.role,
            expires_at=invitation.expires_at,
        )

    def accept_invitation(self, token: str, name: str, password: str) -> AcceptanceResult:
        """Redeem ``token`` by creating (or resuming) the invitee's account.

        Each step is skipped when an earlier run already completed it, so a
        failed run can be retried with the same token. The invitation only
        leaves ``pending`` once the profile exists.
        """

        invitation, _ = self._load_redeemable(token)

        display_name = (name or "").strip()
        if not display_name:
            raise ValidationError("Name is required", detail={"fields": ["name"]})
        if not password or len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
                detail={"fields": ["password"]},
            )

        def failed(reason: AcceptanceFailure, user_id: Optional[str] = None) -> AcceptanceResult:
            logger.warning(
                "Invitation %s acceptance failed at %s",
                invitation.id,
                reason.value,
                extra={"clinic_id": invitation.clinic_id},
            )
            return AcceptanceResult(
                outcome=AcceptanceOutcome.FAILED,
                clinic_id=invitation.clinic_id,
                user_id=user_id,
                reason=reason,
            )

        # Step 1: credential
        resumed = False
        profile: Optional[UserProfile] = None
        try:
            credential = self.credentials.get_credential_by_email(invitation.email)
            if credential is not None:
                profile = self.profiles.get_profile(credential.user_id)
                if profile is not None and profile.clinic_id != invitation.clinic_id:
                    return failed(AcceptanceFailure.EMAIL_IN_USE)
                if not self._password_matches(password, credential):
                    return failed(AcceptanceFailure.INVALID_CREDENTIALS)
                resumed = True
            else:
                credential = self.credentials.create_credential(invitation.email, self.password_hasher(password))
        except ClinicError:
            return failed(AcceptanceFailure.CREDENTIAL_FAILED)

        # Step 2: the clinic may have been removed since the invite was sent
        try:
            clinic = self.clinics.get_clinic(invitation.clinic_id)
        except ClinicError:
            clinic = None
        if clinic is None:
            return failed(AcceptanceFailure.PROFILE_FAILED, credential.user_id)

        # Step 3: profile
        if profile is None:
            try:
                profile = self.profiles.create_profile(
                    UserProfile(
                        user_id=credential.user_id,
                        email=invitation.email,
                        name=display_name,
                        role=invitation.role.staff_role,
                        clinic_id=clinic.id,
                    )
                )
            except ClinicError:
                return failed(AcceptanceFailure.PROFILE_FAILED, credential.user_id)

        # Step 4: consume the invitation
        now = _current_time(self.clock)
        try:
            updated = self.invitations.mark_accepted(invitation.id, now)
        except ClinicError:
            updated = None
        if updated is None:
            return failed(AcceptanceFailure.INVITATION_UPDATE_FAILED, credential.user_id)

        self.audit_logger.log(
            InvitationAuditEvent(
                clinic_id=clinic.id,
                actor_id=credential.user_id,
                subject=invitation.email,
                action=InvitationAuditAction.ACCEPTED,
                timestamp=now,
                metadata={"role": invitation.role.value, "resumed": str(resumed).lower()},
            )
        )
        return AcceptanceResult(
            outcome=AcceptanceOutcome.RESUMED if resumed else AcceptanceOutcome.CREATED,
            clinic_id=clinic.id,
            user_id=profile.user_id,
        )

    def list_invitations(self, clinic_id: str, actor: UserProfile) -> List[Invitation]:
        if actor.clinic_id != clinic_id:
            raise ForbiddenError("You do not have access to this clinic")
        return self.invitations.list_invitations(clinic_id)

    def now(self) -> datetime:
        return _current_time(self.clock)

    def _load_redeemable(self, token: str) -> Tuple[Invitation, Optional[Clinic]]:
        if not token:
            raise NotFoundError("Invitation not found")
        invitation = self.invitations.get_invitation_by_token(token)
        if invitation is None:
            raise NotFoundError("Invitation not found")
        if invitation.status != InvitationStatus.PENDING:
            raise AlreadyUsedError("This invitation has already been used")
        if invitation.is_expired(_current_time(self.clock)):
            raise ExpiredError("This invitation has expired")
        return invitation, self.clinics.get_clinic(invitation.clinic_id)

    def _password_matches(self, password: str, credential: Credential) -> bool:
        try:
            return bool(self.password_verifier(password, credential.password_hash))
        except ValueError:
            logger.warning("Stored password hash for user %s is unreadable", credential.user_id)
            return False


__all__ = ["InvitationAuditLogger", "InvitationService", "UNKNOWN_CLINIC_NAME"]
