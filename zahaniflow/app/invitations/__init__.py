"""Invitation token lifecycle for onboarding clinic staff."""

from .models import (
    AcceptanceFailure,
    AcceptanceOutcome,
    AcceptanceResult,
    Invitation,
    InvitationDetails,
    InvitationRole,
    InvitationStatus,
)
from .repository import InvitationRepository
from .service import InvitationAuditLogger, InvitationService

__all__ = [
    "AcceptanceFailure",
    "AcceptanceOutcome",
    "AcceptanceResult",
    "Invitation",
    "InvitationAuditLogger",
    "InvitationDetails",
    "InvitationRepository",
    "InvitationRole",
    "InvitationService",
    "InvitationStatus",
]
