"""Application wiring for the invitation service."""
from __future__ import annotations

import logging
from datetime import timedelta
from functools import lru_cache

from ..config import get_app_config
from ..invitations import InvitationAuditLogger, InvitationService
from ..invitations.models import InvitationAuditEvent
from ..invitations.repository import PostgresInvitationRepository
from .accounts import get_clinic_repository, get_credential_repository, get_profile_repository

logger = logging.getLogger("invitations")


class LoggingInvitationAuditLogger(InvitationAuditLogger):
    """Forwards invitation audit events to the application logger."""

    def log(self, event: InvitationAuditEvent) -> None:
        logger.info(
            "Invitation %s clinic=%s actor=%s metadata=%s",
            event.action.value,
            event.clinic_id,
            event.actor_id,
            event.metadata,
        )


@lru_cache(maxsize=1)
def get_invitation_service() -> InvitationService:
    config = get_app_config()
    return InvitationService(
        invitations=PostgresInvitationRepository(),
        clinics=get_clinic_repository(),
        credentials=get_credential_repository(),
        profiles=get_profile_repository(),
        audit_logger=LoggingInvitationAuditLogger(),
        invitation_ttl=timedelta(days=config.invitation_ttl_days),
    )


__all__ = ["LoggingInvitationAuditLogger", "get_invitation_service"]
