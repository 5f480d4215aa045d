"""Operator-driven suspension and reactivation of clinics."""
from __future__ import annotations

import logging
from typing import Optional

from ..accounts.models import UserProfile
from ..errors import ForbiddenError, NotFoundError
from .models import Clinic
from .repository import ClinicRepository

logger = logging.getLogger(__name__)


def set_clinic_suspension(
    clinics: ClinicRepository,
    clinic_id: str,
    *,
    actor: UserProfile,
    suspend: bool,
    message: Optional[str] = None,
) -> Clinic:
    """Suspend ``clinic_id`` (optionally with a custom lock-screen message) or reactivate it.

    Reactivation always sets the status to ``active`` and clears any stored
    suspension message.
    """

    if not actor.is_operator:
        raise ForbiddenError("Only platform operators can suspend or reactivate clinics")

    note = (message or "").strip() or None
    clinic = clinics.set_suspension(clinic_id, suspended=suspend, message=note if suspend else None)
    if clinic is None:
        raise NotFoundError("Clinic not found")

    logger.info(
        "Clinic %s %s by operator %s",
        clinic_id,
        "suspended" if suspend else "reactivated",
        actor.user_id,
    )
    return clinic


__all__ = ["set_clinic_suspension"]
