"""Clinic tenant records and the subscription access gate."""

from .gate import (
    AccessDecision,
    evaluate_access,
    is_blocked,
    require_active_subscription,
    resolve_message,
)
from .models import (
    BLOCKED_STATUSES,
    Clinic,
    ClinicSubscriptionState,
    SubscriptionStatus,
    SubscriptionTier,
)
from .repository import ClinicRepository

__all__ = [
    "AccessDecision",
    "BLOCKED_STATUSES",
    "Clinic",
    "ClinicRepository",
    "ClinicSubscriptionState",
    "SubscriptionStatus",
    "SubscriptionTier",
    "evaluate_access",
    "is_blocked",
    "require_active_subscription",
    "resolve_message",
]
