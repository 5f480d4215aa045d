"""Access gating driven by a clinic's subscription status."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional

from ..errors import SubscriptionBlockedError
from .models import BLOCKED_STATUSES, ClinicSubscriptionState, SubscriptionStatus

SUSPENSION_MESSAGE_KEY = "suspension_message"

DEFAULT_MESSAGES: Dict[SubscriptionStatus, str] = {
    SubscriptionStatus.SUSPENDED: (
        "Your subscription has been suspended. Please contact support or update your payment method."
    ),
    SubscriptionStatus.CANCELLED: (
        "Your subscription has been cancelled. Renew your subscription to continue using ZahaniFlow."
    ),
    SubscriptionStatus.EXPIRED: "Your subscription has expired. Please renew to regain access.",
}

FALLBACK_MESSAGE = "Subscription access required. Please contact your administrator."


def is_blocked(state: ClinicSubscriptionState) -> bool:
    """Return ``True`` when the subscription status locks the application."""

    return state.subscription_status in BLOCKED_STATUSES


def resolve_message(state: ClinicSubscriptionState, custom_message: Optional[str] = None) -> str:
    """Pick the message shown on the blocking screen.

    An operator-supplied ``settings.suspension_message`` wins over the
    caller's ``custom_message``, which wins over the status default. Unknown
    or unblocked statuses fall back to a generic prompt.
    """

    operator_message = state.settings.get(SUSPENSION_MESSAGE_KEY)
    if isinstance(operator_message, str) and operator_message.strip():
        return operator_message
    if custom_message:
        return custom_message
    return DEFAULT_MESSAGES.get(state.subscription_status, FALLBACK_MESSAGE)


@dataclass(frozen=True)
class AccessDecision:
    """Outcome of evaluating the gate for one clinic."""

    blocked: bool
    status: SubscriptionStatus
    message: Optional[str] = None


def evaluate_access(
    state: ClinicSubscriptionState,
    custom_message: Optional[str] = None,
) -> AccessDecision:
    blocked = is_blocked(state)
    return AccessDecision(
        blocked=blocked,
        status=state.subscription_status,
        message=resolve_message(state, custom_message) if blocked else None,
    )


def require_active_subscription(
    state: ClinicSubscriptionState,
    *,
    custom_message: Optional[str] = None,
) -> None:
    """Raise :class:`SubscriptionBlockedError` when the clinic is locked out."""

    decision = evaluate_access(state, custom_message)
    if decision.blocked:
        raise SubscriptionBlockedError(
            decision.message or FALLBACK_MESSAGE,
            detail={"subscription_status": decision.status.value},
        )


__all__ = [
    "AccessDecision",
    "DEFAULT_MESSAGES",
    "FALLBACK_MESSAGE",
    "evaluate_access",
    "is_blocked",
    "require_active_subscription",
    "resolve_message",
]
