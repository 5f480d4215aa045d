"""Static catalog of subscription plans offered to clinics."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from ..clinics.models import SubscriptionTier


@dataclass(frozen=True)
class PlanDefinition:
    """Describes a subscription plan and its list price."""

    key: SubscriptionTier
    display_name: str
    monthly_price: Optional[int]
    currency: str
    features: Tuple[str, ...]
    custom: bool = False

    @property
    def self_serve(self) -> bool:
        return not self.custom and self.monthly_price is not None

    def amount_in_minor_units(self) -> Optional[int]:
        """Price as sent to the provider (kobo, cents)."""

        if self.monthly_price is None:
            return None
        return self.monthly_price * 100


PLAN_CATALOG: Dict[SubscriptionTier, PlanDefinition] = {
    SubscriptionTier.STARTER: PlanDefinition(
        key=SubscriptionTier.STARTER,
        display_name="Starter",
        monthly_price=5000,
        currency="KES",
        features=("1 Consultant", "2 Assistants", "Basic Features", "Email Support"),
    ),
    SubscriptionTier.PROFESSIONAL: PlanDefinition(
        key=SubscriptionTier.PROFESSIONAL,
        display_name="Professional",
        monthly_price=15000,
        currency="KES",
        features=(
            "5 Consultants",
            "10 Assistants",
            "Advanced Features",
            "Priority Support",
            "Analytics Dashboard",
        ),
    ),
    SubscriptionTier.ENTERPRISE: PlanDefinition(
        key=SubscriptionTier.ENTERPRISE,
        display_name="Enterprise",
        monthly_price=None,
        currency="KES",
        features=(
            "Unlimited Users",
            "Custom Features",
            "Dedicated Support",
            "Advanced Analytics",
            "API Access",
        ),
        custom=True,
    ),
}


def get_plan_definition(tier: SubscriptionTier) -> PlanDefinition:
    """Return a plan definition, raising if unsupported."""

    try:
        return PLAN_CATALOG[tier]
    except KeyError as exc:  # pragma: no cover - guarded by static catalog
        raise KeyError(f"Unknown plan: {tier}") from exc


__all__ = ["PLAN_CATALOG", "PlanDefinition", "get_plan_definition"]
