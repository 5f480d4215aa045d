"""Typed representations of clinics and their subscription state."""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SubscriptionTier(str, Enum):
    """Plans a clinic can subscribe to."""

    STARTER = "starter"
    PROFESSIONAL = "professional"
    ENTERPRISE = "enterprise"


class SubscriptionStatus(str, Enum):
    """Lifecycle state of a clinic subscription."""

    TRIALING = "trialing"
    ACTIVE = "active"
    SUSPENDED = "suspended"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


BLOCKED_STATUSES: FrozenSet[SubscriptionStatus] = frozenset(
    {
        SubscriptionStatus.SUSPENDED,
        SubscriptionStatus.CANCELLED,
        SubscriptionStatus.EXPIRED,
    }
)


class ClinicSubscriptionState(BaseModel):
    """Read-only projection of the columns the access gate looks at."""

    subscription_status: SubscriptionStatus
    subscription_tier: Optional[SubscriptionTier] = None
    subscription_end_date: Optional[datetime] = None
    settings: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @field_validator("settings", mode="before")
    @classmethod
    def _default_settings(cls, value: Any) -> Dict[str, Any]:
        return value if isinstance(value, dict) else {}


class Clinic(BaseModel):
    """Tenant root record."""

    id: str
    name: str
    slug: str
    subscription_tier: SubscriptionTier = SubscriptionTier.STARTER
    subscription_status: SubscriptionStatus = SubscriptionStatus.TRIALING
    subscription_end_date: Optional[datetime] = None
    settings: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value: Any) -> str:
        return str(value)

    @field_validator("settings", mode="before")
    @classmethod
    def _default_settings(cls, value: Any) -> Dict[str, Any]:
        return value if isinstance(value, dict) else {}

    @property
    def subscription_state(self) -> ClinicSubscriptionState:
        return ClinicSubscriptionState(
            subscription_status=self.subscription_status,
            subscription_tier=self.subscription_tier,
            subscription_end_date=self.subscription_end_date,
            settings=self.settings,
        )
