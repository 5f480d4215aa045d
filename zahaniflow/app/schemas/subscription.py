"""API schemas for the clinic subscription gate."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ..clinics import AccessDecision, Clinic


class SubscriptionStatusResponse(BaseModel):
    clinic_id: str = Field(alias="clinicId")
    tier: str
    status: str
    end_date: Optional[datetime] = Field(alias="endDate", default=None)
    blocked: bool
    message: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_decision(cls, clinic: Clinic, decision: AccessDecision) -> "SubscriptionStatusResponse":
        return cls(
            clinic_id=clinic.id,
            tier=clinic.subscription_tier.value,
            status=decision.status.value,
            end_date=clinic.subscription_end_date,
            blocked=decision.blocked,
            message=decision.message,
        )


class ClinicSuspensionRequest(BaseModel):
    suspend: bool
    message: Optional[str] = Field(default=None, max_length=500)
