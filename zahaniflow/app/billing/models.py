"""Domain models for the billing system."""
from __future__ import annotations

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional
from urllib.parse import urlencode

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..clinics.models import SubscriptionTier


class PaymentEventType(str, Enum):
    """Provider webhook events that the reconciler reacts to."""

    CHARGE_SUCCESS = "charge.success"
    SUBSCRIPTION_DISABLE = "subscription.disable"
    SUBSCRIPTION_NOT_RENEW = "subscription.not_renew"
    SUBSCRIPTION_CREATE = "subscription.create"


class PaymentIntentStatus(str, Enum):
    """Lifecycle status for a transaction started by this application."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class InvoiceStatus(str, Enum):
    """Status of a persisted invoice record."""

    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


class PaymentIntent(BaseModel):
    """Transaction recorded before the user is redirected to the provider."""

    reference: str = Field(description="Transaction reference shared with the provider")
    clinic_id: str
    plan: SubscriptionTier
    email: str
    amount: int = Field(ge=1, description="Amount in the smallest currency unit")
    currency: str = Field(min_length=3, max_length=3)
    status: PaymentIntentStatus = PaymentIntentStatus.PENDING
    callback_url: Optional[str] = None
    authorization_url: Optional[str] = None
    access_code: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @field_validator("clinic_id", mode="before")
    @classmethod
    def _stringify_clinic_id(cls, value: Any) -> str:
        return str(value)


class InvoiceRecord(BaseModel):
    """Append-only record of a settled charge."""

    invoice_id: str
    clinic_id: str
    amount: int = Field(ge=0)
    currency: str = Field(min_length=3, max_length=3)
    status: InvoiceStatus
    payment_method: Optional[str] = None
    provider_reference: str
    issued_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    paid_at: Optional[datetime] = None

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @field_validator("currency")
    @classmethod
    def _upper_currency(cls, value: str) -> str:
        return value.upper()

    @field_validator("clinic_id", mode="before")
    @classmethod
    def _stringify_clinic_id(cls, value: Any) -> str:
        return str(value)


class PaymentEventMetadata(BaseModel):
    """Metadata attached at initialization and echoed back by the provider."""

    clinic_id: Optional[str] = None
    plan: Optional[str] = None
    clinic_name: Optional[str] = None

    model_config = ConfigDict(extra="ignore", frozen=True)

    @field_validator("clinic_id", "plan", "clinic_name", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        text = str(value).strip()
        return text or None


class PaymentEvent(BaseModel):
    """Provider notification as parsed from the webhook body."""

    event: str
    data: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(extra="ignore", frozen=True)

    @field_validator("data", mode="before")
    @classmethod
    def _default_data(cls, value: Any) -> Dict[str, Any]:
        return value if isinstance(value, dict) else {}

    @property
    def event_type(self) -> Optional[PaymentEventType]:
        try:
            return PaymentEventType(self.event)
        except ValueError:
            return None

    @property
    def metadata(self) -> PaymentEventMetadata:
        raw = self.data.get("metadata")
        # The provider echoes metadata back as a JSON string for some channels.
        if isinstance(raw, str):
            try:
                raw = json.loads(raw)
            except ValueError:
                raw = None
        if not isinstance(raw, dict):
            return PaymentEventMetadata()
        return PaymentEventMetadata.model_validate(raw)

    @property
    def reference(self) -> Optional[str]:
        value = self.data.get("reference")
        return str(value) if value else None

    @property
    def amount(self) -> int:
        try:
            return max(int(self.data.get("amount") or 0), 0)
        except (TypeError, ValueError):
            return 0

    @property
    def currency(self) -> Optional[str]:
        value = self.data.get("currency")
        return str(value).upper() if value else None

    @property
    def channel(self) -> Optional[str]:
        value = self.data.get("channel")
        return str(value) if value else None

    @property
    def receipt_key(self) -> Optional[str]:
        """Replay key for a ``charge.success`` delivery.

        Status events return ``None`` and are applied on every delivery.
        """

        if self.event_type != PaymentEventType.CHARGE_SUCCESS or not self.reference:
            return None
        return f"{self.event}:{self.reference}"


class WebhookOutcome(str, Enum):
    """What the reconciler did with a verified event."""

    APPLIED = "applied"
    INFORMATIONAL = "informational"
    IGNORED = "ignored"
    DROPPED = "dropped"
    DUPLICATE = "duplicate"
    FAILED = "failed"


class WebhookResult(BaseModel):
    outcome: WebhookOutcome
    event_type: str
    clinic_id: Optional[str] = None
    reason: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class CallbackStatus(str, Enum):
    """Query-string codes carried by the callback redirect."""

    PAYMENT_SUCCESSFUL = "payment_successful"
    MISSING_REFERENCE = "missing_reference"
    CONFIGURATION_ERROR = "configuration_error"
    VERIFICATION_FAILED = "verification_failed"
    PAYMENT_FAILED = "payment_failed"
    INVALID_METADATA = "invalid_metadata"
    DATABASE_ERROR = "database_error"
    INTERNAL_ERROR = "internal_error"


class CallbackResult(BaseModel):
    """Resolved destination of the browser redirect after checkout."""

    status: CallbackStatus
    reference: Optional[str] = None
    clinic_id: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @property
    def succeeded(self) -> bool:
        return self.status == CallbackStatus.PAYMENT_SUCCESSFUL

    def redirect_url(self, settings_path: str) -> str:
        key = "success" if self.succeeded else "error"
        return f"{settings_path}?{urlencode({key: self.status.value})}"


class BillingAuditEventType(str, Enum):
    """Audit event categories emitted by the billing subsystem."""

    PAYMENT_INITIALIZED = "payment_initialized"
    SUBSCRIPTION_ACTIVATED = "subscription_activated"
    SUBSCRIPTION_SUSPENDED = "subscription_suspended"
    SUBSCRIPTION_CANCELLED = "subscription_cancelled"
    SUBSCRIPTION_CREATED = "subscription_created"


class BillingAuditEvent(BaseModel):
    """Structured audit event for analytics and notifications."""

    event_type: BillingAuditEventType
    clinic_id: Optional[str] = None
    reference: Optional[str] = None
    metadata: Dict[str, str] = Field(default_factory=dict)
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(populate_by_name=True, frozen=True)
