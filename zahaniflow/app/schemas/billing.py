"""API schemas for billing endpoints."""
from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..billing import InvoiceRecord, PlanDefinition


class InitializePaymentRequest(BaseModel):
    """Checkout request. Presence of each field is checked by the service."""

    email: Optional[str] = None
    amount: Optional[int] = None
    plan: Optional[str] = None
    clinic_id: Optional[str] = None
    callback_url: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("clinic_id", mode="before")
    @classmethod
    def _stringify_clinic_id(cls, value: Any) -> Optional[str]:
        return None if value is None else str(value)


class InvoiceResponse(BaseModel):
    invoice_id: str = Field(alias="invoiceId")
    amount: int
    currency: str
    status: str
    payment_method: Optional[str] = Field(alias="paymentMethod", default=None)
    reference: str
    issued_at: datetime = Field(alias="issuedAt")
    paid_at: Optional[datetime] = Field(alias="paidAt", default=None)

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_record(cls, record: InvoiceRecord) -> "InvoiceResponse":
        return cls(
            invoice_id=record.invoice_id,
            amount=record.amount,
            currency=record.currency,
            status=record.status.value,
            payment_method=record.payment_method,
            reference=record.provider_reference,
            issued_at=record.issued_at,
            paid_at=record.paid_at,
        )


class InvoiceListResponse(BaseModel):
    invoices: List[InvoiceResponse]

    model_config = ConfigDict(populate_by_name=True)


class PlanResponse(BaseModel):
    key: str
    name: str
    price: Optional[int] = None
    currency: str
    features: List[str]
    self_serve: bool = Field(alias="selfServe")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_definition(cls, plan: PlanDefinition) -> "PlanResponse":
        return cls(
            key=plan.key.value,
            name=plan.display_name,
            price=plan.monthly_price,
            currency=plan.currency,
            features=list(plan.features),
            self_serve=plan.self_serve,
        )


class PlanListResponse(BaseModel):
    plans: List[PlanResponse]


class WebhookAck(BaseModel):
    status: bool = True
    message: str = "Webhook processed"
