"""Billing domain package: checkout initialization and subscription reconciliation."""

from .catalog import PLAN_CATALOG, PlanDefinition, get_plan_definition
from .models import (
    BillingAuditEvent,
    BillingAuditEventType,
    CallbackResult,
    CallbackStatus,
    InvoiceRecord,
    InvoiceStatus,
    PaymentEvent,
    PaymentEventMetadata,
    PaymentEventType,
    PaymentIntent,
    PaymentIntentStatus,
    WebhookOutcome,
    WebhookResult,
)
from .service import (
    BillingEventLogger,
    BillingRepository,
    BillingService,
    PaymentProvider,
    add_months,
)
from .signature import compute_signature, verify_signature

__all__ = [
    "BillingAuditEvent",
    "BillingAuditEventType",
    "BillingEventLogger",
    "BillingRepository",
    "BillingService",
    "CallbackResult",
    "CallbackStatus",
    "InvoiceRecord",
    "InvoiceStatus",
    "PLAN_CATALOG",
    "PaymentEvent",
    "PaymentEventMetadata",
    "PaymentEventType",
    "PaymentIntent",
    "PaymentIntentStatus",
    "PaymentProvider",
    "PlanDefinition",
    "WebhookOutcome",
    "WebhookResult",
    "add_months",
    "compute_signature",
    "get_plan_definition",
    "verify_signature",
]
