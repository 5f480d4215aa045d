"""Core service reconciling clinic subscriptions with the payment provider."""
from __future__ import annotations

import calendar
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional, Protocol, Sequence, Tuple
from uuid import uuid4

from ..clinics.models import Clinic, SubscriptionStatus, SubscriptionTier
from ..clinics.repository import ClinicRepository
from ..config import BillingConfig
from ..errors import (
    ClinicError,
    ConfigurationError,
    NotFoundError,
    PersistenceError,
    UpstreamError,
    ValidationError,
)
from .models import (
    BillingAuditEvent,
    BillingAuditEventType,
    CallbackResult,
    CallbackStatus,
    InvoiceRecord,
    InvoiceStatus,
    PaymentEvent,
    PaymentEventType,
    PaymentIntent,
    PaymentIntentStatus,
    WebhookOutcome,
    WebhookResult,
)
from .signature import verify_signature

logger = logging.getLogger("billing")


class PaymentProvider(Protocol):
    """External payment processor integration."""

    def initialize_transaction(
        self,
        *,
        email: str,
        amount: int,
        reference: str,
        metadata: Dict[str, str],
        currency: Optional[str] = None,
        callback_url: Optional[str] = None,
        channels: Sequence[str] = (),
    ) -> Dict[str, Any]:
        """Create a hosted checkout for a transaction."""

    def verify_transaction(self, reference: str) -> Dict[str, Any]:
        """Fetch the provider's view of a transaction."""


class BillingEventLogger(Protocol):
    """Captures structured billing audit events."""

    def log(self, event: BillingAuditEvent) -> None:
        ...


class BillingRepository(Protocol):
    """Persistence operations required by the billing service."""

    def save_payment_intent(self, intent: PaymentIntent) -> PaymentIntent:
        ...

    def get_payment_intent(self, reference: str) -> Optional[PaymentIntent]:
        ...

    def update_payment_intent_status(
        self,
        reference: str,
        status: PaymentIntentStatus,
    ) -> Optional[PaymentIntent]:
        ...

    def record_invoice(self, invoice: InvoiceRecord) -> bool:
        """Insert the invoice; ``False`` when its provider reference exists."""

    def list_invoices(self, clinic_id: str, *, limit: int = 20) -> Sequence[InvoiceRecord]:
        ...

    def has_webhook_receipt(self, receipt_key: str) -> bool:
        ...

    def record_webhook_receipt(self, receipt_key: str, event_type: str) -> bool:
        ...


def add_months(moment: datetime, months: int) -> datetime:
    """Shift ``moment`` by calendar months, clamping to the month's last day."""

    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def _new_reference() -> str:
    return f"zf-{uuid4().hex}"


@dataclass
class BillingService:
    """Coordinates checkout initialization, webhooks and callback verification."""

    repository: BillingRepository
    clinics: ClinicRepository
    provider: PaymentProvider
    event_logger: BillingEventLogger
    config: BillingConfig
    clock: Optional[Callable[[], datetime]] = None

    def _now(self) -> datetime:
        if self.clock is None:
            return datetime.now(timezone.utc)
        value = self.clock()
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)

    # -- initialization -------------------------------------------------

    def initialize_payment(
        self,
        *,
        email: Optional[str],
        amount: Optional[int],
        plan: Optional[str],
        clinic_id: Optional[str],
        callback_url: Optional[str] = None,
    ) -> Dict[str, Any]:
        if not self.config.configured:
            raise ConfigurationError("Paystack secret key not configured")

        required = (("email", email), ("amount", amount), ("plan", plan), ("clinic_id", clinic_id))
        missing = [name for name, value in required if value is None or value == ""]
        if missing:
            raise ValidationError("Missing required fields", detail={"fields": missing})
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise ValidationError("amount must be a positive integer", detail={"fields": ["amount"]})
        try:
            tier = SubscriptionTier(str(plan))
        except ValueError as exc:
            raise ValidationError(f"Unknown plan: {plan}", detail={"fields": ["plan"]}) from exc

        clinic = self.clinics.get_clinic(str(clinic_id))
        if clinic is None:
            raise NotFoundError("Clinic not found")

        now = self._now()
        intent = self.repository.save_payment_intent(
            PaymentIntent(
                reference=_new_reference(),
                clinic_id=clinic.id,
                plan=tier,
                email=str(email).strip(),
                amount=amount,
                currency=self.config.currency,
                callback_url=callback_url,
                created_at=now,
                updated_at=now,
            )
        )

        try:
            payload = self.provider.initialize_transaction(
                email=intent.email,
                amount=intent.amount,
                reference=intent.reference,
                metadata={"clinic_id": clinic.id, "plan": tier.value, "clinic_name": clinic.name},
                currency=intent.currency,
                callback_url=callback_url,
                channels=self.config.channels,
            )
        except UpstreamError:
            self.repository.update_payment_intent_status(intent.reference, PaymentIntentStatus.FAILED)
            raise

        if not payload.get("status"):
            self.repository.update_payment_intent_status(intent.reference, PaymentIntentStatus.FAILED)
            raise UpstreamError(
                str(payload.get("message") or "Failed to initialize payment"),
                code="payment_initialization_failed",
                status_code=400,
            )

        data = payload.get("data") if isinstance(payload.get("data"), dict) else {}
        self.repository.save_payment_intent(
            intent.model_copy(
                update={
                    "authorization_url": data.get("authorization_url"),
                    "access_code": data.get("access_code"),
                    "updated_at": self._now(),
                }
            )
        )
        self.event_logger.log(
            BillingAuditEvent(
                event_type=BillingAuditEventType.PAYMENT_INITIALIZED,
                clinic_id=clinic.id,
                reference=intent.reference,
                metadata={"plan": tier.value, "amount": str(intent.amount)},
            )
        )
        return payload

    # -- webhook ----------------------------------------------------------

    def handle_webhook(self, raw_body: bytes, signature: Optional[str]) -> WebhookResult:
        """Verify and apply one provider notification.

        Raises :class:`AuthenticationError` on a bad signature. Every other
        problem is reported through the returned :class:`WebhookResult` so the
        caller can acknowledge the delivery.
        """

        verify_signature(raw_body, signature, self.config.secret_key)

        try:
            event = PaymentEvent.model_validate_json(raw_body)
        except ValueError:
            logger.warning("Discarding signed webhook with a malformed body")
            return WebhookResult(outcome=WebhookOutcome.DROPPED, event_type="unknown", reason="malformed_payload")

        return self.apply_event(event)

    def apply_event(self, event: PaymentEvent) -> WebhookResult:
        event_type = event.event_type
        if event_type is None:
            logger.info("Unhandled webhook event type: %s", event.event)
            return WebhookResult(outcome=WebhookOutcome.IGNORED, event_type=event.event)

        logger.info("Processing webhook event: %s", event_type.value)
        receipt_key = event.receipt_key
        try:
            if receipt_key and self.repository.has_webhook_receipt(receipt_key):
                logger.info("Skipping replayed webhook %s", receipt_key)
                return WebhookResult(
                    outcome=WebhookOutcome.DUPLICATE,
                    event_type=event.event,
                    clinic_id=event.metadata.clinic_id,
                )

            if event_type == PaymentEventType.CHARGE_SUCCESS:
                result = self._handle_charge_success(event)
            elif event_type == PaymentEventType.SUBSCRIPTION_DISABLE:
                result = self._handle_status_change(
                    event,
                    SubscriptionStatus.SUSPENDED,
                    BillingAuditEventType.SUBSCRIPTION_SUSPENDED,
                )
            elif event_type == PaymentEventType.SUBSCRIPTION_NOT_RENEW:
                result = self._handle_status_change(
                    event,
                    SubscriptionStatus.CANCELLED,
                    BillingAuditEventType.SUBSCRIPTION_CANCELLED,
                )
            else:
                result = self._handle_subscription_create(event)

            if receipt_key and result.outcome in {WebhookOutcome.APPLIED, WebhookOutcome.INFORMATIONAL}:
                self.repository.record_webhook_receipt(receipt_key, event.event)
            return result
        except ClinicError as exc:
            logger.error(
                "Failed to process webhook %s for clinic %s: %s",
                event.event,
                event.metadata.clinic_id,
                exc.code,
            )
            return WebhookResult(
                outcome=WebhookOutcome.FAILED,
                event_type=event.event,
                clinic_id=event.metadata.clinic_id,
                reason=exc.code,
            )

    def _handle_charge_success(self, event: PaymentEvent) -> WebhookResult:
        clinic_id, tier, reason = self._resolve_charge_target(event)
        if reason is not None:
            logger.error("Dropping %s: %s (reference=%s)", event.event, reason, event.reference)
            return WebhookResult(
                outcome=WebhookOutcome.DROPPED,
                event_type=event.event,
                clinic_id=clinic_id,
                reason=reason,
            )

        clinic = self._activate_subscription(clinic_id, tier, event)
        if clinic is None:
            logger.error("Dropping %s: clinic %s not found", event.event, clinic_id)
            return WebhookResult(
                outcome=WebhookOutcome.DROPPED,
                event_type=event.event,
                clinic_id=clinic_id,
                reason="clinic_not_found",
            )
        logger.info("Clinic %s activated on %s until %s", clinic.id, tier.value, clinic.subscription_end_date)
        return WebhookResult(outcome=WebhookOutcome.APPLIED, event_type=event.event, clinic_id=clinic.id)

    def _handle_status_change(
        self,
        event: PaymentEvent,
        status: SubscriptionStatus,
        audit_type: BillingAuditEventType,
    ) -> WebhookResult:
        clinic_id = event.metadata.clinic_id
        if not clinic_id:
            logger.error("Dropping %s: missing clinic_id in metadata", event.event)
            return WebhookResult(outcome=WebhookOutcome.DROPPED, event_type=event.event, reason="missing_metadata")

        clinic = self.clinics.update_subscription_status(clinic_id, status)
        if clinic is None:
            logger.error("Dropping %s: clinic %s not found", event.event, clinic_id)
            return WebhookResult(
                outcome=WebhookOutcome.DROPPED,
                event_type=event.event,
                clinic_id=clinic_id,
                reason="clinic_not_found",
            )

        logger.info("Clinic %s subscription set to %s", clinic.id, status.value)
        self.event_logger.log(BillingAuditEvent(event_type=audit_type, clinic_id=clinic.id))
        return WebhookResult(outcome=WebhookOutcome.APPLIED, event_type=event.event, clinic_id=clinic.id)

    def _handle_subscription_create(self, event: PaymentEvent) -> WebhookResult:
        clinic_id = event.metadata.clinic_id
        if not clinic_id:
            logger.error("Dropping %s: missing clinic_id in metadata", event.event)
            return WebhookResult(outcome=WebhookOutcome.DROPPED, event_type=event.event, reason="missing_metadata")

        logger.info("Subscription created for clinic %s", clinic_id)
        self.event_logger.log(
            BillingAuditEvent(event_type=BillingAuditEventType.SUBSCRIPTION_CREATED, clinic_id=clinic_id)
        )
        return WebhookResult(outcome=WebhookOutcome.INFORMATIONAL, event_type=event.event, clinic_id=clinic_id)

    # -- callback ---------------------------------------------------------

    def handle_callback(self, reference: Optional[str]) -> CallbackResult:
        """Verify a transaction after the browser returns from checkout.

        Advisory only: the webhook stays authoritative, this just lets a
        returning user see the new state sooner.
        """

        if not reference:
            return CallbackResult(status=CallbackStatus.MISSING_REFERENCE)
        if not self.config.configured:
            return CallbackResult(status=CallbackStatus.CONFIGURATION_ERROR, reference=reference)

        try:
            payload = self.provider.verify_transaction(reference)
        except (UpstreamError, ConfigurationError) as exc:
            logger.error("Transaction verification failed for %s: %s", reference, exc.code)
            return CallbackResult(status=CallbackStatus.VERIFICATION_FAILED, reference=reference)

        data = payload.get("data") if isinstance(payload.get("data"), dict) else {}
        if not payload.get("status") or data.get("status") != "success":
            logger.info("Transaction %s not successful (status=%s)", reference, data.get("status"))
            return CallbackResult(status=CallbackStatus.PAYMENT_FAILED, reference=reference)

        event = PaymentEvent(event=PaymentEventType.CHARGE_SUCCESS.value, data={"reference": reference, **data})
        clinic_id, tier, reason = self._resolve_charge_target(event)
        if reason is not None:
            logger.error("Callback for %s has unusable metadata: %s", reference, reason)
            return CallbackResult(status=CallbackStatus.INVALID_METADATA, reference=reference, clinic_id=clinic_id)

        try:
            clinic = self._activate_subscription(clinic_id, tier, event)
        except PersistenceError:
            return CallbackResult(status=CallbackStatus.DATABASE_ERROR, reference=reference, clinic_id=clinic_id)
        if clinic is None:
            logger.error("Callback for %s references unknown clinic %s", reference, clinic_id)
            return CallbackResult(status=CallbackStatus.INVALID_METADATA, reference=reference, clinic_id=clinic_id)

        return CallbackResult(status=CallbackStatus.PAYMENT_SUCCESSFUL, reference=reference, clinic_id=clinic.id)

    # -- history ----------------------------------------------------------

    def list_invoices(self, clinic_id: str, *, limit: int = 20) -> Sequence[InvoiceRecord]:
        return self.repository.list_invoices(clinic_id, limit=limit)

    # -- helpers ----------------------------------------------------------

    def _resolve_charge_target(
        self,
        event: PaymentEvent,
    ) -> Tuple[Optional[str], Optional[SubscriptionTier], Optional[str]]:
        """Return ``(clinic_id, tier, reason)``; ``reason`` set when unusable."""

        metadata = event.metadata
        clinic_id, plan = metadata.clinic_id, metadata.plan

        if (not clinic_id or not plan) and event.reference:
            intent = self.repository.get_payment_intent(event.reference)
            if intent is not None:
                clinic_id = clinic_id or intent.clinic_id
                plan = plan or intent.plan.value

        if not clinic_id or not plan:
            return clinic_id, None, "missing_metadata"
        try:
            return clinic_id, SubscriptionTier(plan), None
        except ValueError:
            return clinic_id, None, "unknown_plan"

    def _activate_subscription(
        self,
        clinic_id: str,
        tier: SubscriptionTier,
        event: PaymentEvent,
    ) -> Optional[Clinic]:
        now = self._now()
        end_date = add_months(now, self.config.subscription_period_months)
        clinic = self.clinics.activate_subscription(clinic_id, tier=tier, end_date=end_date)
        if clinic is None:
            return None

        reference = event.reference
        if reference:
            created = self.repository.record_invoice(
                InvoiceRecord(
                    invoice_id=f"inv-{uuid4().hex}",
                    clinic_id=clinic.id,
                    amount=event.amount,
                    currency=event.currency or self.config.currency,
                    status=InvoiceStatus.PAID,
                    payment_method=event.channel,
                    provider_reference=reference,
                    issued_at=now,
                    paid_at=now,
                )
            )
            if not created:
                logger.debug("Invoice for reference %s already recorded", reference)
            self.repository.update_payment_intent_status(reference, PaymentIntentStatus.COMPLETED)

        self.event_logger.log(
            BillingAuditEvent(
                event_type=BillingAuditEventType.SUBSCRIPTION_ACTIVATED,
                clinic_id=clinic.id,
                reference=reference,
                metadata={"plan": tier.value, "end_date": end_date.isoformat()},
            )
        )
        return clinic


__all__ = [
    "BillingEventLogger",
    "BillingRepository",
    "BillingService",
    "PaymentProvider",
    "add_months",
]
