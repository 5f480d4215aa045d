from __future__ import annotations

from datetime import datetime, timezone
from types import SimpleNamespace
from typing import Any, Dict, List, Optional, Sequence

import pytest

from zahaniflow.app.accounts.models import Credential, UserProfile
from zahaniflow.app.billing import BillingService, InvoiceRecord, PaymentIntent, PaymentIntentStatus
from zahaniflow.app.clinics.models import Clinic, SubscriptionStatus, SubscriptionTier
from zahaniflow.app.config import BillingConfig
from zahaniflow.app.errors import PersistenceError
from zahaniflow.app.invitations import Invitation, InvitationService, InvitationStatus

FIXED_NOW = datetime(2024, 1, 31, 12, 0, tzinfo=timezone.utc)
WEBHOOK_SECRET = "sk_test_secret"


class InMemoryClinicRepository:
    def __init__(self) -> None:
        self.clinics: Dict[str, Clinic] = {}
        self.fail_updates = False

    def add(self, clinic: Clinic) -> Clinic:
        self.clinics[clinic.id] = clinic
        return clinic

    def get_clinic(self, clinic_id: str) -> Optional[Clinic]:
        return self.clinics.get(clinic_id)

    def activate_subscription(self, clinic_id: str, *, tier: SubscriptionTier, end_date: datetime) -> Optional[Clinic]:
        return self._update(
            clinic_id,
            subscription_tier=tier,
            subscription_status=SubscriptionStatus.ACTIVE,
            subscription_end_date=end_date,
        )

    def update_subscription_status(self, clinic_id: str, status: SubscriptionStatus) -> Optional[Clinic]:
        return self._update(clinic_id, subscription_status=status)

    def set_suspension(self, clinic_id: str, *, suspended: bool, message: Optional[str] = None) -> Optional[Clinic]:
        clinic = self.clinics.get(clinic_id)
        if clinic is None:
            return None
        settings = dict(clinic.settings)
        if not suspended:
            settings.pop("suspension_message", None)
        elif message:
            settings["suspension_message"] = message
        status = SubscriptionStatus.SUSPENDED if suspended else SubscriptionStatus.ACTIVE
        return self._update(clinic_id, subscription_status=status, settings=settings)

    def _update(self, clinic_id: str, **changes: Any) -> Optional[Clinic]:
        if self.fail_updates:
            raise PersistenceError("A storage error occurred.")
        clinic = self.clinics.get(clinic_id)
        if clinic is None:
            return None
        updated = clinic.model_copy(update=changes)
        self.clinics[clinic_id] = updated
        return updated


class InMemoryBillingRepository:
    def __init__(self) -> None:
        self.intents: Dict[str, PaymentIntent] = {}
        self.invoices: Dict[str, InvoiceRecord] = {}
        self.receipts: Dict[str, str] = {}

    def save_payment_intent(self, intent: PaymentIntent) -> PaymentIntent:
        self.intents[intent.reference] = intent
        return intent

    def get_payment_intent(self, reference: str) -> Optional[PaymentIntent]:
        return self.intents.get(reference)

    def update_payment_intent_status(self, reference: str, status: PaymentIntentStatus) -> Optional[PaymentIntent]:
        intent = self.intents.get(reference)
        if intent is None:
            return None
        updated = intent.model_copy(update={"status": status})
        self.intents[reference] = updated
        return updated

    def record_invoice(self, invoice: InvoiceRecord) -> bool:
        if invoice.provider_reference in self.invoices:
            return False
        self.invoices[invoice.provider_reference] = invoice
        return True

    def list_invoices(self, clinic_id: str, *, limit: int = 20) -> Sequence[InvoiceRecord]:
        matching = sorted(
            (invoice for invoice in self.invoices.values() if invoice.clinic_id == clinic_id),
            key=lambda invoice: invoice.issued_at,
            reverse=True,
        )
        return matching[:limit]

    def has_webhook_receipt(self, receipt_key: str) -> bool:
        return receipt_key in self.receipts

    def record_webhook_receipt(self, receipt_key: str, event_type: str) -> bool:
        if receipt_key in self.receipts:
            return False
        self.receipts[receipt_key] = event_type
        return True


class FakePaymentProvider:
    def __init__(self) -> None:
        self.initialize_calls: List[Dict[str, Any]] = []
        self.verify_calls: List[str] = []
        self.initialize_response: Dict[str, Any] = {
            "status": True,
            "message": "Authorization URL created",
            "data": {
                "authorization_url": "https://checkout.paystack.com/abc123",
                "access_code": "abc123",
                "reference": "ignored",
            },
        }
        self.verify_response: Dict[str, Any] = {"status": True, "data": {"status": "success"}}
        self.error: Optional[Exception] = None

    def initialize_transaction(self, **kwargs: Any) -> Dict[str, Any]:
        self.initialize_calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return self.initialize_response

    def verify_transaction(self, reference: str) -> Dict[str, Any]:
        self.verify_calls.append(reference)
        if self.error is not None:
            raise self.error
        return self.verify_response


class RecordingEventLogger:
    def __init__(self) -> None:
        self.events: List[Any] = []

    def log(self, event: Any) -> None:
        self.events.append(event)


class InMemoryInvitationRepository:
    def __init__(self) -> None:
        self.invitations: Dict[str, Invitation] = {}
        self.fail_mark_accepted = False
        self._next_id = 1

    def create_invitation(self, invitation: Invitation) -> Invitation:
        stored = invitation.model_copy(update={"id": str(self._next_id)})
        self._next_id += 1
        self.invitations[stored.token] = stored
        return stored

    def get_invitation_by_token(self, token: str) -> Optional[Invitation]:
        return self.invitations.get(token)

    def find_pending_invitation(self, clinic_id: str, email: str) -> Optional[Invitation]:
        for invitation in self.invitations.values():
            if (
                invitation.clinic_id == clinic_id
                and invitation.email == email.lower()
                and invitation.status == InvitationStatus.PENDING
            ):
                return invitation
        return None

    def mark_accepted(self, invitation_id: str, accepted_at: datetime) -> Optional[Invitation]:
        if self.fail_mark_accepted:
            raise PersistenceError("A storage error occurred.")
        for token, invitation in self.invitations.items():
            if invitation.id == invitation_id and invitation.status == InvitationStatus.PENDING:
                updated = invitation.model_copy(
                    update={"status": InvitationStatus.ACCEPTED, "accepted_at": accepted_at}
                )
                self.invitations[token] = updated
                return updated
        return None

    def list_invitations(self, clinic_id: str) -> List[Invitation]:
        return [invitation for invitation in self.invitations.values() if invitation.clinic_id == clinic_id]


class InMemoryCredentialRepository:
    def __init__(self) -> None:
        self.credentials: Dict[str, Credential] = {}
        self.fail_create = False
        self._next_id = 100

    def get_credential_by_email(self, email: str) -> Optional[Credential]:
        return self.credentials.get(email.lower())

    def create_credential(self, email: str, password_hash: str) -> Credential:
        if self.fail_create:
            raise PersistenceError("A storage error occurred.")
        credential = Credential(user_id=str(self._next_id), email=email, password_hash=password_hash)
        self._next_id += 1
        self.credentials[credential.email] = credential
        return credential


class InMemoryProfileRepository:
    def __init__(self) -> None:
        self.profiles: Dict[str, UserProfile] = {}
        self.fail_create = False

    def get_profile(self, user_id: str) -> Optional[UserProfile]:
        return self.profiles.get(user_id)

    def create_profile(self, profile: UserProfile) -> UserProfile:
        if self.fail_create:
            raise PersistenceError("A storage error occurred.")
        self.profiles.setdefault(profile.user_id, profile)
        return self.profiles[profile.user_id]


def fake_hash(password: str) -> str:
    return f"hashed:{password}"


def fake_verify(password: str, password_hash: str) -> bool:
    return password_hash == fake_hash(password)


def make_clinic(clinic_id: str = "1", **overrides: Any) -> Clinic:
    values: Dict[str, Any] = {
        "id": clinic_id,
        "name": "Sunrise Clinic",
        "slug": f"sunrise-{clinic_id}",
        "subscription_tier": SubscriptionTier.STARTER,
        "subscription_status": SubscriptionStatus.TRIALING,
    }
    values.update(overrides)
    return Clinic(**values)


def make_billing_config(**overrides: Any) -> BillingConfig:
    values: Dict[str, Any] = {
        "secret_key": WEBHOOK_SECRET,
        "base_url": "https://api.paystack.co",
        "signature_header": "x-paystack-signature",
        "timeout_seconds": 10.0,
        "max_attempts": 2,
        "currency": "KES",
        "channels": ("card", "bank", "ussd", "mobile_money"),
        "subscription_period_months": 1,
        "settings_path": "/settings/subscription",
    }
    values.update(overrides)
    return BillingConfig(**values)


@pytest.fixture
def billing_env():
    clinics = InMemoryClinicRepository()
    clinics.add(make_clinic("1"))
    repository = InMemoryBillingRepository()
    provider = FakePaymentProvider()
    event_logger = RecordingEventLogger()
    service = BillingService(
        repository=repository,
        clinics=clinics,
        provider=provider,
        event_logger=event_logger,
        config=make_billing_config(),
        clock=lambda: FIXED_NOW,
    )
    return SimpleNamespace(
        service=service,
        repository=repository,
        clinics=clinics,
        provider=provider,
        events=event_logger.events,
    )


@pytest.fixture
def invitation_env():
    clinics = InMemoryClinicRepository()
    clinics.add(make_clinic("1"))
    invitations = InMemoryInvitationRepository()
    credentials = InMemoryCredentialRepository()
    profiles = InMemoryProfileRepository()
    audit_logger = RecordingEventLogger()
    clock = SimpleNamespace(now=FIXED_NOW)
    service = InvitationService(
        invitations=invitations,
        clinics=clinics,
        credentials=credentials,
        profiles=profiles,
        audit_logger=audit_logger,
        password_hasher=fake_hash,
        password_verifier=fake_verify,
        token_factory=lambda: f"token-{len(invitations.invitations) + 1}",
        clock=lambda: clock.now,
    )
    admin = UserProfile(user_id="10", email="admin@sunrise.test", name="Dr. Admin", role="admin", clinic_id="1")
    profiles.profiles[admin.user_id] = admin
    return SimpleNamespace(
        service=service,
        invitations=invitations,
        credentials=credentials,
        profiles=profiles,
        clinics=clinics,
        audit=audit_logger.events,
        clock=clock,
        admin=admin,
    )

