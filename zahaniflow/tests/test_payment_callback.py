from __future__ import annotations

import pytest

from conftest import make_billing_config
from zahaniflow.app.billing import CallbackResult, CallbackStatus, PaymentIntentStatus
from zahaniflow.app.clinics.models import SubscriptionStatus, SubscriptionTier
from zahaniflow.app.errors import UpstreamError


def _verified(status: str = "success", **metadata):
    return {
        "status": True,
        "message": "Verification successful",
        "data": {
            "status": status,
            "reference": "zf-cb-1",
            "amount": 500000,
            "currency": "KES",
            "channel": "card",
            "metadata": metadata,
        },
    }


def test_successful_callback_activates_clinic(billing_env):
    billing_env.provider.verify_response = _verified(clinic_id="1", plan="starter")

    result = billing_env.service.handle_callback("zf-cb-1")

    assert result.status == CallbackStatus.PAYMENT_SUCCESSFUL
    assert result.redirect_url("/settings/subscription") == "/settings/subscription?success=payment_successful"
    clinic = billing_env.clinics.get_clinic("1")
    assert clinic.subscription_status == SubscriptionStatus.ACTIVE
    assert clinic.subscription_tier == SubscriptionTier.STARTER
    assert "zf-cb-1" in billing_env.repository.invoices


def test_callback_after_webhook_does_not_duplicate_invoice(billing_env):
    billing_env.provider.verify_response = _verified(clinic_id="1", plan="starter")

    billing_env.service.handle_callback("zf-cb-1")
    billing_env.service.handle_callback("zf-cb-1")

    assert len(billing_env.repository.invoices) == 1


def test_callback_completes_pending_intent(billing_env):
    billing_env.service.initialize_payment(email="a@b.test", amount=500000, plan="professional", clinic_id="1")
    reference = billing_env.provider.initialize_calls[0]["reference"]
    billing_env.provider.verify_response = {"status": True, "data": {"status": "success", "reference": reference}}

    result = billing_env.service.handle_callback(reference)

    assert result.succeeded
    assert billing_env.repository.intents[reference].status == PaymentIntentStatus.COMPLETED
    assert billing_env.clinics.get_clinic("1").subscription_tier == SubscriptionTier.PROFESSIONAL


@pytest.mark.parametrize("reference", [None, ""])
def test_missing_reference(billing_env, reference):
    result = billing_env.service.handle_callback(reference)

    assert result.status == CallbackStatus.MISSING_REFERENCE
    assert billing_env.provider.verify_calls == []


def test_unconfigured_secret(billing_env):
    billing_env.service.config = make_billing_config(secret_key="")

    assert billing_env.service.handle_callback("zf-cb-1").status == CallbackStatus.CONFIGURATION_ERROR


def test_verification_transport_failure(billing_env):
    billing_env.provider.error = UpstreamError("Payment provider is unreachable")

    assert billing_env.service.handle_callback("zf-cb-1").status == CallbackStatus.VERIFICATION_FAILED


@pytest.mark.parametrize(
    "response",
    [
        {"status": False, "message": "Transaction reference not found"},
        _verified(status="abandoned", clinic_id="1", plan="starter"),
        _verified(status="failed", clinic_id="1", plan="starter"),
    ],
)
def test_unsuccessful_payment(billing_env, response):
    billing_env.provider.verify_response = response

    result = billing_env.service.handle_callback("zf-cb-1")

    assert result.status == CallbackStatus.PAYMENT_FAILED
    assert billing_env.clinics.get_clinic("1").subscription_status == SubscriptionStatus.TRIALING


@pytest.mark.parametrize(
    "metadata",
    [{}, {"clinic_id": "1"}, {"clinic_id": "1", "plan": "gold"}, {"clinic_id": "77", "plan": "starter"}],
)
def test_invalid_metadata(billing_env, metadata):
    billing_env.provider.verify_response = _verified(**metadata)

    assert billing_env.service.handle_callback("zf-cb-1").status == CallbackStatus.INVALID_METADATA


def test_database_error(billing_env):
    billing_env.provider.verify_response = _verified(clinic_id="1", plan="starter")
    billing_env.clinics.fail_updates = True

    result = billing_env.service.handle_callback("zf-cb-1")

    assert result.status == CallbackStatus.DATABASE_ERROR
    assert result.redirect_url("/settings/subscription") == "/settings/subscription?error=database_error"


def test_redirect_url_uses_configured_path():
    result = CallbackResult(status=CallbackStatus.INTERNAL_ERROR)

    assert result.redirect_url("/billing") == "/billing?error=internal_error"
