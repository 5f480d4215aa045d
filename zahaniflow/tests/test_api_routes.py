"""HTTP-level tests for the billing, subscription and invitation routes."""
from __future__ import annotations

import json

import pytest
from fastapi.testclient import TestClient

from conftest import WEBHOOK_SECRET, make_billing_config
from zahaniflow.app.accounts.models import StaffRole, UserProfile
from zahaniflow.app.auth import create_access_token
from zahaniflow.app.billing import compute_signature
from zahaniflow.app.clinics.models import SubscriptionStatus
from zahaniflow.app.config import get_app_config, get_billing_config, load_app_config
from zahaniflow.app.services.accounts import get_clinic_repository, get_profile_repository
from zahaniflow.app.services.billing import get_billing_service
from zahaniflow.app.services.invitations import get_invitation_service
from zahaniflow.main import app

APP_CONFIG = load_app_config({"JWT_SECRET_KEY": "test-jwt-secret"})


@pytest.fixture
def client(billing_env, invitation_env):
    app.dependency_overrides[get_billing_service] = lambda: billing_env.service
    app.dependency_overrides[get_billing_config] = lambda: make_billing_config()
    app.dependency_overrides[get_invitation_service] = lambda: invitation_env.service
    app.dependency_overrides[get_app_config] = lambda: APP_CONFIG
    app.dependency_overrides[get_profile_repository] = lambda: invitation_env.profiles
    app.dependency_overrides[get_clinic_repository] = lambda: invitation_env.clinics
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _sign_in(client: TestClient, user_id: str = "10") -> None:
    client.cookies.set(APP_CONFIG.session_cookie_name, create_access_token(subject=user_id, config=APP_CONFIG))


def _post_webhook(client: TestClient, raw: bytes, signature: str):
    return client.post(
        "/api/paystack/webhook",
        content=raw,
        headers={"Content-Type": "application/json", "x-paystack-signature": signature},
    )


# -- webhook ----------------------------------------------------------------


def test_webhook_with_valid_signature_is_applied(client, billing_env):
    # Non-canonical spacing: the digest must cover the bytes as sent.
    raw = b'{ "event" : "charge.success",  "data": {"reference": "zf-http", "amount": 500000,' \
          b' "metadata": {"clinic_id": "1", "plan": "starter"}}}'

    response = _post_webhook(client, raw, compute_signature(raw, WEBHOOK_SECRET))

    assert response.status_code == 200
    assert response.json() == {"status": True, "message": "Webhook processed"}
    assert billing_env.clinics.get_clinic("1").subscription_status == SubscriptionStatus.ACTIVE


def test_webhook_with_bad_signature_is_rejected(client, billing_env):
    raw = json.dumps({"event": "subscription.disable", "data": {"metadata": {"clinic_id": "1"}}}).encode()

    response = _post_webhook(client, raw, "0" * 128)

    assert response.status_code == 400
    body = response.json()
    assert body["status"] is False
    assert body["message"] == "Invalid signature"
    assert billing_env.clinics.get_clinic("1").subscription_status == SubscriptionStatus.TRIALING


def test_webhook_without_signature_header_is_rejected(client):
    response = client.post("/api/paystack/webhook", content=b"{}")

    assert response.status_code == 400


def test_webhook_acknowledges_unexpected_failures(client, billing_env, monkeypatch):
    def explode(event):
        raise RuntimeError("boom")

    monkeypatch.setattr(billing_env.service, "apply_event", explode)
    raw = json.dumps({"event": "charge.success", "data": {}}).encode()

    response = _post_webhook(client, raw, compute_signature(raw, WEBHOOK_SECRET))

    assert response.status_code == 200
    assert response.json()["status"] is True


# -- initialize / callback ----------------------------------------------------


def test_initialize_returns_provider_payload(client, billing_env):
    response = client.post(
        "/api/paystack/initialize",
        json={"email": "owner@sunrise.test", "amount": 500000, "plan": "starter", "clinic_id": 1},
    )

    assert response.status_code == 200
    assert response.json() == billing_env.provider.initialize_response


def test_initialize_missing_fields(client):
    response = client.post("/api/paystack/initialize", json={"email": "owner@sunrise.test"})

    assert response.status_code == 400
    assert response.json()["status"] is False
    assert response.json()["message"] == "Missing required fields"


def test_initialize_unknown_clinic(client):
    response = client.post(
        "/api/paystack/initialize",
        json={"email": "owner@sunrise.test", "amount": 500000, "plan": "starter", "clinic_id": "42"},
    )

    assert response.status_code == 404
    assert response.json()["message"] == "Clinic not found"


def test_initialize_rejects_other_methods(client):
    response = client.get("/api/paystack/initialize")

    assert response.status_code == 405
    assert response.json() == {"status": False, "message": "Method not allowed"}


def test_callback_redirects_to_settings(client, billing_env):
    billing_env.provider.verify_response = {
        "status": True,
        "data": {"status": "success", "metadata": {"clinic_id": "1", "plan": "professional"}},
    }

    response = client.get("/api/paystack/callback", params={"trxref": "zf-cb"}, follow_redirects=False)

    assert response.status_code == 302
    assert response.headers["location"] == "/settings/subscription?success=payment_successful"
    assert billing_env.provider.verify_calls == ["zf-cb"]


def test_callback_without_reference(client):
    response = client.get("/api/paystack/callback", follow_redirects=False)

    assert response.status_code == 302
    assert response.headers["location"] == "/settings/subscription?error=missing_reference"


def test_callback_unexpected_failure_redirects(client, billing_env, monkeypatch):
    def explode(reference):
        raise RuntimeError("boom")

    monkeypatch.setattr(billing_env.service, "handle_callback", explode)

    response = client.get("/api/paystack/callback", params={"reference": "zf"}, follow_redirects=False)

    assert response.status_code == 302
    assert response.headers["location"].endswith("error=internal_error")


# -- billing history ----------------------------------------------------------


def test_plans_are_listed(client):
    response = client.get("/api/billing/plans")

    plans = {plan["key"]: plan for plan in response.json()["plans"]}
    assert plans["starter"]["price"] == 5000
    assert plans["professional"]["price"] == 15000
    assert plans["enterprise"]["selfServe"] is False


def test_invoices_require_membership(client, billing_env):
    raw = json.dumps(
        {"event": "charge.success", "data": {"reference": "zf-inv", "amount": 500000,
                                              "metadata": {"clinic_id": "1", "plan": "starter"}}}
    ).encode()
    billing_env.service.handle_webhook(raw, compute_signature(raw, WEBHOOK_SECRET))

    assert client.get("/api/clinics/1/invoices").status_code == 401

    _sign_in(client)
    response = client.get("/api/clinics/1/invoices")
    assert response.status_code == 200
    assert response.json()["invoices"][0]["reference"] == "zf-inv"
    assert client.get("/api/clinics/2/invoices").status_code == 403


# -- subscription gate ----------------------------------------------------------


def test_subscription_status_for_blocked_clinic(client, invitation_env):
    invitation_env.clinics.update_subscription_status("1", SubscriptionStatus.SUSPENDED)
    _sign_in(client)

    response = client.get("/api/clinics/1/subscription", params={"message": "Please pay"})

    body = response.json()
    assert response.status_code == 200
    assert body["blocked"] is True
    assert body["status"] == "suspended"
    assert body["message"] == "Please pay"


def test_operator_suspends_and_reactivates_clinic(client, invitation_env):
    operator = UserProfile(user_id="1", email="ops@zahaniflow.test", name="Ops", role=StaffRole.SUPER_ADMIN, clinic_id="0")
    invitation_env.profiles.profiles[operator.user_id] = operator
    _sign_in(client, user_id="1")

    suspended = client.post(
        "/api/admin/clinics/1/suspension",
        json={"suspend": True, "message": "Overdue balance, call accounts"},
    )

    assert suspended.status_code == 200
    assert suspended.json()["status"] == "suspended"
    assert suspended.json()["message"] == "Overdue balance, call accounts"
    assert invitation_env.clinics.get_clinic("1").settings["suspension_message"] == "Overdue balance, call accounts"

    reactivated = client.post("/api/admin/clinics/1/suspension", json={"suspend": False})

    assert reactivated.status_code == 200
    assert reactivated.json()["status"] == "active"
    assert reactivated.json()["blocked"] is False
    assert "suspension_message" not in invitation_env.clinics.get_clinic("1").settings


def test_clinic_admin_cannot_suspend(client, invitation_env):
    _sign_in(client)

    response = client.post("/api/admin/clinics/1/suspension", json={"suspend": True})

    assert response.status_code == 403
    assert response.json()["error"] == "forbidden"
    assert invitation_env.clinics.get_clinic("1").subscription_status == SubscriptionStatus.TRIALING


def test_sign_out_clears_cookie_and_redirects(client):
    _sign_in(client)

    response = client.post("/api/auth/sign-out", follow_redirects=False)

    assert response.status_code == 303
    assert response.headers["location"] == "/auth"
    assert APP_CONFIG.session_cookie_name in response.headers["set-cookie"]


# -- invitations ----------------------------------------------------------------


def test_create_and_accept_invitation_over_http(client, invitation_env):
    _sign_in(client)
    created = client.post("/api/clinics/1/invitations", json={"email": "nurse@sunrise.test", "role": "assistant"})

    assert created.status_code == 201
    token = invitation_env.invitations.list_invitations("1")[0].token
    assert created.json()["inviteUrl"] == f"http://localhost:5173/accept-invitation?token={token}"

    details = client.get("/api/invitations", params={"token": token})
    assert details.json()["clinicName"] == "Sunrise Clinic"

    client.cookies.clear()
    accepted = client.post("/api/invitations/accept", json={"token": token, "name": "Nurse Joy", "password": "s3cret!"})
    assert accepted.status_code == 200
    assert accepted.json()["outcome"] == "created"
    assert APP_CONFIG.session_cookie_name in accepted.cookies

    reused = client.get("/api/invitations", params={"token": token})
    assert reused.status_code == 410
    assert reused.json()["message"] == "This invitation has already been used"


def test_blocked_clinic_cannot_invite(client, invitation_env):
    invitation_env.clinics.update_subscription_status("1", SubscriptionStatus.EXPIRED)
    _sign_in(client)

    response = client.post("/api/clinics/1/invitations", json={"email": "nurse@sunrise.test"})

    assert response.status_code == 402
    assert response.json()["error"] == "subscription_blocked"


def test_invalid_invitation_email_is_a_bad_request(client):
    _sign_in(client)

    response = client.post("/api/clinics/1/invitations", json={"email": "not-an-email"})

    assert response.status_code == 400
    assert response.json()["fields"] == ["email"]


def test_failed_acceptance_reports_step(client, invitation_env):
    invitation = invitation_env.service.create_invitation("1", invitation_env.admin, "n@s.test", "assistant")
    invitation_env.profiles.fail_create = True

    response = client.post(
        "/api/invitations/accept",
        json={"token": invitation.token, "name": "Nurse Joy", "password": "s3cret!"},
    )

    assert response.status_code == 500
    assert response.json()["error"] == "profile_failed"
    assert APP_CONFIG.session_cookie_name not in response.cookies


def test_unknown_invitation_token(client):
    response = client.get("/api/invitations", params={"token": "missing"})

    assert response.status_code == 404
    assert response.json() == {"status": False, "error": "not_found", "message": "Invitation not found"}
