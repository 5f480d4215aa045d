"""API routes for checkout, provider notifications and billing history."""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse, RedirectResponse

from ..accounts.models import UserProfile
from ..auth import get_current_user
from ..billing import PLAN_CATALOG, BillingService, CallbackResult, CallbackStatus
from ..config import BillingConfig, get_billing_config
from ..errors import AuthenticationError, ForbiddenError
from ..schemas.billing import (
    InitializePaymentRequest,
    InvoiceListResponse,
    InvoiceResponse,
    PlanListResponse,
    PlanResponse,
    WebhookAck,
)
from ..services.billing import get_billing_service

logger = logging.getLogger("billing")

router = APIRouter(tags=["billing"])


@router.post("/api/paystack/initialize")
def initialize_payment(
    payload: InitializePaymentRequest,
    service: BillingService = Depends(get_billing_service),
) -> JSONResponse:
    result = service.initialize_payment(
        email=payload.email,
        amount=payload.amount,
        plan=payload.plan,
        clinic_id=payload.clinic_id,
        callback_url=payload.callback_url,
    )
    return JSONResponse(status_code=status.HTTP_200_OK, content=result)


@router.api_route("/api/paystack/initialize", methods=["GET", "PUT", "PATCH", "DELETE"], include_in_schema=False)
def initialize_payment_method_not_allowed() -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_405_METHOD_NOT_ALLOWED,
        content={"status": False, "message": "Method not allowed"},
    )


@router.post("/api/paystack/webhook", response_model=WebhookAck)
async def paystack_webhook(
    request: Request,
    service: BillingService = Depends(get_billing_service),
    config: BillingConfig = Depends(get_billing_config),
):
    raw_body = await request.body()
    signature = request.headers.get(config.signature_header)
    try:
        result = await run_in_threadpool(service.handle_webhook, raw_body, signature)
    except AuthenticationError as exc:
        return exc.to_response()
    except Exception:
        # Signature already passed; acknowledge so the provider stops retrying.
        logger.exception("Unexpected error while processing webhook")
        return WebhookAck()

    logger.info(
        "Webhook %s handled: %s",
        result.event_type,
        result.outcome.value,
        extra={"clinic_id": result.clinic_id, "reason": result.reason},
    )
    return WebhookAck()


@router.get("/api/paystack/callback")
def paystack_callback(
    reference: Optional[str] = Query(default=None),
    trxref: Optional[str] = Query(default=None),
    service: BillingService = Depends(get_billing_service),
    config: BillingConfig = Depends(get_billing_config),
) -> RedirectResponse:
    transaction_reference = reference or trxref
    try:
        result = service.handle_callback(transaction_reference)
    except Exception:
        logger.exception("Unexpected error while handling payment callback")
        result = CallbackResult(status=CallbackStatus.INTERNAL_ERROR, reference=transaction_reference)
    return RedirectResponse(result.redirect_url(config.settings_path), status_code=status.HTTP_302_FOUND)


@router.get("/api/clinics/{clinic_id}/invoices", response_model=InvoiceListResponse)
def list_invoices(
    clinic_id: str,
    limit: int = Query(default=20, ge=1, le=100),
    current_user: UserProfile = Depends(get_current_user),
    service: BillingService = Depends(get_billing_service),
) -> InvoiceListResponse:
    if current_user.clinic_id != clinic_id:
        raise ForbiddenError("You do not have access to this clinic")
    invoices = service.list_invoices(clinic_id, limit=limit)
    return InvoiceListResponse(invoices=[InvoiceResponse.from_record(invoice) for invoice in invoices])


@router.get("/api/billing/plans", response_model=PlanListResponse)
def list_plans() -> PlanListResponse:
    return PlanListResponse(plans=[PlanResponse.from_definition(plan) for plan in PLAN_CATALOG.values()])
