"""Application wiring for the billing service."""
from __future__ import annotations

import logging
from functools import lru_cache

from ..billing import BillingAuditEvent, BillingEventLogger, BillingService
from ..billing.paystack import PaystackClient
from ..billing.repository import PostgresBillingRepository
from ..config import get_billing_config
from .accounts import get_clinic_repository

logger = logging.getLogger("billing")


class LoggingBillingEventLogger(BillingEventLogger):
    """Simple event logger forwarding billing audit events to logging."""

    def log(self, event: BillingAuditEvent) -> None:
        logger.info(
            "Billing event %s clinic=%s reference=%s metadata=%s",
            event.event_type.value,
            event.clinic_id,
            event.reference,
            event.metadata,
        )


@lru_cache(maxsize=1)
def get_billing_service() -> BillingService:
    config = get_billing_config()
    service = BillingService(
        repository=PostgresBillingRepository(),
        clinics=get_clinic_repository(),
        provider=PaystackClient.from_config(config),
        event_logger=LoggingBillingEventLogger(),
        config=config,
    )
    return service


__all__ = ["get_billing_service", "LoggingBillingEventLogger"]
