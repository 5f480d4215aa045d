"""Persistence layer for billing domain objects."""
from __future__ import annotations

from typing import List, Optional

from ..clinics.models import SubscriptionTier
from ..db import PostgresRepository
from .models import (
    InvoiceRecord,
    InvoiceStatus,
    PaymentIntent,
    PaymentIntentStatus,
)


def _row_to_payment_intent(row: dict) -> PaymentIntent:
    return PaymentIntent(
        reference=row["reference"],
        clinic_id=row["clinic_id"],
        plan=SubscriptionTier(row["plan"]),
        email=row["email"],
        amount=int(row["amount"]),
        currency=row["currency"],
        status=PaymentIntentStatus(row["status"]),
        callback_url=row.get("callback_url"),
        authorization_url=row.get("authorization_url"),
        access_code=row.get("access_code"),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        completed_at=row.get("completed_at"),
    )


def _row_to_invoice(row: dict) -> InvoiceRecord:
    return InvoiceRecord(
        invoice_id=row["invoice_id"],
        clinic_id=row["clinic_id"],
        amount=int(row["amount"]),
        currency=row["currency"],
        status=InvoiceStatus(row["status"]),
        payment_method=row.get("payment_method"),
        provider_reference=row["provider_reference"],
        issued_at=row["issued_at"],
        paid_at=row.get("paid_at"),
    )


class PostgresBillingRepository(PostgresRepository):
    """Concrete repository persisting billing models in PostgreSQL."""

    def save_payment_intent(self, intent: PaymentIntent) -> PaymentIntent:
        """Insert or update a payment intent record."""

        with self._cursor() as cursor:
            cursor.execute(
                """
                INSERT INTO payment_intents (
                    reference,
                    clinic_id,
                    plan,
                    email,
                    amount,
                    currency,
                    status,
                    callback_url,
                    authorization_url,
                    access_code,
                    created_at,
                    updated_at
                )
                VALUES (%(reference)s, %(clinic_id)s, %(plan)s, %(email)s, %(amount)s,
                        %(currency)s, %(status)s, %(callback_url)s, %(authorization_url)s,
                        %(access_code)s, %(created_at)s, %(updated_at)s)
                ON CONFLICT (reference) DO UPDATE SET
                    status = EXCLUDED.status,
                    authorization_url = EXCLUDED.authorization_url,
                    access_code = EXCLUDED.access_code,
                    updated_at = NOW()
                RETURNING *
                """,
                {
                    "reference": intent.reference,
                    "clinic_id": intent.clinic_id,
                    "plan": intent.plan.value,
                    "email": intent.email,
                    "amount": intent.amount,
                    "currency": intent.currency,
                    "status": intent.status.value,
                    "callback_url": intent.callback_url,
                    "authorization_url": intent.authorization_url,
                    "access_code": intent.access_code,
                    "created_at": intent.created_at,
                    "updated_at": intent.updated_at,
                },
            )
            row = cursor.fetchone()
            if not row:
                raise RuntimeError("Failed to persist payment intent")
            return _row_to_payment_intent(row)

    def get_payment_intent(self, reference: str) -> Optional[PaymentIntent]:
        with self._cursor() as cursor:
            cursor.execute(
                """
                SELECT *
                FROM payment_intents
                WHERE reference = %s
                LIMIT 1
                """,
                (reference,),
            )
            row = cursor.fetchone()
            return _row_to_payment_intent(row) if row else None

    def update_payment_intent_status(
        self,
        reference: str,
        status: PaymentIntentStatus,
    ) -> Optional[PaymentIntent]:
        with self._cursor() as cursor:
            cursor.execute(
                """
                UPDATE payment_intents
                SET status = %s,
                    completed_at = CASE WHEN %s THEN COALESCE(completed_at, NOW()) ELSE completed_at END,
                    updated_at = NOW()
                WHERE reference = %s
                RETURNING *
                """,
                (status.value, status == PaymentIntentStatus.COMPLETED, reference),
            )
            row = cursor.fetchone()
            return _row_to_payment_intent(row) if row else None

    def record_invoice(self, invoice: InvoiceRecord) -> bool:
        with self._cursor() as cursor:
            cursor.execute(
                """
                INSERT INTO invoices (
                    invoice_id,
                    clinic_id,
                    amount,
                    currency,
                    status,
                    payment_method,
                    provider_reference,
                    issued_at,
                    paid_at
                )
                VALUES (%(invoice_id)s, %(clinic_id)s, %(amount)s, %(currency)s, %(status)s,
                        %(payment_method)s, %(provider_reference)s, %(issued_at)s, %(paid_at)s)
                ON CONFLICT (provider_reference) DO NOTHING
                """,
                {
                    "invoice_id": invoice.invoice_id,
                    "clinic_id": invoice.clinic_id,
                    "amount": invoice.amount,
                    "currency": invoice.currency,
                    "status": invoice.status.value,
                    "payment_method": invoice.payment_method,
                    "provider_reference": invoice.provider_reference,
                    "issued_at": invoice.issued_at,
                    "paid_at": invoice.paid_at,
                },
            )
            return cursor.rowcount > 0

    def list_invoices(self, clinic_id: str, *, limit: int = 20) -> List[InvoiceRecord]:
        with self._cursor() as cursor:
            cursor.execute(
                """
                SELECT *
                FROM invoices
                WHERE clinic_id = %s
                ORDER BY issued_at DESC
                LIMIT %s
                """,
                (clinic_id, limit),
            )
            rows = cursor.fetchall() or []
            return [_row_to_invoice(row) for row in rows]

    def has_webhook_receipt(self, receipt_key: str) -> bool:
        with self._cursor() as cursor:
            cursor.execute(
                "SELECT 1 FROM billing_webhook_receipts WHERE receipt_key = %s LIMIT 1",
                (receipt_key,),
            )
            return cursor.fetchone() is not None

    def record_webhook_receipt(self, receipt_key: str, event_type: str) -> bool:
        with self._cursor() as cursor:
            cursor.execute(
                """
                INSERT INTO billing_webhook_receipts (receipt_key, event_type, processed_at)
                VALUES (%s, %s, NOW())
                ON CONFLICT (receipt_key) DO NOTHING
                """,
                (receipt_key, event_type),
            )
            return cursor.rowcount > 0


__all__ = ["PostgresBillingRepository"]
