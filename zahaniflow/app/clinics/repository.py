"""Persistence for clinic rows and their subscription columns."""
from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol

from ..db import PostgresRepository
from .gate import SUSPENSION_MESSAGE_KEY
from .models import Clinic, SubscriptionStatus, SubscriptionTier


class ClinicRepository(Protocol):
    """Clinic lookups and the single-row subscription updates."""

    def get_clinic(self, clinic_id: str) -> Optional[Clinic]:
        ...

    def activate_subscription(
        self,
        clinic_id: str,
        *,
        tier: SubscriptionTier,
        end_date: datetime,
    ) -> Optional[Clinic]:
        ...

    def update_subscription_status(
        self,
        clinic_id: str,
        status: SubscriptionStatus,
    ) -> Optional[Clinic]:
        ...

    def set_suspension(
        self,
        clinic_id: str,
        *,
        suspended: bool,
        message: Optional[str] = None,
    ) -> Optional[Clinic]:
        ...


def _row_to_clinic(row: dict) -> Clinic:
    return Clinic(
        id=row["id"],
        name=row["name"],
        slug=row["slug"],
        subscription_tier=SubscriptionTier(row["subscription_tier"]),
        subscription_status=SubscriptionStatus(row["subscription_status"]),
        subscription_end_date=row.get("subscription_end_date"),
        settings=row.get("settings") or {},
        created_at=row.get("created_at"),
        updated_at=row.get("updated_at"),
    )


class PostgresClinicRepository(PostgresRepository):
    """Concrete repository reading and updating the ``clinics`` table."""

    def get_clinic(self, clinic_id: str) -> Optional[Clinic]:
        with self._cursor() as cursor:
            cursor.execute(
                """
                SELECT *
                FROM clinics
                WHERE id = %s
                LIMIT 1
                """,
                (clinic_id,),
            )
            row = cursor.fetchone()
            return _row_to_clinic(row) if row else None

    def activate_subscription(
        self,
        clinic_id: str,
        *,
        tier: SubscriptionTier,
        end_date: datetime,
    ) -> Optional[Clinic]:
        with self._cursor() as cursor:
            cursor.execute(
                """
                UPDATE clinics
                SET subscription_tier = %s,
                    subscription_status = %s,
                    subscription_end_date = %s,
                    updated_at = NOW()
                WHERE id = %s
                RETURNING *
                """,
                (tier.value, SubscriptionStatus.ACTIVE.value, end_date, clinic_id),
            )
            row = cursor.fetchone()
            return _row_to_clinic(row) if row else None

    def update_subscription_status(
        self,
        clinic_id: str,
        status: SubscriptionStatus,
    ) -> Optional[Clinic]:
        with self._cursor() as cursor:
            cursor.execute(
                """
                UPDATE clinics
                SET subscription_status = %s,
                    updated_at = NOW()
                WHERE id = %s
                RETURNING *
                """,
                (status.value, clinic_id),
            )
            row = cursor.fetchone()
            return _row_to_clinic(row) if row else None

    def set_suspension(
        self,
        clinic_id: str,
        *,
        suspended: bool,
        message: Optional[str] = None,
    ) -> Optional[Clinic]:
        """Suspend or reactivate a clinic and keep ``settings.suspension_message`` in step.

        Suspending with a message stores it; suspending without one leaves the
        settings alone. Reactivating removes the key.
        """

        if not suspended:
            settings_sql = "COALESCE(settings, '{}'::jsonb) - %s"
            params = (SubscriptionStatus.ACTIVE.value, SUSPENSION_MESSAGE_KEY, clinic_id)
        elif message:
            settings_sql = "COALESCE(settings, '{}'::jsonb) || jsonb_build_object(%s, %s::text)"
            params = (SubscriptionStatus.SUSPENDED.value, SUSPENSION_MESSAGE_KEY, message, clinic_id)
        else:
            settings_sql = "settings"
            params = (SubscriptionStatus.SUSPENDED.value, clinic_id)

        with self._cursor() as cursor:
            cursor.execute(
                f"""
                UPDATE clinics
                SET subscription_status = %s,
                    settings = {settings_sql},
                    updated_at = NOW()
                WHERE id = %s
                RETURNING *
                """,
                params,
            )
            row = cursor.fetchone()
            return _row_to_clinic(row) if row else None


__all__ = ["ClinicRepository", "PostgresClinicRepository"]
