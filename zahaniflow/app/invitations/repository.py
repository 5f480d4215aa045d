"""Persistence for clinic invitations."""
from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Protocol

from ..accounts.models import normalize_email
from ..db import PostgresRepository
from .models import Invitation, InvitationRole, InvitationStatus


class InvitationRepository(Protocol):
    def create_invitation(self, invitation: Invitation) -> Invitation:
        ...

    def get_invitation_by_token(self, token: str) -> Optional[Invitation]:
        ...

    def find_pending_invitation(self, clinic_id: str, email: str) -> Optional[Invitation]:
        ...

    def mark_accepted(self, invitation_id: str, accepted_at: datetime) -> Optional[Invitation]:
        """Flip a pending invitation to accepted; ``None`` if it was not pending."""

    def list_invitations(self, clinic_id: str) -> List[Invitation]:
        ...


def _row_to_invitation(row: dict) -> Invitation:
    return Invitation(
        id=row["id"],
        token=row["token"],
        email=row["email"],
        role=InvitationRole(row["role"]),
        clinic_id=row["clinic_id"],
        status=InvitationStatus(row["status"]),
        invited_by=row.get("invited_by"),
        created_at=row["created_at"],
        expires_at=row["expires_at"],
        accepted_at=row.get("accepted_at"),
    )


class PostgresInvitationRepository(PostgresRepository):
    """Concrete repository backed by the ``invitations`` table."""

    def create_invitation(self, invitation: Invitation) -> Invitation:
        with self._cursor() as cursor:
            cursor.execute(
                """
                INSERT INTO invitations (
                    token,
                    email,
                    role,
                    clinic_id,
                    status,
                    invited_by,
                    created_at,
                    expires_at
                )
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
                RETURNING *
                """,
                (
                    invitation.token,
                    invitation.email,
                    invitation.role.value,
                    invitation.clinic_id,
                    invitation.status.value,
                    invitation.invited_by,
                    invitation.created_at,
                    invitation.expires_at,
                ),
            )
            row = cursor.fetchone()
            if not row:
                raise RuntimeError("Failed to persist invitation")
            return _row_to_invitation(row)

    def get_invitation_by_token(self, token: str) -> Optional[Invitation]:
        with self._cursor() as cursor:
            cursor.execute("SELECT * FROM invitations WHERE token = %s LIMIT 1", (token,))
            row = cursor.fetchone()
            return _row_to_invitation(row) if row else None

    def find_pending_invitation(self, clinic_id: str, email: str) -> Optional[Invitation]:
        with self._cursor() as cursor:
            cursor.execute(
                """
                SELECT *
                FROM invitations
                WHERE clinic_id = %s
                  AND LOWER(email) = LOWER(%s)
                  AND status = %s
                ORDER BY created_at DESC
                LIMIT 1
                """,
                (clinic_id, normalize_email(email), InvitationStatus.PENDING.value),
            )
            row = cursor.fetchone()
            return _row_to_invitation(row) if row else None

    def mark_accepted(self, invitation_id: str, accepted_at: datetime) -> Optional[Invitation]:
        with self._cursor() as cursor:
            cursor.execute(
                """
                UPDATE invitations
                SET status = %s, accepted_at = %s
                WHERE id = %s AND status = %s
                RETURNING *
                """,
                (
                    InvitationStatus.ACCEPTED.value,
                    accepted_at,
                    invitation_id,
                    InvitationStatus.PENDING.value,
                ),
            )
            row = cursor.fetchone()
            return _row_to_invitation(row) if row else None

    def list_invitations(self, clinic_id: str) -> List[Invitation]:
        with self._cursor() as cursor:
            cursor.execute(
                """
                SELECT *
                FROM invitations
                WHERE clinic_id = %s
                ORDER BY created_at DESC
                """,
                (clinic_id,),
            )
            rows = cursor.fetchall() or []
            return [_row_to_invitation(row) for row in rows]


__all__ = ["InvitationRepository", "PostgresInvitationRepository"]
