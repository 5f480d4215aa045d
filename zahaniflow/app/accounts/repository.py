"""Persistence for credentials and staff profiles."""
from __future__ import annotations

from typing import Optional, Protocol

from ..db import PostgresRepository
from .models import Credential, StaffRole, UserProfile, normalize_email


class CredentialRepository(Protocol):
    def get_credential_by_email(self, email: str) -> Optional[Credential]:
        ...

    def create_credential(self, email: str, password_hash: str) -> Credential:
        ...


class ProfileRepository(Protocol):
    def get_profile(self, user_id: str) -> Optional[UserProfile]:
        ...

    def create_profile(self, profile: UserProfile) -> UserProfile:
        ...


def _row_to_credential(row: dict) -> Credential:
    return Credential(
        user_id=row["user_id"],
        email=row["email"],
        password_hash=row["password_hash"],
        created_at=row["created_at"],
    )


def _row_to_profile(row: dict) -> UserProfile:
    return UserProfile(
        user_id=row["user_id"],
        email=row["email"],
        name=row["name"],
        role=StaffRole(row["role"]),
        clinic_id=row["clinic_id"],
        created_at=row.get("created_at"),
    )


class PostgresCredentialRepository(PostgresRepository):
    """Reads and writes the ``credentials`` table."""

    def get_credential_by_email(self, email: str) -> Optional[Credential]:
        with self._cursor() as cursor:
            cursor.execute(
                "SELECT * FROM credentials WHERE LOWER(email) = LOWER(%s) LIMIT 1",
                (normalize_email(email),),
            )
            row = cursor.fetchone()
            return _row_to_credential(row) if row else None

    def create_credential(self, email: str, password_hash: str) -> Credential:
        with self._cursor() as cursor:
            cursor.execute(
                """
                INSERT INTO credentials (email, password_hash)
                VALUES (%s, %s)
                RETURNING *
                """,
                (normalize_email(email), password_hash),
            )
            row = cursor.fetchone()
            if not row:
                raise RuntimeError("Failed to persist credential")
            return _row_to_credential(row)


class PostgresProfileRepository(PostgresRepository):
    """Reads and writes the ``profiles`` table."""

    def get_profile(self, user_id: str) -> Optional[UserProfile]:
        with self._cursor() as cursor:
            cursor.execute(
                "SELECT * FROM profiles WHERE user_id = %s LIMIT 1",
                (user_id,),
            )
            row = cursor.fetchone()
            return _row_to_profile(row) if row else None

    def create_profile(self, profile: UserProfile) -> UserProfile:
        with self._cursor() as cursor:
            cursor.execute(
                """
                INSERT INTO profiles (user_id, email, name, role, clinic_id)
                VALUES (%s, %s, %s, %s, %s)
                ON CONFLICT (user_id) DO NOTHING
                RETURNING *
                """,
                (
                    profile.user_id,
                    normalize_email(profile.email),
                    profile.name,
                    profile.role.value,
                    profile.clinic_id,
                ),
            )
            row = cursor.fetchone()
            if row:
                return _row_to_profile(row)
            cursor.execute("SELECT * FROM profiles WHERE user_id = %s", (profile.user_id,))
            existing = cursor.fetchone()
            if not existing:
                raise RuntimeError("Failed to persist profile")
            return _row_to_profile(existing)


__all__ = [
    "CredentialRepository",
    "PostgresCredentialRepository",
    "PostgresProfileRepository",
    "ProfileRepository",
]
