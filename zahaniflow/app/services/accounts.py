"""Application wiring for account and clinic repositories."""
from __future__ import annotations

from functools import lru_cache

from ..accounts.repository import PostgresCredentialRepository, PostgresProfileRepository
from ..clinics.repository import PostgresClinicRepository


@lru_cache(maxsize=1)
def get_clinic_repository() -> PostgresClinicRepository:
    return PostgresClinicRepository()


@lru_cache(maxsize=1)
def get_credential_repository() -> PostgresCredentialRepository:
    return PostgresCredentialRepository()


@lru_cache(maxsize=1)
def get_profile_repository() -> PostgresProfileRepository:
    return PostgresProfileRepository()


__all__ = ["get_clinic_repository", "get_credential_repository", "get_profile_repository"]
