"""Staff credentials and clinic-scoped profiles."""

from .models import Credential, StaffRole, UserProfile, normalize_email
from .repository import CredentialRepository, ProfileRepository

__all__ = [
    "Credential",
    "CredentialRepository",
    "ProfileRepository",
    "StaffRole",
    "UserProfile",
    "normalize_email",
]
