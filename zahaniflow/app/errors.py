"""Domain errors surfaced by the billing, invitation and access-gate layers."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from fastapi import status
from fastapi.responses import JSONResponse


@dataclass
class ClinicError(Exception):
    """Base error carrying an HTTP status and a caller-safe message."""

    message: str
    code: str = "internal_error"
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    detail: Optional[Mapping[str, Any]] = None

    def __post_init__(self) -> None:
        base_detail: Dict[str, Any] = {"error": self.code, "message": self.message}
        if self.detail:
            base_detail.update(self.detail)
        object.__setattr__(self, "_payload", base_detail)
        super().__init__(self.message)

    @property
    def payload(self) -> Mapping[str, Any]:
        """Serialized representation suitable for JSON responses."""

        return self._payload

    def to_response(self) -> JSONResponse:
        """Render the error with the ``{"status": false, ...}`` envelope."""

        return JSONResponse(
            status_code=self.status_code,
            content={"status": False, **self.payload},
        )


@dataclass
class ValidationError(ClinicError):
    """Missing or malformed input the caller can correct."""

    code: str = "validation_error"
    status_code: int = status.HTTP_400_BAD_REQUEST


@dataclass
class AuthenticationError(ClinicError):
    """Webhook signature mismatch. Never detailed to the caller."""

    code: str = "invalid_signature"
    status_code: int = status.HTTP_400_BAD_REQUEST


@dataclass
class ForbiddenError(ClinicError):
    code: str = "forbidden"
    status_code: int = status.HTTP_403_FORBIDDEN


@dataclass
class NotFoundError(ClinicError):
    code: str = "not_found"
    status_code: int = status.HTTP_404_NOT_FOUND


@dataclass
class AlreadyUsedError(ClinicError):
    """Invitation token that already left the pending state."""

    code: str = "invitation_used"
    status_code: int = status.HTTP_410_GONE


@dataclass
class ExpiredError(ClinicError):
    """Invitation token read after its expiry timestamp."""

    code: str = "invitation_expired"
    status_code: int = status.HTTP_410_GONE


@dataclass
class UpstreamError(ClinicError):
    """Payment provider call failed or reported a failure status."""

    code: str = "upstream_error"
    status_code: int = status.HTTP_502_BAD_GATEWAY


@dataclass
class PersistenceError(ClinicError):
    """Storage operation failed. The message stays generic."""

    code: str = "persistence_error"
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR


@dataclass
class ConfigurationError(ClinicError):
    code: str = "configuration_error"
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR


@dataclass
class SubscriptionBlockedError(ClinicError):
    """Raised by the access gate when a clinic's subscription blocks the app."""

    code: str = "subscription_blocked"
    status_code: int = status.HTTP_402_PAYMENT_REQUIRED


__all__ = [
    "AlreadyUsedError",
    "AuthenticationError",
    "ClinicError",
    "ConfigurationError",
    "ExpiredError",
    "ForbiddenError",
    "NotFoundError",
    "PersistenceError",
    "SubscriptionBlockedError",
    "UpstreamError",
    "ValidationError",
]
