"""Paystack REST client used for transaction initialization and verification."""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Sequence
from urllib.parse import quote

import requests

from ..config import BillingConfig
from ..errors import ConfigurationError, UpstreamError

logger = logging.getLogger(__name__)

_RETRYABLE_ERRORS = (requests.exceptions.ConnectionError, requests.exceptions.Timeout)


class PaystackClient:
    """Thin wrapper over the two Paystack endpoints the billing flow needs.

    Network-level failures are retried up to ``max_attempts`` in total.
    Responses are returned as decoded JSON even when Paystack reports
    ``status: false``; deciding what that means is the caller's job.
    """

    name = "paystack"

    def __init__(
        self,
        *,
        secret_key: Optional[str],
        base_url: str = "https://api.paystack.co",
        timeout: float = 10.0,
        max_attempts: int = 2,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.secret_key = secret_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_attempts = max(1, max_attempts)
        self.session = session or requests.Session()

    @classmethod
    def from_config(cls, config: BillingConfig, *, session: Optional[requests.Session] = None) -> "PaystackClient":
        return cls(
            secret_key=config.secret_key,
            base_url=config.base_url,
            timeout=config.timeout_seconds,
            max_attempts=config.max_attempts,
            session=session,
        )

    def _headers(self) -> Dict[str, str]:
        if not self.secret_key:
            raise ConfigurationError("Paystack secret key not configured")
        return {
            "Authorization": f"Bearer {self.secret_key}",
            "Content-Type": "application/json",
        }

    def _request(self, method: str, path: str, *, json_body: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        headers = self._headers()
        url = f"{self.base_url}{path}"

        response = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                response = self.session.request(
                    method,
                    url,
                    json=json_body,
                    headers=headers,
                    timeout=self.timeout,
                )
                break
            except _RETRYABLE_ERRORS as exc:
                if attempt >= self.max_attempts:
                    logger.error("Paystack %s %s failed after %s attempts: %s", method, path, attempt, exc.__class__.__name__)
                    raise UpstreamError("Payment provider is unreachable") from exc
                logger.warning(
                    "Paystack %s %s failed (attempt %s/%s), retrying",
                    method,
                    path,
                    attempt,
                    self.max_attempts,
                )
            except requests.exceptions.RequestException as exc:
                logger.error("Paystack %s %s failed: %s", method, path, exc.__class__.__name__)
                raise UpstreamError("Payment provider request failed") from exc

        try:
            payload = response.json()
        except ValueError as exc:
            logger.error("Paystack %s %s returned a non-JSON body (HTTP %s)", method, path, response.status_code)
            raise UpstreamError("Payment provider returned an invalid response") from exc

        if not isinstance(payload, dict):
            raise UpstreamError("Payment provider returned an invalid response")
        return payload

    def initialize_transaction(
        self,
        *,
        email: str,
        amount: int,
        reference: str,
        metadata: Dict[str, str],
        currency: Optional[str] = None,
        callback_url: Optional[str] = None,
        channels: Sequence[str] = (),
    ) -> Dict[str, Any]:
        """Start a hosted checkout. The response carries ``authorization_url``."""

        body: Dict[str, Any] = {
            "email": email,
            "amount": amount,
            "reference": reference,
            "metadata": metadata,
        }
        if currency:
            body["currency"] = currency
        if callback_url:
            body["callback_url"] = callback_url
        if channels:
            body["channels"] = list(channels)
        return self._request("POST", "/transaction/initialize", json_body=body)

    def verify_transaction(self, reference: str) -> Dict[str, Any]:
        """Pull the current state of a transaction by reference."""

        return self._request("GET", f"/transaction/verify/{quote(reference, safe='')}")


__all__ = ["PaystackClient"]
