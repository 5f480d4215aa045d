"""Environment-backed configuration for the API and the payment provider."""
from __future__ import annotations

import math
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Mapping, Optional, Tuple

DEFAULT_PAYSTACK_BASE_URL = "https://api.paystack.co"
DEFAULT_SIGNATURE_HEADER = "x-paystack-signature"
DEFAULT_CHANNELS = ("card", "bank", "ussd", "mobile_money")


@dataclass(frozen=True)
class BillingConfig:
    """Settings handed to the billing service and the Paystack client."""

    secret_key: Optional[str]
    base_url: str
    signature_header: str
    timeout_seconds: float
    max_attempts: int
    currency: str
    channels: Tuple[str, ...]
    subscription_period_months: int
    settings_path: str

    @property
    def configured(self) -> bool:
        return bool(self.secret_key)

    def __repr__(self) -> str:
        secret = "***" if self.secret_key else None
        return (
            f"BillingConfig(secret_key={secret!r}, base_url={self.base_url!r}, "
            f"currency={self.currency!r}, settings_path={self.settings_path!r})"
        )


@dataclass(frozen=True)
class AppConfig:
    """Process-wide settings for the HTTP surface and persistence."""

    db_host: str
    db_port: int
    db_name: str
    db_user: str
    db_password: str
    db_connect_timeout: int
    jwt_secret_key: str
    jwt_exp_minutes: int
    session_cookie_name: str
    session_cookie_secure: bool
    app_base_url: str
    cors_origins: Tuple[str, ...]
    invitation_ttl_days: int

    def db_kwargs(self) -> dict:
        return dict(
            host=self.db_host,
            port=self.db_port,
            dbname=self.db_name,
            user=self.db_user,
            password=self.db_password,
            connect_timeout=self.db_connect_timeout,
        )


def _to_bool(value: Optional[str], *, default: bool) -> bool:
    if value is None:
        return default
    lowered = value.strip().lower()
    if lowered in {"1", "true", "yes", "on"}:
        return True
    if lowered in {"0", "false", "no", "off"}:
        return False
    return default


def _to_int(value: Optional[str], *, default: int) -> int:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Expected integer value, got {value!r}") from exc


def _to_float(value: Optional[str], *, default: float) -> float:
    if value is None or value == "":
        return default
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Expected float value, got {value!r}") from exc


def _to_tuple(value: Optional[str], *, default: Tuple[str, ...]) -> Tuple[str, ...]:
    if not value:
        return default
    items = tuple(item.strip() for item in value.split(",") if item.strip())
    return items or default


def load_billing_config(env: Optional[Mapping[str, str]] = None) -> BillingConfig:
    """Load :class:`BillingConfig` from environment variables."""

    env_mapping = os.environ if env is None else env

    secret_key = (env_mapping.get("PAYSTACK_SECRET_KEY") or "").strip() or None
    base_url = env_mapping.get("PAYSTACK_BASE_URL") or DEFAULT_PAYSTACK_BASE_URL
    signature_header = (
        env_mapping.get("PAYSTACK_SIGNATURE_HEADER") or DEFAULT_SIGNATURE_HEADER
    ).strip().lower()

    timeout_seconds = max(1.0, _to_float(env_mapping.get("PAYSTACK_TIMEOUT_SECONDS"), default=10.0))
    max_attempts = max(1, _to_int(env_mapping.get("PAYSTACK_MAX_ATTEMPTS"), default=2))
    period_months = max(1, _to_int(env_mapping.get("SUBSCRIPTION_PERIOD_MONTHS"), default=1))

    settings_path = env_mapping.get("SUBSCRIPTION_SETTINGS_PATH", "/settings/subscription")

    return BillingConfig(
        secret_key=secret_key,
        base_url=base_url.rstrip("/"),
        signature_header=signature_header,
        timeout_seconds=timeout_seconds,
        max_attempts=max_attempts,
        currency=(env_mapping.get("BILLING_CURRENCY") or "KES").upper(),
        channels=_to_tuple(env_mapping.get("PAYSTACK_CHANNELS"), default=DEFAULT_CHANNELS),
        subscription_period_months=period_months,
        settings_path=settings_path.rstrip("/") or "/",
    )


def load_app_config(env: Optional[Mapping[str, str]] = None) -> AppConfig:
    """Load :class:`AppConfig` from environment variables."""

    env_mapping = os.environ if env is None else env

    connect_timeout = _to_float(env_mapping.get("DB_CONNECT_TIMEOUT"), default=5.0)
    if connect_timeout < 0:
        raise ValueError("DB_CONNECT_TIMEOUT must be non-negative")

    app_base_url = env_mapping.get("APP_BASE_URL", "http://localhost:5173").rstrip("/")

    return AppConfig(
        db_host=env_mapping.get("DB_HOST", "127.0.0.1"),
        db_port=_to_int(env_mapping.get("DB_PORT"), default=5432),
        db_name=env_mapping.get("DB_NAME", "zahaniflow"),
        db_user=env_mapping.get("DB_USER", "zahaniflow"),
        db_password=env_mapping.get("DB_PASSWORD", ""),
        db_connect_timeout=int(math.ceil(connect_timeout)),
        jwt_secret_key=env_mapping.get("JWT_SECRET_KEY", "dev-secret-change-me"),
        jwt_exp_minutes=max(1, _to_int(env_mapping.get("JWT_EXP_MINUTES"), default=60 * 24 * 7)),
        session_cookie_name=env_mapping.get("SESSION_COOKIE_NAME", "session"),
        session_cookie_secure=_to_bool(env_mapping.get("SESSION_COOKIE_SECURE"), default=False),
        app_base_url=app_base_url,
        cors_origins=_to_tuple(env_mapping.get("CORS_ORIGINS"), default=(app_base_url,)),
        invitation_ttl_days=max(1, _to_int(env_mapping.get("INVITATION_TTL_DAYS"), default=7)),
    )


@lru_cache(maxsize=1)
def get_app_config() -> AppConfig:
    return load_app_config()


@lru_cache(maxsize=1)
def get_billing_config() -> BillingConfig:
    return load_billing_config()


__all__ = [
    "AppConfig",
    "BillingConfig",
    "get_app_config",
    "get_billing_config",
    "load_app_config",
    "load_billing_config",
]
