"""Session cookie handling and the current-user dependency."""
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException, Request, Response, status
from jose import JWTError, jwt

from .accounts.models import UserProfile
from .accounts.repository import ProfileRepository
from .config import AppConfig, get_app_config
from .services.accounts import get_profile_repository

JWT_ALGORITHM = "HS256"

logger = logging.getLogger(__name__)


def create_access_token(
    *,
    subject: str,
    config: AppConfig,
    expires_delta: Optional[timedelta] = None,
) -> str:
    if expires_delta is None:
        expires_delta = timedelta(minutes=config.jwt_exp_minutes)
    payload = {"sub": subject, "exp": datetime.now(timezone.utc) + expires_delta}
    return jwt.encode(payload, config.jwt_secret_key, algorithm=JWT_ALGORITHM)


def decode_session_token(token: str, config: AppConfig) -> Optional[str]:
    """Return the user id carried by ``token`` or ``None`` when it is invalid."""

    try:
        payload = jwt.decode(token, config.jwt_secret_key, algorithms=[JWT_ALGORITHM])
    except JWTError:
        return None
    subject = payload.get("sub")
    return str(subject) if subject else None


def set_session_cookie(response: Response, user_id: str, config: AppConfig) -> None:
    token = create_access_token(subject=user_id, config=config)
    response.set_cookie(
        key=config.session_cookie_name,
        value=token,
        httponly=True,
        samesite="lax",
        secure=config.session_cookie_secure,
        max_age=int(timedelta(minutes=config.jwt_exp_minutes).total_seconds()),
        path="/",
    )


def clear_session_cookie(response: Response, config: AppConfig) -> None:
    response.delete_cookie(
        config.session_cookie_name,
        path="/",
        httponly=True,
        samesite="lax",
        secure=config.session_cookie_secure,
    )


def get_current_user(
    request: Request,
    config: AppConfig = Depends(get_app_config),
    profiles: ProfileRepository = Depends(get_profile_repository),
) -> UserProfile:
    token = request.cookies.get(config.session_cookie_name)
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")

    user_id = decode_session_token(token, config)
    if user_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")

    profile = profiles.get_profile(user_id)
    if profile is None:
        logger.info("Session token for %s has no matching profile", user_id)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    return profile


__all__ = [
    "clear_session_cookie",
    "create_access_token",
    "decode_session_token",
    "get_current_user",
    "set_session_cookie",
]
