"""
bookswap.api.deps — FastAPI dependency injection
=================================================

Tokens are issued elsewhere; this module only verifies them.  The
``sub`` claim is the BookSwap user id.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Annotated

import jwt
from fastapi import Depends, Header, HTTPException, Request, status
from jwt.exceptions import InvalidTokenError
from sqlalchemy import Engine

from bookswap.config import BookSwapConfig
from bookswap.services.billing_service import PaymentClient
from bookswap.services.notification_service import NotificationDispatcher

_WEAK_SECRETS = frozenset({
    "booksswap-secret-key-change-in-production",
    "change-me",
    "secret",
    "dev",
    "",
})

_MIN_SECRET_LENGTH = 32

JWT_ALGORITHM = "HS256"


def _load_jwt_secret() -> str:
    """Load and validate JWT_SECRET from the environment.

    Raises RuntimeError at import time if the secret is missing, blank,
    too short (< 32 chars), or a known weak default.
    """
    secret = os.getenv("JWT_SECRET", "")
    if not secret:
        raise RuntimeError(
            "JWT_SECRET environment variable is not set. "
            "Generate one with: python -c \"import secrets; print(secrets.token_urlsafe(64))\""
        )
    if secret in _WEAK_SECRETS:
        raise RuntimeError(
            f"JWT_SECRET is set to a known weak default ('{secret}'). "
            "Please set a strong, unique secret."
        )
    if len(secret) < _MIN_SECRET_LENGTH:
        raise RuntimeError(
            f"JWT_SECRET is too short ({len(secret)} chars). "
            f"Minimum length is {_MIN_SECRET_LENGTH} characters."
        )
    return secret


JWT_SECRET: str = _load_jwt_secret()


# ---------------------------------------------------------------------------
# Service container — built once in the app lifespan
# ---------------------------------------------------------------------------
@dataclass(slots=True)
class Services:
    """Explicitly constructed collaborators shared by all requests."""

    engine: Engine
    config: BookSwapConfig
    notifier: NotificationDispatcher
    payments: PaymentClient | None = None


def get_services(request: Request) -> Services:
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise HTTPException(status.HTTP_503_SERVICE_UNAVAILABLE, "Service not ready")
    return services


def get_engine(services: Annotated[Services, Depends(get_services)]) -> Engine:
    return services.engine


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------
def get_current_user_id(
    authorization: Annotated[str | None, Header()] = None,
) -> str:
    """Validate the bearer JWT and return its subject. Raises 401 if invalid."""
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Access token required")
    token = authorization.split(" ", 1)[1]
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except InvalidTokenError:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid or expired token")
    sub = payload.get("sub")
    if not sub:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid token subject")
    return str(sub)


CurrentUserId = Annotated[str, Depends(get_current_user_id)]
ServicesDep = Annotated[Services, Depends(get_services)]
