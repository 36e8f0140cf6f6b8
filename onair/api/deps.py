"""
onair.api.deps — FastAPI dependency injection
==============================================
"""

from __future__ import annotations

import os
from functools import lru_cache
from typing import Annotated

import jwt
from fastapi import Depends, Header, HTTPException, status
from jwt.exceptions import InvalidTokenError
from sqlalchemy import Engine

from onair.config import OnAirConfig, load_config
from onair.database.engine import create_db_engine
from onair.engine.cache import SettingsCache
from onair.errors import (
    ConflictError,
    NotFoundError,
    OnAirError,
    RateLimitedError,
    TransientInfraError,
    ValidationError,
)
from onair.services.broadcast import ChatHub, ChatPublisher

_WEAK_SECRETS = frozenset({
    "onair-dev-secret-change-me",
    "change-me",
    "secret",
    "dev",
    "",
})

_MIN_SECRET_LENGTH = 32

JWT_ALGORITHM = "HS256"


def _load_jwt_secret() -> str:
    """Load and validate AUTH_JWT_SECRET from the environment.

    This is the auth provider's signing secret; the API only verifies
    tokens, it never issues them.  Raises RuntimeError at import time if
    the secret is missing, too short (< 32 chars), or a known weak default.
    """
    secret = os.getenv("AUTH_JWT_SECRET", "")
    if not secret:
        raise RuntimeError(
            "AUTH_JWT_SECRET environment variable is not set. "
            "Copy the auth provider's JWT secret into .env."
        )
    if secret in _WEAK_SECRETS:
        raise RuntimeError(
            f"AUTH_JWT_SECRET is set to a known weak default ('{secret}'). "
            "Please set a strong, unique secret."
        )
    if len(secret) < _MIN_SECRET_LENGTH:
        raise RuntimeError(
            f"AUTH_JWT_SECRET is too short ({len(secret)} chars). "
            f"Minimum length is {_MIN_SECRET_LENGTH} characters."
        )
    return secret


JWT_SECRET: str = _load_jwt_secret()


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    return create_db_engine()


@lru_cache(maxsize=1)
def get_config() -> OnAirConfig:
    return load_config()


@lru_cache(maxsize=1)
def get_settings_cache() -> SettingsCache:
    cache = SettingsCache(get_engine())
    cache.load_all()
    return cache


@lru_cache(maxsize=1)
def get_chat_hub() -> ChatHub:
    return ChatHub()


def get_chat_publisher(
    engine: Annotated[Engine, Depends(get_engine)],
    hub: Annotated[ChatHub, Depends(get_chat_hub)],
) -> ChatPublisher:
    return ChatPublisher(engine, hub)


# ---------------------------------------------------------------------------
# Session claims
# ---------------------------------------------------------------------------
def decode_token(token: str) -> dict:
    """Verify an auth-provider access token and return its claims.

    Raises InvalidTokenError on a bad signature, expiry, or missing ``sub``.
    """
    # Provider tokens carry an audience we don't pin
    payload = jwt.decode(
        token, JWT_SECRET, algorithms=[JWT_ALGORITHM], options={"verify_aud": False},
    )
    if not payload.get("sub"):
        raise InvalidTokenError("Token has no subject")
    return payload


def get_session_claims(
    authorization: Annotated[str | None, Header()] = None,
) -> dict | None:
    """Claims of the caller's session, or None for anonymous requests.

    A token that is present but invalid is rejected with 401 rather than
    silently downgraded to a guest.
    """
    if not authorization:
        return None
    if not authorization.startswith("Bearer "):
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Malformed Authorization header")
    try:
        return decode_token(authorization.split(" ", 1)[1])
    except InvalidTokenError:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid token")


def require_session_claims(
    claims: Annotated[dict | None, Depends(get_session_claims)],
) -> dict:
    if claims is None:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Missing token")
    return claims


# ---------------------------------------------------------------------------
# Error translation
# ---------------------------------------------------------------------------
def http_error(exc: OnAirError) -> HTTPException:
    """Map a domain error onto the HTTPException a route should raise."""
    if isinstance(exc, ValidationError):
        return HTTPException(status.HTTP_400_BAD_REQUEST, str(exc))
    if isinstance(exc, NotFoundError):
        return HTTPException(status.HTTP_404_NOT_FOUND, str(exc))
    if isinstance(exc, ConflictError):
        return HTTPException(
            status.HTTP_409_CONFLICT, {"error": exc.code, "message": str(exc)},
        )
    if isinstance(exc, RateLimitedError):
        return HTTPException(
            status.HTTP_429_TOO_MANY_REQUESTS,
            {
                "error": "rate_limit_exceeded",
                "message": str(exc),
                "retry_after": exc.retry_after,
            },
            headers={"Retry-After": str(exc.retry_after)},
        )
    if isinstance(exc, TransientInfraError):
        return HTTPException(status.HTTP_503_SERVICE_UNAVAILABLE, str(exc))
    return HTTPException(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal error")


def set_shared_cache(response, seconds: int) -> None:
    """Let shared caches (CDN) hold the response for *seconds*."""
    response.headers["Cache-Control"] = (
        f"public, s-maxage={seconds}, stale-while-revalidate={seconds * 2}"
    )


def set_private_cache(response) -> None:
    """Keep a per-session response out of shared caches."""
    response.headers["Cache-Control"] = "private, no-store"
    response.headers["Vary"] = "Authorization"
