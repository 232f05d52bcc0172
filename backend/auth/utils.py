from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable

import jwt
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from config import settings
from storage.errors import NotAuthenticatedError

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def create_token(user_id: str, expiry_hours_override: int | None = None) -> str:
    """Sign a session token. Issuing tokens is the auth provider's job; this serves tooling and tests."""
    expiry_hours = int(expiry_hours_override) if expiry_hours_override is not None else settings.JWT_EXPIRY_HOURS
    payload = {
        "sub": str(user_id),
        "exp": datetime.now(timezone.utc) + timedelta(hours=expiry_hours),
        "iat": datetime.now(timezone.utc),
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise NotAuthenticatedError("Session expired. Please sign in again.")
    except jwt.InvalidTokenError:
        raise NotAuthenticatedError("Invalid session token. Please sign in again.")


def user_id_from_token(token: str | None) -> str | None:
    if not token:
        return None
    try:
        payload = decode_token(token)
    except NotAuthenticatedError as e:
        logger.info(f"Ignoring session token: {e}")
        return None
    sub = str(payload.get("sub") or "").strip()
    return sub or None


class UserIdentity:
    """Caller-owned cache of the signed-in user id.

    The resolver runs at most once until `invalidate()` is called, which the
    owner does whenever the auth state changes.
    """

    def __init__(self, resolver: Callable[[], str | None] | None = None) -> None:
        self._resolver = resolver
        self._resolved = False
        self._user_id: str | None = None

    @classmethod
    def anonymous(cls) -> "UserIdentity":
        return cls(None)

    @classmethod
    def fixed(cls, user_id: str | None) -> "UserIdentity":
        return cls(lambda: user_id)

    def user_id(self) -> str | None:
        if not self._resolved:
            self._user_id = self._resolver() if self._resolver else None
            self._resolved = True
        return self._user_id

    def require_user_id(self) -> str:
        user_id = self.user_id()
        if not user_id:
            raise NotAuthenticatedError()
        return user_id

    def invalidate(self) -> None:
        self._resolved = False
        self._user_id = None


def _token_from_request(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None,
) -> str | None:
    if credentials and credentials.credentials:
        return credentials.credentials
    cookie_name = (settings.AUTH_COOKIE_NAME or "").strip() or "operator_session"
    cookie_token = request.cookies.get(cookie_name)
    if cookie_token:
        return cookie_token
    return None


def get_identity(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> UserIdentity:
    token = _token_from_request(request, credentials)
    identity = UserIdentity(lambda: user_id_from_token(token))
    user_id = identity.user_id()
    if user_id:
        request.state.user_id = user_id
    return identity
