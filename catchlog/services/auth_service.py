"""Identity resolution for API callers: bearer tokens and the admin role gate."""
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Optional
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from ..config import get_settings
from ..constants import ADMIN_ROLES
from ..database import get_session
from ..exceptions import Unauthorized
from ..models import Profile

logger = logging.getLogger(__name__)

_security = HTTPBearer(auto_error=False)


_PLACEHOLDER_SECRETS = {"changeme", "change-me", "secret", "placeholder", "your-key-here"}


@lru_cache(maxsize=1)
def _get_jwt_secret() -> str:
    secret = (get_settings().jwt_secret_key or "").strip()
    if not secret or secret.lower() in _PLACEHOLDER_SECRETS:
        raise RuntimeError("JWT_SECRET_KEY must be set to a real signing key")
    return secret


def create_access_token(subject: UUID, *, expires_minutes: Optional[int] = None) -> str:
    """Create a signed JWT holding the provided ``subject``."""

    settings = get_settings()
    expire_delta = timedelta(minutes=expires_minutes or settings.jwt_expires_minutes)
    now = datetime.now(timezone.utc)
    payload = {"sub": str(subject), "exp": now + expire_delta, "iat": now}
    return jwt.encode(payload, _get_jwt_secret(), algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> UUID:
    """Decode and validate a JWT, returning the embedded subject UUID."""

    try:
        payload = jwt.decode(token, _get_jwt_secret(), algorithms=[get_settings().jwt_algorithm])
    except JWTError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token") from exc

    subject = payload.get("sub")
    if not subject:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token payload")
    try:
        return UUID(subject)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token payload") from exc


def is_admin(profile: Profile | None) -> bool:
    role = (getattr(profile, "role", None) or "user").lower()
    return role in ADMIN_ROLES


def assert_admin(profile: Profile | None) -> None:
    """Raise :class:`Unauthorized` unless ``profile`` holds an admin role."""

    if not is_admin(profile):
        logger.info("Rejected admin operation for %s", getattr(profile, "id", None))
        raise Unauthorized()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(_security),
    db: Session = Depends(get_session),
) -> Profile:
    """Resolve the authenticated profile from the provided bearer token."""

    if not credentials or credentials.scheme.lower() != "bearer":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing bearer token")

    user_id = decode_access_token(credentials.credentials)
    profile = db.get(Profile, user_id)
    if not profile:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    return profile


def require_roles(*allowed_roles: str):
    normalized = {role.lower() for role in allowed_roles if role}

    async def _resolver(user: Profile = Depends(get_current_user)) -> Profile:
        role = (getattr(user, "role", None) or "user").lower()
        if normalized and role not in normalized:
            raise Unauthorized()
        return user

    return _resolver


def require_admin():
    return require_roles(*ADMIN_ROLES)


__all__ = [
    "create_access_token",
    "decode_access_token",
    "is_admin",
    "assert_admin",
    "get_current_user",
    "require_roles",
    "require_admin",
]
