"""
dependencies.py — Shared FastAPI Dependencies

Resolves the caller's verified identity from a bearer JWT and hands the
services an Actor. All routers import from here instead of decoding
tokens themselves.

Business Rules:
- require_user raises 401 if the token is missing, invalid, expired or
  names an unknown user; 403 if the account is deactivated
- get_actor wraps the user as an Actor (user_id + role)
- Tokens are HS256, signed with SECRET_KEY, subject = user id

Called by: all routers
Depends on: models, database, config, PyJWT
"""

import logging
from datetime import timedelta

import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from .config import settings
from .database import get_db, utcnow
from .models import User
from .permissions import Actor

log = logging.getLogger("courierdesk.auth")

security = HTTPBearer(auto_error=False)


# ── Tokens ───────────────────────────────────────────────────────────


def create_access_token(user_id: str, minutes: int | None = None) -> str:
    now = utcnow()
    claims = {
        "sub": user_id,
        "iat": now,
        "exp": now + timedelta(minutes=minutes or settings.access_token_minutes),
    }
    return jwt.encode(claims, settings.secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> str | None:
    """Return the subject (user id) of a valid token, else None."""
    try:
        claims = jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except jwt.PyJWTError as e:
        log.info("Rejected bearer token: %s", e)
        return None
    sub = claims.get("sub")
    return sub if isinstance(sub, str) and sub else None


# ── Authentication ────────────────────────────────────────────────────


def require_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """Dependency: raises 401 if no valid bearer token, 403 if deactivated."""
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise HTTPException(401, "Not authenticated")
    user_id = decode_access_token(credentials.credentials)
    user = db.get(User, user_id) if user_id else None
    if not user:
        raise HTTPException(401, "Not authenticated")
    if not user.is_active:
        raise HTTPException(403, "Account deactivated — contact admin")
    return user


def get_actor(user: User = Depends(require_user)) -> Actor:
    return Actor.from_user(user)
