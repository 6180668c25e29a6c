"""
AccessPolicy: who may call what.

Every route declares `Depends(require(<Capability>))`, so the check runs
before the handler body. Identity comes from a JWT carried either as a
`Bearer` token or in the HTTP-only `token` cookie; the caller's role is
always read from the users collection, never trusted from the token.
"""
import logging
import os
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional

import jwt
from fastapi import Cookie, Depends, Header
from pymongo.database import Database
from pymongo.errors import PyMongoError

from database import current_db
from errors import Forbidden, LookupFailed, Unauthenticated

logger = logging.getLogger(__name__)

SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key-change-me")
JWT_EXP_MIN = int(os.getenv("JWT_EXP_MIN", "60"))
JWT_ALGORITHM = "HS256"


class Capability(str, Enum):
    NONE = "none"
    AUTHENTICATED = "authenticated"
    MODERATOR_OR_ADMIN = "moderator_or_admin"
    ADMIN_ONLY = "admin_only"


ALLOWED_ROLES = {
    Capability.MODERATOR_OR_ADMIN: ("Moderator", "Admin"),
    Capability.ADMIN_ONLY: ("Admin",),
}


@dataclass
class Caller:
    email: Optional[str] = None
    role: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == "Admin"


def create_token(email: str) -> str:
    payload = {
        "email": email,
        "exp": datetime.now(timezone.utc) + timedelta(minutes=JWT_EXP_MIN),
    }
    return jwt.encode(payload, SECRET_KEY, algorithm=JWT_ALGORITHM)


def decode_token(token: Optional[str]) -> str:
    """Return the email a token was issued for, or raise Unauthenticated."""
    if not token:
        raise Unauthenticated()
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise Unauthenticated("Token expired")
    except jwt.InvalidTokenError:
        raise Unauthenticated("Invalid token")
    email = payload.get("email")
    if not email:
        raise Unauthenticated("Invalid token")
    return email


def lookup_role(db: Optional[Database], email: str) -> Optional[str]:
    if db is None:
        raise LookupFailed()
    try:
        user = db["users"].find_one({"email": email}, {"role": 1})
    except PyMongoError as exc:
        logger.error("role lookup failed", extra={"email": email})
        raise LookupFailed() from exc
    return user.get("role") if user else None


def authorize(db: Optional[Database], token: Optional[str], capability: Capability) -> Caller:
    """Decide whether the bearer of `token` holds `capability`."""
    if capability == Capability.NONE:
        return Caller()
    email = decode_token(token)
    if capability == Capability.AUTHENTICATED:
        return Caller(email=email)
    role = lookup_role(db, email)
    if role not in ALLOWED_ROLES[capability]:
        logger.info("access denied", extra={"email": email, "error_code": capability.value})
        raise Forbidden()
    return Caller(email=email, role=role)


def ensure_owner_or_admin(db: Optional[Database], caller: Caller, owner_email: str) -> None:
    """Ownership-scoped operations: the owner themselves, or any Admin."""
    if caller.email and caller.email == owner_email:
        return
    ensure_capability(db, caller, Capability.ADMIN_ONLY)


def ensure_capability(db: Optional[Database], caller: Caller, capability: Capability) -> None:
    """Check a caller admitted by a weaker route gate against a stronger capability."""
    if caller.role is None:
        caller.role = lookup_role(db, caller.email)
    allowed = caller.is_admin if capability == Capability.ADMIN_ONLY else caller.role in ALLOWED_ROLES[capability]
    if not allowed:
        raise Forbidden()


def get_token(
    authorization: Optional[str] = Header(None),
    token: Optional[str] = Cookie(None),
) -> Optional[str]:
    if authorization:
        scheme, _, value = authorization.partition(" ")
        if scheme.lower() == "bearer" and value.strip():
            return value.strip()
    return token


def require(capability: Capability):
    """Build the FastAPI dependency that enforces `capability`."""

    def dependency(
        token: Optional[str] = Depends(get_token),
        db: Optional[Database] = Depends(current_db),
    ) -> Caller:
        return authorize(db, token, capability)

    return dependency
