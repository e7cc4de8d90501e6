"""Identity resolution and role gates for protected routes."""

import enum
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from src.shared.auth.auth import verify_token
from src.shared.auth.database import get_db, User
from src.shared.config import get_settings
from src.shared.errors import AuthenticationError, AuthorizationError


class Role(str, enum.Enum):
    ANONYMOUS = "anonymous"
    USER = "user"
    ADMIN = "admin"


@dataclass(frozen=True)
class Identity:
    """Principal resolved for the duration of one request."""
    role: Role = Role.ANONYMOUS
    subject_id: Optional[str] = None
    email: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        return self.role != Role.ANONYMOUS


ANONYMOUS = Identity()


def _parse_authorization(header: Optional[str]) -> Optional[str]:
    if not header:
        return None
    parts = header.split()
    if len(parts) == 2 and parts[0].lower() == "bearer":
        return parts[1]
    return None


def extract_token(request: Request) -> Optional[str]:
    """Return the bearer token from header, cookie or query string, in that order."""
    settings = get_settings()
    token = _parse_authorization(request.headers.get("Authorization"))
    if token:
        return token
    token = request.cookies.get(settings.auth_cookie_name)
    if token:
        return token
    return request.query_params.get(settings.auth_query_param) or None


def resolve_identity(token: Optional[str], db: Session) -> Identity:
    """
    Resolve a token to an identity. Fails closed: anything that cannot be
    verified resolves to the anonymous identity.

    The role is read from the users table on every call so that revoked
    admins and deactivated accounts lose access immediately.
    """
    if not token:
        return ANONYMOUS

    payload = verify_token(token)
    if payload is None:
        return ANONYMOUS

    user_id = payload.get("sub")
    if not user_id:
        return ANONYMOUS

    user = db.query(User).filter(User.id == user_id).first()
    if user is None or not user.is_active:
        return ANONYMOUS

    role = Role.ADMIN if user.is_admin else Role.USER
    return Identity(role=role, subject_id=user.id, email=user.email)


def get_identity(request: Request, db: Session = Depends(get_db)) -> Identity:
    """Resolve the caller's identity without requiring one."""
    return resolve_identity(extract_token(request), db)


def require_user(identity: Identity = Depends(get_identity)) -> Identity:
    """Any signed-in account (user or admin)."""
    if not identity.is_authenticated:
        raise AuthenticationError("Authentication required.")
    return identity


def require_admin(identity: Identity = Depends(get_identity)) -> Identity:
    """Signed-in account with the admin role."""
    if not identity.is_authenticated:
        raise AuthenticationError("Authentication required.")
    if identity.role != Role.ADMIN:
        raise AuthorizationError("Admin access required.")
    return identity
