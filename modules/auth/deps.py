"""
Auth Module - Dependencies
===========================
FastAPI dependencies for user authentication and authorization.
These are injected into route handlers via Depends().

Token is read from `Authorization: Bearer` first, then the auth_token cookie.
"""

from typing import Optional

from fastapi import Request, Depends
from sqlalchemy.orm import Session

from config.database import get_db
from common.exceptions import AuthenticationError, ForbiddenError
from common.helpers import safe_int
from common.security import decode_token, get_token_from_request
from modules.user.models import User, UserRole


def get_current_user(request: Request, db: Session = Depends(get_db)) -> Optional[User]:
    """
    Identify the current user from the request token.
    Returns User object or None (anonymous, invalid token, or blocked user).
    """
    token = get_token_from_request(request)
    if not token:
        return None

    payload = decode_token(token)
    if not payload or payload.get("type"):
        # missing, invalid, or a purpose-bound token (password reset)
        return None

    user_id = safe_int(payload.get("sub"))
    if not user_id:
        return None

    user = db.query(User).filter(User.id == user_id).first()
    if not user or user.is_blocked:
        return None
    return user


def require_login(user: Optional[User] = Depends(get_current_user)) -> User:
    """Require any authenticated user. Raises 401 if not logged in."""
    if not user:
        raise AuthenticationError("Login required.", code="LOGIN_REQUIRED")
    return user


def require_role(*roles: UserRole):
    """
    Factory: returns a dependency that only admits users with one of `roles`.

    Usage:
      user=Depends(require_role(UserRole.ADMIN))
      user=Depends(require_role(UserRole.STAFF, UserRole.ADMIN))
    """
    allowed = {r.value for r in roles}

    def dependency(user: User = Depends(require_login)) -> User:
        if user.role not in allowed:
            raise ForbiddenError("You do not have access to this resource.")
        return user

    return dependency


require_staff = require_role(UserRole.STAFF, UserRole.ADMIN)
require_admin = require_role(UserRole.ADMIN)
