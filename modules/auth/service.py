"""
Auth Module - Service Layer
=============================
Business logic for registration, credential checks, and token creation.
"""

import hashlib
import logging
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError

from common.exceptions import (
    AuthenticationError, ConflictError, ForbiddenError, InvalidInputError, NotFoundError,
)
from common.helpers import safe_int, to_e164_vn
from common.security import (
    hash_password, verify_password, create_token, decode_token, PASSWORD_RESET_TOKEN,
)
from config.settings import ACCESS_TOKEN_EXPIRE_MINUTES, APP_URL, PASSWORD_RESET_EXPIRE_MINUTES
from modules.user.models import User, UserRole

logger = logging.getLogger("ahso.auth")

TOKEN_EXPIRES_IN = ACCESS_TOKEN_EXPIRE_MINUTES * 60


def address_fields(prefix: str, address: Optional[dict]) -> dict:
    if not address:
        return {}
    return {
        f"{prefix}_line1": address.get("line1"),
        f"{prefix}_line2": address.get("line2") or None,
        f"{prefix}_city": address.get("city"),
        f"{prefix}_state": address.get("state") or None,
        f"{prefix}_postal_code": address.get("postal_code") or None,
        f"{prefix}_country": (address.get("country") or "VN").upper(),
    }


def _password_fingerprint(user: User) -> str:
    """Short digest of the current hash; a reset link dies once the password changes."""
    return hashlib.sha256(user.password_hash.encode("utf-8")).hexdigest()[:16]


def same_address(a: dict, b: dict) -> bool:
    keys = ("line1", "line2", "city", "state", "postal_code")
    return all((a.get(k) or "") == (b.get(k) or "") for k in keys) and \
        (a.get("country") or "VN").upper() == (b.get("country") or "VN").upper()


class AuthService:
    """Handles registration, login checks and token issuing."""

    def register(self, db: Session, data: dict, role: UserRole = UserRole.USER) -> User:
        """
        Create a new account.

        Raises:
            ConflictError if email, username or phone is taken
        """
        username = data["username"].strip().lower()
        email = data["email"].strip().lower()
        phone = to_e164_vn(data["phone"])

        conflict = db.query(User.id).filter(
            or_(User.email == email, User.username == username, User.phone_e164 == phone)
        ).first()
        if conflict:
            raise ConflictError("Email, username or phone already exists.")

        shipping = data.get("shipping_address") or {}
        billing = data.get("billing_address")

        user = User(
            username=username,
            email=email,
            phone_e164=phone,
            password_hash=hash_password(data["password"]),
            full_name=data["full_name"].strip(),
            tax_code=data.get("tax_code") or None,
            role=role.value,
            **address_fields("shipping", shipping),
        )
        if billing and not same_address(shipping, billing):
            for key, value in address_fields("billing", billing).items():
                setattr(user, key, value)

        try:
            db.add(user)
            db.flush()
        except IntegrityError:
            db.rollback()
            # Race condition: another request registered the same identity
            raise ConflictError("Email, username or phone already exists.")

        logger.info(f"Registered user {user.username} ({user.role})")
        return user

    def authenticate(
        self, db: Session, password: str,
        identifier: str = "", username: str = "", email: str = "",
    ) -> User:
        """
        Resolve a user by identifier (username / email / phone) and check the password.

        Raises:
            AuthenticationError on unknown user or wrong password
            ForbiddenError if the account is blocked
        """
        if identifier:
            ident = identifier.strip().lower()
            phone = ident if ident.startswith("+") else to_e164_vn(ident)
            criteria = or_(User.username == ident, User.email == ident, User.phone_e164 == phone)
        elif username:
            criteria = User.username == username.strip().lower()
        elif email:
            criteria = User.email == email.strip().lower()
        else:
            raise InvalidInputError("Username, email, or identifier is required.", code="VALIDATION_ERROR")

        user = db.query(User).filter(criteria).first()
        if not user or not verify_password(password, user.password_hash):
            raise AuthenticationError("Invalid credentials.", code="INVALID_CREDENTIALS")

        if user.is_blocked:
            raise ForbiddenError("Account is blocked.", code="ACCOUNT_BLOCKED")

        return user

    def issue_token(self, user: User) -> str:
        return create_token({
            "sub": str(user.id),
            "username": user.username,
            "email": user.email,
            "role": user.role,
        })

    # ==========================================
    # Password reset
    # ==========================================

    def request_password_reset(self, db: Session, email: str) -> Optional[str]:
        """
        Issue a short-lived reset link for the account behind `email`.
        Unknown emails return None silently so callers cannot probe accounts.
        The link is written to the log in place of an email.
        """
        user = db.query(User).filter(User.email == email.strip().lower()).first()
        if not user:
            return None

        token = create_token(
            {"sub": str(user.id), "type": PASSWORD_RESET_TOKEN, "pwd": _password_fingerprint(user)},
            expires_minutes=PASSWORD_RESET_EXPIRE_MINUTES,
        )
        logger.info(
            f"Password reset for {user.username} <{user.email}>: "
            f"{APP_URL}/reset-password?token={token} (expires in {PASSWORD_RESET_EXPIRE_MINUTES} min)"
        )
        return token

    def reset_password(self, db: Session, token: str, new_password: str) -> User:
        """
        Raises:
            InvalidInputError (INVALID_TOKEN) on a bad, expired, used or foreign token
            NotFoundError if the account no longer exists
        """
        payload = decode_token(token)
        if not payload or payload.get("type") != PASSWORD_RESET_TOKEN:
            raise InvalidInputError("Reset link is invalid or has expired.", code="INVALID_TOKEN")

        user = db.query(User).filter(User.id == safe_int(payload.get("sub"))).first()
        if not user:
            raise NotFoundError("User not found.", code="USER_NOT_FOUND")
        if payload.get("pwd") != _password_fingerprint(user):
            raise InvalidInputError("Reset link has already been used.", code="INVALID_TOKEN")

        user.password_hash = hash_password(new_password)
        db.flush()
        logger.info(f"Password reset completed for {user.username}")
        return user


# Singleton instance
auth_service = AuthService()
