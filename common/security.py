"""
AHSO Store - Security Utilities
=================================
JWT tokens, bcrypt password hashing, and cookie helpers.

NOTE: Single JWT for all roles (USER / STAFF / ADMIN); role travels in the payload.
"""

import logging
from datetime import timedelta
from typing import Optional

import bcrypt
from fastapi import Request
from jose import jwt, JWTError

from config.settings import (
    JWT_SECRET, ALGORITHM, ACCESS_TOKEN_EXPIRE_MINUTES,
    AUTH_COOKIE, BCRYPT_ROUNDS, COOKIE_SECURE, COOKIE_SAMESITE,
)
from common.helpers import now_utc

logger = logging.getLogger("ahso.security")


# ==========================================
# Passwords
# ==========================================

def hash_password(password: str) -> str:
    """Hash a plaintext password with bcrypt."""
    salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        logger.warning("Malformed password hash encountered")
        return False


# ==========================================
# JWT Tokens
# ==========================================

# Purpose-bound tokens carry a "type" claim; session tokens carry none
PASSWORD_RESET_TOKEN = "password-reset"


def create_token(data: dict, expires_minutes: int = ACCESS_TOKEN_EXPIRE_MINUTES) -> str:
    """Create a signed JWT for a user payload."""
    to_encode = data.copy()
    now = now_utc()
    to_encode["iat"] = now
    to_encode["exp"] = now + timedelta(minutes=expires_minutes)
    return jwt.encode(to_encode, JWT_SECRET, algorithm=ALGORITHM)


def decode_token(token: str) -> Optional[dict]:
    """Decode a JWT token. Returns payload or None."""
    try:
        return jwt.decode(token, JWT_SECRET, algorithms=[ALGORITHM])
    except JWTError:
        return None


def get_token_from_request(request: Request) -> Optional[str]:
    """Bearer header first, then the auth cookie."""
    auth = request.headers.get("authorization") or ""
    if auth[:7].lower() == "bearer ":
        token = auth[7:].strip()
        if token:
            return token
    return request.cookies.get(AUTH_COOKIE) or None


# ==========================================
# Cookie Helpers
# ==========================================

def get_cookie_kwargs(max_age: int = ACCESS_TOKEN_EXPIRE_MINUTES * 60) -> dict:
    """Standard HTTP-only cookie settings."""
    return dict(
        httponly=True,
        secure=COOKIE_SECURE,
        samesite=COOKIE_SAMESITE,
        max_age=max_age,
        path="/",
    )
