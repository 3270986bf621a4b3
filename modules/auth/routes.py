"""
Auth Module - Routes
=====================
Register, login, logout, current user, password reset.

NOTE: Unified auth: single auth_token cookie (or Bearer header) for all roles.
Login and registration fold the caller's guest cart into their account.
"""

import logging
import re
from typing import Optional

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, Field, field_validator, model_validator
from sqlalchemy.orm import Session

from config.database import get_db
from config.settings import AUTH_COOKIE
from common.helpers import EMAIL_RE
from common.security import get_cookie_kwargs
from modules.auth.deps import require_login
from modules.auth.service import auth_service, TOKEN_EXPIRES_IN
from modules.cart.routes import get_cart_token, clear_cart_cookie
from modules.cart.service import cart_service
from modules.user.models import User

logger = logging.getLogger("ahso.auth")

router = APIRouter(prefix="/api/auth", tags=["auth"])


# ==========================================
# Schemas
# ==========================================

def check_password_strength(v: str) -> str:
    if not (re.search(r"[a-z]", v) and re.search(r"[A-Z]", v) and re.search(r"\d", v)):
        raise ValueError("Password needs upper-case, lower-case and a digit")
    return v


class AddressIn(BaseModel):
    line1: str = Field(..., min_length=1, max_length=255)
    line2: Optional[str] = Field(None, max_length=255)
    city: str = Field(..., min_length=1, max_length=120)
    state: Optional[str] = Field(None, max_length=120)
    postal_code: Optional[str] = Field(None, max_length=20)
    country: str = Field("VN", min_length=2, max_length=2)


class RegisterRequest(BaseModel):
    username: str = Field(..., min_length=3, max_length=32, pattern=r"^[a-z0-9_.-]+$")
    password: str = Field(..., min_length=8, max_length=128)
    full_name: str = Field(..., min_length=1, max_length=128)
    email: str = Field(..., max_length=255)
    phone: str = Field(..., min_length=9, max_length=20)
    tax_code: Optional[str] = Field(None, pattern=r"^\d{10}(\d{3})?$")
    shipping_address: AddressIn
    billing_address: Optional[AddressIn] = None

    @field_validator("password")
    @classmethod
    def _strong_password(cls, v: str) -> str:
        return check_password_strength(v)

    @field_validator("email")
    @classmethod
    def _email(cls, v: str) -> str:
        if not EMAIL_RE.match(v.strip()):
            raise ValueError("Invalid email address")
        return v.strip()


class LoginRequest(BaseModel):
    identifier: Optional[str] = None
    username: Optional[str] = None
    email: Optional[str] = None
    password: str = Field(..., min_length=1)

    @model_validator(mode="after")
    def _need_identity(self):
        if not (self.identifier or self.username or self.email):
            raise ValueError("Username, email, or identifier is required")
        return self


class ForgotPasswordRequest(BaseModel):
    email: str = Field(..., pattern=r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class ResetPasswordRequest(BaseModel):
    token: str = Field(..., min_length=1)
    password: str = Field(..., min_length=8, max_length=128)

    @field_validator("password")
    @classmethod
    def _strong_password(cls, v: str) -> str:
        return check_password_strength(v)


# ==========================================
# Helpers
# ==========================================

def _set_auth_cookie(response: Response, token: str) -> None:
    response.set_cookie(AUTH_COOKIE, token, **get_cookie_kwargs())


# ==========================================
# POST /api/auth/register
# ==========================================

@router.post("/register", status_code=201)
async def register(
    body: RegisterRequest,
    response: Response,
    cart_token: Optional[str] = Depends(get_cart_token),
    db: Session = Depends(get_db),
):
    user = auth_service.register(db, body.model_dump())
    cart_service.merge_guest_cart(db, user, cart_token)
    db.commit()
    db.refresh(user)

    token = auth_service.issue_token(user)
    _set_auth_cookie(response, token)
    clear_cart_cookie(response)
    return {"user": user.to_public_dict(), "token": token}


# ==========================================
# POST /api/auth/login
# ==========================================

@router.post("/login")
async def login(
    body: LoginRequest,
    response: Response,
    cart_token: Optional[str] = Depends(get_cart_token),
    db: Session = Depends(get_db),
):
    user = auth_service.authenticate(
        db, body.password,
        identifier=body.identifier or "",
        username=body.username or "",
        email=body.email or "",
    )
    cart_service.merge_guest_cart(db, user, cart_token)
    db.commit()

    token = auth_service.issue_token(user)
    _set_auth_cookie(response, token)
    clear_cart_cookie(response)
    logger.info(f"Login: {user.username}")
    return {
        "token_type": "Bearer",
        "token": token,
        "expires_in": TOKEN_EXPIRES_IN,
        "user": user.to_public_dict(),
    }


# ==========================================
# POST /api/auth/logout
# ==========================================

@router.post("/logout")
async def logout(response: Response):
    response.delete_cookie(AUTH_COOKIE, path="/")
    return {"ok": True}


# ==========================================
# GET /api/auth/me
# ==========================================

@router.get("/me")
async def me(user: User = Depends(require_login)):
    return {"user": user.to_public_dict()}


# ==========================================
# POST /api/auth/forgot-password
# ==========================================

@router.post("/forgot-password")
async def forgot_password(body: ForgotPasswordRequest, db: Session = Depends(get_db)):
    # Same answer whether or not the email exists
    auth_service.request_password_reset(db, body.email)
    return {"ok": True, "message": "If the email exists, a reset link has been sent."}


# ==========================================
# POST /api/auth/reset-password
# ==========================================

@router.post("/reset-password")
async def reset_password(body: ResetPasswordRequest, db: Session = Depends(get_db)):
    auth_service.reset_password(db, body.token, body.password)
    db.commit()
    return {"ok": True, "message": "Password has been reset."}
