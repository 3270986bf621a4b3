"""
User Module - User Model
==========================
Single users table for customers, staff and admins.
Role is one of USER / STAFF / ADMIN; blocked users cannot authenticate.
"""

import enum

from sqlalchemy import Column, Integer, String, Boolean, DateTime
from sqlalchemy.sql import func
from config.database import Base


class UserRole(str, enum.Enum):
    USER = "USER"
    STAFF = "STAFF"
    ADMIN = "ADMIN"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)

    # === Identity ===
    username = Column(String(32), unique=True, nullable=False, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    phone_e164 = Column(String(20), unique=True, nullable=True, index=True)
    password_hash = Column(String, nullable=False)

    # === Profile ===
    full_name = Column(String(128), nullable=False)
    tax_code = Column(String(13), nullable=True)
    avatar_url = Column(String, nullable=True)

    # === Shipping address ===
    shipping_line1 = Column(String, nullable=True)
    shipping_line2 = Column(String, nullable=True)
    shipping_city = Column(String, nullable=True)
    shipping_state = Column(String, nullable=True)
    shipping_postal_code = Column(String, nullable=True)
    shipping_country = Column(String(2), nullable=True)

    # === Billing address (null = same as shipping) ===
    billing_line1 = Column(String, nullable=True)
    billing_line2 = Column(String, nullable=True)
    billing_city = Column(String, nullable=True)
    billing_state = Column(String, nullable=True)
    billing_postal_code = Column(String, nullable=True)
    billing_country = Column(String(2), nullable=True)

    # === Access ===
    role = Column(String, default=UserRole.USER.value, server_default=UserRole.USER.value, nullable=False, index=True)
    is_blocked = Column(Boolean, default=False, server_default="false", nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    @property
    def is_staff(self) -> bool:
        return self.role in (UserRole.STAFF.value, UserRole.ADMIN.value)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value

    def to_public_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "full_name": self.full_name,
            "email": self.email,
            "phone_e164": self.phone_e164,
            "role": self.role,
            "avatar_url": self.avatar_url or "/logo.png",
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<User {self.username} ({self.role})>"
