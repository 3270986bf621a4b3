"""
Customer Module - Profile Service
===================================
Self-service profile: contact details, tax code, avatar, and the
shipping / billing addresses that checkout pre-fills from.
"""

import logging
from typing import List, Optional

from sqlalchemy import desc
from sqlalchemy.orm import Session

from common.exceptions import ConflictError
from common.helpers import to_e164_vn
from modules.auth.service import address_fields, same_address
from modules.order.models import Order
from modules.user.models import User

logger = logging.getLogger("ahso.profile")

ADDRESS_KEYS = ("line1", "line2", "city", "state", "postal_code", "country")
RECENT_ORDERS_LIMIT = 50


def user_address(user: User, prefix: str) -> Optional[dict]:
    if not getattr(user, f"{prefix}_line1"):
        return None
    return {k: getattr(user, f"{prefix}_{k}") for k in ADDRESS_KEYS}


def profile_dict(user: User) -> dict:
    shipping = user_address(user, "shipping")
    billing = user_address(user, "billing")
    data = user.to_public_dict()
    data.update({
        "tax_code": user.tax_code,
        "shipping_address": shipping,
        # no separate billing address means invoices go to the shipping one
        "billing_address": billing or shipping,
        "billing_same_as_shipping": billing is None,
        "updated_at": user.updated_at.isoformat() if user.updated_at else None,
    })
    return data


class ProfileService:

    def update_profile(self, db: Session, user: User, data: dict) -> User:
        """
        Apply the fields present in `data`.
        billing_address=None (or equal to shipping) drops the separate billing address.

        Raises:
            ConflictError if the phone number belongs to another account
        """
        if data.get("full_name"):
            user.full_name = data["full_name"].strip()

        if data.get("phone"):
            phone = to_e164_vn(data["phone"])
            if db.query(User.id).filter(User.phone_e164 == phone, User.id != user.id).first():
                raise ConflictError("Phone already exists.", code="PHONE_TAKEN")
            user.phone_e164 = phone

        if "tax_code" in data:
            user.tax_code = data["tax_code"] or None
        if "avatar_url" in data:
            user.avatar_url = data["avatar_url"] or None

        if data.get("shipping_address"):
            for key, value in address_fields("shipping", data["shipping_address"]).items():
                setattr(user, key, value)

        if "billing_address" in data:
            billing = data["billing_address"]
            shipping = user_address(user, "shipping") or {}
            if not billing or same_address(shipping, billing):
                for key in ADDRESS_KEYS:
                    setattr(user, f"billing_{key}", None)
            else:
                for key, value in address_fields("billing", billing).items():
                    setattr(user, key, value)

        db.flush()
        logger.info(f"Profile of {user.username} updated: {sorted(data)}")
        return user

    def recent_orders(self, db: Session, user: User, limit: int = RECENT_ORDERS_LIMIT) -> List[Order]:
        return (
            db.query(Order)
            .filter(Order.user_id == user.id)
            .order_by(desc(Order.created_at), desc(Order.id))
            .limit(limit)
            .all()
        )


# Singleton
profile_service = ProfileService()
