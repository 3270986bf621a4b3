"""
Profile Routes
================
Customer profile view / edit and order history.

Endpoints:
  GET   /api/profile         - Own profile with addresses
  PATCH /api/profile         - Update contact, tax code, avatar, addresses
  GET   /api/profile/orders  - Latest orders with their lines
"""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.orm import Session

from config.database import get_db
from common.helpers import money
from modules.auth.deps import require_login
from modules.auth.routes import AddressIn
from modules.customer.service import profile_service, profile_dict
from modules.order.service import order_summary, order_item_to_dict
from modules.user.models import User

router = APIRouter(prefix="/api/profile", tags=["profile"])


class ProfileUpdateRequest(BaseModel):
    full_name: Optional[str] = Field(None, min_length=1, max_length=128)
    phone: Optional[str] = Field(None, min_length=9, max_length=20)
    tax_code: Optional[str] = Field(None, pattern=r"^\d{10}(\d{3})?$")
    avatar_url: Optional[str] = Field(None, max_length=500)
    shipping_address: Optional[AddressIn] = None
    billing_address: Optional[AddressIn] = None

    @field_validator("avatar_url")
    @classmethod
    def _avatar(cls, v: Optional[str]) -> Optional[str]:
        # empty string resets to the default avatar
        if v and not v.startswith(("/", "http://", "https://")):
            raise ValueError("Avatar must be an absolute URL or a site path")
        return v


# ==========================================
# 👤 Profile
# ==========================================

@router.get("")
async def get_profile(me: User = Depends(require_login)):
    return {"profile": profile_dict(me)}


@router.patch("")
async def update_profile(
    body: ProfileUpdateRequest,
    me: User = Depends(require_login),
    db: Session = Depends(get_db),
):
    profile_service.update_profile(db, me, body.model_dump(exclude_unset=True))
    db.commit()
    db.refresh(me)
    return {"profile": profile_dict(me)}


# ==========================================
# 📦 Order history
# ==========================================

@router.get("/orders")
async def profile_orders(
    me: User = Depends(require_login),
    db: Session = Depends(get_db),
):
    data = []
    for order in profile_service.recent_orders(db, me):
        row = order_summary(order)
        row["shipping_fee"] = money(order.shipping_fee)
        row["note"] = order.note
        row["items"] = [order_item_to_dict(i) for i in order.items]
        data.append(row)
    return {"data": data}
