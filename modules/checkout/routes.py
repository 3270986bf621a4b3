"""
Checkout Module - Routes
==========================
Endpoints:
  POST /api/checkout          - Place an order from the current cart
  GET  /api/checkout/preview  - Price the current cart (optional ?coupon=)
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from config.database import get_db
from modules.auth.deps import get_current_user
from modules.cart.models import CartStatus
from modules.cart.routes import get_cart_token, apply_cart_cookie, clear_cart_cookie
from modules.cart.service import cart_service
from modules.checkout.service import checkout_service
from modules.order.models import PaymentType
from modules.user.models import User

router = APIRouter(prefix="/api/checkout", tags=["checkout"])


# ==========================================
# Schemas
# ==========================================

class AddressIn(BaseModel):
    # Completeness is checked after the cart, so nothing is required here
    line1: Optional[str] = Field(None, max_length=255)
    line2: Optional[str] = Field(None, max_length=255)
    city: Optional[str] = Field(None, max_length=120)
    state: Optional[str] = Field(None, max_length=120)
    postal_code: Optional[str] = Field(None, max_length=20)
    country: Optional[str] = Field(None, max_length=2)


class CheckoutRequest(BaseModel):
    full_name: Optional[str] = Field(None, max_length=128)
    email: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=20)
    tax_code: Optional[str] = Field(None, max_length=13)
    company_name: Optional[str] = Field(None, max_length=255)
    shipping_address: Optional[AddressIn] = None

    payment_type: PaymentType = PaymentType.COD
    payment_method: Optional[str] = Field(None, max_length=120)
    coupon: Optional[str] = Field(None, max_length=32)
    note: Optional[str] = Field(None, max_length=1000)

    invoice: bool = False
    use_separate_billing: bool = False
    billing_address: Optional[AddressIn] = None

    item_ids: Optional[List[int]] = None


# ==========================================
# POST /api/checkout
# ==========================================

@router.post("", status_code=201)
async def checkout(
    body: CheckoutRequest,
    response: Response,
    user: Optional[User] = Depends(get_current_user),
    token: Optional[str] = Depends(get_cart_token),
    db: Session = Depends(get_db),
):
    resolution = cart_service.resolve_cart(db, user, token, create=False)
    data = body.model_dump()
    data["payment_type"] = body.payment_type.value

    preview = checkout_service.checkout(db, resolution.cart, user, data)
    closed = resolution.cart.status == CartStatus.CHECKED_OUT.value
    db.commit()

    if closed and resolution.cart.token == token:
        clear_cart_cookie(response)
    else:
        apply_cart_cookie(response, resolution)
    return {"ok": True, "order_preview": preview}


# ==========================================
# GET /api/checkout/preview
# ==========================================

@router.get("/preview")
async def checkout_preview(
    response: Response,
    coupon: Optional[str] = None,
    user: Optional[User] = Depends(get_current_user),
    token: Optional[str] = Depends(get_cart_token),
    db: Session = Depends(get_db),
):
    resolution = cart_service.resolve_cart(db, user, token, create=False)
    result = checkout_service.preview(resolution.cart, coupon)
    db.commit()
    apply_cart_cookie(response, resolution)
    return result
