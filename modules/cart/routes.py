"""
Cart Module - Routes
======================
JSON cart API. Anonymous callers are tracked by the HTTP-only `cart_id`
cookie; authenticated callers by their user id.

Endpoints:
  GET    /api/cart                 - Current cart (never creates one)
  POST   /api/cart/items           - Add a variant (by id or SKU)
  PATCH  /api/cart/items/{item_id} - Set quantity (<= 0 removes)
  DELETE /api/cart/items/{item_id} - Remove a line
  POST   /api/cart/merge           - Fold the guest cart into the user's cart
"""

from typing import Optional

from fastapi import APIRouter, Request, Response, Depends
from pydantic import BaseModel, Field, model_validator
from sqlalchemy.orm import Session

from config.database import get_db
from config.settings import CART_COOKIE, CART_COOKIE_MAX_AGE
from common.security import get_cookie_kwargs
from modules.auth.deps import get_current_user, require_login
from modules.cart.service import cart_service, CartResolution
from modules.catalog.service import variant_service
from modules.user.models import User

router = APIRouter(prefix="/api/cart", tags=["cart"])


# ==========================================
# Schemas
# ==========================================

class AddItemRequest(BaseModel):
    variant_id: Optional[int] = Field(None, gt=0)
    sku: Optional[str] = None
    quantity: int = Field(1, ge=1, le=9999)

    @model_validator(mode="after")
    def _need_target(self):
        if not self.variant_id and not (self.sku or "").strip():
            raise ValueError("variant_id or sku is required")
        return self


class SetQuantityRequest(BaseModel):
    quantity: int = Field(..., le=9999)


# ==========================================
# Cookie helpers
# ==========================================

def get_cart_token(request: Request) -> Optional[str]:
    return request.cookies.get(CART_COOKIE) or None


def apply_cart_cookie(response: Response, resolution: CartResolution) -> None:
    if resolution.set_token:
        response.set_cookie(CART_COOKIE, resolution.set_token, **get_cookie_kwargs(max_age=CART_COOKIE_MAX_AGE))
    elif resolution.clear_cookie:
        clear_cart_cookie(response)


def clear_cart_cookie(response: Response) -> None:
    response.delete_cookie(CART_COOKIE, path="/")


# ==========================================
# GET /api/cart
# ==========================================

@router.get("")
async def get_cart(
    response: Response,
    user: Optional[User] = Depends(get_current_user),
    token: Optional[str] = Depends(get_cart_token),
    db: Session = Depends(get_db),
):
    resolution = cart_service.resolve_cart(db, user, token, create=False)
    db.commit()
    apply_cart_cookie(response, resolution)
    return cart_service.serialize(resolution.cart)


# ==========================================
# POST /api/cart/items
# ==========================================

@router.post("/items", status_code=201)
async def add_item(
    body: AddItemRequest,
    response: Response,
    user: Optional[User] = Depends(get_current_user),
    token: Optional[str] = Depends(get_cart_token),
    db: Session = Depends(get_db),
):
    variant = variant_service.find_purchasable(db, variant_id=body.variant_id, sku=body.sku)
    resolution = cart_service.resolve_cart(db, user, token)
    line = cart_service.add_item(db, resolution.cart, variant, body.quantity)
    db.commit()
    apply_cart_cookie(response, resolution)
    return {
        "ok": True,
        "item_id": line.id,
        "cart": cart_service.serialize(resolution.cart),
    }


# ==========================================
# PATCH /api/cart/items/{item_id}
# ==========================================

@router.patch("/items/{item_id}")
async def update_item(
    item_id: int,
    body: SetQuantityRequest,
    response: Response,
    user: Optional[User] = Depends(get_current_user),
    token: Optional[str] = Depends(get_cart_token),
    db: Session = Depends(get_db),
):
    resolution = cart_service.resolve_cart(db, user, token, create=False)
    cart_service.set_quantity(db, resolution.cart, item_id, body.quantity)
    db.commit()
    apply_cart_cookie(response, resolution)
    return {"ok": True, "cart": cart_service.serialize(resolution.cart)}


# ==========================================
# DELETE /api/cart/items/{item_id}
# ==========================================

@router.delete("/items/{item_id}")
async def remove_item(
    item_id: int,
    response: Response,
    user: Optional[User] = Depends(get_current_user),
    token: Optional[str] = Depends(get_cart_token),
    db: Session = Depends(get_db),
):
    resolution = cart_service.resolve_cart(db, user, token, create=False)
    cart_service.remove_item(db, resolution.cart, item_id)
    db.commit()
    apply_cart_cookie(response, resolution)
    return {"ok": True, "cart": cart_service.serialize(resolution.cart)}


# ==========================================
# POST /api/cart/merge
# ==========================================

@router.post("/merge")
async def merge_cart(
    response: Response,
    user: User = Depends(require_login),
    token: Optional[str] = Depends(get_cart_token),
    db: Session = Depends(get_db),
):
    cart = cart_service.merge_guest_cart(db, user, token)
    db.commit()
    clear_cart_cookie(response)
    return {"ok": True, "cart": cart_service.serialize(cart)}
