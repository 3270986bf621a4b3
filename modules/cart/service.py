"""
Cart Module - Service Layer
==============================
Cart resolution (user / guest cookie), add / update / remove lines,
guest-to-user merge, totals, and abandoned guest cart cleanup.
"""

import logging
from datetime import timedelta
from decimal import Decimal
from typing import NamedTuple, Optional

from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError

from common.exceptions import ForbiddenError, NotFoundError, InsufficientStockError
from common.helpers import generate_cart_token, money, now_utc, quantize_money
from config.settings import DEFAULT_CURRENCY
from modules.cart.models import Cart, CartItem, CartStatus
from modules.catalog.models import ProductVariant
from modules.user.models import User

logger = logging.getLogger("ahso.cart")


class CartResolution(NamedTuple):
    """Resolved cart plus what the route must do with the guest cookie."""
    cart: Optional[Cart]
    set_token: Optional[str] = None
    clear_cookie: bool = False


class CartService:

    # ==========================================
    # Resolution
    # ==========================================

    def resolve_cart(
        self, db: Session, user: Optional[User], token: Optional[str], create: bool = True,
    ) -> CartResolution:
        """
        Find the caller's ACTIVE cart.

        1. user owns an ACTIVE cart -> that cart
        2. user + ACTIVE guest cart for the cookie -> re-parent it to the user
        3. user -> new user cart
        4. anonymous -> cookie cart, else a new guest cart with a fresh token

        With create=False steps 3 and 4 never create; cart may be None.
        An authenticated caller's cookie is cleared unless it still points at
        a live guest cart that is waiting for an explicit merge.
        """
        if user:
            clear = bool(token)
            cart = self._active_user_cart(db, user.id)
            guest = self._active_guest_cart(db, token)
            if cart:
                return CartResolution(cart, clear_cookie=clear and guest is None)

            if guest:
                adopted = self._adopt(db, guest, user.id)
                return CartResolution(adopted, clear_cookie=clear)

            if not create:
                return CartResolution(None, clear_cookie=clear)
            return CartResolution(self._create_user_cart(db, user.id), clear_cookie=clear)

        guest = self._active_guest_cart(db, token)
        if guest or not create:
            return CartResolution(guest)

        cart = Cart(token=generate_cart_token(), status=CartStatus.ACTIVE.value)
        db.add(cart)
        db.flush()
        logger.info(f"Guest cart #{cart.id} created")
        return CartResolution(cart, set_token=cart.token)

    def _active_user_cart(self, db: Session, user_id: int) -> Optional[Cart]:
        return db.query(Cart).filter(
            Cart.user_id == user_id,
            Cart.status == CartStatus.ACTIVE.value,
        ).first()

    def _active_guest_cart(self, db: Session, token: Optional[str]) -> Optional[Cart]:
        if not token:
            return None
        return db.query(Cart).filter(
            Cart.token == token,
            Cart.user_id.is_(None),
            Cart.status == CartStatus.ACTIVE.value,
        ).first()

    def _create_user_cart(self, db: Session, user_id: int) -> Cart:
        try:
            with db.begin_nested():
                cart = Cart(token=generate_cart_token(), user_id=user_id, status=CartStatus.ACTIVE.value)
                db.add(cart)
        except IntegrityError:
            # Concurrent request created it first
            cart = self._active_user_cart(db, user_id)
            if not cart:
                raise
        return cart

    def _adopt(self, db: Session, guest: Cart, user_id: int) -> Cart:
        try:
            with db.begin_nested():
                guest.user_id = user_id
        except IntegrityError:
            db.refresh(guest)
            cart = self._active_user_cart(db, user_id)
            if not cart:
                raise
            return cart
        logger.info(f"Guest cart #{guest.id} adopted by user #{user_id}")
        return guest

    # ==========================================
    # Lines
    # ==========================================

    def _find_line(self, db: Session, cart_id: int, variant_id: int) -> Optional[CartItem]:
        return db.query(CartItem).filter(
            CartItem.cart_id == cart_id,
            CartItem.variant_id == variant_id,
        ).first()

    def add_item(self, db: Session, cart: Cart, variant: ProductVariant, quantity: int) -> CartItem:
        """
        Increment the variant's line or create it with a price snapshot.

        Raises:
            InsufficientStockError if the resulting quantity exceeds available stock
        """
        existing = self._find_line(db, cart.id, variant.id)
        current = existing.quantity if existing else 0
        available = variant.available_stock
        if current + quantity > available:
            raise InsufficientStockError(
                available=available, item_id=existing.id if existing else None, sku=variant.sku,
            )

        price = quantize_money(variant.price)
        line = None
        if existing is None:
            try:
                with db.begin_nested():
                    line = CartItem(
                        cart_id=cart.id, variant_id=variant.id, quantity=quantity,
                        unit_price=price, line_total=price * quantity,
                    )
                    db.add(line)
            except IntegrityError:
                # Another request inserted the same line; fall through to the increment
                line = None

        if line is None:
            db.query(CartItem).filter(
                CartItem.cart_id == cart.id,
                CartItem.variant_id == variant.id,
            ).update({
                CartItem.quantity: CartItem.quantity + quantity,
                CartItem.unit_price: price,
                CartItem.line_total: (CartItem.quantity + quantity) * price,
            }, synchronize_session=False)
            line = db.query(CartItem).populate_existing().filter(
                CartItem.cart_id == cart.id,
                CartItem.variant_id == variant.id,
            ).one()

        self.recalc_totals(db, cart)
        logger.info(f"Cart #{cart.id}: +{quantity} x {variant.sku} (line qty {line.quantity})")
        return line

    def set_quantity(self, db: Session, cart: Optional[Cart], item_id: int, quantity: int) -> Optional[CartItem]:
        """
        Set a line's absolute quantity. quantity <= 0 deletes the line.

        Raises:
            NotFoundError if the line doesn't exist
            ForbiddenError if it belongs to another cart
            InsufficientStockError if quantity exceeds available stock
        """
        item = db.query(CartItem).filter(CartItem.id == item_id).first()
        if not item:
            raise NotFoundError("Cart item not found.")
        if cart is None or item.cart_id != cart.id:
            raise ForbiddenError("Cart item does not belong to your cart.")

        if quantity <= 0:
            db.delete(item)
            self.recalc_totals(db, cart)
            return None

        variant = item.variant
        if not variant or not variant.is_active:
            raise NotFoundError("Product not found.", code="PRODUCT_NOT_FOUND")
        if quantity > variant.available_stock:
            raise InsufficientStockError(available=variant.available_stock, item_id=item.id, sku=variant.sku)

        price = quantize_money(variant.price)
        item.quantity = quantity
        item.unit_price = price
        item.line_total = price * quantity
        self.recalc_totals(db, cart)
        return item

    def remove_item(self, db: Session, cart: Optional[Cart], item_id: int) -> None:
        """Delete a line. Missing lines are a no-op; lines of other carts are forbidden."""
        item = db.query(CartItem).filter(CartItem.id == item_id).first()
        if not item:
            return
        if cart is None or item.cart_id != cart.id:
            raise ForbiddenError("Cart item does not belong to your cart.")
        db.delete(item)
        self.recalc_totals(db, cart)

    def remove_lines(self, db: Session, cart: Cart, item_ids) -> None:
        """Drop checked-out lines; the cart closes once it has none left."""
        ids = set(item_ids)
        for item in list(cart.items):
            if item.id in ids:
                cart.items.remove(item)
        db.flush()
        if not cart.items:
            cart.status = CartStatus.CHECKED_OUT.value
        self.recalc_totals(db, cart)

    # ==========================================
    # Merge
    # ==========================================

    def merge_guest_cart(self, db: Session, user: User, token: Optional[str]) -> Optional[Cart]:
        """
        Fold the cookie's guest cart into the user's ACTIVE cart.
        Same variant: quantities summed at the user line's unit price.
        User without a cart: guest cart is adopted as-is.
        No eligible guest cart: no-op, returns the user's cart (if any).
        """
        guest = self._active_guest_cart(db, token)
        user_cart = self._active_user_cart(db, user.id)
        if not guest:
            return user_cart

        if not user_cart:
            cart = self._adopt(db, guest, user.id)
            self.recalc_totals(db, cart)
            return cart

        lines = {line.variant_id: line for line in user_cart.items}
        moved = 0
        for g in guest.items:
            target = lines.get(g.variant_id)
            if target:
                target.quantity += g.quantity
                target.line_total = quantize_money(target.unit_price) * target.quantity
            else:
                user_cart.items.append(CartItem(
                    variant_id=g.variant_id,
                    quantity=g.quantity,
                    unit_price=g.unit_price,
                    line_total=g.line_total,
                ))
            moved += 1

        db.delete(guest)
        db.flush()
        self.recalc_totals(db, user_cart)
        logger.info(f"Merged guest cart ({moved} lines) into cart #{user_cart.id} of user #{user.id}")
        return user_cart

    # ==========================================
    # Totals & serialization
    # ==========================================

    def recalc_totals(self, db: Session, cart: Cart) -> Cart:
        db.flush()
        db.expire(cart, ["items"])
        subtotal = sum((quantize_money(i.line_total) for i in cart.items), Decimal("0"))
        # line edits alone don't bump the cart row; cleanup keys on updated_at
        cart.updated_at = now_utc()
        cart.subtotal = subtotal
        cart.discount_total = Decimal("0")
        cart.tax_total = Decimal("0")
        cart.shipping_fee = Decimal("0")
        cart.grand_total = subtotal
        db.flush()
        return cart

    def serialize(self, cart: Optional[Cart]) -> dict:
        if cart is None:
            return {
                "id": None, "status": CartStatus.ACTIVE.value, "items": [], "item_count": 0,
                "currency": DEFAULT_CURRENCY,
                "totals": {k: 0 for k in ("subtotal", "discount_total", "tax_total", "shipping_fee", "grand_total")},
            }
        items = []
        for item in cart.items:
            v = item.variant
            product = v.product if v else None
            items.append({
                "id": item.id,
                "variant_id": item.variant_id,
                "sku": v.sku if v else None,
                "name": v.display_name if v else None,
                "slug": product.slug if product else None,
                "image": (product.cover_image if product else None) or "",
                "quantity": item.quantity,
                "unit_price": money(item.unit_price),
                "line_total": money(item.line_total),
                "available": v.available_stock if v else 0,
            })
        return {
            "id": cart.id,
            "status": cart.status,
            "items": items,
            "item_count": sum(i["quantity"] for i in items),
            "currency": DEFAULT_CURRENCY,
            "totals": {
                "subtotal": money(cart.subtotal),
                "discount_total": money(cart.discount_total),
                "tax_total": money(cart.tax_total),
                "shipping_fee": money(cart.shipping_fee),
                "grand_total": money(cart.grand_total),
            },
        }

    # ==========================================
    # Maintenance
    # ==========================================

    def cleanup_guest_carts(self, db: Session, older_than_days: int) -> int:
        """Delete guest carts untouched for `older_than_days`. Returns count."""
        cutoff = now_utc() - timedelta(days=older_than_days)
        stale = db.query(Cart).filter(
            Cart.user_id.is_(None),
            Cart.updated_at < cutoff,
        ).all()
        for cart in stale:
            db.delete(cart)
        db.flush()
        return len(stale)


# Singleton
cart_service = CartService()
