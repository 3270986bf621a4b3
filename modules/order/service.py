"""
Order Module - Service Layer
===============================
Order placement with stock reservation, customer/staff queries,
and staff status updates (release or commit reserved stock).
"""

import logging
from datetime import datetime, time, timedelta
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func, or_, desc
from sqlalchemy.orm import Session

from common.exceptions import NotFoundError, ForbiddenError, InvalidInputError, InsufficientStockError
from common.helpers import generate_order_code, money, parse_paging, quantize_money
from modules.catalog.models import Product, ProductVariant
from modules.order.models import Order, OrderItem, OrderStatus, TERMINAL_STATUSES
from modules.user.models import User

logger = logging.getLogger("ahso.order")

# Statuses in which the order's quantities sit in stock_reserved
HOLDING_STATUSES = {OrderStatus.PENDING.value, OrderStatus.PAID.value, OrderStatus.PROCESSING.value}
# Statuses in which the quantities have left stock_on_hand
SHIPPED_STATUSES = {OrderStatus.SHIPPED.value, OrderStatus.DELIVERED.value}


# ==========================================
# Serializers
# ==========================================

def order_item_to_dict(item: OrderItem) -> dict:
    return {
        "id": item.id,
        "variant_id": item.variant_id,
        "sku": item.sku,
        "name": item.name,
        "slug": item.slug,
        "image": item.image or "",
        "quantity": item.quantity,
        "unit_price": money(item.unit_price),
        "line_total": money(item.line_total),
    }


def order_summary(order: Order) -> dict:
    return {
        "id": order.id,
        "code": order.code,
        "status": order.status,
        "created_at": order.created_at.isoformat() if order.created_at else None,
        "customer_name": order.customer_name,
        "customer_email": order.customer_email,
        "customer_phone": order.customer_phone,
        "payment_type": order.payment_type,
        "shipping_method": order.shipping_method,
        "item_count": sum(i.quantity for i in order.items),
        "grand_total": money(order.grand_total),
        "currency": order.currency,
    }


def order_to_dict(order: Order) -> dict:
    data = order_summary(order)
    billing = None
    if order.invoice_requested and order.billing_line1:
        billing = {
            "line1": order.billing_line1,
            "line2": order.billing_line2,
            "city": order.billing_city,
            "state": order.billing_state,
            "postal_code": order.billing_postal_code,
            "country": order.billing_country,
        }
    data.update({
        "updated_at": order.updated_at.isoformat() if order.updated_at else None,
        "company_name": order.company_name,
        "tax_code": order.tax_code,
        "shipping_address": {
            "line1": order.shipping_line1,
            "line2": order.shipping_line2,
            "city": order.shipping_city,
            "state": order.shipping_state,
            "postal_code": order.shipping_postal_code,
            "country": order.shipping_country,
        },
        "invoice_requested": order.invoice_requested,
        "billing_address": billing,
        "promo_code": order.promo_code,
        "note": order.note,
        "items": [order_item_to_dict(i) for i in order.items],
        "totals": {
            "subtotal": money(order.subtotal),
            "discount_total": money(order.discount_total),
            "tax_total": money(order.tax_total),
            "shipping_fee": money(order.shipping_fee),
            "grand_total": money(order.grand_total),
        },
    })
    return data


class OrderService:

    # ==========================================
    # Placement
    # ==========================================

    def place_order(
        self,
        db: Session,
        user_id: Optional[int],
        customer: dict,
        shipping: dict,
        lines: list,
        totals: dict,
        payment_type: str,
        billing: Optional[dict] = None,
        promo_code: Optional[str] = None,
        note: Optional[str] = None,
        currency: str = "VND",
    ) -> Order:
        """
        Persist an order from priced cart lines and reserve their stock.

        lines: CartItem objects (variant loaded)
        totals: output of checkout.pricing.compute_totals

        Raises InsufficientStockError if stock moved since validation.
        """
        order = Order(
            code=self._unique_code(db),
            user_id=user_id,
            status=OrderStatus.PENDING.value,
            customer_name=customer["full_name"],
            customer_email=customer["email"],
            customer_phone=customer["phone"],
            company_name=customer.get("company_name") or None,
            tax_code=customer.get("tax_code") or None,
            shipping_line1=shipping["line1"],
            shipping_line2=shipping.get("line2") or None,
            shipping_city=shipping["city"],
            shipping_state=shipping.get("state") or None,
            shipping_postal_code=shipping.get("postal_code") or None,
            shipping_country=(shipping.get("country") or "VN").upper(),
            invoice_requested=billing is not None,
            payment_type=payment_type,
            promo_code=promo_code,
            note=note or None,
            currency=currency,
            subtotal=totals["subtotal"],
            discount_total=totals["discount"],
            tax_total=totals["vat"],
            shipping_fee=totals["shipping_fee"],
            grand_total=totals["grand_total"],
        )
        if billing:
            order.billing_line1 = billing.get("line1")
            order.billing_line2 = billing.get("line2") or None
            order.billing_city = billing.get("city")
            order.billing_state = billing.get("state") or None
            order.billing_postal_code = billing.get("postal_code") or None
            order.billing_country = (billing.get("country") or "VN").upper()

        for line in lines:
            variant = (
                db.query(ProductVariant)
                .filter(ProductVariant.id == line.variant_id)
                .with_for_update()
                .populate_existing()
                .one()
            )
            if line.quantity > variant.available_stock:
                raise InsufficientStockError(available=variant.available_stock, item_id=line.id, sku=variant.sku)
            variant.stock_reserved = (variant.stock_reserved or 0) + line.quantity

            product = variant.product
            unit_price = quantize_money(line.unit_price)
            order.items.append(OrderItem(
                variant_id=variant.id,
                sku=variant.sku,
                name=variant.display_name,
                slug=product.slug if product else None,
                image=product.cover_image if product else None,
                quantity=line.quantity,
                unit_price=unit_price,
                line_total=unit_price * line.quantity,
            ))

        db.add(order)
        db.flush()
        logger.info(f"Order {order.code} placed: {len(order.items)} lines, total {order.grand_total}")
        return order

    def _unique_code(self, db: Session) -> str:
        for _ in range(10):
            code = generate_order_code()
            if not db.query(Order.id).filter(Order.code == code).first():
                return code
        raise RuntimeError("Could not allocate a unique order code")

    # ==========================================
    # Customer queries
    # ==========================================

    def list_user_orders(self, db: Session, user_id: int, page: int = 1, page_size: int = 10) -> Tuple[List[Order], int, int, int]:
        page, page_size, offset = parse_paging(page, page_size, default_size=10, max_size=50)
        q = db.query(Order).filter(Order.user_id == user_id)
        total = q.count()
        rows = q.order_by(desc(Order.created_at), desc(Order.id)).offset(offset).limit(page_size).all()
        return rows, total, page, page_size

    def get_for_user(self, db: Session, order_id: int, user: User) -> Order:
        """Owner or staff may read an order."""
        order = self.get(db, order_id)
        if order.user_id != user.id and not user.is_staff:
            raise ForbiddenError("You do not have access to this order.")
        return order

    def get(self, db: Session, order_id: int) -> Order:
        order = db.query(Order).filter(Order.id == order_id).first()
        if not order:
            raise NotFoundError("Order not found.")
        return order

    # ==========================================
    # Staff
    # ==========================================

    def staff_list(
        self,
        db: Session,
        q: str = "",
        status: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        page: int = 1,
        page_size: int = 15,
    ) -> Tuple[List[Order], int, Dict[str, int], int, int]:
        """
        Filtered, paged order list plus a per-status count under the same filters.
        Returns: (orders, total, stats, page, page_size)
        """
        page, page_size, offset = parse_paging(page, page_size, default_size=15, max_size=50)

        query = db.query(Order)
        if q:
            like = f"%{q.strip()}%"
            query = query.filter(or_(
                Order.code.ilike(like),
                Order.customer_name.ilike(like),
                Order.customer_email.ilike(like),
                Order.customer_phone.ilike(like),
            ))
        if status:
            query = query.filter(Order.status == status)
        if date_from:
            query = query.filter(Order.created_at >= date_from)
        if date_to:
            if date_to.time() == time(0, 0):
                # date-only upper bound covers the whole day
                date_to = date_to + timedelta(days=1) - timedelta(microseconds=1)
            query = query.filter(Order.created_at <= date_to)

        total = query.count()
        rows = query.order_by(desc(Order.created_at), desc(Order.id)).offset(offset).limit(page_size).all()

        stats = {s.value: 0 for s in OrderStatus}
        grouped = (
            query.with_entities(Order.status, func.count(Order.id))
            .group_by(Order.status)
            .all()
        )
        for st, count in grouped:
            stats[st] = count

        return rows, total, stats, page, page_size

    def staff_update(
        self, db: Session, order_id: int, actor: User,
        status: Optional[str] = None, note: Optional[str] = None, shipping_method: Optional[str] = None,
        fields: Optional[set] = None,
    ) -> Order:
        """
        Apply a staff edit. `fields` names the keys present in the request
        so an explicit empty note/shipping_method clears the value.

        Raises:
            NotFoundError, InvalidInputError (terminal order or backwards move)
        """
        fields = fields or set()
        order = db.query(Order).filter(Order.id == order_id).with_for_update().populate_existing().first()
        if not order:
            raise NotFoundError("Order not found.")

        if status and status != order.status:
            self._transition(db, order, status)
            logger.info(f"Order {order.code}: status -> {status} by {actor.username}")

        if "note" in fields:
            order.note = note or None
        if "shipping_method" in fields:
            order.shipping_method = shipping_method or None

        db.flush()
        return order

    def _transition(self, db: Session, order: Order, new_status: str) -> None:
        old = order.status
        if old in TERMINAL_STATUSES:
            raise InvalidInputError(f"Order is already {old}.", code="INVALID_TRANSITION")
        if old in SHIPPED_STATUSES and new_status in HOLDING_STATUSES:
            raise InvalidInputError("A shipped order cannot move back.", code="INVALID_TRANSITION")

        if old in HOLDING_STATUSES:
            if new_status == OrderStatus.CANCELLED.value:
                self._release_stock(db, order)
            elif new_status in SHIPPED_STATUSES:
                self._commit_stock(db, order)
        elif old == OrderStatus.SHIPPED.value and new_status == OrderStatus.CANCELLED.value:
            self._restock(db, order)

        order.status = new_status

    # ==========================================
    # Stock movements
    # ==========================================

    def _locked_variants(self, db: Session, order: Order):
        for item in order.items:
            if not item.variant_id:
                continue
            variant = (
                db.query(ProductVariant)
                .filter(ProductVariant.id == item.variant_id)
                .with_for_update()
                .populate_existing()
                .first()
            )
            if variant:
                yield item, variant

    def _release_stock(self, db: Session, order: Order) -> None:
        for item, variant in self._locked_variants(db, order):
            variant.stock_reserved = max(0, (variant.stock_reserved or 0) - item.quantity)

    def _commit_stock(self, db: Session, order: Order) -> None:
        for item, variant in self._locked_variants(db, order):
            variant.stock_reserved = max(0, (variant.stock_reserved or 0) - item.quantity)
            variant.stock_on_hand = max(0, (variant.stock_on_hand or 0) - item.quantity)
            db.query(Product).filter(Product.id == variant.product_id).update(
                {Product.purchase_count: Product.purchase_count + item.quantity},
                synchronize_session=False,
            )

    def _restock(self, db: Session, order: Order) -> None:
        for item, variant in self._locked_variants(db, order):
            variant.stock_on_hand = (variant.stock_on_hand or 0) + item.quantity


# Singleton
order_service = OrderService()
