"""
Checkout Module - Service Layer
=================================
Validates a checkout request against the resolved cart, prices it with
the promo table and persists the order.

Validation order:
  1. cart has lines (CartEmpty)
  2. selected item ids belong to the cart
  3. contact + shipping completeness (profile fills gaps)
  4. email / phone / tax code formats
  5. stock for every selected line (InsufficientStock)
"""

import logging
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session

from common.exceptions import CartEmptyError, InvalidInputError, InsufficientStockError
from common.helpers import is_valid_email, is_valid_phone, is_valid_tax_code, to_e164_vn, money
from config.settings import PROMO_CODES, VAT_RATE, FLAT_SHIPPING_FEE, BANK_INFO, DEFAULT_CURRENCY
from modules.cart.models import Cart, CartItem
from modules.cart.service import cart_service
from modules.checkout.pricing import compute_totals, totals_to_json
from modules.checkout.promotions import PromoTable, build_promo_table, lookup, normalize_code
from modules.order.models import Order, PaymentType
from modules.order.service import order_service, order_item_to_dict
from modules.user.models import User

logger = logging.getLogger("ahso.checkout")

ADDRESS_KEYS = ("line1", "line2", "city", "state", "postal_code", "country")


def _clean(value) -> str:
    return str(value).strip() if value is not None else ""


class CheckoutService:

    def __init__(self, promo_table: PromoTable, vat_rate: Decimal, shipping_fee: Decimal):
        self.promo_table = promo_table
        self.vat_rate = vat_rate
        self.shipping_fee = shipping_fee

    # ==========================================
    # Pricing
    # ==========================================

    def price_lines(self, lines: List[CartItem], coupon: Optional[str]) -> dict:
        code = normalize_code(coupon)
        rule = lookup(self.promo_table, code)
        totals = compute_totals(
            [(line.unit_price, line.quantity) for line in lines],
            promo=rule,
            vat_rate=self.vat_rate,
            shipping_fee=self.shipping_fee,
        )
        totals["promo"] = {
            "code": code or None,
            "applied": rule is not None,
            "kind": rule.kind if rule else None,
        }
        return totals

    def preview(self, cart: Optional[Cart], coupon: Optional[str] = None) -> dict:
        """Totals for the whole cart; nothing is persisted."""
        lines = self._select_lines(cart, None)
        totals = self.price_lines(lines, coupon)
        promo = totals.pop("promo")
        return {
            "currency": DEFAULT_CURRENCY,
            "item_count": sum(line.quantity for line in lines),
            "totals": totals_to_json(totals),
            "promo": promo,
        }

    # ==========================================
    # Checkout
    # ==========================================

    def checkout(self, db: Session, cart: Optional[Cart], user: Optional[User], data: dict) -> dict:
        """
        Place an order from the selected cart lines.

        Returns the order preview dict (totals, promo, bank transfer info).
        """
        lines = self._select_lines(cart, data.get("item_ids"))
        customer, shipping = self._collect_contact(data, user)
        self._validate_formats(customer)
        self._check_stock(lines)

        billing = None
        if data.get("invoice"):
            if data.get("use_separate_billing"):
                billing = self._address(data.get("billing_address"))
                missing = [f"billing_address.{k}" for k in ("line1", "city") if not billing.get(k)]
                if missing:
                    raise InvalidInputError("Missing required fields.", fields=missing)
                billing["country"] = billing.get("country") or shipping.get("country")
            else:
                billing = dict(shipping)

        totals = self.price_lines(lines, data.get("coupon"))
        promo = totals.pop("promo")

        payment_type = data.get("payment_type") or PaymentType.COD.value
        shipping_method = "BANK_TRANSFER_QR" if payment_type == PaymentType.BANK.value else data.get("payment_method")

        order = order_service.place_order(
            db,
            user_id=user.id if user else None,
            customer=customer,
            shipping=shipping,
            billing=billing,
            lines=lines,
            totals=totals,
            payment_type=payment_type,
            promo_code=promo["code"] if promo["applied"] else None,
            note=_clean(data.get("note")) or None,
            currency=DEFAULT_CURRENCY,
        )
        order.shipping_method = shipping_method

        cart_service.remove_lines(db, cart, [line.id for line in lines])

        logger.info(f"Checkout {order.code}: cart #{cart.id}, grand total {order.grand_total}")
        # Confirmation mail hook: delivery is handled outside this service
        logger.info(f"Order confirmation for {order.code} ready for {order.customer_email}")

        return self.order_preview(order, totals, promo)

    def order_preview(self, order: Order, totals: dict, promo: dict) -> dict:
        return {
            "id": order.id,
            "code": order.code,
            "status": order.status,
            "currency": order.currency,
            "customer": {
                "full_name": order.customer_name,
                "email": order.customer_email,
                "phone": order.customer_phone,
                "tax_code": order.tax_code,
            },
            "items": [order_item_to_dict(i) for i in order.items],
            "subtotal": money(totals["subtotal"]),
            "discount": money(totals["discount"]),
            "taxable": money(totals["taxable"]),
            "vat": money(totals["vat"]),
            "shipping_fee": money(totals["shipping_fee"]),
            "grand_total": money(totals["grand_total"]),
            "promo": promo,
            "bank_info": {**BANK_INFO, "transfer_note": order.code},
        }

    # ==========================================
    # Validation steps
    # ==========================================

    def _select_lines(self, cart: Optional[Cart], item_ids: Optional[List[int]]) -> List[CartItem]:
        if cart is None or not cart.items:
            raise CartEmptyError()
        if not item_ids:
            return list(cart.items)

        by_id = {line.id: line for line in cart.items}
        missing = [i for i in item_ids if i not in by_id]
        if missing:
            raise InvalidInputError("Selected items are not in the cart.", item_ids=missing)
        wanted = set(item_ids)
        return [line for line in cart.items if line.id in wanted]

    def _address(self, raw: Optional[dict]) -> dict:
        raw = raw or {}
        return {k: _clean(raw.get(k)) for k in ADDRESS_KEYS}

    def _profile_address(self, user: User) -> dict:
        return {k: _clean(getattr(user, f"shipping_{k}", None)) for k in ADDRESS_KEYS}

    def _collect_contact(self, data: dict, user: Optional[User]):
        customer = {
            "full_name": _clean(data.get("full_name")),
            "email": _clean(data.get("email")).lower(),
            "phone": _clean(data.get("phone")),
            "tax_code": _clean(data.get("tax_code")),
            "company_name": _clean(data.get("company_name")),
        }
        shipping = self._address(data.get("shipping_address"))

        if user:
            customer["full_name"] = customer["full_name"] or user.full_name or ""
            customer["email"] = customer["email"] or user.email or ""
            customer["phone"] = customer["phone"] or user.phone_e164 or ""
            customer["tax_code"] = customer["tax_code"] or user.tax_code or ""
            if not shipping["line1"] and not shipping["city"]:
                shipping = self._profile_address(user)

        missing = [k for k in ("full_name", "email", "phone") if not customer[k]]
        missing += [f"shipping_address.{k}" for k in ("line1", "city") if not shipping[k]]
        if missing:
            raise InvalidInputError("Missing required fields.", fields=missing)

        shipping["country"] = (shipping["country"] or "VN").upper()
        return customer, shipping

    def _validate_formats(self, customer: dict) -> None:
        if not is_valid_email(customer["email"]):
            raise InvalidInputError("Invalid email address.", field="email")
        customer["phone"] = to_e164_vn(customer["phone"])
        if not is_valid_phone(customer["phone"]):
            raise InvalidInputError("Invalid phone number.", field="phone")
        if customer["tax_code"] and not is_valid_tax_code(customer["tax_code"]):
            raise InvalidInputError("Tax code must be 10 or 13 digits.", field="tax_code")

    def _check_stock(self, lines: List[CartItem]) -> None:
        for line in lines:
            variant = line.variant
            available = variant.available_stock if variant and variant.is_active else 0
            if line.quantity > available:
                raise InsufficientStockError(
                    available=available, item_id=line.id, sku=variant.sku if variant else "",
                )


# Singleton wired with the configured promo table
checkout_service = CheckoutService(
    promo_table=build_promo_table(PROMO_CODES),
    vat_rate=VAT_RATE,
    shipping_fee=FLAT_SHIPPING_FEE,
)
