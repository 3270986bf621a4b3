"""
Checkout Module - Pricing
===========================
Pure order total computation. No database access.

Order of operations:
  subtotal -> promo (discount or free shipping) -> taxable -> VAT -> grand total
"""

from decimal import Decimal
from typing import Iterable, Optional, Tuple

from common.helpers import quantize_money, to_decimal, money
from modules.checkout.promotions import PromoRule, PercentDiscount, FixedDiscount, FreeShipping


def compute_totals(
    lines: Iterable[Tuple[Decimal, int]],
    promo: Optional[PromoRule] = None,
    vat_rate: Decimal = Decimal("0.10"),
    shipping_fee: Decimal = Decimal("30000"),
) -> dict:
    """
    Price a set of (unit_price, quantity) lines.

    Returns:
        dict with Decimal: subtotal, discount, shipping_fee, taxable, vat, grand_total
    """
    subtotal = sum((to_decimal(price) * qty for price, qty in lines), Decimal("0"))
    subtotal = quantize_money(subtotal)

    discount = Decimal("0")
    shipping = quantize_money(shipping_fee)

    if isinstance(promo, PercentDiscount):
        discount = quantize_money(subtotal * promo.pct / Decimal(100))
    elif isinstance(promo, FixedDiscount):
        discount = quantize_money(min(subtotal, promo.amount))
    elif isinstance(promo, FreeShipping):
        shipping = Decimal("0")

    taxable = max(Decimal("0"), subtotal - discount)
    vat = quantize_money(taxable * to_decimal(vat_rate))
    grand_total = taxable + vat + shipping

    return {
        "subtotal": subtotal,
        "discount": discount,
        "shipping_fee": shipping,
        "taxable": taxable,
        "vat": vat,
        "grand_total": grand_total,
    }


def totals_to_json(totals: dict) -> dict:
    return {key: money(value) for key, value in totals.items()}
