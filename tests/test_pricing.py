"""
Checkout pricing and promo table (no database).
"""

from decimal import Decimal

import pytest

from config.settings import PROMO_CODES
from modules.cart.models import CartItem
from modules.checkout.pricing import compute_totals, totals_to_json
from modules.checkout.promotions import (
    PercentDiscount, FixedDiscount, FreeShipping, build_promo_table, lookup,
)
from modules.checkout.service import CheckoutService


def test_percent_code_on_one_million():
    totals = compute_totals([(Decimal("1000000"), 1)], PercentDiscount(pct=Decimal("10")))

    assert totals_to_json(totals) == {
        "subtotal": 1_000_000,
        "discount": 100_000,
        "shipping_fee": 30_000,
        "taxable": 900_000,
        "vat": 90_000,
        "grand_total": 1_020_000,
    }


def test_free_shipping_zeroes_fee_only():
    totals = compute_totals([(Decimal("250000"), 2)], FreeShipping())

    assert totals["discount"] == Decimal("0")
    assert totals["shipping_fee"] == Decimal("0")
    assert totals["vat"] == Decimal("50000.00")
    assert totals["grand_total"] == Decimal("550000.00")


def test_fixed_discount_capped_at_subtotal():
    totals = compute_totals([(Decimal("30000"), 1)], FixedDiscount(amount=Decimal("50000")))

    assert totals["discount"] == Decimal("30000.00")
    assert totals["taxable"] == Decimal("0")
    assert totals["vat"] == Decimal("0")
    assert totals["grand_total"] == Decimal("30000.00")


def test_no_promo_multiple_lines():
    totals = compute_totals([(Decimal("120000"), 3), (Decimal("95000"), 2)])

    assert totals["subtotal"] == Decimal("550000.00")
    assert totals["vat"] == Decimal("55000.00")
    assert totals["grand_total"] == Decimal("635000.00")


def test_vat_rounds_half_up():
    totals = compute_totals([(Decimal("0.05"), 1)], shipping_fee=Decimal("0"))
    # 0.05 * 10% = 0.005 -> 0.01
    assert totals["vat"] == Decimal("0.01")
    assert totals_to_json(totals)["grand_total"] == 0.06


def test_configured_promo_table():
    table = build_promo_table(PROMO_CODES)

    assert isinstance(table["GIAM10"], PercentDiscount)
    assert isinstance(table["GIAM50K"], FixedDiscount)
    assert isinstance(table["FREESHIP"], FreeShipping)
    assert lookup(table, "  giam10 ") is table["GIAM10"]
    assert lookup(table, "NOPE") is None
    assert lookup(table, "") is None


def test_unknown_promo_kind_rejected():
    with pytest.raises(ValueError):
        build_promo_table({"BOGUS": {"kind": "bogo"}})


def test_service_reports_unknown_code_as_not_applied():
    service = CheckoutService(build_promo_table(PROMO_CODES), Decimal("0.10"), Decimal("30000"))
    lines = [CartItem(unit_price=Decimal("200000"), quantity=2)]

    totals = service.price_lines(lines, "khongco")

    assert totals["promo"] == {"code": "KHONGCO", "applied": False, "kind": None}
    assert totals["discount"] == Decimal("0")
    assert totals["grand_total"] == Decimal("470000.00")


def test_service_uses_injected_table():
    service = CheckoutService({"VIP": PercentDiscount(pct=Decimal("50"))}, Decimal("0.08"), Decimal("0"))
    lines = [CartItem(unit_price=Decimal("100000"), quantity=1)]

    totals = service.price_lines(lines, "vip")

    assert totals["promo"]["applied"] is True
    assert totals["promo"]["kind"] == "percent"
    assert totals["discount"] == Decimal("50000.00")
    assert totals["vat"] == Decimal("4000.00")
    assert totals["grand_total"] == Decimal("54000.00")
