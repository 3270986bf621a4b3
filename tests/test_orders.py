"""
Orders: customer history, staff back-office list / stats / status changes
and the stock movements behind them.
"""

import pytest
from sqlalchemy import text

from modules.catalog.models import Product
from modules.order.models import Order
from modules.user.models import UserRole


@pytest.fixture
def staff_headers(make_user, auth_headers):
    return auth_headers(make_user(username="sales", role=UserRole.STAFF))


@pytest.fixture
def place_order(client, auth_headers):
    def _place(user, variant, quantity=1, **body):
        headers = auth_headers(user)
        client.post("/api/cart/items", json={"variant_id": variant.id, "quantity": quantity}, headers=headers)
        r = client.post("/api/checkout", json=body, headers=headers)
        assert r.status_code == 201, r.json()
        return r.json()["order_preview"]
    return _place


# ==========================================
# Customer
# ==========================================

def test_customer_sees_own_orders_only(client, make_user, auth_headers, make_product, place_order):
    alice = make_user()
    bob = make_user()
    variant = make_product().variants[0]
    first = place_order(alice, variant)
    second = place_order(alice, variant, quantity=2)
    bobs = place_order(bob, variant)

    listed = client.get("/api/orders", headers=auth_headers(alice)).json()
    assert [o["id"] for o in listed["data"]] == [second["id"], first["id"]]
    assert listed["meta"]["total"] == 2
    assert listed["data"][0]["item_count"] == 2

    detail = client.get(f"/api/orders/{first['id']}", headers=auth_headers(alice)).json()
    assert detail["code"] == first["code"]
    assert detail["items"][0]["sku"] == variant.sku
    assert detail["totals"]["grand_total"] == first["grand_total"]

    r = client.get(f"/api/orders/{bobs['id']}", headers=auth_headers(alice))
    assert r.status_code == 403
    assert client.get("/api/orders/9999", headers=auth_headers(alice)).status_code == 404
    assert client.get("/api/orders").status_code == 401


def test_order_line_keeps_price_snapshot(client, db, make_user, auth_headers, make_product, place_order):
    user = make_user()
    variant = make_product(price=100_000).variants[0]
    order = place_order(user, variant)

    variant.price = 150_000
    db.commit()

    detail = client.get(f"/api/orders/{order['id']}", headers=auth_headers(user)).json()
    assert detail["items"][0]["unit_price"] == 100_000


# ==========================================
# Staff list
# ==========================================

def test_staff_only(client, make_user, auth_headers):
    customer = make_user()

    assert client.get("/api/staff/orders", headers=auth_headers(customer)).status_code == 403


def test_staff_list_filters_and_stats(client, make_user, make_product, place_order, staff_headers):
    variant = make_product(stock=50).variants[0]
    a = place_order(make_user(full_name="Le Van Dat"), variant)
    b = place_order(make_user(), variant)
    place_order(make_user(), variant)
    client.patch(f"/api/staff/orders/{b['id']}", json={"status": "cancelled"}, headers=staff_headers)

    body = client.get("/api/staff/orders", headers=staff_headers).json()
    assert body["meta"]["total"] == 3
    assert body["stats"]["pending"] == 2
    assert body["stats"]["cancelled"] == 1
    assert body["stats"]["shipped"] == 0

    cancelled = client.get("/api/staff/orders", params={"status": "cancelled"}, headers=staff_headers).json()
    assert [o["id"] for o in cancelled["data"]] == [b["id"]]
    assert cancelled["filters"]["status"] == "cancelled"

    by_name = client.get("/api/staff/orders", params={"q": "van dat"}, headers=staff_headers).json()
    assert [o["code"] for o in by_name["data"]] == [a["code"]]

    by_code = client.get("/api/staff/orders", params={"q": a["code"]}, headers=staff_headers).json()
    assert by_code["meta"]["total"] == 1

    # unknown status is ignored, not an error
    assert client.get("/api/staff/orders", params={"status": "lost"}, headers=staff_headers).json()["meta"]["total"] == 3


def test_staff_list_date_range_and_paging(client, make_user, make_product, place_order, staff_headers):
    variant = make_product(stock=50).variants[0]
    for _ in range(3):
        place_order(make_user(), variant)

    wide = client.get("/api/staff/orders", params={"from": "2000-01-01", "to": "2999-12-31"}, headers=staff_headers)
    assert wide.json()["meta"]["total"] == 3
    assert wide.json()["filters"]["from"].startswith("2000-01-01")

    future = client.get("/api/staff/orders", params={"from": "2999-01-01"}, headers=staff_headers).json()
    assert future["meta"]["total"] == 0

    paged = client.get("/api/staff/orders", params={"page_size": 2, "page": 2}, headers=staff_headers).json()
    assert len(paged["data"]) == 1
    assert paged["meta"]["total_pages"] == 2


def test_staff_order_detail(client, make_user, make_product, place_order, staff_headers):
    order = place_order(make_user(), make_product().variants[0], note="Giao gio hanh chinh")

    detail = client.get(f"/api/staff/orders/{order['id']}", headers=staff_headers).json()

    assert detail["note"] == "Giao gio hanh chinh"
    assert detail["shipping_address"]["city"] == "Ho Chi Minh"


# ==========================================
# Staff updates + stock
# ==========================================

def test_cancel_releases_reservation(client, db, make_user, make_product, place_order, staff_headers):
    variant = make_product(stock=10).variants[0]
    order = place_order(make_user(), variant, quantity=4)
    db.refresh(variant)
    assert variant.stock_reserved == 4

    r = client.patch(f"/api/staff/orders/{order['id']}", json={"status": "cancelled"}, headers=staff_headers)

    assert r.status_code == 200
    assert r.json()["data"]["status"] == "cancelled"
    db.refresh(variant)
    assert variant.stock_reserved == 0
    assert variant.stock_on_hand == 10


def test_ship_commits_stock_then_cancel_restocks(client, db, make_user, make_product, place_order, staff_headers):
    product = make_product(stock=10)
    variant = product.variants[0]
    order = place_order(make_user(), variant, quantity=3)

    client.patch(f"/api/staff/orders/{order['id']}", json={"status": "paid"}, headers=staff_headers)
    client.patch(f"/api/staff/orders/{order['id']}", json={"status": "shipped"}, headers=staff_headers)

    db.refresh(variant)
    assert variant.stock_on_hand == 7
    assert variant.stock_reserved == 0
    assert db.query(Product).filter(Product.id == product.id).one().purchase_count == 3

    r = client.patch(f"/api/staff/orders/{order['id']}", json={"status": "pending"}, headers=staff_headers)
    assert r.status_code == 400
    assert r.json()["error"] == "INVALID_TRANSITION"

    client.patch(f"/api/staff/orders/{order['id']}", json={"status": "cancelled"}, headers=staff_headers)
    db.refresh(variant)
    assert variant.stock_on_hand == 10


def test_terminal_orders_are_frozen(client, make_user, make_product, place_order, staff_headers):
    order = place_order(make_user(), make_product().variants[0])
    client.patch(f"/api/staff/orders/{order['id']}", json={"status": "delivered"}, headers=staff_headers)

    r = client.patch(f"/api/staff/orders/{order['id']}", json={"status": "processing"}, headers=staff_headers)

    assert r.status_code == 400
    assert r.json()["error"] == "INVALID_TRANSITION"


def test_note_and_shipping_method_update(client, db, make_user, make_product, place_order, staff_headers):
    order = place_order(make_user(), make_product().variants[0], note="old")

    r = client.patch(
        f"/api/staff/orders/{order['id']}",
        json={"note": "  Goi truoc khi giao  ", "shipping_method": "GHN"},
        headers=staff_headers,
    )
    assert r.json()["data"]["note"] == "Goi truoc khi giao"
    assert r.json()["data"]["shipping_method"] == "GHN"
    assert r.json()["data"]["status"] == "pending"

    r = client.patch(f"/api/staff/orders/{order['id']}", json={"note": ""}, headers=staff_headers)
    assert r.json()["data"]["note"] is None
    assert db.query(Order).one().shipping_method == "GHN"


def test_empty_update_and_bad_status(client, make_user, make_product, place_order, staff_headers):
    order = place_order(make_user(), make_product().variants[0])

    r = client.patch(f"/api/staff/orders/{order['id']}", json={}, headers=staff_headers)
    assert r.status_code == 400
    assert r.json()["error"] == "VALIDATION_ERROR"

    r = client.patch(f"/api/staff/orders/{order['id']}", json={"status": "lost"}, headers=staff_headers)
    assert r.status_code == 400

    assert client.patch("/api/staff/orders/9999", json={"note": "x"}, headers=staff_headers).status_code == 404


def test_cancel_releases_against_current_reservation(client, db, make_user, make_product, place_order, staff_headers):
    variant = make_product(stock=10).variants[0]
    order = place_order(make_user(), variant, quantity=2)
    assert variant.stock_reserved == 2

    # another order reserved 5 more since this session loaded the row
    db.execute(text("UPDATE product_variants SET stock_reserved = 7 WHERE id = :id"), {"id": variant.id})
    r = client.patch(f"/api/staff/orders/{order['id']}", json={"status": "cancelled"}, headers=staff_headers)

    assert r.status_code == 200
    db.refresh(variant)
    assert variant.stock_reserved == 5
