"""
Cart API: resolution, add / set quantity / remove, stock and ownership checks.
"""

from datetime import timedelta

from common.helpers import now_utc
from modules.cart.models import Cart, CartItem, CartStatus
from modules.cart.service import cart_service


def test_get_cart_without_cookie_creates_nothing(client, db):
    r = client.get("/api/cart")

    assert r.status_code == 200
    assert r.json()["id"] is None
    assert r.json()["items"] == []
    assert "cart_id" not in client.cookies
    assert db.query(Cart).count() == 0


def test_guest_add_sets_cookie_and_totals(client, make_product):
    variant = make_product(price=450_000, stock=10).variants[0]

    r = client.post("/api/cart/items", json={"variant_id": variant.id, "quantity": 2})

    assert r.status_code == 201
    body = r.json()
    assert body["ok"] is True
    assert client.cookies.get("cart_id")
    cart = body["cart"]
    assert cart["item_count"] == 2
    assert cart["items"][0]["unit_price"] == 450_000
    assert cart["items"][0]["line_total"] == 900_000
    assert cart["totals"]["subtotal"] == 900_000
    assert cart["totals"]["grand_total"] == 900_000


def test_adding_same_variant_twice_sums_one_line(client, db, make_product):
    variant = make_product(stock=10).variants[0]

    first = client.post("/api/cart/items", json={"variant_id": variant.id, "quantity": 1})
    second = client.post("/api/cart/items", json={"variant_id": variant.id, "quantity": 3})

    assert first.json()["item_id"] == second.json()["item_id"]
    items = second.json()["cart"]["items"]
    assert len(items) == 1
    assert items[0]["quantity"] == 4
    assert db.query(CartItem).count() == 1


def test_add_by_sku(client, make_product):
    make_product(sku="6ES7214-1AG40-0XB0", price=8_950_000)

    r = client.post("/api/cart/items", json={"sku": "6ES7214-1AG40-0XB0"})

    assert r.status_code == 201
    assert r.json()["cart"]["items"][0]["sku"] == "6ES7214-1AG40-0XB0"


def test_add_unknown_variant(client):
    r = client.post("/api/cart/items", json={"variant_id": 999, "quantity": 1})

    assert r.status_code == 404
    assert r.json()["error"] == "PRODUCT_NOT_FOUND"


def test_add_inactive_variant(client, db, make_product):
    variant = make_product().variants[0]
    variant.is_active = False
    db.commit()

    r = client.post("/api/cart/items", json={"variant_id": variant.id})

    assert r.status_code == 404


def test_add_without_target_or_with_zero_quantity(client, make_product):
    variant = make_product().variants[0]

    assert client.post("/api/cart/items", json={"quantity": 1}).status_code == 400
    r = client.post("/api/cart/items", json={"variant_id": variant.id, "quantity": 0})
    assert r.status_code == 400
    assert r.json()["error"] == "VALIDATION_ERROR"
    assert r.json()["details"]


def test_add_beyond_available_stock(client, make_product):
    variant = make_product(sku="E3Z-D61", stock=3).variants[0]
    client.post("/api/cart/items", json={"variant_id": variant.id, "quantity": 2})

    r = client.post("/api/cart/items", json={"variant_id": variant.id, "quantity": 2})

    assert r.status_code == 400
    body = r.json()
    assert body["error"] == "INSUFFICIENT_STOCK"
    assert body["available"] == 3
    assert body["sku"] == "E3Z-D61"
    assert client.get("/api/cart").json()["items"][0]["quantity"] == 2


def test_reserved_stock_is_not_available(client, db, make_product):
    variant = make_product(stock=5).variants[0]
    variant.stock_reserved = 4
    db.commit()

    r = client.post("/api/cart/items", json={"variant_id": variant.id, "quantity": 2})

    assert r.status_code == 400
    assert r.json()["available"] == 1


def test_set_quantity_updates_line(client, make_product):
    variant = make_product(price=100_000, stock=10).variants[0]
    item_id = client.post("/api/cart/items", json={"variant_id": variant.id}).json()["item_id"]

    r = client.patch(f"/api/cart/items/{item_id}", json={"quantity": 5})

    assert r.status_code == 200
    line = r.json()["cart"]["items"][0]
    assert line["quantity"] == 5
    assert line["line_total"] == 500_000
    assert r.json()["cart"]["totals"]["subtotal"] == 500_000


def test_set_quantity_above_stock(client, make_product):
    variant = make_product(stock=3).variants[0]
    item_id = client.post("/api/cart/items", json={"variant_id": variant.id}).json()["item_id"]

    r = client.patch(f"/api/cart/items/{item_id}", json={"quantity": 4})

    assert r.status_code == 400
    assert r.json()["error"] == "INSUFFICIENT_STOCK"
    assert r.json()["item_id"] == item_id


def test_set_quantity_zero_removes_then_remove_is_noop(client, db, make_product):
    variant = make_product().variants[0]
    item_id = client.post("/api/cart/items", json={"variant_id": variant.id}).json()["item_id"]

    r = client.patch(f"/api/cart/items/{item_id}", json={"quantity": 0})
    assert r.status_code == 200
    assert r.json()["cart"]["items"] == []
    assert r.json()["cart"]["totals"]["subtotal"] == 0

    r = client.delete(f"/api/cart/items/{item_id}")
    assert r.status_code == 200
    assert r.json()["ok"] is True
    assert db.query(CartItem).count() == 0


def test_remove_line(client, make_product):
    a = make_product(price=100_000).variants[0]
    b = make_product(price=200_000).variants[0]
    item_a = client.post("/api/cart/items", json={"variant_id": a.id}).json()["item_id"]
    client.post("/api/cart/items", json={"variant_id": b.id})

    r = client.delete(f"/api/cart/items/{item_a}")

    items = r.json()["cart"]["items"]
    assert [i["variant_id"] for i in items] == [b.id]
    assert r.json()["cart"]["totals"]["subtotal"] == 200_000


def test_set_quantity_unknown_item(client, make_product):
    variant = make_product().variants[0]
    client.post("/api/cart/items", json={"variant_id": variant.id})

    r = client.patch("/api/cart/items/12345", json={"quantity": 1})

    assert r.status_code == 404
    assert r.json()["error"] == "NOT_FOUND"


def test_other_carts_items_are_forbidden(client, make_client, make_product):
    variant = make_product().variants[0]
    item_id = client.post("/api/cart/items", json={"variant_id": variant.id}).json()["item_id"]

    stranger = make_client()
    stranger.post("/api/cart/items", json={"variant_id": variant.id})

    assert stranger.patch(f"/api/cart/items/{item_id}", json={"quantity": 2}).status_code == 403
    assert stranger.delete(f"/api/cart/items/{item_id}").json()["error"] == "FORBIDDEN"

    # caller without any cart
    assert make_client().patch(f"/api/cart/items/{item_id}", json={"quantity": 2}).status_code == 403


def test_logged_in_user_cart_has_no_cookie(client, db, make_user, auth_headers, make_product):
    user = make_user()
    variant = make_product().variants[0]

    r = client.post("/api/cart/items", json={"variant_id": variant.id}, headers=auth_headers(user))

    assert r.status_code == 201
    assert "cart_id" not in client.cookies
    cart = db.query(Cart).filter(Cart.user_id == user.id).one()
    assert cart.status == CartStatus.ACTIVE.value
    assert client.get("/api/cart", headers=auth_headers(user)).json()["id"] == cart.id


def test_user_keeps_single_active_cart(client, db, make_user, auth_headers, make_product):
    user = make_user()
    a = make_product().variants[0]
    b = make_product().variants[0]

    client.post("/api/cart/items", json={"variant_id": a.id}, headers=auth_headers(user))
    client.post("/api/cart/items", json={"variant_id": b.id}, headers=auth_headers(user))

    assert db.query(Cart).filter(Cart.user_id == user.id).count() == 1


def test_cleanup_drops_stale_guest_carts_only(client, db, make_user, auth_headers, make_product):
    variant = make_product().variants[0]
    client.post("/api/cart/items", json={"variant_id": variant.id})
    user = make_user()
    client.post("/api/cart/items", json={"variant_id": variant.id}, headers=auth_headers(user))

    for cart in db.query(Cart).all():
        cart.updated_at = now_utc() - timedelta(days=45)
    db.commit()

    assert cart_service.cleanup_guest_carts(db, older_than_days=30) == 1
    db.commit()
    remaining = db.query(Cart).all()
    assert len(remaining) == 1
    assert remaining[0].user_id == user.id


# ==========================================
# Concurrent writers
# ==========================================

def test_add_falls_back_to_atomic_increment(client, db, make_product, monkeypatch):
    variant = make_product(stock=10).variants[0]
    client.post("/api/cart/items", json={"variant_id": variant.id, "quantity": 2})

    # another request inserted the line between our lookup and our insert
    monkeypatch.setattr(cart_service, "_find_line", lambda db, cart_id, variant_id: None)
    r = client.post("/api/cart/items", json={"variant_id": variant.id, "quantity": 3})

    assert r.status_code == 201
    assert r.json()["cart"]["items"][0]["quantity"] == 5
    assert r.json()["cart"]["totals"]["subtotal"] == 5_000_000
    line = db.query(CartItem).one()
    assert line.quantity == 5
    assert line.line_total == 5_000_000


def _miss_first_lookup(monkeypatch):
    """The first active-cart lookup misses, as if a concurrent request created the cart just after."""
    real = cart_service._active_user_cart
    calls = []

    def lookup(db, user_id):
        calls.append(user_id)
        return None if len(calls) == 1 else real(db, user_id)

    monkeypatch.setattr(cart_service, "_active_user_cart", lookup)


def test_second_active_user_cart_rereads_existing(client, db, make_user, auth_headers, make_product, monkeypatch):
    user = make_user()
    variant = make_product().variants[0]
    client.post("/api/cart/items", json={"variant_id": variant.id}, headers=auth_headers(user))
    existing = db.query(Cart).filter(Cart.user_id == user.id).one()

    _miss_first_lookup(monkeypatch)
    resolution = cart_service.resolve_cart(db, user, None)

    assert resolution.cart.id == existing.id
    db.commit()
    assert db.query(Cart).filter(Cart.user_id == user.id).count() == 1


def test_adopt_conflict_keeps_guest_cart_and_uses_user_cart(client, db, make_user, auth_headers, make_product, monkeypatch):
    user = make_user()
    variant = make_product().variants[0]
    client.post("/api/cart/items", json={"variant_id": variant.id}, headers=auth_headers(user))
    client.post("/api/cart/items", json={"variant_id": variant.id, "quantity": 2})
    token = client.cookies.get("cart_id")
    user_cart = db.query(Cart).filter(Cart.user_id == user.id).one()

    _miss_first_lookup(monkeypatch)
    resolution = cart_service.resolve_cart(db, user, token)

    assert resolution.cart.id == user_cart.id
    db.commit()
    guest = db.query(Cart).filter(Cart.token == token).one()
    assert guest.user_id is None
    assert guest.status == CartStatus.ACTIVE.value


# ==========================================
# Guest cookie with a logged-in caller
# ==========================================

def test_reading_cart_keeps_unmerged_guest_cookie(client, db, make_user, auth_headers, make_product):
    user = make_user()
    a = make_product().variants[0]
    b = make_product().variants[0]
    client.post("/api/cart/items", json={"variant_id": a.id}, headers=auth_headers(user))
    client.post("/api/cart/items", json={"variant_id": b.id, "quantity": 2})
    token = client.cookies.get("cart_id")

    r = client.get("/api/cart", headers=auth_headers(user))

    assert [i["variant_id"] for i in r.json()["items"]] == [a.id]
    assert client.cookies.get("cart_id") == token

    merged = client.post("/api/cart/merge", headers=auth_headers(user)).json()["cart"]
    assert {i["variant_id"]: i["quantity"] for i in merged["items"]} == {a.id: 1, b.id: 2}
    assert "cart_id" not in client.cookies


def test_cleanup_spares_guest_cart_with_recent_line_edits(client, db, make_product):
    variant = make_product(stock=10).variants[0]
    item_id = client.post("/api/cart/items", json={"variant_id": variant.id}).json()["item_id"]
    cart = db.query(Cart).one()
    cart.updated_at = now_utc() - timedelta(days=45)
    db.commit()

    # re-saving a line leaves the cart totals unchanged
    r = client.patch(f"/api/cart/items/{item_id}", json={"quantity": 1})
    assert r.status_code == 200

    assert cart_service.cleanup_guest_carts(db, older_than_days=30) == 0
    assert db.query(Cart).count() == 1
