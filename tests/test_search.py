"""
Search and autocomplete: accent-insensitive matching, relevance order,
stock filter, popular suggestions.
"""

from modules.catalog.models import PublishStatus
from modules.search.service import POPULAR_SEARCHES


def _seed(make_product, make_brand, make_category):
    siemens = make_brand("Siemens")
    omron = make_brand("Omron")
    plc = make_category("PLC")
    sensors = make_category("Cảm biến", slug="cam-bien")
    make_product(name="PLC Siemens S7-1200", sku="6ES7214", brand=siemens, category=plc,
                 description="Compact controller")
    make_product(name="HMI KTP700", sku="6AV2123", brand=siemens, category=plc,
                 description="Touch panel for PLC systems")
    make_product(name="Cảm biến tiệm cận E2E", sku="E2E-X5ME1", brand=omron, category=sensors,
                 description="Inductive proximity sensor")
    make_product(name="Cảm biến quang E3Z", sku="E3Z-D61", brand=omron, category=sensors, stock=0)
    make_product(name="PLC prototype", sku="PROTO-1", brand=siemens, status=PublishStatus.DRAFT)


def test_relevance_order(client, make_product, make_brand, make_category):
    _seed(make_product, make_brand, make_category)

    r = client.get("/api/search", params={"q": "plc", "type": "products"})

    assert r.status_code == 200
    products = r.json()["data"]["products"]
    assert [p["name"] for p in products] == ["PLC Siemens S7-1200", "HMI KTP700"]
    assert products[0]["relevance"] > products[1]["relevance"]
    assert r.json()["data"]["brands"] == []


def test_accent_insensitive_match(client, make_product, make_brand, make_category):
    _seed(make_product, make_brand, make_category)

    data = client.get("/api/search", params={"q": "cam bien"}).json()["data"]

    assert [p["sku"] for p in data["products"]] == ["E2E-X5ME1"]
    assert [c["slug"] for c in data["categories"]] == ["cam-bien"]
    assert data["categories"][0]["product_count"] == 2
    assert "Omron" in data["suggestions"]


def test_out_of_stock_on_request(client, make_product, make_brand, make_category):
    _seed(make_product, make_brand, make_category)

    data = client.get("/api/search", params={"q": "E3Z", "include_out_of_stock": True}).json()["data"]

    assert [p["sku"] for p in data["products"]] == ["E3Z-D61"]
    assert data["products"][0]["in_stock"] is False


def test_sku_and_brand_search(client, make_product, make_brand, make_category):
    _seed(make_product, make_brand, make_category)

    by_sku = client.get("/api/search", params={"q": "6av2"}).json()["data"]["products"]
    assert [p["name"] for p in by_sku] == ["HMI KTP700"]

    brands = client.get("/api/search", params={"q": "siemens", "type": "brands"}).json()["data"]["brands"]
    assert brands[0]["slug"] == "siemens"
    # drafts are not counted
    assert brands[0]["product_count"] == 2


def test_short_query_returns_nothing(client, make_product, make_brand, make_category):
    _seed(make_product, make_brand, make_category)

    body = client.get("/api/search", params={"q": "p"}).json()

    assert body["success"] is True
    assert body["data"]["products"] == []
    assert body["meta"]["total_products"] == 0


def test_limit_is_capped_and_type_checked(client):
    assert client.get("/api/search", params={"q": "plc", "limit": 500}).json()["meta"]["limit"] == 50
    assert client.get("/api/search", params={"q": "plc", "type": "users"}).status_code == 400


def test_autocomplete_popular_for_short_query(client):
    body = client.get("/api/search/autocomplete", params={"q": "", "limit": 5}).json()

    suggestions = body["data"]["suggestions"]
    assert [s["text"] for s in suggestions] == POPULAR_SEARCHES[:5]
    assert all(s["type"] == "popular" for s in suggestions)
    assert body["meta"]["count"] == 5


def test_autocomplete_mixes_types(client, make_product, make_brand, make_category):
    _seed(make_product, make_brand, make_category)

    suggestions = client.get("/api/search/autocomplete", params={"q": "sie"}).json()["data"]["suggestions"]

    assert suggestions[0] == {
        "type": "search", "text": "sie", "subtext": 'Tìm kiếm "sie"',
        "url": "/shop/products?q=sie", "icon": "search",
    }
    types = [s["type"] for s in suggestions]
    assert "brand" in types
    assert "PLC prototype" not in [s["text"] for s in suggestions]


def test_autocomplete_no_match(client, make_product, make_brand, make_category):
    _seed(make_product, make_brand, make_category)

    body = client.get("/api/search/autocomplete", params={"q": "zzzz"}).json()

    assert body["data"]["suggestions"] == []


def test_autocomplete_search_url_is_encoded(client, make_product):
    make_product(name="Relay a&b #1 24VDC", sku="RL-AB1")

    suggestions = client.get("/api/search/autocomplete", params={"q": "a&b #1"}).json()["data"]["suggestions"]

    assert suggestions[0]["type"] == "search"
    assert suggestions[0]["text"] == "a&b #1"
    assert suggestions[0]["url"] == "/shop/products?q=a%26b%20%231"
    assert suggestions[1]["text"] == "Relay a&b #1 24VDC"
