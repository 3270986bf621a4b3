"""
App-level behaviour: health check and JSON error envelopes.
"""


def test_health(client):
    r = client.get("/health")

    assert r.status_code == 200
    assert r.json()["status"] == "ok"


def test_unknown_route_is_json(client):
    r = client.get("/api/does-not-exist")

    assert r.status_code == 404
    assert r.json() == {"error": "NOT_FOUND", "message": "Not Found"}


def test_validation_error_envelope(client):
    r = client.post("/api/cart/items", json={"variant_id": "abc"})

    assert r.status_code == 400
    body = r.json()
    assert body["error"] == "VALIDATION_ERROR"
    assert body["details"][0]["loc"] == ["body", "variant_id"]
