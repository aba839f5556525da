import pytest
from fastapi.testclient import TestClient

from checkout_engine.api import create_app
from checkout_engine.api.deps import get_payment_client
from checkout_engine.data.models import VariantModel
from checkout_engine.data.database import get_db

from conftest import CHECKOUT_REQUEST


@pytest.fixture
def client(session_factory, gateway):
    app = create_app()

    def _get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_payment_client] = lambda: gateway
    with TestClient(app) as c:
        yield c


@pytest.fixture
def headers(store):
    return {"X-Store-Id": store.id}


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_unknown_store(client):
    resp = client.post("/carts", json={"customer_email": "a@example.com"}, headers={"X-Store-Id": "nope"})

    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "not_found"


def test_invalid_email(client, headers):
    resp = client.post("/carts", json={"customer_email": "nope"}, headers=headers)

    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "invalid_request"


def test_malformed_body_is_invalid_request(client, headers):
    cart = client.post("/carts", json={"customer_email": "a@example.com"}, headers=headers).json()

    resp = client.post(f"/carts/{cart['id']}/items", json={"items": [{"sku": "A"}]}, headers=headers)

    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "invalid_request"


def test_full_checkout_flow(client, headers, gateway, make_variant, make_discount):
    make_variant("A", price_cents=500, on_hand=5)
    make_discount(code="SAVE10", type="percentage", value=10, max_discount_cents=50)

    resp = client.post("/carts", json={"customer_email": "buyer@example.com"}, headers=headers)
    assert resp.status_code == 201
    cart = resp.json()
    assert cart["status"] == "open"
    assert cart["totals"]["total_cents"] == 0

    resp = client.post(f"/carts/{cart['id']}/items", json={"items": [{"sku": "A", "qty": 2}]}, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["totals"]["subtotal_cents"] == 1000

    resp = client.post(f"/carts/{cart['id']}/apply-discount", json={"code": "save10"}, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["discount"]["amount_cents"] == 50
    assert resp.json()["totals"]["total_cents"] == 950

    resp = client.post(f"/carts/{cart['id']}/checkout", json=CHECKOUT_REQUEST, headers=headers)
    assert resp.status_code == 200
    session_id = resp.json()["session_id"]
    assert resp.json()["checkout_url"].endswith(session_id)

    resp = client.post(f"/carts/{cart['id']}/checkout", json=CHECKOUT_REQUEST, headers=headers)
    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "conflict"

    resp = client.get("/inventory/A", headers=headers)
    assert resp.json() == {"sku": "A", "on_hand": 5, "reserved": 2, "available": 3}

    resp = client.post("/payments/events", json={"session_id": session_id, "status": "succeeded"})
    assert resp.json() == {"cart_id": cart["id"], "result": "finalized"}
    resp = client.post("/payments/events", json={"session_id": session_id, "status": "succeeded"})
    assert resp.json()["result"] == "already_processed"

    resp = client.get("/inventory/A", headers=headers)
    assert resp.json() == {"sku": "A", "on_hand": 3, "reserved": 0, "available": 3}

    resp = client.get(f"/carts/{cart['id']}", headers=headers)
    assert resp.json()["status"] == "checked_out"
    assert resp.json()["payment_session_id"] == session_id


def test_insufficient_inventory_response_names_sku(client, headers, make_variant):
    make_variant("SOLD", on_hand=5, reserved=5)
    cart = client.post("/carts", json={"customer_email": "a@example.com"}, headers=headers).json()

    resp = client.post(f"/carts/{cart['id']}/items", json={"items": [{"sku": "SOLD", "qty": 1}]}, headers=headers)

    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "insufficient_inventory"
    assert resp.json()["error"]["sku"] == "SOLD"


def test_gateway_failure_response(client, headers, gateway, make_variant):
    make_variant("A")
    cart = client.post("/carts", json={"customer_email": "a@example.com"}, headers=headers).json()
    client.post(f"/carts/{cart['id']}/items", json={"items": [{"sku": "A", "qty": 1}]}, headers=headers)
    gateway.fail_sessions = True

    resp = client.post(f"/carts/{cart['id']}/checkout", json=CHECKOUT_REQUEST, headers=headers)

    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "payment_gateway_error"
    assert client.get(f"/carts/{cart['id']}", headers=headers).json()["status"] == "open"


def test_remove_discount(client, headers, make_variant, make_discount):
    make_variant("A", price_cents=500)
    make_discount(code="TEN")
    cart = client.post("/carts", json={"customer_email": "a@example.com"}, headers=headers).json()
    client.post(f"/carts/{cart['id']}/items", json={"items": [{"sku": "A", "qty": 2}]}, headers=headers)
    client.post(f"/carts/{cart['id']}/apply-discount", json={"code": "TEN"}, headers=headers)

    resp = client.delete(f"/carts/{cart['id']}/discount", headers=headers)

    assert resp.status_code == 200
    assert resp.json()["discount"] is None
    assert resp.json()["totals"]["total_cents"] == 1000


def test_discount_admin(client, headers):
    resp = client.post(
        "/discounts",
        json={"code": "welcome", "type": "percentage", "value": 10, "usage_limit": 3},
        headers=headers,
    )
    assert resp.status_code == 201
    discount = resp.json()
    assert discount["code"] == "WELCOME"
    assert discount["usage_count"] == 0

    resp = client.post("/discounts", json={"code": "WELCOME", "type": "percentage", "value": 5}, headers=headers)
    assert resp.status_code == 409

    resp = client.post("/discounts", json={"type": "percentage", "value": 150}, headers=headers)
    assert resp.status_code == 400

    resp = client.patch(f"/discounts/{discount['id']}", json={"value": 20}, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["value"] == 20
    assert resp.json()["usage_limit"] == 3

    resp = client.get("/discounts", headers=headers)
    assert [d["id"] for d in resp.json()["items"]] == [discount["id"]]

    resp = client.delete(f"/discounts/{discount['id']}", headers=headers)
    assert resp.json() == {"ok": True}
    assert client.get(f"/discounts/{discount['id']}", headers=headers).json()["status"] == "inactive"


def test_inventory_adjust(client, headers, make_variant):
    make_variant("A", on_hand=5, reserved=3)

    resp = client.post("/inventory/A/adjust", json={"delta": -3}, headers=headers)
    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "conflict"

    resp = client.post("/inventory/A/adjust", json={"delta": 4}, headers=headers)
    assert resp.json() == {"sku": "A", "on_hand": 9, "reserved": 3, "available": 6}

    resp = client.get("/inventory/MISSING", headers=headers)
    assert resp.status_code == 404


def test_first_adjust_creates_inventory(client, headers, db, store):
    db.add(VariantModel(store_id=store.id, sku="FRESH", title="Fresh", price_cents=100))
    db.commit()

    assert client.get("/inventory/FRESH", headers=headers).json()["on_hand"] == 0

    resp = client.post("/inventory/FRESH/adjust", json={"delta": 12}, headers=headers)
    assert resp.json() == {"sku": "FRESH", "on_hand": 12, "reserved": 0, "available": 12}


def test_payment_event_for_unknown_session(client):
    resp = client.post("/payments/events", json={"session_id": "cs_nope", "status": "expired"})

    assert resp.status_code == 404


def test_payment_event_status_is_validated(client):
    resp = client.post("/payments/events", json={"session_id": "cs_1", "status": "maybe"})

    assert resp.status_code == 400
