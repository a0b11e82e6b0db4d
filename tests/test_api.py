"""HTTP behaviour: status codes, error bodies and the happy-path flow."""

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from order_management.main import app


@pytest.fixture
def seeded(client):
    customer = client.post("/api/v1/customers", json={
        "customer_code": "C001", "name": "Acme Trading", "email": "buyer@acme.example",
    })
    product = client.post("/api/v1/products", json={
        "product_code": "P001", "name": "Laptop", "unit_price": "5999.00",
        "stock_quantity": 100, "min_stock": 10,
    }, headers={"X-User-Id": "42"})
    assert customer.status_code == 201, customer.text
    assert product.status_code == 201, product.text
    return customer.json(), product.json()


def order_payload(customer_id, product_id, quantity=2, **extra):
    return {
        "customer_id": customer_id,
        "shipping_address": "1 Harbour Road",
        "items": [{"product_id": product_id, "quantity": quantity, "unit_price": "5999.00"}],
        **extra,
    }


def test_health(client):
    assert client.get("/health").json()["status"] == "ok"
    assert client.get("/").status_code == 200


def test_create_order_flow(client, seeded, publisher):
    customer, product = seeded

    resp = client.post("/api/v1/orders", json=order_payload(customer["id"], product["id"]))

    assert resp.status_code == 201, resp.text
    order = resp.json()
    assert order["status"] == "PENDING"
    assert order["payment_status"] == "UNPAID"
    assert Decimal(order["total_amount"]) == Decimal("11998.00")
    assert Decimal(order["final_amount"]) == Decimal("11998.00")
    assert order["items"][0]["quantity"] == 2
    assert "order.created" in publisher.keys()

    assert client.get(f"/api/v1/products/{product['id']}").json()["stock_quantity"] == 98
    ledger = client.get(f"/api/v1/products/{product['id']}/inventory-transactions").json()
    assert [(t["transaction_type"], t["quantity"]) for t in ledger] == [("IN", 100), ("OUT", 2)]
    assert ledger[1]["reference_type"] == "ORDER"
    assert ledger[1]["reference_id"] == order["id"]

    by_number = client.get(f"/api/v1/orders/number/{order['order_number']}")
    assert by_number.json()["id"] == order["id"]
    assert [o["id"] for o in client.get(f"/api/v1/customers/{customer['id']}/orders").json()] == [order["id"]]


def test_audit_fields_come_from_header(client, seeded):
    _, product = seeded
    tx = client.get(f"/api/v1/products/{product['id']}/inventory-transactions").json()
    assert tx[0]["created_by"] == 42


def test_insufficient_stock_is_400(client, seeded):
    customer, product = seeded

    resp = client.post("/api/v1/orders", json=order_payload(customer["id"], product["id"], quantity=101))

    assert resp.status_code == 400
    body = resp.json()
    assert body["error"] == "Insufficient Stock"
    assert "requested=101" in body["message"]
    assert body["path"] == "/api/v1/orders"
    assert client.get("/api/v1/orders").json() == []


def test_unknown_order_is_404(client):
    resp = client.get("/api/v1/orders/12345")
    assert resp.status_code == 404
    assert resp.json()["status"] == 404


def test_duplicate_customer_is_409(client, seeded):
    resp = client.post("/api/v1/customers", json={"customer_code": "C001", "name": "Someone Else"})
    assert resp.status_code == 409


def test_request_validation_is_400_with_details(client, seeded):
    customer, product = seeded
    payload = order_payload(customer["id"], product["id"], quantity=0)

    resp = client.post("/api/v1/orders", json=payload)

    assert resp.status_code == 400
    body = resp.json()
    assert body["error"] == "Validation Failed"
    assert "items.0.quantity" in body["details"]


def test_empty_order_is_rejected(client, seeded):
    customer, _ = seeded
    resp = client.post("/api/v1/orders", json={
        "customer_id": customer["id"], "shipping_address": "1 Harbour Road", "items": [],
    })
    assert resp.status_code == 400


def test_status_transitions_over_http(client, seeded):
    customer, product = seeded
    order = client.post("/api/v1/orders", json=order_payload(customer["id"], product["id"])).json()
    url = f"/api/v1/orders/{order['id']}/status"

    bad = client.patch(url, json={"status": "SHIPPED"})
    assert bad.status_code == 400
    assert bad.json()["error"] == "Invalid Status Transition"

    assert client.patch(url, json={"status": "CONFIRMED"}).json()["status"] == "CONFIRMED"

    blocked = client.delete(f"/api/v1/orders/{order['id']}")
    assert blocked.status_code == 400
    assert blocked.json()["error"] == "Business Rule Violation"

    cancelled = client.post(f"/api/v1/orders/{order['id']}/cancel")
    assert cancelled.json()["status"] == "CANCELLED"
    assert client.get(f"/api/v1/products/{product['id']}").json()["stock_quantity"] == 100


def test_delete_pending_order(client, seeded):
    customer, product = seeded
    order = client.post("/api/v1/orders", json=order_payload(customer["id"], product["id"], quantity=3)).json()

    assert client.delete(f"/api/v1/orders/{order['id']}").status_code == 204
    assert client.get(f"/api/v1/orders/{order['id']}").status_code == 404
    assert client.get(f"/api/v1/products/{product['id']}").json()["stock_quantity"] == 100


def test_generic_order_update(client, seeded):
    customer, product = seeded
    order = client.post("/api/v1/orders", json=order_payload(customer["id"], product["id"], quantity=1)).json()

    resp = client.put(f"/api/v1/orders/{order['id']}", json={
        "discount_amount": "999.00", "tax_amount": "780.00", "delivery_date": "2026-02-01",
    })

    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert Decimal(body["final_amount"]) == Decimal("5780.00")
    assert body["delivery_date"] == "2026-02-01"


def test_payment_status_endpoint(client, seeded):
    customer, product = seeded
    order = client.post("/api/v1/orders", json=order_payload(customer["id"], product["id"])).json()

    resp = client.patch(f"/api/v1/orders/{order['id']}/payment-status", json={"payment_status": "PAID"})

    assert resp.json()["payment_status"] == "PAID"


def test_stock_adjustment_and_audit(client, seeded):
    _, product = seeded
    url = f"/api/v1/products/{product['id']}"

    assert client.patch(f"{url}/stock", json={"quantity": -95}).json()["stock_quantity"] == 5
    too_much = client.patch(f"{url}/stock", json={"quantity": -6})
    assert too_much.status_code == 400

    audit = client.get(f"{url}/stock-audit").json()
    assert audit == {
        "product_id": product["id"],
        "stock_quantity": 5,
        "ledger_quantity": 5,
        "transactions": 2,
        "consistent": True,
    }
    assert [p["id"] for p in client.get("/api/v1/products/low-stock").json()] == [product["id"]]


def test_product_lookup_by_code_and_update(client, seeded):
    _, product = seeded
    assert client.get("/api/v1/products/code/P001").json()["id"] == product["id"]

    resp = client.put(f"/api/v1/products/{product['id']}", json={
        "product_code": "P001", "name": "Laptop 14", "unit_price": "6499.00", "min_stock": 10,
    })
    assert resp.status_code == 200
    assert resp.json()["name"] == "Laptop 14"
    assert resp.json()["stock_quantity"] == 100


def test_customer_crud(client, seeded):
    customer, _ = seeded
    url = f"/api/v1/customers/{customer['id']}"

    updated = client.put(url, json={
        "customer_code": "C001", "name": "Acme Trading Ltd", "credit_limit": "50000.00", "status": "INACTIVE",
    })
    assert updated.json()["status"] == "INACTIVE"
    assert [c["customer_code"] for c in client.get("/api/v1/customers?status=INACTIVE").json()] == ["C001"]
    assert client.get("/api/v1/customers/code/C001").json()["name"] == "Acme Trading Ltd"

    assert client.delete(url).status_code == 204
    assert client.get(url).status_code == 404


def test_customer_with_orders_cannot_be_deleted(client, seeded):
    customer, product = seeded
    client.post("/api/v1/orders", json=order_payload(customer["id"], product["id"]))

    assert client.delete(f"/api/v1/customers/{customer['id']}").status_code == 400


def test_unexpected_errors_are_generic_500(client, monkeypatch):
    from order_management.services import orders

    def boom(db, status=None):
        raise RuntimeError("database password is hunter2")

    monkeypatch.setattr(orders, "list_orders", boom)
    resp = TestClient(app, raise_server_exceptions=False).get("/api/v1/orders")

    assert resp.status_code == 500
    assert "hunter2" not in resp.text
    assert resp.json()["error"] == "Internal Server Error"


@pytest.mark.parametrize("payload", [
    {"quantity": 2**31},
    {"quantity": -(2**31)},
    {"quantity": 10**20},
])
def test_out_of_range_stock_adjustment_is_400(client, seeded, payload):
    _, product = seeded

    resp = client.patch(f"/api/v1/products/{product['id']}/stock", json=payload)

    assert resp.status_code == 400
    assert "quantity" in resp.json()["details"]
    assert client.get(f"/api/v1/products/{product['id']}").json()["stock_quantity"] == 100


def test_out_of_range_order_quantity_is_400(client, seeded):
    customer, product = seeded
    resp = client.post("/api/v1/orders", json=order_payload(customer["id"], product["id"], quantity=2**31))
    assert resp.status_code == 400
