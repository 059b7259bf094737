import threading
from concurrent.futures import ThreadPoolExecutor

import pytest
from bson import ObjectId

from conftest import SHIPPING, auth_header, make_product, make_user


def order_payload(*lines):
    return {
        "items": [{"product": str(pid), "quantity": qty} for pid, qty in lines],
        "shipping_address": SHIPPING,
        "payment_method": "card",
    }


def stock_of(db, product_id):
    return db["product"].find_one({"_id": product_id})["stock"]


def test_place_order_decrements_stock_and_prices(client, db, category, customer, customer_headers):
    mug = make_product(db, category, name="Mug", sku="M-1", price=12.5, stock=10)
    pen = make_product(db, category, name="Pen", sku="P-1", price=3.0, stock=4)

    res = client.post("/api/orders", json=order_payload((mug, 2), (pen, 3)), headers=customer_headers)
    assert res.status_code == 201
    data = res.json()["data"]
    assert data["subtotal"] == 34.0
    assert data["tax"] == 2.72
    assert data["shipping"] == 5.99
    assert data["total"] == 42.71
    assert data["status"] == "pending"
    assert data["payment_status"] == "pending"
    assert data["user"]["email"] == "customer@example.com"
    assert [i["name"] for i in data["items"]] == ["Mug", "Pen"]
    assert data["items"][0]["product"]["name"] == "Mug"

    assert stock_of(db, mug) == 8
    assert stock_of(db, pen) == 1


def test_free_shipping_over_threshold(client, db, category, customer_headers):
    lamp = make_product(db, category, name="Lamp", sku="L-1", price=60.0, stock=3)
    data = client.post("/api/orders", json=order_payload((lamp, 1)), headers=customer_headers).json()["data"]
    assert data["shipping"] == 0
    assert data["tax"] == 4.8
    assert data["total"] == 64.8


def test_exactly_fifty_still_pays_shipping(client, db, category, customer_headers):
    item = make_product(db, category, name="Half", sku="H-1", price=25.0, stock=3)
    data = client.post("/api/orders", json=order_payload((item, 2)), headers=customer_headers).json()["data"]
    assert data["shipping"] == 5.99


def test_insufficient_stock_rejects_and_releases_earlier_lines(client, db, category, customer_headers):
    plenty = make_product(db, category, name="Plenty", sku="A-1", stock=10)
    scarce = make_product(db, category, name="Scarce", sku="B-1", stock=1)

    res = client.post("/api/orders", json=order_payload((plenty, 4), (scarce, 2)), headers=customer_headers)
    assert res.status_code == 400
    assert res.json() == {"success": False, "error": "Insufficient stock for Scarce"}
    assert stock_of(db, plenty) == 10
    assert stock_of(db, scarce) == 1
    assert db["order"].count_documents({}) == 0


def test_unknown_product(client, db, category, customer_headers):
    good = make_product(db, category, stock=5)
    res = client.post("/api/orders", json=order_payload((good, 1), ("64b000000000000000000000", 1)),
                      headers=customer_headers)
    assert res.status_code == 400
    assert res.json()["error"] == "Product 64b000000000000000000000 not found"
    assert stock_of(db, good) == 5


def test_sequential_orders_never_oversell(client, db, category, customer_headers):
    item = make_product(db, category, stock=3)
    assert client.post("/api/orders", json=order_payload((item, 2)), headers=customer_headers).status_code == 201
    assert client.post("/api/orders", json=order_payload((item, 2)), headers=customer_headers).status_code == 400
    assert client.post("/api/orders", json=order_payload((item, 1)), headers=customer_headers).status_code == 201
    assert stock_of(db, item) == 0


@pytest.mark.parametrize("payload_change", [
    {"items": []},
    {"payment_method": ""},
])
def test_order_validation(client, db, category, customer_headers, payload_change):
    item = make_product(db, category)
    res = client.post("/api/orders", json={**order_payload((item, 1)), **payload_change}, headers=customer_headers)
    assert res.status_code == 400
    assert res.json()["success"] is False


def test_order_requires_login(client, db, category):
    item = make_product(db, category)
    assert client.post("/api/orders", json=order_payload((item, 1))).status_code == 401


def test_my_orders_and_ownership(client, db, category, customer_headers):
    item = make_product(db, category)
    order_id = client.post("/api/orders", json=order_payload((item, 1)), headers=customer_headers).json()["data"]["id"]

    mine = client.get("/api/orders/my-orders", headers=customer_headers).json()
    assert [o["id"] for o in mine["data"]] == [order_id]
    assert mine["pagination"]["total"] == 1

    stranger = auth_header(make_user(db, email="other@example.com"))
    res = client.get(f"/api/orders/{order_id}", headers=stranger)
    assert res.status_code == 403
    assert res.json()["error"] == "Not authorized to view this order"
    assert client.get(f"/api/orders/{order_id}", headers=customer_headers).status_code == 200


def test_admin_lists_orders(client, db, category, customer_headers, admin_headers):
    item = make_product(db, category)
    client.post("/api/orders", json=order_payload((item, 1)), headers=customer_headers)

    assert client.get("/api/orders", headers=customer_headers).status_code == 403
    res = client.get("/api/orders", params={"status": "pending"}, headers=admin_headers)
    assert res.json()["pagination"]["total"] == 1
    assert client.get("/api/orders", params={"status": "shipped"}, headers=admin_headers).json()["data"] == []


def test_status_updates_set_timestamps(client, db, category, customer_headers, admin_headers):
    item = make_product(db, category)
    order_id = client.post("/api/orders", json=order_payload((item, 1)), headers=customer_headers).json()["data"]["id"]

    shipped = client.put(f"/api/orders/{order_id}/status", json={"status": "shipped", "tracking_number": "1Z999"},
                         headers=admin_headers).json()["data"]
    assert shipped["status"] == "shipped"
    assert shipped["tracking_number"] == "1Z999"
    assert shipped["shipped_at"] is not None

    delivered = client.put(f"/api/orders/{order_id}/status", json={"status": "delivered", "payment_status": "paid"},
                           headers=admin_headers).json()["data"]
    assert delivered["delivered_at"] is not None
    assert delivered["payment_status"] == "paid"


def test_invalid_status(client, db, category, customer_headers, admin_headers):
    item = make_product(db, category)
    order_id = client.post("/api/orders", json=order_payload((item, 1)), headers=customer_headers).json()["data"]["id"]
    res = client.put(f"/api/orders/{order_id}/status", json={"status": "lost"}, headers=admin_headers)
    assert res.status_code == 400


def test_cancel_restocks_once(client, db, category, customer_headers, admin_headers):
    item = make_product(db, category, stock=5)
    order_id = client.post("/api/orders", json=order_payload((item, 2)), headers=customer_headers).json()["data"]["id"]
    assert stock_of(db, item) == 3

    client.put(f"/api/orders/{order_id}/status", json={"status": "cancelled"}, headers=admin_headers)
    assert stock_of(db, item) == 5
    client.put(f"/api/orders/{order_id}/status", json={"status": "refunded"}, headers=admin_headers)
    assert stock_of(db, item) == 5


def test_cancelled_order_cannot_be_reopened(client, db, category, customer_headers, admin_headers):
    item = make_product(db, category, stock=5)
    order_id = client.post("/api/orders", json=order_payload((item, 2)), headers=customer_headers).json()["data"]["id"]

    client.put(f"/api/orders/{order_id}/status", json={"status": "cancelled"}, headers=admin_headers)
    res = client.put(f"/api/orders/{order_id}/status", json={"status": "processing"}, headers=admin_headers)
    assert res.status_code == 400
    assert res.json()["error"] == "Cannot change status of a cancelled order"
    assert client.put(f"/api/orders/{order_id}/status", json={"status": "shipped"},
                      headers=admin_headers).status_code == 400

    client.put(f"/api/orders/{order_id}/status", json={"status": "refunded"}, headers=admin_headers)
    assert stock_of(db, item) == 5
    assert db["order"].find_one({"_id": ObjectId(order_id)})["status"] == "refunded"


def test_concurrent_orders_cannot_oversell(client, db, category, customer_headers):
    item = make_product(db, category, stock=5)
    barrier = threading.Barrier(2)

    def place():
        barrier.wait()
        return client.post("/api/orders", json=order_payload((item, 3)), headers=customer_headers).status_code

    with ThreadPoolExecutor(max_workers=2) as pool:
        codes = sorted(pool.map(lambda _: place(), range(2)))

    assert codes == [201, 400]
    assert stock_of(db, item) == 2
    assert db["order"].count_documents({}) == 1
