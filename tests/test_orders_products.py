import pytest
from google.cloud.firestore import ArrayUnion

from conftest import apply_update, at


@pytest.fixture
def orders(fake_db):
    fake_db.seed("orders", "ord-aaa111", createdAt=at(2024, 3, 1), total=120.0, status="pending",
                 customerName="Sara Khan", customerEmail="sara@example.com",
                 items=[{"productId": "p1", "price": 60.0, "quantity": 2}])
    fake_db.seed("orders", "ord-bbb222", createdAt=at(2024, 3, 3), total=80.0, status="delivered",
                 shippingAddress={"fullName": "Omar Ali"}, items=[])
    fake_db.seed("orders", "ord-ccc333", createdAt=at(2024, 3, 2), total=None, status="pending")
    return fake_db


def test_list_orders_newest_first_with_defaults(client, orders):
    r = client.get("/api/orders")
    assert r.status_code == 200
    rows = r.json()
    assert [o["id"] for o in rows] == ["ord-bbb222", "ord-ccc333", "ord-aaa111"]
    assert rows[0]["customerName"] == "Omar Ali"
    assert rows[1]["customerName"] == "Guest Customer"
    assert rows[1]["customerEmail"] == "N/A"
    assert rows[1]["paymentStatus"] == "pending"
    assert rows[2]["itemsCount"] == 1


def test_list_orders_filters(client, orders):
    assert len(client.get("/api/orders", params={"status": "pending"}).json()) == 2
    found = client.get("/api/orders", params={"search": "SARA@"}).json()
    assert [o["id"] for o in found] == ["ord-aaa111"]
    assert client.get("/api/orders", params={"status": "lost"}).status_code == 422


def test_order_stats(client, orders):
    stats = client.get("/api/orders/stats").json()
    assert stats["total"] == 3
    assert stats["pending"] == 2
    assert stats["totalRevenue"] == 200.0


def test_missing_order_is_404(client, orders):
    r = client.get("/api/orders/nope")
    assert r.status_code == 404
    assert r.json()["detail"] == "Order not found"


def test_status_update_appends_history(client, orders):
    r = client.patch("/api/orders/ord-aaa111/status", json={"status": "shipped", "note": "DHL"})
    assert r.status_code == 200
    client.patch("/api/orders/ord-aaa111/status", json={"status": "delivered"})
    doc = orders.doc("orders", "ord-aaa111")
    assert doc["status"] == "delivered"
    assert [h["status"] for h in doc["statusHistory"]] == ["shipped", "delivered"]
    assert doc["statusHistory"][0]["note"] == "DHL"
    assert doc["statusHistory"][0]["updatedBy"] == "admin-1"


def test_status_update_rejects_unknown_status(client, orders):
    r = client.patch("/api/orders/ord-aaa111/status", json={"status": "teleported"})
    assert r.status_code == 422
    assert orders.doc("orders", "ord-aaa111")["status"] == "pending"


def test_complaint_lifecycle(client, orders):
    r = client.post("/api/orders/ord-bbb222/complaints",
                    json={"subject": "Wrong size", "description": "Mats do not fit"})
    assert r.status_code == 200
    assert r.json()["complaint"]["status"] == "open"
    assert r.json()["complaint"]["raisedBy"] == "admin-1"

    r = client.post("/api/orders/ord-bbb222/complaints/0/resolve", json={"resolution": "Exchanged"})
    assert r.status_code == 200
    complaint = orders.doc("orders", "ord-bbb222")["complaints"][0]
    assert complaint["status"] == "resolved"
    assert complaint["resolvedBy"] == "admin-1"

    r = client.post("/api/orders/ord-bbb222/complaints/5/resolve", json={"resolution": "x"})
    assert r.status_code == 404
    assert r.json()["detail"] == "Complaint not found"


@pytest.fixture
def products(fake_db):
    fake_db.seed("products", "p1", name="Leather Seat Cover", category="Interior", status="approved",
                 isActive=True, stock=3, sellerId="s1", createdAt=at(2024, 1, 1))
    fake_db.seed("products", "p2", name="LED Headlight", category="Exterior", status="pending",
                 isActive=True, stock=40, sellerId="s1", createdAt=at(2024, 1, 2))
    fake_db.seed("products", "p3", name="Air Filter", category="Maintenance", status="approved",
                 isActive=False, stock=0, sellerId="s2", createdAt=at(2024, 1, 3))
    return fake_db


def test_list_products_filters(client, products):
    assert [p["id"] for p in client.get("/api/products").json()] == ["p3", "p2", "p1"]
    assert [p["id"] for p in client.get("/api/products", params={"status": "approved"}).json()] == ["p3", "p1"]
    assert [p["id"] for p in client.get("/api/products", params={"is_active": "false"}).json()] == ["p3"]
    assert [p["id"] for p in client.get("/api/products", params={"search": "led"}).json()] == ["p2"]


def test_product_categories(client, products):
    assert client.get("/api/products/categories").json() == ["Exterior", "Interior", "Maintenance"]


def test_removing_a_product_deactivates_it(client, products):
    r = client.patch("/api/products/p1/status", json={"status": "removed", "reason": "Counterfeit"})
    assert r.json() == {"id": "p1", "status": "removed", "isActive": False}
    doc = products.doc("products", "p1")
    assert doc["isActive"] is False
    assert doc["moderationReason"] == "Counterfeit"


def test_toggle_product_active(client, products):
    client.patch("/api/products/p3/active", json={"isActive": True})
    assert products.doc("products", "p3")["isActive"] is True
    assert client.patch("/api/products/zzz/active", json={"isActive": True}).status_code == 404


def test_bulk_update(client, products):
    r = client.post("/api/products/bulk", json={"productIds": ["p1", "p2"], "status": "approved"})
    assert r.json() == {"updated": ["p1", "p2"]}
    assert products.doc("products", "p2")["status"] == "approved"
    assert "updatedAt" not in products.doc("products", "p3")


def test_bulk_update_needs_a_change(client, products):
    assert client.post("/api/products/bulk", json={"productIds": ["p1"]}).status_code == 422
    assert client.post("/api/products/bulk", json={"productIds": [], "isActive": True}).status_code == 422


def test_low_stock(client, products):
    rows = client.get("/api/dashboard/low-stock", params={"threshold": 5}).json()
    assert [p["id"] for p in rows] == ["p1"]


def test_bulk_update_with_unknown_product_writes_nothing(client, products):
    r = client.post("/api/products/bulk", json={"productIds": ["p2", "ghost"], "status": "approved"})
    assert r.status_code == 404
    assert r.json()["detail"] == "Product not found"
    assert products.doc("products", "p2")["status"] == "pending"


def test_bulk_update_is_capped_at_one_batch(client, products):
    ids = [f"p{i}" for i in range(501)]
    assert client.post("/api/products/bulk", json={"productIds": ids, "isActive": False}).status_code == 422


def test_resolve_keeps_complaint_added_concurrently(client, orders):
    orders.seed("orders", "ord-ddd444", createdAt=at(2024, 3, 4), status="delivered",
                complaints=[{"subject": "Late", "description": "Two weeks", "status": "open"}])
    late_arrival = {"subject": "Scratched", "description": "Box was open", "status": "open"}
    # another writer appends between the transaction's read and its commit
    orders.read_hooks.append(
        lambda ref: apply_update(orders.doc("orders", "ord-ddd444"), {"complaints": ArrayUnion([late_arrival])})
    )

    r = client.post("/api/orders/ord-ddd444/complaints/0/resolve", json={"resolution": "Refunded shipping"})
    assert r.status_code == 200
    complaints = orders.doc("orders", "ord-ddd444")["complaints"]
    assert [c["subject"] for c in complaints] == ["Late", "Scratched"]
    assert complaints[0]["status"] == "resolved"
    assert complaints[1]["status"] == "open"


def test_resolve_complaint_on_missing_order(client, orders):
    r = client.post("/api/orders/nope/complaints/0/resolve", json={"resolution": "x"})
    assert r.status_code == 404
    assert r.json()["detail"] == "Order not found"
