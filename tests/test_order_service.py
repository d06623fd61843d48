from datetime import datetime

import pytest
from fastapi.testclient import TestClient

from conftest import ADMIN, CUSTOMER, SHIPPER, make_session_factory, override_db
from order_service import models
from order_service.database import Base, get_db
from order_service.main import app, get_notifier, get_user_directory
from order_service.models import OrderStatus
from order_service.services import OrderService, month_range
from shared.auth import verify_user
from shared.errors import BadRequestError


@pytest.fixture
def session_factory():
    return make_session_factory(Base)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def client(session_factory, fake_users, fake_notifier):
    app.dependency_overrides.update({
        get_db: override_db(session_factory),
        get_user_directory: lambda: fake_users,
        get_notifier: lambda: fake_notifier,
        verify_user: lambda: ADMIN,
    })
    yield TestClient(app)
    app.dependency_overrides.clear()


def checkout(client, restaurant_id="r1", user_id="u1", items=None):
    payload = {
        "user_id": user_id,
        "restaurant_id": restaurant_id,
        "customer_name": "Joe",
        "customer_phone": "0901234567",
        "delivery_address": "1 Le Loi",
        "items": items or [
            {"food_id": 1, "food_name": "Pho", "quantity": 2, "price": 45000},
            {"food_id": 2, "food_name": "Tra da", "quantity": 1, "price": 5000},
        ],
    }
    res = client.post("/checkout", json=payload)
    assert res.status_code == 200, res.text
    return res.json()


def add_order(db, restaurant_id, total, created_at, status=OrderStatus.PENDING):
    order = models.Order(user_id="u1", restaurant_id=restaurant_id, total_price=total,
                         status=status, created_at=created_at)
    db.add(order)
    db.commit()


# --- ĐƠN HÀNG ---
def test_checkout_computes_total(client):
    order = checkout(client)

    assert order["total_price"] == 95000
    assert order["status"] == "PENDING"
    assert order["payment_method"] == "COD"
    assert len(order["items"]) == 2


def test_checkout_empty_cart(client):
    res = client.post("/checkout", json={
        "user_id": "u1", "restaurant_id": "r1", "customer_name": "Joe",
        "customer_phone": "0901234567", "delivery_address": "1 Le Loi", "items": [],
    })
    assert res.status_code == 400
    assert res.json()["detail"] == "Cart is empty"


def test_checkout_requires_order_permission(client):
    app.dependency_overrides[verify_user] = lambda: SHIPPER
    res = client.post("/checkout", json={
        "user_id": "u1", "restaurant_id": "r1", "customer_name": "Joe",
        "customer_phone": "0901234567", "delivery_address": "1 Le Loi",
        "items": [{"food_id": 1, "food_name": "Pho", "quantity": 1, "price": 45000}],
    })
    assert res.status_code == 403


def test_list_and_detail(client):
    checkout(client, restaurant_id="r1")
    second = checkout(client, restaurant_id="r2")

    assert [o["id"] for o in client.get("/orders", params={"restaurant_id": "r2"}).json()] == [second["id"]]
    assert client.get(f"/orders/{second['id']}").json()["restaurant_id"] == "r2"
    assert client.get("/orders/999").status_code == 404


def test_update_order_status(client):
    order = checkout(client)
    res = client.put(f"/orders/{order['id']}/status", json={"status": "CONFIRMED"})
    assert res.json()["status"] == "CONFIRMED"

    assert client.put(f"/orders/{order['id']}/status", json={"status": "CANCELLED"}).status_code == 200
    # CANCELLED là trạng thái cuối
    res = client.put(f"/orders/{order['id']}/status", json={"status": "PAID"})
    assert res.status_code == 409
    assert res.json()["detail"] == f"Cannot change order {order['id']} from CANCELLED to PAID"


def test_customer_cannot_change_order_status(client):
    order = checkout(client, user_id="u2")
    create_shipping(client, order["id"])
    app.dependency_overrides[verify_user] = lambda: CUSTOMER

    for status in ("DELIVERED", "CANCELLED"):
        res = client.put(f"/orders/{order['id']}/status", json={"status": status})
        assert res.status_code == 403

    app.dependency_overrides[verify_user] = lambda: ADMIN
    assert client.get(f"/orders/{order['id']}").json()["status"] == "PENDING"
    assert client.get(f"/shipping/order/{order['id']}").json()["status"] == "PENDING"


def test_delivered_only_through_shipping(client):
    order = checkout(client)

    res = client.put(f"/orders/{order['id']}/status", json={"status": "DELIVERED"})

    assert res.status_code == 409
    assert res.json()["detail"] == f"Order {order['id']} is marked DELIVERED by its shipping record"
    assert client.get(f"/orders/{order['id']}").json()["status"] == "PENDING"


# --- THỐNG KÊ ---
def test_month_range():
    assert month_range("2024-12") == (datetime(2024, 12, 1), datetime(2025, 1, 1))
    with pytest.raises(BadRequestError):
        month_range("2024-13")
    with pytest.raises(BadRequestError):
        month_range("May 2024")


def test_stats_filters_month_and_skips_cancelled(db):
    add_order(db, "r1", 100.0, datetime(2024, 5, 3))
    add_order(db, "r1", 50.5, datetime(2024, 5, 31, 23, 59))
    add_order(db, "r1", 999.0, datetime(2024, 5, 10), status=OrderStatus.CANCELLED)
    add_order(db, "r1", 70.0, datetime(2024, 6, 1))
    add_order(db, "r2", 30.0, datetime(2024, 5, 4))

    service = OrderService(db)
    assert service.stats("r1", "2024-05") == {
        "restaurant_id": "r1", "month": "2024-05", "orderCount": 2, "revenue": 150.5,
    }
    assert service.stats("r1")["orderCount"] == 3
    assert service.stats("nobody") == {"restaurant_id": "nobody", "month": None, "orderCount": 0, "revenue": 0.0}


def test_stats_endpoint_is_internal(client):
    app.dependency_overrides.pop(verify_user)
    res = client.get("/orders/stats", params={"restaurant_id": "r1", "month": "bad"})
    assert res.status_code == 400
    assert client.get("/orders/stats", params={"restaurant_id": "r1"}).json()["orderCount"] == 0


# --- GIAO HÀNG ---
def create_shipping(client, order_id, shipper_id=None):
    payload = {"order_id": order_id}
    if shipper_id:
        payload["shipper_id"] = shipper_id
    return client.post("/shipping", json=payload)


def test_one_shipping_record_per_order(client):
    order = checkout(client)

    first = create_shipping(client, order["id"])
    assert first.status_code == 200
    assert first.json()["status"] == "PENDING"
    assert first.json()["shipper_id"] is None

    again = create_shipping(client, order["id"])
    assert again.status_code == 409

    assert client.get(f"/shipping/order/{order['id']}").json()["id"] == first.json()["id"]


def test_shipping_for_missing_order(client):
    assert create_shipping(client, 42).status_code == 404


def test_shipper_must_have_shipper_role(client):
    order = checkout(client)

    res = create_shipping(client, order["id"], shipper_id="u1")
    assert res.status_code == 400
    assert res.json()["detail"] == "User u1 is not a shipper"

    assert create_shipping(client, order["id"], shipper_id="ghost").json()["detail"] == "Shipper not found"


def test_shipping_lifecycle(client, fake_notifier):
    order = checkout(client)
    shipping = create_shipping(client, order["id"]).json()

    # chưa có shipper thì chưa được giao
    res = client.put(f"/shipping/{shipping['id']}/status", json={"status": "SHIPPING"})
    assert res.status_code == 400

    assert client.put(f"/shipping/{shipping['id']}/shipper", json={"shipper_id": "s1"}).json()["shipper_id"] == "s1"
    assert client.put(f"/shipping/{shipping['id']}/status", json={"status": "SHIPPING"}).json()["status"] == "SHIPPING"

    delivered = client.put(f"/shipping/{shipping['id']}/status", json={"status": "DELIVERED"})
    assert delivered.json()["status"] == "DELIVERED"
    assert client.get(f"/orders/{order['id']}").json()["status"] == "DELIVERED"
    assert fake_notifier.messages[-1] == ("u1", f"Order #{order['id']} shipping status: DELIVERED")

    # DELIVERED là trạng thái cuối
    back = client.put(f"/shipping/{shipping['id']}/status", json={"status": "SHIPPING"})
    assert back.status_code == 409
    assert client.put(f"/shipping/{shipping['id']}/shipper", json={"shipper_id": "s1"}).status_code == 409


def test_cannot_skip_shipping_step(client):
    order = checkout(client)
    shipping = create_shipping(client, order["id"], shipper_id="s1").json()

    res = client.put(f"/shipping/{shipping['id']}/status", json={"status": "DELIVERED"})
    assert res.status_code == 409
    assert res.json()["detail"] == f"Cannot change shipping {shipping['id']} from PENDING to DELIVERED"

    assert client.put(f"/shipping/{shipping['id']}/status", json={"status": "CANCELLED"}).status_code == 200


def test_list_shipments_by_shipper(client):
    for _ in range(3):
        order = checkout(client)
        create_shipping(client, order["id"], shipper_id="s1")
    create_shipping(client, checkout(client)["id"])

    body = client.get("/shipping", params={"shipper_id": "s1", "pageSize": 2}).json()
    assert body["totalItems"] == 3
    assert body["totalPages"] == 2
    assert all(s["shipper_id"] == "s1" for s in body["items"])

    pending = client.get("/shipping", params={"status": "PENDING"}).json()
    assert pending["totalItems"] == 4


def test_customer_cannot_update_shipping(client):
    order = checkout(client)
    shipping = create_shipping(client, order["id"]).json()
    app.dependency_overrides[verify_user] = lambda: CUSTOMER

    assert client.put(f"/shipping/{shipping['id']}/status", json={"status": "CANCELLED"}).status_code == 403
