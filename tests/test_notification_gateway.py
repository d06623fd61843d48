import httpx
import pytest
from fastapi.testclient import TestClient

import gateway_service.main as gateway
from notification_service.main import app as notification_app, manager
from shared.config import ORDER_SERVICE_URL, RESTAURANT_SERVICE_URL


# --- NOTIFICATION ---
def test_notify_reaches_connected_user():
    with TestClient(notification_app) as client, client.websocket_connect("/ws/u1") as ws:
        res = client.post("/notify", json={"user_id": "u1", "message": "Order #1 shipping status: SHIPPING"})
        assert res.json() == {"status": "sent", "delivered": 1}
        assert ws.receive_text() == "Order #1 shipping status: SHIPPING"


def test_notify_offline_user():
    res = TestClient(notification_app).post("/notify", json={"user_id": "nobody", "message": "hi"})
    assert res.json()["delivered"] == 0
    assert "nobody" not in manager.active_connections


# --- GATEWAY ---
@pytest.fixture
def upstream(monkeypatch):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={"proxied": str(request.url)})

    monkeypatch.setattr(gateway, "build_client", lambda: httpx.AsyncClient(transport=httpx.MockTransport(handler)))
    return calls


def test_gateway_forwards_path_query_and_auth(upstream):
    client = TestClient(gateway.app)

    res = client.get("/restaurants/preview", params={"page": 2, "approved": "true"},
                     headers={"Authorization": "Bearer t"})

    assert res.status_code == 200
    forwarded = upstream[0]
    assert str(forwarded.url).startswith(f"{RESTAURANT_SERVICE_URL}/restaurants/preview")
    assert forwarded.url.params["page"] == "2"
    assert forwarded.headers["authorization"] == "Bearer t"


def test_gateway_routes_shipping_to_order_service(upstream):
    TestClient(gateway.app).put("/shipping/abc/status", json={"status": "SHIPPING"})

    forwarded = upstream[0]
    assert str(forwarded.url).startswith(ORDER_SERVICE_URL)
    assert forwarded.url.path == "/shipping/abc/status"
    assert forwarded.method == "PUT"
    assert b"SHIPPING" in forwarded.content


def test_gateway_passes_upstream_status(monkeypatch):
    transport = httpx.MockTransport(lambda request: httpx.Response(409, json={"detail": "not in pending status"}))
    monkeypatch.setattr(gateway, "build_client", lambda: httpx.AsyncClient(transport=transport))

    res = TestClient(gateway.app).put("/restaurants/r1/approve")

    assert res.status_code == 409
    assert res.json() == {"detail": "not in pending status"}


def test_gateway_unreachable_service(monkeypatch):
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    monkeypatch.setattr(gateway, "build_client", lambda: httpx.AsyncClient(transport=httpx.MockTransport(handler)))

    res = TestClient(gateway.app).get("/orders")
    assert res.status_code == 503
    assert res.json()["detail"] == f"Service Unavailable: {ORDER_SERVICE_URL}"


def test_gateway_hides_internal_order_stats(upstream):
    client = TestClient(gateway.app)

    res = client.get("/orders/stats", params={"restaurant_id": "r1", "month": "2024-05"})

    assert res.status_code == 404
    assert client.get("/orders/stats/").status_code == 404
    assert upstream == []

    assert client.get("/orders/7").status_code == 200
    assert upstream[0].url.path == "/orders/7"
