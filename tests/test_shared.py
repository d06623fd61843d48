import asyncio
import logging

import httpx
import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient

from shared import permissions
from shared.auth import require_permission, verify_user
from shared.clients import Notifier, UserDirectory
from shared.config import database_url
from shared.errors import (
    ConflictError, InvalidStateTransition, NotFoundError, UpstreamError,
    register_error_handlers,
)
from shared.pagination import envelope


def test_envelope_math():
    assert envelope([1, 2], 5, 1, 2) == {"items": [1, 2], "totalItems": 5, "page": 1, "pageSize": 2, "totalPages": 3}
    assert envelope([], 0, 1, 10)["totalPages"] == 0
    assert envelope([], 10, 4, 10)["totalPages"] == 1


def test_database_url_override(monkeypatch):
    monkeypatch.setenv("PAYROLL_DATABASE_URL", "sqlite:///x.db")
    assert database_url("PAYROLL", "payroll_db") == "sqlite:///x.db"

    monkeypatch.delenv("PAYROLL_DATABASE_URL")
    monkeypatch.setenv("PAYROLL_DB_HOST", "mysql-host")
    assert database_url("PAYROLL", "payroll_db").endswith("@mysql-host/payroll_db")
    assert database_url("PAYROLL", "payroll_db").startswith("mysql+pymysql://")


def test_invalid_state_transition_is_conflict():
    assert issubclass(InvalidStateTransition, ConflictError)
    assert InvalidStateTransition("x").status_code == 409


@pytest.fixture
def guarded_app():
    app = FastAPI()
    register_error_handlers(app)

    @app.get("/secret", dependencies=[Depends(require_permission(permissions.USER_READ))])
    def secret():
        return {"ok": True}

    @app.get("/missing")
    def missing():
        raise NotFoundError("Thing not found")

    return app


def test_require_permission(guarded_app):
    client = TestClient(guarded_app)

    guarded_app.dependency_overrides[verify_user] = lambda: {"id": "a", "permissions": [permissions.USER_READ]}
    assert client.get("/secret").json() == {"ok": True}

    guarded_app.dependency_overrides[verify_user] = lambda: {"id": "b", "permissions": []}
    res = client.get("/secret")
    assert res.status_code == 403
    assert res.json()["detail"] == "Missing permission: user:read"


def test_missing_token_is_unauthorized(guarded_app):
    assert TestClient(guarded_app).get("/secret").status_code == 401


def test_domain_error_mapping(guarded_app):
    res = TestClient(guarded_app).get("/missing")
    assert res.status_code == 404
    assert res.json() == {"detail": "Thing not found"}


# --- HTTP CLIENTS ---
def user_directory(handler):
    return UserDirectory(base_url="http://users", transport=httpx.MockTransport(handler))


def test_user_directory_found_and_missing():
    def handler(request):
        if request.url.path == "/internal/users/u1":
            return httpx.Response(200, json={"id": "u1", "role": {"name": "USER"}})
        return httpx.Response(404, json={"detail": "not found"})

    directory = user_directory(handler)
    assert asyncio.run(directory.get_user("u1"))["id"] == "u1"
    assert asyncio.run(directory.get_user("u2")) is None


def test_user_directory_unreachable():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(UpstreamError, match="User Service unavailable"):
        asyncio.run(user_directory(handler).get_user("u1"))


def test_notifier_posts_message():
    seen = []

    def handler(request):
        seen.append((request.url.path, request.read()))
        return httpx.Response(200, json={"status": "sent", "delivered": 1})

    notifier = Notifier(base_url="http://notify", transport=httpx.MockTransport(handler))
    asyncio.run(notifier.notify("u1", "hello"))

    assert seen[0][0] == "/notify"
    assert b'"message":"hello"' in seen[0][1].replace(b" ", b"")


def test_notifier_failure_is_only_logged(caplog):
    def handler(request):
        return httpx.Response(500, text="boom")

    notifier = Notifier(base_url="http://notify", transport=httpx.MockTransport(handler))
    with caplog.at_level(logging.WARNING):
        asyncio.run(notifier.notify("u1", "hello"))

    assert "Notification to user u1 failed" in caplog.text
