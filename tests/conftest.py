import os
import tempfile

# Các service đọc cấu hình DB lúc import: trỏ về SQLite trước khi import
os.environ.setdefault("USER_DATABASE_URL", "sqlite://")
os.environ.setdefault("RESTAURANT_DATABASE_URL", "sqlite://")
os.environ.setdefault("ORDER_DATABASE_URL", "sqlite://")
os.environ.setdefault("STATIC_DIR", tempfile.mkdtemp(prefix="static-"))

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from shared import permissions

ADMIN = {"id": "admin-1", "role": "ADMIN", "permissions": permissions.ALL}
CUSTOMER = {"id": "user-1", "role": "USER", "permissions": permissions.DEFAULT_ROLES["USER"]}
SHIPPER = {"id": "shipper-1", "role": "SHIPPER", "permissions": permissions.DEFAULT_ROLES["SHIPPER"]}


def make_session_factory(base):
    engine = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    base.metadata.create_all(bind=engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_db(session_factory):
    def get_test_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()
    return get_test_db


# --- COLLABORATOR GIẢ ---
class FakeUsers:
    def __init__(self, users=None):
        self.users = users or {}

    async def get_user(self, user_id):
        return self.users.get(user_id)


class FakeStorage:
    def __init__(self, fail_folder=None, fail_delete=False):
        self.fail_folder = fail_folder
        self.fail_delete = fail_delete
        self.files = {}
        self.deleted = []

    async def upload(self, file, folder):
        if folder == self.fail_folder:
            raise RuntimeError("bucket unavailable")
        url = f"https://storage.test/{folder}/{len(self.files) + 1}-{file.filename}"
        self.files[url] = file.file.read()
        return url

    async def delete(self, url):
        if self.fail_delete:
            raise RuntimeError("delete refused")
        self.deleted.append(url)
        self.files.pop(url, None)


class FakeGeocoder:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.calls = []

    async def geocode(self, address):
        self.calls.append(address)
        if self.error:
            raise self.error
        return self.result


class FakeNotifier:
    def __init__(self):
        self.messages = []

    async def notify(self, user_id, message):
        self.messages.append((user_id, message))


class FakeOrderStats:
    def __init__(self, count=0, revenue=0.0):
        self.count = count
        self.revenue = revenue
        self.calls = []

    async def stats(self, restaurant_id, month=None):
        self.calls.append((restaurant_id, month))
        return {"restaurant_id": restaurant_id, "month": month, "orderCount": self.count, "revenue": self.revenue}


@pytest.fixture
def fake_users():
    return FakeUsers({
        "u1": {"id": "u1", "username": "joe", "role": {"id": 2, "name": "USER"}},
        "u2": {"id": "u2", "username": "ann", "role": {"id": 2, "name": "USER"}},
        "s1": {"id": "s1", "username": "sam", "role": {"id": 3, "name": "SHIPPER"}},
    })


@pytest.fixture
def fake_storage():
    return FakeStorage()


@pytest.fixture
def fake_geocoder():
    return FakeGeocoder(result={"lat": 10.77, "lng": 106.70})


@pytest.fixture
def fake_notifier():
    return FakeNotifier()


@pytest.fixture
def fake_orders():
    return FakeOrderStats(count=4, revenue=250000.0)
