"""
Shared fixtures: an in-memory Redis stand-in, test settings backed by a
throwaway SQLite database, and a TestClient running the full app.
"""

import math

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from app.cache.layer import CacheLayer
from app.core.config import Settings
from app.main import create_app


class FakeRedis:
    """Minimal async Redis double with a manual clock for TTL checks."""

    def __init__(self):
        self.store = {}  # key -> (value, expires_at or None)
        self.now = 0.0
        self.closed = False

    def advance(self, seconds: float):
        self.now += seconds

    def _live(self, key):
        entry = self.store.get(key)
        if entry is None:
            return None
        expires_at = entry[1]
        if expires_at is not None and expires_at <= self.now:
            del self.store[key]
            return None
        return entry

    async def ping(self):
        return True

    async def get(self, key):
        entry = self._live(key)
        return entry[0] if entry else None

    async def set(self, key, value, ex=None):
        self.store[key] = (value, self.now + ex if ex else None)
        return True

    async def expire(self, key, seconds):
        entry = self._live(key)
        if entry is None:
            return False
        self.store[key] = (entry[0], self.now + seconds)
        return True

    async def delete(self, *keys):
        removed = 0
        for key in keys:
            if self._live(key) is not None:
                del self.store[key]
                removed += 1
        return removed

    async def ttl(self, key):
        entry = self._live(key)
        if entry is None:
            return -2
        if entry[1] is None:
            return -1
        return math.ceil(entry[1] - self.now)

    async def aclose(self):
        self.closed = True


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        jwt_secret="test-secret",
        log_dir=None,
        log_level="warning",
        rate_limit_max_requests=1000,
    )


@pytest_asyncio.fixture
async def cache(settings, fake_redis):
    cache = CacheLayer(settings, redis=fake_redis)
    yield cache
    await cache.close()


@pytest.fixture
def app(settings, fake_redis):
    return create_app(settings, redis=fake_redis)


@pytest.fixture
def client(app):
    with TestClient(app) as client:
        yield client


@pytest.fixture
def user_payload():
    return {"email": "a@b.com", "password": "secret1", "age": 20, "name": "Alice"}


@pytest.fixture
def registered_user(client, user_payload):
    response = client.post("/user", json=user_payload)
    assert response.status_code == 200
    return response.json()["data"]


@pytest.fixture
def tokens(client, registered_user, user_payload):
    response = client.post(
        "/login",
        json={"email": user_payload["email"], "password": user_payload["password"]},
    )
    assert response.status_code == 200
    return response.json()["data"]


@pytest.fixture
def auth_headers(tokens):
    return {"Authorization": f"Bearer {tokens['token']}"}


@pytest.fixture
def category(client):
    response = client.post(
        "/category/create", json={"name": "Electronics", "description": "Gadgets"}
    )
    assert response.status_code == 200
    return response.json()["data"]
