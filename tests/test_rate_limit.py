"""
Unit tests for the fixed-window rate limiter.
"""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.core import responses
from app.middleware.rate_limit import FixedWindowRateLimiter, RateLimitMiddleware


class Clock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class TestFixedWindowRateLimiter:
    """Test cases for FixedWindowRateLimiter."""

    @pytest.fixture
    def clock(self):
        return Clock()

    @pytest.fixture
    def limiter(self, clock):
        return FixedWindowRateLimiter(window_seconds=60, max_requests=3, timer=clock)

    def test_allows_up_to_limit(self, limiter):
        """Test the first max_requests hits are allowed."""
        decisions = [limiter.hit("1.2.3.4") for _ in range(3)]
        assert all(d.allowed for d in decisions)
        assert [d.remaining for d in decisions] == [2, 1, 0]

    def test_rejects_request_over_limit(self, limiter, clock):
        """Test the (max+1)-th hit in a window is rejected."""
        for _ in range(3):
            limiter.hit("1.2.3.4")
        clock.now += 30

        decision = limiter.hit("1.2.3.4")
        assert decision.allowed is False
        assert decision.remaining == 0
        assert decision.reset_after == 30

    def test_window_reset(self, limiter, clock):
        """Test the first hit after the window elapses is allowed."""
        for _ in range(4):
            limiter.hit("1.2.3.4")
        clock.now += 60

        decision = limiter.hit("1.2.3.4")
        assert decision.allowed is True
        assert decision.remaining == 2

    def test_window_is_fixed_not_sliding(self, limiter, clock):
        """Test later hits do not extend the window."""
        limiter.hit("1.2.3.4")
        clock.now += 59
        limiter.hit("1.2.3.4")
        limiter.hit("1.2.3.4")
        clock.now += 1

        assert limiter.hit("1.2.3.4").remaining == 2

    def test_keys_are_independent(self, limiter):
        """Test one client's usage does not affect another."""
        for _ in range(4):
            limiter.hit("1.2.3.4")
        assert limiter.hit("5.6.7.8").allowed is True

    def test_headers(self, limiter):
        """Test rate limit headers on allowed and rejected decisions."""
        allowed = limiter.hit("k")
        assert allowed.headers() == {
            "RateLimit-Limit": "3",
            "RateLimit-Remaining": "2",
            "RateLimit-Reset": "60",
        }
        for _ in range(3):
            rejected = limiter.hit("k")
        assert rejected.headers()["Retry-After"] == "60"


class TestRateLimitMiddleware:
    """Test cases for RateLimitMiddleware."""

    @pytest.fixture
    def clock(self):
        return Clock()

    @pytest.fixture
    def client(self, clock):
        app = FastAPI()
        app.add_middleware(
            RateLimitMiddleware,
            limiter=FixedWindowRateLimiter(window_seconds=900, max_requests=2, timer=clock),
        )

        @app.get("/ping")
        async def ping():
            return {"ok": True}

        return TestClient(app)

    def test_returns_429_envelope(self, client):
        """Test the limit produces a 429 with the standard envelope."""
        assert client.get("/ping").status_code == 200
        second = client.get("/ping")
        assert second.status_code == 200
        assert second.headers["RateLimit-Remaining"] == "0"

        third = client.get("/ping")
        assert third.status_code == 429
        body = third.json()
        assert body["code"] == 429
        assert body["msg"] == responses.TOO_MANY_REQUESTS_MSG
        assert body["data"] is None
        assert third.headers["Retry-After"] == "900"

    def test_allows_after_window(self, client, clock):
        """Test requests succeed again once the window has passed."""
        for _ in range(3):
            client.get("/ping")
        clock.now += 900
        assert client.get("/ping").status_code == 200
