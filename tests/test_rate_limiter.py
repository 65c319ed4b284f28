"""Tests for host API rate limiting."""

from unittest.mock import MagicMock
from uuid import uuid4

import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient

from hostenly.api.dependencies import (
    AuthContext,
    get_inbound_pipeline,
    get_property_store,
    require_account,
)
from hostenly.core.rate_limiter import RateLimiter, get_api_rate_limiter
from hostenly.main import app


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def test_allows_up_to_max_requests_then_rejects():
    limiter = RateLimiter(max_requests=2, window_seconds=4, clock=FakeClock())

    for _ in range(2):
        limiter.check_limit("api:10.0.0.1")

    with pytest.raises(HTTPException) as exc_info:
        limiter.check_limit("api:10.0.0.1")

    assert exc_info.value.status_code == 429
    assert exc_info.value.headers["Retry-After"] == "3"


def test_keys_have_separate_budgets():
    limiter = RateLimiter(max_requests=1, window_seconds=60, clock=FakeClock())

    limiter.check_limit("api:10.0.0.1")
    limiter.check_limit("api:10.0.0.2")

    with pytest.raises(HTTPException):
        limiter.check_limit("api:10.0.0.1")


def test_budget_refills_over_the_window():
    clock = FakeClock()
    limiter = RateLimiter(max_requests=2, window_seconds=60, clock=clock)
    limiter.check_limit("k")
    limiter.check_limit("k")

    clock.now += 31
    limiter.check_limit("k")

    with pytest.raises(HTTPException):
        limiter.check_limit("k")

    clock.now += 600
    limiter.check_limit("k")
    limiter.check_limit("k")


def test_reset_restores_budget():
    limiter = RateLimiter(max_requests=1, window_seconds=60, clock=FakeClock())
    limiter.check_limit("k")

    limiter.reset("k")

    limiter.check_limit("k")


def test_limiter_is_built_from_settings():
    limiter = get_api_rate_limiter()

    assert limiter.max_requests == 100
    assert limiter.window_seconds == 900


# =============================================================================
# API
# =============================================================================


@pytest.fixture
def client():
    properties = MagicMock()
    properties.list_properties.return_value = []
    app.dependency_overrides[require_account] = lambda: AuthContext(uuid4(), token="test-token")
    app.dependency_overrides[get_property_store] = lambda: properties
    limiter = RateLimiter(max_requests=2, window_seconds=900)
    app.dependency_overrides[get_api_rate_limiter] = lambda: limiter
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_host_api_returns_429_when_budget_spent(client):
    assert client.get("/v1/properties/").status_code == 200
    assert client.get("/v1/properties/").status_code == 200

    response = client.get("/v1/properties/")

    assert response.status_code == 429
    assert response.json()["detail"].startswith("Too many requests")
    assert int(response.headers["Retry-After"]) > 0


def test_webhook_is_not_rate_limited(client):
    pipeline = MagicMock()
    app.dependency_overrides[get_inbound_pipeline] = lambda: pipeline

    for _ in range(3):
        response = client.post("/v1/webhooks/twilio", data={"Body": "hello"})
        assert response.status_code == 200
