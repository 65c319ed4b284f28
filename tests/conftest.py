"""Pytest configuration and fixtures."""

import os

import pytest

from hostenly.core.rate_limiter import get_api_rate_limiter


@pytest.fixture(scope="session", autouse=True)
def setup_test_env():
    """Set up test environment variables."""
    os.environ["SUPABASE_URL"] = "https://test.supabase.co"
    os.environ["SUPABASE_SERVICE_ROLE_KEY"] = "test-key"
    os.environ["OPENAI_API_KEY"] = "test-openai-key"
    os.environ["TWILIO_ACCOUNT_SID"] = "ACtest"
    os.environ["TWILIO_AUTH_TOKEN"] = "test-twilio-token"
    os.environ["HOSTENLY_ENV"] = "test"


@pytest.fixture(autouse=True)
def fresh_api_rate_limiter():
    """Give every test its own request budget."""
    get_api_rate_limiter.cache_clear()
    yield
    get_api_rate_limiter.cache_clear()
