"""Pytest configuration and shared fixtures."""
import pytest

from stockwatch.core.config import get_settings


@pytest.fixture(autouse=True)
def mock_env_vars(monkeypatch):
    """Mock environment variables for all tests."""
    monkeypatch.setenv("FINNHUB_API_KEY", "test-finnhub-key")
    monkeypatch.setenv("FINNHUB_BASE_URL", "https://finnhub.test/api/v1")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def sleeps():
    """Delays requested by the fetcher under test, in seconds."""
    return []


@pytest.fixture
def fake_sleep(sleeps):
    async def _sleep(delay):
        sleeps.append(delay)

    return _sleep
