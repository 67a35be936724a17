"""Shared fixtures for API tests."""

from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from research_feed.api.app import create_app
from research_feed.api.dependencies import get_redis_client, get_relay_settings
from research_feed.config.settings import Settings


@pytest.fixture
def relay_settings() -> Settings:
    """Relay settings with every upstream credential present."""
    return Settings(
        environment="development",
        document_store_backend="redis",
        nyt_api_keys="nyt-key",
        guardian_api_keys="guardian-key",
        congress_api_keys="congress-key",
        bluesky_handle="researcher.bsky.social",
        bluesky_app_password="app-password",
        upstream_max_retries=0,
    )


@pytest.fixture
def mock_redis() -> AsyncMock:
    client = AsyncMock()
    client.ping = AsyncMock(return_value=True)
    return client


@pytest.fixture
def make_client(relay_settings, mock_redis):
    """Build a TestClient; pass settings to override the defaults."""

    def _make(settings: Settings | None = None) -> TestClient:
        app = create_app()
        app.dependency_overrides[get_relay_settings] = lambda: settings or relay_settings

        async def _redis():
            yield mock_redis

        app.dependency_overrides[get_redis_client] = _redis
        return TestClient(app)

    return _make


@pytest.fixture
def client(make_client) -> TestClient:
    return make_client()
