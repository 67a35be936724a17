"""Pytest fixtures for research-feed tests."""

import asyncio
from collections.abc import AsyncIterator
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from research_feed.config.settings import Settings
from research_feed.identity import Identity
from research_feed.ingestion.base_adapter import BaseAdapter
from research_feed.ingestion.schemas import AdapterKind, CanonicalResource
from research_feed.storage.memory import InMemoryDocumentStore
from research_feed.storage.redis_store import RedisDocumentStore

RELAY_URL = "http://relay.test"

BASE_TIME = datetime(2026, 3, 10, 12, 0, 0, tzinfo=timezone.utc)


class FakeAdapter(BaseAdapter):
    """
    Adapter serving canned raw items per source URL.

    A URL mapped to an exception raises it from the fetch; every call is
    recorded in `calls`.
    """

    def __init__(self, kind: AdapterKind, marker: str | None, items: dict[str, Any] | None = None):
        super().__init__(relay_base_url=RELAY_URL, timeout=1.0)
        self._kind = kind
        self._marker = marker
        self.items: dict[str, Any] = items or {}
        self.calls: list[tuple[str, list[str] | None]] = []

    @property
    def kind(self) -> AdapterKind:
        return self._kind

    def validate_url(self, url: str) -> bool:
        return self._marker is None or self._marker in url

    async def _fetch_raw(self, source_url: str, keywords: list[str] | None) -> AsyncIterator[dict[str, Any]]:
        self.calls.append((source_url, keywords))
        result = self.items.get(source_url, [])
        if isinstance(result, Exception):
            raise result
        for item in result:
            yield item

    def _transform(self, raw: dict[str, Any]) -> CanonicalResource:
        return CanonicalResource.from_wire(raw)


class InProcessRedis:
    """
    Minimal asyncio Redis stand-in: string keys, hashes and pub/sub.

    Published messages reach subscribers asynchronously through their
    own queues, the way a real server delivers them.
    """

    def __init__(self) -> None:
        self.strings: dict[str, str] = {}
        self.hashes: dict[str, dict[str, str]] = {}
        self.subscribers: list["InProcessPubSub"] = []

    async def get(self, key: str) -> str | None:
        return self.strings.get(key)

    async def set(self, key: str, value: str) -> None:
        self.strings[key] = value

    async def hset(self, key: str, field: str, value: str) -> None:
        self.hashes.setdefault(key, {})[field] = value

    async def hdel(self, key: str, field: str) -> None:
        self.hashes.get(key, {}).pop(field, None)

    async def hgetall(self, key: str) -> dict[str, str]:
        return dict(self.hashes.get(key, {}))

    async def publish(self, channel: str, message: str) -> int:
        receivers = [s for s in self.subscribers if channel in s.channels]
        for subscriber in receivers:
            subscriber.messages.put_nowait({"type": "message", "channel": channel, "data": message})
        return len(receivers)

    def pubsub(self) -> "InProcessPubSub":
        pubsub = InProcessPubSub()
        self.subscribers.append(pubsub)
        return pubsub

    async def aclose(self) -> None:
        return None


class InProcessPubSub:
    def __init__(self) -> None:
        self.channels: set[str] = set()
        self.messages: asyncio.Queue = asyncio.Queue()

    async def subscribe(self, channel: str) -> None:
        self.channels.add(channel)

    async def unsubscribe(self, channel: str) -> None:
        self.channels.discard(channel)

    async def get_message(self, ignore_subscribe_messages: bool = False, timeout: float | None = None):
        try:
            return await asyncio.wait_for(self.messages.get(), timeout)
        except asyncio.TimeoutError:
            return None

    async def aclose(self) -> None:
        return None


def make_item(external_id: str, days_ago: int | None = None, **kwargs) -> dict[str, Any]:
    """Canonical wire item published `days_ago` days before BASE_TIME."""
    item = {
        "externalId": external_id,
        "title": kwargs.pop("title", f"Item {external_id}"),
        "url": kwargs.pop("url", f"https://example.com/{external_id}"),
        "ingestedAt": BASE_TIME.isoformat(),
    }
    if days_ago is not None:
        item["publishedAt"] = (BASE_TIME - timedelta(days=days_ago)).isoformat()
    item.update(kwargs)
    return item


@pytest.fixture
def test_settings() -> Settings:
    """Settings configured for testing."""
    return Settings(
        environment="development",
        log_level="DEBUG",
        document_store_backend="memory",
        redis_url="redis://localhost:6379/1",  # Use DB 1 for tests
        relay_base_url=RELAY_URL,
        upstream_max_retries=0,
    )


@pytest.fixture
def identity() -> Identity:
    return Identity(uid="user-1", email="alice@example.com")


@pytest.fixture
def other_identity() -> Identity:
    return Identity(uid="user-2", email="bob@example.com")


@pytest.fixture
def memory_store() -> InMemoryDocumentStore:
    """Empty in-process document store (close it in tests that open watches)."""
    return InMemoryDocumentStore()


@pytest.fixture
def redis_server() -> InProcessRedis:
    return InProcessRedis()


@pytest.fixture
def redis_document_store(redis_server) -> RedisDocumentStore:
    """RedisDocumentStore over an in-process server (close it in tests that open watches)."""
    return RedisDocumentStore(client=redis_server, poll_timeout=0.01)


@pytest.fixture
def fake_adapters() -> dict[AdapterKind, FakeAdapter]:
    """One fake adapter per variant, claiming URLs by host marker."""
    return {
        AdapterKind.NEWS: FakeAdapter(AdapterKind.NEWS, "nytimes.com"),
        AdapterKind.GOVERNMENT: FakeAdapter(AdapterKind.GOVERNMENT, "federalregister.gov"),
        AdapterKind.LEGISLATIVE: FakeAdapter(AdapterKind.LEGISLATIVE, "congress.gov"),
        AdapterKind.BLOG: FakeAdapter(AdapterKind.BLOG, None),
    }


@pytest.fixture
def item_factory():
    """make_item as a fixture: item_factory("id", days_ago=1, **fields)."""
    return make_item


@pytest.fixture
def adapter_factory():
    """FakeAdapter class as a fixture."""
    return FakeAdapter
