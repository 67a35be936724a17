"""Shared fixtures for subscriptions tests."""

import pytest

from research_feed.subscriptions.config import SubscriptionsConfig
from research_feed.subscriptions.schemas import SubscriptionEvent
from research_feed.subscriptions.store import SubscriptionStore


@pytest.fixture
def config() -> SubscriptionsConfig:
    return SubscriptionsConfig()


@pytest.fixture
def store(memory_store, identity, config) -> SubscriptionStore:
    """Subscription store for user-1 (not started)."""
    return SubscriptionStore(memory_store, identity, config)


@pytest.fixture
def events(store) -> list[SubscriptionEvent]:
    """Every event the store emits, in order."""
    received: list[SubscriptionEvent] = []

    async def listener(event: SubscriptionEvent) -> None:
        received.append(event)

    store.subscribe(listener)
    return received


@pytest.fixture
def legacy_document() -> dict:
    """A document written before subscriptions carried metadata."""
    return {"feeds": ["http://a.com", "http://b.com"]}
