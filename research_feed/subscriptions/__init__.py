"""Per-identity subscription list and its live synchronization."""

from research_feed.subscriptions.config import SubscriptionsConfig
from research_feed.subscriptions.schemas import (
    Subscription,
    SubscriptionEvent,
    normalize_feeds,
)
from research_feed.subscriptions.store import (
    SubscriptionListener,
    SubscriptionNotFoundError,
    SubscriptionStore,
)

__all__ = [
    "Subscription",
    "SubscriptionEvent",
    "SubscriptionListener",
    "SubscriptionNotFoundError",
    "SubscriptionStore",
    "SubscriptionsConfig",
    "normalize_feeds",
]
