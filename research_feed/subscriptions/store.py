"""Subscription store with live remote synchronization.

One store instance serves exactly one identity. It keeps a single live
watch on the identity's document (``users/<uid>`` by default) and
replaces its in-memory list wholesale on every remote change, emitting
a ``changed`` event to its listeners afterwards.

Mutations are read-modify-write over the whole feed list, because the
backing document holds the list as one value. Two concurrent mutations
for the same identity race (last writer wins); callers serialize their
own calls when that matters.
"""

import logging
from collections.abc import Awaitable, Callable

from research_feed.identity import Identity
from research_feed.observability.metrics import get_metrics
from research_feed.storage.document_store import DocumentSnapshot, DocumentStore, Watch
from research_feed.subscriptions.config import SubscriptionsConfig
from research_feed.subscriptions.schemas import (
    Subscription,
    SubscriptionEvent,
    normalize_feeds,
)

logger = logging.getLogger(__name__)

SubscriptionListener = Callable[[SubscriptionEvent], Awaitable[None]]


class SubscriptionNotFoundError(KeyError):
    """Raised when a mutation names a URL the identity is not subscribed to."""

    pass


class SubscriptionStore:
    """CRUD over one identity's subscription list.

    Store-level failures (DocumentStoreError) propagate to the caller;
    the in-memory list is only replaced by remote snapshots, so it may
    lag a failed write until the next sync.
    """

    def __init__(
        self,
        document_store: DocumentStore,
        identity: Identity,
        config: SubscriptionsConfig | None = None,
    ) -> None:
        self._store = document_store
        self._identity = identity
        self._config = config or SubscriptionsConfig()
        self._subscriptions: list[Subscription] = []
        self._listeners: list[SubscriptionListener] = []
        self._watch: Watch | None = None
        self._metrics = get_metrics()

    @property
    def identity(self) -> Identity:
        return self._identity

    @property
    def path(self) -> str:
        return f"{self._config.user_collection}/{self._identity.uid}"

    @property
    def subscriptions(self) -> list[Subscription]:
        return list(self._subscriptions)

    @property
    def is_watching(self) -> bool:
        return self._watch is not None and self._watch.active

    def subscribe(self, listener: SubscriptionListener) -> Callable[[], None]:
        """Register an event listener. Returns a function that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ── Lifecycle ──────────────────────────────────────────────

    async def start(self) -> None:
        """Open the live watch on this identity's document."""
        if self.is_watching:
            return
        self._watch = await self._store.watch(self.path, self._on_snapshot, self._on_watch_error)
        logger.info(f"Syncing subscriptions for {self._identity.uid}")

    async def stop(self) -> None:
        """Tear the watch down and forget the in-memory list."""
        if self._watch is not None:
            await self._watch.cancel()
            self._watch = None
        self._subscriptions = []
        self._listeners.clear()
        logger.info(f"Stopped syncing subscriptions for {self._identity.uid}")

    # ── Mutations ──────────────────────────────────────────────

    async def add(self, url: str, name: str | None = None) -> bool:
        """Subscribe to `url`. No-op if already subscribed.

        Returns:
            True if a subscription was added
        """
        subscriptions = await self._read()
        if any(s.url == url for s in subscriptions):
            logger.debug(f"Already subscribed to {url}")
            return False

        subscriptions.append(Subscription(url=url, name=name))
        await self._write(subscriptions)
        self._metrics.record_mutation("add")
        logger.info(f"Subscribed {self._identity.uid} to {url}")
        return True

    async def remove(self, url: str) -> bool:
        """Unsubscribe from `url` and emit a ``removed`` event.

        Returns:
            True if a subscription was removed
        """
        subscriptions = await self._read()
        remaining = [s for s in subscriptions if s.url != url]
        if len(remaining) == len(subscriptions):
            return False

        await self._write(remaining)
        self._metrics.record_mutation("remove")
        logger.info(f"Unsubscribed {self._identity.uid} from {url}")
        await self._emit(SubscriptionEvent(kind="removed", subscriptions=remaining, url=url))
        return True

    async def toggle_active(self, url: str) -> Subscription:
        """Flip `is_active` for one subscription; the entry itself stays."""
        subscriptions = await self._read()
        target = self._find(subscriptions, url)
        target.is_active = not target.is_active

        await self._write(subscriptions)
        self._metrics.record_mutation("toggle")
        logger.info(f"Toggled {url} to {'active' if target.is_active else 'inactive'}")
        return target

    async def update_filters(self, url: str, keywords: list[str]) -> Subscription:
        """Replace the keyword list of one subscription."""
        subscriptions = await self._read()
        target = self._find(subscriptions, url)
        target.keywords = list(keywords)

        await self._write(subscriptions)
        self._metrics.record_mutation("filters")
        logger.info(f"Updated filters for {url}: {keywords}")
        return target

    # ── Internals ──────────────────────────────────────────────

    async def _read(self) -> list[Subscription]:
        data = await self._store.get(self.path) or {}
        subscriptions, _ = normalize_feeds(data.get(self._config.feeds_field))
        return subscriptions

    async def _write(self, subscriptions: list[Subscription]) -> None:
        document = await self._store.get(self.path) or {}
        document[self._config.feeds_field] = [s.to_record() for s in subscriptions]
        await self._store.set(self.path, document)

    @staticmethod
    def _find(subscriptions: list[Subscription], url: str) -> Subscription:
        for subscription in subscriptions:
            if subscription.url == url:
                return subscription
        raise SubscriptionNotFoundError(url)

    async def _on_snapshot(self, snapshot: DocumentSnapshot) -> None:
        if not snapshot.exists:
            # First use: the write below produces the next snapshot
            self._subscriptions = []
            await self._store.set(self.path, {self._config.feeds_field: []})
            logger.info(f"Initialized subscription document {self.path}")
            return

        subscriptions, migrated = normalize_feeds(snapshot.data.get(self._config.feeds_field))
        if migrated:
            logger.info(f"Migrated legacy subscription entries in {self.path}")

        self._subscriptions = subscriptions
        await self._emit(SubscriptionEvent(kind="changed", subscriptions=self.subscriptions))

    def _on_watch_error(self, error: Exception) -> None:
        logger.error(f"Subscription sync error for {self.path}: {error}", exc_info=error)

    async def _emit(self, event: SubscriptionEvent) -> None:
        for listener in list(self._listeners):
            try:
                await listener(event)
            except Exception as e:
                logger.error(f"Subscription listener failed on {event.kind}: {e}", exc_info=True)
