"""
Dashboard service - identity-scoped composition of the sync engine.

Owns the login/logout lifecycle. Signing in builds a subscription store,
an aggregation service and a library service for that identity, wires
store events into the aggregator and opens both live watches. Signing
out tears all of it down and clears every in-memory view.

Lifecycle:
1. login(identity)  - build, wire, start watches
2. mutations        - delegated to the identity's store / library
3. logout()         - cancel watches, drop state
"""

from collections.abc import Sequence

import structlog

from research_feed.aggregation.service import AggregationService, create_default_adapters
from research_feed.identity import AuthenticationRequiredError, Identity
from research_feed.ingestion.base_adapter import BaseAdapter
from research_feed.ingestion.schemas import CanonicalResource
from research_feed.library.schemas import PublicLibraryEntry
from research_feed.library.service import LibraryService
from research_feed.observability.logging import bind_identity, clear_identity
from research_feed.storage.document_store import DocumentStore
from research_feed.subscriptions.config import SubscriptionsConfig
from research_feed.subscriptions.schemas import Subscription
from research_feed.subscriptions.store import SubscriptionStore

logger = structlog.get_logger(__name__)


class DashboardService:
    """
    Entry point for a signed-in user's feed.

    Usage:
        dashboard = DashboardService(document_store)
        await dashboard.login(Identity(uid="u1", email="a@example.com"))
        await dashboard.add_subscription("https://example.com/feed.xml")
        await dashboard.wait_idle()
        dashboard.resources
    """

    def __init__(
        self,
        document_store: DocumentStore,
        adapters: Sequence[BaseAdapter] | None = None,
        subscriptions_config: SubscriptionsConfig | None = None,
    ):
        """
        Initialize dashboard service.

        Args:
            document_store: Backing store for subscriptions and the library
            adapters: Source adapters shared by every session (or defaults)
            subscriptions_config: Subscription document layout
        """
        self._document_store = document_store
        self._adapters = list(adapters) if adapters is not None else create_default_adapters()
        self._subscriptions_config = subscriptions_config

        self._identity: Identity | None = None
        self._store: SubscriptionStore | None = None
        self._aggregator: AggregationService | None = None
        self._library: LibraryService | None = None
        self._unsubscribe = None

    # ── Session lifecycle ──────────────────────────────────────

    async def login(self, identity: Identity) -> None:
        """Start an identity-scoped session, replacing any previous one."""
        if self._identity is not None:
            await self.logout()

        store = SubscriptionStore(self._document_store, identity, self._subscriptions_config)
        aggregator = AggregationService(identity, self._adapters)
        library = LibraryService(self._document_store, identity, store)

        self._unsubscribe = store.subscribe(aggregator.handle_event)
        self._identity = identity
        self._store = store
        self._aggregator = aggregator
        self._library = library

        bind_identity(identity)
        await store.start()
        await library.start()
        logger.info("Session started", uid=identity.uid)

    async def logout(self) -> None:
        """Tear down both watches and clear subscriptions, resources and library."""
        if self._identity is None:
            return

        uid = self._identity.uid
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self._store is not None:
            await self._store.stop()
        if self._library is not None:
            await self._library.stop()
        if self._aggregator is not None:
            self._aggregator.clear()

        self._identity = None
        self._store = None
        self._aggregator = None
        self._library = None
        clear_identity()
        logger.info("Session ended", uid=uid)

    async def close(self) -> None:
        await self.logout()
        await self._document_store.close()

    # ── Views ──────────────────────────────────────────────────

    @property
    def identity(self) -> Identity | None:
        return self._identity

    @property
    def subscriptions(self) -> list[Subscription]:
        return self._store.subscriptions if self._store else []

    @property
    def resources(self) -> list[CanonicalResource]:
        return self._aggregator.resources if self._aggregator else []

    @property
    def library(self) -> list[PublicLibraryEntry]:
        return self._library.entries if self._library else []

    @property
    def is_loading(self) -> bool:
        return self._aggregator.is_loading if self._aggregator else False

    # ── Subscription operations ────────────────────────────────

    async def add_subscription(self, url: str, name: str | None = None) -> bool:
        return await self._require_store().add(url, name)

    async def remove_subscription(self, url: str) -> bool:
        return await self._require_store().remove(url)

    async def toggle_subscription(self, url: str) -> Subscription:
        return await self._require_store().toggle_active(url)

    async def update_filters(self, url: str, keywords: list[str]) -> Subscription:
        return await self._require_store().update_filters(url, keywords)

    async def refresh(self) -> list[CanonicalResource]:
        """Run one aggregation pass now, outside the sync trigger."""
        store = self._require_store()
        return await self._aggregator.fetch_all(store.subscriptions)

    # ── Library operations ─────────────────────────────────────

    async def share(self, url: str, description: str = "") -> PublicLibraryEntry:
        # Anonymous library instance rejects with AuthenticationRequiredError
        library = self._library or LibraryService(self._document_store)
        return await library.share(url, description)

    async def subscribe_from_library(self, url: str) -> bool:
        self._require_store()
        return await self._library.subscribe_from_library(url)

    async def delete_from_library(self, entry_id: str) -> None:
        self._require_store()
        await self._library.delete(entry_id)

    # ── Synchronization helpers ────────────────────────────────

    async def wait_idle(self) -> None:
        """
        Wait for pending watch deliveries and the passes they started.

        Passes are still not sequenced; this only waits for them.
        """
        await self._document_store.drain()
        if self._aggregator is not None:
            await self._aggregator.wait_idle()
        await self._document_store.drain()

    def _require_store(self) -> SubscriptionStore:
        if self._store is None:
            raise AuthenticationRequiredError("Must be logged in")
        return self._store
