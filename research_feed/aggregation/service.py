"""
Aggregation service - merges all active subscriptions into one feed.

Each pass is a stateless batch recomputation:
1. Keep active subscriptions (none -> empty feed, no network calls)
2. Pick exactly one adapter per subscription by fixed-priority dispatch
3. Fetch all concurrently; a failing source contributes nothing
4. Flatten and sort by published_at, newest first
5. Replace the visible resource list in one assignment

Passes are neither sequenced nor cancelled: if two overlap, whichever
finishes last wins, even when it started first.
"""

import asyncio
import time
from collections.abc import Sequence

import structlog

from research_feed.identity import Identity
from research_feed.ingestion.base_adapter import BaseAdapter
from research_feed.ingestion.blog_adapter import BlogFeedAdapter
from research_feed.ingestion.government_adapter import GovernmentNoticeAdapter
from research_feed.ingestion.legislative_adapter import LegislativeAdapter
from research_feed.ingestion.news_adapter import NewsAdapter
from research_feed.ingestion.schemas import AdapterKind, CanonicalResource
from research_feed.observability.metrics import get_metrics
from research_feed.subscriptions.schemas import Subscription, SubscriptionEvent

logger = structlog.get_logger(__name__)

DISPATCH_ORDER: tuple[AdapterKind, ...] = (
    AdapterKind.NEWS,
    AdapterKind.GOVERNMENT,
    AdapterKind.LEGISLATIVE,
    AdapterKind.BLOG,
)


def create_default_adapters() -> list[BaseAdapter]:
    """One adapter per variant, configured from settings."""
    return [
        NewsAdapter(),
        GovernmentNoticeAdapter(),
        LegislativeAdapter(),
        BlogFeedAdapter(),
    ]


class AggregationService:
    """
    Aggregation orchestrator for one identity.

    Usage:
        service = AggregationService(identity)
        await service.fetch_all(store.subscriptions)
        service.resources  # newest first
    """

    def __init__(
        self,
        identity: Identity | None = None,
        adapters: Sequence[BaseAdapter] | None = None,
    ):
        """
        Initialize aggregation service.

        Args:
            identity: Identity whose feed this is (log context only)
            adapters: One adapter per AdapterKind (or defaults from settings)
        """
        adapters = list(adapters) if adapters is not None else create_default_adapters()
        by_kind = {adapter.kind: adapter for adapter in adapters}
        if AdapterKind.BLOG not in by_kind:
            raise ValueError("A blog-feed adapter is required as the default dispatch target")

        self._identity = identity
        self._adapters = [by_kind[kind] for kind in DISPATCH_ORDER if kind in by_kind]
        self._resources: list[CanonicalResource] = []
        self._in_flight = 0
        self._tasks: set[asyncio.Task] = set()
        self._metrics = get_metrics()

    @property
    def resources(self) -> list[CanonicalResource]:
        """The merged resource list from the last completed pass."""
        return list(self._resources)

    @property
    def is_loading(self) -> bool:
        return self._in_flight > 0

    @property
    def adapters(self) -> list[BaseAdapter]:
        """Adapters in dispatch order."""
        return list(self._adapters)

    def select_adapter(self, url: str) -> BaseAdapter:
        """
        Pick the adapter for a subscription URL.

        Predicates are tried in dispatch order and the first match wins;
        the blog-feed adapter takes everything else.
        """
        for adapter in self._adapters:
            if adapter.kind is AdapterKind.BLOG or adapter.validate_url(url):
                return adapter
        raise LookupError(f"No adapter for {url}")

    async def fetch_all(self, subscriptions: Sequence[Subscription]) -> list[CanonicalResource]:
        """
        Run one aggregation pass and replace the visible resource list.

        Never raises for source failures.

        Returns:
            The new resource list
        """
        active = [s for s in subscriptions if s.is_active]
        if not active:
            self._resources = []
            self._metrics.record_pass(0)
            logger.info("No active subscriptions, feed cleared", uid=self._uid)
            return []

        self._in_flight += 1
        start_time = time.monotonic()
        try:
            batches = await asyncio.gather(*(self._fetch_one(s) for s in active))
        finally:
            self._in_flight -= 1

        merged = [resource for batch in batches for resource in batch]
        merged.sort(key=lambda r: r.sort_key, reverse=True)
        self._resources = merged

        self._metrics.record_pass(len(merged))
        logger.info(
            "Aggregation pass completed",
            uid=self._uid,
            subscriptions=len(active),
            resources=len(merged),
            elapsed_seconds=round(time.monotonic() - start_time, 2),
        )
        return self.resources

    async def _fetch_one(self, subscription: Subscription) -> list[CanonicalResource]:
        """Fetch one subscription; any failure becomes an empty result."""
        adapter = self.select_adapter(subscription.url)
        start_time = time.monotonic()

        try:
            resources = await adapter.fetch(subscription.url, subscription.keywords)
        except Exception as e:
            self._metrics.record_adapter_fetch(
                adapter.kind.value, success=False, latency=time.monotonic() - start_time,
            )
            logger.error(
                "Source fetch failed",
                url=subscription.url,
                adapter=adapter.name,
                error=str(e),
                exc_info=True,
            )
            return []

        self._metrics.record_adapter_fetch(
            adapter.kind.value, success=True, latency=time.monotonic() - start_time,
        )
        for resource in resources:
            resource.source_url = subscription.url
        return resources

    # ── Event handling ─────────────────────────────────────────

    async def handle_event(self, event: SubscriptionEvent) -> None:
        """
        React to a subscription store event.

        ``changed`` starts a new pass in the background; ``removed`` drops
        the removed source's resources right away.
        """
        if event.kind == "removed" and event.url is not None:
            self.drop_source(event.url)
        elif event.kind == "changed":
            task = asyncio.create_task(self.fetch_all(event.subscriptions), name="aggregation-pass")
            self._tasks.add(task)
            task.add_done_callback(self._on_pass_done)

    def _on_pass_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Aggregation pass crashed", error=str(task.exception()))

    async def wait_idle(self) -> None:
        """Wait for every background pass started so far (and any they start)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def drop_source(self, url: str) -> int:
        """Remove resources produced by one subscription URL. Returns how many."""
        before = len(self._resources)
        self._resources = [r for r in self._resources if r.source_url != url]
        dropped = before - len(self._resources)
        if dropped:
            logger.info("Dropped resources of removed source", url=url, resources=dropped)
        return dropped

    def clear(self) -> None:
        self._resources = []

    @property
    def _uid(self) -> str | None:
        return self._identity.uid if self._identity else None
