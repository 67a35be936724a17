"""Tests for AggregationService."""

from datetime import timedelta

import pytest

from research_feed.aggregation.service import DISPATCH_ORDER, AggregationService
from research_feed.ingestion.http_client import HTTPClientError
from research_feed.ingestion.schemas import EPOCH, AdapterKind
from research_feed.subscriptions.schemas import Subscription, SubscriptionEvent

BLOG_URL = "https://forestwatch.example/rss"
CONGRESS_URL = "https://www.congress.gov/"
NYT_URL = "https://www.nytimes.com/section/climate"
FR_URL = "https://www.federalregister.gov/documents/search?conditions%5Bterm%5D=biomass"


@pytest.fixture
def service(identity, fake_adapters) -> AggregationService:
    return AggregationService(identity, list(fake_adapters.values()))


class TestDispatch:
    """Adapter selection."""

    def test_adapters_kept_in_dispatch_order(self, identity, fake_adapters):
        shuffled = [fake_adapters[k] for k in reversed(DISPATCH_ORDER)]

        service = AggregationService(identity, shuffled)

        assert [a.kind for a in service.adapters] == list(DISPATCH_ORDER)

    def test_blog_adapter_required(self, identity, fake_adapters):
        without_blog = [a for k, a in fake_adapters.items() if k is not AdapterKind.BLOG]

        with pytest.raises(ValueError, match="blog-feed adapter is required"):
            AggregationService(identity, without_blog)

    @pytest.mark.parametrize(
        "url,kind",
        [
            (NYT_URL, AdapterKind.NEWS),
            (FR_URL, AdapterKind.GOVERNMENT),
            (CONGRESS_URL, AdapterKind.LEGISLATIVE),
            (BLOG_URL, AdapterKind.BLOG),
        ],
    )
    def test_select_adapter(self, service, url, kind):
        assert service.select_adapter(url).kind is kind

    def test_earlier_variant_wins_when_predicates_overlap(self, service):
        # Matches both the government and legislative markers
        url = "https://www.federalregister.gov/?ref=congress.gov"

        assert service.select_adapter(url).kind is AdapterKind.GOVERNMENT

    def test_blog_is_default_even_if_its_predicate_rejects(self, identity, adapter_factory, fake_adapters):
        picky_blog = adapter_factory(AdapterKind.BLOG, "never-matches.example")
        adapters = [fake_adapters[AdapterKind.NEWS], picky_blog]

        service = AggregationService(identity, adapters)

        assert service.select_adapter(BLOG_URL) is picky_blog

    @pytest.mark.asyncio
    async def test_exactly_one_adapter_per_subscription(self, service, fake_adapters):
        subscriptions = [Subscription(url=u) for u in (NYT_URL, FR_URL, CONGRESS_URL, BLOG_URL)]

        await service.fetch_all(subscriptions)

        calls = {kind: [url for url, _ in adapter.calls] for kind, adapter in fake_adapters.items()}
        assert calls == {
            AdapterKind.NEWS: [NYT_URL],
            AdapterKind.GOVERNMENT: [FR_URL],
            AdapterKind.LEGISLATIVE: [CONGRESS_URL],
            AdapterKind.BLOG: [BLOG_URL],
        }

    @pytest.mark.asyncio
    async def test_keywords_passed_to_adapter(self, service, fake_adapters):
        await service.fetch_all([Subscription(url=CONGRESS_URL, keywords=["forest"])])

        assert fake_adapters[AdapterKind.LEGISLATIVE].calls == [(CONGRESS_URL, ["forest"])]


class TestFetchAll:
    """Aggregation passes."""

    @pytest.mark.asyncio
    async def test_sorted_newest_first(self, service, fake_adapters, item_factory):
        fake_adapters[AdapterKind.BLOG].items[BLOG_URL] = [
            item_factory("old", days_ago=30),
            item_factory("garbage", publishedAt="not a date"),
            item_factory("new", days_ago=1),
        ]
        fake_adapters[AdapterKind.NEWS].items[NYT_URL] = [
            item_factory("undated"),
            item_factory("mid", days_ago=7),
        ]

        resources = await service.fetch_all([Subscription(url=BLOG_URL), Subscription(url=NYT_URL)])

        assert [r.external_id for r in resources] == ["undated", "new", "mid", "old", "garbage"]
        assert resources[-1].published_at == EPOCH
        assert all(
            a.sort_key >= b.sort_key for a, b in zip(resources, resources[1:])
        )

    @pytest.mark.asyncio
    async def test_failing_source_contributes_nothing(self, service, fake_adapters, item_factory):
        fake_adapters[AdapterKind.BLOG].items[BLOG_URL] = [
            item_factory("b1", days_ago=3),
            item_factory("b2", days_ago=1),
            item_factory("b3", days_ago=2),
        ]
        fake_adapters[AdapterKind.LEGISLATIVE].items[CONGRESS_URL] = HTTPClientError(
            "Relay returned 500", status_code=500,
        )

        resources = await service.fetch_all([
            Subscription(url=BLOG_URL),
            Subscription(url=CONGRESS_URL),
        ])

        assert [r.external_id for r in resources] == ["b2", "b3", "b1"]
        assert service.resources == resources
        assert service.is_loading is False

    @pytest.mark.asyncio
    async def test_all_sources_failing_gives_empty_feed(self, service, fake_adapters):
        fake_adapters[AdapterKind.BLOG].items[BLOG_URL] = RuntimeError("parse failure")

        assert await service.fetch_all([Subscription(url=BLOG_URL)]) == []

    @pytest.mark.asyncio
    async def test_no_active_subscriptions_clears_without_fetching(
        self, service, fake_adapters, item_factory
    ):
        fake_adapters[AdapterKind.BLOG].items[BLOG_URL] = [item_factory("b1", days_ago=1)]
        await service.fetch_all([Subscription(url=BLOG_URL)])
        fake_adapters[AdapterKind.BLOG].calls.clear()

        resources = await service.fetch_all([Subscription(url=BLOG_URL, is_active=False)])

        assert resources == []
        assert service.resources == []
        assert fake_adapters[AdapterKind.BLOG].calls == []

    @pytest.mark.asyncio
    async def test_inactive_subscriptions_skipped(self, service, fake_adapters, item_factory):
        fake_adapters[AdapterKind.BLOG].items[BLOG_URL] = [item_factory("b1", days_ago=1)]
        fake_adapters[AdapterKind.NEWS].items[NYT_URL] = [item_factory("n1", days_ago=1)]

        resources = await service.fetch_all([
            Subscription(url=BLOG_URL),
            Subscription(url=NYT_URL, is_active=False),
        ])

        assert [r.external_id for r in resources] == ["b1"]
        assert fake_adapters[AdapterKind.NEWS].calls == []

    @pytest.mark.asyncio
    async def test_passes_are_idempotent(self, service, fake_adapters, item_factory):
        fake_adapters[AdapterKind.BLOG].items[BLOG_URL] = [
            item_factory("b1", days_ago=2),
            item_factory("b2", days_ago=1),
        ]
        subscriptions = [Subscription(url=BLOG_URL)]

        first = await service.fetch_all(subscriptions)
        second = await service.fetch_all(subscriptions)

        assert [r.external_id for r in first] == [r.external_id for r in second]
        assert len(service.resources) == 2

    @pytest.mark.asyncio
    async def test_resources_tagged_with_source_url(self, service, fake_adapters, item_factory):
        fake_adapters[AdapterKind.BLOG].items[BLOG_URL] = [item_factory("b1", days_ago=1)]

        [resource] = await service.fetch_all([Subscription(url=BLOG_URL)])

        assert resource.source_url == BLOG_URL

    @pytest.mark.asyncio
    async def test_same_external_id_from_two_sources_kept(self, service, fake_adapters, item_factory):
        other_blog = "https://other.example/rss"
        fake_adapters[AdapterKind.BLOG].items[BLOG_URL] = [item_factory("dup", days_ago=1)]
        fake_adapters[AdapterKind.BLOG].items[other_blog] = [item_factory("dup", days_ago=2)]

        resources = await service.fetch_all([Subscription(url=BLOG_URL), Subscription(url=other_blog)])

        assert [r.source_url for r in resources] == [BLOG_URL, other_blog]


class TestEvents:
    """Reactions to subscription store events."""

    @pytest.mark.asyncio
    async def test_changed_event_starts_pass(self, service, fake_adapters, item_factory):
        fake_adapters[AdapterKind.BLOG].items[BLOG_URL] = [item_factory("b1", days_ago=1)]

        await service.handle_event(
            SubscriptionEvent(kind="changed", subscriptions=[Subscription(url=BLOG_URL)])
        )
        await service.wait_idle()

        assert [r.external_id for r in service.resources] == ["b1"]

    @pytest.mark.asyncio
    async def test_removed_event_drops_source(self, service, fake_adapters, item_factory):
        fake_adapters[AdapterKind.BLOG].items[BLOG_URL] = [item_factory("b1", days_ago=1)]
        fake_adapters[AdapterKind.NEWS].items[NYT_URL] = [item_factory("n1", days_ago=2)]
        await service.fetch_all([Subscription(url=BLOG_URL), Subscription(url=NYT_URL)])

        await service.handle_event(
            SubscriptionEvent(kind="removed", subscriptions=[Subscription(url=NYT_URL)], url=BLOG_URL)
        )

        assert [r.external_id for r in service.resources] == ["n1"]

    def test_drop_source_and_clear(self, service):
        assert service.drop_source(BLOG_URL) == 0

        service.clear()

        assert service.resources == []


class TestIsolationBetweenSessions:
    @pytest.mark.asyncio
    async def test_services_do_not_share_resources(self, identity, other_identity, fake_adapters, item_factory):
        fake_adapters[AdapterKind.BLOG].items[BLOG_URL] = [item_factory("b1", days_ago=1)]
        adapters = list(fake_adapters.values())
        alice = AggregationService(identity, adapters)
        bob = AggregationService(other_identity, adapters)

        await alice.fetch_all([Subscription(url=BLOG_URL)])

        assert len(alice.resources) == 1
        assert bob.resources == []
        assert alice.resources[0].published_at > alice.resources[0].ingested_at - timedelta(days=2)
