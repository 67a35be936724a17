"""Tests for relay upstream calls."""

import json

import httpx
import pytest
import respx

from research_feed.config.settings import Settings
from research_feed.ingestion.http_client import HTTPClientError
from research_feed.relay.upstream import (
    BLUESKY_AUTH_HOST,
    BLUESKY_CREATE_RECORD_URL,
    BLUESKY_PUBLIC_HOST,
    BLUESKY_SESSION_URL,
    CONGRESS_BILLS_URL,
    GUARDIAN_SEARCH_URL,
    NYT_QUERY,
    NYT_SEARCH_URL,
    MissingCredentialsError,
    SocialCredentialsRequiredError,
    fetch_congress,
    fetch_feed,
    fetch_guardian,
    fetch_nyt,
    repost_bluesky,
    search_bluesky,
)

SEARCH_PATH = "/xrpc/app.bsky.feed.searchPosts"


@pytest.fixture
def settings() -> Settings:
    return Settings(
        nyt_api_keys="nyt-key",
        guardian_api_keys="guardian-key",
        congress_api_keys="congress-key",
        bluesky_handle="researcher.bsky.social",
        bluesky_app_password="app-password",
        upstream_max_retries=0,
    )


@pytest.fixture
def anonymous_settings() -> Settings:
    return Settings(upstream_max_retries=0)


def _mock_session():
    return respx.post(BLUESKY_SESSION_URL).mock(
        return_value=httpx.Response(200, json={"accessJwt": "jwt-token", "did": "did:plc:me"})
    )


class TestFetchFeed:
    @pytest.mark.asyncio
    @respx.mock
    async def test_passthrough(self, settings):
        respx.get("https://forestwatch.example/rss").mock(
            return_value=httpx.Response(200, text="<rss/>", headers={"content-type": "application/rss+xml"})
        )

        document = await fetch_feed("https://forestwatch.example/rss", settings)

        assert document.body == "<rss/>"
        assert document.content_type == "application/rss+xml"

    @pytest.mark.asyncio
    @respx.mock
    async def test_upstream_error(self, settings):
        respx.get("https://forestwatch.example/rss").mock(return_value=httpx.Response(404))

        with pytest.raises(HTTPClientError):
            await fetch_feed("https://forestwatch.example/rss", settings)


class TestNews:
    @pytest.mark.asyncio
    @respx.mock
    async def test_fetch_nyt(self, settings):
        route = respx.get(NYT_SEARCH_URL).mock(
            return_value=httpx.Response(200, json={"response": {"docs": [{
                "_id": "nyt://article/1",
                "headline": {"main": "Forests Under Pressure"},
                "web_url": "https://www.nytimes.com/2026/03/01/climate/forests.html",
                "snippet": "A look at logging.",
                "pub_date": "2026-03-01T10:00:00+0000",
                "byline": {"original": "By Jane Doe"},
            }]}})
        )

        [item] = await fetch_nyt(settings)

        params = route.calls.last.request.url.params
        assert params["api-key"] == "nyt-key"
        assert params["q"] == NYT_QUERY
        assert params["sort"] == "newest"
        assert item["externalId"] == "nyt://article/1"
        assert item["title"] == "Forests Under Pressure"
        assert item["nativeData"] == {"source": "New York Times", "author": "Jane Doe"}

    @pytest.mark.asyncio
    @respx.mock
    async def test_nyt_missing_fields(self, settings):
        respx.get(NYT_SEARCH_URL).mock(
            return_value=httpx.Response(200, json={"response": {"docs": [{"uri": "nyt://2"}]}})
        )

        [item] = await fetch_nyt(settings)

        assert item["title"] == "Untitled Article"
        assert item["nativeData"]["author"] is None

    @pytest.mark.asyncio
    async def test_nyt_missing_key(self, anonymous_settings):
        with pytest.raises(MissingCredentialsError, match="Server missing NYT_API_KEY"):
            await fetch_nyt(anonymous_settings)

    @pytest.mark.asyncio
    @respx.mock
    async def test_fetch_guardian(self, settings):
        route = respx.get(GUARDIAN_SEARCH_URL).mock(
            return_value=httpx.Response(200, json={"response": {"results": [{
                "id": "environment/2026/mar/01/peat",
                "webTitle": "Peatlands",
                "webUrl": "https://www.theguardian.com/environment/2026/mar/01/peat",
                "webPublicationDate": "2026-03-01T09:00:00Z",
                "fields": {"trailText": "Bogs matter", "byline": "A Writer", "thumbnail": "https://i/t.jpg"},
            }]}})
        )

        [item] = await fetch_guardian(settings)

        params = route.calls.last.request.url.params
        assert params["api-key"] == "guardian-key"
        assert params["section"] == "environment"
        assert item["summary"] == "Bogs matter"
        assert item["nativeData"] == {"source": "The Guardian", "author": "A Writer", "image": "https://i/t.jpg"}

    @pytest.mark.asyncio
    async def test_guardian_missing_key(self, anonymous_settings):
        with pytest.raises(MissingCredentialsError, match="Server missing GUARDIAN_API_KEY"):
            await fetch_guardian(anonymous_settings)


class TestCongress:
    BILLS = {"bills": [
        {
            "type": "S", "number": "10", "congress": 119, "title": "Forest Health Act",
            "updateDate": "2026-03-01", "latestAction": {"text": "Introduced"},
        },
        {
            "type": "HR", "number": "20", "congress": 119, "title": "Tax Relief Act",
            "updateDate": "2026-03-02", "latestAction": {"text": "Passed House"},
        },
        {
            "type": "HRES", "number": "30", "congress": 119, "title": "Honoring teachers",
            "updateDate": "2026-03-03", "latestAction": {"text": "Referred to Committee on Timber"},
        },
    ]}

    @pytest.mark.asyncio
    @respx.mock
    async def test_filters_by_keywords(self, settings):
        route = respx.get(CONGRESS_BILLS_URL).mock(return_value=httpx.Response(200, json=self.BILLS))

        items = await fetch_congress("Forest, timber", settings)

        params = route.calls.last.request.url.params
        assert params["api_key"] == "congress-key"
        assert params["limit"] == "100"
        assert params["sort"] == "updateDate desc"
        assert [i["externalId"] for i in items] == ["congress-S10", "congress-HRES30"]
        assert items[1]["url"] == "https://www.congress.gov/bill/119th-congress/house-resolution/30"

    @pytest.mark.asyncio
    @respx.mock
    async def test_default_keywords(self, settings):
        respx.get(CONGRESS_BILLS_URL).mock(return_value=httpx.Response(200, json=self.BILLS))

        items = await fetch_congress(None, settings)

        # "forest" and "timber" are in the default set; taxes are not
        assert [i["externalId"] for i in items] == ["congress-S10", "congress-HRES30"]

    @pytest.mark.asyncio
    async def test_missing_key(self, anonymous_settings):
        with pytest.raises(MissingCredentialsError, match="CONGRESS_API_KEY"):
            await fetch_congress("forest", anonymous_settings)


class TestBluesky:
    SEARCH_RESULT = {"posts": [{
        "uri": "at://did:plc:abc/app.bsky.feed.post/3k",
        "cid": "bafy",
        "author": {"handle": "forest.bsky.social"},
        "record": {"text": "hello"},
    }]}

    @pytest.mark.asyncio
    @respx.mock
    async def test_authenticated_search(self, settings):
        session = _mock_session()
        search = respx.get(f"{BLUESKY_AUTH_HOST}{SEARCH_PATH}").mock(
            return_value=httpx.Response(200, json=self.SEARCH_RESULT)
        )

        [post] = await search_bluesky("biomass", settings)

        assert json.loads(session.calls.last.request.content) == {
            "identifier": "researcher.bsky.social",
            "password": "app-password",
        }
        request = search.calls.last.request
        assert request.headers["authorization"] == "Bearer jwt-token"
        assert request.url.params["q"] == "biomass"
        assert request.url.params["limit"] == "25"
        assert post.id == "at://did:plc:abc/app.bsky.feed.post/3k"

    @pytest.mark.asyncio
    @respx.mock
    async def test_public_search_without_credentials(self, anonymous_settings):
        search = respx.get(f"{BLUESKY_PUBLIC_HOST}{SEARCH_PATH}").mock(
            return_value=httpx.Response(200, json=self.SEARCH_RESULT)
        )

        posts = await search_bluesky("biomass", anonymous_settings)

        assert len(posts) == 1
        assert "authorization" not in search.calls.last.request.headers

    @pytest.mark.asyncio
    @respx.mock
    async def test_public_search_refused(self, anonymous_settings):
        respx.get(f"{BLUESKY_PUBLIC_HOST}{SEARCH_PATH}").mock(return_value=httpx.Response(403))

        with pytest.raises(SocialCredentialsRequiredError, match="rate-limited"):
            await search_bluesky("biomass", anonymous_settings)

    @pytest.mark.asyncio
    @respx.mock
    async def test_repost_creates_record(self, settings):
        _mock_session()
        create = respx.post(BLUESKY_CREATE_RECORD_URL).mock(
            return_value=httpx.Response(200, json={"uri": "at://did:plc:me/app.bsky.feed.repost/1"})
        )

        result = await repost_bluesky("at://x/1", "bafy", settings)

        assert result == {"success": True}
        body = json.loads(create.calls.last.request.content)
        assert body["repo"] == "did:plc:me"
        assert body["collection"] == "app.bsky.feed.repost"
        assert body["record"]["subject"] == {"uri": "at://x/1", "cid": "bafy"}
        assert create.calls.last.request.headers["authorization"] == "Bearer jwt-token"

    @pytest.mark.asyncio
    async def test_repost_without_credentials(self, anonymous_settings):
        with pytest.raises(SocialCredentialsRequiredError, match="Missing BlueSky Credentials"):
            await repost_bluesky("at://x/1", "bafy", anonymous_settings)

    @pytest.mark.asyncio
    @respx.mock
    async def test_failed_login(self, settings):
        respx.post(BLUESKY_SESSION_URL).mock(return_value=httpx.Response(401, json={"error": "AuthFailed"}))

        with pytest.raises(HTTPClientError) as exc_info:
            await repost_bluesky("at://x/1", "bafy", settings)

        assert exc_info.value.status_code == 401
