"""
Relay upstream calls.

Server side of the endpoints the client adapters call. Each function
talks to one upstream API with credentials held by the server, and
returns data already in the shape the client expects:

- fetch_feed:      raw feed markup passthrough (CORS bypass)
- fetch_nyt:       NYT Article Search with a fixed editorial query
- fetch_guardian:  Guardian environment section
- fetch_congress:  latest bills filtered by keyword
- search_bluesky:  Bluesky post search (authenticated when configured)
- repost_bluesky:  Bluesky repost record creation

Upstream calls retry transient failures (settings.upstream_max_retries).
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from research_feed.config.settings import Settings, get_settings
from research_feed.ingestion.http_client import (
    APIKeyRotator,
    HTTPClient,
    HTTPClientError,
    RetryConfig,
)
from research_feed.ingestion.legislative_adapter import (
    bill_matches,
    normalize_keywords,
    transform_bill,
)
from research_feed.ingestion.schemas import CanonicalResource
from research_feed.social.schemas import SocialPost, post_from_bluesky

logger = logging.getLogger(__name__)

NYT_SEARCH_URL = "https://api.nytimes.com/svc/search/v2/articlesearch.json"
NYT_QUERY = 'forest endangered bioenergy logging "climate change"'
NYT_FILTER = (
    '(desk:("Environment" "Science" "Climate" "U.S." "World" "Foreign" "Politics" '
    '"Washington" "Business" "Magazine" "Opinion") OR section.name:("Climate" '
    '"Environment" "Science" "U.S." "World")) AND NOT section.name:("Arts" "Music" '
    '"Movies" "Theater" "Style")'
)

GUARDIAN_SEARCH_URL = "https://content.guardianapis.com/search"
GUARDIAN_SECTION = "environment"
GUARDIAN_PAGE_SIZE = 20

CONGRESS_BILLS_URL = "https://api.congress.gov/v3/bill"
CONGRESS_PAGE_SIZE = 100

BLUESKY_SESSION_URL = "https://bsky.social/xrpc/com.atproto.server.createSession"
BLUESKY_CREATE_RECORD_URL = "https://bsky.social/xrpc/com.atproto.repo.createRecord"
BLUESKY_AUTH_HOST = "https://api.bsky.app"
BLUESKY_PUBLIC_HOST = "https://public.api.bsky.app"
BLUESKY_SEARCH_LIMIT = 25
BLUESKY_REPOST_COLLECTION = "app.bsky.feed.repost"


class MissingCredentialsError(Exception):
    """The server lacks an API key it needs for an upstream call."""

    pass


class SocialCredentialsRequiredError(Exception):
    """Bluesky needs account credentials for this call."""

    pass


@dataclass
class FeedDocument:
    """Raw feed markup fetched on behalf of a client."""

    body: str
    content_type: str


def _upstream_client(settings: Settings, headers: dict[str, str] | None = None) -> HTTPClient:
    return HTTPClient(
        retry_config=RetryConfig(
            max_retries=settings.upstream_max_retries,
            max_backoff_seconds=settings.max_backoff_seconds,
        ),
        timeout=settings.http_timeout_seconds,
        headers=headers,
    )


def _require_keys(value: str | None, env_name: str) -> APIKeyRotator:
    rotator = APIKeyRotator.from_env_var(value)
    if rotator is None:
        raise MissingCredentialsError(f"Server missing {env_name}")
    return rotator


async def fetch_feed(url: str, settings: Settings | None = None) -> FeedDocument:
    """Fetch a feed document and pass it through unchanged."""
    settings = settings or get_settings()
    async with _upstream_client(settings) as client:
        response = await client.get(url)

    return FeedDocument(
        body=response.text,
        content_type=response.headers.get("content-type", "application/xml"),
    )


# ── News ───────────────────────────────────────────────────────


def nyt_to_resource(doc: dict[str, Any]) -> CanonicalResource:
    headline = doc.get("headline") or {}
    byline = (doc.get("byline") or {}).get("original")
    return CanonicalResource(
        external_id=doc.get("_id") or doc.get("uri") or "",
        title=headline.get("main") or "Untitled Article",
        url=doc.get("web_url"),
        summary=doc.get("snippet") or "",
        published_at=doc.get("pub_date"),
        native_data={
            "source": "New York Times",
            "author": byline.replace("By ", "", 1) if byline else None,
        },
    )


async def fetch_nyt(settings: Settings | None = None) -> list[dict[str, Any]]:
    """Newest NYT articles for the fixed editorial query, canonical-shaped."""
    settings = settings or get_settings()
    rotator = _require_keys(settings.nyt_api_keys, "NYT_API_KEY")

    async with _upstream_client(settings) as client:
        response = await client.get(
            NYT_SEARCH_URL,
            params={"q": NYT_QUERY, "fq": NYT_FILTER, "sort": "newest"},
            api_key_rotator=rotator,
            api_key_param="api-key",
        )

    docs = ((response.json() or {}).get("response") or {}).get("docs") or []
    logger.info(f"NYT returned {len(docs)} articles")
    return [nyt_to_resource(doc).to_wire() for doc in docs]


def guardian_to_resource(article: dict[str, Any]) -> CanonicalResource:
    fields = article.get("fields") or {}
    return CanonicalResource(
        external_id=article.get("id") or "",
        title=article.get("webTitle") or "Untitled Article",
        url=article.get("webUrl"),
        summary=fields.get("trailText") or "",
        published_at=article.get("webPublicationDate"),
        native_data={
            "source": "The Guardian",
            "author": fields.get("byline"),
            "image": fields.get("thumbnail"),
        },
    )


async def fetch_guardian(settings: Settings | None = None) -> list[dict[str, Any]]:
    """Latest Guardian environment articles, canonical-shaped."""
    settings = settings or get_settings()
    rotator = _require_keys(settings.guardian_api_keys, "GUARDIAN_API_KEY")

    async with _upstream_client(settings) as client:
        response = await client.get(
            GUARDIAN_SEARCH_URL,
            params={
                "section": GUARDIAN_SECTION,
                "show-fields": "trailText,thumbnail,byline",
                "page-size": GUARDIAN_PAGE_SIZE,
            },
            api_key_rotator=rotator,
            api_key_param="api-key",
        )

    results = (response.json().get("response") or {}).get("results") or []
    logger.info(f"Guardian returned {len(results)} articles")
    return [guardian_to_resource(article).to_wire() for article in results]


# ── Legislative ────────────────────────────────────────────────


async def fetch_congress(
    keywords: str | None = None,
    settings: Settings | None = None,
) -> list[dict[str, Any]]:
    """
    Latest bills matching any keyword, canonical-shaped.

    Args:
        keywords: Comma-separated terms; blank or absent uses the defaults
    """
    settings = settings or get_settings()
    rotator = _require_keys(settings.congress_api_keys, "CONGRESS_API_KEY")
    terms = normalize_keywords(keywords)

    async with _upstream_client(settings) as client:
        response = await client.get(
            CONGRESS_BILLS_URL,
            params={"format": "json", "limit": CONGRESS_PAGE_SIZE, "sort": "updateDate desc"},
            api_key_rotator=rotator,
            api_key_param="api_key",
        )

    bills = response.json().get("bills") or []
    relevant = [transform_bill(bill).to_wire() for bill in bills if bill_matches(bill, terms)]
    logger.info(f"Congress returned {len(bills)} bills, {len(relevant)} matched {len(terms)} keywords")
    return relevant


# ── Bluesky ────────────────────────────────────────────────────


async def _create_session(client: HTTPClient, settings: Settings) -> dict[str, Any]:
    response = await client.post(
        BLUESKY_SESSION_URL,
        json_body={
            "identifier": settings.bluesky_handle,
            "password": settings.bluesky_app_password,
        },
    )
    return response.json()


async def search_bluesky(query: str, settings: Settings | None = None) -> list[SocialPost]:
    """
    Search Bluesky posts.

    Uses an authenticated session when credentials are configured,
    otherwise the public (heavily rate limited) host.

    Raises:
        SocialCredentialsRequiredError: If public search is refused
        HTTPClientError: On any other upstream failure
    """
    settings = settings or get_settings()
    authenticated = settings.bluesky_configured

    async with _upstream_client(settings) as client:
        headers = {}
        if authenticated:
            session = await _create_session(client, settings)
            headers["Authorization"] = f"Bearer {session['accessJwt']}"

        host = BLUESKY_AUTH_HOST if authenticated else BLUESKY_PUBLIC_HOST
        try:
            response = await client.get(
                f"{host}/xrpc/app.bsky.feed.searchPosts",
                params={"q": query, "limit": BLUESKY_SEARCH_LIMIT},
                headers=headers or None,
            )
        except HTTPClientError as e:
            if e.status_code == 403 and not authenticated:
                raise SocialCredentialsRequiredError(
                    "Bluesky Public Search is rate-limited. "
                    "Please add BLUESKY_HANDLE and BLUESKY_APP_PASSWORD to .env"
                ) from e
            raise

    posts = response.json().get("posts") or []
    return [post_from_bluesky(post) for post in posts]


async def repost_bluesky(uri: str, cid: str, settings: Settings | None = None) -> dict[str, bool]:
    """
    Repost a post from the configured account.

    Raises:
        SocialCredentialsRequiredError: If no account is configured
        HTTPClientError: If authentication or record creation fails
    """
    settings = settings or get_settings()
    if not settings.bluesky_configured:
        raise SocialCredentialsRequiredError("Missing BlueSky Credentials in .env")

    async with _upstream_client(settings) as client:
        session = await _create_session(client, settings)
        await client.post(
            BLUESKY_CREATE_RECORD_URL,
            json_body={
                "repo": session["did"],
                "collection": BLUESKY_REPOST_COLLECTION,
                "record": {
                    "$type": BLUESKY_REPOST_COLLECTION,
                    "subject": {"uri": uri, "cid": cid},
                    "createdAt": datetime.now(timezone.utc).isoformat(),
                },
            },
            headers={"Authorization": f"Bearer {session['accessJwt']}"},
        )

    logger.info(f"Reposted {uri}")
    return {"success": True}
