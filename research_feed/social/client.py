"""
Social search client.

Functionally parallel to the adapters but not one of them: it searches
by keyword rather than fetching per subscription, and it can repost.
Both calls go through the relay, which holds the network credentials.
"""

import logging

from research_feed.config.settings import get_settings
from research_feed.ingestion.http_client import HTTPClient, HTTPClientError
from research_feed.social.schemas import SocialPost

logger = logging.getLogger(__name__)


class SocialClient:
    """Client for the /fetch-bluesky and /repost-bluesky relay endpoints."""

    def __init__(
        self,
        relay_base_url: str | None = None,
        timeout: float | None = None,
    ):
        settings = get_settings()
        self._relay_base_url = (relay_base_url or settings.relay_base_url).rstrip("/")
        self._timeout = timeout or settings.http_timeout_seconds

    async def search(self, query: str) -> list[SocialPost]:
        """
        Search posts by keyword.

        Raises:
            HTTPClientError: On relay failure (including the 403 the relay
                returns when public search is rate limited)
        """
        async with HTTPClient(timeout=self._timeout) as client:
            response = await client.get(
                f"{self._relay_base_url}/fetch-bluesky",
                params={"q": query},
            )

        return [SocialPost.model_validate(item) for item in response.json()]

    async def repost(self, uri: str, cid: str) -> None:
        """
        Repost a post to the configured account.

        Raises:
            HTTPClientError: If the relay rejects or fails the repost
        """
        async with HTTPClient(timeout=self._timeout) as client:
            response = await client.post(
                f"{self._relay_base_url}/repost-bluesky",
                json_body={"uri": uri, "cid": cid},
            )

        body = response.json()
        if not body.get("success"):
            raise HTTPClientError(
                f"Repost of {uri} was not confirmed",
                status_code=response.status_code,
                response_body=response.text,
            )
