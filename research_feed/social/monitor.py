"""
Social monitor: keyword search results plus repost commands.

Reposting applies a local projection first (the repost counter goes up
immediately), then reconciles with the relay's answer. A failed repost
rolls the projection back before the error reaches the caller.
"""

import structlog

from research_feed.identity import AuthenticationRequiredError
from research_feed.ingestion.http_client import HTTPClientError
from research_feed.social.client import SocialClient
from research_feed.social.schemas import SocialPost

logger = structlog.get_logger(__name__)


class RepostError(Exception):
    """Raised when a repost command fails; the local count has been restored."""

    pass


class SocialMonitor:
    """
    Holds the current social search results.

    Usage:
        monitor = SocialMonitor()
        await monitor.search("biomass")
        await monitor.repost(monitor.posts[0].id)
    """

    def __init__(self, client: SocialClient | None = None):
        self._client = client or SocialClient()
        self._posts: list[SocialPost] = []
        self._current_query = ""
        self._is_loading = False

    @property
    def posts(self) -> list[SocialPost]:
        return list(self._posts)

    @property
    def current_query(self) -> str:
        return self._current_query

    @property
    def is_loading(self) -> bool:
        return self._is_loading

    async def search(self, query: str) -> list[SocialPost]:
        """
        Replace the result list with posts matching `query`.

        A blank query leaves the current results untouched. A failed search
        is logged and yields an empty result list.
        """
        if not query.strip():
            return self.posts

        self._is_loading = True
        self._current_query = query
        try:
            self._posts = await self._client.search(query)
        except Exception as e:
            logger.error("Social search failed", query=query, error=str(e))
            self._posts = []
        finally:
            self._is_loading = False

        logger.info("Social search completed", query=query, posts=len(self._posts))
        return self.posts

    async def repost(self, post_id: str) -> SocialPost:
        """
        Repost one of the current results.

        Raises:
            KeyError: If the post is not in the current results
            AuthenticationRequiredError: If the relay has no credentials
            RepostError: If the relay failed the repost
        """
        target = next((p for p in self._posts if p.id == post_id), None)
        if target is None:
            raise KeyError(post_id)

        target.reposts += 1

        try:
            await self._client.repost(uri=target.id, cid=target.cid)
        except HTTPClientError as e:
            target.reposts -= 1
            logger.warning("Repost failed, rolled back", post_id=post_id, error=str(e))
            if e.status_code == 403:
                raise AuthenticationRequiredError("Reposting requires social network credentials") from e
            raise RepostError(f"Repost of {post_id} failed") from e

        logger.info("Reposted", post_id=post_id, reposts=target.reposts)
        return target
