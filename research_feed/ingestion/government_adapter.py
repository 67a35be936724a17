"""
Federal Register adapter for government-notice subscriptions.

A subscription URL is a Federal Register search page URL; its own query
parameters (search term, agency list) are reinterpreted into the
documents API schema. Results are constrained to notices whose comment
deadline is today or later and ordered by that deadline. The public API
needs no relay.
"""

import logging
from collections.abc import AsyncIterator, Callable
from datetime import date, datetime, timezone
from typing import Any
from urllib.parse import parse_qs, urlsplit

from research_feed.config.settings import get_settings
from research_feed.ingestion.base_adapter import BaseAdapter, strip_html
from research_feed.ingestion.schemas import AdapterKind, CanonicalResource, parse_timestamp

logger = logging.getLogger(__name__)

HOST_MARKER = "federalregister.gov"

TERM_PARAM = "conditions[term]"
AGENCIES_PARAM = "conditions[agencies][]"
COMMENT_DATE_GTE_PARAM = "conditions[comment_date][gte]"

TITLE_PREFIX = "[FR] "


def _utc_today() -> date:
    return datetime.now(timezone.utc).date()


class GovernmentNoticeAdapter(BaseAdapter):
    """
    Federal Register documents adapter.

    Output mapping:
        externalId  <- html_url
        title       <- "[FR] " + title
        summary     <- abstract, else excerpt (HTML stripped)
        publishedAt <- publication_date
        nativeData  <- {"source": "federal-register", "agency", "dueDate"}
    """

    def __init__(
        self,
        api_url: str | None = None,
        timeout: float | None = None,
        today: Callable[[], date] | None = None,
    ):
        """
        Initialize adapter.

        Args:
            api_url: Documents endpoint (defaults to settings)
            timeout: Request timeout in seconds
            today: Clock for the comment-deadline cutoff (UTC date by default)
        """
        super().__init__(timeout=timeout)
        self._api_url = api_url or get_settings().federal_register_api_url
        self._today = today or _utc_today

    @property
    def kind(self) -> AdapterKind:
        return AdapterKind.GOVERNMENT

    def validate_url(self, url: str) -> bool:
        return HOST_MARKER in url

    def build_query(self, source_url: str, today: date) -> list[tuple[str, str]]:
        """Translate a search page URL into documents API query parameters."""
        query = parse_qs(urlsplit(source_url).query)

        params: list[tuple[str, str]] = []
        term = (query.get(TERM_PARAM) or [""])[0]
        if term:
            params.append((TERM_PARAM, term))
        for agency in query.get(AGENCIES_PARAM, []):
            params.append((AGENCIES_PARAM, agency))

        params.append((COMMENT_DATE_GTE_PARAM, today.isoformat()))
        params.append(("order", "comment_date"))
        return params

    async def _fetch_raw(
        self,
        source_url: str,
        keywords: list[str] | None,
    ) -> AsyncIterator[dict[str, Any]]:
        today = self._today()

        async with self._http_client() as client:
            response = await client.get(
                self._api_url,
                params=self.build_query(source_url, today),
            )

        for doc in response.json().get("results") or []:
            yield {"doc": doc, "today": today}

    def _transform(self, raw: dict[str, Any]) -> CanonicalResource | None:
        doc = raw["doc"]

        # The API filters on comment_date already; expired notices are
        # still dropped if the upstream ever returns one.
        due_date = doc.get("comment_date")
        if due_date:
            try:
                if parse_timestamp(due_date).date() < raw["today"]:
                    return None
            except ValueError:
                logger.debug(f"Unparsable comment_date {due_date!r}")

        agencies = doc.get("agencies") or []
        agency = ", ".join(a.get("name", "") for a in agencies if isinstance(a, dict) and a.get("name"))

        return CanonicalResource(
            external_id=doc.get("html_url") or "",
            title=f"{TITLE_PREFIX}{doc.get('title', '')}",
            url=doc.get("html_url"),
            summary=strip_html(doc.get("abstract") or doc.get("excerpt")) or None,
            published_at=doc.get("publication_date"),
            native_data={
                "source": "federal-register",
                "agency": agency or None,
                "dueDate": due_date,
            },
        )
