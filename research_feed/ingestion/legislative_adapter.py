"""
Legislative adapter for congress.gov subscriptions.

Keyword filtering happens on the relay (/fetch-congress), which falls
back to DEFAULT_KEYWORDS when none are supplied. The adapter passes
through whatever the relay returns without re-filtering.

The bill record mapping (type code -> URL slug, canonical fields) lives
here as well, and is what the relay uses to shape its response.
"""

import logging
from collections.abc import AsyncIterator
from typing import Any

from research_feed.ingestion.base_adapter import BaseAdapter
from research_feed.ingestion.schemas import AdapterKind, CanonicalResource

logger = logging.getLogger(__name__)

HOST_MARKER = "congress.gov"

DEFAULT_KEYWORDS = (
    "biomass",
    "bioenergy",
    "forest",
    "logging",
    "timber",
    "wood",
    "carbon",
    "climate",
    "renewable",
    "energy",
    "pollution",
    "environment",
    "emissions",
)

BILL_TYPE_SLUGS = {
    "S": "senate-bill",
    "HRES": "house-resolution",
    "SRES": "senate-resolution",
    "HJRES": "house-joint-resolution",
    "SJRES": "senate-joint-resolution",
}
DEFAULT_BILL_SLUG = "house-bill"


def bill_type_slug(bill_type: str | None) -> str:
    """URL path slug for a bill type code (exact match, default house-bill)."""
    return BILL_TYPE_SLUGS.get(bill_type or "", DEFAULT_BILL_SLUG)


def normalize_keywords(raw: str | list[str] | None) -> list[str]:
    """
    Parse a keyword filter into lowercase terms.

    Accepts a comma-separated string or a list. Returns the default
    keyword set when nothing usable is supplied.
    """
    if raw is None:
        return list(DEFAULT_KEYWORDS)

    parts = raw.split(",") if isinstance(raw, str) else raw
    keywords = [k.strip().lower() for k in parts if k and k.strip()]
    return keywords or list(DEFAULT_KEYWORDS)


def bill_matches(bill: dict[str, Any], keywords: list[str]) -> bool:
    """Case-insensitive substring match over title and latest action text."""
    latest_action = bill.get("latestAction") or {}
    text = f"{bill.get('title', '')} {latest_action.get('text') or ''}".lower()
    return any(k in text for k in keywords)


def transform_bill(bill: dict[str, Any]) -> CanonicalResource:
    """Map one congress.gov bill record to a canonical resource."""
    bill_type = bill.get("type") or ""
    number = bill.get("number") or ""
    latest_action = bill.get("latestAction") or {}

    return CanonicalResource(
        external_id=f"congress-{bill_type}{number}",
        title=f"{bill_type}{number}: {bill.get('title', '')}",
        url=(
            f"https://www.congress.gov/bill/{bill.get('congress')}th-congress/"
            f"{bill_type_slug(bill_type)}/{number}"
        ),
        summary=f"Latest Action: {latest_action.get('text') or 'No recent action'}",
        published_at=bill.get("updateDate") or latest_action.get("actionDate"),
        native_data={
            "source": "US Congress",
            "origin": bill.get("originChamber"),
            "isOfficial": True,
        },
    )


class LegislativeAdapter(BaseAdapter):
    """Fetches keyword-filtered bills from the legislative relay."""

    @property
    def kind(self) -> AdapterKind:
        return AdapterKind.LEGISLATIVE

    def validate_url(self, url: str) -> bool:
        return HOST_MARKER in url

    async def _fetch_raw(
        self,
        source_url: str,
        keywords: list[str] | None,
    ) -> AsyncIterator[dict[str, Any]]:
        params = {"keywords": ",".join(keywords)} if keywords else None

        async with self._http_client() as client:
            response = await client.get(self._relay_url("/fetch-congress"), params=params)

        for item in response.json():
            yield item

    def _transform(self, raw: dict[str, Any]) -> CanonicalResource:
        return CanonicalResource.from_wire(raw)
