"""
Base adapter interface and shared functionality for source adapters.

Each adapter translates one subscription's source-specific parameters
into a list of CanonicalResource records. The orchestrator selects an
adapter with validate_url() and calls fetch(); adapters never decide
dispatch themselves.

The base class provides:
- The fetch() template (raw fetch -> per-item transform -> stats logging)
- Relay URL construction and HTTP client creation
- Common text cleaning utilities
"""

import html
import logging
import re
import time
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any

from bs4 import BeautifulSoup

from research_feed.config.settings import get_settings
from research_feed.ingestion.http_client import HTTPClient, RetryConfig
from research_feed.ingestion.schemas import AdapterKind, CanonicalResource

logger = logging.getLogger(__name__)


@dataclass
class AdapterStats:
    """Statistics for one adapter fetch call."""

    resources_fetched: int = 0
    resources_skipped: int = 0
    errors: int = 0
    start_time: float = field(default_factory=time.monotonic)

    @property
    def elapsed_seconds(self) -> float:
        return time.monotonic() - self.start_time


class BaseAdapter(ABC):
    """
    Abstract base class for source adapters.

    Subclasses must implement:
        - kind: AdapterKind enum value
        - validate_url(): Dispatch predicate used by the orchestrator
        - _fetch_raw(): Async generator yielding raw source items
        - _transform(): Convert one raw item to CanonicalResource

    fetch() raises on transport failures and non-success responses;
    fault isolation is the orchestrator's job.
    """

    def __init__(
        self,
        relay_base_url: str | None = None,
        timeout: float | None = None,
    ):
        """
        Initialize adapter.

        Args:
            relay_base_url: Base URL of the relay endpoints (defaults to settings)
            timeout: Request timeout in seconds (defaults to settings)
        """
        settings = get_settings()
        self._relay_base_url = (relay_base_url or settings.relay_base_url).rstrip("/")
        self._timeout = timeout or settings.http_timeout_seconds
        self._last_stats = AdapterStats()

    @property
    @abstractmethod
    def kind(self) -> AdapterKind:
        """Return the adapter variant."""
        ...

    @property
    def name(self) -> str:
        """Human-readable adapter name."""
        return f"{self.kind.value}_adapter"

    @abstractmethod
    def validate_url(self, url: str) -> bool:
        """Return True if this adapter handles the given subscription URL."""
        ...

    @abstractmethod
    def _fetch_raw(
        self,
        source_url: str,
        keywords: list[str] | None,
    ) -> AsyncIterator[dict[str, Any]]:
        """
        Fetch raw items for one subscription.

        Yields:
            Raw source items as dictionaries

        Must raise (not swallow) transport and status errors.
        """
        ...

    @abstractmethod
    def _transform(self, raw: dict[str, Any]) -> CanonicalResource | None:
        """
        Transform one raw item to CanonicalResource.

        Returns None for items that should be skipped.
        """
        ...

    async def fetch(
        self,
        source_url: str,
        keywords: list[str] | None = None,
    ) -> list[CanonicalResource]:
        """
        Fetch and normalize all items for one subscription.

        Args:
            source_url: The subscription URL
            keywords: Optional filter terms, forwarded where supported

        Returns:
            Canonical resources in source order
        """
        stats = AdapterStats()
        resources: list[CanonicalResource] = []

        logger.debug(f"Starting fetch for {self.name}: {source_url}")

        try:
            async for raw in self._fetch_raw(source_url, keywords):
                try:
                    resource = self._transform(raw)
                except Exception as e:
                    stats.errors += 1
                    logger.warning(f"Error transforming item in {self.name}: {e}")
                    continue

                if resource is None:
                    stats.resources_skipped += 1
                    continue

                resources.append(resource)
                stats.resources_fetched += 1

        except Exception as e:
            stats.errors += 1
            logger.error(f"Error in {self.name} fetch for {source_url}: {e}")
            raise

        finally:
            self._last_stats = stats
            logger.info(
                f"{self.name} completed: "
                f"fetched={stats.resources_fetched}, "
                f"skipped={stats.resources_skipped}, "
                f"errors={stats.errors}, "
                f"elapsed={stats.elapsed_seconds:.2f}s"
            )

        return resources

    def _relay_url(self, path: str) -> str:
        return f"{self._relay_base_url}/{path.lstrip('/')}"

    def _http_client(self) -> HTTPClient:
        """Client with retries disabled."""
        return HTTPClient(retry_config=RetryConfig(max_retries=0), timeout=self._timeout)

    @property
    def stats(self) -> AdapterStats:
        """Statistics of the most recent fetch call."""
        return self._last_stats


# Common text utilities used across adapters

def clean_text(text: str) -> str:
    """
    Collapse whitespace and drop control characters.

    Args:
        text: Raw text content

    Returns:
        Cleaned text
    """
    text = " ".join(text.split())
    text = re.sub(r'[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]', '', text)
    return text.strip()


def strip_html(markup: str | None) -> str:
    """Extract plain text from an HTML fragment."""
    if not markup:
        return ""

    soup = BeautifulSoup(markup, "html.parser")
    for element in soup(["script", "style"]):
        element.decompose()

    text = html.unescape(soup.get_text(separator=" "))
    return clean_text(text)


def truncate_preview(text: str, max_chars: int) -> str:
    """Cut text to a fixed preview length, marking the cut with an ellipsis."""
    if len(text) <= max_chars:
        return text
    return f"{text[:max_chars].rstrip()}..."
