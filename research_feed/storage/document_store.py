"""
Remote document store abstraction with live watches.

Two kinds of data live in the store:
- Documents, addressed by a path (e.g. "users/<uid>"), each a JSON object
- Collections of JSON objects keyed by generated ids (e.g. "public_library")

A watch delivers the current snapshot right after registration and a
fresh snapshot after every later write to the watched document or
collection. Deliveries for one watch are sequential; different watches
run independently.
"""

import json
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

logger = logging.getLogger(__name__)


class DocumentStoreError(Exception):
    """Raised when a read or write against the backing store fails."""

    pass


@dataclass
class DocumentSnapshot:
    """Point-in-time view of one document."""

    path: str
    data: dict[str, Any] | None

    @property
    def exists(self) -> bool:
        return self.data is not None


@dataclass
class CollectionEntry:
    """One document of a collection together with its id."""

    id: str
    data: dict[str, Any]


DocumentCallback = Callable[[DocumentSnapshot], Awaitable[None]]
CollectionCallback = Callable[[list[CollectionEntry]], Awaitable[None]]
ErrorCallback = Callable[[Exception], None]


@dataclass
class Watch:
    """Handle for a live watch. cancel() is idempotent."""

    target: str
    _cancel: Callable[[], Awaitable[None]] = field(repr=False)
    active: bool = True

    async def cancel(self) -> None:
        if not self.active:
            return
        self.active = False
        await self._cancel()
        logger.debug(f"Watch on {self.target} cancelled")


def _json_default(value: Any) -> str:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def encode_document(data: dict[str, Any]) -> str:
    """Serialize a document; datetimes become ISO-8601 strings."""
    return json.dumps(data, default=_json_default)


def decode_document(raw: str | bytes | None) -> dict[str, Any] | None:
    if raw is None:
        return None
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8")
    return json.loads(raw)


def report_watch_error(target: str, error: Exception, on_error: ErrorCallback | None) -> None:
    """Route a watch delivery failure to its error callback, or log it."""
    if on_error is not None:
        on_error(error)
    else:
        logger.error(f"Watch on {target} failed: {error}", exc_info=error)


class DocumentStore(ABC):
    """Abstract remote document store."""

    # ── Documents ──────────────────────────────────────────────

    @abstractmethod
    async def get(self, path: str) -> dict[str, Any] | None:
        """Read a document, or None if it does not exist."""
        ...

    @abstractmethod
    async def set(self, path: str, data: dict[str, Any]) -> None:
        """Replace a document wholesale."""
        ...

    @abstractmethod
    async def watch(
        self,
        path: str,
        on_change: DocumentCallback,
        on_error: ErrorCallback | None = None,
    ) -> Watch:
        """Watch one document."""
        ...

    # ── Collections ────────────────────────────────────────────

    @abstractmethod
    async def add(self, collection: str, data: dict[str, Any]) -> str:
        """Insert a document into a collection, returning its generated id."""
        ...

    @abstractmethod
    async def delete(self, collection: str, doc_id: str) -> None:
        """Remove a document from a collection (no-op if absent)."""
        ...

    @abstractmethod
    async def list_entries(self, collection: str) -> list[CollectionEntry]:
        """All documents of a collection."""
        ...

    async def query(self, collection: str, field_name: str, value: Any) -> list[CollectionEntry]:
        """Documents whose `field_name` equals `value` exactly."""
        return [e for e in await self.list_entries(collection) if e.data.get(field_name) == value]

    @abstractmethod
    async def watch_collection(
        self,
        collection: str,
        on_change: CollectionCallback,
        on_error: ErrorCallback | None = None,
    ) -> Watch:
        """Watch every document of a collection."""
        ...

    # ── Lifecycle ──────────────────────────────────────────────

    async def drain(self) -> None:
        """Wait until pending watch deliveries are processed (where knowable)."""
        return None

    async def close(self) -> None:
        return None
