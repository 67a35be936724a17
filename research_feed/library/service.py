"""
Public library - subscriptions shared across identities.

The library has its own lifecycle: entries are created by an explicit
share and are never updated from personal subscription changes.
Sharing and deleting need an identity; reading does not.
"""

import structlog
from pydantic import ValidationError

from research_feed.identity import AuthenticationRequiredError, Identity
from research_feed.library.schemas import LIBRARY_COLLECTION, PublicLibraryEntry
from research_feed.storage.document_store import CollectionEntry, DocumentStore, Watch
from research_feed.subscriptions.store import SubscriptionStore

logger = structlog.get_logger(__name__)


class DuplicateEntryError(Exception):
    """Raised when sharing a URL that is already in the library."""

    def __init__(self, url: str):
        super().__init__(f"Already in library: {url}")
        self.url = url


class LibraryService:
    """
    Live view of the public library plus share/subscribe/delete.

    Usage:
        library = LibraryService(store, identity, subscriptions)
        await library.start()
        await library.share("https://example.com/feed.xml", "Great blog")
    """

    def __init__(
        self,
        document_store: DocumentStore,
        identity: Identity | None = None,
        subscriptions: SubscriptionStore | None = None,
        collection: str = LIBRARY_COLLECTION,
    ):
        self._store = document_store
        self._identity = identity
        self._subscriptions = subscriptions
        self._collection = collection
        self._entries: list[PublicLibraryEntry] = []
        self._watch: Watch | None = None

    @property
    def entries(self) -> list[PublicLibraryEntry]:
        return list(self._entries)

    async def start(self) -> None:
        if self._watch is not None and self._watch.active:
            return
        self._watch = await self._store.watch_collection(
            self._collection, self._on_entries, self._on_watch_error,
        )

    async def stop(self) -> None:
        if self._watch is not None:
            await self._watch.cancel()
            self._watch = None
        self._entries = []

    async def refresh(self) -> list[PublicLibraryEntry]:
        """Read the collection once, without a watch."""
        await self._on_entries(await self._store.list_entries(self._collection))
        return self.entries

    async def share(self, url: str, description: str = "") -> PublicLibraryEntry:
        """
        Publish a subscription URL to the library.

        The duplicate check is an exact URL match (no case folding).

        Raises:
            AuthenticationRequiredError: If no identity is signed in
            DuplicateEntryError: If the URL is already shared
        """
        identity = self._require_identity("share to the library")

        existing = await self._store.query(self._collection, "url", url)
        if existing:
            logger.info("Share rejected as duplicate", url=url, entry_id=existing[0].id)
            raise DuplicateEntryError(url)

        entry = PublicLibraryEntry(
            url=url,
            description=description,
            shared_by=identity.email or identity.uid,
        )
        entry.id = await self._store.add(self._collection, entry.to_document())
        logger.info("Shared to library", url=url, entry_id=entry.id, shared_by=entry.shared_by)
        return entry

    async def subscribe_from_library(self, url: str) -> bool:
        """Same as a manual add to the personal subscription list."""
        if self._subscriptions is None:
            raise AuthenticationRequiredError("Subscribing requires a signed-in identity")
        return await self._subscriptions.add(url)

    async def delete(self, entry_id: str) -> None:
        """
        Remove an entry by id.

        Any signed-in identity may delete any entry; there is no
        ownership check at this layer.
        """
        identity = self._require_identity("delete from the library")

        entry = next((e for e in self._entries if e.id == entry_id), None)
        if entry is not None and entry.shared_by not in (identity.email, identity.uid):
            logger.warning(
                "Library entry deleted by non-owner",
                entry_id=entry_id,
                shared_by=entry.shared_by,
                deleted_by=identity.display_name,
            )

        await self._store.delete(self._collection, entry_id)
        logger.info("Removed from library", entry_id=entry_id)

    def _require_identity(self, action: str) -> Identity:
        if self._identity is None:
            raise AuthenticationRequiredError(f"Must be logged in to {action}")
        return self._identity

    async def _on_entries(self, rows: list[CollectionEntry]) -> None:
        entries = []
        for row in rows:
            try:
                entries.append(PublicLibraryEntry.from_document(row.id, row.data))
            except ValidationError as e:
                logger.warning("Skipping malformed library entry", entry_id=row.id, error=str(e))
        entries.sort(key=lambda e: e.shared_at, reverse=True)
        self._entries = entries

    def _on_watch_error(self, error: Exception) -> None:
        logger.error("Library sync error", error=str(error))
