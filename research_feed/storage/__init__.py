"""Remote document storage: abstraction, Redis backend, in-memory backend."""

from research_feed.config.settings import get_settings
from research_feed.storage.document_store import (
    CollectionEntry,
    DocumentSnapshot,
    DocumentStore,
    DocumentStoreError,
    Watch,
)
from research_feed.storage.memory import InMemoryDocumentStore
from research_feed.storage.redis_store import RedisDocumentStore


async def create_document_store() -> DocumentStore:
    """Create and connect the backend selected by settings."""
    if get_settings().document_store_backend == "memory":
        return InMemoryDocumentStore()

    store = RedisDocumentStore()
    await store.connect()
    return store


__all__ = [
    "CollectionEntry",
    "DocumentSnapshot",
    "DocumentStore",
    "DocumentStoreError",
    "InMemoryDocumentStore",
    "RedisDocumentStore",
    "Watch",
    "create_document_store",
]
