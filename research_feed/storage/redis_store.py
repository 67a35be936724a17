"""Redis-backed document store with pub/sub change notifications.

Layout:
    doc:<path>         JSON string per document
    col:<collection>   hash of id -> JSON string
    changes:<key>      pub/sub channel announcing writes to <key>

Each watch subscribes to its key's channel and runs a background
listener task; on every notification it re-reads the key and hands the
fresh snapshot to the callback. Each watch counts the deliveries it still
owes (its first snapshot plus one per write made through this store) so
that drain() can wait for them.

Pattern: Background subscriber task per watch (same shape as a
broadcast listener), one writer per document write.
"""

import asyncio
import logging
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

import redis.asyncio as redis

from research_feed.config.settings import get_settings
from research_feed.storage.document_store import (
    CollectionCallback,
    CollectionEntry,
    DocumentCallback,
    DocumentSnapshot,
    DocumentStore,
    DocumentStoreError,
    ErrorCallback,
    Watch,
    decode_document,
    encode_document,
    report_watch_error,
)

logger = logging.getLogger(__name__)

CHANNEL_PREFIX = "changes:"


def _doc_key(path: str) -> str:
    return f"doc:{path}"


def _col_key(collection: str) -> str:
    return f"col:{collection}"


@dataclass
class _Deliveries:
    """Deliveries a watch still owes."""

    pending: int = 1
    idle: asyncio.Event = field(default_factory=asyncio.Event)

    def expect(self) -> None:
        self.pending += 1
        self.idle.clear()

    def done(self) -> None:
        if self.pending > 0:
            self.pending -= 1
        if self.pending == 0:
            self.idle.set()

    def release(self) -> None:
        self.pending = 0
        self.idle.set()


class RedisDocumentStore(DocumentStore):
    """Document store on top of a Redis server.

    Lifecycle:
        1. ``connect()`` to open the client
        2. reads, writes and ``watch*()`` calls
        3. ``close()`` to cancel listener tasks, close the client
    """

    def __init__(
        self,
        redis_url: str | None = None,
        client: Any | None = None,
        poll_timeout: float = 1.0,
    ) -> None:
        self._redis_url = redis_url or str(get_settings().redis_url)
        self._redis: Any | None = client
        self._poll_timeout = poll_timeout
        self._watches: list[Watch] = []
        self._deliveries: dict[str, list[_Deliveries]] = {}

    async def connect(self) -> None:
        """Open the Redis client (no-op if one was injected)."""
        if self._redis is None:
            self._redis = redis.from_url(
                self._redis_url,
                encoding="utf-8",
                decode_responses=True,
            )
            logger.info("Connected to Redis document store")

    @property
    def client(self) -> Any:
        if self._redis is None:
            raise RuntimeError("RedisDocumentStore not connected. Call connect() first.")
        return self._redis

    async def drain(self) -> None:
        """Wait for every watch to deliver its first snapshot and the
        snapshots of writes made through this store."""
        await asyncio.gather(*(d.idle.wait() for group in self._deliveries.values() for d in group))

    async def close(self) -> None:
        for watch in list(self._watches):
            await watch.cancel()
        self._watches.clear()

        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None
            logger.info("Redis document store closed")

    async def __aenter__(self) -> "RedisDocumentStore":
        await self.connect()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    # ── Documents ──────────────────────────────────────────────

    async def get(self, path: str) -> dict[str, Any] | None:
        try:
            raw = await self.client.get(_doc_key(path))
        except redis.RedisError as e:
            raise DocumentStoreError(f"Failed to read {path}: {e}") from e
        return decode_document(raw)

    async def set(self, path: str, data: dict[str, Any]) -> None:
        key = _doc_key(path)
        try:
            await self.client.set(key, encode_document(data))
            await self._publish(key, "set")
        except redis.RedisError as e:
            raise DocumentStoreError(f"Failed to write {path}: {e}") from e

    async def watch(
        self,
        path: str,
        on_change: DocumentCallback,
        on_error: ErrorCallback | None = None,
    ) -> Watch:
        async def read() -> DocumentSnapshot:
            return DocumentSnapshot(path=path, data=await self.get(path))

        return await self._start_watch(_doc_key(path), read, on_change, on_error)

    # ── Collections ────────────────────────────────────────────

    async def add(self, collection: str, data: dict[str, Any]) -> str:
        key = _col_key(collection)
        doc_id = uuid.uuid4().hex
        try:
            await self.client.hset(key, doc_id, encode_document(data))
            await self._publish(key, "add")
        except redis.RedisError as e:
            raise DocumentStoreError(f"Failed to add to {collection}: {e}") from e
        return doc_id

    async def delete(self, collection: str, doc_id: str) -> None:
        key = _col_key(collection)
        try:
            await self.client.hdel(key, doc_id)
            await self._publish(key, "delete")
        except redis.RedisError as e:
            raise DocumentStoreError(f"Failed to delete {collection}/{doc_id}: {e}") from e

    async def list_entries(self, collection: str) -> list[CollectionEntry]:
        try:
            rows = await self.client.hgetall(_col_key(collection))
        except redis.RedisError as e:
            raise DocumentStoreError(f"Failed to list {collection}: {e}") from e
        return [CollectionEntry(id=doc_id, data=decode_document(raw)) for doc_id, raw in rows.items()]

    async def watch_collection(
        self,
        collection: str,
        on_change: CollectionCallback,
        on_error: ErrorCallback | None = None,
    ) -> Watch:
        async def read() -> list[CollectionEntry]:
            return await self.list_entries(collection)

        return await self._start_watch(_col_key(collection), read, on_change, on_error)

    # ── Watch internals ────────────────────────────────────────

    async def _publish(self, key: str, action: str) -> None:
        """Announce a completed write to `key` and to this store's own watches."""
        group = list(self._deliveries.get(key, []))
        for deliveries in group:
            deliveries.expect()
        try:
            await self.client.publish(f"{CHANNEL_PREFIX}{key}", action)
        except redis.RedisError:
            for deliveries in group:
                deliveries.done()
            raise

    async def _start_watch(
        self,
        key: str,
        read: Callable[[], Awaitable[Any]],
        on_change: Callable[[Any], Awaitable[None]],
        on_error: ErrorCallback | None,
    ) -> Watch:
        channel = f"{CHANNEL_PREFIX}{key}"
        pubsub = self.client.pubsub()
        await pubsub.subscribe(channel)
        deliveries = _Deliveries()
        self._deliveries.setdefault(key, []).append(deliveries)

        async def deliver() -> None:
            try:
                await on_change(await read())
            except asyncio.CancelledError:
                raise
            except Exception as e:
                report_watch_error(key, e, on_error)

        async def listen() -> None:
            await deliver()
            deliveries.done()
            while True:
                try:
                    message = await pubsub.get_message(
                        ignore_subscribe_messages=True, timeout=self._poll_timeout,
                    )
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    logger.warning("Error reading pub/sub message on %s: %s", channel, e)
                    await asyncio.sleep(self._poll_timeout)
                    # Notifications may have been lost; a fresh read covers them
                    await deliver()
                    deliveries.release()
                    continue
                if message is not None and message["type"] == "message":
                    await deliver()
                    deliveries.done()

        task = asyncio.create_task(listen(), name=f"watch-{key}")

        async def cancel() -> None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            deliveries.release()
            group = self._deliveries.get(key, [])
            if deliveries in group:
                group.remove(deliveries)
            try:
                await pubsub.unsubscribe(channel)
                await pubsub.aclose()
            except Exception as e:
                logger.warning("Error closing pub/sub: %s", e)
            if watch in self._watches:
                self._watches.remove(watch)

        watch = Watch(target=key, _cancel=cancel)
        self._watches.append(watch)
        logger.info("Watching %s", key)
        return watch
