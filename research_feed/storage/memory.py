"""
In-process document store.

Behaves like the Redis backend (JSON round-trip on every read and write,
asynchronous watch deliveries) without a server. Used for local
development (DOCUMENT_STORE_BACKEND=memory) and in tests.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any

from research_feed.storage.document_store import (
    CollectionCallback,
    CollectionEntry,
    DocumentCallback,
    DocumentSnapshot,
    DocumentStore,
    ErrorCallback,
    Watch,
    decode_document,
    encode_document,
    report_watch_error,
)

logger = logging.getLogger(__name__)


@dataclass
class _Listener:
    """A watch's delivery queue and the task draining it."""

    target: str
    deliver: Any
    on_error: ErrorCallback | None
    queue: asyncio.Queue = field(default_factory=asyncio.Queue)
    task: asyncio.Task | None = None

    async def run(self) -> None:
        while True:
            payload = await self.queue.get()
            try:
                await self.deliver(payload)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                report_watch_error(self.target, e, self.on_error)
            finally:
                self.queue.task_done()


class InMemoryDocumentStore(DocumentStore):
    """Document store held in process memory."""

    def __init__(self) -> None:
        self._documents: dict[str, str] = {}
        self._collections: dict[str, dict[str, str]] = {}
        self._listeners: dict[str, list[_Listener]] = {}

    # ── Documents ──────────────────────────────────────────────

    async def get(self, path: str) -> dict[str, Any] | None:
        return decode_document(self._documents.get(path))

    async def set(self, path: str, data: dict[str, Any]) -> None:
        self._documents[path] = encode_document(data)
        self._publish(f"doc:{path}", DocumentSnapshot(path=path, data=decode_document(self._documents[path])))

    async def watch(
        self,
        path: str,
        on_change: DocumentCallback,
        on_error: ErrorCallback | None = None,
    ) -> Watch:
        initial = DocumentSnapshot(path=path, data=await self.get(path))
        return self._register(f"doc:{path}", on_change, on_error, initial)

    # ── Collections ────────────────────────────────────────────

    async def add(self, collection: str, data: dict[str, Any]) -> str:
        doc_id = uuid.uuid4().hex
        self._collections.setdefault(collection, {})[doc_id] = encode_document(data)
        self._publish(f"col:{collection}", await self.list_entries(collection))
        return doc_id

    async def delete(self, collection: str, doc_id: str) -> None:
        self._collections.get(collection, {}).pop(doc_id, None)
        self._publish(f"col:{collection}", await self.list_entries(collection))

    async def list_entries(self, collection: str) -> list[CollectionEntry]:
        return [
            CollectionEntry(id=doc_id, data=decode_document(raw))
            for doc_id, raw in self._collections.get(collection, {}).items()
        ]

    async def watch_collection(
        self,
        collection: str,
        on_change: CollectionCallback,
        on_error: ErrorCallback | None = None,
    ) -> Watch:
        initial = await self.list_entries(collection)
        return self._register(f"col:{collection}", on_change, on_error, initial)

    # ── Lifecycle ──────────────────────────────────────────────

    async def drain(self) -> None:
        """Wait until every queued delivery has been handled."""
        listeners = [l for group in self._listeners.values() for l in group]
        await asyncio.gather(*(l.queue.join() for l in listeners))

    async def close(self) -> None:
        for key in list(self._listeners):
            for listener in self._listeners.pop(key):
                await self._stop(listener)

    # ── Internals ──────────────────────────────────────────────

    def _register(self, key: str, deliver, on_error, initial) -> Watch:
        listener = _Listener(target=key, deliver=deliver, on_error=on_error)
        listener.task = asyncio.create_task(listener.run(), name=f"watch-{key}")
        listener.queue.put_nowait(initial)
        self._listeners.setdefault(key, []).append(listener)

        async def cancel() -> None:
            group = self._listeners.get(key, [])
            if listener in group:
                group.remove(listener)
            await self._stop(listener)

        return Watch(target=key, _cancel=cancel)

    def _publish(self, key: str, payload) -> None:
        for listener in self._listeners.get(key, []):
            listener.queue.put_nowait(payload)

    @staticmethod
    async def _stop(listener: _Listener) -> None:
        if listener.task is None:
            return
        listener.task.cancel()
        try:
            await listener.task
        except asyncio.CancelledError:
            pass
        # Unblock anyone waiting in drain()
        while not listener.queue.empty():
            listener.queue.get_nowait()
            listener.queue.task_done()
