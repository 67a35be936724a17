"""Tests for the in-process document store."""

from datetime import datetime, timezone

import pytest

from research_feed.storage.document_store import (
    DocumentSnapshot,
    decode_document,
    encode_document,
)
from research_feed.storage.memory import InMemoryDocumentStore


class TestEncoding:
    def test_datetimes_become_iso_strings(self):
        when = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)

        assert decode_document(encode_document({"at": when})) == {"at": "2026-03-10T12:00:00+00:00"}

    def test_decode_bytes_and_none(self):
        assert decode_document(b'{"a": 1}') == {"a": 1}
        assert decode_document(None) is None

    def test_unserializable_value_raises(self):
        with pytest.raises(TypeError):
            encode_document({"x": object()})


class TestDocuments:
    @pytest.mark.asyncio
    async def test_get_missing_returns_none(self):
        store = InMemoryDocumentStore()

        assert await store.get("users/nobody") is None

    @pytest.mark.asyncio
    async def test_set_replaces_and_copies(self):
        store = InMemoryDocumentStore()
        data = {"feeds": [{"url": "https://a.com"}]}

        await store.set("users/u1", data)
        data["feeds"].clear()

        assert await store.get("users/u1") == {"feeds": [{"url": "https://a.com"}]}

    @pytest.mark.asyncio
    async def test_watch_delivers_initial_and_later_snapshots(self):
        store = InMemoryDocumentStore()
        seen: list[DocumentSnapshot] = []

        async def on_change(snapshot):
            seen.append(snapshot)

        watch = await store.watch("users/u1", on_change)
        await store.drain()
        await store.set("users/u1", {"feeds": []})
        await store.drain()

        assert [s.exists for s in seen] == [False, True]
        assert seen[1].data == {"feeds": []}

        await watch.cancel()
        await store.set("users/u1", {"feeds": ["x"]})
        await store.drain()

        assert len(seen) == 2
        assert watch.active is False
        # Idempotent
        await watch.cancel()

    @pytest.mark.asyncio
    async def test_watch_only_sees_its_own_path(self):
        store = InMemoryDocumentStore()
        seen = []

        async def on_change(snapshot):
            seen.append(snapshot.path)

        await store.watch("users/u1", on_change)
        await store.set("users/u2", {"feeds": []})
        await store.drain()

        assert seen == ["users/u1"]
        await store.close()

    @pytest.mark.asyncio
    async def test_callback_failure_goes_to_error_handler(self):
        store = InMemoryDocumentStore()
        errors: list[Exception] = []
        calls = 0

        async def on_change(snapshot):
            nonlocal calls
            calls += 1
            raise RuntimeError("listener broke")

        await store.watch("users/u1", on_change, on_error=errors.append)
        await store.drain()
        await store.set("users/u1", {})
        await store.drain()

        # The watch survives a failing delivery
        assert calls == 2
        assert [str(e) for e in errors] == ["listener broke", "listener broke"]
        await store.close()


class TestCollections:
    @pytest.mark.asyncio
    async def test_add_list_delete(self):
        store = InMemoryDocumentStore()

        first = await store.add("public_library", {"url": "https://a.com"})
        second = await store.add("public_library", {"url": "https://b.com"})

        assert first != second
        entries = await store.list_entries("public_library")
        assert {e.id: e.data["url"] for e in entries} == {first: "https://a.com", second: "https://b.com"}

        await store.delete("public_library", first)
        await store.delete("public_library", "missing")

        assert [e.id for e in await store.list_entries("public_library")] == [second]

    @pytest.mark.asyncio
    async def test_query_exact_match(self):
        store = InMemoryDocumentStore()
        await store.add("public_library", {"url": "https://a.com"})
        await store.add("public_library", {"url": "https://a.com/"})

        matches = await store.query("public_library", "url", "https://a.com")

        assert [m.data["url"] for m in matches] == ["https://a.com"]

    @pytest.mark.asyncio
    async def test_watch_collection(self):
        store = InMemoryDocumentStore()
        sizes: list[int] = []

        async def on_change(entries):
            sizes.append(len(entries))

        await store.watch_collection("public_library", on_change)
        doc_id = await store.add("public_library", {"url": "https://a.com"})
        await store.delete("public_library", doc_id)
        await store.drain()

        assert sizes == [0, 1, 0]
        await store.close()

    @pytest.mark.asyncio
    async def test_close_stops_every_watch(self):
        store = InMemoryDocumentStore()
        seen = []

        async def on_change(entries):
            seen.append(entries)

        await store.watch_collection("public_library", on_change)
        await store.drain()
        await store.close()
        await store.add("public_library", {"url": "https://a.com"})
        await store.drain()

        assert len(seen) == 1
