"""Unit tests for the in-memory aggregate store."""

import asyncio
from datetime import datetime

import pytest

from indexer.store import SERVER_TIMESTAMP, Increment, MemoryAggregateStore, doc_path
from indexer.utils.exceptions import StoreError


class TestBasicOperations:
    """Tests for get/set/update/increment."""

    @pytest.mark.asyncio
    async def test_get_missing_returns_none(self, store):
        assert await store.get("tokens/0xabc") is None

    @pytest.mark.asyncio
    async def test_set_replaces_document(self, store):
        await store.set("tokens/a", {"name": "A", "symbol": "A"})
        await store.set("tokens/a", {"name": "B"})

        assert await store.get("tokens/a") == {"name": "B"}

    @pytest.mark.asyncio
    async def test_set_merge_keeps_other_fields(self, store):
        await store.set("tokens/a", {"name": "A", "symbol": "A"})
        await store.set("tokens/a", {"name": "B"}, merge=True)

        assert await store.get("tokens/a") == {"name": "B", "symbol": "A"}

    @pytest.mark.asyncio
    async def test_update_missing_document_raises(self, store):
        """update requires the document to exist."""
        with pytest.raises(StoreError):
            await store.update("tokens/missing", {"graduated": True})

    @pytest.mark.asyncio
    async def test_server_timestamp_resolved(self, store):
        await store.set("tokens/a", {"createdAt": SERVER_TIMESTAMP})

        doc = await store.get("tokens/a")
        assert isinstance(doc["createdAt"], datetime)

    @pytest.mark.asyncio
    async def test_increment_creates_and_adds(self, store):
        """Missing counters start at zero."""
        await store.increment("stats/farm", {"totalStaked": 2.5})
        await store.increment("stats/farm", {"totalStaked": -1.0, "pool0Staked": 1.0})

        doc = await store.get("stats/farm")
        assert doc["totalStaked"] == 1.5
        assert doc["pool0Staked"] == 1.0

    @pytest.mark.asyncio
    async def test_increment_extra_fields(self, store):
        await store.increment("stats/farm", {"n": 1}, extra={"lastUpdate": "x"})

        assert await store.get("stats/farm") == {"n": 1, "lastUpdate": "x"}

    @pytest.mark.asyncio
    async def test_returned_documents_are_copies(self, store):
        await store.set("tokens/a", {"tags": ["x"]})

        doc = await store.get("tokens/a")
        doc["tags"].append("y")

        assert (await store.get("tokens/a"))["tags"] == ["x"]

    @pytest.mark.asyncio
    async def test_collection_lists_direct_children(self, store):
        await store.set("tokens/a", {"n": 1})
        await store.set("tokens/a/trades/t1", {"n": 2})
        await store.set("tokens/b", {"n": 3})

        assert set(store.collection("tokens")) == {"a", "b"}
        assert store.collection("tokens/a/trades") == {"t1": {"n": 2}}

    def test_doc_path(self):
        assert doc_path("tokens", "0xabc", "trades", "t") == "tokens/0xabc/trades/t"


class TestTransactions:
    """Tests for transact."""

    @pytest.mark.asyncio
    async def test_transaction_commits_writes(self, store):
        async def mutator(tx):
            doc = await tx.get("leaderboards/w")
            tx.set("leaderboards/w", {"count": (doc or {}).get("count", 0) + 1})
            return "done"

        assert await store.transact(mutator) == "done"
        assert await store.get("leaderboards/w") == {"count": 1}

    @pytest.mark.asyncio
    async def test_read_after_write_rejected(self, store):
        async def mutator(tx):
            tx.set("a/b", {"x": 1})
            await tx.get("a/b")

        with pytest.raises(StoreError):
            await store.transact(mutator)

    @pytest.mark.asyncio
    async def test_failed_update_leaves_no_partial_writes(self, store):
        """A transaction that updates a missing document writes nothing."""
        async def mutator(tx):
            await tx.get("tokens/missing")
            tx.set("tokens/other", {"x": 1})
            tx.update("tokens/missing", {"x": Increment(1)})

        with pytest.raises(StoreError):
            await store.transact(mutator)

        assert await store.get("tokens/other") is None

    @pytest.mark.asyncio
    async def test_conflict_reruns_mutator(self, store):
        """A concurrent write between read and commit forces a retry."""
        await store.set("c/doc", {"n": 0})
        calls = 0

        async def mutator(tx):
            nonlocal calls
            calls += 1
            doc = await tx.get("c/doc")
            if calls == 1:
                await store.set("c/doc", {"n": 100})
            tx.set("c/doc", {"n": doc["n"] + 1})

        await store.transact(mutator)

        assert calls == 2
        assert store.conflicts == 1
        assert await store.get("c/doc") == {"n": 101}

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self):
        store = MemoryAggregateStore(max_attempts=2)
        await store.set("c/doc", {"n": 0})

        async def mutator(tx):
            await tx.get("c/doc")
            await store.set("c/doc", {"n": 1})
            tx.set("c/doc", {"n": 2})

        with pytest.raises(StoreError, match="2 attempts"):
            await store.transact(mutator)

    @pytest.mark.asyncio
    async def test_concurrent_read_modify_write_is_additive(self, store):
        """Concurrent transactional increments lose no updates."""
        async def add_one(tx):
            doc = await tx.get("c/counter")
            n = (doc or {}).get("n", 0)
            tx.set("c/counter", {"n": n + 1})

        await asyncio.gather(*(store.transact(add_one) for _ in range(20)))

        assert await store.get("c/counter") == {"n": 20}

    @pytest.mark.asyncio
    async def test_concurrent_increments_are_additive(self, store):
        await asyncio.gather(
            *(store.increment("c/counter", {"n": 1}) for _ in range(50))
        )

        assert await store.get("c/counter") == {"n": 50}

    @pytest.mark.asyncio
    async def test_transactions_mixed_with_plain_writes(self):
        """Transactions racing plain increments on the same doc all commit."""
        store = MemoryAggregateStore()

        async def add_ten(tx):
            doc = await tx.get("c/counter")
            n = (doc or {}).get("n", 0)
            tx.set("c/counter", {"n": n + 10}, merge=True)

        await asyncio.gather(
            *(store.transact(add_ten) for _ in range(20)),
            *(store.increment("c/counter", {"n": 1}) for _ in range(20)),
        )

        assert (await store.get("c/counter"))["n"] == 220
