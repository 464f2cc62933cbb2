"""
In-memory aggregate store.

Single-process backend with per-document versions. Transactions record the
version of every document they read and commit only if none of them changed,
otherwise the mutator is re-run after a jittered backoff. Transactions are
serialized against each other, so only plain writes (``set``, ``update``,
``increment``) landing between a read and the commit force a retry. Mutators
must not call ``transact`` themselves. Used for dry runs (``STORE_BACKEND=memory``)
and tests.
"""

import asyncio
import copy
import random
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any, TypeVar

from loguru import logger

from indexer.config.constants import (
    STORE_TRANSACTION_BASE_DELAY,
    STORE_TRANSACTION_MAX_ATTEMPTS,
)
from indexer.store.base import (
    SERVER_TIMESTAMP,
    AggregateStore,
    Increment,
    StoreTransaction,
)
from indexer.utils.exceptions import StoreError

T = TypeVar("T")


class TransactionConflict(Exception):
    """A document read by the transaction changed before commit."""
    pass


def _resolve(current: dict[str, Any], data: dict[str, Any]) -> dict[str, Any]:
    """Apply field transforms of ``data`` on top of ``current`` values."""
    resolved = {}
    for key, value in data.items():
        if value is SERVER_TIMESTAMP:
            resolved[key] = datetime.now(UTC)
        elif isinstance(value, Increment):
            resolved[key] = current.get(key, 0) + value.value
        else:
            resolved[key] = copy.deepcopy(value)
    return resolved


class _MemoryTransaction(StoreTransaction):
    """Transaction handle for ``MemoryAggregateStore``."""

    def __init__(self, store: "MemoryAggregateStore"):
        self._store = store
        self.reads: dict[str, int] = {}
        self.writes: list[tuple[str, str, dict[str, Any], bool]] = []

    async def get(self, path: str) -> dict[str, Any] | None:
        if self.writes:
            raise StoreError("Transaction reads must precede writes")
        await asyncio.sleep(0)
        version, data = self._store._docs.get(path, (0, None))
        self.reads[path] = version
        return copy.deepcopy(data)

    def set(self, path: str, data: dict[str, Any], merge: bool = False) -> None:
        self.writes.append(("set", path, data, merge))

    def update(self, path: str, data: dict[str, Any]) -> None:
        self.writes.append(("update", path, data, False))


class MemoryAggregateStore(AggregateStore):
    """Dictionary-backed aggregate store."""

    def __init__(
        self,
        max_attempts: int = STORE_TRANSACTION_MAX_ATTEMPTS,
        base_delay: float = STORE_TRANSACTION_BASE_DELAY,
    ):
        """
        Initialize store.

        Args:
            max_attempts: Commit attempts per transaction
            base_delay: Upper bound of the first retry delay in seconds
        """
        self._docs: dict[str, tuple[int, dict[str, Any]]] = {}
        self._lock = asyncio.Lock()
        self._tx_lock = asyncio.Lock()
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.conflicts = 0

    # ------------------------------------------------------------------
    # Internal write helpers (caller holds the lock)
    # ------------------------------------------------------------------

    def _write(self, path: str, data: dict[str, Any], merge: bool) -> None:
        version, current = self._docs.get(path, (0, None))
        base = dict(current) if (merge and current) else {}
        base.update(_resolve(current or {}, data))
        self._docs[path] = (version + 1, base)

    def _update(self, path: str, data: dict[str, Any]) -> None:
        if path not in self._docs:
            raise StoreError(f"No document to update: {path}")
        self._write(path, data, merge=True)

    # ------------------------------------------------------------------
    # AggregateStore
    # ------------------------------------------------------------------

    async def get(self, path: str) -> dict[str, Any] | None:
        await asyncio.sleep(0)
        _, data = self._docs.get(path, (0, None))
        return copy.deepcopy(data)

    async def set(
        self, path: str, data: dict[str, Any], merge: bool = False
    ) -> None:
        async with self._lock:
            self._write(path, data, merge)

    async def update(self, path: str, data: dict[str, Any]) -> None:
        async with self._lock:
            self._update(path, data)

    async def increment(
        self,
        path: str,
        deltas: dict[str, int | float],
        extra: dict[str, Any] | None = None,
    ) -> None:
        data: dict[str, Any] = {
            field: Increment(delta) for field, delta in deltas.items()
        }
        if extra:
            data.update(extra)
        async with self._lock:
            self._write(path, data, merge=True)

    async def transact(
        self, mutator: Callable[[StoreTransaction], Awaitable[T]]
    ) -> T:
        async with self._tx_lock:
            for attempt in range(1, self.max_attempts + 1):
                tx = _MemoryTransaction(self)
                result = await mutator(tx)
                async with self._lock:
                    try:
                        self._commit(tx)
                        return result
                    except TransactionConflict:
                        self.conflicts += 1

                if attempt < self.max_attempts:
                    delay = random.uniform(0, self.base_delay * 2 ** (attempt - 1))
                    logger.debug(
                        f"[Store] Transaction conflict, retrying in {delay:.4f}s "
                        f"(attempt {attempt}/{self.max_attempts})"
                    )
                    await asyncio.sleep(delay)

        raise StoreError(
            f"Transaction aborted after {self.max_attempts} attempts"
        )

    def _commit(self, tx: _MemoryTransaction) -> None:
        for path, version in tx.reads.items():
            if self._docs.get(path, (0, None))[0] != version:
                raise TransactionConflict(path)

        # Validate before applying so a failed update leaves no partial writes
        existing = set(self._docs)
        for op, path, _, _ in tx.writes:
            if op == "set":
                existing.add(path)
            elif path not in existing:
                raise StoreError(f"No document to update: {path}")

        for op, path, data, merge in tx.writes:
            if op == "set":
                self._write(path, data, merge)
            else:
                self._update(path, data)

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    def collection(self, path: str) -> dict[str, dict[str, Any]]:
        """Return documents directly under a collection path, keyed by id."""
        prefix = path.rstrip("/") + "/"
        depth = prefix.count("/")
        return {
            doc.rsplit("/", 1)[1]: copy.deepcopy(data)
            for doc, (_, data) in self._docs.items()
            if doc.startswith(prefix) and doc.count("/") == depth
        }
