"""
Aggregate store interface.

Document store abstraction used by the projectors. Documents are addressed by
slash-separated paths (``tokens/0xabc/trades/0x12-buy``). Concurrency safety
lives entirely in two primitives:

- ``increment``: atomic, commutative field increments (lock-free)
- ``transact``: read-modify-write with an optimistic-concurrency retry loop
  owned by the store implementation
"""

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

T = TypeVar("T")


class _ServerTimestamp:
    """Sentinel replaced by the store's server time at write."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"


SERVER_TIMESTAMP = _ServerTimestamp()


@dataclass(frozen=True)
class Increment:
    """Field transform adding ``value`` to the stored number (missing = 0)."""

    value: int | float


def doc_path(*parts: str) -> str:
    """Join path segments into a document path."""
    return "/".join(str(p) for p in parts)


class StoreTransaction(ABC):
    """
    Transaction handle passed to ``AggregateStore.transact`` mutators.

    All reads must happen before the first staged write.
    """

    @abstractmethod
    async def get(self, path: str) -> dict[str, Any] | None:
        """Read a document inside the transaction."""

    @abstractmethod
    def set(self, path: str, data: dict[str, Any], merge: bool = False) -> None:
        """Stage a create/overwrite (or merge) of a document."""

    @abstractmethod
    def update(self, path: str, data: dict[str, Any]) -> None:
        """Stage an update of an existing document."""


class AggregateStore(ABC):
    """Abstract document store with atomic increment and transactions."""

    @abstractmethod
    async def get(self, path: str) -> dict[str, Any] | None:
        """
        Read a document.

        Args:
            path: Document path

        Returns:
            Document data or None if it does not exist
        """

    @abstractmethod
    async def set(
        self, path: str, data: dict[str, Any], merge: bool = False
    ) -> None:
        """
        Upsert a document.

        Args:
            path: Document path
            data: Fields to write
            merge: Merge into existing fields instead of replacing the document
        """

    @abstractmethod
    async def update(self, path: str, data: dict[str, Any]) -> None:
        """
        Update fields of an existing document.

        Raises:
            StoreError: If the document does not exist or the write fails
        """

    @abstractmethod
    async def increment(
        self,
        path: str,
        deltas: dict[str, int | float],
        extra: dict[str, Any] | None = None,
    ) -> None:
        """
        Atomically increment numeric fields, creating the document if absent.

        Args:
            path: Document path
            deltas: Field name -> signed delta
            extra: Additional fields merged in the same write
        """

    @abstractmethod
    async def transact(
        self, mutator: Callable[[StoreTransaction], Awaitable[T]]
    ) -> T:
        """
        Run a read-modify-write transaction.

        The mutator may be invoked more than once when a concurrent writer
        touched a document it read; it must not have side effects outside
        the transaction handle.

        Returns:
            The mutator's return value from the committed attempt
        """

    async def close(self) -> None:
        """Release store resources."""
        return None
