"""
Projector base class.

A projector owns a set of contract events and the aggregate documents derived
from them. Each incoming log is decoded and handled in its own asyncio task;
failures are logged at the handler boundary and never reach the chain client.
"""

import asyncio
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any

from loguru import logger

from indexer.services.decoder import ContractKind, DecodedEvent, EventDecoder
from indexer.store import AggregateStore
from indexer.utils.exceptions import DecodeError, must_log

EventHandler = Callable[[DecodedEvent], Awaitable[None]]
Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(UTC)


class BaseProjector:
    """Decode, dispatch and error boundary shared by all projectors."""

    name = "projector"
    kind: ContractKind
    log_prefix = "Projector"

    def __init__(
        self,
        store: AggregateStore,
        decoder: EventDecoder | None = None,
        clock: Clock | None = None,
    ):
        """
        Initialize projector.

        Args:
            store: Aggregate store
            decoder: Event decoder (default: decoder for ``kind``)
            clock: Current-time provider
        """
        self.store = store
        self.decoder = decoder or EventDecoder(self.kind)
        self.clock = clock or utc_now
        self._tasks: set[asyncio.Task] = set()
        self.processed = 0
        self.failed = 0
        self.dropped = 0

    @property
    def handlers(self) -> dict[str, EventHandler]:
        """Event name -> handler coroutine."""
        raise NotImplementedError

    @property
    def topics(self) -> list[str]:
        """topic0 values this projector subscribes to."""
        return [self.decoder.topic_for(name) for name in self.handlers]

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    def handle_log(self, raw_log: dict[str, Any]) -> asyncio.Task | None:
        """
        Decode a raw log and schedule its handler.

        Decode failures are logged and the log is dropped.

        Args:
            raw_log: Raw log from the chain client

        Returns:
            The scheduled task, or None if the log was dropped
        """
        try:
            event = self.decoder.decode(raw_log)
        except DecodeError as e:
            self.dropped += 1
            logger.warning(f"[{self.log_prefix}] Dropping log: {e}")
            return None

        task = asyncio.create_task(
            self.process(event), name=f"{self.name}:{event.name}:{event.event_id}"
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def process(self, event: DecodedEvent) -> bool:
        """
        Run the handler for a decoded event.

        Returns:
            True if the event was persisted, False if it failed or is unhandled
        """
        handler = self.handlers.get(event.name)
        if handler is None:
            logger.debug(f"[{self.log_prefix}] No handler for {event.name}")
            return False

        try:
            await handler(event)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.failed += 1
            message = (
                f"[{self.log_prefix}] Error saving {event.name}: {e} "
                f"(tx={event.tx_hash}, block={event.block_number}, "
                f"args={self._describe(event)})"
            )
            if must_log(e):
                logger.error(message)
            else:
                logger.exception(message)
            return False

        self.processed += 1
        return True

    @staticmethod
    def _describe(event: DecodedEvent) -> dict[str, str]:
        return {key: str(value) for key, value in event.args.items()}

    async def drain(self) -> None:
        """Wait for all in-flight handlers to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def cancel_in_flight(self) -> int:
        """
        Cancel in-flight handlers without waiting for them.

        Returns:
            Number of cancelled tasks
        """
        tasks = [t for t in self._tasks if not t.done()]
        for task in tasks:
            task.cancel()
        return len(tasks)

    def stats(self) -> dict[str, int]:
        return {
            "processed": self.processed,
            "failed": self.failed,
            "dropped": self.dropped,
            "in_flight": self.in_flight,
        }
