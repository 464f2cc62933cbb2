"""
Indexer Orchestrator.

Wires the chain client, the event decoders and the projectors together and
owns the process lifecycle:

    STARTING -> CONNECTING -> PARTIALLY_ACTIVE | FULLY_ACTIVE
             -> SHUTTING_DOWN -> STOPPED

A projector is started only when its contract address is configured. There
is no reconnect logic beyond the chain client's per-poll retries.
"""

import asyncio
import signal
from collections.abc import Callable
from enum import Enum
from typing import Any

from loguru import logger

from indexer.config.settings import Settings
from indexer.services.chain import ChainClient, NetworkInfo
from indexer.services.projectors import (
    BaseProjector,
    FarmProjector,
    LaunchpadProjector,
    LeaderboardProjector,
)
from indexer.store import AggregateStore


class IndexerState(str, Enum):
    """Orchestrator lifecycle states."""

    STARTING = "starting"
    CONNECTING = "connecting"
    PARTIALLY_ACTIVE = "partially_active"
    FULLY_ACTIVE = "fully_active"
    SHUTTING_DOWN = "shutting_down"
    STOPPED = "stopped"


class IndexerOrchestrator:
    """Owns the chain connection, projectors and shutdown."""

    def __init__(
        self,
        settings: Settings,
        chain: ChainClient,
        store: AggregateStore,
    ):
        """
        Initialize orchestrator.

        Args:
            settings: Indexer settings
            chain: Chain client
            store: Aggregate store shared by all projectors
        """
        self.settings = settings
        self.chain = chain
        self.store = store
        self.state = IndexerState.STARTING
        self.network: NetworkInfo | None = None
        self.projectors: dict[str, BaseProjector] = {}
        self._poll_task: asyncio.Task | None = None
        self._shutdown_event = asyncio.Event()

    def _set_state(self, state: IndexerState) -> None:
        logger.debug(f"[Indexer] State {self.state.value} -> {state.value}")
        self.state = state

    def _projector_factories(self) -> dict[str, Callable[[], BaseProjector]]:
        return {
            "launchpad": lambda: LaunchpadProjector(self.store),
            "farm": lambda: FarmProjector(
                self.store, exact_totals=self.settings.farm_exact_totals
            ),
            "leaderboard": lambda: LeaderboardProjector(self.store),
        }

    def _build_projectors(self) -> dict[str, BaseProjector]:
        factories = self._projector_factories()
        projectors: dict[str, BaseProjector] = {}

        for name, address in self.settings.contract_addresses().items():
            if not address:
                logger.warning(
                    f"[Indexer] {name.upper()}_ADDRESS not set, "
                    f"skipping {name} projector"
                )
                continue

            logger.info(f"[Indexer] {name.capitalize()}: {address}")
            projector = factories[name]()
            self.chain.subscribe(
                name, address, projector.topics, projector.handle_log
            )
            projectors[name] = projector

        return projectors

    async def start(self) -> None:
        """
        Connect, verify the network and start the configured projectors.

        Raises:
            ConnectivityError: If the initial network check fails
        """
        self._set_state(IndexerState.CONNECTING)
        self.network = await self.chain.get_network()
        logger.info(
            f"[Indexer] Connected to network: chainId {self.network.chain_id} "
            f"(head block {self.network.latest_block})"
        )

        self.projectors = self._build_projectors()
        if not self.projectors:
            logger.warning("[Indexer] No contract addresses configured")

        self._poll_task = asyncio.create_task(self.chain.run(), name="chain-poller")
        self._poll_task.add_done_callback(self._handle_poll_task_done)

        if len(self.projectors) == len(self._projector_factories()):
            self._set_state(IndexerState.FULLY_ACTIVE)
        else:
            self._set_state(IndexerState.PARTIALLY_ACTIVE)

        logger.info("[Indexer] Indexer is running. Press Ctrl+C to stop.")

    def _handle_poll_task_done(self, task: asyncio.Task) -> None:
        """Log errors from the polling task."""
        if task.cancelled():
            return
        exc = task.exception()
        if exc:
            logger.error(f"[Indexer] Chain polling task failed: {exc}")

    def install_signal_handlers(self) -> None:
        """Request shutdown on SIGINT/SIGTERM."""
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.request_shutdown, sig)
            except NotImplementedError:
                # Windows event loops; KeyboardInterrupt is handled in main
                logger.debug(f"[Indexer] Signal handler for {sig.name} unavailable")

    def request_shutdown(self, sig: signal.Signals | None = None) -> None:
        if sig is not None:
            logger.info(f"[Indexer] Received {sig.name}")
        self._shutdown_event.set()

    async def wait(self) -> None:
        """Block until shutdown is requested."""
        await self._shutdown_event.wait()

    async def shutdown(self) -> None:
        """
        Stop polling and close resources.

        In-flight handlers are cancelled, not awaited; a write in progress
        may be lost.
        """
        if self.state == IndexerState.STOPPED:
            return

        self._set_state(IndexerState.SHUTTING_DOWN)
        logger.info("[Indexer] Shutting down indexer...")

        self.chain.stop()
        if self._poll_task and not self._poll_task.done():
            self._poll_task.cancel()
            await asyncio.gather(self._poll_task, return_exceptions=True)

        for name, projector in self.projectors.items():
            cancelled = projector.cancel_in_flight()
            if cancelled:
                logger.warning(
                    f"[Indexer] Abandoned {cancelled} in-flight {name} handlers"
                )

        self.chain.close()
        try:
            await self.store.close()
        except Exception as e:
            logger.warning(f"[Indexer] Error closing store: {e}")

        self._set_state(IndexerState.STOPPED)

    def status(self) -> dict[str, Any]:
        """Health snapshot of the indexer."""
        return {
            "state": self.state.value,
            "chain_id": self.network.chain_id if self.network else None,
            "latest_block": self.chain.latest_block,
            "projectors": {
                name: projector.stats()
                for name, projector in self.projectors.items()
            },
            "subscriptions": {
                sub.name: {"next_block": sub.next_block, "delivered": sub.delivered}
                for sub in self.chain.subscriptions
            },
        }
