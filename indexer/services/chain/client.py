"""
Chain Client.

Long-lived connection to an EVM JSON-RPC node. Resolves network identity and
delivers contract event logs to subscribers by polling ``eth_getLogs`` over
consecutive block ranges.

Each subscription keeps its own block cursor; the cursor only advances after
a range was fetched, so every log is delivered exactly once per subscription
lifetime. Restarts begin from ``start_block`` (or the chain head), there is no
persisted checkpoint.
"""

import asyncio
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any

from loguru import logger
from web3 import Web3
from web3.exceptions import Web3Exception

from indexer.config.constants import (
    BLOCKCHAIN_LONG_TIMEOUT,
    BLOCKCHAIN_RPC_TIMEOUT,
    BLOCKCHAIN_TIMEOUT,
)
from indexer.utils.exceptions import ChainError, ConnectivityError

from .rpc_wrapper import rpc_call_with_retry, run_sync

LogCallback = Callable[[dict[str, Any]], None]


@dataclass
class NetworkInfo:
    """Network identity reported by the node."""

    chain_id: int
    latest_block: int


@dataclass
class LogSubscription:
    """Log filter for one contract plus its delivery cursor."""

    name: str
    address: str
    topics: list[str]
    callback: LogCallback
    next_block: int | None = None
    delivered: int = 0


class ChainClient:
    """Polling log subscriber on top of a synchronous Web3 provider."""

    def __init__(
        self,
        rpc_url: str,
        poll_interval: float,
        max_block_range: int,
        start_block: int | None = None,
        w3: Web3 | None = None,
        retry_delay: float = 1.0,
    ):
        """
        Initialize chain client.

        Args:
            rpc_url: Node JSON-RPC endpoint
            poll_interval: Seconds between polls
            max_block_range: Maximum blocks per eth_getLogs request
            start_block: First block to deliver (default: head at first poll + 1)
            w3: Preconfigured Web3 instance (mainly for tests)
            retry_delay: Delay before the first RPC retry in seconds
        """
        self.rpc_url = rpc_url
        self.poll_interval = poll_interval
        self.max_block_range = max_block_range
        self.start_block = start_block
        self.retry_delay = retry_delay
        self.w3 = w3 or Web3(
            Web3.HTTPProvider(
                rpc_url, request_kwargs={"timeout": BLOCKCHAIN_RPC_TIMEOUT}
            )
        )
        self._executor = ThreadPoolExecutor(
            max_workers=4, thread_name_prefix="web3"
        )
        self._subscriptions: list[LogSubscription] = []
        self._stop_event = asyncio.Event()
        self.latest_block: int | None = None

    @property
    def subscriptions(self) -> list[LogSubscription]:
        return list(self._subscriptions)

    async def _call(
        self,
        func: Callable[[], Any],
        operation_name: str,
        timeout: float = BLOCKCHAIN_TIMEOUT,
    ) -> Any:
        return await rpc_call_with_retry(
            lambda: run_sync(
                func,
                executor=self._executor,
                timeout=timeout,
                operation_name=operation_name,
            ),
            operation_name=operation_name,
            base_delay=self.retry_delay,
        )

    async def get_network(self) -> NetworkInfo:
        """
        Resolve network identity.

        Returns:
            NetworkInfo with chain id and head block

        Raises:
            ConnectivityError: If the node is unreachable
        """
        try:
            chain_id = await self._call(lambda: self.w3.eth.chain_id, "eth_chainId")
            latest = await self._call(
                lambda: self.w3.eth.block_number, "eth_blockNumber"
            )
        except (ChainError, Web3Exception) as e:
            raise ConnectivityError(
                f"Failed to connect to RPC {self.rpc_url}: {e}"
            ) from e

        self.latest_block = latest
        return NetworkInfo(chain_id=int(chain_id), latest_block=int(latest))

    def subscribe(
        self,
        name: str,
        address: str,
        topics: list[str],
        callback: LogCallback,
    ) -> LogSubscription:
        """
        Register a log subscription.

        Args:
            name: Subscription name for logging
            address: Contract address
            topics: Accepted topic0 values
            callback: Called synchronously with each raw log

        Returns:
            The registered subscription
        """
        subscription = LogSubscription(
            name=name,
            address=Web3.to_checksum_address(address),
            topics=list(topics),
            callback=callback,
            next_block=self.start_block,
        )
        self._subscriptions.append(subscription)
        logger.info(
            f"[Chain] Subscribed {name} to {address} "
            f"({len(topics)} event types)"
        )
        return subscription

    async def poll_once(self) -> int:
        """
        Fetch and deliver logs for all subscriptions up to the chain head.

        Returns:
            Number of logs delivered
        """
        latest = await self._call(
            lambda: self.w3.eth.block_number, "eth_blockNumber"
        )
        self.latest_block = latest

        delivered = 0
        for subscription in self._subscriptions:
            try:
                delivered += await self._poll_subscription(subscription, latest)
            except (ChainError, Web3Exception) as e:
                logger.warning(
                    f"[Chain] {subscription.name} poll failed at block "
                    f"{subscription.next_block}: {e}"
                )
        return delivered

    async def _poll_subscription(
        self, subscription: LogSubscription, latest: int
    ) -> int:
        if subscription.next_block is None:
            subscription.next_block = latest + 1
            logger.info(
                f"[Chain] {subscription.name} listening from block "
                f"{subscription.next_block}"
            )
            return 0

        delivered = 0
        while subscription.next_block <= latest:
            from_block = subscription.next_block
            to_block = min(from_block + self.max_block_range - 1, latest)
            log_filter = {
                "address": subscription.address,
                "fromBlock": from_block,
                "toBlock": to_block,
                "topics": [subscription.topics],
            }

            logs = await self._call(
                lambda: self.w3.eth.get_logs(log_filter),
                f"eth_getLogs {subscription.name} {from_block}-{to_block}",
                timeout=BLOCKCHAIN_LONG_TIMEOUT,
            )

            for log in sorted(
                logs,
                key=lambda x: (x.get("blockNumber", 0), x.get("logIndex", 0)),
            ):
                try:
                    subscription.callback(log)
                except Exception as e:
                    logger.exception(
                        f"[Chain] {subscription.name} callback failed: {e}"
                    )
                delivered += 1

            subscription.delivered += len(logs)
            subscription.next_block = to_block + 1

        return delivered

    async def run(self) -> None:
        """Poll until ``stop()`` is called."""
        logger.info(
            f"[Chain] Polling every {self.poll_interval}s "
            f"({len(self._subscriptions)} subscriptions)"
        )
        while not self._stop_event.is_set():
            try:
                await self.poll_once()
            except (ChainError, Web3Exception) as e:
                logger.warning(f"[Chain] Poll failed: {e}")

            try:
                await asyncio.wait_for(
                    self._stop_event.wait(), timeout=self.poll_interval
                )
            except TimeoutError:
                pass

        logger.info("[Chain] Polling stopped")

    def stop(self) -> None:
        """Stop the polling loop."""
        self._stop_event.set()

    def close(self) -> None:
        """Release the RPC thread pool."""
        self._executor.shutdown(wait=False, cancel_futures=True)
