"""
RPC Wrapper with Timeout and Retry Logic.

Provides centralized timeout and retry functionality for all blockchain RPC
calls. Synchronous Web3 calls are executed in a thread pool.
"""

import asyncio
from collections.abc import Callable
from concurrent.futures import Executor
from typing import Any, TypeVar

from loguru import logger

from indexer.config.constants import BLOCKCHAIN_MAX_RETRIES, BLOCKCHAIN_TIMEOUT
from indexer.utils.exceptions import ChainError, ChainTimeoutError

T = TypeVar("T")


async def with_timeout(
    coro: Any,
    timeout: float = BLOCKCHAIN_TIMEOUT,
    operation_name: str = "RPC call",
) -> Any:
    """
    Execute async coroutine with timeout.

    Args:
        coro: Coroutine to execute
        timeout: Timeout in seconds (default: BLOCKCHAIN_TIMEOUT)
        operation_name: Operation name for logging

    Returns:
        Result of the coroutine

    Raises:
        ChainTimeoutError: If operation times out
    """
    try:
        return await asyncio.wait_for(coro, timeout=timeout)
    except TimeoutError as e:
        error_msg = f"{operation_name} timed out after {timeout}s"
        logger.error(error_msg)
        raise ChainTimeoutError(error_msg) from e


async def run_sync(
    func: Callable[[], T],
    executor: Executor | None = None,
    timeout: float = BLOCKCHAIN_TIMEOUT,
    operation_name: str = "RPC call",
) -> T:
    """
    Run a synchronous Web3 call in an executor with a timeout.

    Args:
        func: Zero-argument callable performing the RPC call
        executor: Executor to use (default loop executor when None)
        timeout: Timeout in seconds
        operation_name: Operation name for logging

    Returns:
        Result of ``func``
    """
    loop = asyncio.get_running_loop()
    return await with_timeout(
        loop.run_in_executor(executor, func),
        timeout=timeout,
        operation_name=operation_name,
    )


async def rpc_call_with_retry(
    coro_factory: Callable[[], Any],
    max_retries: int = BLOCKCHAIN_MAX_RETRIES,
    operation_name: str = "RPC call",
    exponential_backoff: bool = True,
    base_delay: float = 1.0,
) -> Any:
    """
    Execute RPC call with retry logic.

    Args:
        coro_factory: Factory function that returns a fresh coroutine
        max_retries: Maximum number of attempts
        operation_name: Operation name for logging
        exponential_backoff: Use exponential backoff between retries
        base_delay: Delay before the first retry in seconds

    Returns:
        Result of the RPC call

    Raises:
        ChainTimeoutError: If the last attempt timed out
        ChainError: If all attempts fail with errors
    """
    last_error: Exception | None = None

    for attempt in range(max_retries):
        try:
            result = await coro_factory()

            if attempt > 0:
                logger.success(
                    f"{operation_name} succeeded on attempt {attempt + 1}"
                )

            return result

        except Exception as e:
            last_error = e

            if attempt < max_retries - 1:
                if exponential_backoff:
                    delay = base_delay * 2 ** attempt  # 1s, 2s, 4s...
                else:
                    delay = base_delay

                logger.warning(
                    f"{operation_name} failed on attempt "
                    f"{attempt + 1}/{max_retries}: {e}. Retrying in {delay}s..."
                )
                await asyncio.sleep(delay)
            else:
                logger.error(
                    f"{operation_name} failed after {max_retries} attempts: {e}"
                )

    if isinstance(last_error, ChainTimeoutError):
        raise last_error
    raise ChainError(
        f"{operation_name} failed after {max_retries} attempts: {last_error}"
    ) from last_error
