"""
Indexer main entry point.

Connects to the chain node, starts the configured projectors and runs until
SIGINT/SIGTERM.

Exit codes:
    0 - graceful shutdown
    1 - initial network connectivity check failed, or fatal startup error
"""

import asyncio
import sys

from loguru import logger

from indexer.config.settings import settings
from indexer.initialization.logging import setup_logging
from indexer.initialization.shutdown import shutdown_handler
from indexer.services.chain import ChainClient
from indexer.services.health_server import start_health_server
from indexer.services.orchestrator import IndexerOrchestrator
from indexer.store import create_store
from indexer.utils.exceptions import is_fatal


async def main() -> int:
    """Initialize and run the indexer."""
    setup_logging(settings.log_level, settings.log_file)
    logger.info(f"RPC URL: {settings.rpc_url}")

    try:
        store = create_store(settings)
        chain = ChainClient(
            rpc_url=settings.rpc_url,
            poll_interval=settings.poll_interval,
            max_block_range=settings.max_block_range,
            start_block=settings.start_block,
        )
    except Exception as e:
        logger.exception(f"Fatal error: {e}")
        return 1

    orchestrator = IndexerOrchestrator(settings, chain, store)

    try:
        await orchestrator.start()
    except Exception as e:
        if is_fatal(e):
            logger.error(f"Failed to connect to RPC: {e}")
        else:
            logger.exception(f"Fatal error: {e}")
        await shutdown_handler(orchestrator)
        return 1

    orchestrator.install_signal_handlers()

    health_runner = None
    if settings.health_check_enabled:
        try:
            health_runner = await start_health_server(
                orchestrator, port=settings.health_check_port
            )
        except OSError as e:
            logger.warning(f"Failed to start health check server: {e}")

    try:
        await orchestrator.wait()
    finally:
        await shutdown_handler(orchestrator, health_runner)

    return 0


def run() -> None:
    """Console script entry point."""
    try:
        exit_code = asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Indexer stopped by user (KeyboardInterrupt)")
        exit_code = 0
    sys.exit(exit_code)


if __name__ == "__main__":
    run()
