"""
Indexer Initialization - Shutdown Module.

Handles graceful shutdown of the indexer.
Stops the health server, chain polling and the aggregate store.
"""

from aiohttp import web
from loguru import logger

from indexer.services.health_server import stop_health_server
from indexer.services.orchestrator import IndexerOrchestrator


async def shutdown_handler(
    orchestrator: IndexerOrchestrator,
    health_runner: web.AppRunner | None = None,
) -> None:
    """Handle graceful shutdown."""
    logger.info("Graceful shutdown initiated...")

    if health_runner is not None:
        await stop_health_server(health_runner)

    try:
        await orchestrator.shutdown()
    except Exception as e:
        logger.warning(f"Error stopping indexer: {e}")

    logger.info("Graceful shutdown complete")
