"""
Health check server for indexer monitoring.

Provides HTTP endpoints reporting orchestrator state.
"""

import asyncio

from aiohttp import web
from loguru import logger

from indexer.services.orchestrator import IndexerOrchestrator, IndexerState

# Global orchestrator reference for health checks
_orchestrator: IndexerOrchestrator | None = None

ACTIVE_STATES = (IndexerState.PARTIALLY_ACTIVE, IndexerState.FULLY_ACTIVE)


def set_orchestrator(orchestrator: IndexerOrchestrator | None) -> None:
    """
    Set the orchestrator instance for health checks.

    Args:
        orchestrator: IndexerOrchestrator instance to monitor
    """
    global _orchestrator
    _orchestrator = orchestrator


async def health_handler(request: web.Request) -> web.Response:
    """
    Health check endpoint.

    Returns:
        JSON response with orchestrator status
    """
    if _orchestrator is None:
        return web.json_response(
            {
                "status": "unhealthy",
                "error": "Indexer not initialized",
            },
            status=503,
        )

    status = _orchestrator.status()
    healthy = _orchestrator.state in ACTIVE_STATES
    status["status"] = "healthy" if healthy else status["state"]
    return web.json_response(status, status=200 if healthy else 503)


async def readiness_handler(request: web.Request) -> web.Response:
    """
    Readiness check endpoint.

    Returns:
        JSON response indicating if the indexer is processing events
    """
    if _orchestrator is None or _orchestrator.state not in ACTIVE_STATES:
        return web.json_response(
            {
                "status": "not_ready",
                "ready": False,
            },
            status=503,
        )

    return web.json_response(
        {
            "status": "ready",
            "ready": True,
        }
    )


def create_app() -> web.Application:
    app = web.Application()
    app.router.add_get("/health", health_handler)
    app.router.add_get("/readiness", readiness_handler)
    return app


async def start_health_server(
    orchestrator: IndexerOrchestrator,
    host: str = "0.0.0.0",
    port: int = 8080,
) -> web.AppRunner:
    """
    Start health check server.

    Args:
        orchestrator: Orchestrator to report on
        host: Host to bind to
        port: Port to bind to

    Returns:
        AppRunner for cleanup
    """
    set_orchestrator(orchestrator)

    runner = web.AppRunner(create_app())
    await runner.setup()
    site = web.TCPSite(runner, host, port)
    await site.start()

    logger.info(f"Health check server started on {host}:{port}")
    return runner


async def stop_health_server(
    runner: web.AppRunner,
    timeout: int = 5,
) -> None:
    """
    Stop health check server gracefully.

    Args:
        runner: AppRunner to cleanup
        timeout: Maximum time to wait for cleanup in seconds
    """
    logger.info("Stopping health check server...")
    try:
        await asyncio.wait_for(runner.cleanup(), timeout=timeout)
        logger.info("Health check server stopped successfully")
    except TimeoutError:
        logger.warning(f"Health check server cleanup timed out after {timeout}s")
    except Exception as e:
        logger.error(f"Error stopping health check server: {e}")
    finally:
        set_orchestrator(None)
