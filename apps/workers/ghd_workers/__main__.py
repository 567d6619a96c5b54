"""
Single entrypoint for the ghd backend process.

Usage:
    python -m ghd_workers

Runs the local API server and the background poller side by side until
SIGTERM or SIGINT. Exits with status 1 when the database cannot be set up.
"""

import asyncio
import logging
import signal
import sys

import uvicorn
from ghd_database.schema import DatabaseSetupError

from ghd_backend.core.config import get_settings
from ghd_backend.core.state import AppState, build_app_state
from ghd_backend.main import create_app
from ghd_backend.services.github_service import GithubService
from ghd_workers.jobs.poller_job import Poller
from ghd_workers.logging_config import setup_logging


class GracefulShutdown:
    """Stops the poller between ticks and asks uvicorn to exit."""

    def __init__(self):
        self._shutdown_event = asyncio.Event()
        self._server: uvicorn.Server | None = None

    def register_server(self, server: uvicorn.Server) -> None:
        self._server = server

    def signal_handler(self, signum: int) -> None:
        logger = logging.getLogger(__name__)
        logger.info(f"Received signal {signum}, initiating graceful shutdown...")
        self._shutdown_event.set()
        if self._server:
            self._server.should_exit = True

    @property
    def shutdown_event(self) -> asyncio.Event:
        return self._shutdown_event


async def run_api_server(state: AppState, service: GithubService, shutdown: GracefulShutdown) -> None:
    config = uvicorn.Config(
        app=create_app(state, service),
        host=state.settings.api_host,
        port=state.settings.api_port,
        log_level="warning",
    )
    server = uvicorn.Server(config)
    # uvicorn would otherwise replace our SIGTERM/SIGINT handlers
    server.install_signal_handlers = lambda: None
    shutdown.register_server(server)

    logger = logging.getLogger(__name__)
    logger.info(f"API server starting on {state.settings.api_host}:{state.settings.api_port}")

    await server.serve()
    shutdown.shutdown_event.set()


async def main() -> None:
    settings = get_settings()
    run_id = setup_logging(settings.log_level)
    logger = logging.getLogger(__name__)
    logger.info("Starting ghd", extra={"run_id": run_id, "environment": settings.environment})

    try:
        state = await build_app_state(settings)
    except DatabaseSetupError as e:
        logger.critical(f"Database setup failed: {e}", extra={"error_type": type(e).__name__})
        sys.exit(1)

    service = GithubService(state)
    poller = Poller(state, service.engine)
    shutdown = GracefulShutdown()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, lambda s=sig: shutdown.signal_handler(s))

    try:
        async with asyncio.TaskGroup() as tg:
            tg.create_task(run_api_server(state, service, shutdown))
            tg.create_task(poller.run(shutdown.shutdown_event))
        logger.info("ghd stopped", extra={"iterations": poller.iteration})

    except* Exception as eg:
        for exc in eg.exceptions:
            logger.exception(f"ghd failed: {exc}")
        sys.exit(1)

    finally:
        await state.engine.dispose()


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
