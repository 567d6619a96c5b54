"""Process-wide state shared by the API handlers and the poller"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from ghd_database import setup_database
from ghd_database.session import create_engine_for_url, create_session_factory
from sqlalchemy.ext.asyncio import AsyncEngine

from ghd_backend.core.config import Settings, get_settings
from ghd_backend.core.events import EventBus
from ghd_backend.ingestion.github_client import GitHubClient, make_client_factory

logger = logging.getLogger(__name__)


@dataclass
class AppState:
    """
    The lock serializes credential access and transaction starts. Hold it
    around database steps only, never across a GitHub call.
    """
    settings: Settings
    engine: AsyncEngine
    session_factory: Callable
    events: EventBus
    client_factory: Callable[[str], GitHubClient]
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)


async def build_app_state(
    settings: Settings | None = None,
    client_factory: Callable[[str], GitHubClient] | None = None,
) -> AppState:
    """Opens the database and brings its schema up to date. Setup errors propagate."""
    settings = settings or get_settings()
    engine = create_engine_for_url(settings.database_url)
    version = await setup_database(engine)
    logger.info(
        f"Database ready at schema version {version}",
        extra={"schema_version": version, "environment": settings.environment},
    )
    return AppState(
        settings=settings,
        engine=engine,
        session_factory=create_session_factory(engine),
        events=EventBus(),
        client_factory=client_factory or make_client_factory(settings),
    )
