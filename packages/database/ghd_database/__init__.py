"""ghd_database - Local cache models, session management and schema migrations for ghd."""

from ghd_database.base import Base
from ghd_database.schema import SCHEMA_VERSION, setup_database
from ghd_database.session import create_engine_for_url, create_session_factory

__all__ = [
    "create_engine_for_url",
    "create_session_factory",
    "Base",
    "SCHEMA_VERSION",
    "setup_database",
]
