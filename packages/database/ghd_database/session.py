from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel.ext.asyncio.session import AsyncSession

DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///ghd.sqlite3"


def async_url(database_url: str) -> str:
    """Plain sqlite:// URLs are routed through the aiosqlite driver."""
    if not database_url:
        return DEFAULT_DATABASE_URL
    if database_url.startswith("sqlite://"):
        return database_url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    return database_url


def configure_sqlite_engine(engine: AsyncEngine) -> AsyncEngine:
    """
    Enables foreign keys and hands transaction control to SQLAlchemy.

    pysqlite only opens a transaction implicitly before DML, so migrations
    (ALTER TABLE) would otherwise autocommit statement by statement.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


def create_engine_for_url(database_url: str) -> AsyncEngine:
    engine = create_async_engine(
        async_url(database_url),
        echo=False,
        connect_args={"timeout": 30},
    )
    return configure_sqlite_engine(engine)


def create_session_factory(engine: AsyncEngine):
    return sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
