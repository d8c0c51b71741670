from collections.abc import AsyncIterator

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from app.core.config import settings

# Execution option read by the sqlite "begin" hook below. Ledger transactions set it to
# "IMMEDIATE" so writers queue on the busy timeout instead of failing on lock upgrade.
SQLITE_BEGIN_MODE = "sqlite_begin_mode"


def create_engine(url: str | None = None) -> AsyncEngine:
    url = url or settings.database_url
    if url.startswith("sqlite"):
        engine = create_async_engine(url, connect_args={"timeout": settings.sqlite_busy_timeout_s})
        _install_sqlite_hooks(engine)
        return engine
    return create_async_engine(url, pool_pre_ping=True)


def _install_sqlite_hooks(engine: AsyncEngine) -> None:
    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # take BEGIN away from the driver; emitted in _on_begin instead
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        mode = conn.get_execution_options().get(SQLITE_BEGIN_MODE, "")
        conn.exec_driver_sql(f"BEGIN {mode}".strip())


engine = create_engine()
SessionLocal = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


async def get_db() -> AsyncIterator[AsyncSession]:
    async with SessionLocal() as session:
        yield session
