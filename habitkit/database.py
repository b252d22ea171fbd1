import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy import event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from habitkit.config import settings
from habitkit.exceptions import StorageError
from habitkit.models import Base

logger = logging.getLogger(__name__)


def create_engine(url: str | None = None, **kwargs) -> AsyncEngine:
    engine = create_async_engine(
        url or settings.DATABASE_URL,
        echo=kwargs.pop("echo", settings.DATABASE_ECHO),
        **kwargs,
    )
    if engine.dialect.name == "sqlite":
        # SQLite only honours ON DELETE CASCADE with foreign keys switched on
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
    return engine


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_models(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@asynccontextmanager
async def session_scope(
    session_factory: async_sessionmaker[AsyncSession],
    operation: str = "transaction",
) -> AsyncGenerator[AsyncSession, None]:
    """Yield a session that commits on success and rolls back on failure.

    SQLAlchemy errors are re-raised as StorageError so callers only deal
    with the engine's own exception types.
    """
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except SQLAlchemyError as exc:
            await session.rollback()
            logger.warning("Database %s failed: %s", operation, exc)
            raise StorageError(operation, str(exc)) from exc
        except Exception:
            await session.rollback()
            raise
