from sqlalchemy import Engine, create_engine
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import Session, sessionmaker


async def init_db(database_url: str) -> AsyncEngine:
    """Create and return an async SQLAlchemy engine for the API process."""
    engine = create_async_engine(
        database_url,
        pool_size=10,
        max_overflow=20,
        pool_pre_ping=True,
        echo=False,
    )
    return engine


def get_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create and return an async session factory bound to the given engine."""
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def close_db(engine: AsyncEngine) -> None:
    """Dispose of the async engine and release all connections."""
    await engine.dispose()


def init_sync_db(database_url: str, pool_size: int = 5) -> Engine:
    """Create a sync engine for Celery workers.

    Workers are sync processes, so they get their own blocking engine sized
    to the worker concurrency instead of sharing the API's async pool.
    """
    return create_engine(
        database_url,
        pool_size=pool_size,
        max_overflow=pool_size,
        pool_pre_ping=True,
        echo=False,
    )


def get_sync_session_factory(engine: Engine) -> sessionmaker[Session]:
    """Create and return a sync session factory bound to the given engine."""
    return sessionmaker(engine, class_=Session, expire_on_commit=False)
