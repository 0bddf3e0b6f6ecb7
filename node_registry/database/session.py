import logging
from typing import Optional

from sqlalchemy import text
from sqlalchemy.engine import URL
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from ..config import Settings
from .base import Base

logger = logging.getLogger("node-registry.database")


def create_engine(settings: Settings, url: Optional[URL] = None) -> AsyncEngine:
    """
    Build the async engine for the registry store.
    Pool sizing only applies to dialects that use a QueuePool.
    """
    url = url if url is not None else settings.database_url
    kwargs = {
        "echo": settings.DEBUG,
        "pool_pre_ping": True,  # Check connection liveness before checkout
    }
    if url.get_backend_name() != "sqlite":
        kwargs.update(
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_timeout=settings.DB_POOL_TIMEOUT,
        )
    return create_async_engine(url, **kwargs)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False
    )


async def ping(engine: AsyncEngine) -> None:
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))


async def ensure_database(settings: Settings) -> None:
    """
    Create the configured MySQL database if it does not exist yet.
    Other backends are expected to have the database provisioned already.
    """
    url = settings.database_url
    if url.get_backend_name() != "mysql" or not url.database:
        return

    server_engine = create_async_engine(settings.server_url, pool_pre_ping=True)
    try:
        async with server_engine.begin() as conn:
            # Identifier quoting comes from the dialect, the name is not a bind parameter
            quoted = server_engine.dialect.identifier_preparer.quote(url.database)
            await conn.execute(text(f"CREATE DATABASE IF NOT EXISTS {quoted}"))
        logger.info(f"Database {url.database} ready.")
    finally:
        await server_engine.dispose()


async def create_tables(engine: AsyncEngine) -> None:
    # Registers the model tables on Base.metadata
    from ..models import node  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
