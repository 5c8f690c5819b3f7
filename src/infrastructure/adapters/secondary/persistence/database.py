import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from src.configuration.config import Settings

logger = logging.getLogger(__name__)


def build_engine(settings: Settings) -> AsyncEngine:
    """Create an async engine for the configured database URL.

    Pool settings only apply to PostgreSQL; SQLite (used by tests and local
    runs) keeps SQLAlchemy's default pool.
    """
    url = settings.sqlalchemy_url
    kwargs: dict[str, Any] = {"echo": settings.log_level.upper() == "DEBUG"}
    if url.startswith("postgresql"):
        # pool_recycle: Recycle connections after this many seconds (prevents stale connections)
        # pool_pre_ping: Test connections before using them (detects stale connections)
        kwargs.update(
            pool_size=settings.postgres_pool_size,
            max_overflow=settings.postgres_max_overflow,
            pool_recycle=settings.postgres_pool_recycle,
            pool_pre_ping=settings.postgres_pool_pre_ping,
        )
    return create_async_engine(url, **kwargs)


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


async def initialize_database(engine: AsyncEngine) -> None:
    """Create all conversation tables that do not exist yet."""
    # Models must be imported before create_all is called
    import src.infrastructure.adapters.secondary.persistence.conversation_models  # noqa: F401
    from src.infrastructure.adapters.secondary.persistence.models import Base

    logger.info("Initializing database schema...")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database schema initialized")
