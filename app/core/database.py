"""
Double M Arena - Database Configuration

One async engine per process. Request handlers get their own session, which
commits when the handler returns and rolls back if it raises.
"""

from typing import Any, AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from app.core.config import Settings, get_settings
from app.models.base import Base


def create_engine_for(url: str, settings: Settings | None = None) -> AsyncEngine:
    """
    Build the async engine for `url`.

    Pool sizing only applies to server databases; SQLite files (used by the
    test suite) keep SQLAlchemy's default pool.
    """
    settings = settings or get_settings()
    options: dict[str, Any] = {"echo": settings.database_echo}
    if not url.startswith("sqlite"):
        options.update(
            pool_size=settings.database_pool_size,
            max_overflow=settings.database_max_overflow,
            pool_pre_ping=True,
        )
    return create_async_engine(url, **options)


def create_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # Loaded rows stay readable after commit; services return them to routes
    return async_sessionmaker(bind, expire_on_commit=False, autoflush=False)


engine = create_engine_for(str(get_settings().database_url))
AsyncSessionLocal = create_session_factory(engine)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield a request-scoped session, committing on success."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db(bind: AsyncEngine | None = None) -> None:
    """Create any missing tables and indexes."""
    # Register every model on the metadata before create_all
    import app.models  # noqa: F401

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    await engine.dispose()
