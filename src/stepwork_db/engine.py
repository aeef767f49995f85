"""Process-wide async engine and session factory for walk sessions.

Both are built on first use from :class:`DatabaseSettings` and shared by
every request.  The server's lifespan calls ``dispose_engine()`` on
shutdown.
"""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from stepwork_db.config import ASYNC_DRIVER, DatabaseSettings

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def build_engine(settings: DatabaseSettings) -> AsyncEngine:
    """Create an async engine for ``settings`` without caching it."""
    return create_async_engine(
        settings.url_for(ASYNC_DRIVER),
        echo=settings.echo,
        pool_size=settings.pool_size,
        max_overflow=settings.max_overflow,
        pool_recycle=settings.pool_recycle,
        # Detect connections dropped while idle
        pool_pre_ping=True,
    )


def get_engine() -> AsyncEngine:
    """Return the shared async engine, creating it on first call."""
    global _engine
    if _engine is None:
        _engine = build_engine(DatabaseSettings.from_env())
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Return the shared session factory.

    ``expire_on_commit`` is off so rows returned by the engine stay
    readable after ``get_db`` commits.
    """
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(
            bind=get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _session_factory


async def dispose_engine() -> None:
    """Close the pool and forget the shared engine and factory."""
    global _engine, _session_factory
    if _engine is None:
        return
    await _engine.dispose()
    _engine = None
    _session_factory = None
