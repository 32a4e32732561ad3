"""SQLAlchemy async engine and session factory construction.

Nothing here is a module-level global: the API and worker processes build
one engine at startup (see ``app.resources``) and pass the session factory
to the components that need it.
"""

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from app.config import Settings


def create_db_engine(settings: Settings) -> AsyncEngine:
    """Create and configure async SQLAlchemy engine.

    Returns:
        Async SQLAlchemy engine instance.
    """
    kwargs = dict(echo=settings.SQLALCHEMY_ECHO)
    if not settings.is_sqlite:
        kwargs.update(
            pool_pre_ping=True,
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
        )
    return create_async_engine(settings.DATABASE_URL, **kwargs)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    """Create async session factory.

    Args:
        engine: SQLAlchemy async engine instance.

    Returns:
        Async sessionmaker instance.
    """
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def init_db(engine: AsyncEngine) -> None:
    """Create the flows and runs tables if they do not exist yet."""
    from db.base import Base
    import db.models  # noqa: F401 registers models

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
