"""Database session factory setup."""

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine


def setup_db_session(db_url: str, pool_size: int = 5) -> async_sessionmaker[AsyncSession]:
    """Create async database session factory.

    The worker handles one record at a time, so a handful of connections is
    plenty; the claim transaction and a record update never overlap.

    Args:
        db_url: PostgreSQL connection URL (postgresql+psycopg://...)
        pool_size: Maximum number of connections in the pool (default: 5)

    Returns:
        Async session factory for creating database sessions
    """
    engine = create_async_engine(
        db_url,
        pool_size=pool_size,
        max_overflow=0,
        pool_pre_ping=True,  # Supabase pooler drops idle connections
        echo=False,
    )

    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def close_db_session(session_factory: async_sessionmaker[AsyncSession]) -> None:
    """Dispose of the engine behind a session factory.

    One-shot runs call this before the event loop closes so pooled
    connections are released cleanly.
    """
    engine = session_factory.kw.get("bind")
    if engine is not None:
        await engine.dispose()
