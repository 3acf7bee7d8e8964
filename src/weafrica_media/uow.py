"""Unit of Work pattern for the media worker.

Provides transaction management with automatic commit/rollback and access to repositories.
"""

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from weafrica_media.repositories.upload import UploadRepository

logger = structlog.get_logger()


class UnitOfWork:
    """Unit of Work pattern implementation.

    Manages database transactions and provides access to repositories.
    Use as async context manager for automatic commit/rollback.

    Example:
        async with await uow_factory() as uow:
            records = await uow.uploads.claim_processing(limit=3, worker_id="w1")
            # Automatically commits on successful exit
            # Automatically rolls back on exception
    """

    def __init__(self, session: AsyncSession, table_name: str = "uploads"):
        """Initialize UnitOfWork with database session.

        Args:
            session: SQLAlchemy async session for database operations
            table_name: Name of the uploads table
        """
        self.session = session
        self.uploads = UploadRepository(session, table_name=table_name)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Exit async context manager with automatic commit/rollback.

        The session is closed in both cases so its connection returns to the pool.

        Returns:
            False: Always re-raise exceptions after rollback
        """
        try:
            if exc_type is None:
                await self.session.commit()
                logger.debug("transaction.committed")
            else:
                await self.session.rollback()
                logger.debug("transaction.rolled_back", exc_type=exc_type.__name__)
        finally:
            await self.session.close()

        return False


def create_uow_factory(
    session_factory: async_sessionmaker[AsyncSession], table_name: str = "uploads"
):
    """Create a factory function that produces UnitOfWork instances.

    Args:
        session_factory: SQLAlchemy async session factory
        table_name: Name of the uploads table

    Returns:
        Callable that creates UnitOfWork instances from new sessions

    Example:
        session_factory = setup_db_session(db_url)
        uow_factory = create_uow_factory(session_factory, table_name="uploads")

        async with await uow_factory() as uow:
            await uow.uploads.mark_rejected(record, "Missing original file path.")
    """

    async def _create_uow():
        """Create a new UnitOfWork instance with a new session."""
        return UnitOfWork(session_factory(), table_name=table_name)

    return _create_uow
