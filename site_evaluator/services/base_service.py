from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from site_evaluator.core.exceptions import AppError, ConcurrencyError, PersistenceError
from site_evaluator.utils.logging import get_logger

LOGGER = get_logger(__name__)


class BaseService:
    """Base class for application services.

    Provides a transactional unit of work with standardized error handling.
    Each unit of work opens its own session, commits on success and rolls
    back on failure.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        """Initialize the service.

        Args:
            session_factory: Factory for async database sessions
        """
        self.session_factory = session_factory
        self.logger = LOGGER

    @asynccontextmanager
    async def unit_of_work(self) -> AsyncIterator[AsyncSession]:
        """Open a session, yield it and commit when the block succeeds.

        Raises:
            ConcurrencyError: If an optimistic version check failed
            PersistenceError: If any other database error occurred
        """
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()

            except AppError:
                await session.rollback()
                raise

            except StaleDataError as e:
                await session.rollback()
                self.logger.warning(
                    "Concurrent modification detected",
                    extra={"service": self.__class__.__name__, "error": str(e)},
                )
                raise ConcurrencyError("Record was modified concurrently", original_error=e)

            except SQLAlchemyError as e:
                await session.rollback()
                self.logger.error(
                    f"Database operation failed: {str(e)}",
                    exc_info=True,
                    extra={"service": self.__class__.__name__},
                )
                raise PersistenceError(f"Database operation failed: {str(e)}", original_error=e)
