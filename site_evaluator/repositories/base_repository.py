from typing import Any, Generic, List, Optional, Type, TypeVar
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from site_evaluator.utils.logging import get_logger

# Define a generic type for SQLAlchemy models
ModelType = TypeVar("ModelType")

LOGGER = get_logger(__name__)


class BaseRepository(Generic[ModelType]):
    """Common queries shared by the location, job and report repositories.

    Repositories only flush; the calling service owns the transaction and
    decides when to commit.
    """

    def __init__(self, session: AsyncSession, model: Type[ModelType]):
        self.session = session
        self.model = model
        self.logger = LOGGER

    async def get_by_id(self, id: UUID) -> Optional[ModelType]:
        try:
            result = await self.session.execute(select(self.model).where(self.model.id == id))
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            self.logger.error(
                f"Error loading {self.model.__name__} {id}: {str(e)}",
                exc_info=True
            )
            raise

    async def find(self, *criteria: Any, order_by: Any = None, limit: Optional[int] = None) -> List[ModelType]:
        """Records matching every criterion.

        Args:
            *criteria: SQLAlchemy boolean expressions combined with AND
            order_by: Ordering expression or a list of them
            limit: Maximum number of records

        Returns:
            Matching records
        """
        query = select(self.model)
        if criteria:
            query = query.where(*criteria)
        if order_by is not None:
            orderings = order_by if isinstance(order_by, (list, tuple)) else [order_by]
            query = query.order_by(*orderings)
        if limit is not None:
            query = query.limit(limit)

        try:
            result = await self.session.execute(query)
        except SQLAlchemyError as e:
            self.logger.error(
                f"Error querying {self.model.__name__}: {str(e)}",
                exc_info=True
            )
            raise
        return list(result.scalars().all())

    async def create(self, **kwargs) -> ModelType:
        """Add a new record and flush so generated defaults are populated."""
        instance = self.model(**kwargs)
        self.session.add(instance)
        try:
            await self.session.flush()
        except SQLAlchemyError as e:
            # Unique violations surface here and are handled by the caller
            self.logger.warning(
                f"Could not insert {self.model.__name__}: {str(e)}",
                extra={"model": self.model.__name__},
            )
            raise
        return instance

    async def count(self, *criteria: Any) -> int:
        query = select(func.count()).select_from(self.model)
        if criteria:
            query = query.where(*criteria)
        result = await self.session.execute(query)
        return result.scalar_one()
