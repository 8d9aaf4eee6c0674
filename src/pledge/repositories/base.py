"""Base repository with common CRUD operations.

Provides a generic async repository pattern for SQLAlchemy models, plus the
dialect-aware INSERT ... ON CONFLICT builder used by the idempotent writes.
"""

from typing import Any, Generic, Sequence, TypeVar

from sqlalchemy import func, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from pledge.models.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """Generic async repository with common CRUD operations.

    Example:
        repo = SubmissionRepository(session)
        submission = await repo.get_by_id(1)
        minted = await repo.get_by_filter(status="minted")
    """

    model: type[ModelType]

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with async session.

        @param session - SQLAlchemy async session
        """
        self.session = session

    async def get_by_id(self, id: Any) -> ModelType | None:
        """Get record by primary key.

        @param id - Primary key value
        @returns Model instance or None if not found
        """
        return await self.session.get(self.model, id)

    async def get_by_filter(
        self,
        *,
        skip: int = 0,
        limit: int = 100,
        order_by: Any | None = None,
        **filters: Any,
    ) -> Sequence[ModelType]:
        """Get records matching filter criteria.

        @param skip - Number of records to skip
        @param limit - Maximum records to return
        @param order_by - Column to order by
        @param filters - Key-value pairs for filtering (column=value)
        @returns List of matching model instances
        """
        stmt = select(self.model)
        for key, value in filters.items():
            if hasattr(self.model, key) and value is not None:
                stmt = stmt.where(getattr(self.model, key) == value)
        if order_by is not None:
            stmt = stmt.order_by(order_by)
        stmt = stmt.offset(skip).limit(limit)
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def get_one_by_filter(self, **filters: Any) -> ModelType | None:
        """Get single record matching filter criteria.

        @param filters - Key-value pairs for filtering
        @returns Model instance or None if not found
        """
        stmt = select(self.model)
        for key, value in filters.items():
            if hasattr(self.model, key) and value is not None:
                stmt = stmt.where(getattr(self.model, key) == value)
        stmt = stmt.limit(1)
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def create(self, obj_in: dict[str, Any] | ModelType) -> ModelType:
        """Create new record.

        @param obj_in - Dictionary or model instance with data
        @returns Created model instance
        """
        if isinstance(obj_in, dict):
            db_obj = self.model(**obj_in)
        else:
            db_obj = obj_in
        self.session.add(db_obj)
        await self.session.flush()
        await self.session.refresh(db_obj)
        return db_obj

    async def update_by_id(self, id: Any, values: dict[str, Any]) -> int:
        """Update one record in a single statement.

        @param id - Primary key of record to update
        @param values - Column values to set
        @returns Number of updated records (0 or 1)
        """
        stmt = update(self.model).where(self.model.id == id).values(**values)
        result = await self.session.execute(stmt)
        await self.session.flush()
        return result.rowcount

    async def count(self, **filters: Any) -> int:
        """Count records matching criteria.

        @param filters - Key-value pairs for filtering
        @returns Number of matching records
        """
        stmt = select(func.count()).select_from(self.model)
        for key, value in filters.items():
            if hasattr(self.model, key) and value is not None:
                stmt = stmt.where(getattr(self.model, key) == value)
        result = await self.session.execute(stmt)
        return result.scalar() or 0

    def _insert(self):
        """Build a dialect-specific INSERT that supports ON CONFLICT.

        @returns postgresql or sqlite Insert construct for the model
        """
        dialect = self.session.get_bind().dialect.name
        if dialect == "postgresql":
            return postgresql.insert(self.model)
        if dialect == "sqlite":
            return sqlite.insert(self.model)
        raise NotImplementedError(f"ON CONFLICT not supported for dialect {dialect}")
