from typing import Any, Generic, Type, TypeVar

from pydantic import BaseModel
from sqlalchemy import insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from credgate.models import Base

Model = TypeVar("Model", bound=Base)
CreateSchema = TypeVar("CreateSchema", bound=BaseModel)


class BaseRepository(Generic[Model, CreateSchema]):
    """
    Typed access to one mapped table through a request-scoped session.

    Args:
        session (AsyncSession): Session owned by the caller; transactions end
            in credgate.core.db.get_session unless auto_commit is requested.
        model (Type[Model]): Mapped class this repository reads and writes.
    """

    def __init__(self, session: AsyncSession, model: Type[Model]):
        self.session = session
        self.model = model

    def _column(self, name: str) -> Any:
        column = getattr(self.model, name, None)
        if column is None:
            raise ValueError(f"{self.model.__name__} has no column '{name}'")

        return column

    async def create_one(
        self, schema: CreateSchema, exclude_none: bool = True, auto_commit: bool = True
    ) -> Model:
        """
        Insert one row built from `schema` and return it as mapped by the database,
        server defaults (id, timestamps) included.

        Raises:
            sqlalchemy.exc.IntegrityError: When a unique constraint is violated.
        """
        stmt = (
            insert(self.model)
            .values(**schema.model_dump(exclude_none=exclude_none))
            .returning(self.model)
        )
        result = await self.session.execute(stmt)

        if auto_commit:
            await self.session.commit()

        return result.scalar_one()

    async def get_one_by(self, column_name: str, value: Any) -> Model | None:
        stmt = select(self.model).where(self._column(column_name) == value)
        result = await self.session.execute(stmt)

        return result.scalar_one_or_none()

    async def get_by_id(self, obj_id: int) -> Model | None:
        return await self.get_one_by("id", obj_id)
