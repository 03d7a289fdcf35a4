"""
Primary store collaborator.

A thin per-model wrapper around an AsyncSession. Every mutating call commits
on its own, so each operation is atomic for the row it touches and nothing
more: no transaction spans several calls.
"""

from typing import Any, Generic, Iterable, TypeVar

from sqlalchemy import delete, func
from sqlmodel import SQLModel, col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from app.models import get_utc_now

ModelT = TypeVar("ModelT", bound=SQLModel)


class Collection(Generic[ModelT]):
    def __init__(self, db: AsyncSession, model: type[ModelT]):
        self.db = db
        self.model = model

    def _where(self, query, clauses: Iterable[Any], equals: dict[str, Any]):
        for clause in clauses:
            query = query.where(clause)
        for name, value in equals.items():
            query = query.where(getattr(self.model, name) == value)
        return query

    def contains(self, field: str, text: str):
        """Case-insensitive substring clause on a free-text column."""
        return col(getattr(self.model, field)).ilike(f"%{text}%")

    async def find_by_id(self, entity_id: int) -> ModelT | None:
        return await self.db.get(self.model, entity_id)

    async def find(
        self, *clauses, order_by: Iterable[Any] = (), **equals
    ) -> list[ModelT]:
        query = self._where(select(self.model), clauses, equals)
        order_by = tuple(order_by)
        if order_by:
            query = query.order_by(*order_by)
        result = await self.db.exec(query)
        return list(result.all())

    async def insert(self, obj: ModelT) -> ModelT:
        self.db.add(obj)
        await self.db.commit()
        await self.db.refresh(obj)
        return obj

    async def insert_many(self, objs: list[ModelT]) -> list[ModelT]:
        self.db.add_all(objs)
        await self.db.commit()
        for obj in objs:
            await self.db.refresh(obj)
        return objs

    async def update_by_id(
        self, entity_id: int, values: dict[str, Any]
    ) -> ModelT | None:
        obj = await self.db.get(self.model, entity_id)
        if obj is None:
            return None
        obj.sqlmodel_update(values)
        if hasattr(obj, "updated_at"):
            obj.updated_at = get_utc_now()
        self.db.add(obj)
        await self.db.commit()
        await self.db.refresh(obj)
        return obj

    async def delete_by_id(self, entity_id: int) -> ModelT | None:
        obj = await self.db.get(self.model, entity_id)
        if obj is None:
            return None
        await self.db.delete(obj)
        await self.db.commit()
        return obj

    async def delete_where(self, *clauses, **equals) -> int:
        statement = self._where(delete(self.model), clauses, equals)
        result = await self.db.exec(statement)
        await self.db.commit()
        return result.rowcount

    async def count_where(self, *clauses, **equals) -> int:
        query = self._where(
            select(func.count()).select_from(self.model), clauses, equals
        )
        result = await self.db.exec(query)
        return result.one()
