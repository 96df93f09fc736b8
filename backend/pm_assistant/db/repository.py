"""Tenant-scoped data access shared by every entity the assistant reads or writes.

Every query issued here filters on ``tenant_id``; the tenant table itself is
the only global entity and is never accessed through this class.
"""

from collections.abc import Sequence
from typing import Any, Generic, TypeVar

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pm_assistant.db.models import Base

ModelT = TypeVar("ModelT", bound=Base)


class TenantRepository(Generic[ModelT]):
    def __init__(self, session: AsyncSession, model: type[ModelT]) -> None:
        self.session = session
        self.model = model

    async def get_by_id(self, entity_id: str, tenant_id: str) -> ModelT | None:
        result = await self.session.execute(
            select(self.model).where(self.model.id == entity_id, self.model.tenant_id == tenant_id)
        )
        return result.scalar_one_or_none()

    async def get_all(self, tenant_id: str) -> Sequence[ModelT]:
        result = await self.session.execute(
            select(self.model)
            .where(self.model.tenant_id == tenant_id)
            .order_by(self.model.created_at, self.model.id)
        )
        return result.scalars().all()

    async def find(self, tenant_id: str, *criteria: Any, order_by: Sequence[Any] = (), limit: int | None = None) -> Sequence[ModelT]:
        stmt = select(self.model).where(self.model.tenant_id == tenant_id, *criteria)
        if order_by:
            stmt = stmt.order_by(*order_by)
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def exists(self, entity_id: str, tenant_id: str) -> bool:
        result = await self.session.execute(
            select(self.model.id).where(self.model.id == entity_id, self.model.tenant_id == tenant_id)
        )
        return result.first() is not None

    async def add(self, entity: ModelT) -> ModelT:
        self.session.add(entity)
        await self.session.commit()
        return entity

    async def update(self, entity: ModelT) -> ModelT:
        await self.session.merge(entity)
        await self.session.commit()
        return entity

    async def delete(self, entity: ModelT) -> None:
        await self.session.delete(entity)
        await self.session.commit()
