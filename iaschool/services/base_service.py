# iaschool/services/base_service.py
"""Base service with common tenant-scoped CRUD operations."""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from typing import Type, Any, Dict, Optional, TypeVar, Generic

from ..core.exceptions import NotFoundError

# Define generic type
T = TypeVar('T')


class BaseService(Generic[T]):
    resource_name: str = None

    def __init__(self, model: Type[T], db: AsyncSession):
        self.model = model
        self.db = db

    @property
    def _resource(self) -> str:
        return self.resource_name or self.model.__name__

    def _scoped(self, stmt, school_id: Any = None, include_deleted: bool = False):
        if school_id is not None and hasattr(self.model, 'school_id'):
            stmt = stmt.where(self.model.school_id == school_id)
        if hasattr(self.model, 'is_deleted') and not include_deleted:
            stmt = stmt.where(self.model.is_deleted == False)
        return stmt

    async def get(self, id: Any, school_id: Any = None) -> Optional[T]:
        stmt = self._scoped(select(self.model).where(self.model.id == id), school_id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_or_404(self, id: Any, school_id: Any = None) -> T:
        obj = await self.get(id, school_id)
        if not obj:
            raise NotFoundError(self._resource, id)
        return obj

    async def get_paginated(
        self,
        school_id: Any = None,
        page: int = 1,
        size: int = 20,
        order_by: str = None,
        sort: str = "asc",
        **filters
    ):
        """Get paginated results with tenant and soft delete filtering"""
        offset = (page - 1) * size

        stmt = self._scoped(select(self.model), school_id)
        count_stmt = self._scoped(select(func.count()).select_from(self.model), school_id)

        for key, value in filters.items():
            if hasattr(self.model, key) and value is not None:
                stmt = stmt.where(getattr(self.model, key) == value)
                count_stmt = count_stmt.where(getattr(self.model, key) == value)

        total = (await self.db.execute(count_stmt)).scalar()

        if order_by and hasattr(self.model, order_by):
            order_field = getattr(self.model, order_by)
            stmt = stmt.order_by(order_field.desc() if sort.lower() == "desc" else order_field.asc())

        result = await self.db.execute(stmt.offset(offset).limit(size))
        items = result.scalars().all()

        return {
            "items": items,
            "total": total,
            "page": page,
            "size": size,
            "total_pages": (total + size - 1) // size,
            "has_next": page * size < total,
            "has_previous": page > 1,
        }

    async def create(self, obj_in: Dict) -> T:
        obj = self.model(**obj_in)
        self.db.add(obj)
        await self.db.commit()
        await self.db.refresh(obj)
        return obj

    async def update(self, id: Any, obj_in: Dict, school_id: Any = None) -> Optional[T]:
        obj = await self.get(id, school_id)
        if not obj:
            return None
        for key, value in obj_in.items():
            setattr(obj, key, value)
        await self.db.commit()
        await self.db.refresh(obj)
        return obj
