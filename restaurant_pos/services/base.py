"""
Shared service helpers.

``require_live`` is the single read predicate for tombstoned rows: every
lookup that must ignore soft-deleted records goes through it (or through
``live()``), so "deleted" means the same thing on every read path.
"""

import logging
from typing import Any, Optional, Sequence

from sqlalchemy import Select, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from restaurant_pos.core.errors import ConflictError, NotFoundError
from restaurant_pos.database import Base, Database

logger = logging.getLogger(__name__)


def live(model: type[Base]) -> Select:
    """SELECT of a model restricted to rows that are not tombstoned."""
    stmt = select(model)
    if hasattr(model, "is_deleted"):
        stmt = stmt.where(model.is_deleted.is_(False))
    return stmt


async def require_live(
    session: AsyncSession,
    model: type[Base],
    record_id: Any,
    label: Optional[str] = None,
    for_update: bool = False,
) -> Any:
    """Fetch one live row by primary key or raise NotFoundError."""
    stmt = live(model).where(model.id == record_id)
    if for_update:
        stmt = stmt.with_for_update()
    record = (await session.execute(stmt)).scalar_one_or_none()
    if record is None:
        raise NotFoundError(label or model.__name__, record_id)
    return record


def apply_changes(record: Base, changes: dict[str, Any]) -> None:
    for field, value in changes.items():
        setattr(record, field, value)


class CrudService:
    """
    Create/read/update/soft-delete over one table.

    Used for the plain collaborator records (outlets, tables, staff,
    customers, categories). ``references`` maps a foreign-key field to the
    model it must point at, checked before every write.
    """

    def __init__(
        self,
        db: Database,
        model: type[Base],
        label: str,
        references: Optional[dict[str, type[Base]]] = None,
        order_by: Optional[Sequence[Any]] = None,
    ):
        self.db = db
        self.model = model
        self.label = label
        self.references = references or {}
        self.order_by = order_by if order_by is not None else [model.id]

    @property
    def soft_delete(self) -> bool:
        return hasattr(self.model, "is_deleted")

    async def _check_references(self, session: AsyncSession, data: dict[str, Any]) -> None:
        for field, target in self.references.items():
            if data.get(field) is not None:
                await require_live(session, target, data[field])

    async def _flush(self, session: AsyncSession) -> None:
        try:
            await session.flush()
        except IntegrityError as exc:
            raise ConflictError(f"{self.label} conflicts with an existing record") from exc

    async def create(self, data: dict[str, Any]) -> Any:
        async with self.db.transaction() as session:
            await self._check_references(session, data)
            record = self.model(**data)
            session.add(record)
            await self._flush(session)
        logger.info(f"{self.label} #{record.id} created")
        return record

    async def list(self, **filters: Any) -> list[Any]:
        stmt = live(self.model)
        for field, value in filters.items():
            if value is not None:
                stmt = stmt.where(getattr(self.model, field) == value)
        async with self.db.transaction() as session:
            result = await session.execute(stmt.order_by(*self.order_by))
            return list(result.scalars().all())

    async def get(self, record_id: int) -> Any:
        async with self.db.transaction() as session:
            return await require_live(session, self.model, record_id, self.label)

    async def update(self, record_id: int, changes: dict[str, Any]) -> Any:
        async with self.db.transaction() as session:
            record = await require_live(session, self.model, record_id, self.label)
            await self._check_references(session, changes)
            apply_changes(record, changes)
            await self._flush(session)
        logger.info(f"{self.label} #{record_id} updated: {sorted(changes)}")
        return record

    async def delete(self, record_id: int) -> None:
        async with self.db.transaction() as session:
            record = await require_live(session, self.model, record_id, self.label)
            if self.soft_delete:
                record.is_deleted = True
            else:
                await session.delete(record)
        logger.info(f"{self.label} #{record_id} deleted")
