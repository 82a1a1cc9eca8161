"""
Table-Transfer Engine

Moves an order between tables. The transfer record and the order's table
pointer are written in the same transaction; neither survives without the
other.
"""

import logging
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from restaurant_pos.core.errors import ConflictError, NotFoundError, OrderStateError, ValidationError
from restaurant_pos.database import Database
from restaurant_pos.models import DiningTable, Order, OrderStatus, Staff, TableTransfer
from restaurant_pos.schemas import TableTransferCreate, TableTransferUpdate
from restaurant_pos.services.base import require_live

logger = logging.getLogger(__name__)


class TableTransferEngine:

    def __init__(self, db: Database):
        self.db = db

    async def _movable_order(self, session: AsyncSession, order_id: int) -> Order:
        order = (
            await session.execute(select(Order).where(Order.id == order_id).with_for_update())
        ).scalar_one_or_none()
        if order is None:
            raise NotFoundError("Order", order_id)
        if order.status == OrderStatus.VOID:
            raise OrderStateError(f"Order {order_id} is void and cannot change tables")
        return order

    async def _check_parties(self, session: AsyncSession, spec: TableTransferCreate) -> None:
        await require_live(session, DiningTable, spec.to_table_id, "Table")
        await require_live(session, Staff, spec.transferred_by, "Staff")

    async def _repoint_order(self, session: AsyncSession, order_id: int, table_id: int) -> None:
        """Point the order at its new table."""
        result = await session.execute(
            update(Order)
            .where(Order.id == order_id)
            .values(table_id=table_id)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise NotFoundError("Order", order_id)

    async def transfer(self, spec: TableTransferCreate) -> TableTransfer:
        """
        Move an order from one table to another.

        Raises:
            ValidationError: source and destination are the same table
            NotFoundError: order, destination table or staff member missing
            ConflictError: the order is seated at a table other than from_table_id
            OrderStateError: the order is void
        """
        if spec.from_table_id == spec.to_table_id:
            raise ValidationError("from_table_id and to_table_id must differ")

        async with self.db.transaction() as session:
            order = await self._movable_order(session, spec.order_id)
            if order.table_id is not None and order.table_id != spec.from_table_id:
                raise ConflictError(
                    f"Order {spec.order_id} is at table {order.table_id}, "
                    f"not table {spec.from_table_id}"
                )
            await self._check_parties(session, spec)

            record = TableTransfer(**spec.model_dump())
            session.add(record)
            await session.flush()

            await self._repoint_order(session, spec.order_id, spec.to_table_id)

        logger.info(
            f"Order #{spec.order_id} moved from table {spec.from_table_id} to "
            f"{spec.to_table_id} by staff {spec.transferred_by} (transfer #{record.id})"
        )
        return record

    async def update_transfer(self, transfer_id: int, spec: TableTransferUpdate) -> TableTransfer:
        """Correct a historical transfer and re-point its order to the new destination."""
        if spec.from_table_id == spec.to_table_id:
            raise ValidationError("from_table_id and to_table_id must differ")

        async with self.db.transaction() as session:
            record = await session.get(TableTransfer, transfer_id)
            if record is None:
                raise NotFoundError("Table transfer", transfer_id)

            await self._movable_order(session, spec.order_id)
            await self._check_parties(session, spec)

            for field, value in spec.model_dump().items():
                setattr(record, field, value)
            await session.flush()

            await self._repoint_order(session, spec.order_id, spec.to_table_id)

        logger.info(f"Table transfer #{transfer_id} corrected; order #{spec.order_id} at table {spec.to_table_id}")
        return record

    async def get_transfer(self, transfer_id: int) -> TableTransfer:
        async with self.db.transaction() as session:
            record = await session.get(TableTransfer, transfer_id)
            if record is None:
                raise NotFoundError("Table transfer", transfer_id)
            return record

    async def list_transfers(self, order_id: Optional[int] = None) -> list[TableTransfer]:
        stmt = select(TableTransfer)
        if order_id is not None:
            stmt = stmt.where(TableTransfer.order_id == order_id)

        async with self.db.transaction() as session:
            result = await session.execute(stmt.order_by(TableTransfer.transferred_at, TableTransfer.id))
            return list(result.scalars().all())

    async def delete_transfer(self, transfer_id: int) -> None:
        """Remove the record only; the order stays where it is."""
        async with self.db.transaction() as session:
            record = await session.get(TableTransfer, transfer_id)
            if record is None:
                raise NotFoundError("Table transfer", transfer_id)
            await session.delete(record)
        logger.info(f"Table transfer #{transfer_id} deleted")
