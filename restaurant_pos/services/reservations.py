"""
Reservations with double-booking protection.

The explicit check gives a clean error in the common case; the
``uq_reservation_table_time`` constraint catches the concurrent case the
check cannot see. Both surface as DoubleBookingError.
"""

import logging
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from restaurant_pos.core.errors import DoubleBookingError, NotFoundError, ValidationError
from restaurant_pos.database import Database
from restaurant_pos.models import Customer, DiningTable, Reservation
from restaurant_pos.schemas import ReservationCreate, ReservationUpdate
from restaurant_pos.services.base import require_live

logger = logging.getLogger(__name__)


SORT_COLUMNS = {
    "reservation_time": Reservation.reservation_time,
    "status": Reservation.status,
    "table": DiningTable.table_number,
    "customer_name": Customer.name,
}


class ReservationService:

    def __init__(self, db: Database):
        self.db = db

    async def _ensure_slot_free(
        self,
        session: AsyncSession,
        table_id: int,
        reservation_time: datetime,
        exclude_id: Optional[int] = None,
    ) -> None:
        stmt = select(Reservation.id).where(
            Reservation.table_id == table_id,
            Reservation.reservation_time == reservation_time,
        )
        if exclude_id is not None:
            stmt = stmt.where(Reservation.id != exclude_id)
        if (await session.execute(stmt)).first() is not None:
            logger.warning(f"Double booking rejected: table {table_id} at {reservation_time}")
            raise DoubleBookingError(table_id, reservation_time)

    async def _flush(self, session: AsyncSession, table_id: int, reservation_time: datetime) -> None:
        try:
            await session.flush()
        except IntegrityError as exc:
            raise DoubleBookingError(table_id, reservation_time) from exc

    async def create(self, spec: ReservationCreate) -> Reservation:
        async with self.db.transaction() as session:
            await require_live(session, Customer, spec.customer_id, "Customer")
            await require_live(session, DiningTable, spec.table_id, "Table")
            await self._ensure_slot_free(session, spec.table_id, spec.reservation_time)

            reservation = Reservation(**spec.model_dump())
            session.add(reservation)
            await self._flush(session, spec.table_id, spec.reservation_time)

        logger.info(
            f"Reservation #{reservation.id}: table {spec.table_id} at "
            f"{spec.reservation_time} for {spec.pax}"
        )
        return reservation

    async def update(self, reservation_id: int, spec: ReservationUpdate) -> Reservation:
        async with self.db.transaction() as session:
            reservation = await session.get(Reservation, reservation_id)
            if reservation is None:
                raise NotFoundError("Reservation", reservation_id)
            await require_live(session, Customer, spec.customer_id, "Customer")
            await require_live(session, DiningTable, spec.table_id, "Table")
            await self._ensure_slot_free(
                session, spec.table_id, spec.reservation_time, exclude_id=reservation_id
            )

            for field, value in spec.model_dump().items():
                setattr(reservation, field, value)
            await self._flush(session, spec.table_id, spec.reservation_time)

        logger.info(f"Reservation #{reservation_id} updated")
        return reservation

    async def get(self, reservation_id: int) -> Reservation:
        async with self.db.transaction() as session:
            reservation = await session.get(Reservation, reservation_id)
            if reservation is None:
                raise NotFoundError("Reservation", reservation_id)
            return reservation

    async def list(self, sort_by: str = "reservation_time", descending: bool = False) -> list[dict[str, Any]]:
        """Reservations joined with customer name and table number."""
        if sort_by not in SORT_COLUMNS:
            raise ValidationError(f"sort_by must be one of {sorted(SORT_COLUMNS)}")
        column = SORT_COLUMNS[sort_by]

        stmt = (
            select(Reservation, Customer.name, DiningTable.table_number)
            .outerjoin(Customer, Customer.id == Reservation.customer_id)
            .outerjoin(DiningTable, DiningTable.id == Reservation.table_id)
            .order_by(column.desc() if descending else column.asc(), Reservation.id)
        )
        async with self.db.transaction() as session:
            rows = (await session.execute(stmt)).all()

        return [
            {
                "id": reservation.id,
                "customer_id": reservation.customer_id,
                "customer_name": customer_name,
                "reservation_time": reservation.reservation_time,
                "pax": reservation.pax,
                "table_id": reservation.table_id,
                "table_number": table_number,
                "status": reservation.status,
                "special_request": reservation.special_request,
            }
            for reservation, customer_name, table_number in rows
        ]

    async def delete(self, reservation_id: int) -> None:
        async with self.db.transaction() as session:
            reservation = await session.get(Reservation, reservation_id)
            if reservation is None:
                raise NotFoundError("Reservation", reservation_id)
            await session.delete(reservation)
        logger.info(f"Reservation #{reservation_id} deleted")
