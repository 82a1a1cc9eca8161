"""
Outlets, tables, staff, customers and customer visits.

Thin CRUD over the shared store; the only behavior beyond plain writes is
that recording a visit bumps the customer's visit counter.
"""

import logging
from typing import Any

from sqlalchemy import update

from restaurant_pos.database import Database
from restaurant_pos.models import (
    Customer,
    CustomerVisit,
    DiningTable,
    Outlet,
    Reservation,
    Staff,
    utcnow,
)
from restaurant_pos.services.base import CrudService

logger = logging.getLogger(__name__)


class VisitService(CrudService):
    """Customer visits. Deletes are physical; visits carry no tombstone."""

    def __init__(self, db: Database):
        super().__init__(
            db,
            CustomerVisit,
            "Visit",
            references={"customer_id": Customer, "outlet_id": Outlet, "reservation_id": Reservation},
            order_by=[CustomerVisit.visit_date.desc(), CustomerVisit.id.desc()],
        )

    async def create(self, data: dict[str, Any]) -> CustomerVisit:
        data = dict(data)
        if data.get("visit_date") is None:
            data["visit_date"] = utcnow()
        visit_date = data["visit_date"]

        async with self.db.transaction() as session:
            await self._check_references(session, data)
            visit = CustomerVisit(**data)
            session.add(visit)
            await self._flush(session)
            await session.execute(
                update(Customer)
                .where(Customer.id == data["customer_id"])
                .values(visit_count=Customer.visit_count + 1, last_visit=visit_date)
                .execution_options(synchronize_session=False)
            )

        logger.info(f"Visit #{visit.id} recorded for customer #{visit.customer_id}")
        return visit


class Directory:
    """The plain collaborator records the core reads but does not own."""

    def __init__(self, db: Database):
        self.outlets = CrudService(db, Outlet, "Outlet", order_by=[Outlet.name])
        self.tables = CrudService(
            db,
            DiningTable,
            "Table",
            references={"outlet_id": Outlet},
            order_by=[DiningTable.outlet_id, DiningTable.table_number],
        )
        self.staff = CrudService(db, Staff, "Staff", order_by=[Staff.name])
        self.customers = CrudService(db, Customer, "Customer", order_by=[Customer.name])
        self.visits = VisitService(db)
