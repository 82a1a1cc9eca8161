"""
Outlet configuration provider.

Billing asks for an outlet's tax and service-charge rates here. A deleted
outlet still answers, so orders placed before the deletion stay billable.
"""

from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from restaurant_pos.core.errors import NotFoundError
from restaurant_pos.models import Outlet


@dataclass(frozen=True)
class OutletRates:
    outlet_id: int
    tax_percentage: float
    service_charge_percentage: float


class OutletConfigProvider:

    async def get_rates(self, session: AsyncSession, outlet_id: int) -> OutletRates:
        row = (
            await session.execute(
                select(Outlet.tax_percentage, Outlet.service_charge_percentage)
                .where(Outlet.id == outlet_id)
            )
        ).one_or_none()
        if row is None:
            raise NotFoundError("Outlet", outlet_id)
        return OutletRates(
            outlet_id=outlet_id,
            tax_percentage=row.tax_percentage or 0.0,
            service_charge_percentage=row.service_charge_percentage or 0.0,
        )
