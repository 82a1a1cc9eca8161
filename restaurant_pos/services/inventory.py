"""
Inventory Ledger

Conditional decrements of ingredient stock and the movement journal that
records them.

All decrements for one order go through a single ``consume`` call inside
the order's transaction. Ingredient rows are locked in ascending id order
so two orders touching overlapping ingredients always queue behind each
other instead of deadlocking, and each decrement is a guarded UPDATE that
matches no row when stock is short.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Iterable, Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from restaurant_pos.core.errors import InsufficientStockError, NotFoundError, ValidationError
from restaurant_pos.database import Database
from restaurant_pos.models import Ingredient, MovementReason, OrderItem, StockMovement

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StockRequirement:
    """Quantity of one ingredient needed by one order line."""
    ingredient_id: int
    quantity: float
    order_item_id: Optional[int] = None


class InventoryLedger:
    """Owns every write to ``ingredients.quantity``."""

    def __init__(self, db: Database):
        self.db = db

    async def _lock(self, session: AsyncSession, ingredient_id: int):
        """SELECT ... FOR UPDATE one live ingredient row."""
        row = (
            await session.execute(
                select(Ingredient.id, Ingredient.name, Ingredient.quantity, Ingredient.is_active)
                .where(Ingredient.id == ingredient_id, Ingredient.is_deleted.is_(False))
                .with_for_update()
            )
        ).one_or_none()
        if row is None:
            raise NotFoundError("Ingredient", ingredient_id)
        return row

    async def consume(self, session: AsyncSession, requirements: Iterable[StockRequirement]) -> dict[int, float]:
        """
        Decrement stock for every requirement, all or nothing.

        Must run inside the caller's transaction. Requirements for the same
        ingredient are summed first, so an order needing 3 + 4 units of a
        10-unit ingredient checks 7 against 10 once.

        Args:
            session: Session of the enclosing order transaction
            requirements: Per order-line ingredient needs

        Returns:
            Mapping of ingredient id to quantity consumed

        Raises:
            InsufficientStockError: Any ingredient would go below zero
            ValidationError: A recipe references an inactive ingredient
            NotFoundError: A recipe references a deleted ingredient
        """
        requirements = [r for r in requirements if r.quantity > 0]
        totals: dict[int, float] = defaultdict(float)
        for req in requirements:
            totals[req.ingredient_id] += req.quantity

        for ingredient_id in sorted(totals):
            required = totals[ingredient_id]
            row = await self._lock(session, ingredient_id)
            if not row.is_active:
                raise ValidationError(f"Ingredient {ingredient_id} ({row.name}) is not available")
            if row.quantity < required:
                raise InsufficientStockError(ingredient_id, required, row.quantity, row.name)

            result = await session.execute(
                update(Ingredient)
                .where(Ingredient.id == ingredient_id, Ingredient.quantity >= required)
                .values(quantity=Ingredient.quantity - required)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise InsufficientStockError(ingredient_id, required, row.quantity, row.name)

            logger.debug(f"Ingredient #{ingredient_id} {row.name}: {row.quantity:g} -> {row.quantity - required:g}")

        for req in requirements:
            session.add(
                StockMovement(
                    ingredient_id=req.ingredient_id,
                    order_item_id=req.order_item_id,
                    delta=-req.quantity,
                    reason=MovementReason.ORDER_CONSUMPTION,
                )
            )

        return dict(totals)

    async def restock_order(self, session: AsyncSession, order_id: int) -> dict[int, float]:
        """
        Return everything an order consumed, as journaled at order time.

        Recipe edits made after the order do not change what comes back.
        """
        result = await session.execute(
            select(StockMovement.ingredient_id, StockMovement.order_item_id, StockMovement.delta)
            .join(OrderItem, OrderItem.id == StockMovement.order_item_id)
            .where(
                OrderItem.order_id == order_id,
                StockMovement.reason == MovementReason.ORDER_CONSUMPTION,
            )
            .order_by(StockMovement.id)
        )
        consumed = result.all()

        totals: dict[int, float] = defaultdict(float)
        for row in consumed:
            totals[row.ingredient_id] += -row.delta

        for ingredient_id in sorted(totals):
            await self._lock(session, ingredient_id)
            await session.execute(
                update(Ingredient)
                .where(Ingredient.id == ingredient_id)
                .values(quantity=Ingredient.quantity + totals[ingredient_id])
                .execution_options(synchronize_session=False)
            )

        for row in consumed:
            session.add(
                StockMovement(
                    ingredient_id=row.ingredient_id,
                    order_item_id=row.order_item_id,
                    delta=-row.delta,
                    reason=MovementReason.VOID_RESTOCK,
                    note=f"void of order {order_id}",
                )
            )

        if totals:
            logger.info(f"Order #{order_id}: restocked {len(totals)} ingredient(s)")
        return dict(totals)

    async def adjust(self, ingredient_id: int, delta: float, note: Optional[str] = None) -> Ingredient:
        """
        Manually change an ingredient's stock (deliveries, waste, counts).

        Raises:
            ValidationError: The adjustment would leave negative stock
        """
        async with self.db.transaction() as session:
            row = await self._lock(session, ingredient_id)
            if row.quantity + delta < 0:
                raise ValidationError(
                    f"Adjustment of {delta:g} would leave ingredient {ingredient_id} "
                    f"at {row.quantity + delta:g}"
                )
            await session.execute(
                update(Ingredient)
                .where(Ingredient.id == ingredient_id)
                .values(quantity=Ingredient.quantity + delta)
                .execution_options(synchronize_session=False)
            )
            session.add(
                StockMovement(
                    ingredient_id=ingredient_id,
                    delta=delta,
                    reason=MovementReason.MANUAL_ADJUSTMENT,
                    note=note,
                )
            )
            ingredient = (
                await session.execute(
                    select(Ingredient)
                    .where(Ingredient.id == ingredient_id)
                    .execution_options(populate_existing=True)
                )
            ).scalar_one()

        logger.info(f"Ingredient #{ingredient_id} adjusted by {delta:g} -> {ingredient.quantity:g}")
        return ingredient

    async def net_movement(self, session: AsyncSession, ingredient_id: int) -> float:
        """Sum of all journaled deltas for one ingredient."""
        result = await session.execute(
            select(func.coalesce(func.sum(StockMovement.delta), 0.0))
            .where(StockMovement.ingredient_id == ingredient_id)
        )
        return float(result.scalar_one())
