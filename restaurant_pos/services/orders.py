"""
Order Engine

Places orders and adds items with all-or-nothing stock reservation.

Flow of PlaceOrder, inside one transaction:
1. Insert the order header
2. Insert each line with its excluded ingredients
3. Expand every line's recipe minus exclusions into stock requirements
4. Hand all requirements to the inventory ledger in one call

Any error at any step rolls back the header, the lines and every stock
decrement together.
"""

import logging
import uuid
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from restaurant_pos.core.config import Settings
from restaurant_pos.core.errors import NotFoundError, OrderStateError, ValidationError
from restaurant_pos.database import Database
from restaurant_pos.models import (
    Customer,
    DiningTable,
    Order,
    OrderItem,
    OrderItemExclusion,
    OrderStatus,
    Outlet,
    Staff,
)
from restaurant_pos.schemas import OrderCreate, OrderItemCreate, OrderUpdate
from restaurant_pos.services.base import apply_changes, require_live
from restaurant_pos.services.catalog import CatalogService
from restaurant_pos.services.inventory import InventoryLedger, StockRequirement

logger = logging.getLogger(__name__)


# Foreign keys an order may carry, with the record each must resolve to
ORDER_REFERENCES = {
    "outlet_id": (Outlet, "Outlet"),
    "table_id": (DiningTable, "Table"),
    "customer_id": (Customer, "Customer"),
    "waiter_id": (Staff, "Staff"),
}


def generate_order_number() -> str:
    return str(uuid.uuid4())


class OrderEngine:
    """Order placement, item addition, voiding and order reads."""

    def __init__(
        self,
        db: Database,
        catalog: CatalogService,
        ledger: InventoryLedger,
        settings: Settings,
    ):
        self.db = db
        self.catalog = catalog
        self.ledger = ledger
        self.settings = settings

    # =========================================================================
    # HELPERS
    # =========================================================================

    async def _check_references(self, session: AsyncSession, values: dict) -> None:
        for field, (model, label) in ORDER_REFERENCES.items():
            if values.get(field) is not None:
                await require_live(session, model, values[field], label)

    async def _insert_line(
        self,
        session: AsyncSession,
        order_id: int,
        item: OrderItemCreate,
    ) -> tuple[OrderItem, list[StockRequirement]]:
        """
        Insert one order line and return the stock it needs.

        Args:
            session: Session of the enclosing order transaction
            order_id: Owning order
            item: Validated line from the request

        Returns:
            The inserted OrderItem and its stock requirements
        """
        await self.catalog.get_orderable(session, item.menu_item_id)
        recipe = await self.catalog.get_recipe(session, item.menu_item_id)
        recipe_by_ingredient = {line.ingredient_id: line for line in recipe}

        excluded = set(item.excluded_ingredient_ids)
        for ingredient_id in item.excluded_ingredient_ids:
            line = recipe_by_ingredient.get(ingredient_id)
            if line is None:
                raise ValidationError(
                    f"Ingredient {ingredient_id} is not part of menu item {item.menu_item_id}'s recipe"
                )
            if not line.is_removable:
                raise ValidationError(
                    f"Ingredient {ingredient_id} cannot be removed from menu item {item.menu_item_id}"
                )

        order_item = OrderItem(
            order_id=order_id,
            menu_item_id=item.menu_item_id,
            quantity=item.qty,
            notes=item.notes,
            unit_price=item.unit_price,
        )
        session.add(order_item)
        await session.flush()

        for ingredient_id in item.excluded_ingredient_ids:
            session.add(OrderItemExclusion(order_item_id=order_item.id, ingredient_id=ingredient_id))

        requirements = [
            StockRequirement(
                ingredient_id=line.ingredient_id,
                quantity=line.quantity * item.qty,
                order_item_id=order_item.id,
            )
            for line in recipe
            if line.ingredient_id not in excluded
        ]
        return order_item, requirements

    async def _load(self, session: AsyncSession, order_id: int) -> Order:
        result = await session.execute(
            select(Order)
            .where(Order.id == order_id)
            .options(selectinload(Order.items).selectinload(OrderItem.exclusions))
            .execution_options(populate_existing=True)
        )
        order = result.scalar_one_or_none()
        if order is None:
            raise NotFoundError("Order", order_id)
        return order

    # =========================================================================
    # WRITES
    # =========================================================================

    async def place_order(self, spec: OrderCreate) -> Order:
        """
        Create an order with its items and reserve their stock atomically.

        Raises:
            NotFoundError: outlet, table, customer, waiter or menu item missing
            ValidationError: inactive menu item or illegal exclusion
            InsufficientStockError: any ingredient short; nothing is written
        """
        header = spec.model_dump(exclude={"items"})

        async with self.db.transaction() as session:
            await self._check_references(session, header)

            order = Order(order_number=generate_order_number(), **header)
            session.add(order)
            await session.flush()

            requirements: list[StockRequirement] = []
            for item in spec.items:
                _, needs = await self._insert_line(session, order.id, item)
                requirements.extend(needs)

            await self.ledger.consume(session, requirements)
            order_id = order.id

        logger.info(
            f"Order #{order_id} {order.order_number} placed: "
            f"{len(spec.items)} item(s) at outlet {spec.outlet_id}"
        )
        return await self.get_order(order_id)

    async def add_item(self, order_id: int, item: OrderItemCreate) -> OrderItem:
        """Add one line to an existing order with the same stock guarantee."""
        async with self.db.transaction() as session:
            order = await session.get(Order, order_id)
            if order is None:
                raise NotFoundError("Order", order_id)
            if order.status == OrderStatus.VOID:
                raise OrderStateError(f"Order {order_id} is void")

            order_item, requirements = await self._insert_line(session, order_id, item)
            await self.ledger.consume(session, requirements)

        logger.info(
            f"Order #{order_id}: added item #{order_item.id} "
            f"(menu item {item.menu_item_id} x{item.qty:g})"
        )
        return order_item

    async def void_order(self, order_id: int, restock: Optional[bool] = None) -> tuple[Order, bool]:
        """
        Void an order. Its rows are kept; only the status changes.

        Args:
            order_id: Order to void
            restock: Return consumed stock; defaults to RESTOCK_ON_VOID

        Returns:
            The order and whether stock was returned by this call
        """
        if restock is None:
            restock = self.settings.restock_on_void

        async with self.db.transaction() as session:
            order = (
                await session.execute(select(Order).where(Order.id == order_id).with_for_update())
            ).scalar_one_or_none()
            if order is None:
                raise NotFoundError("Order", order_id)
            if order.status == OrderStatus.VOID:
                logger.info(f"Order #{order_id} already void")
                return order, False

            order.status = OrderStatus.VOID
            if restock:
                await self.ledger.restock_order(session, order_id)

        logger.info(f"Order #{order_id} voided (restock={restock})")
        return order, restock

    async def update_order(self, order_id: int, changes: OrderUpdate) -> Order:
        """Plain field update of the order header."""
        values = changes.model_dump(exclude_unset=True)
        if values.get("status") == OrderStatus.VOID:
            raise ValidationError("Use the void operation to void an order")
        if "outlet_id" in values and values["outlet_id"] is None:
            raise ValidationError("An order must belong to an outlet")
        if "status" in values and values["status"] is None:
            raise ValidationError("status cannot be null")
        if "order_type" in values and values["order_type"] is None:
            raise ValidationError("order_type cannot be null")

        async with self.db.transaction() as session:
            order = await session.get(Order, order_id)
            if order is None:
                raise NotFoundError("Order", order_id)
            if order.status == OrderStatus.VOID:
                raise OrderStateError(f"Order {order_id} is void and cannot be changed")

            await self._check_references(session, values)
            apply_changes(order, values)

        logger.info(f"Order #{order_id} updated: {sorted(values)}")
        return await self.get_order(order_id)

    # =========================================================================
    # READS
    # =========================================================================

    async def get_order(self, order_id: int) -> Order:
        async with self.db.transaction() as session:
            return await self._load(session, order_id)

    async def list_orders(
        self,
        status: Optional[OrderStatus] = None,
        outlet_id: Optional[int] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> tuple[int, list[Order]]:
        """
        List orders, newest first.

        Returns:
            Total matching count and the requested page
        """
        filters = []
        if status is not None:
            filters.append(Order.status == status)
        if outlet_id is not None:
            filters.append(Order.outlet_id == outlet_id)

        async with self.db.transaction() as session:
            total = (
                await session.execute(select(func.count(Order.id)).where(*filters))
            ).scalar_one()
            result = await session.execute(
                select(Order)
                .where(*filters)
                .options(selectinload(Order.items).selectinload(OrderItem.exclusions))
                .order_by(Order.created_at.desc(), Order.id.desc())
                .offset(skip)
                .limit(limit)
            )
            return total, list(result.scalars().all())
