"""Tests for order placement, stock reservation and the order lifecycle."""

import asyncio

import pytest

from restaurant_pos.core.errors import (
    InsufficientStockError,
    NotFoundError,
    OrderStateError,
    ValidationError,
)
from restaurant_pos.models import (
    MovementReason,
    Order,
    OrderItem,
    OrderItemExclusion,
    OrderStatus,
    StockMovement,
)
from restaurant_pos.schemas import OrderItemCreate, OrderResponse, OrderUpdate
from restaurant_pos.services.orders import OrderEngine


def pasta_line(seeded, qty=2, unit_price=10.0, **extra) -> dict:
    return {"menu_item_id": seeded.pasta.id, "qty": qty, "unit_price": unit_price, **extra}


def pizza_line(seeded, qty=1, unit_price=12.0, **extra) -> dict:
    return {"menu_item_id": seeded.pizza.id, "qty": qty, "unit_price": unit_price, **extra}


class TestPlaceOrder:

    async def test_worked_example_decrements_stock(self, services, seeded, order_payload, stock):
        order = await services.orders.place_order(order_payload(pasta_line(seeded, qty=2, unit_price=10.0)))

        assert await stock(seeded.tomato) == 7.0
        assert await stock(seeded.basil) == 4.0
        assert OrderResponse.model_validate(order).subtotal == 20.0

    async def test_order_gets_unique_number_and_items(self, services, seeded, order_payload):
        first = await services.orders.place_order(order_payload(pasta_line(seeded, qty=1)))
        second = await services.orders.place_order(order_payload(pizza_line(seeded)))

        assert first.order_number != second.order_number
        assert first.status == OrderStatus.OPEN
        assert [item.menu_item_id for item in first.items] == [seeded.pasta.id]
        assert first.items[0].unit_price == 10.0

    async def test_exclusion_skips_ingredient(self, services, seeded, order_payload, stock, count_rows):
        order = await services.orders.place_order(
            order_payload(pasta_line(seeded, qty=2, excluded_ingredient_ids=[seeded.basil.id]))
        )

        assert await stock(seeded.tomato) == 7.0
        assert await stock(seeded.basil) == 5.0
        assert order.items[0].excluded_ingredient_ids == [seeded.basil.id]
        assert await count_rows(OrderItemExclusion) == 1

    async def test_non_removable_exclusion_rejected(self, services, seeded, order_payload, stock, count_rows):
        with pytest.raises(ValidationError):
            await services.orders.place_order(
                order_payload(pizza_line(seeded, excluded_ingredient_ids=[seeded.cheese.id]))
            )

        assert await count_rows(Order) == 0
        assert await stock(seeded.cheese) == 4.0

    async def test_exclusion_outside_recipe_rejected(self, services, seeded, order_payload):
        with pytest.raises(ValidationError):
            await services.orders.place_order(
                order_payload(pasta_line(seeded, excluded_ingredient_ids=[seeded.cheese.id]))
            )

    async def test_inactive_ingredient_blocks_order(self, services, seeded, order_payload, stock, count_rows):
        await services.catalog.ingredients.update(seeded.basil.id, {"is_active": False})

        with pytest.raises(ValidationError):
            await services.orders.place_order(order_payload(pasta_line(seeded)))

        assert await count_rows(Order) == 0
        assert await stock(seeded.tomato) == 10.0
        assert await stock(seeded.basil) == 5.0

        order = await services.orders.place_order(
            order_payload(pasta_line(seeded, excluded_ingredient_ids=[seeded.basil.id]))
        )
        assert order.id is not None
        assert await stock(seeded.tomato) == 7.0

    async def test_insufficient_stock_identifies_ingredient(self, services, seeded, order_payload, stock, count_rows):
        with pytest.raises(InsufficientStockError) as exc_info:
            await services.orders.place_order(order_payload(pasta_line(seeded, qty=7)))

        assert exc_info.value.ingredient_id == seeded.tomato.id
        assert exc_info.value.required == 10.5
        assert exc_info.value.available == 10.0
        assert await stock(seeded.tomato) == 10.0
        assert await stock(seeded.basil) == 5.0
        assert await count_rows(Order) == 0
        assert await count_rows(OrderItem) == 0
        assert await count_rows(StockMovement) == 0

    async def test_requirements_summed_across_lines(self, services, seeded, order_payload, stock, count_rows):
        # 4.5 + 6.0 tomato: each line fits alone, together they exceed 10
        with pytest.raises(InsufficientStockError):
            await services.orders.place_order(
                order_payload(pasta_line(seeded, qty=3), pasta_line(seeded, qty=4))
            )

        assert await stock(seeded.tomato) == 10.0
        assert await count_rows(OrderItem) == 0

    async def test_mixed_lines_share_ingredient(self, services, seeded, order_payload, stock):
        await services.orders.place_order(
            order_payload(pasta_line(seeded, qty=2), pizza_line(seeded, qty=3))
        )

        assert await stock(seeded.tomato) == 4.0
        assert await stock(seeded.cheese) == 1.0
        assert await stock(seeded.basil) == 4.0

    async def test_failure_mid_order_leaves_nothing(self, services, seeded, order_payload, stock, count_rows, monkeypatch):
        engine = services.orders
        original = engine._insert_line
        calls = {"n": 0}

        async def failing_insert_line(session, order_id, item):
            calls["n"] += 1
            if calls["n"] == 3:
                raise RuntimeError("injected failure")
            return await original(session, order_id, item)

        monkeypatch.setattr(engine, "_insert_line", failing_insert_line)

        with pytest.raises(RuntimeError):
            await engine.place_order(
                order_payload(
                    pasta_line(seeded, qty=1),
                    pizza_line(seeded, qty=1),
                    pasta_line(seeded, qty=1),
                )
            )

        assert await count_rows(Order) == 0
        assert await count_rows(OrderItem) == 0
        assert await count_rows(StockMovement) == 0
        assert await stock(seeded.tomato) == 10.0
        assert await stock(seeded.cheese) == 4.0

    async def test_unknown_menu_item(self, services, seeded, order_payload):
        with pytest.raises(NotFoundError):
            await services.orders.place_order(
                order_payload({"menu_item_id": 9999, "qty": 1, "unit_price": 5.0})
            )

    async def test_deleted_menu_item(self, services, seeded, order_payload):
        await services.catalog.delete_menu_item(seeded.pizza.id)

        with pytest.raises(NotFoundError):
            await services.orders.place_order(order_payload(pizza_line(seeded)))

    async def test_inactive_menu_item(self, services, seeded, order_payload):
        await services.catalog.update_menu_item(seeded.pizza.id, {"is_active": False})

        with pytest.raises(ValidationError):
            await services.orders.place_order(order_payload(pizza_line(seeded)))

    async def test_unknown_outlet(self, services, seeded, order_payload, count_rows):
        with pytest.raises(NotFoundError) as exc_info:
            await services.orders.place_order(order_payload(pasta_line(seeded), outlet_id=9999))

        assert exc_info.value.resource == "Outlet"
        assert await count_rows(Order) == 0

    async def test_captured_price_survives_menu_change(self, services, seeded, order_payload):
        order = await services.orders.place_order(order_payload(pasta_line(seeded, unit_price=8.5)))
        await services.catalog.update_menu_item(seeded.pasta.id, {"price": 99.0})

        reloaded = await services.orders.get_order(order.id)
        assert reloaded.items[0].unit_price == 8.5

    async def test_consumption_is_journaled(self, services, seeded, order_payload, database):
        order = await services.orders.place_order(order_payload(pasta_line(seeded, qty=2)))

        movements = await services.catalog.list_stock_movements(seeded.tomato.id)
        assert [m.delta for m in movements] == [-3.0]
        assert movements[0].reason == MovementReason.ORDER_CONSUMPTION
        assert movements[0].order_item_id == order.items[0].id

        async with database.transaction() as session:
            assert await services.inventory.net_movement(session, seeded.tomato.id) == -3.0

    async def test_concurrent_orders_never_oversell(self, services, seeded, order_payload, stock, count_rows):
        # Each order needs 6 tomato; only one of them can fit in 10
        results = await asyncio.gather(
            services.orders.place_order(order_payload(pasta_line(seeded, qty=4))),
            services.orders.place_order(order_payload(pasta_line(seeded, qty=4))),
            return_exceptions=True,
        )

        placed = [r for r in results if isinstance(r, Order)]
        rejected = [r for r in results if isinstance(r, InsufficientStockError)]
        assert len(placed) == 1
        assert len(rejected) == 1
        assert await stock(seeded.tomato) == 4.0
        assert await count_rows(Order) == 1


class TestAddItem:

    async def test_add_item_reserves_stock(self, services, seeded, order_payload, stock):
        order = await services.orders.place_order(order_payload(pasta_line(seeded, qty=1)))

        item = await services.orders.add_item(
            order.id, OrderItemCreate(menu_item_id=seeded.pizza.id, qty=2, unit_price=12.0)
        )

        assert item.order_id == order.id
        assert await stock(seeded.tomato) == 6.5
        assert await stock(seeded.cheese) == 2.0
        reloaded = await services.orders.get_order(order.id)
        assert len(reloaded.items) == 2

    async def test_add_item_insufficient_stock_is_atomic(self, services, seeded, order_payload, stock, count_rows):
        order = await services.orders.place_order(order_payload(pasta_line(seeded, qty=1)))

        with pytest.raises(InsufficientStockError):
            await services.orders.add_item(
                order.id, OrderItemCreate(menu_item_id=seeded.pizza.id, qty=5, unit_price=12.0)
            )

        assert await count_rows(OrderItem) == 1
        assert await stock(seeded.cheese) == 4.0
        assert await stock(seeded.tomato) == 7.0

    async def test_add_item_to_missing_order(self, services, seeded):
        with pytest.raises(NotFoundError):
            await services.orders.add_item(
                9999, OrderItemCreate(menu_item_id=seeded.pasta.id, qty=1, unit_price=10.0)
            )

    async def test_add_item_to_void_order(self, services, seeded, order_payload):
        order = await services.orders.place_order(order_payload(pasta_line(seeded, qty=1)))
        await services.orders.void_order(order.id)

        with pytest.raises(OrderStateError):
            await services.orders.add_item(
                order.id, OrderItemCreate(menu_item_id=seeded.pasta.id, qty=1, unit_price=10.0)
            )


class TestVoidOrder:

    async def test_void_keeps_stock_by_default(self, services, seeded, order_payload, stock):
        order = await services.orders.place_order(order_payload(pasta_line(seeded, qty=2)))

        voided, restocked = await services.orders.void_order(order.id)

        assert voided.status == OrderStatus.VOID
        assert restocked is False
        assert await stock(seeded.tomato) == 7.0

    async def test_void_with_restock_returns_journaled_stock(self, services, seeded, order_payload, stock):
        order = await services.orders.place_order(
            order_payload(pasta_line(seeded, qty=2), pizza_line(seeded, qty=1))
        )
        # Recipe changes after the order must not change what comes back
        lines = await services.catalog.list_recipe_lines(seeded.pasta.id)
        tomato_line = next(line for line in lines if line.ingredient_id == seeded.tomato.id)
        await services.catalog.update_recipe_line(tomato_line.id, {"quantity": 3.0})

        _, restocked = await services.orders.void_order(order.id, restock=True)

        assert restocked is True
        assert await stock(seeded.tomato) == 10.0
        assert await stock(seeded.basil) == 5.0
        assert await stock(seeded.cheese) == 4.0

    async def test_second_void_does_not_restock_twice(self, services, seeded, order_payload, stock):
        order = await services.orders.place_order(order_payload(pasta_line(seeded, qty=2)))

        await services.orders.void_order(order.id, restock=True)
        _, restocked = await services.orders.void_order(order.id, restock=True)

        assert restocked is False
        assert await stock(seeded.tomato) == 10.0

    async def test_restock_setting_is_default(self, services, settings, seeded, order_payload, stock):
        engine = OrderEngine(
            services.orders.db,
            services.catalog,
            services.inventory,
            settings.model_copy(update={"restock_on_void": True}),
        )
        order = await engine.place_order(order_payload(pasta_line(seeded, qty=2)))

        _, restocked = await engine.void_order(order.id)

        assert restocked is True
        assert await stock(seeded.tomato) == 10.0

    async def test_void_missing_order(self, services):
        with pytest.raises(NotFoundError):
            await services.orders.void_order(9999)


class TestUpdateAndList:

    async def test_update_fields(self, services, seeded, order_payload):
        order = await services.orders.place_order(order_payload(pasta_line(seeded, qty=1)))

        updated = await services.orders.update_order(
            order.id, OrderUpdate(status=OrderStatus.SERVED, customer_id=seeded.customer.id)
        )

        assert updated.status == OrderStatus.SERVED
        assert updated.customer_id == seeded.customer.id
        assert updated.table_id == seeded.table_a.id

    async def test_update_cannot_void(self, services, seeded, order_payload):
        order = await services.orders.place_order(order_payload(pasta_line(seeded, qty=1)))

        with pytest.raises(ValidationError):
            await services.orders.update_order(order.id, OrderUpdate(status=OrderStatus.VOID))

    async def test_update_void_order_rejected(self, services, seeded, order_payload):
        order = await services.orders.place_order(order_payload(pasta_line(seeded, qty=1)))
        await services.orders.void_order(order.id)

        with pytest.raises(OrderStateError):
            await services.orders.update_order(order.id, OrderUpdate(hotel_room="101"))

    async def test_update_unknown_reference(self, services, seeded, order_payload):
        order = await services.orders.place_order(order_payload(pasta_line(seeded, qty=1)))

        with pytest.raises(NotFoundError):
            await services.orders.update_order(order.id, OrderUpdate(waiter_id=9999))

    async def test_list_filters_by_status(self, services, seeded, order_payload):
        first = await services.orders.place_order(order_payload(pasta_line(seeded, qty=1)))
        second = await services.orders.place_order(order_payload(pasta_line(seeded, qty=1)))
        await services.orders.void_order(first.id)

        total, orders = await services.orders.list_orders(status=OrderStatus.OPEN)
        assert total == 1
        assert [o.id for o in orders] == [second.id]

        total, orders = await services.orders.list_orders(outlet_id=seeded.outlet.id)
        assert total == 2
        assert {o.id for o in orders} == {first.id, second.id}
