"""Tests for the menu catalog, ingredient stock and the directory records."""

import pytest

from restaurant_pos.core.errors import ConflictError, NotFoundError, ValidationError
from restaurant_pos.models import MovementReason


class TestMenuItems:

    async def test_cost_above_price_stored_inactive(self, services, seeded):
        item = await services.catalog.create_menu_item(
            {"sku": "LOSS-01", "name": "Truffle Loss Leader", "price": 5.0, "cost": 9.0}
        )
        assert item.is_active is False

        active = await services.catalog.list_menu_items(active_only=True)
        assert item.id not in [i.id for i in active]

    async def test_duplicate_sku(self, services, seeded):
        with pytest.raises(ConflictError):
            await services.catalog.create_menu_item({"sku": "PASTA-01", "name": "Other pasta", "price": 9.0})

    async def test_update_to_taken_sku(self, services, seeded):
        with pytest.raises(ConflictError):
            await services.catalog.update_menu_item(seeded.pizza.id, {"sku": "PASTA-01"})

    async def test_unknown_category(self, services, seeded):
        with pytest.raises(NotFoundError):
            await services.catalog.create_menu_item(
                {"category_id": 9999, "sku": "X-1", "name": "Orphan", "price": 1.0}
            )

    async def test_search_by_name_and_sku(self, services, seeded):
        by_name = await services.catalog.list_menu_items(search="margherita")
        assert [i.id for i in by_name] == [seeded.pizza.id]

        by_sku = await services.catalog.list_menu_items(search="PASTA")
        assert [i.id for i in by_sku] == [seeded.pasta.id]

    async def test_list_by_category(self, services, seeded):
        desserts = await services.catalog.categories.create({"name": "Desserts"})
        await services.catalog.create_menu_item(
            {"category_id": desserts.id, "sku": "TIRA-01", "name": "Tiramisu", "price": 6.0}
        )

        mains = await services.catalog.list_menu_items(category_id=seeded.category.id)
        assert {i.id for i in mains} == {seeded.pasta.id, seeded.pizza.id}

    async def test_detail_includes_recipe(self, services, seeded):
        detail = await services.catalog.get_menu_item_detail(seeded.pizza.id)

        recipe = {line["name"]: line for line in detail["recipe"]}
        assert set(recipe) == {"Cheese", "Tomato"}
        assert recipe["Cheese"]["is_allergen"] is True
        assert recipe["Cheese"]["is_removable"] is False
        assert recipe["Tomato"]["quantity"] == 1.0

    async def test_soft_delete(self, services, seeded):
        await services.catalog.delete_menu_item(seeded.pasta.id)

        with pytest.raises(NotFoundError):
            await services.catalog.get_menu_item(seeded.pasta.id)
        assert seeded.pasta.id not in [i.id for i in await services.catalog.list_menu_items()]


class TestRecipeLines:

    async def test_duplicate_ingredient_rejected(self, services, seeded):
        with pytest.raises(ConflictError):
            await services.catalog.add_recipe_line(
                {"menu_item_id": seeded.pasta.id, "ingredient_id": seeded.tomato.id, "quantity": 2.0}
            )

    async def test_update_and_remove(self, services, seeded):
        lines = await services.catalog.list_recipe_lines(seeded.pasta.id)
        basil_line = next(line for line in lines if line.ingredient_id == seeded.basil.id)

        updated = await services.catalog.update_recipe_line(basil_line.id, {"quantity": 0.25})
        assert updated.quantity == 0.25

        await services.catalog.delete_recipe_line(basil_line.id)
        remaining = await services.catalog.list_recipe_lines(seeded.pasta.id)
        assert [line.ingredient_id for line in remaining] == [seeded.tomato.id]

    async def test_missing_line(self, services, seeded):
        with pytest.raises(NotFoundError):
            await services.catalog.delete_recipe_line(9999)


class TestStockAdjustment:

    async def test_adjust_records_movement(self, services, seeded):
        ingredient = await services.inventory.adjust(seeded.tomato.id, 5.0, note="delivery")
        assert ingredient.quantity == 15.0

        ingredient = await services.inventory.adjust(seeded.tomato.id, -2.5, note="spoiled")
        assert ingredient.quantity == 12.5

        movements = await services.catalog.list_stock_movements(seeded.tomato.id)
        assert [(m.delta, m.reason) for m in movements] == [
            (5.0, MovementReason.MANUAL_ADJUSTMENT),
            (-2.5, MovementReason.MANUAL_ADJUSTMENT),
        ]

    async def test_adjust_below_zero_rejected(self, services, seeded, stock):
        with pytest.raises(ValidationError):
            await services.inventory.adjust(seeded.basil.id, -5.5)

        assert await stock(seeded.basil) == 5.0
        assert await services.catalog.list_stock_movements(seeded.basil.id) == []

    async def test_adjust_unknown_ingredient(self, services, seeded):
        with pytest.raises(NotFoundError):
            await services.inventory.adjust(9999, 1.0)


class TestDirectory:

    async def test_visit_bumps_customer(self, services, seeded):
        await services.directory.visits.create(
            {"customer_id": seeded.customer.id, "visit_type": "dine_in", "outlet_id": seeded.outlet.id}
        )
        visit = await services.directory.visits.create(
            {"customer_id": seeded.customer.id, "visit_type": "dine_in", "outlet_id": seeded.outlet.id, "pax": 3}
        )

        customer = await services.directory.customers.get(seeded.customer.id)
        assert customer.visit_count == 2
        assert customer.last_visit is not None
        assert visit.visit_date is not None

    async def test_visit_for_unknown_customer(self, services, seeded):
        with pytest.raises(NotFoundError):
            await services.directory.visits.create(
                {"customer_id": 9999, "visit_type": "dine_in", "outlet_id": seeded.outlet.id}
            )

    async def test_table_needs_outlet(self, services, seeded):
        with pytest.raises(NotFoundError):
            await services.directory.tables.create({"outlet_id": 9999, "table_number": "Z9"})

    async def test_soft_deleted_staff_hidden(self, services, seeded):
        await services.directory.staff.delete(seeded.waiter.id)

        with pytest.raises(NotFoundError):
            await services.directory.staff.get(seeded.waiter.id)
        assert [s.id for s in await services.directory.staff.list()] == [seeded.manager.id]

    async def test_list_filters(self, services, seeded):
        other = await services.directory.outlets.create({"name": "Rooftop Bar"})
        await services.directory.tables.create({"outlet_id": other.id, "table_number": "R1"})

        tables = await services.directory.tables.list(outlet_id=seeded.outlet.id)
        assert {t.table_number for t in tables} == {"A1", "B2"}
