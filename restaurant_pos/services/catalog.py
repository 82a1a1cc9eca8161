"""
Menu Catalog Service

Menu items, categories, ingredients and the recipe links between them.
The order engine reads recipes through ``get_recipe`` inside its own
transaction, so a recipe is always read consistently with the stock it
is about to consume.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from restaurant_pos.core.errors import ConflictError, NotFoundError, ValidationError
from restaurant_pos.database import Database
from restaurant_pos.models import Ingredient, MenuCategory, MenuIngredient, MenuItem, StockMovement
from restaurant_pos.services.base import CrudService, apply_changes, live, require_live

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RecipeLine:
    """One ingredient of a menu item, per single serving."""
    ingredient_id: int
    quantity: float
    is_removable: bool = True


class CatalogService:
    """Catalog reads for ordering plus CRUD for the menu and its ingredients."""

    def __init__(self, db: Database):
        self.db = db
        self.categories = CrudService(db, MenuCategory, "Category", order_by=[MenuCategory.name])
        self.ingredients = CrudService(db, Ingredient, "Ingredient", order_by=[Ingredient.name])

    # =========================================================================
    # READS USED BY THE ORDER ENGINE
    # =========================================================================

    async def get_orderable(self, session: AsyncSession, menu_item_id: int) -> MenuItem:
        """
        Resolve a menu item that may be put on an order.

        Raises:
            NotFoundError: unknown or deleted menu item
            ValidationError: menu item exists but is inactive
        """
        menu_item = await require_live(session, MenuItem, menu_item_id, "Menu item")
        if not menu_item.is_active:
            raise ValidationError(f"Menu item {menu_item_id} ({menu_item.name}) is not available")
        return menu_item

    async def get_recipe(self, session: AsyncSession, menu_item_id: int) -> list[RecipeLine]:
        """
        Recipe lines for one serving of a menu item.

        A menu item with no recipe returns an empty list and consumes no stock.
        """
        result = await session.execute(
            select(
                MenuIngredient.ingredient_id,
                MenuIngredient.quantity,
                MenuIngredient.is_removable,
            )
            .where(MenuIngredient.menu_item_id == menu_item_id)
            .order_by(MenuIngredient.ingredient_id)
        )
        return [
            RecipeLine(ingredient_id=row.ingredient_id, quantity=row.quantity, is_removable=row.is_removable)
            for row in result.all()
        ]

    # =========================================================================
    # MENU ITEMS
    # =========================================================================

    async def create_menu_item(self, data: dict[str, Any]) -> MenuItem:
        """
        Create a menu item.

        An item whose cost exceeds its price is stored inactive so it cannot
        be ordered until someone fixes the pricing.
        """
        data = dict(data)
        if data.get("cost", 0.0) > data["price"]:
            logger.warning(
                f"Menu item {data['sku']} costs {data['cost']} but sells for "
                f"{data['price']}; storing it inactive"
            )
            data["is_active"] = False

        async with self.db.transaction() as session:
            if data.get("category_id") is not None:
                await require_live(session, MenuCategory, data["category_id"], "Category")
            await self._ensure_sku_free(session, data["sku"])
            menu_item = MenuItem(**data)
            session.add(menu_item)
            await session.flush()

        logger.info(f"Menu item #{menu_item.id} {menu_item.sku} created")
        return menu_item

    async def _ensure_sku_free(self, session: AsyncSession, sku: str, exclude_id: Optional[int] = None) -> None:
        stmt = select(MenuItem.id).where(MenuItem.sku == sku)
        if exclude_id is not None:
            stmt = stmt.where(MenuItem.id != exclude_id)
        if (await session.execute(stmt)).first() is not None:
            raise ConflictError(f"SKU {sku} is already in use")

    async def list_menu_items(
        self,
        active_only: bool = False,
        category_id: Optional[int] = None,
        search: Optional[str] = None,
    ) -> list[MenuItem]:
        stmt = live(MenuItem)
        if active_only:
            stmt = stmt.where(MenuItem.is_active.is_(True))
        if category_id is not None:
            stmt = stmt.where(MenuItem.category_id == category_id)
        if search:
            pattern = f"%{search.strip()}%"
            stmt = stmt.where(or_(MenuItem.name.ilike(pattern), MenuItem.sku.ilike(pattern)))

        async with self.db.transaction() as session:
            result = await session.execute(stmt.order_by(MenuItem.name))
            return list(result.scalars().all())

    async def get_menu_item(self, menu_item_id: int) -> MenuItem:
        async with self.db.transaction() as session:
            return await require_live(session, MenuItem, menu_item_id, "Menu item")

    async def get_menu_item_detail(self, menu_item_id: int) -> dict[str, Any]:
        """Menu item with its recipe expanded to ingredient names and units."""
        async with self.db.transaction() as session:
            menu_item = await require_live(session, MenuItem, menu_item_id, "Menu item")
            result = await session.execute(
                select(MenuIngredient, Ingredient)
                .join(Ingredient, Ingredient.id == MenuIngredient.ingredient_id)
                .where(MenuIngredient.menu_item_id == menu_item_id)
                .order_by(MenuIngredient.id)
            )
            recipe = [
                {
                    "menu_ingredient_id": link.id,
                    "ingredient_id": ingredient.id,
                    "name": ingredient.name,
                    "unit": ingredient.unit,
                    "quantity": link.quantity,
                    "is_allergen": ingredient.is_allergen,
                    "is_removable": link.is_removable,
                    "is_default": link.is_default,
                }
                for link, ingredient in result.all()
            ]

        return {
            "id": menu_item.id,
            "category_id": menu_item.category_id,
            "sku": menu_item.sku,
            "name": menu_item.name,
            "description": menu_item.description,
            "price": menu_item.price,
            "cost": menu_item.cost,
            "is_active": menu_item.is_active,
            "preparation_time": menu_item.preparation_time,
            "tags": menu_item.tags or [],
            "created_at": menu_item.created_at,
            "updated_at": menu_item.updated_at,
            "recipe": recipe,
        }

    async def update_menu_item(self, menu_item_id: int, changes: dict[str, Any]) -> MenuItem:
        async with self.db.transaction() as session:
            menu_item = await require_live(session, MenuItem, menu_item_id, "Menu item")
            if changes.get("category_id") is not None:
                await require_live(session, MenuCategory, changes["category_id"], "Category")
            if changes.get("sku") and changes["sku"] != menu_item.sku:
                await self._ensure_sku_free(session, changes["sku"], exclude_id=menu_item_id)
            apply_changes(menu_item, changes)
            await session.flush()

        logger.info(f"Menu item #{menu_item_id} updated: {sorted(changes)}")
        return menu_item

    async def delete_menu_item(self, menu_item_id: int) -> None:
        async with self.db.transaction() as session:
            menu_item = await require_live(session, MenuItem, menu_item_id, "Menu item")
            menu_item.is_deleted = True
        logger.info(f"Menu item #{menu_item_id} deleted")

    # =========================================================================
    # RECIPE LINKS
    # =========================================================================

    async def add_recipe_line(self, data: dict[str, Any]) -> MenuIngredient:
        async with self.db.transaction() as session:
            await require_live(session, MenuItem, data["menu_item_id"], "Menu item")
            await require_live(session, Ingredient, data["ingredient_id"], "Ingredient")
            existing = await session.execute(
                select(MenuIngredient.id).where(
                    MenuIngredient.menu_item_id == data["menu_item_id"],
                    MenuIngredient.ingredient_id == data["ingredient_id"],
                )
            )
            if existing.first() is not None:
                raise ConflictError(
                    f"Ingredient {data['ingredient_id']} is already part of "
                    f"menu item {data['menu_item_id']}"
                )
            link = MenuIngredient(**data)
            session.add(link)
            await session.flush()

        logger.info(
            f"Recipe line #{link.id}: menu item {link.menu_item_id} uses "
            f"{link.quantity:g} of ingredient {link.ingredient_id}"
        )
        return link

    async def list_recipe_lines(self, menu_item_id: int) -> list[MenuIngredient]:
        async with self.db.transaction() as session:
            await require_live(session, MenuItem, menu_item_id, "Menu item")
            result = await session.execute(
                select(MenuIngredient)
                .where(MenuIngredient.menu_item_id == menu_item_id)
                .order_by(MenuIngredient.id)
            )
            return list(result.scalars().all())

    async def update_recipe_line(self, link_id: int, changes: dict[str, Any]) -> MenuIngredient:
        async with self.db.transaction() as session:
            link = await session.get(MenuIngredient, link_id)
            if link is None:
                raise NotFoundError("Recipe line", link_id)
            apply_changes(link, changes)
            await session.flush()
        return link

    async def delete_recipe_line(self, link_id: int) -> None:
        async with self.db.transaction() as session:
            link = await session.get(MenuIngredient, link_id)
            if link is None:
                raise NotFoundError("Recipe line", link_id)
            await session.delete(link)
        logger.info(f"Recipe line #{link_id} removed")

    # =========================================================================
    # INGREDIENT JOURNAL
    # =========================================================================

    async def list_stock_movements(self, ingredient_id: int) -> list[StockMovement]:
        async with self.db.transaction() as session:
            await require_live(session, Ingredient, ingredient_id, "Ingredient")
            result = await session.execute(
                select(StockMovement)
                .where(StockMovement.ingredient_id == ingredient_id)
                .order_by(StockMovement.id)
            )
            return list(result.scalars().all())
