"""
Catalog API endpoints: menu, categories, ingredients and recipe links.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from restaurant_pos.routers.deps import get_services
from restaurant_pos.schemas import (
    CategoryCreate,
    CategoryResponse,
    CreatedResponse,
    IngredientCreate,
    IngredientResponse,
    IngredientUpdate,
    MenuIngredientCreate,
    MenuIngredientResponse,
    MenuIngredientUpdate,
    MenuItemCreate,
    MenuItemDetailResponse,
    MenuItemResponse,
    MenuItemUpdate,
    MessageResponse,
    StockAdjustment,
    StockMovementResponse,
)
from restaurant_pos.services import ServiceRegistry

menu_router = APIRouter(prefix="/menu", tags=["Menu"])
ingredient_router = APIRouter(prefix="/ingredients", tags=["Ingredients"])
recipe_router = APIRouter(prefix="/menu-ingredients", tags=["Menu Ingredients"])


# =============================================================================
# MENU CATEGORIES
# =============================================================================

@menu_router.post("/categories", response_model=CreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_category(
    category: CategoryCreate,
    services: ServiceRegistry = Depends(get_services),
) -> CreatedResponse:
    record = await services.catalog.categories.create(category.model_dump())
    return CreatedResponse(message="Category created", id=record.id)


@menu_router.get("/categories", response_model=List[CategoryResponse])
async def list_categories(services: ServiceRegistry = Depends(get_services)) -> List[CategoryResponse]:
    records = await services.catalog.categories.list()
    return [CategoryResponse.model_validate(r) for r in records]


@menu_router.delete("/categories/{category_id}", response_model=MessageResponse)
async def delete_category(
    category_id: int,
    services: ServiceRegistry = Depends(get_services),
) -> MessageResponse:
    await services.catalog.categories.delete(category_id)
    return MessageResponse(message=f"Category {category_id} deleted")


# =============================================================================
# MENU ITEMS
# =============================================================================

@menu_router.post("", response_model=MenuItemResponse, status_code=status.HTTP_201_CREATED)
async def create_menu_item(
    menu_item: MenuItemCreate,
    services: ServiceRegistry = Depends(get_services),
) -> MenuItemResponse:
    """Create a menu item. An item costing more than its price is stored inactive."""
    record = await services.catalog.create_menu_item(menu_item.model_dump())
    return MenuItemResponse.model_validate(record)


@menu_router.get("", response_model=List[MenuItemResponse])
async def list_menu_items(
    active: bool = Query(False, description="Only items that can be ordered"),
    category_id: Optional[int] = Query(None, gt=0),
    search: Optional[str] = Query(None, min_length=1),
    services: ServiceRegistry = Depends(get_services),
) -> List[MenuItemResponse]:
    records = await services.catalog.list_menu_items(
        active_only=active, category_id=category_id, search=search
    )
    return [MenuItemResponse.model_validate(r) for r in records]


@menu_router.get("/active", response_model=List[MenuItemResponse])
async def list_active_menu_items(services: ServiceRegistry = Depends(get_services)) -> List[MenuItemResponse]:
    records = await services.catalog.list_menu_items(active_only=True)
    return [MenuItemResponse.model_validate(r) for r in records]


@menu_router.get("/category/{category_id}", response_model=List[MenuItemResponse])
async def list_menu_items_by_category(
    category_id: int,
    services: ServiceRegistry = Depends(get_services),
) -> List[MenuItemResponse]:
    records = await services.catalog.list_menu_items(category_id=category_id)
    return [MenuItemResponse.model_validate(r) for r in records]


@menu_router.get("/search", response_model=List[MenuItemResponse])
async def search_menu_items(
    q: str = Query(..., min_length=1),
    services: ServiceRegistry = Depends(get_services),
) -> List[MenuItemResponse]:
    records = await services.catalog.list_menu_items(search=q)
    return [MenuItemResponse.model_validate(r) for r in records]


@menu_router.get("/{menu_item_id}", response_model=MenuItemDetailResponse)
async def get_menu_item(
    menu_item_id: int,
    services: ServiceRegistry = Depends(get_services),
) -> MenuItemDetailResponse:
    """Menu item with its recipe expanded to ingredient names and units."""
    detail = await services.catalog.get_menu_item_detail(menu_item_id)
    return MenuItemDetailResponse.model_validate(detail)


@menu_router.put("/{menu_item_id}", response_model=MenuItemResponse)
async def update_menu_item(
    menu_item_id: int,
    changes: MenuItemUpdate,
    services: ServiceRegistry = Depends(get_services),
) -> MenuItemResponse:
    record = await services.catalog.update_menu_item(menu_item_id, changes.model_dump(exclude_unset=True))
    return MenuItemResponse.model_validate(record)


@menu_router.delete("/{menu_item_id}", response_model=MessageResponse)
async def delete_menu_item(
    menu_item_id: int,
    services: ServiceRegistry = Depends(get_services),
) -> MessageResponse:
    await services.catalog.delete_menu_item(menu_item_id)
    return MessageResponse(message=f"Menu item {menu_item_id} deleted")


# =============================================================================
# INGREDIENTS
# =============================================================================

@ingredient_router.post("", response_model=IngredientResponse, status_code=status.HTTP_201_CREATED)
async def create_ingredient(
    ingredient: IngredientCreate,
    services: ServiceRegistry = Depends(get_services),
) -> IngredientResponse:
    record = await services.catalog.ingredients.create(ingredient.model_dump())
    return IngredientResponse.model_validate(record)


@ingredient_router.get("", response_model=List[IngredientResponse])
async def list_ingredients(services: ServiceRegistry = Depends(get_services)) -> List[IngredientResponse]:
    records = await services.catalog.ingredients.list()
    return [IngredientResponse.model_validate(r) for r in records]


@ingredient_router.get("/{ingredient_id}", response_model=IngredientResponse)
async def get_ingredient(
    ingredient_id: int,
    services: ServiceRegistry = Depends(get_services),
) -> IngredientResponse:
    record = await services.catalog.ingredients.get(ingredient_id)
    return IngredientResponse.model_validate(record)


@ingredient_router.put("/{ingredient_id}", response_model=IngredientResponse)
async def update_ingredient(
    ingredient_id: int,
    changes: IngredientUpdate,
    services: ServiceRegistry = Depends(get_services),
) -> IngredientResponse:
    record = await services.catalog.ingredients.update(ingredient_id, changes.model_dump(exclude_unset=True))
    return IngredientResponse.model_validate(record)


@ingredient_router.delete("/{ingredient_id}", response_model=MessageResponse)
async def delete_ingredient(
    ingredient_id: int,
    services: ServiceRegistry = Depends(get_services),
) -> MessageResponse:
    await services.catalog.ingredients.delete(ingredient_id)
    return MessageResponse(message=f"Ingredient {ingredient_id} deleted")


@ingredient_router.post("/{ingredient_id}/adjust", response_model=IngredientResponse)
async def adjust_stock(
    ingredient_id: int,
    adjustment: StockAdjustment,
    services: ServiceRegistry = Depends(get_services),
) -> IngredientResponse:
    """Deliveries, waste and stock counts. The result may not go below zero."""
    record = await services.inventory.adjust(ingredient_id, adjustment.delta, adjustment.note)
    return IngredientResponse.model_validate(record)


@ingredient_router.get("/{ingredient_id}/movements", response_model=List[StockMovementResponse])
async def list_stock_movements(
    ingredient_id: int,
    services: ServiceRegistry = Depends(get_services),
) -> List[StockMovementResponse]:
    records = await services.catalog.list_stock_movements(ingredient_id)
    return [StockMovementResponse.model_validate(r) for r in records]


# =============================================================================
# RECIPE LINKS
# =============================================================================

@recipe_router.post("", response_model=MenuIngredientResponse, status_code=status.HTTP_201_CREATED)
async def create_menu_ingredient(
    link: MenuIngredientCreate,
    services: ServiceRegistry = Depends(get_services),
) -> MenuIngredientResponse:
    record = await services.catalog.add_recipe_line(link.model_dump())
    return MenuIngredientResponse.model_validate(record)


@recipe_router.get("/menu/{menu_item_id}", response_model=List[MenuIngredientResponse])
async def list_menu_ingredients(
    menu_item_id: int,
    services: ServiceRegistry = Depends(get_services),
) -> List[MenuIngredientResponse]:
    records = await services.catalog.list_recipe_lines(menu_item_id)
    return [MenuIngredientResponse.model_validate(r) for r in records]


@recipe_router.put("/{link_id}", response_model=MenuIngredientResponse)
async def update_menu_ingredient(
    link_id: int,
    changes: MenuIngredientUpdate,
    services: ServiceRegistry = Depends(get_services),
) -> MenuIngredientResponse:
    record = await services.catalog.update_recipe_line(link_id, changes.model_dump(exclude_unset=True))
    return MenuIngredientResponse.model_validate(record)


@recipe_router.delete("/{link_id}", response_model=MessageResponse)
async def delete_menu_ingredient(
    link_id: int,
    services: ServiceRegistry = Depends(get_services),
) -> MessageResponse:
    await services.catalog.delete_recipe_line(link_id)
    return MessageResponse(message=f"Recipe line {link_id} deleted")
