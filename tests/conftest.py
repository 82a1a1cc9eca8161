"""Pytest configuration and fixtures."""

import os
from types import SimpleNamespace

# Keep the module-level app in restaurant_pos.main away from real infrastructure
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./pytest-default.db")
os.environ.setdefault("LEDGER_EXPORT_ENABLED", "false")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import func, select

from restaurant_pos.core.config import Settings
from restaurant_pos.database import Database
from restaurant_pos.main import create_app
from restaurant_pos.schemas import OrderCreate
from restaurant_pos.services import build_services


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings pointing at a per-test sqlite file."""
    return Settings(
        _env_file=None,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'pos.db'}",
        auto_create_tables=False,
        ledger_export_enabled=False,
        restock_on_void=False,
        data_directory=str(tmp_path / "data"),
    )


@pytest.fixture
async def database(settings: Settings):
    """Create the schema in a fresh database."""
    db = Database.from_settings(settings)
    await db.create_all()
    yield db
    await db.dispose()


@pytest.fixture
def services(database: Database, settings: Settings):
    return build_services(database, settings)


@pytest.fixture
async def client(settings: Settings, database: Database):
    """HTTP client bound to an app built on the test database."""
    app = create_app(settings, database)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
async def seeded(services):
    """
    A small restaurant.

    Pasta: 1.5 tomato (removable) + 0.5 basil (removable) per serving.
    Pizza: 1.0 cheese (not removable) + 1.0 tomato per serving.
    Stock: tomato 10, basil 5, cheese 4. Outlet: tax 10%, service 5%.
    """
    directory = services.directory
    catalog = services.catalog

    outlet = await directory.outlets.create(
        {"name": "Main Hall", "tax_percentage": 10.0, "service_charge_percentage": 5.0}
    )
    table_a = await directory.tables.create({"outlet_id": outlet.id, "table_number": "A1", "capacity": 4})
    table_b = await directory.tables.create({"outlet_id": outlet.id, "table_number": "B2", "capacity": 2})
    waiter = await directory.staff.create({"name": "Sam", "role": "waiter"})
    manager = await directory.staff.create({"name": "Rita", "role": "manager"})
    customer = await directory.customers.create({"name": "Ada Lovelace"})

    tomato = await catalog.ingredients.create({"name": "Tomato", "quantity": 10.0, "unit": "kg"})
    basil = await catalog.ingredients.create({"name": "Basil", "quantity": 5.0, "unit": "g"})
    cheese = await catalog.ingredients.create({"name": "Cheese", "quantity": 4.0, "unit": "kg", "is_allergen": True})

    category = await catalog.categories.create({"name": "Mains"})
    pasta = await catalog.create_menu_item(
        {"category_id": category.id, "sku": "PASTA-01", "name": "Pasta Pomodoro", "price": 10.0, "cost": 3.0}
    )
    pizza = await catalog.create_menu_item(
        {"category_id": category.id, "sku": "PIZZA-01", "name": "Pizza Margherita", "price": 12.0, "cost": 4.0}
    )

    await catalog.add_recipe_line({"menu_item_id": pasta.id, "ingredient_id": tomato.id, "quantity": 1.5})
    await catalog.add_recipe_line({"menu_item_id": pasta.id, "ingredient_id": basil.id, "quantity": 0.5})
    await catalog.add_recipe_line(
        {"menu_item_id": pizza.id, "ingredient_id": cheese.id, "quantity": 1.0, "is_removable": False}
    )
    await catalog.add_recipe_line({"menu_item_id": pizza.id, "ingredient_id": tomato.id, "quantity": 1.0})

    return SimpleNamespace(
        outlet=outlet,
        table_a=table_a,
        table_b=table_b,
        waiter=waiter,
        manager=manager,
        customer=customer,
        tomato=tomato,
        basil=basil,
        cheese=cheese,
        category=category,
        pasta=pasta,
        pizza=pizza,
    )


@pytest.fixture
def order_payload(seeded):
    """Build an OrderCreate for the seeded outlet and table A."""

    def build(*items: dict, **header) -> OrderCreate:
        data = {
            "outlet_id": seeded.outlet.id,
            "table_id": seeded.table_a.id,
            "waiter_id": seeded.waiter.id,
            "items": list(items),
        }
        data.update(header)
        return OrderCreate.model_validate(data)

    return build


@pytest.fixture
def stock(services):
    """Read an ingredient's current quantity from the store."""

    async def read(ingredient) -> float:
        record = await services.catalog.ingredients.get(ingredient.id)
        return record.quantity

    return read


@pytest.fixture
def count_rows(database: Database):
    """Count rows of a model straight from the store."""

    async def count(model, *where) -> int:
        async with database.transaction() as session:
            result = await session.execute(select(func.count()).select_from(model).where(*where))
            return result.scalar_one()

    return count
