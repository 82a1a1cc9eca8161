"""
API routers, mounted under the configured prefix by ``create_app``.
"""

from restaurant_pos.routers import bills, catalog, directory, orders, reservations, transfers

ROUTERS = [
    orders.router,
    bills.router,
    transfers.router,
    catalog.menu_router,
    catalog.ingredient_router,
    catalog.recipe_router,
    directory.outlet_router,
    directory.table_router,
    directory.staff_router,
    directory.customer_router,
    directory.visit_router,
    reservations.router,
]

__all__ = ["ROUTERS"]
