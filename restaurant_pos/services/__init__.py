"""
                        Services Module

Business logic of the point-of-sale core. Every service receives the
store handle at construction; ``build_services`` wires them together.

Services:
    - catalog: menu items, categories, ingredients, recipes
    - inventory: stock decrements, restocks and the movement journal
    - outlets: tax and service-charge rates per outlet
    - orders: order placement and lifecycle
    - billing: bills, split bills, payments
    - transfers: moving orders between tables
    - reservations: table bookings with double-booking protection
    - directory: outlets, tables, staff, customers, visits
    - ledger_export: file-locked Excel ledger of settled bills
"""

from dataclasses import dataclass

from restaurant_pos.core.config import Settings
from restaurant_pos.database import Database
from restaurant_pos.services.billing import BillingEngine
from restaurant_pos.services.catalog import CatalogService
from restaurant_pos.services.directory import Directory
from restaurant_pos.services.inventory import InventoryLedger
from restaurant_pos.services.orders import OrderEngine
from restaurant_pos.services.outlets import OutletConfigProvider
from restaurant_pos.services.reservations import ReservationService
from restaurant_pos.services.transfers import TableTransferEngine


@dataclass
class ServiceRegistry:
    settings: Settings
    catalog: CatalogService
    inventory: InventoryLedger
    outlets: OutletConfigProvider
    orders: OrderEngine
    billing: BillingEngine
    transfers: TableTransferEngine
    reservations: ReservationService
    directory: Directory


def build_services(database: Database, settings: Settings) -> ServiceRegistry:
    """
    Construct every service around one store handle.

    Args:
        database: Store handle shared by all services
        settings: Application settings

    Returns:
        ServiceRegistry holding the wired services
    """
    catalog = CatalogService(database)
    inventory = InventoryLedger(database)
    outlets = OutletConfigProvider()

    return ServiceRegistry(
        settings=settings,
        catalog=catalog,
        inventory=inventory,
        outlets=outlets,
        orders=OrderEngine(database, catalog, inventory, settings),
        billing=BillingEngine(database, outlets),
        transfers=TableTransferEngine(database),
        reservations=ReservationService(database),
        directory=Directory(database),
    )


__all__ = [
    "ServiceRegistry",
    "build_services",
    "BillingEngine",
    "CatalogService",
    "Directory",
    "InventoryLedger",
    "OrderEngine",
    "OutletConfigProvider",
    "ReservationService",
    "TableTransferEngine",
]
