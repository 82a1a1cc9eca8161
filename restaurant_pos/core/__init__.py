"""
Core module initialization.
Exports configuration, logging utilities and the domain error taxonomy.
"""

from restaurant_pos.core.config import get_settings, Settings, EnvironmentMode
from restaurant_pos.core.errors import (
    POSError,
    ValidationError,
    NotFoundError,
    ConflictError,
    InsufficientStockError,
    PersistenceError,
)

__all__ = [
    "get_settings",
    "Settings",
    "EnvironmentMode",
    "POSError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "InsufficientStockError",
    "PersistenceError",
]
